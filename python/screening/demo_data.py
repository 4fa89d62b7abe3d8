"""
Synthetic demo watchlist

Every entry here is fictional. It only exists so the screening contract
can be exercised without real list data, and results built from it are
always tagged as demo data.
"""

from dataclasses import replace
from datetime import datetime, timezone
from typing import Dict, List

from screening.models import WatchlistEntry

DEMO_TIMESTAMP = datetime(2024, 1, 1, tzinfo=timezone.utc)

DEMO_WARNING = (
    "Demo data was used for this screening. Results are synthetic and must not "
    "be relied upon for compliance decisions."
)

_DEMO_ENTRIES = {
    'ofac': [
        dict(id='DEMO-OFAC-001', name='Viktor Petrovich Demidov', type='individual',
             aliases=['Victor Demidov', 'V. P. Demidov'], dob='1961-07-14', countries=['RU'],
             identifiers=['DEMO-P-4471023'], program='DEMO-PROGRAM', reason='Fictional sanctions target'),
        dict(id='DEMO-OFAC-002', name='Northwind Maritime Holdings Ltd', type='company',
             aliases=['Northwind Shipping'], countries=['AE'],
             identifiers=['DEMO-IMO-9900001'], program='DEMO-PROGRAM', reason='Fictional vessel operator'),
        dict(id='DEMO-OFAC-003', name='Hassan Karimi Tavakoli', type='individual',
             aliases=['Hasan Karimi'], dob='1970', countries=['IR'],
             program='DEMO-PROGRAM', reason='Fictional procurement agent'),
    ],
    'eu': [
        dict(id='DEMO-EU-001', name='Aleksandr Ivanovich Korolenko', type='individual',
             aliases=['Alexander Korolenko'], dob='1958-02-03', countries=['BY'],
             reason='Fictional EU listing'),
        dict(id='DEMO-EU-002', name='Baltic Crest Trading GmbH', type='company',
             countries=['DE'], identifiers=['DEMO-HRB-12345'], reason='Fictional EU listing'),
    ],
    'uk': [
        dict(id='DEMO-UK-001', name='Oleg Sergeyevich Vasnetsov', type='individual',
             aliases=['Oleg Vasnetsov'], dob='1966-11-21', countries=['RU', 'GB'],
             identifiers=['DEMO-GB-770011'], reason='Fictional UK HMT designation'),
        dict(id='DEMO-UK-002', name='Meridian Star Petroleum PLC', type='company',
             countries=['GB'], reason='Fictional UK HMT designation'),
    ],
    'un': [
        dict(id='DEMO-UN-001', name='Kim Chol Ryong', type='individual',
             aliases=['Kim Chol-ryong'], dob='1972-05', countries=['KP'],
             reason='Fictional UN Security Council listing'),
        dict(id='DEMO-UN-002', name='Eastern Dawn General Trading LLC', type='company',
             countries=['SY'], reason='Fictional UN Security Council listing'),
    ],
    'pep': [
        dict(id='DEMO-PEP-001', name='Maria Elena Castellanos', type='individual',
             aliases=['Maria Castellanos'], dob='1969-09-30', countries=['VE'],
             reason='Fictional former minister'),
    ],
}


def demo_entries() -> Dict[str, List[WatchlistEntry]]:
    """Demo entries grouped by list code"""
    return {
        code: [replace(WatchlistEntry.from_dict(data, code), source_timestamp=DEMO_TIMESTAMP)
               for data in entries]
        for code, entries in _DEMO_ENTRIES.items()
    }
