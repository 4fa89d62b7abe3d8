"""
Data Source Registry

Knows which list sources exist, which currently have live data and which
do not (with a reason), and provides the synthetic demo snapshot that may
stand in when a caller explicitly allows it.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

from screening.demo_data import DEMO_TIMESTAMP, demo_entries
from screening.index import WatchlistIndex
from screening.models import DataSourceStatus, ListType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ListDefinition:
    """Static catalogue entry for one list source"""
    code: str
    name: str
    description: str
    list_type: ListType = ListType.SANCTIONS
    is_premium: bool = False


DEFAULT_LIST_DEFINITIONS: Tuple[ListDefinition, ...] = (
    ListDefinition('ofac', 'OFAC SDN List',
                   'US Treasury Office of Foreign Assets Control Specially Designated Nationals'),
    ListDefinition('eu', 'EU Consolidated Sanctions',
                   'European Union consolidated list of persons, groups and entities'),
    ListDefinition('uk', 'UK HMT Sanctions',
                   'HM Treasury consolidated list of financial sanctions targets'),
    ListDefinition('un', 'UN Security Council',
                   'United Nations Security Council consolidated sanctions list'),
    ListDefinition('pep', 'PEP Lists',
                   'Politically exposed persons, their family members and close associates',
                   ListType.PEP, is_premium=True),
    ListDefinition('adverse_media', 'Adverse Media',
                   'Negative news screening', ListType.ADVERSE_MEDIA, is_premium=True),
)

NOT_LOADED = "no data loaded"


class DataSourceRegistry:
    """Thread-safe liveness tracking for the known list sources"""

    def __init__(self, definitions: Iterable[ListDefinition] = DEFAULT_LIST_DEFINITIONS):
        self._definitions = {d.code: d for d in definitions}
        self._status = {code: DataSourceStatus(code, False, NOT_LOADED) for code in self._definitions}
        self._lock = threading.Lock()
        self._demo_index = None

    def definitions(self) -> List[ListDefinition]:
        return list(self._definitions.values())

    def definition(self, code: str) -> Optional[ListDefinition]:
        return self._definitions.get(code)

    def is_known(self, code: str) -> bool:
        return code in self._definitions

    def mark_live(self, code: str):
        with self._lock:
            self._require_known(code)
            self._status[code] = DataSourceStatus(code, True)
        logger.info("Data source %s is live", code)

    def mark_unavailable(self, code: str, reason: str):
        with self._lock:
            self._require_known(code)
            self._status[code] = DataSourceStatus(code, False, reason)
        logger.warning("Data source %s unavailable: %s", code, reason)

    def _require_known(self, code: str):
        if code not in self._definitions:
            raise KeyError(f"Unknown list source: {code}")

    def is_live(self, code: str) -> bool:
        source = self._status.get(code)
        return bool(source and source.live)

    def status_of(self, code: str) -> DataSourceStatus:
        return self._status.get(code) or DataSourceStatus(code, False, "unknown list")

    def status(self) -> Dict[str, DataSourceStatus]:
        with self._lock:
            return dict(self._status)

    def live_codes(self) -> List[str]:
        return [code for code, source in self.status().items() if source.live]

    def demo_index(self) -> WatchlistIndex:
        """Snapshot of the synthetic demo list, built once and cached"""
        with self._lock:
            if self._demo_index is None:
                self._demo_index = WatchlistIndex.build(
                    demo_entries(), version="demo", refreshed_at=DEMO_TIMESTAMP
                )
            return self._demo_index
