"""
CSV intake for batch screening

Maps the header spellings found in customer exports onto record fields:

    name     <- name, full name, fullname
    type     <- type, entity type
    dob      <- dob, date of birth, birth date
    country  <- country, nationality, jurisdiction
    id       <- id
    idNumber <- id number, document
    aliases  <- aliases (separated by ';')
"""

import csv
import io
import logging
import re
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

from screening.errors import InputValidationError

logger = logging.getLogger(__name__)

HEADER_ALIASES = {
    'name': ('name', 'full name', 'fullname'),
    'type': ('type', 'entity type'),
    'dob': ('dob', 'date of birth', 'birth date'),
    'country': ('country', 'nationality', 'jurisdiction'),
    'id': ('id',),
    'idNumber': ('id number', 'idnumber', 'document'),
    'aliases': ('aliases',),
}

_HEADER_LOOKUP = {alias: field for field, aliases in HEADER_ALIASES.items() for alias in aliases}
_HEADER_SEPARATORS = re.compile(r'[\s_\-]+')


def canonical_header(header: Optional[str]) -> Optional[str]:
    """Record field for a CSV header, or None if the column is not used"""
    if not header:
        return None
    key = _HEADER_SEPARATORS.sub(' ', header.strip().lstrip('\ufeff').lower()).strip()
    return _HEADER_LOOKUP.get(key)


def parse_csv_records(source: Union[str, Iterable[str]]) -> List[Dict[str, str]]:
    """Parse CSV text (or an iterable of lines) into raw record dicts

    Blank rows are skipped. Values are stripped; empty values are dropped
    so optional fields stay absent.

    Raises:
        InputValidationError: If no column maps to the record name
    """
    lines = io.StringIO(source) if isinstance(source, str) else source
    reader = csv.DictReader(lines)
    columns = {header: canonical_header(header) for header in (reader.fieldnames or [])}
    if 'name' not in columns.values():
        raise InputValidationError(
            "CSV has no name column",
            field="name",
            code="INVALID_RECORD",
            suggestion="Add a header named 'name', 'full name' or 'fullname'",
        )

    records = []
    for row in reader:
        record: Dict[str, str] = {}
        for header, value in row.items():
            field = columns.get(header)
            if field and value and value.strip() and field not in record:
                record[field] = value.strip()
        if record:
            records.append(record)

    logger.info("Parsed %d records from CSV (%d columns mapped)",
                len(records), sum(1 for f in columns.values() if f))
    return records


def read_csv_file(csv_file: Union[str, Path]) -> List[Dict[str, str]]:
    """Read a CSV file from disk (UTF-8, BOM tolerated)"""
    with open(csv_file, 'r', encoding='utf-8-sig', newline='') as f:
        return parse_csv_records(f)
