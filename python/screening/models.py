"""
Data model for the watchlist screening engine

Input records, watchlist entries, per-candidate scores and the batch
result envelope. Everything here is immutable once built; results are
produced per call and never persisted by the engine.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, Tuple, Union

from screening.errors import InputValidationError


class SubjectType(str, Enum):
    """Kind of party being screened or listed"""
    INDIVIDUAL = "individual"
    COMPANY = "company"

    @classmethod
    def parse(cls, value: Any, default: Optional['SubjectType'] = None) -> 'SubjectType':
        """Map loose type labels ('person', 'entity', 'Organisation', ...) to a SubjectType

        Raises:
            ValueError: If the label is not recognized
        """
        if value is None or value == "":
            return default or cls.INDIVIDUAL
        if isinstance(value, cls):
            return value
        label = str(value).strip().lower()
        if label in _INDIVIDUAL_LABELS:
            return cls.INDIVIDUAL
        if label in _COMPANY_LABELS:
            return cls.COMPANY
        raise ValueError(f"Unknown subject type: {value!r}")


_INDIVIDUAL_LABELS = {"individual", "person", "natural person"}
_COMPANY_LABELS = {"company", "entity", "organization", "organisation", "business", "vessel", "aircraft"}


class MatchStatus(str, Enum):
    """Confidence tier driving human review priority"""
    CLEAR = "clear"
    POTENTIAL_MATCH = "potential_match"
    CONFIRMED_MATCH = "confirmed_match"

    @property
    def severity(self) -> int:
        return _SEVERITY[self]


_SEVERITY = {
    MatchStatus.CLEAR: 0,
    MatchStatus.POTENTIAL_MATCH: 1,
    MatchStatus.CONFIRMED_MATCH: 2,
}


class ListType(str, Enum):
    """Category of reference list"""
    SANCTIONS = "sanctions"
    PEP = "pep"
    ADVERSE_MEDIA = "adverse_media"


DateLike = Union[str, date, None]


def _first(data: Mapping[str, Any], *keys: str) -> Any:
    """Return the first non-None value among camelCase/snake_case spellings"""
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return None


def _as_aliases(value: Any) -> Tuple[str, ...]:
    """Aliases from a list of names or one ';'-separated string

    Raises:
        TypeError: For any other shape (numbers, booleans, objects)
    """
    if value is None:
        return ()
    if isinstance(value, str):
        value = value.split(';')
    elif not isinstance(value, (list, tuple, set, frozenset)):
        raise TypeError(f"aliases must be a list of names, got {type(value).__name__}")
    return tuple(str(a).strip() for a in value if a is not None and str(a).strip())


@dataclass(frozen=True)
class ScreeningRecord:
    """A customer or counterparty identity submitted for screening"""
    id: str
    name: str
    type: SubjectType = SubjectType.INDIVIDUAL
    dob: DateLike = None
    country: Optional[str] = None
    id_number: Optional[str] = None
    aliases: Tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], position: int = 0) -> 'ScreeningRecord':
        """Build a record from a raw request dict

        Accepts both the camelCase wire names (idNumber) and snake_case.
        Records without an id get a positional one (record-1, record-2, ...).

        Raises:
            InputValidationError: If the payload is not a mapping, the type is
                unknown or aliases is not a list of names
        """
        if not isinstance(data, Mapping):
            raise InputValidationError(
                f"Record {position} must be an object, got {type(data).__name__}",
                field="record",
                code="INVALID_RECORD",
                record_index=position,
            )
        try:
            subject_type = SubjectType.parse(_first(data, 'type', 'subjectType', 'subject_type'))
        except ValueError as e:
            raise InputValidationError(
                str(e),
                field="type",
                code="INVALID_RECORD",
                suggestion="Use 'individual' or 'company'",
                record_index=position,
            )

        raw_aliases = _first(data, 'aliases')
        try:
            aliases = _as_aliases(raw_aliases)
        except TypeError as e:
            raise InputValidationError(
                f"Record {position}: {e}",
                field="aliases",
                code="INVALID_RECORD",
                suggestion="Send aliases as an array of names or one string separated by ';'",
                record_index=position,
                input_value=raw_aliases,
            )

        record_id = _first(data, 'id', 'recordId', 'record_id')
        name = _first(data, 'name')
        return cls(
            id=str(record_id) if record_id not in (None, "") else f"record-{position + 1}",
            name=str(name) if name is not None else "",
            type=subject_type,
            dob=_first(data, 'dob', 'dateOfBirth', 'date_of_birth') or None,
            country=_first(data, 'country', 'nationality') or None,
            id_number=_first(data, 'idNumber', 'id_number', 'document', 'documentNumber') or None,
            aliases=aliases,
        )

    def all_names(self) -> Tuple[str, ...]:
        return (self.name,) + self.aliases


@dataclass(frozen=True)
class WatchlistEntry:
    """One listed party. Owned by the list refresh process; read-only here."""
    entry_id: str
    list_code: str
    primary_name: str
    subject_type: SubjectType = SubjectType.INDIVIDUAL
    aliases: Tuple[str, ...] = ()
    dob: DateLike = None
    countries: Tuple[str, ...] = ()
    identifiers: FrozenSet[str] = frozenset()
    source_timestamp: Optional[datetime] = None
    program: Optional[str] = None
    reason: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], list_code: str) -> 'WatchlistEntry':
        """Build an entry from the JSON list-file format"""
        countries = _first(data, 'countries') or ()
        if isinstance(countries, str):
            countries = [countries]
        identifiers = _first(data, 'identifiers', 'idNumbers', 'id_numbers') or ()
        if isinstance(identifiers, str):
            identifiers = [identifiers]
        timestamp = _first(data, 'sourceTimestamp', 'source_timestamp', 'addedDate')
        if isinstance(timestamp, str):
            try:
                timestamp = datetime.fromisoformat(timestamp)
            except ValueError:
                timestamp = None
        return cls(
            entry_id=str(_first(data, 'id', 'entryId', 'entry_id')),
            list_code=list_code,
            primary_name=str(_first(data, 'name', 'primaryName', 'primary_name')),
            subject_type=SubjectType.parse(_first(data, 'type', 'subjectType')),
            aliases=aliases,
            dob=_first(data, 'dob', 'dateOfBirth') or None,
            countries=tuple(str(c) for c in countries if c),
            identifiers=frozenset(str(i) for i in identifiers if i),
            source_timestamp=timestamp,
            program=_first(data, 'program'),
            reason=_first(data, 'reason'),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.entry_id,
            'listCode': self.list_code,
            'name': self.primary_name,
            'type': self.subject_type.value,
            'aliases': list(self.aliases),
            'dob': self.dob.isoformat() if isinstance(self.dob, date) else self.dob,
            'countries': list(self.countries),
            'identifiers': sorted(self.identifiers),
            'sourceTimestamp': self.source_timestamp.isoformat() if self.source_timestamp else None,
            'program': self.program,
            'reason': self.reason,
        }


@dataclass(frozen=True)
class FieldScores:
    """Per-field similarity; None means the field was not compared"""
    name: float
    dob: Optional[float] = None
    country: Optional[float] = None
    identifier: Optional[float] = None

    def to_dict(self) -> Dict[str, Optional[float]]:
        return {
            'name': round(self.name, 4),
            'dob': None if self.dob is None else round(self.dob, 4),
            'country': None if self.country is None else round(self.country, 4),
            'identifier': None if self.identifier is None else round(self.identifier, 4),
        }


@dataclass(frozen=True)
class MatchCandidate:
    """A watchlist entry that reached the threshold for one record"""
    list_code: str
    entry: WatchlistEntry
    field_scores: FieldScores
    composite_score: float
    matched_name: str
    matched_field: str
    status: MatchStatus
    flags: Tuple[str, ...] = ()

    def sort_key(self) -> Tuple[float, str, str]:
        return (-self.composite_score, self.list_code, self.entry.entry_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'listCode': self.list_code,
            'entry': self.entry.to_dict(),
            'fieldScores': self.field_scores.to_dict(),
            'compositeScore': round(self.composite_score, 4),
            'matchedName': self.matched_name,
            'matchedField': self.matched_field,
            'status': self.status.value,
            'flags': list(self.flags),
        }


@dataclass(frozen=True)
class ScreeningResult:
    """Outcome for one input record"""
    record_id: str
    record_name: str
    status: MatchStatus
    matches: Tuple[MatchCandidate, ...] = ()
    incomplete: bool = False
    incomplete_reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result = {
            'recordId': self.record_id,
            'recordName': self.record_name,
            'status': self.status.value,
            'matches': [m.to_dict() for m in self.matches],
        }
        if self.incomplete:
            result['incomplete'] = True
            result['incompleteReason'] = self.incomplete_reason
        return result


@dataclass(frozen=True)
class BatchSummary:
    """Counts over a batch; computed as a pure reduction of results"""
    total: int = 0
    clear: int = 0
    potential_match: int = 0
    confirmed_match: int = 0
    total_matches: int = 0
    incomplete: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            'total': self.total,
            'clear': self.clear,
            'potentialMatches': self.potential_match,
            'confirmedMatches': self.confirmed_match,
            'totalMatches': self.total_matches,
            'incomplete': self.incomplete,
        }


@dataclass(frozen=True)
class BatchScreeningResult:
    """Results aligned 1:1 with the input records, plus batch-level labels"""
    results: Tuple[ScreeningResult, ...]
    summary: BatchSummary
    is_demo_data: bool = False
    warnings: Tuple[str, ...] = ()
    incomplete: bool = False
    snapshot_version: Optional[str] = None
    lists_screened: Tuple[str, ...] = ()

    @property
    def warning(self) -> Optional[str]:
        """All warnings joined into one human-readable string"""
        return " ".join(self.warnings) if self.warnings else None

    def to_dict(self) -> Dict[str, Any]:
        result = {
            'results': [r.to_dict() for r in self.results],
            'summary': self.summary.to_dict(),
            'isDemoData': self.is_demo_data,
            'warnings': list(self.warnings),
            'incomplete': self.incomplete,
            'snapshotVersion': self.snapshot_version,
            'listsScreened': list(self.lists_screened),
        }
        if self.warning:
            result['warning'] = self.warning
        return result


@dataclass(frozen=True)
class ListMetadata:
    """Capability-discovery view of one list source"""
    code: str
    name: str
    description: str
    list_type: ListType
    is_premium: bool = False
    entry_count: int = 0
    last_refreshed: Optional[datetime] = None
    available: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            'code': self.code,
            'name': self.name,
            'description': self.description,
            'type': self.list_type.value,
            'isPremium': self.is_premium,
            'entryCount': self.entry_count,
            'lastRefreshed': self.last_refreshed.isoformat() if self.last_refreshed else None,
            'available': self.available,
        }


@dataclass(frozen=True)
class DataSourceStatus:
    """Liveness of one list source"""
    code: str
    live: bool
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {'live': self.live}
        if self.reason:
            result['reason'] = self.reason
        return result


def records_from_payload(payload: Iterable[Any]) -> List[ScreeningRecord]:
    """Coerce a request payload (dicts or ScreeningRecord) into records, preserving order"""
    records = []
    for position, item in enumerate(payload):
        if isinstance(item, ScreeningRecord):
            records.append(item)
        else:
            records.append(ScreeningRecord.from_dict(item, position))
    return records


@dataclass(frozen=True)
class Capabilities:
    """Read path for callers deciding what they can screen against"""
    lists: Tuple[ListMetadata, ...]
    default_threshold: float
    max_batch_size: int
    data_source_status: Mapping[str, DataSourceStatus]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'lists': [m.to_dict() for m in self.lists],
            'defaultThreshold': self.default_threshold,
            'maxBatchSize': self.max_batch_size,
            'dataSourceStatus': {code: s.to_dict() for code, s in self.data_source_status.items()},
        }
