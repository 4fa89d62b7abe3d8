"""
Watchlist List Store / Index

A WatchlistIndex is an immutable snapshot of every loaded list, built
once out-of-band and shared read-only by all screening workers. Each list
is partitioned by blocking key (the Soundex code of each name token) so a
query only scores entries that share at least one key with it, instead of
the whole list. Names without a usable key go to a catch-all block that
every query scores.

WatchlistStore holds the current snapshot. Refresh builds a new snapshot
and swaps the reference; a batch keeps the snapshot it started with.
"""

import hashlib
import logging
import threading
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from types import MappingProxyType
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Tuple

from screening.loaders import load_list_files
from screening.models import (
    DataSourceStatus,
    ListMetadata,
    ScreeningRecord,
    SubjectType,
    WatchlistEntry,
)
from screening.normalizer import (
    NormalizedName,
    PartialDate,
    blocking_key,
    normalize,
    normalize_country,
    normalize_identifier,
    parse_partial_date,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IndexedName:
    """A name variant with its normalized form"""
    raw: str
    normalized: NormalizedName
    is_alias: bool = False


@dataclass(frozen=True)
class IndexedEntry:
    """A WatchlistEntry with everything the scorer needs precomputed"""
    ordinal: int
    entry: WatchlistEntry
    names: Tuple[IndexedName, ...]
    dob: Optional[PartialDate]
    countries: FrozenSet[str]
    identifiers: FrozenSet[str]
    texts: Tuple[str, ...] = ()  # core text of each name, aligned with names

    @classmethod
    def build(cls, ordinal: int, entry: WatchlistEntry) -> 'IndexedEntry':
        names = [IndexedName(entry.primary_name, normalize(entry.primary_name, entry.subject_type))]
        for alias in entry.aliases:
            names.append(IndexedName(alias, normalize(alias, entry.subject_type), is_alias=True))
        names = [n for n in names if n.normalized]
        return cls(
            ordinal=ordinal,
            entry=entry,
            names=tuple(names),
            texts=tuple(n.normalized.text for n in names),
            dob=parse_partial_date(entry.dob),
            countries=frozenset(c for c in (normalize_country(c) for c in entry.countries) if c),
            identifiers=frozenset(i for i in (normalize_identifier(i) for i in entry.identifiers) if i),
        )


@dataclass(frozen=True)
class QueryProfile:
    """A screening record normalized once for all lists of a batch"""
    record: ScreeningRecord
    subject_type: SubjectType
    names: Tuple[IndexedName, ...]
    block_keys: FrozenSet[str]
    dob: Optional[PartialDate]
    country: str
    identifier: str

    @classmethod
    def build(cls, record: ScreeningRecord, include_aliases: bool = True,
              min_token_length: int = 2) -> 'QueryProfile':
        raw_names = record.all_names() if include_aliases else (record.name,)
        names = []
        for position, raw in enumerate(raw_names):
            normalized = normalize(raw, record.type)
            if normalized:
                names.append(IndexedName(raw, normalized, is_alias=position > 0))
        return cls(
            record=record,
            subject_type=record.type,
            names=tuple(names),
            block_keys=_block_keys(names, min_token_length),
            dob=parse_partial_date(record.dob),
            country=normalize_country(record.country),
            identifier=normalize_identifier(record.id_number),
        )


def _block_keys(names: Iterable[IndexedName], min_token_length: int) -> FrozenSet[str]:
    return frozenset(
        blocking_key(token)
        for name in names
        for token in name.normalized.tokens
        if len(token) >= min_token_length
    )


@dataclass(frozen=True)
class _ListPartition:
    code: str
    entries: Tuple[IndexedEntry, ...]
    blocks: Mapping[str, Tuple[int, ...]]
    catch_all: Tuple[int, ...]
    identifiers: Mapping[str, Tuple[int, ...]]
    refreshed_at: Optional[datetime]

    @classmethod
    def build(cls, code: str, entries: Iterable[WatchlistEntry], min_token_length: int,
              refreshed_at: Optional[datetime]) -> '_ListPartition':
        indexed: List[IndexedEntry] = []
        blocks: Dict[str, List[int]] = defaultdict(list)
        identifiers: Dict[str, List[int]] = defaultdict(list)
        catch_all: List[int] = []

        for entry in entries:
            item = IndexedEntry.build(len(indexed), entry)
            if not item.names:
                logger.warning("Skipping %s entry %s: name is empty after normalization",
                               code, entry.entry_id)
                continue
            indexed.append(item)
            keys = _block_keys(item.names, min_token_length)
            if keys:
                for key in sorted(keys):
                    blocks[key].append(item.ordinal)
            else:
                catch_all.append(item.ordinal)
            for identifier in item.identifiers:
                identifiers[identifier].append(item.ordinal)

        return cls(
            code=code,
            entries=tuple(indexed),
            blocks=MappingProxyType({k: tuple(v) for k, v in blocks.items()}),
            catch_all=tuple(catch_all),
            identifiers=MappingProxyType({k: tuple(v) for k, v in identifiers.items()}),
            refreshed_at=refreshed_at,
        )

    def candidates(self, query: QueryProfile) -> List[IndexedEntry]:
        if query.block_keys:
            ordinals = set(self.catch_all)
            for key in query.block_keys:
                ordinals.update(self.blocks.get(key, ()))
        else:
            # a query with no usable key (initials only) is scored against the whole list
            ordinals = set(range(len(self.entries)))
        if query.identifier:
            ordinals.update(self.identifiers.get(query.identifier, ()))
        return [
            self.entries[i] for i in sorted(ordinals)
            if self.entries[i].entry.subject_type is query.subject_type
        ]

    def largest_block(self) -> int:
        return max((len(v) for v in self.blocks.values()), default=0)


@dataclass(frozen=True)
class IndexView:
    """A snapshot restricted to the lists resolved for one batch"""
    index: 'WatchlistIndex'
    list_codes: Tuple[str, ...]

    def candidates(self, list_code: str, query: QueryProfile) -> List[IndexedEntry]:
        if list_code not in self.list_codes:
            return []
        return self.index.candidates(list_code, query)


class WatchlistIndex:
    """Immutable, versioned snapshot of all loaded watchlists"""

    def __init__(self, partitions: Mapping[str, _ListPartition], version: str,
                 refreshed_at: datetime, min_token_length: int = 2):
        self._partitions = MappingProxyType(dict(partitions))
        self._version = version
        self._refreshed_at = refreshed_at
        self.min_token_length = min_token_length

    @classmethod
    def build(
        cls,
        lists: Mapping[str, Iterable[WatchlistEntry]],
        version: Optional[str] = None,
        refreshed_at: Optional[datetime] = None,
        min_token_length: int = 2,
        list_refreshed: Optional[Mapping[str, datetime]] = None,
    ) -> 'WatchlistIndex':
        """Build a snapshot from entries grouped by list code

        Args:
            lists: list code -> entries
            version: Snapshot version; derived from the content if omitted
            refreshed_at: When the snapshot was built (defaults to now, UTC)
            min_token_length: Shortest token that yields a blocking key
            list_refreshed: Optional per-list refresh times
        """
        refreshed_at = refreshed_at or datetime.now(timezone.utc)
        list_refreshed = list_refreshed or {}
        digest = hashlib.sha256()
        partitions = {}
        for code in sorted(lists):
            key = code.lower()
            partition = _ListPartition.build(
                key, lists[code], min_token_length, list_refreshed.get(code, refreshed_at)
            )
            partitions[key] = partition
            for item in partition.entries:
                digest.update(f"{key}:{item.entry.entry_id}\n".encode('utf-8'))
            logger.info("Indexed list %s: %d entries in %d blocks (largest %d, catch-all %d)",
                        key, len(partition.entries), len(partition.blocks),
                        partition.largest_block(), len(partition.catch_all))

        version = version or f"{refreshed_at:%Y%m%dT%H%M%S}-{digest.hexdigest()[:12]}"
        return cls(partitions, version, refreshed_at, min_token_length)

    @classmethod
    def empty(cls) -> 'WatchlistIndex':
        return cls({}, version="empty", refreshed_at=datetime.now(timezone.utc))

    @property
    def version(self) -> str:
        return self._version

    @property
    def refreshed_at(self) -> datetime:
        return self._refreshed_at

    def list_codes(self) -> Tuple[str, ...]:
        return tuple(self._partitions)

    def has_list(self, code: str) -> bool:
        return code in self._partitions

    def entry_count(self, code: Optional[str] = None) -> int:
        if code is None:
            return sum(len(p.entries) for p in self._partitions.values())
        partition = self._partitions.get(code)
        return len(partition.entries) if partition else 0

    def candidates(self, list_code: str, query: QueryProfile) -> List[IndexedEntry]:
        """Entries of one list sharing a block or an identifier with the query"""
        partition = self._partitions.get(list_code)
        if partition is None:
            return []
        return partition.candidates(query)

    def restrict(self, codes: Iterable[str], registry=None) -> Tuple[IndexView, List[str]]:
        """Restrict to the requested lists, dropping unusable codes with a warning

        Unknown codes and lists that are not live (or not loaded) never
        raise; they are reported back as warnings.
        """
        usable: List[str] = []
        warnings: List[str] = []
        for code in codes:
            code = code.lower()
            if registry is not None and not registry.is_known(code):
                warnings.append(f"Unknown list '{code}' was ignored.")
                continue
            if registry is None and not self.has_list(code):
                warnings.append(f"Unknown list '{code}' was ignored.")
                continue
            if registry is not None and not registry.is_live(code):
                reason = registry.status_of(code).reason or "not live"
                warnings.append(f"List '{code}' is unavailable ({reason}) and was not screened.")
                continue
            if not self.has_list(code):
                warnings.append(f"List '{code}' has no loaded data and was not screened.")
                continue
            if code not in usable:
                usable.append(code)
        return IndexView(self, tuple(usable)), warnings

    def get_available_lists(self, registry) -> List[ListMetadata]:
        """Metadata for every list the registry knows, with this snapshot's counts"""
        lists = []
        for definition in registry.definitions():
            partition = self._partitions.get(definition.code)
            lists.append(ListMetadata(
                code=definition.code,
                name=definition.name,
                description=definition.description,
                list_type=definition.list_type,
                is_premium=definition.is_premium,
                entry_count=len(partition.entries) if partition else 0,
                last_refreshed=partition.refreshed_at if partition else None,
                available=partition is not None and registry.is_live(definition.code),
            ))
        return lists

    def get_data_source_status(self, registry) -> Dict[str, DataSourceStatus]:
        """Per-source liveness; a live source without loaded data is reported not live"""
        status = {}
        for code, source in registry.status().items():
            if source.live and not self.has_list(code):
                source = DataSourceStatus(code, False, "no entries loaded in current snapshot")
            status[code] = source
        return status


class WatchlistStore:
    """Holds the current snapshot and publishes replacements atomically"""

    def __init__(self, snapshot: Optional[WatchlistIndex] = None):
        self._snapshot = snapshot or WatchlistIndex.empty()
        self._lock = threading.Lock()

    def current(self) -> WatchlistIndex:
        """The snapshot a new batch should pin for its whole run"""
        return self._snapshot

    def publish(self, snapshot: WatchlistIndex) -> WatchlistIndex:
        """Swap in a new snapshot; returns the one it replaced (left untouched)"""
        with self._lock:
            previous = self._snapshot
            self._snapshot = snapshot
        logger.info("Published watchlist snapshot %s (%d entries, replaced %s)",
                    snapshot.version, snapshot.entry_count(), previous.version)
        return previous

    def load_directory(self, data_dir: Path, registry, list_files: Mapping[str, str],
                       min_token_length: int = 2) -> WatchlistIndex:
        """Load every configured list file, publish the snapshot and update the registry"""
        lists, failures = load_list_files(Path(data_dir), list_files)
        snapshot = WatchlistIndex.build(lists, min_token_length=min_token_length)
        self.publish(snapshot)
        for code in list(lists) + list(failures):
            if not registry.is_known(code):
                logger.warning("List %s is not in the source catalogue and will not be screened", code)
        for code in lists:
            if not registry.is_known(code):
                continue
            if snapshot.entry_count(code):
                registry.mark_live(code)
            else:
                registry.mark_unavailable(code, "list file contained no entries")
        for code, reason in failures.items():
            if registry.is_known(code):
                registry.mark_unavailable(code, reason)
        return snapshot
