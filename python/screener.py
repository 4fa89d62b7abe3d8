"""
Watchlist Batch Screener
Screens batches of customer identity records against sanctions, PEP and
other regulatory watchlists

Features:
- Fail-fast batch validation (size, names, blocked and control characters)
- Soundex-blocked candidate retrieval from an immutable list snapshot
- Multi-field scoring (name, aliases, DOB, country, identifier)
- clear / potential_match / confirmed_match tiers for human review
- Bounded worker pool over (record x list) units with an optional deadline
- Per-record fault containment: a failing record degrades to review, never clear
- Explicit demo-data fallback, always tagged in the result

SECURITY: Input validation on every record; rejected batches are written
to the security log with sanitized values.
"""

import argparse
import json
import logging
import os
import sys
import time
import unicodedata
from concurrent.futures import ThreadPoolExecutor, wait
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from config_manager import ConfigManager, get_config
from screening.classifier import MatchClassifier, overall_status
from screening.demo_data import DEMO_WARNING
from screening.errors import InputValidationError, NoDataSourcesError
from screening.index import IndexView, QueryProfile, WatchlistIndex, WatchlistStore
from screening.intake import read_csv_file
from screening.metrics import batch_timer, record_fault, record_results
from screening.models import (
    BatchScreeningResult,
    BatchSummary,
    Capabilities,
    MatchCandidate,
    MatchStatus,
    ScreeningRecord,
    ScreeningResult,
    records_from_payload,
)
from screening.normalizer import ISO_PARTIAL_DATE, normalize, parse_partial_date
from screening.options import ScreeningOptions
from screening.registry import DataSourceRegistry
from screening.scorer import NamePrefilter, SimilarityScorer
from security_logger import SecurityLogger, get_security_logger
from xml_utils import sanitize_for_logging

logger = logging.getLogger(__name__)

DEADLINE_EXCEEDED = "deadline_exceeded"
SCORING_ERROR = "scoring_error"


class _DeadlineExceeded(Exception):
    """A unit started after the batch deadline had already passed"""
    pass


def validate_record(record: ScreeningRecord, index: int,
                    config: Optional[ConfigManager] = None) -> None:
    """Validate one screening record for security and correctness

    Supports international names (Chinese, Arabic, Cyrillic, ...) unless
    allow_unicode_names is disabled.

    Raises:
        InputValidationError: If validation fails, with the record position
    """
    if config is None:
        config = get_config()
    iv_config = config.input_validation

    name = record.name or ""
    name_stripped = name.strip()

    if len(name_stripped) < iv_config.name_min_length:
        raise InputValidationError(
            f"Record {index}: name too short ({len(name_stripped)} chars, minimum {iv_config.name_min_length})",
            field="name",
            code="NAME_TOO_SHORT",
            suggestion=f"Provide a name with at least {iv_config.name_min_length} characters",
            record_index=index,
            input_value=name,
        )

    if len(name) > iv_config.name_max_length:
        raise InputValidationError(
            f"Record {index}: name too long ({len(name)} chars, maximum {iv_config.name_max_length})",
            field="name",
            code="NAME_TOO_LONG",
            suggestion=f"Shorten the name to {iv_config.name_max_length} characters or less",
            record_index=index,
            input_value=name,
        )

    for field_name, value in [("name", name)] + [("aliases", a) for a in record.aliases]:
        _check_characters(field_name, value, index, iv_config)

    if not normalize(name, record.type):
        raise InputValidationError(
            f"Record {index}: name has no letters or digits",
            field="name",
            code="NAME_TOO_SHORT",
            suggestion="Provide the party's name in letters",
            record_index=index,
            input_value=name,
        )

    if record.dob and isinstance(record.dob, str):
        if not ISO_PARTIAL_DATE.match(record.dob.strip()) or parse_partial_date(record.dob) is None:
            raise InputValidationError(
                f"Record {index}: DOB must be ISO 8601. Got: '{record.dob}'. Example: '1980-01-15'",
                field="dob",
                code="INVALID_DOB_FORMAT",
                suggestion="Use format YYYY, YYYY-MM, or YYYY-MM-DD",
                record_index=index,
                input_value=record.dob,
            )

    if record.id_number and len(str(record.id_number)) > iv_config.identifier_max_length:
        raise InputValidationError(
            f"Record {index}: identifier too long ({len(str(record.id_number))} chars, "
            f"maximum {iv_config.identifier_max_length})",
            field="idNumber",
            code="IDENTIFIER_TOO_LONG",
            suggestion=f"Shorten to {iv_config.identifier_max_length} characters or less",
            record_index=index,
            input_value=record.id_number,
        )


def _check_characters(field_name: str, value: str, index: int, iv_config) -> None:
    found_blocked = [c for c in value if c in iv_config.blocked_characters]
    if found_blocked:
        logger.warning("SECURITY: Blocked characters detected in %s: %s",
                       field_name, sanitize_for_logging(value))
        raise InputValidationError(
            f"Record {index}: {field_name} contains blocked characters: {found_blocked}",
            field=field_name,
            code="BLOCKED_CHARACTERS",
            suggestion="Remove special characters like < > { } [ ] | \\ ; ` $",
            record_index=index,
            input_value=value,
        )

    for char in value:
        # Cc / Cf / Cs / Co / Cn
        if unicodedata.category(char).startswith('C'):
            logger.warning("SECURITY: Control character detected in %s: %s",
                           field_name, sanitize_for_logging(value))
            raise InputValidationError(
                f"Record {index}: {field_name} contains invalid control character (code: {ord(char)})",
                field=field_name,
                code="CONTROL_CHARACTER",
                suggestion="Remove invisible or control characters",
                record_index=index,
                input_value=value,
            )
        if not iv_config.allow_unicode_names and ord(char) > 0x24F:
            raise InputValidationError(
                f"Record {index}: {field_name} must use Latin characters only",
                field=field_name,
                code="INVALID_FORMAT",
                suggestion="Use Latin characters only (A-Z, a-z, À-ÿ)",
                record_index=index,
                input_value=value,
            )


def summarize(results: Iterable[ScreeningResult]) -> BatchSummary:
    """Pure reduction of results into batch counts"""
    counts = {status: 0 for status in MatchStatus}
    total = total_matches = incomplete = 0
    for result in results:
        total += 1
        counts[result.status] += 1
        total_matches += len(result.matches)
        incomplete += 1 if result.incomplete else 0
    return BatchSummary(
        total=total,
        clear=counts[MatchStatus.CLEAR],
        potential_match=counts[MatchStatus.POTENTIAL_MATCH],
        confirmed_match=counts[MatchStatus.CONFIRMED_MATCH],
        total_matches=total_matches,
        incomplete=incomplete,
    )


class BatchScreener:
    """Validates a batch, fans it out over the pinned snapshot and assembles ordered results"""

    def __init__(self,
                 config: Optional[ConfigManager] = None,
                 store: Optional[WatchlistStore] = None,
                 registry: Optional[DataSourceRegistry] = None,
                 security_logger: Optional[SecurityLogger] = None):
        """Initialize screener

        Args:
            config: Configuration manager instance
            store: Snapshot holder; an empty store if omitted
            registry: Data source registry; all sources not loaded if omitted
            security_logger: Sink for rejected-batch events
        """
        self.config = config or get_config()
        self.store = store or WatchlistStore()
        self.registry = registry or DataSourceRegistry()
        self.scorer = SimilarityScorer(self.config.matching)
        self.name_filter = NamePrefilter(self.config.matching)
        self.classifier = MatchClassifier(self.config.matching)
        self._security_logger = security_logger

        logger.info("Batch screener initialized: max batch %d, workers %d, default lists %s",
                    self.config.batch.max_batch_size, self.config.batch.max_workers,
                    ",".join(self.config.batch.default_lists))

    @property
    def security_logger(self) -> SecurityLogger:
        if self._security_logger is None:
            self._security_logger = get_security_logger(
                log_dir=self.config.logging.security_log_dir,
                enable_console=False,
                enable_file=self.config.logging.security_log_to_file,
            )
        return self._security_logger

    # ------------------------------------------------------------------
    # Data
    # ------------------------------------------------------------------

    def load_data(self, data_dir: Optional[Union[str, Path]] = None) -> WatchlistIndex:
        """Load the configured list files and publish them as the current snapshot"""
        data_dir = Path(data_dir or self.config.data.data_directory)
        return self.store.load_directory(
            data_dir,
            self.registry,
            self.config.data.list_files,
            min_token_length=self.config.matching.min_block_token_length,
        )

    def capabilities(self) -> Capabilities:
        """Lists, default threshold, batch limit and per-source liveness"""
        snapshot = self.store.current()
        return Capabilities(
            lists=tuple(snapshot.get_available_lists(self.registry)),
            default_threshold=self.config.matching.default_threshold,
            max_batch_size=self.config.batch.max_batch_size,
            data_source_status=snapshot.get_data_source_status(self.registry),
        )

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate_batch(self, records: Any) -> List[ScreeningRecord]:
        """Validate a whole batch before any scoring runs

        Returns:
            The records as ScreeningRecord, in input order

        Raises:
            InputValidationError: On the first violation; the batch is rejected whole
        """
        try:
            return self._validate_batch(records)
        except InputValidationError as e:
            logger.warning("Batch rejected (%s): %s", e.code, sanitize_for_logging(str(e)))
            self.security_logger.log_batch_rejected(e, source="batch_screening")
            raise

    def _validate_batch(self, records: Any) -> List[ScreeningRecord]:
        if records is None or isinstance(records, (str, bytes, Mapping)):
            raise InputValidationError(
                "Records must be an array of identity records",
                field="records",
                code="INVALID_RECORD",
            )
        records = list(records)
        max_size = self.config.batch.max_batch_size
        if not records:
            raise InputValidationError(
                "Batch is empty",
                field="records",
                code="EMPTY_BATCH",
                suggestion="Submit at least one record",
            )
        if len(records) > max_size:
            raise InputValidationError(
                f"Batch too large ({len(records)} records, maximum {max_size})",
                field="records",
                code="BATCH_TOO_LARGE",
                suggestion=f"Split the batch into chunks of at most {max_size} records",
                input_value=len(records),
            )

        validated = records_from_payload(records)
        for index, record in enumerate(validated):
            validate_record(record, index, self.config)
        return validated

    # ------------------------------------------------------------------
    # Screening
    # ------------------------------------------------------------------

    def _options(self, options: Union[None, Mapping[str, Any], ScreeningOptions]) -> ScreeningOptions:
        return ScreeningOptions.from_request(
            options,
            default_threshold=self.config.matching.default_threshold,
            default_lists=self.config.batch.default_lists,
            default_deadline=self.config.batch.deadline_seconds,
        )

    def _resolve_lists(self, options: ScreeningOptions) -> Tuple[IndexView, List[str], bool]:
        """Intersect the requested lists with live ones, falling back to demo data if allowed"""
        snapshot = self.store.current()
        view, warnings = snapshot.restrict(options.lists, self.registry)
        if view.list_codes:
            return view, warnings, False

        if not options.allow_demo_data:
            logger.error("No data sources for requested lists %s", ",".join(options.lists))
            raise NoDataSourcesError(options.lists)

        demo = self.registry.demo_index()
        requested = tuple(code for code in options.lists if demo.has_list(code))
        logger.warning("Screening against demo data (lists: %s)",
                       ",".join(requested or demo.list_codes()))
        self.security_logger.log_demo_data_served(
            requested or demo.list_codes(), snapshot_version="demo", source="batch_screening"
        )
        warnings.append(DEMO_WARNING)
        return IndexView(demo, requested or demo.list_codes()), warnings, True

    def screen_batch(self, records: Any,
                     options: Union[None, Mapping[str, Any], ScreeningOptions] = None) -> BatchScreeningResult:
        """Screen a batch of identity records

        Args:
            records: Raw record dicts (camelCase or snake_case) or ScreeningRecord
            options: Options bag or ScreeningOptions

        Returns:
            BatchScreeningResult with results[i] for records[i]

        Raises:
            InputValidationError: If the batch is invalid (nothing is scored)
            NoDataSourcesError: If no list is live and demo data is not allowed
        """
        count = len(records) if hasattr(records, '__len__') else 0
        with batch_timer(count) as timing:
            validated = self.validate_batch(records)
            opts = self._options(options)
            view, warnings, is_demo = self._resolve_lists(opts)

            results = self._run(validated, view, opts)
            summary = summarize(results)

            deadline_hits = sum(1 for r in results if r.incomplete_reason == DEADLINE_EXCEEDED)
            faults = sum(1 for r in results if r.incomplete_reason == SCORING_ERROR)
            if deadline_hits:
                warnings.append(
                    f"Screening deadline of {opts.deadline_seconds}s exceeded: {deadline_hits} "
                    "record(s) were not fully screened and need review."
                )
            if faults:
                warnings.append(f"{faults} record(s) could not be fully scored and need review.")

            result = BatchScreeningResult(
                results=tuple(results),
                summary=summary,
                is_demo_data=is_demo,
                warnings=tuple(warnings),
                incomplete=summary.incomplete > 0,
                snapshot_version=view.index.version,
                lists_screened=view.list_codes,
            )
            record_results(result)
            if result.incomplete:
                timing.outcome = "incomplete"
            elif is_demo:
                timing.outcome = "demo"

        logger.info("Screened %d records against %s (snapshot %s): %d confirmed, %d potential, %d clear",
                    summary.total, ",".join(view.list_codes), view.index.version,
                    summary.confirmed_match, summary.potential_match, summary.clear)
        return result

    def screen_name(self, name: str, subject_type: str = "individual",
                    options: Union[None, Mapping[str, Any], ScreeningOptions] = None) -> BatchScreeningResult:
        """Quick check of a single name; a one-record batch so demo tags are kept"""
        return self.screen_batch([{'name': name, 'type': subject_type}], options)

    def _run(self, records: Sequence[ScreeningRecord], view: IndexView,
             options: ScreeningOptions) -> List[ScreeningResult]:
        deadline = options.deadline_seconds or None
        deadline_at = time.monotonic() + deadline if deadline else None

        buffer: List[List[MatchCandidate]] = [[] for _ in records]
        incomplete: Dict[int, str] = {}

        profiles: List[Optional[QueryProfile]] = []
        for index, record in enumerate(records):
            try:
                profiles.append(QueryProfile.build(
                    record, options.include_aliases, self.config.matching.min_block_token_length
                ))
            except Exception:
                logger.exception("Failed to prepare record %d (%s)", index, sanitize_for_logging(record.id))
                record_fault()
                profiles.append(None)
                incomplete[index] = SCORING_ERROR

        workers = max(1, min(self.config.batch.max_workers, os.cpu_count() or 1))
        executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="screening")
        try:
            futures = {
                executor.submit(self._screen_unit, profile, view, list_code, options, deadline_at): index
                for index, profile in enumerate(profiles) if profile is not None
                for list_code in view.list_codes
            }
            timeout = max(0.0, deadline_at - time.monotonic()) if deadline_at is not None else None
            done, pending = wait(futures, timeout=timeout)
            for future in pending:
                future.cancel()

            for future in done:
                index = futures[future]
                try:
                    buffer[index].extend(future.result())
                except _DeadlineExceeded:
                    incomplete.setdefault(index, DEADLINE_EXCEEDED)
                except Exception:
                    logger.exception("Scoring failed for record %d (%s)",
                                     index, sanitize_for_logging(records[index].id))
                    record_fault()
                    incomplete[index] = SCORING_ERROR
            for future in pending:
                incomplete.setdefault(futures[future], DEADLINE_EXCEEDED)
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        results = []
        for index, record in enumerate(records):
            matches = tuple(sorted(buffer[index], key=MatchCandidate.sort_key))
            status = overall_status(m.status for m in matches)
            reason = incomplete.get(index)
            if reason:
                # an unfinished record needs review, never clear
                status = overall_status([status, MatchStatus.POTENTIAL_MATCH])
            results.append(ScreeningResult(
                record_id=record.id,
                record_name=record.name,
                status=status,
                matches=matches,
                incomplete=reason is not None,
                incomplete_reason=reason,
            ))
        return results

    def _screen_unit(self, profile: QueryProfile, view: IndexView, list_code: str,
                     options: ScreeningOptions, deadline_at: Optional[float]) -> List[MatchCandidate]:
        """Score one record against one list; pure function of its inputs"""
        if deadline_at is not None and time.monotonic() >= deadline_at:
            raise _DeadlineExceeded()

        matches = []
        candidates = self.name_filter.filter(profile, view.candidates(list_code, profile), options)
        for candidate in candidates:
            breakdown = self.scorer.score(profile, candidate, options)
            status = self.classifier.classify(breakdown.composite, breakdown.field_scores, options.threshold)
            if status is MatchStatus.CLEAR:
                continue
            matches.append(MatchCandidate(
                list_code=list_code,
                entry=candidate.entry,
                field_scores=breakdown.field_scores,
                composite_score=breakdown.composite,
                matched_name=breakdown.matched_name,
                matched_field=breakdown.matched_field,
                status=status,
                flags=breakdown.flags,
            ))
        return matches

    # ------------------------------------------------------------------
    # Bulk
    # ------------------------------------------------------------------

    def bulk_screen(self, csv_file: Union[str, Path],
                    options: Union[None, Mapping[str, Any], ScreeningOptions] = None) -> BatchScreeningResult:
        """Screen every row of a CSV file as one batch

        Args:
            csv_file: Path to a CSV whose header uses any of the accepted aliases
            options: Options bag or ScreeningOptions
        """
        records = read_csv_file(csv_file)
        logger.info("Bulk screening %d records from %s", len(records), csv_file)
        return self.screen_batch(records, options)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Command-line entry point: screen a CSV file and write the JSON result"""
    parser = argparse.ArgumentParser(description="Screen a CSV of identity records against watchlists")
    parser.add_argument("csv_file", help="CSV with a name column (full name / fullname also accepted)")
    parser.add_argument("--lists", help="Comma-separated list codes (default: from config)")
    parser.add_argument("--threshold", type=float, help="Match threshold between 0 and 1")
    parser.add_argument("--allow-demo-data", action="store_true",
                        help="Fall back to the synthetic demo list when no list is loaded")
    parser.add_argument("--data-dir", help="Directory containing the list files")
    parser.add_argument("--config", help="Path to config.yaml")
    parser.add_argument("--output", help="Write the JSON result here instead of stdout")
    args = parser.parse_args(argv)

    config = ConfigManager(args.config) if args.config else get_config()
    handlers: List[logging.Handler] = []
    if config.logging.console:
        handlers.append(logging.StreamHandler())
    if config.logging.file:
        log_file = Path(config.logging.file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding='utf-8'))
    logging.basicConfig(
        level=getattr(logging, config.logging.level.upper(), logging.INFO),
        format=config.logging.format,
        handlers=handlers or None
    )

    screener = BatchScreener(config)
    snapshot = screener.load_data(args.data_dir)
    logger.info("Loaded %d entries (snapshot %s)", snapshot.entry_count(), snapshot.version)

    options = {
        'threshold': args.threshold,
        'lists': args.lists,
        'allowDemoData': args.allow_demo_data,
    }
    try:
        result = screener.bulk_screen(args.csv_file, options)
    except InputValidationError as e:
        logger.error("Input rejected (%s): %s", e.code, e)
        return 2
    except NoDataSourcesError as e:
        logger.error("%s", e)
        return 3

    output = json.dumps(result.to_dict(), indent=2, ensure_ascii=False)
    if args.output:
        Path(args.output).write_text(output, encoding='utf-8')
        logger.info("Result written to %s", args.output)
    else:
        print(output)

    for warning in result.warnings:
        logger.warning("%s", warning)
    return 0


if __name__ == "__main__":
    sys.exit(main())
