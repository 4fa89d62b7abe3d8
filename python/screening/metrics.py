"""
Screening metrics

Prometheus counters and histograms for batch screening, plus an
in-process stats collector the health endpoint reports from.

Usage:
    from screening.metrics import batch_timer

    with batch_timer(len(records)) as timing:
        result = run_batch(...)
        timing.outcome = "incomplete" if result.incomplete else "success"
"""

import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from prometheus_client import Counter, Histogram

from screening.errors import InputValidationError, NoDataSourcesError
from screening.models import BatchScreeningResult

logger = logging.getLogger(__name__)

SLOW_BATCH_THRESHOLD_MS = 5000.0


# ============================================
# PROMETHEUS METRICS
# ============================================

batches_total = Counter(
    'watchlist_batches_total',
    'Screening batches by outcome',
    ['outcome']
)

records_screened_total = Counter(
    'watchlist_records_screened_total',
    'Screened records by resulting status',
    ['status']
)

record_faults_total = Counter(
    'watchlist_record_faults_total',
    'Records whose scoring raised and were degraded to review'
)

batch_duration = Histogram(
    'watchlist_batch_duration_seconds',
    'Batch screening duration in seconds',
    ['outcome'],
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0)
)

http_requests_total = Counter(
    'watchlist_http_requests_total',
    'API requests by method, route template and status',
    ['method', 'route', 'status']
)

http_request_duration = Histogram(
    'watchlist_http_request_duration_seconds',
    'API request latency in seconds',
    ['route'],
    buckets=(0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 30.0)
)


# ============================================
# IN-PROCESS STATS
# ============================================

class ScreeningStats:
    """Thread-safe running totals since process start (or last reset)"""

    def __init__(self):
        self._lock = threading.Lock()
        self.reset()

    def reset(self) -> None:
        with self._lock:
            self._start_time = datetime.now()
            self._batches: Dict[str, int] = {}
            self._records = 0
            self._faults = 0
            self._slow_batches = 0
            self._max_duration_ms = 0.0

    def record_batch(self, outcome: str, duration_ms: float, records: int) -> None:
        with self._lock:
            self._batches[outcome] = self._batches.get(outcome, 0) + 1
            self._records += records
            self._max_duration_ms = max(self._max_duration_ms, duration_ms)
            if duration_ms > SLOW_BATCH_THRESHOLD_MS:
                self._slow_batches += 1

    def record_fault(self) -> None:
        with self._lock:
            self._faults += 1

    def to_dict(self) -> Dict[str, Any]:
        with self._lock:
            return {
                'uptime_seconds': round((datetime.now() - self._start_time).total_seconds(), 1),
                'batches': dict(self._batches),
                'records_screened': self._records,
                'record_faults': self._faults,
                'slow_batches': self._slow_batches,
                'max_batch_duration_ms': round(self._max_duration_ms, 2),
            }


_stats = ScreeningStats()


def get_screening_metrics() -> Dict[str, Any]:
    """Current in-process screening statistics"""
    return _stats.to_dict()


def reset_metrics() -> None:
    """Reset in-process statistics (Prometheus counters are cumulative)"""
    _stats.reset()


def record_fault() -> None:
    """Count one record degraded to review because its scoring raised"""
    record_faults_total.inc()
    _stats.record_fault()


def record_results(result: BatchScreeningResult) -> None:
    for item in result.results:
        records_screened_total.labels(status=item.status.value).inc()


# ============================================
# BATCH TIMER
# ============================================

@dataclass
class BatchTiming:
    """Handed to the body of batch_timer; set outcome to label the batch"""
    records: int
    outcome: str = "success"
    duration_ms: Optional[float] = None


@contextmanager
def batch_timer(records: int = 0):
    """
    Context manager to time one batch and record its outcome.

    Exceptions propagate unchanged; they are labelled rejected,
    no_data_sources or error.

    Args:
        records: Number of records in the batch
    """
    timing = BatchTiming(records=records)
    start_time = time.perf_counter()
    try:
        yield timing
    except InputValidationError:
        timing.outcome = "rejected"
        raise
    except NoDataSourcesError:
        timing.outcome = "no_data_sources"
        raise
    except Exception:
        timing.outcome = "error"
        raise
    finally:
        duration = time.perf_counter() - start_time
        timing.duration_ms = duration * 1000

        batches_total.labels(outcome=timing.outcome).inc()
        batch_duration.labels(outcome=timing.outcome).observe(duration)
        _stats.record_batch(timing.outcome, timing.duration_ms, records)

        if timing.duration_ms > SLOW_BATCH_THRESHOLD_MS:
            logger.warning("SLOW BATCH: %d records took %.2fms (threshold: %.0fms)",
                           records, timing.duration_ms, SLOW_BATCH_THRESHOLD_MS)
        else:
            logger.debug("Batch of %d records finished in %.2fms (%s)",
                         records, timing.duration_ms, timing.outcome)


def record_request(method: str, route: str, status: int, seconds: float) -> None:
    """Count one API request; route is the path template, never the raw path"""
    http_requests_total.labels(method=method, route=route, status=str(status)).inc()
    http_request_duration.labels(route=route).observe(seconds)
