"""
Error taxonomy for the screening engine

Batch-level errors reject the whole call before any scoring runs.
Record-level scoring faults are never raised to the caller; the
orchestrator contains them and labels the affected record instead.
"""

from typing import Any, Optional, Sequence

from config_manager import ConfigurationError


class InputValidationError(ValueError):
    """Raised when a batch or one of its records fails validation

    Attributes:
        field: The field that failed validation
        code: Error code for programmatic handling
        suggestion: Optional suggestion for fixing the error
        record_index: Position of the offending record, if any
        input_value: The rejected value (raw; sanitize before logging)
    """
    def __init__(
        self,
        message: str,
        field: str = "unknown",
        code: str = "VALIDATION_ERROR",
        suggestion: str = "",
        record_index: Optional[int] = None,
        input_value: Any = "",
    ):
        self.field = field
        self.code = code
        self.suggestion = suggestion
        self.record_index = record_index
        self.input_value = input_value
        super().__init__(message)


class NoDataSourcesError(ConfigurationError):
    """No live watchlist is available and demo data was not allowed

    Distinct from InputValidationError so callers can answer with
    "service unavailable" instead of a misleading all-clear.
    """
    code = "NO_DATA_SOURCES"

    def __init__(self, requested_lists: Sequence[str] = ()):
        self.requested_lists = tuple(requested_lists)
        requested = ", ".join(self.requested_lists) or "none"
        super().__init__(
            f"No data sources configured for screening (requested lists: {requested}). "
            "Load watchlist data or set allowDemoData for non-production use."
        )
