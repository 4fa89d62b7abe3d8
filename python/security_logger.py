"""
Security Event Logging Module

Structured JSON logging for security-relevant screening events:
- BATCH_REJECTED: a batch failed validation before any scoring ran
- SUSPICIOUS_INPUT: the rejection was for blocked or invisible characters
- DEMO_DATA_SERVED: a caller was answered from the synthetic demo list

Events are correlated with the API request through a context variable,
so concurrent requests never see each other's request id.

SECURITY: identity values are sanitized and cut to 50 characters; the
security log never holds a full name, date of birth or document number.
"""

import json
import logging
import uuid
from contextvars import ContextVar
from dataclasses import dataclass, field as dataclass_field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

from xml_utils import sanitize_for_logging

BATCH_REJECTED = "BATCH_REJECTED"
SUSPICIOUS_INPUT = "SUSPICIOUS_INPUT"
DEMO_DATA_SERVED = "DEMO_DATA_SERVED"

# Rejections that look like injection or smuggling attempts rather than typos
SUSPICIOUS_CODES = frozenset({"BLOCKED_CHARACTERS", "CONTROL_CHARACTER"})

_MAX_INPUT_CHARS = 50

_request_id: ContextVar[str] = ContextVar("security_request_id", default="")


def set_request_context(request_id: Optional[str] = None) -> str:
    """Attach a correlation id to security events raised in this context

    Returns:
        The request id in use (generated when none is given)
    """
    request_id = request_id or f"REQ-{uuid.uuid4().hex[:8]}"
    _request_id.set(request_id)
    return request_id


def clear_request_context() -> None:
    _request_id.set("")


def current_request_id() -> str:
    return _request_id.get()


@dataclass
class SecurityEvent:
    """One security log line"""
    event_type: str
    severity: str  # WARNING or ERROR
    field_name: str = ""
    error_code: str = ""
    sanitized_input: str = ""
    source: str = ""
    request_id: str = ""
    record_index: Optional[int] = None
    additional_context: Dict[str, Any] = dataclass_field(default_factory=dict)
    timestamp: str = dataclass_field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> Dict[str, Any]:
        return {
            'timestamp': self.timestamp,
            'event_type': self.event_type,
            'severity': self.severity,
            'field': self.field_name,
            'error_code': self.error_code,
            'sanitized_input': self.sanitized_input,
            'source': self.source,
            'request_id': self.request_id,
            'record_index': self.record_index,
            'context': self.additional_context
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)


def _truncate(text: Any, max_length: int = _MAX_INPUT_CHARS) -> str:
    if text is None or text == "":
        return ""
    sanitized = sanitize_for_logging(text)
    if len(sanitized) > max_length:
        return sanitized[:max_length] + "...(truncated)"
    return sanitized


def _sanitize_context(context: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Sanitize every key and value of a context dict, recursively"""
    if not context:
        return {}

    def clean(value: Any) -> Any:
        if value is None or isinstance(value, (bool, int, float)):
            return value
        if isinstance(value, dict):
            return _sanitize_context(value)
        if isinstance(value, (list, tuple, set, frozenset)):
            return [clean(item) for item in value]
        return _truncate(value, max_length=200)

    return {
        (_truncate(key, max_length=100) if key else "unknown"): clean(value)
        for key, value in context.items()
    }


class SecurityLogger:
    """Writes security events to <log_dir>/security.log, one JSON document per line

    Rotation is left to external tooling.
    """

    def __init__(
        self,
        log_dir: str = "logs",
        log_level: int = logging.WARNING,
        enable_console: bool = False,
        enable_file: bool = True
    ):
        self.log_dir = Path(log_dir)

        self.logger = logging.getLogger('security')
        self.logger.setLevel(log_level)
        self.logger.handlers.clear()

        formatter = logging.Formatter(
            '%(asctime)s - SECURITY - %(levelname)s - %(message)s'
        )

        if enable_file:
            self.log_dir.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(self.log_dir / "security.log", encoding='utf-8')
            file_handler.setLevel(log_level)
            file_handler.setFormatter(formatter)
            self.logger.addHandler(file_handler)

        if enable_console:
            console_handler = logging.StreamHandler()
            console_handler.setLevel(log_level)
            console_handler.setFormatter(formatter)
            self.logger.addHandler(console_handler)

    def _emit(self, event: SecurityEvent) -> None:
        event.request_id = event.request_id or current_request_id()
        if event.severity == "ERROR":
            self.logger.error(event.to_json())
        else:
            self.logger.warning(event.to_json())

    def log_batch_rejected(self, error: Exception, source: str = "",
                           batch_size: Optional[int] = None) -> None:
        """Record a rejected batch from its InputValidationError

        Blocked or invisible characters are logged as SUSPICIOUS_INPUT at
        ERROR; every other rejection is a BATCH_REJECTED warning.
        """
        code = getattr(error, 'code', type(error).__name__)
        suspicious = code in SUSPICIOUS_CODES
        context = {'message': str(error)}
        if batch_size is not None:
            context['batch_size'] = batch_size
        self._emit(SecurityEvent(
            event_type=SUSPICIOUS_INPUT if suspicious else BATCH_REJECTED,
            severity="ERROR" if suspicious else "WARNING",
            field_name=getattr(error, 'field', ""),
            error_code=code,
            sanitized_input=_truncate(getattr(error, 'input_value', "")),
            source=source,
            record_index=getattr(error, 'record_index', None),
            additional_context=_sanitize_context(context),
        ))

    def log_demo_data_served(self, lists: Iterable[str], snapshot_version: str = "",
                             source: str = "") -> None:
        """Record that a caller got results from the synthetic demo list"""
        self._emit(SecurityEvent(
            event_type=DEMO_DATA_SERVED,
            severity="WARNING",
            source=source,
            additional_context=_sanitize_context({
                'lists': list(lists),
                'snapshot_version': snapshot_version,
            }),
        ))


_security_logger: Optional[SecurityLogger] = None


def get_security_logger(
    log_dir: str = "logs",
    enable_console: bool = False,
    enable_file: bool = True
) -> SecurityLogger:
    """Get or create the global security logger instance"""
    global _security_logger
    if _security_logger is None:
        _security_logger = SecurityLogger(
            log_dir=log_dir,
            enable_console=enable_console,
            enable_file=enable_file
        )
    return _security_logger


def reset_security_logger() -> None:
    """Reset the global security logger (for testing)"""
    global _security_logger
    _security_logger = None
