"""
Screening options: one fully-typed, immutable structure per batch call

Raw option bags from callers are normalized exactly once, at the
orchestrator boundary, and never re-checked in the scoring path.
"""

import math
from dataclasses import dataclass, replace
from typing import Any, Iterable, Mapping, Optional, Tuple, Union

DEFAULT_THRESHOLD = 0.7


def validate_threshold(threshold: Any, default: float = DEFAULT_THRESHOLD) -> float:
    """Clamp a threshold into [0, 1]; missing or invalid values give the default

    Never raises.

    >>> validate_threshold(-5), validate_threshold(5), validate_threshold(None)
    (0.0, 1.0, 0.7)
    """
    if threshold is None or isinstance(threshold, bool):
        return default
    try:
        value = float(threshold)
    except (TypeError, ValueError):
        return default
    if math.isnan(value):
        return default
    return min(1.0, max(0.0, value))


def _as_bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def _normalize_lists(value: Any, default: Iterable[str]) -> Tuple[str, ...]:
    if value is None:
        value = default
    elif isinstance(value, str):
        value = value.split(',')
    codes = []
    for code in value:
        code = str(code).strip().lower()
        if code and code not in codes:
            codes.append(code)
    return tuple(codes)


def _normalize_deadline(value: Any, default: Optional[float]) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return default
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(seconds) or seconds <= 0:
        return default
    return seconds


@dataclass(frozen=True)
class ScreeningOptions:
    """Validated options for a single batch call"""
    threshold: float = DEFAULT_THRESHOLD
    lists: Tuple[str, ...] = ('ofac', 'eu', 'uk', 'un')
    include_aliases: bool = True
    check_dob: bool = True
    check_country: bool = True
    allow_demo_data: bool = False
    deadline_seconds: Optional[float] = None

    @classmethod
    def from_request(
        cls,
        raw: Union[None, Mapping[str, Any], 'ScreeningOptions'] = None,
        default_threshold: float = DEFAULT_THRESHOLD,
        default_lists: Iterable[str] = ('ofac', 'eu', 'uk', 'un'),
        default_deadline: Optional[float] = None,
    ) -> 'ScreeningOptions':
        """Normalize a caller's options bag (camelCase or snake_case keys)"""
        if isinstance(raw, ScreeningOptions):
            return replace(
                raw,
                threshold=validate_threshold(raw.threshold, default_threshold),
                lists=_normalize_lists(raw.lists, default_lists),
                deadline_seconds=_normalize_deadline(raw.deadline_seconds, default_deadline),
            )

        raw = raw or {}

        def get(*keys: str) -> Any:
            for key in keys:
                if key in raw:
                    return raw[key]
            return None

        return cls(
            threshold=validate_threshold(get('threshold'), default_threshold),
            lists=_normalize_lists(get('lists'), default_lists),
            include_aliases=_as_bool(get('includeAliases', 'include_aliases'), True),
            check_dob=_as_bool(get('checkDob', 'check_dob'), True),
            check_country=_as_bool(get('checkCountry', 'check_country'), True),
            allow_demo_data=_as_bool(get('allowDemoData', 'allow_demo_data'), False),
            deadline_seconds=_normalize_deadline(
                get('deadlineSeconds', 'deadline_seconds'), default_deadline
            ),
        )
