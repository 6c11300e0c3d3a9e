"""
Utility functions for the aggregator.

This module provides:
- Lenient numeric coercion for provider payloads
- Clamping and text truncation
- Timestamp parsing
"""

import logging
from datetime import datetime
from typing import Any, Optional, Union

import pandas as pd

logger = logging.getLogger(__name__)


def safe_float(value: Any, default: Optional[float] = 0.0) -> Optional[float]:
    """
    Convert a provider value to float.

    Providers send numbers, numeric strings, ``null`` or nothing at all;
    anything that does not parse yields ``default``.
    """
    if value is None or value == "":
        return default
    try:
        result = float(value)
    except (TypeError, ValueError):
        return default
    if result != result:  # NaN
        return default
    return result


def safe_int(value: Any, default: int = 0) -> int:
    """Convert a provider value to int, accepting numeric strings like ``"12"`` or ``"12.0"``."""
    number = safe_float(value, None)
    if number is None:
        return default
    return int(number)


def clamp(value: float, lower: float = -1.0, upper: float = 1.0) -> float:
    """Clamp value into [lower, upper]."""
    return max(lower, min(upper, value))


def truncate(text: Optional[str], length: int = 200, suffix: str = "...") -> str:
    """Cut text to ``length`` characters and append ``suffix``; empty input gives ``""``."""
    if not text:
        return ""
    return text[:length] + suffix


def parse_timestamp(value: Union[str, int, float, datetime, None]) -> datetime:
    """
    Parse an ISO-8601 string or epoch seconds into an aware UTC datetime.

    Raises:
        ValueError: the value is missing or unparseable
    """
    if value is None or value == "":
        raise ValueError("missing timestamp")

    try:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            ts = pd.to_datetime(value, unit="s", utc=True)
        else:
            ts = pd.to_datetime(value, utc=True)
    except (TypeError, OverflowError) as e:
        raise ValueError(f"unparseable timestamp {value!r}") from e

    if pd.isna(ts):
        raise ValueError(f"unparseable timestamp {value!r}")
    return ts.to_pydatetime()
