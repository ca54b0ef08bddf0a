"""
Text parsing helpers for TCX element content.

Numbers are matched against an explicit grammar with '.' as the only radix
point, so results never depend on the host locale. Timestamps are ISO-8601
and are converted to local time.
"""

import re
from datetime import datetime, timezone
from typing import Optional


_DECIMAL = re.compile(r"^[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?$")


def parse_decimal(text: Optional[str]) -> float:
    """
    Parse a decimal number such as "12", "-0.5", "47.123456" or "1e3".

    Raises:
        ValueError: text is empty or not a plain decimal number
            (thousands separators, comma radix, "nan", "inf" are rejected)
    """
    if text is None:
        raise ValueError("empty numeric value")
    stripped = text.strip()
    if not _DECIMAL.match(stripped):
        raise ValueError(f"not a decimal number: {text!r}")
    return float(stripped)


def parse_timestamp(text: Optional[str]) -> datetime:
    """
    Parse an ISO-8601 timestamp and convert it to local time.

    "Z" and numeric offsets are honoured; naive timestamps are taken as UTC.

    Raises:
        ValueError: text is empty or not ISO-8601
    """
    if text is None or not text.strip():
        raise ValueError("empty timestamp")

    value = text.strip()
    if value.endswith(("Z", "z")):
        value = value[:-1] + "+00:00"

    # fromisoformat on older interpreters only takes 3 or 6 fraction digits
    match = re.match(r"^(.*T\d{2}:\d{2}:\d{2})\.(\d+)(.*)$", value)
    if match:
        head, fraction, tail = match.groups()
        value = f"{head}.{fraction[:6].ljust(6, '0')}{tail}"

    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone()


def whole_seconds_between(start: datetime, end: datetime) -> int:
    """Whole seconds from start to end, truncated toward zero."""
    return int((end - start).total_seconds())
