"""
HL7 primitive data type conversions.

Field values are kept as raw strings while a message is parsed. This
module converts HL7 TS/DT/TM values to ISO 8601 for reading, and renders
Python values back to HL7 primitives when a segment is serialized.
"""

import re
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Any, Optional

from .exceptions import InvalidTimestampError


# YYYY[MM[DD[HH[MM[SS[.S[S[S[S]]]]]]]]][+/-ZZZZ]
HL7_TIMESTAMP_PATTERN = re.compile(
    r"^(?P<year>\d{4})"
    r"(?:(?P<month>\d{2})"
    r"(?:(?P<day>\d{2})"
    r"(?:(?P<hour>\d{2})"
    r"(?:(?P<minute>\d{2})"
    r"(?:(?P<second>\d{2})(?:\.(?P<fraction>\d{1,4}))?)?)?)?)?)?"
    r"(?P<offset>[+-]\d{4})?$"
)


# Convert HL7 Timestamp to ISO 8601
def parse_hl7_timestamp(value: str, assume_utc: bool = True) -> Optional[str]:
    """
    Convert HL7 timestamp to ISO 8601 format.

    The output keeps the precision of the input: "2025" stays a year,
    "20250502" becomes a date, anything with an hour becomes a datetime.
    Fractional seconds are normalized to milliseconds.

    Args:
        value: HL7 timestamp string
        assume_utc: If True, treat datetimes without an offset as UTC

    Returns:
        ISO 8601 formatted string, or None if input is empty

    Raises:
        InvalidTimestampError: If timestamp format is invalid
    """
    if not value or not value.strip():
        return None

    value = value.strip()
    match = HL7_TIMESTAMP_PATTERN.match(value)
    if not match:
        raise InvalidTimestampError(value, "does not match any known HL7 timestamp format")

    parts = match.groupdict()
    year = int(parts["year"])

    try:
        if parts["month"] is None:
            return f"{year:04d}"

        month = int(parts["month"])
        if parts["day"] is None:
            _validate_date(year, month, 1)
            return f"{year:04d}-{month:02d}"

        day = int(parts["day"])
        _validate_date(year, month, day)
        result = f"{year:04d}-{month:02d}-{day:02d}"
        if parts["hour"] is None:
            return result

        hour = int(parts["hour"])
        minute = int(parts["minute"] or 0)
        second = int(parts["second"] or 0)
        _validate_time(hour, minute, second)
        result += f"T{hour:02d}:{minute:02d}:{second:02d}"
    except ValueError as e:
        raise InvalidTimestampError(value, str(e))

    if parts["fraction"]:
        result += "." + parts["fraction"][:3].ljust(3, "0")

    if parts["offset"]:
        result += _convert_tz_offset(parts["offset"])
    elif assume_utc:
        result += "Z"

    return result


# Parse HL7 Date to ISO 8601 Date
def parse_hl7_date(value: str) -> Optional[str]:
    """
    Parse HL7 date (without time) to ISO 8601 date format.

    Args:
        value: HL7 date string (YYYYMMDD, partial, or a full timestamp)

    Returns:
        ISO 8601 date string (YYYY-MM-DD or shorter) or None
    """
    result = parse_hl7_timestamp(value, assume_utc=False)
    if result is None:
        return None
    return result[:10]


# Validate date components
def _validate_date(year: int, month: int, day: int) -> None:
    if not (1 <= month <= 12):
        raise ValueError(f"month must be 1-12, got {month}")
    if not (1 <= day <= 31):
        raise ValueError(f"day must be 1-31, got {day}")
    # datetime catches the rest, e.g. February 30th
    datetime(year, month, day)


# Validate time components
def _validate_time(hour: int, minute: int, second: int) -> None:
    if not (0 <= hour <= 23):
        raise ValueError(f"hour must be 0-23, got {hour}")
    if not (0 <= minute <= 59):
        raise ValueError(f"minute must be 0-59, got {minute}")
    if not (0 <= second <= 59):
        raise ValueError(f"second must be 0-59, got {second}")


# Convert HL7 timezone offset to ISO 8601
def _convert_tz_offset(hl7_offset: str) -> str:
    """Convert "+0500" to "+05:00"; a zero offset becomes "Z"."""
    if hl7_offset in ("+0000", "-0000"):
        return "Z"
    return f"{hl7_offset[0]}{hl7_offset[1:3]}:{hl7_offset[3:5]}"


# Format Python values as HL7 primitives
def format_hl7_timestamp(value: datetime) -> str:
    """
    Render a datetime as an HL7 TS value.

    Microseconds are kept to four digits, the HL7 maximum. Aware
    datetimes get their UTC offset appended as +/-ZZZZ.
    """
    result = value.strftime("%Y%m%d%H%M%S")
    if value.microsecond:
        result += f".{value.microsecond // 100:04d}"

    offset = value.utcoffset()
    if offset is not None:
        sign = "-" if offset < timedelta(0) else "+"
        minutes = abs(int(offset.total_seconds())) // 60
        result += f"{sign}{minutes // 60:02d}{minutes % 60:02d}"

    return result


def format_hl7_date(value: date) -> str:
    return value.strftime("%Y%m%d")


def format_hl7_time(value: time) -> str:
    return value.strftime("%H%M%S")


def encode_value(value: Any, component_separator: str = "^") -> str:
    """
    Render a field value as HL7 text.

    Strings pass through untouched. Sequences become components joined
    with the component separator.

    Args:
        value: Field value as stored on a segment
        component_separator: Separator used for sequence values

    Returns:
        HL7-encoded text
    """
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "Y" if value else "N"
    # datetime is a subclass of date, so it is checked first
    if isinstance(value, datetime):
        return format_hl7_timestamp(value)
    if isinstance(value, date):
        return format_hl7_date(value)
    if isinstance(value, time):
        return format_hl7_time(value)
    if isinstance(value, float):
        return format(Decimal(repr(value)), "f")
    if isinstance(value, (list, tuple)):
        return component_separator.join(
            encode_value(item, component_separator) for item in value
        )
    return str(value)
