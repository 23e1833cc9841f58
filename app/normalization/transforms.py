"""
app/normalization/transforms.py

Value-level primitives shared by every source adapter: nested field lookup,
date parsing, number parsing and mapping transforms.

None of these functions raise for bad data. Unparseable dates become
``None`` and unparseable numbers become ``0.0`` so a single malformed cell
never blocks ingestion.
"""

from __future__ import annotations

import math
import re
from datetime import date, datetime, timezone
from typing import Any, Mapping

from app.domain.records import (
    DateTransform,
    DirectTransform,
    FieldTransform,
    FormulaTransform,
    LookupTransform,
    NumberTransform,
)

TIMESTAMP_FORMATS: tuple[str, ...] = (
    "%Y-%m-%d",
    "%Y/%m/%d",
    "%m/%d/%Y",
    "%m/%d/%Y %H:%M",
    "%m/%d/%Y %H:%M:%S",
    "%Y-%m-%d %H:%M:%S",
    "%Y/%m/%d %H:%M:%S",
    "%b %d, %Y",
    "%B %d, %Y",
    "%d %b %Y",
)

# Numeric timestamps above this are treated as milliseconds, below as seconds.
MILLISECOND_TIMESTAMP_THRESHOLD = 1e12

_NUMBER_NOISE = re.compile(r"[^0-9.\-]")
_LEADING_NUMBER = re.compile(r"-?(?:\d+(?:\.\d*)?|\.\d+)")
_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")

_SCALAR_TYPES = (str, bytes, int, float, bool, date, datetime)


def to_snake_case(name: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", name).lower()


def get_field_value(row: Any, field_path: str) -> Any:
    """
    Resolve a dot-separated path inside a row.

    Mappings are indexed by key. Other objects are read by attribute, trying
    the segment as written and then its snake_case spelling so that wire
    names such as ``ownerId`` or ``metadata.customFields.region`` resolve
    against :class:`~app.domain.records.Record` instances.
    """

    if row is None:
        return None
    if isinstance(row, Mapping) and field_path in row:
        return row[field_path]

    value: Any = row
    for part in field_path.split("."):
        if value is None:
            return None
        if isinstance(value, Mapping):
            value = value.get(part)
        elif isinstance(value, _SCALAR_TYPES):
            return None
        elif hasattr(value, part):
            value = getattr(value, part)
        else:
            value = getattr(value, to_snake_case(part), None)
    return value


def ensure_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_date(value: Any, fmt: str | None = None) -> datetime | None:
    """
    Parse a date-like value into a UTC datetime, or ``None``.

    Order: native objects, the strftime-style *fmt* hint, ISO 8601, common
    formats, then numeric epoch timestamps.
    """

    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if isinstance(value, bool) or not value:
        return None
    if isinstance(value, (int, float)):
        return _parse_epoch(float(value))

    raw = str(value).strip()
    if not raw:
        return None

    if fmt and "%" in fmt:
        try:
            return ensure_utc(datetime.strptime(raw, fmt))
        except ValueError:
            pass

    normalized = raw[:-1] + "+00:00" if raw.endswith(("Z", "z")) else raw
    try:
        return ensure_utc(datetime.fromisoformat(normalized))
    except ValueError:
        pass

    for candidate in TIMESTAMP_FORMATS:
        try:
            return ensure_utc(datetime.strptime(raw, candidate))
        except ValueError:
            continue

    try:
        numeric = float(raw)
    except ValueError:
        return None
    return _parse_epoch(numeric)


def _parse_epoch(numeric: float) -> datetime | None:
    if not math.isfinite(numeric):
        return None
    seconds = numeric / 1000 if numeric > MILLISECOND_TIMESTAMP_THRESHOLD else numeric
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def parse_number(value: Any, decimals: int | None = None) -> float:
    """
    Parse a number, returning ``0.0`` when nothing numeric can be read.

    Strings are stripped of everything except digits, ``.`` and ``-``
    (currency symbols, thousands separators, units) and the leading numeric
    portion is used.
    """

    if isinstance(value, (int, float)) and not isinstance(value, bool):
        number = float(value)
        if not math.isfinite(number):
            return 0.0
    else:
        cleaned = _NUMBER_NOISE.sub("", "" if value is None else str(value))
        match = _LEADING_NUMBER.match(cleaned)
        if match is None:
            return 0.0
        number = float(match.group(0))

    if decimals is not None:
        return round(number, decimals)
    return number


def apply_transform(value: Any, transform: FieldTransform | None) -> Any:
    """
    Apply a mapping transform to a raw value.
    """

    if transform is None or isinstance(transform, DirectTransform):
        return value
    if isinstance(transform, DateTransform):
        return parse_date(value, transform.format)
    if isinstance(transform, NumberTransform):
        return parse_number(value, transform.decimals)
    if isinstance(transform, LookupTransform):
        return transform.mapping.get(str(value), value)
    if isinstance(transform, FormulaTransform):
        return value
    raise TypeError(f"Unsupported field transform: {transform!r}")


def is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    return False
