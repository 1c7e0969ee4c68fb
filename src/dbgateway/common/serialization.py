"""Conversion of driver-native values into portable, JSON-ready primitives."""
from __future__ import annotations

import base64
import datetime as dt
import decimal
import enum
import ipaddress
import uuid
from collections.abc import Mapping
from typing import Any, Dict, Iterable, List, Sequence

from dbgateway.common.errors import ResultNormalizationError

_IP_TYPES = (
    ipaddress.IPv4Address,
    ipaddress.IPv6Address,
    ipaddress.IPv4Network,
    ipaddress.IPv6Network,
    ipaddress.IPv4Interface,
    ipaddress.IPv6Interface,
)


def to_portable(value: Any) -> Any:
    """Coerces a single value to str, int, float, bool, None, list or dict.

    Date and time values become ISO-8601 strings, binary values become Base64
    text and decimals become ints when integral. Values with no portable form
    raise ``ResultNormalizationError`` instead of leaking driver objects.
    """
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, decimal.Decimal):
        if not value.is_finite():
            return str(value)
        if value == value.to_integral_value():
            return int(value)
        return float(value)
    # datetime is a subclass of date, both expose isoformat()
    if isinstance(value, (dt.datetime, dt.date, dt.time)):
        return value.isoformat()
    if isinstance(value, dt.timedelta):
        return value.total_seconds()
    if isinstance(value, (bytes, bytearray, memoryview)):
        return base64.b64encode(bytes(value)).decode("ascii")
    if isinstance(value, uuid.UUID) or isinstance(value, _IP_TYPES):
        return str(value)
    if isinstance(value, enum.Enum):
        return to_portable(value.value)
    if isinstance(value, Mapping):
        return {str(k): to_portable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [to_portable(v) for v in value]
    raise ResultNormalizationError(
        f"Unsupported value type '{type(value).__module__}.{type(value).__qualname__}'",
        value=value,
    )


def rows_to_dicts(columns: Sequence[str], rows: Iterable[Sequence[Any]]) -> List[Dict[str, Any]]:
    """Zips each row with the column names, normalizing every value."""
    names = [str(col) for col in columns]
    normalized = []
    for row in rows:
        record = {}
        for name, raw in zip(names, row):
            try:
                record[name] = to_portable(raw)
            except ResultNormalizationError as exc:
                raise ResultNormalizationError(f"Column '{name}': {exc}", value=raw) from exc
        normalized.append(record)
    return normalized
