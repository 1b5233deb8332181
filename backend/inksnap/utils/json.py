from __future__ import annotations

import enum
from datetime import date, datetime
from decimal import Decimal
from typing import Any

import orjson


def _default(o: Any):
    if isinstance(o, Decimal):
        return float(o)
    if isinstance(o, (datetime, date)):
        return o.isoformat()
    if isinstance(o, enum.Enum):
        return o.value
    raise TypeError(f"Type is not JSON serializable: {type(o).__name__}")


def dumps_bytes(obj: Any) -> bytes:
    return orjson.dumps(obj, option=orjson.OPT_NON_STR_KEYS, default=_default)


def dumps(obj: Any) -> str:
    """Serialize obj to a compact JSON string (UTF-8), with datetime support."""
    return dumps_bytes(obj).decode("utf-8")


def loads(data: bytes | str) -> Any:
    return orjson.loads(data)
