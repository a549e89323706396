from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional, Tuple
import base64
import binascii
import math
import uuid


def to_jsonable(value: Any):
    """
    Recursively convert arbitrary Python values into JSON-serializable primitives.
    """
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Decimal):
        f = float(value)
        if math.isnan(f) or math.isinf(f):
            return None
        return f
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, (bytes, bytearray)):
        return base64.b64encode(bytes(value)).decode("ascii")
    if isinstance(value, (list, tuple, set)):
        return [to_jsonable(v) for v in value]
    if isinstance(value, dict):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            return None
    return value


def split_data_url(value: str) -> Tuple[Optional[str], Optional[bytes]]:
    """
    "data:image/jpeg;base64,/9j/..." → ("image/jpeg", b"...")
    不是 data URL 或 base64 非法时返回 (None, None)。
    """
    if not value or not isinstance(value, str):
        return None, None
    head, sep, body = value.partition(",")
    if not sep or not body:
        return None, None
    mime = None
    if head.startswith("data:"):
        mime = head[5:].split(";", 1)[0] or None
    try:
        return mime, base64.b64decode(body, validate=False)
    except (binascii.Error, ValueError):
        return None, None


def to_data_url(raw: bytes, mime: str = "image/jpeg") -> str:
    return f"data:{mime};base64," + base64.b64encode(raw).decode("ascii")
