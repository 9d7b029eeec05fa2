"""ID generation and timestamp helpers."""

import math
import secrets
from datetime import datetime
from typing import Any


def gen_id(prefix: str) -> str:
    """Generate IDs like msg_xxx, coalesced_xxx"""
    return f"{prefix}{secrets.token_urlsafe(12)}"


def extract_timestamp(value: Any) -> float | None:
    """
    Parse a turn timestamp into epoch seconds.

    Accepts numbers, numeric strings and ISO-8601 date strings. Returns None
    when the value cannot be interpreted.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else None
    if not isinstance(value, str) or not value.strip():
        return None

    text = value.strip()
    try:
        numeric = float(text)
    except ValueError:
        pass
    else:
        return numeric if math.isfinite(numeric) else None

    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text).timestamp()
    except ValueError:
        return None
