"""Identifier helpers."""

from __future__ import annotations

import secrets
import threading
import time

ID_RANDOM_BYTES = 8

_lock = threading.Lock()
_last_stamp = 0


def _next_stamp() -> int:
    """Return a nanosecond timestamp strictly greater than the previous one."""
    global _last_stamp
    with _lock:
        _last_stamp = max(time.time_ns(), _last_stamp + 1)
        return _last_stamp


def generate_id(prefix: str) -> str:
    """Return a prefixed identifier such as ``msg_17f3a...``.

    The leading 16 hex digits are a monotonic timestamp, so ids issued by one
    process sort in creation order even when their ``created_at`` values tie.
    """
    return f"{prefix}_{_next_stamp():016x}{secrets.token_hex(ID_RANDOM_BYTES)}"
