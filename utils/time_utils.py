"""
utils/time_utils.py

Purpose: Time and expiry helpers

- ISO-8601 timestamps in the same shape Unipile emits
- Token expiry calculations
"""

import time
from datetime import datetime, timedelta
from typing import Optional


def to_iso(dt: datetime) -> str:
    """
    Formats a naive UTC datetime as ``YYYY-MM-DDTHH:MM:SS.mmmZ``.
    Strings in this shape sort chronologically.
    """
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


def utc_now_iso() -> str:
    return to_iso(datetime.utcnow())


def iso_after(seconds: Optional[float] = None, hours: Optional[float] = None) -> str:
    """
    Returns the ISO timestamp `seconds`/`hours` from now.
    """
    delta = timedelta(seconds=seconds or 0, hours=hours or 0)
    return to_iso(datetime.utcnow() + delta)


def epoch_ms() -> int:
    return int(time.time() * 1000)


def is_expired(expires_at: Optional[str]) -> bool:
    """
    Checks an ISO expiry timestamp against the current time.
    Missing or unparseable values count as expired.
    """
    if not expires_at:
        return True
    try:
        expiry = datetime.strptime(expires_at[:19], "%Y-%m-%dT%H:%M:%S")
    except ValueError:
        return True
    return datetime.utcnow() > expiry
