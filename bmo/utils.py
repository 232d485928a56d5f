"""
Small helpers shared across BMO modules.
"""
import random
import string
from datetime import datetime, timezone
from typing import Optional
from urllib.parse import urlparse

_ID_ALPHABET = string.digits + string.ascii_lowercase


def now_ms() -> int:
    """Current time as integer milliseconds since the epoch."""
    return int(datetime.now(timezone.utc).timestamp() * 1000)


def ms_to_datetime(timestamp: int) -> datetime:
    """Convert epoch milliseconds to an aware UTC datetime."""
    return datetime.fromtimestamp(timestamp / 1000, tz=timezone.utc)


def iso_timestamp(timestamp: Optional[int] = None) -> str:
    """
    Format epoch milliseconds as an ISO-8601 UTC string with millisecond precision.

    Example: 2025-07-27T10:15:00.123Z
    """
    if timestamp is None:
        timestamp = now_ms()
    dt = ms_to_datetime(timestamp)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


def random_suffix(length: int = 9) -> str:
    """Random base36 string."""
    return "".join(random.choice(_ID_ALPHABET) for _ in range(length))


def generate_category_id(timestamp: Optional[int] = None) -> str:
    """
    Generate an id for a user-created category.

    The id combines a millisecond timestamp with a random suffix so that
    categories created within the same millisecond still get distinct ids.
    """
    if timestamp is None:
        timestamp = now_ms()
    return f"user-{timestamp}-{random_suffix()}"


def is_valid_url(url: str) -> bool:
    """Check that the URL is absolute (has a scheme and a host or path)."""
    if not url:
        return False
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return bool(parsed.scheme) and bool(parsed.netloc or parsed.path)
