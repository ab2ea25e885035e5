"""Small helpers shared across the AgileStack core."""

import random
from datetime import datetime, timezone


def now_iso() -> str:
    """Current UTC time as an ISO 8601 string."""
    return datetime.now(timezone.utc).isoformat()


def jittered_backoff(attempt: int, base_delay: float, max_delay: float) -> float:
    """Exponential backoff delay with full jitter.

    Args:
        attempt: Zero-based attempt number
        base_delay: Delay for the first retry in seconds
        max_delay: Upper bound for the delay in seconds

    Returns:
        Delay in seconds, between 0 and min(max_delay, base_delay * 2**attempt)
    """
    ceiling = min(max_delay, base_delay * (2 ** attempt))
    return random.uniform(0, ceiling)


def parse_bool(value) -> bool:
    """Interpret common truthy strings ("1", "true", "yes", "on")."""
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def split_csv(value) -> list:
    """Split a comma separated string into trimmed, non-empty items."""
    if not value:
        return []
    if isinstance(value, (list, tuple, set)):
        return [str(v).strip() for v in value if str(v).strip()]
    return [item.strip() for item in str(value).split(",") if item.strip()]
