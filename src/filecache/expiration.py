"""Expiration math for cache entries.

Only absolute expiration instants (integer seconds since the epoch, UTC)
are ever stored. A TTL is resolved against the current time once, at
write time, so changing the default TTL never affects existing entries.
"""

import math
from datetime import timedelta
from typing import Optional, Union

TTL = Union[int, float, timedelta, None]


def resolve_expiration(ttl: TTL, now: float, default_ttl: int) -> int:
    """Convert a TTL into an absolute expiration timestamp.

    Args:
        ttl: ``timedelta`` from now, a number of seconds from now, or None
            to use ``default_ttl``. Zero and negative values are allowed and
            produce an entry that is already expired.
        now: Current time in seconds since the epoch
        default_ttl: Seconds to use when ``ttl`` is None

    Returns:
        Expiration timestamp in whole seconds since the epoch

    Raises:
        TypeError: If ``ttl`` has an unsupported type

    Examples:
        >>> resolve_expiration(60, 1000, 3600)
        1060
        >>> resolve_expiration(None, 1000, 3600)
        4600
        >>> resolve_expiration(timedelta(minutes=1), 1000, 3600)
        1060
    """
    base = math.floor(now)

    if ttl is None:
        return base + int(default_ttl)

    if isinstance(ttl, timedelta):
        return base + math.floor(ttl.total_seconds())

    # bool is an int subclass but never a meaningful TTL
    if isinstance(ttl, bool) or not isinstance(ttl, (int, float)):
        raise TypeError(f"Unsupported TTL type: {type(ttl).__name__}")

    return base + math.floor(ttl)


def is_expired(expiration: int, now: float) -> bool:
    """Check whether an entry with the given expiration is no longer valid.

    An entry is valid while ``expiration > now``.
    """
    return expiration <= now


def get_ttl_remaining(expiration: int, now: float) -> int:
    """Get whole seconds left before an entry expires (0 once expired)."""
    return max(0, int(expiration - now))


def coerce_expiration(raw: object) -> Optional[int]:
    """Return a stored expiration as an int, or None if it is not one."""
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        return None
    if isinstance(raw, float) and not math.isfinite(raw):
        return None
    return int(raw)
