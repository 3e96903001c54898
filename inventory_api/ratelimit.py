"""
Per-client rate limiting for the login route.

Every app builds its own ``Limiter``, so counters and limits never leak
between two apps living in one process (tests build many).
"""
from slowapi import Limiter
from slowapi.util import get_remote_address


def create_limiter(enabled: bool = True) -> Limiter:
    """A limiter keyed by client address with its own in-memory counters."""
    return Limiter(key_func=get_remote_address, enabled=enabled)
