"""Time sources injected into the auth components."""

import asyncio
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime


Clock = Callable[[], datetime]
Sleeper = Callable[[float], Awaitable[None]]


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(UTC)


default_sleep: Sleeper = asyncio.sleep
