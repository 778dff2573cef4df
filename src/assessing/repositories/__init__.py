"""Repository layer for the assessing engine.

Provides protocol interfaces and a resolve() helper that transparently
handles both sync (in-memory) and async (SQL) store returns.
"""

from __future__ import annotations

import inspect
from typing import Awaitable, TypeVar

T = TypeVar("T")


async def resolve(value: T | Awaitable[T]) -> T:
    """Await a value if it is awaitable, otherwise return it directly.

    This allows services to call store methods uniformly:
        zones = await resolve(reader.list_zones(municipality_id))

    In-memory stores return plain values; SQL repositories return coroutines.
    """
    if inspect.isawaitable(value):
        return await value  # type: ignore[return-value]
    return value  # type: ignore[return-value]
