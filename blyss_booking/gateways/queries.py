"""
Derived queries: keyed fetches with caching, in-flight de-duplication,
and stale-result detection.

A DerivedQuery turns "input changed, refetch" into an explicit object.
Each ``select(key)`` marks ``key`` as the latest input; when the fetch
resolves, the result reports whether it still matches the latest input.
Callers apply only current results and silently drop the rest.

Usage:
    months = DerivedQuery(load_month, fallback=frozenset(), cache_results=True)
    result = await months.select((42, "2025-06"))
    if result.current:
        available = result.value
"""

import asyncio
import logging
from collections import OrderedDict
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, Hashable, Optional, TypeVar

from pydantic import ValidationError

from blyss_booking.gateways.http_client import GatewayError

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


@dataclass(frozen=True)
class QueryResult(Generic[K, V]):
    """Outcome of one ``select`` call."""
    key: K
    value: V
    current: bool
    from_cache: bool = False


class DerivedQuery(Generic[K, V]):
    """
    Fetches values by key on behalf of a single consumer.

    Args:
        loader: Coroutine function fetching the value for a key. May raise
            ``GatewayError`` or pydantic ``ValidationError``.
        fallback: Value returned (and never cached) when the loader fails.
        cache_results: Keep successful values for later selects.
        max_entries: Bound on cached keys, least recently used evicted first.
    """

    def __init__(
        self,
        loader: Callable[[K], Awaitable[V]],
        fallback: V,
        *,
        cache_results: bool = True,
        max_entries: Optional[int] = None,
        name: str = "query",
    ) -> None:
        self._loader = loader
        self._fallback = fallback
        self._cache_results = cache_results
        self._max_entries = max_entries
        self._name = name
        self._cache: OrderedDict[K, V] = OrderedDict()
        self._inflight: dict[K, asyncio.Future] = {}
        self._latest: Optional[K] = None
        self._generation = 0

    @property
    def latest_key(self) -> Optional[K]:
        return self._latest

    def is_current(self, key: K, generation: int) -> bool:
        return generation == self._generation and key == self._latest

    async def select(self, key: K) -> QueryResult[K, V]:
        """Mark ``key`` as the latest input and resolve its value."""
        self._latest = key
        generation = self._generation

        if self._cache_results and key in self._cache:
            self._cache.move_to_end(key)
            logger.debug("%s cache hit for %s", self._name, key)
            return QueryResult(key, self._cache[key], current=True, from_cache=True)

        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._fetch(key, generation))
            self._inflight[key] = task
            task.add_done_callback(lambda done, k=key: self._forget(k, done))
        else:
            logger.debug("%s joining in-flight fetch for %s", self._name, key)

        value = await asyncio.shield(task)
        current = self.is_current(key, generation)
        if not current:
            logger.debug("%s dropping stale result for %s", self._name, key)
        return QueryResult(key, value, current=current)

    def cancel(self) -> None:
        """Make every pending result stale. The network calls themselves continue."""
        self._generation += 1
        self._latest = None

    def invalidate(self) -> None:
        """Drop cached values and pending fetches, e.g. when the professional changes."""
        self.cancel()
        self._cache.clear()
        self._inflight.clear()

    async def _fetch(self, key: K, generation: int) -> V:
        try:
            value = await self._loader(key)
        except (GatewayError, ValidationError) as exc:
            logger.warning("%s fetch for %s failed, using fallback: %s", self._name, key, exc)
            return self._fallback

        if self._cache_results and generation == self._generation:
            self._cache[key] = value
            if self._max_entries is not None and len(self._cache) > self._max_entries:
                self._cache.popitem(last=False)
        return value

    def _forget(self, key: K, done: asyncio.Future) -> None:
        if self._inflight.get(key) is done:
            del self._inflight[key]
