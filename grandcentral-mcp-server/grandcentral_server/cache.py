"""Request cache with tag invalidation and generation stamping."""

import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Iterable, Optional, TypeVar

from .errors import StaleResponseError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class CacheEntry:
    data: Any
    tags: frozenset[str]
    fetched_at: float = field(default_factory=time.monotonic)
    stale: bool = False


class QueryCache:
    """
    Caches query results keyed by endpoint and arguments.

    Entries carry tags ("Cart", "Home", ...). Invalidating a tag marks every
    entry carrying it stale, so the next access refetches.

    Fetches may name a slot, a logical query such as "cart" that spans
    arguments. Each fetch in a slot takes a new generation; only a response
    for the latest generation is stored and returned.
    """

    def __init__(self) -> None:
        self._entries: dict[str, CacheEntry] = {}
        self._generations: dict[str, int] = {}

    @staticmethod
    def make_key(endpoint: str, args: Optional[dict[str, Any]] = None) -> str:
        return f"{endpoint}:{json.dumps(args or {}, sort_keys=True, default=str)}"

    def get(self, endpoint: str, args: Optional[dict[str, Any]] = None) -> Optional[CacheEntry]:
        return self._entries.get(self.make_key(endpoint, args))

    def set(
        self,
        endpoint: str,
        args: Optional[dict[str, Any]],
        data: Any,
        tags: Iterable[str] = (),
    ) -> None:
        self._entries[self.make_key(endpoint, args)] = CacheEntry(data=data, tags=frozenset(tags))

    def invalidate_tags(self, *tags: str) -> int:
        """Mark entries carrying any of ``tags`` stale. Returns how many were marked."""
        wanted = set(tags)
        count = 0
        for entry in self._entries.values():
            if not entry.stale and entry.tags & wanted:
                entry.stale = True
                count += 1
        logger.debug(f"Invalidated {count} cache entr{'y' if count == 1 else 'ies'} for tags {sorted(wanted)}")
        return count

    def clear(self) -> None:
        self._entries.clear()
        self._generations.clear()

    def issue_generation(self, slot: str) -> int:
        generation = self._generations.get(slot, 0) + 1
        self._generations[slot] = generation
        return generation

    def is_latest(self, slot: str, generation: int) -> bool:
        return self._generations.get(slot) == generation

    async def fetch(
        self,
        endpoint: str,
        args: Optional[dict[str, Any]],
        tags: Iterable[str],
        fetcher: Callable[[], Awaitable[T]],
        force: bool = False,
        slot: Optional[str] = None,
    ) -> T:
        """
        Return a fresh cached value or run ``fetcher`` and cache its result.

        Raises:
            StaleResponseError: If ``slot`` was given and a newer fetch was
                issued for it while this one was in flight
        """
        entry = self.get(endpoint, args)
        generation = self.issue_generation(slot) if slot else None

        if entry is not None and not entry.stale and not force:
            return entry.data

        data = await fetcher()

        if slot and not self.is_latest(slot, generation):
            logger.info(f"Discarding superseded response for {endpoint} {args} (slot={slot})")
            raise StaleResponseError(f"Response for {endpoint} superseded by a newer request")

        self.set(endpoint, args, data, tags)
        return data
