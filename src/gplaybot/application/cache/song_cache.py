"""Single-flight, access-expiring song cache."""

import asyncio
import logging
import time
from collections import OrderedDict
from collections.abc import Callable, Coroutine
from dataclasses import dataclass
from typing import Any

from gplaybot.domain.entities import Song
from gplaybot.domain.exceptions import NoSuchSongError

logger = logging.getLogger(__name__)

SongLoader = Callable[[str], Coroutine[Any, Any, Song]]


@dataclass
class CacheEntry:
    """Pending-or-resolved song plus its last access time."""

    future: asyncio.Future[Song]
    last_access: float

    # Expiry is after ACCESS, not after creation - a song that keeps getting
    # looked up never leaves the cache.
    def is_expired(self, now: float, ttl_seconds: float) -> bool:
        return now > self.last_access + ttl_seconds


class SongCache:
    """Maps song ids to songs, fetching each id at most once at a time.

    Concurrent get() calls for the same id await the same task. A cancelled
    caller never cancels the shared fetch (asyncio.shield), and neither does
    eviction - in-flight tasks belong to the cache, not to any single caller.
    """

    INITIAL_CAPACITY = 256  # sizing hint only, dicts grow on demand
    MAX_SIZE = 1024

    # Hey future me, there is NO lock here on purpose: every method mutates _entries without
    # awaiting in between, so the event loop can't interleave two of them. If you ever add an
    # await between the lookup and the insert in get(), you break single-flight!
    def __init__(
        self,
        loader: SongLoader,
        expire_after_minutes: int = 60,
        max_size: int = MAX_SIZE,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._loader = loader
        self._ttl_seconds = expire_after_minutes * 60
        self._max_size = max_size
        self._clock = clock
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._hits = 0
        self._misses = 0

    async def get(self, song_id: str) -> Song:
        """Get a song, fetching it on a miss.

        Raises:
            NoSuchSongError: If the fetch failed (cause chained)
        """
        entry = self._touch(song_id)
        if entry is None:
            self._misses += 1
            entry = self._start_fetch(song_id)
        else:
            self._hits += 1

        try:
            return await asyncio.shield(entry.future)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            raise NoSuchSongError(song_id) from e

    def put(self, song_id: str, song: Song) -> None:
        """Seed the cache with an already resolved song."""
        future: asyncio.Future[Song] = asyncio.get_running_loop().create_future()
        future.set_result(song)
        self._entries[song_id] = CacheEntry(future=future, last_access=self._clock())
        self._entries.move_to_end(song_id)
        self._make_room()

    def invalidate(self, song_id: str) -> bool:
        """Drop an entry. An in-flight fetch keeps running for its waiters."""
        return self._entries.pop(song_id, None) is not None

    def clear(self) -> None:
        self._entries.clear()

    def cleanup_expired(self) -> int:
        """Remove expired entries in bulk.

        Returns:
            Number of entries removed
        """
        now = self._clock()
        expired = [
            key
            for key, entry in self._entries.items()
            if entry.is_expired(now, self._ttl_seconds)
        ]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def __contains__(self, song_id: object) -> bool:
        entry = self._entries.get(song_id)  # type: ignore[arg-type]
        return entry is not None and not entry.is_expired(
            self._clock(), self._ttl_seconds
        )

    def __len__(self) -> int:
        now = self._clock()
        return sum(
            1 for entry in self._entries.values() if not entry.is_expired(now, self._ttl_seconds)
        )

    def get_stats(self) -> dict[str, Any]:
        """Get cache statistics for debugging."""
        now = self._clock()
        pending = sum(1 for entry in self._entries.values() if not entry.future.done())
        expired = sum(
            1
            for entry in self._entries.values()
            if entry.is_expired(now, self._ttl_seconds)
        )
        return {
            "total_entries": len(self._entries),
            "pending_entries": pending,
            "expired_entries": expired,
            "hits": self._hits,
            "misses": self._misses,
        }

    def _touch(self, song_id: str) -> CacheEntry | None:
        entry = self._entries.get(song_id)
        if entry is None:
            return None
        now = self._clock()
        if entry.is_expired(now, self._ttl_seconds):
            del self._entries[song_id]
            return None
        entry.last_access = now
        self._entries.move_to_end(song_id)
        return entry

    def _start_fetch(self, song_id: str) -> CacheEntry:
        task = asyncio.create_task(self._loader(song_id), name=f"song-fetch:{song_id}")
        entry = CacheEntry(future=task, last_access=self._clock())
        self._entries[song_id] = entry
        logger.debug("Adding song with id '%s' to cache.", song_id)

        def _on_done(done: asyncio.Future[Song]) -> None:
            if done.cancelled():
                failed = True
            else:
                # Retrieving the exception also silences "never retrieved" warnings.
                failed = done.exception() is not None
            if failed and self._entries.get(song_id) is entry:
                del self._entries[song_id]

        task.add_done_callback(_on_done)
        self._make_room()
        return entry

    # Inserts reap expired entries first, so LRU eviction only ever drops live ones.
    def _make_room(self) -> None:
        reaped = self.cleanup_expired()
        if reaped:
            logger.debug("Reaped %d expired songs from cache.", reaped)
        self._evict_overflow()

    def _evict_overflow(self) -> None:
        while len(self._entries) > self._max_size:
            song_id, _ = self._entries.popitem(last=False)
            logger.debug("Removing song with id '%s' from cache.", song_id)
