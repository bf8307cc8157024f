import logging
import time
from collections.abc import Callable, Hashable
from typing import Any

logger = logging.getLogger(__name__)


class ViewCache:
    """In-process cache of computed views, grouped by practitioner.

    Keys are ``(kind, practitioner_id, *rest)`` tuples. Any committed
    transition that touches a practitioner's appointments must call
    ``invalidate_practitioner`` so cancel/revert/edit are reflected in the next
    availability query. Values must be immutable or treated as read-only.

    Every practitioner has a generation counter bumped on invalidation. A
    reader grabs it before querying and hands it to ``set``; if a commit
    landed in between, the stale view is not stored.
    """

    def __init__(
        self,
        ttl_seconds: float = 300,
        maxsize: int = 1024,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self.maxsize = maxsize
        self._clock = clock
        # Insertion order is expiry order: ttl is fixed and set() re-inserts
        self._entries: dict[tuple, tuple[float, Any]] = {}
        self._generations: dict[Hashable, int] = {}

    def generation(self, practitioner_id: Hashable) -> int:
        return self._generations.get(practitioner_id, 0)

    def get(self, key: tuple[Hashable, ...]) -> Any | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if expires_at <= self._clock():
            self._entries.pop(key, None)
            return None
        return value

    def set(self, key: tuple[Hashable, ...], value: Any, generation: int | None = None) -> None:
        if self.ttl_seconds <= 0 or self.maxsize <= 0:
            return
        if generation is not None and len(key) > 1 and generation != self.generation(key[1]):
            logger.debug("Skipping cache store for %s: practitioner changed during the read", key)
            return
        now = self._clock()
        self._entries.pop(key, None)
        self._purge_expired(now)
        while len(self._entries) >= self.maxsize:
            del self._entries[next(iter(self._entries))]
        self._entries[key] = (now + self.ttl_seconds, value)

    def _purge_expired(self, now: float) -> None:
        for key in list(self._entries):
            if self._entries[key][0] > now:
                break
            del self._entries[key]

    def invalidate_practitioner(self, practitioner_id: Hashable) -> int:
        self._generations[practitioner_id] = self.generation(practitioner_id) + 1
        stale = [k for k in self._entries if len(k) > 1 and k[1] == practitioner_id]
        for k in stale:
            del self._entries[k]
        if stale:
            logger.debug("Invalidated %d cached view(s) for practitioner %s", len(stale), practitioner_id)
        return len(stale)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
