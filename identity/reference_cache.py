from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from schemas import DetectedFace

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CachedReference:
    face: DetectedFace
    loaded_at: float


class ReferenceCache:
    """
    Per-user cache of qualified reference faces.

    Entries older than ttl_sec are reported as stale and not returned by
    get(), which forces the owner to reload the reference (e.g. after a
    profile photo update). The matcher itself never sees this cache.

    Thread-safe: verifications for different users may run concurrently.
    """

    def __init__(
        self,
        ttl_sec: float = 600.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_sec = float(ttl_sec)
        self._clock = clock
        self._entries: Dict[str, CachedReference] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, user_id: str) -> bool:
        with self._lock:
            return user_id in self._entries

    def put(self, user_id: str, face: DetectedFace) -> None:
        with self._lock:
            self._entries[user_id] = CachedReference(face=face, loaded_at=self._clock())
        logger.debug("Reference cached for user=%s", user_id)

    def get(self, user_id: str) -> Optional[DetectedFace]:
        """Fresh reference for user_id, or None if missing or stale."""
        with self._lock:
            entry = self._entries.get(user_id)
            if entry is None:
                return None
            if self._is_expired(entry):
                logger.debug("Reference for user=%s is stale", user_id)
                return None
            return entry.face

    def is_stale(self, user_id: str) -> bool:
        """True when there is no entry or the entry is past its TTL."""
        with self._lock:
            entry = self._entries.get(user_id)
            return entry is None or self._is_expired(entry)

    def invalidate(self, user_id: str) -> bool:
        with self._lock:
            removed = self._entries.pop(user_id, None) is not None
        if removed:
            logger.debug("Reference invalidated for user=%s", user_id)
        return removed

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def _is_expired(self, entry: CachedReference) -> bool:
        return (self._clock() - entry.loaded_at) > self.ttl_sec
