"""Bounded time-to-live cache for complete connection results."""

from collections import OrderedDict
import logging
import threading
import time
from typing import Callable

from .config import DEFAULT_DISCOVERY_CONFIG, DiscoveryConfig
from .types import ConnectionResult

log = logging.getLogger(__name__)


def cache_key(source_user_id: str, target_user_id: str) -> str:
    return f"{source_user_id.strip().lower()}:{target_user_id.strip().lower()}"


class ResultCache:
    """Insertion-ordered cache; the oldest entry is evicted first when full."""

    def __init__(
        self,
        ttl_sec: float = DEFAULT_DISCOVERY_CONFIG.cache_ttl_sec,
        max_entries: int = DEFAULT_DISCOVERY_CONFIG.cache_max_entries,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_sec = ttl_sec
        self.max_entries = max(1, max_entries)
        self._clock = clock
        self._entries: OrderedDict[str, tuple[float, ConnectionResult]] = OrderedDict()
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, config: DiscoveryConfig) -> "ResultCache":
        return cls(ttl_sec=config.cache_ttl_sec, max_entries=config.cache_max_entries)

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, source_user_id: str, target_user_id: str) -> ConnectionResult | None:
        key = cache_key(source_user_id, target_user_id)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            stored_at, result = entry
            if self._clock() - stored_at > self.ttl_sec:
                del self._entries[key]
                return None
            return result

    def put(self, result: ConnectionResult) -> bool:
        """Store a complete result. Partial results are refused."""
        if result.partial:
            log.debug(
                f"Not caching partial result for "
                f"{result.source_user_id}:{result.target_user_id}"
            )
            return False

        key = cache_key(result.source_user_id, result.target_user_id)
        with self._lock:
            self._entries.pop(key, None)
            self._entries[key] = (self._clock(), result)
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)
        return True

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
