"""Configuration for path discovery and result presentation."""

from dataclasses import dataclass, replace
import os

from .types import MAX_PATH_HOPS


@dataclass(frozen=True)
class DiscoveryConfig:
    """Constants controlling discovery fan-out, paging and caching."""

    discovery_timeout_sec: float = 10.0
    max_workers: int = 5
    max_path_hops: int = MAX_PATH_HOPS

    default_page_size: int = 10
    max_page_size: int = 100

    cache_ttl_sec: float = 300.0
    cache_max_entries: int = 1000

    def clamp_page(self, page: int) -> int:
        """Pages are 1-based."""
        return page if page >= 1 else 1

    def clamp_page_size(self, page_size: int | None) -> int:
        """Clamp page size to supported range."""
        if page_size is None:
            return self.default_page_size
        if page_size < 1:
            return 1
        if page_size > self.max_page_size:
            return self.max_page_size
        return page_size

    @classmethod
    def from_env(cls) -> "DiscoveryConfig":
        """Defaults overridden by PATHFINDER_* environment variables."""
        config = cls()
        timeout = os.environ.get("PATHFINDER_DISCOVERY_TIMEOUT_SEC")
        if timeout:
            config = replace(config, discovery_timeout_sec=max(0.1, float(timeout)))
        ttl = os.environ.get("PATHFINDER_CACHE_TTL_SEC")
        if ttl:
            config = replace(config, cache_ttl_sec=max(0.0, float(ttl)))
        return config


DEFAULT_DISCOVERY_CONFIG = DiscoveryConfig()
