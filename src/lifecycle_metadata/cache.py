"""
Process-wide cache of lifecycle metadata, keyed by class.

Architecture:
- MetadataCache: bounded LRU mapping class -> LifecycleMetadata
- Single-flight loading: concurrent first requests for the same class run the
  loader once and all observe the same instance (or the same failure)
- Failed loads are not cached; the next lookup retries
- A loader that asks for its own class on the same thread gets an error
  instead of waiting on itself
- Least recently used entries are dropped silently once ``max_size`` is
  reached, callers must not rely on an instance staying cached

Usage:
    cache = MetadataCache(config=CacheConfig(max_size=1024))
    metadata = cache.get(CatalogService)
    metadata.invoke_methods(MarkerKind.POST_CONSTRUCT, service)

    # Or the shared process-wide cache
    metadata = lifecycle_metadata_for(CatalogService)
"""

import logging
import threading
from collections import OrderedDict
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple, Type

from .core import LifecycleMetadata, MetadataExtractor
from .exceptions import MetadataCacheError
from .handles import InvocationHandleCache

logger = logging.getLogger(__name__)

Loader = Callable[[Type], LifecycleMetadata]


@dataclass(frozen=True)
class CacheConfig:
    """Configuration for metadata caching behavior."""
    max_size: int = 8192  # Number of distinct classes kept
    log_extraction: bool = True  # Debug-log every extraction

    def __post_init__(self):
        if self.max_size < 1:
            raise ValueError(f"max_size must be positive, got {self.max_size}")


@dataclass
class CacheStats:
    """Counters for cache activity."""
    hits: int = 0
    misses: int = 0
    evictions: int = 0
    failures: int = 0


class MetadataCache:
    """
    Memoizes LifecycleMetadata per class.

    Args:
        loader: Computes metadata for a class; a MetadataExtractor by default
        config: Optional cache configuration
        handle_cache: Handle cache for the default extractor
    """

    def __init__(
        self,
        loader: Optional[Loader] = None,
        config: Optional[CacheConfig] = None,
        handle_cache: Optional[InvocationHandleCache] = None,
    ):
        self.config = config or CacheConfig()
        self._loader = loader if loader is not None else MetadataExtractor(handle_cache).extract
        self._entries: "OrderedDict[Type, LifecycleMetadata]" = OrderedDict()
        self._pending: Dict[Type, Tuple[Future, int]] = {}
        self._lock = threading.Lock()
        self.stats = CacheStats()

    def get(self, cls: Type) -> LifecycleMetadata:
        """
        Return metadata for ``cls``, extracting it on first use.

        Raises:
            MetadataCacheError: If the loader fails, or asks for the class it is
                                still loading on the same thread; nothing is cached
        """
        with self._lock:
            metadata = self._entries.get(cls)
            if metadata is not None:
                self._entries.move_to_end(cls)
                self.stats.hits += 1
                return metadata

            current = threading.get_ident()
            entry = self._pending.get(cls)
            owner = entry is None
            if owner:
                pending = Future()
                self._pending[cls] = (pending, current)
                self.stats.misses += 1
            else:
                pending, loading_thread = entry
                if loading_thread == current:
                    # Loader re-entered for the class it is loading
                    raise MetadataCacheError(
                        cls, f"Recursive load of lifecycle metadata for {_name(cls)}"
                    )

        if not owner:
            # Another caller is extracting; share its outcome
            return pending.result()

        try:
            metadata = self._loader(cls)
        except Exception as e:
            error = MetadataCacheError(
                cls, f"Failed to compute lifecycle metadata for {_name(cls)}: {e}"
            )
            error.__cause__ = e
            with self._lock:
                del self._pending[cls]
                self.stats.failures += 1
            pending.set_exception(error)
            raise error
        except BaseException as e:
            # Interrupted; release waiters without caching anything
            with self._lock:
                del self._pending[cls]
            pending.set_exception(e)
            raise

        with self._lock:
            self._entries[cls] = metadata
            del self._pending[cls]
            self._evict()
        pending.set_result(metadata)

        if self.config.log_extraction:
            logger.debug(f"Cached lifecycle metadata for {_name(cls)}")
        return metadata

    __call__ = get

    def _evict(self) -> None:
        while len(self._entries) > self.config.max_size:
            cls, _ = self._entries.popitem(last=False)
            self.stats.evictions += 1
            logger.debug(f"Evicted lifecycle metadata for {_name(cls)}")

    def invalidate(self, cls: Type) -> None:
        with self._lock:
            self._entries.pop(cls, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
        logger.debug("Cleared lifecycle metadata cache")

    def __contains__(self, cls: Type) -> bool:
        return cls in self._entries

    def __len__(self) -> int:
        return len(self._entries)


def _name(cls) -> str:
    return getattr(cls, '__qualname__', repr(cls))


_default_cache = None
_default_lock = threading.Lock()


def default_metadata_cache() -> MetadataCache:
    """Process-wide metadata cache backed by the default handle cache."""
    global _default_cache
    if _default_cache is None:
        with _default_lock:
            if _default_cache is None:
                _default_cache = MetadataCache()
    return _default_cache


def lifecycle_metadata_for(cls: Type) -> LifecycleMetadata:
    """Cached lifecycle metadata for ``cls`` from the process-wide cache."""
    return default_metadata_cache().get(cls)
