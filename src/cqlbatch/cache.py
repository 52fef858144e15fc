"""
Unified caching for item introspection.

Accessor tables of item types are built once per type and shared by every
reader and writer of the process. Uses cachetools LRU caches.
"""
import functools
import logging
import threading

import cachetools

logger = logging.getLogger(__name__)


class Cache:
    """Unified cache manager for the cqlbatch package.

    Thread-safe singleton that manages all named caches.
    """

    _instance = None
    _caches: dict[str, cachetools.Cache] = {}
    _lock = threading.RLock()

    @classmethod
    def get_instance(cls) -> 'Cache':
        """Get singleton instance."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    def get_cache(self, name: str, maxsize: int = 128) -> cachetools.LRUCache:
        """Get or create an LRU cache with the given name.

        Args:
            name: Name of the cache
            maxsize: Maximum cache size
        """
        if name not in self._caches:
            with self._lock:
                if name not in self._caches:
                    self._caches[name] = cachetools.LRUCache(maxsize=maxsize)
        return self._caches[name]

    def clear_all(self) -> None:
        """Clear all managed caches."""
        with self._lock:
            for cache in self._caches.values():
                cache.clear()


def cached_by_type(cache_name: str, maxsize: int = 128):
    """Decorator caching a function of one type argument.

    The wrapped function is called at most once per type while the entry
    stays in the cache.

    Args:
        cache_name: Name of the cache
        maxsize: Maximum cache size
    """
    def decorator(func):
        @functools.wraps(func)
        def wrapper(cls: type):
            cache = Cache.get_instance().get_cache(cache_name, maxsize=maxsize)
            with Cache._lock:
                if cls in cache:
                    return cache[cls]
            logger.debug(f'Cache miss for {func.__name__}({cls.__qualname__})')
            result = func(cls)
            with Cache._lock:
                cache[cls] = result
            return result

        return wrapper
    return decorator


__all__ = ['Cache', 'cached_by_type']
