# shared/common/cache.py
"""
Fault-tolerant Cache Wrapper and Key Utilities
"""

import logging
from typing import Any, Iterable, Optional

from django.core.cache import caches

logger = logging.getLogger(__name__)


class SafeCache:
    """
    Wrapper around a Django cache alias that never raises.

    Backend errors (a Redis outage, a serialization failure) are logged
    and reported as a miss or a failed write, so callers can fall through
    to the next data source.
    """

    def __init__(self, alias: str = 'default', backend=None):
        self.alias = alias
        self._backend = backend

    @property
    def backend(self):
        if self._backend is None:
            self._backend = caches[self.alias]
        return self._backend

    def get(self, key: str) -> Optional[Any]:
        """Get value from cache"""
        try:
            return self.backend.get(key)
        except Exception as e:
            logger.error(f"Cache get error on '{self.alias}': {e}")
            return None

    def set(self, key: str, value: Any, timeout: int = None) -> bool:
        """Set value in cache with optional expiration"""
        try:
            self.backend.set(key, value, timeout=timeout)
            return True
        except Exception as e:
            logger.error(f"Cache set error on '{self.alias}': {e}")
            return False

    def add(self, key: str, value: Any, timeout: int = None) -> bool:
        """Set value only if the key is absent"""
        try:
            return bool(self.backend.add(key, value, timeout=timeout))
        except Exception as e:
            logger.error(f"Cache add error on '{self.alias}': {e}")
            return False

    def delete(self, key: str) -> bool:
        """Delete key from cache"""
        try:
            return bool(self.backend.delete(key))
        except Exception as e:
            logger.error(f"Cache delete error on '{self.alias}': {e}")
            return False

    def delete_many(self, keys: Iterable[str]) -> bool:
        try:
            self.backend.delete_many(list(keys))
            return True
        except Exception as e:
            logger.error(f"Cache delete_many error on '{self.alias}': {e}")
            return False


class CacheKeyBuilder:
    """
    Build namespaced cache keys.
    """

    def __init__(self, service_name: str):
        self.service_name = service_name

    def build(self, *parts: str) -> str:
        """Build a cache key from parts"""
        return ':'.join([self.service_name] + [str(p) for p in parts])

    def weather(self, station: str) -> str:
        return self.build('weather', station.upper())

    def forecast(self, station: str) -> str:
        return self.build('forecast', station.upper())

    def lock(self, resource: str, resource_id: str) -> str:
        return self.build('lock', resource, resource_id)
