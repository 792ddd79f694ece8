# services/scheduling-service/src/apps/core/services/weather_cache_service.py
"""
Weather Cache Service

Three-tier lookup in front of the provider adapter:

1. in-process cache (bounded, short TTL)
2. shared cache (Redis, longer TTL)
3. recent weather checks in the database, served while a background
   refresh repopulates tiers 1-2

A full miss fetches live data and populates tiers 1-2.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Optional, Dict, Any, Iterable

from django.conf import settings
from django.db import DatabaseError

from shared.common.cache import SafeCache, CacheKeyBuilder
from apps.core.models import Booking, WeatherCheck
from .weather_providers import (
    WeatherProviderAdapter,
    WeatherSnapshot,
    WeatherForecast,
    get_weather_adapter,
)

logger = logging.getLogger(__name__)


class WeatherCacheService:
    """
    Cached access to current weather and forecasts.

    Cache tier failures are logged and treated as misses so a Redis or
    database outage never blocks a lookup.
    """

    def __init__(
        self,
        adapter: WeatherProviderAdapter = None,
        local_cache: SafeCache = None,
        shared_cache: SafeCache = None,
        executor: ThreadPoolExecutor = None,
    ):
        config = getattr(settings, 'WEATHER_CACHE', {})
        self.adapter = adapter or get_weather_adapter()
        self.local_cache = local_cache or SafeCache(config.get('LOCAL_ALIAS', 'weather_local'))
        self.shared_cache = shared_cache or SafeCache(config.get('SHARED_ALIAS', 'default'))
        self.local_ttl = config.get('LOCAL_TTL', 300)
        self.shared_ttl = config.get('SHARED_TTL', 900)
        self.history_max_age = config.get('HISTORY_MAX_AGE_MINUTES', 30)
        self.keys = CacheKeyBuilder(getattr(settings, 'SERVICE_NAME', 'scheduling-service'))

        self._executor = executor or ThreadPoolExecutor(
            max_workers=config.get('REFRESH_WORKERS', 4),
            thread_name_prefix='weather-refresh',
        )
        self._refreshing = set()
        self._lock = threading.Lock()
        self._stats = {
            'local_hits': 0,
            'shared_hits': 0,
            'history_hits': 0,
            'misses': 0,
            'live_fetches': 0,
            'live_failures': 0,
            'background_refreshes': 0,
        }

    # ==========================================================================
    # Current Weather
    # ==========================================================================

    def get_weather(self, airport_code: str, premium_enabled: bool = False) -> Optional[WeatherSnapshot]:
        """
        Current weather for an airport, or None when nothing is cached
        and no provider answers.
        """
        code = airport_code.upper()
        key = self.keys.weather(code)

        snapshot = self.local_cache.get(key)
        if snapshot is not None:
            self._count('local_hits')
            return snapshot

        snapshot = self.shared_cache.get(key)
        if snapshot is not None:
            self._count('shared_hits')
            self.local_cache.set(key, snapshot, self.local_ttl)
            return snapshot

        snapshot = self._from_history(code)
        if snapshot is not None:
            self._count('history_hits')
            self._schedule_refresh(code, premium_enabled)
            return snapshot

        self._count('misses')
        return self.refresh(code, premium_enabled)

    def refresh(self, airport_code: str, premium_enabled: bool = False) -> Optional[WeatherSnapshot]:
        """Fetch live weather and populate the cache tiers."""
        code = airport_code.upper()
        snapshot = self.adapter.get_current_weather(code, premium_enabled=premium_enabled)

        if snapshot is None:
            self._count('live_failures')
            return None

        self._count('live_fetches')
        key = self.keys.weather(code)
        self.local_cache.set(key, snapshot, self.local_ttl)
        self.shared_cache.set(key, snapshot, self.shared_ttl)
        return snapshot

    def _from_history(self, code: str) -> Optional[WeatherSnapshot]:
        try:
            check = WeatherCheck.latest_for_station(code, self.history_max_age)
        except DatabaseError as e:
            logger.error(f"Weather history lookup failed for {code}: {e}")
            return None

        if check is None or not check.raw_data:
            return None

        try:
            return WeatherSnapshot.from_dict(check.raw_data)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Unreadable weather history for {code} in check {check.id}: {e}")
            return None

    def _schedule_refresh(self, code: str, premium_enabled: bool):
        with self._lock:
            if code in self._refreshing:
                return
            self._refreshing.add(code)

        self._executor.submit(self._background_refresh, code, premium_enabled)

    def _background_refresh(self, code: str, premium_enabled: bool):
        try:
            self._count('background_refreshes')
            self.refresh(code, premium_enabled)
        except Exception as e:
            logger.error(f"Background weather refresh failed for {code}: {e}")
        finally:
            with self._lock:
                self._refreshing.discard(code)

    # ==========================================================================
    # Forecast
    # ==========================================================================

    def get_forecast(self, airport_code: str, premium_enabled: bool = False) -> Optional[WeatherForecast]:
        code = airport_code.upper()
        key = self.keys.forecast(code)

        forecast = self.local_cache.get(key)
        if forecast is not None:
            return forecast

        forecast = self.shared_cache.get(key)
        if forecast is not None:
            self.local_cache.set(key, forecast, self.local_ttl)
            return forecast

        forecast = self.adapter.get_forecast(code, premium_enabled=premium_enabled)
        if forecast is not None:
            self.local_cache.set(key, forecast, self.local_ttl)
            self.shared_cache.set(key, forecast, self.shared_ttl)
        return forecast

    # ==========================================================================
    # Maintenance
    # ==========================================================================

    def invalidate(self, airport_code: str):
        """Drop cached weather for an airport from tiers 1-2."""
        code = airport_code.upper()
        keys = [self.keys.weather(code), self.keys.forecast(code)]
        self.local_cache.delete_many(keys)
        self.shared_cache.delete_many(keys)
        logger.info(f"Invalidated cached weather for {code}")

    def warm(self, airport_codes: Iterable[str], premium_enabled: bool = False) -> Dict[str, bool]:
        """Fetch and cache weather for each airport."""
        results = {}
        for code in sorted({c.upper() for c in airport_codes if c}):
            results[code] = self.refresh(code, premium_enabled) is not None
        return results

    def preload_for_upcoming_flights(self, hours_ahead: int = 24) -> Dict[str, bool]:
        """Warm the cache for every airport on flights in the next ``hours_ahead`` hours."""
        premium_codes = set()
        codes = set()

        bookings = Booking.get_upcoming(hours_ahead).select_related('school')
        for booking in bookings:
            target = premium_codes if booking.school and booking.school.weather_api_enabled else codes
            target.update(booking.route_codes)

        results = self.warm(codes - premium_codes)
        results.update(self.warm(premium_codes, premium_enabled=True))

        logger.info(
            f"Preloaded weather for {sum(results.values())}/{len(results)} airports",
            extra={'hours_ahead': hours_ahead},
        )
        return results

    def _count(self, name: str):
        with self._lock:
            self._stats[name] += 1

    def get_stats(self) -> Dict[str, Any]:
        with self._lock:
            stats = dict(self._stats)
        hits = stats['local_hits'] + stats['shared_hits'] + stats['history_hits']
        lookups = hits + stats['misses']
        stats['hit_rate'] = round(hits / lookups * 100, 1) if lookups else 0.0
        stats['provider_costs'] = self.adapter.get_costs()
        return stats


_cache_service = None
_cache_service_lock = threading.Lock()


def get_weather_cache() -> WeatherCacheService:
    """Process-wide cache service; its counters and refresh pool are shared."""
    global _cache_service
    with _cache_service_lock:
        if _cache_service is None:
            _cache_service = WeatherCacheService()
        return _cache_service
