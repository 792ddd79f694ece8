# services/scheduling-service/src/tests/unit/test_weather_cache.py
"""
Unit Tests for the Weather Cache Service
"""

from datetime import timedelta
from unittest.mock import MagicMock

import pytest
from django.utils import timezone

from shared.common.cache import SafeCache
from apps.core.models import Booking
from apps.core.services.weather_cache_service import WeatherCacheService
from apps.core.services.weather_providers import WeatherForecast
from tests.helpers import make_snapshot


@pytest.fixture
def adapter():
    adapter = MagicMock()
    adapter.get_current_weather.return_value = make_snapshot(station='KAUS')
    adapter.get_forecast.return_value = None
    adapter.get_costs.return_value = {'providers': {}, 'total_calls': 0, 'total_cost': 0}
    return adapter


@pytest.fixture
def executor():
    return MagicMock()


@pytest.fixture
def cache_service(adapter, executor):
    return WeatherCacheService(
        adapter=adapter,
        local_cache=SafeCache('weather_local'),
        shared_cache=SafeCache('default'),
        executor=executor,
    )


@pytest.mark.django_db
class TestWeatherCacheService:
    """Tests for WeatherCacheService."""

    def test_miss_fetches_and_populates_both_tiers(self, cache_service, adapter):
        snapshot = cache_service.get_weather('kaus')

        assert snapshot.station == 'KAUS'
        adapter.get_current_weather.assert_called_once_with('KAUS', premium_enabled=False)
        key = cache_service.keys.weather('KAUS')
        assert cache_service.local_cache.get(key) == snapshot
        assert cache_service.shared_cache.get(key) == snapshot

        stats = cache_service.get_stats()
        assert stats['misses'] == 1
        assert stats['live_fetches'] == 1

    def test_second_lookup_hits_local_tier(self, cache_service, adapter):
        cache_service.get_weather('KAUS')
        cache_service.get_weather('KAUS')

        assert adapter.get_current_weather.call_count == 1
        assert cache_service.get_stats()['local_hits'] == 1
        assert cache_service.get_stats()['hit_rate'] == 50.0

    def test_shared_tier_backfills_local(self, cache_service, adapter):
        key = cache_service.keys.weather('KAUS')
        cache_service.shared_cache.set(key, make_snapshot(source='WEATHERAPI'), 60)

        snapshot = cache_service.get_weather('KAUS')

        assert snapshot.source == 'WEATHERAPI'
        assert cache_service.local_cache.get(key) == snapshot
        adapter.get_current_weather.assert_not_called()
        assert cache_service.get_stats()['shared_hits'] == 1

    def test_history_tier_serves_recent_check_and_refreshes(
        self, cache_service, adapter, executor, booking, create_weather_check
    ):
        create_weather_check(
            booking,
            raw_data=make_snapshot(station='KAUS', visibility=4).to_dict(),
            checked_at=timezone.now() - timedelta(minutes=10),
        )

        snapshot = cache_service.get_weather('KAUS')

        assert snapshot.visibility == 4
        adapter.get_current_weather.assert_not_called()
        executor.submit.assert_called_once()
        assert cache_service.get_stats()['history_hits'] == 1

    def test_stale_history_is_a_miss(self, cache_service, adapter, booking, create_weather_check):
        create_weather_check(
            booking,
            raw_data=make_snapshot(station='KAUS', visibility=4).to_dict(),
            checked_at=timezone.now() - timedelta(hours=2),
        )

        snapshot = cache_service.get_weather('KAUS')

        assert snapshot.visibility == 10
        adapter.get_current_weather.assert_called_once()

    def test_background_refresh_not_scheduled_twice(self, cache_service, executor):
        cache_service._schedule_refresh('KAUS', False)
        cache_service._schedule_refresh('KAUS', False)

        assert executor.submit.call_count == 1

    def test_background_refresh_clears_marker(self, cache_service, adapter):
        cache_service._refreshing.add('KAUS')
        cache_service._background_refresh('KAUS', False)

        assert 'KAUS' not in cache_service._refreshing
        assert cache_service.get_stats()['background_refreshes'] == 1

    def test_unavailable_returns_none(self, cache_service, adapter):
        adapter.get_current_weather.return_value = None

        assert cache_service.get_weather('KAUS') is None
        assert cache_service.get_stats()['live_failures'] == 1

    def test_tier_error_is_a_miss(self, adapter, executor):
        broken = MagicMock()
        broken.get.side_effect = ConnectionError('redis down')
        service = WeatherCacheService(
            adapter=adapter,
            local_cache=SafeCache('weather_local'),
            shared_cache=SafeCache('broken', backend=broken),
            executor=executor,
        )

        snapshot = service.get_weather('KAUS')

        assert snapshot is not None
        adapter.get_current_weather.assert_called_once()

    def test_invalidate(self, cache_service, adapter):
        cache_service.get_weather('KAUS')
        cache_service.invalidate('kaus')
        cache_service.get_weather('KAUS')

        assert adapter.get_current_weather.call_count == 2

    def test_warm(self, cache_service, adapter):
        adapter.get_current_weather.side_effect = (
            lambda code, premium_enabled=False: None if code == 'KXXX' else make_snapshot(station=code)
        )

        results = cache_service.warm(['kaus', 'KSAT', 'KXXX', 'KAUS'])

        assert results == {'KAUS': True, 'KSAT': True, 'KXXX': False}

    def test_preload_for_upcoming_flights(self, cache_service, adapter, create_booking, school):
        create_booking(destination_airport='KSAT')
        now = timezone.now()
        create_booking(
            departure_airport='KHYI',
            scheduled_start=now + timedelta(days=3),
            scheduled_end=now + timedelta(days=3, hours=1),
        )
        create_booking(departure_airport='KGTU', status=Booking.Status.WEATHER_CANCELLED)

        results = cache_service.preload_for_upcoming_flights(hours_ahead=24)

        assert set(results) == {'KAUS', 'KSAT'}

    def test_forecast_cached(self, cache_service, adapter):
        forecast = WeatherForecast(station='KAUS', source='FAA')
        adapter.get_forecast.return_value = forecast

        assert cache_service.get_forecast('KAUS') == forecast
        assert cache_service.get_forecast('kaus') == forecast
        assert adapter.get_forecast.call_count == 1

    def test_stats_include_provider_costs(self, cache_service):
        assert cache_service.get_stats()['provider_costs'] == {
            'providers': {}, 'total_calls': 0, 'total_cost': 0,
        }
