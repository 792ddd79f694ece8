# services/scheduling-service/src/apps/api/views/__init__.py
"""
Scheduling API Views
"""

from .weather_views import (
    CurrentWeatherView,
    ForecastView,
    RouteCheckView,
    CacheInvalidateView,
    CacheStatsView,
    CacheWarmView,
    ProviderCostsView,
)

from .booking_views import (
    BookingViewSet,
    AvailabilityCheckView,
    WatchListView,
)

from .reschedule_views import (
    RescheduleRequestViewSet,
)


__all__ = [
    # Weather
    'CurrentWeatherView',
    'ForecastView',
    'RouteCheckView',
    'CacheInvalidateView',
    'CacheStatsView',
    'CacheWarmView',
    'ProviderCostsView',

    # Booking
    'BookingViewSet',
    'AvailabilityCheckView',
    'WatchListView',

    # Reschedule
    'RescheduleRequestViewSet',
]
