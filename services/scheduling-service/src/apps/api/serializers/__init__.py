# services/scheduling-service/src/apps/api/serializers/__init__.py
"""
Scheduling API Serializers
"""

from .weather_serializers import (
    RouteCheckSerializer,
    CacheWarmSerializer,
    WeatherCheckSerializer,
    validate_airport_code,
)

from .booking_serializers import (
    BookingSerializer,
    AvailabilityCheckSerializer,
    WatchListQuerySerializer,
)

from .reschedule_serializers import (
    RescheduleRequestSerializer,
    RescheduleStatusSerializer,
    SelectOptionSerializer,
    RejectRescheduleSerializer,
)


__all__ = [
    # Weather
    'RouteCheckSerializer',
    'CacheWarmSerializer',
    'WeatherCheckSerializer',
    'validate_airport_code',

    # Booking
    'BookingSerializer',
    'AvailabilityCheckSerializer',
    'WatchListQuerySerializer',

    # Reschedule
    'RescheduleRequestSerializer',
    'RescheduleStatusSerializer',
    'SelectOptionSerializer',
    'RejectRescheduleSerializer',
]
