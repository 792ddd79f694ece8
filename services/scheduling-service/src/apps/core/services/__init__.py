# services/scheduling-service/src/apps/core/services/__init__.py
"""
Scheduling Service Business Logic
"""


# Custom Exceptions
class SchedulingServiceError(Exception):
    """Base exception for scheduling service errors."""
    pass


class BookingNotFoundError(SchedulingServiceError):
    """Booking not found."""
    pass


class BookingConflictError(SchedulingServiceError):
    """Booking overlaps a reservation of the same aircraft, instructor or student."""

    retryable = True

    def __init__(self, message: str, conflicts: list = None, retryable: bool = True):
        super().__init__(message)
        self.conflicts = conflicts or []
        self.retryable = retryable


class BookingValidationError(SchedulingServiceError):
    """Booking validation failed."""
    pass


class BookingStateError(SchedulingServiceError):
    """Invalid booking state transition."""
    pass


class RouteValidationError(SchedulingServiceError):
    """Route does not contain enough valid airport codes."""
    pass


class WeatherDataUnavailableError(SchedulingServiceError):
    """No provider returned weather for the station."""
    pass


class SuggestionGenerationError(SchedulingServiceError):
    """Suggestion generator failed or is not configured."""
    pass


class RescheduleRequestNotFoundError(SchedulingServiceError):
    """Reschedule request not found."""
    pass


class RescheduleStateError(SchedulingServiceError):
    """Invalid reschedule request state transition."""

    def __init__(self, message: str, request=None):
        super().__init__(message)
        self.request = request


class DuplicateRescheduleRequestError(SchedulingServiceError):
    """Booking already has an active reschedule request."""

    def __init__(self, existing):
        super().__init__(f"Booking {existing.booking_id} already has active request {existing.id}")
        self.existing = existing


from .minimums import MinimumsPolicy, Minimums, AircraftCapability  # noqa: E402
from .weather_providers import WeatherProviderAdapter, WeatherSnapshot, get_weather_adapter  # noqa: E402
from .weather_cache_service import WeatherCacheService, get_weather_cache  # noqa: E402
from .safety import SafetyVerdict, SafetyMargins, classify  # noqa: E402
from .route_service import RouteWeatherService, parse_route  # noqa: E402
from .forecast_service import ForecastConfidenceService  # noqa: E402
from .availability_service import AvailabilityService  # noqa: E402
from .booking_service import BookingService  # noqa: E402
from .notification_service import NotificationService  # noqa: E402
from .suggestion_service import AISuggestionGenerator, RuleBasedSuggestionGenerator  # noqa: E402
from .reschedule_service import RescheduleOrchestrator  # noqa: E402
from .weather_check_service import WeatherCheckService  # noqa: E402


__all__ = [
    # Services
    'MinimumsPolicy',
    'Minimums',
    'AircraftCapability',
    'WeatherProviderAdapter',
    'WeatherSnapshot',
    'get_weather_adapter',
    'WeatherCacheService',
    'get_weather_cache',
    'SafetyVerdict',
    'SafetyMargins',
    'classify',
    'RouteWeatherService',
    'parse_route',
    'ForecastConfidenceService',
    'AvailabilityService',
    'BookingService',
    'NotificationService',
    'AISuggestionGenerator',
    'RuleBasedSuggestionGenerator',
    'RescheduleOrchestrator',
    'WeatherCheckService',

    # Exceptions
    'SchedulingServiceError',
    'BookingNotFoundError',
    'BookingConflictError',
    'BookingValidationError',
    'BookingStateError',
    'RouteValidationError',
    'WeatherDataUnavailableError',
    'SuggestionGenerationError',
    'RescheduleRequestNotFoundError',
    'RescheduleStateError',
    'DuplicateRescheduleRequestError',
]
