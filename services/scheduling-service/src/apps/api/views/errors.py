# services/scheduling-service/src/apps/api/views/errors.py
"""
Service error translation

Maps scheduling service errors onto the shared API exceptions so every
view returns the common error envelope.
"""

from shared.common.exceptions import (
    BaseAPIException,
    BookingConflictException,
    InvalidStateTransitionException,
    NotFoundException,
    ValidationException,
    WeatherDataUnavailableException,
)
from apps.core.services import (
    SchedulingServiceError,
    BookingNotFoundError,
    BookingConflictError,
    BookingValidationError,
    BookingStateError,
    RouteValidationError,
    WeatherDataUnavailableError,
    RescheduleRequestNotFoundError,
    RescheduleStateError,
)
from apps.api.serializers import RescheduleRequestSerializer


def to_api_exception(exc: SchedulingServiceError) -> BaseAPIException:
    if isinstance(exc, BookingConflictError):
        return BookingConflictException(
            detail=str(exc),
            conflicts=exc.conflicts,
            retryable=exc.retryable,
        )
    if isinstance(exc, (BookingNotFoundError, RescheduleRequestNotFoundError)):
        return NotFoundException(detail=str(exc))
    if isinstance(exc, RescheduleStateError) and exc.request is not None:
        return InvalidStateTransitionException(
            detail=str(exc),
            current_state=exc.request.status,
            resource=RescheduleRequestSerializer(exc.request).data,
        )
    if isinstance(exc, (BookingStateError, RescheduleStateError)):
        return InvalidStateTransitionException(detail=str(exc))
    if isinstance(exc, (BookingValidationError, RouteValidationError)):
        return ValidationException(errors={'detail': str(exc)}, detail=str(exc))
    if isinstance(exc, WeatherDataUnavailableError):
        return WeatherDataUnavailableException(detail=str(exc))
    return BaseAPIException(detail=str(exc))
