# services/scheduling-service/src/apps/core/services/reschedule_service.py
"""
Reschedule Orchestrator

Cancels a booking for weather, prepares replacement options and drives
the reschedule request through student and instructor confirmation.
"""

import uuid
import logging
from datetime import timedelta
from typing import Optional, List

from django.conf import settings
from django.db import transaction, IntegrityError
from django.utils import timezone
from django.utils.dateparse import parse_datetime

from apps.core import events
from apps.core.models import Booking, RescheduleRequest, WeatherCheck

from .booking_service import BookingService
from .forecast_service import ForecastConfidence, AUTO_RESCHEDULE, HIGH
from .notification_service import NotificationService
from .safety import UNSAFE
from .weather_providers import UNLIMITED_CEILING
from .suggestion_service import (
    AISuggestionGenerator,
    RuleBasedSuggestionGenerator,
    SuggestionContext,
    SuggestionResult,
)

logger = logging.getLogger(__name__)

DEFAULT_CANCELLATION_REASON = 'Weather below minimums'


class RescheduleOrchestrator:
    """
    Reschedule request state machine.

    pending_student -> pending_instructor -> accepted, with rejected and
    expired reachable from either pending state. Terminal states are
    never left; a booking has at most one pending request.
    """

    def __init__(
        self,
        booking_service: BookingService = None,
        notification_service: NotificationService = None,
        ai_generator: AISuggestionGenerator = None,
        fallback_generator: RuleBasedSuggestionGenerator = None,
        weather_cache=None,
        expiration_hours: int = None,
    ):
        self.booking_service = booking_service or BookingService()
        self.notification_service = notification_service or NotificationService()
        self.ai_generator = ai_generator or AISuggestionGenerator()
        self.fallback_generator = fallback_generator or RuleBasedSuggestionGenerator()
        # Only used to annotate suggestions with a forecast
        self.weather_cache = weather_cache
        self.expiration_hours = (
            expiration_hours
            if expiration_hours is not None
            else getattr(settings, 'RESCHEDULE_EXPIRATION_HOURS', 48)
        )

    # ==========================================================================
    # Decision
    # ==========================================================================

    def should_reschedule(self, verdict, forecast: Optional[ForecastConfidence] = None) -> bool:
        """UNSAFE weather, or a high-confidence forecast recommending action now."""
        result = getattr(verdict, 'result', verdict)
        if result == UNSAFE:
            return True
        if forecast is not None:
            return forecast.tier == HIGH and forecast.recommendation == AUTO_RESCHEDULE
        return False

    # ==========================================================================
    # Cancellation
    # ==========================================================================

    def handle_weather_cancellation(
        self,
        booking: Booking,
        weather_check: WeatherCheck = None,
        forecast: Optional[ForecastConfidence] = None,
        reasons: List[str] = None,
    ) -> Optional[RescheduleRequest]:
        """
        Cancel the booking for weather and open a reschedule request.

        Returns the active request, which is the existing one when the
        booking already has a pending request, or None when a request
        could not be created (a failure notification is sent instead).
        """
        from . import BookingStateError, DuplicateRescheduleRequestError

        reasons = list(reasons or (weather_check.reasons if weather_check else []))
        reason_text = '; '.join(reasons) or DEFAULT_CANCELLATION_REASON

        existing = RescheduleRequest.get_active_for_booking(booking.id)
        if existing is not None:
            logger.info(f"Booking {booking.booking_number} already has active request {existing.id}")
            return existing

        with transaction.atomic():
            locked = Booking.objects.select_for_update().get(id=booking.id)
            if locked.is_active:
                locked.cancel_for_weather(reason_text)
                cancelled_now = True
            elif locked.status == Booking.Status.WEATHER_CANCELLED:
                cancelled_now = False
            else:
                raise BookingStateError(
                    f"Cannot reschedule booking {locked.booking_number} in {locked.status} status"
                )

        booking = self.booking_service.get_booking(locked.id)
        if cancelled_now:
            logger.info(
                f"Cancelled booking {booking.booking_number} for weather",
                extra={'booking_id': str(booking.id), 'reasons': reasons},
            )
            events.publish_booking_weather_cancelled(booking, reasons)

        try:
            result = self._generate_suggestions(booking, reasons)
            reschedule_request = self._create_request(booking, weather_check, result)
        except DuplicateRescheduleRequestError as e:
            return e.existing
        except Exception as e:
            logger.error(
                f"Failed to create reschedule request for {booking.booking_number}: {e}",
                extra={'booking_id': str(booking.id)},
            )
            self.notification_service.notify_reschedule_failed(booking, str(e))
            return None

        self.notification_service.notify_weather_conflict(
            booking,
            reschedule_request,
            reasons,
            forecast=forecast.to_dict() if forecast else None,
        )
        events.publish_reschedule_created(reschedule_request)

        return reschedule_request

    def _generate_suggestions(self, booking: Booking, reasons: List[str]) -> SuggestionResult:
        from . import SuggestionGenerationError

        context = SuggestionContext.from_booking(booking, reasons)
        try:
            result = self.ai_generator.generate(context)
        except SuggestionGenerationError as e:
            logger.warning(f"AI suggestions unavailable for {booking.booking_number}, using rules: {e}")
            result = self.fallback_generator.generate(context)

        if self.weather_cache is not None:
            self._annotate_forecast(booking.departure_airport, result.suggestions)

        return result

    def _annotate_forecast(self, airport_code: str, suggestions: List[dict]):
        try:
            forecast = self.weather_cache.get_forecast(airport_code)
        except Exception as e:
            logger.warning(f"Forecast lookup for suggestions failed at {airport_code}: {e}")
            return
        if forecast is None:
            return

        for suggestion in suggestions:
            slot = parse_datetime(suggestion['slot'])
            period = forecast.period_at(slot) if slot else None
            if period is None:
                continue
            ceiling = 'unlimited' if period.ceiling >= UNLIMITED_CEILING else f"{period.ceiling} ft"
            suggestion['weather_forecast'] = (
                f"Visibility {period.visibility} SM, Ceiling {ceiling}, Winds {period.wind_speed} kt"
            )

    def _create_request(
        self,
        booking: Booking,
        weather_check: Optional[WeatherCheck],
        result: SuggestionResult,
    ) -> RescheduleRequest:
        from . import DuplicateRescheduleRequestError

        try:
            with transaction.atomic():
                reschedule_request = RescheduleRequest.objects.create(
                    booking=booking,
                    student=booking.student,
                    weather_check=weather_check,
                    suggestions=result.suggestions,
                    generator=result.generator,
                    priority_factors=result.priority_factors,
                    expires_at=timezone.now() + timedelta(hours=self.expiration_hours),
                )
        except IntegrityError:
            existing = RescheduleRequest.get_active_for_booking(booking.id)
            if existing is None:
                raise
            raise DuplicateRescheduleRequestError(existing)

        logger.info(
            f"Created reschedule request {reschedule_request.id} for {booking.booking_number} "
            f"({result.generator}, {len(result.suggestions)} options)"
        )
        return reschedule_request

    # ==========================================================================
    # Request Workflow
    # ==========================================================================

    def get_request(self, request_id: uuid.UUID) -> RescheduleRequest:
        from . import RescheduleRequestNotFoundError

        try:
            return RescheduleRequest.objects.select_related('booking', 'student').get(id=request_id)
        except RescheduleRequest.DoesNotExist:
            raise RescheduleRequestNotFoundError(f"Reschedule request {request_id} not found")

    def select_option(self, request_id: uuid.UUID, option_index: int) -> RescheduleRequest:
        """Student picks a suggestion; the request waits for the instructor."""
        from . import BookingValidationError

        with transaction.atomic():
            reschedule_request = self._lock(request_id)
            expired = self._expire_if_overdue(reschedule_request)
            if not expired:
                self._require_status(reschedule_request, RescheduleRequest.Status.PENDING_STUDENT)

                if not 0 <= option_index < len(reschedule_request.suggestions):
                    raise BookingValidationError(f"Invalid option index: {option_index}")

                reschedule_request.selected_option = option_index
                reschedule_request.student_confirmed_at = timezone.now()
                reschedule_request.status = RescheduleRequest.Status.PENDING_INSTRUCTOR
                reschedule_request.save(update_fields=[
                    'selected_option', 'student_confirmed_at', 'status', 'updated_at',
                ])

        if expired:
            self._raise_expired(reschedule_request)

        logger.info(f"Student selected option {option_index} on request {reschedule_request.id}")
        return reschedule_request

    def confirm(self, request_id: uuid.UUID) -> RescheduleRequest:
        """
        Instructor confirmation: creates the replacement booking.

        Confirming an accepted request returns it unchanged.
        """
        with transaction.atomic():
            reschedule_request = self._lock(request_id)

            if reschedule_request.status == RescheduleRequest.Status.ACCEPTED:
                return reschedule_request

            expired = self._expire_if_overdue(reschedule_request)
            if not expired:
                self._require_status(reschedule_request, RescheduleRequest.Status.PENDING_INSTRUCTOR)
                self._accept(reschedule_request)

        if expired:
            self._raise_expired(reschedule_request)

        logger.info(
            f"Reschedule request {reschedule_request.id} accepted; "
            f"new booking {reschedule_request.new_booking.booking_number}"
        )
        self.notification_service.notify_reschedule_confirmed(reschedule_request)
        events.publish_reschedule_accepted(reschedule_request)

        return reschedule_request

    def _accept(self, reschedule_request: RescheduleRequest):
        from . import BookingValidationError

        suggestion = reschedule_request.selected_suggestion
        if suggestion is None:
            raise BookingValidationError('No option selected')

        original = Booking.objects.select_for_update().get(id=reschedule_request.booking_id)
        start = parse_datetime(suggestion['slot'])
        end = (
            parse_datetime(suggestion['end']) if suggestion.get('end')
            else start + (original.scheduled_end - original.scheduled_start)
        )

        # Raises BookingConflictError when the slot was taken meanwhile
        new_booking = self.booking_service.create_booking(
            student_id=original.student_id,
            aircraft_id=suggestion.get('aircraft_id') or original.aircraft_id,
            scheduled_start=start,
            scheduled_end=end,
            departure_airport=original.departure_airport,
            instructor_id=suggestion.get('instructor_id') or original.instructor_id,
            flight_type=original.flight_type,
            status=Booking.Status.CONFIRMED,
            school=original.school,
            destination_airport=original.destination_airport,
            route=original.route,
            rescheduled_from=original,
        )

        original.mark_rescheduled()

        reschedule_request.status = RescheduleRequest.Status.ACCEPTED
        reschedule_request.instructor_confirmed_at = timezone.now()
        reschedule_request.new_booking = new_booking
        reschedule_request.save(update_fields=[
            'status', 'instructor_confirmed_at', 'new_booking', 'updated_at',
        ])

    def reject(self, request_id: uuid.UUID, rejected_by: str, reason: str = '') -> RescheduleRequest:
        """Either party declines every option."""
        with transaction.atomic():
            reschedule_request = self._lock(request_id)
            self._require_status(reschedule_request, *RescheduleRequest.PENDING_STATUSES)

            reschedule_request.status = RescheduleRequest.Status.REJECTED
            reschedule_request.rejected_by = rejected_by
            reschedule_request.rejection_reason = reason
            reschedule_request.save(update_fields=[
                'status', 'rejected_by', 'rejection_reason', 'updated_at',
            ])

        logger.info(f"Reschedule request {reschedule_request.id} rejected by {rejected_by}")
        events.publish_reschedule_rejected(reschedule_request)
        return reschedule_request

    # ==========================================================================
    # Expiration
    # ==========================================================================

    def expire_overdue(self, now=None) -> int:
        """Expire every pending request past its deadline. Safe to re-run."""
        now = now or timezone.now()
        expired = []

        for request_id in RescheduleRequest.get_overdue(now).values_list('id', flat=True):
            with transaction.atomic():
                reschedule_request = self._lock(request_id)
                if self._expire_if_overdue(reschedule_request, now=now):
                    expired.append(reschedule_request)

        for reschedule_request in expired:
            self._after_expired(reschedule_request)

        if expired:
            logger.info(f"Expired {len(expired)} reschedule request(s)")
        return len(expired)

    def _expire_if_overdue(self, reschedule_request: RescheduleRequest, now=None) -> bool:
        now = now or timezone.now()
        if not reschedule_request.is_expired(now):
            return False

        reschedule_request.status = RescheduleRequest.Status.EXPIRED
        reschedule_request.expired_at = now
        reschedule_request.save(update_fields=['status', 'expired_at', 'updated_at'])
        return True

    def _after_expired(self, reschedule_request: RescheduleRequest):
        self.notification_service.notify_reschedule_expired(reschedule_request)
        events.publish_reschedule_expired(reschedule_request)

    def _raise_expired(self, reschedule_request: RescheduleRequest):
        from . import RescheduleStateError

        self._after_expired(reschedule_request)
        raise RescheduleStateError(
            f"Reschedule request {reschedule_request.id} has expired",
            request=reschedule_request,
        )

    # ==========================================================================
    # Queries
    # ==========================================================================

    def is_pending(self, request_id: uuid.UUID) -> bool:
        return self.get_request(request_id).is_pending

    def get_active_request(self, booking_id: uuid.UUID) -> Optional[RescheduleRequest]:
        return RescheduleRequest.get_active_for_booking(booking_id)

    # ==========================================================================
    # Helpers
    # ==========================================================================

    def _lock(self, request_id: uuid.UUID) -> RescheduleRequest:
        from . import RescheduleRequestNotFoundError

        try:
            return RescheduleRequest.objects.select_for_update().get(id=request_id)
        except RescheduleRequest.DoesNotExist:
            raise RescheduleRequestNotFoundError(f"Reschedule request {request_id} not found")

    def _require_status(self, reschedule_request: RescheduleRequest, *statuses):
        from . import RescheduleStateError

        if reschedule_request.status not in statuses:
            raise RescheduleStateError(
                f"Reschedule request {reschedule_request.id} is {reschedule_request.status}, "
                f"expected {' or '.join(str(s) for s in statuses)}",
                request=reschedule_request,
            )
