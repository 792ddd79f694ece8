# services/scheduling-service/src/tests/unit/test_reschedule_service.py
"""
Unit Tests for the Reschedule Orchestrator
"""

import threading
import uuid
from datetime import timedelta
from unittest.mock import MagicMock

import pytest
from django.utils import timezone

from apps.core.models import Booking, RescheduleRequest
from apps.core.services import (
    BookingConflictError,
    BookingStateError,
    BookingValidationError,
    RescheduleOrchestrator,
    RescheduleRequestNotFoundError,
    RescheduleStateError,
    SuggestionGenerationError,
)
from apps.core.services.availability_service import AvailabilityService
from apps.core.services.booking_service import BookingService
from apps.core.services.forecast_service import ForecastConfidence
from apps.core.services.notification_service import NotificationService
from apps.core.services.safety import MARGINAL, SAFE, UNSAFE, SafetyVerdict
from apps.core.services.suggestion_service import (
    AISuggestionGenerator,
    RuleBasedSuggestionGenerator,
    SuggestionResult,
)
from apps.core.services.weather_providers import ForecastPeriod, WeatherForecast
from tests.helpers import StubWeatherCache, run_concurrently

REASONS = ['Visibility 2SM below minimum 5SM']


def forecast(tier, recommendation):
    return ForecastConfidence(confidence=95, tier=tier, trend='STABLE', recommendation=recommendation)


@pytest.fixture
def notification_service():
    return MagicMock(spec=NotificationService)


@pytest.fixture
def unavailable_ai():
    generator = MagicMock(spec=AISuggestionGenerator)
    generator.generate.side_effect = SuggestionGenerationError('AI suggestions are not configured')
    return generator


@pytest.fixture
def orchestrator(notification_service, unavailable_ai):
    availability = AvailabilityService(buffer_minutes=30)
    return RescheduleOrchestrator(
        booking_service=BookingService(availability),
        notification_service=notification_service,
        ai_generator=unavailable_ai,
        fallback_generator=RuleBasedSuggestionGenerator(availability),
        expiration_hours=48,
    )


class TestShouldReschedule:
    """Tests for the reschedule decision."""

    def setup_method(self):
        self.orchestrator = RescheduleOrchestrator(
            booking_service=MagicMock(),
            notification_service=MagicMock(),
            ai_generator=MagicMock(),
            fallback_generator=MagicMock(),
        )

    def test_unsafe_always_reschedules(self):
        assert self.orchestrator.should_reschedule(SafetyVerdict(UNSAFE, 95, REASONS)) is True
        assert self.orchestrator.should_reschedule(UNSAFE, forecast('LOW', 'MONITOR')) is True

    def test_high_confidence_auto_reschedule(self):
        verdict = SafetyVerdict(MARGINAL, 95, REASONS)

        assert self.orchestrator.should_reschedule(verdict, forecast('HIGH', 'AUTO_RESCHEDULE')) is True
        assert self.orchestrator.should_reschedule(verdict, forecast('MEDIUM', 'ALERT')) is False
        assert self.orchestrator.should_reschedule(verdict) is False

    def test_safe_without_forecast(self):
        assert self.orchestrator.should_reschedule(SafetyVerdict(SAFE, 95, [])) is False


@pytest.mark.django_db
class TestHandleWeatherCancellation:
    """Tests for cancelling a booking and opening a reschedule request."""

    def test_cancels_and_creates_request(self, orchestrator, notification_service, booking, create_weather_check):
        check = create_weather_check(booking, result=UNSAFE, reasons=REASONS)

        reschedule_request = orchestrator.handle_weather_cancellation(
            booking, weather_check=check, forecast=forecast('HIGH', 'AUTO_RESCHEDULE'),
        )

        booking.refresh_from_db()
        assert booking.status == Booking.Status.WEATHER_CANCELLED
        assert booking.cancellation_reason == REASONS[0]
        assert reschedule_request.status == RescheduleRequest.Status.PENDING_STUDENT
        assert reschedule_request.generator == RescheduleRequest.Generator.RULE_BASED
        assert reschedule_request.weather_check == check
        assert len(reschedule_request.suggestions) == 3
        assert reschedule_request.expires_at > timezone.now() + timedelta(hours=47)

        notification_service.notify_weather_conflict.assert_called_once()
        args, kwargs = notification_service.notify_weather_conflict.call_args
        assert args[1] == reschedule_request
        assert args[2] == REASONS
        assert kwargs['forecast']['tier'] == 'HIGH'

    def test_uses_ai_suggestions_when_available(self, orchestrator, unavailable_ai, booking):
        slot = booking.scheduled_start + timedelta(days=1)
        unavailable_ai.generate.side_effect = None
        unavailable_ai.generate.return_value = SuggestionResult(
            suggestions=[{'slot': slot.isoformat(), 'end': (slot + timedelta(hours=2)).isoformat()}],
            generator='ai',
            priority_factors={'studentCurrency': 'Current'},
        )

        reschedule_request = orchestrator.handle_weather_cancellation(booking, reasons=REASONS)

        assert reschedule_request.generator == RescheduleRequest.Generator.AI
        assert reschedule_request.priority_factors == {'studentCurrency': 'Current'}

    def test_returns_existing_request(self, orchestrator, booking, create_reschedule_request):
        existing = create_reschedule_request()

        result = orchestrator.handle_weather_cancellation(booking, reasons=REASONS)

        assert result == existing
        assert RescheduleRequest.objects.filter(booking=booking).count() == 1
        booking.refresh_from_db()
        assert booking.status == Booking.Status.CONFIRMED

    def test_already_weather_cancelled_booking(self, orchestrator, booking):
        booking.cancel_for_weather('Earlier check')

        reschedule_request = orchestrator.handle_weather_cancellation(booking, reasons=REASONS)

        assert reschedule_request is not None
        booking.refresh_from_db()
        assert booking.cancellation_reason == 'Earlier check'

    def test_completed_booking_cannot_be_rescheduled(self, orchestrator, create_booking):
        completed = create_booking(status=Booking.Status.COMPLETED)

        with pytest.raises(BookingStateError):
            orchestrator.handle_weather_cancellation(completed, reasons=REASONS)

    def test_generator_failure_notifies(self, orchestrator, notification_service, booking):
        orchestrator.fallback_generator = MagicMock()
        orchestrator.fallback_generator.generate.side_effect = RuntimeError('boom')

        result = orchestrator.handle_weather_cancellation(booking, reasons=REASONS)

        assert result is None
        booking.refresh_from_db()
        assert booking.status == Booking.Status.WEATHER_CANCELLED
        notification_service.notify_reschedule_failed.assert_called_once()
        notification_service.notify_weather_conflict.assert_not_called()

    def test_annotates_suggestions_with_forecast(self, orchestrator, booking):
        start = booking.scheduled_start
        orchestrator.weather_cache = StubWeatherCache(forecasts={'KAUS': WeatherForecast(
            station='KAUS',
            source='FAA',
            periods=(
                ForecastPeriod(time_from=start, time_to=None, wind_speed=8, visibility=6.0, ceiling=99999),
            ),
        )})

        reschedule_request = orchestrator.handle_weather_cancellation(booking, reasons=REASONS)

        assert reschedule_request.suggestions[0]['weather_forecast'] == (
            'Visibility 6.0 SM, Ceiling unlimited, Winds 8 kt'
        )


@pytest.mark.django_db
class TestRescheduleWorkflow:
    """Tests for select, confirm and reject."""

    def _cancelled_request(self, booking, create_reschedule_request, **kwargs):
        booking.cancel_for_weather('Visibility')
        return create_reschedule_request(**kwargs)

    def test_select_option(self, orchestrator, booking, create_reschedule_request):
        reschedule_request = self._cancelled_request(booking, create_reschedule_request)

        selected = orchestrator.select_option(reschedule_request.id, 1)

        assert selected.status == RescheduleRequest.Status.PENDING_INSTRUCTOR
        assert selected.selected_option == 1
        assert selected.student_confirmed_at is not None
        assert orchestrator.is_pending(reschedule_request.id) is True

    def test_select_invalid_index(self, orchestrator, booking, create_reschedule_request):
        reschedule_request = self._cancelled_request(booking, create_reschedule_request)

        with pytest.raises(BookingValidationError):
            orchestrator.select_option(reschedule_request.id, 3)

    def test_select_twice(self, orchestrator, booking, create_reschedule_request):
        reschedule_request = self._cancelled_request(booking, create_reschedule_request)
        orchestrator.select_option(reschedule_request.id, 0)

        with pytest.raises(RescheduleStateError):
            orchestrator.select_option(reschedule_request.id, 1)

    def test_confirm_creates_new_booking(self, orchestrator, notification_service, booking, create_reschedule_request):
        reschedule_request = self._cancelled_request(booking, create_reschedule_request)
        orchestrator.select_option(reschedule_request.id, 0)

        confirmed = orchestrator.confirm(reschedule_request.id)

        booking.refresh_from_db()
        new_booking = confirmed.new_booking
        assert confirmed.status == RescheduleRequest.Status.ACCEPTED
        assert confirmed.instructor_confirmed_at is not None
        assert booking.status == Booking.Status.RESCHEDULED
        assert new_booking.status == Booking.Status.CONFIRMED
        assert new_booking.rescheduled_from == booking
        assert new_booking.scheduled_start == booking.scheduled_start + timedelta(days=1)
        assert new_booking.scheduled_end == booking.scheduled_end + timedelta(days=1)
        notification_service.notify_reschedule_confirmed.assert_called_once_with(confirmed)

    def test_confirm_is_idempotent(self, orchestrator, notification_service, booking, create_reschedule_request):
        reschedule_request = self._cancelled_request(booking, create_reschedule_request)
        orchestrator.select_option(reschedule_request.id, 0)
        first = orchestrator.confirm(reschedule_request.id)

        second = orchestrator.confirm(reschedule_request.id)

        assert second.new_booking_id == first.new_booking_id
        assert Booking.objects.filter(rescheduled_from=booking).count() == 1
        assert notification_service.notify_reschedule_confirmed.call_count == 1

    def test_confirm_before_selection(self, orchestrator, booking, create_reschedule_request):
        reschedule_request = self._cancelled_request(booking, create_reschedule_request)

        with pytest.raises(RescheduleStateError):
            orchestrator.confirm(reschedule_request.id)

    def test_confirm_taken_slot(self, orchestrator, booking, create_booking, create_student, create_reschedule_request):
        reschedule_request = self._cancelled_request(booking, create_reschedule_request)
        orchestrator.select_option(reschedule_request.id, 0)
        create_booking(
            student=create_student(),
            scheduled_start=booking.scheduled_start + timedelta(days=1),
            scheduled_end=booking.scheduled_end + timedelta(days=1),
        )

        with pytest.raises(BookingConflictError):
            orchestrator.confirm(reschedule_request.id)

        reschedule_request.refresh_from_db()
        assert reschedule_request.status == RescheduleRequest.Status.PENDING_INSTRUCTOR

    def test_reject(self, orchestrator, booking, create_reschedule_request):
        reschedule_request = self._cancelled_request(booking, create_reschedule_request)

        rejected = orchestrator.reject(reschedule_request.id, 'student', 'None of these work')

        assert rejected.status == RescheduleRequest.Status.REJECTED
        assert rejected.rejected_by == 'student'
        assert rejected.rejection_reason == 'None of these work'
        assert orchestrator.get_active_request(booking.id) is None

    def test_terminal_requests_stay_terminal(self, orchestrator, booking, create_reschedule_request):
        reschedule_request = self._cancelled_request(booking, create_reschedule_request)
        orchestrator.reject(reschedule_request.id, 'instructor')

        with pytest.raises(RescheduleStateError):
            orchestrator.reject(reschedule_request.id, 'student')
        with pytest.raises(RescheduleStateError):
            orchestrator.select_option(reschedule_request.id, 0)

    def test_select_expired_request(self, orchestrator, notification_service, booking, create_reschedule_request):
        reschedule_request = self._cancelled_request(
            booking, create_reschedule_request, expires_at=timezone.now() - timedelta(minutes=1),
        )

        with pytest.raises(RescheduleStateError, match='expired'):
            orchestrator.select_option(reschedule_request.id, 0)

        reschedule_request.refresh_from_db()
        assert reschedule_request.status == RescheduleRequest.Status.EXPIRED
        assert reschedule_request.expired_at is not None
        notification_service.notify_reschedule_expired.assert_called_once()

    def test_unknown_request(self, orchestrator):
        with pytest.raises(RescheduleRequestNotFoundError):
            orchestrator.get_request(uuid.uuid4())
        with pytest.raises(RescheduleRequestNotFoundError):
            orchestrator.confirm(uuid.uuid4())


@pytest.mark.django_db
class TestExpireOverdue:
    """Tests for the expiration sweep."""

    def test_expires_overdue_requests_once(self, orchestrator, notification_service, booking, create_booking, create_reschedule_request):
        overdue = create_reschedule_request(expires_at=timezone.now() - timedelta(hours=1))
        other = create_booking(
            scheduled_start=booking.scheduled_start + timedelta(days=5),
            scheduled_end=booking.scheduled_end + timedelta(days=5),
        )
        current = create_reschedule_request(booking=other)

        assert orchestrator.expire_overdue() == 1
        assert orchestrator.expire_overdue() == 0

        overdue.refresh_from_db()
        current.refresh_from_db()
        assert overdue.status == RescheduleRequest.Status.EXPIRED
        assert current.status == RescheduleRequest.Status.PENDING_STUDENT
        notification_service.notify_reschedule_expired.assert_called_once()


@pytest.mark.django_db(transaction=True)
class TestConcurrentWeatherCancellation:
    """Two weather checks cancelling the same booking at once."""

    def test_single_active_request(self, booking, notification_service, unavailable_ai):
        availability = AvailabilityService(buffer_minutes=30)
        rules = RuleBasedSuggestionGenerator(availability)
        both_generated = threading.Barrier(2)

        class LockstepGenerator:
            # Both callers pass the active-request check before either inserts
            def generate(self, context):
                result = rules.generate(context)
                both_generated.wait(timeout=10)
                return result

        orchestrator = RescheduleOrchestrator(
            booking_service=BookingService(availability),
            notification_service=notification_service,
            ai_generator=unavailable_ai,
            fallback_generator=LockstepGenerator(),
            expiration_hours=48,
        )

        def cancel():
            return orchestrator.handle_weather_cancellation(booking, reasons=REASONS)

        outcomes = run_concurrently(cancel, cancel)

        assert [error for _, error in outcomes] == [None, None]
        first, second = [result for result, _ in outcomes]
        assert first.id == second.id
        assert RescheduleRequest.objects.filter(booking=booking).count() == 1
        assert RescheduleRequest.objects.get().status == RescheduleRequest.Status.PENDING_STUDENT
        notification_service.notify_weather_conflict.assert_called_once()
        notification_service.notify_reschedule_failed.assert_not_called()
        booking.refresh_from_db()
        assert booking.status == Booking.Status.WEATHER_CANCELLED
