# services/scheduling-service/src/tests/unit/test_weather_check_service.py
"""
Unit Tests for the Weather Check Pipeline
"""

import uuid
from datetime import timedelta
from unittest.mock import MagicMock

import pytest
from django.utils import timezone

from apps.core.models import Booking, RescheduleRequest, TrainingLevel, WeatherCheck
from apps.core.services import BookingNotFoundError, SuggestionGenerationError
from apps.core.services.availability_service import AvailabilityService
from apps.core.services.booking_service import BookingService
from apps.core.services.notification_service import NotificationService
from apps.core.services.reschedule_service import RescheduleOrchestrator
from apps.core.services.suggestion_service import AISuggestionGenerator, RuleBasedSuggestionGenerator
from apps.core.services.weather_check_service import (
    WeatherCheckOutcome,
    WeatherCheckService,
    make_idempotency_key,
)


@pytest.fixture
def notifier():
    return MagicMock(spec=NotificationService)


@pytest.fixture
def build_service(notifier):
    """Factory for a pipeline wired to a stub weather cache."""
    def _build_service(cache):
        availability = AvailabilityService(buffer_minutes=30)
        ai_generator = MagicMock(spec=AISuggestionGenerator)
        ai_generator.generate.side_effect = SuggestionGenerationError('AI suggestions are not configured')
        orchestrator = RescheduleOrchestrator(
            booking_service=BookingService(availability),
            notification_service=notifier,
            ai_generator=ai_generator,
            fallback_generator=RuleBasedSuggestionGenerator(availability),
        )
        return WeatherCheckService(
            cache=cache,
            orchestrator=orchestrator,
            notification_service=notifier,
        )

    return _build_service


class TestIdempotencyKey:

    def test_same_hour_same_key(self):
        booking_id = uuid.uuid4()
        base = timezone.now().replace(minute=0, second=0, microsecond=0)

        assert make_idempotency_key(booking_id, base) == make_idempotency_key(
            booking_id, base + timedelta(minutes=59)
        )
        assert make_idempotency_key(booking_id, base) != make_idempotency_key(
            booking_id, base + timedelta(hours=1)
        )
        assert make_idempotency_key(booking_id, base).startswith(f"{booking_id}:")


@pytest.mark.django_db
class TestWeatherCheckService:
    """Tests for WeatherCheckService.check_booking."""

    def test_safe_weather(self, build_service, notifier, stub_cache, snapshot, booking):
        service = build_service(stub_cache({'KAUS': snapshot(visibility=10)}))

        outcome = service.check_booking(booking.id)

        check = outcome.weather_check
        assert outcome.action == WeatherCheckOutcome.ACTION_NONE
        assert outcome.duplicate is False
        assert check.result == WeatherCheck.Result.SAFE
        assert check.confidence == 95
        assert check.source == 'FAA'
        assert check.visibility == 10
        assert check.training_level == TrainingLevel.PRIVATE_PILOT
        assert check.required_visibility == 3
        assert check.required_ceiling == 1000
        assert check.forecast_confidence['tier'] == 'HIGH'
        assert check.forecast_confidence['recommendation'] == 'MONITOR'
        assert check.latitude is not None
        notifier.notify_weather_alert.assert_not_called()

    def test_marginal_weather_alerts(self, build_service, notifier, stub_cache, snapshot, booking):
        service = build_service(stub_cache({'KAUS': snapshot(visibility=3.5)}))

        outcome = service.check_booking(booking.id)

        assert outcome.action == WeatherCheckOutcome.ACTION_ALERT
        assert outcome.weather_check.result == WeatherCheck.Result.MARGINAL
        notifier.notify_weather_alert.assert_called_once()
        args, _ = notifier.notify_weather_alert.call_args
        assert args[1] == 'marginal'
        booking.refresh_from_db()
        assert booking.status == Booking.Status.CONFIRMED

    def test_unsafe_weather_reschedules(self, build_service, notifier, stub_cache, snapshot, booking):
        service = build_service(stub_cache({'KAUS': snapshot(visibility=2)}))

        outcome = service.check_booking(booking.id)

        assert outcome.action == WeatherCheckOutcome.ACTION_RESCHEDULE
        assert outcome.weather_check.result == WeatherCheck.Result.UNSAFE
        assert outcome.reschedule_request.weather_check == outcome.weather_check
        assert len(outcome.reschedule_request.suggestions) == 3
        booking.refresh_from_db()
        assert booking.status == Booking.Status.WEATHER_CANCELLED
        notifier.notify_weather_conflict.assert_called_once()
        notifier.notify_weather_alert.assert_not_called()

    def test_early_student_limits(self, build_service, stub_cache, snapshot, create_booking, create_student):
        booking = create_booking(student=create_student(training_level=TrainingLevel.EARLY_STUDENT))
        service = build_service(stub_cache({'KAUS': snapshot(visibility=10, wind_speed=5)}))

        outcome = service.check_booking(booking.id)

        # Visibility 10 sits inside the 12SM marginal band
        assert outcome.weather_check.result == WeatherCheck.Result.MARGINAL
        assert outcome.action == WeatherCheckOutcome.ACTION_ALERT

    def test_missing_weather(self, build_service, notifier, stub_cache, booking):
        service = build_service(stub_cache())

        outcome = service.check_booking(booking.id)

        check = outcome.weather_check
        assert outcome.action == WeatherCheckOutcome.ACTION_NONE
        assert check.result == WeatherCheck.Result.MARGINAL
        assert check.confidence == 0
        assert check.reasons == ['Weather data unavailable']
        assert check.source == ''
        assert check.forecast_confidence is None
        notifier.notify_weather_alert.assert_not_called()

    def test_cross_country_uses_route(self, build_service, stub_cache, snapshot, create_booking):
        booking = create_booking(route=['KAUS', 'KSAT'])
        service = build_service(stub_cache({
            'KAUS': snapshot(),
            'KSAT': snapshot(station='KSAT', ceiling=500),
        }))

        outcome = service.check_booking(booking.id)

        check = outcome.weather_check
        assert check.result == WeatherCheck.Result.UNSAFE
        assert check.route_result['unsafe_waypoints'] == ['KSAT']
        assert check.reasons == ['KSAT: Ceiling 500ft below minimum 1000ft']
        assert check.location == 'KAUS'
        assert outcome.action == WeatherCheckOutcome.ACTION_RESCHEDULE

    def test_premium_school(self, build_service, stub_cache, snapshot, booking, school):
        school.weather_api_enabled = True
        school.save()
        cache = stub_cache({'KAUS': snapshot()})

        build_service(cache).check_booking(booking.id)

        assert cache.requests == [('KAUS', True)]

    def test_history_feeds_forecast(self, build_service, stub_cache, snapshot, booking, create_weather_check):
        now = timezone.now()
        create_weather_check(booking, visibility=2, ceiling=800, checked_at=now - timedelta(hours=2))
        create_weather_check(booking, visibility=8, ceiling=4000, checked_at=now - timedelta(hours=1))
        service = build_service(stub_cache({'KAUS': snapshot()}))

        outcome = service.check_booking(booking.id, now=now)

        factors = outcome.weather_check.forecast_confidence['factors']
        assert factors['forecast_stability'] == 60

    def test_duplicate_key(self, build_service, stub_cache, snapshot, booking):
        service = build_service(stub_cache({'KAUS': snapshot()}))
        now = timezone.now()

        first = service.check_booking(booking.id, now=now)
        second = service.check_booking(booking.id, now=now)

        assert second.duplicate is True
        assert second.weather_check == first.weather_check
        assert WeatherCheck.objects.filter(booking=booking).count() == 1

    def test_lock_held(self, build_service, stub_cache, snapshot, booking):
        cache = stub_cache({'KAUS': snapshot()})
        service = build_service(cache)
        service.lock_cache.add(service.keys.lock('weather-check', str(booking.id)), 'other-worker')

        outcome = service.check_booking(booking.id)

        assert outcome.action == WeatherCheckOutcome.ACTION_SKIPPED
        assert outcome.weather_check is None
        assert cache.requests == []

    def test_lock_released(self, build_service, stub_cache, snapshot, booking):
        service = build_service(stub_cache({'KAUS': snapshot()}))

        service.check_booking(booking.id, idempotency_key='first')
        outcome = service.check_booking(booking.id, idempotency_key='second')

        assert outcome.action == WeatherCheckOutcome.ACTION_NONE
        assert outcome.weather_check.idempotency_key == 'second'

    def test_lock_taken_over_is_not_released(self, build_service, stub_cache, snapshot, booking):
        service = build_service(stub_cache({'KAUS': snapshot()}))
        lock_key = service.keys.lock('weather-check', str(booking.id))
        run = service._run

        def expire_and_take_over(*args):
            # Lock TTL ran out mid-check and another worker acquired it
            service.lock_cache.set(lock_key, 'other-worker')
            return run(*args)

        service._run = expire_and_take_over

        outcome = service.check_booking(booking.id)

        assert outcome.action == WeatherCheckOutcome.ACTION_NONE
        assert service.lock_cache.get(lock_key) == 'other-worker'

    def test_inactive_booking_skipped(self, build_service, stub_cache, snapshot, create_booking):
        cancelled = create_booking(status=Booking.Status.STUDENT_CANCELLED)
        cache = stub_cache({'KAUS': snapshot()})

        outcome = build_service(cache).check_booking(cancelled.id)

        assert outcome.action == WeatherCheckOutcome.ACTION_SKIPPED
        assert cache.requests == []

    def test_unknown_booking(self, build_service, stub_cache):
        with pytest.raises(BookingNotFoundError):
            build_service(stub_cache()).check_booking(uuid.uuid4())

    def test_existing_request_not_duplicated(self, build_service, stub_cache, snapshot, booking, create_reschedule_request):
        existing = create_reschedule_request()
        service = build_service(stub_cache({'KAUS': snapshot(visibility=1)}))

        outcome = service.check_booking(booking.id)

        assert outcome.reschedule_request == existing
        assert RescheduleRequest.objects.filter(booking=booking).count() == 1

    def test_bookings_to_check(self, booking, create_booking):
        now = timezone.now()
        far = create_booking(
            scheduled_start=now + timedelta(days=4),
            scheduled_end=now + timedelta(days=4, hours=1),
        )
        create_booking(
            status=Booking.Status.WEATHER_CANCELLED,
            scheduled_start=now + timedelta(hours=3),
            scheduled_end=now + timedelta(hours=4),
        )

        to_check = WeatherCheckService.bookings_to_check(now)

        assert to_check == [booking]
        assert far not in to_check
