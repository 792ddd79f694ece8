# services/scheduling-service/src/tests/unit/test_models.py
"""
Unit Tests for Scheduling Models

Tests for model methods, properties, and constraints.
"""

from datetime import timedelta

import pytest
from django.db import IntegrityError, transaction
from django.utils import timezone

from apps.core.models import Booking, RescheduleRequest, WeatherCheck


@pytest.mark.django_db
class TestBookingModel:
    """Tests for Booking model."""

    def test_booking_number_and_padding(self, booking, settings):
        """Booking number is generated and briefing/debrief padding applied."""
        assert booking.booking_number.startswith('BK-')
        assert booking.briefing_start == booking.scheduled_start - timedelta(minutes=settings.BRIEFING_MINUTES)
        assert booking.debrief_end == booking.scheduled_end + timedelta(minutes=settings.DEBRIEF_MINUTES)
        assert booking.duration_minutes == 120

    def test_route_codes_local_flight(self, create_booking):
        booking = create_booking(departure_airport='kaus')
        assert booking.route_codes == ['KAUS']
        assert booking.is_cross_country is False

    def test_route_codes_with_destination(self, create_booking):
        booking = create_booking(destination_airport='KSAT')
        assert booking.route_codes == ['KAUS', 'KSAT']
        assert booking.is_cross_country is True

    def test_route_codes_prefers_route(self, create_booking):
        booking = create_booking(route=['kaus', 'khyi', 'kaus'])
        assert booking.route_codes == ['KAUS', 'KHYI', 'KAUS']
        assert booking.is_cross_country is True

    def test_cancel_for_weather(self, booking):
        booking.cancel_for_weather('Visibility below minimum')

        booking.refresh_from_db()
        assert booking.status == Booking.Status.WEATHER_CANCELLED
        assert booking.cancelled_at is not None
        assert booking.cancellation_reason == 'Visibility below minimum'
        assert booking.is_active is False

    def test_cancel_for_weather_requires_active(self, create_booking):
        booking = create_booking(status=Booking.Status.COMPLETED)

        with pytest.raises(ValueError):
            booking.cancel_for_weather('Low ceiling')

    def test_mark_rescheduled_only_from_cancelled(self, booking):
        with pytest.raises(ValueError):
            booking.mark_rescheduled()

        booking.cancel_for_weather('Low ceiling')
        booking.mark_rescheduled()
        assert booking.status == Booking.Status.RESCHEDULED

    def test_get_overlapping_ignores_cancelled(self, create_booking, flight_window):
        start, end = flight_window
        active = create_booking()
        create_booking(status=Booking.Status.WEATHER_CANCELLED)

        overlapping = list(Booking.get_overlapping(start, end))
        assert overlapping == [active]

    def test_get_upcoming_window(self, create_booking):
        now = timezone.now()
        soon = create_booking(scheduled_start=now + timedelta(hours=2), scheduled_end=now + timedelta(hours=3))
        create_booking(scheduled_start=now + timedelta(hours=60), scheduled_end=now + timedelta(hours=61))
        create_booking(scheduled_start=now - timedelta(hours=2), scheduled_end=now - timedelta(hours=1))

        assert list(Booking.get_upcoming(48, now=now)) == [soon]


@pytest.mark.django_db
class TestWeatherCheckModel:
    """Tests for WeatherCheck model."""

    def test_latest_for_station_respects_age(self, booking, create_weather_check):
        now = timezone.now()
        create_weather_check(booking, checked_at=now - timedelta(minutes=45))
        recent = create_weather_check(booking, checked_at=now - timedelta(minutes=5))

        assert WeatherCheck.latest_for_station('kaus', 30, now=now) == recent
        assert WeatherCheck.latest_for_station('KSAT', 30, now=now) is None

    def test_latest_for_station_skips_checks_without_data(self, booking, create_weather_check):
        create_weather_check(booking, source='', result=WeatherCheck.Result.MARGINAL)

        assert WeatherCheck.latest_for_station('KAUS', 30) is None

    def test_history_for_booking_newest_first(self, booking, create_weather_check):
        now = timezone.now()
        checks = [
            create_weather_check(booking, checked_at=now - timedelta(hours=i))
            for i in range(4)
        ]

        assert WeatherCheck.history_for_booking(booking.id, limit=3) == checks[:3]

    def test_idempotency_key_unique(self, booking, create_weather_check):
        create_weather_check(booking, idempotency_key='abc:1')

        with pytest.raises(IntegrityError):
            with transaction.atomic():
                create_weather_check(booking, idempotency_key='abc:1')


@pytest.mark.django_db
class TestRescheduleRequestModel:
    """Tests for RescheduleRequest model."""

    def test_one_active_request_per_booking(self, create_reschedule_request):
        create_reschedule_request()

        with pytest.raises(IntegrityError):
            with transaction.atomic():
                create_reschedule_request()

    def test_terminal_requests_do_not_block(self, create_reschedule_request):
        create_reschedule_request(status=RescheduleRequest.Status.EXPIRED)
        create_reschedule_request(status=RescheduleRequest.Status.REJECTED)
        active = create_reschedule_request()

        assert RescheduleRequest.get_active_for_booking(active.booking_id) == active

    def test_is_expired(self, create_reschedule_request):
        request = create_reschedule_request(expires_at=timezone.now() - timedelta(minutes=1))

        assert request.is_pending is True
        assert request.is_expired() is True

        request.status = RescheduleRequest.Status.ACCEPTED
        assert request.is_expired() is False
        assert request.is_terminal is True

    def test_selected_suggestion(self, create_reschedule_request):
        request = create_reschedule_request()
        assert request.selected_suggestion is None

        request.selected_option = 1
        assert request.selected_suggestion == request.suggestions[1]

        request.selected_option = 7
        assert request.selected_suggestion is None

    def test_get_overdue(self, create_booking, create_reschedule_request):
        overdue = create_reschedule_request(expires_at=timezone.now() - timedelta(minutes=1))
        create_reschedule_request(
            booking=create_booking(),
            expires_at=timezone.now() + timedelta(hours=1),
        )

        assert list(RescheduleRequest.get_overdue()) == [overdue]
