# services/scheduling-service/src/tests/conftest.py
"""
Pytest Configuration and Fixtures

Provides common fixtures for scheduling service tests.
"""

import uuid
from datetime import timedelta

import pytest
from django.core.cache import caches
from django.utils import timezone
from rest_framework.test import APIClient

from tests.helpers import StubWeatherCache, make_snapshot


@pytest.fixture(autouse=True)
def clear_caches():
    """Each test starts with empty cache tiers."""
    for alias in ('default', 'weather_local'):
        caches[alias].clear()
    yield


@pytest.fixture
def api_client():
    """Provide API client for testing."""
    return APIClient()


@pytest.fixture
def snapshot():
    """Factory for weather snapshots."""
    return make_snapshot


@pytest.fixture
def stub_cache():
    """Factory for a stub weather cache keyed by airport code."""
    def _stub_cache(snapshots=None, forecasts=None):
        return StubWeatherCache(snapshots, forecasts)

    return _stub_cache


@pytest.fixture
def school():
    from apps.core.models import School

    return School.objects.create(name='Austin Flight Academy', airport_code='KAUS')


@pytest.fixture
def create_instructor(school):
    """Factory fixture for creating instructors."""
    from apps.core.models import Instructor

    def _create_instructor(**kwargs):
        defaults = {
            'school': school,
            'name': f"Instructor {uuid.uuid4().hex[:4]}",
            'email': 'cfi@example.com',
        }
        defaults.update(kwargs)

        return Instructor.objects.create(**defaults)

    return _create_instructor


@pytest.fixture
def create_student(school):
    """Factory fixture for creating students."""
    from apps.core.models import Student, TrainingLevel

    def _create_student(**kwargs):
        defaults = {
            'school': school,
            'name': f"Student {uuid.uuid4().hex[:4]}",
            'email': 'student@example.com',
            'training_level': TrainingLevel.PRIVATE_PILOT,
        }
        defaults.update(kwargs)

        return Student.objects.create(**defaults)

    return _create_student


@pytest.fixture
def create_aircraft(school):
    """Factory fixture for creating aircraft."""
    from apps.core.models import Aircraft

    def _create_aircraft(**kwargs):
        defaults = {
            'school': school,
            'tail_number': f"N{uuid.uuid4().hex[:5].upper()}",
            'aircraft_type': 'C172',
        }
        defaults.update(kwargs)

        return Aircraft.objects.create(**defaults)

    return _create_aircraft


@pytest.fixture
def instructor(create_instructor):
    return create_instructor(name='Alice Pilot')


@pytest.fixture
def student(create_student, instructor):
    return create_student(name='Sam Student', preferred_instructor=instructor)


@pytest.fixture
def aircraft(create_aircraft):
    return create_aircraft(tail_number='N12345')


@pytest.fixture
def flight_window():
    """Start and end of a two hour flight six hours from now."""
    start = (timezone.now() + timedelta(hours=6)).replace(second=0, microsecond=0)
    return start, start + timedelta(hours=2)


@pytest.fixture
def create_booking(school, student, instructor, aircraft, flight_window):
    """Factory fixture for creating bookings."""
    from apps.core.models import Booking

    def _create_booking(**kwargs):
        start, end = flight_window
        defaults = {
            'school': school,
            'student': student,
            'instructor': instructor,
            'aircraft': aircraft,
            'scheduled_start': start,
            'scheduled_end': end,
            'departure_airport': 'KAUS',
            'status': Booking.Status.CONFIRMED,
        }
        defaults.update(kwargs)

        return Booking.objects.create(**defaults)

    return _create_booking


@pytest.fixture
def booking(create_booking):
    return create_booking()


@pytest.fixture
def create_weather_check():
    """Factory fixture for creating weather checks."""
    from apps.core.models import WeatherCheck

    def _create_weather_check(booking, **kwargs):
        defaults = {
            'booking': booking,
            'location': booking.departure_airport,
            'source': 'FAA',
            'visibility': 10,
            'ceiling': 5000,
            'wind_speed': 5,
            'result': WeatherCheck.Result.SAFE,
            'confidence': 95,
            'checked_at': timezone.now(),
        }
        defaults.update(kwargs)

        return WeatherCheck.objects.create(**defaults)

    return _create_weather_check


@pytest.fixture
def create_reschedule_request(booking):
    """Factory fixture for creating reschedule requests with three options."""
    from apps.core.models import RescheduleRequest

    def _create_request(**kwargs):
        target = kwargs.pop('booking', booking)
        duration = target.scheduled_end - target.scheduled_start
        suggestions = []
        for i in range(3):
            start = target.scheduled_start + timedelta(days=i + 1)
            suggestions.append({
                'slot': start.isoformat(),
                'end': (start + duration).isoformat(),
                'instructor_id': str(target.instructor_id),
                'aircraft_id': str(target.aircraft_id),
                'priority': i + 1,
                'reasoning': 'Same time slot',
                'confidence': 'medium',
                'weather_forecast': 'Check weather forecast',
            })

        defaults = {
            'booking': target,
            'student': target.student,
            'suggestions': suggestions,
            'generator': RescheduleRequest.Generator.RULE_BASED,
            'status': RescheduleRequest.Status.PENDING_STUDENT,
            'expires_at': timezone.now() + timedelta(hours=48),
        }
        defaults.update(kwargs)

        return RescheduleRequest.objects.create(**defaults)

    return _create_request
