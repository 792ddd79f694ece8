# services/scheduling-service/src/apps/api/views/filters.py
"""
API Filters

Django Filter classes for the scheduling API.
"""

import django_filters
from django.db.models import Q

from apps.core.models import Booking, RescheduleRequest, WeatherCheck


class BookingFilter(django_filters.FilterSet):
    """Filter for booking queries."""

    # Date filters
    date = django_filters.DateFilter(
        field_name='scheduled_start',
        lookup_expr='date'
    )
    start_after = django_filters.DateTimeFilter(
        field_name='scheduled_start',
        lookup_expr='gte'
    )
    start_before = django_filters.DateTimeFilter(
        field_name='scheduled_start',
        lookup_expr='lte'
    )

    # Status filters
    status = django_filters.ChoiceFilter(
        choices=Booking.Status.choices
    )
    status_in = django_filters.BaseInFilter(
        field_name='status'
    )
    active = django_filters.BooleanFilter(
        method='filter_active'
    )

    # Resource filters
    school_id = django_filters.UUIDFilter()
    aircraft_id = django_filters.UUIDFilter()
    instructor_id = django_filters.UUIDFilter()
    student_id = django_filters.UUIDFilter()
    person_id = django_filters.UUIDFilter(
        method='filter_person'
    )

    flight_type = django_filters.ChoiceFilter(
        choices=Booking.FlightType.choices
    )
    departure_airport = django_filters.CharFilter(
        lookup_expr='iexact'
    )
    booking_number = django_filters.CharFilter(
        lookup_expr='icontains'
    )

    class Meta:
        model = Booking
        fields = ['status', 'flight_type', 'departure_airport']

    def filter_active(self, queryset, name, value):
        """Pending and confirmed bookings."""
        active = [Booking.Status.PENDING, Booking.Status.CONFIRMED]
        if value:
            return queryset.filter(status__in=active)
        return queryset.exclude(status__in=active)

    def filter_person(self, queryset, name, value):
        """Bookings where the student or instructor is ``value``."""
        return queryset.filter(Q(student_id=value) | Q(instructor_id=value))


class WeatherCheckFilter(django_filters.FilterSet):
    result = django_filters.ChoiceFilter(
        choices=WeatherCheck.Result.choices
    )
    check_type = django_filters.ChoiceFilter(
        choices=WeatherCheck.CheckType.choices
    )
    checked_after = django_filters.DateTimeFilter(
        field_name='checked_at',
        lookup_expr='gte'
    )

    class Meta:
        model = WeatherCheck
        fields = ['result', 'check_type']


class RescheduleRequestFilter(django_filters.FilterSet):
    status = django_filters.ChoiceFilter(
        choices=RescheduleRequest.Status.choices
    )
    pending = django_filters.BooleanFilter(
        method='filter_pending'
    )
    booking_id = django_filters.UUIDFilter()
    student_id = django_filters.UUIDFilter()

    class Meta:
        model = RescheduleRequest
        fields = ['status']

    def filter_pending(self, queryset, name, value):
        if value:
            return queryset.filter(status__in=RescheduleRequest.PENDING_STATUSES)
        return queryset.exclude(status__in=RescheduleRequest.PENDING_STATUSES)
