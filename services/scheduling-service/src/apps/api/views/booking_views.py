# services/scheduling-service/src/apps/api/views/booking_views.py
"""
Booking API Views

Read access to bookings plus the weather actions run against them.
"""

import logging

from django.utils import timezone
from rest_framework import viewsets, status, filters
from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework.views import APIView
from django_filters.rest_framework import DjangoFilterBackend

from shared.common.exceptions import WeatherDataUnavailableException
from apps.core.models import Booking, WeatherCheck
from apps.core.services import (
    AvailabilityService,
    ForecastConfidenceService,
    SchedulingServiceError,
    WeatherCheckService,
    get_weather_cache,
)
from apps.api.serializers import (
    BookingSerializer,
    AvailabilityCheckSerializer,
    WatchListQuerySerializer,
    WeatherCheckSerializer,
    RescheduleRequestSerializer,
)
from .errors import to_api_exception
from .filters import BookingFilter, WeatherCheckFilter
from .pagination import StandardResultsSetPagination, WeatherHistoryPagination

logger = logging.getLogger(__name__)


class BookingViewSet(viewsets.ReadOnlyModelViewSet):
    """
    ViewSet for bookings.

    Bookings are created by the booking workflow; this API exposes them
    read-only together with forecast confidence and on-demand weather
    checks.
    """

    queryset = Booking.objects.select_related('student', 'instructor', 'aircraft', 'school')
    serializer_class = BookingSerializer
    pagination_class = StandardResultsSetPagination
    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    filterset_class = BookingFilter
    search_fields = ['booking_number', 'departure_airport', 'destination_airport']
    ordering_fields = ['scheduled_start', 'created_at', 'booking_number', 'status']
    ordering = ['scheduled_start']

    def get_queryset(self):
        """Filter queryset by school."""
        queryset = super().get_queryset()
        school_id = self.request.headers.get('X-School-ID')

        if school_id:
            queryset = queryset.filter(school_id=school_id)

        return queryset

    @action(detail=True, methods=['get'], url_path='forecast-confidence')
    def forecast_confidence(self, request, pk=None):
        """Live forecast confidence for the booking's departure airport."""
        booking = self.get_object()
        premium_enabled = bool(booking.school and booking.school.weather_api_enabled)

        snapshot = get_weather_cache().get_weather(booking.departure_airport, premium_enabled=premium_enabled)
        if snapshot is None:
            raise WeatherDataUnavailableException(
                detail=f"No weather data for {booking.departure_airport}"
            )

        history = WeatherCheck.history_for_booking(booking.id, limit=3)
        forecast = ForecastConfidenceService().estimate(booking.scheduled_start, snapshot, history)

        return Response({
            'booking_id': str(booking.id),
            'airport_code': booking.departure_airport,
            **forecast.to_dict(),
        })

    @action(detail=True, methods=['post'], url_path='weather-check')
    def weather_check(self, request, pk=None):
        """Run a weather check now, outside the hourly schedule."""
        booking = self.get_object()
        now = timezone.now()

        try:
            outcome = WeatherCheckService(cache=get_weather_cache()).check_booking(
                booking.id,
                check_type=WeatherCheck.CheckType.MANUAL_REFRESH,
                idempotency_key=f"{booking.id}:manual:{int(now.timestamp())}",
                now=now,
            )
        except SchedulingServiceError as e:
            raise to_api_exception(e)

        if outcome.action == outcome.ACTION_SKIPPED and outcome.weather_check is None:
            return Response({
                'action': outcome.action,
                'message': 'A weather check for this booking is already running or the booking is not active',
            }, status=status.HTTP_409_CONFLICT)

        return Response({
            'action': outcome.action,
            'duplicate': outcome.duplicate,
            'weather_check': WeatherCheckSerializer(outcome.weather_check).data,
            'reschedule_request': (
                RescheduleRequestSerializer(outcome.reschedule_request).data
                if outcome.reschedule_request else None
            ),
        }, status=status.HTTP_201_CREATED if not outcome.duplicate else status.HTTP_200_OK)

    @action(detail=True, methods=['get'], url_path='weather-checks')
    def weather_checks(self, request, pk=None):
        """Weather check history, most recent first."""
        booking = self.get_object()
        queryset = WeatherCheckFilter(
            request.query_params,
            queryset=WeatherCheck.objects.filter(booking=booking).order_by('-checked_at'),
        ).qs

        paginator = WeatherHistoryPagination()
        page = paginator.paginate_queryset(queryset, request, view=self)
        serializer = WeatherCheckSerializer(page, many=True)
        return paginator.get_paginated_response(serializer.data)


class AvailabilityCheckView(APIView):
    """
    Check a slot for aircraft, instructor and student conflicts.

    The configured buffer is applied around the requested window.
    """

    def post(self, request):
        serializer = AvailabilityCheckSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        result = AvailabilityService().check_availability(
            student_id=data['student_id'],
            aircraft_id=data['aircraft_id'],
            start=data['start'],
            end=data['end'],
            instructor_id=data.get('instructor_id'),
            exclude_booking_id=data.get('exclude_booking_id'),
        )

        return Response(result.to_dict())


class WatchListView(APIView):
    """Upcoming bookings with medium forecast confidence."""

    def get(self, request):
        serializer = WatchListQuerySerializer(data=request.query_params)
        serializer.is_valid(raise_exception=True)

        bookings = ForecastConfidenceService().get_watch_list(
            school_id=serializer.validated_data.get('school_id'),
            hours_ahead=serializer.validated_data['hours_ahead'],
        )

        return Response({
            'count': len(bookings),
            'results': BookingSerializer(bookings, many=True).data,
        })
