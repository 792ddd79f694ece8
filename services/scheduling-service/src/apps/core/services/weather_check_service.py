# services/scheduling-service/src/apps/core/services/weather_check_service.py
"""
Weather Check Service

Per-booking weather evaluation: minimums, departure or route verdict,
forecast confidence, persisted check and the resulting action.
"""

import uuid
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, List

from django.conf import settings
from django.core.cache import caches
from django.db import transaction, IntegrityError
from django.utils import timezone

from shared.common.cache import CacheKeyBuilder
from apps.core import events
from apps.core.models import Booking, WeatherCheck

from .airports import get_airport_coordinates
from .forecast_service import ForecastConfidenceService, ForecastConfidence
from .minimums import MinimumsPolicy, Minimums
from .notification_service import NotificationService
from .reschedule_service import RescheduleOrchestrator
from .route_service import RouteWeatherService, RouteVerdict, DATA_UNAVAILABLE
from .safety import SafetyMargins, SafetyVerdict, classify, SAFE, MARGINAL
from .weather_cache_service import WeatherCacheService, get_weather_cache
from .weather_providers import WeatherSnapshot

logger = logging.getLogger(__name__)


def make_idempotency_key(booking_id, when: datetime) -> str:
    """Booking id plus the hour the check belongs to."""
    return f"{booking_id}:{int(when.timestamp()) // 3600}"


@dataclass
class WeatherCheckOutcome:
    weather_check: Optional[WeatherCheck]
    action: str
    reschedule_request: object = None
    duplicate: bool = False

    ACTION_NONE = 'none'
    ACTION_ALERT = 'alert'
    ACTION_RESCHEDULE = 'reschedule'
    ACTION_SKIPPED = 'skipped'


class WeatherCheckService:
    """
    Runs the weather check pipeline for one booking.

    Checks for the same booking are serialised by a cache lock and
    deduplicated by the check's idempotency key.
    """

    def __init__(
        self,
        cache: WeatherCacheService = None,
        policy: MinimumsPolicy = None,
        route_service: RouteWeatherService = None,
        forecast_service: ForecastConfidenceService = None,
        orchestrator: RescheduleOrchestrator = None,
        notification_service: NotificationService = None,
        margins: SafetyMargins = None,
        lock_cache=None,
    ):
        self.cache = cache or get_weather_cache()
        self.policy = policy or MinimumsPolicy()
        self.route_service = route_service or RouteWeatherService(cache=self.cache)
        self.forecast_service = forecast_service or ForecastConfidenceService()
        self.notification_service = notification_service or NotificationService()
        self.orchestrator = orchestrator or RescheduleOrchestrator(
            notification_service=self.notification_service,
            weather_cache=self.cache,
        )
        self.margins = margins or SafetyMargins.from_settings()
        self.lock_cache = lock_cache or caches['default']
        self.lock_timeout = getattr(settings, 'WEATHER_CHECK_LOCK_SECONDS', 120)
        self.keys = CacheKeyBuilder(getattr(settings, 'SERVICE_NAME', 'scheduling-service'))

    @staticmethod
    def bookings_to_check(now: datetime = None) -> List[Booking]:
        """Pending and confirmed bookings inside the check window."""
        hours = getattr(settings, 'WEATHER_CHECK_WINDOW_HOURS', 48)
        return list(Booking.get_upcoming(hours, now=now))

    def check_booking(
        self,
        booking_id: uuid.UUID,
        check_type: str = WeatherCheck.CheckType.SCHEDULED_HOURLY,
        idempotency_key: str = None,
        now: datetime = None,
    ) -> WeatherCheckOutcome:
        now = now or timezone.now()
        idempotency_key = idempotency_key or make_idempotency_key(booking_id, now)

        existing = WeatherCheck.objects.filter(idempotency_key=idempotency_key).first()
        if existing is not None:
            logger.info(f"Weather check {idempotency_key} already recorded")
            return WeatherCheckOutcome(existing, WeatherCheckOutcome.ACTION_NONE, duplicate=True)

        lock_key = self.keys.lock('weather-check', str(booking_id))
        token = uuid.uuid4().hex
        if not self.lock_cache.add(lock_key, token, timeout=self.lock_timeout):
            logger.info(f"Weather check for booking {booking_id} already running")
            return WeatherCheckOutcome(None, WeatherCheckOutcome.ACTION_SKIPPED)

        try:
            return self._run(booking_id, check_type, idempotency_key, now)
        finally:
            self._release_lock(lock_key, token)

    def _release_lock(self, lock_key: str, token: str):
        # The lock may have expired and been taken by another worker
        if self.lock_cache.get(lock_key) == token:
            self.lock_cache.delete(lock_key)
        else:
            logger.warning(f"Lock {lock_key} no longer held by this check")

    # ==========================================================================
    # Pipeline
    # ==========================================================================

    def _run(self, booking_id, check_type, idempotency_key, now) -> WeatherCheckOutcome:
        from . import BookingNotFoundError

        try:
            booking = Booking.objects.select_related(
                'student', 'instructor', 'aircraft', 'school'
            ).get(id=booking_id)
        except Booking.DoesNotExist:
            raise BookingNotFoundError(f"Booking {booking_id} not found")

        if not booking.is_active:
            logger.info(f"Skipping weather check for {booking.booking_number} ({booking.status})")
            return WeatherCheckOutcome(None, WeatherCheckOutcome.ACTION_SKIPPED)

        minimums = self.policy.get_minimums(
            booking.student.training_level,
            aircraft=booking.aircraft.capability,
            flight_type=booking.flight_type,
        )
        premium_enabled = bool(booking.school and booking.school.weather_api_enabled)

        route_verdict = None
        if booking.is_cross_country:
            route_verdict = self.route_service.check_route(
                booking.route_codes,
                minimums=minimums,
                premium_enabled=premium_enabled,
                margins=self.margins,
            )
            snapshot = route_verdict.checks[0].weather
            verdict = SafetyVerdict(
                result=route_verdict.result,
                confidence=route_verdict.confidence,
                reasons=route_verdict.reasons,
            )
        else:
            snapshot = self.cache.get_weather(booking.departure_airport, premium_enabled=premium_enabled)
            if snapshot is not None:
                verdict = classify(snapshot, minimums, margins=self.margins)
            else:
                verdict = SafetyVerdict(result=MARGINAL, confidence=0, reasons=[DATA_UNAVAILABLE])

        history = WeatherCheck.history_for_booking(booking.id, limit=3)
        forecast = None
        if snapshot is not None:
            forecast = self.forecast_service.estimate(booking.scheduled_start, snapshot, history, now=now)

        weather_check = self._persist(
            booking, check_type, idempotency_key, now,
            snapshot, verdict, minimums, route_verdict, forecast,
        )
        if weather_check is None:
            existing = WeatherCheck.objects.filter(idempotency_key=idempotency_key).first()
            return WeatherCheckOutcome(existing, WeatherCheckOutcome.ACTION_NONE, duplicate=True)

        logger.info(
            f"Weather check {booking.booking_number}: {verdict.result} ({verdict.confidence}%)",
            extra={
                'booking_id': str(booking.id),
                'result': verdict.result,
                'recommendation': forecast.recommendation if forecast else None,
            },
        )
        events.publish_weather_check_completed(weather_check)

        return self._act(booking, weather_check, verdict, forecast, snapshot)

    def _act(self, booking, weather_check, verdict, forecast, snapshot) -> WeatherCheckOutcome:
        if self.orchestrator.should_reschedule(verdict, forecast):
            reschedule_request = self.orchestrator.handle_weather_cancellation(
                booking,
                weather_check=weather_check,
                forecast=forecast,
                reasons=verdict.reasons,
            )
            return WeatherCheckOutcome(
                weather_check,
                WeatherCheckOutcome.ACTION_RESCHEDULE,
                reschedule_request=reschedule_request,
            )

        # Missing data is not worth an alert on its own
        if verdict.result != SAFE and snapshot is not None:
            self.notification_service.notify_weather_alert(
                booking,
                verdict.result,
                verdict.reasons,
                forecast=forecast.to_dict() if forecast else None,
            )
            return WeatherCheckOutcome(weather_check, WeatherCheckOutcome.ACTION_ALERT)

        return WeatherCheckOutcome(weather_check, WeatherCheckOutcome.ACTION_NONE)

    def _persist(
        self,
        booking: Booking,
        check_type: str,
        idempotency_key: str,
        now: datetime,
        snapshot: Optional[WeatherSnapshot],
        verdict: SafetyVerdict,
        minimums: Minimums,
        route_verdict: Optional[RouteVerdict],
        forecast: Optional[ForecastConfidence],
    ) -> Optional[WeatherCheck]:
        """Insert the check; None when another worker recorded the same key."""
        coordinates = get_airport_coordinates(booking.departure_airport)

        fields = {
            'booking': booking,
            'check_type': check_type,
            'location': booking.departure_airport.upper(),
            'latitude': coordinates[0] if coordinates else None,
            'longitude': coordinates[1] if coordinates else None,
            'result': verdict.result,
            'confidence': verdict.confidence,
            'reasons': list(verdict.reasons),
            'training_level': booking.student.training_level,
            'flight_type': booking.flight_type,
            'required_visibility': minimums.visibility,
            'required_ceiling': minimums.ceiling,
            'max_wind_speed': minimums.max_wind,
            'route_result': route_verdict.to_dict() if route_verdict else None,
            'forecast_confidence': forecast.to_dict() if forecast else None,
            'idempotency_key': idempotency_key,
            'checked_at': now,
        }
        if snapshot is not None:
            fields.update({
                'raw_data': snapshot.to_dict(),
                'source': snapshot.source,
                'observed_at': snapshot.observed_at,
                'visibility': snapshot.visibility,
                'ceiling': snapshot.ceiling,
                'wind_speed': snapshot.wind_speed,
                'wind_gust': snapshot.wind_gust,
                'wind_direction': snapshot.wind_direction,
                'temperature': snapshot.temperature,
                'conditions': list(snapshot.conditions),
            })

        try:
            with transaction.atomic():
                return WeatherCheck.objects.create(**fields)
        except IntegrityError:
            logger.info(f"Weather check {idempotency_key} recorded concurrently")
            return None
