# services/scheduling-service/src/apps/core/services/forecast_service.py
"""
Forecast Confidence Service

Estimates how far the current weather picture can be trusted for a
future flight and recommends whether to act now or keep monitoring.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Sequence, Dict, Any, List

from django.conf import settings
from django.utils import timezone

from .weather_providers import WeatherSnapshot

logger = logging.getLogger(__name__)


HIGH = 'HIGH'
MEDIUM = 'MEDIUM'
LOW = 'LOW'

IMPROVING = 'IMPROVING'
WORSENING = 'WORSENING'
STABLE = 'STABLE'

AUTO_RESCHEDULE = 'AUTO_RESCHEDULE'
ALERT = 'ALERT'
MONITOR = 'MONITOR'

# Pattern types and the confidence each carries
PATTERN_STABLE = 'STABLE'
PATTERN_FRONT = 'FRONT'
PATTERN_POPUP = 'POPUP'
PATTERN_CONFIDENCE = {PATTERN_STABLE: 90, PATTERN_FRONT: 70, PATTERN_POPUP: 50}

HISTORICAL_ACCURACY = 75

WEIGHTS = {
    'time': 0.4,
    'stability': 0.3,
    'pattern': 0.2,
    'historical': 0.1,
}

FRONT_WIND_THRESHOLD = 15  # knots


@dataclass
class ForecastConfidence:
    confidence: int
    tier: str
    trend: str
    recommendation: str
    factors: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'confidence': self.confidence,
            'tier': self.tier,
            'trend': self.trend,
            'recommendation': self.recommendation,
            'factors': dict(self.factors),
        }


def _value(check, name: str) -> float:
    value = getattr(check, name, None)
    if value is None and isinstance(check, dict):
        value = check.get(name)
    return float(value or 0)


class ForecastConfidenceService:
    """
    Weighted confidence estimate over four factors: time until the
    flight, stability of recent checks, weather pattern and a fixed
    historical-accuracy term.
    """

    def __init__(self, auto_reschedule_visibility: float = None):
        policy = getattr(settings, 'WEATHER_POLICY', {})
        self.auto_reschedule_visibility = (
            auto_reschedule_visibility
            if auto_reschedule_visibility is not None
            else policy.get('AUTO_RESCHEDULE_VISIBILITY_SM', 3)
        )

    def estimate(
        self,
        flight_time: datetime,
        current: WeatherSnapshot,
        history: Sequence = (),
        now: Optional[datetime] = None,
    ) -> ForecastConfidence:
        """
        ``history`` is most recent first; each item exposes
        ``visibility`` and ``ceiling``.
        """
        now = now or timezone.now()
        hours_until = (flight_time - now).total_seconds() / 3600

        time_confidence = self.time_confidence(hours_until)
        stability = self.stability(history)
        pattern = self.pattern_type(current)
        pattern_confidence = PATTERN_CONFIDENCE[pattern]

        confidence = round(
            time_confidence * WEIGHTS['time']
            + stability * WEIGHTS['stability']
            + pattern_confidence * WEIGHTS['pattern']
            + HISTORICAL_ACCURACY * WEIGHTS['historical']
        )
        tier = self.tier_for(confidence)

        return ForecastConfidence(
            confidence=confidence,
            tier=tier,
            trend=self.trend(history),
            recommendation=self.recommendation(tier, current.visibility),
            factors={
                'hours_until_flight': round(hours_until, 2),
                'time_confidence': round(time_confidence, 1),
                'forecast_stability': round(stability),
                'pattern_type': pattern,
                'pattern_confidence': pattern_confidence,
                'historical_accuracy': HISTORICAL_ACCURACY,
            },
        )

    # ==========================================================================
    # Factors
    # ==========================================================================

    @staticmethod
    def time_confidence(hours_until: float) -> float:
        """100 within 12h, linear to 70 at 24h, then -0.5/h down to 30."""
        if hours_until <= 12:
            return 100.0
        if hours_until <= 24:
            return 100 - (hours_until - 12) * 2.5
        return max(30.0, 70 - (hours_until - 24) * 0.5)

    @staticmethod
    def stability(history: Sequence) -> float:
        recent = list(history)[:3]
        if len(recent) < 2:
            return 100.0

        pairs = list(zip(recent, recent[1:]))
        avg_visibility_change = sum(
            abs(_value(a, 'visibility') - _value(b, 'visibility')) for a, b in pairs
        ) / len(pairs)
        avg_ceiling_change = sum(
            abs(_value(a, 'ceiling') - _value(b, 'ceiling')) for a, b in pairs
        ) / len(pairs)

        if avg_visibility_change < 1:
            visibility_stability = 100
        elif avg_visibility_change < 3:
            visibility_stability = 80
        else:
            visibility_stability = 60

        if avg_ceiling_change < 200:
            ceiling_stability = 100
        elif avg_ceiling_change < 500:
            ceiling_stability = 80
        else:
            ceiling_stability = 60

        return (visibility_stability + ceiling_stability) / 2

    @staticmethod
    def pattern_type(current: WeatherSnapshot) -> str:
        if 'TS' in current.conditions:
            return PATTERN_POPUP
        if current.wind_speed > FRONT_WIND_THRESHOLD or 'RA' in current.conditions:
            return PATTERN_FRONT
        return PATTERN_STABLE

    @staticmethod
    def tier_for(confidence: int) -> str:
        if confidence >= 90:
            return HIGH
        if confidence >= 60:
            return MEDIUM
        return LOW

    @staticmethod
    def trend(history: Sequence) -> str:
        recent = list(history)[:2]
        if len(recent) < 2:
            return STABLE

        latest, previous = recent
        visibility_diff = _value(latest, 'visibility') - _value(previous, 'visibility')
        ceiling_diff = _value(latest, 'ceiling') - _value(previous, 'ceiling')

        if visibility_diff > 1 and ceiling_diff > 500:
            return IMPROVING
        if visibility_diff < -1 or ceiling_diff < -500:
            return WORSENING
        return STABLE

    def recommendation(self, tier: str, visibility: float) -> str:
        if tier == HIGH and visibility < self.auto_reschedule_visibility:
            return AUTO_RESCHEDULE
        if tier == MEDIUM:
            return ALERT
        return MONITOR

    # ==========================================================================
    # Watch List
    # ==========================================================================

    def get_watch_list(self, school_id=None, hours_ahead: int = 24) -> List:
        """
        Upcoming bookings whose latest forecast confidence is MEDIUM
        (60-89) and so need a human to keep an eye on them.
        """
        from apps.core.models import Booking, WeatherCheck

        bookings = Booking.get_upcoming(hours_ahead).select_related('student', 'aircraft')
        if school_id:
            bookings = bookings.filter(school_id=school_id)

        watch_list = []
        for booking in bookings:
            latest = WeatherCheck.objects.filter(booking=booking).order_by('-checked_at').first()
            if latest is None:
                continue
            score = (latest.forecast_confidence or {}).get('confidence', latest.confidence)
            if 60 <= score < 90:
                watch_list.append(booking)
        return watch_list
