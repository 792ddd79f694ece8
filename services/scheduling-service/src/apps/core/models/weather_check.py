# services/scheduling-service/src/apps/core/models/weather_check.py
"""
Weather Check Model

Immutable record of one safety evaluation for a booking.
"""

import uuid

from django.db import models
from django.utils import timezone


class WeatherCheck(models.Model):
    """
    Point-in-time weather evaluation.

    Stores the observation, the thresholds that were applied and the
    verdict. Recent rows double as the persisted weather history tier.
    """

    class CheckType(models.TextChoices):
        SCHEDULED_HOURLY = 'scheduled_hourly', 'Scheduled Hourly'
        PRE_FLIGHT_BRIEFING = 'pre_flight_briefing', 'Pre-flight Briefing'
        MANUAL_REFRESH = 'manual_refresh', 'Manual Refresh'

    class Result(models.TextChoices):
        SAFE = 'safe', 'Safe'
        MARGINAL = 'marginal', 'Marginal'
        UNSAFE = 'unsafe', 'Unsafe'

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    booking = models.ForeignKey(
        'core.Booking',
        on_delete=models.CASCADE,
        related_name='weather_checks',
        blank=True,
        null=True
    )
    check_type = models.CharField(
        max_length=30,
        choices=CheckType.choices,
        default=CheckType.SCHEDULED_HOURLY
    )

    # Observation
    location = models.CharField(max_length=4, db_index=True)
    latitude = models.FloatField(blank=True, null=True)
    longitude = models.FloatField(blank=True, null=True)
    raw_data = models.JSONField(default=dict, blank=True)
    source = models.CharField(max_length=30, blank=True, default='')
    observed_at = models.DateTimeField(blank=True, null=True)

    visibility = models.FloatField(blank=True, null=True)  # statute miles
    ceiling = models.IntegerField(blank=True, null=True)  # feet AGL
    wind_speed = models.IntegerField(blank=True, null=True)  # knots
    wind_gust = models.IntegerField(blank=True, null=True)
    wind_direction = models.IntegerField(blank=True, null=True)
    temperature = models.FloatField(blank=True, null=True)  # celsius
    conditions = models.JSONField(default=list, blank=True)

    # Verdict
    result = models.CharField(max_length=10, choices=Result.choices)
    confidence = models.PositiveSmallIntegerField(default=0)
    reasons = models.JSONField(default=list, blank=True)

    # Thresholds applied
    training_level = models.CharField(max_length=30, blank=True, default='')
    flight_type = models.CharField(max_length=30, blank=True, default='')
    required_visibility = models.FloatField(blank=True, null=True)
    required_ceiling = models.IntegerField(blank=True, null=True)
    max_wind_speed = models.IntegerField(blank=True, null=True)

    route_result = models.JSONField(blank=True, null=True)
    forecast_confidence = models.JSONField(blank=True, null=True)

    # booking id + hourly check epoch
    idempotency_key = models.CharField(max_length=100, unique=True, blank=True, null=True)

    checked_at = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        db_table = 'weather_checks'
        ordering = ['-checked_at']
        indexes = [
            models.Index(fields=['location', 'checked_at']),
            models.Index(fields=['booking', 'checked_at']),
        ]

    def __str__(self):
        return f"{self.location} {self.result} @ {self.checked_at:%Y-%m-%d %H:%M}"

    @classmethod
    def latest_for_station(cls, station: str, max_age_minutes: int, now=None):
        """Most recent check for a station no older than ``max_age_minutes``."""
        from datetime import timedelta

        now = now or timezone.now()
        return cls.objects.filter(
            location=station.upper(),
            checked_at__gte=now - timedelta(minutes=max_age_minutes),
        ).exclude(source='').order_by('-checked_at').first()

    @classmethod
    def history_for_booking(cls, booking_id, limit: int = 3):
        """Most recent checks for a booking, newest first."""
        return list(
            cls.objects.filter(booking_id=booking_id).order_by('-checked_at')[:limit]
        )
