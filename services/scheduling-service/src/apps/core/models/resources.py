# services/scheduling-service/src/apps/core/models/resources.py
"""
Resource Models

Local read models for schools, students, instructors and aircraft.
The owning services publish changes; the scheduler keeps the fields it
needs to check availability and derive weather minimums.
"""

import uuid

from django.db import models


class TrainingLevel(models.TextChoices):
    EARLY_STUDENT = 'early_student', 'Early Student'
    MID_STUDENT = 'mid_student', 'Mid Student'
    ADVANCED_STUDENT = 'advanced_student', 'Advanced Student'
    PRIVATE_PILOT = 'private_pilot', 'Private Pilot'
    INSTRUMENT_RATED = 'instrument_rated', 'Instrument Rated'
    COMMERCIAL_PILOT = 'commercial_pilot', 'Commercial Pilot'


class School(models.Model):
    """Flight school operating from a home airport."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=255)
    airport_code = models.CharField(max_length=4, db_index=True)
    latitude = models.FloatField(blank=True, null=True)
    longitude = models.FloatField(blank=True, null=True)

    # Premium weather provider subscription
    weather_api_enabled = models.BooleanField(default=False)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'schools'
        ordering = ['name']

    def __str__(self):
        return f"{self.name} ({self.airport_code})"


class Instructor(models.Model):
    """Flight instructor."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    school = models.ForeignKey(
        School,
        on_delete=models.CASCADE,
        related_name='instructors',
        blank=True,
        null=True
    )
    name = models.CharField(max_length=255)
    email = models.EmailField(blank=True, null=True)
    phone = models.CharField(max_length=32, blank=True, null=True)

    # [{"day_of_week": 0-6, "start": "HH:MM", "end": "HH:MM"}]
    availability = models.JSONField(default=list, blank=True)

    is_active = models.BooleanField(default=True)

    class Meta:
        db_table = 'instructors'
        ordering = ['name']

    def __str__(self):
        return self.name


class Student(models.Model):
    """Student pilot."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    school = models.ForeignKey(
        School,
        on_delete=models.CASCADE,
        related_name='students',
        blank=True,
        null=True
    )
    name = models.CharField(max_length=255)
    email = models.EmailField(blank=True, null=True)
    phone = models.CharField(max_length=32, blank=True, null=True)

    training_level = models.CharField(
        max_length=30,
        choices=TrainingLevel.choices,
        default=TrainingLevel.EARLY_STUDENT
    )
    training_stage = models.CharField(max_length=100, blank=True, default='')
    total_flight_hours = models.FloatField(default=0)
    last_flight_date = models.DateField(blank=True, null=True)

    # [{"day_of_week": 0-6, "start": "HH:MM", "end": "HH:MM"}]
    availability = models.JSONField(default=list, blank=True)
    preferred_instructor = models.ForeignKey(
        Instructor,
        on_delete=models.SET_NULL,
        related_name='preferred_by',
        blank=True,
        null=True
    )

    is_active = models.BooleanField(default=True)

    class Meta:
        db_table = 'students'
        ordering = ['name']

    def __str__(self):
        return self.name


class Aircraft(models.Model):
    """Training aircraft and its operating limits."""

    class Status(models.TextChoices):
        AVAILABLE = 'available', 'Available'
        MAINTENANCE = 'maintenance', 'In Maintenance'
        OUT_OF_SERVICE = 'out_of_service', 'Out of Service'

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    school = models.ForeignKey(
        School,
        on_delete=models.CASCADE,
        related_name='aircraft',
        blank=True,
        null=True
    )
    tail_number = models.CharField(max_length=10, unique=True)
    aircraft_type = models.CharField(max_length=50, blank=True, default='')

    # Limits in knots; null means no aircraft-specific limit
    crosswind_limit = models.PositiveIntegerField(blank=True, null=True)
    max_wind = models.PositiveIntegerField(blank=True, null=True)
    is_imc_capable = models.BooleanField(default=False)

    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.AVAILABLE,
        db_index=True
    )

    class Meta:
        db_table = 'aircraft'
        ordering = ['tail_number']
        verbose_name_plural = 'aircraft'

    def __str__(self):
        return f"{self.tail_number} ({self.aircraft_type})"

    @property
    def capability(self):
        """Operating limits used by the minimums policy."""
        from apps.core.services.minimums import AircraftCapability

        return AircraftCapability(
            crosswind_limit=self.crosswind_limit,
            max_wind=self.max_wind,
            is_imc_capable=self.is_imc_capable,
        )
