# services/scheduling-service/src/apps/core/models/booking.py
"""
Booking Model

Scheduled training flight for a student, optional instructor and aircraft.
"""

import uuid
from datetime import timedelta

from django.conf import settings
from django.db import models
from django.db.models import Q
from django.utils import timezone


class Booking(models.Model):
    """
    Booking model for training flights.

    Tracks the resources used, the briefing/debrief padding around the
    flight and the status workflow driven by weather and reschedules.
    """

    class FlightType(models.TextChoices):
        DUAL_INSTRUCTION = 'dual_instruction', 'Dual Instruction'
        SOLO_SUPERVISED = 'solo_supervised', 'Solo (Supervised)'
        SOLO_UNSUPERVISED = 'solo_unsupervised', 'Solo (Unsupervised)'
        CHECKRIDE = 'checkride', 'Checkride'
        STAGE_CHECK = 'stage_check', 'Stage Check'
        DISCOVERY_FLIGHT = 'discovery_flight', 'Discovery Flight'

    class Status(models.TextChoices):
        PENDING = 'pending', 'Pending'
        CONFIRMED = 'confirmed', 'Confirmed'
        IN_PROGRESS = 'in_progress', 'In Progress'
        COMPLETED = 'completed', 'Completed'
        WEATHER_CANCELLED = 'weather_cancelled', 'Cancelled (Weather)'
        MAINTENANCE_CANCELLED = 'maintenance_cancelled', 'Cancelled (Maintenance)'
        STUDENT_CANCELLED = 'student_cancelled', 'Cancelled (Student)'
        INSTRUCTOR_CANCELLED = 'instructor_cancelled', 'Cancelled (Instructor)'
        RESCHEDULED = 'rescheduled', 'Rescheduled'

    # Primary Key
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    booking_number = models.CharField(max_length=24, unique=True, db_index=True)

    # Resources
    school = models.ForeignKey(
        'core.School',
        on_delete=models.PROTECT,
        related_name='bookings',
        blank=True,
        null=True
    )
    student = models.ForeignKey(
        'core.Student',
        on_delete=models.PROTECT,
        related_name='bookings'
    )
    instructor = models.ForeignKey(
        'core.Instructor',
        on_delete=models.PROTECT,
        related_name='bookings',
        blank=True,
        null=True
    )
    aircraft = models.ForeignKey(
        'core.Aircraft',
        on_delete=models.PROTECT,
        related_name='bookings'
    )

    flight_type = models.CharField(
        max_length=30,
        choices=FlightType.choices,
        default=FlightType.DUAL_INSTRUCTION
    )

    # Scheduled Time
    scheduled_start = models.DateTimeField(db_index=True)
    scheduled_end = models.DateTimeField()
    briefing_start = models.DateTimeField(blank=True, null=True)
    debrief_end = models.DateTimeField(blank=True, null=True)

    # Route
    departure_airport = models.CharField(max_length=4)
    destination_airport = models.CharField(max_length=4, blank=True, null=True)
    route = models.JSONField(default=list, blank=True)

    # Status
    status = models.CharField(
        max_length=30,
        choices=Status.choices,
        default=Status.PENDING,
        db_index=True
    )
    cancelled_at = models.DateTimeField(blank=True, null=True)
    cancellation_reason = models.TextField(blank=True, null=True)

    rescheduled_from = models.OneToOneField(
        'self',
        on_delete=models.SET_NULL,
        related_name='rescheduled_to',
        blank=True,
        null=True
    )

    notes = models.TextField(blank=True, null=True)
    metadata = models.JSONField(default=dict, blank=True)

    # Audit
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'bookings'
        ordering = ['scheduled_start']
        indexes = [
            models.Index(fields=['aircraft', 'scheduled_start', 'scheduled_end']),
            models.Index(fields=['instructor', 'scheduled_start', 'scheduled_end']),
            models.Index(fields=['student', 'scheduled_start']),
            models.Index(fields=['status', 'scheduled_start']),
        ]
        constraints = [
            models.CheckConstraint(
                check=models.Q(scheduled_end__gt=models.F('scheduled_start')),
                name='valid_booking_times'
            ),
        ]

    def __str__(self):
        return f"{self.booking_number}: {self.scheduled_start.strftime('%Y-%m-%d %H:%M')}"

    def save(self, *args, **kwargs):
        if not self.booking_number:
            self.booking_number = self._generate_booking_number()

        # Briefing and debrief padding
        if self.scheduled_start and not self.briefing_start:
            self.briefing_start = self.scheduled_start - timedelta(
                minutes=getattr(settings, 'BRIEFING_MINUTES', 30)
            )
        if self.scheduled_end and not self.debrief_end:
            self.debrief_end = self.scheduled_end + timedelta(
                minutes=getattr(settings, 'DEBRIEF_MINUTES', 20)
            )

        super().save(*args, **kwargs)

    def _generate_booking_number(self) -> str:
        """Generate a unique booking number."""
        date_str = timezone.now().strftime('%Y%m%d')
        return f"BK-{date_str}-{uuid.uuid4().hex[:6].upper()}"

    # ==========================================================================
    # Properties
    # ==========================================================================

    @property
    def duration_minutes(self) -> int:
        return int((self.scheduled_end - self.scheduled_start).total_seconds() / 60)

    @property
    def hours_until_start(self) -> float:
        """Hours until scheduled start."""
        delta = self.scheduled_start - timezone.now()
        return delta.total_seconds() / 3600

    @property
    def is_active(self) -> bool:
        """Booking still holds its resources."""
        return self.status in self.get_blocking_statuses()

    @property
    def is_cross_country(self) -> bool:
        return len(self.route_codes) > 1 and len(set(self.route_codes)) > 1

    @property
    def route_codes(self) -> list:
        """Airports flown, departure first."""
        if self.route:
            return [code.upper() for code in self.route]
        codes = [self.departure_airport.upper()]
        if self.destination_airport and self.destination_airport.upper() != codes[0]:
            codes.append(self.destination_airport.upper())
        return codes

    # ==========================================================================
    # Status Transitions
    # ==========================================================================

    def confirm(self):
        """Confirm the booking."""
        if self.status != self.Status.PENDING:
            raise ValueError(f"Cannot confirm booking in {self.status} status")

        self.status = self.Status.CONFIRMED
        self.save(update_fields=['status', 'updated_at'])

    def cancel_for_weather(self, reason: str):
        """Cancel the booking because weather is below minimums."""
        if not self.is_active:
            raise ValueError(f"Cannot cancel booking in {self.status} status")

        self.status = self.Status.WEATHER_CANCELLED
        self.cancelled_at = timezone.now()
        self.cancellation_reason = reason
        self.save(update_fields=['status', 'cancelled_at', 'cancellation_reason', 'updated_at'])

    def mark_rescheduled(self):
        """Mark a cancelled booking as replaced by a new one."""
        if self.status == self.Status.RESCHEDULED:
            return
        if self.status not in self.get_cancelled_statuses():
            raise ValueError(f"Cannot reschedule booking in {self.status} status")

        self.status = self.Status.RESCHEDULED
        self.save(update_fields=['status', 'updated_at'])

    # ==========================================================================
    # Class Methods
    # ==========================================================================

    @classmethod
    def get_blocking_statuses(cls) -> list:
        """Statuses that hold aircraft, instructor and student."""
        return [
            cls.Status.PENDING,
            cls.Status.CONFIRMED,
        ]

    @classmethod
    def get_cancelled_statuses(cls) -> list:
        return [
            cls.Status.WEATHER_CANCELLED,
            cls.Status.MAINTENANCE_CANCELLED,
            cls.Status.STUDENT_CANCELLED,
            cls.Status.INSTRUCTOR_CANCELLED,
        ]

    @classmethod
    def get_overlapping(cls, start, end, exclude_booking_id=None):
        """Blocking bookings whose scheduled window overlaps [start, end)."""
        queryset = cls.objects.filter(
            status__in=cls.get_blocking_statuses()
        ).filter(
            Q(scheduled_start__lt=end) & Q(scheduled_end__gt=start)
        )

        if exclude_booking_id:
            queryset = queryset.exclude(id=exclude_booking_id)

        return queryset

    @classmethod
    def get_upcoming(cls, hours_ahead: int, now=None):
        """Blocking bookings starting within the next ``hours_ahead`` hours."""
        now = now or timezone.now()
        return cls.objects.filter(
            status__in=cls.get_blocking_statuses(),
            scheduled_start__gte=now,
            scheduled_start__lte=now + timedelta(hours=hours_ahead),
        ).order_by('scheduled_start')
