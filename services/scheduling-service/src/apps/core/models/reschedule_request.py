# services/scheduling-service/src/apps/core/models/reschedule_request.py
"""
Reschedule Request Model

Suggested replacement slots for a weather-cancelled booking and the
student/instructor confirmation workflow.
"""

import uuid

from django.db import models
from django.db.models import Q
from django.utils import timezone


class RescheduleRequest(models.Model):
    """
    Reschedule request for a cancelled booking.

    Workflow: pending_student -> pending_instructor -> accepted.
    Either pending state may move to rejected or expired.
    """

    class Status(models.TextChoices):
        PENDING_STUDENT = 'pending_student', 'Pending Student'
        PENDING_INSTRUCTOR = 'pending_instructor', 'Pending Instructor'
        ACCEPTED = 'accepted', 'Accepted'
        REJECTED = 'rejected', 'Rejected'
        EXPIRED = 'expired', 'Expired'

    class Generator(models.TextChoices):
        AI = 'ai', 'AI'
        RULE_BASED = 'rule_based', 'Rule Based'

    PENDING_STATUSES = [Status.PENDING_STUDENT, Status.PENDING_INSTRUCTOR]
    TERMINAL_STATUSES = [Status.ACCEPTED, Status.REJECTED, Status.EXPIRED]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    booking = models.ForeignKey(
        'core.Booking',
        on_delete=models.CASCADE,
        related_name='reschedule_requests'
    )
    student = models.ForeignKey(
        'core.Student',
        on_delete=models.CASCADE,
        related_name='reschedule_requests'
    )
    weather_check = models.ForeignKey(
        'core.WeatherCheck',
        on_delete=models.SET_NULL,
        related_name='reschedule_requests',
        blank=True,
        null=True
    )

    # [{"slot": iso, "end": iso, "instructor_id", "aircraft_id",
    #   "priority", "reasoning", "confidence", "weather_forecast"}]
    suggestions = models.JSONField(default=list)
    generator = models.CharField(
        max_length=20,
        choices=Generator.choices,
        default=Generator.RULE_BASED
    )
    priority_factors = models.JSONField(default=dict, blank=True)

    selected_option = models.PositiveSmallIntegerField(blank=True, null=True)
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.PENDING_STUDENT,
        db_index=True
    )
    expires_at = models.DateTimeField(db_index=True)

    student_confirmed_at = models.DateTimeField(blank=True, null=True)
    instructor_confirmed_at = models.DateTimeField(blank=True, null=True)
    rejected_by = models.CharField(max_length=20, blank=True, null=True)
    rejection_reason = models.TextField(blank=True, null=True)
    expired_at = models.DateTimeField(blank=True, null=True)

    new_booking = models.OneToOneField(
        'core.Booking',
        on_delete=models.SET_NULL,
        related_name='source_reschedule_request',
        blank=True,
        null=True
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'reschedule_requests'
        ordering = ['-created_at']
        constraints = [
            models.UniqueConstraint(
                fields=['booking'],
                condition=Q(status__in=['pending_student', 'pending_instructor']),
                name='one_active_reschedule_per_booking'
            ),
        ]
        indexes = [
            models.Index(fields=['status', 'expires_at']),
        ]

    def __str__(self):
        return f"Reschedule {self.id} for {self.booking_id} ({self.status})"

    @property
    def is_pending(self) -> bool:
        return self.status in self.PENDING_STATUSES

    @property
    def is_terminal(self) -> bool:
        return self.status in self.TERMINAL_STATUSES

    def is_expired(self, now=None) -> bool:
        now = now or timezone.now()
        return self.is_pending and self.expires_at <= now

    @property
    def selected_suggestion(self):
        if self.selected_option is None:
            return None
        if self.selected_option >= len(self.suggestions):
            return None
        return self.suggestions[self.selected_option]

    @classmethod
    def get_active_for_booking(cls, booking_id):
        return cls.objects.filter(
            booking_id=booking_id,
            status__in=cls.PENDING_STATUSES
        ).first()

    @classmethod
    def get_overdue(cls, now=None):
        now = now or timezone.now()
        return cls.objects.filter(
            status__in=cls.PENDING_STATUSES,
            expires_at__lte=now
        )
