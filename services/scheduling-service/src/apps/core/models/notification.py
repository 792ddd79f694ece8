# services/scheduling-service/src/apps/core/models/notification.py
"""
Notification Model

Delivery log for messages sent to students and instructors.
"""

import uuid

from django.db import models


class Notification(models.Model):
    """Outbound notification and its delivery outcome."""

    class NotificationType(models.TextChoices):
        WEATHER_CONFLICT = 'weather_conflict', 'Weather Conflict'
        WEATHER_ALERT = 'weather_alert', 'Weather Alert'
        RESCHEDULE_EXPIRED = 'reschedule_expired', 'Reschedule Expired'
        RESCHEDULE_CONFIRMED = 'reschedule_confirmed', 'Reschedule Confirmed'
        RESCHEDULE_FAILED = 'reschedule_failed', 'Reschedule Failed'

    class Channel(models.TextChoices):
        EMAIL = 'email', 'Email'
        SMS = 'sms', 'SMS'
        IN_APP = 'in_app', 'In-App'

    class Status(models.TextChoices):
        SENT = 'sent', 'Sent'
        FAILED = 'failed', 'Failed'
        SKIPPED = 'skipped', 'Skipped'

    class RecipientType(models.TextChoices):
        STUDENT = 'student', 'Student'
        INSTRUCTOR = 'instructor', 'Instructor'

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    recipient_type = models.CharField(max_length=20, choices=RecipientType.choices)
    recipient_id = models.UUIDField(db_index=True)
    booking = models.ForeignKey(
        'core.Booking',
        on_delete=models.SET_NULL,
        related_name='notifications',
        blank=True,
        null=True
    )

    notification_type = models.CharField(max_length=30, choices=NotificationType.choices)
    channel = models.CharField(max_length=10, choices=Channel.choices)
    subject = models.CharField(max_length=255)
    body = models.TextField()
    metadata = models.JSONField(default=dict, blank=True)

    status = models.CharField(max_length=10, choices=Status.choices)
    failure_reason = models.TextField(blank=True, null=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'notifications'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['recipient_id', 'created_at']),
        ]

    def __str__(self):
        return f"{self.notification_type} -> {self.recipient_type}:{self.recipient_id} ({self.status})"
