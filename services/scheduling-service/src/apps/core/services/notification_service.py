# services/scheduling-service/src/apps/core/services/notification_service.py
"""
Notification Service

Fire-and-forget delivery of scheduling notifications to students and
instructors. Every attempt is recorded in the notification log; delivery
failures are logged and never propagate to the caller.
"""

import logging
from typing import Callable, Dict, List, Optional

from django.conf import settings
from django.core.mail import send_mail
from django.db import DatabaseError

from apps.core.models import Booking, Instructor, Notification

logger = logging.getLogger(__name__)


class DeliverySkipped(Exception):
    """Raised by a channel handler that has no transport to deliver with."""


def _send_email(recipient, subject: str, body: str, metadata: dict):
    if not getattr(recipient, 'email', None):
        raise ValueError(f"No email address for {recipient}")
    send_mail(
        subject,
        body,
        settings.DEFAULT_FROM_EMAIL,
        [recipient.email],
        fail_silently=False,
    )


def _send_sms(recipient, subject: str, body: str, metadata: dict):
    if not getattr(recipient, 'phone', None):
        raise ValueError(f"No phone number for {recipient}")
    # SMS gateway is owned by the notification service
    raise DeliverySkipped('No SMS transport configured')


def _send_in_app(recipient, subject: str, body: str, metadata: dict):
    logger.info(f"In-app notification for {recipient.id}: {subject}")


class NotificationService:
    """
    Delivers notifications over the configured channels.

    Channel handlers take ``(recipient, subject, body, metadata)`` and
    raise on failure.
    """

    DEFAULT_HANDLERS: Dict[str, Callable] = {
        Notification.Channel.EMAIL: _send_email,
        Notification.Channel.SMS: _send_sms,
        Notification.Channel.IN_APP: _send_in_app,
    }

    def __init__(self, channels: List[str] = None, handlers: Dict[str, Callable] = None):
        self.channels = channels or getattr(settings, 'NOTIFICATION_CHANNELS', ['email', 'in_app'])
        self.handlers = dict(self.DEFAULT_HANDLERS)
        if handlers:
            self.handlers.update(handlers)

    def notify(
        self,
        recipient,
        notification_type: str,
        subject: str,
        body: str,
        booking: Optional[Booking] = None,
        metadata: dict = None,
        channels: List[str] = None,
    ) -> List[Notification]:
        """Send over every channel; returns the recorded log entries."""
        if recipient is None:
            return []

        metadata = metadata or {}
        recipient_type = (
            Notification.RecipientType.INSTRUCTOR
            if isinstance(recipient, Instructor)
            else Notification.RecipientType.STUDENT
        )

        records = []
        for channel in channels or self.channels:
            handler = self.handlers.get(channel)
            status = Notification.Status.SENT
            failure_reason = None

            try:
                if handler is None:
                    raise ValueError(f"Unknown notification channel: {channel}")
                handler(recipient, subject, body, metadata)
            except DeliverySkipped as e:
                status = Notification.Status.SKIPPED
                failure_reason = str(e)
                logger.info(f"Notification {notification_type} via {channel} skipped: {e}")
            except Exception as e:
                status = Notification.Status.FAILED
                failure_reason = str(e)
                logger.warning(
                    f"Notification {notification_type} via {channel} to {recipient.id} failed: {e}"
                )

            record = self._record(
                recipient_type=recipient_type,
                recipient_id=recipient.id,
                booking=booking,
                notification_type=notification_type,
                channel=channel,
                subject=subject,
                body=body,
                metadata=metadata,
                status=status,
                failure_reason=failure_reason,
            )
            if record is not None:
                records.append(record)

        return records

    def _record(self, **fields) -> Optional[Notification]:
        try:
            return Notification.objects.create(**fields)
        except DatabaseError as e:
            logger.error(f"Failed to record notification {fields.get('notification_type')}: {e}")
            return None

    # ==========================================================================
    # Scheduling Notifications
    # ==========================================================================

    def notify_weather_conflict(self, booking: Booking, reschedule_request, reasons: List[str], forecast: dict = None):
        options = '\n'.join(
            f"  {i + 1}. {s.get('slot')} ({s.get('confidence', '')})"
            for i, s in enumerate(reschedule_request.suggestions)
        )
        body = (
            f"Your flight {booking.booking_number} on "
            f"{booking.scheduled_start.strftime('%Y-%m-%d %H:%M')} was cancelled due to weather:\n"
            f"  {'; '.join(reasons)}\n\n"
            f"Suggested times:\n{options}\n\n"
            f"Please choose an option before {reschedule_request.expires_at.strftime('%Y-%m-%d %H:%M')}."
        )
        return self.notify(
            booking.student,
            Notification.NotificationType.WEATHER_CONFLICT,
            f"Flight {booking.booking_number} cancelled for weather",
            body,
            booking=booking,
            metadata={
                'reschedule_request_id': str(reschedule_request.id),
                'reasons': reasons,
                'forecast_confidence': forecast,
            },
        )

    def notify_weather_alert(self, booking: Booking, result: str, reasons: List[str], forecast: dict = None):
        body = (
            f"Weather for flight {booking.booking_number} on "
            f"{booking.scheduled_start.strftime('%Y-%m-%d %H:%M')} is {result}:\n"
            f"  {'; '.join(reasons)}\n"
            f"We will keep monitoring and let you know if the flight has to move."
        )
        metadata = {'result': result, 'reasons': reasons, 'forecast_confidence': forecast}

        records = self.notify(
            booking.student,
            Notification.NotificationType.WEATHER_ALERT,
            f"Weather alert for flight {booking.booking_number}",
            body,
            booking=booking,
            metadata=metadata,
        )
        records += self.notify(
            booking.instructor,
            Notification.NotificationType.WEATHER_ALERT,
            f"Weather alert for flight {booking.booking_number}",
            body,
            booking=booking,
            metadata=metadata,
        )
        return records

    def notify_reschedule_expired(self, reschedule_request):
        booking = reschedule_request.booking
        return self.notify(
            reschedule_request.student,
            Notification.NotificationType.RESCHEDULE_EXPIRED,
            f"Reschedule options for {booking.booking_number} expired",
            (
                f"The reschedule options for flight {booking.booking_number} expired "
                f"without a selection. Please contact your school to book a new flight."
            ),
            booking=booking,
            metadata={'reschedule_request_id': str(reschedule_request.id)},
        )

    def notify_reschedule_confirmed(self, reschedule_request):
        new_booking = reschedule_request.new_booking
        subject = f"Flight rescheduled to {new_booking.scheduled_start.strftime('%Y-%m-%d %H:%M')}"
        body = (
            f"Flight {reschedule_request.booking.booking_number} has been rescheduled. "
            f"New booking {new_booking.booking_number} on "
            f"{new_booking.scheduled_start.strftime('%Y-%m-%d %H:%M')}."
        )
        metadata = {
            'reschedule_request_id': str(reschedule_request.id),
            'new_booking_id': str(new_booking.id),
        }

        records = self.notify(
            reschedule_request.student,
            Notification.NotificationType.RESCHEDULE_CONFIRMED,
            subject, body, booking=new_booking, metadata=metadata,
        )
        records += self.notify(
            new_booking.instructor,
            Notification.NotificationType.RESCHEDULE_CONFIRMED,
            subject, body, booking=new_booking, metadata=metadata,
        )
        return records

    def notify_reschedule_failed(self, booking: Booking, error: str):
        return self.notify(
            booking.student,
            Notification.NotificationType.RESCHEDULE_FAILED,
            f"Flight {booking.booking_number} cancelled for weather",
            (
                f"Your flight {booking.booking_number} on "
                f"{booking.scheduled_start.strftime('%Y-%m-%d %H:%M')} was cancelled due to weather. "
                f"We could not prepare reschedule options automatically; "
                f"your school will contact you."
            ),
            booking=booking,
            metadata={'error': error},
        )
