# services/scheduling-service/src/apps/core/events.py
"""
Scheduling Service Events

Domain events for weather checks and reschedules. Publishing is best
effort: a failing backend is logged and never fails the caller.
"""

import json
import logging
from datetime import datetime, timezone as dt_timezone
from decimal import Decimal
from typing import Any, Dict
from uuid import UUID

import redis
from django.conf import settings

logger = logging.getLogger(__name__)


class EventType:
    """Event type constants for scheduling service."""

    WEATHER_CHECK_COMPLETED = 'weather_check.completed'
    BOOKING_WEATHER_CANCELLED = 'booking.weather_cancelled'

    RESCHEDULE_CREATED = 'reschedule.created'
    RESCHEDULE_ACCEPTED = 'reschedule.accepted'
    RESCHEDULE_REJECTED = 'reschedule.rejected'
    RESCHEDULE_EXPIRED = 'reschedule.expired'


class JSONEncoder(json.JSONEncoder):
    """Custom JSON encoder for event payloads."""

    def default(self, obj):
        if isinstance(obj, UUID):
            return str(obj)
        if isinstance(obj, datetime):
            return obj.isoformat()
        if isinstance(obj, Decimal):
            return float(obj)
        return super().default(obj)


class EventPublisher:
    """
    Event publisher for scheduling service.

    Backends: ``log`` (default) and ``redis`` pub/sub on
    ``events:<event_type>``.
    """

    def __init__(self, backend: str = None):
        self.service_name = getattr(settings, 'SERVICE_NAME', 'scheduling-service')
        self.enabled = getattr(settings, 'EVENT_PUBLISHING_ENABLED', True)
        self.backend = backend or getattr(settings, 'EVENT_BACKEND', 'log')
        self._redis = None

    def publish(
        self,
        event_type: str,
        payload: Dict[str, Any],
        correlation_id: str = None,
    ) -> bool:
        """
        Publish an event.

        Returns:
            True if published successfully, False otherwise
        """
        if not self.enabled:
            logger.debug(f"Event publishing disabled, skipping: {event_type}")
            return False

        event = {
            'event_type': event_type,
            'service': self.service_name,
            'timestamp': datetime.now(dt_timezone.utc).isoformat(),
            'correlation_id': correlation_id,
            'payload': payload,
        }

        try:
            event_json = json.dumps(event, cls=JSONEncoder)

            logger.info(f"Publishing event: {event_type}", extra={'event_type': event_type})

            if self.backend == 'redis':
                self._publish_redis(event_type, event_json)
            else:
                logger.debug(f"Event payload: {event_json[:500]}")

            return True

        except Exception as e:
            logger.error(f"Failed to publish event {event_type}: {e}")
            return False

    def _publish_redis(self, event_type: str, event_json: str):
        """Publish to Redis pub/sub."""
        if self._redis is None:
            self._redis = redis.Redis.from_url(settings.REDIS_URL)
        self._redis.publish(f"events:{event_type}", event_json)


# Global event publisher instance
event_publisher = EventPublisher()


# Convenience functions for publishing specific events
def publish_weather_check_completed(weather_check):
    event_publisher.publish(
        EventType.WEATHER_CHECK_COMPLETED,
        payload={
            'weather_check_id': weather_check.id,
            'booking_id': weather_check.booking_id,
            'location': weather_check.location,
            'result': weather_check.result,
            'confidence': weather_check.confidence,
            'reasons': weather_check.reasons,
            'checked_at': weather_check.checked_at,
        },
    )


def publish_booking_weather_cancelled(booking, reasons):
    event_publisher.publish(
        EventType.BOOKING_WEATHER_CANCELLED,
        payload={
            'booking_id': booking.id,
            'booking_number': booking.booking_number,
            'student_id': booking.student_id,
            'instructor_id': booking.instructor_id,
            'aircraft_id': booking.aircraft_id,
            'scheduled_start': booking.scheduled_start,
            'reasons': list(reasons),
        },
    )


def _reschedule_payload(reschedule_request) -> Dict[str, Any]:
    return {
        'reschedule_request_id': reschedule_request.id,
        'booking_id': reschedule_request.booking_id,
        'student_id': reschedule_request.student_id,
        'status': reschedule_request.status,
        'generator': reschedule_request.generator,
        'expires_at': reschedule_request.expires_at,
    }


def publish_reschedule_created(reschedule_request):
    event_publisher.publish(
        EventType.RESCHEDULE_CREATED,
        payload={
            **_reschedule_payload(reschedule_request),
            'suggestion_count': len(reschedule_request.suggestions),
        },
    )


def publish_reschedule_accepted(reschedule_request):
    event_publisher.publish(
        EventType.RESCHEDULE_ACCEPTED,
        payload={
            **_reschedule_payload(reschedule_request),
            'selected_option': reschedule_request.selected_option,
            'new_booking_id': reschedule_request.new_booking_id,
        },
    )


def publish_reschedule_rejected(reschedule_request):
    event_publisher.publish(
        EventType.RESCHEDULE_REJECTED,
        payload={
            **_reschedule_payload(reschedule_request),
            'rejected_by': reschedule_request.rejected_by,
            'reason': reschedule_request.rejection_reason,
        },
    )


def publish_reschedule_expired(reschedule_request):
    event_publisher.publish(
        EventType.RESCHEDULE_EXPIRED,
        payload=_reschedule_payload(reschedule_request),
    )
