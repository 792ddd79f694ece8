# services/scheduling-service/src/apps/core/services/availability_service.py
"""
Availability Service

Conflict detection for aircraft, instructor and student time.
"""

import uuid
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional, Dict, Any, List

from django.conf import settings

from apps.core.models import Booking

logger = logging.getLogger(__name__)


@dataclass
class AvailabilityResult:
    is_available: bool
    conflicts: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def conflict_types(self) -> List[str]:
        return sorted({c['type'] for c in self.conflicts})

    def to_dict(self) -> Dict[str, Any]:
        return {
            'is_available': self.is_available,
            'conflicts': self.conflicts,
        }


class AvailabilityService:
    """
    Service for resource availability checks.

    Every resource is checked on its own so a single slot can report an
    aircraft conflict and a student conflict at the same time.
    """

    def __init__(self, buffer_minutes: int = None):
        self.buffer_minutes = (
            buffer_minutes
            if buffer_minutes is not None
            else getattr(settings, 'BOOKING_BUFFER_MINUTES', 30)
        )

    def check_availability(
        self,
        student_id: uuid.UUID,
        aircraft_id: uuid.UUID,
        start: datetime,
        end: datetime,
        instructor_id: Optional[uuid.UUID] = None,
        exclude_booking_id: Optional[uuid.UUID] = None,
    ) -> AvailabilityResult:
        """
        Check that no pending or confirmed booking uses the same resources
        within ``buffer_minutes`` of the requested window.
        """
        buffer = timedelta(minutes=self.buffer_minutes)
        overlapping = Booking.get_overlapping(
            start - buffer,
            end + buffer,
            exclude_booking_id=exclude_booking_id,
        )

        conflicts = []
        conflicts.extend(self._conflicts_for(overlapping, 'aircraft', aircraft_id))
        if instructor_id:
            conflicts.extend(self._conflicts_for(overlapping, 'instructor', instructor_id))
        conflicts.extend(self._conflicts_for(overlapping, 'student', student_id))

        if conflicts:
            logger.info(
                f"Slot {start.isoformat()} - {end.isoformat()} unavailable: "
                f"{len(conflicts)} conflict(s)"
            )

        return AvailabilityResult(is_available=not conflicts, conflicts=conflicts)

    def is_available(self, *args, **kwargs) -> bool:
        return self.check_availability(*args, **kwargs).is_available

    def _conflicts_for(self, queryset, resource_type: str, resource_id) -> List[Dict[str, Any]]:
        bookings = queryset.filter(**{f'{resource_type}_id': resource_id}).order_by('scheduled_start')

        return [
            {
                'type': resource_type,
                'resource_id': str(resource_id),
                'booking_id': str(booking.id),
                'booking_number': booking.booking_number,
                'start': booking.scheduled_start.isoformat(),
                'end': booking.scheduled_end.isoformat(),
                'message': (
                    f"{resource_type.capitalize()} already booked "
                    f"{booking.scheduled_start.strftime('%Y-%m-%d %H:%M')}-"
                    f"{booking.scheduled_end.strftime('%H:%M')} ({booking.booking_number})"
                ),
            }
            for booking in bookings
        ]
