# services/scheduling-service/src/apps/core/services/booking_service.py
"""
Booking Service

Transactional booking lifecycle: create, update, confirm and cancel.
"""

import uuid
import logging
from datetime import datetime
from typing import Optional, List

from django.db import transaction
from django.utils import timezone

from apps.core.models import Aircraft, Booking, Instructor, Student

from .availability_service import AvailabilityService

logger = logging.getLogger(__name__)


class BookingService:
    """
    Service for managing bookings.

    Every write that changes the resources or window of a booking locks
    the aircraft, instructor and student rows and re-runs the conflict
    check inside the same transaction, so two concurrent requests for the
    same slot cannot both succeed.
    """

    def __init__(self, availability_service: AvailabilityService = None):
        self.availability_service = availability_service or AvailabilityService()

    # ==========================================================================
    # Booking CRUD
    # ==========================================================================

    @transaction.atomic
    def create_booking(
        self,
        student_id: uuid.UUID,
        aircraft_id: uuid.UUID,
        scheduled_start: datetime,
        scheduled_end: datetime,
        departure_airport: str,
        instructor_id: uuid.UUID = None,
        flight_type: str = Booking.FlightType.DUAL_INSTRUCTION,
        status: str = Booking.Status.PENDING,
        **kwargs
    ) -> Booking:
        """Create a new booking with full validation."""
        from . import BookingValidationError

        # 1. Basic time validation
        self._validate_times(scheduled_start, scheduled_end)

        if not departure_airport:
            raise BookingValidationError("Departure airport is required")

        # 2. Lock resources
        student, aircraft, instructor = self._lock_resources(student_id, aircraft_id, instructor_id)

        if aircraft.status != Aircraft.Status.AVAILABLE:
            raise BookingValidationError(f"Aircraft {aircraft.tail_number} is {aircraft.status}")
        if not student.is_active:
            raise BookingValidationError(f"Student {student.id} is not active")
        if instructor is not None and not instructor.is_active:
            raise BookingValidationError(f"Instructor {instructor.id} is not active")

        # 3. Re-check conflicts under the locks
        self._ensure_available(
            student_id, aircraft_id, scheduled_start, scheduled_end,
            instructor_id=instructor_id,
        )

        # 4. Create booking
        booking = Booking.objects.create(
            school=kwargs.pop('school', None) or student.school,
            student=student,
            instructor=instructor,
            aircraft=aircraft,
            flight_type=flight_type,
            scheduled_start=scheduled_start,
            scheduled_end=scheduled_end,
            departure_airport=departure_airport.upper(),
            status=status,
            **kwargs
        )

        logger.info(
            f"Created booking {booking.booking_number} for "
            f"{scheduled_start.strftime('%Y-%m-%d %H:%M')}",
            extra={'booking_id': str(booking.id), 'aircraft_id': str(aircraft_id)},
        )

        return booking

    def get_booking(self, booking_id: uuid.UUID) -> Booking:
        """Get a booking by ID."""
        from . import BookingNotFoundError

        try:
            return Booking.objects.select_related(
                'student', 'instructor', 'aircraft', 'school'
            ).get(id=booking_id)
        except Booking.DoesNotExist:
            raise BookingNotFoundError(f"Booking {booking_id} not found")

    def list_upcoming(self, hours_ahead: int, school_id: uuid.UUID = None) -> List[Booking]:
        """Active bookings starting within the next ``hours_ahead`` hours."""
        queryset = Booking.get_upcoming(hours_ahead)
        if school_id:
            queryset = queryset.filter(school_id=school_id)
        return list(queryset.select_related('student', 'instructor', 'aircraft', 'school'))

    @transaction.atomic
    def update_booking(self, booking_id: uuid.UUID, **kwargs) -> Booking:
        """Move a booking or swap its resources."""
        from . import BookingStateError

        booking = self.get_booking(booking_id)

        if not booking.is_active:
            raise BookingStateError(f"Cannot update booking in {booking.status} status")

        new_start = kwargs.get('scheduled_start', booking.scheduled_start)
        new_end = kwargs.get('scheduled_end', booking.scheduled_end)
        new_aircraft = kwargs.get('aircraft_id', booking.aircraft_id)
        new_instructor = kwargs.get('instructor_id', booking.instructor_id)

        if (new_start != booking.scheduled_start or
            new_end != booking.scheduled_end or
            new_aircraft != booking.aircraft_id or
            new_instructor != booking.instructor_id):

            self._validate_times(new_start, new_end)
            self._lock_resources(booking.student_id, new_aircraft, new_instructor)
            self._ensure_available(
                booking.student_id, new_aircraft, new_start, new_end,
                instructor_id=new_instructor,
                exclude_booking_id=booking.id,
            )

            # Padding follows the new window
            booking.briefing_start = None
            booking.debrief_end = None

        allowed_fields = [
            'scheduled_start', 'scheduled_end', 'aircraft_id', 'instructor_id',
            'flight_type', 'departure_airport', 'destination_airport', 'route', 'notes',
        ]

        for field, value in kwargs.items():
            if field in allowed_fields:
                setattr(booking, field, value)

        booking.save()

        logger.info(f"Updated booking {booking.booking_number}")
        return booking

    # ==========================================================================
    # Status Transitions
    # ==========================================================================

    def confirm(self, booking_id: uuid.UUID) -> Booking:
        """Confirm a booking."""
        from . import BookingStateError

        booking = self.get_booking(booking_id)
        try:
            booking.confirm()
        except ValueError as e:
            raise BookingStateError(str(e))

        logger.info(f"Confirmed booking {booking.booking_number}")
        return booking

    def cancel(
        self,
        booking_id: uuid.UUID,
        reason: str,
        cancellation_type: str = Booking.Status.STUDENT_CANCELLED,
    ) -> Booking:
        """Cancel a booking with one of the cancelled statuses."""
        from . import BookingStateError, BookingValidationError

        if cancellation_type not in Booking.get_cancelled_statuses():
            raise BookingValidationError(f"Invalid cancellation type: {cancellation_type}")

        booking = self.get_booking(booking_id)

        if not booking.is_active:
            raise BookingStateError(f"Cannot cancel: booking status is {booking.status}")

        booking.status = cancellation_type
        booking.cancelled_at = timezone.now()
        booking.cancellation_reason = reason
        booking.save(update_fields=['status', 'cancelled_at', 'cancellation_reason', 'updated_at'])

        logger.info(f"Cancelled booking {booking.booking_number} ({cancellation_type})")
        return booking

    # ==========================================================================
    # Helpers
    # ==========================================================================

    def _validate_times(self, start: datetime, end: datetime):
        from . import BookingValidationError

        if start is None or end is None:
            raise BookingValidationError("Start and end times are required")

        if end <= start:
            raise BookingValidationError("End time must be after start time")

    def _lock_resources(
        self,
        student_id: uuid.UUID,
        aircraft_id: uuid.UUID,
        instructor_id: Optional[uuid.UUID],
    ):
        """Row-lock the resources in a fixed order: aircraft, instructor, student."""
        from . import BookingValidationError

        try:
            aircraft = Aircraft.objects.select_for_update().get(id=aircraft_id)
        except Aircraft.DoesNotExist:
            raise BookingValidationError(f"Aircraft {aircraft_id} not found")

        instructor = None
        if instructor_id:
            try:
                instructor = Instructor.objects.select_for_update().get(id=instructor_id)
            except Instructor.DoesNotExist:
                raise BookingValidationError(f"Instructor {instructor_id} not found")

        try:
            student = Student.objects.select_for_update().get(id=student_id)
        except Student.DoesNotExist:
            raise BookingValidationError(f"Student {student_id} not found")

        return student, aircraft, instructor

    def _ensure_available(self, student_id, aircraft_id, start, end, instructor_id=None, exclude_booking_id=None):
        from . import BookingConflictError

        result = self.availability_service.check_availability(
            student_id,
            aircraft_id,
            start,
            end,
            instructor_id=instructor_id,
            exclude_booking_id=exclude_booking_id,
        )

        if not result.is_available:
            conflict_msgs = [c['message'] for c in result.conflicts]
            raise BookingConflictError(
                f"Conflicts detected: {', '.join(conflict_msgs)}",
                conflicts=result.conflicts,
            )
