# services/scheduling-service/src/apps/api/serializers/booking_serializers.py
"""
Booking Serializers
"""

from rest_framework import serializers

from apps.core.models import Booking


class BookingSerializer(serializers.ModelSerializer):
    """Booking with its resources and weather-driven status."""

    status_display = serializers.CharField(
        source='get_status_display',
        read_only=True
    )
    flight_type_display = serializers.CharField(
        source='get_flight_type_display',
        read_only=True
    )
    duration_minutes = serializers.IntegerField(read_only=True)
    route_codes = serializers.ListField(child=serializers.CharField(), read_only=True)
    rescheduled_to = serializers.SerializerMethodField()

    class Meta:
        model = Booking
        fields = [
            'id', 'booking_number', 'school', 'student', 'instructor', 'aircraft',
            'flight_type', 'flight_type_display',
            'scheduled_start', 'scheduled_end', 'briefing_start', 'debrief_end',
            'duration_minutes',
            'departure_airport', 'destination_airport', 'route', 'route_codes',
            'status', 'status_display', 'cancelled_at', 'cancellation_reason',
            'rescheduled_from', 'rescheduled_to',
            'notes', 'created_at', 'updated_at',
        ]
        read_only_fields = fields

    def get_rescheduled_to(self, obj):
        replacement = getattr(obj, 'rescheduled_to', None)
        return str(replacement.id) if replacement else None


class AvailabilityCheckSerializer(serializers.Serializer):
    """Slot and resources to check for conflicts."""

    student_id = serializers.UUIDField()
    aircraft_id = serializers.UUIDField()
    instructor_id = serializers.UUIDField(required=False, allow_null=True)
    start = serializers.DateTimeField()
    end = serializers.DateTimeField()
    exclude_booking_id = serializers.UUIDField(required=False, allow_null=True)

    def validate(self, attrs):
        if attrs['end'] <= attrs['start']:
            raise serializers.ValidationError({'end': 'End time must be after start time'})
        return attrs


class WatchListQuerySerializer(serializers.Serializer):
    school_id = serializers.UUIDField(required=False)
    hours_ahead = serializers.IntegerField(default=24, min_value=1, max_value=168)
