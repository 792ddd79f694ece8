# services/scheduling-service/src/apps/api/serializers/reschedule_serializers.py
"""
Reschedule Request Serializers
"""

from rest_framework import serializers

from apps.core.models import RescheduleRequest


class RescheduleRequestSerializer(serializers.ModelSerializer):
    """Reschedule request with its suggestions."""

    status_display = serializers.CharField(
        source='get_status_display',
        read_only=True
    )
    is_pending = serializers.BooleanField(read_only=True)
    selected_suggestion = serializers.JSONField(read_only=True)

    class Meta:
        model = RescheduleRequest
        fields = [
            'id', 'booking', 'student', 'weather_check',
            'suggestions', 'generator', 'priority_factors',
            'selected_option', 'selected_suggestion',
            'status', 'status_display', 'is_pending', 'expires_at',
            'student_confirmed_at', 'instructor_confirmed_at',
            'rejected_by', 'rejection_reason', 'expired_at',
            'new_booking', 'created_at', 'updated_at',
        ]
        read_only_fields = fields


class RescheduleStatusSerializer(serializers.ModelSerializer):
    is_pending = serializers.BooleanField(read_only=True)

    class Meta:
        model = RescheduleRequest
        fields = ['id', 'status', 'is_pending', 'expires_at', 'new_booking']
        read_only_fields = fields


class SelectOptionSerializer(serializers.Serializer):
    option_index = serializers.IntegerField(min_value=0)


class RejectRescheduleSerializer(serializers.Serializer):
    rejected_by = serializers.ChoiceField(choices=['student', 'instructor'])
    reason = serializers.CharField(required=False, allow_blank=True, default='')
