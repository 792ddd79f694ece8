# services/scheduling-service/src/apps/api/serializers/weather_serializers.py
"""
Weather Serializers

Input validation for weather lookups, route checks and cache warming.
"""

import re

from rest_framework import serializers

from apps.core.models import Booking, TrainingLevel, WeatherCheck

AIRPORT_CODE_RE = re.compile(r'^[A-Za-z]{4}$')


def validate_airport_code(value: str) -> str:
    if not AIRPORT_CODE_RE.match(value or ''):
        raise serializers.ValidationError(f"Invalid airport code: {value}")
    return value.upper()


class RouteCheckSerializer(serializers.Serializer):
    """Route plus the pilot/aircraft context used to derive minimums."""

    route = serializers.JSONField()
    training_level = serializers.ChoiceField(
        choices=TrainingLevel.choices,
        required=False,
        allow_null=True
    )
    flight_type = serializers.ChoiceField(
        choices=Booking.FlightType.choices,
        required=False,
        allow_null=True
    )
    aircraft_id = serializers.UUIDField(required=False, allow_null=True)
    premium_enabled = serializers.BooleanField(default=False)

    def validate_route(self, value):
        if isinstance(value, str):
            return value
        if isinstance(value, list) and all(isinstance(code, str) for code in value):
            return value
        raise serializers.ValidationError('Route must be a string or a list of airport codes')


class CacheWarmSerializer(serializers.Serializer):
    airport_codes = serializers.ListField(
        child=serializers.CharField(validators=[validate_airport_code]),
        allow_empty=False,
        max_length=50
    )
    premium_enabled = serializers.BooleanField(default=False)

    def validate_airport_codes(self, value):
        return [code.upper() for code in value]


class WeatherCheckSerializer(serializers.ModelSerializer):
    """Persisted weather check."""

    class Meta:
        model = WeatherCheck
        fields = [
            'id', 'booking', 'check_type', 'location', 'latitude', 'longitude',
            'source', 'observed_at',
            'visibility', 'ceiling', 'wind_speed', 'wind_gust', 'wind_direction',
            'temperature', 'conditions',
            'result', 'confidence', 'reasons',
            'training_level', 'flight_type',
            'required_visibility', 'required_ceiling', 'max_wind_speed',
            'route_result', 'forecast_confidence', 'checked_at',
        ]
        read_only_fields = fields
