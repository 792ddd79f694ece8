# services/scheduling-service/src/apps/api/views/weather_views.py
"""
Weather API Views

Current weather, forecasts, route checks and cache maintenance.
"""

import logging

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from shared.common.exceptions import ValidationException, WeatherDataUnavailableException
from apps.core.models import Aircraft
from apps.core.services import (
    MinimumsPolicy,
    RouteWeatherService,
    RouteValidationError,
    get_weather_cache,
)
from apps.api.serializers import (
    RouteCheckSerializer,
    CacheWarmSerializer,
    validate_airport_code,
)
from .errors import to_api_exception

logger = logging.getLogger(__name__)


def _premium_requested(request) -> bool:
    return request.query_params.get('premium', '').lower() in ('1', 'true', 'yes')


def _airport_code(code: str) -> str:
    from rest_framework.serializers import ValidationError

    try:
        return validate_airport_code(code)
    except ValidationError as e:
        raise ValidationException(errors={'airport_code': e.detail}, detail=f"Invalid airport code: {code}")


class CurrentWeatherView(APIView):
    """Current conditions at an airport."""

    def get(self, request, airport_code):
        code = _airport_code(airport_code)
        snapshot = get_weather_cache().get_weather(code, premium_enabled=_premium_requested(request))
        if snapshot is None:
            raise WeatherDataUnavailableException(detail=f"No weather data for {code}")
        return Response(snapshot.to_dict())


class ForecastView(APIView):
    """Forecast periods for an airport."""

    def get(self, request, airport_code):
        code = _airport_code(airport_code)
        forecast = get_weather_cache().get_forecast(code, premium_enabled=_premium_requested(request))
        if forecast is None:
            raise WeatherDataUnavailableException(detail=f"No forecast data for {code}")
        return Response(forecast.to_dict())


class RouteCheckView(APIView):
    """
    Evaluate weather along a route.

    Minimums are derived from the training level, flight type and
    aircraft when given; without a training level only raw weather is
    reported per waypoint.
    """

    def post(self, request):
        serializer = RouteCheckSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        minimums = None
        if data.get('training_level'):
            aircraft = None
            if data.get('aircraft_id'):
                aircraft = Aircraft.objects.filter(id=data['aircraft_id']).first()
            minimums = MinimumsPolicy().get_minimums(
                data['training_level'],
                aircraft=aircraft.capability if aircraft else None,
                flight_type=data.get('flight_type'),
            )

        try:
            verdict = RouteWeatherService(cache=get_weather_cache()).check_route(
                data['route'],
                minimums=minimums,
                premium_enabled=data['premium_enabled'],
            )
        except RouteValidationError as e:
            raise to_api_exception(e)

        response = verdict.to_dict()
        response['minimums'] = minimums.to_dict() if minimums else None
        return Response(response)


class CacheInvalidateView(APIView):
    def post(self, request, airport_code):
        code = _airport_code(airport_code)
        get_weather_cache().invalidate(code)
        return Response({'airport_code': code, 'invalidated': True})


class CacheStatsView(APIView):
    """Hit/miss counters per tier plus provider costs."""

    def get(self, request):
        return Response(get_weather_cache().get_stats())


class CacheWarmView(APIView):
    def post(self, request):
        serializer = CacheWarmSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        results = get_weather_cache().warm(
            serializer.validated_data['airport_codes'],
            premium_enabled=serializer.validated_data['premium_enabled'],
        )
        logger.info(f"Warmed weather cache for {sum(results.values())}/{len(results)} airports")

        return Response({
            'results': results,
            'loaded': sum(results.values()),
            'failed': len(results) - sum(results.values()),
        }, status=status.HTTP_200_OK)


class ProviderCostsView(APIView):
    def get(self, request):
        return Response(get_weather_cache().adapter.get_costs())
