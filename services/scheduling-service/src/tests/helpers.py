# services/scheduling-service/src/tests/helpers.py
"""
Test helpers shared by unit and integration tests.
"""

import threading
from concurrent.futures import ThreadPoolExecutor

from django.db import connections
from django.utils import timezone

from apps.core.services.weather_providers import CloudLayer, WeatherSnapshot


def run_concurrently(*calls, timeout=30):
    """
    Start every call at the same moment on its own thread and connection.

    Returns one ``(result, exception)`` pair per call, in call order.
    """
    barrier = threading.Barrier(len(calls))

    def _run(call):
        try:
            barrier.wait(timeout=timeout)
            return call(), None
        except Exception as e:
            return None, e
        finally:
            connections.close_all()

    with ThreadPoolExecutor(max_workers=len(calls)) as pool:
        futures = [pool.submit(_run, call) for call in calls]
        return [future.result(timeout=timeout) for future in futures]


def make_snapshot(
    station='KAUS',
    visibility=10.0,
    ceiling=None,
    wind_speed=5,
    wind_gust=None,
    wind_direction=180,
    conditions=(),
    source='FAA',
    observed_at=None,
):
    """Build a weather snapshot; ``ceiling`` adds a single BKN layer."""
    clouds = (CloudLayer(cover='BKN', altitude=ceiling),) if ceiling is not None else ()
    return WeatherSnapshot(
        station=station,
        observed_at=observed_at or timezone.now(),
        wind_speed=wind_speed,
        visibility=visibility,
        source=source,
        wind_direction=wind_direction,
        wind_gust=wind_gust,
        clouds=clouds,
        conditions=tuple(conditions),
    )


class StubWeatherCache:
    """In-memory stand-in for the weather cache service."""

    def __init__(self, snapshots=None, forecasts=None):
        self.snapshots = {k.upper(): v for k, v in (snapshots or {}).items()}
        self.forecasts = {k.upper(): v for k, v in (forecasts or {}).items()}
        self.requests = []

    def get_weather(self, airport_code, premium_enabled=False):
        self.requests.append((airport_code.upper(), premium_enabled))
        return self.snapshots.get(airport_code.upper())

    def get_forecast(self, airport_code, premium_enabled=False):
        return self.forecasts.get(airport_code.upper())
