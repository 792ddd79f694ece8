# services/scheduling-service/src/apps/core/services/route_service.py
"""
Route Weather Service

Weather evaluation across every airport of a cross-country route.
"""

import logging
import re
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Union, Tuple

from django.conf import settings
from django.db import close_old_connections

from .airports import get_airport_coordinates
from .minimums import Minimums
from .safety import (
    SafetyVerdict,
    SafetyMargins,
    classify,
    worst_result,
    SAFE,
    MARGINAL,
    UNSAFE,
)
from .weather_cache_service import WeatherCacheService, get_weather_cache
from .weather_providers import WeatherSnapshot

logger = logging.getLogger(__name__)

AIRPORT_CODE_RE = re.compile(r'^[A-Z]{4}$')
ROUTE_SEPARATOR_RE = re.compile(r'[\s,>\-]+')

DATA_UNAVAILABLE = 'Weather data unavailable'


@dataclass
class RouteWaypoint:
    airport_code: str
    order: int
    latitude: Optional[float] = None
    longitude: Optional[float] = None


@dataclass
class WaypointCheck:
    waypoint: RouteWaypoint
    weather: Optional[WeatherSnapshot] = None
    verdict: Optional[SafetyVerdict] = None
    error: Optional[str] = None

    @property
    def evaluated(self) -> bool:
        return self.weather is not None

    def to_dict(self) -> dict:
        return {
            'airport_code': self.waypoint.airport_code,
            'order': self.waypoint.order,
            'latitude': self.waypoint.latitude,
            'longitude': self.waypoint.longitude,
            'weather': self.weather.to_dict() if self.weather else None,
            'verdict': self.verdict.to_dict() if self.verdict else None,
            'error': self.error,
        }


@dataclass
class RouteVerdict:
    route: List[str]
    checks: List[WaypointCheck]
    result: str
    confidence: int
    reasons: List[str] = field(default_factory=list)
    unsafe_waypoints: List[str] = field(default_factory=list)
    marginal_waypoints: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            'route': self.route,
            'result': self.result,
            'confidence': self.confidence,
            'reasons': self.reasons,
            'unsafe_waypoints': self.unsafe_waypoints,
            'marginal_waypoints': self.marginal_waypoints,
            'checks': [c.to_dict() for c in self.checks],
        }


def parse_route(route: Union[str, Sequence[str]]) -> List[str]:
    """
    Parse a route into airport codes.

    Accepts ``"KAUS-KHYI-KAUS"``, ``"KAUS->KHYI"``, whitespace or comma
    separated strings, or a list of codes. Tokens that are not 4-letter
    codes are dropped; fewer than two remaining codes is an error.
    """
    from . import RouteValidationError

    if isinstance(route, str):
        tokens = ROUTE_SEPARATOR_RE.split(route.strip())
    else:
        tokens = list(route or [])

    codes = [t.strip().upper() for t in tokens if t and t.strip()]
    codes = [c for c in codes if AIRPORT_CODE_RE.match(c)]

    if len(codes) < 2:
        raise RouteValidationError('Route must contain at least 2 valid airport codes')

    return codes


def aggregate_results(results: Sequence[str]) -> str:
    """Max-severity reduction; independent of order."""
    return worst_result(results)


class RouteWeatherService:
    """
    Evaluates weather at each waypoint of a route.

    Waypoints without weather data count as MARGINAL and lower the
    route confidence; they are never skipped.
    """

    def __init__(self, cache: WeatherCacheService = None, max_workers: int = None):
        self.cache = cache or get_weather_cache()
        self.max_workers = max_workers or getattr(settings, 'ROUTE_FETCH_WORKERS', 5)

    def check_route(
        self,
        route: Union[str, Sequence[str]],
        minimums: Optional[Minimums] = None,
        premium_enabled: bool = False,
        margins: SafetyMargins = None,
    ) -> RouteVerdict:
        codes = parse_route(route)
        waypoints = []
        for order, code in enumerate(codes):
            coordinates = get_airport_coordinates(code)
            waypoints.append(RouteWaypoint(
                airport_code=code,
                order=order,
                latitude=coordinates[0] if coordinates else None,
                longitude=coordinates[1] if coordinates else None,
            ))

        # Weather for a repeated airport is fetched once
        unique_codes = list(dict.fromkeys(codes))
        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(unique_codes))) as executor:
            fetched = dict(zip(
                unique_codes,
                executor.map(lambda c: self._fetch(c, premium_enabled), unique_codes),
            ))

        checks = []
        for waypoint in waypoints:
            weather, error = fetched[waypoint.airport_code]
            check = WaypointCheck(waypoint=waypoint, weather=weather, error=error)
            if weather is not None and minimums is not None:
                check.verdict = classify(weather, minimums, margins=margins)
            checks.append(check)

        return self._aggregate(codes, checks)

    def _fetch(self, code: str, premium_enabled: bool) -> Tuple[Optional[WeatherSnapshot], Optional[str]]:
        try:
            weather = self.cache.get_weather(code, premium_enabled=premium_enabled)
        except Exception as e:
            logger.error(f"Route weather fetch failed for {code}: {e}")
            return None, str(e)
        finally:
            # Runs on a pool thread with its own connection
            close_old_connections()

        if weather is None:
            return None, DATA_UNAVAILABLE
        return weather, None

    def _aggregate(self, codes: List[str], checks: List[WaypointCheck]) -> RouteVerdict:
        results = []
        reasons = []
        unsafe_waypoints = []
        marginal_waypoints = []

        for check in checks:
            code = check.waypoint.airport_code
            if not check.evaluated:
                results.append(MARGINAL)
                marginal_waypoints.append(code)
                reasons.append(f"{code}: {DATA_UNAVAILABLE}")
                continue

            if check.verdict is None:
                results.append(SAFE)
                continue

            results.append(check.verdict.result)
            if check.verdict.result == UNSAFE:
                unsafe_waypoints.append(code)
                reasons.append(f"{code}: {', '.join(check.verdict.reasons)}")
            elif check.verdict.result == MARGINAL:
                marginal_waypoints.append(code)
                reasons.append(f"{code}: {', '.join(check.verdict.reasons)}")

        evaluated = sum(1 for c in checks if c.evaluated)
        confidence = round(evaluated / len(checks) * 100) if checks else 0

        return RouteVerdict(
            route=codes,
            checks=checks,
            result=aggregate_results(results),
            confidence=confidence,
            reasons=reasons or ['All waypoints have safe weather conditions'],
            unsafe_waypoints=unsafe_waypoints,
            marginal_waypoints=marginal_waypoints,
        )
