# services/scheduling-service/src/apps/core/services/airports.py
"""
Airport coordinate lookup and great-circle helpers.
"""

import logging
import math
from typing import Optional, Tuple, List

from apps.core.models import School

logger = logging.getLogger(__name__)

EARTH_RADIUS_NM = 3440

# Fallback for airports that are not a school's home field
COMMON_AIRPORTS = {
    'KAUS': (30.1945, -97.6699),  # Austin-Bergstrom
    'KDAL': (32.8471, -96.8518),  # Dallas Love Field
    'KHOU': (29.6454, -95.2789),  # Houston Hobby
    'KDFW': (32.8998, -97.0403),  # Dallas/Fort Worth
    'KIAH': (29.9844, -95.3414),  # Houston Intercontinental
    'KSAT': (29.5337, -98.4698),  # San Antonio International
    'KELP': (31.8072, -106.3778),  # El Paso International
    'KPHX': (33.4342, -112.0080),  # Phoenix Sky Harbor
    'KHYI': (30.0618, -97.9614),  # San Marcos Regional
    'KORD': (41.9786, -87.9048),  # Chicago O'Hare
    'KLAX': (33.9425, -118.4081),  # Los Angeles
    'KJFK': (40.6413, -73.7781),  # New York JFK
    'KATL': (33.6407, -84.4277),  # Atlanta
    'KDEN': (39.8561, -104.6737),  # Denver
}


def get_airport_coordinates(airport_code: str) -> Optional[Tuple[float, float]]:
    """(latitude, longitude) from the school table, then the built-in list."""
    code = airport_code.upper()

    school = School.objects.filter(
        airport_code=code,
        latitude__isnull=False,
        longitude__isnull=False,
    ).values_list('latitude', 'longitude').first()
    if school:
        return school

    if code in COMMON_AIRPORTS:
        return COMMON_AIRPORTS[code]

    logger.warning(f"Airport coordinates not found for {code}")
    return None


def haversine_nm(start: Tuple[float, float], end: Tuple[float, float]) -> float:
    """Great-circle distance in nautical miles."""
    lat1, lon1 = map(math.radians, start)
    lat2, lon2 = map(math.radians, end)
    d_lat = lat2 - lat1
    d_lon = lon2 - lon1
    a = math.sin(d_lat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(d_lon / 2) ** 2
    return EARTH_RADIUS_NM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def interpolate_waypoints(
    departure: Tuple[float, float],
    destination: Tuple[float, float],
    max_distance_nm: float = 100,
) -> List[Tuple[float, float]]:
    """
    Evenly spaced intermediate points so no leg exceeds ``max_distance_nm``.

    Returns an empty list for legs already short enough.
    """
    distance = haversine_nm(departure, destination)
    if distance <= max_distance_nm:
        return []

    count = math.ceil(distance / max_distance_nm) - 1
    points = []
    for i in range(1, count + 1):
        fraction = i / (count + 1)
        points.append((
            departure[0] + (destination[0] - departure[0]) * fraction,
            departure[1] + (destination[1] - departure[1]) * fraction,
        ))
    return points
