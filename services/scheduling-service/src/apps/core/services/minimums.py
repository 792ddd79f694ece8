# services/scheduling-service/src/apps/core/services/minimums.py
"""
Weather Minimums Policy

Derives the weather thresholds a flight must meet from the pilot's
training level, the flight type and the aircraft's limits.
"""

from dataclasses import dataclass, replace
from typing import Optional


@dataclass(frozen=True)
class Minimums:
    """Weather thresholds for one flight."""

    visibility: float  # statute miles
    ceiling: int  # feet AGL
    max_wind: int  # knots
    max_crosswind: int  # knots
    max_gust: int  # knots, 0 means no gusts are tolerated
    precipitation_allowed: bool

    def to_dict(self) -> dict:
        return {
            'visibility': self.visibility,
            'ceiling': self.ceiling,
            'max_wind': self.max_wind,
            'max_crosswind': self.max_crosswind,
            'max_gust': self.max_gust,
            'precipitation_allowed': self.precipitation_allowed,
        }


@dataclass(frozen=True)
class AircraftCapability:
    """Aircraft limits relevant to weather minimums."""

    crosswind_limit: Optional[int] = None
    max_wind: Optional[int] = None
    is_imc_capable: bool = False


BASE_MINIMUMS = {
    'early_student': Minimums(
        visibility=10, ceiling=3000, max_wind=8, max_crosswind=5,
        max_gust=0, precipitation_allowed=False,
    ),
    'mid_student': Minimums(
        visibility=5, ceiling=1500, max_wind=12, max_crosswind=8,
        max_gust=5, precipitation_allowed=True,
    ),
    'advanced_student': Minimums(
        visibility=3, ceiling=1000, max_wind=15, max_crosswind=10,
        max_gust=8, precipitation_allowed=True,
    ),
    'private_pilot': Minimums(
        visibility=3, ceiling=1000, max_wind=20, max_crosswind=15,
        max_gust=10, precipitation_allowed=True,
    ),
    'instrument_rated': Minimums(
        visibility=0.5, ceiling=200, max_wind=25, max_crosswind=20,
        max_gust=15, precipitation_allowed=True,
    ),
    'commercial_pilot': Minimums(
        visibility=3, ceiling=1000, max_wind=25, max_crosswind=20,
        max_gust=15, precipitation_allowed=True,
    ),
}

DEFAULT_TRAINING_LEVEL = 'early_student'

SOLO_FLIGHT_TYPES = {'solo_supervised', 'solo_unsupervised'}

# Solo adjustments
SOLO_VISIBILITY_ADD = 1
SOLO_CEILING_ADD = 500
SOLO_WIND_REDUCTION = 2

# VFR floor for aircraft that cannot fly in instrument conditions
VFR_MIN_VISIBILITY = 3
VFR_MIN_CEILING = 1000


class MinimumsPolicy:
    """
    Computes effective minimums.

    The result is never more permissive than the base table entry for
    the training level: solo flights and aircraft limits only tighten it.
    """

    def get_minimums(
        self,
        training_level: str,
        aircraft: Optional[AircraftCapability] = None,
        flight_type: Optional[str] = None,
    ) -> Minimums:
        base = self.get_base_minimums(training_level)
        minimums = base

        if flight_type and str(flight_type).lower() in SOLO_FLIGHT_TYPES:
            minimums = replace(
                minimums,
                visibility=minimums.visibility + SOLO_VISIBILITY_ADD,
                ceiling=minimums.ceiling + SOLO_CEILING_ADD,
                max_wind=max(0, minimums.max_wind - SOLO_WIND_REDUCTION),
                max_crosswind=max(0, minimums.max_crosswind - SOLO_WIND_REDUCTION),
            )

        if aircraft is not None:
            minimums = self._apply_aircraft_limits(minimums, aircraft)

        return minimums

    def get_base_minimums(self, training_level: str) -> Minimums:
        """Base table entry; unknown levels get the strictest row."""
        key = str(training_level).lower() if training_level else DEFAULT_TRAINING_LEVEL
        return BASE_MINIMUMS.get(key, BASE_MINIMUMS[DEFAULT_TRAINING_LEVEL])

    def _apply_aircraft_limits(self, minimums: Minimums, aircraft: AircraftCapability) -> Minimums:
        updates = {}

        if aircraft.crosswind_limit is not None:
            updates['max_crosswind'] = min(minimums.max_crosswind, aircraft.crosswind_limit)
        if aircraft.max_wind is not None:
            updates['max_wind'] = min(minimums.max_wind, aircraft.max_wind)

        if not aircraft.is_imc_capable:
            updates['visibility'] = max(minimums.visibility, VFR_MIN_VISIBILITY)
            updates['ceiling'] = max(minimums.ceiling, VFR_MIN_CEILING)

        return replace(minimums, **updates) if updates else minimums
