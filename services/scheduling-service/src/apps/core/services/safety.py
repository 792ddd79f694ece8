# services/scheduling-service/src/apps/core/services/safety.py
"""
Weather Safety Classifier

Compares an observation against a set of minimums and produces a
SAFE / MARGINAL / UNSAFE verdict with reasons.
"""

import math
from dataclasses import dataclass, field
from typing import List, Optional

from django.conf import settings

from .minimums import Minimums
from .weather_providers import WeatherSnapshot, UNLIMITED_CEILING


SAFE = 'safe'
MARGINAL = 'marginal'
UNSAFE = 'unsafe'

SEVERITY = {SAFE: 0, MARGINAL: 1, UNSAFE: 2}

CONFIDENCE = {SAFE: 95, MARGINAL: 70, UNSAFE: 90}

SAFE_REASON = 'Weather conditions are safe for flight'

PRECIPITATION_CODES = ('RA', 'SN', 'TS', 'SH', 'DZ', 'GR', 'PL', 'FZ')


@dataclass(frozen=True)
class SafetyMargins:
    """Multipliers that turn a hard limit into a marginal band."""

    visibility_factor: float = 1.2
    ceiling_factor: float = 1.2
    wind_factor: float = 0.9

    @classmethod
    def from_settings(cls) -> 'SafetyMargins':
        policy = getattr(settings, 'WEATHER_POLICY', {})
        return cls(
            visibility_factor=policy.get('MARGINAL_VISIBILITY_FACTOR', 1.2),
            ceiling_factor=policy.get('MARGINAL_CEILING_FACTOR', 1.2),
            wind_factor=policy.get('MARGINAL_WIND_FACTOR', 0.9),
        )


@dataclass
class SafetyVerdict:
    result: str
    confidence: int
    reasons: List[str] = field(default_factory=list)

    @property
    def is_safe(self) -> bool:
        return self.result == SAFE

    @property
    def severity(self) -> int:
        return SEVERITY[self.result]

    def to_dict(self) -> dict:
        return {
            'result': self.result,
            'confidence': self.confidence,
            'reasons': list(self.reasons),
        }


def worst_result(results) -> str:
    """Most severe of the given results; SAFE for an empty input."""
    return max(results, key=lambda r: SEVERITY[r], default=SAFE)


def crosswind_component(wind_direction: Optional[int], wind_speed: float, runway_heading: int) -> float:
    if wind_direction is None:
        # Variable wind: assume the full speed is across the runway
        return float(wind_speed)
    angle = math.radians(wind_direction - runway_heading)
    return abs(wind_speed * math.sin(angle))


def classify(
    snapshot: WeatherSnapshot,
    minimums: Minimums,
    margins: SafetyMargins = None,
    runway_heading: Optional[int] = None,
) -> SafetyVerdict:
    """
    Classify an observation against minimums.

    Any limit exceeded makes the verdict UNSAFE; otherwise any value
    inside the marginal band makes it MARGINAL.
    """
    margins = margins or SafetyMargins.from_settings()
    unsafe: List[str] = []
    marginal: List[str] = []

    # Visibility
    if snapshot.visibility < minimums.visibility:
        unsafe.append(
            f"Visibility {snapshot.visibility}SM below minimum {minimums.visibility}SM"
        )
    elif snapshot.visibility < minimums.visibility * margins.visibility_factor:
        marginal.append(
            f"Visibility {snapshot.visibility}SM near minimum {minimums.visibility}SM"
        )

    # Ceiling
    ceiling = snapshot.ceiling
    if ceiling != UNLIMITED_CEILING:
        if ceiling < minimums.ceiling:
            unsafe.append(f"Ceiling {ceiling}ft below minimum {minimums.ceiling}ft")
        elif ceiling < minimums.ceiling * margins.ceiling_factor:
            marginal.append(f"Ceiling {ceiling}ft near minimum {minimums.ceiling}ft")

    # Sustained wind
    if snapshot.wind_speed > minimums.max_wind:
        unsafe.append(f"Wind {snapshot.wind_speed}kt exceeds maximum {minimums.max_wind}kt")
    elif snapshot.wind_speed > minimums.max_wind * margins.wind_factor:
        marginal.append(f"Wind {snapshot.wind_speed}kt near maximum {minimums.max_wind}kt")

    # Gusts; a zero limit means no gusts are tolerated
    if snapshot.wind_gust:
        if snapshot.wind_gust > minimums.max_gust:
            unsafe.append(f"Gusts {snapshot.wind_gust}kt exceed maximum {minimums.max_gust}kt")
        elif snapshot.wind_gust > minimums.max_gust * margins.wind_factor:
            marginal.append(f"Gusts {snapshot.wind_gust}kt near maximum {minimums.max_gust}kt")

    # Crosswind
    if runway_heading is not None:
        crosswind = round(crosswind_component(snapshot.wind_direction, snapshot.wind_speed, runway_heading))
        if crosswind > minimums.max_crosswind:
            unsafe.append(
                f"Crosswind {crosswind}kt exceeds maximum {minimums.max_crosswind}kt"
            )
        elif crosswind > minimums.max_crosswind * margins.wind_factor:
            marginal.append(
                f"Crosswind {crosswind}kt near maximum {minimums.max_crosswind}kt"
            )

    # Precipitation
    if not minimums.precipitation_allowed:
        found = [code for code in snapshot.conditions if code in PRECIPITATION_CODES]
        if found:
            unsafe.append(f"Precipitation not allowed: {', '.join(found)}")

    if unsafe:
        return SafetyVerdict(result=UNSAFE, confidence=CONFIDENCE[UNSAFE], reasons=unsafe + marginal)
    if marginal:
        return SafetyVerdict(result=MARGINAL, confidence=CONFIDENCE[MARGINAL], reasons=marginal)
    return SafetyVerdict(result=SAFE, confidence=CONFIDENCE[SAFE], reasons=[SAFE_REASON])
