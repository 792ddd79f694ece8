# services/scheduling-service/src/apps/core/services/weather_providers.py
"""
Weather Providers

Normalized weather observations and forecasts from the FAA Aviation
Weather Center (free baseline) and WeatherAPI.com (paid premium), plus
the adapter that picks a provider and tracks per-call cost.
"""

import logging
import re
import threading
from dataclasses import dataclass, field, asdict
from datetime import datetime, timedelta, timezone as dt_timezone
from typing import Optional, List, Dict, Any, Tuple

from django.conf import settings
from django.utils import timezone

from shared.common.clients import BaseAPIClient

logger = logging.getLogger(__name__)

UNLIMITED_CEILING = 99999
CEILING_COVERS = ('BKN', 'OVC', 'VV')
MPH_TO_KNOTS = 0.868976
HPA_TO_INHG = 0.02953


# =============================================================================
# DATA TYPES
# =============================================================================

@dataclass(frozen=True)
class CloudLayer:
    cover: str  # FEW, SCT, BKN, OVC, VV
    altitude: int  # feet AGL


@dataclass(frozen=True)
class WeatherSnapshot:
    """
    Immutable weather observation for a station.

    Every snapshot carries the provider it came from in ``source``.
    """

    station: str
    observed_at: datetime
    wind_speed: int
    visibility: float
    source: str
    wind_direction: Optional[int] = None
    wind_gust: Optional[int] = None
    clouds: Tuple[CloudLayer, ...] = ()
    temperature: Optional[float] = None
    dewpoint: Optional[float] = None
    altimeter: Optional[float] = None
    conditions: Tuple[str, ...] = ()
    raw: Optional[str] = None

    @property
    def ceiling(self) -> int:
        """Lowest broken, overcast or vertical-visibility layer."""
        layers = [c.altitude for c in self.clouds if c.cover in CEILING_COVERS]
        return min(layers) if layers else UNLIMITED_CEILING

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['observed_at'] = self.observed_at.isoformat()
        data['clouds'] = [asdict(c) for c in self.clouds]
        data['conditions'] = list(self.conditions)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'WeatherSnapshot':
        observed_at = data.get('observed_at')
        if isinstance(observed_at, str):
            observed_at = datetime.fromisoformat(observed_at)
        return cls(
            station=data['station'],
            observed_at=observed_at or timezone.now(),
            wind_speed=int(data.get('wind_speed') or 0),
            visibility=float(data.get('visibility', 10)),
            source=data.get('source', ''),
            wind_direction=data.get('wind_direction'),
            wind_gust=data.get('wind_gust'),
            clouds=tuple(
                CloudLayer(cover=c['cover'], altitude=int(c['altitude']))
                for c in data.get('clouds') or []
            ),
            temperature=data.get('temperature'),
            dewpoint=data.get('dewpoint'),
            altimeter=data.get('altimeter'),
            conditions=tuple(data.get('conditions') or ()),
            raw=data.get('raw'),
        )


@dataclass(frozen=True)
class ForecastPeriod:
    time_from: datetime
    time_to: Optional[datetime]
    wind_speed: int
    visibility: float
    ceiling: int
    wind_direction: Optional[int] = None
    wind_gust: Optional[int] = None
    conditions: Tuple[str, ...] = ()
    temperature: Optional[float] = None


@dataclass(frozen=True)
class WeatherForecast:
    station: str
    source: str
    periods: Tuple[ForecastPeriod, ...] = field(default_factory=tuple)

    def period_at(self, when: datetime) -> Optional[ForecastPeriod]:
        """Forecast period covering ``when``, else the latest one starting before it."""
        best = None
        for period in self.periods:
            if period.time_from <= when and (period.time_to is None or when < period.time_to):
                return period
            if period.time_from <= when:
                best = period
        return best

    def to_dict(self) -> Dict[str, Any]:
        return {
            'station': self.station,
            'source': self.source,
            'periods': [
                {
                    **asdict(p),
                    'time_from': p.time_from.isoformat(),
                    'time_to': p.time_to.isoformat() if p.time_to else None,
                    'conditions': list(p.conditions),
                }
                for p in self.periods
            ],
        }


# =============================================================================
# METAR PARSING
# =============================================================================

WIND_RE = re.compile(r'^(\d{3}|VRB)(\d{2,3})(?:G(\d{2,3}))?KT$')
VISIBILITY_RE = re.compile(r'^([PM])?(\d+/\d+|\d+)SM$')
CLOUD_RE = re.compile(r'^(FEW|SCT|BKN|OVC|VV)(\d{3})')
TEMPERATURE_RE = re.compile(r'^(M?\d{2})/(M?\d{2})?$')
ALTIMETER_RE = re.compile(r'^([AQ])(\d{4})$')
WEATHER_RE = re.compile(
    r'^(?:\+|-|VC)?(MI|PR|BC|DR|BL|SH|TS|FZ)?'
    r'((?:DZ|RA|SN|SG|IC|PL|GR|GS|UP|BR|FG|FU|VA|DU|SA|HZ|PY|PO|SQ|FC|SS|DS)*)$'
)


def _parse_fraction(value: str) -> float:
    if '/' in value:
        numerator, denominator = value.split('/')
        return int(numerator) / int(denominator)
    return float(value)


def _parse_temperature(value: Optional[str]) -> Optional[float]:
    if not value:
        return None
    if value.startswith('M'):
        return -float(value[1:])
    return float(value)


def parse_metar(raw: str, source: str = 'FAA', observed_at: datetime = None) -> Optional[WeatherSnapshot]:
    """
    Parse a raw METAR report.

    Handles fractional and split visibility (``1 1/2SM``), ``P6SM``,
    vertical visibility layers and negative temperatures. Returns None
    when the report has no station identifier.
    """
    tokens = raw.strip().split()
    if tokens and tokens[0] in ('METAR', 'SPECI'):
        tokens = tokens[1:]
    if not tokens:
        return None

    station = tokens[0].upper()
    wind_direction = None
    wind_speed = 0
    wind_gust = None
    visibility = 10.0
    clouds: List[CloudLayer] = []
    temperature = dewpoint = altimeter = None
    conditions: List[str] = []

    whole_miles = None
    for token in tokens[1:]:
        if token == 'RMK':
            break

        match = WIND_RE.match(token)
        if match:
            wind_direction = None if match.group(1) == 'VRB' else int(match.group(1))
            wind_speed = int(match.group(2))
            wind_gust = int(match.group(3)) if match.group(3) else None
            continue

        if token.isdigit() and len(token) == 1:
            # First half of a split visibility such as "1 1/2SM"
            whole_miles = int(token)
            continue

        match = VISIBILITY_RE.match(token)
        if match:
            visibility = _parse_fraction(match.group(2)) + (whole_miles or 0)
            if match.group(1) == 'P':
                visibility = max(visibility, 10.0)
            whole_miles = None
            continue
        whole_miles = None

        match = CLOUD_RE.match(token)
        if match:
            clouds.append(CloudLayer(cover=match.group(1), altitude=int(match.group(2)) * 100))
            continue

        match = TEMPERATURE_RE.match(token)
        if match:
            temperature = _parse_temperature(match.group(1))
            dewpoint = _parse_temperature(match.group(2))
            continue

        match = ALTIMETER_RE.match(token)
        if match:
            if match.group(1) == 'A':
                altimeter = int(match.group(2)) / 100
            else:
                altimeter = round(int(match.group(2)) * HPA_TO_INHG, 2)
            continue

        match = WEATHER_RE.match(token)
        if match and (match.group(1) or match.group(2)):
            codes = []
            if match.group(1):
                codes.append(match.group(1))
            phenomena = match.group(2)
            codes.extend(phenomena[i:i + 2] for i in range(0, len(phenomena), 2))
            for code in codes:
                if code not in conditions:
                    conditions.append(code)

    return WeatherSnapshot(
        station=station,
        observed_at=observed_at or timezone.now(),
        wind_speed=wind_speed,
        visibility=visibility,
        source=source,
        wind_direction=wind_direction,
        wind_gust=wind_gust,
        clouds=tuple(clouds),
        temperature=temperature,
        dewpoint=dewpoint,
        altimeter=altimeter,
        conditions=tuple(conditions),
        raw=raw,
    )


def conditions_from_text(text: str) -> Tuple[str, ...]:
    """Map a plain-language condition description to METAR codes."""
    text = (text or '').upper()
    conditions = []
    if 'RAIN' in text or 'DRIZZLE' in text:
        conditions.append('RA')
    if 'SNOW' in text or 'SLEET' in text:
        conditions.append('SN')
    if 'THUNDER' in text:
        conditions.append('TS')
    if 'SHOWER' in text:
        conditions.append('SH')
    if 'FOG' in text or 'MIST' in text:
        conditions.append('BR')
    return tuple(conditions)


def _epoch_to_datetime(value) -> Optional[datetime]:
    if value in (None, ''):
        return None
    return datetime.fromtimestamp(int(value), tz=dt_timezone.utc)


# =============================================================================
# PROVIDERS
# =============================================================================

class FAAProvider:
    """
    FAA Aviation Weather Center.

    Free public METAR/TAF source; always available.
    """

    name = 'FAA'
    cost_per_call = 0.0

    def __init__(self, client: BaseAPIClient = None):
        config = getattr(settings, 'WEATHER_PROVIDERS', {})
        self.client = client or BaseAPIClient(
            'faa-weather',
            config.get('FAA_BASE_URL', 'https://aviationweather.gov/api/data'),
            timeout=config.get('TIMEOUT', 10.0),
        )

    def is_available(self) -> bool:
        return True

    def get_current_weather(self, airport_code: str) -> Optional[WeatherSnapshot]:
        data = self.client.get('/metar', params={'ids': airport_code, 'format': 'json'})
        if not data:
            return None

        metar = data[0]
        raw = metar.get('rawOb') or metar.get('rawText')
        if not raw:
            return None

        return parse_metar(raw, source=self.name, observed_at=_epoch_to_datetime(metar.get('obsTime')))

    def get_forecast(self, airport_code: str) -> Optional[WeatherForecast]:
        data = self.client.get('/taf', params={'ids': airport_code, 'format': 'json'})
        if not data:
            return None

        periods = []
        for fcst in data[0].get('fcsts') or []:
            layers = [
                CloudLayer(cover=c.get('cover', ''), altitude=int(c.get('base') or 0))
                for c in fcst.get('clouds') or []
            ]
            ceilings = [layer.altitude for layer in layers if layer.cover in CEILING_COVERS]
            visib = str(fcst.get('visib', '10'))
            periods.append(ForecastPeriod(
                time_from=_epoch_to_datetime(fcst.get('timeFrom')),
                time_to=_epoch_to_datetime(fcst.get('timeTo')),
                wind_direction=fcst.get('wdir') if isinstance(fcst.get('wdir'), int) else None,
                wind_speed=int(fcst.get('wspd') or 0),
                wind_gust=fcst.get('wgst'),
                visibility=10.0 if visib.endswith('+') else _parse_fraction(visib),
                ceiling=min(ceilings) if ceilings else UNLIMITED_CEILING,
                conditions=parse_metar(f"{airport_code} {fcst.get('wxString') or ''}").conditions,
            ))

        return WeatherForecast(station=airport_code.upper(), source=self.name, periods=tuple(periods))


class WeatherAPIProvider:
    """
    WeatherAPI.com.

    Paid provider; only available when an API key is configured. Reports
    cloud cover as a percentage, so the ceiling is estimated from it.
    """

    name = 'WEATHERAPI'
    cost_per_call = 0.001

    def __init__(self, api_key: str = None, client: BaseAPIClient = None):
        config = getattr(settings, 'WEATHER_PROVIDERS', {})
        self.api_key = api_key if api_key is not None else config.get('WEATHERAPI_KEY', '')
        self.client = client or BaseAPIClient(
            'weatherapi',
            config.get('WEATHERAPI_BASE_URL', 'https://api.weatherapi.com/v1'),
            timeout=config.get('TIMEOUT', 10.0),
        )

    def is_available(self) -> bool:
        return bool(self.api_key) and self.api_key != 'placeholder'

    def get_current_weather(self, airport_code: str) -> Optional[WeatherSnapshot]:
        if not self.is_available():
            return None

        data = self.client.get(
            '/current.json',
            params={'key': self.api_key, 'q': airport_code, 'aqi': 'no'},
        )
        if not data or not data.get('current'):
            return None

        current = data['current']
        cover, ceiling = self.estimate_cloud_layer(current.get('cloud') or 0)
        gust = round((current.get('gust_mph') or 0) * MPH_TO_KNOTS)

        return WeatherSnapshot(
            station=airport_code.upper(),
            observed_at=_epoch_to_datetime(current.get('last_updated_epoch')) or timezone.now(),
            wind_direction=current.get('wind_degree'),
            wind_speed=round((current.get('wind_mph') or 0) * MPH_TO_KNOTS),
            wind_gust=gust or None,
            visibility=float(current.get('vis_miles') or 10),
            clouds=(CloudLayer(cover=cover, altitude=ceiling),),
            temperature=current.get('temp_c'),
            dewpoint=current.get('dewpoint_c'),
            altimeter=current.get('pressure_in'),
            conditions=conditions_from_text((current.get('condition') or {}).get('text')),
            source=self.name,
        )

    def get_forecast(self, airport_code: str) -> Optional[WeatherForecast]:
        if not self.is_available():
            return None

        data = self.client.get(
            '/forecast.json',
            params={'key': self.api_key, 'q': airport_code, 'days': 3, 'aqi': 'no', 'alerts': 'no'},
        )
        if not data or not data.get('forecast'):
            return None

        periods = []
        for day in data['forecast'].get('forecastday') or []:
            for hour in day.get('hour') or []:
                start = _epoch_to_datetime(hour.get('time_epoch'))
                _, ceiling = self.estimate_cloud_layer(hour.get('cloud') or 0)
                gust = round((hour.get('gust_mph') or 0) * MPH_TO_KNOTS)
                periods.append(ForecastPeriod(
                    time_from=start,
                    time_to=start + timedelta(hours=1) if start else None,
                    wind_direction=hour.get('wind_degree'),
                    wind_speed=round((hour.get('wind_mph') or 0) * MPH_TO_KNOTS),
                    wind_gust=gust or None,
                    visibility=float(hour.get('vis_miles') or 10),
                    ceiling=ceiling,
                    conditions=conditions_from_text((hour.get('condition') or {}).get('text')),
                    temperature=hour.get('temp_c'),
                ))

        return WeatherForecast(station=airport_code.upper(), source=self.name, periods=tuple(periods))

    @staticmethod
    def estimate_cloud_layer(cloud_percent: int) -> Tuple[str, int]:
        if cloud_percent < 25:
            return 'FEW', 10000
        if cloud_percent < 50:
            return 'SCT', 5000
        if cloud_percent < 75:
            return 'BKN', 3000
        return 'OVC', 1000


# =============================================================================
# ADAPTER
# =============================================================================

_DEFAULT = object()


class WeatherProviderAdapter:
    """
    Selects a weather provider and tracks spend.

    The premium provider is tried first when the school has it enabled
    and it is configured; the baseline is the fallback for a None result
    or an error. Returns None when no provider answers. Pass
    ``premium=None`` to run on the baseline alone.
    """

    def __init__(self, baseline=None, premium=_DEFAULT):
        self.baseline = baseline or FAAProvider()
        self.premium = WeatherAPIProvider() if premium is _DEFAULT else premium
        self._lock = threading.Lock()
        self._costs: Dict[str, Dict[str, float]] = {}

    def get_current_weather(self, airport_code: str, premium_enabled: bool = False) -> Optional[WeatherSnapshot]:
        return self._fetch('get_current_weather', airport_code.upper(), premium_enabled)

    def get_forecast(self, airport_code: str, premium_enabled: bool = False) -> Optional[WeatherForecast]:
        return self._fetch('get_forecast', airport_code.upper(), premium_enabled)

    def providers_for(self, premium_enabled: bool) -> list:
        chain = []
        if premium_enabled and self.premium is not None and self.premium.is_available():
            chain.append(self.premium)
        chain.append(self.baseline)
        return chain

    def _fetch(self, method: str, airport_code: str, premium_enabled: bool):
        for provider in self.providers_for(premium_enabled):
            if not provider.is_available():
                continue
            try:
                result = getattr(provider, method)(airport_code)
            except Exception as e:
                logger.warning(f"{provider.name} {method} failed for {airport_code}: {e}")
                continue

            if result is None:
                logger.info(f"{provider.name} returned no data for {airport_code}")
                continue

            self._record_call(provider)
            return result

        logger.warning(f"No weather provider returned data for {airport_code}")
        return None

    # ==========================================================================
    # Cost Tracking
    # ==========================================================================

    def _record_call(self, provider):
        with self._lock:
            entry = self._costs.setdefault(provider.name, {'calls': 0, 'cost': 0.0})
            entry['calls'] += 1
            entry['cost'] += provider.cost_per_call

    def get_costs(self) -> Dict[str, Any]:
        with self._lock:
            providers = {name: dict(entry) for name, entry in self._costs.items()}
        return {
            'providers': providers,
            'total_calls': sum(p['calls'] for p in providers.values()),
            'total_cost': round(sum(p['cost'] for p in providers.values()), 6),
        }

    def reset_costs(self):
        with self._lock:
            self._costs = {}


_adapter = None
_adapter_lock = threading.Lock()


def get_weather_adapter() -> WeatherProviderAdapter:
    """Process-wide adapter so cost counters accumulate across requests."""
    global _adapter
    with _adapter_lock:
        if _adapter is None:
            _adapter = WeatherProviderAdapter()
        return _adapter
