# ABOUTME: Internal weather model shared by every provider and presentation layer
# ABOUTME: Metric units throughout (°C, km/h, hPa, mm), enums serialize by value

import dataclasses
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any


class WeatherCode(str, Enum):
    """Weather condition taxonomy shared by the app and the widgets"""

    CLEAR = 'CLEAR'
    PARTLY_CLOUDY = 'PARTLY_CLOUDY'
    CLOUDY = 'CLOUDY'
    RAIN_LIGHT = 'RAIN_LIGHT'
    RAIN = 'RAIN'
    RAIN_HEAVY = 'RAIN_HEAVY'
    SNOW_LIGHT = 'SNOW_LIGHT'
    SNOW = 'SNOW'
    SNOW_HEAVY = 'SNOW_HEAVY'
    SLEET = 'SLEET'
    HAIL = 'HAIL'
    THUNDERSTORM = 'THUNDERSTORM'
    FOG = 'FOG'
    HAZE = 'HAZE'
    WIND = 'WIND'

    @property
    def description(self) -> str:
        return WEATHER_DESCRIPTIONS[self]


WEATHER_DESCRIPTIONS = {
    WeatherCode.CLEAR: 'Clear sky',
    WeatherCode.PARTLY_CLOUDY: 'Partly cloudy',
    WeatherCode.CLOUDY: 'Cloudy',
    WeatherCode.RAIN_LIGHT: 'Light rain',
    WeatherCode.RAIN: 'Rain',
    WeatherCode.RAIN_HEAVY: 'Heavy rain',
    WeatherCode.SNOW_LIGHT: 'Light snow',
    WeatherCode.SNOW: 'Snow',
    WeatherCode.SNOW_HEAVY: 'Heavy snow',
    WeatherCode.SLEET: 'Sleet',
    WeatherCode.HAIL: 'Hail',
    WeatherCode.THUNDERSTORM: 'Thunderstorm',
    WeatherCode.FOG: 'Fog',
    WeatherCode.HAZE: 'Haze',
    WeatherCode.WIND: 'Windy',
}


class MoonPhase(str, Enum):
    NEW_MOON = 'NEW_MOON'
    WAXING_CRESCENT = 'WAXING_CRESCENT'
    FIRST_QUARTER = 'FIRST_QUARTER'
    WAXING_GIBBOUS = 'WAXING_GIBBOUS'
    FULL_MOON = 'FULL_MOON'
    WANING_GIBBOUS = 'WANING_GIBBOUS'
    THIRD_QUARTER = 'THIRD_QUARTER'
    WANING_CRESCENT = 'WANING_CRESCENT'


class AlertSeverity(str, Enum):
    EXTREME = 'EXTREME'
    SEVERE = 'SEVERE'
    MODERATE = 'MODERATE'
    MINOR = 'MINOR'
    UNKNOWN = 'UNKNOWN'


class SourceFeature(str, Enum):
    FORECAST = 'FORECAST'
    CURRENT = 'CURRENT'
    AIR_QUALITY = 'AIR_QUALITY'
    POLLEN = 'POLLEN'
    MINUTELY = 'MINUTELY'
    ALERT = 'ALERT'
    NORMALS = 'NORMALS'
    LOCATION_SEARCH = 'LOCATION_SEARCH'
    REVERSE_GEOCODING = 'REVERSE_GEOCODING'


@dataclass
class Temperature:
    temperature: float | None = None
    apparent: float | None = None
    wind_chill: float | None = None


@dataclass
class Wind:
    speed: float | None = None  # km/h
    direction: float | None = None  # degrees
    gusts: float | None = None


@dataclass
class UV:
    index: float | None = None


@dataclass
class AirQuality:
    pm25: float | None = None
    pm10: float | None = None
    so2: float | None = None
    no2: float | None = None
    o3: float | None = None
    co: float | None = None
    aqi: float | None = None


@dataclass
class Pollen:
    grass: float | None = None
    mold: float | None = None
    ragweed: float | None = None
    tree: float | None = None


@dataclass
class Precipitation:
    total: float | None = None
    rain: float | None = None
    snow: float | None = None


@dataclass
class PrecipitationProbability:
    total: float | None = None
    thunderstorm: float | None = None
    rain: float | None = None
    snow: float | None = None
    ice: float | None = None


@dataclass
class Sun:
    rise_time: datetime | None = None
    set_time: datetime | None = None


@dataclass
class Moon:
    rise_time: datetime | None = None
    set_time: datetime | None = None
    phase: MoonPhase | None = None


@dataclass
class HalfDay:
    weather_code: WeatherCode | None = None
    weather_text: str | None = None
    temperature: Temperature | None = None
    precipitation: Precipitation | None = None
    precipitation_probability: PrecipitationProbability | None = None
    wind: Wind | None = None
    cloud_cover: float | None = None


@dataclass
class Daily:
    date: datetime
    day: HalfDay | None = None
    night: HalfDay | None = None
    sun: Sun | None = None
    moon: Moon | None = None
    uv: UV | None = None
    air_quality: AirQuality | None = None
    pollen: Pollen | None = None
    # Computed locally from sun_calc for every provider
    daylight_hours: float | None = None
    # Provider-reported hours of actual sunshine, when available
    sunshine_hours: float | None = None


@dataclass
class Hourly:
    date: datetime
    is_daylight: bool | None = None
    weather_code: WeatherCode | None = None
    weather_text: str | None = None
    temperature: Temperature | None = None
    precipitation: Precipitation | None = None
    precipitation_probability: PrecipitationProbability | None = None
    wind: Wind | None = None
    uv: UV | None = None
    air_quality: AirQuality | None = None
    pollen: Pollen | None = None
    relative_humidity: float | None = None
    dew_point: float | None = None
    pressure: float | None = None
    cloud_cover: float | None = None
    visibility: float | None = None


@dataclass
class Current:
    weather_code: WeatherCode | None = None
    weather_text: str | None = None
    is_daylight: bool | None = None
    temperature: Temperature | None = None
    wind: Wind | None = None
    uv: UV | None = None
    air_quality: AirQuality | None = None
    relative_humidity: float | None = None
    dew_point: float | None = None
    pressure: float | None = None
    cloud_cover: float | None = None
    visibility: float | None = None


@dataclass
class Alert:
    id: str
    severity: AlertSeverity = AlertSeverity.UNKNOWN
    start_date: datetime | None = None
    end_date: datetime | None = None
    headline: str | None = None
    description: str | None = None
    instruction: str | None = None
    source: str | None = None
    color: str | None = None


@dataclass
class Weather:
    daily_forecast: list[Daily] = field(default_factory=list)
    hourly_forecast: list[Hourly] = field(default_factory=list)
    current: Current | None = None
    alerts: list[Alert] = field(default_factory=list)
    refresh_time: datetime | None = None
    main_update_time: datetime | None = None
    air_quality_update_time: datetime | None = None
    provider: str | None = None


@dataclass(frozen=True)
class Location:
    id: str
    latitude: float
    longitude: float
    timezone: str
    forecast_source: str = 'nws'
    is_current_position: bool = False
    city: str | None = None
    province: str | None = None
    country: str | None = None
    country_code: str | None = None
    weather: Weather | None = None

    @property
    def display_name(self) -> str:
        return self.city or 'Unknown Location'


@dataclass(frozen=True)
class WeatherSource:
    id: str
    name: str
    supported_features: tuple[SourceFeature, ...]
    requires_api_key: bool = False
    color: str | None = None
    weather_attribution: str | None = None


# Lunar cycle reference: new moon of 2000-01-06 18:14 UTC
SYNODIC_MONTH = 29.53059
KNOWN_NEW_MOON = datetime(2000, 1, 6, 18, 14, tzinfo=timezone.utc)

_PHASE_BOUNDARIES = [
    (0.0625, MoonPhase.NEW_MOON),
    (0.1875, MoonPhase.WAXING_CRESCENT),
    (0.3125, MoonPhase.FIRST_QUARTER),
    (0.4375, MoonPhase.WAXING_GIBBOUS),
    (0.5625, MoonPhase.FULL_MOON),
    (0.6875, MoonPhase.WANING_GIBBOUS),
    (0.8125, MoonPhase.THIRD_QUARTER),
    (0.9375, MoonPhase.WANING_CRESCENT),
]


def calculate_moon_phase(when: datetime) -> MoonPhase:
    """Approximate moon phase from days elapsed since a known new moon"""
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    days = (when - KNOWN_NEW_MOON).total_seconds() / 86400
    cycle_position = (days / SYNODIC_MONTH) % 1

    for boundary, phase in _PHASE_BOUNDARIES:
        if cycle_position < boundary:
            return phase
    return MoonPhase.NEW_MOON


def _serialize(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {f.name: _serialize(getattr(value, f.name)) for f in dataclasses.fields(value)}
    if isinstance(value, (list, tuple)):
        return [_serialize(item) for item in value]
    if isinstance(value, dict):
        return {key: _serialize(item) for key, item in value.items()}
    return value


def to_dict(record: Any) -> dict[str, Any]:
    """Convert a model record into a JSON-ready dict"""
    if not dataclasses.is_dataclass(record) or isinstance(record, type):
        msg = f'Expected a model record, got {type(record).__name__}'
        raise TypeError(msg)
    return _serialize(record)  # type: ignore[no-any-return]


def location_from_dict(data: dict[str, Any]) -> Location:
    """Rebuild a Location from its persisted form (weather is never persisted)"""
    return Location(
        id=str(data['id']),
        latitude=float(data['latitude']),
        longitude=float(data['longitude']),
        timezone=data.get('timezone') or 'UTC',
        forecast_source=data.get('forecast_source', 'nws'),
        is_current_position=bool(data.get('is_current_position', False)),
        city=data.get('city'),
        province=data.get('province'),
        country=data.get('country'),
        country_code=data.get('country_code'),
    )
