# ABOUTME: Immutable application state (saved locations, settings) and its pure updates
# ABOUTME: Snapshots persist to one JSON file with weather stripped; last write wins

import dataclasses
import json
import os
import tempfile
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from units import (
    DISTANCE_UNITS,
    PRECIPITATION_UNITS,
    PRESSURE_UNITS,
    SPEED_UNITS,
    TEMPERATURE_UNITS,
)
from weather_models import Location, Weather, location_from_dict, to_dict


THEMES = ('light', 'dark', 'system')
FORECAST_SOURCES = ('nws', 'openmeteo')


@dataclass(frozen=True)
class AppSettings:
    theme: str = 'system'
    temperature_unit: str = 'fahrenheit'
    speed_unit: str = 'mph'
    pressure_unit: str = 'inhg'
    precipitation_unit: str = 'inch'
    distance_unit: str = 'mi'
    default_forecast_source: str = 'nws'
    refresh_interval: int = 60  # minutes
    show_notifications: bool = True
    alert_notifications: bool = True
    precipitation_notifications: bool = False
    today_forecast_notifications: bool = False
    tomorrow_forecast_notifications: bool = False


# Allowed values for the enumerated settings
SETTING_CHOICES = {
    'theme': THEMES,
    'temperature_unit': TEMPERATURE_UNITS,
    'speed_unit': SPEED_UNITS,
    'pressure_unit': PRESSURE_UNITS,
    'precipitation_unit': PRECIPITATION_UNITS,
    'distance_unit': DISTANCE_UNITS,
    'default_forecast_source': FORECAST_SOURCES,
}

DEFAULT_LOCATION = Location(
    id='default-new-york',
    latitude=40.7128,
    longitude=-74.0060,
    timezone='America/New_York',
    forecast_source='nws',
    city='New York',
    province='New York',
    country='United States',
    country_code='US',
)


@dataclass(frozen=True)
class AppState:
    locations: tuple[Location, ...] = ()
    current_location_index: int = 0
    settings: AppSettings = field(default_factory=AppSettings)
    is_loading: bool = False
    error: str | None = None
    last_refresh: datetime | None = None


def default_state() -> AppState:
    """State for a first run: New York as the only saved location"""
    return AppState(locations=(DEFAULT_LOCATION,))


def get_current_location(state: AppState) -> Location | None:
    if 0 <= state.current_location_index < len(state.locations):
        return state.locations[state.current_location_index]
    return None


def set_locations(state: AppState, locations: list[Location]) -> AppState:
    return dataclasses.replace(state, locations=tuple(locations))


def add_location(state: AppState, location: Location) -> AppState:
    return dataclasses.replace(state, locations=(*state.locations, location))


def remove_location(state: AppState, location_id: str) -> AppState:
    """Drop a location and keep the current index inside the shorter list"""
    locations = tuple(loc for loc in state.locations if loc.id != location_id)
    index = min(state.current_location_index, max(0, len(locations) - 1))
    return dataclasses.replace(state, locations=locations, current_location_index=index)


def update_location(state: AppState, location_id: str, **updates: Any) -> AppState:
    try:
        locations = tuple(
            dataclasses.replace(loc, **updates) if loc.id == location_id else loc
            for loc in state.locations
        )
    except TypeError as e:
        msg = f'Invalid location update: {e}'
        raise ValueError(msg) from e
    return dataclasses.replace(state, locations=locations)


def reorder_locations(state: AppState, from_index: int, to_index: int) -> AppState:
    """Move one location to a new position, shifting the others"""
    count = len(state.locations)
    if not (0 <= from_index < count and 0 <= to_index < count):
        msg = f'Reorder indices out of range: {from_index} -> {to_index} ({count} locations)'
        raise ValueError(msg)
    locations = list(state.locations)
    moved = locations.pop(from_index)
    locations.insert(to_index, moved)
    return dataclasses.replace(state, locations=tuple(locations))


def set_current_location_index(state: AppState, index: int) -> AppState:
    if state.locations and not 0 <= index < len(state.locations):
        msg = f'Location index {index} out of range'
        raise ValueError(msg)
    return dataclasses.replace(state, current_location_index=index)


def update_location_weather(
    state: AppState,
    location_id: str,
    weather: Weather,
    now: datetime | None = None,
) -> AppState:
    """Attach fresh weather to one location and stamp the refresh time"""
    locations = tuple(
        dataclasses.replace(loc, weather=weather) if loc.id == location_id else loc
        for loc in state.locations
    )
    return dataclasses.replace(
        state,
        locations=locations,
        last_refresh=now or datetime.now(timezone.utc),
    )


def _validate_settings(updates: dict[str, Any]) -> None:
    known = {f.name for f in dataclasses.fields(AppSettings)}
    unknown = sorted(set(updates) - known)
    if unknown:
        msg = f'Unknown settings: {", ".join(unknown)}'
        raise ValueError(msg)

    for key, value in updates.items():
        choices = SETTING_CHOICES.get(key)
        if choices is not None and value not in choices:
            msg = f"Invalid value '{value}' for {key}, expected one of {', '.join(choices)}"
            raise ValueError(msg)

    interval = updates.get('refresh_interval')
    if interval is not None and (
        isinstance(interval, bool) or not isinstance(interval, int) or interval <= 0
    ):
        msg = 'refresh_interval must be a positive number of minutes'
        raise ValueError(msg)


def update_settings(state: AppState, **updates: Any) -> AppState:
    _validate_settings(updates)
    return dataclasses.replace(
        state, settings=dataclasses.replace(state.settings, **updates)
    )


def reset_settings(state: AppState) -> AppState:
    return dataclasses.replace(state, settings=AppSettings())


def set_loading(state: AppState, loading: bool) -> AppState:
    return dataclasses.replace(state, is_loading=loading)


def set_error(state: AppState, error: str | None) -> AppState:
    return dataclasses.replace(state, error=error)


def state_to_dict(state: AppState) -> dict[str, Any]:
    """Persisted form: locations without weather, settings and the current index"""
    return {
        'locations': [
            to_dict(dataclasses.replace(loc, weather=None)) for loc in state.locations
        ],
        'settings': dataclasses.asdict(state.settings),
        'current_location_index': state.current_location_index,
    }


def state_from_dict(data: dict[str, Any]) -> AppState:
    known = {f.name for f in dataclasses.fields(AppSettings)}
    raw_settings = data.get('settings') or {}
    ignored = sorted(set(raw_settings) - known)
    if ignored:
        print(f'⚠️  Ignoring unknown saved settings: {", ".join(ignored)}')
    settings = AppSettings(**{k: v for k, v in raw_settings.items() if k in known})

    locations = tuple(location_from_dict(item) for item in data.get('locations', []))
    index = int(data.get('current_location_index', 0))
    if locations:
        index = min(max(index, 0), len(locations) - 1)
    else:
        index = 0
    return AppState(locations=locations, current_location_index=index, settings=settings)


def save_state(state: AppState, path: str) -> None:
    """Write the snapshot atomically so readers never see a partial file"""
    directory = os.path.dirname(os.path.abspath(path))
    os.makedirs(directory, exist_ok=True)

    fd, tmp_path = tempfile.mkstemp(dir=directory, prefix='.state-', suffix='.json')
    try:
        with os.fdopen(fd, 'w', encoding='utf-8') as f:
            json.dump(state_to_dict(state), f, indent=2)
        os.replace(tmp_path, path)
    except BaseException:
        os.unlink(tmp_path)
        raise


def load_state(path: str) -> AppState:
    """Read the saved snapshot, or the first-run defaults when there is none"""
    try:
        with open(path, encoding='utf-8') as f:
            data = json.load(f)
    except FileNotFoundError:
        return default_state()
    except ValueError as e:
        print(f'⚠️  Saved state at {path} is unreadable, using defaults: {e}')
        return default_state()

    return state_from_dict(data)
