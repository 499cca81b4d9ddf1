# ABOUTME: Weather code to icon asset mapping for each presentation surface
# ABOUTME: One table drives the app and the widgets; ICON_MAP_FILE may replace it

import json
import os
from typing import Any

from weather_models import WeatherCode


# Surface -> weather code -> asset key. App entries carry day/night variants.
DEFAULT_ICON_MAP: dict[str, dict[str, Any]] = {
    'app': {
        'CLEAR': {'day': 'clear', 'night': 'night'},
        'PARTLY_CLOUDY': {'day': 'partlyCloudy', 'night': 'night'},
        'CLOUDY': {'day': 'cloudy', 'night': 'cloudy'},
        'RAIN_LIGHT': {'day': 'rain', 'night': 'rain'},
        'RAIN': {'day': 'rain', 'night': 'rain'},
        'RAIN_HEAVY': {'day': 'storm', 'night': 'storm'},
        'SNOW_LIGHT': {'day': 'snow', 'night': 'snow'},
        'SNOW': {'day': 'snow', 'night': 'snow'},
        'SNOW_HEAVY': {'day': 'snow', 'night': 'snow'},
        'SLEET': {'day': 'snow', 'night': 'snow'},
        'HAIL': {'day': 'snow', 'night': 'snow'},
        'THUNDERSTORM': {'day': 'lightning', 'night': 'lightning'},
        'FOG': {'day': 'cloudy', 'night': 'cloudy'},
        'HAZE': {'day': 'cloudy', 'night': 'cloudy'},
        'WIND': {'day': 'wind', 'night': 'wind'},
        'default': {'day': 'clear', 'night': 'night'},
    },
    'widget': {
        'CLEAR': 'clear',
        'PARTLY_CLOUDY': 'partly-cloudy',
        'CLOUDY': 'cloudy',
        'RAIN_LIGHT': 'rain',
        'RAIN': 'rain',
        'RAIN_HEAVY': 'storm',
        'SNOW_LIGHT': 'snow',
        'SNOW': 'snow',
        'SNOW_HEAVY': 'snow',
        'SLEET': 'snow',
        'HAIL': 'snow',
        'THUNDERSTORM': 'lightning',
        'FOG': 'cloudy',
        'HAZE': 'cloudy',
        'WIND': 'wind',
        'default': 'cloudy',
    },
    'widget_symbol': {
        'CLEAR': 'sun.max.fill',
        'PARTLY_CLOUDY': 'cloud.sun.fill',
        'CLOUDY': 'cloud.fill',
        'RAIN_LIGHT': 'cloud.drizzle.fill',
        'RAIN': 'cloud.rain.fill',
        'RAIN_HEAVY': 'cloud.heavyrain.fill',
        'SNOW_LIGHT': 'cloud.snow.fill',
        'SNOW': 'cloud.snow.fill',
        'SNOW_HEAVY': 'snowflake',
        'SLEET': 'cloud.sleet.fill',
        'HAIL': 'cloud.sleet.fill',
        'THUNDERSTORM': 'cloud.bolt.rain.fill',
        'FOG': 'cloud.fog.fill',
        'HAZE': 'cloud.fog.fill',
        'WIND': 'wind',
        'default': 'cloud.fill',
    },
}


def load_icon_map(path: str | None = None) -> dict[str, dict[str, Any]]:
    """Load the icon table from a JSON file, falling back to the built-in one"""
    path = path or os.getenv('ICON_MAP_FILE')
    if not path:
        return DEFAULT_ICON_MAP

    try:
        with open(path, encoding='utf-8') as f:
            icon_map = json.load(f)
    except (OSError, ValueError) as e:
        print(f'⚠️  Could not load icon map from {path}: {e}')
        return DEFAULT_ICON_MAP

    # Surfaces missing from the file keep their built-in table
    return {**DEFAULT_ICON_MAP, **icon_map}


def get_icon_key(
    code: WeatherCode | str | None,
    is_day: bool | None = True,
    surface: str = 'app',
    icon_map: dict[str, dict[str, Any]] | None = None,
) -> str:
    """Resolve the icon asset key for a weather code on one surface.

    A custom table that lacks the code or its own default falls back to the
    built-in table for the same surface.
    """
    table = (icon_map or load_icon_map()).get(surface)
    if not isinstance(table, dict):
        msg = f"Unknown icon surface '{surface}'"
        raise ValueError(msg)

    key = code.value if isinstance(code, WeatherCode) else (code or '').upper()
    builtin = DEFAULT_ICON_MAP.get(surface, {})
    entry = next(
        (
            candidate
            for candidate in (
                table.get(key),
                table.get('default'),
                builtin.get(key),
                builtin.get('default'),
            )
            if candidate is not None
        ),
        None,
    )

    if isinstance(entry, dict):
        entry = entry.get('night') if is_day is False else entry.get('day')
    if entry is None:
        msg = f"No icon for '{key or 'default'}' on surface '{surface}'"
        raise ValueError(msg)
    return str(entry)


def widget_weather_code(code: WeatherCode | str | None) -> str | None:
    """Widget encoding of a weather code (PARTLY_CLOUDY -> partly_cloudy)"""
    if not code:
        return None
    value = code.value if isinstance(code, WeatherCode) else code
    return value.lower()
