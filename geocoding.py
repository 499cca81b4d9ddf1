# ABOUTME: Location search through the Open-Meteo geocoding API
# ABOUTME: Builds Location records and checks for near-duplicate saved locations

import time
from typing import Iterable

import requests

from weather_models import Location


GEOCODING_URL = 'https://geocoding-api.open-meteo.com/v1/search'
DUPLICATE_TOLERANCE = 0.01  # degrees


class GeocodingError(Exception):
    """Raised when the geocoding service cannot answer a search"""


def make_location_id(lat: float, lon: float, now_ms: int | None = None) -> str:
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f'{lat}-{lon}-{now_ms}'


def _to_location(result: dict) -> Location:
    lat = float(result['latitude'])
    lon = float(result['longitude'])
    return Location(
        id=make_location_id(lat, lon),
        latitude=lat,
        longitude=lon,
        timezone=result.get('timezone') or 'UTC',
        city=result.get('name'),
        province=result.get('admin1'),
        country=result.get('country'),
        country_code=result.get('country_code'),
    )


def search_locations(query: str, count: int = 10, timeout: int = 10) -> list[Location]:
    """Search for places by name"""
    query = (query or '').strip()
    if not query:
        return []

    params = {'name': query, 'count': count, 'language': 'en', 'format': 'json'}
    try:
        response = requests.get(GEOCODING_URL, params=params, timeout=timeout)
        response.raise_for_status()
        data = response.json()
    except (requests.RequestException, ValueError) as e:
        print(f'❌ Geocoding error for "{query}": {str(e)}')
        msg = f'Location search failed: {e}'
        raise GeocodingError(msg) from e

    results = data.get('results') or []
    print(f'🔍 Geocoding "{query}": {len(results)} results')
    return [_to_location(result) for result in results]


def location_exists(locations: Iterable[Location], lat: float, lon: float) -> bool:
    """True when a saved location sits within 0.01° of the given point"""
    return any(
        abs(location.latitude - lat) < DUPLICATE_TOLERANCE
        and abs(location.longitude - lon) < DUPLICATE_TOLERANCE
        for location in locations
    )
