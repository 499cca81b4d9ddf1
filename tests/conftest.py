import os
import sys
from collections.abc import Callable, Generator
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest
import requests
from flask import Flask
from flask.testing import FlaskClient


# Add the project root to the path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

import main
from main import app
from weather_models import (
    Current,
    Daily,
    HalfDay,
    Hourly,
    Location,
    PrecipitationProbability,
    Temperature,
    Weather,
    WeatherCode,
    Wind,
)
from weather_providers import NWSProvider, OpenMeteoProvider, WeatherProviderManager
from widget_bridge import SharedStorage, WidgetBridge


@pytest.fixture(autouse=True)  # type: ignore[misc]
def isolated_app_files(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point the app's state file and widget storage at a temp directory"""
    monkeypatch.setattr(main, 'STATE_FILE', str(tmp_path / 'state.json'))
    monkeypatch.setattr(
        main,
        'widget_bridge',
        WidgetBridge(
            SharedStorage(str(tmp_path / 'widgets')),
            on_reload=main.notify_widgets_reloaded,
        ),
    )
    monkeypatch.setattr(
        main, 'runtime', {'weather': {}, 'last_refresh': None, 'error': None}
    )
    return tmp_path


@pytest.fixture  # type: ignore[misc]
def flask_app() -> Flask:
    """Create a Flask app instance for testing"""
    app.config['TESTING'] = True
    return app


@pytest.fixture  # type: ignore[misc]
def client(flask_app: Flask) -> FlaskClient:
    """Create a test client for the Flask app"""
    return flask_app.test_client()


@pytest.fixture  # type: ignore[misc]
def app_context(flask_app: Flask) -> Generator[Flask, None, None]:
    """Create an application context for testing"""
    with flask_app.app_context():
        yield flask_app


@pytest.fixture  # type: ignore[misc]
def make_response() -> Callable[..., MagicMock]:
    """Build a fake requests.Response"""

    def _make(json_data: Any = None, status_code: int = 200) -> MagicMock:
        response = MagicMock()
        response.status_code = status_code
        response.json.return_value = json_data
        if status_code >= 400:  # noqa: PLR2004
            response.raise_for_status.side_effect = requests.HTTPError(
                f'{status_code} Error'
            )
        else:
            response.raise_for_status.return_value = None
        return response

    return _make


@pytest.fixture  # type: ignore[misc]
def nws_points_response() -> dict[str, Any]:
    """Mock response for NWS points API"""
    return {
        'properties': {
            'gridId': 'OKX',
            'gridX': 33,
            'gridY': 35,
            'forecast': 'https://api.weather.gov/gridpoints/OKX/33,35/forecast',
            'forecastHourly': 'https://api.weather.gov/gridpoints/OKX/33,35/forecast/hourly',
            'forecastGridData': 'https://api.weather.gov/gridpoints/OKX/33,35',
        }
    }


@pytest.fixture  # type: ignore[misc]
def nws_forecast_response() -> dict[str, Any]:
    """Mock response for NWS 12-hour forecast periods"""
    return {
        'properties': {
            'periods': [
                {
                    'number': 1,
                    'name': 'Today',
                    'startTime': '2024-07-20T06:00:00-04:00',
                    'endTime': '2024-07-20T18:00:00-04:00',
                    'isDaytime': True,
                    'temperature': 86,
                    'temperatureUnit': 'F',
                    'windSpeed': '7 to 15 mph',
                    'windDirection': 'SW',
                    'icon': 'https://api.weather.gov/icons/land/day/few?size=medium',
                    'shortForecast': 'Sunny',
                    'probabilityOfPrecipitation': {'unitCode': 'wmoUnit:percent', 'value': 10},
                },
                {
                    'number': 2,
                    'name': 'Tonight',
                    'startTime': '2024-07-20T18:00:00-04:00',
                    'endTime': '2024-07-21T06:00:00-04:00',
                    'isDaytime': False,
                    'temperature': 68,
                    'temperatureUnit': 'F',
                    'windSpeed': '5 mph',
                    'windDirection': 'S',
                    'icon': 'https://api.weather.gov/icons/land/night/tsra,40?size=medium',
                    'shortForecast': 'Chance Showers And Thunderstorms',
                    'probabilityOfPrecipitation': {'unitCode': 'wmoUnit:percent', 'value': 40},
                },
                {
                    'number': 3,
                    'name': 'Sunday',
                    'startTime': '2024-07-21T06:00:00-04:00',
                    'endTime': '2024-07-21T18:00:00-04:00',
                    'isDaytime': True,
                    'temperature': 81,
                    'temperatureUnit': 'F',
                    'windSpeed': '10 mph',
                    'windDirection': 'NNW',
                    'icon': 'https://api.weather.gov/icons/land/day/bkn?size=medium',
                    'shortForecast': 'Mostly Cloudy',
                    'probabilityOfPrecipitation': {'unitCode': 'wmoUnit:percent', 'value': None},
                },
            ]
        }
    }


@pytest.fixture  # type: ignore[misc]
def nws_hourly_response() -> dict[str, Any]:
    """Mock response for NWS hourly forecast"""
    return {
        'properties': {
            'periods': [
                {
                    'number': 1,
                    'startTime': '2024-07-20T14:00:00-04:00',
                    'endTime': '2024-07-20T15:00:00-04:00',
                    'isDaytime': True,
                    'temperature': 84,
                    'temperatureUnit': 'F',
                    'windSpeed': '10 mph',
                    'windDirection': 'W',
                    'icon': 'https://api.weather.gov/icons/land/day/sct?size=small',
                    'shortForecast': 'Partly Cloudy',
                    'probabilityOfPrecipitation': {'value': 5},
                },
                {
                    'number': 2,
                    'startTime': '2024-07-20T15:00:00-04:00',
                    'endTime': '2024-07-20T16:00:00-04:00',
                    'isDaytime': True,
                    'temperature': 85,
                    'temperatureUnit': 'F',
                    'windSpeed': '12 mph',
                    'windDirection': 'W',
                    'icon': 'https://api.weather.gov/icons/land/day/sct?size=small',
                    'shortForecast': 'Partly Cloudy',
                    'probabilityOfPrecipitation': {'value': 5},
                },
            ]
        }
    }


@pytest.fixture  # type: ignore[misc]
def nws_grid_response() -> dict[str, Any]:
    """Mock response for NWS raw grid data"""
    return {
        'properties': {
            'relativeHumidity': {
                'uom': 'wmoUnit:percent',
                'values': [{'validTime': '2024-07-20T18:00:00+00:00/PT1H', 'value': 58}],
            }
        }
    }


@pytest.fixture  # type: ignore[misc]
def nws_alerts_response() -> dict[str, Any]:
    """Mock response for NWS active alerts"""
    return {
        'type': 'FeatureCollection',
        'features': [
            {
                'id': 'https://api.weather.gov/alerts/urn:oid:2.49.0.1.840.0.12345',
                'properties': {
                    'id': 'urn:oid:2.49.0.1.840.0.12345',
                    'event': 'Heat Advisory',
                    'headline': 'Heat Advisory issued July 20 at 3:00AM EDT',
                    'description': 'Heat index values up to 105 expected.',
                    'severity': 'Moderate',
                    'onset': '2024-07-20T11:00:00-04:00',
                    'expires': '2024-07-20T20:00:00-04:00',
                    'senderName': 'NWS Upton NY',
                    'instruction': 'Drink plenty of fluids.',
                },
            }
        ],
    }


@pytest.fixture  # type: ignore[misc]
def nws_requests(
    make_response: Callable[..., MagicMock],
    nws_points_response: dict[str, Any],
    nws_forecast_response: dict[str, Any],
    nws_hourly_response: dict[str, Any],
    nws_grid_response: dict[str, Any],
    nws_alerts_response: dict[str, Any],
) -> Callable[..., MagicMock]:
    """Dispatch NWS URLs to canned responses (requests run on worker threads)"""

    def _get(url: str, **_kwargs: Any) -> MagicMock:
        if '/points/' in url:
            return make_response(nws_points_response)
        if url.endswith('/forecast/hourly'):
            return make_response(nws_hourly_response)
        if url.endswith('/forecast'):
            return make_response(nws_forecast_response)
        if '/alerts/active' in url:
            return make_response(nws_alerts_response)
        if '/gridpoints/' in url:
            return make_response(nws_grid_response)
        return make_response(None, 404)

    return _get


@pytest.fixture  # type: ignore[misc]
def open_meteo_forecast_response() -> dict[str, Any]:
    """Mock Open-Meteo forecast response (local times, UTC+1)"""
    return {
        'latitude': 51.5,
        'longitude': -0.12,
        'utc_offset_seconds': 3600,
        'timezone': 'Europe/London',
        'current': {
            'time': '2024-06-21T12:00',
            'temperature_2m': 21.4,
            'relative_humidity_2m': 55,
            'apparent_temperature': 20.9,
            'is_day': 1,
            'weather_code': 2,
            'cloud_cover': 40,
            'pressure_msl': 1016.2,
            'wind_speed_10m': 14.8,
            'wind_direction_10m': 250,
            'wind_gusts_10m': 29.5,
        },
        'hourly': {
            'time': ['2024-06-21T12:00', '2024-06-21T13:00'],
            'temperature_2m': [21.4, 22.0],
            'apparent_temperature': [20.9, 21.5],
            'precipitation_probability': [5, 10],
            'weather_code': [2, 61],
            'is_day': [1, 1],
            'wind_speed_10m': [14.8, 15.2],
            'relative_humidity_2m': [55, 53],
        },
        'daily': {
            'time': ['2024-06-21', '2024-06-22'],
            'weather_code': [2, 95],
            'temperature_2m_max': [23.1, 19.8],
            'temperature_2m_min': [13.2, 12.7],
            'sunrise': ['2024-06-21T04:43', '2024-06-22T04:43'],
            'sunset': ['2024-06-21T21:21', '2024-06-22T21:21'],
            'sunshine_duration': [43200.0, 7200.0],
            'uv_index_max': [6.5, 3.1],
            'precipitation_sum': [0.0, 8.4],
            'precipitation_probability_max': [10, 80],
        },
    }


@pytest.fixture  # type: ignore[misc]
def open_meteo_air_quality_response() -> dict[str, Any]:
    """Mock Open-Meteo air quality response"""
    return {
        'utc_offset_seconds': 3600,
        'current': {
            'pm10': 14.2,
            'pm2_5': 8.1,
            'carbon_monoxide': 180.0,
            'nitrogen_dioxide': 12.3,
            'sulphur_dioxide': 1.2,
            'ozone': 70.5,
            'european_aqi': 31,
            'us_aqi': 42,
        },
        'hourly': {
            'time': ['2024-06-21T12:00', '2024-06-21T13:00'],
            'pm2_5': [8.1, 8.4],
            'us_aqi': [None, 44],
            'european_aqi': [30, 32],
            'grass_pollen': [12.0, 15.0],
            'birch_pollen': [1.5, None],
            'olive_pollen': [0.5, 0.0],
            'ragweed_pollen': [0.0, 0.0],
        },
    }


@pytest.fixture  # type: ignore[misc]
def sample_weather() -> Weather:
    """A small normalized forecast anchored on 2024-06-21 UTC"""
    base = datetime(2024, 6, 21, tzinfo=timezone.utc)
    daily = [
        Daily(
            date=base + timedelta(days=offset),
            day=HalfDay(
                weather_code=WeatherCode.PARTLY_CLOUDY,
                weather_text='Partly cloudy',
                temperature=Temperature(temperature=24.0 + offset),
                precipitation_probability=PrecipitationProbability(total=10.0 * offset),
            ),
            night=HalfDay(
                weather_code=WeatherCode.CLEAR,
                temperature=Temperature(temperature=14.0),
            ),
        )
        for offset in range(-1, 9)
    ]
    hourly = [
        Hourly(
            date=base + timedelta(hours=hour),
            is_daylight=6 <= hour <= 20,  # noqa: PLR2004
            weather_code=WeatherCode.RAIN_LIGHT,
            temperature=Temperature(temperature=18.0),
            precipitation_probability=PrecipitationProbability(total=30.0),
        )
        for hour in range(48)
    ]
    return Weather(
        daily_forecast=daily,
        hourly_forecast=hourly,
        current=Current(
            weather_code=WeatherCode.PARTLY_CLOUDY,
            weather_text='Partly cloudy',
            is_daylight=True,
            temperature=Temperature(temperature=22.5, apparent=23.1),
            wind=Wind(speed=12.0, direction=270),
            relative_humidity=58,
        ),
        refresh_time=base,
        provider='OpenMeteo',
    )


@pytest.fixture  # type: ignore[misc]
def london() -> Location:
    return Location(
        id='51.5074--0.1278-1718928000000',
        latitude=51.5074,
        longitude=-0.1278,
        timezone='Europe/London',
        forecast_source='openmeteo',
        city='London',
        country='United Kingdom',
        country_code='GB',
    )


@pytest.fixture  # type: ignore[misc]
def weather_provider_manager() -> WeatherProviderManager:
    """Create a WeatherProviderManager with both providers"""
    manager = WeatherProviderManager()
    manager.add_provider(NWSProvider(), is_primary=True)
    manager.add_provider(OpenMeteoProvider(), is_primary=False)
    return manager
