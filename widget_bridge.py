# ABOUTME: Mirrors a reduced weather snapshot into shared storage for home-screen widgets
# ABOUTME: Widgets are best-effort: storage failures are logged and never raised

import json
import os
import tempfile
from datetime import datetime, timezone
from typing import Any, Callable, Iterable
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from app_state import AppSettings
from weather_icons import widget_weather_code
from weather_models import Location


APP_GROUP_IDENTIFIER = 'group.com.zephyrweather.shared'
WEATHER_DATA_KEY = 'weatherData'
LOCATIONS_LIST_KEY = 'locations'

MAX_DAILY = 7
MAX_HOURLY = 24


class SharedStorage:
    """Key/value text store shared with the widget process, one file per key"""

    def __init__(self, directory: str, app_group: str = APP_GROUP_IDENTIFIER):
        self.app_group = app_group
        self.root = os.path.join(directory, app_group)

    def _path(self, key: str) -> str:
        return os.path.join(self.root, key)

    def set_item(self, key: str, value: str) -> None:
        os.makedirs(self.root, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.root, prefix=f'.{key}-')
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                f.write(value)
            os.replace(tmp_path, self._path(key))
        except BaseException:
            os.unlink(tmp_path)
            raise

    def get_item(self, key: str) -> str | None:
        try:
            with open(self._path(key), encoding='utf-8') as f:
                return f.read()
        except FileNotFoundError:
            return None


def js_iso_format(when: datetime) -> str:
    """UTC timestamp with milliseconds, e.g. 2024-06-21T04:43:12.345Z"""
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    when = when.astimezone(timezone.utc)
    return when.strftime('%Y-%m-%dT%H:%M:%S.') + f'{when.microsecond // 1000:03d}Z'


def _location_zone(location: Location) -> timezone | ZoneInfo:
    try:
        return ZoneInfo(location.timezone)
    except (ZoneInfoNotFoundError, ValueError):
        print(f'⚠️  Unknown timezone {location.timezone!r} for {location.display_name}, using UTC')
        return timezone.utc


def _local_date(when: datetime, zone: timezone | ZoneInfo) -> Any:
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return when.astimezone(zone).date()


def create_widget_weather_data(
    location: Location,
    settings: AppSettings | None = None,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Reduce a location's weather to what the widgets display"""
    weather = location.weather
    if weather is None:
        msg = f'Location {location.id} has no weather data'
        raise ValueError(msg)

    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    zone = _location_zone(location)
    today = _local_date(now, zone)

    current = None
    if weather.current:
        c = weather.current
        current = {
            'temperature': c.temperature.temperature if c.temperature else None,
            'feelsLike': c.temperature.apparent if c.temperature else None,
            'weatherCode': widget_weather_code(c.weather_code),
            'weatherText': c.weather_text,
            'humidity': c.relative_humidity,
            'windSpeed': c.wind.speed if c.wind else None,
            'isDaylight': c.is_daylight,
        }

    daily = []
    for day in weather.daily_forecast:
        if _local_date(day.date, zone) < today:
            continue
        day_half = day.day
        night_half = day.night
        daily.append(
            {
                'date': js_iso_format(day.date),
                'dayTemp': day_half.temperature.temperature
                if day_half and day_half.temperature
                else None,
                'nightTemp': night_half.temperature.temperature
                if night_half and night_half.temperature
                else None,
                'dayWeatherCode': widget_weather_code(
                    day_half.weather_code if day_half else None
                ),
                'nightWeatherCode': widget_weather_code(
                    night_half.weather_code if night_half else None
                ),
                'dayWeatherText': day_half.weather_text if day_half else None,
                'precipProbability': day_half.precipitation_probability.total
                if day_half and day_half.precipitation_probability
                else None,
            }
        )
        if len(daily) == MAX_DAILY:
            break

    hourly = []
    for hour in weather.hourly_forecast:
        hour_date = hour.date if hour.date.tzinfo else hour.date.replace(tzinfo=timezone.utc)
        if hour_date < now:
            continue
        hourly.append(
            {
                'date': js_iso_format(hour_date),
                'temperature': hour.temperature.temperature if hour.temperature else None,
                'weatherCode': widget_weather_code(hour.weather_code),
                'precipProbability': hour.precipitation_probability.total
                if hour.precipitation_probability
                else None,
                'isDaylight': hour.is_daylight,
            }
        )
        if len(hourly) == MAX_HOURLY:
            break

    return {
        'current': current,
        'daily': daily,
        'hourly': hourly,
        'locationName': location.city or 'Unknown Location',
        'temperatureUnit': settings.temperature_unit if settings else 'fahrenheit',
    }


class WidgetBridge:
    """Writes widget snapshots to shared storage and asks widgets to reload"""

    def __init__(
        self,
        storage: SharedStorage,
        on_reload: Callable[[], None] | None = None,
    ):
        self.storage = storage
        self.on_reload = on_reload

    def reload_widgets(self) -> None:
        if self.on_reload:
            self.on_reload()

    def update_locations_list(self, locations: Iterable[Location]) -> None:
        """Publish the id/name list widgets offer in their configuration"""
        try:
            locations_list = [
                {'id': loc.id, 'name': loc.city or 'Unknown Location'} for loc in locations
            ]
            self.storage.set_item(LOCATIONS_LIST_KEY, json.dumps(locations_list))
            print(f'📱 Widget locations list updated ({len(locations_list)} locations)')
        except Exception as e:
            print(f'❌ Error updating widget locations list: {str(e)}')

    def update_all_locations_weather_data(
        self,
        locations: Iterable[Location],
        settings: AppSettings | None = None,
        now: datetime | None = None,
    ) -> None:
        locations = list(locations)
        try:
            self.update_locations_list(locations)

            weather_data_map = {
                loc.id: create_widget_weather_data(loc, settings, now)
                for loc in locations
                if loc.weather
            }

            if weather_data_map:
                self.storage.set_item(WEATHER_DATA_KEY, json.dumps(weather_data_map))
                self.reload_widgets()

            print(f'📱 Widget weather data updated for {len(weather_data_map)} locations')
        except Exception as e:
            print(f'❌ Error updating widget weather data: {str(e)}')

    def update_widget_data(
        self,
        location: Location,
        settings: AppSettings | None = None,
        now: datetime | None = None,
    ) -> None:
        """Refresh one location's entry in the widget map, keeping the others"""
        if not location.weather:
            return

        try:
            widget_data = create_widget_weather_data(location, settings, now)
            weather_data_map = self._stored_weather_data()
            weather_data_map[location.id] = widget_data
            self.storage.set_item(WEATHER_DATA_KEY, json.dumps(weather_data_map))
            self.reload_widgets()
            print(f'📱 Widget data updated for {location.display_name}')
        except Exception as e:
            print(f'❌ Error updating widget data: {str(e)}')

    def _stored_weather_data(self) -> dict[str, Any]:
        """Current id -> snapshot map, without anything that is not keyed by id"""
        raw = self.storage.get_item(WEATHER_DATA_KEY)
        if not raw:
            return {}
        try:
            stored = json.loads(raw)
        except ValueError:
            print('⚠️  Discarding unreadable widget weather data')
            return {}
        if not isinstance(stored, dict):
            return {}
        return {
            key: value
            for key, value in stored.items()
            if isinstance(value, dict) and 'locationName' in value
        }
