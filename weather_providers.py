# ABOUTME: Weather provider classes for National Weather Service and Open-Meteo APIs
# ABOUTME: Each provider normalizes its own response shape into the shared Weather model

import math
import re
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from typing import Any

import requests

from sun_calc import (
    compute_daylight_duration_hours,
    compute_sun_times,
    local_solar_noon,
)
from units import fahrenheit_to_celsius, mph_to_kmh
from weather_models import (
    UV,
    AirQuality,
    Alert,
    AlertSeverity,
    Current,
    Daily,
    HalfDay,
    Hourly,
    Location,
    Moon,
    Pollen,
    Precipitation,
    PrecipitationProbability,
    SourceFeature,
    Sun,
    Temperature,
    Weather,
    WeatherCode,
    WeatherSource,
    Wind,
    calculate_moon_phase,
)


DEFAULT_USER_AGENT = 'ZephyrWeather/1.0 (zephyrweather.app, support@zephyrweather.app)'


def _daylight_hours(day: datetime, lat: float, lon: float) -> float | None:
    """Locally computed daylight length; None when the sun never rises or sets"""
    hours = compute_daylight_duration_hours(local_solar_noon(day, lon), lat, lon)
    return None if math.isnan(hours) else hours


class WeatherProvider(ABC):
    """Abstract base class for weather providers"""

    source_id = ''

    def __init__(self, name: str):
        self.name = name
        self.timeout = 10

    @abstractmethod
    def fetch_weather_data(
        self, lat: float, lon: float, tz_name: str | None = None
    ) -> dict[str, Any] | None:
        """Fetch raw weather data from the provider"""
        pass

    @abstractmethod
    def process_weather_data(
        self,
        raw_data: dict[str, Any],
        location_name: str | None = None,
        tz_name: str | None = None,
    ) -> Weather | None:
        """Process raw weather data into the shared Weather model"""
        pass

    def get_weather(
        self,
        lat: float,
        lon: float,
        location_name: str | None = None,
        tz_name: str | None = None,
    ) -> Weather | None:
        """Get processed weather data for coordinates"""
        try:
            raw_data = self.fetch_weather_data(lat, lon, tz_name)
        except Exception as e:
            print(f'❌ {self.name} provider error: {str(e)}')
            return None
        else:
            if raw_data:
                return self.process_weather_data(raw_data, location_name, tz_name)
            return None

    def get_provider_info(self) -> dict[str, Any]:
        """Get information about this provider"""
        return {
            'name': self.name,
            'source_id': self.source_id,
            'timeout': self.timeout,
            'description': self.__doc__ or f'{self.name} weather provider',
        }

    def _get_json(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        response = requests.get(
            url, params=params, headers=headers, timeout=self.timeout
        )
        response.raise_for_status()
        return response.json()


class NWSProvider(WeatherProvider):
    """National Weather Service provider - official US forecasts and alerts"""

    source_id = 'nws'

    # Alert severity color coding
    SEVERITY_COLORS = {
        AlertSeverity.EXTREME: '#8B0000',  # Dark red
        AlertSeverity.SEVERE: '#FF0000',  # Red
        AlertSeverity.MODERATE: '#FF8C00',  # Dark orange
        AlertSeverity.MINOR: '#FFD700',  # Gold
        AlertSeverity.UNKNOWN: '#1E90FF',  # Dodger blue
    }

    WIND_DIRECTIONS = {
        'N': 0,
        'NNE': 22.5,
        'NE': 45,
        'ENE': 67.5,
        'E': 90,
        'ESE': 112.5,
        'SE': 135,
        'SSE': 157.5,
        'S': 180,
        'SSW': 202.5,
        'SW': 225,
        'WSW': 247.5,
        'W': 270,
        'WNW': 292.5,
        'NW': 315,
        'NNW': 337.5,
    }

    WIND_SPEED_PATTERN = re.compile(r'(\d+)(\s+to\s+(\d+))?\s*mph', re.IGNORECASE)

    def __init__(self, user_agent: str | None = None) -> None:
        super().__init__('NationalWeatherService')
        self.base_url = 'https://api.weather.gov'
        self.user_agent = user_agent or DEFAULT_USER_AGENT

    @property
    def headers(self) -> dict[str, str]:
        return {'User-Agent': self.user_agent, 'Accept': 'application/geo+json'}

    def _points_url(self, lat: float, lon: float) -> str:
        return f'{self.base_url}/points/{lat:.4f},{lon:.4f}'

    def is_us_location(self, lat: float, lon: float) -> bool:
        """A point lookup only succeeds inside NWS coverage"""
        try:
            response = requests.get(
                self._points_url(lat, lon), headers=self.headers, timeout=self.timeout
            )
        except requests.RequestException as e:
            print(f'⚠️  NWS points lookup failed: {str(e)}')
            return False
        return response.status_code == 200  # noqa: PLR2004

    def fetch_weather_data(
        self,
        lat: float,
        lon: float,
        tz_name: str | None = None,  # noqa: ARG002
    ) -> dict | None:
        """Fetch forecast, hourly forecast, grid data and alerts from NWS API"""
        try:
            # First, get the grid point for this location
            points_response = requests.get(
                self._points_url(lat, lon), headers=self.headers, timeout=self.timeout
            )

            if points_response.status_code != 200:  # noqa: PLR2004
                print(f'❌ NWS points API returned {points_response.status_code}')
                return None

            properties = points_response.json().get('properties', {})
            forecast_url = properties.get('forecast')
            hourly_url = properties.get('forecastHourly')
            grid_data_url = properties.get('forecastGridData')

            if not all([forecast_url, hourly_url]):
                print('❌ Could not get NWS forecast endpoints')
                return None

            # Fan out the remaining requests and join before processing
            with ThreadPoolExecutor(max_workers=4) as pool:
                forecast_future = pool.submit(
                    self._get_json, forecast_url, headers=self.headers
                )
                hourly_future = pool.submit(
                    self._get_json, hourly_url, headers=self.headers
                )
                grid_future = (
                    pool.submit(self._get_json, grid_data_url, headers=self.headers)
                    if grid_data_url
                    else None
                )
                alerts_future = pool.submit(
                    self._get_json,
                    f'{self.base_url}/alerts/active',
                    params={'point': f'{lat},{lon}'},
                    headers=self.headers,
                )

                forecast_data = forecast_future.result()
                hourly_data = hourly_future.result()

                # Grid data and alerts are optional extras
                grid_data = None
                if grid_future is not None:
                    try:
                        grid_data = grid_future.result()
                    except Exception as e:
                        print(f'⚠️  NWS grid data unavailable: {str(e)}')

                try:
                    alerts_data = alerts_future.result()
                except Exception as e:
                    print(f'⚠️  NWS alerts unavailable: {str(e)}')
                    alerts_data = {'features': []}

            print(
                f'🏛️  NWS API: Grid {properties.get("gridId")}/'
                f'{properties.get("gridX")},{properties.get("gridY")}'
            )

        except Exception as e:
            print(f'❌ NWS API error: {str(e)}')
            return None
        else:
            return {
                'latitude': lat,
                'longitude': lon,
                'points': properties,
                'forecast': forecast_data,
                'hourly': hourly_data,
                'grid_data': grid_data,
                'alerts': alerts_data,
            }

    def process_weather_data(
        self,
        raw_data: dict,
        location_name: str | None = None,
        tz_name: str | None = None,  # noqa: ARG002
    ) -> Weather | None:
        """Process NWS data into the shared Weather model"""
        if not raw_data:
            return None

        try:
            lat = raw_data['latitude']
            lon = raw_data['longitude']
            periods = raw_data['forecast'].get('properties', {}).get('periods', [])
            hourly_periods = (
                raw_data['hourly'].get('properties', {}).get('periods', [])
            )

            current = self._build_current(
                hourly_periods[0] if hourly_periods else None,
                raw_data.get('grid_data'),
            )
            daily_forecast = self._build_daily(periods, lat, lon)
            hourly_forecast = [self._build_hourly(period) for period in hourly_periods]
            alerts = self._build_alerts(raw_data.get('alerts'))

            now = datetime.now(timezone.utc)
            weather = Weather(
                daily_forecast=daily_forecast,
                hourly_forecast=hourly_forecast,
                current=current,
                alerts=alerts,
                refresh_time=now,
                main_update_time=now,
                provider=self.name,
            )

            print(
                f'🚨 NWS: {len(daily_forecast)} days, {len(hourly_forecast)} hours, '
                f'{len(alerts)} alerts for {location_name or "Unknown Location"}'
            )

        except Exception as e:
            print(f'❌ NWS data processing error: {str(e)}')
            return None
        else:
            return weather

    def _build_current(
        self, period: dict | None, grid_data: dict | None
    ) -> Current | None:
        if not period:
            return None

        humidity = None
        humidity_values = (
            (grid_data or {})
            .get('properties', {})
            .get('relativeHumidity', {})
            .get('values', [])
        )
        if humidity_values:
            humidity = humidity_values[0].get('value')

        half = self._build_half_day(period)
        return Current(
            weather_code=half.weather_code,
            weather_text=half.weather_text,
            is_daylight=period.get('isDaytime'),
            temperature=half.temperature,
            wind=half.wind,
            relative_humidity=humidity,
        )

    def _build_daily(self, periods: list[dict], lat: float, lon: float) -> list[Daily]:
        # NWS provides day/night periods, grouped here by UTC date of their start
        daily_map: dict[str, Daily] = {}

        for period in periods:
            start = datetime.fromisoformat(period['startTime'])
            date_key = start.astimezone(timezone.utc).date().isoformat()

            if date_key not in daily_map:
                day_start = datetime.fromisoformat(date_key).replace(
                    tzinfo=timezone.utc
                )
                sun_times = compute_sun_times(
                    local_solar_noon(day_start, lon), lat, lon
                )
                daily_map[date_key] = Daily(
                    date=day_start,
                    sun=Sun(rise_time=sun_times.sunrise, set_time=sun_times.sunset),
                    moon=Moon(phase=calculate_moon_phase(day_start)),
                    daylight_hours=_daylight_hours(day_start, lat, lon),
                )

            daily = daily_map[date_key]
            if period.get('isDaytime'):
                daily.day = self._build_half_day(period)
            else:
                daily.night = self._build_half_day(period)

        return list(daily_map.values())

    def _build_half_day(self, period: dict) -> HalfDay:
        short_forecast = period.get('shortForecast') or ''
        return HalfDay(
            weather_code=self._map_weather_code(
                short_forecast, period.get('icon') or ''
            ),
            weather_text=short_forecast or None,
            temperature=Temperature(temperature=self._temperature_celsius(period)),
            wind=self._wind(period),
            precipitation_probability=PrecipitationProbability(
                total=(period.get('probabilityOfPrecipitation') or {}).get('value')
            ),
        )

    def _build_hourly(self, period: dict) -> Hourly:
        half = self._build_half_day(period)
        return Hourly(
            date=datetime.fromisoformat(period['startTime']),
            is_daylight=period.get('isDaytime'),
            weather_code=half.weather_code,
            weather_text=half.weather_text,
            temperature=half.temperature,
            wind=half.wind,
            precipitation_probability=half.precipitation_probability,
        )

    def _build_alerts(self, alerts_data: dict | None) -> list[Alert]:
        alerts = []
        for feature in (alerts_data or {}).get('features', []):
            props = feature.get('properties', {})
            severity = self._map_alert_severity(props.get('severity'))
            alerts.append(
                Alert(
                    id=feature.get('id') or props.get('id') or '',
                    severity=severity,
                    start_date=self._parse_time(props.get('onset')),
                    end_date=self._parse_time(props.get('expires')),
                    headline=props.get('headline'),
                    description=props.get('description'),
                    instruction=props.get('instruction'),
                    source=props.get('senderName'),
                    color=self.SEVERITY_COLORS[severity],
                )
            )
        return alerts

    @staticmethod
    def _parse_time(value: str | None) -> datetime | None:
        return datetime.fromisoformat(value) if value else None

    @staticmethod
    def _temperature_celsius(period: dict) -> float | None:
        temperature = period.get('temperature')
        if temperature is None:
            return None
        if period.get('temperatureUnit') == 'F':
            return fahrenheit_to_celsius(temperature)
        return float(temperature)

    def _wind(self, period: dict) -> Wind:
        return Wind(
            speed=mph_to_kmh(self._parse_wind_speed(period.get('windSpeed') or '')),
            direction=self._parse_wind_direction(period.get('windDirection') or ''),
        )

    def _parse_wind_speed(self, wind_speed: str) -> float:
        """Parse "13 mph" or "7 to 15 mph" into a single mph value"""
        match = self.WIND_SPEED_PATTERN.search(wind_speed)
        if not match:
            return 0
        low = int(match.group(1))
        high = int(match.group(3)) if match.group(3) else low
        return (low + high) / 2

    def _parse_wind_direction(self, direction: str) -> float:
        return self.WIND_DIRECTIONS.get(direction.upper(), 0)

    def _map_weather_code(self, short_forecast: str, icon: str) -> WeatherCode:  # noqa: PLR0911
        """Map NWS forecast text and icon URL to a weather code"""
        forecast = short_forecast.lower()
        icon_url = icon.lower()

        if 'thunder' in forecast or 'tstorm' in forecast:
            return WeatherCode.THUNDERSTORM

        if 'snow' in forecast:
            if 'heavy' in forecast:
                return WeatherCode.SNOW_HEAVY
            if 'light' in forecast:
                return WeatherCode.SNOW_LIGHT
            return WeatherCode.SNOW

        if any(word in forecast for word in ('sleet', 'freezing rain', 'ice')):
            return WeatherCode.SLEET

        if any(word in forecast for word in ('rain', 'shower', 'drizzle')):
            if 'heavy' in forecast:
                return WeatherCode.RAIN_HEAVY
            if 'light' in forecast:
                return WeatherCode.RAIN_LIGHT
            return WeatherCode.RAIN

        if 'fog' in forecast:
            return WeatherCode.FOG

        if 'haze' in forecast:
            return WeatherCode.HAZE

        if (
            'clear' in forecast
            or 'sunny' in forecast
            or 'skc' in icon_url
            or 'few' in icon_url
        ):
            return WeatherCode.CLEAR

        if (
            'partly' in forecast
            or 'scattered' in forecast
            or 'sct' in icon_url
        ):
            return WeatherCode.PARTLY_CLOUDY

        if (
            'cloudy' in forecast
            or 'overcast' in forecast
            or 'bkn' in icon_url
            or 'ovc' in icon_url
        ):
            return WeatherCode.CLOUDY

        return WeatherCode.CLEAR

    @staticmethod
    def _map_alert_severity(severity: str | None) -> AlertSeverity:
        try:
            return AlertSeverity((severity or '').upper())
        except ValueError:
            return AlertSeverity.UNKNOWN


class OpenMeteoProvider(WeatherProvider):
    """Open-Meteo weather provider - free, global forecasts with air quality"""

    source_id = 'openmeteo'

    CURRENT_VARIABLES = (
        'temperature_2m,relative_humidity_2m,apparent_temperature,is_day,'
        'precipitation,rain,showers,snowfall,weather_code,cloud_cover,'
        'pressure_msl,surface_pressure,wind_speed_10m,wind_direction_10m,'
        'wind_gusts_10m'
    )
    HOURLY_VARIABLES = (
        'temperature_2m,relative_humidity_2m,dew_point_2m,apparent_temperature,'
        'precipitation_probability,precipitation,rain,showers,snowfall,'
        'weather_code,pressure_msl,cloud_cover,visibility,wind_speed_10m,'
        'wind_direction_10m,wind_gusts_10m,uv_index,is_day'
    )
    DAILY_VARIABLES = (
        'weather_code,temperature_2m_max,temperature_2m_min,'
        'apparent_temperature_max,apparent_temperature_min,sunrise,sunset,'
        'daylight_duration,sunshine_duration,uv_index_max,precipitation_sum,'
        'rain_sum,showers_sum,snowfall_sum,precipitation_hours,'
        'precipitation_probability_max,wind_speed_10m_max,wind_gusts_10m_max,'
        'wind_direction_10m_dominant'
    )
    AIR_QUALITY_VARIABLES = (
        'pm10,pm2_5,carbon_monoxide,nitrogen_dioxide,sulphur_dioxide,ozone,'
        'european_aqi,us_aqi'
    )
    POLLEN_VARIABLES = 'grass_pollen,birch_pollen,ragweed_pollen,olive_pollen'

    # WMO weather interpretation codes
    WMO_CODES = {
        0: WeatherCode.CLEAR,
        1: WeatherCode.PARTLY_CLOUDY,
        2: WeatherCode.PARTLY_CLOUDY,
        3: WeatherCode.CLOUDY,
        45: WeatherCode.FOG,
        48: WeatherCode.FOG,
        51: WeatherCode.RAIN_LIGHT,
        53: WeatherCode.RAIN_LIGHT,
        56: WeatherCode.RAIN_LIGHT,
        55: WeatherCode.RAIN,
        57: WeatherCode.RAIN,
        61: WeatherCode.RAIN,
        63: WeatherCode.RAIN,
        66: WeatherCode.RAIN,
        65: WeatherCode.RAIN_HEAVY,
        67: WeatherCode.RAIN_HEAVY,
        71: WeatherCode.SNOW_LIGHT,
        73: WeatherCode.SNOW_LIGHT,
        77: WeatherCode.SNOW_LIGHT,
        75: WeatherCode.SNOW,
        85: WeatherCode.SNOW_HEAVY,
        86: WeatherCode.SNOW_HEAVY,
        80: WeatherCode.RAIN,
        81: WeatherCode.RAIN,
        82: WeatherCode.RAIN,
        95: WeatherCode.THUNDERSTORM,
        96: WeatherCode.THUNDERSTORM,
        99: WeatherCode.THUNDERSTORM,
    }

    def __init__(self) -> None:
        super().__init__('OpenMeteo')
        self.base_url = 'https://api.open-meteo.com/v1/forecast'
        self.air_quality_url = 'https://air-quality-api.open-meteo.com/v1/air-quality'

    def _forecast_params(
        self, lat: float, lon: float, tz_name: str | None
    ) -> dict[str, str | float | int]:
        return {
            'latitude': lat,
            'longitude': lon,
            'timezone': tz_name or 'auto',
            'current': self.CURRENT_VARIABLES,
            'hourly': self.HOURLY_VARIABLES,
            'daily': self.DAILY_VARIABLES,
            'forecast_days': 16,
            'past_days': 1,
        }

    def _air_quality_params(
        self, lat: float, lon: float, tz_name: str | None, hourly: bool = True
    ) -> dict[str, str | float]:
        params: dict[str, str | float] = {
            'latitude': lat,
            'longitude': lon,
            'timezone': tz_name or 'auto',
            'current': self.AIR_QUALITY_VARIABLES,
        }
        if hourly:
            params['hourly'] = f'{self.AIR_QUALITY_VARIABLES},{self.POLLEN_VARIABLES}'
        return params

    def fetch_weather_data(
        self,
        lat: float,
        lon: float,
        tz_name: str | None = None,
    ) -> dict | None:
        """Fetch forecast and air quality from Open-Meteo in parallel"""
        try:
            with ThreadPoolExecutor(max_workers=2) as pool:
                forecast_future = pool.submit(
                    self._get_json,
                    self.base_url,
                    params=self._forecast_params(lat, lon, tz_name),
                )
                air_quality_future = pool.submit(
                    self._get_json,
                    self.air_quality_url,
                    params=self._air_quality_params(lat, lon, tz_name),
                )

                forecast = forecast_future.result()

                try:
                    air_quality = air_quality_future.result()
                except Exception as e:
                    print(f'⚠️  Open-Meteo air quality unavailable: {str(e)}')
                    air_quality = None

            print(f'🌤️  Open-Meteo forecast fetched for {lat:.4f},{lon:.4f}')

        except Exception as e:
            print(f'❌ Open-Meteo API error: {str(e)}')
            return None
        else:
            return {'forecast': forecast, 'air_quality': air_quality}

    def fetch_air_quality(
        self, lat: float, lon: float, tz_name: str | None = None
    ) -> AirQuality | None:
        """Fetch only current air quality, used to complete NWS forecasts"""
        try:
            data = self._get_json(
                self.air_quality_url,
                params=self._air_quality_params(lat, lon, tz_name, hourly=False),
            )
        except Exception as e:
            print(f'❌ Open-Meteo air quality error: {str(e)}')
            return None
        return self._air_quality(data.get('current'))

    def process_weather_data(
        self,
        raw_data: dict,
        location_name: str | None = None,
        tz_name: str | None = None,  # noqa: ARG002
    ) -> Weather | None:
        """Process Open-Meteo data into the shared Weather model"""
        if not raw_data or not raw_data.get('forecast'):
            return None

        try:
            forecast = raw_data['forecast']
            air_quality = raw_data.get('air_quality') or {}

            # Open-Meteo returns local wall-clock times without an offset
            tz = timezone(timedelta(seconds=forecast.get('utc_offset_seconds', 0)))
            lat = forecast.get('latitude')
            lon = forecast.get('longitude')

            current = self._build_current(
                forecast.get('current'), air_quality.get('current')
            )
            daily_forecast = self._build_daily(forecast.get('daily') or {}, tz, lat, lon)
            hourly_forecast = self._build_hourly(
                forecast.get('hourly') or {}, air_quality.get('hourly') or {}, tz
            )

            now = datetime.now(timezone.utc)
            weather = Weather(
                daily_forecast=daily_forecast,
                hourly_forecast=hourly_forecast,
                current=current,
                alerts=[],
                refresh_time=now,
                main_update_time=now,
                air_quality_update_time=now if air_quality else None,
                provider=self.name,
            )

            print(
                f'🌍 Open-Meteo: {len(daily_forecast)} days, {len(hourly_forecast)} '
                f'hours for {location_name or "Unknown Location"}'
            )

        except Exception as e:
            print(f'❌ Error processing Open-Meteo data: {str(e)}')
            return None
        else:
            return weather

    def _map_weather_code(self, code: int | None) -> WeatherCode | None:
        if code is None:
            return None
        return self.WMO_CODES.get(int(code), WeatherCode.CLEAR)

    @staticmethod
    def _at(series: dict, key: str, index: int) -> Any:
        values = series.get(key)
        if not values or index >= len(values):
            return None
        return values[index]

    @staticmethod
    def _parse_local(value: str | None, tz: timezone) -> datetime | None:
        if not value:
            return None
        parsed = datetime.fromisoformat(value)
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=tz)

    @staticmethod
    def _air_quality(data: dict | None) -> AirQuality | None:
        if not data:
            return None
        us_aqi = data.get('us_aqi')
        return AirQuality(
            pm25=data.get('pm2_5'),
            pm10=data.get('pm10'),
            o3=data.get('ozone'),
            no2=data.get('nitrogen_dioxide'),
            so2=data.get('sulphur_dioxide'),
            co=data.get('carbon_monoxide'),
            aqi=us_aqi if us_aqi is not None else data.get('european_aqi'),
        )

    def _build_current(
        self, current: dict | None, air_quality: dict | None
    ) -> Current | None:
        if not current:
            return None

        code = self._map_weather_code(current.get('weather_code'))
        is_day = current.get('is_day')
        return Current(
            weather_code=code,
            weather_text=code.description if code else None,
            is_daylight=None if is_day is None else is_day == 1,
            temperature=Temperature(
                temperature=current.get('temperature_2m'),
                apparent=current.get('apparent_temperature'),
            ),
            wind=Wind(
                speed=current.get('wind_speed_10m'),
                direction=current.get('wind_direction_10m'),
                gusts=current.get('wind_gusts_10m'),
            ),
            relative_humidity=current.get('relative_humidity_2m'),
            pressure=current.get('pressure_msl'),
            cloud_cover=current.get('cloud_cover'),
            air_quality=self._air_quality(air_quality),
        )

    def _build_daily(
        self, daily: dict, tz: timezone, lat: float | None, lon: float | None
    ) -> list[Daily]:
        daily_forecast = []
        for index, time_str in enumerate(daily.get('time', [])):
            date = self._parse_local(time_str, tz)
            code = self._map_weather_code(self._at(daily, 'weather_code', index))
            sunshine = self._at(daily, 'sunshine_duration', index)

            daily_forecast.append(
                Daily(
                    date=date,  # type: ignore[arg-type]
                    day=HalfDay(
                        weather_code=code,
                        weather_text=code.description if code else None,
                        temperature=Temperature(
                            temperature=self._at(daily, 'temperature_2m_max', index),
                            apparent=self._at(daily, 'apparent_temperature_max', index),
                        ),
                        precipitation=Precipitation(
                            total=self._at(daily, 'precipitation_sum', index),
                            rain=self._at(daily, 'rain_sum', index),
                            snow=self._at(daily, 'snowfall_sum', index),
                        ),
                        precipitation_probability=PrecipitationProbability(
                            total=self._at(daily, 'precipitation_probability_max', index)
                        ),
                        wind=Wind(
                            speed=self._at(daily, 'wind_speed_10m_max', index),
                            gusts=self._at(daily, 'wind_gusts_10m_max', index),
                            direction=self._at(
                                daily, 'wind_direction_10m_dominant', index
                            ),
                        ),
                    ),
                    night=HalfDay(
                        temperature=Temperature(
                            temperature=self._at(daily, 'temperature_2m_min', index),
                            apparent=self._at(daily, 'apparent_temperature_min', index),
                        ),
                    ),
                    sun=Sun(
                        rise_time=self._parse_local(
                            self._at(daily, 'sunrise', index), tz
                        ),
                        set_time=self._parse_local(self._at(daily, 'sunset', index), tz),
                    ),
                    moon=Moon(phase=calculate_moon_phase(date)),  # type: ignore[arg-type]
                    uv=UV(index=self._at(daily, 'uv_index_max', index)),
                    daylight_hours=(
                        _daylight_hours(date, lat, lon)  # type: ignore[arg-type]
                        if lat is not None and lon is not None
                        else None
                    ),
                    sunshine_hours=sunshine / 3600 if sunshine is not None else None,
                )
            )
        return daily_forecast

    def _build_hourly(
        self, hourly: dict, air_quality: dict, tz: timezone
    ) -> list[Hourly]:
        # Air quality rows line up with forecast rows by timestamp
        aq_index = {t: i for i, t in enumerate(air_quality.get('time', []))}

        hourly_forecast = []
        for index, time_str in enumerate(hourly.get('time', [])):
            code = self._map_weather_code(self._at(hourly, 'weather_code', index))
            is_day = self._at(hourly, 'is_day', index)

            aq = None
            pollen = None
            matched = aq_index.get(time_str)
            if matched is not None:
                aq = self._air_quality(
                    {
                        key: self._at(air_quality, key, matched)
                        for key in self.AIR_QUALITY_VARIABLES.split(',')
                    }
                )
                pollen = Pollen(
                    grass=self._at(air_quality, 'grass_pollen', matched),
                    ragweed=self._at(air_quality, 'ragweed_pollen', matched),
                    tree=(self._at(air_quality, 'birch_pollen', matched) or 0)
                    + (self._at(air_quality, 'olive_pollen', matched) or 0),
                )

            hourly_forecast.append(
                Hourly(
                    date=self._parse_local(time_str, tz),  # type: ignore[arg-type]
                    is_daylight=is_day == 1,
                    weather_code=code,
                    weather_text=code.description if code else None,
                    temperature=Temperature(
                        temperature=self._at(hourly, 'temperature_2m', index),
                        apparent=self._at(hourly, 'apparent_temperature', index),
                    ),
                    precipitation=Precipitation(
                        total=self._at(hourly, 'precipitation', index),
                        rain=self._at(hourly, 'rain', index),
                        snow=self._at(hourly, 'snowfall', index),
                    ),
                    precipitation_probability=PrecipitationProbability(
                        total=self._at(hourly, 'precipitation_probability', index)
                    ),
                    wind=Wind(
                        speed=self._at(hourly, 'wind_speed_10m', index),
                        gusts=self._at(hourly, 'wind_gusts_10m', index),
                        direction=self._at(hourly, 'wind_direction_10m', index),
                    ),
                    uv=UV(index=self._at(hourly, 'uv_index', index)),
                    relative_humidity=self._at(hourly, 'relative_humidity_2m', index),
                    dew_point=self._at(hourly, 'dew_point_2m', index),
                    pressure=self._at(hourly, 'pressure_msl', index),
                    cloud_cover=self._at(hourly, 'cloud_cover', index),
                    visibility=self._at(hourly, 'visibility', index),
                    air_quality=aq,
                    pollen=pollen,
                )
            )
        return hourly_forecast


SOURCES = {
    NWSProvider.source_id: WeatherSource(
        id=NWSProvider.source_id,
        name='National Weather Service',
        supported_features=(
            SourceFeature.FORECAST,
            SourceFeature.CURRENT,
            SourceFeature.ALERT,
        ),
        weather_attribution='National Weather Service (weather.gov)',
    ),
    OpenMeteoProvider.source_id: WeatherSource(
        id=OpenMeteoProvider.source_id,
        name='Open-Meteo',
        supported_features=(
            SourceFeature.FORECAST,
            SourceFeature.CURRENT,
            SourceFeature.AIR_QUALITY,
            SourceFeature.POLLEN,
            SourceFeature.LOCATION_SEARCH,
        ),
        weather_attribution='Open-Meteo.com (CC BY 4.0)',
    ),
}


class WeatherProviderManager:
    """Manager class to handle multiple weather providers"""

    def __init__(self) -> None:
        self.providers: dict[str, WeatherProvider] = {}
        self.primary_provider: str | None = None
        self.fallback_providers: list[str] = []

    def add_provider(self, provider: WeatherProvider, is_primary: bool = False) -> None:
        """Add a weather provider to the manager"""
        self.providers[provider.source_id] = provider

        if is_primary:
            self.primary_provider = provider.source_id
        else:
            self.fallback_providers.append(provider.source_id)

    def set_primary_provider(self, source_id: str) -> None:
        """Set the primary weather provider"""
        if source_id not in self.providers:
            msg = f"Provider '{source_id}' not found"
            raise ValueError(msg)

        # Move current primary to fallbacks if it exists
        if (
            self.primary_provider
            and self.primary_provider != source_id
            and self.primary_provider not in self.fallback_providers
        ):
            self.fallback_providers.append(self.primary_provider)

        self.primary_provider = source_id

        if source_id in self.fallback_providers:
            self.fallback_providers.remove(source_id)

    def provider_chain(self) -> list[str]:
        """Primary first, then fallbacks in registration order"""
        chain = [self.primary_provider] if self.primary_provider else []
        return chain + [s for s in self.fallback_providers if s not in chain]

    def get_weather_from(
        self,
        source_id: str,
        lat: float,
        lon: float,
        location_name: str | None = None,
        tz_name: str | None = None,
    ) -> Weather | None:
        """Get weather from one named provider, without fallbacks"""
        provider = self.providers.get(source_id)
        if provider is None:
            msg = f"Provider '{source_id}' not found"
            raise ValueError(msg)
        return provider.get_weather(lat, lon, location_name, tz_name)

    def get_weather_for_location(self, location: Location) -> Weather | None:
        """Try the primary provider, then the fallbacks.

        NWS is skipped for points outside its coverage. Its forecasts carry no
        air quality, so Open-Meteo's current reading is merged in when available.
        """
        open_meteo = self.providers.get(OpenMeteoProvider.source_id)
        lat, lon = location.latitude, location.longitude

        for position, source_id in enumerate(self.provider_chain()):
            provider = self.providers.get(source_id)
            if provider is None:
                continue
            if position:
                print(f'🔄 Trying fallback provider: {source_id}')

            is_nws = isinstance(provider, NWSProvider)
            if isinstance(provider, NWSProvider) and not provider.is_us_location(lat, lon):
                print(f'🌍 {location.display_name} is outside NWS coverage')
                continue

            print(f'🎯 Using {provider.name} for {location.display_name}')
            weather = provider.get_weather(
                lat, lon, location.display_name, location.timezone
            )
            if not weather:
                continue

            if is_nws and weather.current and isinstance(open_meteo, OpenMeteoProvider):
                weather.current.air_quality = open_meteo.fetch_air_quality(
                    lat, lon, location.timezone
                )
            return weather

        print('❌ All weather providers failed')
        return None

    def get_provider_info(self) -> dict[str, Any]:
        """Get information about all available providers"""
        return {
            'primary': self.primary_provider,
            'fallbacks': self.fallback_providers,
            'providers': {
                source_id: {
                    **provider.get_provider_info(),
                    'features': [
                        feature.value
                        for feature in SOURCES[source_id].supported_features
                    ]
                    if source_id in SOURCES
                    else [],
                }
                for source_id, provider in self.providers.items()
            },
        }

    def switch_provider(self, source_id: str) -> bool:
        """Switch to a different primary provider"""
        if source_id in self.providers:
            self.set_primary_provider(source_id)
            print(f'🔄 Switched to provider: {source_id}')
            return True
        print(f"❌ Provider '{source_id}' not found")
        return False
