import math
import os
from datetime import date, datetime, timezone
from typing import Any

from dotenv import load_dotenv
from flask import Flask, Response, jsonify, request
from flask_compress import Compress
from flask_socketio import SocketIO, emit

import app_state
from geocoding import GeocodingError, location_exists, make_location_id, search_locations
from sun_calc import compute_daylight_duration_hours, compute_sun_times, local_solar_noon
from weather_icons import get_icon_key, load_icon_map
from weather_models import Location, Weather, location_from_dict, to_dict
from weather_providers import NWSProvider, OpenMeteoProvider, WeatherProviderManager
from widget_bridge import APP_GROUP_IDENTIFIER, SharedStorage, WidgetBridge


load_dotenv()

app = Flask(__name__)
secret_key = os.getenv('SECRET_KEY')
if not secret_key:
    import secrets

    secret_key = secrets.token_hex(16)
    print(
        'Warning: No SECRET_KEY environment variable set. '
        'Generated temporary key for this session.'
    )
app.config['SECRET_KEY'] = secret_key

# Enable gzip compression for all responses
Compress(app)

# Initialize SocketIO with secure CORS settings
cors_origins = os.getenv(
    'CORS_ALLOWED_ORIGINS', 'http://localhost:5001,http://127.0.0.1:5001'
).split(',')
socketio = SocketIO(app, cors_allowed_origins=cors_origins)

STATE_FILE = os.getenv('STATE_FILE', 'zephyr_state.json')
WIDGET_SHARED_DIR = os.getenv('WIDGET_SHARED_DIR', 'widget_shared')
WIDGET_APP_GROUP = os.getenv('WIDGET_APP_GROUP', APP_GROUP_IDENTIFIER)
ICON_MAP_FILE = os.getenv('ICON_MAP_FILE')
NWS_USER_AGENT = os.getenv('NWS_USER_AGENT')

# Initialize weather provider manager
weather_manager = WeatherProviderManager()
nws = NWSProvider(user_agent=NWS_USER_AGENT)
open_meteo = OpenMeteoProvider()
weather_manager.add_provider(nws, is_primary=True)
weather_manager.add_provider(open_meteo, is_primary=False)  # Fallback
print('🏛️  Using National Weather Service for US locations')
print('🔄 Fallback: OpenMeteo (global coverage)')


def notify_widgets_reloaded() -> None:
    socketio.emit(
        'widgets_reloaded', {'timestamp': datetime.now(timezone.utc).isoformat()}
    )


widget_bridge = WidgetBridge(
    SharedStorage(WIDGET_SHARED_DIR, WIDGET_APP_GROUP), on_reload=notify_widgets_reloaded
)

# Fields that are never written to disk live here for the life of the process
runtime: dict[str, Any] = {'weather': {}, 'last_refresh': None, 'error': None}


def load_current_state() -> app_state.AppState:
    """Saved snapshot plus the weather fetched since the process started"""
    state = app_state.load_state(STATE_FILE)
    weather_by_id: dict[str, Weather] = runtime['weather']
    for location in state.locations:
        if location.id in weather_by_id:
            state = app_state.update_location_weather(
                state, location.id, weather_by_id[location.id], runtime['last_refresh']
            )
    state = app_state.set_error(state, runtime['error'])
    return state


def commit_state(state: app_state.AppState, refresh_widgets: bool = True) -> None:
    """Mirror the new snapshot to the widgets, then persist it"""
    runtime['weather'] = {
        loc.id: loc.weather for loc in state.locations if loc.weather is not None
    }
    runtime['last_refresh'] = state.last_refresh
    runtime['error'] = state.error

    if refresh_widgets:
        widget_bridge.update_all_locations_weather_data(state.locations, state.settings)
    app_state.save_state(state, STATE_FILE)


def error_response(message: str, status_code: int, **extra: Any) -> Response:
    response = jsonify({'error': message, **extra})
    response.status_code = status_code
    return response


def state_payload(state: app_state.AppState) -> dict[str, Any]:
    current = app_state.get_current_location(state)
    return {
        'locations': [to_dict(loc) for loc in state.locations],
        'current_location_index': state.current_location_index,
        'current_location_id': current.id if current else None,
        'settings': to_dict(state.settings),
        'last_refresh': state.last_refresh.isoformat() if state.last_refresh else None,
        'error': state.error,
    }


def _iso_or_none(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _finite_or_none(value: float) -> float | None:
    return value if math.isfinite(value) else None


def _sun_instant(date_param: str | None, lon: float) -> datetime:
    """Instant to compute sun times for; a bare date means local mean solar noon"""
    if not date_param:
        return datetime.now(timezone.utc)

    try:
        day = date.fromisoformat(date_param)
    except ValueError:
        return datetime.fromisoformat(date_param)

    return local_solar_noon(day, lon)


@app.route('/api/sun')  # type: ignore[misc]
def sun_api() -> Response:
    """API endpoint for locally computed sun times"""
    lat = request.args.get('lat', type=float)
    lon = request.args.get('lon', type=float)
    elevation = request.args.get('elevation', 0.0, type=float)
    date_param = request.args.get('date')

    if lat is None or lon is None:
        return error_response('lat and lon are required', 400)

    try:
        when = _sun_instant(date_param, lon)
    except ValueError:
        return error_response(f'Invalid date: {date_param}', 400)

    times = compute_sun_times(when, lat, lon, elevation)
    daylight = compute_daylight_duration_hours(when, lat, lon)

    return jsonify(
        {
            'latitude': _finite_or_none(lat),
            'longitude': _finite_or_none(lon),
            'elevation': _finite_or_none(elevation),
            'date': when.isoformat(),
            'sunrise': _iso_or_none(times.sunrise),
            'sunset': _iso_or_none(times.sunset),
            'solar_noon': _iso_or_none(times.solar_noon),
            'nadir': _iso_or_none(times.nadir),
            'daylight_hours': _finite_or_none(daylight),
        }
    )


@app.route('/api/weather')  # type: ignore[misc]
def weather_api() -> Response:
    """API endpoint for weather data"""
    lat = request.args.get('lat', type=float)
    lon = request.args.get('lon', type=float)
    location_name = request.args.get('location')
    timezone_name = request.args.get('timezone')
    source = request.args.get('source', 'auto')

    # Default to the first-run location if no coordinates provided
    if lat is None or lon is None:
        lat = app_state.DEFAULT_LOCATION.latitude
        lon = app_state.DEFAULT_LOCATION.longitude
        location_name = location_name or app_state.DEFAULT_LOCATION.city
        timezone_name = timezone_name or app_state.DEFAULT_LOCATION.timezone

    print(f'🌤️  Fetching weather for {location_name or "Unknown Location"} ({source})')

    if source == 'auto':
        location = Location(
            id=make_location_id(lat, lon),
            latitude=lat,
            longitude=lon,
            timezone=timezone_name or 'auto',
            city=location_name,
        )
        weather = weather_manager.get_weather_for_location(location)
    elif source in weather_manager.providers:
        weather = weather_manager.get_weather_from(
            source, lat, lon, location_name, timezone_name
        )
    else:
        return error_response(
            f'Unknown source: {source}',
            400,
            available_sources=['auto', *weather_manager.providers.keys()],
        )

    if weather:
        return jsonify(to_dict(weather))
    return error_response('Failed to fetch weather data from all sources', 500)


@app.route('/api/locations/search')  # type: ignore[misc]
def search_locations_api() -> Response:
    """API endpoint for place name search"""
    query = request.args.get('q', '').strip()
    if not query:
        return error_response('Query parameter q is required', 400)

    try:
        results = search_locations(query)
    except GeocodingError as e:
        return error_response(str(e), 502)

    state = app_state.load_state(STATE_FILE)
    return jsonify(
        [
            {
                **to_dict(location),
                'already_saved': location_exists(
                    state.locations, location.latitude, location.longitude
                ),
            }
            for location in results
        ]
    )


@app.route('/api/state')  # type: ignore[misc]
def get_state() -> Response:
    return jsonify(state_payload(load_current_state()))


@app.route('/api/locations', methods=['GET'])  # type: ignore[misc]
def list_locations() -> Response:
    state = load_current_state()
    return jsonify([to_dict(loc) for loc in state.locations])


@app.route('/api/locations', methods=['POST'])  # type: ignore[misc]
def add_location() -> Response:
    """API endpoint to save a new location"""
    data = request.get_json(silent=True) or {}

    try:
        lat = float(data['latitude'])
        lon = float(data['longitude'])
        location = location_from_dict(
            {**data, 'id': data.get('id') or make_location_id(lat, lon)}
        )
    except (KeyError, TypeError, ValueError) as e:
        return error_response(f'Invalid location: {e}', 400)

    state = load_current_state()
    if location_exists(state.locations, lat, lon):
        return error_response('Location already saved', 409)

    state = app_state.add_location(state, location)
    commit_state(state)
    print(f'📍 Added location {location.display_name}')

    response = jsonify(to_dict(location))
    response.status_code = 201
    return response


@app.route('/api/locations/<location_id>', methods=['DELETE'])  # type: ignore[misc]
def delete_location(location_id: str) -> Response:
    state = load_current_state()
    if not any(loc.id == location_id for loc in state.locations):
        return error_response(f'Location {location_id} not found', 404)

    state = app_state.remove_location(state, location_id)
    commit_state(state)
    print(f'🗑️  Removed location {location_id}')
    return jsonify(state_payload(state))


@app.route('/api/locations/reorder', methods=['POST'])  # type: ignore[misc]
def reorder_locations() -> Response:
    data = request.get_json(silent=True) or {}
    try:
        state = app_state.reorder_locations(
            load_current_state(), int(data['from_index']), int(data['to_index'])
        )
    except (KeyError, TypeError, ValueError) as e:
        return error_response(f'Invalid reorder request: {e}', 400)

    commit_state(state)
    return jsonify(state_payload(state))


@app.route('/api/locations/current', methods=['POST'])  # type: ignore[misc]
def set_current_location() -> Response:
    data = request.get_json(silent=True) or {}
    try:
        state = app_state.set_current_location_index(
            load_current_state(), int(data['index'])
        )
    except (KeyError, TypeError, ValueError) as e:
        return error_response(f'Invalid location index: {e}', 400)

    # Refreshes only the selected location's entry in the widget map
    current = app_state.get_current_location(state)
    if current is not None:
        widget_bridge.update_widget_data(current, state.settings)
    commit_state(state, refresh_widgets=False)
    return jsonify(state_payload(state))


@app.route('/api/locations/<location_id>/refresh', methods=['POST'])  # type: ignore[misc]
def refresh_location(location_id: str) -> Response:
    """Fetch fresh weather for one saved location"""
    state = load_current_state()
    location = next((loc for loc in state.locations if loc.id == location_id), None)
    if location is None:
        return error_response(f'Location {location_id} not found', 404)

    weather = weather_manager.get_weather_for_location(location)
    if not weather:
        state = app_state.set_error(
            state, f'Failed to fetch weather for {location.display_name}'
        )
        commit_state(state, refresh_widgets=False)
        return error_response(state.error or 'Failed to fetch weather data', 500)

    state = app_state.set_error(state, None)
    state = app_state.update_location_weather(state, location_id, weather)
    commit_state(state)

    payload = to_dict(weather)
    socketio.emit('weather_update', {'location_id': location_id, 'weather': payload})
    return jsonify(payload)


@app.route('/api/settings', methods=['GET'])  # type: ignore[misc]
def get_settings() -> Response:
    return jsonify(to_dict(app_state.load_state(STATE_FILE).settings))


@app.route('/api/settings', methods=['PATCH'])  # type: ignore[misc]
def update_settings() -> Response:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return error_response('Settings update must be a JSON object', 400)

    try:
        state = app_state.update_settings(load_current_state(), **data)
    except ValueError as e:
        return error_response(str(e), 400)

    commit_state(state)
    return jsonify(to_dict(state.settings))


@app.route('/api/settings/reset', methods=['POST'])  # type: ignore[misc]
def reset_settings() -> Response:
    state = app_state.reset_settings(load_current_state())
    commit_state(state)
    return jsonify(to_dict(state.settings))


@app.route('/api/providers')  # type: ignore[misc]
def get_providers() -> Response:
    """API endpoint to get weather provider information"""
    return jsonify(weather_manager.get_provider_info())


@app.route('/api/providers/switch', methods=['POST'])  # type: ignore[misc]
def switch_provider() -> Response:
    """API endpoint to switch weather provider"""
    data = request.get_json(silent=True) or {}
    provider_name = data.get('provider')

    if not provider_name:
        return error_response('Provider name is required', 400)

    success = weather_manager.switch_provider(provider_name)

    if success:
        # Notify all connected clients via WebSocket
        provider_info = weather_manager.get_provider_info()
        socketio.emit(
            'provider_switched',
            {'provider': provider_name, 'provider_info': provider_info},
        )

        return jsonify(
            {
                'success': True,
                'message': f'Switched to {provider_name} provider',
                'provider_info': provider_info,
            }
        )
    response = jsonify(
        {
            'success': False,
            'error': f'Provider {provider_name} not found',
            'available_providers': list(weather_manager.providers.keys()),
        }
    )
    response.status_code = 400
    return response


@app.route('/api/icons')  # type: ignore[misc]
def icons_api() -> Response:
    """Icon table, or a single icon key when code is given"""
    icon_map = load_icon_map(ICON_MAP_FILE)
    code = request.args.get('code')
    if not code:
        return jsonify(icon_map)

    surface = request.args.get('surface', 'app')
    is_day = request.args.get('is_day', 'true').lower() != 'false'
    try:
        icon = get_icon_key(code, is_day=is_day, surface=surface, icon_map=icon_map)
    except ValueError as e:
        return error_response(str(e), 400)
    return jsonify({'code': code.upper(), 'surface': surface, 'is_day': is_day, 'icon': icon})


# WebSocket event handlers
@socketio.on('connect')  # type: ignore[misc]
def handle_connect() -> None:
    """Handle client connection"""
    print(f'🔗 Client connected: {request.sid}')

    # Send current provider info to the newly connected client
    provider_info = weather_manager.get_provider_info()
    emit('provider_info', provider_info)


@socketio.on('disconnect')  # type: ignore[misc]
def handle_disconnect() -> None:
    """Handle client disconnection"""
    print(f'📡 Client disconnected: {request.sid}')


@socketio.on('request_weather_update')  # type: ignore[misc]
def handle_weather_update_request(data: dict | None) -> None:
    """Handle weather update request from client"""
    data = data or {}
    default = app_state.DEFAULT_LOCATION
    lat = data.get('lat', default.latitude)
    lon = data.get('lon', default.longitude)
    location_name = data.get('location', default.city)
    timezone_name = data.get('timezone')

    print(f'🌤️  Weather update requested for {location_name}')

    location = Location(
        id=data.get('location_id') or make_location_id(lat, lon),
        latitude=float(lat),
        longitude=float(lon),
        timezone=timezone_name or 'auto',
        city=location_name,
    )
    weather = weather_manager.get_weather_for_location(location)

    if weather:
        emit('weather_update', {'location_id': location.id, 'weather': to_dict(weather)})
    else:
        emit('weather_error', {'error': 'Failed to fetch weather data'})


if __name__ == '__main__':
    port = int(os.getenv('PORT', '5001'))
    host = os.getenv('HOST', '127.0.0.1')  # Default to localhost, allow override
    socketio.run(app, debug=False, host=host, port=port, allow_unsafe_werkzeug=True)
