from unittest.mock import MagicMock, patch

from flask.testing import FlaskClient
from flask_socketio import SocketIOTestClient

from app_state import DEFAULT_LOCATION
from main import app, socketio
from weather_models import Weather


def received_named(client: SocketIOTestClient, name: str) -> list[dict]:
    return [event for event in client.get_received() if event['name'] == name]


class TestWebSocket:
    """Test WebSocket functionality"""

    def test_websocket_connection(self) -> None:
        """Test WebSocket connection sends provider info"""
        client = SocketIOTestClient(app, socketio)

        assert client.is_connected()
        received = client.get_received()
        assert len(received) == 1
        assert received[0]['name'] == 'provider_info'
        assert received[0]['args'][0]['primary'] == 'nws'

        client.disconnect()

    @patch('main.weather_manager.get_weather_for_location')
    def test_request_weather_update(
        self, mock_get: MagicMock, sample_weather: Weather
    ) -> None:
        """Test a weather update request is answered with that location's weather"""
        mock_get.return_value = sample_weather
        client = SocketIOTestClient(app, socketio)
        client.get_received()

        client.emit(
            'request_weather_update',
            {
                'lat': 51.5074,
                'lon': -0.1278,
                'location': 'London',
                'timezone': 'Europe/London',
                'location_id': 'london',
            },
        )

        updates = received_named(client, 'weather_update')
        assert len(updates) == 1
        payload = updates[0]['args'][0]
        assert payload['location_id'] == 'london'
        assert payload['weather']['provider'] == 'OpenMeteo'

        location = mock_get.call_args[0][0]
        assert location.city == 'London'
        assert location.timezone == 'Europe/London'

        client.disconnect()

    @patch('main.weather_manager.get_weather_for_location')
    def test_request_defaults_to_new_york(
        self, mock_get: MagicMock, sample_weather: Weather
    ) -> None:
        mock_get.return_value = sample_weather
        client = SocketIOTestClient(app, socketio)
        client.get_received()

        client.emit('request_weather_update', {})

        location = mock_get.call_args[0][0]
        assert location.latitude == DEFAULT_LOCATION.latitude
        assert location.longitude == DEFAULT_LOCATION.longitude
        assert location.city == 'New York'

        client.disconnect()

    @patch('main.weather_manager.get_weather_for_location', return_value=None)
    def test_request_weather_update_failure(self, _mock_get: MagicMock) -> None:
        client = SocketIOTestClient(app, socketio)
        client.get_received()

        client.emit('request_weather_update', {'lat': 1, 'lon': 2})

        errors = received_named(client, 'weather_error')
        assert errors == [
            {
                'name': 'weather_error',
                'args': [{'error': 'Failed to fetch weather data'}],
                'namespace': '/',
            }
        ]

        client.disconnect()


class TestBroadcasts:
    """Events pushed to every client by the HTTP API"""

    @patch('main.weather_manager.get_weather_for_location')
    def test_refresh_broadcasts_weather_and_widget_reload(
        self, mock_get: MagicMock, client: FlaskClient, sample_weather: Weather
    ) -> None:
        mock_get.return_value = sample_weather
        socket_client = SocketIOTestClient(app, socketio)
        socket_client.get_received()

        response = client.post(f'/api/locations/{DEFAULT_LOCATION.id}/refresh')
        assert response.status_code == 200

        names = [event['name'] for event in socket_client.get_received()]
        assert 'widgets_reloaded' in names
        assert 'weather_update' in names

        socket_client.disconnect()

    def test_provider_switch_broadcast(self, client: FlaskClient) -> None:
        socket_client = SocketIOTestClient(app, socketio)
        socket_client.get_received()

        try:
            client.post('/api/providers/switch', json={'provider': 'openmeteo'})
            switched = received_named(socket_client, 'provider_switched')
            assert len(switched) == 1
            assert switched[0]['args'][0]['provider'] == 'openmeteo'
        finally:
            client.post('/api/providers/switch', json={'provider': 'nws'})
            socket_client.disconnect()
