"""ABOUTME: Tests for weather code to icon mapping
ABOUTME: Default table, day/night variants, widget encodings and overrides"""

import json
from pathlib import Path

import pytest

from weather_icons import (
    DEFAULT_ICON_MAP,
    get_icon_key,
    load_icon_map,
    widget_weather_code,
)
from weather_models import WeatherCode


class TestGetIconKey:
    def test_every_code_has_an_icon_on_every_surface(self) -> None:
        for surface in DEFAULT_ICON_MAP:
            for code in WeatherCode:
                assert get_icon_key(code, surface=surface, icon_map=DEFAULT_ICON_MAP)

    def test_day_and_night_variants(self) -> None:
        assert get_icon_key(WeatherCode.CLEAR, is_day=True, icon_map=DEFAULT_ICON_MAP) == 'clear'
        assert get_icon_key(WeatherCode.CLEAR, is_day=False, icon_map=DEFAULT_ICON_MAP) == 'night'

    def test_unknown_daylight_uses_day_icon(self) -> None:
        assert (
            get_icon_key(WeatherCode.PARTLY_CLOUDY, is_day=None, icon_map=DEFAULT_ICON_MAP)
            == 'partlyCloudy'
        )

    def test_widget_surfaces(self) -> None:
        assert get_icon_key('partly_cloudy', surface='widget', icon_map=DEFAULT_ICON_MAP) == 'partly-cloudy'
        assert (
            get_icon_key(WeatherCode.THUNDERSTORM, surface='widget_symbol', icon_map=DEFAULT_ICON_MAP)
            == 'cloud.bolt.rain.fill'
        )

    def test_missing_code_uses_surface_default(self) -> None:
        assert get_icon_key(None, surface='widget', icon_map=DEFAULT_ICON_MAP) == 'cloudy'
        assert get_icon_key('TORNADO', surface='widget_symbol', icon_map=DEFAULT_ICON_MAP) == 'cloud.fill'
        assert get_icon_key('TORNADO', icon_map=DEFAULT_ICON_MAP) == 'clear'

    def test_unknown_surface_raises(self) -> None:
        with pytest.raises(ValueError, match='surface'):
            get_icon_key(WeatherCode.CLEAR, surface='watch', icon_map=DEFAULT_ICON_MAP)


class TestLoadIconMap:
    def test_default_without_file(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv('ICON_MAP_FILE', raising=False)
        assert load_icon_map() is DEFAULT_ICON_MAP

    def test_file_overrides_a_surface(self, tmp_path: Path) -> None:
        path = tmp_path / 'icons.json'
        path.write_text(json.dumps({'widget': {'CLEAR': 'sunny', 'default': 'blank'}}))

        icon_map = load_icon_map(str(path))

        assert get_icon_key(WeatherCode.CLEAR, surface='widget', icon_map=icon_map) == 'sunny'
        assert get_icon_key(WeatherCode.RAIN, surface='widget', icon_map=icon_map) == 'blank'
        # Surfaces absent from the file keep the built-in table
        assert icon_map['app'] == DEFAULT_ICON_MAP['app']

    def test_surface_without_default_falls_back_to_builtin(self, tmp_path: Path) -> None:
        path = tmp_path / 'icons.json'
        path.write_text(json.dumps({'widget': {'CLEAR': 'sunny'}, 'watch': {'CLEAR': 'sun'}}))

        icon_map = load_icon_map(str(path))

        assert get_icon_key(WeatherCode.CLEAR, surface='widget', icon_map=icon_map) == 'sunny'
        assert get_icon_key(WeatherCode.RAIN, surface='widget', icon_map=icon_map) == 'rain'
        assert get_icon_key('TORNADO', surface='widget', icon_map=icon_map) == 'cloudy'
        # A surface with no built-in table has nothing to fall back to
        with pytest.raises(ValueError, match='No icon'):
            get_icon_key('TORNADO', surface='watch', icon_map=icon_map)

    def test_env_var_is_used(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        path = tmp_path / 'icons.json'
        path.write_text(json.dumps({'widget_symbol': {'default': 'questionmark'}}))
        monkeypatch.setenv('ICON_MAP_FILE', str(path))

        assert get_icon_key('FOG', surface='widget_symbol') == 'questionmark'

    def test_broken_file_falls_back(self, tmp_path: Path) -> None:
        path = tmp_path / 'icons.json'
        path.write_text('{not json')
        assert load_icon_map(str(path)) is DEFAULT_ICON_MAP
        assert load_icon_map(str(tmp_path / 'missing.json')) is DEFAULT_ICON_MAP


class TestWidgetWeatherCode:
    def test_lowercases(self) -> None:
        assert widget_weather_code(WeatherCode.PARTLY_CLOUDY) == 'partly_cloudy'
        assert widget_weather_code('RAIN_HEAVY') == 'rain_heavy'

    def test_missing(self) -> None:
        assert widget_weather_code(None) is None
        assert widget_weather_code('') is None
