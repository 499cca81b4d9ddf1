# ABOUTME: Unit conversion helpers for provider normalization and display
# ABOUTME: Internal values are metric; settings choose the display unit

import math


TEMPERATURE_UNITS = ('celsius', 'fahrenheit')
SPEED_UNITS = ('kmh', 'mph', 'ms', 'kn')
PRESSURE_UNITS = ('hpa', 'mb', 'inhg', 'mmhg')
PRECIPITATION_UNITS = ('mm', 'inch')
DISTANCE_UNITS = ('km', 'mi')

# Multipliers from km/h
SPEED_FACTORS = {'kmh': 1.0, 'mph': 0.621371, 'ms': 0.277778, 'kn': 0.539957}
SPEED_LABELS = {'kmh': 'km/h', 'mph': 'mph', 'ms': 'm/s', 'kn': 'kn'}

# Multipliers from hPa
PRESSURE_FACTORS = {'hpa': 1.0, 'mb': 1.0, 'inhg': 0.0295300, 'mmhg': 0.750062}
PRESSURE_LABELS = {'hpa': 'hPa', 'mb': 'mb', 'inhg': 'inHg', 'mmhg': 'mmHg'}

MM_PER_INCH = 25.4
KM_PER_MILE = 1.609344
KMH_PER_MPH = 1.60934

MISSING = '--'


def round_half_up(value: float, digits: int = 0) -> float:
    """Round like JavaScript's Math.round (halves go up, not to even)"""
    scale = 10**digits
    return math.floor(value * scale + 0.5) / scale


def _check_unit(unit: str, allowed: tuple[str, ...], kind: str) -> None:
    if unit not in allowed:
        msg = f"Unknown {kind} unit '{unit}', expected one of {', '.join(allowed)}"
        raise ValueError(msg)


def fahrenheit_to_celsius(fahrenheit: float) -> float:
    return (fahrenheit - 32) * 5 / 9


def celsius_to_fahrenheit(celsius: float) -> float:
    return celsius * 9 / 5 + 32


def mph_to_kmh(mph: float) -> float:
    return mph * KMH_PER_MPH


def convert_temperature(celsius: float, unit: str) -> float:
    _check_unit(unit, TEMPERATURE_UNITS, 'temperature')
    if unit == 'fahrenheit':
        return celsius_to_fahrenheit(celsius)
    return celsius


def convert_speed(kmh: float, unit: str) -> float:
    _check_unit(unit, SPEED_UNITS, 'speed')
    return kmh * SPEED_FACTORS[unit]


def convert_pressure(hpa: float, unit: str) -> float:
    _check_unit(unit, PRESSURE_UNITS, 'pressure')
    return hpa * PRESSURE_FACTORS[unit]


def convert_precipitation(mm: float, unit: str) -> float:
    _check_unit(unit, PRECIPITATION_UNITS, 'precipitation')
    if unit == 'inch':
        return mm / MM_PER_INCH
    return mm


def convert_distance(meters: float, unit: str) -> float:
    """Convert a visibility-style distance in meters to km or miles"""
    _check_unit(unit, DISTANCE_UNITS, 'distance')
    km = meters / 1000
    if unit == 'mi':
        return km / KM_PER_MILE
    return km


def format_temperature(celsius: float | None, unit: str, short: bool = False) -> str:
    if celsius is None:
        return f'{MISSING}°' if short else MISSING
    value = round_half_up(convert_temperature(celsius, unit))
    if short:
        return f'{value:.0f}°'
    suffix = 'F' if unit == 'fahrenheit' else 'C'
    return f'{value:.0f}°{suffix}'


def format_speed(kmh: float | None, unit: str) -> str:
    if kmh is None:
        return MISSING
    value = round_half_up(convert_speed(kmh, unit))
    return f'{value:.0f} {SPEED_LABELS[unit]}'


def format_pressure(hpa: float | None, unit: str) -> str:
    if hpa is None:
        return MISSING
    value = convert_pressure(hpa, unit)
    # inHg needs two decimals to be useful
    if unit == 'inhg':
        return f'{round_half_up(value, 2):.2f} {PRESSURE_LABELS[unit]}'
    return f'{round_half_up(value):.0f} {PRESSURE_LABELS[unit]}'


def format_precipitation(mm: float | None, unit: str) -> str:
    if mm is None:
        return MISSING
    value = convert_precipitation(mm, unit)
    if unit == 'inch':
        return f'{round_half_up(value, 2):.2f} in'
    return f'{round_half_up(value, 1):.1f} mm'


def format_distance(meters: float | None, unit: str) -> str:
    if meters is None:
        return MISSING
    value = round_half_up(convert_distance(meters, unit), 1)
    return f'{value:.1f} {unit}'
