# ABOUTME: Solar ephemeris calculator for sunrise, sunset, solar noon and nadir
# ABOUTME: Low-precision geocentric sun position, pure functions with no I/O

import math
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone


# Sun position constants (https://www.aa.quae.nl/en/reken/zonpositie.html)
RAD = math.pi / 180
DAY_MS = 1000 * 60 * 60 * 24
J1970 = 2440588
J2000 = 2451545
OBLIQUITY = RAD * 23.4397  # Earth's axial tilt
J0 = 0.0009
SUNRISE_ALTITUDE = -0.833  # degrees, refraction plus solar disc radius

UNIX_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass(frozen=True)
class SunTimes:
    """Sun event instants in UTC; None where the sun never crosses the horizon"""

    sunrise: datetime | None
    sunset: datetime | None
    solar_noon: datetime | None
    nadir: datetime | None


def _epoch_ms(date: datetime) -> float:
    if date.tzinfo is None:
        date = date.replace(tzinfo=timezone.utc)
    return (date - UNIX_EPOCH) / timedelta(milliseconds=1)


def to_julian(date: datetime) -> float:
    """Convert an instant to a Julian date (days begin at noon)"""
    return _epoch_ms(date) / DAY_MS - 0.5 + J1970


def from_julian(julian: float) -> datetime | None:
    """Convert a Julian date back to a UTC instant at millisecond resolution"""
    if not math.isfinite(julian):
        return None
    ms = math.trunc((julian + 0.5 - J1970) * DAY_MS)
    try:
        return UNIX_EPOCH + timedelta(milliseconds=ms)
    except OverflowError:
        # Outside the years datetime can represent
        return None


def to_days(date: datetime) -> float:
    """Days since the J2000.0 epoch"""
    return to_julian(date) - J2000


def solar_mean_anomaly(days: float) -> float:
    return RAD * (357.5291 + 0.98560028 * days)


def ecliptic_longitude(mean_anomaly: float) -> float:
    # Equation of center
    center = RAD * (
        1.9148 * math.sin(mean_anomaly)
        + 0.02 * math.sin(2 * mean_anomaly)
        + 0.0003 * math.sin(3 * mean_anomaly)
    )
    perihelion = RAD * 102.9372
    return mean_anomaly + center + perihelion + math.pi


def declination(longitude: float) -> float:
    return math.asin(math.sin(longitude) * math.sin(OBLIQUITY))


def julian_cycle(days: float, lw: float) -> float:
    # Round half up, matching Math.round; nan and inf give nan
    cycle = days - J0 - lw / (2 * math.pi)
    if not math.isfinite(cycle):
        return math.nan
    return math.floor(cycle + 0.5)


def approx_transit(hour_angle: float, lw: float, cycle: float) -> float:
    return J0 + (hour_angle + lw) / (2 * math.pi) + cycle


def solar_transit_j(ds: float, mean_anomaly: float, longitude: float) -> float:
    return J2000 + ds + 0.0053 * math.sin(mean_anomaly) - 0.0069 * math.sin(
        2 * longitude
    )


def hour_angle(altitude: float, phi: float, dec: float) -> float:
    """Hour angle at which the sun reaches the given altitude.

    Returns nan when the sun never reaches that altitude on this day
    (polar day or polar night).
    """
    if not all(math.isfinite(value) for value in (altitude, phi, dec)):
        return math.nan
    cos_h = (math.sin(altitude) - math.sin(phi) * math.sin(dec)) / (
        math.cos(phi) * math.cos(dec)
    )
    if not -1 <= cos_h <= 1:
        return math.nan
    return math.acos(cos_h)


def observer_angle(height: float) -> float:
    """Horizon dip for an observer standing height meters above the horizon"""
    if height < 0:
        return math.nan
    return -2.076 * math.sqrt(height) / 60


def local_solar_noon(day: date, longitude: float) -> datetime:
    """Mean solar noon of a calendar day at a longitude, as a UTC instant.

    Passing this to compute_sun_times pins the result to ``day`` wherever the
    observer stands. Longitudes that are not finite or not on the globe keep
    noon UTC.
    """
    noon = datetime.combine(day, time(12), tzinfo=timezone.utc)
    if math.isfinite(longitude) and -180 <= longitude <= 180:
        noon -= timedelta(hours=longitude / 15)
    return noon


def compute_sun_times(
    date: datetime,
    latitude: float,
    longitude: float,
    elevation_meters: float = 0,
) -> SunTimes:
    """Calculate sunrise, sunset, solar noon and nadir for a date and location.

    Naive datetimes are taken as UTC. The solar transit nearest to ``date`` is
    used, so midnight UTC west of Greenwich lands on the previous day's transit;
    pass local noon to pin a calendar day. Results are UTC instants; conversion
    to local display time is left to the caller. Nothing is validated: latitudes
    in polar day or night, or non-finite coordinates, give None for sunrise and
    sunset.
    """
    lw = RAD * -longitude
    phi = RAD * latitude

    dh = observer_angle(elevation_meters)

    days = to_days(date)
    cycle = julian_cycle(days, lw)
    ds = approx_transit(0, lw, cycle)

    mean_anomaly = solar_mean_anomaly(ds)
    longitude_ecl = ecliptic_longitude(mean_anomaly)
    dec = declination(longitude_ecl)

    j_noon = solar_transit_j(ds, mean_anomaly, longitude_ecl)

    h0 = RAD * (SUNRISE_ALTITUDE + dh)

    w = hour_angle(h0, phi, dec)
    j_set = solar_transit_j(approx_transit(w, lw, cycle), mean_anomaly, longitude_ecl)
    j_rise = j_noon - (j_set - j_noon)

    return SunTimes(
        sunrise=from_julian(j_rise),
        sunset=from_julian(j_set),
        solar_noon=from_julian(j_noon),
        nadir=from_julian(j_noon - 0.5),
    )


def compute_daylight_duration_hours(
    date: datetime, latitude: float, longitude: float
) -> float:
    """Hours between sunrise and sunset, nan during polar day or night"""
    times = compute_sun_times(date, latitude, longitude)
    if times.sunrise is None or times.sunset is None:
        return math.nan
    return (times.sunset - times.sunrise) / timedelta(hours=1)
