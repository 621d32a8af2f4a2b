"""Tests for the Moon ephemeris provider and coordinate conversion."""

import math
from datetime import datetime, timezone

import numpy as np
import pytest

from lunar_guide.angles import wrap_degrees
from lunar_guide.ephemeris import (
    EARTH_RADIUS_KM,
    CelestialPosition,
    MeeusMoonEphemeris,
    MoonPosition,
    julian_date,
    moon_phase_name,
    to_celestial_position,
)


WHEN = datetime(2024, 3, 25, 22, 0, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize("azimuth_rad, expected", [
    (0.0, 180.0),               # South
    (math.pi / 2, 270.0),       # West
    (-math.pi / 2, 90.0),       # East
    (math.pi, 0.0),             # North
])
def test_to_celestial_position_references_north(azimuth_rad, expected):
    position = to_celestial_position(MoonPosition(azimuth_rad=azimuth_rad, altitude_rad=0.5))

    assert position.azimuth == pytest.approx(expected, abs=1e-9)
    assert 0.0 <= position.azimuth < 360.0
    assert position.altitude == pytest.approx(math.degrees(0.5))


def test_direction_vector_is_unit_north_east_up():
    north = CelestialPosition(azimuth=0.0, altitude=0.0).to_direction_vector()
    east = CelestialPosition(azimuth=90.0, altitude=0.0).to_direction_vector()
    zenith = CelestialPosition(azimuth=123.0, altitude=90.0).to_direction_vector()

    np.testing.assert_allclose(north, [1.0, 0.0, 0.0], atol=1e-12)
    np.testing.assert_allclose(east, [0.0, 1.0, 0.0], atol=1e-12)
    np.testing.assert_allclose(zenith, [0.0, 0.0, 1.0], atol=1e-12)


def test_julian_date_j2000():
    assert julian_date(datetime(2000, 1, 1, 12, 0, 0, tzinfo=timezone.utc)) == pytest.approx(2451545.0)
    # Naive datetimes are UTC
    assert julian_date(datetime(2000, 1, 1, 12, 0, 0)) == pytest.approx(2451545.0)


def test_altitude_is_declination_less_parallax_at_north_pole():
    ephemeris = MeeusMoonEphemeris()
    _, dec = ephemeris.equatorial_of(WHEN)

    position = ephemeris.position_of(WHEN, 90.0, 0.0)

    parallax = math.degrees(math.asin(
        EARTH_RADIUS_KM / ephemeris.distance_of(WHEN) * math.cos(math.radians(dec))
    ))
    assert math.degrees(position.altitude_rad) == pytest.approx(dec - parallax, abs=1e-3)


def test_moon_at_zenith_for_sub_lunar_point():
    ephemeris = MeeusMoonEphemeris()
    ra, dec = ephemeris.equatorial_of(WHEN)
    longitude = wrap_degrees(ra - ephemeris.local_sidereal_time(WHEN, 0.0))

    position = ephemeris.position_of(WHEN, dec, longitude)

    assert math.degrees(position.altitude_rad) == pytest.approx(90.0, abs=1e-4)


def test_distance_stays_between_perigee_and_apogee():
    ephemeris = MeeusMoonEphemeris()
    for day in range(0, 30, 2):
        when = datetime(2024, 3, 1 + day, tzinfo=timezone.utc)
        assert 350000.0 < ephemeris.distance_of(when) < 410000.0


class _GeocentricEphemeris(MeeusMoonEphemeris):
    def distance_of(self, when):
        return 1e12


def test_parallax_lowers_the_moon_by_about_a_degree_at_the_horizon():
    ephemeris = MeeusMoonEphemeris()
    ra, _ = ephemeris.equatorial_of(WHEN)
    # Hour angle of -90 degrees at the equator puts the Moon near the horizon
    longitude = wrap_degrees(ra - 90.0 - ephemeris.local_sidereal_time(WHEN, 0.0))

    topocentric = ephemeris.position_of(WHEN, 0.0, longitude)
    geocentric = _GeocentricEphemeris().position_of(WHEN, 0.0, longitude)

    drop = math.degrees(geocentric.altitude_rad - topocentric.altitude_rad)
    assert 0.85 < drop < 1.05
    assert topocentric.azimuth_rad == pytest.approx(geocentric.azimuth_rad)


def test_rising_moon_is_in_the_east():
    ephemeris = MeeusMoonEphemeris()
    ra, _ = ephemeris.equatorial_of(WHEN)
    # Hour angle of -60 degrees: east of the meridian
    longitude = wrap_degrees(ra - 60.0 - ephemeris.local_sidereal_time(WHEN, 0.0))

    celestial = to_celestial_position(ephemeris.position_of(WHEN, 0.0, longitude))

    assert 0.0 < celestial.azimuth < 180.0


def test_position_ranges():
    ephemeris = MeeusMoonEphemeris()
    for hour in range(0, 24, 3):
        when = WHEN.replace(hour=hour)
        celestial = to_celestial_position(ephemeris.position_of(when, 34.05, -118.24))
        assert 0.0 <= celestial.azimuth < 360.0
        assert -90.0 <= celestial.altitude <= 90.0


def test_illumination_full_and_new_moon():
    ephemeris = MeeusMoonEphemeris()

    # Penumbral eclipse of 2024-03-25 and total solar eclipse of 2024-04-08
    full = ephemeris.illumination_of(datetime(2024, 3, 25, 7, 0, tzinfo=timezone.utc))
    new = ephemeris.illumination_of(datetime(2024, 4, 8, 18, 20, tzinfo=timezone.utc))

    assert full > 0.95
    assert new < 0.05
    assert 0.0 <= ephemeris.illumination_of(WHEN) <= 1.0


@pytest.mark.parametrize("phase, name", [
    (0.0, "New Moon"),
    (0.1, "Waxing Crescent"),
    (0.25, "First Quarter"),
    (0.4, "Waxing Gibbous"),
    (0.5, "Full Moon"),
    (0.6, "Waning Gibbous"),
    (0.75, "Last Quarter"),
    (0.9, "Waning Crescent"),
    (0.99, "New Moon"),
])
def test_moon_phase_name(phase, name):
    assert moon_phase_name(phase) == name
