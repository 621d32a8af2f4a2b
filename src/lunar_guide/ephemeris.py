"""
Moon ephemeris capability.

The guidance pipeline only depends on the MoonEphemeris protocol: given a
time and observer coordinates it returns the Moon's horizontal position in
radians, with azimuth measured from South and increasing towards West (the
SunCalc convention used by browser clients). to_celestial_position()
converts that into the north-referenced degrees the guidance works in.

MeeusMoonEphemeris is a low-precision implementation based on
Jean Meeus "Astronomical Algorithms". Altitudes are topocentric (corrected
for lunar parallax, up to about a degree near the horizon); the truncated
periodic series leaves errors of a few tenths of a degree, good enough for
a 5 degree in-view cone.
"""

import math
from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Protocol

import numpy as np

from .angles import normalize_degrees


EARTH_RADIUS_KM = 6378.14


@dataclass(frozen=True)
class MoonPosition:
    """Raw provider output."""
    azimuth_rad: float      # From South, positive towards West
    altitude_rad: float     # Above horizon


@dataclass(frozen=True)
class CelestialPosition:
    """Position in horizontal coordinates."""
    azimuth: float      # Degrees from North (0-360)
    altitude: float     # Degrees above horizon (-90 to +90)

    def to_direction_vector(self) -> np.ndarray:
        """Convert to 3D unit vector (North-East-Up frame)."""
        az_rad = math.radians(self.azimuth)
        alt_rad = math.radians(self.altitude)

        x = math.cos(alt_rad) * math.cos(az_rad)  # North
        y = math.cos(alt_rad) * math.sin(az_rad)  # East
        z = math.sin(alt_rad)                      # Up

        return np.array([x, y, z])


class MoonEphemeris(Protocol):
    """Capability computing where the Moon is."""

    def position_of(self, when: datetime, latitude: float,
                    longitude: float) -> MoonPosition:
        ...

    def illumination_of(self, when: datetime) -> float:
        ...


def to_celestial_position(position: MoonPosition) -> CelestialPosition:
    """Convert SunCalc-convention radians to north-referenced degrees."""
    azimuth = normalize_degrees(math.degrees(position.azimuth_rad) + 180.0)
    altitude = math.degrees(position.altitude_rad)
    return CelestialPosition(azimuth=azimuth, altitude=altitude)


def moon_phase_name(phase: float) -> str:
    """
    Name the lunar phase.

    Args:
        phase: Fraction of the synodic cycle, 0.0 = new, 0.5 = full

    Returns:
        Phase name
    """
    phase = phase % 1.0
    if phase < 0.03 or phase > 0.97:
        return "New Moon"
    elif phase < 0.22:
        return "Waxing Crescent"
    elif phase < 0.28:
        return "First Quarter"
    elif phase < 0.47:
        return "Waxing Gibbous"
    elif phase < 0.53:
        return "Full Moon"
    elif phase < 0.72:
        return "Waning Gibbous"
    elif phase < 0.78:
        return "Last Quarter"
    return "Waning Crescent"


def julian_date(dt: datetime) -> float:
    """
    Calculate Julian Date from datetime.

    Args:
        dt: Datetime; naive values are taken as UTC

    Returns:
        Julian Date
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    else:
        dt = dt.astimezone(timezone.utc)

    year = dt.year
    month = dt.month
    day = (dt.day + dt.hour / 24.0 + dt.minute / 1440.0
           + (dt.second + dt.microsecond / 1e6) / 86400.0)

    if month <= 2:
        year -= 1
        month += 12

    A = int(year / 100)
    B = 2 - A + int(A / 4)

    return int(365.25 * (year + 4716)) + int(30.6001 * (month + 1)) + day + B - 1524.5


class MeeusMoonEphemeris:
    """
    Low-precision lunar ephemeris.

    Computes ecliptic longitude/latitude from the main periodic terms,
    converts to equatorial and then to horizontal coordinates for the
    observer.
    """

    def _fundamental_arguments(self, when: datetime):
        jd = julian_date(when)
        T = (jd - 2451545.0) / 36525.0

        # Moon's mean longitude
        L = (218.3164477 + 481267.88123421 * T - 0.0015786 * T**2) % 360.0
        # Moon's mean anomaly
        M = (134.9633964 + 477198.8675055 * T + 0.0087414 * T**2) % 360.0
        # Moon's mean elongation
        D = (297.8501921 + 445267.1114034 * T - 0.0018819 * T**2) % 360.0
        # Moon's argument of latitude
        F = (93.2720950 + 483202.0175233 * T - 0.0036539 * T**2) % 360.0

        return jd, T, L, M, D, F

    def equatorial_of(self, when: datetime):
        """
        Moon right ascension and declination.

        Returns:
            Tuple of (ra, dec) in degrees
        """
        jd, T, L, M, D, F = self._fundamental_arguments(when)
        M_rad = math.radians(M)
        D_rad = math.radians(D)
        F_rad = math.radians(F)

        delta_lon = (6.289 * math.sin(M_rad)
                     - 1.274 * math.sin(2 * D_rad - M_rad)
                     + 0.658 * math.sin(2 * D_rad)
                     - 0.214 * math.sin(2 * M_rad))
        beta = 5.128 * math.sin(F_rad)

        lambda_rad = math.radians(L + delta_lon)
        beta_rad = math.radians(beta)

        epsilon_rad = math.radians(23.439291 - 0.0130042 * T)

        ra = math.degrees(math.atan2(
            math.sin(lambda_rad) * math.cos(epsilon_rad)
            - math.tan(beta_rad) * math.sin(epsilon_rad),
            math.cos(lambda_rad)
        )) % 360.0

        dec = math.degrees(math.asin(
            math.sin(beta_rad) * math.cos(epsilon_rad)
            + math.cos(beta_rad) * math.sin(epsilon_rad) * math.sin(lambda_rad)
        ))

        return ra, dec

    def distance_of(self, when: datetime) -> float:
        """Earth-Moon distance in kilometres."""
        _, _, _, M, D, _ = self._fundamental_arguments(when)
        M_rad = math.radians(M)
        D_rad = math.radians(D)

        return (385000.56
                - 20905.355 * math.cos(M_rad)
                - 3699.111 * math.cos(2 * D_rad - M_rad)
                - 2955.968 * math.cos(2 * D_rad)
                - 569.925 * math.cos(2 * M_rad))

    def local_sidereal_time(self, when: datetime, longitude: float) -> float:
        """Local sidereal time in degrees (0-360)."""
        jd = julian_date(when)
        T = (jd - 2451545.0) / 36525.0

        gmst = (280.46061837 + 360.98564736629 * (jd - 2451545.0)
                + 0.000387933 * T**2 - T**3 / 38710000.0)

        return (gmst + longitude) % 360.0

    def position_of(self, when: datetime, latitude: float,
                    longitude: float) -> MoonPosition:
        ra, dec = self.equatorial_of(when)

        ha_rad = math.radians(self.local_sidereal_time(when, longitude) - ra)
        dec_rad = math.radians(dec)
        lat_rad = math.radians(latitude)

        # Same formulation as SunCalc: azimuth from South, positive West
        azimuth = math.atan2(
            math.sin(ha_rad),
            math.cos(ha_rad) * math.sin(lat_rad) - math.tan(dec_rad) * math.cos(lat_rad)
        )
        sin_alt = (math.sin(lat_rad) * math.sin(dec_rad)
                   + math.cos(lat_rad) * math.cos(dec_rad) * math.cos(ha_rad))
        altitude = math.asin(max(-1.0, min(1.0, sin_alt)))

        # Parallax in altitude: the observer sits on the surface, not at the centre
        altitude -= math.asin(EARTH_RADIUS_KM / self.distance_of(when) * math.cos(altitude))

        return MoonPosition(azimuth_rad=azimuth, altitude_rad=altitude)

    def phase_of(self, when: datetime) -> float:
        """Fraction of the synodic cycle, 0.0 = new, 0.5 = full."""
        _, _, _, _, D, _ = self._fundamental_arguments(when)
        return D / 360.0

    def illumination_of(self, when: datetime) -> float:
        _, _, _, _, D, _ = self._fundamental_arguments(when)
        return (1 - math.cos(math.radians(D))) / 2
