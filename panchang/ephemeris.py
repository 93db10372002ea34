"""
Ephemeris provider seam.

The aggregator only talks to :class:`EphemerisClient`. The shipped
:class:`SkyfieldEphemerisClient` computes apparent geocentric longitudes with
skyfield (JPL DE421 by default), converts them to sidereal with an ayanamsha,
and takes rise/set instants from astral. Its blocking calls run in worker
threads.
"""
from __future__ import annotations

import asyncio
import logging
import threading
from datetime import date, datetime, timedelta, timezone
from math import floor
from typing import Dict, Optional, Protocol

from astral import LocationInfo
from astral.moon import moonrise, moonset
from astral.sun import sunrise, sunset
from skyfield.api import Loader, load

from .errors import ConfigurationError, EphemerisUnavailable, InputError
from .location import resolve_timezone
from .models import KETU, MOON, RAHU, SUN, EclipticPosition, RiseSet

logger = logging.getLogger(__name__)


class EphemerisClient(Protocol):
    async def get_positions(self, instant: datetime, latitude: float, longitude: float,
                            ayanamsha: str = "lahiri") -> Dict[str, EclipticPosition]:
        ...

    async def get_rise_set(self, day: date, latitude: float, longitude: float,
                           timezone_id: str) -> RiseSet:
        ...


# ------------- Ayanamsha ----------------------
# value at J2000.0 in degrees; drifts with general precession
AYANAMSHA_J2000 = {
    "lahiri": 23 + 51 / 60,
    "raman": 22.4103,
    "krishnamurti": 23.7603,
    "fagan_bradley": 24.7403,
    "yukteshwar": 22.4785,
    "tropical": 0.0,
}
PRECESSION_ARCSEC_PER_CENTURY = 5028.796195


def validate_ayanamsha(name: str) -> str:
    if name not in AYANAMSHA_J2000:
        raise ConfigurationError(f"Unknown ayanamsha {name!r}",
                                 details={"ayanamsha": name, "known": sorted(AYANAMSHA_J2000)})
    return name


def _julian_centuries(dt_aware: datetime) -> float:
    dt_utc = dt_aware.astimezone(timezone.utc)
    y, m = dt_utc.year, dt_utc.month
    d = dt_utc.day + (dt_utc.hour + (dt_utc.minute + dt_utc.second / 60) / 60) / 24
    if m <= 2:
        y -= 1
        m += 12
    a = floor(y / 100)
    b = 2 - a + floor(a / 4)
    jd = floor(365.25 * (y + 4716)) + floor(30.6001 * (m + 1)) + d + b - 1524.5
    return (jd - 2451545.0) / 36525.0


def ayanamsha_deg(name: str, dt_aware: datetime) -> float:
    validate_ayanamsha(name)
    if name == "tropical":
        return 0.0
    t = _julian_centuries(dt_aware)
    return AYANAMSHA_J2000[name] + PRECESSION_ARCSEC_PER_CENTURY * t / 3600.0


def mean_lunar_node(dt_aware: datetime) -> float:
    """Tropical longitude of the mean ascending node (Rahu)."""
    t = _julian_centuries(dt_aware)
    return (125.04452 - 1934.136261 * t + 0.0020708 * t * t + t ** 3 / 450000.0) % 360.0


NODE_SPEED = -1934.136261 / 36525.0


def _wrap180(x: float) -> float:
    return (x + 180.0) % 360.0 - 180.0


# --------------- Skyfield / astral -------------
class SkyfieldEphemerisClient:
    """EphemerisClient backed by skyfield (positions) and astral (rise/set)."""

    SPEED_STEP = timedelta(hours=1)

    def __init__(self, ephemeris_file: str = "de421.bsp", directory: Optional[str] = None):
        self.ephemeris_file = ephemeris_file
        self.directory = directory
        self._eph = None
        self._ts = None
        self._lock = threading.Lock()

    def _load_ephem(self):
        with self._lock:
            if self._eph is None or self._ts is None:
                loader = Loader(self.directory) if self.directory else load
                try:
                    self._eph = loader(self.ephemeris_file)
                    self._ts = loader.timescale()
                except (OSError, ValueError) as exc:
                    raise EphemerisUnavailable(f"Cannot load ephemeris {self.ephemeris_file}: {exc}",
                                               details={"file": self.ephemeris_file}) from exc
                logger.info("Loaded ephemeris %s", self.ephemeris_file)
        return self._eph, self._ts

    def _tropical_longitudes(self, dt_aware: datetime):
        eph, ts = self._load_ephem()
        t = ts.from_datetime(dt_aware.astimezone(timezone.utc))
        earth = eph["earth"]
        try:
            sun_app = earth.at(t).observe(eph["sun"]).apparent()
            moon_app = earth.at(t).observe(eph["moon"]).apparent()
        except ValueError as exc:   # EphemerisRangeError
            raise EphemerisUnavailable(f"{dt_aware.isoformat()} outside ephemeris range",
                                       details={"instant": dt_aware.isoformat()}) from exc
        _, lon_sun, _ = sun_app.ecliptic_latlon(epoch="date")
        _, lon_moon, _ = moon_app.ecliptic_latlon(epoch="date")
        return lon_sun.degrees % 360.0, lon_moon.degrees % 360.0

    def positions_at(self, instant: datetime, ayanamsha: str = "lahiri") -> Dict[str, EclipticPosition]:
        if instant.tzinfo is None:
            raise InputError("instant must be timezone-aware")
        ay = ayanamsha_deg(ayanamsha, instant)
        before = self._tropical_longitudes(instant - self.SPEED_STEP)
        now = self._tropical_longitudes(instant)
        after = self._tropical_longitudes(instant + self.SPEED_STEP)
        per_day = timedelta(days=1) / (2 * self.SPEED_STEP)
        sun_speed = _wrap180(after[0] - before[0]) * per_day
        moon_speed = _wrap180(after[1] - before[1]) * per_day
        rahu = (mean_lunar_node(instant) - ay) % 360.0
        return {
            SUN: EclipticPosition((now[0] - ay) % 360.0, sun_speed, SUN),
            MOON: EclipticPosition((now[1] - ay) % 360.0, moon_speed, MOON),
            RAHU: EclipticPosition(rahu, NODE_SPEED, RAHU),
            KETU: EclipticPosition((rahu + 180.0) % 360.0, NODE_SPEED, KETU),
        }

    def rise_set_on(self, day: date, latitude: float, longitude: float, timezone_id: str) -> RiseSet:
        tz = resolve_timezone(timezone_id)
        loc = LocationInfo(latitude=latitude, longitude=longitude, timezone=tz.zone)

        def _event(fn):
            try:
                return fn(loc.observer, date=day, tzinfo=tz)
            except ValueError:      # no such event on this date (polar day/night, moon)
                return None

        return RiseSet(sunrise=_event(sunrise), sunset=_event(sunset),
                       moonrise=_event(moonrise), moonset=_event(moonset))

    async def get_positions(self, instant: datetime, latitude: float, longitude: float,
                            ayanamsha: str = "lahiri") -> Dict[str, EclipticPosition]:
        return await asyncio.to_thread(self.positions_at, instant, ayanamsha)

    async def get_rise_set(self, day: date, latitude: float, longitude: float,
                           timezone_id: str) -> RiseSet:
        return await asyncio.to_thread(self.rise_set_on, day, latitude, longitude, timezone_id)

