from __future__ import annotations

from math import floor, isfinite
from typing import Mapping, NamedTuple, Optional, Union

from .models import (KRISHNA, MOON, SHUKLA, SUN, EclipticPosition, Unavailable,
                     is_unavailable)

TITHI_SPAN = 12.0
KARANA_SPAN = 6.0
NAKSHATRA_SPAN = 360.0 / 27.0
SIGN_SPAN = 30.0
DEFAULT_TOLERANCE = 8.0

# mean motions, used to estimate the previous new moon and to seed root searches
MEAN_SUN_SPEED = 0.985647
MEAN_MOON_SPEED = 13.176358
SYNODIC_MONTH = 29.530588

_TITHI_ORDINALS = ["Pratipada", "Dwitiya", "Tritiya", "Chaturthi", "Panchami",
                   "Shashthi", "Saptami", "Ashtami", "Navami", "Dashami",
                   "Ekadashi", "Dwadashi", "Trayodashi", "Chaturdashi"]
TITHI_NAMES = ([f"Shukla {n}" for n in _TITHI_ORDINALS] + ["Purnima"]
               + [f"Krishna {n}" for n in _TITHI_ORDINALS] + ["Amavasya"])

NAKSHATRA_NAMES = [
    "Ashwini", "Bharani", "Krittika", "Rohini", "Mrigashira", "Ardra",
    "Punarvasu", "Pushya", "Ashlesha", "Magha", "Purva Phalguni", "Uttara Phalguni",
    "Hasta", "Chitra", "Swati", "Vishakha", "Anuradha", "Jyeshtha",
    "Mula", "Purva Ashadha", "Uttara Ashadha", "Shravana", "Dhanishtha", "Shatabhisha",
    "Purva Bhadrapada", "Uttara Bhadrapada", "Revati",
]

YOGA_NAMES = [
    "Vishkambha", "Priti", "Ayushman", "Saubhagya", "Shobhana", "Atiganda", "Sukarma",
    "Dhriti", "Shoola", "Ganda", "Vriddhi", "Dhruva", "Vyaghata", "Harshana", "Vajra",
    "Siddhi", "Vyatipata", "Variyana", "Parigha", "Shiva", "Siddha", "Sadhya", "Shubha",
    "Shukla", "Brahma", "Indra", "Vaidhriti",
]

# 0..6 movable (cycle order), 7..10 fixed
KARANA_NAMES = ["Bava", "Balava", "Kaulava", "Taitila", "Garaja", "Vanija", "Vishti",
                "Shakuni", "Chatushpada", "Naga", "Kimstughna"]
MOVABLE_KARANAS = 7
KIMSTUGHNA = 10

SIGN_NAMES = ["Mesha", "Vrishabha", "Mithuna", "Karka", "Simha", "Kanya",
              "Tula", "Vrishchika", "Dhanu", "Makara", "Kumbha", "Mina"]

AMANTA_MONTHS = ["Chaitra", "Vaishakha", "Jyeshtha", "Ashadha", "Shravana", "Bhadrapada",
                 "Ashwin", "Kartika", "Margashirsha", "Pausha", "Magha", "Phalguna"]


class Tithi(NamedTuple):
    index: int      # 1..30
    name: str
    paksha: str


class Nakshatra(NamedTuple):
    index: int      # 0..26
    name: str


class Yoga(NamedTuple):
    index: int      # 0..26
    name: str


class Karana(NamedTuple):
    index: int      # 0..10
    name: str
    half_tithi: int  # 1..60 within the synodic month
    fixed: bool


class LunarMonth(NamedTuple):
    index: int      # 0..11, 0 = Chaitra
    name: str


class Elements(NamedTuple):
    tithi: Tithi
    nakshatra: Nakshatra
    yoga: Yoga
    karana: Karana
    is_amavasya: bool
    is_purnima: bool
    solar_month: int
    lunar_month: LunarMonth


Longitude = Optional[float]


# ---------------- Angle helpers ----------------
def normalize(deg: float) -> float:
    x = deg % 360.0
    return 0.0 if x >= 360.0 else x


def _clean(*lons: Longitude):
    out = []
    for lon in lons:
        if lon is None:
            return Unavailable("position missing")
        if not isfinite(lon):
            return Unavailable("position not finite")
        out.append(normalize(lon))
    return out


def elongation(moon_lon: Longitude, sun_lon: Longitude) -> Union[float, Unavailable]:
    """Moon minus Sun, in [0, 360)."""
    lons = _clean(moon_lon, sun_lon)
    if is_unavailable(lons):
        return lons
    return normalize(lons[0] - lons[1])


# ---------------- Tithi / paksha ---------------
def paksha_for_tithi(n: int) -> str:
    return SHUKLA if 1 <= n <= 15 else KRISHNA


def tithi_abs(paksha: str, ordinal: int) -> int:
    return ordinal if paksha.lower() == SHUKLA.lower() else 15 + ordinal


def tithi_name(index: int) -> str:
    return TITHI_NAMES[index - 1]


def tithi(moon_lon: Longitude, sun_lon: Longitude) -> Union[Tithi, Unavailable]:
    diff = elongation(moon_lon, sun_lon)
    if is_unavailable(diff):
        return diff
    n = min(int(floor(diff / TITHI_SPAN)) + 1, 30)
    return Tithi(n, tithi_name(n), paksha_for_tithi(n))


def skipped_tithi(today: int, tomorrow: int) -> Optional[int]:
    """Tithi that starts and ends between two consecutive sunrises (kshaya), if any."""
    if (tomorrow - today) % 30 == 2:
        return today % 30 + 1
    return None


# ---------------- Nakshatra / yoga -------------
def nakshatra(moon_lon: Longitude) -> Union[Nakshatra, Unavailable]:
    lons = _clean(moon_lon)
    if is_unavailable(lons):
        return lons
    idx = min(int(floor(lons[0] / NAKSHATRA_SPAN)), 26)
    return Nakshatra(idx, NAKSHATRA_NAMES[idx])


def yoga(moon_lon: Longitude, sun_lon: Longitude) -> Union[Yoga, Unavailable]:
    lons = _clean(moon_lon, sun_lon)
    if is_unavailable(lons):
        return lons
    total = normalize(lons[0] + lons[1])
    idx = int(floor(total / NAKSHATRA_SPAN)) % 27
    return Yoga(idx, YOGA_NAMES[idx])


# ---------------- Karana -----------------------
def karana_for_half_tithi(k: int) -> int:
    """Karana index for a zero-based half-tithi number (0..59)."""
    if k == 0:
        return KIMSTUGHNA
    if k >= 57:
        return MOVABLE_KARANAS + (k - 57)      # Shakuni, Chatushpada, Naga
    return (k - 1) % MOVABLE_KARANAS


def karana(moon_lon: Longitude, sun_lon: Longitude) -> Union[Karana, Unavailable]:
    diff = elongation(moon_lon, sun_lon)
    if is_unavailable(diff):
        return diff
    k = min(int(floor(diff / KARANA_SPAN)), 59)
    idx = karana_for_half_tithi(k)
    return Karana(idx, KARANA_NAMES[idx], k + 1, idx >= MOVABLE_KARANAS)


# ---------------- New / full moon --------------
def is_amavasya(moon_lon: Longitude, sun_lon: Longitude,
                tolerance: float = DEFAULT_TOLERANCE) -> Union[bool, Unavailable]:
    diff = elongation(moon_lon, sun_lon)
    if is_unavailable(diff):
        return diff
    if diff >= 360.0 - TITHI_SPAN:      # tithi 30
        return True
    return diff < tolerance or diff > 360.0 - tolerance


def is_purnima(moon_lon: Longitude, sun_lon: Longitude,
               tolerance: float = DEFAULT_TOLERANCE) -> Union[bool, Unavailable]:
    diff = elongation(moon_lon, sun_lon)
    if is_unavailable(diff):
        return diff
    if 180.0 - TITHI_SPAN <= diff < 180.0:  # tithi 15
        return True
    return abs(diff - 180.0) < tolerance


# ---------------- Months -----------------------
def solar_month(sun_lon: Longitude) -> Union[int, Unavailable]:
    """Sidereal sign of the Sun, 0 = Mesha."""
    lons = _clean(sun_lon)
    if is_unavailable(lons):
        return lons
    return int(floor(lons[0] / SIGN_SPAN)) % 12


def solar_ingress(sun_lon: Longitude, sun_speed: float = 0.0,
                  next_sun_lon: Longitude = None) -> Union[bool, Unavailable]:
    """True when the Sun changes sign before the next sunrise."""
    start = solar_month(sun_lon)
    if is_unavailable(start):
        return start
    if next_sun_lon is None:
        next_sun_lon = sun_lon + sun_speed
    end = solar_month(next_sun_lon)
    if is_unavailable(end):
        return end
    return start != end


def lunar_month_from_new_moon(sun_at_new_moon: Longitude) -> Union[LunarMonth, Unavailable]:
    """Amanta month opened by a new moon; Sun in Mina at the new moon opens Chaitra."""
    lons = _clean(sun_at_new_moon)
    if is_unavailable(lons):
        return lons
    idx = int(floor(normalize(lons[0] + SIGN_SPAN) / SIGN_SPAN)) % 12
    return LunarMonth(idx, AMANTA_MONTHS[idx])


def is_adhika(sun_at_new_moon: Longitude, sun_at_next_new_moon: Longitude) -> Union[bool, Unavailable]:
    """A lunation with no sankranti: both bounding new moons see the Sun in one sign."""
    start = solar_month(sun_at_new_moon)
    if is_unavailable(start):
        return start
    end = solar_month(sun_at_next_new_moon)
    if is_unavailable(end):
        return end
    return start == end


def lunar_month(moon_lon: Longitude, sun_lon: Longitude) -> Union[LunarMonth, Unavailable]:
    """
    Amanta month estimated from one instant: the previous new moon is dated
    from the elongation and mean motions. Used when no new moon search is done.
    """
    diff = elongation(moon_lon, sun_lon)
    if is_unavailable(diff):
        return diff
    days_since_new_moon = diff / (MEAN_MOON_SPEED - MEAN_SUN_SPEED)
    return lunar_month_from_new_moon(normalize(sun_lon) - MEAN_SUN_SPEED * days_since_new_moon)


# ---------------- Intervals --------------------
INTERVAL_KINDS = ("tithi", "yoga", "karana")
ELEMENT_SPANS = {"tithi": TITHI_SPAN, "yoga": NAKSHATRA_SPAN, "karana": KARANA_SPAN}


class Angle(NamedTuple):
    value: float    # degrees, [0, 360)
    rate: float     # degrees per day, > 0


def element_angle(kind: str, positions: Mapping[str, EclipticPosition]) -> Union[Angle, Unavailable]:
    """The angle a tithi, yoga or karana is counted on, with its rate of change."""
    sun = positions.get(SUN)
    moon = positions.get(MOON)
    if sun is None or moon is None:
        return Unavailable("missing Sun or Moon position")
    lons = _clean(moon.longitude, sun.longitude)
    if is_unavailable(lons):
        return lons
    if kind == "yoga":
        rate = moon.speed + sun.speed
        return Angle(normalize(lons[0] + lons[1]), rate if rate > 0 else MEAN_MOON_SPEED + MEAN_SUN_SPEED)
    rate = moon.speed - sun.speed
    return Angle(normalize(lons[0] - lons[1]), rate if rate > 0 else MEAN_MOON_SPEED - MEAN_SUN_SPEED)


def element_label(kind: str, angle: float):
    """(index, name) of the element of ``kind`` in force at ``angle``."""
    if kind == "tithi":
        t = tithi(angle, 0.0)
        return t.index, t.name
    if kind == "karana":
        k = karana(angle, 0.0)
        return k.index, k.name
    y = yoga(angle, 0.0)
    return y.index, y.name


# ---------------- Bundle -----------------------
def panchang_elements(positions: Mapping[str, EclipticPosition],
                      tolerance: float = DEFAULT_TOLERANCE) -> Union[Elements, Unavailable]:
    """All elements for one instant from a body -> position map."""
    sun = positions.get(SUN)
    moon = positions.get(MOON)
    if sun is None or moon is None:
        missing = ", ".join(b for b, p in ((SUN, sun), (MOON, moon)) if p is None)
        return Unavailable(f"missing position: {missing}")
    parts = (
        tithi(moon.longitude, sun.longitude),
        nakshatra(moon.longitude),
        yoga(moon.longitude, sun.longitude),
        karana(moon.longitude, sun.longitude),
        is_amavasya(moon.longitude, sun.longitude, tolerance),
        is_purnima(moon.longitude, sun.longitude, tolerance),
        solar_month(sun.longitude),
        lunar_month(moon.longitude, sun.longitude),
    )
    for p in parts:
        if is_unavailable(p):
            return p
    return Elements(*parts)
