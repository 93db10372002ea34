"""Coordinate validation, cache bucketing and timezone resolution."""
from __future__ import annotations

from functools import lru_cache
from math import isfinite
from typing import Tuple

import pytz
from timezonefinder import TimezoneFinder

from .errors import InputError


def validate_location(lat: float, lon: float) -> None:
    if lat is None or lon is None or not (isfinite(lat) and isfinite(lon)):
        raise InputError("Latitude and longitude must be finite numbers",
                         details={"latitude": lat, "longitude": lon})
    if not -90.0 <= lat <= 90.0:
        raise InputError(f"Latitude {lat} out of range [-90, 90]", details={"latitude": lat})
    if not -180.0 <= lon <= 180.0:
        raise InputError(f"Longitude {lon} out of range [-180, 180]", details={"longitude": lon})


def bucket_coordinate(value: float, granularity: float) -> float:
    """Snap to the nearest multiple of ``granularity``; the only rounding rule used for keys."""
    return round(round(value / granularity) * granularity, 6)


def bucket_location(lat: float, lon: float, granularity: float) -> Tuple[float, float]:
    validate_location(lat, lon)
    return bucket_coordinate(lat, granularity), bucket_coordinate(lon, granularity)


def resolve_timezone(timezone_id: str):
    try:
        return pytz.timezone(timezone_id)
    except pytz.UnknownTimeZoneError:
        raise InputError(f"Unknown timezone {timezone_id!r}", details={"timezone": timezone_id}) from None


@lru_cache(maxsize=1)
def _finder() -> TimezoneFinder:
    return TimezoneFinder()


def iana_timezone_for(lat: float, lon: float) -> str:
    """IANA zone name for a coordinate; raises instead of guessing when none is found."""
    validate_location(lat, lon)
    tzname = _finder().timezone_at(lng=lon, lat=lat)
    if not tzname:
        raise InputError(f"No timezone found for ({lat}, {lon})",
                         details={"latitude": lat, "longitude": lon})
    return tzname
