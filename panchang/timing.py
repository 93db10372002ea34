from __future__ import annotations

import logging
from datetime import datetime, timedelta
from math import floor
from typing import Dict, List, NamedTuple, Sequence, Tuple

from .elements import (ELEMENT_SPANS, INTERVAL_KINDS, SYNODIC_MONTH, element_angle,
                       element_label, normalize)
from .ephemeris import EphemerisClient
from .errors import EphemerisUnavailable
from .models import SUN, EclipticPosition, ElementInterval, is_unavailable

logger = logging.getLogger(__name__)

MAX_ITERATIONS = 10
TOLERANCE_DEG = 1e-4
MAX_INTERVALS = 8    # per kind and day


class Lunation(NamedTuple):
    start: datetime          # new moon
    end: datetime            # next new moon
    sun_at_start: float
    sun_at_end: float

    def contains(self, instant: datetime) -> bool:
        return self.start <= instant < self.end


def _wrap180(x: float) -> float:
    return (x + 180.0) % 360.0 - 180.0


class AngleSearch:
    """Finds when an element angle reaches a value, for one observer, through an EphemerisClient."""

    def __init__(self, client: EphemerisClient, latitude: float, longitude: float, ayanamsha: str):
        self.client = client
        self.latitude = latitude
        self.longitude = longitude
        self.ayanamsha = ayanamsha

    async def angle(self, kind: str, instant: datetime):
        positions = await self.client.get_positions(instant, self.latitude, self.longitude, self.ayanamsha)
        a = element_angle(kind, positions)
        if is_unavailable(a):
            raise EphemerisUnavailable(a.reason, details={"instant": instant.isoformat()})
        return a, positions

    async def crossing(self, kind: str, target: float,
                       guess: datetime) -> Tuple[datetime, Dict[str, EclipticPosition]]:
        """Instant near ``guess`` where the ``kind`` angle equals ``target``, by Newton steps."""
        t = guess
        for _ in range(MAX_ITERATIONS):
            a, positions = await self.angle(kind, t)
            delta = _wrap180(target - a.value)
            if abs(delta) < TOLERANCE_DEG:
                return t, positions
            t = t + timedelta(days=delta / a.rate)
        logger.debug("%s crossing of %.4f not converged after %d steps near %s",
                     kind, target, MAX_ITERATIONS, guess.isoformat())
        return t, positions

    # ---------------- New moons ------------------
    async def new_moon_before(self, instant: datetime) -> Tuple[datetime, float]:
        """Latest new moon at or before ``instant`` and the Sun's longitude then."""
        a, _ = await self.angle("tithi", instant)
        t, positions = await self.crossing("tithi", 0.0, instant - timedelta(days=a.value / a.rate))
        if t > instant:
            t, positions = await self.crossing("tithi", 0.0, t - timedelta(days=SYNODIC_MONTH))
        return t, positions[SUN].longitude

    async def next_new_moon(self, new_moon: datetime) -> Tuple[datetime, float]:
        t, positions = await self.crossing("tithi", 0.0, new_moon + timedelta(days=SYNODIC_MONTH))
        return t, positions[SUN].longitude

    async def lunations(self, first: datetime, last: datetime) -> List[Lunation]:
        """Consecutive lunations covering [first, last]."""
        start, sun_start = await self.new_moon_before(first)
        out: List[Lunation] = []
        while not out or out[-1].end <= last:
            end, sun_end = await self.next_new_moon(start)
            out.append(Lunation(start, end, sun_start, sun_end))
            start, sun_start = end, sun_end
        return out

    # ---------------- Element intervals ----------
    async def intervals(self, kind: str, start: datetime, end: datetime) -> List[ElementInterval]:
        """Every ``kind`` element in force during [start, end), with its exact start and end."""
        span = ELEMENT_SPANS[kind]
        a, _ = await self.angle(kind, start)
        lower = floor(a.value / span) * span
        t0, _ = await self.crossing(kind, normalize(lower), start - timedelta(days=(a.value - lower) / a.rate))
        out: List[ElementInterval] = []
        for _ in range(MAX_INTERVALS):
            upper = lower + span
            guess = start + timedelta(days=(upper - a.value) / a.rate)
            t1, _ = await self.crossing(kind, normalize(upper), guess)
            index, name = element_label(kind, normalize(lower + span / 2))
            out.append(ElementInterval(kind, index, name, t0, t1))
            if t1 >= end:
                break
            t0, lower = t1, upper
        return out


async def element_intervals(client: EphemerisClient, start: datetime, end: datetime,
                            latitude: float, longitude: float, ayanamsha: str,
                            kinds: Sequence[str] = INTERVAL_KINDS) -> List[ElementInterval]:
    search = AngleSearch(client, latitude, longitude, ayanamsha)
    out: List[ElementInterval] = []
    for kind in kinds:
        out.extend(await search.intervals(kind, start, end))
    return out


async def lunations_between(client: EphemerisClient, first: datetime, last: datetime,
                            latitude: float, longitude: float, ayanamsha: str) -> List[Lunation]:
    return await AngleSearch(client, latitude, longitude, ayanamsha).lunations(first, last)
