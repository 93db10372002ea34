from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Dict, List, Optional, Tuple

from .errors import InputError
from .models import (ABHIJIT_MUHURTA, ARUNODAYA, GHADIYA, GULIKA_KALAM, MADHYAHNA,
                     NIGHT, RAHU_KALAM, SUNRISE, YAMAGANDA, MuhurtaWindow)

GHADIYA_COUNT = 8
MUHURTA_COUNT = 15
ABHIJIT_NUMBER = 8
WEDNESDAY = 2
ARUNODAYA_BEFORE_SUNRISE = timedelta(minutes=96)   # four ghatis
NIGHT_HOUR = 20

# 1-based daylight segment, keyed by date.weekday() (Mon=0 .. Sun=6)
_RAHU_SEG = {0: 2, 1: 7, 2: 5, 3: 6, 4: 4, 5: 3, 6: 8}
_YAMAGANDA_SEG = {0: 4, 1: 3, 2: 2, 3: 1, 4: 7, 5: 6, 6: 5}
_GULIKA_SEG = {0: 6, 1: 5, 2: 4, 3: 3, 4: 2, 5: 1, 6: 7}

SEGMENT_TABLES: Dict[str, Dict[int, int]] = {
    RAHU_KALAM: _RAHU_SEG,
    YAMAGANDA: _YAMAGANDA_SEG,
    GULIKA_KALAM: _GULIKA_SEG,
}


def _check(sunrise: datetime, sunset: datetime, weekday: Optional[int] = None) -> timedelta:
    if sunrise is None or sunset is None:
        raise InputError("sunrise and sunset are required")
    if sunset <= sunrise:
        raise InputError("sunset must be after sunrise",
                         details={"sunrise": sunrise.isoformat(), "sunset": sunset.isoformat()})
    if weekday is not None and weekday not in range(7):
        raise InputError(f"weekday must be 0..6, got {weekday}")
    return sunset - sunrise


def _boundary(sunrise: datetime, span: timedelta, i: int, parts: int) -> datetime:
    return sunrise + (span * i) / parts


def segment(sunrise: datetime, sunset: datetime, n: int, parts: int = GHADIYA_COUNT) -> Tuple[datetime, datetime]:
    """The ``n``-th (1-based) of ``parts`` equal daylight segments."""
    span = _check(sunrise, sunset)
    return _boundary(sunrise, span, n - 1, parts), _boundary(sunrise, span, n, parts)


def inauspicious_segments(weekday: int) -> Dict[str, int]:
    return {kind: table[weekday] for kind, table in SEGMENT_TABLES.items()}


# ---------------- Ghadiya ----------------------
def ghadiyas(sunrise: datetime, sunset: datetime, weekday: int) -> List[MuhurtaWindow]:
    span = _check(sunrise, sunset, weekday)
    bad = set(inauspicious_segments(weekday).values())
    bounds = [_boundary(sunrise, span, i, GHADIYA_COUNT) for i in range(GHADIYA_COUNT + 1)]
    return [MuhurtaWindow(GHADIYA, bounds[i], bounds[i + 1], (i + 1) not in bad, number=i + 1)
            for i in range(GHADIYA_COUNT)]


# ---------------- Kalams -----------------------
def _kalam(kind: str, sunrise: datetime, sunset: datetime, weekday: int) -> MuhurtaWindow:
    _check(sunrise, sunset, weekday)
    start, end = segment(sunrise, sunset, SEGMENT_TABLES[kind][weekday])
    return MuhurtaWindow(kind, start, end, False)


def rahu_kalam(sunrise: datetime, sunset: datetime, weekday: int) -> MuhurtaWindow:
    return _kalam(RAHU_KALAM, sunrise, sunset, weekday)


def yamaganda(sunrise: datetime, sunset: datetime, weekday: int) -> MuhurtaWindow:
    return _kalam(YAMAGANDA, sunrise, sunset, weekday)


def gulika_kalam(sunrise: datetime, sunset: datetime, weekday: int) -> MuhurtaWindow:
    return _kalam(GULIKA_KALAM, sunrise, sunset, weekday)


# ---------------- Abhijit ----------------------
def abhijit_muhurta(sunrise: datetime, sunset: datetime, weekday: int) -> MuhurtaWindow:
    """Eighth daylight muhurta, centred on local apparent noon. Not observed on Wednesdays."""
    _check(sunrise, sunset, weekday)
    start, end = segment(sunrise, sunset, ABHIJIT_NUMBER, MUHURTA_COUNT)
    return MuhurtaWindow(ABHIJIT_MUHURTA, start, end, weekday != WEDNESDAY)


def muhurta_windows(sunrise: datetime, sunset: datetime, weekday: int) -> List[MuhurtaWindow]:
    """Ghadiyas, kalams and Abhijit for one day, ordered by start then kind."""
    windows = ghadiyas(sunrise, sunset, weekday)
    windows += [rahu_kalam(sunrise, sunset, weekday),
                yamaganda(sunrise, sunset, weekday),
                gulika_kalam(sunrise, sunset, weekday),
                abhijit_muhurta(sunrise, sunset, weekday)]
    order = {GHADIYA: 0, RAHU_KALAM: 1, YAMAGANDA: 2, GULIKA_KALAM: 3, ABHIJIT_MUHURTA: 4}
    windows.sort(key=lambda w: (w.start, order[w.kind]))
    return windows


# ---------------- Observance instants ----------
def observance_instants(day: date, sunrise: datetime, sunset: Optional[datetime], tz) -> Dict[str, datetime]:
    """
    Instants at which a festival tithi can be required to prevail: sunrise,
    arunodaya (four ghatis before sunrise), madhyahna (middle of daylight)
    and night (20:00 local). ``tz`` is a pytz zone. Madhyahna is omitted
    without a sunset after sunrise.
    """
    out = {SUNRISE: sunrise, ARUNODAYA: sunrise - ARUNODAYA_BEFORE_SUNRISE}
    if sunset is not None and sunset > sunrise:
        out[MADHYAHNA] = sunrise + (sunset - sunrise) / 2
    out[NIGHT] = tz.localize(datetime(day.year, day.month, day.day, NIGHT_HOUR, 0))
    return out
