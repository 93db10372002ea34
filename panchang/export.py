"""iCalendar (.ics) export of festival occurrences and timed muhurta windows."""
from __future__ import annotations

from datetime import timedelta
from hashlib import md5
from typing import Iterable, List, Optional

import pytz
from icalendar import Calendar, Event

from .models import FestivalOccurrence, MuhurtaWindow, PanchangDay
from .muhurta import rahu_kalam

PRODID = "-//Panchang Engine//panchang//EN"
UTC = pytz.utc


def festival_uid(f: FestivalOccurrence) -> str:
    key = f"{f.key}|{f.date.isoformat()}|ALLDAY"
    return f"{md5(key.encode()).hexdigest()}@panchang"


def window_uid(w: MuhurtaWindow) -> str:
    key = f"{w.name}|{w.start.isoformat()}|{w.end.isoformat()}"
    return f"{md5(key.encode()).hexdigest()}@panchang"


def build_ics(festivals: Iterable[FestivalOccurrence] = (),
              windows: Iterable[MuhurtaWindow] = (),
              calname: str = "Panchang", tzid: Optional[str] = None) -> bytes:
    cal = Calendar()
    cal.add("prodid", PRODID)
    cal.add("version", "2.0")
    cal.add("X-WR-CALNAME", calname)
    if tzid:
        cal.add("X-WR-TIMEZONE", tzid)
    for f in festivals:
        ev = Event()
        ev.add("uid", festival_uid(f))
        ev.add("summary", f.name)
        ev.add("description", f.description)
        ev.add("categories", [f.type])
        ev.add("dtstart", f.date)
        ev.add("dtend", f.date + timedelta(days=1))
        cal.add_component(ev)
    for w in windows:
        ev = Event()
        ev.add("uid", window_uid(w))
        ev.add("summary", w.name)
        ev.add("description", "Auspicious" if w.is_auspicious else "Inauspicious")
        # timed events stored in UTC, clients render in local tz
        ev.add("dtstart", w.start.astimezone(UTC))
        ev.add("dtend", w.end.astimezone(UTC))
        cal.add_component(ev)
    return cal.to_ical()


def rahu_kalam_windows(days: Iterable[PanchangDay]) -> List[MuhurtaWindow]:
    """Rahu Kalam for every day that has both sunrise and sunset."""
    out: List[MuhurtaWindow] = []
    for d in days:
        if d.sunrise is None or d.sunset is None or d.sunset <= d.sunrise:
            continue
        out.append(rahu_kalam(d.sunrise, d.sunset, d.weekday))
    return out
