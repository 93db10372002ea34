from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, List, Optional, Tuple

# ---------------- Bodies -----------------------
SUN, MOON, RAHU, KETU = "Sun", "Moon", "Rahu", "Ketu"
BODIES = (SUN, MOON, RAHU, KETU)

SHUKLA, KRISHNA = "Shukla", "Krishna"

# instants of the day at which a tithi can be observed
SUNRISE, ARUNODAYA, MADHYAHNA, NIGHT = "sunrise", "arunodaya", "madhyahna", "night"

WEEKDAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]


@dataclass(frozen=True)
class Unavailable:
    """Explicit "could not be derived" marker. Falsy, never a stand-in value."""
    reason: str = "position unavailable"

    def __bool__(self) -> bool:
        return False


def is_unavailable(value) -> bool:
    return isinstance(value, Unavailable)


@dataclass(frozen=True)
class EclipticPosition:
    longitude: float        # sidereal, [0, 360)
    speed: float = 0.0      # degrees per day
    body: str = SUN


@dataclass(frozen=True)
class RiseSet:
    sunrise: Optional[datetime] = None
    sunset: Optional[datetime] = None
    moonrise: Optional[datetime] = None
    moonset: Optional[datetime] = None


def _iso(v):
    return v.isoformat() if v is not None else None


# ---------------- Panchang day ----------------
@dataclass(frozen=True)
class PanchangDay:
    date: date
    tithi_index: Optional[int] = None
    tithi_name: Optional[str] = None
    paksha: Optional[str] = None
    nakshatra_index: Optional[int] = None
    nakshatra_name: Optional[str] = None
    yoga_index: Optional[int] = None
    yoga_name: Optional[str] = None
    karana_index: Optional[int] = None
    karana_name: Optional[str] = None
    is_amavasya: Optional[bool] = None
    is_purnima: Optional[bool] = None
    sunrise: Optional[datetime] = None
    sunset: Optional[datetime] = None
    moonrise: Optional[datetime] = None
    moonset: Optional[datetime] = None
    solar_month_index: Optional[int] = None
    solar_ingress: bool = False
    lunar_month_index: Optional[int] = None
    lunar_month_name: Optional[str] = None
    kshaya_tithi_index: Optional[int] = None
    arunodaya_tithi_index: Optional[int] = None
    madhyahna_tithi_index: Optional[int] = None
    night_tithi_index: Optional[int] = None
    is_adhika: bool = False
    unavailable_reason: Optional[str] = None

    @property
    def available(self) -> bool:
        return self.unavailable_reason is None

    @property
    def weekday(self) -> int:
        return self.date.weekday()

    @classmethod
    def unavailable(cls, day: date, reason: str, rise_set: Optional[RiseSet] = None) -> "PanchangDay":
        rs = rise_set or RiseSet()
        return cls(date=day, sunrise=rs.sunrise, sunset=rs.sunset,
                   moonrise=rs.moonrise, moonset=rs.moonset,
                   unavailable_reason=reason)

    def to_dict(self) -> Dict:
        return {
            "date": self.date.isoformat(),
            "weekday": WEEKDAY_NAMES[self.weekday],
            "available": self.available,
            "unavailable_reason": self.unavailable_reason,
            "tithi": {"index": self.tithi_index, "name": self.tithi_name, "paksha": self.paksha},
            "nakshatra": {"index": self.nakshatra_index, "name": self.nakshatra_name},
            "yoga": {"index": self.yoga_index, "name": self.yoga_name},
            "karana": {"index": self.karana_index, "name": self.karana_name},
            "is_amavasya": self.is_amavasya,
            "is_purnima": self.is_purnima,
            "kshaya_tithi_index": self.kshaya_tithi_index,
            "observance_tithi": {ARUNODAYA: self.arunodaya_tithi_index,
                                 MADHYAHNA: self.madhyahna_tithi_index,
                                 NIGHT: self.night_tithi_index},
            "solar_month_index": self.solar_month_index,
            "solar_ingress": self.solar_ingress,
            "lunar_month": {"index": self.lunar_month_index, "name": self.lunar_month_name,
                            "adhika": self.is_adhika},
            "sunrise": _iso(self.sunrise),
            "sunset": _iso(self.sunset),
            "moonrise": _iso(self.moonrise),
            "moonset": _iso(self.moonset),
        }


# ---------------- Muhurta ---------------------
RAHU_KALAM = "RahuKalam"
YAMAGANDA = "Yamaganda"
GULIKA_KALAM = "GulikaKalam"
ABHIJIT_MUHURTA = "AbhijitMuhurta"
GHADIYA = "Ghadiya"


@dataclass(frozen=True)
class MuhurtaWindow:
    kind: str
    start: datetime
    end: datetime
    is_auspicious: bool
    number: Optional[int] = None   # Ghadiya 1..8

    @property
    def name(self) -> str:
        return f"{self.kind} {self.number}" if self.number is not None else self.kind

    @property
    def duration(self):
        return self.end - self.start

    def to_dict(self) -> Dict:
        return {"kind": self.kind, "number": self.number, "name": self.name,
                "start": self.start.isoformat(), "end": self.end.isoformat(),
                "is_auspicious": self.is_auspicious}


# ---------------- Intervals -------------------
@dataclass(frozen=True)
class ElementInterval:
    kind: str            # "tithi" | "yoga" | "karana"
    index: int
    name: str
    start: datetime
    end: datetime

    def to_dict(self) -> Dict:
        return {"kind": self.kind, "index": self.index, "name": self.name,
                "start": self.start.isoformat(), "end": self.end.isoformat()}


# ---------------- Festivals -------------------
@dataclass(frozen=True)
class FestivalOccurrence:
    key: str
    name: str
    english_name: str
    date: date
    type: str            # "tithi" | "nakshatra" | "solar"
    is_auspicious: bool = True
    description: str = ""

    def to_dict(self) -> Dict:
        return {"key": self.key, "name": self.name, "english_name": self.english_name,
                "date": self.date.isoformat(), "type": self.type,
                "is_auspicious": self.is_auspicious, "description": self.description}


# ---------------- Cache -----------------------
@dataclass(frozen=True)
class CacheKey:
    year: int
    month: Optional[int]
    lat_bucket: float
    lon_bucket: float
    timezone_id: str
    ayanamsha: str
    region: str
    tradition: str = "smartha"


@dataclass(frozen=True)
class CacheEntry:
    key: CacheKey
    computed_at: datetime
    days: Tuple[PanchangDay, ...] = ()
    festivals: Tuple[FestivalOccurrence, ...] = ()


# ---------------- Results ---------------------
@dataclass(frozen=True)
class MonthPanchang:
    key: CacheKey
    days: Tuple[PanchangDay, ...]
    festivals: Tuple[FestivalOccurrence, ...]

    @property
    def failed_dates(self) -> List[date]:
        return [d.date for d in self.days if not d.available]

    @property
    def is_partial(self) -> bool:
        return any(not d.available for d in self.days)

    def day(self, when: date) -> Optional[PanchangDay]:
        for d in self.days:
            if d.date == when:
                return d
        return None

    def raise_for_partial(self) -> "MonthPanchang":
        from .errors import PartialResult
        if self.is_partial:
            raise PartialResult(self)
        return self

    def to_dict(self) -> Dict:
        return {
            "year": self.key.year, "month": self.key.month,
            "latitude": self.key.lat_bucket, "longitude": self.key.lon_bucket,
            "timezone": self.key.timezone_id, "ayanamsha": self.key.ayanamsha,
            "region": self.key.region,
            "tradition": self.key.tradition,
            "partial": self.is_partial,
            "failed_dates": [d.isoformat() for d in self.failed_dates],
            "days": [d.to_dict() for d in self.days],
            "festivals": [f.to_dict() for f in self.festivals],
        }


@dataclass(frozen=True)
class YearFestivals:
    key: CacheKey
    by_month: Dict[int, Tuple[FestivalOccurrence, ...]] = field(default_factory=dict)
    failed_dates: Tuple[date, ...] = ()

    @property
    def is_partial(self) -> bool:
        return bool(self.failed_dates)

    def all(self) -> List[FestivalOccurrence]:
        return [f for m in sorted(self.by_month) for f in self.by_month[m]]

    def to_dict(self) -> Dict:
        return {
            "year": self.key.year,
            "latitude": self.key.lat_bucket, "longitude": self.key.lon_bucket,
            "timezone": self.key.timezone_id, "ayanamsha": self.key.ayanamsha,
            "region": self.key.region,
            "tradition": self.key.tradition,
            "partial": self.is_partial,
            "failed_dates": [d.isoformat() for d in self.failed_dates],
            "months": {str(m): [f.to_dict() for f in fs] for m, fs in sorted(self.by_month.items())},
        }


@dataclass(frozen=True)
class DayDetail:
    day: PanchangDay
    windows: Tuple[MuhurtaWindow, ...]
    festivals: Tuple[FestivalOccurrence, ...]
    intervals: Tuple[ElementInterval, ...] = ()

    def to_dict(self) -> Dict:
        out = self.day.to_dict()
        out["muhurta"] = [w.to_dict() for w in self.windows]
        out["festivals"] = [f.to_dict() for f in self.festivals]
        out["intervals"] = [i.to_dict() for i in self.intervals]
        return out
