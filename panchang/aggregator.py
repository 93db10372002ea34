"""
Month/year Panchang aggregation with an in-memory, single-flight cache.

Requests are keyed by :class:`~panchang.models.CacheKey` (location bucketed to
``Settings.location_bucket_degrees``). Identical concurrent requests share one
``asyncio.Task``; waiters use ``asyncio.shield`` so abandoning a request never
cancels work other callers still need. Complete results are cached
indefinitely; partial results are handed to every waiter but not stored, so
a retry recomputes them.
"""
from __future__ import annotations

import asyncio
import calendar
import logging
from datetime import date, datetime, timedelta, timezone
from typing import Awaitable, Callable, Dict, List, NamedTuple, Optional

from .config import Settings, get_settings
from .elements import (is_adhika, lunar_month_from_new_moon, panchang_elements,
                       skipped_tithi, solar_ingress, tithi)
from .ephemeris import EphemerisClient, SkyfieldEphemerisClient, validate_ayanamsha
from .errors import EphemerisUnavailable, InputError
from .festivals import get_rule_table, match_days
from .location import bucket_location, iana_timezone_for, resolve_timezone
from .models import (ARUNODAYA, MADHYAHNA, MOON, NIGHT, SUN, SUNRISE, CacheEntry,
                     CacheKey, DayDetail, MonthPanchang, PanchangDay, RiseSet,
                     Unavailable, YearFestivals, is_unavailable)
from .muhurta import muhurta_windows, observance_instants
from .timing import Lunation, element_intervals, lunations_between

logger = logging.getLogger(__name__)

MIN_YEAR, MAX_YEAR = 1, 9998


class _DaySample(NamedTuple):
    date: date
    rise_set: Optional[RiseSet]
    positions: Dict[str, dict]      # observance instant -> body -> position
    reason: Optional[str]


def _tithi_index(positions: Optional[dict]) -> Optional[int]:
    if not positions or SUN not in positions or MOON not in positions:
        return None
    t = tithi(positions[MOON].longitude, positions[SUN].longitude)
    return None if is_unavailable(t) else t.index


def _lunation_for(lunations: List[Lunation], instant: datetime) -> Optional[Lunation]:
    for lun in lunations:
        if lun.contains(instant):
            return lun
    return None


class PanchangAggregator:
    """Computes and caches month Panchangs, year festival lists and day details."""

    def __init__(self, client: EphemerisClient, settings: Optional[Settings] = None):
        self.client = client
        self.settings = settings or get_settings()
        self._months: Dict[CacheKey, CacheEntry] = {}
        self._years: Dict[CacheKey, YearFestivals] = {}
        self._inflight: Dict[CacheKey, asyncio.Task] = {}
        self.batches_started = 0

    # ---------------- Keys -----------------------
    def make_key(self, year: int, month: Optional[int], lat: float, lon: float,
                 timezone_id: str, ayanamsha: Optional[str] = None,
                 region: Optional[str] = None, tradition: Optional[str] = None) -> CacheKey:
        if not isinstance(year, int) or not MIN_YEAR <= year <= MAX_YEAR:
            raise InputError(f"Year must be an integer in [{MIN_YEAR}, {MAX_YEAR}]", details={"year": year})
        if month is not None and (not isinstance(month, int) or not 1 <= month <= 12):
            raise InputError("Month must be in 1..12", details={"month": month})
        lat_b, lon_b = bucket_location(lat, lon, self.settings.location_bucket_degrees)
        resolve_timezone(timezone_id)
        ayanamsha = validate_ayanamsha(ayanamsha or self.settings.default_ayanamsha)
        region = region or self.settings.default_region
        tradition = tradition or self.settings.default_tradition
        get_rule_table(region, tradition)
        return CacheKey(year, month, lat_b, lon_b, timezone_id, ayanamsha, region, tradition)

    # ---------------- Cache policy ---------------
    def cached_keys(self) -> List[CacheKey]:
        return list(self._months) + list(self._years)

    def evict(self, key: CacheKey) -> bool:
        removed = self._months.pop(key, None) is not None
        removed = (self._years.pop(key, None) is not None) or removed
        if removed:
            logger.info("Evicted %s", key)
        return removed

    def clear(self) -> None:
        self._months.clear()
        self._years.clear()

    # ---------------- Single flight --------------
    async def _single_flight(self, key: CacheKey, factory: Callable[[], Awaitable]):
        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(factory())
            self._inflight[key] = task
            task.add_done_callback(lambda t, k=key: self._flight_done(k, t))
        else:
            logger.debug("Joining in-flight computation for %s", key)
        return await asyncio.shield(task)

    def _flight_done(self, key: CacheKey, task: asyncio.Task) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]
        if not task.cancelled() and task.exception() is not None:
            logger.warning("Computation for %s failed: %s", key, task.exception())

    # ---------------- Month ----------------------
    async def get_month_panchang(self, year: int, month: int, lat: float, lon: float,
                                 timezone_id: str, ayanamsha: Optional[str] = None,
                                 region: Optional[str] = None,
                                 tradition: Optional[str] = None) -> MonthPanchang:
        key = self.make_key(year, month, lat, lon, timezone_id, ayanamsha, region, tradition)
        return await self._month(key)

    async def _month(self, key: CacheKey) -> MonthPanchang:
        entry = self._months.get(key)
        if entry is not None:
            logger.debug("Cache hit %s", key)
            return MonthPanchang(key, entry.days, entry.festivals)
        logger.debug("Cache miss %s", key)
        return await self._single_flight(key, lambda: self._compute_month(key))

    async def _compute_month(self, key: CacheKey) -> MonthPanchang:
        self.batches_started += 1
        n = calendar.monthrange(key.year, key.month)[1]
        first = date(key.year, key.month, 1)
        # the day before: a tithi spanning two sunrises across the month boundary;
        # the day after: kshaya tithi and sankranti need the following sunrise
        dates = [first + timedelta(days=i) for i in range(-1, n + 1)]
        sem = asyncio.Semaphore(self.settings.max_concurrency)
        samples = await asyncio.gather(*(self._sample(d, key, sem) for d in dates))
        lunations = await self._lunations(samples, key)
        assembled = self._assemble(samples, lunations)
        days = assembled[1:n + 1]

        if all(not d.available for d in days):
            raise EphemerisUnavailable(
                f"No day of {key.year}-{key.month:02d} could be computed",
                details={"reason": days[0].unavailable_reason})

        matched = match_days(assembled[:n + 1], get_rule_table(key.region, key.tradition))
        festivals = tuple(f for f in matched if f.date >= first)
        result = MonthPanchang(key, tuple(days), festivals)
        if result.is_partial:
            logger.warning("Partial month %d-%02d: %d unavailable day(s)",
                           key.year, key.month, len(result.failed_dates))
        else:
            self._months[key] = CacheEntry(key, datetime.now(timezone.utc), result.days, festivals)
            logger.info("Computed month %d-%02d at (%s, %s) %s/%s/%s", key.year, key.month,
                        key.lat_bucket, key.lon_bucket, key.ayanamsha, key.region, key.tradition)
        return result

    async def _sample(self, day: date, key: CacheKey, sem: asyncio.Semaphore) -> _DaySample:
        async with sem:
            try:
                rs = await self.client.get_rise_set(day, key.lat_bucket, key.lon_bucket, key.timezone_id)
            except EphemerisUnavailable as exc:
                return _DaySample(day, None, {}, exc.message)
            if rs.sunrise is None:
                return _DaySample(day, rs, {}, "no sunrise at this location")
            instants = observance_instants(day, rs.sunrise, rs.sunset, resolve_timezone(key.timezone_id))
            positions = {}
            try:
                for name, instant in instants.items():
                    positions[name] = await self.client.get_positions(instant, key.lat_bucket,
                                                                      key.lon_bucket, key.ayanamsha)
            except EphemerisUnavailable as exc:
                return _DaySample(day, rs, {}, exc.message)
        return _DaySample(day, rs, positions, None)

    async def _lunations(self, samples: List[_DaySample], key: CacheKey) -> List[Lunation]:
        sunrises = [s.rise_set.sunrise for s in samples if s.reason is None]
        if not sunrises:
            return []
        try:
            return await lunations_between(self.client, sunrises[0], sunrises[-1],
                                           key.lat_bucket, key.lon_bucket, key.ayanamsha)
        except EphemerisUnavailable as exc:
            logger.warning("New moon search failed for %s: %s; months estimated from mean motion",
                           key, exc.message)
            return []

    def _assemble(self, samples: List[_DaySample], lunations: List[Lunation]) -> List[PanchangDay]:
        tolerance = self.settings.amavasya_tolerance_deg
        parsed = [Unavailable(s.reason) if s.reason is not None
                  else panchang_elements(s.positions[SUNRISE], tolerance) for s in samples]

        days = []
        for i, s in enumerate(samples):
            el = parsed[i]
            if is_unavailable(el):
                days.append(PanchangDay.unavailable(s.date, el.reason, s.rise_set))
                continue
            nxt = parsed[i + 1] if i + 1 < len(samples) else None
            sun = s.positions[SUNRISE][SUN]
            if nxt is not None and not is_unavailable(nxt):
                kshaya = skipped_tithi(el.tithi.index, nxt.tithi.index)
                ingress = solar_ingress(sun.longitude,
                                        next_sun_lon=samples[i + 1].positions[SUNRISE][SUN].longitude)
            else:
                kshaya = None
                ingress = solar_ingress(sun.longitude, sun.speed)

            rs = s.rise_set
            month, adhika = el.lunar_month, False
            lun = _lunation_for(lunations, rs.sunrise)
            if lun is not None and not is_unavailable(lunar_month_from_new_moon(lun.sun_at_start)):
                month = lunar_month_from_new_moon(lun.sun_at_start)
                adhika = bool(is_adhika(lun.sun_at_start, lun.sun_at_end))

            days.append(PanchangDay(
                date=s.date,
                tithi_index=el.tithi.index, tithi_name=el.tithi.name, paksha=el.tithi.paksha,
                nakshatra_index=el.nakshatra.index, nakshatra_name=el.nakshatra.name,
                yoga_index=el.yoga.index, yoga_name=el.yoga.name,
                karana_index=el.karana.index, karana_name=el.karana.name,
                is_amavasya=el.is_amavasya, is_purnima=el.is_purnima,
                sunrise=rs.sunrise, sunset=rs.sunset, moonrise=rs.moonrise, moonset=rs.moonset,
                solar_month_index=el.solar_month, solar_ingress=bool(ingress),
                lunar_month_index=month.index, lunar_month_name=month.name,
                kshaya_tithi_index=kshaya,
                arunodaya_tithi_index=_tithi_index(s.positions.get(ARUNODAYA)),
                madhyahna_tithi_index=_tithi_index(s.positions.get(MADHYAHNA)),
                night_tithi_index=_tithi_index(s.positions.get(NIGHT)),
                is_adhika=adhika,
            ))
        return days

    # ---------------- Year -----------------------
    async def get_year_festivals(self, year: int, lat: float, lon: float,
                                 ayanamsha: Optional[str] = None,
                                 region: Optional[str] = None,
                                 tradition: Optional[str] = None) -> YearFestivals:
        lat_b, lon_b = bucket_location(lat, lon, self.settings.location_bucket_degrees)
        timezone_id = iana_timezone_for(lat_b, lon_b)
        key = self.make_key(year, None, lat_b, lon_b, timezone_id, ayanamsha, region, tradition)
        cached = self._years.get(key)
        if cached is not None:
            logger.debug("Cache hit %s", key)
            return cached
        return await self._single_flight(key, lambda: self._compute_year(key))

    async def _compute_year(self, key: CacheKey) -> YearFestivals:
        month_keys = [CacheKey(key.year, m, key.lat_bucket, key.lon_bucket, key.timezone_id,
                               key.ayanamsha, key.region, key.tradition) for m in range(1, 13)]
        results = await asyncio.gather(*(self._month(k) for k in month_keys), return_exceptions=True)

        by_month, failed = {}, []
        for mk, res in zip(month_keys, results):
            if isinstance(res, EphemerisUnavailable):
                n = calendar.monthrange(mk.year, mk.month)[1]
                failed.extend(date(mk.year, mk.month, d) for d in range(1, n + 1))
                by_month[mk.month] = ()
            elif isinstance(res, BaseException):
                raise res
            else:
                by_month[mk.month] = res.festivals
                failed.extend(res.failed_dates)

        if all(isinstance(r, EphemerisUnavailable) for r in results):
            raise EphemerisUnavailable(f"No month of {key.year} could be computed",
                                       details={"year": key.year})

        out = YearFestivals(key, by_month, tuple(failed))
        if not out.is_partial:
            self._years[key] = out
        return out

    # ---------------- Day ------------------------
    async def get_day_detail(self, day: date, lat: float, lon: float, timezone_id: str,
                             ayanamsha: Optional[str] = None,
                             region: Optional[str] = None,
                             tradition: Optional[str] = None) -> DayDetail:
        if isinstance(day, datetime) or not isinstance(day, date):
            raise InputError("day must be a calendar date", details={"day": str(day)})
        month = await self.get_month_panchang(day.year, day.month, lat, lon,
                                              timezone_id, ayanamsha, region, tradition)
        pd = month.day(day)
        windows = ()
        if pd.sunrise is not None and pd.sunset is not None and pd.sunset > pd.sunrise:
            windows = tuple(muhurta_windows(pd.sunrise, pd.sunset, day.weekday()))
        festivals = tuple(f for f in month.festivals if f.date == day)
        intervals = ()
        if pd.available:
            intervals = tuple(await self._intervals(pd, month.key))
        return DayDetail(pd, windows, festivals, intervals)

    async def _intervals(self, pd: PanchangDay, key: CacheKey):
        """Tithi, yoga and karana spans in force from this sunrise to the next."""
        end = pd.sunrise + timedelta(days=1)
        try:
            rs = await self.client.get_rise_set(pd.date + timedelta(days=1), key.lat_bucket,
                                                key.lon_bucket, key.timezone_id)
            if rs.sunrise is not None:
                end = rs.sunrise
            return await element_intervals(self.client, pd.sunrise, end, key.lat_bucket,
                                           key.lon_bucket, key.ayanamsha)
        except EphemerisUnavailable as exc:
            logger.warning("Element intervals for %s unavailable: %s", pd.date, exc.message)
            return []

    async def get_year_months(self, year: int, lat: float, lon: float, timezone_id: str,
                              ayanamsha: Optional[str] = None,
                              region: Optional[str] = None,
                              tradition: Optional[str] = None) -> List[MonthPanchang]:
        """All twelve months of ``year``, served from the month cache."""
        return list(await asyncio.gather(*(
            self.get_month_panchang(year, m, lat, lon, timezone_id, ayanamsha, region, tradition)
            for m in range(1, 13))))


def default_aggregator(settings: Optional[Settings] = None) -> PanchangAggregator:
    settings = settings or get_settings()
    client = SkyfieldEphemerisClient(settings.ephemeris_file, settings.ephemeris_dir)
    return PanchangAggregator(client, settings)
