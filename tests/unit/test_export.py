"""
Unit tests for the iCalendar export.
"""

from datetime import date, datetime, timedelta

import pytz
from icalendar import Calendar

from panchang.export import build_ics, festival_uid, rahu_kalam_windows, window_uid
from panchang.models import FestivalOccurrence, PanchangDay
from panchang.muhurta import rahu_kalam

IST = pytz.timezone("Asia/Kolkata")


def festival(key="diwali", day=date(2025, 10, 21)):
    return FestivalOccurrence(key=key, name="Deepavali", english_name="Diwali",
                              date=day, type="tithi", description="Lakshmi Puja")


def events(payload):
    return [c for c in Calendar.from_ical(payload).walk() if c.name == "VEVENT"]


class TestBuildIcs:
    """Tests for build_ics."""

    def test_all_day_festival(self):
        evs = events(build_ics([festival()], calname="Panchang", tzid="Asia/Kolkata"))

        assert len(evs) == 1
        assert str(evs[0]["summary"]) == "Deepavali"
        assert evs[0].decoded("dtstart") == date(2025, 10, 21)
        assert evs[0].decoded("dtend") == date(2025, 10, 22)

    def test_calendar_headers(self):
        cal = Calendar.from_ical(build_ics([], tzid="Asia/Kolkata"))

        assert str(cal["X-WR-CALNAME"]) == "Panchang"
        assert str(cal["X-WR-TIMEZONE"]) == "Asia/Kolkata"

    def test_timed_window_in_utc(self):
        day = date(2025, 1, 1)
        w = rahu_kalam(IST.localize(datetime(2025, 1, 1, 6)), IST.localize(datetime(2025, 1, 1, 18)), day.weekday())

        evs = events(build_ics(windows=[w]))
        start = evs[0].decoded("dtstart")

        assert str(evs[0]["summary"]) == "RahuKalam"
        assert start.utcoffset() == timedelta(0)
        assert start == IST.localize(datetime(2025, 1, 1, 12))

    def test_stable_uids(self):
        assert festival_uid(festival()) == festival_uid(festival())
        assert festival_uid(festival()) != festival_uid(festival(day=date(2025, 10, 22)))
        assert festival_uid(festival()).endswith("@panchang")


class TestRahuKalamWindows:
    """Tests for rahu_kalam_windows."""

    def test_skips_days_without_sunrise(self):
        ok = PanchangDay(date=date(2025, 1, 1),
                         sunrise=IST.localize(datetime(2025, 1, 1, 6)),
                         sunset=IST.localize(datetime(2025, 1, 1, 18)))
        dark = PanchangDay.unavailable(date(2025, 1, 2), "no sunrise at this location")

        windows = rahu_kalam_windows([ok, dark])

        assert len(windows) == 1
        assert window_uid(windows[0]) == window_uid(rahu_kalam_windows([ok])[0])
