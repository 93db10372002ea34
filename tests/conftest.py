"""
Pytest configuration and fixtures for the Panchang engine tests.

``FakeEphemerisClient`` stands in for skyfield/astral: sunrise is 06:00 and
sunset 18:00 local every day, and the Sun and Moon move linearly so that the
elongation grows exactly 12 degrees (one tithi) per day. With the default
epoch values, 2025-01-01 is Shukla Pratipada in Magha with the Sun in Dhanu.
"""

import asyncio
from datetime import date, datetime, timedelta, timezone
from typing import Generator

import pytest
import pytz
from fastapi.testclient import TestClient

from panchang.aggregator import PanchangAggregator
from panchang.config import Settings
from panchang.errors import EphemerisUnavailable
from panchang.models import MOON, SUN, EclipticPosition, RiseSet
from server.app import app, get_aggregator

EPOCH = datetime(2025, 1, 1, tzinfo=timezone.utc)
IST = "Asia/Kolkata"
BANGALORE = (12.97, 77.59)


class FakeEphemerisClient:
    """Deterministic EphemerisClient with call counters and injectable failures."""

    def __init__(self, sun0: float = 275.0, moon0: float = 280.0,
                 sun_speed: float = 1.0, moon_speed: float = 13.0):
        self.sun0 = sun0
        self.moon0 = moon0
        self.sun_speed = sun_speed
        self.moon_speed = moon_speed
        self.failing_dates = set()
        self.no_sunrise_dates = set()
        self.gate = None
        self.rise_set_calls = 0
        self.position_calls = 0
        self.locations = []
        self.ayanamshas = []

    async def get_rise_set(self, day: date, latitude: float, longitude: float,
                           timezone_id: str) -> RiseSet:
        self.rise_set_calls += 1
        self.locations.append((latitude, longitude))
        if self.gate is not None:
            await self.gate.wait()
        await asyncio.sleep(0)
        if day in self.failing_dates:
            raise EphemerisUnavailable(f"no data for {day}")
        tz = pytz.timezone(timezone_id)
        if day in self.no_sunrise_dates:
            return RiseSet()
        return RiseSet(
            sunrise=tz.localize(datetime(day.year, day.month, day.day, 6, 0)),
            sunset=tz.localize(datetime(day.year, day.month, day.day, 18, 0)),
        )

    async def get_positions(self, instant: datetime, latitude: float, longitude: float,
                            ayanamsha: str = "lahiri"):
        self.position_calls += 1
        self.ayanamshas.append(ayanamsha)
        await asyncio.sleep(0)
        t = (instant - EPOCH) / timedelta(days=1)
        return {
            SUN: EclipticPosition((self.sun0 + self.sun_speed * t) % 360.0, self.sun_speed, SUN),
            MOON: EclipticPosition((self.moon0 + self.moon_speed * t) % 360.0, self.moon_speed, MOON),
        }


def local(day: date, hour: int, minute: int = 0, tzid: str = IST) -> datetime:
    return pytz.timezone(tzid).localize(datetime(day.year, day.month, day.day, hour, minute))


@pytest.fixture
def settings() -> Settings:
    """Settings independent of the environment."""
    return Settings(
        ephemeris_file="de421.bsp",
        default_ayanamsha="lahiri",
        default_region="universal",
        default_tradition="smartha",
        amavasya_tolerance_deg=8.0,
        location_bucket_degrees=0.01,
        max_concurrency=4,
    )


@pytest.fixture
def fake_client() -> FakeEphemerisClient:
    return FakeEphemerisClient()


@pytest.fixture
def aggregator(fake_client, settings) -> PanchangAggregator:
    return PanchangAggregator(fake_client, settings)


@pytest.fixture
def api_client(aggregator, monkeypatch) -> Generator[TestClient, None, None]:
    """Test client with the aggregator dependency overridden."""
    monkeypatch.setattr("panchang.aggregator.iana_timezone_for", lambda lat, lon: IST)
    monkeypatch.setattr("server.app.iana_timezone_for", lambda lat, lon: IST)
    app.dependency_overrides[get_aggregator] = lambda: aggregator
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()
