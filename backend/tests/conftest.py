"""
Pytest configuration and fixtures for the rental quote scraper tests.
"""

import random
from contextlib import asynccontextmanager
from datetime import datetime
from zoneinfo import ZoneInfo

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from rentals.config import ScrapeConfig
from service.database import Base
from service.store import BaseStore, SqlStore


SEARCH_URL = "https://rentals.example.com/api/v2/search"
TZ = ZoneInfo("America/New_York")


# ============================================================
# PLAYWRIGHT DOUBLES
# ============================================================

class FakeRequest:
    """Stands in for playwright Request."""

    def __init__(self, url, method="POST", body=None):
        self.url = url
        self.method = method
        self._body = body

    @property
    def post_data_json(self):
        return self._body


class FakeResponse:
    """Stands in for playwright Response."""

    def __init__(self, url, payload, status=200):
        self.url = url
        self.status = status
        self.payload = payload

    async def json(self):
        return self.payload


def make_vehicle(vehicle_id, make="Toyota", model="Corolla", year=2022, images=True,
                 is_delivery=False, location_id=None):
    return {
        "id": vehicle_id,
        "make": make,
        "model": model,
        "year": year,
        "images": [{"originalImageUrl": f"https://img.example.com/{vehicle_id}.jpg"}] if images else [],
        "location": {"city": "Miami", "country": "US", "isDelivery": is_delivery,
                     "locationId": location_id},
    }


def search_capture(vehicles, age=25, start="2025-06-19T19:30", end="2025-06-22T10:00",
                   region="FL"):
    """A (request, response) pair as the listing page would produce it."""
    request = FakeRequest(SEARCH_URL, body={
        "filters": {"age": age, "dates": {"start": start, "end": end}},
    })
    body = {"vehicles": vehicles}
    if region is not None:
        body["searchLocation"] = {"region": region}
    return request, FakeResponse(SEARCH_URL, body)


def price_everything(body):
    """Quote handler pricing each listing at id * 10.4."""
    return {
        "estimatedQuotes": {
            listing_id: {
                "totalTripPrice": {"amount": int(listing_id) * 10.4, "currencyCode": "USD"},
                "vehicleDailyPrice": {"amount": 50.0, "currencyCode": "USD"},
            }
            for listing_id in body["apiEstimatedQuoteLocationDtoMap"]
        }
    }


class FakePage:
    """
    Minimal page: goto() replays one scripted capture per navigation and
    evaluate() answers pricing calls through `quote_handler`.
    """

    def __init__(self, captures=None, quote_handler=price_everything, goto_error=None):
        self.captures = list(captures or [])
        self.quote_handler = quote_handler
        self.goto_error = goto_error
        self.listeners = {"request": [], "response": []}
        self.goto_calls = []
        self.evaluate_calls = []

    def on(self, event, handler):
        self.listeners[event].append(handler)

    def remove_listener(self, event, handler):
        self.listeners[event].remove(handler)

    def _emit(self, event, obj):
        for handler in list(self.listeners[event]):
            handler(obj)

    async def goto(self, url, **kwargs):
        self.goto_calls.append(url)
        if self.goto_error is not None:
            raise self.goto_error
        index = min(len(self.goto_calls), len(self.captures)) - 1
        request, response = self.captures[index]
        # Unrelated traffic the listeners must ignore
        self._emit("request", FakeRequest(url, method="GET"))
        self._emit("request", FakeRequest("https://rentals.example.com/api/other", body={}))
        self._emit("response", FakeResponse(SEARCH_URL, {"vehicles": []}, status=500))
        self._emit("request", request)
        self._emit("response", response)

    async def evaluate(self, script, arg):
        self.evaluate_calls.append(arg)
        return self.quote_handler(arg["body"])


class FakeBrowser:
    """Hands out the given pages, one per identity()."""

    def __init__(self, pages):
        self.pages = list(pages)
        self.opened = 0
        self.closed = 0

    @asynccontextmanager
    async def identity(self):
        page = self.pages[self.opened]
        self.opened += 1
        try:
            yield page
        finally:
            self.closed += 1

    async def close(self):
        pass


class RecordingSleep:
    """Async sleep replacement that only records the delays."""

    def __init__(self):
        self.delays = []

    async def __call__(self, seconds):
        self.delays.append(seconds)


class MemoryStore(BaseStore):
    """In-memory store for manager tests."""

    def __init__(self, templates=None, definitions=None, fail_on_save=False):
        self.templates = list(templates or [])
        self.definitions = list(definitions or [])
        self.fail_on_save = fail_on_save
        self.saved = []

    def load_templates(self):
        return [t for t in self.templates if t.active]

    def load_slot_definitions(self):
        return list(self.definitions)

    def save_execution(self, document):
        if self.fail_on_save:
            raise RuntimeError("store unavailable")
        self.saved.append(document)
        return str(len(self.saved))


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def scrape_config():
    """Default tunables with every wait collapsed to zero."""
    return ScrapeConfig(retry_backoff_ms=(0, 0), instance_delay_ms=(0, 0))


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


@pytest.fixture
def now():
    """A run-start snapshot in the scraper's time zone."""
    return datetime(2025, 6, 18, 14, 47, 12, tzinfo=TZ)


@pytest.fixture(scope="function")
def session_factory():
    """In-memory SQLite database, fresh for each test."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield factory
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def sql_store(session_factory):
    return SqlStore(session_factory)
