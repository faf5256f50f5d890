"""
Tests for the run-once entry point.
"""

import logging
import random

import pytest

from rentals.base import SlotDefinition, Template
from service.config import Settings
from service.main import ColorStripFormatter, run_once
from conftest import FakeBrowser, FakePage, MemoryStore, make_vehicle, search_capture


URL = "https://rentals.example.com/search?age=25&region=FL&startDate=01%2F01%2F2025"


@pytest.fixture
def fast_settings():
    """Settings with every wait collapsed to zero."""
    return Settings(
        _env_file=None,
        retry_backoff_min_ms=0,
        retry_backoff_max_ms=0,
        instance_delay_min_ms=0,
        instance_delay_max_ms=0,
    )


@pytest.fixture
def store():
    return MemoryStore(
        templates=[
            Template.from_record("t1", {"label": "Miami", "url": URL, "slots": ["A", 0], "active": True}),
            Template.from_record("t2", {"label": "Raw", "url": URL, "active": True}),
            Template.from_record("t3", {"label": "Off", "url": URL, "slotId": 1, "active": False}),
        ],
        definitions=[SlotDefinition(id="A", label="Tomorrow", offset_hours=1, duration_hours=72)],
    )


def pages(count):
    return [FakePage([search_capture([make_vehicle(i)])]) for i in range(1, count + 1)]


class TestRunOnce:

    @pytest.mark.asyncio
    async def test_full_run(self, fast_settings, store, now):
        browser = FakeBrowser(pages(3))

        summary = await run_once(fast_settings, store, browser=browser, now=now, rng=random.Random(1))

        assert summary.instances == 3
        assert summary.persisted == 3
        assert [(doc["templateId"], doc["slotId"], doc["slotLegacy"]) for doc in store.saved] == [
            ("t1", "A", None),
            ("t1", None, 0),
            ("t2", None, None),
        ]
        assert store.saved[0]["startUsedISO"] == "2025-06-18T16:30:00-04:00"
        assert store.saved[2]["startUsedISO"] == "2025-06-19T19:30"

    @pytest.mark.asyncio
    async def test_window_urls_are_rewritten(self, fast_settings, store, now):
        browser = FakeBrowser(pages(3))

        await run_once(fast_settings, store, browser=browser, now=now)

        first_url = browser.pages[0].goto_calls[0]
        assert "startDate=06%2F18%2F2025" in first_url
        assert "01%2F01%2F2025" not in first_url
        assert browser.pages[2].goto_calls[0] == URL

    @pytest.mark.asyncio
    async def test_template_filter(self, fast_settings, store, now, caplog):
        browser = FakeBrowser(pages(1))

        with caplog.at_level(logging.WARNING):
            summary = await run_once(fast_settings, store, browser=browser, now=now,
                                     template_ids=["t2", "ghost"])

        assert summary.instances == 1
        assert [doc["templateId"] for doc in store.saved] == ["t2"]
        assert "ghost" in caplog.text

    @pytest.mark.asyncio
    async def test_no_templates(self, fast_settings, now):
        summary = await run_once(fast_settings, MemoryStore(), browser=FakeBrowser([]), now=now)

        assert summary.instances == 0
        assert summary.success


class TestColorStripFormatter:

    def test_strips_ansi(self):
        formatter = ColorStripFormatter("%(message)s")
        record = logging.LogRecord("x", logging.INFO, __file__, 1, "\033[92m[SAVED]\033[0m t1", None, None)

        assert formatter.format(record) == "[SAVED] t1"
