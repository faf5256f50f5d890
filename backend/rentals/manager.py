"""
Quote Scrape Manager - runs every window instance once.

Instances are processed strictly one after another, each in its own browser
identity. A failing instance is logged and skipped; it never stops the run.
"""

import asyncio
import logging
import random
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from .base import CaptureResult, Colors, ResultRecord, RunSummary, WindowInstance
from .config import ScrapeConfig
from .crawlers.capture import CaptureSession
from .crawlers.quotes import QuoteAggregator
from .mapper import map_records

logger = logging.getLogger(__name__)

# Backend datetime format, used when the search request echoes no window
BACKEND_DATETIME_FORMAT = '%Y-%m-%dT%H:%M'


def build_execution_document(
    instance: WindowInstance,
    capture: CaptureResult,
    records: List[ResultRecord],
    scraped_at: datetime,
) -> Dict[str, Any]:
    """
    Build the store document for one window instance.

    Raw instances report the window the backend used, since none was computed.
    """
    if instance.is_raw:
        start_iso = capture.filters.start
        end_iso = capture.filters.end
    else:
        start_iso = instance.start.isoformat()
        end_iso = instance.end.isoformat()

    return {
        'scrapedAt': scraped_at,
        'records': [record.to_dict() for record in records],
        'templateId': instance.template_id,
        'slotId': instance.slot_id,
        'slotLegacy': instance.slot_legacy,
        'templateLabel': instance.template_label,
        'offsetUsedHours': instance.offset_hours,
        'durationUsedHours': instance.duration_hours,
        'startUsedISO': start_iso,
        'endUsedISO': end_iso,
    }


class QuoteScrapeManager:
    """
    Runs capture, pricing and mapping for each window instance.

    Usage:
        manager = QuoteScrapeManager(browser, store, config)
        summary = await manager.run(instances)
    """

    def __init__(
        self,
        browser,
        store,
        config: ScrapeConfig,
        rng: Optional[random.Random] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """
        Args:
            browser: Object whose identity() yields an isolated page
            store: Object with save_execution(document)
            config: Scrape tunables
            rng: Randomness source for backoff and inter-instance delays
            sleep: Coroutine used for all waits
        """
        self.browser = browser
        self.store = store
        self.config = config
        self.rng = rng or random.Random()
        self.sleep = sleep

    def _pricing_window(self, instance: WindowInstance, capture: CaptureResult):
        """Backend window if echoed, else the locally computed one."""
        start, end = capture.filters.start, capture.filters.end
        if (not start or not end) and not instance.is_raw:
            logger.warning(f"{instance.name}: backend echoed no window, pricing with the computed one")
            start = start or instance.start.strftime(BACKEND_DATETIME_FORMAT)
            end = end or instance.end.strftime(BACKEND_DATETIME_FORMAT)
        return start, end

    async def scrape_instance(self, instance: WindowInstance) -> Tuple[CaptureResult, List[ResultRecord]]:
        """
        Capture, price and map one window instance in a fresh identity.

        Returns:
            Tuple of (capture, records in listing order); records are empty
            when nothing was captured
        """
        async with self.browser.identity() as page:
            session = CaptureSession(page, self.config, rng=self.rng, sleep=self.sleep)
            capture = await session.capture(instance.resolved_url)
            if not capture.listings:
                return capture, []

            start, end = self._pricing_window(instance, capture)
            aggregator = QuoteAggregator(page, self.config)
            quotes = await aggregator.fetch(capture.listings, capture.filters, capture.region, start, end)

        return capture, map_records(capture.listings, quotes)

    async def _persist(self, instance: WindowInstance, capture: CaptureResult, records: List[ResultRecord]):
        document = build_execution_document(
            instance,
            capture,
            records,
            datetime.now(timezone.utc),
        )
        await asyncio.to_thread(self.store.save_execution, document)

    async def _inter_instance_delay(self):
        low, high = self.config.instance_delay_ms
        await self.sleep(self.rng.uniform(low, high) / 1000)

    async def run(self, instances: List[WindowInstance]) -> RunSummary:
        """
        Process every instance sequentially.

        Non-empty results are persisted, empty ones skipped, failures logged.
        A randomized delay follows every instance whatever its outcome.
        """
        summary = RunSummary(started_at=datetime.now(timezone.utc), instances=len(instances))
        logger.info(f"Starting run over {len(instances)} window instance(s)")

        for idx, instance in enumerate(instances, 1):
            window = 'raw' if instance.is_raw else f"{instance.start:%m/%d %H:%M} -> {instance.end:%m/%d %H:%M}"
            logger.info(f"\n{Colors.cyan('❯❯❯')}")
            logger.info(f"{Colors.bold(f'[{idx}/{len(instances)}]')} {instance.name} ({window})")
            try:
                capture, records = await self.scrape_instance(instance)
                if not records:
                    summary.empty += 1
                    logger.info(f"   {Colors.yellow('[EMPTY]')} {instance.name}: nothing to persist")
                else:
                    await self._persist(instance, capture, records)
                    summary.persisted += 1
                    summary.records += len(records)
                    logger.info(f"   {Colors.green('[SAVED]')} {instance.name}: {len(records)} record(s)")
            except Exception as e:
                summary.failed += 1
                summary.error_details.append({
                    'template_id': instance.template_id,
                    'slot': instance.slot_id if instance.slot_id is not None else instance.slot_legacy,
                    'error': f"{type(e).__name__}: {e}",
                })
                logger.exception(f"   {Colors.red('[ERR]')} {instance.name}: {e}")
            finally:
                await self._inter_instance_delay()

        summary.completed_at = datetime.now(timezone.utc)
        duration = summary.duration_seconds or 0
        logger.info(
            f"✅ Run complete in {duration:.1f}s: {summary.persisted} saved, "
            f"{summary.empty} empty, {summary.failed} failed"
        )
        return summary
