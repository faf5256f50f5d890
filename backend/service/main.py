"""
Run-once entry point.

Usage:
    cd backend
    python -m service.main
    python -m service.main --template miami-airport --template orlando
"""

import argparse
import asyncio
import logging
import random
import re
from datetime import datetime
from typing import List, Optional
from zoneinfo import ZoneInfo

from rentals.base import RunSummary
from rentals.crawlers.stealth import StealthBrowser
from rentals.manager import QuoteScrapeManager
from rentals.slots import expand_templates
from service.config import Settings, settings as default_settings
from service.store import BaseStore, get_store

logger = logging.getLogger(__name__)


# Custom formatter to strip ANSI color codes from file logs
class ColorStripFormatter(logging.Formatter):
    """Formatter that strips ANSI color codes from log messages."""
    ansi_escape = re.compile(r'\x1B(?:[@-Z\\-_]|\[[0-?]*[ -/]*[@-~])')

    def format(self, record):
        message = super().format(record)
        return self.ansi_escape.sub('', message)


def configure_logging(settings: Settings):
    """Console logging with colors, file logging without."""
    settings.log_dir.mkdir(exist_ok=True)

    file_handler = logging.FileHandler(settings.log_file, encoding='utf-8')
    file_handler.setFormatter(ColorStripFormatter(settings.log_format))

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(logging.Formatter(settings.log_format))

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        handlers=[file_handler, console_handler],
        force=True  # Override any existing configuration
    )


async def run_once(
    settings: Settings,
    store: BaseStore,
    browser=None,
    now: Optional[datetime] = None,
    template_ids: Optional[List[str]] = None,
    rng: Optional[random.Random] = None,
) -> RunSummary:
    """
    Load config, expand windows and scrape every instance once.

    `now` is captured once here so all windows of the run agree.
    """
    config = settings.scrape_config()
    now = now or datetime.now(ZoneInfo(settings.timezone))
    rng = rng or random.Random()

    templates = await asyncio.to_thread(store.load_templates)
    definitions = await asyncio.to_thread(store.load_slot_definitions)
    if template_ids:
        wanted = set(template_ids)
        templates = [t for t in templates if t.id in wanted]
        unknown = wanted - {t.id for t in templates}
        if unknown:
            logger.warning(f"Unknown or inactive template(s): {', '.join(sorted(unknown))}")

    instances = expand_templates(templates, definitions, config, now)

    owns_browser = browser is None
    if owns_browser:
        browser = StealthBrowser(
            headless=settings.headless,
            timezone_id=settings.timezone,
            default_timeout_ms=config.step_timeout_ms,
            rng=rng,
        )
    try:
        manager = QuoteScrapeManager(browser, store, config, rng=rng)
        return await manager.run(instances)
    finally:
        if owns_browser:
            await browser.close()


def main(argv: Optional[List[str]] = None):
    parser = argparse.ArgumentParser(description='Scrape rental quotes for every configured window, once')
    parser.add_argument('--template', action='append', dest='templates',
                        help='Only run this template id (repeatable)')
    args = parser.parse_args(argv)

    configure_logging(default_settings)
    store = get_store(default_settings)
    summary = asyncio.run(run_once(default_settings, store, template_ids=args.templates))
    logger.info(f"Summary: {summary.to_dict()}")


if __name__ == '__main__':
    main()
