"""
Stealth browser for the listing site.

One Chromium instance serves a whole run. Every window instance gets its own
browser context (fresh cookies, storage and user agent) so anti-bot
fingerprints from one window never leak into the next.
"""

import asyncio
import logging
import random
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from playwright.async_api import async_playwright, Browser, Page

logger = logging.getLogger(__name__)


# User-agent rotation list, one picked per identity
USER_AGENTS = [
    'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36',
    'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/119.0.0.0 Safari/537.36',
    'Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36',
    'Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.1 Safari/605.1.15',
    'Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36',
]

# Hides the usual automation tells from page scripts
STEALTH_INIT_SCRIPT = """
    Object.defineProperty(navigator, 'webdriver', {
        get: () => undefined
    });

    Object.defineProperty(navigator, 'plugins', {
        get: () => [1, 2, 3, 4, 5]
    });

    Object.defineProperty(navigator, 'languages', {
        get: () => ['en-US', 'en']
    });

    const originalQuery = window.navigator.permissions.query;
    window.navigator.permissions.query = (parameters) => (
        parameters.name === 'notifications' ?
            Promise.resolve({ state: Notification.permission }) :
            originalQuery(parameters)
    );
"""


class StealthBrowser:
    """
    Playwright Chromium wrapper handing out isolated identities.

    Usage:
        async with StealthBrowser(headless=True) as browser:
            async with browser.identity() as page:
                await page.goto(url)
    """

    def __init__(
        self,
        headless: bool = True,
        timezone_id: str = 'America/New_York',
        default_timeout_ms: int = 60000,
        rng: Optional[random.Random] = None,
    ):
        """
        Initialize the stealth browser.

        Args:
            headless: Run browser in headless mode
            timezone_id: Time zone reported to page scripts
            default_timeout_ms: Default Playwright timeout for each page
            rng: Randomness source for user-agent selection
        """
        self.headless = headless
        self.timezone_id = timezone_id
        self.default_timeout_ms = default_timeout_ms
        self.rng = rng or random.Random()
        self._playwright = None
        self._browser: Optional[Browser] = None

    async def start(self):
        """Launch Chromium if not already running."""
        if self._browser is not None and self._browser.is_connected():
            return

        self._playwright = await async_playwright().start()
        logger.debug("Launching Chromium browser...")
        try:
            self._browser = await self._playwright.chromium.launch(
                headless=self.headless,
                args=[
                    '--disable-blink-features=AutomationControlled',
                    '--disable-dev-shm-usage',
                    '--no-sandbox',
                    '--disable-setuid-sandbox',
                ],
            )
        except Exception as e:
            logger.error(f"Failed to launch browser: {e}")
            await self.close()
            raise

    @asynccontextmanager
    async def identity(self) -> AsyncIterator[Page]:
        """
        Yield a page in a brand new browser context.

        The context is closed on exit whatever happened inside.
        """
        await self.start()
        user_agent = self.rng.choice(USER_AGENTS)
        context = await self._browser.new_context(
            viewport={'width': 1280, 'height': 800},
            user_agent=user_agent,
            locale='en-US',
            timezone_id=self.timezone_id,
            extra_http_headers={
                'Accept-Language': 'en-US,en;q=0.9',
            },
        )
        logger.debug(f"New browser identity: {user_agent}")
        try:
            await context.add_init_script(STEALTH_INIT_SCRIPT)
            page = await context.new_page()
            page.set_default_timeout(self.default_timeout_ms)
            yield page
        finally:
            try:
                await asyncio.wait_for(context.close(), timeout=5.0)
            except asyncio.TimeoutError:
                logger.warning("Context close timed out, forcing cleanup")
            except Exception as e:
                logger.warning(f"Error closing context: {e}")

    async def close(self):
        """Close the browser and stop Playwright."""
        if self._browser:
            try:
                await asyncio.wait_for(self._browser.close(), timeout=5.0)
            except asyncio.TimeoutError:
                logger.warning("Browser close timed out, forcing cleanup")
            except Exception as e:
                logger.warning(f"Error closing browser: {e}")
            self._browser = None

        if self._playwright:
            try:
                await asyncio.wait_for(self._playwright.stop(), timeout=5.0)
            except asyncio.TimeoutError:
                logger.warning("Playwright stop timed out, forcing cleanup")
            except Exception as e:
                logger.warning(f"Error stopping playwright: {e}")
            self._playwright = None

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
