"""
Search capture: one navigation, two correlated network events.

The listing page fires a POST to the search API while it loads. We arm a
listener for that request and one for its 200 response *before* navigating,
then join both under a shared deadline. The request tells us how the backend
read our filters (age, canonical window); the response carries the listings.

Zero listings is usually a race on the backend side, so the whole navigation
is retried a bounded number of times before accepting an empty result.
"""

import asyncio
import logging
import random
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from playwright.async_api import Error as PlaywrightError

from ..base import CaptureError, CaptureResult, Listing, SearchFilters
from ..config import ScrapeConfig
from ..utils.urls import get_query_param

logger = logging.getLogger(__name__)


def parse_search_filters(payload: Any) -> SearchFilters:
    """
    Read age, window bounds and echoed region from the search request body.

    Missing pieces come back as None; the caller decides the fallback.
    """
    if not isinstance(payload, dict):
        return SearchFilters()
    filters = payload.get('filters') or {}
    if not isinstance(filters, dict):
        filters = {}
    dates = filters.get('dates') or {}
    if not isinstance(dates, dict):
        dates = {}

    age = filters.get('age')
    if isinstance(age, bool) or not isinstance(age, (int, float, str)):
        age = None
    elif isinstance(age, str):
        age = int(age) if age.strip().isdigit() else None
    else:
        age = int(age)

    location = filters.get('location') or {}
    region = (
        payload.get('searchRegion')
        or filters.get('searchRegion')
        or (location.get('region') if isinstance(location, dict) else None)
        or payload.get('region')
    )

    return SearchFilters(
        age=age,
        start=dates.get('start'),
        end=dates.get('end'),
        region=region or None,
    )


def parse_listings(payload: Any) -> List[Listing]:
    """
    Parse the `vehicles` array of a search response.

    Raises:
        CaptureError: If the body is not an object or `vehicles` is not a list
    """
    if not isinstance(payload, dict):
        raise CaptureError(f"Search response is not a JSON object: {type(payload).__name__}")
    vehicles = payload.get('vehicles')
    if vehicles is None:
        return []
    if not isinstance(vehicles, list):
        raise CaptureError(f"Search response 'vehicles' is not a list: {type(vehicles).__name__}")
    return [Listing.from_payload(vehicle) for vehicle in vehicles]


def resolve_region(response_payload: Any, filters: SearchFilters, url: str) -> str:
    """
    Pick the region code used for pricing.

    Order: the response's searchLocation.region, the request's echoed region,
    the URL's `region` query parameter, else ''.
    """
    if isinstance(response_payload, dict):
        search_location = response_payload.get('searchLocation') or {}
        if isinstance(search_location, dict) and search_location.get('region'):
            return str(search_location['region'])
    if filters.region:
        return str(filters.region)
    from_url = get_query_param(url, 'region')
    if from_url:
        return from_url
    logger.warning(f"No region found for {url}, pricing without one")
    return ''


class CaptureSession:
    """
    Drives search captures on a page.

    Usage:
        session = CaptureSession(page, config)
        result = await session.capture(url)
    """

    def __init__(
        self,
        page,
        config: ScrapeConfig,
        rng: Optional[random.Random] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """
        Args:
            page: Playwright page (or anything exposing on/remove_listener/goto)
            config: Scrape tunables
            rng: Randomness source for retry backoff
            sleep: Coroutine used to wait between attempts
        """
        self.page = page
        self.config = config
        self.rng = rng or random.Random()
        self.sleep = sleep

    def _is_search_request(self, request) -> bool:
        return request.method == 'POST' and self.config.search_path in request.url

    def _is_search_response(self, response) -> bool:
        return response.status == 200 and self.config.search_path in response.url

    async def _navigate_and_wait(self, url: str) -> Tuple[Any, Any]:
        """
        Arm both listeners, navigate, then join them under one deadline.

        Listeners are registered synchronously before goto() so neither
        event can fire unobserved.
        """
        loop = asyncio.get_running_loop()
        request_future = loop.create_future()
        response_future = loop.create_future()

        def on_request(request):
            if not request_future.done() and self._is_search_request(request):
                request_future.set_result(request)

        def on_response(response):
            if not response_future.done() and self._is_search_response(response):
                response_future.set_result(response)

        self.page.on('request', on_request)
        self.page.on('response', on_response)
        try:
            await self.page.goto(
                url,
                wait_until='domcontentloaded',
                timeout=self.config.step_timeout_ms,
            )
            request, response = await asyncio.wait_for(
                asyncio.gather(request_future, response_future),
                timeout=self.config.step_timeout_seconds,
            )
            return request, response
        finally:
            self.page.remove_listener('request', on_request)
            self.page.remove_listener('response', on_response)
            for future in (request_future, response_future):
                if not future.done():
                    future.cancel()

    async def _capture_once(self, url: str) -> CaptureResult:
        request, response = await self._navigate_and_wait(url)

        try:
            request_payload = request.post_data_json
        except PlaywrightError as e:
            logger.warning(f"Search request body is not JSON: {e}")
            request_payload = None
        filters = parse_search_filters(request_payload)
        if filters.age is None or not filters.start or not filters.end:
            logger.warning(
                f"Search request missing filter fields "
                f"(age={filters.age}, start={filters.start}, end={filters.end})"
            )

        response_payload = await response.json()
        listings = parse_listings(response_payload)
        region = resolve_region(response_payload, filters, url)

        return CaptureResult(listings=listings, filters=filters, region=region)

    async def capture(self, url: str) -> CaptureResult:
        """
        Capture listings for a search URL, retrying on empty results.

        Exhausting the attempts yields the last (empty) result, not an error.
        Navigation and listener timeouts propagate.
        """
        attempt = 1
        while True:
            logger.info(f"Capturing {url} (attempt {attempt}/{self.config.max_capture_attempts})")
            result = await self._capture_once(url)
            result.attempts = attempt
            logger.info(f"Captured {len(result.listings)} listing(s)")

            if result.listings:
                return result
            if attempt >= self.config.max_capture_attempts:
                logger.warning(f"No listings after {attempt} attempt(s), giving up on {url}")
                return result

            low, high = self.config.retry_backoff_ms
            backoff = self.rng.uniform(low, high) / 1000
            logger.info(f"Empty result, retrying in {backoff:.1f}s")
            await self.sleep(backoff)
            attempt += 1
