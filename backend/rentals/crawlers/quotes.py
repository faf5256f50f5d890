"""
Bulk quote aggregation through the page's own fetch.

Pricing is requested from inside the captured page so the call carries the
site's cookies and headers. Listings go in fixed-size batches, one request
per batch, processed sequentially to keep load on the backend low.
"""

import logging
from typing import Any, Dict, Iterator, List, Optional, Sequence, TypeVar

from ..base import Listing, Quote, QuoteError, SearchFilters
from ..config import ScrapeConfig
from ..utils.normalizers import to_amount

logger = logging.getLogger(__name__)

T = TypeVar('T')

# Runs in the page: POST the body to the pricing path and return parsed JSON
QUOTE_FETCH_SCRIPT = """
async ({ path, body }) => {
    const resp = await fetch(path, {
        method: 'POST',
        headers: { 'Content-Type': 'application/json' },
        body: JSON.stringify(body),
    });
    return resp.json();
}
"""


def chunked(items: Sequence[T], size: int) -> Iterator[List[T]]:
    """
    Split a sequence into consecutive batches of at most `size` items.

    Examples:
        chunked([1, 2, 3], 2) -> [1, 2], [3]
        chunked([], 20) -> (nothing)
    """
    if size <= 0:
        raise ValueError("size must be positive")
    for i in range(0, len(items), size):
        yield list(items[i:i + size])


def build_quote_payload(
    batch: Sequence[Listing],
    filters: SearchFilters,
    region: str,
    start: Optional[str] = None,
    end: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Build the pricing request body for one batch.

    `start`/`end` default to the backend's own window from the capture.
    """
    location_map = {
        listing.key: {
            'isDelivery': listing.is_delivery,
            'locationId': listing.location_id,
        }
        for listing in batch
    }
    return {
        'age': filters.age,
        'apiEstimatedQuoteLocationDtoMap': location_map,
        'startDateTime': start if start is not None else filters.start,
        'endDateTime': end if end is not None else filters.end,
        'region': region,
        'searchRegion': region,
    }


def parse_quotes(payload: Any) -> Dict[str, Quote]:
    """
    Parse a pricing response into quotes keyed by listing id.

    Entries that are not objects are skipped; missing amounts become None.

    Raises:
        QuoteError: If the body is not an object
    """
    if not isinstance(payload, dict):
        raise QuoteError(f"Pricing response is not a JSON object: {type(payload).__name__}")
    estimated = payload.get('estimatedQuotes')
    if estimated is None:
        logger.warning("Pricing response has no 'estimatedQuotes', treating batch as unquoted")
        return {}
    if not isinstance(estimated, dict):
        raise QuoteError(f"'estimatedQuotes' is not an object: {type(estimated).__name__}")

    quotes = {}
    for listing_id, entry in estimated.items():
        if not isinstance(entry, dict):
            logger.debug(f"Skipping malformed quote for {listing_id}: {entry!r}")
            continue
        key = str(listing_id)
        quotes[key] = Quote(
            listing_id=key,
            total_trip_amount=to_amount(entry.get('totalTripPrice')),
            daily_amount=to_amount(entry.get('vehicleDailyPrice')),
        )
    return quotes


def merge_quotes(table: Dict[str, Quote], batch_quotes: Dict[str, Quote]) -> Dict[str, Quote]:
    """
    Merge one batch's quotes into the accumulator, key-wise.

    Ids are batch-disjoint, so a repeat only happens if the backend answers
    for a listing it was not asked about; the first answer is kept.
    """
    for key, quote in batch_quotes.items():
        if key in table:
            logger.debug(f"Quote for {key} already merged, keeping the first")
            continue
        table[key] = quote
    return table


class QuoteAggregator:
    """
    Fetches and merges bulk quotes for a captured listing set.

    Usage:
        aggregator = QuoteAggregator(page, config)
        quotes = await aggregator.fetch(listings, filters, region)
    """

    def __init__(self, page, config: ScrapeConfig):
        self.page = page
        self.config = config

    async def _fetch_batch(self, body: Dict[str, Any]) -> Any:
        return await self.page.evaluate(
            QUOTE_FETCH_SCRIPT,
            {'path': self.config.quote_path, 'body': body},
        )

    async def fetch(
        self,
        listings: Sequence[Listing],
        filters: SearchFilters,
        region: str,
        start: Optional[str] = None,
        end: Optional[str] = None,
    ) -> Dict[str, Quote]:
        """
        Price every listing, one batch at a time.

        A failing batch raises; listings without a quote are simply absent
        from the returned table.

        Returns:
            Quotes keyed by listing id (as string)
        """
        table: Dict[str, Quote] = {}
        batches = list(chunked(listings, self.config.batch_size))
        for idx, batch in enumerate(batches, 1):
            body = build_quote_payload(batch, filters, region, start, end)
            payload = await self._fetch_batch(body)
            batch_quotes = parse_quotes(payload)
            merge_quotes(table, batch_quotes)
            logger.debug(f"Quote batch {idx}/{len(batches)}: {len(batch_quotes)}/{len(batch)} priced")

        missing = sum(1 for listing in listings if listing.key not in table)
        logger.info(f"Quoted {len(listings) - missing}/{len(listings)} listing(s) in {len(batches)} batch(es)")
        return table
