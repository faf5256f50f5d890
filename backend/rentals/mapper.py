"""Join listings with their quotes into output records."""

import logging
from typing import Dict, List, Sequence

from .base import Listing, Quote, ResultRecord
from .utils.normalizers import normalize_title, round_half_up

logger = logging.getLogger(__name__)


def first_positions(listings: Sequence[Listing]) -> Dict[str, int]:
    """1-based position of each listing id's first occurrence, in one pass."""
    positions: Dict[str, int] = {}
    for idx, listing in enumerate(listings, 1):
        positions.setdefault(listing.key, idx)
    return positions


def map_records(listings: Sequence[Listing], quotes: Dict[str, Quote]) -> List[ResultRecord]:
    """
    Build one record per listing, preserving listing order.

    A listing with no quote, or a quote without a numeric total, gets
    `total_quoted=None`.
    """
    positions = first_positions(listings)
    records = []
    unquoted = 0
    for listing in listings:
        quote = quotes.get(listing.key)
        total = quote.total_trip_amount if quote else None
        if total is None:
            unquoted += 1

        records.append(ResultRecord(
            id=listing.id,
            title=normalize_title(listing.year, listing.make, listing.model),
            image=listing.image_urls[0] if listing.image_urls else None,
            total_quoted=round_half_up(total) if total is not None else None,
            position=positions[listing.key],
        ))

    if unquoted:
        logger.info(f"{unquoted}/{len(listings)} listing(s) have no quoted total")
    return records
