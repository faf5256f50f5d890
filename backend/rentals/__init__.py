"""
Rental quote scraping pipeline.

This package turns search templates and reusable time slots into concrete
pickup/return windows, captures the listing search for each window in an
isolated browser identity, prices every listing through the site's bulk
quote endpoint and hands one record set per window to the store.
"""

from .base import (
    Template,
    SlotDefinition,
    WindowInstance,
    Listing,
    Quote,
    ResultRecord,
    RunSummary,
    ScrapeError,
)
from .config import ScrapeConfig
from .slots import expand_templates
from .manager import QuoteScrapeManager

__all__ = [
    'Template',
    'SlotDefinition',
    'WindowInstance',
    'Listing',
    'Quote',
    'ResultRecord',
    'RunSummary',
    'ScrapeError',
    'ScrapeConfig',
    'expand_templates',
    'QuoteScrapeManager',
]
