"""
Scrape tunables and lookup tables.

`ScrapeConfig` is an immutable value passed into every component so tests
can pin timing (e.g. zero backoff) without touching module globals.
"""

import logging
from dataclasses import dataclass
from typing import Tuple

logger = logging.getLogger(__name__)


# ============================================================
# LEGACY SLOTS
# Numeric slot ids predating named slot definitions
# ============================================================
LEGACY_SLOT_OFFSETS = {
    0: 0,     # Next available window
    1: 24,    # Tomorrow
    2: 48,
    3: 72,
    4: 168,   # One week out
}


# ============================================================
# URL QUERY KEYS
# ============================================================

# Keys that describe a pickup/return window and are rewritten per run
DATE_TIME_QUERY_KEYS = frozenset({
    'startDate', 'startTime', 'endDate', 'endTime',
    'startMonth', 'endMonth', 'monthlyStartDate', 'monthlyEndDate',
})

# Formats the listing site expects in its search URL
URL_DATE_FORMAT = '%m/%d/%Y'
URL_TIME_FORMAT = '%H:%M'


@dataclass(frozen=True)
class ScrapeConfig:
    """Immutable tunables for one run."""
    min_lead_minutes: int = 60
    granularity_minutes: int = 30
    default_duration_hours: float = 72
    batch_size: int = 20
    max_capture_attempts: int = 3
    retry_backoff_ms: Tuple[int, int] = (3000, 5000)
    instance_delay_ms: Tuple[int, int] = (2000, 4000)
    step_timeout_ms: int = 60000
    search_path: str = '/api/v2/search'
    quote_path: str = '/api/bulk-quotes/v2'

    def __post_init__(self):
        if self.granularity_minutes <= 0:
            raise ValueError("granularity_minutes must be positive")
        # A shorter lead could floor the window start to before "now"
        if self.min_lead_minutes < self.granularity_minutes:
            raise ValueError(
                f"min_lead_minutes ({self.min_lead_minutes}) must be >= "
                f"granularity_minutes ({self.granularity_minutes})"
            )
        if self.default_duration_hours <= 0:
            raise ValueError("default_duration_hours must be positive")
        if self.batch_size <= 0:
            raise ValueError("batch_size must be positive")
        if self.max_capture_attempts <= 0:
            raise ValueError("max_capture_attempts must be positive")
        if self.step_timeout_ms <= 0:
            raise ValueError("step_timeout_ms must be positive")
        for name in ('retry_backoff_ms', 'instance_delay_ms'):
            low, high = getattr(self, name)
            if low < 0 or high < low:
                raise ValueError(f"{name} must be an ordered non-negative range, got {(low, high)}")

    @property
    def step_timeout_seconds(self) -> float:
        return self.step_timeout_ms / 1000


# ============================================================
# HELPER FUNCTIONS
# ============================================================

def get_legacy_offset(slot_number: int) -> int:
    """
    Get the offset in hours for a legacy numeric slot.

    Unknown slot numbers fall back to 0 with a warning.
    """
    if slot_number not in LEGACY_SLOT_OFFSETS:
        valid = ', '.join(str(k) for k in sorted(LEGACY_SLOT_OFFSETS))
        logger.warning(f"Unknown legacy slot {slot_number} (valid: {valid}), using offset 0")
        return 0
    return LEGACY_SLOT_OFFSETS[slot_number]
