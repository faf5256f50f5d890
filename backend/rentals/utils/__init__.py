"""Shared utilities for the quote pipeline."""

from .normalizers import (
    to_number,
    to_amount,
    round_half_up,
    normalize_title,
    format_hours,
)
from .urls import (
    strip_window_params,
    inject_window_params,
    get_query_param,
)

__all__ = [
    'to_number',
    'to_amount',
    'round_half_up',
    'normalize_title',
    'format_hours',
    'strip_window_params',
    'inject_window_params',
    'get_query_param',
]
