"""
Search URL rewriting.

Template URLs are copied from the browser and usually carry a stale
pickup/return window. These helpers remove it and write a fresh one.
Both fail open: a malformed template URL is returned unchanged so the run
keeps going.
"""

import logging
from datetime import datetime
from typing import List, Tuple
from urllib.parse import parse_qsl, quote, urlencode, urlsplit, urlunsplit

from ..config import DATE_TIME_QUERY_KEYS, URL_DATE_FORMAT, URL_TIME_FORMAT

logger = logging.getLogger(__name__)


def _split(url: str):
    """Parse an absolute URL, raising ValueError if it isn't one."""
    parts = urlsplit(url)
    if not parts.scheme or not parts.netloc:
        raise ValueError(f"Not an absolute URL: {url!r}")
    return parts


def _rebuild(parts, params: List[Tuple[str, str]]) -> str:
    # quote (not quote_plus) keeps "%20" and encodes "/" and ":" like the site does
    query = urlencode(params, quote_via=quote)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, query, parts.fragment))


def strip_window_params(url: str) -> str:
    """
    Remove date/time keys and empty-valued keys from a search URL.

    Examples:
        https://x.test/search?age=25&startDate=06%2F19%2F2025&pickupType=
            -> https://x.test/search?age=25

    Args:
        url: Template URL

    Returns:
        The cleaned URL, or the input unchanged if it cannot be parsed
    """
    try:
        parts = _split(url)
        params = [
            (key, value)
            for key, value in parse_qsl(parts.query, keep_blank_values=True)
            if key not in DATE_TIME_QUERY_KEYS and value != ''
        ]
        return _rebuild(parts, params)
    except (ValueError, TypeError) as e:
        logger.warning(f"Could not strip window params from {url!r}: {e}")
        return url


def inject_window_params(url: str, start: datetime, end: datetime) -> str:
    """
    Write a pickup/return window into a search URL.

    Dates are MM/DD/YYYY and times 24-hour HH:MM, rendered in the time zone
    `start`/`end` already carry. Existing window keys are replaced, so the
    result holds exactly one of each.

    Args:
        url: Search URL (normally already stripped)
        start: Window start
        end: Window end

    Returns:
        The URL with the window set, or the input unchanged if it cannot be parsed
    """
    window = {
        'startDate': start.strftime(URL_DATE_FORMAT),
        'startTime': start.strftime(URL_TIME_FORMAT),
        'endDate': end.strftime(URL_DATE_FORMAT),
        'endTime': end.strftime(URL_TIME_FORMAT),
    }
    try:
        parts = _split(url)
        params = [
            (key, value)
            for key, value in parse_qsl(parts.query, keep_blank_values=True)
            if key not in window
        ]
        params.extend(window.items())
        return _rebuild(parts, params)
    except (ValueError, TypeError) as e:
        logger.warning(f"Could not inject window into {url!r}: {e}")
        return url


def get_query_param(url: str, key: str) -> str:
    """Return the first value of a query parameter, or '' if absent or unparseable."""
    try:
        for name, value in parse_qsl(urlsplit(url).query, keep_blank_values=True):
            if name == key:
                return value
    except ValueError as e:
        logger.debug(f"Could not read {key!r} from {url!r}: {e}")
    return ''
