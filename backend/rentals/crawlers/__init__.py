"""Browser-side components: identities, search capture and bulk quotes."""

from .capture import CaptureSession
from .quotes import QuoteAggregator
from .stealth import StealthBrowser

__all__ = ['CaptureSession', 'QuoteAggregator', 'StealthBrowser']
