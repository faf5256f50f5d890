"""
Data structures shared by the quote scraping pipeline.

Templates and slot definitions come from the config store, window instances
are computed once per run, listings and quotes are transient per window, and
result records are what ends up in the store.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional


class ScrapeError(Exception):
    """Base error for the scraping pipeline."""


class CaptureError(ScrapeError):
    """The search capture returned a payload we cannot interpret."""


class QuoteError(ScrapeError):
    """The pricing bridge returned a payload we cannot interpret."""


# ANSI color codes for terminal output
class Colors:
    """ANSI color codes for colorized logging."""
    RESET = '\033[0m'
    BOLD = '\033[1m'

    GREEN = '\033[92m'
    YELLOW = '\033[93m'
    RED = '\033[91m'
    BLUE = '\033[94m'
    CYAN = '\033[96m'
    GRAY = '\033[90m'

    @staticmethod
    def green(text):
        return f"{Colors.GREEN}{text}{Colors.RESET}"

    @staticmethod
    def yellow(text):
        return f"{Colors.YELLOW}{text}{Colors.RESET}"

    @staticmethod
    def red(text):
        return f"{Colors.RED}{text}{Colors.RESET}"

    @staticmethod
    def cyan(text):
        return f"{Colors.CYAN}{text}{Colors.RESET}"

    @staticmethod
    def gray(text):
        return f"{Colors.GRAY}{text}{Colors.RESET}"

    @staticmethod
    def bold(text):
        return f"{Colors.BOLD}{text}{Colors.RESET}"


# Marker for a template record that has no slot field at all
MISSING = object()


@dataclass(frozen=True)
class Template:
    """A parameterized search, read once per run from the config store."""
    id: str
    label: str
    url: str
    raw_slots: Any = MISSING            # slotId / slots exactly as stored
    offset_hours: Optional[float] = None    # template-level override
    duration_hours: Optional[float] = None  # template-level override
    active: bool = True

    @classmethod
    def from_record(cls, template_id: str, data: Dict[str, Any]) -> 'Template':
        """
        Build a template from a store record.

        `slots` wins over the legacy `slotId` field when both are present.
        """
        if data.get('slots') is not None:
            raw_slots = data['slots']
        elif data.get('slotId') is not None:
            raw_slots = data['slotId']
        else:
            raw_slots = MISSING

        return cls(
            id=str(template_id),
            label=data.get('label') or str(template_id),
            url=data.get('url') or '',
            raw_slots=raw_slots,
            offset_hours=data.get('offsetHours'),
            duration_hours=data.get('durationHours'),
            active=data.get('active') is True,
        )

    @property
    def has_override(self) -> bool:
        return self.offset_hours is not None or self.duration_hours is not None


@dataclass(frozen=True)
class SlotDefinition:
    """A named, reusable offset/duration pair."""
    id: str
    label: str
    offset_hours: Any = None
    duration_hours: Any = None

    @classmethod
    def from_record(cls, slot_id: str, data: Dict[str, Any]) -> 'SlotDefinition':
        return cls(
            id=str(slot_id),
            label=data.get('label') or str(slot_id),
            offset_hours=data.get('offsetHours'),
            duration_hours=data.get('durationHours'),
        )


@dataclass(frozen=True)
class SlotChoice:
    """One resolved slot for a template: where it came from and what it means."""
    offset_hours: float
    duration_hours: float
    slot_id: Optional[str] = None
    slot_legacy: Optional[int] = None


@dataclass(frozen=True)
class WindowInstance:
    """
    One concrete (template, slot) pair to scrape.

    Raw instances carry no window: their URL is the template URL untouched.
    """
    template_id: str
    template_label: str
    resolved_url: str
    slot_id: Optional[str] = None
    slot_legacy: Optional[int] = None
    offset_hours: Optional[float] = None
    duration_hours: Optional[float] = None
    start: Optional[datetime] = None
    end: Optional[datetime] = None

    @property
    def is_raw(self) -> bool:
        return self.start is None

    @property
    def name(self) -> str:
        slot = self.slot_id if self.slot_id is not None else self.slot_legacy
        if slot is None:
            return self.template_id
        return f"{self.template_id}/{slot}"


@dataclass
class Listing:
    """One vehicle returned by the search backend."""
    id: Any
    make: str = ''
    model: str = ''
    year: Any = None
    image_urls: List[str] = field(default_factory=list)
    is_delivery: bool = False
    location_id: Optional[Any] = None
    raw_data: Dict[str, Any] = field(default_factory=dict)

    @property
    def key(self) -> str:
        """Join key against the quote table."""
        return str(self.id)

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> 'Listing':
        """
        Parse one entry of the search response's `vehicles` array.

        Raises:
            CaptureError: If the entry is not an object or has no id
        """
        if not isinstance(data, dict) or data.get('id') is None:
            raise CaptureError(f"Listing without id in search payload: {data!r:.200}")

        images = []
        for image in data.get('images') or []:
            if isinstance(image, dict) and image.get('originalImageUrl'):
                images.append(image['originalImageUrl'])

        location = data.get('location') or {}
        return cls(
            id=data['id'],
            make=data.get('make') or '',
            model=data.get('model') or '',
            year=data.get('year'),
            image_urls=images,
            is_delivery=bool(location.get('isDelivery', False)),
            location_id=location.get('locationId'),
            raw_data=data,
        )


@dataclass(frozen=True)
class Quote:
    """A priced estimate for one listing over the captured window."""
    listing_id: str
    total_trip_amount: Optional[float] = None
    daily_amount: Optional[float] = None


@dataclass(frozen=True)
class SearchFilters:
    """The backend's own reading of the search: renter age and window bounds."""
    age: Optional[int] = None
    start: Optional[str] = None
    end: Optional[str] = None
    region: Optional[str] = None


@dataclass
class CaptureResult:
    """Output of one capture session (after retries)."""
    listings: List[Listing]
    filters: SearchFilters
    region: str = ''
    attempts: int = 1


@dataclass(frozen=True)
class ResultRecord:
    """Output unit handed to the store."""
    id: Any
    title: str
    image: Optional[str]
    total_quoted: Optional[int]
    position: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'title': self.title,
            'image': self.image,
            'totalQuoted': self.total_quoted,
            'position': self.position,
        }


@dataclass
class RunSummary:
    """Result of one run over every window instance."""
    started_at: datetime
    completed_at: Optional[datetime] = None
    instances: int = 0
    persisted: int = 0
    empty: int = 0
    failed: int = 0
    records: int = 0
    error_details: List[Dict] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.failed == 0

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.completed_at and self.started_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None

    def to_dict(self) -> Dict:
        return {
            'started_at': self.started_at.isoformat(),
            'completed_at': self.completed_at.isoformat() if self.completed_at else None,
            'duration_seconds': self.duration_seconds,
            'instances': self.instances,
            'persisted': self.persisted,
            'empty': self.empty,
            'failed': self.failed,
            'records': self.records,
            'error_details': self.error_details[:10],  # Limit error details
            'success': self.success,
        }
