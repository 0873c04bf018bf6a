"""Data models for event processing."""
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from processor.sanitizer import extract_slug

DEFAULT_SUMMARY = "Untitled Event"
DEFAULT_URL_BASE = "https://lu.ma/e/"


@dataclass(eq=False)
class Event:
    """
    Canonical calendar event.

    Equality only looks at summary, start and end; ordering only at start.
    event_uid is the storage key and is stamped by processor.identity.
    """
    summary: str
    start: datetime
    end: datetime
    description: Optional[str] = None
    location: Optional[str] = None
    url: Optional[str] = None
    event_uid: str = ''
    api_id: Optional[str] = None

    def __eq__(self, other):
        if not isinstance(other, Event):
            return NotImplemented
        return (
            self.summary == other.summary and
            self.start == other.start and
            self.end == other.end
        )

    def __hash__(self):
        return hash((self.summary, self.start, self.end))

    def __lt__(self, other):
        if not isinstance(other, Event):
            return NotImplemented
        return self.start < other.start

    def duration_minutes(self) -> int:
        """Whole minutes between start and end (negative if end < start)."""
        return int((self.end - self.start).total_seconds() // 60)

    def extract_slug(self, domain: str = 'lu.ma') -> Optional[str]:
        """Luma slug from this event's URL, or None."""
        return extract_slug(self.url, domain)

    def default_url(self, base: str = DEFAULT_URL_BASE) -> str:
        return f"{base}{self.event_uid}"


@dataclass
class SyncResult:
    """Result of a store-many operation."""
    applied: int = 0
    added: int = 0
    updated: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)


@dataclass
class EnrichmentResult:
    """Result of an enrichment pass."""
    success: int = 0
    failed: int = 0
    skipped: int = 0
    already_enriched: int = 0
    enriched: List[Event] = field(default_factory=list)


@dataclass
class DispatchResult:
    """Result of a submission pass."""
    success: int = 0
    failed: int = 0
    calendar_event_ids: List[str] = field(default_factory=list)
