"""Event processor for identifying, cleaning and filtering parsed events."""
import logging
from datetime import datetime, timedelta
from typing import List, Optional

from processor.identity import assign_identity
from processor.models import DEFAULT_URL_BASE, Event
from processor.retention import RETENTION_WINDOW, filter_retained
from processor.sanitizer import clean_url

logger = logging.getLogger(__name__)


class EventProcessor:
    """Processor that prepares parsed feed events for storage."""

    def __init__(
        self,
        retention_window: timedelta = RETENTION_WINDOW,
        default_url_base: str = DEFAULT_URL_BASE
    ):
        """
        Initialize the event processor.

        Args:
            retention_window: How long after its end an event stays live
            default_url_base: Prefix for URLs of events that have none
        """
        self.retention_window = retention_window
        self.default_url_base = default_url_base

    def process_events(
        self,
        events: List[Event],
        now: Optional[datetime] = None
    ) -> List[Event]:
        """
        Identify, clean and filter freshly parsed events.

        Args:
            events: Events from the feed parser
            now: Reference time for the retention window

        Returns:
            Retained events, sorted by start
        """
        prepared = self.prepare_events(events)
        retained = filter_retained(prepared, now, self.retention_window)

        dropped = len(prepared) - len(retained)
        if dropped:
            logger.info(f"Dropped {dropped} events outside the retention window")

        logger.info(
            f"Processed {len(retained)} retained events out of "
            f"{len(events)} total events"
        )
        return sorted(retained, key=lambda event: event.start)

    def prepare_events(self, events: List[Event]) -> List[Event]:
        """
        Stamp identity and clean URLs, defaulting missing URLs.

        Args:
            events: Parsed events

        Returns:
            The same events, ready to be stored
        """
        with_url = 0
        for event in events:
            assign_identity(event)
            if event.url:
                with_url += 1
                event.url = clean_url(event.url)
            if not event.url:
                event.url = event.default_url(self.default_url_base)

        logger.info(f"Found {with_url} events with URLs out of {len(events)}")
        return events
