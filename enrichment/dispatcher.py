"""Submits enriched upcoming events to the Luma calendar."""
import logging
from datetime import datetime
from typing import List, Optional

from enrichment.luma_api import LumaApiClient
from enrichment.rate_limiter import IntervalRateLimiter
from errors import ApiResponseError, ConfigurationError, FetchError
from processor.models import DispatchResult, Event
from processor.retention import events_within_horizon

logger = logging.getLogger(__name__)

DEFAULT_HORIZON_DAYS = 30


class SubmissionDispatcher:
    """Adds events to the Luma calendar, one call at a time."""

    def __init__(
        self,
        api_client: LumaApiClient,
        rate_limiter: IntervalRateLimiter,
        horizon_days: int = DEFAULT_HORIZON_DAYS
    ):
        self.api_client = api_client
        self.rate_limiter = rate_limiter
        self.horizon_days = horizon_days

    def select_candidates(
        self,
        events: List[Event],
        now: Optional[datetime] = None
    ) -> List[Event]:
        """Enriched events starting inside the forward horizon."""
        enriched = [event for event in events if event.api_id]
        return events_within_horizon(enriched, self.horizon_days, now)

    def submit_upcoming(
        self,
        events: List[Event],
        now: Optional[datetime] = None
    ) -> DispatchResult:
        """
        Submit every enriched event starting within the horizon.

        Repeated runs submit the same events again; nothing here prevents
        duplicates on the remote side.

        Args:
            events: Candidate events
            now: Reference time for the horizon

        Returns:
            DispatchResult with success/failed counts
        """
        if not self.api_client.has_api_key:
            raise ConfigurationError("Submission requires a Luma API key")

        candidates = self.select_candidates(events, now)
        result = DispatchResult()

        if not candidates:
            logger.info("No future events found to add to your calendar")
            return result

        logger.info(
            f"Found {len(candidates)} future events to add to your calendar"
        )
        for event in candidates:
            self.rate_limiter.acquire()
            logger.info(
                f"Adding event to calendar: {event.summary} (API ID: {event.api_id})"
            )
            try:
                response = self.api_client.add_event(event.api_id)
            except (FetchError, ApiResponseError) as e:
                logger.warning(f"Failed to add event to calendar: {e}")
                result.failed += 1
                continue

            result.success += 1
            calendar_event_id = response.get('calendar_event_id')
            if calendar_event_id:
                result.calendar_event_ids.append(str(calendar_event_id))

        logger.info(
            f"Calendar addition complete. Success: {result.success}, "
            f"Errors: {result.failed}"
        )
        return result
