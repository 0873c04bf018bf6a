"""Fills missing Luma API ids on stored events."""
import logging
from typing import List, Optional

from enrichment.luma_api import LumaApiClient
from enrichment.rate_limiter import IntervalRateLimiter
from errors import ApiResponseError, ConfigurationError, FetchError, StorageError
from processor.models import EnrichmentResult, Event
from processor.sanitizer import clean_url, extract_slug

logger = logging.getLogger(__name__)


class EnrichmentReconciler:
    """Looks up api ids one event at a time and stores each as it arrives."""

    def __init__(
        self,
        api_client: LumaApiClient,
        storage,
        rate_limiter: IntervalRateLimiter,
        source_domain: str = 'lu.ma'
    ):
        """
        Initialize the reconciler.

        Args:
            api_client: Luma API client used for slug lookups
            storage: Object with a save_event(event) method
            rate_limiter: Limiter acquired before every lookup
            source_domain: Domain event URLs must belong to
        """
        self.api_client = api_client
        self.storage = storage
        self.rate_limiter = rate_limiter
        self.source_domain = source_domain

    def enrich_events(
        self,
        events: List[Event],
        limit: Optional[int] = None
    ) -> EnrichmentResult:
        """
        Look up and persist api ids for events that lack one.

        Lookup and save failures are counted, never raised.

        Args:
            events: Candidate events (usually the retained stored set)
            limit: Only consider the first N events

        Returns:
            EnrichmentResult with success/failed/skipped counts

        Raises:
            ConfigurationError: If the API client has no key
        """
        if not self.api_client.has_api_key:
            raise ConfigurationError("Enrichment requires a Luma API key")

        if limit is not None:
            logger.info(f"Processing only the first {limit} events")
            events = events[:limit]

        result = EnrichmentResult()

        for event in events:
            if event.api_id:
                logger.debug(f"Event already has API ID: {event.summary}")
                result.already_enriched += 1
                continue

            slug = extract_slug(event.url, self.source_domain)
            if not slug:
                logger.info(
                    f"Could not extract slug from URL for event: {event.summary}"
                )
                result.skipped += 1
                continue

            self.rate_limiter.acquire()
            logger.info(
                f"Looking up API ID for event: {event.summary} (slug: '{slug}')"
            )
            try:
                api_id = self.api_client.lookup_event_id(slug)
            except (FetchError, ApiResponseError) as e:
                logger.warning(f"API lookup failed for '{slug}': {e}")
                result.failed += 1
                continue

            if self._store_api_id(event, api_id):
                result.success += 1
                result.enriched.append(event)
            else:
                result.failed += 1

        logger.info(
            f"API enrichment complete. Success: {result.success}, "
            f"Errors: {result.failed}, Skipped: {result.skipped}"
        )
        return result

    def enrich_slug(self, slug: str, events: List[Event]) -> Optional[Event]:
        """
        Look up one slug and attach the id to the matching stored event.

        The first event whose URL contains the slug is updated.

        Args:
            slug: Slug to look up
            events: Stored events to search

        Returns:
            The updated event, or None if no event matches

        Raises:
            FetchError, ApiResponseError: If the lookup fails
            StorageError: If the update cannot be stored
        """
        slug = clean_url(slug)
        logger.info(f"Looking up API ID for slug: {slug}")
        self.rate_limiter.acquire()
        api_id = self.api_client.lookup_event_id(slug)
        logger.info(f"Found API ID: {api_id}")

        for event in events:
            if event.url and slug in event.url:
                logger.info(f"Updating event: {event.summary}")
                if not event.api_id:
                    event.api_id = api_id
                self.storage.save_event(event)
                return event

        logger.warning(f"No event found with slug: {slug}")
        return None

    def _store_api_id(self, event: Event, api_id: str) -> bool:
        event.api_id = api_id
        try:
            self.storage.save_event(event)
        except StorageError as e:
            logger.error(f"Failed to save event '{event.summary}': {e}")
            event.api_id = None
            return False
        logger.info(f"Stored API ID {api_id} for event: {event.summary}")
        return True
