"""Command operations over the feed, the event store and the Luma API."""
import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from config import Settings
from enrichment.dispatcher import DEFAULT_HORIZON_DAYS, SubmissionDispatcher
from enrichment.luma_api import LumaApiClient
from enrichment.rate_limiter import IntervalRateLimiter
from enrichment.reconciler import EnrichmentReconciler
from errors import ApiResponseError, FetchError
from feed.ics_calendar import IcsCalendarFetcher
from processor.event_processor import EventProcessor
from processor.models import DispatchResult, EnrichmentResult, Event, SyncResult
from processor.retention import (
    events_next_days,
    events_this_week,
    events_today,
    utc_now,
)
from storage.dynamodb_manager import DynamoDBManager

logger = logging.getLogger(__name__)


def event_to_dict(event: Event) -> Dict[str, Any]:
    """JSON-serializable view of an event."""
    return {
        'event_uid': event.event_uid,
        'summary': event.summary,
        'description': event.description,
        'location': event.location,
        'start': event.start.isoformat(),
        'end': event.end.isoformat(),
        'duration_minutes': event.duration_minutes(),
        'url': event.url,
        'api_id': event.api_id
    }


def _limited(events: List[Event], limit: int) -> List[Event]:
    if limit and 0 < limit < len(events):
        return events[:limit]
    return events


def _sync_summary(result: SyncResult) -> Dict[str, Any]:
    return {
        'applied': result.applied,
        'added': result.added,
        'updated': result.updated,
        'failed': result.failed,
        'errors': result.errors
    }


def _enrichment_summary(result: EnrichmentResult) -> Dict[str, Any]:
    return {
        'success': result.success,
        'failed': result.failed,
        'skipped': result.skipped,
        'already_enriched': result.already_enriched
    }


def _dispatch_summary(result: DispatchResult) -> Dict[str, Any]:
    return {
        'success': result.success,
        'failed': result.failed,
        'calendar_event_ids': result.calendar_event_ids
    }


class CalendarSyncService:
    """Wires the pipeline components from a single Settings value."""

    def __init__(
        self,
        settings: Settings,
        fetcher: Optional[IcsCalendarFetcher] = None,
        processor: Optional[EventProcessor] = None,
        storage: Optional[DynamoDBManager] = None,
        api_client: Optional[LumaApiClient] = None,
        lookup_limiter: Optional[IntervalRateLimiter] = None,
        submit_limiter: Optional[IntervalRateLimiter] = None,
        clock: Callable[[], datetime] = utc_now
    ):
        self.settings = settings
        self.fetcher = fetcher or IcsCalendarFetcher(timeout=settings.timeout_seconds)
        self.processor = processor or EventProcessor(
            retention_window=timedelta(days=settings.retention_days)
        )
        self.api_client = api_client or LumaApiClient.from_settings(settings)
        self.lookup_limiter = lookup_limiter or IntervalRateLimiter.from_milliseconds(
            settings.lookup_delay_ms
        )
        self.submit_limiter = submit_limiter or IntervalRateLimiter.from_milliseconds(
            settings.submit_delay_ms
        )
        self.clock = clock
        self._storage = storage

    @property
    def storage(self) -> DynamoDBManager:
        """DynamoDB manager, created and bootstrapped on first use."""
        if self._storage is None:
            storage = DynamoDBManager.from_settings(self.settings)
            storage.ensure_table()
            self._storage = storage
        return self._storage

    @property
    def reconciler(self) -> EnrichmentReconciler:
        return EnrichmentReconciler(
            api_client=self.api_client,
            storage=self.storage,
            rate_limiter=self.lookup_limiter,
            source_domain=self.settings.source_domain
        )

    def dispatcher(self, horizon_days: int = DEFAULT_HORIZON_DAYS) -> SubmissionDispatcher:
        return SubmissionDispatcher(
            api_client=self.api_client,
            rate_limiter=self.submit_limiter,
            horizon_days=horizon_days
        )

    def _fetch(self, url: Optional[str] = None) -> List[Event]:
        return self.fetcher.fetch_events(url or self.settings.calendar_url)

    def fetch_events(
        self,
        limit: int = 10,
        store: bool = False,
        enrich: bool = False,
        url: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Fetch the feed, optionally storing and enriching it.

        Args:
            limit: Maximum number of events returned (0 means all)
            store: Persist retained events
            enrich: Look up api ids for the stored events (requires store)
            url: Feed URL (default: configured calendar URL)

        Returns:
            Summary dict with the events and any store/enrich counts
        """
        events = self._fetch(url)
        body: Dict[str, Any] = {
            'total': len(events),
            'events': [event_to_dict(e) for e in _limited(events, limit)]
        }

        if store:
            retained = self.processor.process_events(events, self.clock())
            sync_result = self.storage.save_events(retained)
            body['stored'] = _sync_summary(sync_result)

            if enrich:
                pending = [event for event in retained if not event.api_id]
                logger.info("Auto-enriching events with API IDs")
                body['enrichment'] = _enrichment_summary(
                    self.reconciler.enrich_events(pending)
                )

        return body

    def today_events(self, url: Optional[str] = None) -> Dict[str, Any]:
        now = self.clock()
        events = events_today(self._fetch(url), now)
        return {
            'date': now.date().isoformat(),
            'events': [event_to_dict(e) for e in events]
        }

    def week_events(self, url: Optional[str] = None) -> Dict[str, Any]:
        now = self.clock()
        monday = now.date() - timedelta(days=now.weekday())
        events = events_this_week(self._fetch(url), now)
        return {
            'week_start': monday.isoformat(),
            'week_end': (monday + timedelta(days=6)).isoformat(),
            'events': [event_to_dict(e) for e in events]
        }

    def upcoming_events(
        self,
        days: int = 7,
        limit: int = 10,
        url: Optional[str] = None
    ) -> Dict[str, Any]:
        now = self.clock()
        all_events = self._fetch(url)
        in_range = events_next_days(all_events, days, 0, now)
        shown = _limited(in_range, limit)
        return {
            'days': days,
            'total_in_range': len(in_range),
            'events': [event_to_dict(e) for e in shown]
        }

    def stored_events(
        self,
        limit: int = 10,
        days: Optional[int] = None
    ) -> Dict[str, Any]:
        """Retained stored events, optionally only those starting in N days."""
        now = self.clock()
        if days is None:
            events = self.storage.get_all_events(now)
        else:
            events = self.storage.get_events_in_range(
                now, now + timedelta(days=days), now
            )
        return {
            'total': len(events),
            'events': [event_to_dict(e) for e in _limited(events, limit)]
        }

    def stored_count(self) -> Dict[str, Any]:
        return {'count': self.storage.get_event_count(self.clock())}

    def clear_store(self) -> Dict[str, Any]:
        deleted = self.storage.clear_all_events()
        logger.info(f"Successfully cleared {deleted} events from database")
        return {'deleted': deleted}

    def enrich_store(
        self,
        limit: Optional[int] = None,
        slug: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Enrich retained stored events, or only the one matching a slug.

        Returns:
            Enrichment counts, or the matched event for a slug
        """
        events = self.storage.get_all_events(self.clock())
        logger.info(f"Found {len(events)} events in database")
        if limit is not None:
            events = events[:limit]

        if slug is None:
            result = self.reconciler.enrich_events(events)
            return {'enrichment': _enrichment_summary(result)}

        try:
            event = self.reconciler.enrich_slug(slug, events)
        except (FetchError, ApiResponseError) as e:
            logger.warning(f"API lookup failed for '{slug}': {e}")
            return {'slug': slug, 'found': False, 'error': str(e)}

        return {
            'slug': slug,
            'found': event is not None,
            'event': event_to_dict(event) if event else None
        }

    def lookup_slug(self, slug: str) -> Dict[str, Any]:
        """Look up one slug without touching the store."""
        try:
            api_id = self.api_client.lookup_event_id(slug)
        except (FetchError, ApiResponseError) as e:
            logger.warning(f"API lookup failed for '{slug}': {e}")
            return {'slug': slug, 'success': False, 'error': str(e)}

        logger.info(f"Successfully found API ID: {api_id}")
        return {'slug': slug, 'success': True, 'api_id': api_id}

    def add_event(self, api_id: str) -> Dict[str, Any]:
        """Submit one event to the Luma calendar by its api id."""
        try:
            response = self.api_client.add_event(api_id)
        except (FetchError, ApiResponseError) as e:
            logger.warning(f"Failed to add event {api_id}: {e}")
            return {'api_id': api_id, 'success': False, 'error': str(e)}

        return {
            'api_id': api_id,
            'success': True,
            'calendar_event_id': response.get('calendar_event_id', 'unknown')
        }

    def full_sync(
        self,
        url: Optional[str] = None,
        days: int = DEFAULT_HORIZON_DAYS,
        skip_add: bool = False
    ) -> Dict[str, Any]:
        """
        Fetch, store, enrich and submit in one run.

        Args:
            url: Feed URL (default: configured calendar URL)
            days: Only submit events starting within this many days
            skip_add: Store and enrich only

        Returns:
            Summary dict of every stage
        """
        now = self.clock()

        logger.info("Starting full sync process")
        events = self._fetch(url)
        logger.info(f"Fetched {len(events)} events")

        retained = self.processor.process_events(events, now)
        sync_result = self.storage.save_events(retained)

        stored = self.storage.get_all_events(now)
        logger.info(f"Found {len(stored)} events in database")

        body: Dict[str, Any] = {
            'fetched': len(events),
            'retained': len(retained),
            'stored': _sync_summary(sync_result),
            'stored_total': len(stored),
            'enrichment': None,
            'submission': None
        }

        if not self.api_client.has_api_key:
            logger.warning(
                "No Luma API key configured; skipping enrichment and submission"
            )
            return body

        pending = [event for event in stored if not event.api_id]
        enrichment = self.reconciler.enrich_events(pending)
        body['enrichment'] = _enrichment_summary(enrichment)

        if skip_add:
            logger.info("Skipping adding events to calendar as requested")
        else:
            dispatch = self.dispatcher(days).submit_upcoming(stored, now)
            body['submission'] = _dispatch_summary(dispatch)

        logger.info("Full sync process completed successfully")
        return body
