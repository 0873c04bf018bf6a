"""Fetching and parsing of Luma iCalendar feeds."""
import logging
from datetime import datetime, timezone
from typing import List, Optional

import requests
from icalendar import Calendar

from errors import FetchError, ParseError, TimeConversionError
from processor.identity import assign_identities
from processor.models import DEFAULT_SUMMARY, Event
from processor.sanitizer import clean_url, extract_url_from_text

logger = logging.getLogger(__name__)

USER_AGENT = "Luma-Calendar-Sync/0.1.0"


class IcsCalendarFetcher:
    """Fetcher for a remote iCalendar feed."""

    def __init__(self, timeout: int = 10, user_agent: str = USER_AGENT):
        """
        Initialize the calendar fetcher.

        Args:
            timeout: HTTP request timeout in seconds (default: 10)
            user_agent: User-Agent header sent with the request
        """
        self.timeout = timeout
        self.user_agent = user_agent

    def fetch_events(self, url: str) -> List[Event]:
        """
        Fetch and parse events from a calendar feed.

        Args:
            url: Feed URL

        Returns:
            List of Event objects sorted by start

        Raises:
            FetchError: If the feed cannot be retrieved
            ParseError: If the feed is malformed
        """
        logger.info(f"Fetching calendar from {url}")
        content = self.fetch_calendar_text(url)
        events = parse_calendar(content)
        logger.info(f"Successfully fetched {len(events)} events")
        return events

    def fetch_calendar_text(self, url: str) -> str:
        """
        Fetch raw iCalendar text.

        Raises:
            FetchError: On transport failure or non-success status
        """
        try:
            response = requests.get(
                url,
                headers={'User-Agent': self.user_agent},
                timeout=self.timeout
            )
            response.raise_for_status()
        except requests.RequestException as e:
            logger.error(f"Failed to fetch calendar: {e}")
            raise FetchError(f"Failed to fetch calendar: {e}") from e

        return response.content.decode('utf-8', errors='replace')


def parse_calendar(content: str) -> List[Event]:
    """
    Parse one or more VCALENDAR blocks into events.

    Any malformed event fails the whole feed.

    Args:
        content: Raw iCalendar text

    Returns:
        Events with event_uid assigned, sorted by start

    Raises:
        ParseError: If the text holds no calendar or an event lacks
            DTSTART/DTEND
        TimeConversionError: If a date literal is malformed
    """
    try:
        components = Calendar.from_ical(content, multiple=True)
    except ValueError as e:
        raise ParseError(f"Failed to parse calendar: {e}") from e

    calendars = [c for c in components if c.name == 'VCALENDAR']
    if not calendars:
        raise ParseError("Failed to parse calendar: no VCALENDAR block found")

    events = []
    for calendar in calendars:
        for component in calendar.walk('VEVENT'):
            events.append(_parse_event_component(component))

    events = assign_identities(events)
    events.sort(key=lambda event: event.start)
    return events


def parse_ical_datetime(value: str, field: str = 'DTSTART') -> datetime:
    """
    Parse an iCalendar date or date-time literal as UTC.

    Accepts YYYYMMDDTHHMMSS[Z] (T and Z are stripped) and YYYYMMDD
    (midnight).

    Args:
        value: Literal to parse
        field: Property name reported in errors

    Returns:
        Timezone-aware UTC datetime

    Raises:
        TimeConversionError: If the literal has the wrong length or a
            component is not numeric or out of range
    """
    cleaned = value.strip().replace('Z', '').replace('T', '')

    if len(cleaned) == 14:
        parts = (
            cleaned[0:4], cleaned[4:6], cleaned[6:8],
            cleaned[8:10], cleaned[10:12], cleaned[12:14]
        )
    elif len(cleaned) == 8:
        parts = (cleaned[0:4], cleaned[4:6], cleaned[6:8], '00', '00', '00')
    else:
        raise TimeConversionError(
            f"Invalid datetime format for {field}: {value}", field=field
        )

    names = ('year', 'month', 'day', 'hour', 'minute', 'second')
    numbers = []
    for name, part in zip(names, parts):
        if not (part.isascii() and part.isdigit()):
            raise TimeConversionError(
                f"Invalid {name} in {field}: {part}", field=field
            )
        numbers.append(int(part))

    try:
        return datetime(*numbers, tzinfo=timezone.utc)
    except ValueError as e:
        raise TimeConversionError(
            f"Invalid date/time combination in {field}: {value} - {e}",
            field=field
        ) from e


def _parse_event_component(component) -> Event:
    summary = _text_property(component, 'SUMMARY') or DEFAULT_SUMMARY
    description = _text_property(component, 'DESCRIPTION')
    location = _text_property(component, 'LOCATION')

    start = _datetime_property(component, 'DTSTART')
    end = _datetime_property(component, 'DTEND')

    # Property names are case-insensitive in icalendar components
    url = _text_property(component, 'URL')
    if not url:
        url = extract_url_from_text(description)

    return Event(
        summary=summary,
        description=description,
        location=location,
        start=start,
        end=end,
        url=clean_url(url) if url else None
    )


def _text_property(component, name: str) -> Optional[str]:
    value = component.get(name)
    if isinstance(value, list):
        value = value[0] if value else None
    if value is None:
        return None
    return str(value)


def _datetime_property(component, name: str) -> datetime:
    # Literals icalendar could not parse are recorded here, whether the
    # property was dropped or kept as a broken placeholder
    for error_name, message in getattr(component, 'errors', []):
        if error_name.upper() == name:
            raise TimeConversionError(
                f"Invalid datetime format for {name}: {message}",
                field=name
            )

    prop = component.get(name)
    if isinstance(prop, list):
        prop = prop[0] if prop else None
    if prop is None:
        raise ParseError(f"Event missing {name} property")

    try:
        value = prop.dt
    except (AttributeError, ValueError) as e:
        raise TimeConversionError(
            f"Invalid datetime format for {name}: {e}", field=name
        ) from e

    if isinstance(value, datetime) and value.tzinfo is not None:
        literal = value.astimezone(timezone.utc).strftime('%Y%m%dT%H%M%SZ')
    else:
        literal = prop.to_ical()
        if isinstance(literal, bytes):
            literal = literal.decode('utf-8')
    return parse_ical_datetime(literal, name)
