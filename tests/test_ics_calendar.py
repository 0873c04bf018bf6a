"""Unit tests for the iCalendar feed fetcher and parser."""
from datetime import datetime, timezone

import pytest
import responses
from requests.exceptions import Timeout

from errors import CalendarSyncError, FetchError, ParseError, TimeConversionError
from feed.ics_calendar import (
    IcsCalendarFetcher,
    parse_calendar,
    parse_ical_datetime,
)
from processor.models import DEFAULT_SUMMARY
from ics_builders import build_calendar, build_vevent

FEED_URL = "https://api.lu.ma/ics/get?entity=calendar&id=cal-test"


class TestIcsCalendarFetcher:
    """Test cases for IcsCalendarFetcher class."""

    @responses.activate
    def test_fetch_events_success(self):
        """Test successful fetching and parsing."""
        body = build_calendar(
            build_vevent(
                'Later Event', '20240116T180000Z', '20240116T200000Z',
                url='https://lu.ma/later'
            ),
            build_vevent(
                'Earlier Event', '20240115T120000Z', '20240115T130000Z',
                location='Spanish Springs'
            )
        )
        responses.add(responses.GET, FEED_URL, body=body, status=200)

        fetcher = IcsCalendarFetcher(timeout=10)
        events = fetcher.fetch_events(FEED_URL)

        assert [e.summary for e in events] == ['Earlier Event', 'Later Event']
        assert events[0].location == 'Spanish Springs'
        assert events[1].url == 'https://lu.ma/later'
        assert all(e.event_uid for e in events)
        assert responses.calls[0].request.headers['User-Agent'].startswith(
            'Luma-Calendar-Sync'
        )

    @responses.activate
    def test_fetch_events_http_error(self):
        """Test that a non-success status is a fetch error, not retried."""
        responses.add(responses.GET, FEED_URL, body="Server Error", status=500)

        fetcher = IcsCalendarFetcher()

        with pytest.raises(FetchError):
            fetcher.fetch_events(FEED_URL)

        assert len(responses.calls) == 1

    @responses.activate
    def test_fetch_events_timeout(self):
        """Test timeout handling."""
        responses.add(responses.GET, FEED_URL, body=Timeout("Request timed out"))

        fetcher = IcsCalendarFetcher()

        with pytest.raises(FetchError):
            fetcher.fetch_events(FEED_URL)


class TestParseCalendar:
    """Test cases for parse_calendar."""

    def test_default_summary(self):
        content = build_calendar(
            build_vevent(None, '20240115T120000Z', '20240115T130000Z')
        )

        events = parse_calendar(content)

        assert events[0].summary == DEFAULT_SUMMARY

    def test_multiple_calendar_blocks(self):
        first = build_calendar(
            build_vevent('A', '20240115T120000Z', '20240115T130000Z')
        )
        second = build_calendar(
            build_vevent('B', '20240114T120000Z', '20240114T130000Z')
        )

        events = parse_calendar(first + second)

        assert [e.summary for e in events] == ['B', 'A']

    def test_missing_dtstart_fails_whole_feed(self):
        content = build_calendar(
            build_vevent('Good', '20240115T120000Z', '20240115T130000Z'),
            build_vevent('Bad', None, '20240115T130000Z')
        )

        with pytest.raises(ParseError, match='DTSTART'):
            parse_calendar(content)

    def test_missing_dtend_fails_whole_feed(self):
        content = build_calendar(
            build_vevent('Bad', '20240115T120000Z', None)
        )

        with pytest.raises(ParseError, match='DTEND'):
            parse_calendar(content)

    def test_malformed_date_literal_names_field(self):
        content = build_calendar(
            build_vevent('Bad', '20240115T120000Z', '2024011513')
        )

        with pytest.raises(TimeConversionError) as exc_info:
            parse_calendar(content)

        assert exc_info.value.field == 'DTEND'

    def test_malformed_start_literal_is_conversion_error(self):
        content = build_calendar(
            build_vevent('Bad', '2024011512', '20240115T130000Z')
        )

        with pytest.raises(CalendarSyncError) as exc_info:
            parse_calendar(content)

        assert isinstance(exc_info.value, TimeConversionError)
        assert exc_info.value.field == 'DTSTART'

    def test_not_a_calendar(self):
        with pytest.raises(ParseError):
            parse_calendar("this is not a calendar")

    def test_date_only_values(self):
        content = build_calendar(
            build_vevent(
                'All Day', '20240115', '20240116'
            ).replace('DTSTART:', 'DTSTART;VALUE=DATE:').replace(
                'DTEND:', 'DTEND;VALUE=DATE:'
            )
        )

        events = parse_calendar(content)

        assert events[0].start == datetime(2024, 1, 15, tzinfo=timezone.utc)
        assert events[0].end == datetime(2024, 1, 16, tzinfo=timezone.utc)

    def test_url_from_description_when_property_missing(self):
        content = build_calendar(
            build_vevent(
                'Meetup', '20240115T120000Z', '20240115T130000Z',
                description='Get tickets: https://lu.ma/abc123\\n\\nAddress:\\n1 Main St'
            )
        )

        events = parse_calendar(content)

        assert events[0].url == 'https://lu.ma/abc123'

    def test_url_property_is_cleaned(self):
        content = build_calendar(
            build_vevent(
                'Meetup', '20240115T120000Z', '20240115T130000Z',
                url='https://lu.ma/e/abc123 Address: 1 Main St'
            )
        )

        events = parse_calendar(content)

        assert events[0].url == 'https://lu.ma/e/abc123'

    def test_lowercase_url_property(self):
        vevent = build_vevent(
            'Meetup', '20240115T120000Z', '20240115T130000Z'
        ).replace('END:VEVENT', 'url:https://lu.ma/lower\r\nEND:VEVENT')

        events = parse_calendar(build_calendar(vevent))

        assert events[0].url == 'https://lu.ma/lower'

    def test_no_url_anywhere(self):
        content = build_calendar(
            build_vevent(
                'Meetup', '20240115T120000Z', '20240115T130000Z',
                description='No link here'
            )
        )

        events = parse_calendar(content)

        assert events[0].url is None

    def test_parsing_is_deterministic(self, three_event_feed):
        first = parse_calendar(three_event_feed)
        second = parse_calendar(three_event_feed)

        assert [e.event_uid for e in first] == [e.event_uid for e in second]
        assert len({e.event_uid for e in first}) == 3


class TestParseIcalDatetime:
    """Test cases for parse_ical_datetime."""

    def test_compact_utc_datetime(self):
        parsed = parse_ical_datetime('20240115T120000Z')

        assert parsed == datetime(2024, 1, 15, 12, 0, 0, tzinfo=timezone.utc)

    def test_date_only(self):
        parsed = parse_ical_datetime('20240115')

        assert parsed == datetime(2024, 1, 15, tzinfo=timezone.utc)

    def test_ten_character_literal_rejected(self):
        with pytest.raises(TimeConversionError) as exc_info:
            parse_ical_datetime('2024011512', 'DTSTART')

        assert exc_info.value.field == 'DTSTART'
        assert 'DTSTART' in str(exc_info.value)

    def test_non_numeric_component_rejected(self):
        with pytest.raises(TimeConversionError, match='month'):
            parse_ical_datetime('2024AB15T120000Z', 'DTEND')

    def test_impossible_date_rejected(self):
        with pytest.raises(TimeConversionError):
            parse_ical_datetime('20240230T120000Z')
