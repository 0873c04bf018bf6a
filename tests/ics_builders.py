"""Helpers that build iCalendar text for tests."""
from datetime import datetime, timezone


def ical_timestamp(value: datetime) -> str:
    """Format a datetime as an iCalendar UTC literal."""
    return value.astimezone(timezone.utc).strftime('%Y%m%dT%H%M%SZ')


def build_vevent(
    summary,
    start,
    end,
    description=None,
    location=None,
    url=None
) -> str:
    lines = ['BEGIN:VEVENT']
    if summary is not None:
        lines.append(f'SUMMARY:{summary}')
    if start is not None:
        lines.append(f'DTSTART:{start}')
    if end is not None:
        lines.append(f'DTEND:{end}')
    if description is not None:
        lines.append(f'DESCRIPTION:{description}')
    if location is not None:
        lines.append(f'LOCATION:{location}')
    if url is not None:
        lines.append(f'URL:{url}')
    lines.append('END:VEVENT')
    return '\r\n'.join(lines)


def build_calendar(*vevents) -> str:
    lines = [
        'BEGIN:VCALENDAR',
        'VERSION:2.0',
        'PRODID:-//Luma//Calendar//EN',
        *vevents,
        'END:VCALENDAR'
    ]
    return '\r\n'.join(lines) + '\r\n'
