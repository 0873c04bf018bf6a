"""Exception hierarchy for Luma calendar sync."""
from typing import Optional


class CalendarSyncError(Exception):
    """Base class for all calendar sync failures."""


class FetchError(CalendarSyncError):
    """Transport-level failure reaching the feed or the Luma API."""


class ParseError(CalendarSyncError):
    """Malformed feed structure or missing mandatory fields."""


class TimeConversionError(ParseError):
    """Malformed iCalendar date or date-time literal."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class ApiResponseError(CalendarSyncError):
    """Luma API answered with an unexpected status or body shape."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class StorageError(CalendarSyncError):
    """Base class for DynamoDB failures."""


class StorageConnectionError(StorageError):
    """Could not create a DynamoDB client or reach the table."""


class StorageQueryError(StorageError):
    """A specific DynamoDB request failed."""


class ConfigurationError(CalendarSyncError):
    """Required setting absent or malformed."""
