"""Runtime configuration read once from the process environment."""
import os
from dataclasses import dataclass
from typing import Mapping, Optional

from errors import ConfigurationError

DEFAULT_CALENDAR_URL = (
    "https://api.lu.ma/ics/get?entity=calendar&id=cal-4dWxlBFjW9Cd6ou"
)


@dataclass(frozen=True)
class Settings:
    """Explicit configuration value passed to every component."""
    table_name: str
    region_name: str = 'us-east-1'
    dynamodb_endpoint_url: Optional[str] = None
    calendar_url: str = DEFAULT_CALENDAR_URL
    luma_api_key: Optional[str] = None
    log_level: str = 'INFO'
    timeout_seconds: int = 10
    lookup_delay_ms: int = 500
    submit_delay_ms: int = 1000
    retention_days: int = 2
    source_domain: str = 'lu.ma'
    max_pool_connections: int = 5

    @property
    def has_api_key(self) -> bool:
        return bool(self.luma_api_key)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'Settings':
        """
        Build settings from environment variables.

        Args:
            environ: Mapping to read from (default: os.environ)

        Returns:
            Settings instance

        Raises:
            ConfigurationError: If TABLE_NAME is missing or a numeric
                variable cannot be parsed
        """
        if environ is None:
            environ = os.environ

        table_name = environ.get('TABLE_NAME', '').strip()
        if not table_name:
            raise ConfigurationError(
                "TABLE_NAME environment variable not set"
            )

        return cls(
            table_name=table_name,
            region_name=environ.get('AWS_REGION', 'us-east-1'),
            dynamodb_endpoint_url=environ.get('DYNAMODB_ENDPOINT_URL') or None,
            calendar_url=environ.get('CALENDAR_URL', DEFAULT_CALENDAR_URL),
            luma_api_key=environ.get('LUMA_API_KEY') or None,
            log_level=environ.get('LOG_LEVEL', 'INFO'),
            timeout_seconds=_int_setting(environ, 'TIMEOUT_SECONDS', 10),
            lookup_delay_ms=_int_setting(environ, 'LOOKUP_DELAY_MS', 500),
            submit_delay_ms=_int_setting(environ, 'SUBMIT_DELAY_MS', 1000),
            retention_days=_int_setting(environ, 'RETENTION_DAYS', 2),
            source_domain=environ.get('SOURCE_DOMAIN', 'lu.ma'),
        )


def _int_setting(environ: Mapping[str, str], name: str, default: int) -> int:
    raw = environ.get(name)
    if raw is None or raw.strip() == '':
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigurationError(f"Invalid {name}: {raw!r} is not an integer")
    if value < 0:
        raise ConfigurationError(f"Invalid {name}: {raw!r} must not be negative")
    return value
