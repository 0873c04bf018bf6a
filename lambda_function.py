"""AWS Lambda handler for Luma Calendar Sync."""
import json
import logging
import time
from typing import Any, Callable, Dict

from config import Settings
from errors import CalendarSyncError, ConfigurationError
from service.calendar_sync import CalendarSyncService


# Configure JSON logging
class JsonFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    # Attributes every LogRecord carries; anything else came from extra=
    RESERVED_ATTRS = frozenset(vars(logging.LogRecord(
        '', 0, '', 0, '', (), None
    ))) | {'message', 'asctime'}

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            'timestamp': self.formatTime(record),
            'level': record.levelname,
            'message': record.getMessage(),
            'logger': record.name
        }

        for key, value in record.__dict__.items():
            if key not in self.RESERVED_ATTRS and key not in log_data:
                log_data[key] = value

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def setup_logging(log_level: str = 'INFO') -> None:
    """
    Configure logging with JSON formatter.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    root_logger = logging.getLogger()

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root_logger.addHandler(handler)

    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))


def _optional_int(event: Dict[str, Any], key: str):
    value = event.get(key)
    return None if value is None else int(value)


TRUE_STRINGS = frozenset({'true', '1', 'yes'})
FALSE_STRINGS = frozenset({'false', '0', 'no', ''})


def _flag(event: Dict[str, Any], key: str) -> bool:
    """Read a boolean payload flag; strings must spell out true or false."""
    value = event.get(key, False)
    if value is None or isinstance(value, bool):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in TRUE_STRINGS:
            return True
        if lowered in FALSE_STRINGS:
            return False
    raise ValueError(f"Invalid boolean for {key}: {value!r}")


COMMANDS: Dict[str, Callable[[CalendarSyncService, Dict[str, Any]], Dict[str, Any]]] = {
    'fetch': lambda service, event: service.fetch_events(
        limit=int(event.get('limit', 10)),
        store=_flag(event, 'store'),
        enrich=_flag(event, 'enrich'),
        url=event.get('url')
    ),
    'today': lambda service, event: service.today_events(url=event.get('url')),
    'week': lambda service, event: service.week_events(url=event.get('url')),
    'next': lambda service, event: service.upcoming_events(
        days=int(event.get('days', 7)),
        limit=int(event.get('limit', 10)),
        url=event.get('url')
    ),
    'db': lambda service, event: (
        service.stored_events(
            limit=int(event.get('limit', 10)),
            days=_optional_int(event, 'days')
        )
        if _flag(event, 'all') else service.stored_count()
    ),
    'clear': lambda service, event: service.clear_store(),
    'api': lambda service, event: service.enrich_store(
        limit=_optional_int(event, 'limit'),
        slug=event.get('slug')
    ),
    'lookup': lambda service, event: service.lookup_slug(event['slug']),
    'add': lambda service, event: service.add_event(event['event_id']),
    'sync': lambda service, event: service.full_sync(
        url=event.get('url'),
        days=int(event.get('days', 30)),
        skip_add=_flag(event, 'skip_add')
    ),
}


def _error_response(
    message: str,
    error: Exception,
    start_time: float,
    status_code: int = 500
) -> Dict[str, Any]:
    duration = time.time() - start_time
    return {
        'statusCode': status_code,
        'body': json.dumps({
            'message': message,
            'error': str(error),
            'error_type': type(error).__name__,
            'duration_seconds': round(duration, 2)
        })
    }


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Main Lambda handler function for Luma Calendar Sync.

    The "command" key of the payload selects the operation (default
    "fetch"); the remaining keys are its arguments.

    Args:
        event: EventBridge or direct-invoke payload
        context: Lambda context object

    Returns:
        Response dict with statusCode and a JSON body
    """
    start_time = time.time()
    event = event or {}

    try:
        settings = Settings.from_env()
    except ConfigurationError as e:
        setup_logging()
        logging.getLogger(__name__).error(f"Invalid configuration: {e}")
        return _error_response('Invalid configuration', e, start_time)

    setup_logging(settings.log_level)
    logger = logging.getLogger(__name__)

    command = event.get('command', 'fetch')
    handler = COMMANDS.get(command)
    if handler is None:
        logger.error(f"Unknown command: {command}")
        return _error_response(
            'Unknown command',
            ValueError(f"Unknown command: {command}"),
            start_time,
            status_code=400
        )

    logger.info(
        "Lambda execution started",
        extra={'command': command, 'table_name': settings.table_name}
    )

    try:
        service = CalendarSyncService(settings)
        result = handler(service, event)
    except (KeyError, ValueError) as e:
        logger.error(f"Invalid arguments for {command}: {e}")
        return _error_response(
            f"Invalid arguments for {command}", e, start_time, status_code=400
        )
    except CalendarSyncError as e:
        logger.error(
            f"Command {command} failed: {e}",
            extra={'error_type': type(e).__name__},
            exc_info=True
        )
        return _error_response(f"Command {command} failed", e, start_time)
    except Exception as e:
        logger.error(
            f"Lambda execution failed: {e}",
            extra={'error_type': type(e).__name__},
            exc_info=True
        )
        return _error_response('Sync failed', e, start_time)

    duration = time.time() - start_time
    logger.info(
        "Lambda execution completed successfully",
        extra={'command': command, 'duration_seconds': round(duration, 2)}
    )

    return {
        'statusCode': 200,
        'body': json.dumps({
            'message': f"{command} completed successfully",
            'command': command,
            'result': result,
            'duration_seconds': round(duration, 2)
        })
    }
