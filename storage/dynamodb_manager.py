"""DynamoDB manager for event storage operations."""
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import boto3
from boto3.dynamodb.conditions import Attr
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from errors import StorageConnectionError, StorageError, StorageQueryError
from processor.models import Event, SyncResult
from processor.retention import RETENTION_WINDOW, retention_cutoff
from processor.sanitizer import clean_url

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = '%Y-%m-%dT%H:%M:%SZ'

SAVE_ADDED = 'added'
SAVE_UPDATED = 'updated'
SAVE_UNCHANGED = 'unchanged'


def format_timestamp(value: datetime) -> str:
    """Format a datetime as a sortable UTC string."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.strftime(TIMESTAMP_FORMAT)


def parse_timestamp(value: str) -> datetime:
    return datetime.strptime(value, TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)


def format_lower_bound(value: datetime) -> str:
    """
    Format an inclusive lower bound, rounding a fractional second up.

    Stored timestamps have whole-second precision, so a stored value is
    >= value exactly when it is >= the next whole second.
    """
    if value.microsecond:
        value = value.replace(microsecond=0) + timedelta(seconds=1)
    return format_timestamp(value)


def _error_code(error: ClientError) -> str:
    return error.response.get('Error', {}).get('Code', '')


class DynamoDBManager:
    """Manager for DynamoDB operations."""

    BATCH_SIZE = 25  # DynamoDB batch operation limit

    def __init__(
        self,
        table_name: str,
        region_name: str = 'us-east-1',
        endpoint_url: Optional[str] = None,
        max_pool_connections: int = 5,
        timeout: int = 10,
        retention_window: timedelta = RETENTION_WINDOW
    ):
        """
        Initialize DynamoDB client and table reference.

        Args:
            table_name: Name of the DynamoDB table
            region_name: AWS region
            endpoint_url: Alternate endpoint (e.g. DynamoDB Local)
            max_pool_connections: Size of the HTTP connection pool
            timeout: Connect and read timeout in seconds
            retention_window: How long after its end an event stays visible

        Raises:
            StorageConnectionError: If the client cannot be created
        """
        self.table_name = table_name
        self.retention_window = retention_window

        config = Config(
            max_pool_connections=max_pool_connections,
            connect_timeout=timeout,
            read_timeout=timeout,
            retries={'max_attempts': 1, 'mode': 'standard'}
        )
        try:
            self.dynamodb = boto3.resource(
                'dynamodb',
                region_name=region_name,
                endpoint_url=endpoint_url,
                config=config
            )
        except (BotoCoreError, ValueError) as e:
            raise StorageConnectionError(
                f"Failed to create DynamoDB client: {e}"
            ) from e

        self.table = self.dynamodb.Table(table_name)
        logger.info(f"Initialized DynamoDBManager for table: {table_name}")

    @classmethod
    def from_settings(cls, settings) -> 'DynamoDBManager':
        return cls(
            table_name=settings.table_name,
            region_name=settings.region_name,
            endpoint_url=settings.dynamodb_endpoint_url,
            max_pool_connections=settings.max_pool_connections,
            timeout=settings.timeout_seconds,
            retention_window=timedelta(days=settings.retention_days)
        )

    def ensure_table(self) -> bool:
        """
        Create the events table if it does not exist yet.

        Safe to call on every start.

        Returns:
            True if the table was created, False if it already existed
        """
        try:
            self.table.load()
            return False
        except ClientError as e:
            if _error_code(e) != 'ResourceNotFoundException':
                raise StorageConnectionError(
                    f"Error describing table {self.table_name}: {e}"
                ) from e
        except BotoCoreError as e:
            raise StorageConnectionError(
                f"Error describing table {self.table_name}: {e}"
            ) from e

        logger.info(f"Creating DynamoDB table: {self.table_name}")
        try:
            self.table = self.dynamodb.create_table(
                TableName=self.table_name,
                KeySchema=[
                    {'AttributeName': 'event_uid', 'KeyType': 'HASH'}
                ],
                AttributeDefinitions=[
                    {'AttributeName': 'event_uid', 'AttributeType': 'S'}
                ],
                BillingMode='PAY_PER_REQUEST'
            )
            self.table.wait_until_exists()
        except (BotoCoreError, ClientError) as e:
            raise StorageConnectionError(
                f"Error creating table {self.table_name}: {e}"
            ) from e

        logger.info(f"Created DynamoDB table: {self.table_name}")
        return True

    def save_event(self, event: Event) -> str:
        """
        Upsert a single event keyed by event_uid.

        A new row is inserted with every field. An existing row is left
        untouched except for api_id, which is filled only when the stored
        row has none.

        Args:
            event: Event to store

        Returns:
            'added', 'updated' or 'unchanged'

        Raises:
            StorageQueryError: If DynamoDB rejects the request
            StorageConnectionError: If DynamoDB cannot be reached
        """
        item = self._event_to_item(event)
        try:
            self.table.put_item(
                Item=item,
                ConditionExpression='attribute_not_exists(event_uid)'
            )
            return SAVE_ADDED
        except ClientError as e:
            if _error_code(e) != 'ConditionalCheckFailedException':
                raise StorageQueryError(
                    f"Error saving event {event.event_uid}: {e}"
                ) from e
        except BotoCoreError as e:
            raise StorageConnectionError(
                f"Error saving event {event.event_uid}: {e}"
            ) from e

        if not event.api_id:
            return SAVE_UNCHANGED

        try:
            self.table.update_item(
                Key={'event_uid': event.event_uid},
                UpdateExpression='SET api_id = :api_id',
                ConditionExpression='attribute_not_exists(api_id)',
                ExpressionAttributeValues={':api_id': event.api_id}
            )
            return SAVE_UPDATED
        except ClientError as e:
            if _error_code(e) == 'ConditionalCheckFailedException':
                return SAVE_UNCHANGED
            raise StorageQueryError(
                f"Error updating api_id for {event.event_uid}: {e}"
            ) from e
        except BotoCoreError as e:
            raise StorageConnectionError(
                f"Error updating api_id for {event.event_uid}: {e}"
            ) from e

    def save_events(self, events: List[Event]) -> SyncResult:
        """
        Upsert events one at a time.

        A failing event is logged and counted; the rest are still saved.

        Args:
            events: Events to store

        Returns:
            SyncResult where applied counts successful upserts, whether or
            not they changed a row
        """
        logger.info(f"Storing {len(events)} events in DynamoDB")
        result = SyncResult()

        for event in events:
            try:
                outcome = self.save_event(event)
            except StorageError as e:
                logger.error(f"Failed to save event '{event.summary}': {e}")
                result.failed += 1
                result.errors.append(str(e))
                continue

            result.applied += 1
            if outcome == SAVE_ADDED:
                result.added += 1
            elif outcome == SAVE_UPDATED:
                result.updated += 1

        logger.info(
            f"Store complete: {result.applied} applied, {result.added} added, "
            f"{result.updated} updated, {result.failed} failed"
        )
        return result

    def get_all_events(self, now: Optional[datetime] = None) -> List[Event]:
        """
        Retrieve all retained events.

        Args:
            now: Reference time for the retention window

        Returns:
            Events that ended no earlier than the retention cutoff, ordered
            by start
        """
        cutoff = format_lower_bound(retention_cutoff(now, self.retention_window))
        items = self._scan(FilterExpression=Attr('end_time').gte(cutoff))
        return self._items_to_events(items)

    def get_events_in_range(
        self,
        start_date: datetime,
        end_date: datetime,
        now: Optional[datetime] = None
    ) -> List[Event]:
        """
        Retrieve retained events starting between two instants (inclusive).

        Args:
            start_date: Earliest start; raised to the retention cutoff
            end_date: Latest start
            now: Reference time for the retention window

        Returns:
            Matching events ordered by start
        """
        cutoff = retention_cutoff(now, self.retention_window)
        effective_start = max(start_date, cutoff)

        items = self._scan(
            FilterExpression=(
                Attr('start_time').between(
                    format_lower_bound(effective_start),
                    format_timestamp(end_date)
                ) &
                Attr('end_time').gte(format_lower_bound(cutoff))
            )
        )
        return self._items_to_events(items)

    def get_event_count(self, now: Optional[datetime] = None) -> int:
        """Count retained events."""
        cutoff = format_lower_bound(retention_cutoff(now, self.retention_window))
        scan_kwargs = {
            'FilterExpression': Attr('end_time').gte(cutoff),
            'Select': 'COUNT'
        }

        count = 0
        try:
            response = self.table.scan(**scan_kwargs)
            count += response.get('Count', 0)
            while 'LastEvaluatedKey' in response:
                response = self.table.scan(
                    ExclusiveStartKey=response['LastEvaluatedKey'],
                    **scan_kwargs
                )
                count += response.get('Count', 0)
        except ClientError as e:
            raise StorageQueryError(f"Error counting events: {e}") from e
        except BotoCoreError as e:
            raise StorageConnectionError(f"Error counting events: {e}") from e

        return count

    def clear_all_events(self) -> int:
        """
        Delete every row, retained or not.

        Returns:
            Number of rows deleted
        """
        event_uids = [
            item['event_uid']
            for item in self._scan(ProjectionExpression='event_uid')
        ]
        if not event_uids:
            return 0

        logger.info(f"Deleting {len(event_uids)} events from DynamoDB")
        deleted = 0

        for i in range(0, len(event_uids), self.BATCH_SIZE):
            batch = event_uids[i:i + self.BATCH_SIZE]
            try:
                with self.table.batch_writer() as writer:
                    for event_uid in batch:
                        writer.delete_item(Key={'event_uid': event_uid})
                deleted += len(batch)
            except ClientError as e:
                raise StorageQueryError(
                    f"Error deleting batch {i // self.BATCH_SIZE + 1}: {e}"
                ) from e
            except BotoCoreError as e:
                raise StorageConnectionError(
                    f"Error deleting batch {i // self.BATCH_SIZE + 1}: {e}"
                ) from e

        logger.info(f"Successfully deleted {deleted} events")
        return deleted

    def _scan(self, **scan_kwargs) -> List[Dict[str, Any]]:
        try:
            response = self.table.scan(**scan_kwargs)
            items = response.get('Items', [])

            while 'LastEvaluatedKey' in response:
                response = self.table.scan(
                    ExclusiveStartKey=response['LastEvaluatedKey'],
                    **scan_kwargs
                )
                items.extend(response.get('Items', []))
        except ClientError as e:
            logger.error(f"Error scanning DynamoDB table: {e}")
            raise StorageQueryError(f"Error scanning {self.table_name}: {e}") from e
        except BotoCoreError as e:
            logger.error(f"Error reaching DynamoDB: {e}")
            raise StorageConnectionError(
                f"Error scanning {self.table_name}: {e}"
            ) from e

        return items

    def _items_to_events(self, items: List[Dict[str, Any]]) -> List[Event]:
        events = []
        for item in items:
            event = self._item_to_event(item)
            if event:
                events.append(event)
        events.sort(key=lambda event: event.start)
        return events

    def _item_to_event(self, item: dict) -> Optional[Event]:
        """
        Convert DynamoDB item to Event object.

        The URL is cleaned again on the way out.

        Returns:
            Event object or None if conversion fails
        """
        try:
            return Event(
                summary=item['summary'],
                description=item.get('description'),
                location=item.get('location'),
                start=parse_timestamp(item['start_time']),
                end=parse_timestamp(item['end_time']),
                url=clean_url(item.get('url')),
                event_uid=item['event_uid'],
                api_id=item.get('api_id')
            )
        except (KeyError, ValueError) as e:
            logger.warning(f"Failed to convert item to Event: {e}")
            return None

    def _event_to_item(self, event: Event) -> dict:
        item = {
            'event_uid': event.event_uid,
            'summary': event.summary,
            'start_time': format_timestamp(event.start),
            'end_time': format_timestamp(event.end),
            'created_at': format_timestamp(datetime.now(timezone.utc))
        }

        # Add optional fields if present
        if event.description is not None:
            item['description'] = event.description
        if event.location is not None:
            item['location'] = event.location
        if event.url:
            item['url'] = clean_url(event.url)
        if event.api_id:
            item['api_id'] = event.api_id

        return item
