"""Shared fixtures for the test suite."""
from datetime import datetime, timedelta, timezone

import boto3
import pytest
from moto import mock_aws

from ics_builders import build_calendar, build_vevent, ical_timestamp
from storage.dynamodb_manager import DynamoDBManager

TABLE_NAME = 'test-luma-events'


@pytest.fixture(autouse=True)
def aws_credentials(monkeypatch):
    """Fake AWS credentials so boto3 never touches a real account."""
    monkeypatch.setenv('AWS_ACCESS_KEY_ID', 'testing')
    monkeypatch.setenv('AWS_SECRET_ACCESS_KEY', 'testing')
    monkeypatch.setenv('AWS_SECURITY_TOKEN', 'testing')
    monkeypatch.setenv('AWS_SESSION_TOKEN', 'testing')
    monkeypatch.setenv('AWS_DEFAULT_REGION', 'us-east-1')


@pytest.fixture
def now():
    """Fixed reference time, truncated to whole seconds."""
    return datetime.now(timezone.utc).replace(microsecond=0)


@pytest.fixture
def dynamodb_table():
    """Create a mock DynamoDB table for testing."""
    with mock_aws():
        dynamodb = boto3.resource('dynamodb', region_name='us-east-1')
        table = dynamodb.create_table(
            TableName=TABLE_NAME,
            KeySchema=[
                {'AttributeName': 'event_uid', 'KeyType': 'HASH'}
            ],
            AttributeDefinitions=[
                {'AttributeName': 'event_uid', 'AttributeType': 'S'}
            ],
            BillingMode='PAY_PER_REQUEST'
        )
        yield table


@pytest.fixture
def dynamodb_manager(dynamodb_table):
    """Create DynamoDBManager instance with mock table."""
    return DynamoDBManager(TABLE_NAME, region_name='us-east-1')


@pytest.fixture
def three_event_feed(now):
    """Feed with one stale, one current and one future event."""
    stale = build_vevent(
        'Stale Meetup',
        ical_timestamp(now - timedelta(days=6)),
        ical_timestamp(now - timedelta(days=5)),
        url='https://lu.ma/stale1'
    )
    current = build_vevent(
        'Current Meetup',
        ical_timestamp(now - timedelta(hours=1)),
        ical_timestamp(now + timedelta(hours=1)),
        description='Join us\\nhttps://lu.ma/current1\\n\\nAddress:\\n1 Main St'
    )
    future = build_vevent(
        'Future Meetup',
        ical_timestamp(now + timedelta(days=10)),
        ical_timestamp(now + timedelta(days=10, hours=2)),
        location='Hall B',
        url='https://lu.ma/e/future1'
    )
    return build_calendar(stale, current, future)
