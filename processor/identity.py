"""Deterministic, content-derived event identity."""
import hashlib
import re
from datetime import datetime
from typing import Iterable, List, Optional

from processor.models import Event

# Bump when the hashed field set changes: every stored event_uid changes too.
IDENTITY_VERSION = 1
IDENTITY_FIELDS = ('summary', 'start', 'description', 'location')
HASH_HEX_LENGTH = 16

_WHITESPACE = re.compile(r'\s+')


def normalize_summary(summary: str) -> str:
    """Collapse whitespace runs in a summary to single underscores."""
    return _WHITESPACE.sub('_', summary.strip())


def generate_event_uid(
    summary: str,
    start: datetime,
    description: Optional[str] = None,
    location: Optional[str] = None
) -> str:
    """
    Generate the canonical identifier for an event.

    The summary, start epoch seconds, description and location are fed, in
    that order, into a SHA-256 digest. Each field is written with a presence
    marker and a length prefix, so a missing field hashes differently from
    an empty one and fields cannot bleed into each other.

    Args:
        summary: Event summary
        start: Event start (timezone-aware UTC)
        description: Optional description
        location: Optional location

    Returns:
        Identifier of the form <summary>-<epoch seconds>-<hash hex>
    """
    normalized = normalize_summary(summary)
    epoch = int(start.timestamp())

    hash_obj = hashlib.sha256(f"v{IDENTITY_VERSION}".encode('utf-8'))
    for value in (normalized, str(epoch), description, location):
        if value is None:
            hash_obj.update(b'\x00')
            continue
        encoded = value.encode('utf-8')
        hash_obj.update(b'\x01')
        hash_obj.update(len(encoded).to_bytes(8, 'big'))
        hash_obj.update(encoded)

    digest = hash_obj.hexdigest()[:HASH_HEX_LENGTH]
    return f"{normalized}-{epoch}-{digest}"


def assign_identity(event: Event) -> Event:
    """Stamp event_uid on a freshly parsed event; stored events keep theirs."""
    if not event.event_uid:
        event.event_uid = generate_event_uid(
            summary=event.summary,
            start=event.start,
            description=event.description,
            location=event.location
        )
    return event


def assign_identities(events: Iterable[Event]) -> List[Event]:
    return [assign_identity(event) for event in events]
