"""Cleaning of URLs and slugs taken from feed text."""
import re
from typing import Optional

# Luma descriptions append the venue after the link as "Address:\n..."
_ADDRESS_MARKER = re.compile(r'address:', re.IGNORECASE)
_CONTROL_CHARS = re.compile(r'[\n\r\t]')
_HTTP_RUN = re.compile(r'http\S*')


def clean_url(text: Optional[str]) -> Optional[str]:
    """
    Clean a URL (or slug) taken from untrusted feed text.

    Strips newline, carriage-return and tab characters, truncates at the
    first case-insensitive "address:" marker and trims surrounding
    whitespace. Applying it twice gives the same result as once.

    Args:
        text: Raw URL text, or None

    Returns:
        Cleaned text, or None if text is None
    """
    if text is None:
        return None

    cleaned = _CONTROL_CHARS.sub('', text)
    marker = _ADDRESS_MARKER.search(cleaned)
    if marker:
        cleaned = cleaned[:marker.start()]
    return cleaned.strip()


def extract_url_from_text(text: Optional[str]) -> Optional[str]:
    """Return the first http-prefixed run of text, bounded by whitespace."""
    if not text:
        return None
    match = _HTTP_RUN.search(text)
    if not match:
        return None
    return match.group(0)


def extract_slug(url: Optional[str], domain: str = 'lu.ma') -> Optional[str]:
    """
    Derive the Luma slug from an event URL.

    Handles both https://lu.ma/<slug> and https://lu.ma/e/<slug>.

    Args:
        url: Event URL, possibly dirty
        domain: Source platform domain the URL must belong to

    Returns:
        Slug string, or None if the URL is foreign or has no slug
    """
    cleaned = clean_url(url)
    if not cleaned or domain not in cleaned:
        return None

    path = cleaned.split('?', 1)[0].split('#', 1)[0]
    if '/e/' in path:
        slug = path.split('/e/', 1)[1].split('/', 1)[0]
    else:
        slug = path.rsplit('/', 1)[-1]

    slug = slug.strip()
    if not slug or slug == domain or domain in slug:
        return None
    return slug
