import hashlib
from datetime import datetime, timezone
from typing import Optional


def _timestamp(value: Optional[datetime]) -> str:
    """UTC ISO-8601 with millisecond precision, e.g. 2024-01-05T09:30:00.000Z."""
    if value is None:
        return ""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def generate_content_hash(url: str, title: str, published_at: Optional[datetime] = None) -> str:
    """SHA-256 fingerprint of a post, used as its deduplication key.

    url and title are trimmed and lowercased so incidental whitespace or case
    differences between feed refreshes map to the same hash.
    """
    content = "|".join([url.strip().lower(), title.strip().lower(), _timestamp(published_at)])
    return hashlib.sha256(content.encode("utf-8")).hexdigest()
