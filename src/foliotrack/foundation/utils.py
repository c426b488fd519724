"""Generic helpers shared across foliotrack.

Slugs for stable identities and UTC timestamp helpers for the storage boundary.
"""

import re
from datetime import UTC, datetime
from pathlib import PurePath


def slugify(name: str) -> str:
    """Convert a display name to a filesystem-safe slug.

    Args:
        name: Human-readable name

    Returns:
        Lowercase slug with hyphens
    """
    slug = name.lower().strip()
    slug = re.sub(r"[^a-z0-9]+", "-", slug)
    slug = slug.strip("-")
    return slug or "unnamed"


def path_slug(relative: str | PurePath) -> str:
    """Slug for a relative path, independent of the platform separator.

    Example:
        >>> path_slug("Clients/My App")
        'clients-my-app'
    """
    parts = relative.parts if isinstance(relative, PurePath) else PurePath(relative).parts
    return slugify("-".join(parts))


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


def to_iso(dt: datetime) -> str:
    """Serialize a datetime as ISO-8601, assuming UTC for naive values."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.isoformat()


def from_iso(value: str) -> datetime:
    """Parse an ISO-8601 timestamp, assuming UTC for naive values."""
    dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt
