# src/cache/datestamp.py — v1
"""Date stamp for cache keys.

One routine on every host: the date is taken from the clock in the runner's
timezone and formatted with ``date.isoformat()``.
"""

from __future__ import annotations

from datetime import datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from cacheplan.core.models import DateStamp


def current_date_stamp(
    now: datetime | None = None,
    tz: str | None = None,
) -> DateStamp:
    """Return today's date stamp.

    Args:
        now: Clock override. Naive values are taken as host-local time.
        tz: IANA timezone name. None uses the host's local timezone.

    Returns:
        DateStamp formatted as ``YYYY-MM-DD``.

    Raises:
        ValueError: If *tz* is not a known timezone.
    """
    zone = _resolve_zone(tz)
    moment = now if now is not None else datetime.now(zone)
    if zone is not None:
        moment = moment.astimezone(zone)
    return DateStamp.from_date(moment.date())


def parse_date_stamp(text: str) -> DateStamp:
    """Validate an externally supplied ``YYYY-MM-DD`` stamp."""
    return DateStamp(value=text.strip())


def _resolve_zone(tz: str | None) -> ZoneInfo | None:
    if not tz:
        return None
    try:
        return ZoneInfo(tz)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValueError(f"Unknown timezone: {tz!r}") from e
