"""Business hours gate."""

from collections.abc import Collection
from datetime import datetime, time
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import structlog

from zapdesk.core.config import settings
from zapdesk.models import BusinessProfile

logger = structlog.get_logger()


def is_open(
    now: datetime,
    working_days: Collection[int],
    start: time | None,
    end: time | None,
) -> bool:
    """Check whether ``now`` falls inside the configured opening hours.

    Weekdays use ``datetime.weekday()`` numbering (0 = Monday). The time of
    day is compared at minute resolution against ``[start, end]`` inclusive;
    a window with ``start > end`` runs past midnight. Missing bounds mean the
    business never closes on a working day.
    """
    if now.weekday() not in working_days:
        return False

    if start is None or end is None:
        return True

    current = now.time().replace(second=0, microsecond=0)
    start = start.replace(second=0, microsecond=0)
    end = end.replace(second=0, microsecond=0)

    if start <= end:
        return start <= current <= end
    return current >= start or current <= end


class BusinessHoursGate:
    """Resolves the current time in the tenant's timezone and applies ``is_open``."""

    def __init__(self, default_timezone: str | None = None) -> None:
        self.default_timezone = default_timezone or settings.default_timezone

    def _zone(self, profile: BusinessProfile) -> ZoneInfo:
        try:
            return ZoneInfo(profile.timezone or self.default_timezone)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning("Unknown timezone, using default", timezone=profile.timezone)
            return ZoneInfo(self.default_timezone)

    def is_open_for(self, profile: BusinessProfile, now: datetime | None = None) -> bool:
        """Check the profile's schedule. Naive ``now`` values are taken as local time."""
        zone = self._zone(profile)
        if now is None:
            local_now = datetime.now(zone)
        elif now.tzinfo is None:
            local_now = now
        else:
            local_now = now.astimezone(zone)

        return is_open(
            local_now,
            profile.working_days,
            profile.business_hours_start,
            profile.business_hours_end,
        )
