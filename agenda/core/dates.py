"""
Date filter vocabulary and ranges.

Listing URLs filter by a fixed set of relative-date slugs. "tots" is the
"all dates" sentinel and never appears in a canonical URL.

Ranges are computed in the site's local time zone (Europe/Madrid).
"""

import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Optional
from zoneinfo import ZoneInfo

LOCAL_TZ = ZoneInfo("Europe/Madrid")

ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class DateSlug(str, Enum):
    ALL = "tots"
    TODAY = "avui"
    TOMORROW = "dema"
    WEEK = "setmana"
    WEEKEND = "cap-de-setmana"


DATE_SLUGS = frozenset(slug.value for slug in DateSlug)
DEFAULT_FILTER_VALUE = DateSlug.ALL.value


@dataclass(frozen=True)
class DateRange:
    start: datetime
    end: datetime


def is_valid_date_slug(value: Optional[str]) -> bool:
    return value in DATE_SLUGS


def to_date_slug(value: Optional[str]) -> Optional[DateSlug]:
    """DateSlug for a raw value, None when it is not in the vocabulary."""
    if value in DATE_SLUGS:
        return DateSlug(value)
    return None


def is_calendar_date(value: Optional[str]) -> bool:
    """True for an existing YYYY-MM-DD calendar date."""
    if not value or not ISO_DATE_RE.match(value):
        return False
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


def _end_of_day(moment: datetime) -> datetime:
    return (moment + timedelta(days=1)).replace(hour=0, minute=0, second=0, microsecond=0)


def _coming_sunday(moment: datetime) -> datetime:
    # weekday(): Monday=0 ... Sunday=6
    return moment + timedelta(days=(6 - moment.weekday()))


def date_range_for(slug: DateSlug, now: Optional[datetime] = None) -> Optional[DateRange]:
    """
    Concrete range for a relative-date slug.

    - avui: now until midnight
    - dema: same time tomorrow until the following midnight
    - setmana: now until the end of Sunday
    - cap-de-setmana: Friday 06:00 (or now when already in the weekend)
      until the end of Sunday
    - tots: None (unbounded)
    """
    now = now or datetime.now(LOCAL_TZ)

    if slug == DateSlug.ALL:
        return None
    if slug == DateSlug.TODAY:
        return DateRange(now, _end_of_day(now))
    if slug == DateSlug.TOMORROW:
        start = now + timedelta(days=1)
        return DateRange(start, _end_of_day(start))
    if slug == DateSlug.WEEK:
        return DateRange(now, _end_of_day(_coming_sunday(now)))

    end = _end_of_day(_coming_sunday(now))
    if now.weekday() >= 5:  # Saturday or Sunday
        return DateRange(now, end)
    friday = (now + timedelta(days=(4 - now.weekday()))).replace(
        hour=6, minute=0, second=0, microsecond=0
    )
    return DateRange(max(now, friday), end)


def date_range_for_day(value: str) -> DateRange:
    """Whole-day range for a YYYY-MM-DD calendar date."""
    start = datetime.combine(date.fromisoformat(value), datetime.min.time(), tzinfo=LOCAL_TZ)
    return DateRange(start, start + timedelta(days=1))
