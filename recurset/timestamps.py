"""
Date-time helpers shared by rules, queries and the recurrence set.

Covers instant keying (millisecond epoch values), timezone lookup with
DST-safe localization, and the compact RFC-5545 timestamp format used on
DTSTART, RDATE and EXDATE lines.
"""

import re
import calendar
import logging
from datetime import datetime, timedelta
from typing import Iterable, Optional

import pytz
from dateutil import tz

from .errors import RuleParseError, RuleTimezoneError

logger = logging.getLogger(__name__)

_TIMESTAMP_PATTERN = re.compile(
    r'^(\d{4})(\d{2})(\d{2})(?:T(\d{2})(\d{2})(\d{2})(Z)?)?$'
)


def is_valid_datetime(value) -> bool:
    """True for datetime instances. Plain dates are rejected."""
    return isinstance(value, datetime)


def is_utc_tzid(tzid: Optional[str]) -> bool:
    """True when no zone is given or the zone is literally UTC."""
    return not tzid or tzid.upper() == 'UTC'


def resolve_timezone(tzid: str):
    """Look up a pytz timezone by IANA name.

    Raises:
        RuleTimezoneError: If the name is unknown
    """
    try:
        return pytz.timezone(tzid)
    except pytz.exceptions.UnknownTimeZoneError:
        raise RuleTimezoneError(f"Unknown timezone: {tzid}")


def rule_timezone(tzid: Optional[str]):
    """tzinfo suitable for dateutil rule expansion.

    dateutil combines dates and times with the dtstart tzinfo directly, which
    only keeps wall-clock semantics with dateutil's own zones.
    """
    if is_utc_tzid(tzid):
        return tz.UTC
    resolve_timezone(tzid)
    zone = tz.gettz(tzid)
    if zone is None:
        raise RuleTimezoneError(f"Unknown timezone: {tzid}")
    return zone


def safe_localize(dt: datetime, zone) -> datetime:
    """Safely localize datetime, handling DST transitions.

    Args:
        dt: Naive datetime to localize
        zone: Target pytz timezone

    Returns:
        Timezone-aware datetime
    """
    try:
        return zone.localize(dt, is_dst=None)
    except pytz.AmbiguousTimeError:
        logger.warning(f"Ambiguous time during DST fall-back, using standard time: {dt}")
        return zone.localize(dt, is_dst=False)
    except pytz.NonExistentTimeError:
        logger.warning(f"Non-existent time during DST spring-forward, advancing 1 hour: {dt}")
        return zone.localize(dt + timedelta(hours=1), is_dst=True)


def epoch_ms(dt: datetime, tzid: Optional[str] = None) -> int:
    """Millisecond epoch value of an instant.

    Naive values are read in ``tzid`` when it names a non-UTC zone and as
    UTC otherwise.
    """
    if dt.tzinfo is None or dt.utcoffset() is None:
        if not is_utc_tzid(tzid):
            dt = safe_localize(dt.replace(tzinfo=None), resolve_timezone(tzid))
        else:
            return calendar.timegm(dt.timetuple()) * 1000 + dt.microsecond // 1000
    return calendar.timegm(dt.utctimetuple()) * 1000 + dt.microsecond // 1000


def _compact(dt: datetime) -> str:
    return (
        f"{dt.year:04d}{dt.month:02d}{dt.day:02d}"
        f"T{dt.hour:02d}{dt.minute:02d}{dt.second:02d}"
    )


def format_timestamp(dt: datetime, utc: bool = True, tzid: Optional[str] = None) -> str:
    """Render ``YYYYMMDDTHHMMSS``, with a trailing ``Z`` in UTC form.

    In local form aware values are first converted to ``tzid``; naive values
    are already local and are written as they are.
    """
    aware = dt.tzinfo is not None and dt.utcoffset() is not None
    if utc:
        if aware:
            dt = dt.astimezone(pytz.utc)
        return _compact(dt) + 'Z'
    if aware and tzid:
        dt = dt.astimezone(resolve_timezone(tzid))
    return _compact(dt)


def parse_timestamp(value: str, tzid: Optional[str] = None) -> datetime:
    """Parse a compact timestamp.

    ``Z`` values are UTC, values with a ``tzid`` carry that zone, anything
    else stays naive. Date-only values (``VALUE=DATE``) become midnight.

    Raises:
        RuleParseError: If the value is not a compact timestamp
    """
    match = _TIMESTAMP_PATTERN.match(value.strip())
    if not match:
        raise RuleParseError(f"Invalid timestamp: {value!r}")

    year, month, day, hour, minute, second, zulu = match.groups()
    try:
        parsed = datetime(
            int(year), int(month), int(day),
            int(hour or 0), int(minute or 0), int(second or 0)
        )
    except ValueError as e:
        raise RuleParseError(f"Invalid timestamp {value!r}: {e}") from e

    if zulu:
        return parsed.replace(tzinfo=tz.UTC)
    if tzid:
        return parsed.replace(tzinfo=rule_timezone(tzid))
    return parsed


def format_date_list(name: str, dates: Iterable[datetime], tzid: Optional[str]) -> str:
    """Render a DTSTART / RDATE / EXDATE line for one or more dates."""
    is_utc = is_utc_tzid(tzid)
    header = f"{name}:" if is_utc else f"{name};TZID={tzid}:"

    return header + ','.join(format_timestamp(d, utc=is_utc, tzid=tzid) for d in dates)
