"""
Single recurrence rule adapter.

Wraps a dateutil rrule so it can be owned by a recurrence set: canonical
string form for equality, deep cloning, the options the rule was originally
configured with, and query-driven lazy occurrence iteration. Expansion of
frequencies and BYxxx fields is left entirely to dateutil.
"""

import re
import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterator, List, Optional, Union

from dateutil import tz
from dateutil.rrule import rrule, YEARLY, MONTHLY, WEEKLY, DAILY, HOURLY, MINUTELY, SECONDLY

from .config import DEFAULT_MAX_ITERATIONS
from .errors import InvalidArgumentType, InvalidDateRange, IterationLimitExceeded
from .query import Query, QueryResult
from .timestamps import (
    format_date_list,
    format_timestamp,
    is_valid_datetime,
    rule_timezone,
)

logger = logging.getLogger(__name__)

FREQUENCIES = {
    'YEARLY': YEARLY,
    'MONTHLY': MONTHLY,
    'WEEKLY': WEEKLY,
    'DAILY': DAILY,
    'HOURLY': HOURLY,
    'MINUTELY': MINUTELY,
    'SECONDLY': SECONDLY,
}

_UNTIL_PATTERN = re.compile(r'UNTIL=\d{8}T\d{6}Z?')


@dataclass(frozen=True)
class RuleOptions:
    """Options a rule was configured with, before any defaulting."""

    dtstart: Optional[datetime] = None
    tzid: Optional[str] = None


def normalize_start(dtstart: Optional[datetime], tzid: Optional[str]) -> datetime:
    """Express dtstart the way rules are expanded.

    Rules always expand aware: in the rule's own zone when it has a tzid,
    otherwise in UTC. A missing dtstart defaults to the current second.
    """
    zone = rule_timezone(tzid)
    if dtstart is None:
        return datetime.now(zone).replace(microsecond=0)
    if dtstart.tzinfo is None or dtstart.utcoffset() is None:
        return dtstart.replace(tzinfo=zone)
    return dtstart.astimezone(zone)


def _normalize_until(until):
    if is_valid_datetime(until):
        if until.tzinfo is None or until.utcoffset() is None:
            return until.replace(tzinfo=tz.UTC)
        return until.astimezone(tz.UTC)
    if isinstance(until, date):
        return datetime(until.year, until.month, until.day, tzinfo=tz.UTC)
    if until is None:
        return None
    raise InvalidArgumentType(f"{until!r} is not a valid UNTIL value")


def _frequency(freq: Union[int, str]) -> int:
    if isinstance(freq, str):
        try:
            return FREQUENCIES[freq.upper()]
        except KeyError:
            raise InvalidArgumentType(f"Invalid FREQ: {freq}")
    return freq


class RecurrenceRule:
    """A single RFC-5545 recurrence rule.

    Args:
        freq: dateutil frequency constant or its RFC name ('DAILY', ...)
        dtstart: First occurrence; naive values are read in ``tzid`` (or UTC)
        tzid: IANA zone the rule's wall clock follows
        **options: dateutil rrule keyword options (count, until, interval,
            byweekday, bymonthday, ...)

    Raises:
        InvalidArgumentType: If dateutil rejects the options
        RuleTimezoneError: If ``tzid`` is unknown
    """

    def __init__(self, freq: Union[int, str], dtstart: Optional[datetime] = None,
                 tzid: Optional[str] = None, **options):
        if dtstart is not None and not is_valid_datetime(dtstart):
            raise InvalidArgumentType(f"{dtstart!r} is not a datetime instance")

        start = normalize_start(dtstart, tzid)
        if 'until' in options:
            options['until'] = _normalize_until(options['until'])

        try:
            rule = rrule(_frequency(freq), dtstart=start, **options)
        except (TypeError, ValueError) as e:
            raise InvalidArgumentType(f"Invalid rule options {options!r}: {e}") from e

        self._bind(rule, dtstart, tzid)

    @classmethod
    def from_rrule(cls, rule: rrule, dtstart: Optional[datetime] = None,
                   tzid: Optional[str] = None) -> "RecurrenceRule":
        """Wrap an already built dateutil rule.

        ``dtstart`` records whether the rule was configured with an explicit
        start; pass None for rules that defaulted to "now".
        """
        if not isinstance(rule, rrule):
            raise InvalidArgumentType(f"{rule!r} is not a dateutil rrule instance")
        instance = cls.__new__(cls)
        instance._bind(rule, dtstart, tzid)
        return instance

    def _bind(self, rule: rrule, dtstart: Optional[datetime], tzid: Optional[str]):
        self._rule = rule
        self._tzid = tzid
        self.original_options = RuleOptions(dtstart=dtstart, tzid=tzid)

    @property
    def dtstart(self) -> datetime:
        return self._rule._dtstart

    @property
    def tzid(self) -> Optional[str]:
        return self._tzid

    @property
    def is_finite(self) -> bool:
        """True when COUNT or UNTIL terminates the rule."""
        return self._rule._count is not None or self._rule._until is not None

    def _rrule_line(self) -> str:
        line = str(self._rule).split('\n')[-1]
        until = self._rule._until
        if until is not None:
            line = _UNTIL_PATTERN.sub('UNTIL=' + format_timestamp(until, utc=True), line)
        return line

    def to_canonical_string(self) -> str:
        lines = []
        if self.original_options.dtstart is not None:
            lines.append(format_date_list("DTSTART", [self._rule._dtstart], self._tzid))
        lines.append(self._rrule_line())
        return '\n'.join(lines)

    def __str__(self) -> str:
        return self.to_canonical_string()

    def __repr__(self) -> str:
        return f"RecurrenceRule({self.to_canonical_string()!r})"

    def __eq__(self, other) -> bool:
        if not isinstance(other, RecurrenceRule):
            return NotImplemented
        return self.to_canonical_string() == other.to_canonical_string()

    def __hash__(self) -> int:
        return hash(self.to_canonical_string())

    def clone(self) -> "RecurrenceRule":
        return RecurrenceRule.from_rrule(
            self._rule.replace(),
            dtstart=self.original_options.dtstart,
            tzid=self._tzid,
        )

    def occurrences(self, query: Query) -> Iterator[datetime]:
        """Lazily yield occurrences inside the query range, ascending.

        Stops once the query's upper bound is passed; limits and the
        single-result semantics of BEFORE / AFTER are left to the consumer.
        """
        for occurrence in self._rule:
            key = query.key(occurrence)
            if query.too_late(key):
                return
            if query.too_early(key):
                continue
            yield occurrence

    def _query(self, query: Query, max_iterations: int = DEFAULT_MAX_ITERATIONS):
        guarded = query.is_unbounded and not self.is_finite
        result = QueryResult(query)
        for evaluated, occurrence in enumerate(self.occurrences(query), 1):
            if guarded and evaluated > max_iterations:
                logger.warning(f"Iteration limit of {max_iterations} reached for rule: {self._rrule_line()}")
                raise IterationLimitExceeded(
                    f"Rule {self._rrule_line()} produced more than {max_iterations} occurrences without a limit"
                )
            if not result.accept(occurrence):
                break
        return result.value()

    def all(self, limit: Optional[int] = None,
            max_iterations: int = DEFAULT_MAX_ITERATIONS) -> List[datetime]:
        return self._query(Query.all(limit=limit), max_iterations)

    def between(self, after: datetime, before: datetime, inc: bool = False) -> List[datetime]:
        if not is_valid_datetime(after) or not is_valid_datetime(before):
            raise InvalidDateRange("Invalid date passed in to RecurrenceRule.between")
        return self._query(Query.between(after, before, inc=inc))

    def before(self, dt: datetime, inc: bool = False) -> Optional[datetime]:
        if not is_valid_datetime(dt):
            raise InvalidDateRange("Invalid date passed in to RecurrenceRule.before")
        return self._query(Query.before(dt, inc=inc))

    def after(self, dt: datetime, inc: bool = False) -> Optional[datetime]:
        if not is_valid_datetime(dt):
            raise InvalidDateRange("Invalid date passed in to RecurrenceRule.after")
        return self._query(Query.after(dt, inc=inc))
