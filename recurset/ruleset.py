"""
Recurrence set: inclusion / exclusion rules and dates combined into one
ordered, deduplicated occurrence stream.

The set owns its rules and dates. Getters hand out independent copies, so
the uniqueness and ordering of the internal collections cannot be broken
from outside.
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional

from .config import DEFAULT_MAX_ITERATIONS, RecurrenceConfig
from .errors import InvalidArgumentType, InvalidDateRange
from .iterset import iter_set
from .query import Query
from .rruler import parse_rule, parse_set_components
from .rule import RecurrenceRule
from .timestamps import epoch_ms, format_date_list, is_valid_datetime, resolve_timezone

logger = logging.getLogger(__name__)

# Marks a dtstart / tzid that was never set explicitly
_UNSET = object()


def _add_rule(rule: RecurrenceRule, collection: List[RecurrenceRule]) -> bool:
    if not isinstance(rule, RecurrenceRule):
        raise InvalidArgumentType(f"{rule!r} is not a RecurrenceRule instance")

    canonical = rule.to_canonical_string()
    if any(existing.to_canonical_string() == canonical for existing in collection):
        logger.debug(f"Ignoring duplicate rule: {canonical!r}")
        return False

    collection.append(rule)
    return True


def _add_date(date: datetime, collection: List[datetime], tzid: Optional[str]) -> bool:
    if not is_valid_datetime(date):
        raise InvalidArgumentType(f"{date!r} is not a datetime instance")

    key = epoch_ms(date, tzid)
    if any(epoch_ms(existing, tzid) == key for existing in collection):
        logger.debug(f"Ignoring duplicate date: {date.isoformat()}")
        return False

    collection.append(date)
    collection.sort(key=lambda value: epoch_ms(value, tzid))
    return True


class RecurrenceSet:
    """A set of recurrence rules and dates.

    Args:
        cache_enabled: Memoize range queries on trivial sets
        max_iterations: Candidate evaluations allowed for unbounded queries
    """

    def __init__(self, cache_enabled: bool = True, max_iterations: int = DEFAULT_MAX_ITERATIONS):
        self._rrule: List[RecurrenceRule] = []
        self._exrule: List[RecurrenceRule] = []
        self._rdate: List[datetime] = []
        self._exdate: List[datetime] = []

        self._dtstart = _UNSET
        self._tzid = _UNSET

        self._cache_enabled = bool(cache_enabled)
        self._cache: Optional[Dict[tuple, List[datetime]]] = {} if self._cache_enabled else None
        self._max_iterations = max_iterations

    @classmethod
    def from_config(cls, config: RecurrenceConfig) -> "RecurrenceSet":
        return cls(cache_enabled=config.cache_enabled, max_iterations=config.max_iterations)

    @classmethod
    def from_string(cls, text: str, cache_enabled: bool = True) -> "RecurrenceSet":
        """Build a set from its canonical text form."""
        components = parse_set_components(text)
        ruleset = cls(cache_enabled=cache_enabled)

        for rule in components.rrules:
            ruleset.add_inclusion_rule(rule)
        for rule in components.exrules:
            ruleset.add_exclusion_rule(rule)

        # Only pin values the rules do not already resolve to
        if not components.rrules and components.dtstart is not None:
            ruleset.set_dtstart(components.dtstart)
        if components.tzid is not None and ruleset.get_tzid() != components.tzid:
            ruleset.set_tzid(components.tzid)

        for date in components.rdates:
            ruleset.add_inclusion_date(date)
        for date in components.exdates:
            ruleset.add_exclusion_date(date)

        return ruleset

    @property
    def cache_enabled(self) -> bool:
        return self._cache_enabled

    @property
    def max_iterations(self) -> int:
        return self._max_iterations

    # Collections

    def add_inclusion_rule(self, rule: RecurrenceRule) -> None:
        # A new first rule may change the tzid naive dates are keyed in
        if _add_rule(rule, self._rrule) and self._tzid is _UNSET:
            self._rekey_dates()

    def add_exclusion_rule(self, rule: RecurrenceRule) -> None:
        _add_rule(rule, self._exrule)

    def add_inclusion_date(self, date: datetime) -> None:
        _add_date(date, self._rdate, self.get_tzid())

    def add_exclusion_date(self, date: datetime) -> None:
        _add_date(date, self._exdate, self.get_tzid())

    def get_inclusion_rules(self) -> List[RecurrenceRule]:
        return [parse_rule(rule.to_canonical_string()) for rule in self._rrule]

    def get_exclusion_rules(self) -> List[RecurrenceRule]:
        return [parse_rule(rule.to_canonical_string()) for rule in self._exrule]

    def get_inclusion_dates(self) -> List[datetime]:
        return list(self._rdate)

    def get_exclusion_dates(self) -> List[datetime]:
        return list(self._exdate)

    def _rekey_dates(self):
        """Re-sort and re-deduplicate both date lists under the current tzid."""
        tzid = self.get_tzid()
        for collection in (self._rdate, self._exdate):
            unique: Dict[int, datetime] = {}
            for date in sorted(collection, key=lambda value: epoch_ms(value, tzid)):
                unique.setdefault(epoch_ms(date, tzid), date)
            if len(unique) < len(collection):
                logger.debug(f"Dropped {len(collection) - len(unique)} duplicate dates after tzid change")
            collection[:] = unique.values()

    # dtstart / tzid

    def get_dtstart(self) -> Optional[datetime]:
        """Explicit dtstart, else the first inclusion rule's configured one.

        The fallback is evaluated on every call, so rules added later are
        picked up until a value is set explicitly.
        """
        if self._dtstart is not _UNSET:
            return self._dtstart
        for rule in self._rrule:
            if rule.original_options.dtstart is not None:
                return rule.original_options.dtstart
        return None

    def set_dtstart(self, value: Optional[datetime]) -> None:
        """Set dtstart; the rule fallback is bypassed from now on."""
        if value is not None and not is_valid_datetime(value):
            raise InvalidArgumentType(f"{value!r} is not a datetime instance")
        self._dtstart = value

    def get_tzid(self) -> Optional[str]:
        if self._tzid is not _UNSET:
            return self._tzid
        for rule in self._rrule:
            if rule.original_options.tzid:
                return rule.original_options.tzid
        return None

    def set_tzid(self, value: Optional[str]) -> None:
        if value is not None:
            if not isinstance(value, str):
                raise InvalidArgumentType(f"{value!r} is not a timezone identifier")
            resolve_timezone(value)
        self._tzid = value
        self._rekey_dates()

    dtstart = property(get_dtstart, set_dtstart)
    tzid = property(get_tzid, set_tzid)

    # Queries

    def _iter(self, query: Query):
        return iter_set(
            query,
            self._rrule,
            self._exrule,
            self._rdate,
            self._exdate,
            tzid=self.get_tzid(),
            max_iterations=self._max_iterations,
        )

    def _is_trivial(self) -> bool:
        return len(self._rrule) <= 1 and len(self._rdate) <= 1 and len(self._exrule) <= 1

    def all(self, limit: Optional[int] = None) -> List[datetime]:
        return self._iter(Query.all(limit=limit))

    def between(self, after: datetime, before: datetime, inc: bool = False,
                limit: Optional[int] = None) -> List[datetime]:
        """Occurrences between ``after`` and ``before``, at most ``limit``.

        With ``inc`` the bounds themselves are included when they are
        occurrences. Results for trivial sets are memoized per argument
        tuple; mutating the set afterwards does not invalidate them.

        Raises:
            InvalidDateRange: If a bound is not a datetime
        """
        if not is_valid_datetime(after) or not is_valid_datetime(before):
            raise InvalidDateRange(f"Invalid date passed in to between: {after!r}, {before!r}")

        if not self._is_trivial():
            result = self._iter(Query.between(after, before, inc=inc))
            return result if limit is None else result[:limit]

        args = (after, before, inc, limit)
        if self._cache is not None and args in self._cache:
            logger.debug(f"Range query cache hit: {args}")
            return list(self._cache[args])

        result = self._iter(Query.between(after, before, inc=inc, limit=limit))
        if self._cache is not None:
            logger.debug(f"Range query cache miss: {args}")
            self._cache[args] = list(result)
        return result

    def before(self, dt: datetime, inc: bool = False) -> Optional[datetime]:
        if not is_valid_datetime(dt):
            raise InvalidDateRange(f"Invalid date passed in to before: {dt!r}")
        return self._iter(Query.before(dt, inc=inc))

    def after(self, dt: datetime, inc: bool = False) -> Optional[datetime]:
        if not is_valid_datetime(dt):
            raise InvalidDateRange(f"Invalid date passed in to after: {dt!r}")
        return self._iter(Query.after(dt, inc=inc))

    # Serialization

    def serialize(self) -> List[str]:
        """Canonical text form, one entry per line.

        DTSTART:19970902T010000Z
        RRULE:FREQ=YEARLY;COUNT=2;BYDAY=TU
        RRULE:FREQ=YEARLY;COUNT=1;BYDAY=TH
        """
        result: List[str] = []
        tzid = self.get_tzid()

        dtstart = self.get_dtstart()
        if not self._rrule and dtstart is not None:
            result.append(format_date_list('DTSTART', [dtstart], tzid))

        for rule in self._rrule:
            result.extend(rule.to_canonical_string().split('\n'))

        for rule in self._exrule:
            result.extend(
                'EXRULE:' + line[len('RRULE:'):] if line.startswith('RRULE:') else line
                for line in rule.to_canonical_string().split('\n')
                if not line.startswith('DTSTART')
            )

        if self._rdate:
            result.append(format_date_list('RDATE', self._rdate, tzid))

        if self._exdate:
            result.append(format_date_list('EXDATE', self._exdate, tzid))

        return result

    def to_string(self) -> str:
        return '\n'.join(self.serialize())

    def __str__(self) -> str:
        return self.to_string()

    def __repr__(self) -> str:
        return f"RecurrenceSet({self.to_string()!r})"

    def clone(self) -> "RecurrenceSet":
        """Create an independent set with the same rules, dates and settings."""
        ruleset = RecurrenceSet(cache_enabled=self._cache_enabled, max_iterations=self._max_iterations)
        ruleset._dtstart = self._dtstart
        ruleset._tzid = self._tzid

        for rule in self._rrule:
            ruleset.add_inclusion_rule(rule.clone())
        for rule in self._exrule:
            ruleset.add_exclusion_rule(rule.clone())
        for date in self._rdate:
            ruleset.add_inclusion_date(date)
        for date in self._exdate:
            ruleset.add_exclusion_date(date)
        return ruleset
