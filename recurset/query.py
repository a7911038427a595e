"""
Occurrence query descriptors.

A Query describes which occurrences a caller wants (all of them, a range,
the last one before an instant or the first one after it). It is shared by
single-rule iteration and the set combinator. QueryResult accumulates the
accepted occurrences and tells the producer when to stop.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import List, Optional, Union

from .timestamps import epoch_ms


class QueryMethod(Enum):
    ALL = "all"
    BETWEEN = "between"
    BEFORE = "before"
    AFTER = "after"


@dataclass(frozen=True)
class Query:
    """Parameterization of an occurrence query.

    ``start`` / ``end`` hold the range bounds; BEFORE queries only use
    ``end`` and AFTER queries only use ``start``. ``tzid`` is the zone
    naive datetimes are read in when computing keys.
    """

    method: QueryMethod
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    inc: bool = False
    limit: Optional[int] = None
    tzid: Optional[str] = None

    min_key: Optional[int] = field(default=None, init=False, repr=False, compare=False)
    max_key: Optional[int] = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self):
        # Exclusive bounds move one millisecond inwards
        shift = 0 if self.inc else 1
        if self.method in (QueryMethod.BETWEEN, QueryMethod.AFTER):
            object.__setattr__(self, 'min_key', epoch_ms(self.start, self.tzid) + shift)
        if self.method in (QueryMethod.BETWEEN, QueryMethod.BEFORE):
            object.__setattr__(self, 'max_key', epoch_ms(self.end, self.tzid) - shift)

    @classmethod
    def all(cls, limit: Optional[int] = None) -> "Query":
        return cls(QueryMethod.ALL, limit=limit)

    @classmethod
    def between(cls, after: datetime, before: datetime, inc: bool = False,
                limit: Optional[int] = None) -> "Query":
        return cls(QueryMethod.BETWEEN, start=after, end=before, inc=inc, limit=limit)

    @classmethod
    def before(cls, dt: datetime, inc: bool = False) -> "Query":
        return cls(QueryMethod.BEFORE, end=dt, inc=inc)

    @classmethod
    def after(cls, dt: datetime, inc: bool = False) -> "Query":
        return cls(QueryMethod.AFTER, start=dt, inc=inc)

    @property
    def is_unbounded(self) -> bool:
        """ALL queries without a limit have no natural stopping point."""
        return self.method is QueryMethod.ALL and self.limit is None

    def key(self, dt: datetime) -> int:
        return epoch_ms(dt, self.tzid)

    def too_early(self, key: int) -> bool:
        return self.min_key is not None and key < self.min_key

    def too_late(self, key: int) -> bool:
        return self.max_key is not None and key > self.max_key

    def contains(self, key: int) -> bool:
        return not self.too_early(key) and not self.too_late(key)

    def with_tzid(self, tzid: Optional[str]) -> "Query":
        return replace(self, tzid=tzid)

    def widened(self) -> "Query":
        """Same range, inclusive and without a limit.

        Exclusion rules are evaluated against this so they cover at least
        every candidate the original query can accept.
        """
        return replace(self, inc=True, limit=None)


class QueryResult:
    """Accumulates occurrences accepted by a query.

    Producers call ``accept`` with occurrences in ascending order and stop
    as soon as it returns False.
    """

    def __init__(self, query: Query):
        self.query = query
        self.total = 0
        self._results: List[datetime] = []

    def accept(self, dt: datetime) -> bool:
        self.total += 1
        key = self.query.key(dt)

        if self.query.too_late(key):
            return False
        if self.query.too_early(key):
            return True

        if self.query.method is QueryMethod.AFTER:
            self._results.append(dt)
            return False

        return self._add(dt)

    def _add(self, dt: datetime) -> bool:
        if self.query.method is QueryMethod.BEFORE:
            self._results[:] = [dt]
            return True

        limit = self.query.limit
        if limit is not None and len(self._results) >= limit:
            return False
        self._results.append(dt)
        return limit is None or len(self._results) < limit

    def value(self) -> Union[List[datetime], Optional[datetime]]:
        if self.query.method in (QueryMethod.ALL, QueryMethod.BETWEEN):
            return list(self._results)
        return self._results[-1] if self._results else None
