"""
Recurrence set combinator.

Merges the occurrence streams of every inclusion rule and the inclusion
dates into one ascending sequence, collapses duplicate instants and drops
anything matched by an exclusion date or an exclusion rule. All streams are
consumed lazily so unbounded rules can be queried as long as the query
itself stops somewhere.
"""

import heapq
import logging
from datetime import datetime
from typing import Iterator, Optional, Sequence

from .config import DEFAULT_MAX_ITERATIONS
from .errors import IterationLimitExceeded
from .query import Query, QueryMethod, QueryResult
from .rule import RecurrenceRule

logger = logging.getLogger(__name__)


def _push(heap: list, index: int, stream: Iterator[datetime], query: Query):
    """Push the next value of ``stream`` onto ``heap``, if any."""
    for value in stream:
        heapq.heappush(heap, (query.key(value), index, value, stream))
        return


def _advance(heap: list, query: Query):
    """Replace the smallest heap entry with the next value of its stream."""
    _, index, _, stream = heap[0]
    for value in stream:
        heapq.heapreplace(heap, (query.key(value), index, value, stream))
        return
    heapq.heappop(heap)


def _date_stream(dates: Sequence[datetime], query: Query) -> Iterator[datetime]:
    for value in sorted(dates, key=query.key):
        key = query.key(value)
        if query.too_late(key):
            return
        if not query.too_early(key):
            yield value


def iter_set(query: Query,
             rrules: Sequence[RecurrenceRule],
             exrules: Sequence[RecurrenceRule],
             rdates: Sequence[datetime],
             exdates: Sequence[datetime],
             tzid: Optional[str] = None,
             max_iterations: int = DEFAULT_MAX_ITERATIONS):
    """Evaluate ``query`` against a combination of rules and dates.

    Args:
        query: What to collect (all / between / before / after)
        rrules: Inclusion rules
        exrules: Exclusion rules
        rdates: Inclusion dates
        exdates: Exclusion dates
        tzid: Zone naive datetimes are read in
        max_iterations: Candidate evaluations allowed for unbounded queries,
            and consecutive rejected candidates allowed for any query but
            BETWEEN when an inclusion rule is infinite

    Returns:
        A list for ALL / BETWEEN queries, a datetime or None for BEFORE / AFTER

    Raises:
        IterationLimitExceeded: If a query over infinite rules runs past
            ``max_iterations`` without finishing
    """
    query = query.with_tzid(tzid)
    result = QueryResult(query)

    excluded = {query.key(exdate) for exdate in exdates}

    exclusion_query = query.widened()
    exclusion_heap: list = []
    for index, exrule in enumerate(exrules):
        _push(exclusion_heap, index, exrule.occurrences(exclusion_query), query)

    heap: list = []
    for index, rule in enumerate(rrules):
        _push(heap, index, rule.occurrences(query), query)
    _push(heap, len(rrules), _date_stream(rdates, query), query)

    # BETWEEN stops at its upper bound; everything else can walk an
    # infinite rule forever when exclusions cancel its candidates
    infinite = any(not rule.is_finite for rule in rrules)
    guard_total = infinite and query.is_unbounded
    guard_idle = infinite and query.method is not QueryMethod.BETWEEN
    evaluated = 0
    idle = 0
    last_key = None

    while heap:
        key, _, value, _ = heap[0]

        accepted = False
        if key != last_key:
            last_key = key

            while exclusion_heap and exclusion_heap[0][0] < key:
                _advance(exclusion_heap, query)

            is_excluded = key in excluded or (exclusion_heap and exclusion_heap[0][0] == key)
            if not is_excluded:
                if not result.accept(value):
                    break
                accepted = True

        evaluated += 1
        idle = 0 if accepted else idle + 1
        if guard_total and evaluated > max_iterations:
            logger.warning(f"Iteration limit of {max_iterations} reached for unbounded set query")
            raise IterationLimitExceeded(
                f"Unbounded query evaluated more than {max_iterations} candidates; "
                f"pass a limit or bound the inclusion rules with COUNT or UNTIL"
            )
        if guard_idle and idle > max_iterations:
            logger.warning(f"Iteration limit of {max_iterations} reached without an accepted occurrence")
            raise IterationLimitExceeded(
                f"Query evaluated {idle} consecutive candidates without accepting one; "
                f"exclusions may cancel every occurrence of an infinite rule"
            )

        _advance(heap, query)

    logger.debug(f"Combined {len(rrules)} rrules and {len(rdates)} rdates: {evaluated} candidates evaluated")
    return result.value()
