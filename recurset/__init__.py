"""
recurset

Recurrence sets in the iCalendar sense, including:
- Inclusion and exclusion rules backed by dateutil
- Inclusion and exclusion dates
- Ordered, deduplicated occurrence queries with memoization
- Canonical RRULE / EXRULE / RDATE / EXDATE text round-trip
"""

from .config import RecurrenceConfig, setup_logging
from .errors import (
    RecurrenceError,
    InvalidArgumentType,
    InvalidDateRange,
    IterationLimitExceeded,
    RuleParseError,
    RuleTimezoneError,
)
from .query import Query, QueryMethod
from .rule import RecurrenceRule, RuleOptions
from .rruler import parse_rule, parse_set_components
from .ruleset import RecurrenceSet

__version__ = "0.1.0"

__all__ = [
    'RecurrenceSet',
    'RecurrenceRule',
    'RuleOptions',
    'Query',
    'QueryMethod',
    'parse_rule',
    'parse_set_components',
    'RecurrenceConfig',
    'setup_logging',
    'RecurrenceError',
    'InvalidArgumentType',
    'InvalidDateRange',
    'IterationLimitExceeded',
    'RuleParseError',
    'RuleTimezoneError',
]
