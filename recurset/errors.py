"""
Exception hierarchy for recurrence set processing.

Every error raised by recurset derives from RecurrenceError. Argument and
range errors also derive from the matching builtin so callers catching
TypeError / ValueError keep working.
"""


class RecurrenceError(Exception):
    """Base exception for recurrence set errors."""
    pass


class InvalidArgumentType(RecurrenceError, TypeError):
    """Raised when a rule or date argument has the wrong type."""
    pass


class InvalidDateRange(RecurrenceError, ValueError):
    """Raised when a query bound is not a valid datetime."""
    pass


class IterationLimitExceeded(RecurrenceError):
    """Raised when an unbounded query evaluates too many candidates."""
    pass


class RuleParseError(RecurrenceError, ValueError):
    """Raised when rule or set text cannot be parsed."""
    pass


class RuleTimezoneError(RecurrenceError):
    """Raised for unknown timezone identifiers."""
    pass
