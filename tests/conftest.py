#!/usr/bin/env python3
"""
pytest configuration for recurset tests.

Provides shared datetime helpers and rule / set fixtures.
"""

import os
import sys
from datetime import datetime

import pytest
from dateutil import tz

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from recurset import RecurrenceRule, RecurrenceSet


def utc(*args) -> datetime:
    """UTC-aware datetime shorthand."""
    return datetime(*args, tzinfo=tz.UTC)


@pytest.fixture
def daily_rule():
    """FREQ=DAILY;COUNT=5 starting 2020-01-01T00:00:00Z."""
    return RecurrenceRule('DAILY', dtstart=utc(2020, 1, 1), count=5)


@pytest.fixture
def endless_rule():
    """FREQ=DAILY without COUNT or UNTIL."""
    return RecurrenceRule('DAILY', dtstart=utc(2020, 1, 1))


@pytest.fixture
def trivial_set(daily_rule):
    """Set holding a single inclusion rule."""
    ruleset = RecurrenceSet()
    ruleset.add_inclusion_rule(daily_rule)
    return ruleset
