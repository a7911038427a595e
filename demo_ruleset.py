#!/usr/bin/env python3
"""
Recurrence Set Demo

Demonstrates combining rules and dates into one occurrence stream:
- Inclusion and exclusion rules
- Explicit inclusion and exclusion dates
- Canonical text round-trip
"""

import sys
import os
sys.path.append(os.path.dirname(os.path.abspath(__file__)))

from datetime import datetime
import pytz
from dateutil.rrule import SA, SU
from recurset import RecurrenceConfig, RecurrenceRule, RecurrenceSet, setup_logging


def demo_header(title: str):
    """Print a formatted demo section header."""
    print(f"\n{'='*60}")
    print(f"  {title}")
    print(f"{'='*60}")


def demo_business_days():
    """Daily rule minus weekends, one holiday removed, one extra day added."""
    demo_header("BUSINESS DAYS WITH HOLIDAYS")

    start = pytz.utc.localize(datetime(2024, 12, 20, 9, 0))
    ruleset = RecurrenceSet()
    ruleset.add_inclusion_rule(RecurrenceRule('DAILY', dtstart=start, count=14))
    ruleset.add_exclusion_rule(RecurrenceRule('WEEKLY', dtstart=start, byweekday=(SA, SU)))
    ruleset.add_exclusion_date(pytz.utc.localize(datetime(2024, 12, 25, 9, 0)))
    ruleset.add_inclusion_date(pytz.utc.localize(datetime(2024, 12, 28, 9, 0)))

    for i, dt in enumerate(ruleset.all(), 1):
        print(f"  {i:2d}. {dt.strftime('%A'):9s} {dt.strftime('%Y-%m-%d %H:%M %Z')}")

    print("\nCanonical form:")
    print(ruleset.to_string())


def demo_round_trip():
    """Serialize a set and parse it back."""
    demo_header("TEXT ROUND-TRIP")

    text = "\n".join([
        "DTSTART;TZID=Europe/Chisinau:20250301T083000",
        "RRULE:FREQ=WEEKLY;COUNT=6;BYDAY=MO,WE,FR",
        "EXDATE;TZID=Europe/Chisinau:20250305T083000",
    ])
    ruleset = RecurrenceSet.from_string(text)
    print(f"Parsed tzid: {ruleset.tzid}")
    for dt in ruleset.all():
        print(f"  {dt.isoformat()}")

    print(f"\nIdentical after round-trip: {ruleset.to_string() == text}")


def main():
    setup_logging(RecurrenceConfig.from_environment())
    demo_business_days()
    demo_round_trip()


if __name__ == "__main__":
    main()
