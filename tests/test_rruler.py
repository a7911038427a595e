"""
Test suite for recurrence text parsing.

Tests single rule parsing and validation, canonical round-trips and the
full set line format (DTSTART, RRULE, EXRULE, RDATE, EXDATE).
"""

import pytest
from datetime import datetime
from dateutil import tz

from conftest import utc
from recurset.errors import RuleParseError, RuleTimezoneError
from recurset.rruler import RuleParser, parse_rule, parse_set_components


class TestRuleParser:
    """Test the core RuleParser class."""

    def test_basic_rrule_parsing(self):
        """Test parsing of basic RRULE strings."""
        parser = RuleParser()

        valid_rules = [
            "FREQ=DAILY",
            "FREQ=WEEKLY;BYDAY=MO,WE,FR",
            "FREQ=MONTHLY;BYMONTHDAY=15",
            "FREQ=YEARLY;BYMONTH=12;BYMONTHDAY=25"
        ]

        for rule_str in valid_rules:
            rule = parser.build_rule(rule_str, dtstart=utc(2024, 1, 1))
            assert rule is not None

    def test_invalid_rrule_syntax(self):
        """Test validation of invalid RRULE syntax."""
        parser = RuleParser()

        invalid_rules = [
            "INVALID=DAILY",  # Bad FREQ
            "FREQ=INVALID",   # Invalid frequency
            "FREQ=DAILY;INTERVAL=0",  # Invalid interval
            "FREQ=DAILY;COUNT=5;UNTIL=20241231T000000Z",  # Both COUNT and UNTIL
            "FREQ=MONTHLY;BYDAY=XX",  # Invalid weekday
            "FREQ=MONTHLY;BYMONTH=13"  # Invalid month
        ]

        for rule_str in invalid_rules:
            with pytest.raises(RuleParseError):
                parser.build_rule(rule_str)

    def test_byday_validation(self):
        """Test BYDAY component validation."""
        parser = RuleParser()

        valid_byday = [
            "FREQ=WEEKLY;BYDAY=MO,TU,WE,TH,FR",  # Weekdays
            "FREQ=MONTHLY;BYDAY=1MO",            # First Monday
            "FREQ=MONTHLY;BYDAY=-1FR",           # Last Friday
            "FREQ=YEARLY;BYDAY=1SU;BYMONTH=4"    # First Sunday in April
        ]

        for rule_str in valid_byday:
            assert parser.build_rule(rule_str) is not None

        invalid_byday = [
            "FREQ=MONTHLY;BYDAY=6MO",   # Invalid monthly ordinal
            "FREQ=YEARLY;BYDAY=54SU",   # Invalid yearly ordinal
            "FREQ=WEEKLY;BYDAY=XX"      # Invalid weekday
        ]

        for rule_str in invalid_byday:
            with pytest.raises(RuleParseError):
                parser.build_rule(rule_str)

    def test_until_must_be_utc_for_aware_start(self):
        with pytest.raises(RuleParseError):
            RuleParser().build_rule("FREQ=DAILY;UNTIL=20200105T000000", dtstart=utc(2020, 1, 1))


class TestParseRule:
    """Test parsing of a single rule's canonical text."""

    def test_bare_and_labelled_rules(self):
        for text in ["FREQ=DAILY;COUNT=3", "RRULE:FREQ=DAILY;COUNT=3"]:
            rule = parse_rule(text)
            assert rule.original_options.dtstart is None
            assert rule.to_canonical_string() == "RRULE:FREQ=DAILY;COUNT=3"

    def test_round_trip(self):
        text = "DTSTART:19970902T010000Z\nRRULE:FREQ=DAILY;COUNT=3"
        rule = parse_rule(text)

        assert rule.to_canonical_string() == text
        assert rule.all() == [utc(1997, 9, 2, 1), utc(1997, 9, 3, 1), utc(1997, 9, 4, 1)]

    @pytest.mark.parametrize("text", [
        "DTSTART:20200101T000000Z\nRRULE:FREQ=DAILY;UNTIL=20200103T000000Z",
        "DTSTART:20200106T100000Z\nRRULE:FREQ=WEEKLY;COUNT=4;BYDAY=MO,WE",
        "DTSTART:20200101T000000Z\nRRULE:FREQ=MONTHLY;COUNT=3;BYDAY=-1FR",
        "DTSTART:20200101T000000Z\nRRULE:FREQ=DAILY;INTERVAL=2;COUNT=3",
    ])
    def test_canonical_text_is_stable(self, text):
        assert parse_rule(text).to_canonical_string() == text

    def test_tzid_dtstart(self):
        text = "DTSTART;TZID=America/New_York:19970902T090000\nRRULE:FREQ=DAILY;COUNT=2"
        rule = parse_rule(text)

        assert rule.original_options.tzid == "America/New_York"
        assert rule.to_canonical_string() == text
        assert rule.all()[0].astimezone(tz.UTC) == utc(1997, 9, 2, 13)

    def test_unknown_tzid(self):
        with pytest.raises(RuleTimezoneError):
            parse_rule("DTSTART;TZID=Mars/Olympus:20200101T000000\nRRULE:FREQ=DAILY;COUNT=1")

    def test_invalid_rule_texts(self):
        invalid_texts = [
            "",
            "DTSTART:20200101T000000Z",
            "RRULE:FREQ=DAILY\nRRULE:FREQ=WEEKLY",
            "EXDATE:20200101T000000Z",
            "RRULE:FREQ=DAILY;COUNT=2\nSUMMARY:meeting",
        ]

        for text in invalid_texts:
            with pytest.raises(RuleParseError):
                parse_rule(text)


class TestParseSetComponents:
    """Test parsing of whole recurrence set texts."""

    def test_all_properties(self):
        text = "\n".join([
            "DTSTART:20200101T000000Z",
            "RRULE:FREQ=DAILY;COUNT=10",
            "EXRULE:FREQ=WEEKLY;COUNT=2",
            "RDATE:20200201T000000Z,20200301T000000Z",
            "EXDATE:20200103T000000Z",
        ])
        components = parse_set_components(text)

        assert components.dtstart == utc(2020, 1, 1)
        assert components.tzid is None
        assert len(components.rrules) == 1
        assert len(components.exrules) == 1
        assert components.exrules[0].original_options.dtstart == utc(2020, 1, 1)
        assert components.rdates == [utc(2020, 2, 1), utc(2020, 3, 1)]
        assert components.exdates == [utc(2020, 1, 3)]

    def test_each_rule_takes_closest_dtstart(self):
        text = "\n".join([
            "DTSTART:20200101T000000Z",
            "RRULE:FREQ=DAILY;COUNT=2",
            "DTSTART:20200601T000000Z",
            "RRULE:FREQ=WEEKLY;COUNT=2",
        ])
        components = parse_set_components(text)

        assert components.dtstart == utc(2020, 1, 1)
        assert [rule.original_options.dtstart for rule in components.rrules] == [
            utc(2020, 1, 1), utc(2020, 6, 1)
        ]

    def test_dates_with_tzid(self):
        components = parse_set_components("RDATE;TZID=Europe/Paris:20200101T090000,20200102T090000")

        assert components.tzid == "Europe/Paris"
        assert components.rdates == [utc(2020, 1, 1, 8), utc(2020, 1, 2, 8)]

    def test_date_only_values(self):
        components = parse_set_components("EXDATE;VALUE=DATE:20200101,20200102")
        assert components.exdates == [datetime(2020, 1, 1), datetime(2020, 1, 2)]

    def test_folded_lines(self):
        components = parse_set_components("RDATE:20200101T000000Z,\n 20200102T000000Z")
        assert components.rdates == [utc(2020, 1, 1), utc(2020, 1, 2)]

    def test_unsupported_property(self):
        with pytest.raises(RuleParseError):
            parse_set_components("RRULE:FREQ=DAILY\nSUMMARY:standup")
