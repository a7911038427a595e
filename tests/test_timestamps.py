"""
Tests for date-time helpers: instant keys, timezone lookup, DST-safe
localization and the compact timestamp format.
"""

import pytest
from datetime import date, datetime
import pytz

from conftest import utc
from recurset.errors import RuleParseError, RuleTimezoneError
from recurset.timestamps import (
    epoch_ms,
    format_date_list,
    format_timestamp,
    is_utc_tzid,
    is_valid_datetime,
    parse_timestamp,
    resolve_timezone,
    safe_localize,
)


class TestValidation:
    """Test value and zone checks."""

    def test_is_valid_datetime(self):
        assert is_valid_datetime(datetime(2020, 1, 1))
        assert is_valid_datetime(utc(2020, 1, 1))
        assert not is_valid_datetime(date(2020, 1, 1))
        assert not is_valid_datetime("2020-01-01")
        assert not is_valid_datetime(None)

    def test_is_utc_tzid(self):
        assert is_utc_tzid(None)
        assert is_utc_tzid("")
        assert is_utc_tzid("UTC")
        assert is_utc_tzid("utc")
        assert not is_utc_tzid("Europe/Chisinau")

    def test_resolve_unknown_timezone(self):
        with pytest.raises(RuleTimezoneError):
            resolve_timezone("Invalid/Timezone")

    def test_resolve_known_timezone(self):
        assert resolve_timezone("Europe/Chisinau").zone == "Europe/Chisinau"


class TestEpochKeys:
    """Test millisecond epoch keys."""

    def test_aware_values(self):
        assert epoch_ms(utc(1970, 1, 1, 0, 0, 1)) == 1000
        assert epoch_ms(utc(1970, 1, 1, 0, 0, 0, 1500)) == 1

    def test_naive_values_read_as_utc(self):
        assert epoch_ms(datetime(2020, 1, 1)) == epoch_ms(utc(2020, 1, 1))

    def test_naive_values_read_in_zone(self):
        # Paris is UTC+1 in January
        assert epoch_ms(datetime(2020, 1, 1, 1), "Europe/Paris") == epoch_ms(utc(2020, 1, 1))

    def test_same_instant_in_different_zones(self):
        new_york = pytz.timezone("America/New_York").localize(datetime(2020, 1, 1, 7))
        assert epoch_ms(new_york) == epoch_ms(utc(2020, 1, 1, 12))


class TestSafeLocalize:
    """Test DST transition handling."""

    def test_ambiguous_time_uses_standard_time(self):
        paris = pytz.timezone("Europe/Paris")
        localized = safe_localize(datetime(2020, 10, 25, 2, 30), paris)
        assert localized.utcoffset().total_seconds() == 3600

    def test_non_existent_time_moves_forward(self):
        paris = pytz.timezone("Europe/Paris")
        localized = safe_localize(datetime(2020, 3, 29, 2, 30), paris)
        assert localized.hour == 3
        assert localized.utcoffset().total_seconds() == 7200


class TestFormatting:
    """Test compact timestamp rendering and parsing."""

    def test_utc_form(self):
        assert format_timestamp(utc(1997, 9, 2, 1)) == "19970902T010000Z"

    def test_utc_form_converts_aware_values(self):
        new_york = pytz.timezone("America/New_York").localize(datetime(1997, 9, 1, 21))
        assert format_timestamp(new_york) == "19970902T010000Z"

    def test_local_form(self):
        assert format_timestamp(utc(2020, 1, 1, 8), utc=False, tzid="Europe/Paris") == "20200101T090000"
        assert format_timestamp(datetime(2020, 1, 1, 9), utc=False, tzid="Europe/Paris") == "20200101T090000"

    def test_parse_utc(self):
        assert parse_timestamp("19970902T010000Z") == utc(1997, 9, 2, 1)

    def test_parse_with_tzid(self):
        parsed = parse_timestamp("20200101T090000", "Europe/Paris")
        assert parsed.tzinfo is not None
        assert parsed == utc(2020, 1, 1, 8)

    def test_parse_floating_and_date_only(self):
        assert parse_timestamp("20200101T090000") == datetime(2020, 1, 1, 9)
        assert parse_timestamp("20200101") == datetime(2020, 1, 1)

    def test_parse_invalid(self):
        for value in ["garbage", "2020-01-01T00:00:00", "20201301T000000"]:
            with pytest.raises(RuleParseError):
                parse_timestamp(value)

    def test_date_list_utc(self):
        line = format_date_list("RDATE", [utc(2020, 1, 1), utc(2020, 1, 2)], None)
        assert line == "RDATE:20200101T000000Z,20200102T000000Z"

        assert format_date_list("EXDATE", [utc(2020, 1, 1)], "utc") == "EXDATE:20200101T000000Z"

    def test_date_list_with_tzid(self):
        line = format_date_list("RDATE", [utc(2020, 1, 1), utc(2020, 1, 2)], "America/New_York")
        assert line == "RDATE;TZID=America/New_York:20191231T190000,20200101T190000"
