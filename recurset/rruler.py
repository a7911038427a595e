"""
RFC-5545 recurrence text parser.

Turns the restricted iCalendar line format back into rule objects:
- Single rules: optional DTSTART line plus one RRULE line
- Whole sets: DTSTART, RRULE, EXRULE, RDATE and EXDATE lines
- Component validation of RRULE values before dateutil sees them
"""

import re
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from dateutil.rrule import rrule, rrulestr

from .errors import RuleParseError
from .rule import RecurrenceRule, normalize_start
from .timestamps import parse_timestamp

logger = logging.getLogger(__name__)

_CONTENT_LINE = re.compile(r'^(?P<name>[A-Z-]+)(?P<params>(;[^:;]+=[^:;]+)*):(?P<value>.*)$')


@dataclass
class SetComponents:
    """Parsed content of a recurrence set text."""

    dtstart: Optional[datetime] = None
    tzid: Optional[str] = None
    rrules: List[RecurrenceRule] = field(default_factory=list)
    exrules: List[RecurrenceRule] = field(default_factory=list)
    rdates: List[datetime] = field(default_factory=list)
    exdates: List[datetime] = field(default_factory=list)


class RuleParser:
    """RRULE parsing with component validation."""

    # Valid RRULE components per RFC-5545
    FREQ_VALUES = {'SECONDLY', 'MINUTELY', 'HOURLY', 'DAILY', 'WEEKLY', 'MONTHLY', 'YEARLY'}
    WEEKDAY_VALUES = {'MO', 'TU', 'WE', 'TH', 'FR', 'SA', 'SU'}
    MONTH_VALUES = set(range(1, 13))

    def __init__(self):
        self.rrule_pattern = re.compile(
            r'^(?=.*FREQ=(SECONDLY|MINUTELY|HOURLY|DAILY|WEEKLY|MONTHLY|YEARLY))'
            r'([A-Z]+(=[^;]+)(;[A-Z]+(=[^;]+))*)?$'
        )

    def build_rule(self, body: str, dtstart: Optional[datetime] = None,
                   tzid: Optional[str] = None) -> RecurrenceRule:
        """Build a rule from RRULE text without its label.

        Args:
            body: Rule text such as 'FREQ=DAILY;COUNT=3'
            dtstart: Explicit start, None to default to now
            tzid: Zone of the start line, if any

        Raises:
            RuleParseError: If RRULE syntax or semantics are invalid
        """
        if not self.rrule_pattern.match(body):
            raise RuleParseError(f"Invalid RRULE syntax: {body}")

        self._validate_rrule_components(body)

        try:
            rule = rrulestr('RRULE:' + body, dtstart=normalize_start(dtstart, tzid))
        except (TypeError, ValueError) as e:
            raise RuleParseError(f"RRULE parsing error: {e}") from e

        if not isinstance(rule, rrule):
            raise RuleParseError(f"Expected a single rule: {body}")

        return RecurrenceRule.from_rrule(rule, dtstart=dtstart, tzid=tzid)

    def _validate_rrule_components(self, body: str):
        """Validate individual RRULE components."""

        components = {}
        for component in body.split(';'):
            if '=' not in component:
                continue

            key, value = component.split('=', 1)
            components[key] = value

        # Validate FREQ
        if 'FREQ' not in components:
            raise RuleParseError("RRULE must specify FREQ")
        if components['FREQ'] not in self.FREQ_VALUES:
            raise RuleParseError(f"Invalid FREQ: {components['FREQ']}")

        # Validate INTERVAL
        if 'INTERVAL' in components:
            try:
                interval = int(components['INTERVAL'])
            except ValueError:
                raise RuleParseError(f"Invalid INTERVAL: {components['INTERVAL']}")
            if interval < 1:
                raise RuleParseError("INTERVAL must be positive")

        if 'COUNT' in components and 'UNTIL' in components:
            raise RuleParseError("RRULE cannot specify both COUNT and UNTIL")

        if 'BYDAY' in components:
            self._validate_byday(components['BYDAY'], components['FREQ'])

        if 'BYMONTH' in components:
            try:
                months = [int(m) for m in components['BYMONTH'].split(',')]
            except ValueError:
                raise RuleParseError(f"Invalid BYMONTH values: {components['BYMONTH']}")
            if not all(m in self.MONTH_VALUES for m in months):
                raise RuleParseError(f"Invalid BYMONTH values: {components['BYMONTH']}")

    def _validate_byday(self, byday: str, freq: str):
        """Validate BYDAY component format."""

        for day_spec in byday.split(','):
            # Weekday is the last 2 characters
            weekday = day_spec[-2:]
            if weekday not in self.WEEKDAY_VALUES:
                raise RuleParseError(f"Invalid weekday in BYDAY: {weekday}")

            if len(day_spec) > 2:
                ordinal_str = day_spec[:-2]
                try:
                    ordinal = int(ordinal_str)
                except ValueError:
                    raise RuleParseError(f"Invalid ordinal in BYDAY: {ordinal_str}")
                if freq == 'MONTHLY' and abs(ordinal) > 5:
                    raise RuleParseError(f"Invalid monthly ordinal: {ordinal}")
                if freq == 'YEARLY' and abs(ordinal) > 53:
                    raise RuleParseError(f"Invalid yearly ordinal: {ordinal}")


def _unfold(text: str) -> List[str]:
    """Split into content lines, joining RFC-5545 folded continuations."""
    lines: List[str] = []
    for raw in text.replace('\r\n', '\n').split('\n'):
        if raw[:1] in (' ', '\t') and lines:
            lines[-1] += raw[1:]
        elif raw.strip():
            lines.append(raw.strip())
    return lines


def _split_line(line: str) -> Tuple[str, Dict[str, str], str]:
    match = _CONTENT_LINE.match(line)
    if not match:
        raise RuleParseError(f"Invalid content line: {line!r}")

    params = {}
    for param in filter(None, match.group('params').split(';')):
        key, value = param.split('=', 1)
        params[key.upper()] = value
    return match.group('name'), params, match.group('value')


def _parse_dtstart(params: Dict[str, str], value: str) -> Tuple[datetime, Optional[str]]:
    tzid = params.get('TZID')
    return parse_timestamp(value, tzid), tzid


def _parse_date_values(params: Dict[str, str], value: str) -> Tuple[List[datetime], Optional[str]]:
    tzid = params.get('TZID')
    return [parse_timestamp(v, tzid) for v in value.split(',') if v], tzid


def parse_set_components(text: str) -> SetComponents:
    """Parse recurrence set text into its components.

    Each RRULE takes the closest DTSTART line above it. EXRULEs and the
    set itself take the first DTSTART line of the text.

    Raises:
        RuleParseError: On unknown properties or malformed values
        RuleTimezoneError: If a TZID is unknown
    """
    parser = RuleParser()
    components = SetComponents()
    rrule_specs: List[Tuple[str, Optional[datetime], Optional[str]]] = []
    exrule_bodies: List[str] = []
    current_start, current_tzid = None, None
    date_tzid = None

    for line in _unfold(text):
        name, params, value = _split_line(line)

        if name == 'DTSTART':
            current_start, current_tzid = _parse_dtstart(params, value)
            if components.dtstart is None:
                components.dtstart, components.tzid = current_start, current_tzid
        elif name == 'RRULE':
            rrule_specs.append((value, current_start, current_tzid))
        elif name == 'EXRULE':
            exrule_bodies.append(value)
        elif name in ('RDATE', 'EXDATE'):
            dates, tzid = _parse_date_values(params, value)
            date_tzid = date_tzid or tzid
            target = components.rdates if name == 'RDATE' else components.exdates
            target.extend(dates)
        else:
            raise RuleParseError(f"Unsupported property: {name}")

    components.tzid = components.tzid or date_tzid
    components.rrules = [
        parser.build_rule(body, dtstart, tzid) for body, dtstart, tzid in rrule_specs
    ]
    components.exrules = [
        parser.build_rule(body, components.dtstart, components.tzid) for body in exrule_bodies
    ]

    logger.debug(
        f"Parsed recurrence set: {len(components.rrules)} rrules, {len(components.exrules)} exrules, "
        f"{len(components.rdates)} rdates, {len(components.exdates)} exdates"
    )
    return components


def parse_rule(text: str) -> RecurrenceRule:
    """Parse a single rule from its canonical text.

    Accepts 'FREQ=...', 'RRULE:FREQ=...' or a DTSTART line followed by an
    RRULE line.

    Raises:
        RuleParseError: If the text does not hold exactly one valid rule
        RuleTimezoneError: If the DTSTART TZID is unknown
    """
    lines = _unfold(text)
    if len(lines) == 1 and ':' not in lines[0]:
        lines = ['RRULE:' + lines[0]]

    dtstart, tzid = None, None
    bodies = []
    for line in lines:
        name, params, value = _split_line(line)
        if name == 'DTSTART':
            dtstart, tzid = _parse_dtstart(params, value)
        elif name == 'RRULE':
            bodies.append(value)
        else:
            raise RuleParseError(f"Unexpected property in rule text: {name}")

    if len(bodies) != 1:
        raise RuleParseError(f"Expected exactly one RRULE line, got {len(bodies)}")

    return RuleParser().build_rule(bodies[0], dtstart, tzid)
