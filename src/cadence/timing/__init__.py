"""Timing expression grammars and next-due resolution.

Public API:
- resolve_next_due: Earliest upcoming instant across a list of expressions
- resolve_expression: Candidate instant for a single expression
- classify: Which grammar an expression belongs to
- parse_duration: "1h45m2s" -> number of a unit
- parse_time_of_day: "4:36am" -> datetime on an anchor day
- parse_clock_time: Same, also reporting whether the date came from the anchor
- next_cron_occurrence: Next cron match after a reference instant
"""

from cadence.timing.clock import (
    Clock,
    ParsedTime,
    parse_clock_time,
    parse_time_of_day,
    start_of_day,
    to_wall_time,
    wall_clock,
)
from cadence.timing.cron import is_valid_cron, next_cron_occurrence
from cadence.timing.duration import format_duration, parse_duration
from cadence.timing.resolve import (
    ExpressionKind,
    classify,
    resolve_expression,
    resolve_next_due,
    split_expressions,
)

__all__ = [
    "Clock",
    "ExpressionKind",
    "ParsedTime",
    "classify",
    "format_duration",
    "is_valid_cron",
    "next_cron_occurrence",
    "parse_clock_time",
    "parse_duration",
    "parse_time_of_day",
    "resolve_expression",
    "resolve_next_due",
    "split_expressions",
    "start_of_day",
    "to_wall_time",
    "wall_clock",
]
