"""Resolution of timing expressions into a single next-due instant.

Three grammars are understood:

- relative intervals: "every 1h45m2s" fires that long after now
- cron: five fields, or six with seconds first ("0 1 * * * *")
- absolute time of day / free form: "12pm", "4:36am", "2020-01-30T08:00"

Every expression is resolved to a candidate instant, candidates before the
start of today or not after now are dropped, and the earliest survivor wins.
"""

import logging
from collections.abc import Sequence
from datetime import datetime, timedelta
from enum import Enum

from cadence.errors import ExpressionParseError, NoCandidateError
from cadence.timing.clock import parse_clock_time
from cadence.timing.cron import is_valid_cron, next_cron_occurrence
from cadence.timing.duration import parse_duration

logger = logging.getLogger(__name__)

INTERVAL_PREFIX = "every "


class ExpressionKind(Enum):
    """Grammar an expression is resolved with."""

    INTERVAL = "interval"
    CRON = "cron"
    TIME_OF_DAY = "time_of_day"


def classify(expression: str) -> ExpressionKind:
    if expression.startswith(INTERVAL_PREFIX):
        return ExpressionKind.INTERVAL
    if is_valid_cron(expression):
        return ExpressionKind.CRON
    return ExpressionKind.TIME_OF_DAY


def resolve_expression(
    expression: str,
    *,
    now: datetime,
    midnight: datetime,
    timezone: str | None = None,
) -> datetime | None:
    """Resolve one expression to its next candidate instant.

    Times of day that have already passed today ("9am" at 10am) roll over
    to the same time tomorrow. Instants with an explicit date
    ("2020-01-30T09:00") never move.

    Returns:
        The candidate, or None if the expression cannot be parsed.
    """
    kind = classify(expression)

    if kind is ExpressionKind.INTERVAL:
        offset = parse_duration(expression[len(INTERVAL_PREFIX) :], "ms")
        if not offset:
            return None
        return now + timedelta(milliseconds=offset)

    if kind is ExpressionKind.CRON:
        return next_cron_occurrence(expression, now)

    parsed = parse_clock_time(expression, midnight, timezone)
    if parsed is None:
        return None
    candidate = parsed.value
    if parsed.relative and midnight <= candidate <= now:
        candidate += timedelta(days=1)
    return candidate


def split_expressions(value: str | Sequence[str]) -> list[str]:
    """Normalize a comma-separated string or a sequence into a list."""
    if isinstance(value, str):
        return [part.strip() for part in value.strip().split(",")]
    return [str(part).strip() for part in value]


def resolve_next_due(
    expressions: Sequence[str],
    *,
    now: datetime,
    midnight: datetime,
    time_bias: timedelta = timedelta(0),
    throw_on_unknown: bool = True,
    timezone: str | None = None,
) -> datetime:
    """Compute the earliest upcoming instant across `expressions`.

    Args:
        expressions: Raw timing expressions.
        now: Current instant, used by interval and cron expressions.
        midnight: Start of the current day; anchors absolute times and
            bounds the oldest acceptable candidate.
        time_bias: Offset added to the selected instant.
        throw_on_unknown: Raise on unparseable expressions instead of
            ignoring them.
        timezone: Zone that aware instants are converted to before
            comparison; None means system local time.

    Raises:
        ExpressionParseError: An expression is unparseable and
            `throw_on_unknown` is set.
        NoCandidateError: No expression produced a usable instant.
    """
    candidates: list[datetime] = []
    for expression in expressions:
        candidate = resolve_expression(
            expression, now=now, midnight=midnight, timezone=timezone
        )
        if candidate is None:
            if throw_on_unknown:
                raise ExpressionParseError(expression, expressions)
            logger.debug(f"Parse time string {expression!r} ~= (INVALID), ignoring")
            continue
        logger.debug(f"Parse time string {expression!r} ~= {candidate.isoformat()}")
        # Before today, or an explicit instant that has already elapsed
        if candidate < midnight or candidate <= now:
            continue
        candidates.append(candidate)

    if not candidates:
        raise NoCandidateError(expressions)

    return min(candidates) + time_bias
