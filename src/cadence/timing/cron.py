"""Cron expression support backed by croniter.

Five-field expressions are conventional minute-granularity cron. Six-field
expressions carry seconds as the *first* field, so "0 1 * * * *" fires at
second 0 of minute 1 of every hour. croniter expects seconds last, so that
field is rotated before parsing.
"""

import logging
from datetime import datetime

from croniter import croniter

logger = logging.getLogger(__name__)

CRON_FIELD_COUNTS = (5, 6)


def looks_like_cron(expression: str) -> bool:
    """Check whether an expression has the shape of a cron string."""
    return len(expression.split()) in CRON_FIELD_COUNTS


def to_croniter_syntax(expression: str) -> str:
    """Rewrite a seconds-first six-field expression into croniter order."""
    fields = expression.split()
    if len(fields) == 6:
        fields = fields[1:] + fields[:1]
    return " ".join(fields)


def is_valid_cron(expression: str) -> bool:
    if not looks_like_cron(expression):
        return False
    return croniter.is_valid(to_croniter_syntax(expression))


def next_cron_occurrence(expression: str, now: datetime) -> datetime | None:
    """Get the next time matching `expression` strictly after `now`.

    Returns:
        The next occurrence, or None if the expression is not valid cron.
    """
    if not is_valid_cron(expression):
        return None
    try:
        return croniter(to_croniter_syntax(expression), now).get_next(datetime)
    except (ValueError, KeyError) as e:
        logger.warning(
            "cron_parse_failed",
            extra={"schedule.cron": expression, "error.message": str(e)},
        )
        return None
