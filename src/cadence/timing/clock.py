"""Wall-clock helpers and the absolute time-of-day grammar.

All datetimes handled by the scheduler are naive wall-clock values in the
configured timezone (system local time when none is configured). Keeping
them naive lets "12pm" mean noon on the clock on the wall, and keeps frozen
test clocks simple.
"""

import logging
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import NamedTuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _zone(timezone: str | None) -> ZoneInfo | None:
    if timezone is None:
        return None
    try:
        return ZoneInfo(timezone)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("invalid_timezone", extra={"schedule.timezone": timezone})
        return None


def wall_clock(timezone: str | None = None) -> datetime:
    """Current naive wall-clock time, optionally in an IANA timezone."""
    tz = _zone(timezone)
    if tz is None:
        return datetime.now()
    return datetime.now(tz).replace(tzinfo=None)


def to_wall_time(value: datetime, timezone: str | None = None) -> datetime:
    """Convert an aware datetime to naive wall-clock time in `timezone`.

    Naive values are returned unchanged.
    """
    if value.tzinfo is None:
        return value
    return value.astimezone(_zone(timezone)).replace(tzinfo=None)


def start_of_day(value: datetime) -> datetime:
    return value.replace(hour=0, minute=0, second=0, microsecond=0)


class ParsedTime(NamedTuple):
    """A parsed time string.

    ``relative`` is True when the date was taken from the anchor ("4:36am")
    rather than written out ("2020-01-30T04:36").
    """

    value: datetime
    relative: bool


def _dateparse(text: str, anchor: datetime, timezone: str | None) -> datetime | None:
    import dateparser

    settings: dict = {
        "RELATIVE_BASE": anchor,
        "PREFER_DATES_FROM": "current_period",
        "RETURN_AS_TIMEZONE_AWARE": False,
    }
    parsed = dateparser.parse(text, languages=["en"], settings=settings)
    if parsed is None:
        return None
    return to_wall_time(parsed, timezone)


def parse_clock_time(
    text: str, anchor: datetime, timezone: str | None = None
) -> ParsedTime | None:
    """Parse a free-form time ("12pm", "4:36am", "noon") on `anchor`'s day.

    Accepts ISO 8601 or natural language. Date parts missing from `text`
    are taken from `anchor`. Aware results are converted to wall-clock time
    in `timezone` (system local time when None).

    Returns:
        The parsed time and whether its date came from `anchor`, or None
        if `text` cannot be parsed.
    """
    text = text.strip()
    if not text:
        return None

    # Fast path: ISO 8601 always carries its own date
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        pass
    else:
        return ParsedTime(to_wall_time(parsed, timezone), relative=False)

    # Natural language fallback
    parsed = _dateparse(text, anchor, timezone)
    if parsed is None:
        return None
    # A date taken from the anchor moves when the anchor does
    shifted = _dateparse(text, anchor + timedelta(days=1), timezone)
    return ParsedTime(parsed, relative=shifted is not None and shifted != parsed)


def parse_time_of_day(
    text: str, anchor: datetime, timezone: str | None = None
) -> datetime | None:
    """Like parse_clock_time(), returning only the datetime."""
    parsed = parse_clock_time(text, anchor, timezone)
    return parsed.value if parsed else None
