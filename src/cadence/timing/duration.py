"""Human duration strings ("1h45m2s", "90 minutes") to numbers."""

import re

# Milliseconds per unit, keyed by every accepted spelling
_UNIT_MS: dict[str, float] = {}
for _ms, _names in (
    (1, ("ms", "msec", "msecs", "millisecond", "milliseconds")),
    (1000, ("s", "sec", "secs", "second", "seconds")),
    (60 * 1000, ("m", "min", "mins", "minute", "minutes")),
    (60 * 60 * 1000, ("h", "hr", "hrs", "hour", "hours")),
    (24 * 60 * 60 * 1000, ("d", "day", "days")),
    (7 * 24 * 60 * 60 * 1000, ("w", "wk", "wks", "week", "weeks")),
):
    for _name in _names:
        _UNIT_MS[_name] = _ms

_TOKEN_RE = re.compile(r"(\d+(?:\.\d+)?)\s*([a-z]+)")
_SEPARATOR_RE = re.compile(r"[\s,]*(?:and)?[\s,]*")


def parse_duration(text: str, unit: str = "ms") -> float | None:
    """Parse a duration string into a number of `unit`.

    Accepts one or more ``<number><unit>`` tokens, optionally separated by
    whitespace, commas or "and": "1h45m2s", "1h 30m", "2 hours and 5 minutes".

    Args:
        text: Duration string to parse.
        unit: Unit of the returned value (any accepted unit spelling).

    Returns:
        The duration in `unit`, or None if `text` is not a duration.
    """
    if unit not in _UNIT_MS:
        raise ValueError(f"Unknown duration unit: {unit}")

    remaining = text.strip().lower()
    if not remaining:
        return None

    total_ms = 0.0
    pos = 0
    while pos < len(remaining):
        match = _TOKEN_RE.match(remaining, pos)
        if not match or match.group(2) not in _UNIT_MS:
            return None
        total_ms += float(match.group(1)) * _UNIT_MS[match.group(2)]
        pos = _SEPARATOR_RE.match(remaining, match.end()).end()

    return total_ms / _UNIT_MS[unit]


def format_duration(seconds: float) -> str:
    """Format a duration compactly, e.g. 6302 -> "1h45m2s"."""
    if seconds < 0:
        return "-" + format_duration(-seconds)
    total = int(seconds)
    if total == 0:
        return f"{int(seconds * 1000)}ms"

    parts = []
    for size, suffix in ((86400, "d"), (3600, "h"), (60, "m"), (1, "s")):
        if total >= size:
            parts.append(f"{total // size}{suffix}")
            total %= size
    return "".join(parts)
