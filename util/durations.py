"""
Duration strings as used on the command line and in the config file.

Accepts the compact unit form ("15m", "1h30m", "1.5h", "500ms") and a bare "0".
"""

import re

UNIT_SECONDS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}

_COMPONENT = re.compile(r"(\d+\.?\d*|\.\d+)(ns|us|µs|ms|s|m|h)")


def parse_duration(text: str) -> float:
    """Parse a duration string into seconds.

    Raises ValueError for anything that isn't a sequence of number+unit pairs.
    """
    original = text
    text = text.strip()
    sign = 1.0
    if text[:1] in ("+", "-"):
        sign = -1.0 if text[0] == "-" else 1.0
        text = text[1:]

    if text == "0":
        return 0.0
    if not text:
        raise ValueError(f"invalid duration {original!r}")

    total = 0.0
    position = 0
    while position < len(text):
        match = _COMPONENT.match(text, position)
        if match is None:
            raise ValueError(f"invalid duration {original!r}")
        total += float(match.group(1)) * UNIT_SECONDS[match.group(2)]
        position = match.end()

    return sign * total


def format_duration(seconds: float) -> str:
    """Render a duration compactly: 1h, 1h5m, 2m, 2m30s, 45s.

    Sub-units are truncated, never rounded up.
    """
    seconds = int(max(0.0, seconds))
    if seconds >= 3600:
        hours, rest = divmod(seconds, 3600)
        minutes = rest // 60
        return f"{hours}h{minutes}m" if minutes else f"{hours}h"
    if seconds >= 60:
        minutes, secs = divmod(seconds, 60)
        return f"{minutes}m{secs}s" if secs else f"{minutes}m"
    return f"{seconds}s"


def _fixed(value: int, digits: int) -> str:
    # value scaled by 10**digits, trailing zeros of the fraction dropped
    whole, frac = divmod(value, 10 ** digits)
    frac_text = str(frac).rjust(digits, "0").rstrip("0")
    return f"{whole}.{frac_text}" if frac_text else str(whole)


def duration_string(seconds: float) -> str:
    """Render a duration the way Go's time.Duration prints: 1h0m0s, 30m0s, 1.5s, 250ms.

    This is the form machine-readable output uses. Precision is nanoseconds.
    """
    nanos = round(seconds * 1e9)
    if nanos == 0:
        return "0s"

    sign = "-" if nanos < 0 else ""
    nanos = abs(nanos)

    if nanos < 1000:
        return f"{sign}{nanos}ns"
    if nanos < 1_000_000:
        return f"{sign}{_fixed(nanos, 3)}µs"
    if nanos < 1_000_000_000:
        return f"{sign}{_fixed(nanos, 6)}ms"

    whole_seconds, frac = divmod(nanos, 1_000_000_000)
    hours, rest = divmod(whole_seconds, 3600)
    minutes, secs = divmod(rest, 60)
    text = _fixed(secs * 1_000_000_000 + frac, 9) + "s"
    if hours:
        return f"{sign}{hours}h{minutes}m{text}"
    if minutes:
        return f"{sign}{minutes}m{text}"
    return f"{sign}{text}"
