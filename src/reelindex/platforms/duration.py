"""ISO-8601 duration parsing for platform metadata."""

from __future__ import annotations

import re

_DURATION_RE = re.compile(r"^PT(?:(\d+)H)?(?:(\d+)M)?(?:(\d+)S)?$")


def parse_iso8601_duration(value: str | None) -> int:
    """Convert ``PT#H#M#S`` to seconds; anything else yields 0.

    >>> parse_iso8601_duration("PT1H2M30S")
    3750
    """
    if not value:
        return 0
    match = _DURATION_RE.match(value.strip())
    if match is None:
        return 0
    hours, minutes, seconds = (int(group or 0) for group in match.groups())
    return hours * 3600 + minutes * 60 + seconds
