"""Parsing of human friendly durations such as ``10m`` or ``1h30m``."""

import re
from datetime import timedelta
from typing import Optional

from ..exceptions import ValidationError

DEFAULT_AWAIT = timedelta(minutes=15)

_DURATION_RE = re.compile(
    r"^(?:(?P<hours>\d+)h)?(?:(?P<minutes>\d+)m)?(?:(?P<seconds>\d+(?:\.\d+)?)s)?$",
    re.IGNORECASE,
)


def parse_duration(value: Optional[str]) -> timedelta:
    """Parse a duration string.

    Args:
        value: Duration like ``2s``, ``10m``, ``1h30m`` or ``1.5s``.
            Empty or missing values map to the default await timeout.

    Returns:
        The parsed duration.

    Raises:
        ValidationError: If the value is not a valid duration.
    """
    if value is None or not value.strip():
        return DEFAULT_AWAIT

    match = _DURATION_RE.match(value.strip())
    if match is None or not any(match.groupdict().values()):
        raise ValidationError(f"Invalid duration: '{value}' - use e.g. 30s, 10m, 1h")

    return timedelta(
        hours=int(match.group("hours") or 0),
        minutes=int(match.group("minutes") or 0),
        seconds=float(match.group("seconds") or 0),
    )
