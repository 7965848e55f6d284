"""Translation of trigger frequencies into crontab expressions."""

from __future__ import annotations

import re
from typing import Optional, Tuple

from .constants import DEFAULT_SCHEDULE_HOUR, DEFAULT_SCHEDULE_MINUTE, JOB_NAME_PREFIX
from .errors import ConfigurationError

_TIME_RE = re.compile(r"^(\d{1,2}):(\d{2})$")

_PRESETS = {
    "hourly": "{minute} * * * *",
    "daily": "{minute} {hour} * * *",
    "weekly": "{minute} {hour} * * mon",
    "monthly": "{minute} {hour} 1 * *",
}


def parse_time_of_day(value: str) -> Tuple[int, int]:
    """Parse ``HH:MM`` into ``(hour, minute)``."""
    match = _TIME_RE.match(value.strip())
    if not match:
        raise ConfigurationError(f"invalid schedule time '{value}', expected HH:MM")
    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        raise ConfigurationError(f"invalid schedule time '{value}', expected HH:MM")
    return hour, minute


def translate_frequency(frequency: str, at: Optional[str] = None) -> str:
    """Map a human frequency onto a five-field crontab expression.

    ``hourly``, ``daily``, ``weekly`` (Mondays) and ``monthly`` (the 1st)
    fire at 09:00 unless ``at`` (``HH:MM``) says otherwise; for ``hourly``
    only the minute of ``at`` is used. Any other value is assumed to be a
    crontab expression already and is returned verbatim.
    """
    pattern = _PRESETS.get(frequency)
    if pattern is None:
        return frequency

    hour, minute = DEFAULT_SCHEDULE_HOUR, DEFAULT_SCHEDULE_MINUTE
    if at:
        hour, minute = parse_time_of_day(at)
    return pattern.format(minute=minute, hour=hour)


def job_name_for(workflow_id: str) -> str:
    """Deterministic scheduler job id for a workflow."""
    return f"{JOB_NAME_PREFIX}{workflow_id}"
