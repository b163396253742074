from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from callnotes.models import utcnow

logger = logging.getLogger(__name__)

# "3pm", "3:30pm", "at 3:30", "14:30", "12.30"
_TIME_PATTERN = re.compile(r"\b(?:at\s+)?(\d{1,2})\s*[:.]?\s*(\d{2})?\s*(am|pm)?\b", re.IGNORECASE)

# First line of the default note template
_CALL_HEADER = re.compile(r"^Call with .* - ")

TimeParser = Callable[[str, datetime, bool], Optional[datetime]]


@dataclass
class DetectedDateTime:
    original_text: str
    suggested_date: datetime
    type: str = "time"
    confidence: float = 0.9


def parse_time_from_description(
    description: str,
    base_date: datetime | None = None,
    adjust_to_future: bool = False,
    now: datetime | None = None,
) -> datetime | None:
    """Apply the first time mentioned in ``description`` to ``base_date``.

    With ``adjust_to_future``, a time that has already passed moves to the
    next day. Hours or minutes out of range give None.
    """
    if not description:
        return None
    m = _TIME_PATTERN.search(description)
    if not m:
        return None

    hours = int(m.group(1))
    minutes = int(m.group(2)) if m.group(2) else 0
    meridiem = m.group(3)
    if meridiem:
        is_pm = meridiem.lower() == "pm"
        if is_pm and hours < 12:
            hours += 12
        if not is_pm and hours == 12:
            hours = 0
    if hours > 23 or minutes > 59:
        return None

    now = now or utcnow()
    base = (base_date or now).astimezone()
    result = base.replace(hour=hours, minute=minutes, second=0, microsecond=0)
    if adjust_to_future and result <= now:
        result += timedelta(days=1)
    return result


def detect_date_times(
    text: str,
    parse_time: TimeParser = parse_time_from_description,
    reference: datetime | None = None,
) -> list[DetectedDateTime]:
    """Find times mentioned in a note, one suggestion per distinct hour:minute."""
    lines = text.split("\n")
    if lines and _CALL_HEADER.match(lines[0]):
        text = "\n".join(lines[1:])

    reference = reference or utcnow()
    detections: list[DetectedDateTime] = []
    seen: set[tuple[int, int]] = set()
    for m in _TIME_PATTERN.finditer(text):
        suggested = parse_time(m.group(0), reference, True)
        if suggested is None:
            continue
        slot = (suggested.hour, suggested.minute)
        if slot in seen:
            continue
        seen.add(slot)
        detections.append(DetectedDateTime(original_text=m.group(0), suggested_date=suggested))

    logger.debug("Detected %d time(s) in note text", len(detections))
    return detections
