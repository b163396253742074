from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, Sequence

from callnotes.models import CallNote, utcnow

FILTER_TYPES = ("status", "priority", "folder", "direction", "date")
NO_FOLDER = "no-folder"


@dataclass(frozen=True)
class NoteFilter:
    type: str
    value: str
    label: str = ""


def add_filter(filters: Sequence[NoteFilter], new: NoteFilter) -> list[NoteFilter]:
    if any(f.type == new.type and f.value == new.value for f in filters):
        return list(filters)
    return [*filters, new]


def remove_filter(filters: Sequence[NoteFilter], old: NoteFilter) -> list[NoteFilter]:
    return [f for f in filters if not (f.type == old.type and f.value == old.value)]


def _keep(note: CallNote, flt: NoteFilter, now: datetime) -> bool:
    if flt.type == "status":
        return note.status == flt.value
    if flt.type == "priority":
        return note.priority == flt.value
    if flt.type == "folder":
        if flt.value == NO_FOLDER:
            return not note.folder_id
        return note.folder_id == flt.value
    if flt.type == "direction":
        return note.call_direction == flt.value
    if flt.type == "date":
        if flt.value == "today":
            return note.created_at.astimezone().date() == now.astimezone().date()
        if flt.value == "week":
            return note.created_at >= now - timedelta(days=7)
        if flt.value == "month":
            return note.created_at >= now - timedelta(days=30)
        return True
    raise ValueError(f"Unknown filter type {flt.type!r}")


def apply_filters(
    notes: Iterable[CallNote], filters: Sequence[NoteFilter], now: datetime | None = None
) -> list[CallNote]:
    """Keep notes passing every filter."""
    now = now or utcnow()
    return [note for note in notes if all(_keep(note, f, now) for f in filters)]
