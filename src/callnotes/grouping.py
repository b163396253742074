"""Group call notes into the hierarchies the note screens display.

Groups are at most two levels deep: a ``BucketGroup`` (time period or
folder) holds ``ContactGroup`` leaves, and a ``ContactGroup`` never holds
anything but notes. Group ids come from the bucket key, so expand/collapse
state keyed by id survives recomputation.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, tzinfo
from typing import Iterable, Iterator, Sequence, Union

from callnotes.models import CallNote, NoteFolder

GROUP_BY_OPTIONS = ("none", "day", "week", "month", "year", "folder")
TIME_MODES = ("day", "week", "month", "year")


@dataclass
class ContactGroup:
    id: str
    title: str
    notes: list[CallNote]
    contact_name: str
    kind: str = "contact-based"
    date: datetime | None = None


@dataclass
class BucketGroup:
    id: str
    title: str
    notes: list[CallNote]
    kind: str
    sub_groups: list[ContactGroup] = field(default_factory=list)
    folder_id: str | None = None
    date: datetime | None = None


Group = Union[ContactGroup, BucketGroup]


def _newest_call_first(notes: Iterable[CallNote]) -> list[CallNote]:
    return sorted(notes, key=lambda n: n.call_start_time, reverse=True)


def _by_contact(notes: Iterable[CallNote]) -> dict[str, list[CallNote]]:
    buckets: dict[str, list[CallNote]] = {}
    for note in notes:
        buckets.setdefault(note.contact_name, []).append(note)
    return buckets


def _contact_subgroups(parent_id: str, notes: Iterable[CallNote]) -> list[ContactGroup]:
    subgroups = []
    for name, members in _by_contact(notes).items():
        ordered = _newest_call_first(members)
        subgroups.append(
            ContactGroup(
                id=f"{parent_id}-{name}",
                title=name,
                notes=ordered,
                contact_name=name,
                date=ordered[0].call_start_time,
            )
        )
    subgroups.sort(key=lambda g: g.date, reverse=True)
    return subgroups


def time_bucket(when: datetime, mode: str, tz: tzinfo | None = None) -> tuple[str, str]:
    """Return (key, title) of the day/week/month/year period containing ``when``."""
    day = when.astimezone(tz).date()
    if mode == "day":
        return f"day-{day.isoformat()}", f"{day:%A, %B} {day.day}, {day.year}"
    if mode == "week":
        # Weeks run Sunday to Saturday.
        start = day - timedelta(days=(day.weekday() + 1) % 7)
        end = start + timedelta(days=6)
        title = f"Week of {start:%b} {start.day} - {end:%b} {end.day}, {end.year}"
        return f"week-{start.isoformat()}", title
    if mode == "month":
        return f"month-{day.year}-{day.month:02d}", f"{day:%B} {day.year}"
    if mode == "year":
        return f"year-{day.year}", str(day.year)
    raise ValueError(f"Not a time grouping: {mode!r}")


def _group_by_contact(notes: Sequence[CallNote]) -> list[Group]:
    groups: list[Group] = []
    for name, members in _by_contact(notes).items():
        ordered = sorted(members, key=lambda n: n.created_at, reverse=True)
        groups.append(
            ContactGroup(
                id=f"contact-{name}",
                title=name,
                notes=ordered,
                contact_name=name,
                date=ordered[0].created_at,
            )
        )
    groups.sort(key=lambda g: g.date, reverse=True)
    return groups


def _group_by_time(notes: Sequence[CallNote], mode: str, tz: tzinfo | None) -> list[Group]:
    buckets: dict[str, tuple[str, list[CallNote]]] = {}
    for note in notes:
        key, title = time_bucket(note.call_start_time, mode, tz)
        buckets.setdefault(key, (title, []))[1].append(note)

    groups: list[Group] = []
    for key, (title, members) in buckets.items():
        ordered = _newest_call_first(members)
        groups.append(
            BucketGroup(
                id=key,
                title=title,
                notes=ordered,
                kind="time-based",
                sub_groups=_contact_subgroups(key, ordered),
                date=ordered[0].call_start_time,
            )
        )
    groups.sort(key=lambda g: g.date, reverse=True)
    return groups


def _group_by_folder(notes: Sequence[CallNote], folders: Sequence[NoteFolder]) -> list[Group]:
    groups: list[Group] = []
    seen: set[str] = set()
    for folder in folders:
        if folder.id in seen:
            continue
        seen.add(folder.id)
        members = [n for n in notes if n.folder_id == folder.id]
        if not members:
            continue
        ordered = _newest_call_first(members)
        groups.append(
            BucketGroup(
                id=folder.id,
                title=folder.name,
                notes=ordered,
                kind="folder-based",
                sub_groups=_contact_subgroups(folder.id, ordered),
                folder_id=folder.id,
                date=ordered[0].call_start_time,
            )
        )

    # Dangling folder ids count as unfiled.
    unfiled = [n for n in notes if not n.folder_id or n.folder_id not in seen]
    if unfiled:
        ordered = _newest_call_first(unfiled)
        groups.append(
            BucketGroup(
                id="ungrouped",
                title="Ungrouped",
                notes=ordered,
                kind="folder-based",
                sub_groups=_contact_subgroups("ungrouped", ordered),
                date=ordered[0].call_start_time,
            )
        )
    return groups


def group_notes(
    notes: Sequence[CallNote],
    mode: str,
    folders: Sequence[NoteFolder] = (),
    tz: tzinfo | None = None,
) -> list[Group]:
    """Group notes by ``mode``, one of GROUP_BY_OPTIONS.

    ``none`` still buckets per contact. Time modes bucket on call start time
    in ``tz`` (local time when omitted). Equal timestamps keep input order.
    """
    if mode == "none":
        return _group_by_contact(notes)
    if mode in TIME_MODES:
        return _group_by_time(notes, mode, tz)
    if mode == "folder":
        return _group_by_folder(notes, folders)
    raise ValueError(f"Unknown grouping {mode!r}; expected one of {', '.join(GROUP_BY_OPTIONS)}")


def iter_grouped_notes(groups: Iterable[Group]) -> Iterator[CallNote]:
    """Yield every note once, descending into subgroups where present."""
    for group in groups:
        if isinstance(group, BucketGroup) and group.sub_groups:
            for sub in group.sub_groups:
                yield from sub.notes
        else:
            yield from group.notes


def locate_note(groups: Iterable[Group], note_id: str) -> list[str]:
    """Ids of the group and subgroup holding ``note_id``, outermost first."""
    for group in groups:
        if not any(n.id == note_id for n in group.notes):
            continue
        path = [group.id]
        if isinstance(group, BucketGroup):
            for sub in group.sub_groups:
                if any(n.id == note_id for n in sub.notes):
                    path.append(sub.id)
                    break
        return path
    return []
