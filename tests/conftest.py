from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from callnotes.backing import MemoryBacking
from callnotes.models import CallNote
from callnotes.store import CallNotesStore


class FailingBacking(MemoryBacking):
    """Memory backing whose reads and writes can be switched off."""

    def __init__(self, initial=None):
        super().__init__(initial)
        self.fail_writes = False
        self.fail_reads = False
        self.writes = 0

    def get(self, key):
        if self.fail_reads:
            raise OSError("storage unavailable")
        return super().get(key)

    def set(self, key, value):
        if self.fail_writes:
            raise OSError("storage unavailable")
        self.writes += 1
        super().set(key, value)


class FakeClock:
    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


def make_note(note_id, contact, start, folder_id=None, created=None, **extra) -> CallNote:
    return CallNote(
        id=note_id,
        contact_id=f"c-{contact}",
        contact_name=contact,
        note=extra.pop("note", f"note {note_id}"),
        call_start_time=start,
        call_end_time=start + timedelta(minutes=5),
        call_duration=300,
        folder_id=folder_id,
        created_at=created or start,
        **extra,
    )


@pytest.fixture
def backing():
    return FailingBacking()


@pytest.fixture
def store(backing):
    return CallNotesStore(backing).init()
