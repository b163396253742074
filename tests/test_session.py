from __future__ import annotations

import pytest

from callnotes.models import Contact
from callnotes.session import ACTIVE, AUTO_NOTE_TEXT, IDLE, INCOMING_RINGING, CallSession
from callnotes.store import CallNotesStore

from conftest import FakeClock, utc

ALICE = Contact(id="c1", name="Alice", phone_number="+15550001")


@pytest.fixture
def clock():
    # Far enough ahead that detected times are never moved to the next day.
    return FakeClock(utc(2099, 5, 1, 9, 0))


@pytest.fixture
def session(backing, clock):
    return CallSession(CallNotesStore(backing, clock=clock).init())


def _take_call(session, clock, seconds=125, direction="inbound"):
    session.simulate_incoming_call(ALICE, direction)
    session.answer_call()
    clock.advance(seconds)
    session.end_call()


def test_call_lifecycle(session, clock):
    assert session.state == IDLE
    session.simulate_incoming_call(ALICE)
    assert session.state == INCOMING_RINGING
    assert session.incoming_call.contact == ALICE

    session.answer_call()
    assert session.state == ACTIVE
    assert session.incoming_call is None
    assert session.active_call.start_time == utc(2099, 5, 1, 9, 0)

    clock.advance(90)
    session.end_call()
    assert session.state == IDLE
    assert session.active_call is None
    assert session.note_editing
    assert session.contact == ALICE


def test_decline_returns_to_idle(session):
    session.simulate_incoming_call(ALICE)
    session.decline_call()
    assert session.state == IDLE
    assert session.incoming_call is None
    assert not session.note_editing


def test_invalid_transitions_are_ignored(session):
    session.answer_call()
    session.end_call()
    session.decline_call()
    assert session.state == IDLE

    session.simulate_incoming_call(ALICE)
    session.answer_call()
    session.simulate_incoming_call(Contact(id="c2", name="Bob"))
    assert session.state == ACTIVE
    assert session.active_call.contact == ALICE


def test_save_note_after_call(session, clock):
    _take_call(session, clock, seconds=125, direction="outbound")
    note = session.save_note("  Discussed pricing  ", status="waiting-reply", tags=["Sales"])

    assert note.note == "Discussed pricing"
    assert note.call_duration == 125
    assert note.call_direction == "outbound"
    assert note.contact_name == "Alice"
    assert note.status == "waiting-reply"
    assert note.priority == "medium"
    assert not note.is_auto_generated
    assert session.store.notes() == [note]
    assert not session.note_editing
    assert session.contact is None
    assert not session.reminder_suggestions_open


def test_empty_note_is_auto_generated(session, clock):
    _take_call(session, clock)
    note = session.save_note("   ")
    assert note.note == AUTO_NOTE_TEXT
    assert note.is_auto_generated
    assert not session.reminder_suggestions_open


def test_skip_note_saves_nothing(session, clock):
    _take_call(session, clock)
    session.skip_note()
    assert not session.note_editing
    assert session.store.notes() == []


def test_manual_note_has_zero_duration(session):
    session.open_call_note(ALICE)
    note = session.save_note("Dropped by the office")
    assert note.call_duration == 0
    assert note.call_start_time == note.call_end_time


def test_save_without_editor_does_nothing(session):
    assert session.save_note("orphan") is None
    assert session.store.notes() == []


def test_store_failure_keeps_editor_open(session, clock, backing):
    _take_call(session, clock)
    backing.fail_writes = True
    with pytest.raises(OSError):
        session.save_note("Call back at 3pm")
    assert session.note_editing
    assert session.contact == ALICE
    assert not session.reminder_suggestions_open


def test_time_in_note_offers_reminder(session, clock):
    _take_call(session, clock)
    note = session.save_note("Call back at 3pm, tag: urgent")

    assert session.reminder_suggestions_open
    assert session.current_note_for_reminder == note
    [detected] = session.detected_date_times
    assert detected.original_text == "at 3pm"
    assert (detected.suggested_date.hour, detected.suggested_date.minute) == (15, 0)

    reminder = session.create_reminder_from_detection(detected)
    assert reminder.title == "Follow up: at 3pm"
    assert reminder.description == 'From call note: "Call back at 3pm, tag: urgent"'
    assert reminder.related_note_id == note.id
    assert reminder.due_date == detected.suggested_date
    assert session.store.reminders() == [reminder]

    session.close_reminder_suggestions()
    assert not session.reminder_suggestions_open
    assert session.detected_date_times == []
    assert session.current_note_for_reminder is None


def test_long_note_excerpt_is_truncated(session, clock):
    _take_call(session, clock)
    text = "Ring them at 4pm. " + "x" * 200
    session.save_note(text)
    reminder = session.create_reminder_from_detection(session.detected_date_times[0], title="Ring")
    assert reminder.title == "Ring"
    assert reminder.description == f'From call note: "{text[:100]}..."'


def test_detection_failure_does_not_fail_save(backing, clock):
    def broken(text, reference, strict):
        raise RuntimeError("parser crashed")

    session = CallSession(CallNotesStore(backing, clock=clock).init(), parse_time=broken)
    _take_call(session, clock)
    note = session.save_note("Call back at 3pm")
    assert session.store.notes() == [note]
    assert not session.reminder_suggestions_open


def test_injected_parser_can_find_nothing(backing, clock):
    session = CallSession(
        CallNotesStore(backing, clock=clock).init(), parse_time=lambda text, ref, strict: None
    )
    _take_call(session, clock)
    session.save_note("Call back at 3pm")
    assert not session.reminder_suggestions_open


def test_create_reminder_without_note(session):
    assert session.create_reminder_from_detection(None) is None
