"""In-memory state of the call in progress and the note being taken for it.

Call state runs idle -> incoming-ringing -> active -> idle. Note editing is
tracked separately: it starts when a call ends (or a contact is picked for
a manual note) and stops on save or skip. Nothing here is persisted; saving
a note is the only hand-off to the store.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterable

from callnotes.models import CallNote, Contact, Reminder
from callnotes.services.extraction import (
    DetectedDateTime,
    TimeParser,
    detect_date_times,
    parse_time_from_description,
)
from callnotes.store import CallNotesStore

logger = logging.getLogger(__name__)

IDLE = "idle"
INCOMING_RINGING = "incoming-ringing"
ACTIVE = "active"

AUTO_NOTE_TEXT = "No note was taken"


@dataclass
class CallInfo:
    contact: Contact
    start_time: datetime
    direction: str = "inbound"


class CallSession:
    def __init__(
        self,
        store: CallNotesStore,
        clock: Callable[[], datetime] | None = None,
        parse_time: TimeParser = parse_time_from_description,
    ) -> None:
        self.store = store
        self.clock = clock or store.clock
        self.parse_time = parse_time

        self.state = IDLE
        self.incoming_call: CallInfo | None = None
        self.active_call: CallInfo | None = None

        self.note_editing = False
        self.contact: Contact | None = None
        self.call_start_time: datetime | None = None
        self.call_end_time: datetime | None = None
        self.call_direction = "inbound"

        self.reminder_suggestions_open = False
        self.detected_date_times: list[DetectedDateTime] = []
        self.current_note_for_reminder: CallNote | None = None

    def _ignored(self, action: str) -> None:
        logger.debug("Ignoring %s while %s", action, self.state)

    # -- call state ------------------------------------------------------

    def simulate_incoming_call(self, contact: Contact, direction: str = "inbound") -> None:
        if self.state != IDLE:
            return self._ignored("incoming call")
        self.incoming_call = CallInfo(contact, self.clock(), direction)
        self.state = INCOMING_RINGING

    def answer_call(self) -> None:
        if self.state != INCOMING_RINGING or self.incoming_call is None:
            return self._ignored("answer")
        start = self.clock()
        self.active_call = CallInfo(self.incoming_call.contact, start, self.incoming_call.direction)
        self.call_start_time = start
        self.incoming_call = None
        self.state = ACTIVE

    def decline_call(self) -> None:
        if self.state != INCOMING_RINGING:
            return self._ignored("decline")
        self.incoming_call = None
        self.state = IDLE

    def end_call(self) -> None:
        if self.state != ACTIVE or self.active_call is None or self.call_start_time is None:
            return self._ignored("hang up")
        self.call_end_time = self.clock()
        self.contact = self.active_call.contact
        self.call_direction = self.active_call.direction
        self.active_call = None
        self.state = IDLE
        self.note_editing = True

    # -- note editing ----------------------------------------------------

    def open_call_note(self, contact: Contact) -> None:
        """Take a note for ``contact`` without a call."""
        now = self.clock()
        self.contact = contact
        self.call_start_time = now
        self.call_end_time = now
        self.call_direction = "inbound"
        self.note_editing = True

    def close_note_editor(self) -> None:
        self.note_editing = False
        self.contact = None
        self.call_start_time = None
        self.call_end_time = None
        self.call_direction = "inbound"

    skip_note = close_note_editor

    def save_note(
        self,
        text: str,
        status: str = "follow-up",
        custom_status: str | None = None,
        priority: str | None = None,
        tags: Iterable[str] | None = None,
    ) -> CallNote | None:
        """Persist the note and close the editor.

        A store failure propagates and leaves the editor open. Reminder
        suggestions are offered afterwards when the text mentions a time.
        """
        if not (self.note_editing and self.contact and self.call_start_time and self.call_end_time):
            self._ignored("save")
            self.close_note_editor()
            return None

        stripped = text.strip()
        note = self.store.add_note(
            contact_id=self.contact.id,
            contact_name=self.contact.name,
            note=stripped or AUTO_NOTE_TEXT,
            call_start_time=self.call_start_time,
            call_end_time=self.call_end_time,
            is_auto_generated=not stripped,
            call_direction=self.call_direction,
            status=status,
            custom_status=custom_status,
            priority=priority or "medium",
            tags=list(tags or []),
        )
        self.close_note_editor()

        if stripped:
            self._offer_reminders(note, text)
        return note

    # -- reminder suggestions --------------------------------------------

    def _offer_reminders(self, note: CallNote, text: str) -> None:
        try:
            detections = detect_date_times(text, self.parse_time, self.clock())
        except Exception:
            logger.exception("Time detection failed for note %s", note.id)
            return
        if detections:
            self.detected_date_times = detections
            self.current_note_for_reminder = note
            self.reminder_suggestions_open = True

    def create_reminder_from_detection(
        self, detection: DetectedDateTime, title: str | None = None
    ) -> Reminder | None:
        note = self.current_note_for_reminder
        if note is None:
            return None
        excerpt = note.note[:100] + ("..." if len(note.note) > 100 else "")
        return self.store.add_reminder(
            contact_id=note.contact_id,
            contact_name=note.contact_name,
            title=title or f"Follow up: {detection.original_text}",
            description=f'From call note: "{excerpt}"',
            due_date=detection.suggested_date,
            is_completed=False,
            related_note_id=note.id,
        )

    def close_reminder_suggestions(self) -> None:
        self.reminder_suggestions_open = False
        self.detected_date_times = []
        self.current_note_for_reminder = None
