"""The local data store: cached reads and the mutation pipeline.

Every mutation reads the current collection for its topic (a failed
backing read aborts it rather than overwriting unread data), computes the
new collection, writes it to the backing store as one blob, and only then
puts that same collection into the cache. A failed write raises and leaves
the cache as it was.
"""
from __future__ import annotations

import logging
import random
import string
import time
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Iterable

from callnotes.backing import KeyValueBacking, SqliteBacking
from callnotes.cache import TopicCache
from callnotes.config import db_path
from callnotes.models import (
    CallNote,
    Contact,
    NoteFolder,
    NoteSettings,
    Order,
    PremiumSettings,
    ProductCatalog,
    Record,
    Reminder,
    field_names,
    utcnow,
)
from callnotes.repositories import STORAGE_KEYS, StorageReadError, build_repositories
from callnotes.services.contact_import import (
    FAKE_CONTACTS,
    ContactImportError,
    ContactSource,
    DeviceContact,
    ImportResult,
    normalize_phone,
)

logger = logging.getLogger(__name__)

_ID_ALPHABET = string.ascii_lowercase + string.digits


def new_id() -> str:
    """Millisecond timestamp plus a random suffix, safe for bulk inserts."""
    suffix = "".join(random.choices(_ID_ALPHABET, k=9))
    return f"{int(time.time() * 1000)}{suffix}"


def _check_fields(record_type: type[Record], changes: dict[str, Any]) -> None:
    unknown = set(changes) - field_names(record_type)
    if unknown:
        raise TypeError(
            f"{record_type.__name__} has no field(s): {', '.join(sorted(unknown))}"
        )


class CallNotesStore:
    def __init__(
        self,
        backing: KeyValueBacking,
        clock: Callable[[], datetime] | None = None,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        self.backing = backing
        self.clock = clock or utcnow
        self.new_id = id_factory or new_id
        self.cache: TopicCache = TopicCache()
        self.repositories = build_repositories(backing)

    # -- lifecycle -------------------------------------------------------

    def init(self) -> CallNotesStore:
        for topic in self.repositories:
            self._read(topic)
        return self

    def dispose(self) -> None:
        self.cache.invalidate_all()
        self.backing.close()

    def __enter__(self) -> CallNotesStore:
        return self.init()

    def __exit__(self, *exc_info: object) -> None:
        self.dispose()

    # -- reads -----------------------------------------------------------

    def _current(self, topic: str) -> Any:
        return self.cache.get_or_load(topic, self.repositories[topic].read)

    def _read(self, topic: str) -> Any:
        # A failed backing read shows the default but is not cached, so the
        # next read retries and mutations refuse to build on it.
        try:
            return self._current(topic)
        except StorageReadError:
            logger.exception("Error reading %s from storage", topic)
            return self.repositories[topic].default()

    def contacts(self) -> list[Contact]:
        return self._read("contacts")

    def notes(self) -> list[CallNote]:
        return self._read("notes")

    def reminders(self) -> list[Reminder]:
        return self._read("reminders")

    def orders(self) -> list[Order]:
        return self._read("orders")

    def folders(self) -> list[NoteFolder]:
        return self._read("folders")

    def product_catalogs(self) -> list[ProductCatalog]:
        return self._read("product-catalogs")

    def preset_tags(self) -> list[str]:
        return self._read("preset-tags")

    def note_settings(self) -> NoteSettings:
        return self._read("note-settings")

    def premium_settings(self) -> PremiumSettings:
        return self._read("premium-settings")

    def note_template(self) -> str:
        return self._read("note-template")

    def contact(self, contact_id: str | None) -> Contact | None:
        return next((c for c in self.contacts() if c.id == contact_id), None)

    def folder(self, folder_id: str | None) -> NoteFolder | None:
        if not folder_id:
            return None
        return next((f for f in self.folders() if f.id == folder_id), None)

    def folder_label(self, folder_id: str | None) -> str:
        found = self.folder(folder_id)
        return found.name if found else "No Folder"

    # -- pipeline --------------------------------------------------------

    def _commit(self, topic: str, value: Any) -> Any:
        self.repositories[topic].save(value)
        self.cache.put(topic, value)
        return value

    def _append(self, topic: str, record: Record) -> Record:
        self._commit(topic, [*self._current(topic), record])
        logger.debug("Added %s %s", topic, record.id)
        return record

    def _update(
        self,
        topic: str,
        record_type: type[Record],
        record_id: str,
        changes: dict[str, Any],
        stamp: bool = False,
    ) -> list:
        _check_fields(record_type, changes)
        if stamp:
            changes = {**changes, "updated_at": self.clock()}
        collection = [
            replace(record, **changes) if record.id == record_id else record
            for record in self._current(topic)
        ]
        return self._commit(topic, collection)

    def _delete(self, topic: str, record_id: str) -> list:
        collection = [record for record in self._current(topic) if record.id != record_id]
        return self._commit(topic, collection)

    # -- contacts --------------------------------------------------------

    def add_contact(self, **fields: Any) -> Contact:
        contact = Contact(**fields)
        return self._append(
            "contacts", replace(contact, id=self.new_id(), created_at=self.clock())
        )

    def update_contact(self, contact_id: str, **changes: Any) -> list[Contact]:
        return self._update("contacts", Contact, contact_id, changes)

    def delete_contact(self, contact_id: str) -> list[Contact]:
        # Notes keep their contact id and name snapshot.
        return self._delete("contacts", contact_id)

    def _merge_contacts(self, candidates: Iterable[DeviceContact], normalize: bool) -> ImportResult:
        existing = self._current("contacts")
        phones = {c.phone_number for c in existing}
        added: list[Contact] = []
        for candidate in candidates:
            if not candidate.name or not candidate.phone_numbers:
                continue
            phone = candidate.phone_numbers[0]
            if normalize:
                phone = normalize_phone(phone)
            if not phone or phone in phones:
                continue
            added.append(
                Contact(
                    id=self.new_id(),
                    name=candidate.name,
                    phone_number=phone,
                    business_card_image=candidate.business_card_image,
                    created_at=self.clock(),
                )
            )
            phones.add(phone)
        self._commit("contacts", [*existing, *added])
        return ImportResult(imported=len(added), total=len(existing) + len(added))

    def import_device_contacts(self, source: ContactSource) -> ImportResult:
        if not source.request_permission():
            raise ContactImportError("Permission to access contacts was denied")
        result = self._merge_contacts(source.list_contacts(), normalize=True)
        logger.info("Imported %d contacts (%d total)", result.imported, result.total)
        return result

    def add_fake_contacts(self) -> ImportResult:
        return self._merge_contacts(FAKE_CONTACTS, normalize=False)

    # -- notes -----------------------------------------------------------

    def add_note(self, **fields: Any) -> CallNote:
        note = CallNote(**fields)
        duration = int((note.call_end_time - note.call_start_time).total_seconds())
        note = replace(
            note,
            id=self.new_id(),
            call_duration=duration,
            created_at=self.clock(),
        )
        return self._append("notes", note)

    def update_note(self, note_id: str, **changes: Any) -> list[CallNote]:
        return self._update("notes", CallNote, note_id, changes, stamp=True)

    def delete_note(self, note_id: str) -> list[CallNote]:
        return self._delete("notes", note_id)

    # -- reminders -------------------------------------------------------

    def add_reminder(self, **fields: Any) -> Reminder:
        reminder = Reminder(**fields)
        completed_at = self.clock() if reminder.is_completed else None
        return self._append(
            "reminders",
            replace(
                reminder,
                id=self.new_id(),
                created_at=self.clock(),
                completed_at=completed_at,
            ),
        )

    def update_reminder(self, reminder_id: str, **changes: Any) -> list[Reminder]:
        if "completed_at" in changes:
            raise TypeError("completed_at follows is_completed and cannot be set directly")
        _check_fields(Reminder, changes)
        now = self.clock()

        def apply(reminder: Reminder) -> Reminder:
            updated = replace(reminder, **changes)
            if changes.get("is_completed") is True and not reminder.is_completed:
                updated.completed_at = now
            elif changes.get("is_completed") is False and reminder.is_completed:
                updated.completed_at = None
            return updated

        collection = [
            apply(reminder) if reminder.id == reminder_id else reminder
            for reminder in self._current("reminders")
        ]
        return self._commit("reminders", collection)

    def delete_reminder(self, reminder_id: str) -> list[Reminder]:
        return self._delete("reminders", reminder_id)

    # -- orders ----------------------------------------------------------

    def add_order(self, **fields: Any) -> Order:
        now = self.clock()
        order = replace(Order(**fields), id=self.new_id(), created_at=now, updated_at=now)
        return self._append("orders", order)

    def update_order(self, order_id: str, **changes: Any) -> list[Order]:
        return self._update("orders", Order, order_id, changes, stamp=True)

    def delete_order(self, order_id: str) -> list[Order]:
        return self._delete("orders", order_id)

    # -- folders ---------------------------------------------------------

    def add_folder(self, **fields: Any) -> NoteFolder:
        folder = replace(NoteFolder(**fields), id=self.new_id(), created_at=self.clock())
        return self._append("folders", folder)

    def update_folder(self, folder_id: str, **changes: Any) -> list[NoteFolder]:
        return self._update("folders", NoteFolder, folder_id, changes)

    def delete_folder(self, folder_id: str) -> list[NoteFolder]:
        """Unfile the folder's notes, then remove the folder.

        The two writes are not atomic. The cache is only refreshed once both
        have gone through; an interruption in between leaves notes pointing at
        a folder that lookups treat as unset.
        """
        notes = [
            replace(note, folder_id=None) if note.folder_id == folder_id else note
            for note in self._current("notes")
        ]
        folders = [folder for folder in self._current("folders") if folder.id != folder_id]
        self.repositories["notes"].save(notes)
        self.repositories["folders"].save(folders)
        self.cache.put("notes", notes)
        self.cache.put("folders", folders)
        return folders

    # -- product catalogs ------------------------------------------------

    def add_product_catalog(self, **fields: Any) -> ProductCatalog:
        now = self.clock()
        catalog = replace(
            ProductCatalog(**fields), id=self.new_id(), created_at=now, updated_at=now
        )
        return self._append("product-catalogs", catalog)

    def update_product_catalog(self, catalog_id: str, **changes: Any) -> list[ProductCatalog]:
        return self._update("product-catalogs", ProductCatalog, catalog_id, changes, stamp=True)

    def delete_product_catalog(self, catalog_id: str) -> list[ProductCatalog]:
        return self._delete("product-catalogs", catalog_id)

    # -- singletons ------------------------------------------------------

    def update_preset_tags(self, tags: Iterable[str]) -> list[str]:
        return self._commit("preset-tags", list(tags))

    def update_note_settings(self, **changes: Any) -> NoteSettings:
        return self._commit("note-settings", replace(self._current("note-settings"), **changes))

    def update_premium_settings(self, **changes: Any) -> PremiumSettings:
        return self._commit("premium-settings", replace(self._current("premium-settings"), **changes))

    def update_note_template(self, template: str) -> str:
        return self._commit("note-template", template)

    def formatted_note_template(self, contact_name: str, now: datetime | None = None) -> str:
        when = (now or self.clock()).astimezone()
        formatted = f"{when:%A, %B} {when.day}, {when.year} at {when.hour % 12 or 12}:{when:%M %p}"
        return (
            self.note_template()
            .replace("[CONTACT_NAME]", contact_name)
            .replace("[DATE]", formatted)
        )

    def clear_all_data(self) -> None:
        """Remove every stored collection. The note template is kept."""
        for topic, key in STORAGE_KEYS.items():
            if topic == "note-template":
                continue
            self.backing.remove(key)
        self.cache.invalidate_all()
        logger.info("Cleared all stored data")


def open_store(path: Path | None = None) -> CallNotesStore:
    """Build a store on the configured SQLite file. Call init() or use it as a context manager."""
    return CallNotesStore(SqliteBacking(path or db_path()))
