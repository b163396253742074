"""Repositories: one persisted collection (or singleton) per storage key.

Loading never raises. A stored value goes through two checks before it is
trusted: a syntactic sniff (must start with ``[`` or ``{``) and, after
parsing, a shape check. Failing either deletes that one key and yields the
default, so a single corrupt value cannot take the rest of the store down.
"""
from __future__ import annotations

import json
import logging
from typing import Any

from callnotes.backing import KeyValueBacking
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
)

logger = logging.getLogger(__name__)


class StorageReadError(Exception):
    """The backing store could not be read. Unlike corrupt data, nothing is cleared."""


STORAGE_KEYS = {
    "contacts": "call_notes_contacts",
    "notes": "call_notes_notes",
    "reminders": "call_notes_reminders",
    "orders": "call_notes_orders",
    "note-template": "call_note_template",
    "folders": "call_notes_folders",
    "product-catalogs": "call_notes_product_catalogs",
    "preset-tags": "call_notes_preset_tags",
    "note-settings": "call_notes_settings",
    "premium-settings": "call_notes_premium_settings",
}

DEFAULT_NOTE_TEMPLATE = """Call with [CONTACT_NAME] - [DATE]

Purpose of call:

Key points discussed:

Action items:

Next steps:

Additional notes:"""

DEFAULT_FOLDERS = [
    {"id": "work", "name": "Work", "color": "#007AFF", "description": "Work-related calls"},
    {"id": "personal", "name": "Personal", "color": "#34C759", "description": "Personal calls"},
    {"id": "sales", "name": "Sales", "color": "#FF9500", "description": "Sales and business calls"},
    {"id": "support", "name": "Support", "color": "#5856D6", "description": "Customer support calls"},
]

DEFAULT_PRESET_TAGS = [
    "Follow-up",
    "Urgent",
    "Sales",
    "Support",
    "Meeting",
    "Quote",
    "Order",
    "Complaint",
    "Information",
    "Callback",
]


class Repository:
    topic: str = ""
    seed_when_empty = False

    def __init__(self, backing: KeyValueBacking) -> None:
        self.backing = backing

    @property
    def key(self) -> str:
        return STORAGE_KEYS[self.topic]

    def default(self) -> Any:
        raise NotImplementedError

    def accepts(self, parsed: Any) -> bool:
        raise NotImplementedError

    def decode(self, parsed: Any) -> tuple[Any, bool]:
        """Return (value, changed); changed means the stored form needs rewriting."""
        raise NotImplementedError

    def encode(self, value: Any) -> str:
        raise NotImplementedError

    def is_empty(self, value: Any) -> bool:
        return not value

    def read(self) -> Any:
        """Load the stored value, healing corrupt data. Raises StorageReadError."""
        try:
            stored = self.backing.get(self.key)
        except Exception as exc:
            raise StorageReadError(f"Could not read {self.topic} from storage") from exc
        return self._decode_stored(stored)

    def load(self) -> Any:
        """Like read(), but a failed read resolves to the default."""
        try:
            return self.read()
        except StorageReadError:
            logger.exception("Error reading %s from storage", self.topic)
            return self.default()

    def _decode_stored(self, stored: str | None) -> Any:
        if stored is None or stored.strip() == "":
            return self._seed() if self.seed_when_empty else self.default()

        if not stored.startswith(("[", "{")):
            logger.warning("Invalid JSON format in %s storage, clearing data", self.topic)
            return self._heal()

        try:
            parsed = json.loads(stored)
        except ValueError:
            logger.warning("Malformed JSON in %s storage, clearing data", self.topic)
            return self._heal()

        if not self.accepts(parsed):
            logger.warning("Unexpected shape of %s data, clearing data", self.topic)
            return self._heal()

        try:
            value, changed = self.decode(parsed)
        except (TypeError, ValueError, AttributeError, OverflowError):
            logger.exception("Error decoding %s from storage", self.topic)
            return self._heal()

        if self.seed_when_empty and self.is_empty(value):
            return self._seed()

        if changed:
            logger.info("Migrated stored %s, writing back", self.topic)
            self._write_quietly(value)
        return value

    def save(self, value: Any) -> None:
        self.backing.set(self.key, self.encode(value))

    def _heal(self) -> Any:
        try:
            self.backing.remove(self.key)
        except Exception:
            logger.exception("Could not clear corrupt %s storage", self.topic)
        if self.seed_when_empty:
            return self._seed()
        return self.default()

    def _seed(self) -> Any:
        value = self.default()
        self._write_quietly(value)
        return value

    def _write_quietly(self, value: Any) -> None:
        try:
            self.save(value)
        except Exception:
            logger.exception("Could not write %s back to storage", self.topic)


class CollectionRepository(Repository):
    """A JSON array of records of one type."""

    record_type: type[Record] = Record

    def __init__(self, backing: KeyValueBacking, topic: str | None = None,
                 record_type: type[Record] | None = None) -> None:
        super().__init__(backing)
        if topic is not None:
            self.topic = topic
        if record_type is not None:
            self.record_type = record_type

    def default(self) -> list:
        return []

    def accepts(self, parsed: Any) -> bool:
        return isinstance(parsed, list)

    def migrate(self, raw: dict[str, Any]) -> tuple[dict[str, Any], bool]:
        return raw, False

    def decode(self, parsed: list) -> tuple[list, bool]:
        records = []
        changed = False
        for item in parsed:
            if not isinstance(item, dict):
                logger.warning("Dropping non-object entry in %s storage", self.topic)
                changed = True
                continue
            item, migrated = self.migrate(item)
            changed = changed or migrated
            records.append(self.record_type.from_dict(item))
        return records, changed

    def encode(self, value: list) -> str:
        return json.dumps([record.to_dict() for record in value])


class ContactsRepository(CollectionRepository):
    topic = "contacts"
    record_type = Contact


class NotesRepository(CollectionRepository):
    topic = "notes"
    record_type = CallNote

    def migrate(self, raw: dict[str, Any]) -> tuple[dict[str, Any], bool]:
        changed = False
        if not raw.get("status"):
            raw = {**raw, "status": "follow-up"}
            changed = True
        if "customStatus" in raw and not raw["customStatus"]:
            raw = {k: v for k, v in raw.items() if k != "customStatus"}
        return raw, changed


class RemindersRepository(CollectionRepository):
    topic = "reminders"
    record_type = Reminder


class OrdersRepository(CollectionRepository):
    topic = "orders"
    record_type = Order


class ProductCatalogsRepository(CollectionRepository):
    topic = "product-catalogs"
    record_type = ProductCatalog


class FoldersRepository(CollectionRepository):
    topic = "folders"
    record_type = NoteFolder
    seed_when_empty = True

    def default(self) -> list:
        return [NoteFolder.from_dict(folder) for folder in DEFAULT_FOLDERS]


class PresetTagsRepository(Repository):
    topic = "preset-tags"
    seed_when_empty = True

    def default(self) -> list[str]:
        return list(DEFAULT_PRESET_TAGS)

    def accepts(self, parsed: Any) -> bool:
        return isinstance(parsed, list)

    def decode(self, parsed: list) -> tuple[list[str], bool]:
        tags = [tag for tag in parsed if isinstance(tag, str)]
        return tags, len(tags) != len(parsed)

    def encode(self, value: list[str]) -> str:
        return json.dumps(list(value))


class SettingsRepository(Repository):
    """A singleton settings object; stored keys are merged over the defaults."""

    def __init__(self, backing: KeyValueBacking, topic: str, record_type: type[Record]) -> None:
        super().__init__(backing)
        self.topic = topic
        self.record_type = record_type

    def default(self) -> Record:
        return self.record_type()

    def accepts(self, parsed: Any) -> bool:
        return isinstance(parsed, dict)

    def decode(self, parsed: dict) -> tuple[Record, bool]:
        return self.record_type.from_dict(parsed), False

    def encode(self, value: Record) -> str:
        return json.dumps(value.to_dict())


class NoteTemplateRepository(Repository):
    """The note template is stored as plain text, not JSON."""

    topic = "note-template"

    def default(self) -> str:
        return DEFAULT_NOTE_TEMPLATE

    def _decode_stored(self, stored: str | None) -> str:
        return stored or self.default()

    def encode(self, value: str) -> str:
        return value


def build_repositories(backing: KeyValueBacking) -> dict[str, Repository]:
    return {
        "contacts": ContactsRepository(backing),
        "notes": NotesRepository(backing),
        "reminders": RemindersRepository(backing),
        "orders": OrdersRepository(backing),
        "note-template": NoteTemplateRepository(backing),
        "folders": FoldersRepository(backing),
        "product-catalogs": ProductCatalogsRepository(backing),
        "preset-tags": PresetTagsRepository(backing),
        "note-settings": SettingsRepository(backing, "note-settings", NoteSettings),
        "premium-settings": SettingsRepository(backing, "premium-settings", PremiumSettings),
    }
