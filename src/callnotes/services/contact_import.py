from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, NamedTuple, Protocol

logger = logging.getLogger(__name__)


class ContactImportError(Exception):
    pass


@dataclass
class DeviceContact:
    name: str = ""
    phone_numbers: list[str] = field(default_factory=list)
    business_card_image: str | None = None


class ImportResult(NamedTuple):
    imported: int
    total: int


class ContactSource(Protocol):
    """Where imported contacts come from, e.g. the device address book."""

    def request_permission(self) -> bool:
        ...

    def list_contacts(self) -> Iterable[DeviceContact]:
        ...


def normalize_phone(number: str | None) -> str:
    return re.sub(r"[^\d+]", "", number or "")


class JsonFileContactSource:
    """Reads an exported address book: ``[{"name": ..., "phoneNumbers": [...]}, ...]``.

    Phone numbers may be plain strings or ``{"number": ...}`` objects.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def request_permission(self) -> bool:
        return self.path.is_file()

    def list_contacts(self) -> list[DeviceContact]:
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except ValueError as exc:
            raise ContactImportError(f"{self.path} is not valid JSON") from exc
        if not isinstance(data, list):
            raise ContactImportError(f"{self.path} does not contain a list of contacts")
        contacts = []
        for entry in data:
            if not isinstance(entry, dict):
                continue
            numbers = []
            for number in entry.get("phoneNumbers") or []:
                if isinstance(number, dict):
                    number = number.get("number")
                if number:
                    numbers.append(str(number))
            contacts.append(DeviceContact(name=entry.get("name") or "", phone_numbers=numbers))
        logger.info("Read %d contacts from %s", len(contacts), self.path)
        return contacts


FAKE_CONTACTS = [
    DeviceContact(
        "John Smith",
        ["+1234567890"],
        "https://images.unsplash.com/photo-1507003211169-0a1dd7228f2d?w=400&h=250&fit=crop&crop=face",
    ),
    DeviceContact(
        "Sarah Johnson",
        ["+1987654321"],
        "https://images.unsplash.com/photo-1494790108755-2616b612b786?w=400&h=250&fit=crop&crop=face",
    ),
    DeviceContact("Michael Brown", ["+1555123456"]),
    DeviceContact(
        "Emily Davis",
        ["+1444987654"],
        "https://images.unsplash.com/photo-1438761681033-6461ffad8d80?w=400&h=250&fit=crop&crop=face",
    ),
    DeviceContact("David Wilson", ["+1333456789"]),
    DeviceContact("Lisa Anderson", ["+1222789012"]),
    DeviceContact("Robert Taylor", ["+1111345678"]),
    DeviceContact("Jennifer Martinez", ["+1666901234"]),
    DeviceContact("Christopher Lee", ["+1777567890"]),
    DeviceContact("Amanda White", ["+1888234567"]),
    DeviceContact("James Garcia", ["+1999678901"]),
    DeviceContact("Michelle Rodriguez", ["+1555890123"]),
    DeviceContact("Daniel Thompson", ["+1444123456"]),
    DeviceContact("Jessica Moore", ["+1333789012"]),
    DeviceContact("Matthew Jackson", ["+1222456789"]),
]
