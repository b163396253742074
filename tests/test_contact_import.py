from __future__ import annotations

import json

import pytest

from callnotes.services.contact_import import (
    FAKE_CONTACTS,
    ContactImportError,
    JsonFileContactSource,
    normalize_phone,
)


def test_normalize_phone():
    assert normalize_phone("+1 (555) 123-4567") == "+15551234567"
    assert normalize_phone("555.000.1111 ext") == "5550001111"
    assert normalize_phone(None) == ""


def test_json_source_reads_both_number_shapes(tmp_path):
    path = tmp_path / "contacts.json"
    path.write_text(
        json.dumps(
            [
                {"name": "Alice", "phoneNumbers": ["+1 555 0001"]},
                {"name": "Bob", "phoneNumbers": [{"number": "555-0002", "label": "mobile"}, {}]},
                {"name": "No numbers"},
                "junk",
            ]
        )
    )
    source = JsonFileContactSource(path)
    assert source.request_permission()

    contacts = source.list_contacts()
    assert [(c.name, c.phone_numbers) for c in contacts] == [
        ("Alice", ["+1 555 0001"]),
        ("Bob", ["555-0002"]),
        ("No numbers", []),
    ]


def test_json_source_missing_file_denies_permission(tmp_path):
    assert not JsonFileContactSource(tmp_path / "nope.json").request_permission()


def test_json_source_rejects_non_list(tmp_path):
    path = tmp_path / "contacts.json"
    path.write_text('{"name": "Alice"}')
    with pytest.raises(ContactImportError):
        JsonFileContactSource(path).list_contacts()


def test_fake_contacts_have_distinct_phones():
    phones = [c.phone_numbers[0] for c in FAKE_CONTACTS]
    assert len(phones) == len(set(phones)) == 15


def test_json_source_rejects_invalid_json(tmp_path):
    path = tmp_path / "contacts.json"
    path.write_text("{not json")
    with pytest.raises(ContactImportError, match="not valid JSON"):
        JsonFileContactSource(path).list_contacts()
