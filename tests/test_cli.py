from __future__ import annotations

import json
from datetime import timedelta

import pytest
from typer.testing import CliRunner

from callnotes.cli import app
from callnotes.models import utcnow
from callnotes.store import open_store


@pytest.fixture
def db(tmp_path):
    return tmp_path / "cli.db"


@pytest.fixture
def runner():
    return CliRunner()


def _invoke(runner, db, *args):
    return runner.invoke(app, ["--db", str(db), *args])


def _seed_notes(db):
    start = utcnow() - timedelta(hours=1)
    with open_store(db) as store:
        store.add_note(
            contact_id="c1",
            contact_name="Alice",
            note="Discussed pricing for spring",
            call_start_time=start,
            call_end_time=start + timedelta(minutes=3),
            folder_id="work",
            tags=["Quote"],
        )
        store.add_note(
            contact_id="c2",
            contact_name="Bob",
            note="Left a voicemail",
            call_start_time=start,
            call_end_time=start,
        )


def test_notes_empty(runner, db):
    result = _invoke(runner, db, "notes")
    assert result.exit_code == 0
    assert "No notes yet." in result.output


def test_notes_grouped_by_folder(runner, db):
    _seed_notes(db)
    result = _invoke(runner, db, "notes", "--group-by", "folder")
    assert result.exit_code == 0
    assert "Work" in result.output
    assert "Ungrouped" in result.output
    assert "Discussed pricing" in result.output


def test_notes_query_filters(runner, db):
    _seed_notes(db)
    result = _invoke(runner, db, "notes", "-g", "none", "-q", "voicemail")
    assert result.exit_code == 0
    assert "Bob" in result.output
    assert "Alice" not in result.output


def test_notes_rejects_unknown_grouping(runner, db):
    result = _invoke(runner, db, "notes", "-g", "fortnight")
    assert result.exit_code == 1
    assert "Unknown grouping" in result.output


def test_search(runner, db):
    _seed_notes(db)
    result = _invoke(runner, db, "search", "pricing")
    assert result.exit_code == 0
    assert "content" in result.output
    assert "Alice" in result.output

    result = _invoke(runner, db, "search", "zebra")
    assert "No notes match" in result.output


def test_suggest(runner, db):
    _seed_notes(db)
    result = _invoke(runner, db, "suggest", "pri")
    assert result.exit_code == 0
    assert "pricing" in result.output


def test_remind(runner, db):
    result = _invoke(runner, db, "remind")
    assert "All clear" in result.output

    with open_store(db) as store:
        store.add_reminder(contact_name="Alice", title="Send quote", due_date=utcnow() + timedelta(days=1))
    result = _invoke(runner, db, "remind")
    assert result.exit_code == 0
    assert "Send quote" in result.output
    assert "1 pending" in result.output


def test_stats(runner, db):
    _seed_notes(db)
    result = _invoke(runner, db, "stats")
    assert result.exit_code == 0
    assert "Totals" in result.output
    assert "Quote" in result.output


def test_seed_is_idempotent(runner, db):
    result = _invoke(runner, db, "seed")
    assert result.exit_code == 0
    assert "Added 15 contacts (15 total)." in result.output

    result = _invoke(runner, db, "seed")
    assert "Added 0 contacts (15 total)." in result.output


def test_import_contacts(runner, db, tmp_path):
    path = tmp_path / "book.json"
    path.write_text(json.dumps([{"name": "Alice", "phoneNumbers": ["+1 555 0001"]}]))
    result = _invoke(runner, db, "import-contacts", str(path))
    assert result.exit_code == 0
    assert "Imported 1 contacts (1 total)." in result.output


def test_import_contacts_bad_file(runner, db, tmp_path):
    path = tmp_path / "book.json"
    path.write_text('{"not": "a list"}')
    result = _invoke(runner, db, "import-contacts", str(path))
    assert result.exit_code == 1
    with open_store(db) as store:
        assert store.contacts() == []


def test_import_contacts_invalid_json(runner, db, tmp_path):
    path = tmp_path / "book.json"
    path.write_text("{not json")
    result = _invoke(runner, db, "import-contacts", str(path))
    assert result.exit_code == 1
    assert isinstance(result.exception, SystemExit)
    with open_store(db) as store:
        assert store.contacts() == []
