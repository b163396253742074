from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Mapping, Sequence

from callnotes.models import CallNote, Contact

MAX_RESULTS = 10
MAX_SUGGESTIONS = 5
CONTEXT_CHARS = 20

_NON_ALNUM = re.compile(r"[^a-zA-Z0-9]")


@dataclass
class SearchResult:
    note: CallNote
    match_type: str  # contact | content | tag | category
    match_text: str
    highlight_start: int
    highlight_end: int


def _match(note: CallNote, query: str) -> SearchResult | None:
    """First matching field wins: contact, body, tags, category."""
    index = note.contact_name.lower().find(query)
    if index != -1:
        return SearchResult(note, "contact", note.contact_name, index, index + len(query))

    index = note.note.lower().find(query)
    if index != -1:
        start = max(0, index - CONTEXT_CHARS)
        end = min(len(note.note), index + len(query) + CONTEXT_CHARS)
        offset = index - start
        return SearchResult(note, "content", note.note[start:end], offset, offset + len(query))

    for tag in note.tags:
        index = tag.lower().find(query)
        if index != -1:
            return SearchResult(note, "tag", tag, index, index + len(query))

    if note.category:
        index = note.category.lower().find(query)
        if index != -1:
            return SearchResult(note, "category", note.category, index, index + len(query))
    return None


def search_notes(
    notes: Iterable[CallNote], query: str, limit: int = MAX_RESULTS
) -> list[SearchResult]:
    if not query.strip():
        return []
    needle = query.lower()
    results: list[SearchResult] = []
    for note in notes:
        result = _match(note, needle)
        if result is None:
            continue
        results.append(result)
        if len(results) >= limit:
            break
    return results


def suggest(
    query: str,
    contacts: Iterable[Contact],
    notes: Iterable[CallNote],
    limit: int = MAX_SUGGESTIONS,
) -> list[str]:
    """Keyword completions for a partially typed query (two characters or more)."""
    if not query.strip() or len(query) < 2:
        return []
    needle = query.lower()
    found: dict[str, None] = {}

    for contact in contacts:
        name = contact.name.lower()
        if needle in name and name != needle:
            found[contact.name] = None

    for note in notes:
        for word in note.note.lower().split():
            word = _NON_ALNUM.sub("", word)
            if len(word) > 2 and needle in word and word != needle:
                found[word] = None
        for tag in note.tags:
            if needle in tag.lower() and tag.lower() != needle:
                found[tag] = None
        if note.category and needle in note.category.lower() and note.category.lower() != needle:
            found[note.category] = None

    return list(found)[:limit]


def matches_query(
    note: CallNote, query: str, contacts_by_id: Mapping[str, Contact] | None = None
) -> bool:
    """True when any searchable field of the note contains ``query``."""
    needle = query.lower()
    if needle in note.contact_name.lower():
        return True
    body = note.note.lower()
    if any(needle in word for word in body.split()) or needle in body:
        return True
    if needle in note.status_label.lower():
        return True
    if any(needle in tag.lower() for tag in note.tags):
        return True
    if note.category and needle in note.category.lower():
        return True
    contact = (contacts_by_id or {}).get(note.contact_id)
    return bool(contact and needle in contact.phone_number)


def filter_notes(
    notes: Sequence[CallNote], query: str, contacts: Iterable[Contact] = ()
) -> list[CallNote]:
    if not query.strip():
        return list(notes)
    by_id = {c.id: c for c in contacts}
    return [note for note in notes if matches_query(note, query, by_id)]
