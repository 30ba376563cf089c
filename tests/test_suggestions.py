"""Tests for accepting and rejecting suggested links."""

import pytest

from scholia.adapters.sqlite_store import SQLiteNoteStore
from scholia.core.errors import NotFoundError
from scholia.core.model import BacklinkReference, Note
from scholia.core.suggestions import accept_suggestion, pending_suggestions, reject_suggestion

NOW = "2024-04-01T12:00:00.000Z"


@pytest.fixture
def linked_notes():
    """A source note with pending suggestions toward two targets."""
    with SQLiteNoteStore(":memory:") as store:
        target = store.create(Note(content="target"), "u1")
        other = store.create(Note(content="other"), "u1")
        source = store.create(
            Note(
                content="source",
                suggested_links=[
                    BacklinkReference(note_id=target.id, context="see target", relevance=0.8),
                    BacklinkReference(note_id=other.id, context="see other", relevance=0.4),
                ],
            ),
            "u1",
        )
        yield store, source, target, other


def test_accept_links_both_notes(linked_notes):
    store, source, target, _ = linked_notes

    result = accept_suggestion(store, source.id, target.id, "u1", clock=lambda: NOW)

    assert result.references == [target.id]
    assert result.suggested_links[0].accepted is True
    assert store.get(source.id, "u1") == result

    backlinks = store.get(target.id, "u1").backlinks
    assert backlinks == [
        BacklinkReference(
            note_id=source.id, context="see target", timestamp=NOW, relevance=0.8, accepted=True
        )
    ]


def test_accept_twice_does_not_duplicate(linked_notes):
    store, source, target, _ = linked_notes

    accept_suggestion(store, source.id, target.id, "u1")
    result = accept_suggestion(store, source.id, target.id, "u1")

    assert result.references == [target.id]
    assert len(store.get(target.id, "u1").backlinks) == 1


def test_accept_without_suggestion_still_links(linked_notes):
    store, _, target, other = linked_notes

    result = accept_suggestion(store, other.id, target.id, "u1", clock=lambda: NOW)

    assert result.references == [target.id]
    backlink = store.get(target.id, "u1").backlinks[0]
    assert backlink.note_id == other.id
    assert backlink.context == ""
    assert backlink.relevance == 0.0


def test_accept_missing_target_writes_nothing(linked_notes):
    store, source, _, _ = linked_notes
    before = store.get(source.id, "u1")

    with pytest.raises(NotFoundError):
        accept_suggestion(store, source.id, "missing", "u1")

    assert store.get(source.id, "u1") == before


def test_accept_target_deleted_midway_leaves_source_unchanged(linked_notes):
    """A target removed between read and write fails the whole accept."""
    store, source, target, _ = linked_notes
    before = store.get(source.id, "u1")

    def clock():
        store.delete(target.id, "u1")
        return NOW

    with pytest.raises(NotFoundError):
        accept_suggestion(store, source.id, target.id, "u1", clock=clock)

    assert store.get(source.id, "u1") == before


def test_accept_is_owner_scoped(linked_notes):
    store, source, target, _ = linked_notes

    with pytest.raises(NotFoundError):
        accept_suggestion(store, source.id, target.id, "intruder")


def test_accept_self_link(linked_notes):
    store, source, _, _ = linked_notes

    result = accept_suggestion(store, source.id, source.id, "u1")

    assert result.references == [source.id]
    assert [b.note_id for b in store.get(source.id, "u1").backlinks] == [source.id]


def test_reject_removes_suggestion(linked_notes):
    store, source, target, other = linked_notes

    result = reject_suggestion(store, source.id, target.id, "u1")

    assert [s.note_id for s in result.suggested_links] == [other.id]
    assert store.get(source.id, "u1").suggested_links == result.suggested_links
    assert store.get(target.id, "u1").backlinks == []


def test_pending_suggestions(linked_notes):
    store, source, target, other = linked_notes
    accept_suggestion(store, source.id, target.id, "u1")

    pending = pending_suggestions(store.get(source.id, "u1"))

    assert [s.note_id for s in pending] == [other.id]
