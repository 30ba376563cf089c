"""Accept or reject system-proposed links between notes."""

import logging
from typing import Callable

from .model import BacklinkReference, Note, NoteId
from .ports import NoteStore
from .utils import utc_now_iso

log = logging.getLogger(__name__)


def pending_suggestions(note: Note) -> list[BacklinkReference]:
    """Suggestions that have been neither accepted nor rejected."""
    return [s for s in note.suggested_links if s.pending]


def _find_suggestion(note: Note, target_id: NoteId) -> BacklinkReference | None:
    for suggestion in note.suggested_links:
        if suggestion.note_id == target_id:
            return suggestion
    return None


def accept_suggestion(
    store: NoteStore,
    source_id: NoteId,
    target_id: NoteId,
    user_id: str,
    clock: Callable[[], str] = utc_now_iso,
) -> Note:
    """
    Turn a suggested link from `source_id` to `target_id` into a real one.

    The source gains `target_id` in its references and its suggestion is
    marked accepted; the target gains a backlink to the source unless it
    already has one. Both notes must belong to `user_id`, otherwise
    NotFoundError is raised and nothing is written. Both notes are saved
    through one `update_many` call, so they change together or not at all.

    Returns:
        The updated source note.
    """
    source = store.get(source_id, user_id)
    target = source if target_id == source_id else store.get(target_id, user_id)

    suggestion = _find_suggestion(source, target_id)

    if target_id not in source.references:
        source.references.append(target_id)
    if suggestion is not None:
        suggestion.accepted = True

    if not any(b.note_id == source_id for b in target.backlinks):
        target.backlinks.append(
            BacklinkReference(
                note_id=source_id,
                context=suggestion.context if suggestion else "",
                timestamp=clock(),
                relevance=suggestion.relevance if suggestion else 0.0,
                accepted=True,
            )
        )

    store.update_many([source] if target is source else [source, target], user_id)

    log.info("Accepted suggestion %s -> %s", source_id, target_id)
    return source


def reject_suggestion(store: NoteStore, source_id: NoteId, target_id: NoteId, user_id: str) -> Note:
    """Drop every suggestion on `source_id` that points at `target_id`."""
    source = store.get(source_id, user_id)
    source.suggested_links = [s for s in source.suggested_links if s.note_id != target_id]
    store.update(source, user_id)
    log.info("Rejected suggestion %s -> %s", source_id, target_id)
    return source
