"""Error kinds raised by the note store and codecs."""


class ScholiaError(Exception):
    """Base class for all scholia errors."""


class NotFoundError(ScholiaError):
    """No note matches the (id, user_id) pair."""

    def __init__(self, note_id: str):
        super().__init__(f"Note {note_id} not found")
        self.note_id = note_id


class StoreUnavailableError(ScholiaError):
    """The SQLite store could not be opened, read or written."""


class MalformedInputError(ScholiaError, ValueError):
    """Strict decode was given text that is not a JSON object."""
