"""SQLite-backed note store with per-owner scoping."""

import logging
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Iterator

from ..core.errors import MalformedInputError, NotFoundError, StoreUnavailableError
from ..core.model import Note, NoteId
from ..core.ports import IdGenerator, NoteStore
from ..core.utils import utc_now_iso
from .idgen import UuidId
from .json_codec import NoteCodec, loads_value

log = logging.getLogger(__name__)

SCHEMA_VERSION = "1"

NOTE_COLUMNS = (
    "id",
    "user_id",
    "content",
    "created_at",
    "last_modified",
    "tags",
    "code_outputs",
    "backlinks",
    "references",
    "suggested_links",
)

# "references" is an SQL keyword, so every column name is quoted
_COLUMNS_SQL = ", ".join(f'"{c}"' for c in NOTE_COLUMNS)
_ORDER_SQL = "ORDER BY last_modified DESC, id ASC"


class SQLiteNoteStore(NoteStore):
    """
    Owner-scoped note CRUD on a single SQLite connection.

    All request threads share one instance; every operation runs under one
    store-wide lock and inside its own transaction. Structured fields are
    kept as JSON text, one column per field, in the same encoding the note
    codec produces.
    """

    def __init__(
        self,
        db_path: Path | str,
        codec: NoteCodec | None = None,
        idgen: IdGenerator | None = None,
        clock: Callable[[], str] = utc_now_iso,
    ):
        self.db_path = str(db_path)
        self.codec = codec or NoteCodec()
        self.idgen = idgen or UuidId()
        self.clock = clock
        self._lock = threading.RLock()
        self._conn = self._open()

    def _open(self) -> sqlite3.Connection:
        """Open the database and make sure the schema exists."""
        in_memory = self.db_path == ":memory:"
        try:
            if not in_memory:
                Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(self.db_path, check_same_thread=False)
        except (OSError, sqlite3.Error) as e:
            raise StoreUnavailableError(f"Failed to open database {self.db_path}: {e}") from e

        try:
            if not in_memory:
                conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA synchronous=NORMAL")
            self._init_schema(conn)
        except sqlite3.Error as e:
            conn.close()
            raise StoreUnavailableError(f"Failed to initialize database {self.db_path}: {e}") from e

        log.debug("Opened note store at %s", self.db_path)
        return conn

    def _init_schema(self, conn: sqlite3.Connection) -> None:
        """Create tables if they don't exist."""
        with conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS meta (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
            """)

            conn.execute("""
                CREATE TABLE IF NOT EXISTS notes (
                    "id" TEXT PRIMARY KEY,
                    "user_id" TEXT NOT NULL,
                    "content" TEXT,
                    "created_at" TEXT,
                    "last_modified" TEXT,
                    "tags" TEXT,
                    "code_outputs" TEXT,
                    "backlinks" TEXT,
                    "references" TEXT,
                    "suggested_links" TEXT
                )
            """)

            conn.execute("CREATE INDEX IF NOT EXISTS idx_notes_user_id ON notes(user_id)")
            conn.execute("CREATE INDEX IF NOT EXISTS idx_notes_content ON notes(content)")

            conn.execute("""
                INSERT INTO meta(key, value) VALUES('schema_version', ?)
                ON CONFLICT(key) DO UPDATE SET value=excluded.value
            """, (SCHEMA_VERSION,))

    @contextmanager
    def _transaction(self, action: str) -> Iterator[sqlite3.Connection]:
        """Serialize access and wrap SQLite failures in StoreUnavailableError."""
        with self._lock:
            try:
                with self._conn:
                    yield self._conn
            except UnicodeEncodeError as e:
                # lone surrogates cannot be bound as UTF-8 text
                raise MalformedInputError(f"Failed to {action}: text is not valid UTF-8") from e
            except sqlite3.Error as e:
                log.error("Failed to %s: %s", action, e)
                raise StoreUnavailableError(f"Failed to {action}: {e}") from e

    def _row_params(self, note: Note, user_id: str) -> tuple[Any, ...]:
        doc = self.codec.to_dict(note)
        structured = tuple(self.codec.style.dumps(doc[name]) for name in NoteCodec.STRUCTURED_FIELDS)
        return (note.id, user_id, note.content, note.created_at, note.last_modified) + structured

    def _note_from_row(self, row: tuple[Any, ...]) -> Note:
        note_id, _user_id, content, created_at, last_modified = row[:5]
        doc: dict[str, Any] = {
            "id": note_id,
            "content": content,
            "created_at": created_at,
            "last_modified": last_modified,
        }
        for name, text in zip(NoteCodec.STRUCTURED_FIELDS, row[5:]):
            doc[name] = loads_value(text)
        return self.codec.from_dict(doc)

    def _copy(self, note: Note) -> Note:
        return self.codec.from_dict(self.codec.to_dict(note))

    def list_all(self, user_id: str) -> list[Note]:
        """All notes of the owner, most recently modified first."""
        with self._transaction("list notes") as conn:
            rows = conn.execute(
                f"SELECT {_COLUMNS_SQL} FROM notes WHERE user_id = ? {_ORDER_SQL}",
                (user_id,),
            ).fetchall()
        return [self._note_from_row(row) for row in rows]

    def search(self, query: str, user_id: str) -> list[Note]:
        """Notes whose content contains `query` (case-sensitive, no wildcards)."""
        with self._transaction("search notes") as conn:
            rows = conn.execute(
                f"SELECT {_COLUMNS_SQL} FROM notes "
                f"WHERE user_id = ? AND instr(content, ?) > 0 {_ORDER_SQL}",
                (user_id, query),
            ).fetchall()
        return [self._note_from_row(row) for row in rows]

    def get(self, id: NoteId, user_id: str) -> Note:
        with self._transaction("get note") as conn:
            row = conn.execute(
                f"SELECT {_COLUMNS_SQL} FROM notes WHERE id = ? AND user_id = ?",
                (id, user_id),
            ).fetchone()
        if row is None:
            raise NotFoundError(id)
        return self._note_from_row(row)

    def create(self, note: Note, user_id: str) -> Note:
        """
        Store a new note under a freshly generated id.

        Any id on the incoming note is ignored. Empty created_at and
        last_modified are stamped with the current UTC time.
        """
        stored = self._copy(note)
        stored.id = self.idgen.new_id()
        now = self.clock()
        stored.created_at = stored.created_at or now
        stored.last_modified = stored.last_modified or now

        placeholders = ", ".join("?" * len(NOTE_COLUMNS))
        with self._transaction("create note") as conn:
            conn.execute(
                f"INSERT INTO notes ({_COLUMNS_SQL}) VALUES ({placeholders})",
                self._row_params(stored, user_id),
            )

        log.debug("Created note %s for user %s", stored.id, user_id)
        return stored

    def _update_row(self, conn: sqlite3.Connection, note: Note, user_id: str) -> None:
        params = self._row_params(note, user_id)
        cur = conn.execute(
            """
            UPDATE notes SET
                "content" = ?,
                "created_at" = ?,
                "last_modified" = ?,
                "tags" = ?,
                "code_outputs" = ?,
                "backlinks" = ?,
                "references" = ?,
                "suggested_links" = ?
            WHERE id = ? AND user_id = ?
            """,
            params[2:] + (note.id, user_id),
        )
        if cur.rowcount == 0:
            raise NotFoundError(note.id)

    def update(self, note: Note, user_id: str) -> Note:
        """Overwrite every field of an existing note; the note is returned as given."""
        with self._transaction("update note") as conn:
            self._update_row(conn, note, user_id)

        log.debug("Updated note %s for user %s", note.id, user_id)
        return note

    def update_many(self, notes: list[Note], user_id: str) -> list[Note]:
        """
        Overwrite several notes in one transaction.

        If any note is missing (NotFoundError) or cannot be written, none
        of the notes are changed.
        """
        with self._transaction("update notes") as conn:
            for note in notes:
                self._update_row(conn, note, user_id)

        log.debug("Updated %d notes for user %s", len(notes), user_id)
        return notes

    def delete(self, id: NoteId, user_id: str) -> None:
        with self._transaction("delete note") as conn:
            cur = conn.execute("DELETE FROM notes WHERE id = ? AND user_id = ?", (id, user_id))
            if cur.rowcount == 0:
                raise NotFoundError(id)
        log.debug("Deleted note %s for user %s", id, user_id)

    def delete_all(self, user_id: str) -> int:
        """Remove every note of the owner. Returns how many were removed."""
        with self._transaction("delete notes") as conn:
            cur = conn.execute("DELETE FROM notes WHERE user_id = ?", (user_id,))
        log.debug("Deleted %d notes for user %s", cur.rowcount, user_id)
        return cur.rowcount

    def schema_version(self) -> str | None:
        with self._transaction("read schema version") as conn:
            row = conn.execute("SELECT value FROM meta WHERE key = 'schema_version'").fetchone()
        return row[0] if row else None

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def __enter__(self) -> "SQLiteNoteStore":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()
