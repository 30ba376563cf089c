"""JSON codecs for notes, backlink references and notebooks."""

import json
import logging
from dataclasses import dataclass
from typing import Any, Callable

from ..core.errors import MalformedInputError
from ..core.model import BacklinkReference, Note, Notebook
from ..core.ports import EntityCodec
from ..core.utils import local_now_stamp

log = logging.getLogger(__name__)

NOTE_KEYS = (
    "id",
    "content",
    "created_at",
    "last_modified",
    "tags",
    "code_outputs",
    "backlinks",
    "references",
    "suggested_links",
)
BACKLINK_KEYS = ("noteId", "context", "timestamp", "relevance", "accepted", "rejected")
NOTEBOOK_KEYS = ("id", "name", "created_at", "updated_at")


@dataclass(frozen=True)
class JsonStyle:
    """
    Output options shared by every codec.

    The defaults give compact UTF-8 JSON where `#` is left alone and
    code_outputs keys come out sorted.
    """

    ensure_ascii: bool = False
    escape_hash: bool = False
    separators: tuple[str, str] = (",", ":")
    sort_mapping_keys: bool = True

    def dumps(self, value: Any) -> str:
        text = json.dumps(value, ensure_ascii=self.ensure_ascii, separators=self.separators)
        if self.escape_hash:
            # '#' can only occur inside string literals
            text = text.replace("#", "\\u0023")
        return text


DEFAULT_STYLE = JsonStyle()


def loads_value(text: str | bytes | None) -> Any:
    """Parse a JSON fragment, returning None for anything unparseable."""
    if text is None:
        return None
    try:
        return json.loads(text)
    except (json.JSONDecodeError, UnicodeDecodeError, TypeError) as e:
        log.warning("Ignoring unparseable JSON fragment: %s", e)
        return None


def _load_object(text: str | bytes, strict: bool, kind: str) -> dict[str, Any]:
    try:
        obj = json.loads(text)
    except (json.JSONDecodeError, UnicodeDecodeError, TypeError) as e:
        if strict:
            raise MalformedInputError(f"Invalid {kind} JSON: {e}") from e
        log.warning("Decoding %s from unparseable text, using empty fields: %s", kind, e)
        return {}

    if not isinstance(obj, dict):
        if strict:
            raise MalformedInputError(f"Expected a JSON object for {kind}, got {type(obj).__name__}")
        log.warning("Decoding %s from a JSON %s, using empty fields", kind, type(obj).__name__)
        return {}

    if strict:
        # \ud800-style escapes parse fine but cannot be stored as UTF-8
        try:
            json.dumps(obj, ensure_ascii=False).encode("utf-8")
        except UnicodeEncodeError as e:
            raise MalformedInputError(f"Invalid {kind} JSON: text is not valid UTF-8: {e}") from e

    return obj


def _str(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _float(value: Any) -> float:
    # bool is an int subclass; true/false are not relevance scores
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return 0.0
    return 0.0


def _bool(value: Any) -> bool:
    return value is True or value == "true"


def _str_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, str)]


def _str_map(value: Any) -> dict[str, str]:
    if not isinstance(value, dict):
        return {}
    return {k: v for k, v in value.items() if isinstance(v, str)}


class BacklinkCodec(EntityCodec[BacklinkReference]):
    def __init__(self, style: JsonStyle = DEFAULT_STYLE):
        self.style = style

    def to_dict(self, ref: BacklinkReference) -> dict[str, Any]:
        return {
            "noteId": ref.note_id,
            "context": ref.context,
            "timestamp": ref.timestamp,
            "relevance": float(ref.relevance),
            "accepted": bool(ref.accepted),
            "rejected": bool(ref.rejected),
        }

    def from_dict(self, obj: dict[str, Any]) -> BacklinkReference:
        return BacklinkReference(
            note_id=_str(obj.get("noteId")),
            context=_str(obj.get("context")),
            timestamp=_str(obj.get("timestamp")),
            relevance=_float(obj.get("relevance")),
            accepted=_bool(obj.get("accepted")),
            rejected=_bool(obj.get("rejected")),
        )

    def encode(self, ref: BacklinkReference) -> str:
        return self.style.dumps(self.to_dict(ref))

    def decode(self, text: str, strict: bool = False) -> BacklinkReference:
        return self.from_dict(_load_object(text, strict, "backlink"))


class NoteCodec(EntityCodec[Note]):
    """
    Note <-> JSON with a fixed key order.

    Decoding never fails on shape problems: unknown keys are dropped, and
    missing keys, nulls or values of the wrong JSON type fall back to the
    field's zero value. Only `strict=True` turns unparseable text into
    MalformedInputError.
    """

    STRUCTURED_FIELDS = ("tags", "code_outputs", "backlinks", "references", "suggested_links")

    def __init__(self, style: JsonStyle = DEFAULT_STYLE, backlinks: BacklinkCodec | None = None):
        self.style = style
        self.backlinks = backlinks or BacklinkCodec(style)

    def _refs_from(self, value: Any) -> list[BacklinkReference]:
        if not isinstance(value, list):
            return []
        return [self.backlinks.from_dict(item) for item in value if isinstance(item, dict)]

    def to_dict(self, note: Note) -> dict[str, Any]:
        outputs = dict(note.code_outputs)
        if self.style.sort_mapping_keys:
            outputs = dict(sorted(outputs.items()))
        return {
            "id": note.id,
            "content": note.content,
            "created_at": note.created_at,
            "last_modified": note.last_modified,
            "tags": list(note.tags),
            "code_outputs": outputs,
            "backlinks": [self.backlinks.to_dict(r) for r in note.backlinks],
            "references": list(note.references),
            "suggested_links": [self.backlinks.to_dict(r) for r in note.suggested_links],
        }

    def from_dict(self, obj: dict[str, Any]) -> Note:
        return Note(
            id=_str(obj.get("id")),
            content=_str(obj.get("content")),
            created_at=_str(obj.get("created_at")),
            last_modified=_str(obj.get("last_modified")),
            tags=_str_list(obj.get("tags")),
            code_outputs=_str_map(obj.get("code_outputs")),
            backlinks=self._refs_from(obj.get("backlinks")),
            references=_str_list(obj.get("references")),
            suggested_links=self._refs_from(obj.get("suggested_links")),
        )

    def encode(self, note: Note) -> str:
        return self.style.dumps(self.to_dict(note))

    def decode(self, text: str, strict: bool = False) -> Note:
        return self.from_dict(_load_object(text, strict, "note"))

    def encode_many(self, notes: list[Note]) -> str:
        return "[" + ",".join(self.encode(n) for n in notes) + "]"


class NotebookCodec(EntityCodec[Notebook]):
    def __init__(self, style: JsonStyle = DEFAULT_STYLE, clock: Callable[[], str] = local_now_stamp):
        self.style = style
        self.clock = clock

    def to_dict(self, notebook: Notebook) -> dict[str, Any]:
        return {
            "id": notebook.id,
            "name": notebook.name,
            "created_at": notebook.created_at,
            "updated_at": notebook.updated_at,
        }

    def from_dict(self, obj: dict[str, Any]) -> Notebook:
        notebook = Notebook(
            id=_str(obj.get("id")),
            name=_str(obj.get("name")),
            created_at=_str(obj.get("created_at")),
            updated_at=_str(obj.get("updated_at")),
        )

        # Missing timestamps default to "now" (local time)
        if not notebook.created_at or not notebook.updated_at:
            now = self.clock()
            if not notebook.created_at:
                notebook.created_at = now
            if not notebook.updated_at:
                notebook.updated_at = now

        return notebook

    def encode(self, notebook: Notebook) -> str:
        return self.style.dumps(self.to_dict(notebook))

    def decode(self, text: str, strict: bool = False) -> Notebook:
        return self.from_dict(_load_object(text, strict, "notebook"))
