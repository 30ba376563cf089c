import io
from pathlib import Path
from typing import Any, Iterable

import yaml

from ..core.model import Note


def note_frontmatter(note: Note) -> dict[str, Any]:
    meta: dict[str, Any] = {
        "id": note.id,
        "created_at": note.created_at,
        "last_modified": note.last_modified,
        "tags": list(note.tags),
        "references": list(note.references),
    }
    if note.code_outputs:
        meta["code_outputs"] = dict(note.code_outputs)
    return meta


def render_markdown(note: Note) -> str:
    buf = io.StringIO()
    yaml.safe_dump(note_frontmatter(note), buf, sort_keys=False, allow_unicode=True)
    return f"---\n{buf.getvalue()}---\n{note.content}"


class MarkdownExporter:
    """
    Flat export: one directory, files named <id>.md, YAML frontmatter
    followed by the note content.
    """

    def __init__(self, root: Path):
        self.root = root

    def _path(self, id: str) -> Path:
        return self.root / f"{id}.md"

    def export(self, notes: Iterable[Note]) -> list[Path]:
        self.root.mkdir(parents=True, exist_ok=True)
        written = []
        for note in notes:
            p = self._path(note.id)
            p.write_text(render_markdown(note), encoding="utf-8")
            written.append(p)
        return written
