from __future__ import annotations
from dataclasses import dataclass, field

NoteId = str


@dataclass
class BacklinkReference:
    note_id: NoteId = ""  # serialized as "noteId"
    context: str = ""
    timestamp: str = ""
    relevance: float = 0.0
    accepted: bool = False
    rejected: bool = False  # both False means pending

    @property
    def pending(self) -> bool:
        return not self.accepted and not self.rejected


@dataclass
class Note:
    id: NoteId = ""
    content: str = ""
    created_at: str = ""
    last_modified: str = ""
    tags: list[str] = field(default_factory=list)
    code_outputs: dict[str, str] = field(default_factory=dict)
    backlinks: list[BacklinkReference] = field(default_factory=list)
    references: list[NoteId] = field(default_factory=list)
    suggested_links: list[BacklinkReference] = field(default_factory=list)


@dataclass
class Notebook:
    id: str = ""
    name: str = ""
    created_at: str = ""
    updated_at: str = ""
