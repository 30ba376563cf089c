from typing import Any, Protocol, TypeVar

from .model import Note, NoteId

T = TypeVar("T")


class EntityCodec(Protocol[T]):
    """
    Text <-> entity. Decoding is lenient: unknown keys are ignored and
    missing keys leave fields at their zero value.
    """

    def encode(self, entity: T) -> str:
        pass

    def decode(self, text: str, strict: bool = False) -> T:
        pass

    def to_dict(self, entity: T) -> dict[str, Any]:
        pass

    def from_dict(self, obj: dict[str, Any]) -> T:
        pass


class IdGenerator(Protocol):
    def new_id(self) -> NoteId:
        pass


class NoteStore(Protocol):
    """
    Owner-scoped CRUD. Every call takes the caller's user_id; a note is
    only visible through the (id, user_id) pair that created it.
    """

    def list_all(self, user_id: str) -> list[Note]:
        pass

    def search(self, query: str, user_id: str) -> list[Note]:
        pass

    def get(self, id: NoteId, user_id: str) -> Note:
        pass

    def create(self, note: Note, user_id: str) -> Note:
        pass

    def update(self, note: Note, user_id: str) -> Note:
        pass

    def update_many(self, notes: list[Note], user_id: str) -> list[Note]:
        pass

    def delete(self, id: NoteId, user_id: str) -> None:
        pass

    def delete_all(self, user_id: str) -> int:
        pass
