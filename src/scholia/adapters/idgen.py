import uuid

from ..core.ports import IdGenerator


class UuidId(IdGenerator):
    """Random 128-bit ids in canonical lowercase form."""

    def new_id(self) -> str:
        return str(uuid.uuid4())
