"""Runtime wiring helper for the CLI and API server."""

from dataclasses import dataclass
from pathlib import Path

from .adapters.idgen import UuidId
from .adapters.json_codec import NoteCodec
from .adapters.sqlite_store import SQLiteNoteStore
from .config import ScholiaConfig, load_config


@dataclass
class Runtime:
    """Container for all wired components."""
    store: SQLiteNoteStore
    codec: NoteCodec
    config: ScholiaConfig

    def close(self) -> None:
        self.store.close()


def build_runtime(
    config_path: Path | None = None,
    db_path: Path | None = None,
) -> Runtime:
    """Build and wire all components for a store."""
    config = load_config(config_path=config_path)
    
    # CLI args win over config values
    if db_path is None:
        db_path = config.store.path
    
    codec = NoteCodec()
    store = SQLiteNoteStore(db_path, codec=codec, idgen=UuidId())
    
    return Runtime(
        store=store,
        codec=codec,
        config=config,
    )
