"""scholia - a small notes backend over SQLite."""

__version__ = "0.1.0"
