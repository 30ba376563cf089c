"""Configuration loader for scholia.toml."""

from dataclasses import dataclass
from pathlib import Path
from typing import Any

try:
    import tomllib
except ImportError:
    import tomli as tomllib  # type: ignore


@dataclass
class StoreConfig:
    """Note store configuration."""
    path: Path


@dataclass
class ServerConfig:
    """HTTP server configuration."""
    host: str = "127.0.0.1"
    port: int = 3001
    cors: bool = False


@dataclass
class AuthConfig:
    """User resolution when no X-User-Id header is sent."""
    default_user: str = "local-user"


@dataclass
class LogConfig:
    """Logging configuration."""
    level: str = "INFO"


@dataclass
class ScholiaConfig:
    """Complete scholia configuration."""
    store: StoreConfig
    server: ServerConfig
    auth: AuthConfig
    log: LogConfig


def load_config(config_path: Path | None = None) -> ScholiaConfig:
    """
    Load configuration from scholia.toml.
    
    Search order:
    1. config_path (if provided)
    2. cwd/scholia.toml
    
    Args:
        config_path: Explicit path to config file
    
    Returns:
        ScholiaConfig with resolved settings
    """
    toml_data: dict[str, Any] = {}
    
    # Search for config file
    search_paths = []
    if config_path:
        search_paths.append(config_path)
    search_paths.append(Path.cwd() / "scholia.toml")
    
    for path in search_paths:
        if path.exists():
            with open(path, "rb") as f:
                toml_data = tomllib.load(f)
            break
    
    store_data = toml_data.get("store", {})
    store_config = StoreConfig(
        path=Path(store_data.get("path", "./scholia.db")),
    )
    
    server_data = toml_data.get("server", {})
    server_config = ServerConfig(
        host=server_data.get("host", "127.0.0.1"),
        port=int(server_data.get("port", 3001)),
        cors=bool(server_data.get("cors", False)),
    )
    
    auth_data = toml_data.get("auth", {})
    auth_config = AuthConfig(
        default_user=auth_data.get("default_user", "local-user"),
    )
    
    log_data = toml_data.get("log", {})
    log_config = LogConfig(
        level=log_data.get("level", "INFO"),
    )
    
    return ScholiaConfig(
        store=store_config,
        server=server_config,
        auth=auth_config,
        log=log_config,
    )
