# taskboard: configuration
# Override store, default board and server settings via config.yaml.

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

import yaml

from .store import HTTPStore, RemoteStore, SQLiteStore

logger = logging.getLogger(__name__)

CONFIG_PATH = Path(__file__).parent.parent / "config.yaml"

DEFAULT_COLUMNS = [
    {"name": "To Do", "color": "#ef4444"},
    {"name": "In Progress", "color": "#f59e0b"},
    {"name": "Done", "color": "#10b981"},
]


class ConfigError(Exception):
    """Raised when configuration is invalid or incomplete."""
    pass


@dataclass
class Config:
    """Runtime configuration for the board core and its server."""

    # Store
    store_backend: str = "sqlite"          # "sqlite" | "http"
    db_path: str = "~/.local/share/taskboard/taskboard.db"
    api_url: Optional[str] = None          # base URL of the hosted store
    api_key_env: str = "TASKBOARD_STORE_KEY"
    request_timeout: float = 5.0

    # Default board provisioned on first sign-in
    default_board_name: str = "My Tasks"
    default_board_description: str = "Your personal task board"
    default_columns: List[Dict[str, str]] = field(
        default_factory=lambda: [dict(c) for c in DEFAULT_COLUMNS]
    )

    # Local user for the JSON server
    local_user_id: str = "local"
    local_user_email: str = "local@localhost"
    local_user_name: Optional[str] = None

    # Server / logging
    log_level: str = "INFO"
    server_host: str = "127.0.0.1"
    server_port: int = 3000

    def resolve_paths(self):
        """Expand ~ in filesystem paths."""
        self.db_path = str(Path(self.db_path).expanduser())

    @classmethod
    def load(cls, path: Optional[str] = None) -> "Config":
        """Load config from YAML file, falling back to defaults."""
        env_path = os.environ.get("TASKBOARD_CONFIG")
        cfg_path = Path(path or env_path) if (path or env_path) else CONFIG_PATH
        if cfg_path.exists():
            try:
                with open(cfg_path, "r") as f:
                    data = yaml.safe_load(f) or {}
                cfg = cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})
            except (OSError, yaml.YAMLError, TypeError, AttributeError) as e:
                logger.warning(f"Cannot read config {cfg_path} ({e}), using defaults")
                cfg = cls()
        else:
            cfg = cls()
        cfg.resolve_paths()
        return cfg


def build_store(cfg: Config) -> RemoteStore:
    """Instantiate the store backend named in the config."""
    backend = (cfg.store_backend or "").strip().lower()
    if backend == "sqlite":
        return SQLiteStore(cfg.db_path)
    if backend == "http":
        if not cfg.api_url:
            raise ConfigError("store_backend 'http' requires api_url")
        return HTTPStore(
            cfg.api_url,
            api_key=os.environ.get(cfg.api_key_env) or None,
            timeout=cfg.request_timeout,
        )
    raise ConfigError(f"Unknown store_backend: {cfg.store_backend!r} (expected sqlite or http)")
