from __future__ import annotations

import os
import re
import uuid
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .errors import ConfigError

DEFAULT_HOST = "localhost"
DEFAULT_PORT = 3306
APP_DIR_NAME = "rmsql"

_ENV_REF = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")


def _new_id() -> str:
    return str(uuid.uuid4())


@dataclass
class ConnectionConfig:
    name: str
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    username: str = ""
    password: str = ""
    default_database: Optional[str] = None
    use_ssl: bool = True
    id: str = field(default_factory=_new_id)

    def display_target(self) -> str:
        secret = "***" if self.password else "no-pass"
        return f"{self.username}:{secret}@{self.host}:{self.port}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "host": self.host,
            "port": self.port,
            "username": self.username,
            "password": self.password,
            "default_database": self.default_database,
            "use_ssl": self.use_ssl,
        }

    def expanded(self) -> "ConnectionConfig":
        """Copy with ``${VAR}`` references resolved, for connecting.

        The stored connection keeps the references so saving never writes secrets.
        """
        return replace(
            self,
            host=_expand_env(self.host),
            username=_expand_env(self.username),
            password=_expand_env(self.password),
            default_database=_expand_env(self.default_database),
        )


def config_dir() -> Path:
    return Path(os.environ.get("XDG_CONFIG_HOME", "~/.config")).expanduser() / APP_DIR_NAME


def cache_dir() -> Path:
    return Path(os.environ.get("XDG_CACHE_HOME", "~/.cache")).expanduser() / APP_DIR_NAME


def resolve_connections_path() -> Path:
    # Highest priority: explicit override
    override = os.environ.get("RMSQL_CONFIG")
    if override:
        return Path(override).expanduser()
    return config_dir() / "connections.yaml"


def _expand_env(value: Any) -> Any:
    if isinstance(value, str):
        # only ${VAR}; a bare $ is literal and unset variables stay as written
        return _ENV_REF.sub(lambda m: os.environ.get(m.group(1), m.group(0)), value)
    return value


def _as_connection(conn_id: str, raw: Dict[str, Any]) -> ConnectionConfig:
    try:
        port = int(_expand_env(raw.get("port", DEFAULT_PORT)))
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Connection '{conn_id}' has an invalid port: {raw.get('port')!r}") from e
    return ConnectionConfig(
        id=conn_id,
        name=str(raw.get("name") or conn_id),
        host=str(raw.get("host") or DEFAULT_HOST),
        port=port,
        username=str(raw.get("username") or ""),
        password=str(raw.get("password") or ""),
        default_database=raw.get("default_database"),
        use_ssl=bool(raw.get("use_ssl", True)),
    )


def is_running_as_root() -> bool:
    return bool(os.environ.get("SUDO_USER")) or os.environ.get("USER", "") == "root"


def create_root_connection() -> ConnectionConfig:
    return ConnectionConfig(name="Root (Local)", username="root")


class ConnectionStore:
    """Saved connections, persisted as one YAML document."""

    def __init__(self, path: Path, connections: Optional[Dict[str, ConnectionConfig]] = None,
                 last_used: Optional[str] = None):
        self.path = path
        self.connections: Dict[str, ConnectionConfig] = connections or {}
        self.last_used = last_used

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "ConnectionStore":
        cfg_path = path or resolve_connections_path()
        if not cfg_path.exists():
            return cls(cfg_path)
        try:
            data = yaml.safe_load(cfg_path.read_text()) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Failed to read connections file {cfg_path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"Connections file {cfg_path} must contain a mapping")
        raw_connections = data.get("connections") or {}
        connections = {
            conn_id: _as_connection(str(conn_id), raw or {})
            for conn_id, raw in raw_connections.items()
        }
        return cls(cfg_path, connections, data.get("last_used"))

    def save(self) -> None:
        document = {
            "version": 1,
            "last_used": self.last_used,
            "connections": {conn_id: c.to_dict() for conn_id, c in self.connections.items()},
        }
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(yaml.safe_dump(document, sort_keys=True))
        except OSError as e:
            raise ConfigError(f"Failed to write connections file {self.path}: {e}") from e

    def add(self, connection: ConnectionConfig) -> None:
        self.connections[connection.id] = connection
        self.save()

    def update(self, conn_id: str, **changes: Any) -> Optional[ConnectionConfig]:
        """Change fields of a saved connection in place; its id is kept."""
        current = self.connections.get(conn_id)
        if current is None:
            return None
        updated = replace(current, **changes)
        self.connections[conn_id] = updated
        self.save()
        return updated

    def remove(self, conn_id: str) -> bool:
        if conn_id not in self.connections:
            return False
        del self.connections[conn_id]
        if self.last_used == conn_id:
            self.last_used = None
        self.save()
        return True

    def get(self, conn_id: str) -> Optional[ConnectionConfig]:
        return self.connections.get(conn_id)

    def list(self) -> List[ConnectionConfig]:
        return sorted(self.connections.values(), key=lambda c: c.name)

    def set_last_used(self, conn_id: str) -> None:
        if conn_id in self.connections:
            self.last_used = conn_id
            self.save()

    def get_last_used(self) -> Optional[ConnectionConfig]:
        if self.last_used is None:
            return None
        return self.connections.get(self.last_used)
