"""SQL history and user preferences, persisted as JSON documents."""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .config import cache_dir, config_dir
from .errors import PersistenceError

logger = logging.getLogger(__name__)

DEFAULT_MAX_ENTRIES = 1000


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_ts(value: Any) -> Optional[datetime]:
    if not value:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    # timestamps without an offset are UTC
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _format_ts(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.isoformat().replace("+00:00", "Z")


@dataclass
class HistoryEntry:
    sql: str
    connection_id: str
    success: bool
    timestamp: datetime = field(default_factory=utcnow)
    database: Optional[str] = None
    execution_time_ms: Optional[int] = None
    error_message: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        out = asdict(self)
        out["timestamp"] = _format_ts(self.timestamp)
        return out

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "HistoryEntry":
        return cls(
            sql=raw["sql"],
            connection_id=raw.get("connection_id", ""),
            success=bool(raw.get("success", True)),
            timestamp=_parse_ts(raw.get("timestamp")) or utcnow(),
            database=raw.get("database"),
            execution_time_ms=raw.get("execution_time_ms"),
            error_message=raw.get("error_message"),
        )


@dataclass
class DatabaseInfo:
    name: str
    connection_id: str
    last_accessed: Optional[datetime] = None
    favorite: bool = False


@dataclass
class Preferences:
    auto_save_history: bool = True
    max_history_entries: int = DEFAULT_MAX_ENTRIES
    show_execution_time: bool = True


@dataclass
class UserConfig:
    databases: Dict[str, DatabaseInfo] = field(default_factory=dict)
    last_selected_database: Optional[str] = None
    last_connection_id: Optional[str] = None
    preferences: Preferences = field(default_factory=Preferences)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "databases": {
                key: {
                    "name": info.name,
                    "connection_id": info.connection_id,
                    "last_accessed": _format_ts(info.last_accessed),
                    "favorite": info.favorite,
                }
                for key, info in self.databases.items()
            },
            "last_selected_database": self.last_selected_database,
            "last_connection_id": self.last_connection_id,
            "preferences": asdict(self.preferences),
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "UserConfig":
        databases = {
            key: DatabaseInfo(
                name=info["name"],
                connection_id=info.get("connection_id", ""),
                last_accessed=_parse_ts(info.get("last_accessed")),
                favorite=bool(info.get("favorite", False)),
            )
            for key, info in (raw.get("databases") or {}).items()
        }
        prefs_raw = raw.get("preferences") or {}
        known = Preferences.__dataclass_fields__.keys()
        return cls(
            databases=databases,
            last_selected_database=raw.get("last_selected_database"),
            last_connection_id=raw.get("last_connection_id"),
            preferences=Preferences(**{k: v for k, v in prefs_raw.items() if k in known}),
        )


def _db_key(connection_id: str, database: str) -> str:
    return f"{connection_id}:{database}"


def _read_json(path: Path, what: str) -> Optional[Dict[str, Any]]:
    if not path.exists():
        return None
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise PersistenceError(f"Failed to read {what} file {path}: {e}") from e


def _write_json(path: Path, document: Dict[str, Any], what: str) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(document, indent=2, sort_keys=True), encoding="utf-8")
    except (OSError, TypeError, ValueError) as e:
        raise PersistenceError(f"Failed to write {what} file {path}: {e}") from e


class HistoryStore:
    """Bounded SQL history plus the user config it is governed by.

    Entries are kept oldest first; once ``max_entries`` is exceeded the oldest
    entries are dropped. Writing to disk happens on every mutation.
    """

    def __init__(
        self,
        config_path: Path,
        history_path: Path,
        config: Optional[UserConfig] = None,
        entries: Optional[List[HistoryEntry]] = None,
        max_entries: Optional[int] = None,
    ):
        self.config_path = config_path
        self.history_path = history_path
        self.config = config or UserConfig()
        self._entries: List[HistoryEntry] = list(entries or [])
        self.max_entries = max_entries or self.config.preferences.max_history_entries

    @classmethod
    def load(cls, config_path: Optional[Path] = None, history_path: Optional[Path] = None) -> "HistoryStore":
        config_path = config_path or config_dir() / "user_config.json"
        history_path = history_path or cache_dir() / "sql_history.json"

        raw_config = _read_json(config_path, "user config")
        raw_history = _read_json(history_path, "SQL history") or {}
        try:
            config = UserConfig.from_dict(raw_config) if raw_config else UserConfig()
            entries = [HistoryEntry.from_dict(e) for e in raw_history.get("entries") or []]
        except (KeyError, TypeError, ValueError) as e:
            raise PersistenceError(f"Malformed history data: {e}") from e

        logger.info("Loaded %d history entries from %s", len(entries), history_path)
        return cls(
            config_path,
            history_path,
            config=config,
            entries=entries,
            max_entries=raw_history.get("max_entries"),
        )

    @property
    def preferences(self) -> Preferences:
        return self.config.preferences

    @property
    def entries(self) -> List[HistoryEntry]:
        return list(self._entries)

    # SQL history

    def append(self, entry: HistoryEntry) -> None:
        if not self.preferences.auto_save_history:
            return

        self._entries.append(entry)
        excess = len(self._entries) - self.max_entries
        if excess > 0:
            del self._entries[:excess]
        self.save_history()

    def recent(self, limit: int) -> List[str]:
        """Most-recent-first SQL strings."""
        if limit <= 0:
            return []
        return [entry.sql for entry in reversed(self._entries[-limit:])]

    def for_connection(self, connection_id: str) -> List[HistoryEntry]:
        return [e for e in self._entries if e.connection_id == connection_id]

    def clear(self, connection_id: Optional[str] = None) -> None:
        if connection_id is None:
            self._entries.clear()
        else:
            self._entries = [e for e in self._entries if e.connection_id != connection_id]
        self.save_history()

    # Known databases

    def add_databases(self, connection_id: str, names: Iterable[str]) -> None:
        now = utcnow()
        for name in names:
            self.config.databases[_db_key(connection_id, name)] = DatabaseInfo(
                name=name, connection_id=connection_id, last_accessed=now
            )
        self.save_config()

    def add_database(self, connection_id: str, name: str) -> None:
        self.add_databases(connection_id, [name])

    def update_database_access(self, connection_id: str, name: str) -> None:
        info = self.config.databases.get(_db_key(connection_id, name))
        if info is not None:
            info.last_accessed = utcnow()
            self.save_config()

    def set_last_database(self, connection_id: str, name: str) -> None:
        self.config.last_connection_id = connection_id
        self.config.last_selected_database = name
        self.save_config()

    def get_last_database(self) -> Optional[Tuple[str, str]]:
        if self.config.last_connection_id and self.config.last_selected_database:
            return self.config.last_connection_id, self.config.last_selected_database
        return None

    def recent_databases(self, limit: int) -> List[DatabaseInfo]:
        epoch = datetime.min.replace(tzinfo=timezone.utc)
        ordered = sorted(
            self.config.databases.values(),
            key=lambda info: info.last_accessed or epoch,
            reverse=True,
        )
        return ordered[:limit]

    # Persistence

    def save_config(self) -> None:
        _write_json(self.config_path, self.config.to_dict(), "user config")

    def save_history(self) -> None:
        document = {
            "entries": [e.to_dict() for e in self._entries],
            "max_entries": self.max_entries,
        }
        _write_json(self.history_path, document, "SQL history")
