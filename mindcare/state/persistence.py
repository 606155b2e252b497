"""Versioned snapshot storage for persisted store state."""

import json
import os
import re
import tempfile
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Union

import structlog

from ..core.errors import SnapshotError


logger = structlog.get_logger()

SNAPSHOT_VERSION = 1

CHAT_NAMESPACE = "mindcare-chat-storage"
AUTH_NAMESPACE = "mindcare-auth-storage"

_NAMESPACE_RE = re.compile(r"^[A-Za-z0-9_.-]+$")


class SnapshotStorage(ABC):
    """Local key-value store holding one state snapshot per namespace."""

    @abstractmethod
    def read(self, namespace: str) -> Optional[Dict[str, Any]]:
        """Return the raw envelope stored under namespace, if any."""

    @abstractmethod
    def write(self, namespace: str, envelope: Dict[str, Any]) -> None:
        """Store a raw envelope under namespace."""

    @abstractmethod
    def delete(self, namespace: str) -> None:
        """Remove the namespace."""

    def load(self, namespace: str) -> Optional[Dict[str, Any]]:
        """Load and migrate the state stored under namespace."""
        envelope = self.read(namespace)
        if envelope is None:
            return None
        return migrate_snapshot(namespace, envelope)

    def save(self, namespace: str, state: Dict[str, Any]) -> None:
        self.write(namespace, {"version": SNAPSHOT_VERSION, "state": state})


class MemoryStorage(SnapshotStorage):
    """In-process storage, nothing survives the process."""

    def __init__(self):
        self._data: Dict[str, str] = {}

    def read(self, namespace: str) -> Optional[Dict[str, Any]]:
        raw = self._data.get(namespace)
        return json.loads(raw) if raw is not None else None

    def write(self, namespace: str, envelope: Dict[str, Any]) -> None:
        # Serialize so callers never share mutable state with the store
        self._data[namespace] = json.dumps(envelope, ensure_ascii=False)

    def delete(self, namespace: str) -> None:
        self._data.pop(namespace, None)

    def namespaces(self) -> list[str]:
        return sorted(self._data)


class JsonFileStorage(SnapshotStorage):
    """One JSON file per namespace, replaced atomically on every save."""

    def __init__(self, base_path: Union[str, Path]):
        self.base_path = Path(base_path).expanduser()
        self.base_path.mkdir(parents=True, exist_ok=True)

    def _path(self, namespace: str) -> Path:
        if not _NAMESPACE_RE.match(namespace):
            raise ValueError(f"Invalid storage namespace: {namespace!r}")
        return self.base_path / f"{namespace}.json"

    def read(self, namespace: str) -> Optional[Dict[str, Any]]:
        path = self._path(namespace)
        if not path.exists():
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise SnapshotError(f"Cannot read snapshot {path}: {e}") from e

    def write(self, namespace: str, envelope: Dict[str, Any]) -> None:
        path = self._path(namespace)
        with tempfile.NamedTemporaryFile(
            mode="w", dir=path.parent, delete=False, suffix=".tmp", encoding="utf-8"
        ) as tmp_file:
            json.dump(envelope, tmp_file, indent=2, ensure_ascii=False)
            tmp_file.flush()
            os.fsync(tmp_file.fileno())
            tmp_path = tmp_file.name

        os.replace(tmp_path, path)
        logger.debug("Snapshot written", namespace=namespace, path=str(path))

    def delete(self, namespace: str) -> None:
        path = self._path(namespace)
        if path.exists():
            path.unlink()


def _ms_to_iso(value: Any) -> Any:
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000).isoformat()
    return value


def _migrate_v0_chat(state: Dict[str, Any]) -> Dict[str, Any]:
    sessions = []
    for session in state.get("sessions", []):
        sessions.append(
            {
                "id": session["id"],
                "title": session.get("title", ""),
                "messages": [
                    {
                        "id": message["id"],
                        "role": message["role"],
                        "content": message["content"],
                        "timestamp": _ms_to_iso(message.get("timestamp")),
                    }
                    for message in session.get("messages", [])
                ],
                "created_at": _ms_to_iso(session.get("createdAt")),
                "updated_at": _ms_to_iso(session.get("updatedAt")),
                "language": session.get("language"),
            }
        )
    return {
        "sessions": sessions,
        "current_session_id": state.get("currentSessionId"),
        "language": state.get("language"),
    }


def _migrate_v0_auth(state: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "user": state.get("user"),
        "token": state.get("token"),
        "is_authenticated": bool(state.get("isAuthenticated", False)),
    }


_V0_MIGRATIONS = {
    CHAT_NAMESPACE: _migrate_v0_chat,
    AUTH_NAMESPACE: _migrate_v0_auth,
}


def migrate_snapshot(namespace: str, envelope: Dict[str, Any]) -> Dict[str, Any]:
    """
    Upgrade a stored envelope to the current snapshot version.

    Version 0 is the legacy browser format: camelCase keys and millisecond
    epoch timestamps. Snapshots written by a newer release cannot be read.
    """
    if not isinstance(envelope, dict) or "state" not in envelope:
        raise SnapshotError(f"Malformed snapshot in namespace {namespace}")

    version = envelope.get("version", 0)
    state = envelope["state"]

    if version == SNAPSHOT_VERSION:
        return state

    if version == 0:
        migrate = _V0_MIGRATIONS.get(namespace)
        if migrate is None:
            raise SnapshotError(f"No legacy migration for namespace {namespace}")
        logger.info("Migrating legacy snapshot", namespace=namespace, from_version=0)
        return migrate(state)

    raise SnapshotError(
        f"Snapshot version {version} in {namespace} is newer than supported {SNAPSHOT_VERSION}"
    )
