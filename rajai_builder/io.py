"""I/O utilities for the app builder: progress log, key-value store, artifact output."""
import json
import logging
import re
from pathlib import Path
from typing import Any, Dict, Optional, Protocol
from datetime import datetime, timezone

from rajai_builder.errors import StorageError

logger = logging.getLogger(__name__)

SESSION_KEY = "rajai_session"
PROJECTS_KEY = "rajai_projects"


def emit_progress(
    state: Any,
    stage: str,
    message: str,
    level: str = "info",
    data: Dict[str, Any] = None
) -> None:
    """Emit a progress event to state and mirror it to the log."""
    event = {
        "ts": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        "level": level,
        "stage": stage,
        "message": message,
        "data": data or {}
    }
    state.progress_events.append(event)
    logger.log(logging.getLevelName(level.upper()), f"[{stage}] {message}")


class KeyValueStore(Protocol):
    """Minimal string key-value persistence the session writes through to."""

    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


class MemoryStore:
    """In-process store, used by tests and ephemeral servers."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value

    def delete(self, key: str) -> None:
        self.data.pop(key, None)


class JsonFileStore:
    """Stores each key as <directory>/<key>.json."""

    def __init__(self, directory: Path):
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        if not re.fullmatch(r"[A-Za-z0-9_.-]+", key):
            raise StorageError(f"Invalid storage key: {key!r}")
        return self.directory / f"{key}.json"

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageError(f"Failed to read {path}: {e}") from e

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            # Write then rename so a crash never leaves half a snapshot
            tmp_path = path.with_suffix(".json.tmp")
            tmp_path.write_text(value, encoding="utf-8")
            tmp_path.replace(path)
        except OSError as e:
            raise StorageError(f"Failed to write {path}: {e}") from e

    def delete(self, key: str) -> None:
        path = self._path(key)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to delete {path}: {e}") from e


def load_json(store: KeyValueStore, key: str) -> Optional[Any]:
    """Read and decode one key. Raises StorageError on unreadable data."""
    raw = store.get(key)
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        raise StorageError(f"Stored value for {key!r} is not valid JSON: {e}") from e


def save_json(store: KeyValueStore, key: str, value: Any) -> None:
    store.set(key, json.dumps(value))


def write_generated_app(html: str, output_dir: str, project_id: str) -> Path:
    """Write a generated application to <output_dir>/<project_id>.html."""
    base_path = Path(output_dir)
    base_path.mkdir(parents=True, exist_ok=True)
    full_path = base_path / f"{project_id}.html"
    full_path.write_text(html, encoding="utf-8")
    return full_path
