"""
JSON file backend - stores the snapshot as a single JSON file.

Layout:
    {TUTOR_DATA_DIR}/
        state.json      - {"schemaVersion": 1, "state": {...}}
"""

import json
import threading
from pathlib import Path
from typing import Optional

from config import SCHEMA_VERSION, STATE_FILE
from .base import SnapshotRepository


class WriteQueue:
    """Thread-safe write serialization."""

    def __init__(self):
        self._lock = threading.Lock()

    def write_json(self, path: Path, data: dict) -> None:
        """Atomic JSON write."""
        with self._lock:
            path.parent.mkdir(parents=True, exist_ok=True)
            temp = path.with_suffix(".json.tmp")
            with open(temp, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False, default=str)
            temp.replace(path)


_write_queue = WriteQueue()


class JsonSnapshotRepository(SnapshotRepository):
    """JSON file implementation of the snapshot repository."""

    def __init__(self, path: Path = None):
        self._path = Path(path) if path else STATE_FILE

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> Optional[dict]:
        if not self._path.exists():
            return None

        try:
            with open(self._path, encoding="utf-8") as f:
                data = json.load(f)
        except (ValueError, OSError) as e:
            # JSONDecodeError and UnicodeDecodeError are both ValueErrors
            print(f"[WARN] Unreadable snapshot {self._path}: {e}")
            return None

        if not isinstance(data, dict):
            print(f"[WARN] Snapshot {self._path} is not an object, ignoring")
            return None

        version = data.get("schemaVersion")
        if version != SCHEMA_VERSION:
            print(f"[WARN] Snapshot {self._path} has schemaVersion {version!r}, expected {SCHEMA_VERSION}; ignoring")
            return None

        return data

    def save(self, document: dict) -> None:
        _write_queue.write_json(self._path, document)

    def exists(self) -> bool:
        return self._path.exists()

    def delete(self) -> bool:
        if not self._path.exists():
            return False
        self._path.unlink()
        print(f"[REPO] Deleted {self._path}")
        return True
