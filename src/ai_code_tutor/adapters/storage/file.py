"""Key-value store persisted as a single JSON file."""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from threading import Lock

import structlog

from ...utils.async_helpers import StorageError
from ...utils.logging import LogEventNames

log = structlog.get_logger()


class JsonFileStore:
    """KeyValueStore backed by one JSON object on disk.

    Writes go to a temporary file in the same directory and are moved into
    place with ``os.replace``, so readers never see a half-written file.
    An unreadable file is treated as empty.
    """

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path)
        self._lock = Lock()

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> dict[str, str]:
        try:
            raw = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as e:
            log.warning(LogEventNames.STATE_CORRUPTED, path=str(self._path), error=str(e))
            return {}

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            log.warning(LogEventNames.STATE_CORRUPTED, path=str(self._path), error=str(e))
            return {}
        if not isinstance(data, dict):
            log.warning(LogEventNames.STATE_CORRUPTED, path=str(self._path), error="not an object")
            return {}
        return {k: v for k, v in data.items() if isinstance(v, str)}

    def _dump(self, data: dict[str, str]) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self._path.parent, suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(data, f, indent=2)
                os.replace(tmp_name, self._path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            log.error(LogEventNames.STORAGE_WRITE_FAILED, path=str(self._path), error=str(e))
            raise StorageError(f"Cannot write {self._path}: {e}") from e

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            data = self._load()
            data[key] = value
            self._dump(data)

    def remove(self, key: str) -> None:
        with self._lock:
            data = self._load()
            if data.pop(key, None) is not None:
                self._dump(data)
