"""Key-value JSON snapshot storage: one file per key, rewritten whole on every save."""
from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any, Optional


class SnapshotCorruptError(ValueError):
    """Stored snapshot exists but cannot be decoded."""


class SnapshotStore:
    """Durable key -> JSON value store backed by a directory of files."""

    _KEY_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")

    def __init__(self, directory: str | Path) -> None:
        self._directory = Path(directory)

    @property
    def directory(self) -> Path:
        return self._directory

    def _path_for(self, key: str) -> Path:
        if not self._KEY_PATTERN.match(key):
            raise ValueError(f"Invalid snapshot key: {key!r}")
        return self._directory / f"{key}.json"

    def read(self, key: str) -> Optional[Any]:
        """Return the stored value, ``None`` when the key was never written."""
        path = self._path_for(key)
        if not path.exists():
            return None
        try:
            with path.open("r", encoding="utf-8") as handle:
                return json.load(handle)
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise SnapshotCorruptError(f"{path}: {exc}") from exc

    def write(self, key: str, value: Any) -> None:
        path = self._path_for(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_suffix(".tmp")
        with tmp_path.open("w", encoding="utf-8") as handle:
            json.dump(value, handle, indent=2, ensure_ascii=False)
        tmp_path.replace(path)

    def erase(self, key: str) -> None:
        self._path_for(key).unlink(missing_ok=True)
