"""Key-value persistence backed by one JSON document per key on disk."""

from __future__ import annotations

import json
import logging
import os
import re
import tempfile
from pathlib import Path
from threading import Lock
from typing import Any

logger = logging.getLogger("grimoire.kv_store")

_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")


class JsonFileStore:
    """Last-write-wins store; a missing or unreadable key loads as ``None``."""

    def __init__(self, directory: str | Path):
        self.directory = Path(directory)
        self._lock = Lock()

    def _path(self, key: str) -> Path:
        if not _KEY_PATTERN.match(key):
            raise ValueError(f"Invalid store key: {key!r}")
        return self.directory / f"{key}.json"

    def load(self, key: str) -> Any | None:
        path = self._path(key)
        with self._lock:
            try:
                raw = path.read_text(encoding="utf-8")
            except FileNotFoundError:
                return None
            except OSError:
                logger.warning("Unable to read %s; using default", path, exc_info=True)
                return None

        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Corrupted JSON in %s; using default", path)
            return None

    def save(self, key: str, value: Any) -> None:
        path = self._path(key)
        content = json.dumps(value, indent=2, ensure_ascii=False) + "\n"
        with self._lock:
            self.directory.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                mode="w",
                encoding="utf-8",
                dir=self.directory,
                prefix=f"{path.name}.",
                suffix=".tmp",
                delete=False,
            ) as tmp:
                tmp.write(content)
                tmp.flush()
                os.fsync(tmp.fileno())
                tmp_path = Path(tmp.name)
            tmp_path.replace(path)
