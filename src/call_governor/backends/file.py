# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
File-backed store

Keeps the whole key/value map in one JSON file so cached results survive a
process restart on the same machine. Writes go to a temporary file in the
same directory and are moved into place with os.replace, so readers never
observe a partially written map.
"""

import contextlib
import json
import logging
import os
import tempfile
import threading
from pathlib import Path

from ..exceptions import StorageWriteError
from .base import BaseStore, StoreInfo

logger = logging.getLogger(__name__)


class FileStore(BaseStore):
    """
    JSON file store.

    The file is loaded lazily on first access. A missing file is an empty
    store; an unreadable or corrupt file is logged and treated as empty.
    """

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self.path = Path(path)
        self._data: dict[str, str] | None = None
        self._lock = threading.Lock()

    def _load(self) -> dict[str, str]:
        if self._data is not None:
            return self._data
        data: dict[str, str] = {}
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
            if isinstance(raw, dict):
                data = {k: v for k, v in raw.items() if isinstance(v, str)}
            else:
                logger.warning(f"Ignoring store file {self.path}: not a JSON object")
        except FileNotFoundError:
            pass
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable store file {self.path}: {e}")
        self._data = data
        return data

    def _flush(self, data: dict[str, str], key: str) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    json.dump(data, fh, separators=(",", ":"))
                os.replace(tmp_path, self.path)
            except BaseException:
                with contextlib.suppress(OSError):
                    os.unlink(tmp_path)
                raise
        except OSError as e:
            raise StorageWriteError(
                f"Failed to write store file {self.path}: {e}", key=key
            ) from e

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            current = self._load()
            updated = dict(current)
            updated[key] = value
            self._flush(updated, key)
            self._data = updated

    def remove(self, key: str) -> None:
        with self._lock:
            current = self._load()
            if key not in current:
                return
            updated = {k: v for k, v in current.items() if k != key}
            try:
                self._flush(updated, key)
            except StorageWriteError as e:
                logger.warning(f"Failed to persist removal of {key}: {e}")
            self._data = updated

    def keys(self, prefix: str = "") -> list[str]:
        with self._lock:
            return [k for k in self._load() if k.startswith(prefix)]

    def info(self) -> StoreInfo:
        return StoreInfo(store_type="file", metadata={"path": str(self.path)})

