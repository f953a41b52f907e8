"""
File-Backed Local Storage

DESIGN DECISION: The local slot is a single JSON file per key inside the
data directory. A file is what a desktop or CLI client has in place of a
browser's key-value store, and it survives restarts without any setup.

Writes go to a temporary file first and are moved into place with
os.replace, so a crash mid-write never leaves a truncated record behind.
"""

import os
import tempfile
from pathlib import Path
from typing import Optional

import structlog

from lifesync.config import get_settings
from lifesync.services.storage.interface import LocalStoreInterface, LocalWriteError, StorageError


logger = structlog.get_logger(__name__)


class FileLocalStore(LocalStoreInterface):
    """
    Local slot stored as <data_dir>/<key>.json.

    A quota caps the record size the way a browser's storage quota does.
    """

    def __init__(
        self,
        directory: Optional[Path] = None,
        quota_bytes: Optional[int] = None,
    ):
        settings = get_settings().sync
        self._directory = Path(directory) if directory else settings.data_path
        self._quota_bytes = quota_bytes if quota_bytes is not None else settings.local_quota_bytes

    def _path(self, key: str) -> Path:
        return self._directory / f"{key}.json"

    def read(self, key: str) -> Optional[str]:
        path = self._path(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageError(f"Failed to read local record {path}: {e}")

    def write(self, key: str, value: str) -> None:
        data = value.encode("utf-8")
        if len(data) > self._quota_bytes:
            raise LocalWriteError(
                f"Local storage quota exceeded: {len(data)} bytes > {self._quota_bytes} bytes"
            )

        path = self._path(key)
        try:
            self._directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self._directory, prefix=f".{key}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "wb") as tmp:
                    tmp.write(data)
                    tmp.flush()
                    os.fsync(tmp.fileno())
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise LocalWriteError(f"Failed to write local record {path}: {e}")

        logger.debug("local_write", key=key, size_bytes=len(data))

    def remove(self, key: str) -> bool:
        path = self._path(key)
        try:
            path.unlink()
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StorageError(f"Failed to remove local record {path}: {e}")

    def size(self, key: str) -> int:
        try:
            return self._path(key).stat().st_size
        except FileNotFoundError:
            return 0
