"""Filesystem key-value store: one file per key under a directory."""

import os
import re
import tempfile
from pathlib import Path

from rowsandbox.core.config import get_settings
from rowsandbox.core.exceptions import StorageError
from rowsandbox.core.logging import get_logger
from rowsandbox.infrastructure.storage.base import KeyValueStore

logger = get_logger(__name__)

# Keys map to file names; anything else is rejected.
KEY_PATTERN = re.compile(r"^[A-Za-z0-9_.:-]{1,200}$")


class FileKeyValueStore(KeyValueStore):
    """Key-value store persisting each key to `<state_dir>/<key>.bin`.

    Writes go through a temporary file and an atomic rename so that a crash
    never leaves a half-written value behind.
    """

    SUFFIX = ".bin"

    def __init__(self, state_dir: str | None = None) -> None:
        """Initialize the store.

        Args:
            state_dir: Directory holding the files. Defaults to settings.state_dir.
        """
        self.state_dir = Path(state_dir or get_settings().state_dir)

    def _path(self, key: str) -> Path:
        if not KEY_PATTERN.match(key):
            raise StorageError(f"Invalid storage key: {key!r}", key=key)
        return self.state_dir / f"{key}{self.SUFFIX}"

    def get(self, key: str) -> bytes | None:
        path = self._path(key)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageError(f"Failed to read {path}: {e}", key=key) from e

    def set(self, key: str, value: bytes) -> None:
        path = self._path(key)
        try:
            self.state_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.state_dir, prefix=".tmp_")
            try:
                with os.fdopen(fd, "wb") as f_out:
                    f_out.write(value)
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            logger.error("Failed to write state file", path=str(path), error=str(e))
            raise StorageError(f"Failed to write {path}: {e}", key=key) from e

    def delete(self, key: str) -> None:
        path = self._path(key)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to delete {path}: {e}", key=key) from e

    def keys(self) -> list[str]:
        if not self.state_dir.exists():
            return []
        return sorted(
            p.name[: -len(self.SUFFIX)]
            for p in self.state_dir.iterdir()
            if p.is_file() and p.name.endswith(self.SUFFIX) and not p.name.startswith(".")
        )
