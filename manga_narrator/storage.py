"""Key-value persistence shared by voice memory and the audio cache."""

import json
import logging
import os
import re
import shutil
import tempfile

from manga_narrator.constants import HOME_ENV, DEFAULT_HOME, STORE_DIR, CACHE_DIR
from manga_narrator.errors import StorageError

logger = logging.getLogger(__name__)


def data_home() -> str:
    """Data directory: $MANGA_NARRATOR_HOME or ~/.manga_narrator."""
    return os.path.expanduser(os.environ.get(HOME_ENV) or DEFAULT_HOME)


def init_data_dir(home: str | None = None) -> str:
    """Create the data directory and its subdirectories.

    Returns the data directory path.
    """
    home = home or data_home()
    for subdir in (STORE_DIR, CACHE_DIR):
        os.makedirs(os.path.join(home, subdir), exist_ok=True)
    return home


def _atomic_write(path: str, data: bytes) -> None:
    """Write to a temp file in the same directory, then rename over path."""
    directory = os.path.dirname(path) or "."
    fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".tmp_")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.replace(tmp_path, path)
    except BaseException:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise


class KeyValueStore:
    """Durable string-keyed store of JSON-compatible values."""

    def get(self, key: str):
        raise NotImplementedError

    def set(self, key: str, value) -> None:
        raise NotImplementedError

    def remove(self, key: str) -> None:
        raise NotImplementedError


class MemoryStore(KeyValueStore):
    """Process-local store; values are copied through JSON like the file store."""

    def __init__(self):
        self._data: dict[str, str] = {}

    def get(self, key: str):
        raw = self._data.get(key)
        return None if raw is None else json.loads(raw)

    def set(self, key: str, value) -> None:
        self._data[key] = json.dumps(value)

    def remove(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileStore(KeyValueStore):
    """One JSON document per key under a directory."""

    def __init__(self, directory: str):
        self.directory = directory

    def _path(self, key: str) -> str:
        safe = re.sub(r"[^a-zA-Z0-9_.-]+", "_", key).strip("_") or "_"
        return os.path.join(self.directory, f"{safe}.json")

    def get(self, key: str):
        """Return the stored value, or None if the key was never written."""
        path = self._path(key)
        if not os.path.exists(path):
            return None
        try:
            with open(path) as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StorageError(f"Could not read {path}: {e}") from e

    def set(self, key: str, value) -> None:
        path = self._path(key)
        try:
            os.makedirs(self.directory, exist_ok=True)
            _atomic_write(path, json.dumps(value, indent=2).encode())
        except OSError as e:
            raise StorageError(f"Could not write {path}: {e}") from e

    def remove(self, key: str) -> None:
        path = self._path(key)
        try:
            if os.path.exists(path):
                os.remove(path)
        except OSError as e:
            raise StorageError(f"Could not remove {path}: {e}") from e


class BlobDirectory:
    """Flat directory of binary files addressed by file name."""

    def __init__(self, directory: str):
        self.directory = directory

    def path(self, name: str) -> str:
        return os.path.join(self.directory, os.path.basename(name))

    def read(self, name: str) -> bytes | None:
        path = self.path(name)
        if not os.path.exists(path):
            return None
        with open(path, "rb") as f:
            return f.read()

    def write(self, name: str, data: bytes) -> str:
        os.makedirs(self.directory, exist_ok=True)
        path = self.path(name)
        _atomic_write(path, data)
        return path

    def clear(self) -> None:
        if os.path.exists(self.directory):
            shutil.rmtree(self.directory)
        os.makedirs(self.directory, exist_ok=True)
