"""Configuration for the Monaca client.

Two JSON files live under ``~/.cordova`` by default:

- ``monaca_config.json`` holds user settings such as ``http_proxy``. It is
  shared by every client process, so writes take an exclusive OS file lock
  (fcntl on POSIX, msvcrt on Windows) with a bounded wait and replace the
  file atomically.
- ``monaca.json`` holds session data (relogin token, client id).
"""

import json
import logging
import os
import tempfile
import time
from pathlib import Path
from typing import Any, Optional

try:
    import fcntl  # POSIX systems

    HAVE_FCNTL = True
except ImportError:
    HAVE_FCNTL = False

try:
    import msvcrt  # Windows

    HAVE_MSVCRT = True
except ImportError:
    HAVE_MSVCRT = False

from .exceptions import MonacaIOError, MonacaLockTimeoutError, MonacaValidationError

logger = logging.getLogger(__name__)

DEFAULT_API_ROOT = "https://ide.monaca.mobi/api"
DEFAULT_LOCK_TIMEOUT = 10.0  # seconds
LOCK_POLL_INTERVAL = 0.05


def _cordova_dir() -> Path:
    return Path.home() / ".cordova"


class Config:
    """Environment driven settings."""

    @property
    def api_root(self) -> str:
        return os.environ.get("MONACA_API_ROOT", DEFAULT_API_ROOT).rstrip("/")

    @property
    def config_file(self) -> Path:
        value = os.environ.get("MONACA_CONFIG_FILE")
        return Path(value) if value else _cordova_dir() / "monaca_config.json"

    @property
    def user_data_file(self) -> Path:
        value = os.environ.get("MONACA_USER_DATA_FILE")
        return Path(value) if value else _cordova_dir() / "monaca.json"


config = Config()


class _FileLock:
    """Exclusive cross-process lock on ``<file>.lock`` with a bounded wait."""

    def __init__(self, file_path: Path, timeout: float = DEFAULT_LOCK_TIMEOUT):
        self.lock_path = file_path.with_name(file_path.name + ".lock")
        self.timeout = timeout
        self._handle: Any = None

    def _try_lock(self) -> bool:
        try:
            if HAVE_FCNTL:
                fcntl.flock(self._handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
            elif HAVE_MSVCRT:
                self._handle.seek(0)
                msvcrt.locking(self._handle.fileno(), msvcrt.LK_NBLCK, 1)
        except OSError:
            return False
        return True

    def __enter__(self) -> "_FileLock":
        self.lock_path.parent.mkdir(parents=True, exist_ok=True)
        self._handle = open(self.lock_path, "a+")
        deadline = time.monotonic() + self.timeout

        while not self._try_lock():
            if time.monotonic() >= deadline:
                self._handle.close()
                self._handle = None
                raise MonacaLockTimeoutError(
                    f"Could not lock {self.lock_path} within {self.timeout:.1f}s"
                )
            time.sleep(LOCK_POLL_INTERVAL)

        logger.debug("Acquired lock %s", self.lock_path)
        return self

    def __exit__(self, _exc_type, _exc_val, _exc_tb) -> None:
        if self._handle is None:
            return
        if HAVE_FCNTL:
            fcntl.flock(self._handle.fileno(), fcntl.LOCK_UN)
        elif HAVE_MSVCRT:
            self._handle.seek(0)
            msvcrt.locking(self._handle.fileno(), msvcrt.LK_UNLCK, 1)
        self._handle.close()
        self._handle = None
        logger.debug("Released lock %s", self.lock_path)


def _read_json(path: Path) -> dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8") or "{}")
    except OSError as e:
        raise MonacaIOError(f"Failed to read {path}: {e}") from e
    except ValueError as e:
        raise MonacaIOError(f"Invalid JSON in {path}: {e}") from e
    if not isinstance(data, dict):
        raise MonacaIOError(f"Expected a JSON object in {path}")
    return data


def _write_json_atomic(path: Path, data: dict[str, Any]) -> None:
    """Write JSON to a temp file in the same directory, then rename over."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f)
        os.replace(tmp_name, path)
    except OSError as e:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise MonacaIOError(f"Failed to write {path}: {e}") from e


def _check_string(name: str, value: Any) -> None:
    if value is None:
        raise MonacaValidationError(f'"{name}" must exist.')
    if not isinstance(value, str):
        raise MonacaValidationError(f'"{name}" must be a string.')
    if name == "key" and not value:
        raise MonacaValidationError('"key" must not be empty.')


class ConfigStore:
    """Persisted user settings shared between client processes.

    Examples:
        >>> store = ConfigStore(Path("/tmp/monaca_config.json"))
        >>> store.set("http_proxy", "http://proxy:8080")
        'http://proxy:8080'
        >>> store.get("http_proxy")
        'http://proxy:8080'
    """

    def __init__(
        self,
        path: Optional[Path] = None,
        lock_timeout: float = DEFAULT_LOCK_TIMEOUT,
    ):
        self.path = path or config.config_file
        self.lock_timeout = lock_timeout

    def _ensure_file(self) -> None:
        if self.path.exists():
            return
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise MonacaIOError(f"Failed to create {self.path.parent}: {e}") from e
        with _FileLock(self.path, self.lock_timeout):
            if not self.path.exists():
                _write_json_atomic(self.path, {})

    def get_all(self) -> dict[str, Any]:
        """Return every stored setting."""
        self._ensure_file()
        return _read_json(self.path)

    def get(self, key: str) -> Optional[str]:
        """Return a single setting, or None when unset."""
        _check_string("key", key)
        return self.get_all().get(key)

    def set(self, key: str, value: str) -> str:
        """Store a setting (read-modify-write under the file lock)."""
        _check_string("key", key)
        _check_string("value", value)
        self._ensure_file()

        with _FileLock(self.path, self.lock_timeout):
            data = _read_json(self.path)
            data[key] = value
            _write_json_atomic(self.path, data)

        logger.debug("Config %s set", key)
        return value

    def remove(self, key: str) -> Optional[str]:
        """Delete a setting and return its previous value."""
        _check_string("key", key)
        self._ensure_file()

        with _FileLock(self.path, self.lock_timeout):
            data = _read_json(self.path)
            value = data.pop(key, None)
            _write_json_atomic(self.path, data)

        logger.debug("Config %s removed", key)
        return value


class UserDataStore:
    """Session data for the logged in user (relogin token, client id)."""

    def __init__(self, path: Optional[Path] = None):
        self.path = path or config.user_data_file

    def load(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        return _read_json(self.path)

    def get(self, key: str) -> Any:
        return self.load().get(key)

    def set(self, key: str, value: Any) -> Any:
        data = self.load()
        data[key] = value
        _write_json_atomic(self.path, data)
        return value
