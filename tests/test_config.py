"""Tests for the config and user data stores."""

import json

import pytest

from pymonaca.config import HAVE_FCNTL, ConfigStore, UserDataStore, _FileLock
from pymonaca.exceptions import (
    MonacaIOError,
    MonacaLockTimeoutError,
    MonacaValidationError,
)


@pytest.fixture
def store(tmp_path):
    return ConfigStore(tmp_path / "cordova" / "monaca_config.json", lock_timeout=0.2)


class TestConfigStore:
    """Tests for ConfigStore."""

    def test_file_created_on_first_read(self, store):
        assert store.get_all() == {}
        assert store.path.exists()

    def test_set_and_get(self, store):
        assert store.set("http_proxy", "http://proxy:8080") == "http://proxy:8080"
        assert store.get("http_proxy") == "http://proxy:8080"

    def test_get_unset_key(self, store):
        assert store.get("missing") is None

    def test_set_persists_as_json(self, store):
        store.set("http_proxy", "http://proxy:8080")
        store.set("other", "value")
        data = json.loads(store.path.read_text())
        assert data == {"http_proxy": "http://proxy:8080", "other": "value"}

    def test_remove_returns_previous_value(self, store):
        store.set("http_proxy", "http://proxy:8080")
        assert store.remove("http_proxy") == "http://proxy:8080"
        assert store.get("http_proxy") is None
        assert store.remove("http_proxy") is None

    def test_no_temp_files_left_behind(self, store):
        store.set("a", "1")
        store.set("b", "2")
        leftovers = [
            p.name for p in store.path.parent.iterdir() if p.name.startswith(".")
        ]
        assert leftovers == []

    def test_key_must_exist(self, store):
        with pytest.raises(MonacaValidationError, match='"key" must exist'):
            store.get(None)

    def test_key_must_be_string(self, store):
        with pytest.raises(MonacaValidationError, match="must be a string"):
            store.set(42, "x")

    def test_key_must_not_be_empty(self, store):
        with pytest.raises(MonacaValidationError, match="must not be empty"):
            store.set("", "x")

    def test_value_must_exist(self, store):
        with pytest.raises(MonacaValidationError, match='"value" must exist'):
            store.set("http_proxy", None)

    def test_empty_value_accepted(self, store):
        assert store.set("http_proxy", "") == ""
        assert store.get("http_proxy") == ""

    def test_invalid_json_raises(self, store):
        store.path.parent.mkdir(parents=True)
        store.path.write_text("{not json")
        with pytest.raises(MonacaIOError, match="Invalid JSON"):
            store.get_all()

    @pytest.mark.skipif(not HAVE_FCNTL, reason="requires fcntl")
    def test_set_times_out_while_lock_held(self, store):
        store.get_all()
        with _FileLock(store.path, timeout=1.0):
            with pytest.raises(MonacaLockTimeoutError):
                store.set("http_proxy", "http://proxy:8080")
        # The lock is free again afterwards
        store.set("http_proxy", "http://proxy:8080")
        assert store.get("http_proxy") == "http://proxy:8080"


class TestUserDataStore:
    """Tests for UserDataStore."""

    def test_missing_file_is_empty(self, tmp_path):
        data = UserDataStore(tmp_path / "monaca.json")
        assert data.load() == {}
        assert data.get("reloginToken") is None

    def test_set_and_get(self, tmp_path):
        data = UserDataStore(tmp_path / "nested" / "monaca.json")
        data.set("reloginToken", "abc")
        data.set("clientId", "C1")
        assert UserDataStore(data.path).load() == {
            "reloginToken": "abc",
            "clientId": "C1",
        }
