"""
Tests for bmo/storage.py key-value storage.
"""
import pytest

from bmo.storage import Scope, Storage, get_storage


class TestStorageBasics:
    """Test raw and JSON get/set."""

    def test_missing_key_returns_none(self, storage):
        """Unknown keys should read as None."""
        assert storage.get_item("nope") is None

    def test_set_and_get_item(self, storage):
        """Raw text should round trip."""
        storage.set_item("theme", '"dark"')
        assert storage.get_item("theme") == '"dark"'

    def test_set_item_replaces(self, storage):
        """Setting a key twice should keep the last value."""
        storage.set_item("k", "1")
        storage.set_item("k", "2")
        assert storage.get_item("k") == "2"
        assert storage.keys() == ["k"]

    def test_remove_item(self, storage):
        """Removed keys should read as None."""
        storage.set_item("k", "1")
        storage.remove_item("k")
        assert storage.get_item("k") is None

    def test_remove_missing_item_is_noop(self, storage):
        """Removing a missing key should not fail."""
        storage.remove_item("missing")

    def test_json_round_trip(self, storage):
        """Structured values should round trip."""
        value = {"a": [1, 2, {"b": "ü"}], "c": None}
        storage.set_json("data", value)
        assert storage.get_json("data") == value

    def test_get_json_default_when_missing(self, storage):
        """Missing keys should return the default."""
        assert storage.get_json("missing", []) == []

    def test_get_json_default_is_a_copy(self, storage):
        """Mutating the returned default should not affect the caller's default."""
        default = []
        value = storage.get_json("missing", default)
        value.append(1)
        assert default == []

    def test_corrupt_json_falls_back_to_default(self, storage, caplog):
        """Unparseable values should log a warning and return the default."""
        storage.set_item("favorites", "{not json")
        assert storage.get_json("favorites", ["x"]) == ["x"]
        assert "Could not parse saved favorites" in caplog.text


class TestScopes:
    """Test the separation of local and session scope."""

    def test_scopes_are_separate(self, storage):
        """A key in one scope should not be visible in the other."""
        storage.set_json("k", 1, Scope.SESSION)
        assert storage.get_json("k") is None
        assert storage.get_json("k", scope=Scope.SESSION) == 1

    def test_clear_session_keeps_local(self, storage):
        """Clearing the session scope should keep local data."""
        storage.set_json("local", 1)
        storage.set_json("session", 2, Scope.SESSION)

        storage.clear(Scope.SESSION)

        assert storage.keys(Scope.SESSION) == []
        assert storage.get_json("local") == 1

    def test_scope_accepts_string(self, storage):
        """Scopes may be given by value."""
        storage.set_json("k", 1, Scope("session"))
        assert storage.keys("session") == ["k"]


class TestFileStorage:
    """Test persistence in a database file."""

    def test_local_scope_survives_reopen(self, temp_db):
        """Local values should persist in the file."""
        first = Storage(path=temp_db)
        first.set_json("theme", "dark")
        first.set_json("ui", {"x": 1}, Scope.SESSION)
        first.close()

        second = Storage(path=temp_db)
        try:
            assert second.get_json("theme") == "dark"
            assert second.get_json("ui", scope=Scope.SESSION) is None
        finally:
            second.close()

    def test_get_storage_with_path(self, temp_db):
        """get_storage should open the given file and cache the instance."""
        s = get_storage(temp_db)
        assert s.path is not None
        assert str(s.path) == temp_db
        assert get_storage() is s
