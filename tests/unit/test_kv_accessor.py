"""
Unit tests for KeyValueAccessor.
"""
from unittest.mock import MagicMock

import pytest

from kvblog.exceptions import StoreError
from kvblog.kv_accessor import KeyValueAccessor


class TestKeyValueAccessor:
    """Test suite for JSON access and error containment."""

    def test_put_and_get_json(self, accessor):
        """Test round trip of a JSON document."""
        accessor.put_json("000001", {"id": "000001", "title": "Héllo"})
        assert accessor.get_json("000001") == {"id": "000001", "title": "Héllo"}

    def test_get_json_missing_returns_none(self, accessor):
        """Test that a missing key reads as None."""
        assert accessor.get_json("000001") is None

    def test_get_json_invalid_returns_none(self, accessor, local_store):
        """Test that undecodable JSON reads as None."""
        local_store.put("000001", "{not json")
        assert accessor.get_json("000001") is None

    def test_get_text_contains_backend_errors(self):
        """Test that a failing read is reported as missing."""
        store = MagicMock()
        store.get.side_effect = OSError("disk gone")
        assert KeyValueAccessor(store).get_text("000001") is None

    def test_put_wraps_backend_errors(self):
        """Test that a failing write raises StoreError."""
        store = MagicMock()
        store.put.side_effect = OSError("read-only")
        with pytest.raises(StoreError) as exc_info:
            KeyValueAccessor(store).put_json("000001", {})
        assert exc_info.value.status_code == 500

    def test_delete_wraps_backend_errors(self):
        """Test that a failing delete raises StoreError."""
        store = MagicMock()
        store.delete.side_effect = OSError("read-only")
        with pytest.raises(StoreError):
            KeyValueAccessor(store).delete("000001")

    def test_get_many_json_skips_bad_values(self, accessor, local_store):
        """Test batched reads drop missing and undecodable keys."""
        accessor.put_json("a", {"n": 1})
        local_store.put("b", "{broken")
        assert accessor.get_many_json(["a", "b", "c"]) == {"a": {"n": 1}}

    def test_get_many_json_contains_backend_errors(self):
        """Test that a failing batch read returns nothing."""
        store = MagicMock()
        store.get_many.side_effect = OSError("boom")
        assert KeyValueAccessor(store).get_many_json(["a"]) == {}
