"""
Tests for the cache store facade.
"""

from __future__ import annotations

import math
import sqlite3
from pathlib import Path

import pytest

from conftest import FakeClock, make_key, make_value
from respcache.exceptions import ConfigurationError, StoreClosedError
from respcache.store import SqliteCacheStore


class TestStoreRoundTrip:
    """Test set/get round trips."""

    def test_set_and_get(self, store: SqliteCacheStore) -> None:
        """Test that everything written comes back."""
        key = make_key()
        value = make_value(
            etag='"abc123"',
            cache_control_directives={"max-age": 60, "public": True},
            headers={"content-type": "text/html", "set-cookie": ["a=1", "b=2"]},
        )

        assert store.set(key, value) is True
        result = store.get(key)

        assert result is not None
        assert result.status_code == 200
        assert result.status_message == "OK"
        assert result.body == b"hello world"
        assert result.headers == {"content-type": "text/html", "set-cookie": ["a=1", "b=2"]}
        assert result.etag == '"abc123"'
        assert result.cache_control_directives == {"max-age": 60, "public": True}
        assert result.cached_at == value.cached_at
        assert result.stale_at == value.stale_at
        assert result.delete_at == value.delete_at
        assert result.vary is None

    def test_get_missing_returns_none(self, store: SqliteCacheStore) -> None:
        """Test that an unknown key is not found."""
        assert store.get(make_key(path="nothing-here")) is None

    def test_bodiless_response(self, store: SqliteCacheStore) -> None:
        """Test that a response without a body round-trips as None."""
        key = make_key()
        store.set(key, make_value(body=None, status_code=204, status_message="No Content"))

        result = store.get(key)
        assert result is not None
        assert result.body is None
        assert result.status_code == 204

    def test_optional_fields_absent(self, store: SqliteCacheStore) -> None:
        """Test that absent optional fields stay absent."""
        key = make_key()
        store.set(key, make_value(headers=None))

        result = store.get(key)
        assert result is not None
        assert result.headers is None
        assert result.etag is None
        assert result.cache_control_directives is None

    def test_method_is_part_of_identity(self, store: SqliteCacheStore) -> None:
        """Test that the same url under another method is a different entry."""
        store.set(make_key(method="GET"), make_value(body=b"get"))

        assert store.get(make_key(method="HEAD")) is None
        assert store.get(make_key(method="GET")).body == b"get"

    def test_url_is_not_normalized(self, store: SqliteCacheStore) -> None:
        """Test that trailing slashes and query strings are significant."""
        store.set(make_key(path="a"), make_value(body=b"a"))

        assert store.get(make_key(path="a/")) is None
        assert store.get(make_key(path="a?x=1")) is None
        assert store.get(make_key(origin="https://EXAMPLE.com", path="a")) is None

    def test_set_overwrites_existing_entry(self, store: SqliteCacheStore) -> None:
        """Test that a second set for the same key replaces the first."""
        key = make_key()
        store.set(key, make_value(body=b"first"))
        store.set(key, make_value(body=b"second", status_code=201, status_message="Created"))

        result = store.get(key)
        assert result is not None
        assert result.body == b"second"
        assert result.status_code == 201
        assert store.size == 1


class TestStoreExpiry:
    """Test deleteAt handling on the read path."""

    def test_expired_entry_not_returned(
        self, store: SqliteCacheStore, clock: FakeClock
    ) -> None:
        """Test that an entry past deleteAt is not found but still counted."""
        key = make_key()
        store.set(key, make_value(ttl=1000))

        clock.advance(1000)

        assert store.get(key) is None
        assert store.size == 1

    def test_entry_valid_until_delete_at(
        self, store: SqliteCacheStore, clock: FakeClock
    ) -> None:
        """Test that an entry is found right up to its deleteAt."""
        key = make_key()
        store.set(key, make_value(ttl=1000))

        clock.advance(999)
        assert store.get(key) is not None

    def test_stale_entry_still_returned(
        self, store: SqliteCacheStore, clock: FakeClock
    ) -> None:
        """Test that staleness is left to the caller."""
        key = make_key()
        value = make_value(ttl=1000)
        store.set(key, value)

        clock.now = value.stale_at + 1
        assert store.get(key) is not None

    def test_expired_entry_is_overwritten(
        self, store: SqliteCacheStore, clock: FakeClock
    ) -> None:
        """Test that writing over an expired row reuses it."""
        key = make_key()
        store.set(key, make_value(body=b"old", ttl=1000))

        clock.advance(5000)
        store.set(key, make_value(body=b"new", cached_at=clock.now))

        assert store.size == 1
        assert store.get(key).body == b"new"


class TestStoreDelete:
    """Test delete semantics."""

    def test_delete_removes_all_methods_and_variants(self, store: SqliteCacheStore) -> None:
        """Test that delete clears every row sharing the url."""
        store.set(make_key(method="HEAD"), make_value())
        store.set(
            make_key(headers={"accept": "text/html"}),
            make_value(vary={"accept": "text/html"}),
        )
        store.set(
            make_key(headers={"accept": "application/json"}),
            make_value(vary={"accept": "application/json"}),
        )
        store.set(make_key(path="other"), make_value())

        removed = store.delete(make_key(method="DELETE"))

        assert removed == 3
        assert store.size == 1
        assert store.get(make_key(method="GET")) is None
        assert store.get(make_key(method="HEAD")) is None
        assert store.get(make_key(headers={"accept": "text/html"})) is None
        assert store.get(make_key(path="other")) is not None

    def test_delete_unknown_url(self, store: SqliteCacheStore) -> None:
        """Test that deleting a url with no rows is a no-op."""
        assert store.delete(make_key(path="missing")) == 0


class TestStoreLifecycle:
    """Test construction, options and close."""

    def test_size_empty(self, store: SqliteCacheStore) -> None:
        """Test that a new store is empty."""
        assert store.size == 0

    def test_close_is_idempotent(self, clock: FakeClock) -> None:
        """Test that close can be called twice."""
        store = SqliteCacheStore(clock=clock)
        store.close()
        store.close()
        assert store.closed

    def test_operations_after_close_raise(self, clock: FakeClock) -> None:
        """Test that a closed store refuses every operation."""
        store = SqliteCacheStore(clock=clock)
        stream = store.create_write_stream(make_key(), make_value())
        store.close()

        with pytest.raises(StoreClosedError):
            store.get(make_key())
        with pytest.raises(StoreClosedError):
            store.set(make_key(), make_value())
        with pytest.raises(StoreClosedError):
            store.delete(make_key())
        with pytest.raises(StoreClosedError):
            store.size
        with pytest.raises(StoreClosedError):
            stream.close()

    def test_context_manager_closes(self, clock: FakeClock) -> None:
        """Test that leaving the with block closes the store."""
        with SqliteCacheStore(clock=clock) as store:
            store.set(make_key(), make_value())
        assert store.closed

    def test_persists_across_instances(self, temp_dir: Path, clock: FakeClock) -> None:
        """Test that a file-backed store keeps its rows after reopening."""
        location = temp_dir / "nested" / "cache.db"

        with SqliteCacheStore(location, clock=clock) as store:
            store.set(make_key(), make_value(body=b"persisted"))
            assert store.journal_mode == "wal"

        with SqliteCacheStore(location, clock=clock) as store:
            assert store.size == 1
            assert store.get(make_key()).body == b"persisted"

    def test_memory_store_reports_memory_journal(self, store: SqliteCacheStore) -> None:
        """Test that in-memory databases ignore the WAL request."""
        assert store.journal_mode == "memory"

    @pytest.mark.parametrize("max_count", [-1, "10", True, math.nan])
    def test_invalid_max_count(self, max_count: object) -> None:
        """Test that a bad max_count is rejected."""
        with pytest.raises(ConfigurationError):
            SqliteCacheStore(max_count=max_count)  # type: ignore[arg-type]

    @pytest.mark.parametrize("max_entry_size", [-1, 1.5, None])
    def test_invalid_max_entry_size(self, max_entry_size: object) -> None:
        """Test that a bad max_entry_size is rejected."""
        with pytest.raises(ConfigurationError):
            SqliteCacheStore(max_entry_size=max_entry_size)  # type: ignore[arg-type]

    def test_invalid_journal_mode(self) -> None:
        """Test that an unknown journal mode is rejected."""
        with pytest.raises(ConfigurationError):
            SqliteCacheStore(journal_mode="fast")

    def test_none_max_count_is_unbounded(self) -> None:
        """Test that None means no capacity bound."""
        with SqliteCacheStore(max_count=None) as store:
            assert math.isinf(store.max_count)

    def test_storage_errors_propagate(self, store: SqliteCacheStore) -> None:
        """Test that engine errors reach the caller unwrapped."""
        store._get_conn().execute(f"DROP TABLE {store.table}")

        with pytest.raises(sqlite3.OperationalError):
            store.get(make_key())


class TestStoreStats:
    """Test statistics."""

    def test_stats(self, store: SqliteCacheStore, clock: FakeClock) -> None:
        """Test counts by method and expiry."""
        store.set(make_key(path="a"), make_value(ttl=1000))
        store.set(make_key(path="b"), make_value(ttl=10_000))
        store.set(make_key(path="c", method="HEAD"), make_value(ttl=10_000))

        clock.advance(1000)
        stats = store.stats()

        assert stats["total"] == 3
        assert stats["expired"] == 1
        assert stats["by_method"] == {"GET": 2, "HEAD": 1}
        assert stats["table"] == store.table
        assert stats["location"] == ":memory:"

    def test_delete_expired(self, store: SqliteCacheStore, clock: FakeClock) -> None:
        """Test removing expired rows regardless of capacity."""
        store.set(make_key(path="a"), make_value(ttl=1000))
        store.set(make_key(path="b"), make_value(ttl=10_000))

        clock.advance(1000)

        assert store.delete_expired() == 1
        assert store.size == 1
        assert store.get(make_key(path="b")) is not None
