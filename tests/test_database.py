"""Tests for the Database facade.

Covers set/get/delete/clear/entries, name validation, overwrite cleanup of
chunk parts, pluggable serialization and the pointer cache.
"""

import json

import pytest

from propdb.backend import MemoryStore
from propdb.database import Database
from propdb.errors import DeserializationError, InvalidKeyError, InvalidNameError


class TestConstruction:
    @pytest.mark.parametrize("name", ["", 'a"b', "a/b"])
    def test_invalid_names(self, store, name):
        with pytest.raises(InvalidNameError):
            Database(name, store)
        assert store.data == {}

    def test_valid_name_creates_empty_index(self, store):
        db = Database("validName123", store)

        assert db.index_key == "validName123/pointers"
        assert store.get("validName123/pointers") == "[]"

    def test_existing_index_is_kept(self, store):
        Database("rc1", store).set("pos", [1, 2])

        again = Database("rc1", store)

        assert again.entries() == [("pos", [1, 2])]

    def test_invalid_name_is_value_error(self, store):
        with pytest.raises(ValueError):
            Database("", store)


class TestSetGet:
    def test_example_scenario(self, store):
        db = Database("rc1", store)

        assert db.set("pos", {"x": 1, "y": 2, "z": 3}) is False
        assert db.get("pos") == {"x": 1, "y": 2, "z": 3}
        assert db.set("pos", {"x": 9, "y": 9, "z": 9}) is True
        assert db.entries() == [("pos", {"x": 9, "y": 9, "z": 9})]

    def test_missing_key_is_none(self, db):
        assert db.get("nothing") is None

    def test_round_trip_small(self, db):
        db.set("k", [1])

        assert db.get("k") == [1]

    def test_round_trip_multi_chunk(self, db, store, parts_of):
        value = {"name": "replay", "frames": list(range(40)), "tags": ["a", "b"]}
        db.set("k", value)

        assert len(parts_of("test/k")) > 1
        assert db.get("k") == value

    def test_stored_layout(self, db, store):
        db.set("pos", {"x": 1})

        assert store.get("test/pos") == '{"x":1}'
        assert json.loads(store.get("test/pointers")) == ["test/pos"]

    def test_bare_number_survives(self, db, store):
        db.set("n", 42)

        assert db.get("n") == 42
        assert store.get("test/n") == "1"

    def test_null_value_is_listed(self, db):
        db.set("empty", None)

        assert db.get("empty") is None
        assert db.has("empty")
        assert db.entries() == [("empty", None)]

    def test_identity_serializer_chunking(self, store):
        """17 raw chars at chunk size 10 split into 2 parts."""
        db = Database("t", store, max_chunk_size=10, dumps=str, loads=str)

        db.set("big", "0123456789ABCDEFG")

        assert store.get("t/big") == "2"
        assert store.get("t/big_part0") == "0123456789"
        assert store.get("t/big_part1") == "ABCDEFG"
        assert db.get("big") == "0123456789ABCDEFG"

    def test_unserializable_value_propagates(self, db):
        with pytest.raises(TypeError):
            db.set("k", object())
        assert "k" not in db

    def test_no_duplicate_pointers(self, db, store):
        for i in range(5):
            db.set("same", i)

        assert json.loads(store.get("test/pointers")) == ["test/same"]
        assert db.get("same") == 4


class TestOverwrite:
    def test_shrinking_value_leaves_no_parts(self, db, store, parts_of):
        db.set("k", "x" * 95)
        assert len(parts_of("test/k")) == 10

        db.set("k", {"a": 1})

        assert parts_of("test/k") == []
        assert store.get("test/k") == '{"a":1}'
        assert db.get("k") == {"a": 1}

    def test_fewer_parts_leaves_no_strays(self, db, parts_of):
        db.set("k", "x" * 95)
        db.set("k", "y" * 25)

        assert parts_of("test/k") == ["test/k_part0", "test/k_part1", "test/k_part2"]
        assert db.get("k") == "y" * 25


class TestDelete:
    def test_delete_removes_everything(self, db, store, parts_of):
        db.set("big", "z" * 50)
        db.set("small", 1)

        db.delete("big")

        assert db.get("big") is None
        assert "big" not in dict(db.entries())
        assert parts_of("test/big") == []
        assert store.get("test/big") is None
        assert db.keys() == ["small"]

    def test_delete_missing_is_noop(self, db, store):
        db.set("a", 1)
        before = dict(store.data)

        db.delete("zzz")

        assert store.data == before

    def test_delete_ignores_unlisted_entry(self, db, store):
        """Only listed keys are touched; repair() handles strays."""
        store.set("test/stray", "1")

        db.delete("stray")

        assert store.get("test/stray") == "1"


class TestClear:
    def test_clear_mixed_sizes(self, db, store):
        db.set("a", 1)
        db.set("b", "long string value " * 5)
        db.set("c", {"nested": {"list": list(range(20))}})
        db.set("d", "hi")

        db.clear()

        assert db.entries() == []
        assert json.loads(store.get("test/pointers")) == []
        assert set(store.data) == {"test/pointers"}

    def test_clear_leaves_other_databases(self, store):
        one = Database("one", store, max_chunk_size=10)
        two = Database("two", store, max_chunk_size=10)
        one.set("k", "v" * 30)
        two.set("k", "w" * 30)

        one.clear()

        assert one.entries() == []
        assert two.get("k") == "w" * 30


class TestReservedKeys:
    def test_pointers_key_rejected(self, db, store):
        """A key named like the index must not overwrite the pointer list."""
        db.set("pos", {"x": 1})

        with pytest.raises(InvalidKeyError):
            db.set("pointers", {"hello": 1})

        assert json.loads(store.get("test/pointers")) == ["test/pos"]
        assert Database("test", store).entries() == [("pos", {"x": 1})]

    def test_part_key_rejected(self, db, store):
        """A key shaped like a chunk slot must not clobber another key's parts."""
        db.set("big", "x" * 30)

        with pytest.raises(InvalidKeyError):
            db.set("big_part0", 5)

        assert db.get("big") == "x" * 30
        assert db.keys() == ["big"]

    @pytest.mark.parametrize("key", ["pointers", "a_part0", "big_part12"])
    def test_get_and_delete_reject_reserved(self, db, key):
        with pytest.raises(InvalidKeyError):
            db.get(key)
        with pytest.raises(InvalidKeyError):
            db.delete(key)

    @pytest.mark.parametrize("key", ["pointers2", "my_pointers", "a/pointers", "_part", "part0", "x_partA", "x_part0y"])
    def test_similar_keys_allowed(self, db, key):
        db.set(key, 1)

        assert db.get(key) == 1

    def test_reserved_key_is_value_error(self, db):
        with pytest.raises(ValueError):
            db.set("pointers", 1)


class TestEntries:
    def test_insertion_order(self, db):
        db.set("b", 2)
        db.set("a", 1)
        db.set("c", 3)

        assert db.entries() == [("b", 2), ("a", 1), ("c", 3)]

    def test_overwritten_key_moves_last(self, db):
        db.set("a", 1)
        db.set("b", 2)
        db.set("a", 3)

        assert db.entries() == [("b", 2), ("a", 3)]

    def test_key_with_slash(self, db):
        db.set("players/steve", {"hp": 20})

        assert db.entries() == [("players/steve", {"hp": 20})]

    def test_bad_value_fails_enumeration(self, db, store):
        db.set("good", 1)
        db.set("bad", {"x": 1})
        store.set("test/bad", "{broken")

        with pytest.raises(DeserializationError) as exc_info:
            db.entries()
        assert exc_info.value.key == "bad"
        assert isinstance(exc_info.value.__cause__, json.JSONDecodeError)

    def test_get_bad_value_raises(self, db, store):
        db.set("bad", {"x": 1})
        store.set("test/bad", "{broken")

        with pytest.raises(DeserializationError):
            db.get("bad")


class TestConvenience:
    def test_keys_len_contains_iter(self, db):
        db.set("a", 1)
        db.set("b", 2)

        assert db.keys() == ["a", "b"]
        assert len(db) == 2
        assert "a" in db
        assert "z" not in db
        assert 5 not in db
        assert list(db) == ["a", "b"]

    def test_reload_sees_other_instance(self, store):
        first = Database("shared", store)
        second = Database("shared", store)
        assert second.keys() == []

        first.set("k", 1)

        assert second.keys() == []
        second.reload()
        assert second.keys() == ["k"]

    def test_stats(self, db):
        db.set("small", 1)
        db.set("big", "q" * 28)   # 30 chars of JSON -> 3 parts

        s = db.stats()

        assert s.keys == 2
        assert s.chunked == 2     # a bare number is also stored chunked
        assert s.parts == 4
        assert s.chars == (1 + 1) + (1 + 30)
