"""Tests for the JSON-file mapping table."""
import json

import pytest

from cohortsync.core.mapping_store import JsonMappingStore, MappingStoreError
from cohortsync.core.models import Mapping


@pytest.fixture
def store(tmp_path):
    return JsonMappingStore(tmp_path / "state" / "mappings.json")


def test_empty_store_lists_nothing(store):
    assert store.list_mappings() == []
    assert not store.path.exists()


def test_add_persists_and_restricts_permissions(store):
    assert store.add("g1", "kc-1") is True

    assert store.list_mappings() == [Mapping("g1", "kc-1")]
    assert store.path.stat().st_mode & 0o777 == 0o600
    document = json.loads(store.path.read_text())
    assert document["mappings"][0]["external_group_id"] == "g1"
    assert "created_at" in document["mappings"][0]


def test_add_is_unique_on_pair(store):
    store.add("g1", "kc-1")
    store.add("g1", "kc-1")
    store.add("g1", "kc-2")

    assert store.list_mappings() == [Mapping("g1", "kc-1"), Mapping("g1", "kc-2")]
    assert store.get("g1") == store.list_mappings()


def test_add_rejects_blank_ids(store):
    assert store.add("", "kc-1") is False
    assert store.add("g1", "") is False
    assert store.list_mappings() == []


def test_integer_cohort_ids_survive_round_trip(store):
    store.add("g1", 42)
    assert store.list_mappings() == [Mapping("g1", 42)]


def test_delete_by_pair_is_idempotent(store):
    store.add("g1", "kc-1")
    store.add("g2", "kc-2")

    assert store.delete_by_pair("g1", "kc-1") is True
    assert store.delete_by_pair("g1", "kc-1") is True
    assert store.delete_by_pair("never", "there") is True
    assert store.list_mappings() == [Mapping("g2", "kc-2")]


def test_delete_matches_both_sides(store):
    store.add("g1", "kc-1")
    store.delete_by_pair("g1", "kc-other")
    assert store.list_mappings() == [Mapping("g1", "kc-1")]


def test_corrupt_file_raises_store_error(store):
    store.path.parent.mkdir(parents=True)
    store.path.write_text("{not json")

    with pytest.raises(MappingStoreError):
        store.list_mappings()


def test_malformed_document_raises_store_error(store):
    store.path.parent.mkdir(parents=True)
    store.path.write_text(json.dumps({"mappings": {"g1": "kc-1"}}))

    with pytest.raises(MappingStoreError):
        store.list_mappings()


@pytest.mark.parametrize("document", [
    [],
    "mappings",
    {"mappings": [{"local_group_id": "kc-1"}]},
    {"mappings": ["g1"]},
])
def test_unexpected_shapes_raise_store_error(store, document):
    store.path.parent.mkdir(parents=True)
    store.path.write_text(json.dumps(document))

    with pytest.raises(MappingStoreError):
        store.list_mappings()
    with pytest.raises(MappingStoreError):
        store.add("g1", "kc-1")


def test_no_temp_files_left_behind(store):
    store.add("g1", "kc-1")
    store.delete_by_pair("g1", "kc-1")
    assert [p.name for p in store.path.parent.iterdir()] == ["mappings.json"]
