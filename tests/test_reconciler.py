"""Tests for managed collection reconciliation."""

import pytest

from core.reconciler import CollectionReconciler, collection_name


@pytest.fixture
def reconciler(catalog):
    return CollectionReconciler(catalog)


class TestCollectionName:
    def test_derived_name(self):
        assert collection_name("Movies", "To Delete") == "Movies - To Delete"
        assert collection_name("TV", "Leaving Soon") == "TV - Leaving Soon"


class TestReconcile:
    def test_creates_collection_with_targets(self, catalog, reconciler):
        collection = reconciler.reconcile("Movies", "To Delete", ["a", "b"])

        assert collection is not None
        assert collection.name == "Movies - To Delete"
        assert catalog.members_of("Movies - To Delete") == ["a", "b"]

    def test_converges_to_new_membership(self, catalog, reconciler):
        reconciler.reconcile("Movies", "To Delete", ["a", "b"])
        reconciler.reconcile("Movies", "To Delete", ["b", "c"])

        assert sorted(catalog.members_of("Movies - To Delete")) == ["b", "c"]
        assert len(catalog.collections) == 1

    def test_idempotent(self, catalog, reconciler):
        reconciler.reconcile("Movies", "Leaving Soon", ["a", "b"])
        reconciler.reconcile("Movies", "Leaving Soon", ["a", "b"])

        assert sorted(catalog.members_of("Movies - Leaving Soon")) == ["a", "b"]
        assert len(catalog.collections) == 1

    def test_empty_target_leaves_collection_absent(self, catalog, reconciler):
        reconciler.reconcile("Movies", "To Delete", ["a"])

        result = reconciler.reconcile("Movies", "To Delete", [])

        assert result is None
        assert catalog.members_of("Movies - To Delete") is None
        assert catalog.collections == {}

    def test_duplicate_ids_added_once_in_one_batch(self, catalog, reconciler):
        reconciler.reconcile("Movies", "To Delete", ["a", "b", "a", "b", "c"])

        assert catalog.add_batches == [["a", "b", "c"]]

    def test_name_match_ignores_case(self, catalog, reconciler):
        stale = catalog.add_collection("movies - to delete", ["old"])

        reconciler.reconcile("Movies", "To Delete", ["new"])

        assert stale.id in catalog.deleted
        assert catalog.members_of("Movies - To Delete") == ["new"]
        assert catalog.members_of("movies - to delete") is None

    def test_other_collections_untouched(self, catalog, reconciler):
        other = catalog.add_collection("Favourite Films", ["x"])

        reconciler.reconcile("Movies", "To Delete", ["a"])

        assert other.id in catalog.collections
        assert catalog.members_of("Favourite Films") == ["x"]

    def test_create_failure_returns_none(self, catalog, reconciler):
        catalog.add_collection("Movies - To Delete", ["a"])
        catalog.fail_create = True

        assert reconciler.reconcile("Movies", "To Delete", ["b"]) is None
        assert catalog.collections == {}

    def test_remove_failure_does_not_raise(self, catalog, reconciler):
        stale = catalog.add_collection("Movies - To Delete", ["a"])
        catalog.fail_delete_ids.add(stale.id)

        reconciler.remove_collection("Movies - To Delete")

        assert stale.id in catalog.collections


class TestFindCollection:
    def test_missing(self, reconciler):
        assert reconciler.find_collection("Nope") is None

    def test_found(self, catalog, reconciler):
        wanted = catalog.add_collection("TV - Leaving Soon", [])
        assert reconciler.find_collection("tv - leaving soon") == wanted
