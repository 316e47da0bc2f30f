"""Tests for the cleanup orchestrator - staging, automated deletion, progress and cancellation."""

import threading

import pytest

from conftest import make_item
from core.catalog import ItemKind
from core.cleanup import CleanupSummary, LibraryCleanupService, LibraryResult, delete_media_item


@pytest.fixture
def service(catalog):
    return LibraryCleanupService(catalog)


@pytest.fixture
def aged_movies(catalog, movies):
    """A (45 days), B (70 days) and C (10 days) in the Movies library."""
    a = make_item(ItemKind.MOVIE, "A", added_days=45)
    b = make_item(ItemKind.MOVIE, "B", added_days=70)
    c = make_item(ItemKind.MOVIE, "C", added_days=10)
    catalog.add(movies, a, b, c)
    return a, b, c


class TestExecuteCleanup:
    def test_no_settings(self, service, catalog):
        summary = service.execute_cleanup([])
        assert summary.libraries == []
        assert catalog.deleted == []

    def test_no_enabled_libraries(self, service, catalog, movies, aged_movies, make_settings):
        summary = service.execute_cleanup([make_settings(movies.id, enabled=False)])

        assert summary.libraries == []
        assert catalog.collections == {}

    def test_manual_library_stages_collections(self, service, catalog, movies, aged_movies, make_settings):
        a, b, c = aged_movies

        summary = service.execute_cleanup([make_settings(movies.id)])

        assert catalog.members_of("Movies - Leaving Soon") == [a.id]
        assert catalog.members_of("Movies - To Delete") == [b.id]
        assert catalog.deleted == []
        assert summary.libraries[0].leaving_soon_count == 1
        assert summary.libraries[0].to_delete_count == 1

    def test_custom_leaving_soon_name(self, service, catalog, movies, aged_movies, make_settings):
        service.execute_cleanup([make_settings(movies.id, leaving_soon_collection_name="Last Chance")])

        assert catalog.members_of("Movies - Last Chance") == [aged_movies[0].id]
        assert catalog.members_of("Movies - Leaving Soon") is None

    def test_automated_library_deletes_due_items(self, service, catalog, movies, aged_movies, make_settings):
        a, b, c = aged_movies

        summary = service.execute_cleanup([make_settings(movies.id, delete_automation=True)])

        assert catalog.deleted == [b.id]
        assert catalog.members_of("Movies - To Delete") is None
        assert catalog.members_of("Movies - Leaving Soon") == [a.id]
        assert summary.deleted_count == 1

    def test_automated_deletion_skips_items_without_path(self, service, catalog, movies, make_settings):
        ghost = make_item(ItemKind.MOVIE, "Ghost", added_days=100, path=None)
        real = make_item(ItemKind.MOVIE, "Real", added_days=100)
        catalog.add(movies, ghost, real)

        summary = service.execute_cleanup([make_settings(movies.id, delete_automation=True)])

        assert catalog.deleted == [real.id]
        assert summary.libraries[0].skipped_count == 1

    def test_automated_deletion_continues_after_item_failure(self, service, catalog, movies, make_settings):
        first = make_item(ItemKind.MOVIE, "First", added_days=100)
        second = make_item(ItemKind.MOVIE, "Second", added_days=100)
        catalog.add(movies, first, second)
        catalog.fail_delete_ids.add(first.id)

        summary = service.execute_cleanup([make_settings(movies.id, delete_automation=True)])

        assert catalog.deleted == [second.id]
        assert summary.libraries[0].failed is False

    def test_zero_thresholds_touch_nothing(self, service, catalog, movies, aged_movies, make_settings):
        old = catalog.add_collection("Movies - To Delete", ["stale"])

        service.execute_cleanup([make_settings(movies.id, leaving_soon_days=0, deletion_days=0)])

        assert catalog.collections == {old.id: old}
        assert catalog.deleted == []

    def test_empty_target_removes_previous_collection(self, service, catalog, movies, make_settings):
        catalog.add(movies, make_item(ItemKind.MOVIE, "Fresh", added_days=1))
        catalog.add_collection("Movies - To Delete", ["gone"])

        service.execute_cleanup([make_settings(movies.id)])

        assert catalog.members_of("Movies - To Delete") is None

    def test_favorites_not_fetched_when_not_excluded(self, service, catalog, movies, aged_movies, make_settings):
        catalog.add_user("alice", aged_movies[1])

        service.execute_cleanup([make_settings(movies.id, exclude_favorites=False)])

        assert catalog.favorite_calls == 0
        assert catalog.members_of("Movies - To Delete") == [aged_movies[1].id]

    def test_favorite_excluded_from_staging(self, service, catalog, movies, aged_movies, make_settings):
        catalog.add_user("alice", aged_movies[1])

        service.execute_cleanup([make_settings(movies.id)])

        assert catalog.members_of("Movies - To Delete") is None

    def test_failing_library_does_not_stop_others(self, service, catalog, movies, aged_movies, make_settings):
        broken = catalog.add_library("Broken")
        catalog.fail_library_ids.add(broken.id)

        summary = service.execute_cleanup([make_settings(broken.id), make_settings(movies.id)])

        assert [r.failed for r in summary.libraries] == [True, False]
        assert summary.failed_count == 1
        assert catalog.members_of("Movies - To Delete") == [aged_movies[1].id]

    def test_unknown_library_is_skipped(self, service, catalog, movies, aged_movies, make_settings):
        summary = service.execute_cleanup([make_settings("missing"), make_settings(movies.id)])

        assert summary.libraries[0].failed is False
        assert summary.libraries[0].library_name == ""
        assert catalog.members_of("Movies - To Delete") == [aged_movies[1].id]


class TestProgressAndCancellation:
    def test_progress_reported_before_each_library(self, service, catalog, make_settings):
        libraries = [catalog.add_library(name) for name in ("A", "B", "C", "D")]
        reported = []

        service.execute_cleanup([make_settings(lib.id) for lib in libraries], progress=reported.append)

        assert reported == [0, 25, 50, 75]

    def test_cancel_before_start(self, service, catalog, movies, aged_movies, make_settings):
        cancel = threading.Event()
        cancel.set()

        summary = service.execute_cleanup([make_settings(movies.id)], cancel_event=cancel)

        assert summary.cancelled is True
        assert summary.libraries == []
        assert catalog.collections == {}

    def test_cancel_between_libraries(self, service, catalog, make_settings):
        first = catalog.add_library("First")
        second = catalog.add_library("Second")
        cancel = threading.Event()

        def on_progress(value):
            if value > 0:
                cancel.set()

        # Progress for the second library arrives after the cancel check, so it still runs.
        # A third library is never reached.
        third = catalog.add_library("Third")
        summary = service.execute_cleanup(
            [make_settings(lib.id) for lib in (first, second, third)],
            progress=on_progress,
            cancel_event=cancel,
        )

        assert summary.cancelled is True
        assert len(summary.libraries) == 2

    def test_cancel_stops_automated_deletions(self, service, catalog, movies, make_settings):
        items = [make_item(ItemKind.MOVIE, f"M{i}", added_days=100) for i in range(3)]
        catalog.add(movies, *items)
        cancel = threading.Event()
        original_delete = catalog.delete_item

        def delete_then_cancel(item_id):
            original_delete(item_id)
            cancel.set()

        catalog.delete_item = delete_then_cancel

        summary = service.execute_cleanup([make_settings(movies.id, delete_automation=True)],
                                          cancel_event=cancel)

        assert len(catalog.deleted) == 1
        assert summary.cancelled is True


class TestDeleteMediaItem:
    def test_empty_path_skipped(self, catalog, movies):
        item = make_item(ItemKind.MOVIE, "NoPath", path="")
        catalog.add(movies, item)

        assert delete_media_item(catalog, item) is False
        assert catalog.deleted == []

    def test_deleted(self, catalog, movies):
        item = make_item(ItemKind.MOVIE, "Heat")
        catalog.add(movies, item)

        assert delete_media_item(catalog, item) is True
        assert catalog.deleted == [item.id]


class TestSummary:
    def test_summary_line(self):
        line = LibraryResult("id", "Movies", leaving_soon_count=2, to_delete_count=3, deleted_count=1).summary_line()
        assert line == "Movies: 2 leaving soon, 3 to delete, 1 deleted"

    def test_failed_summary_line_uses_id_without_name(self):
        assert LibraryResult("lib-1", failed=True).summary_line() == "lib-1: failed, see log"

    def test_totals(self):
        summary = CleanupSummary(libraries=[
            LibraryResult("a", deleted_count=2),
            LibraryResult("b", failed=True),
            LibraryResult("c", deleted_count=1),
        ])
        assert summary.deleted_count == 3
        assert summary.failed_count == 1
