"""
Cleanup orchestration for LibraryCleaner.

Walks the enabled library settings one at a time, classifies each library's
items and brings the leaving soon and to delete collections up to date, or
deletes due items right away when a library is automated.

Runs are not mutually exclusive by themselves. The caller (the scheduler or
the operation runner) makes sure two runs never overlap.
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, List, Optional, Sequence

from core.catalog import Catalog, CatalogError, MediaItem
from core.config import LibrarySettings, TO_DELETE_COLLECTION_NAME
from core.reconciler import CollectionReconciler
from core.rules import collect_favorite_ids, partition_items

ProgressCallback = Callable[[float], None]


@dataclass
class LibraryResult:
    """What happened to one library during a run."""
    library_id: str
    library_name: str = ""
    leaving_soon_count: int = 0
    to_delete_count: int = 0
    deleted_count: int = 0
    skipped_count: int = 0
    failed: bool = False

    def summary_line(self) -> str:
        name = self.library_name or self.library_id
        if self.failed:
            return f"{name}: failed, see log"
        return (f"{name}: {self.leaving_soon_count} leaving soon, "
                f"{self.to_delete_count} to delete, {self.deleted_count} deleted")


@dataclass
class CleanupSummary:
    """Result of one cleanup run."""
    libraries: List[LibraryResult] = field(default_factory=list)
    cancelled: bool = False

    @property
    def deleted_count(self) -> int:
        return sum(r.deleted_count for r in self.libraries)

    @property
    def failed_count(self) -> int:
        return sum(1 for r in self.libraries if r.failed)


def delete_media_item(catalog: Catalog, item: MediaItem) -> bool:
    """Delete one item with its backing location.

    Items without a path are skipped with a warning and count as handled.
    Catalog failures propagate to the caller.

    Returns:
        True if the item was deleted, False if it was skipped.
    """
    if not item.path:
        logging.warning(f"Cannot delete item {item.name}: path is empty")
        return False

    logging.info(f"Deleting item: {item.name} at {item.path}")
    catalog.delete_item(item.id)
    logging.info(f"Successfully deleted item: {item.name}")
    return True


class LibraryCleanupService:
    """Runs the cleanup pass over every enabled library."""

    def __init__(self, catalog: Catalog):
        self.catalog = catalog
        self.reconciler = CollectionReconciler(catalog)

    def execute_cleanup(self, library_settings: Optional[Sequence[LibrarySettings]],
                        progress: Optional[ProgressCallback] = None,
                        cancel_event: Optional[threading.Event] = None) -> CleanupSummary:
        """Process all enabled libraries in order.

        Progress is reported as 100 * processed / total before each library
        starts, so it stays below 100 until the caller reports completion.
        Cancellation is checked between libraries and between deletions.
        """
        summary = CleanupSummary()

        if not library_settings:
            logging.info("No library settings configured, skipping cleanup")
            return summary

        enabled = [s for s in library_settings if s.enabled]
        if not enabled:
            logging.info("No enabled libraries, skipping cleanup")
            return summary

        logging.info(f"Processing {len(enabled)} enabled libraries")

        for index, settings in enumerate(enabled):
            if cancel_event is not None and cancel_event.is_set():
                logging.info("Cleanup cancelled, remaining libraries skipped")
                summary.cancelled = True
                break

            if progress is not None:
                progress(index / len(enabled) * 100)

            summary.libraries.append(self.process_library(settings, cancel_event))

        if cancel_event is not None and cancel_event.is_set():
            summary.cancelled = True

        return summary

    def process_library(self, settings: LibrarySettings,
                        cancel_event: Optional[threading.Event] = None) -> LibraryResult:
        """Classify and act on one library. Failures are logged, never raised."""
        result = LibraryResult(library_id=settings.library_id)
        try:
            library = self.catalog.get_item(settings.library_id)
            if library is None:
                logging.warning(f"Library {settings.library_id} not found")
                return result
            result.library_name = library.name

            logging.info(f"Processing library: {library.name}")

            items = self.catalog.get_library_items(settings.library_id)
            if not items:
                logging.info(f"No items found in library {library.name}")
                return result

            logging.info(f"Found {len(items)} items in library {library.name}")

            favorite_ids = set()
            if settings.exclude_favorites:
                favorite_ids = collect_favorite_ids(self.catalog)

            leaving_soon, to_delete = partition_items(
                items, settings, favorite_ids, self.catalog, datetime.now(timezone.utc)
            )
            result.leaving_soon_count = len(leaving_soon)
            result.to_delete_count = len(to_delete)

            if settings.leaving_soon_days > 0:
                logging.info(f"Found {len(leaving_soon)} items for leaving soon")
                self.reconciler.reconcile(
                    library.name,
                    settings.leaving_soon_collection_name,
                    [item.id for item in leaving_soon],
                )

            if settings.deletion_days > 0:
                logging.info(f"Found {len(to_delete)} items to delete")
                if settings.delete_automation:
                    self._delete_items(to_delete, result, cancel_event)
                else:
                    self.reconciler.reconcile(
                        library.name,
                        TO_DELETE_COLLECTION_NAME,
                        [item.id for item in to_delete],
                    )
        except Exception as e:
            logging.error(f"Error processing library {settings.library_id}: {type(e).__name__}: {e}")
            logging.debug("Library failure details", exc_info=True)
            result.failed = True

        return result

    def _delete_items(self, items: List[MediaItem], result: LibraryResult,
                      cancel_event: Optional[threading.Event]) -> None:
        for item in items:
            if cancel_event is not None and cancel_event.is_set():
                logging.info("Cleanup cancelled, remaining deletions skipped")
                break
            try:
                if delete_media_item(self.catalog, item):
                    result.deleted_count += 1
                else:
                    result.skipped_count += 1
            except CatalogError as e:
                logging.error(f"Error deleting item {item.name}: {e}")
