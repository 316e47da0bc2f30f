"""Review service - staged deletions awaiting manual confirmation"""

import logging
import uuid
from typing import List, Optional, Sequence

from core.catalog import Catalog, CatalogError
from core.cleanup import delete_media_item
from core.config import LibrarySettings, TO_DELETE_COLLECTION_NAME
from core.reconciler import CollectionReconciler, collection_name
from web.models.review import (
    DeleteItemsResponseModel,
    LibraryDeletionInfoModel,
    MediaItemInfoModel,
)

logger = logging.getLogger(__name__)


def _is_well_formed_id(item_id: str) -> bool:
    """Jellyfin ids are GUIDs, with or without dashes"""
    try:
        uuid.UUID(item_id)
    except (ValueError, AttributeError, TypeError):
        return False
    return True


class ReviewService:
    """Lists 'To Delete' collections and deletes confirmed items"""

    def __init__(self, catalog: Optional[Catalog], library_settings: Sequence[LibrarySettings]):
        self.catalog = catalog
        self.library_settings = list(library_settings or [])

    @property
    def is_configured(self) -> bool:
        return self.catalog is not None

    def get_pending_deletions(self) -> List[LibraryDeletionInfoModel]:
        """Contents of every non-empty 'To Delete' collection of manual libraries"""
        libraries: List[LibraryDeletionInfoModel] = []
        if self.catalog is None:
            return libraries

        reconciler = CollectionReconciler(self.catalog)
        for settings in self.library_settings:
            if not settings.enabled or settings.delete_automation:
                continue

            library = self.catalog.get_item(settings.library_id)
            if library is None:
                logger.debug(f"Library {settings.library_id} not found")
                continue

            collection = reconciler.find_collection(collection_name(library.name, TO_DELETE_COLLECTION_NAME))
            if collection is None:
                continue

            items = self.catalog.get_collection_items(collection.id)
            if not items:
                continue

            libraries.append(LibraryDeletionInfoModel(
                library_id=settings.library_id,
                library_name=library.name,
                collection_id=collection.id,
                items=[
                    MediaItemInfoModel(
                        name=item.name,
                        item_id=item.id,
                        path=item.path,
                        date_created=item.date_created,
                        date_modified=item.date_modified,
                        date_last_saved=item.date_last_saved,
                    )
                    for item in items
                ],
            ))

        return libraries

    def delete_items(self, item_ids: Sequence[str]) -> DeleteItemsResponseModel:
        """Delete each resolvable item. One item's failure never affects the others."""
        result = DeleteItemsResponseModel()
        if self.catalog is None:
            result.skipped = list(item_ids)
            return result

        logger.info(f"Deleting {len(item_ids)} items")
        for item_id in item_ids:
            if not _is_well_formed_id(item_id):
                logger.warning(f"Invalid item ID: {item_id}")
                result.skipped.append(item_id)
                continue

            try:
                item = self.catalog.get_item(item_id)
            except CatalogError as e:
                logger.error(f"Error resolving item {item_id}: {e}")
                result.failed.append(item_id)
                continue

            if item is None:
                logger.warning(f"Item not found: {item_id}")
                result.skipped.append(item_id)
                continue

            try:
                if delete_media_item(self.catalog, item):
                    result.deleted.append(item_id)
                else:
                    result.skipped.append(item_id)
            except CatalogError as e:
                logger.error(f"Error deleting item {item.name}: {e}")
                result.failed.append(item_id)

        return result
