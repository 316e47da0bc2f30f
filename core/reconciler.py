"""
Collection reconciliation for LibraryCleaner.

Managed collections are rebuilt from scratch on every run: any existing
collection with the derived name is deleted, then recreated with exactly the
target members when there are any.
"""

import logging
from typing import Iterable, List, Optional

from core.catalog import Catalog, CatalogError, Collection


def collection_name(library_name: str, purpose: str) -> str:
    """Derived name of a managed collection, e.g. 'Movies - To Delete'."""
    return f"{library_name} - {purpose}"


class CollectionReconciler:
    """Converges managed collections to a freshly computed membership."""

    def __init__(self, catalog: Catalog):
        self.catalog = catalog

    def find_collection(self, name: str) -> Optional[Collection]:
        """First box set whose name matches, ignoring case."""
        try:
            wanted = name.lower()
            for collection in self.catalog.get_collections():
                if collection.name.lower() == wanted:
                    return collection
        except CatalogError as e:
            logging.error(f"Error finding collection {name}: {e}")
        return None

    def remove_collection(self, name: str) -> None:
        """Delete the collection with this name, if there is one."""
        try:
            collection = self.find_collection(name)
            if collection is None:
                logging.info(f"Collection {name} does not exist, nothing to remove")
                return

            logging.info(f"Deleting collection: {name}")
            self.catalog.delete_item(collection.id)
        except CatalogError as e:
            logging.error(f"Error removing collection {name}: {e}")

    def create_collection(self, name: str) -> Optional[Collection]:
        """Create an unlocked collection. Returns None on failure."""
        try:
            logging.info(f"Creating new collection: {name}")
            return self.catalog.create_collection(name)
        except CatalogError as e:
            logging.error(f"Error creating collection {name}: {e}")
            return None

    def reconcile(self, library_name: str, purpose: str, target_ids: Iterable[str]) -> Optional[Collection]:
        """Make the '<library> - <purpose>' collection contain exactly target_ids.

        Returns the recreated collection, or None when the target set is
        empty (the collection stays absent) or creation failed.
        """
        name = collection_name(library_name, purpose)
        # Keep first-seen order, drop duplicates
        unique_ids: List[str] = list(dict.fromkeys(target_ids))

        logging.info(f"Updating '{purpose}' collection: '{name}'...")
        self.remove_collection(name)

        if not unique_ids:
            return None

        collection = self.create_collection(name)
        if collection is None:
            logging.error(f"Failed to get or create collection {name}")
            return None

        try:
            self.catalog.add_to_collection(collection.id, unique_ids)
        except CatalogError as e:
            logging.error(f"Error adding items to collection {name}: {e}")
            return None

        logging.info(f"Added {len(unique_ids)} items to collection '{name}'")
        return collection
