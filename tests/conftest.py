"""Shared test fixtures for the LibraryCleaner test suite."""

import shutil
import tempfile
import uuid
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Set

import pytest

from core.catalog import Catalog, CatalogError, CatalogUser, Collection, ItemKind, MediaItem
from core.config import ElementReference, LibrarySettings, TimeReference

# Ages are relative to import time; rule tests pass NOW explicitly
NOW = datetime.now(timezone.utc)


def days_ago(days: float) -> datetime:
    return NOW - timedelta(days=days)


def new_id() -> str:
    return str(uuid.uuid4())


def make_item(kind: ItemKind, name: str, added_days: float = 0,
              modified_days: Optional[float] = None, watched_days: Optional[float] = None,
              series: Optional[MediaItem] = None, season: Optional[MediaItem] = None,
              path: Optional[str] = "auto") -> MediaItem:
    """Build a MediaItem whose dates are given as ages in days before NOW."""
    if path == "auto":
        path = f"/media/{name}"
    return MediaItem(
        id=new_id(),
        name=name,
        kind=kind,
        date_created=days_ago(added_days),
        date_modified=days_ago(added_days if modified_days is None else modified_days),
        date_last_saved=days_ago(added_days if watched_days is None else watched_days),
        series_id=series.id if series else None,
        series_name=series.name if series else None,
        season_id=season.id if season else None,
        parent_id=(season or series).id if (season or series) else None,
        path=path,
    )


# ============================================================================
# In-memory catalog
# ============================================================================

class FakeCatalog(Catalog):
    """Catalog kept in dictionaries, with call tracking and failure injection."""

    def __init__(self):
        self.items: Dict[str, MediaItem] = {}
        self.library_members: Dict[str, List[str]] = {}
        self.children: Dict[str, Set[str]] = {}
        self.users: List[CatalogUser] = []
        self.favorites: Dict[str, Set[str]] = {}
        self.collections: Dict[str, Collection] = {}
        self.collection_members: Dict[str, List[str]] = {}

        self.deleted: List[str] = []
        self.add_batches: List[List[str]] = []
        self.favorite_calls = 0
        self.descendant_calls = 0

        self.fail_delete_ids: Set[str] = set()
        self.fail_library_ids: Set[str] = set()
        self.fail_create = False
        self.fail_get_item = False

    # -- building --------------------------------------------------------

    def add_library(self, name: str) -> MediaItem:
        library = MediaItem(id=new_id(), name=name, kind=ItemKind.OTHER)
        self.items[library.id] = library
        self.library_members[library.id] = []
        return library

    def add(self, library: MediaItem, *items: MediaItem) -> None:
        for item in items:
            self.items[item.id] = item
            self.library_members[library.id].append(item.id)
            for container_id in (item.series_id, item.season_id):
                if container_id:
                    self.children.setdefault(container_id, set()).add(item.id)

    def add_user(self, name: str, *favorites: MediaItem) -> CatalogUser:
        user = CatalogUser(id=new_id(), name=name)
        self.users.append(user)
        self.favorites[user.id] = {item.id for item in favorites}
        return user

    def add_collection(self, name: str, members: List[str]) -> Collection:
        collection = Collection(id=new_id(), name=name)
        self.collections[collection.id] = collection
        self.collection_members[collection.id] = list(members)
        return collection

    def members_of(self, name: str) -> Optional[List[str]]:
        """Members of the collection with exactly this name, None when absent."""
        for collection in self.collections.values():
            if collection.name == name:
                return self.collection_members[collection.id]
        return None

    # -- Catalog ---------------------------------------------------------

    def get_item(self, item_id: str) -> Optional[MediaItem]:
        if self.fail_get_item:
            raise CatalogError("get_item failed")
        return self.items.get(item_id)

    def get_library_items(self, library_id: str) -> List[MediaItem]:
        if library_id in self.fail_library_ids:
            raise CatalogError(f"library {library_id} unavailable")
        return [self.items[i] for i in self.library_members.get(library_id, []) if i in self.items]

    def get_descendant_ids(self, item: MediaItem) -> Set[str]:
        self.descendant_calls += 1
        return set(self.children.get(item.id, set()))

    def get_users(self) -> List[CatalogUser]:
        return list(self.users)

    def get_favorite_ids(self, user_id: str) -> Set[str]:
        self.favorite_calls += 1
        return set(self.favorites.get(user_id, set()))

    def delete_item(self, item_id: str) -> None:
        if item_id in self.fail_delete_ids:
            raise CatalogError(f"delete {item_id} failed")
        if item_id in self.collections:
            del self.collections[item_id]
            del self.collection_members[item_id]
        else:
            self.items.pop(item_id, None)
            for members in self.library_members.values():
                if item_id in members:
                    members.remove(item_id)
        self.deleted.append(item_id)

    def get_collections(self) -> List[Collection]:
        return list(self.collections.values())

    def get_collection_items(self, collection_id: str) -> List[MediaItem]:
        return [self.items[i] for i in self.collection_members.get(collection_id, []) if i in self.items]

    def create_collection(self, name: str) -> Collection:
        if self.fail_create:
            raise CatalogError(f"create {name} failed")
        return self.add_collection(name, [])

    def add_to_collection(self, collection_id: str, item_ids: List[str]) -> None:
        self.add_batches.append(list(item_ids))
        self.collection_members[collection_id].extend(item_ids)


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def temp_dir():
    """Provide a temporary directory, cleaned up after test."""
    d = tempfile.mkdtemp(prefix="librarycleaner_test_")
    yield d
    shutil.rmtree(d, ignore_errors=True)


@pytest.fixture
def catalog():
    return FakeCatalog()


@pytest.fixture
def movies(catalog):
    """A 'Movies' library root in the fake catalog."""
    return catalog.add_library("Movies")


@pytest.fixture
def make_settings():
    """Factory for LibrarySettings with the common thresholds pre-filled."""
    def _make(library_id: str, **overrides) -> LibrarySettings:
        values = dict(
            library_id=library_id,
            element_reference=ElementReference.EPISODE,
            time_reference=TimeReference.FILE_ADDED_DATE,
            leaving_soon_days=30,
            deletion_days=60,
            exclude_favorites=True,
        )
        values.update(overrides)
        return LibrarySettings(**values)
    return _make
