"""
Catalog model and collaborator interface.

The cleanup engine never holds references into the media server's object
graph. It works on MediaItem snapshots and item ids, and talks to the server
through the narrow Catalog interface below.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Set


class CatalogError(Exception):
    """Raised when the media server rejects or fails a catalog operation."""


class ItemKind(str, Enum):
    """Kinds of catalog entries the cleaner distinguishes."""
    MOVIE = "Movie"
    EPISODE = "Episode"
    SEASON = "Season"
    SERIES = "Series"
    OTHER = "Other"

    @classmethod
    def from_type(cls, type_name: Optional[str]) -> "ItemKind":
        for kind in cls:
            if kind.value == type_name:
                return kind
        return cls.OTHER


EPOCH = datetime(1, 1, 1, tzinfo=timezone.utc)


@dataclass
class MediaItem:
    """Read-only snapshot of a catalog entry.

    Attributes:
        id: Opaque, globally unique identifier.
        name: Display name.
        kind: Movie, episode, season, series (or something else).
        date_created: When the item was added to the library.
        date_modified: Latest file update.
        date_last_saved: Latest watch (last time user data was saved).
        series_id: Owning series for episodes and seasons.
        series_name: Owning series name, used in log messages.
        season_id: Owning season for episodes.
        parent_id: Direct parent in the library tree.
        path: Backing location. None or empty means nothing to delete.
    """
    id: str
    name: str
    kind: ItemKind
    date_created: datetime = EPOCH
    date_modified: datetime = EPOCH
    date_last_saved: datetime = EPOCH
    series_id: Optional[str] = None
    series_name: Optional[str] = None
    season_id: Optional[str] = None
    parent_id: Optional[str] = None
    path: Optional[str] = None


@dataclass
class Collection:
    """A named grouping of catalog items (a Jellyfin box set)."""
    id: str
    name: str
    path: Optional[str] = None


@dataclass
class CatalogUser:
    """A media server user whose favorites count."""
    id: str
    name: str


class Catalog(ABC):
    """Operations the cleaner needs from the media server."""

    @abstractmethod
    def get_item(self, item_id: str) -> Optional[MediaItem]:
        """Resolve an item by id. Returns None when it does not exist."""

    @abstractmethod
    def get_library_items(self, library_id: str) -> List[MediaItem]:
        """Movies, episodes, seasons and series below a library root.

        Recursive, virtual placeholder entries excluded.
        """

    @abstractmethod
    def get_descendant_ids(self, item: MediaItem) -> Set[str]:
        """Ids of every item below a season or series."""

    @abstractmethod
    def get_users(self) -> List[CatalogUser]:
        """All known users."""

    @abstractmethod
    def get_favorite_ids(self, user_id: str) -> Set[str]:
        """Ids of every item the given user marked as favorite."""

    @abstractmethod
    def delete_item(self, item_id: str) -> None:
        """Delete an item together with its backing location."""

    @abstractmethod
    def get_collections(self) -> List[Collection]:
        """All box set collections."""

    @abstractmethod
    def get_collection_items(self, collection_id: str) -> List[MediaItem]:
        """Members of a collection."""

    @abstractmethod
    def create_collection(self, name: str) -> Collection:
        """Create an empty, unlocked collection."""

    @abstractmethod
    def add_to_collection(self, collection_id: str, item_ids: List[str]) -> None:
        """Add a batch of items to a collection in one call."""
