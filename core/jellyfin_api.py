"""
Jellyfin API integration for LibraryCleaner.
Handles server connections and the catalog operations the cleaner needs.
"""

import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Set

import requests

from core.catalog import (
    Catalog,
    CatalogError,
    CatalogUser,
    Collection,
    ItemKind,
    MediaItem,
)

ITEM_FIELDS = "Path,DateCreated,DateModified,DateLastSaved,ParentId,SeriesId,SeriesName,SeasonId"
LIBRARY_ITEM_TYPES = "Movie,Episode,Season,Series"

# Jellyfin trims trailing zeros (1 to 7 digits), older fromisoformat wants exactly 6
_FRACTION_RE = re.compile(r"\.(\d+)")


def _log_api_error(context: str, error: Exception) -> None:
    """Log API errors with specific detection for common HTTP status codes."""
    error_str = str(error)

    if "401" in error_str or "Unauthorized" in error_str:
        logging.error(f"[JELLYFIN API] Authentication failed ({context}): {error}")
        logging.error("[JELLYFIN API] Your API key is invalid or has been revoked.")
    elif "403" in error_str or "Forbidden" in error_str:
        logging.error(f"[JELLYFIN API] Access forbidden ({context}): {error}")
        logging.error("[JELLYFIN API] The API key needs administrator rights to delete items")
    elif "404" in error_str or "Not Found" in error_str:
        logging.warning(f"[JELLYFIN API] Resource not found ({context}): {error}")
    elif "500" in error_str or "502" in error_str or "503" in error_str:
        logging.error(f"[JELLYFIN API] Jellyfin server error ({context}): {error}")
    else:
        logging.error(f"[JELLYFIN API] Error ({context}): {error}")


def _six_digit_fraction(match) -> str:
    return "." + match.group(1)[:6].ljust(6, "0")


def parse_jellyfin_date(value: Optional[str]) -> Optional[datetime]:
    """Parse a Jellyfin timestamp into an aware UTC datetime.

    Returns None for missing or unparseable values.
    """
    if not value:
        return None
    text = _FRACTION_RE.sub(_six_digit_fraction, value.strip())
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        logging.warning(f"Failed to parse date '{value}'")
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def item_from_dto(dto: Dict[str, Any]) -> MediaItem:
    """Build a MediaItem snapshot from a Jellyfin BaseItemDto.

    An unreadable added date counts as now, so the item is never due.
    The other dates fall back to the added date.
    """
    date_created = parse_jellyfin_date(dto.get("DateCreated"))
    if date_created is None:
        logging.warning(f"No usable DateCreated for {dto.get('Name', dto['Id'])}, treating it as just added")
        date_created = datetime.now(timezone.utc)
    return MediaItem(
        id=dto["Id"],
        name=dto.get("Name", ""),
        kind=ItemKind.from_type(dto.get("Type")),
        date_created=date_created,
        date_modified=parse_jellyfin_date(dto.get("DateModified")) or date_created,
        date_last_saved=parse_jellyfin_date(dto.get("DateLastSaved")) or date_created,
        series_id=dto.get("SeriesId"),
        series_name=dto.get("SeriesName"),
        season_id=dto.get("SeasonId"),
        parent_id=dto.get("ParentId"),
        path=dto.get("Path"),
    )


class JellyfinCatalog(Catalog):
    """Catalog backed by the Jellyfin REST API."""

    def __init__(self, jellyfin_url: str, api_key: str, timeout: int = 30,
                 session: Optional[requests.Session] = None):
        self.jellyfin_url = jellyfin_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            "X-Emby-Token": api_key,
            "Content-Type": "application/json",
        })

    def connect(self) -> None:
        """Check the server is reachable and the API key is accepted."""
        logging.debug(f"Connecting to Jellyfin server: {self.jellyfin_url}")
        info = self._request("GET", "/System/Info", context="connect to Jellyfin server")
        logging.debug(f"Jellyfin server version: {info.get('Version', 'unknown')}")

    def _request(self, method: str, endpoint: str, context: str,
                 params: Optional[Dict[str, Any]] = None) -> Any:
        url = f"{self.jellyfin_url}{endpoint}"
        try:
            response = self.session.request(method, url, params=params, timeout=self.timeout)
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            _log_api_error(context, e)
            raise CatalogError(f"Failed to {context}: {e}") from e

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError:
            return {}

    def _query_items(self, context: str, **params) -> List[Dict[str, Any]]:
        params.setdefault("Fields", ITEM_FIELDS)
        params.setdefault("EnableImages", "false")
        data = self._request("GET", "/Items", context=context, params=params)
        return data.get("Items", []) if isinstance(data, dict) else []

    def get_item(self, item_id: str) -> Optional[MediaItem]:
        items = self._query_items(f"get item {item_id}", Ids=item_id)
        if not items:
            return None
        return item_from_dto(items[0])

    def get_library_items(self, library_id: str) -> List[MediaItem]:
        items = self._query_items(
            f"list items of library {library_id}",
            ParentId=library_id,
            Recursive="true",
            IncludeItemTypes=LIBRARY_ITEM_TYPES,
            ExcludeLocationTypes="Virtual",
        )
        return [item_from_dto(dto) for dto in items]

    def get_descendant_ids(self, item: MediaItem) -> Set[str]:
        items = self._query_items(
            f"list children of {item.name}",
            ParentId=item.id,
            Recursive="true",
            Fields="",
        )
        return {dto["Id"] for dto in items}

    def get_users(self) -> List[CatalogUser]:
        users = self._request("GET", "/Users", context="list users")
        return [CatalogUser(id=u["Id"], name=u.get("Name", "")) for u in users or []]

    def get_favorite_ids(self, user_id: str) -> Set[str]:
        data = self._request(
            "GET",
            f"/Users/{user_id}/Items",
            context=f"list favorites of user {user_id}",
            params={"Filters": "IsFavorite", "Recursive": "true", "EnableImages": "false"},
        )
        return {dto["Id"] for dto in data.get("Items", [])}

    def delete_item(self, item_id: str) -> None:
        self._request("DELETE", f"/Items/{item_id}", context=f"delete item {item_id}")

    def get_collections(self) -> List[Collection]:
        items = self._query_items(
            "list collections",
            IncludeItemTypes="BoxSet",
            Recursive="true",
            Fields="Path",
        )
        return [Collection(id=dto["Id"], name=dto.get("Name", ""), path=dto.get("Path")) for dto in items]

    def get_collection_items(self, collection_id: str) -> List[MediaItem]:
        items = self._query_items(f"list items of collection {collection_id}", ParentId=collection_id)
        return [item_from_dto(dto) for dto in items]

    def create_collection(self, name: str) -> Collection:
        data = self._request(
            "POST",
            "/Collections",
            context=f"create collection {name}",
            params={"Name": name, "IsLocked": "false"},
        )
        if not data.get("Id"):
            raise CatalogError(f"Jellyfin did not return an id for collection {name}")
        return Collection(id=data["Id"], name=name)

    def add_to_collection(self, collection_id: str, item_ids: List[str]) -> None:
        self._request(
            "POST",
            f"/Collections/{collection_id}/Items",
            context=f"add {len(item_ids)} items to collection {collection_id}",
            params={"Ids": ",".join(item_ids)},
        )
