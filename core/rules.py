"""
Retention rules for LibraryCleaner.

Decides which items are units of action for a library, which of them are
shielded by favorites, and whether an admitted item is leaving soon or due
for deletion.
"""

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Iterable, List, Optional, Set

from core.catalog import Catalog, ItemKind, MediaItem
from core.config import ElementReference, LibrarySettings, TimeReference


class Classification(str, Enum):
    """Outcome of classifying one admitted item."""
    NONE = "none"
    LEAVING_SOON = "leaving_soon"
    TO_DELETE = "to_delete"


_KIND_FOR_REFERENCE = {
    ElementReference.EPISODE: ItemKind.EPISODE,
    ElementReference.SEASON: ItemKind.SEASON,
    ElementReference.WHOLE_SERIES: ItemKind.SERIES,
}


def resolve_reference_date(item: MediaItem, time_reference: Optional[TimeReference]) -> datetime:
    """Return the timestamp an item's age is measured against.

    Unrecognized references use the date the item was added.
    """
    if time_reference == TimeReference.LATEST_FILE_UPDATE_DATE:
        return item.date_modified
    if time_reference == TimeReference.LATEST_WATCH_DATE:
        return item.date_last_saved
    return item.date_created


def days_since(reference: datetime, now: Optional[datetime] = None) -> float:
    """Fractional days elapsed between reference and now (UTC)."""
    if now is None:
        now = datetime.now(timezone.utc)
    if reference.tzinfo is None:
        reference = reference.replace(tzinfo=timezone.utc)
    return (now - reference).total_seconds() / 86400


def collect_favorite_ids(catalog: Catalog) -> Set[str]:
    """Union of every user's favorites. One round trip per user."""
    favorite_ids: Set[str] = set()
    for user in catalog.get_users():
        user_favorites = catalog.get_favorite_ids(user.id)
        logging.debug(f"User {user.name} has {len(user_favorites)} favorites")
        favorite_ids.update(user_favorites)
    return favorite_ids


def is_favorite(item: MediaItem, favorite_ids: Set[str], catalog: Catalog) -> bool:
    """Check whether an item is shielded by a favorite.

    A favorite on the item itself or on its series shields it. Seasons and
    series are also shielded when anything below them is a favorite, so a
    favorited episode is never removed along with its container.
    """
    if not favorite_ids:
        return False

    if item.id in favorite_ids:
        return True

    if item.kind in (ItemKind.EPISODE, ItemKind.SEASON):
        if item.series_id and item.series_id in favorite_ids:
            return True

    if item.kind in (ItemKind.SEASON, ItemKind.SERIES):
        descendants = catalog.get_descendant_ids(item)
        if not favorite_ids.isdisjoint(descendants):
            return True

    return False


def is_eligible(item: MediaItem, element_reference: ElementReference) -> bool:
    """Whether an item is a unit of action at the configured granularity.

    Movies always are. Episodes, seasons and series only at their own
    level, so the same content is never counted twice.
    """
    if item.kind == ItemKind.MOVIE:
        return True
    return _KIND_FOR_REFERENCE.get(element_reference) == item.kind


def _describe(item: MediaItem) -> str:
    if item.kind in (ItemKind.EPISODE, ItemKind.SEASON):
        return f"{item.kind.value.lower()} {item.name} from series {item.series_name}"
    return f"item {item.name}"


def admit(item: MediaItem, settings: LibrarySettings, favorite_ids: Set[str], catalog: Catalog) -> bool:
    """Eligible at the library's granularity and not shielded by a favorite."""
    if not is_eligible(item, settings.element_reference):
        logging.debug(
            f"Skip {_describe(item)} - element reference is set to {settings.element_reference.value}"
        )
        return False

    if settings.exclude_favorites and is_favorite(item, favorite_ids, catalog):
        logging.info(f"Excluding {_describe(item)} - marked as favorite")
        return False

    return True


def classify(item: MediaItem, settings: LibrarySettings, now: Optional[datetime] = None) -> Classification:
    """Assign an admitted item to exactly one outcome.

    Deletion wins over leaving soon. A threshold of 0 disables its rule.
    Lower bounds are inclusive, the leaving soon window excludes the
    deletion threshold itself.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    reference_date = resolve_reference_date(item, settings.time_reference)
    age = days_since(reference_date, now)

    if settings.deletion_days > 0 and age >= settings.deletion_days:
        result = Classification.TO_DELETE
    elif (settings.leaving_soon_days > 0
          and settings.leaving_soon_days <= age < settings.deletion_days):
        result = Classification.LEAVING_SOON
    else:
        result = Classification.NONE

    _log_item_dates(item, settings, reference_date, age, result, now)
    return result


def _log_item_dates(item: MediaItem, settings: LibrarySettings, reference_date: datetime,
                    age: float, result: Classification, now: datetime) -> None:
    if not logging.getLogger().isEnabledFor(logging.DEBUG):
        return
    reference_name = settings.time_reference.value if settings.time_reference else "Unknown"
    logging.debug(
        f"Status: {result.value} | "
        f"ConfiguredReference: {reference_name} ({reference_date:%Y-%m-%d}, {age:.1f} days) | "
        f"FileAddedDate: {item.date_created:%Y-%m-%d} ({days_since(item.date_created, now):.1f} days) | "
        f"FileModifiedDate: {item.date_modified:%Y-%m-%d} ({days_since(item.date_modified, now):.1f} days) | "
        f"LastWatchDate: {item.date_last_saved:%Y-%m-%d} ({days_since(item.date_last_saved, now):.1f} days) | "
        f"LeavingSoonThreshold: {settings.leaving_soon_days} days | "
        f"DeletionThreshold: {settings.deletion_days} days | "
        f"Item: {item.name}"
    )


def partition_items(items: Iterable[MediaItem], settings: LibrarySettings, favorite_ids: Set[str],
                    catalog: Catalog, now: Optional[datetime] = None):
    """Reduce a library's items to disjoint (leaving_soon, to_delete) lists."""
    if now is None:
        now = datetime.now(timezone.utc)
    leaving_soon: List[MediaItem] = []
    to_delete: List[MediaItem] = []
    for item in items:
        if not admit(item, settings, favorite_ids, catalog):
            continue
        result = classify(item, settings, now)
        if result == Classification.TO_DELETE:
            to_delete.append(item)
        elif result == Classification.LEAVING_SOON:
            leaving_soon.append(item)
    return leaving_soon, to_delete
