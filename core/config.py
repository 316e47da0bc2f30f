"""
Configuration management for LibraryCleaner.
Handles loading, validation, and management of application settings.
"""

import json
import os
import logging
from enum import Enum
from pathlib import Path
from typing import Dict, Any, Optional, List
from dataclasses import dataclass

# Get the directory where config.py is located
_SCRIPT_DIR = Path(os.path.dirname(os.path.abspath(__file__)))

# Project root detection: if we're in core/, go up one level
if _SCRIPT_DIR.name == 'core':
    _PROJECT_ROOT = _SCRIPT_DIR.parent
else:
    _PROJECT_ROOT = _SCRIPT_DIR

DEFAULT_LEAVING_SOON_COLLECTION_NAME = "Leaving Soon"
TO_DELETE_COLLECTION_NAME = "To Delete"


class ElementReference(str, Enum):
    """Unit of action for TV content."""
    EPISODE = "Episode"
    SEASON = "Season"
    WHOLE_SERIES = "WholeSeries"


class TimeReference(str, Enum):
    """Timestamp a retention rule measures age against."""
    FILE_ADDED_DATE = "FileAddedDate"
    LATEST_FILE_UPDATE_DATE = "LatestFileUpdateDate"
    LATEST_WATCH_DATE = "LatestWatchDate"


def _parse_enum(enum_cls, value, default):
    """Match an enum by value or name, ignoring case. Returns default on no match."""
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        wanted = value.strip().lower().replace("_", "")
        for member in enum_cls:
            if wanted in (member.value.lower(), member.name.lower().replace("_", "")):
                return member
    return default


@dataclass
class NotificationConfig:
    """Configuration for notification settings."""
    webhook_level: str = ""
    webhook_url: str = ""


@dataclass
class PathConfig:
    """Configuration for log file locations."""
    logs_folder: str = str(_PROJECT_ROOT / "logs")


@dataclass
class JellyfinConfig:
    """Configuration for the Jellyfin server connection."""
    jellyfin_url: str = ""
    api_key: str = ""
    timeout: int = 30


@dataclass
class LibrarySettings:
    """Retention rules for one managed library.

    Attributes:
        library_id: Catalog identifier of the library root.
        enabled: Whether the library takes part in cleanup runs.
        element_reference: Granularity for TV content (episode/season/series).
        exclude_favorites: Shield items any user marked as favorite.
        time_reference: Which timestamp ages are measured against. None means
            the configured value was not recognized (the added date is used).
        leaving_soon_days: Age that moves an item to leaving soon. 0 disables.
        deletion_days: Age that makes an item eligible for deletion. 0 disables.
        leaving_soon_collection_name: Display name of the leaving soon collection.
        delete_automation: Delete immediately instead of staging for review.
    """
    library_id: str = ""
    enabled: bool = True
    element_reference: ElementReference = ElementReference.EPISODE
    exclude_favorites: bool = True
    time_reference: Optional[TimeReference] = TimeReference.FILE_ADDED_DATE
    leaving_soon_days: int = 0
    deletion_days: int = 0
    leaving_soon_collection_name: str = DEFAULT_LEAVING_SOON_COLLECTION_NAME
    delete_automation: bool = False

    @classmethod
    def from_dict(cls, data: dict) -> "LibrarySettings":
        element_reference = _parse_enum(
            ElementReference, data.get("element_reference", "Episode"), None
        )
        if element_reference is None:
            logging.warning(
                f"Unknown element_reference '{data.get('element_reference')}' for library "
                f"{data.get('library_id', '')}, using Episode"
            )
            element_reference = ElementReference.EPISODE

        return cls(
            library_id=str(data.get("library_id", "")),
            enabled=data.get("enabled", True),
            element_reference=element_reference,
            exclude_favorites=data.get("exclude_favorites", True),
            time_reference=_parse_enum(TimeReference, data.get("time_reference", "FileAddedDate"), None),
            leaving_soon_days=data.get("leaving_soon_days", 0),
            deletion_days=data.get("deletion_days", 0),
            leaving_soon_collection_name=data.get("leaving_soon_collection_name")
            or DEFAULT_LEAVING_SOON_COLLECTION_NAME,
            delete_automation=data.get("delete_automation", False),
        )

    def to_dict(self) -> dict:
        return {
            "library_id": self.library_id,
            "enabled": self.enabled,
            "element_reference": self.element_reference.value,
            "exclude_favorites": self.exclude_favorites,
            "time_reference": self.time_reference.value if self.time_reference else None,
            "leaving_soon_days": self.leaving_soon_days,
            "deletion_days": self.deletion_days,
            "leaving_soon_collection_name": self.leaving_soon_collection_name,
            "delete_automation": self.delete_automation,
        }


class ConfigManager:
    """Manages application configuration loading and validation."""

    def __init__(self, config_file: str):
        self.config_file = Path(config_file)
        self.settings_data: Dict[str, Any] = {}
        self.notification = NotificationConfig()
        self.paths = PathConfig()
        self.jellyfin = JellyfinConfig()
        self.library_settings: List[LibrarySettings] = []
        self.log_level = ""

    def load_config(self) -> None:
        """Load configuration from file and validate."""
        logging.debug(f"Loading configuration from: {self.config_file}")

        if not self.config_file.exists():
            logging.error(f"Settings file not found: {self.config_file}")
            raise FileNotFoundError(f"Settings file not found: {self.config_file}")

        try:
            with open(self.config_file, 'r', encoding='utf-8') as f:
                self.settings_data = json.load(f)
            logging.debug("Configuration file loaded successfully")
        except json.JSONDecodeError as e:
            logging.error(f"Invalid JSON in settings file: {type(e).__name__}: {e}")
            raise ValueError(f"Invalid JSON in settings file: {e}")

        self.load_from_dict(self.settings_data)
        logging.debug("Configuration loaded and validated successfully")

    def load_from_dict(self, settings: Dict[str, Any]) -> None:
        """Validate and load an already parsed settings dictionary."""
        self.settings_data = settings
        self._validate_required_fields()
        self._validate_types()
        self._load_all_configs()
        self._validate_values()
        self._warn_questionable_libraries()

    def _load_all_configs(self) -> None:
        """Load all configuration sections."""
        self._load_jellyfin_config()
        self._load_path_config()
        self._load_notification_config()
        self._load_library_settings()
        self.log_level = self.settings_data.get('log_level', '')

    def _load_jellyfin_config(self) -> None:
        """Load Jellyfin connection configuration."""
        self.jellyfin.jellyfin_url = self.settings_data['JELLYFIN_URL'].rstrip('/')
        self.jellyfin.api_key = self.settings_data['JELLYFIN_API_KEY']
        self.jellyfin.timeout = self.settings_data.get('request_timeout', 30)

    def _load_path_config(self) -> None:
        """Load folder overrides."""
        if self.settings_data.get('logs_folder'):
            self.paths.logs_folder = self.settings_data['logs_folder']

    def _load_notification_config(self) -> None:
        """Load notification-related configuration."""
        self.notification.webhook_level = self.settings_data.get('webhook_level', '')
        self.notification.webhook_url = self.settings_data.get('webhook_url', '')

    def _load_library_settings(self) -> None:
        """Load per-library retention rules."""
        self.library_settings = []
        for entry in self.settings_data.get('library_settings', []):
            settings = LibrarySettings.from_dict(entry)
            self.library_settings.append(settings)
            logging.debug(
                f"Loaded library settings: {settings.library_id} "
                f"(enabled={settings.enabled}, leaving_soon={settings.leaving_soon_days}d, "
                f"deletion={settings.deletion_days}d)"
            )

    def _validate_required_fields(self) -> None:
        """Validate that all required fields exist in the configuration."""
        logging.debug("Validating required fields...")
        required_fields = ['JELLYFIN_URL', 'JELLYFIN_API_KEY']

        missing_fields = [field for field in required_fields if field not in self.settings_data]
        if missing_fields:
            logging.error(f"Missing required fields in settings: {missing_fields}")
            raise ValueError(f"Missing required fields in settings: {missing_fields}")

        logging.debug("Required fields validation successful")

    def _validate_types(self) -> None:
        """Validate that configuration values have correct types."""
        logging.debug("Validating configuration types...")

        type_checks = {
            'JELLYFIN_URL': str,
            'JELLYFIN_API_KEY': str,
            'library_settings': list,
            'request_timeout': int,
        }

        type_errors = []
        for field, expected_type in type_checks.items():
            if field in self.settings_data:
                value = self.settings_data[field]
                if not isinstance(value, expected_type):
                    type_errors.append(
                        f"'{field}' expected {expected_type.__name__}, got {type(value).__name__}"
                    )

        library_type_checks = {
            'enabled': bool,
            'exclude_favorites': bool,
            'delete_automation': bool,
            'leaving_soon_days': int,
            'deletion_days': int,
        }
        for index, entry in enumerate(self.settings_data.get('library_settings', []) or []):
            if not isinstance(entry, dict):
                type_errors.append(f"'library_settings[{index}]' expected dict, got {type(entry).__name__}")
                continue
            for field, expected_type in library_type_checks.items():
                if field in entry and not isinstance(entry[field], expected_type):
                    type_errors.append(
                        f"'library_settings[{index}].{field}' expected {expected_type.__name__}, "
                        f"got {type(entry[field]).__name__}"
                    )

        if type_errors:
            error_msg = "Type validation errors: " + "; ".join(type_errors)
            logging.error(error_msg)
            raise TypeError(error_msg)

        logging.debug("Type validation successful")

    def _validate_values(self) -> None:
        """Validate configuration value ranges and constraints."""
        logging.debug("Validating configuration values...")
        errors = []

        if not self.jellyfin.jellyfin_url.strip():
            errors.append("'JELLYFIN_URL' cannot be empty")
        if not self.jellyfin.api_key.strip():
            errors.append("'JELLYFIN_API_KEY' cannot be empty")

        for settings in self.library_settings:
            if not settings.library_id.strip():
                errors.append("'library_id' cannot be empty")
            if settings.leaving_soon_days < 0:
                errors.append(
                    f"'leaving_soon_days' must be non-negative for library {settings.library_id}, "
                    f"got {settings.leaving_soon_days}"
                )
            if settings.deletion_days < 0:
                errors.append(
                    f"'deletion_days' must be non-negative for library {settings.library_id}, "
                    f"got {settings.deletion_days}"
                )

        if errors:
            error_msg = "Configuration validation errors: " + "; ".join(errors)
            logging.error(error_msg)
            raise ValueError(error_msg)

        logging.debug("Value validation successful")

    def _warn_questionable_libraries(self) -> None:
        """Log settings that are allowed but probably not what the operator meant."""
        seen_ids = set()
        for settings in self.library_settings:
            if 0 < settings.deletion_days <= settings.leaving_soon_days:
                logging.warning(
                    f"Library {settings.library_id}: leaving_soon_days ({settings.leaving_soon_days}) "
                    f">= deletion_days ({settings.deletion_days}), items go straight to deletion"
                )
            if settings.time_reference is None:
                logging.warning(
                    f"Library {settings.library_id}: unknown time_reference, using file added date"
                )
            if settings.leaving_soon_collection_name.lower() == TO_DELETE_COLLECTION_NAME.lower():
                logging.warning(
                    f"Library {settings.library_id}: leaving soon collection name collides with "
                    f"'{TO_DELETE_COLLECTION_NAME}'"
                )
            if settings.library_id in seen_ids:
                logging.warning(
                    f"Library {settings.library_id} is configured more than once, "
                    f"the last reconciliation of each collection wins"
                )
            seen_ids.add(settings.library_id)
