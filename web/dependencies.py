"""FastAPI dependencies - shared instances and utilities"""

import logging
from pathlib import Path

from web.config import SETTINGS_FILE


def get_settings_path() -> Path:
    """Get path to settings file"""
    return SETTINGS_FILE


def get_config_manager():
    """Get a loaded ConfigManager, or None when no settings file exists yet"""
    from core.config import ConfigManager
    settings_path = get_settings_path()
    if not settings_path.exists():
        logging.info(f"Settings file not found: {settings_path}")
        return None
    config_manager = ConfigManager(str(settings_path))
    config_manager.load_config()
    return config_manager


def get_review_service():
    """Get a ReviewService bound to the configured Jellyfin server"""
    from core.jellyfin_api import JellyfinCatalog
    from web.services.review_service import ReviewService

    config_manager = get_config_manager()
    if config_manager is None:
        return ReviewService(None, [])

    jellyfin = config_manager.jellyfin
    catalog = JellyfinCatalog(jellyfin.jellyfin_url, jellyfin.api_key, timeout=jellyfin.timeout)
    return ReviewService(catalog, config_manager.library_settings)
