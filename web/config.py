"""Web service configuration"""

import os
from pathlib import Path

# Paths
WEB_DIR = Path(__file__).parent

# Project root (parent of web/)
PROJECT_ROOT = WEB_DIR.parent

# Config directory - /config in Docker, project root otherwise
# Docker containers have /.dockerenv or /run/.containerenv
IS_DOCKER = os.path.exists("/.dockerenv") or os.path.exists("/run/.containerenv")
CONFIG_DIR = Path("/config") if IS_DOCKER else PROJECT_ROOT

SETTINGS_FILE = Path(os.environ.get("LIBRARYCLEANER_SETTINGS", CONFIG_DIR / "librarycleaner_settings.json"))
LOGS_DIR = CONFIG_DIR / "logs"
DATA_DIR = CONFIG_DIR / "data"

# Server defaults
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 5000
