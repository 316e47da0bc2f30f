#!/usr/bin/env python3
"""LibraryCleaner - leaving soon and to delete collections for Jellyfin libraries.

Runs one cleanup pass over every enabled library in the settings file.

Usage:
    python librarycleaner.py                     # Run cleanup
    python librarycleaner.py --verbose           # Enable debug logging
    python librarycleaner.py --config FILE       # Use another settings file
"""
import sys


def main():
    """Main entry point for LibraryCleaner."""
    from core.app import main as app_main
    return app_main()


if __name__ == "__main__":
    sys.exit(main() or 0)
