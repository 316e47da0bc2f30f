"""
Main LibraryCleaner application.
Wires configuration, logging and the Jellyfin catalog into one cleanup run.
"""

import logging
import os
import sys
import threading
import time
from pathlib import Path
from typing import Optional

from core import __version__
from core.catalog import CatalogError
from core.cleanup import CleanupSummary, LibraryCleanupService, ProgressCallback
from core.config import ConfigManager
from core.jellyfin_api import JellyfinCatalog
from core.logging_config import LoggingManager


class LibraryCleanerApp:
    """Main LibraryCleaner application class."""

    def __init__(self, config_file: str, verbose: bool = False,
                 progress_callback: Optional[ProgressCallback] = None,
                 setup_logging: bool = True):
        self.config_file = config_file
        self.verbose = verbose
        self._progress_callback = progress_callback
        self._setup_logging_enabled = setup_logging
        self.start_time = time.time()

        self.config_manager = ConfigManager(config_file)
        self.logging_manager: Optional[LoggingManager] = None
        self.catalog: Optional[JellyfinCatalog] = None
        self.summary: Optional[CleanupSummary] = None

        # Set from another thread (web UI stop button) to end the run early
        self._stop_event = threading.Event()

    def request_stop(self) -> None:
        """Request the run to stop at the next library or deletion boundary."""
        self._stop_event.set()
        logging.info("Stop requested - cleanup will stop after the current step")

    def _report_progress(self, value: float) -> None:
        if self._progress_callback is not None:
            self._progress_callback(value)

    def run(self) -> CleanupSummary:
        """Run one cleanup pass. Unexpected faults propagate to the caller.

        A verbose run lowers the root level to DEBUG for its own duration only.
        """
        self.config_manager.load_config()
        if self._setup_logging_enabled:
            self._setup_logging()

        root_logger = logging.getLogger()
        previous_level = root_logger.level
        if self.verbose:
            root_logger.setLevel(logging.DEBUG)
            logging.info("VERBOSE MODE - Showing DEBUG level logs")

        try:
            return self._run_cleanup()
        finally:
            root_logger.setLevel(previous_level)

    def _run_cleanup(self) -> CleanupSummary:
        logging.info(f"*** LibraryCleaner {__version__} ***")

        jellyfin = self.config_manager.jellyfin
        self.catalog = JellyfinCatalog(jellyfin.jellyfin_url, jellyfin.api_key, timeout=jellyfin.timeout)
        self.catalog.connect()

        self._report_progress(0)
        service = LibraryCleanupService(self.catalog)
        self.summary = service.execute_cleanup(
            self.config_manager.library_settings,
            progress=self._report_progress,
            cancel_event=self._stop_event,
        )
        if not self.summary.cancelled:
            self._report_progress(100)

        self._log_summary()
        return self.summary

    def _setup_logging(self) -> None:
        self.logging_manager = LoggingManager(
            logs_folder=self.config_manager.paths.logs_folder,
            log_level=self.config_manager.log_level,
        )
        self.logging_manager.setup_logging()
        self.logging_manager.setup_notification_handlers(self.config_manager.notification)

    def _log_summary(self) -> None:
        elapsed = time.time() - self.start_time
        summary = self.summary
        if summary is None:
            return

        lines = [result.summary_line() for result in summary.libraries]
        if summary.cancelled:
            lines.append("Run cancelled before all libraries were processed")

        if self.logging_manager is not None:
            for line in lines:
                self.logging_manager.add_summary_message(line)
            self.logging_manager.log_summary()
        else:
            for line in lines:
                logging.info(line)

        logging.info(f"Cleanup finished in {elapsed:.1f}s "
                     f"({summary.deleted_count} deleted, {summary.failed_count} failed libraries)")


def default_config_file() -> str:
    """Settings file next to the project root."""
    script_dir = Path(os.path.dirname(os.path.abspath(__file__)))
    project_root = script_dir.parent if script_dir.name == 'core' else script_dir
    return str(project_root / "librarycleaner_settings.json")


def main(argv=None) -> int:
    """Main entry point."""
    argv = sys.argv[1:] if argv is None else argv
    verbose = "--verbose" in argv or "-v" in argv

    config_file = default_config_file()
    if "--config" in argv:
        index = argv.index("--config")
        if index + 1 >= len(argv):
            print("ERROR: --config needs a path", file=sys.stderr)
            return 2
        config_file = argv[index + 1]

    app = LibraryCleanerApp(config_file, verbose=verbose)
    try:
        app.run()
    except KeyboardInterrupt:
        app.request_stop()
        logging.warning("Interrupted by user")
        return 130
    except CatalogError as e:
        logging.critical(f"Jellyfin error: {e}")
        print(f"ERROR: {e}", file=sys.stderr)
        return 1
    except (FileNotFoundError, ValueError, TypeError) as e:
        logging.critical(f"Configuration error: {e}")
        print(f"ERROR: {e}", file=sys.stderr)
        return 1
    finally:
        if app.logging_manager is not None:
            app.logging_manager.shutdown()
    return 0
