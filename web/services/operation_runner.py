"""Runs cleanup passes on a worker thread and tracks their state for the API"""

import logging
import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Deque, List, Optional

from web.config import DATA_DIR, SETTINGS_FILE

LAST_RUN_FILE = DATA_DIR / "last_run.txt"
MAX_CAPTURED_LINES = 500


class OperationState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class RunRecord:
    """One cleanup pass as seen from the web process"""
    state: OperationState = OperationState.RUNNING
    started_at: datetime = field(default_factory=datetime.now)
    finished_at: Optional[datetime] = None
    progress_percent: float = 0.0
    cancelled: bool = False
    error_message: Optional[str] = None
    library_lines: List[str] = field(default_factory=list)
    deleted_count: int = 0

    @property
    def elapsed_seconds(self) -> float:
        end = self.finished_at or datetime.now()
        return max(0.0, (end - self.started_at).total_seconds())


class _LineCapture(logging.Handler):
    """Keeps the most recent formatted log lines of a run"""

    def __init__(self, lines: Deque[str], level: int):
        super().__init__(level)
        self.lines = lines
        self.setFormatter(logging.Formatter('%(asctime)s - %(levelname)s - %(message)s', datefmt='%H:%M:%S'))

    def emit(self, record):
        try:
            self.lines.append(self.format(record))
        except Exception:
            self.handleError(record)


def describe_duration(seconds: float) -> str:
    """'45s', '1m 23s' or '1h 01m'"""
    minutes, secs = divmod(int(max(0, seconds)), 60)
    hours, minutes = divmod(minutes, 60)
    if hours:
        return f"{hours}h {minutes:02d}m"
    if minutes:
        return f"{minutes}m {secs:02d}s"
    return f"{secs}s"


def _write_last_run(finished_at: datetime) -> None:
    try:
        LAST_RUN_FILE.parent.mkdir(parents=True, exist_ok=True)
        LAST_RUN_FILE.write_text(finished_at.isoformat())
    except OSError as e:
        logging.warning(f"Could not record last run time: {e}")


def _build_app(verbose: bool, progress_callback):
    from core.app import LibraryCleanerApp
    return LibraryCleanerApp(
        config_file=str(SETTINGS_FILE),
        verbose=verbose,
        progress_callback=progress_callback,
        setup_logging=False,
    )


class OperationRunner:
    """At most one cleanup pass at a time, started from the API or the scheduler"""

    def __init__(self, app_factory=None):
        self._app_factory = app_factory or _build_app
        self._lock = threading.Lock()
        self._record: Optional[RunRecord] = None
        self._lines: Deque[str] = deque(maxlen=MAX_CAPTURED_LINES)
        self._thread: Optional[threading.Thread] = None
        self._app = None
        self._stop_requested = False

    @property
    def current_result(self) -> Optional[RunRecord]:
        with self._lock:
            return self._record

    @property
    def state(self) -> OperationState:
        record = self.current_result
        return record.state if record else OperationState.IDLE

    @property
    def is_running(self) -> bool:
        return self.state == OperationState.RUNNING

    @property
    def stop_requested(self) -> bool:
        with self._lock:
            return self._stop_requested

    @property
    def log_messages(self) -> List[str]:
        with self._lock:
            return list(self._lines)

    def start_operation(self, verbose: bool = False, wait: bool = False) -> bool:
        """Start a pass on a daemon thread. False when one is already running.

        With wait=True the call blocks until the pass ends (scheduler jobs).
        """
        with self._lock:
            if self._record is not None and self._record.state == OperationState.RUNNING:
                return False
            self._record = RunRecord()
            self._lines.clear()
            self._stop_requested = False
            self._app = None
            thread = threading.Thread(target=self._work, args=(verbose,), daemon=True)
            self._thread = thread

        thread.start()
        if wait:
            thread.join()
        return True

    def stop_operation(self) -> bool:
        """Ask the active pass to stop at its next library or deletion boundary"""
        with self._lock:
            if self._record is None or self._record.state != OperationState.RUNNING:
                return False
            self._stop_requested = True
            self._lines.append("Stop requested - stopping after current step...")
            app = self._app

        if app is not None:
            app.request_stop()
        return True

    def dismiss(self) -> None:
        """Forget a finished pass so the status reads idle again"""
        with self._lock:
            if self._record is not None and self._record.state != OperationState.RUNNING:
                self._record = None

    def wait(self, timeout: Optional[float] = None) -> None:
        thread = self._thread
        if thread is not None:
            thread.join(timeout)

    def _on_progress(self, value: float) -> None:
        with self._lock:
            if self._record is not None:
                self._record.progress_percent = min(max(float(value), 0.0), 100.0)

    def _work(self, verbose: bool) -> None:
        capture = _LineCapture(self._lines, logging.DEBUG if verbose else logging.INFO)
        root_logger = logging.getLogger()
        previous_level = root_logger.level
        if root_logger.getEffectiveLevel() > capture.level:
            root_logger.setLevel(capture.level)
        root_logger.addHandler(capture)
        summary = None
        error = None

        try:
            app = self._app_factory(verbose, self._on_progress)
            with self._lock:
                self._app = app
                stop_now = self._stop_requested
            if stop_now:
                app.request_stop()
            summary = app.run()
        except Exception as e:
            error = str(e) or type(e).__name__
            logging.exception("Cleanup run failed")
        finally:
            root_logger.removeHandler(capture)
            root_logger.setLevel(previous_level)

        finished_at = datetime.now()
        with self._lock:
            record = self._record
            record.finished_at = finished_at
            self._app = None
            if summary is not None:
                record.cancelled = summary.cancelled
                record.library_lines = [r.summary_line() for r in summary.libraries]
                record.deleted_count = summary.deleted_count
            if error is None:
                record.state = OperationState.COMPLETED
            else:
                record.state = OperationState.FAILED
                record.error_message = error

        _write_last_run(finished_at)

    def _message(self, record: RunRecord) -> str:
        duration = describe_duration(record.elapsed_seconds)
        if record.state == OperationState.RUNNING:
            return "Cleaning libraries..."
        if record.state == OperationState.FAILED:
            return f"Failed: {record.error_message}"
        if record.cancelled:
            return f"Stopped after {duration}"
        return f"Completed: {record.deleted_count} deleted ({duration})"

    def get_status_dict(self) -> dict:
        """Status payload for GET /operations/status"""
        with self._lock:
            record = self._record
            recent = list(self._lines)[-5:]
            stop_requested = self._stop_requested

        if record is None:
            return {
                "status": OperationState.IDLE.value,
                "is_running": False,
                "progress_percent": 0,
                "message": "No operations run yet",
            }

        return {
            "status": record.state.value,
            "is_running": record.state == OperationState.RUNNING,
            "started_at": record.started_at.isoformat(),
            "completed_at": record.finished_at.isoformat() if record.finished_at else None,
            "elapsed": describe_duration(record.elapsed_seconds),
            "progress_percent": round(record.progress_percent, 1),
            "stop_requested": stop_requested,
            "libraries": list(record.library_lines),
            "deleted_count": record.deleted_count,
            "error_message": record.error_message,
            "recent_logs": recent,
            "message": self._message(record),
        }


_operation_runner: Optional[OperationRunner] = None
_operation_runner_lock = threading.Lock()


def get_operation_runner() -> OperationRunner:
    """Process-wide runner shared by the API and the scheduler"""
    global _operation_runner
    with _operation_runner_lock:
        if _operation_runner is None:
            _operation_runner = OperationRunner()
        return _operation_runner
