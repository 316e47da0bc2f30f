"""Runs the library cleanup on a cron or interval schedule"""

import json
import logging
import threading
from dataclasses import asdict, dataclass, fields
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from web.config import SETTINGS_FILE
from web.services import operation_runner

logger = logging.getLogger(__name__)

SCHEDULE_KEY = "schedule"
DISPLAY_FMT = "%Y-%m-%d %H:%M"


@dataclass
class ScheduleConfig:
    """The "schedule" section of the settings file. Defaults to daily at 03:00."""
    enabled: bool = True
    schedule_type: str = "cron"
    interval_hours: int = 24
    cron_expression: str = "0 3 * * *"
    verbose: bool = False

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "ScheduleConfig":
        known = {f.name for f in fields(cls)}
        return cls(**{key: value for key, value in data.items() if key in known})

    @property
    def uses_interval(self) -> bool:
        return self.schedule_type == "interval"

    def describe(self) -> str:
        if not self.enabled:
            return "Disabled"
        if self.uses_interval:
            return f"Every {self.interval_hours}h"
        return f"Cron: {self.cron_expression}"

    def make_trigger(self):
        """Raises ValueError for a malformed cron expression"""
        if self.uses_interval:
            return IntervalTrigger(hours=max(1, int(self.interval_hours)))
        return CronTrigger.from_crontab(self.cron_expression)


def _fmt(moment: Optional[datetime], fallback: str) -> str:
    return moment.strftime(DISPLAY_FMT) if moment else fallback


def _iso(moment: Optional[datetime]) -> Optional[str]:
    return moment.isoformat() if moment else None


def last_run_time() -> Optional[datetime]:
    """When the last cleanup pass finished, as recorded by the operation runner"""
    try:
        text = operation_runner.LAST_RUN_FILE.read_text().strip()
    except OSError:
        return None
    try:
        return datetime.fromisoformat(text) if text else None
    except ValueError:
        logger.warning(f"Ignoring unreadable last run timestamp: {text!r}")
        return None


class SchedulerService:
    """Owns the APScheduler job that triggers cleanup passes"""

    JOB_ID = "librarycleaner_scheduled_run"

    def __init__(self, settings_file: Optional[Path] = None, runner=None):
        # One pending run at most; a run missed by under an hour still fires
        self._scheduler = BackgroundScheduler(
            job_defaults={"coalesce": True, "max_instances": 1, "misfire_grace_time": 3600}
        )
        self._settings_file = Path(settings_file) if settings_file else SETTINGS_FILE
        self._runner = runner
        self._config: Optional[ScheduleConfig] = None

    @property
    def runner(self):
        if self._runner is None:
            self._runner = operation_runner.get_operation_runner()
        return self._runner

    @property
    def started(self) -> bool:
        return self._scheduler.running

    def start(self):
        if self.started:
            return
        self._scheduler.start()
        self._schedule_job()
        logger.info("Scheduler service started")

    def stop(self):
        if self.started:
            self._scheduler.shutdown(wait=False)
            logger.info("Scheduler service stopped")

    def _read_settings(self) -> Dict[str, Any]:
        if not self._settings_file.exists():
            return {}
        with open(self._settings_file, "r") as f:
            return json.load(f)

    def get_config(self) -> ScheduleConfig:
        if self._config is None:
            try:
                section = self._read_settings().get(SCHEDULE_KEY, {})
                self._config = ScheduleConfig.from_dict(section)
            except (OSError, json.JSONDecodeError, TypeError) as e:
                logger.error(f"Failed to load schedule config, using defaults: {e}")
                self._config = ScheduleConfig()
        return self._config

    def _write_config(self, config: ScheduleConfig) -> None:
        """Rewrites only the schedule section; the rest of the file is kept as is"""
        try:
            settings = self._read_settings()
            settings[SCHEDULE_KEY] = config.to_dict()
            with open(self._settings_file, "w") as f:
                json.dump(settings, f, indent=2)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Failed to save schedule config: {e}")

    def _run_scheduled_job(self):
        runner = self.runner
        if runner.is_running:
            logger.info("Scheduled run skipped - cleanup already in progress")
            return
        logger.info("Starting scheduled cleanup run")
        runner.start_operation(verbose=self.get_config().verbose, wait=True)

    def _next_run_time(self) -> Optional[datetime]:
        job = self._scheduler.get_job(self.JOB_ID) if self.started else None
        return job.next_run_time if job else None

    def _schedule_job(self) -> None:
        if self._scheduler.get_job(self.JOB_ID):
            self._scheduler.remove_job(self.JOB_ID)

        config = self.get_config()
        if not config.enabled:
            logger.info("Schedule disabled")
            return
        try:
            trigger = config.make_trigger()
        except ValueError as e:
            logger.error(f"Failed to apply schedule {config.describe()!r}: {e}")
            return

        self._scheduler.add_job(self._run_scheduled_job, trigger=trigger, id=self.JOB_ID,
                                name="Library Cleanup", replace_existing=True)
        logger.info(f"Schedule enabled ({config.describe()}), next run {_fmt(self._next_run_time(), 'unknown')}")

    def update_config(self, config: ScheduleConfig) -> Dict[str, Any]:
        """Validate, persist and apply a new schedule"""
        if not config.uses_interval:
            check = self.validate_cron(config.cron_expression)
            if not check["valid"]:
                return {"success": False, "message": check["message"], "next_run": None}

        self._config = config
        self._write_config(config)
        if self.started:
            self._schedule_job()
        return {"success": True, "message": "Schedule updated", "next_run": _iso(self._next_run_time())}

    def get_status(self) -> Dict[str, Any]:
        config = self.get_config()
        next_run = self._next_run_time()
        last_run = last_run_time()
        status = config.to_dict()
        status.update({
            "running": self.started,
            "schedule_description": config.describe(),
            "next_run": _iso(next_run),
            "next_run_display": _fmt(next_run, "Not scheduled"),
            "last_run": _iso(last_run),
            "last_run_display": _fmt(last_run, "Never"),
        })
        return status

    @staticmethod
    def validate_cron(expression: str, preview: int = 3) -> Dict[str, Any]:
        """Check a crontab expression and list its next few fire times"""
        try:
            trigger = CronTrigger.from_crontab(expression)
        except ValueError as e:
            return {"valid": False, "message": str(e), "next_runs": []}

        upcoming: List[str] = []
        after = datetime.now(trigger.timezone)
        while len(upcoming) < preview:
            fire = trigger.get_next_fire_time(None, after)
            if fire is None:
                break
            upcoming.append(fire.strftime(DISPLAY_FMT))
            after = fire + timedelta(seconds=1)
        return {"valid": True, "message": "Valid cron expression", "next_runs": upcoming}


_scheduler_service: Optional[SchedulerService] = None
_scheduler_service_lock = threading.Lock()


def get_scheduler_service() -> SchedulerService:
    global _scheduler_service
    with _scheduler_service_lock:
        if _scheduler_service is None:
            _scheduler_service = SchedulerService()
        return _scheduler_service
