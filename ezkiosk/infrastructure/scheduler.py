from __future__ import annotations

import logging
import threading
import time
from datetime import datetime
from typing import Any, Callable, Dict, Optional

import schedule

from ..config import DEFAULT_TIMEZONE, cfg
from ..integrations.slack import alert_error, notify

logger = logging.getLogger(__name__)

DEFAULT_UPLOAD_INTERVAL_MINUTES = 15
DEFAULT_SYNC_INTERVAL_MINUTES = 60
DEFAULT_LIFECYCLE_INTERVAL_HOURS = 24
POLL_SECONDS = 30


def run_uploads(service: Any) -> Dict[str, Any]:
    return service.process_scheduled_uploads().to_dict()


def run_sync(service: Any) -> Dict[str, Any]:
    return service.sync_all_folders(sync_type="hourly")


def run_daily(service: Any) -> Dict[str, Any]:
    return {"scheduled": service.schedule_daily_uploads()}


def run_lifecycle(service: Any) -> Dict[str, Any]:
    return service.process_asset_lifecycle()


TASKS: Dict[str, Callable[[Any], Dict[str, Any]]] = {
    "uploads": run_uploads,
    "sync": run_sync,
    "daily": run_daily,
    "lifecycle": run_lifecycle,
}


def run_task(service: Any, name: str) -> Optional[Dict[str, Any]]:
    """Run one named task; a failure is reported and does not propagate."""
    try:
        return TASKS[name](service)
    except Exception as e:
        logger.exception(f"Task {name} failed")
        alert_error(f"{name} task failed: {e}")
        return None


def run_all(service: Any) -> Dict[str, Optional[Dict[str, Any]]]:
    return {name: run_task(service, name) for name in TASKS}


class BackgroundScheduler:
    def __init__(self, service: Any, settings: Dict[str, Any], sleep: Callable[[float], None] = time.sleep):
        self.service = service
        self.settings = settings
        self.running = False
        self.thread: Optional[threading.Thread] = None
        self._sleep = sleep
        self.jobs = schedule.Scheduler()
        self.upload_interval_minutes = int(cfg(settings, "scheduler.upload_interval_minutes", DEFAULT_UPLOAD_INTERVAL_MINUTES))
        self.sync_interval_minutes = int(cfg(settings, "scheduler.sync_interval_minutes", DEFAULT_SYNC_INTERVAL_MINUTES))
        self.daily_upload_time: Optional[str] = cfg(settings, "scheduler.daily_upload_time")
        self.lifecycle_interval_hours = int(cfg(settings, "scheduler.lifecycle_interval_hours", DEFAULT_LIFECYCLE_INTERVAL_HOURS))
        self.timezone: str = cfg(settings, "timezone") or DEFAULT_TIMEZONE
        self.last_runs: Dict[str, datetime] = {}

    def register(self) -> None:
        self.jobs.clear()
        self.jobs.every(max(1, self.upload_interval_minutes)).minutes.do(self._tick, "uploads")
        if self.sync_interval_minutes % 60 == 0:
            self.jobs.every(max(1, self.sync_interval_minutes // 60)).hours.do(self._tick, "sync")
        else:
            self.jobs.every(self.sync_interval_minutes).minutes.do(self._tick, "sync")
        self.jobs.every(max(1, self.lifecycle_interval_hours)).hours.do(self._tick, "lifecycle")
        if self.daily_upload_time:
            self.jobs.every().day.at(self.daily_upload_time, self.timezone).do(self._tick, "daily")

    def start(self) -> None:
        if self.running:
            return
        self.register()
        self.running = True
        self.thread = threading.Thread(target=self._run_scheduler, daemon=True)
        self.thread.start()
        notify(
            f"🤖 Background scheduler started - uploads every {self.upload_interval_minutes}m, "
            f"folder sync every {self.sync_interval_minutes}m"
        )

    def stop(self) -> None:
        self.running = False
        if self.thread:
            self.thread.join(timeout=5)
        self.jobs.clear()
        notify("🛑 Background scheduler stopped")

    def _run_scheduler(self) -> None:
        while self.running:
            try:
                self.jobs.run_pending()
                self._sleep(POLL_SECONDS)
            except Exception as e:
                notify(f"❌ Scheduler error: {e}", severity="error")
                self._sleep(60)

    def _tick(self, name: str) -> None:
        result = run_task(self.service, name)
        self.last_runs[name] = datetime.now()
        if result is not None:
            logger.info(f"Task {name} finished: {result}")


_scheduler: Optional[BackgroundScheduler] = None


def start_background_scheduler(service: Any, settings: Dict[str, Any]) -> BackgroundScheduler:
    global _scheduler
    if _scheduler is None:
        _scheduler = BackgroundScheduler(service, settings)
    _scheduler.start()
    return _scheduler


def stop_background_scheduler() -> None:
    global _scheduler
    if _scheduler is not None:
        _scheduler.stop()
        _scheduler = None


def get_scheduler() -> Optional[BackgroundScheduler]:
    return _scheduler
