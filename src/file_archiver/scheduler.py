"""
Scheduled archive runs.

Runs every archive entry on a cron schedule using APScheduler, for hosts
without an external scheduler (cron, systemd timers, Task Scheduler).
"""

from __future__ import annotations

import signal
import sys
from typing import Any, Optional

from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.cron import CronTrigger

from .config import Settings, load_settings
from .engine import Engine
from .errors import ConfigurationError
from .logger import get_logger
from .metrics import write_metrics

log = get_logger(__name__)


class ArchiveScheduler:
    """
    Archive scheduler.

    Re-reads nothing between runs: the settings given at construction are
    used for every execution.
    """

    def __init__(self, settings: Settings, metrics_file: Optional[str] = None, install_signal_handlers: bool = True):
        """
        Initialize the archive scheduler.

        Args:
            settings: Loaded configuration
            metrics_file: Optional Prometheus textfile written after each run
            install_signal_handlers: Stop cleanly on SIGINT/SIGTERM
        """
        self.settings = settings
        self.schedule = settings.schedule
        self.metrics_file = metrics_file

        if not self.schedule.enabled:
            log.warning("Schedule is disabled in configuration")
            raise ConfigurationError("Schedule is disabled in configuration")

        self.scheduler = BlockingScheduler(timezone=self.schedule.timezone) if self.schedule.timezone else BlockingScheduler()

        if install_signal_handlers:
            signal.signal(signal.SIGTERM, self._handle_signal)
            signal.signal(signal.SIGINT, self._handle_signal)

    def _handle_signal(self, signum: int, frame: Any) -> None:
        log.info("Received signal %s, shutting down...", signum)
        self.stop()
        sys.exit(0)

    def run_archive(self) -> None:
        """Execute one archive run; failures are logged, never raised."""
        try:
            results = Engine(self.settings).run()
            failed = [r.name for r in results if not r.ok]
            if failed:
                log.error("Archive run finished with failed entries: %s", ", ".join(failed))
            else:
                log.info("Archive run finished: %d entries", len(results))
        except Exception as e:
            log.exception("Archive run failed: %s", e)
        finally:
            if self.metrics_file:
                try:
                    write_metrics(self.metrics_file)
                except OSError as e:
                    log.warning("Unable to write metrics to %s: %s", self.metrics_file, e)

    def add_jobs(self) -> None:
        try:
            trigger = CronTrigger.from_crontab(self.schedule.cron, timezone=self.schedule.timezone)
        except ValueError as e:
            raise ConfigurationError(f"Invalid cron expression '{self.schedule.cron}': {e}") from e

        self.scheduler.add_job(
            self.run_archive,
            trigger=trigger,
            id="archive",
            name="Archive Files",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        log.info("Scheduled archive run: %s", self.schedule.cron)

    def start(self) -> None:
        """Start the scheduler (blocking)."""
        log.info("Starting archive scheduler...")
        if not self.scheduler.get_jobs():
            self.add_jobs()

        if self.schedule.run_on_start:
            self.run_archive()

        for job in self.scheduler.get_jobs():
            log.info("  - %s: %s", job.name, job.trigger)

        try:
            self.scheduler.start()
        except (KeyboardInterrupt, SystemExit):
            log.info("Scheduler stopped")

    def stop(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=True)
            log.info("Scheduler stopped")


def run_scheduler(config_path: Optional[str] = None, metrics_file: Optional[str] = None) -> None:
    """
    Load the configuration and run the scheduler until interrupted.

    Args:
        config_path: Path to configuration file
        metrics_file: Optional Prometheus textfile written after each run
    """
    try:
        scheduler = ArchiveScheduler(load_settings(config_path), metrics_file=metrics_file)
        scheduler.start()
    except Exception as e:
        log.exception("Scheduler failed to start: %s", e)
        sys.exit(1)
