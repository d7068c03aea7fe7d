"""
Archive engine.

For every configured archive entry the engine walks backwards through
calendar windows, starting from the retention cursor:

    compute window -> select files -> archive -> store -> delete originals

An entry is finished ("exhausted") when a window holds no file and no older
file remains under its root. Entries are independent: a broken entry is
logged and skipped, the next one still runs.

Usage:
    from file_archiver.config import load_settings
    from file_archiver.engine import Engine

    results = Engine(load_settings("file_archiver.yaml")).run()
"""

from __future__ import annotations

import os
import tempfile
import time
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, BinaryIO, Callable, Dict, List, Optional

from .config import ArchiveSettings, Settings, check_settings, parse_archive_settings
from .errors import ArchiveError
from .logger import get_logger, log_extra
from .metrics import (
    archive_bytes_total,
    archive_cycles_total,
    archive_entry_duration_seconds,
    archive_errors_total,
    archive_files_deleted_total,
    archive_files_total,
)
from .plugins import PluginRegistry, PluginType, default_registry
from .selector import FileSelector
from .windows import ONE_MILLISECOND, DateWindow, initial_cursor, next_window

log = get_logger(__name__)


class EngineState(str, Enum):
    INITIALIZING = "initializing"
    SCANNING = "scanning"
    ARCHIVING = "archiving"
    STORING = "storing"
    CLEANING = "cleaning"
    EXHAUSTED = "exhausted"


class CycleOutcome(str, Enum):
    ARCHIVED = "archived"
    EMPTY = "empty"
    FAILED = "failed"
    DRY_RUN = "dry_run"


@dataclass
class CycleResult:
    window: DateWindow
    files: List[str] = field(default_factory=list)
    outcome: CycleOutcome = CycleOutcome.EMPTY
    stored_at: Optional[str] = None
    deleted: int = 0
    error: Optional[str] = None


@dataclass
class EntryResult:
    name: str
    path: Optional[str] = None
    ok: bool = True
    error: Optional[str] = None
    cursor: Optional[datetime] = None
    cycles: List[CycleResult] = field(default_factory=list)
    probes: int = 0
    duration_seconds: float = 0.0

    @property
    def files_archived(self) -> int:
        return sum(len(c.files) for c in self.cycles if c.outcome is CycleOutcome.ARCHIVED)

    @property
    def files_selected(self) -> int:
        return sum(len(c.files) for c in self.cycles)

    @property
    def failed_cycles(self) -> int:
        return sum(1 for c in self.cycles if c.outcome is CycleOutcome.FAILED)


class Engine:
    """Run every archive entry of a configuration."""

    def __init__(
        self,
        settings: Settings,
        registry: Optional[PluginRegistry] = None,
        today: Optional[Callable[[], date]] = None,
        dry_run: bool = False,
    ):
        """
        Initialize the engine.

        Args:
            settings: Loaded configuration
            registry: Plugin registry (defaults to the built-in plugins)
            today: Callable returning the reference day for retention cursors
            dry_run: Select and report files without archiving or deleting
        """
        self.settings = settings
        self.registry = registry or default_registry
        self._today = today or date.today
        self.dry_run = dry_run
        self.state = EngineState.INITIALIZING

    def run(self) -> List[EntryResult]:
        log.info("Start archiving files.")

        results = []
        for index, raw in enumerate(self.settings.entries()):
            results.append(self.run_entry(raw, index))

        log.info("End archiving files.")
        return results

    def run_entry(self, raw: Dict[str, Any], index: int = 0) -> EntryResult:
        """Validate and process one raw entry; never raises."""
        fallback_name = raw.get("name") or raw.get("Name") if isinstance(raw, dict) else None
        result = EntryResult(name=fallback_name or f"entry-{index}")
        started = time.monotonic()
        try:
            entry = parse_archive_settings(raw)
            result.name = entry.name or entry.path or result.name
            result.path = entry.path
            check_settings(entry)
            self.archive_and_store_files(entry, result)
        except Exception as e:
            log.error("Archive entry %s failed: %s", result.name, e, exc_info=True, extra=log_extra(entry=result.name))
            archive_errors_total.labels(stage="entry").inc()
            result.ok = False
            result.error = str(e)
        finally:
            result.duration_seconds = time.monotonic() - started
            archive_entry_duration_seconds.observe(result.duration_seconds)
        return result

    def archive_and_store_files(self, entry: ArchiveSettings, result: Optional[EntryResult] = None) -> EntryResult:
        """
        Process windows of one validated entry until no older file remains.

        Plugin and cleanup failures are logged and do not stop the loop;
        invalid retention parameters or strategies propagate.
        """
        result = result or EntryResult(name=entry.display_name, path=entry.path)
        selector = FileSelector.from_settings(entry)
        self.check_plugins(entry)

        self.state = EngineState.INITIALIZING
        cursor = initial_cursor(entry.retention_date_parameters, self._today())
        result.cursor = cursor

        log.info("Archiving files in %s ...", entry.path)

        while True:
            self.state = EngineState.SCANNING
            window = next_window(cursor, entry.strategy, entry.first_day_of_week)
            files = selector.select(window)

            if files:
                cycle = self._process_window(entry, selector, window, files)
                result.cycles.append(cycle)
                archive_cycles_total.labels(strategy=entry.strategy.value, outcome=cycle.outcome.value).inc()
            else:
                result.cycles.append(CycleResult(window=window))
                archive_cycles_total.labels(strategy=entry.strategy.value, outcome=CycleOutcome.EMPTY.value).inc()
                result.probes += 1
                if not self._has_older_files(selector, window):
                    break

            cursor = window.start

        self.state = EngineState.EXHAUSTED
        log.info(
            "Finished %s: %d files archived in %d windows.",
            entry.display_name,
            result.files_archived,
            len(result.cycles),
            extra=log_extra(entry=entry.display_name, probes=result.probes),
        )
        return result

    def check_plugins(self, entry: ArchiveSettings) -> None:
        """Fail fast on plugin names missing from the registry."""
        self.registry.spec(PluginType.ARCHIVE, entry.archive.name)
        self.registry.spec(PluginType.STORAGE, entry.storage.name)

    def _has_older_files(self, selector: FileSelector, window: DateWindow) -> bool:
        try:
            bound = window.start - ONE_MILLISECOND
        except OverflowError:
            return False
        return selector.has_files_before(bound)

    def _process_window(
        self,
        entry: ArchiveSettings,
        selector: FileSelector,
        window: DateWindow,
        files: List[str],
    ) -> CycleResult:
        cycle = CycleResult(window=window, files=files)
        if self.dry_run:
            log.info("[dry-run] Would archive %d files for %s.", len(files), window)
            cycle.outcome = CycleOutcome.DRY_RUN
            return cycle

        try:
            stream = self.archive_files(entry, selector.entry_names(files))
            try:
                cycle.stored_at = self.store_archive(entry, stream, window)
            finally:
                stream.close()
                _remove_spooled_archive(stream)

            archive_files_total.labels(entry=entry.display_name).inc(len(files))
            archive_bytes_total.labels(entry=entry.display_name).inc(_total_size(files))

            self.state = EngineState.CLEANING
            if entry.delete_archived_files:
                cycle.deleted = self.delete_archived_files(files)
                archive_files_deleted_total.labels(entry=entry.display_name).inc(cycle.deleted)

            if entry.include_subfolders and entry.delete_empty_subfolders:
                self.delete_empty_directories(selector.root, files)

            cycle.outcome = CycleOutcome.ARCHIVED
        except Exception as e:
            log.error("Archiving %s for %s failed: %s", entry.display_name, window, e, exc_info=True)
            archive_errors_total.labels(stage=self.state.value).inc()
            cycle.outcome = CycleOutcome.FAILED
            cycle.error = str(e)
        return cycle

    def archive_files(self, entry: ArchiveSettings, files: Dict[str, str]) -> BinaryIO:
        """Archive files with the entry's archive plugin; the stream is rewound."""
        self.state = EngineState.ARCHIVING
        log.info("Archiving files using '%s' archive plugin...", entry.archive.name)

        archiver = self.registry.get_archiver(entry.archive.name, entry.archive.settings_section())
        stream = archiver.archive(files)
        if stream is None:
            raise ArchiveError("Archive stream cannot be None.")

        if stream.seekable():
            stream.seek(0)
        return stream

    def store_archive(self, entry: ArchiveSettings, stream: BinaryIO, window: DateWindow) -> str:
        self.state = EngineState.STORING
        log.info("Storing archive using '%s' storage plugin...", entry.storage.name)

        storage = self.registry.get_storage(entry.storage.name, entry.storage.settings_section())
        location = storage.store(stream, window.start, window.end)
        log.info("Archive stored: %s", location)
        return location

    def delete_archived_files(self, files: List[str]) -> int:
        """Delete files one by one; failures are logged and skipped."""
        log.info("Deleting archived files...")

        deleted = 0
        for path in files:
            log.debug("Deleting file %s.", path)
            try:
                os.remove(path)
                deleted += 1
            except OSError as e:
                log.warning("Unable to delete file %s: %s", path, e)
                archive_errors_total.labels(stage="delete").inc()
        return deleted

    def delete_empty_directories(self, root: str, files: List[str]) -> List[str]:
        """Remove now-empty parent directories of ``files``, deepest first, never ``root``."""
        root = os.path.normpath(root)
        directories = {os.path.normpath(os.path.dirname(path)) for path in files}
        directories.discard(root)

        removed = []
        for directory in sorted(directories, reverse=True):
            try:
                with os.scandir(directory) as it:
                    if any(True for _ in it):
                        continue
                os.rmdir(directory)
                removed.append(directory)
            except OSError as e:
                log.warning("Unable to delete directory %s: %s", directory, e)
        return removed


def _remove_spooled_archive(stream: BinaryIO) -> None:
    """Delete the temporary file behind ``stream`` if storage left it in place."""
    name = getattr(stream, "name", None)
    if not isinstance(name, str) or not os.path.isfile(name):
        return
    if os.path.dirname(os.path.abspath(name)) != os.path.abspath(tempfile.gettempdir()):
        return
    try:
        os.remove(name)
        log.debug("Removed temporary archive %s.", name)
    except OSError as e:
        log.warning("Could not remove temporary archive %s: %s", name, e)


def _total_size(files: List[str]) -> int:
    total = 0
    for path in files:
        try:
            total += os.path.getsize(path)
        except OSError:
            # Already gone (deleted or moved by a plugin)
            continue
    return total


def run_archive(
    settings: Settings,
    registry: Optional[PluginRegistry] = None,
    dry_run: bool = False,
) -> List[EntryResult]:
    """Convenience wrapper: run every entry once."""
    return Engine(settings, registry=registry, dry_run=dry_run).run()
