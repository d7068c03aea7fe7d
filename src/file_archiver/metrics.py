"""Prometheus metrics for archive runs.

Metrics live in the default prometheus_client registry; ``write_metrics``
dumps them in the text exposition format (e.g. for the node_exporter
textfile collector after a cron-driven run).
"""

from __future__ import annotations

from prometheus_client import REGISTRY, Counter, Histogram, write_to_textfile

from .logger import get_logger

log = get_logger(__name__)

archive_cycles_total = Counter(
    "file_archiver_cycles_total",
    "Archive windows processed",
    ["strategy", "outcome"],
)

archive_files_total = Counter(
    "file_archiver_files_archived_total",
    "Files handed to the archive plugin",
    ["entry"],
)

archive_files_deleted_total = Counter(
    "file_archiver_files_deleted_total",
    "Archived files deleted from disk",
    ["entry"],
)

archive_bytes_total = Counter(
    "file_archiver_bytes_archived_total",
    "Size in bytes of the files handed to the archive plugin",
    ["entry"],
)

archive_errors_total = Counter(
    "file_archiver_errors_total",
    "Errors by stage",
    ["stage"],
)

archive_entry_duration_seconds = Histogram(
    "file_archiver_entry_duration_seconds",
    "Time spent processing one archive entry",
    buckets=(0.1, 0.5, 1.0, 5.0, 15.0, 60.0, 300.0, 900.0, 3600.0),
)


def write_metrics(path: str) -> None:
    write_to_textfile(path, REGISTRY)
    log.debug("Metrics written to %s", path)
