from __future__ import annotations

import os
import re
from dataclasses import dataclass
from datetime import datetime
from fnmatch import fnmatch
from typing import TYPE_CHECKING, Dict, Iterable, Iterator, List, Optional, Tuple

from .logger import get_logger
from .windows import DateWindow

if TYPE_CHECKING:
    from .config import ArchiveSettings

log = get_logger(__name__)


def normalize_root(path: str) -> str:
    return os.path.normpath(os.path.abspath(path))


def last_write_time(path: str) -> datetime:
    """Local modification time truncated to millisecond precision."""
    value = datetime.fromtimestamp(os.stat(path).st_mtime)
    return value.replace(microsecond=value.microsecond // 1000 * 1000)


def iter_candidate_files(
    root: str,
    file_pattern: Optional[str] = None,
    file_regex: Optional[re.Pattern[str]] = None,
    include_subfolders: bool = False,
    subfolder_pattern: Optional[str] = None,
) -> Iterator[str]:
    """Yield files under ``root`` matching the name filters, depth first."""
    pattern = file_pattern or "*"
    files: List[str] = []
    subdirectories: List[str] = []

    with os.scandir(root) as entries:
        for entry in entries:
            if entry.is_dir():
                if include_subfolders and fnmatch(entry.name, subfolder_pattern or "*"):
                    subdirectories.append(entry.path)
                continue
            if not entry.is_file() or not fnmatch(entry.name, pattern):
                continue
            if file_regex is not None and not file_regex.search(entry.path):
                continue
            files.append(entry.path)

    yield from sorted(files)
    for directory in sorted(subdirectories):
        yield from iter_candidate_files(directory, file_pattern, file_regex, include_subfolders, subfolder_pattern)


def iter_write_times(
    root: str,
    file_pattern: Optional[str] = None,
    file_regex: Optional[re.Pattern[str]] = None,
    include_subfolders: bool = False,
    subfolder_pattern: Optional[str] = None,
) -> Iterator[Tuple[str, datetime]]:
    """Yield (path, last write time) of candidate files, skipping files removed meanwhile."""
    for path in iter_candidate_files(root, file_pattern, file_regex, include_subfolders, subfolder_pattern):
        try:
            modified = last_write_time(path)
        except FileNotFoundError:
            log.debug("File %s vanished before its last write time was read.", path)
            continue
        yield path, modified


def select_files(
    root: str,
    start: datetime,
    end: datetime,
    file_pattern: Optional[str] = None,
    file_regex: Optional[re.Pattern[str]] = None,
    include_subfolders: bool = False,
    subfolder_pattern: Optional[str] = None,
) -> List[str]:
    """Sorted files whose last write time falls in ``[start, end]``."""
    selected = {
        path
        for path, modified in iter_write_times(root, file_pattern, file_regex, include_subfolders, subfolder_pattern)
        if start <= modified <= end
    }
    return sorted(selected)


def has_files_before(
    root: str,
    bound: datetime,
    file_pattern: Optional[str] = None,
    file_regex: Optional[re.Pattern[str]] = None,
    include_subfolders: bool = False,
    subfolder_pattern: Optional[str] = None,
) -> bool:
    """True if any candidate file was last written at or before ``bound``."""
    return any(
        modified <= bound
        for _, modified in iter_write_times(root, file_pattern, file_regex, include_subfolders, subfolder_pattern)
    )


def archive_entry_names(root: str, files: Iterable[str]) -> Dict[str, str]:
    """Map each file to its path relative to ``root`` (its name inside the archive)."""
    normalized = normalize_root(root)
    return {os.path.relpath(normalize_root(path), normalized): path for path in files}


@dataclass(frozen=True)
class FileSelector:
    """Name filters of one archive entry, bound to its root directory."""
    root: str
    file_pattern: Optional[str] = None
    file_regex: Optional[re.Pattern[str]] = None
    include_subfolders: bool = False
    subfolder_pattern: Optional[str] = None

    @classmethod
    def from_settings(cls, settings: ArchiveSettings) -> FileSelector:
        return cls(
            root=settings.normalized_path,
            file_pattern=settings.file_pattern,
            file_regex=settings.file_regex,
            include_subfolders=settings.include_subfolders,
            subfolder_pattern=settings.subfolder_pattern,
        )

    def select(self, window: DateWindow) -> List[str]:
        log.info("Searching files to archive for period %s ...", window)
        files = select_files(
            self.root,
            window.start,
            window.end,
            self.file_pattern,
            self.file_regex,
            self.include_subfolders,
            self.subfolder_pattern,
        )
        log.info("Found %d files to archive.", len(files))
        return files

    def has_files_before(self, bound: datetime) -> bool:
        return has_files_before(
            self.root,
            bound,
            self.file_pattern,
            self.file_regex,
            self.include_subfolders,
            self.subfolder_pattern,
        )

    def entry_names(self, files: Iterable[str]) -> Dict[str, str]:
        return archive_entry_names(self.root, files)
