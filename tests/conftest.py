from __future__ import annotations

import os
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict

import pytest
import yaml

from file_archiver.config import Settings, load_settings


@pytest.fixture()
def make_file(tmp_path: Path) -> Callable[..., Path]:
    """Create a file under ``tmp_path`` with a given last write time."""

    def _make(relative: str, modified: datetime, content: str = "data") -> Path:
        path = tmp_path / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        timestamp = modified.timestamp()
        os.utime(path, (timestamp, timestamp))
        return path

    return _make


@pytest.fixture()
def archive_root(tmp_path: Path) -> Path:
    root = tmp_path / "logs"
    root.mkdir()
    return root


@pytest.fixture()
def backup_dir(tmp_path: Path) -> Path:
    target = tmp_path / "backup"
    target.mkdir()
    return target


@pytest.fixture()
def entry(archive_root: Path, backup_dir: Path) -> Dict[str, Any]:
    """A raw Monthly archive entry writing zips into ``backup_dir``."""
    return {
        "name": "logs",
        "path": str(archive_root),
        "strategy": "Monthly",
        "file_pattern": "*.log",
        "include_subfolders": True,
        "delete_archived_files": True,
        "delete_empty_subfolders": True,
        "archive": {"name": "ZipArchive"},
        "storage": {
            "name": "DiskStorage",
            "file_name": str(backup_dir / "logs_{StartDate:yyyyMMdd}_{EndDate:yyyyMMdd}.zip"),
        },
    }


@pytest.fixture()
def write_settings(tmp_path: Path) -> Callable[..., Path]:
    """Write a settings YAML file and return its path."""

    def _write(data: Dict[str, Any], name: str = "file_archiver.yaml") -> Path:
        path = tmp_path / name
        path.write_text(yaml.safe_dump(data, sort_keys=False), encoding="utf-8")
        return path

    return _write


@pytest.fixture()
def settings(write_settings: Callable[..., Path], entry: Dict[str, Any], monkeypatch: pytest.MonkeyPatch) -> Settings:
    monkeypatch.delenv("FILE_ARCHIVER_CONFIG", raising=False)
    monkeypatch.delenv("FILE_ARCHIVER_LOG_LEVEL", raising=False)
    monkeypatch.delenv("FILE_ARCHIVER_LOG_FORMAT", raising=False)
    return load_settings(str(write_settings({"archive_settings": [entry]})))
