from __future__ import annotations

import os
import re
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Type, TypeVar

import yaml
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_pascal

from .dates import DayOfWeek
from .errors import ConfigurationError
from .logger import get_logger
from .windows import ArchiveStrategy

log = get_logger(__name__)

E = TypeVar("E", bound=Enum)


def coerce_enum(enum_cls: Type[E], value: Any) -> Any:
    """Accept enum members by (case-insensitive) name or value."""
    if isinstance(value, enum_cls) or not isinstance(value, str):
        return value
    text = value.strip()
    for member in enum_cls:
        if text.upper() == member.name or (isinstance(member.value, str) and text.lower() == member.value.lower()):
            return member
    if text.lstrip("-").isdigit():
        return int(text)
    return value


class _Model(BaseModel):
    # Both ``first_day_of_week`` and ``FirstDayOfWeek`` are accepted.
    model_config = ConfigDict(alias_generator=to_pascal, populate_by_name=True)


class DateTimeParameters(_Model):
    """Symbolic date parameters, one per datetime component."""
    model_config = ConfigDict(alias_generator=to_pascal, populate_by_name=True, frozen=True)

    year: Optional[str] = None
    month: Optional[str] = None
    day: Optional[str] = None
    hour: Optional[str] = None
    minute: Optional[str] = None
    second: Optional[str] = None
    millisecond: Optional[str] = None
    first_day_of_week: DayOfWeek = DayOfWeek.SUNDAY

    @field_validator("year", "month", "day", "hour", "minute", "second", "millisecond", mode="before")
    @classmethod
    def _stringify(cls, value: Any) -> Any:
        # YAML turns ``month: 1`` into an int
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("first_day_of_week", mode="before")
    @classmethod
    def _day_of_week(cls, value: Any) -> Any:
        return coerce_enum(DayOfWeek, value)


class PluginReference(_Model):
    """Plugin name plus its own settings block (every other key)."""
    model_config = ConfigDict(alias_generator=to_pascal, populate_by_name=True, extra="allow", frozen=True)

    name: Optional[str] = None

    def settings_section(self) -> Dict[str, Any]:
        return dict(self.model_extra or {})


class ArchiveSettings(_Model):
    """One archive entry: which files to collect and where to put them."""
    model_config = ConfigDict(alias_generator=to_pascal, populate_by_name=True, frozen=True)

    name: Optional[str] = None
    path: Optional[str] = None
    strategy: ArchiveStrategy = ArchiveStrategy.UNKNOWN
    first_day_of_week: DayOfWeek = DayOfWeek.SUNDAY
    retention_date_parameters: Optional[DateTimeParameters] = None
    file_pattern: Optional[str] = None
    file_regex_pattern: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("file_regex_pattern", "FileRegExPattern", "FileRegexPattern"),
    )
    include_subfolders: bool = False
    subfolder_pattern: Optional[str] = None
    delete_archived_files: bool = False
    delete_empty_subfolders: bool = False
    archive: Optional[PluginReference] = None
    storage: Optional[PluginReference] = None

    @field_validator("strategy", mode="before")
    @classmethod
    def _strategy(cls, value: Any) -> Any:
        return coerce_enum(ArchiveStrategy, value)

    @field_validator("first_day_of_week", mode="before")
    @classmethod
    def _day_of_week(cls, value: Any) -> Any:
        return coerce_enum(DayOfWeek, value)

    @field_validator("file_regex_pattern")
    @classmethod
    def _compiles(cls, value: Optional[str]) -> Optional[str]:
        if value:
            try:
                re.compile(value)
            except re.error as e:
                raise ValueError(f"invalid regular expression {value!r}: {e}") from e
        return value

    @property
    def normalized_path(self) -> str:
        return os.path.normpath(os.path.abspath(self.path or ""))

    @property
    def file_regex(self) -> Optional[re.Pattern[str]]:
        return re.compile(self.file_regex_pattern) if self.file_regex_pattern else None

    @property
    def display_name(self) -> str:
        return self.name or self.path or "<unnamed>"


def check_settings(settings: ArchiveSettings) -> None:
    """Raise ConfigurationError if an entry cannot be processed."""
    log.debug("Checking configuration...")

    if not settings.path or not settings.path.strip():
        raise ConfigurationError("Path to archive is empty.")

    if not os.path.isdir(settings.path):
        raise ConfigurationError(f"Directory {settings.path} doesn't exist or is unreachable.")

    if settings.archive is None:
        raise ConfigurationError("Archive configuration is not specified.")

    if not settings.archive.name or not settings.archive.name.strip():
        raise ConfigurationError("Archive plugin name is not specified.")

    if settings.storage is None:
        raise ConfigurationError("Storage configuration is not specified.")

    if not settings.storage.name or not settings.storage.name.strip():
        raise ConfigurationError("Storage plugin name is not specified.")

    if settings.strategy is ArchiveStrategy.UNKNOWN:
        raise ConfigurationError("Strategy is not specified.")


def parse_archive_settings(raw: Any) -> ArchiveSettings:
    """Validate one raw archive entry, reporting problems as ConfigurationError."""
    if not isinstance(raw, dict):
        raise ConfigurationError(f"Archive entry must be a mapping, got {type(raw).__name__}.")
    try:
        return ArchiveSettings.model_validate(raw)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid archive settings: {e}") from e


class LoggingConfig(_Model):
    level: str = "INFO"
    format: str = "rich"  # rich, json
    file: Optional[str] = None


class ScheduleConfig(_Model):
    """Periodic run configuration."""
    enabled: bool = False
    cron: str = "0 2 * * *"
    timezone: Optional[str] = None
    run_on_start: bool = False


class Settings(_Model):
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    schedule: ScheduleConfig = Field(default_factory=ScheduleConfig)
    # Entries stay raw so one broken entry only fails itself at run time.
    archive_settings: List[Any] = Field(default_factory=list)

    def entries(self) -> List[Any]:
        return list(self.archive_settings)

    def find_entry(self, name: str) -> Optional[Dict[str, Any]]:
        for index, raw in enumerate(self.archive_settings):
            entry_name = raw.get("name", raw.get("Name")) if isinstance(raw, dict) else None
            if entry_name == name or str(index) == name:
                return raw
        return None


def _find_settings_path(explicit: Optional[str]) -> Optional[Path]:
    candidates = []
    if explicit:
        candidates.append(Path(explicit))
    env = os.getenv("FILE_ARCHIVER_CONFIG")
    if env:
        candidates.append(Path(env))
    candidates.extend([
        Path("file_archiver.yaml"),
        Path("file_archiver.yml"),
        Path("config/file_archiver.yaml"),
    ])
    for p in candidates:
        if p and p.exists() and p.is_file():
            return p
    return None


def load_settings(path: Optional[str] = None) -> Settings:
    """Load and validate the YAML configuration.

    A top-level ``FileArchiver`` section is unwrapped if present.
    """
    p = _find_settings_path(path)
    if not p:
        if path:
            raise ConfigurationError(f"Configuration file {path} not found.")
        raise ConfigurationError("No configuration file found.")

    try:
        with open(p, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Configuration file {p} is not valid YAML: {e}") from e

    if isinstance(raw, dict) and isinstance(raw.get("FileArchiver"), dict):
        raw = raw["FileArchiver"]

    try:
        s = Settings.model_validate(raw)
    except ValidationError as e:
        log.error("Settings validation failed: %s", e)
        raise ConfigurationError(f"Configuration file {p} is invalid: {e}") from e

    if level := os.getenv("FILE_ARCHIVER_LOG_LEVEL"):
        s.logging.level = level
    if os.getenv("FILE_ARCHIVER_LOG_FORMAT") == "json":
        s.logging.format = "json"

    log.debug("Loaded %d archive entries from %s", len(s.archive_settings), p)
    return s
