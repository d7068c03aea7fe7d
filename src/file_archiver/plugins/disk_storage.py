from __future__ import annotations

import logging
import os
import shutil
from datetime import datetime
from typing import BinaryIO, Callable, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_pascal

from ..config import DateTimeParameters
from ..dates import calculate_datetime
from ..errors import ConfigurationError, DiskStorageError
from ..formatting import format_datetime
from ..logger import get_logger
from ..placeholders import evaluate_string
from .base import Storage

DEFAULT_TIMESTAMP_FORMAT = "yyyyMMddHHmmss"
FILE_NAME_SUFFIX = " ({0})"


class DiskStorageSettings(BaseModel):
    model_config = ConfigDict(alias_generator=to_pascal, populate_by_name=True)

    file_name: Optional[str] = None
    # Consumed in order, one per distinct {Date} placeholder.
    date_parameters: List[DateTimeParameters] = Field(default_factory=list)


def first_non_existing_file_name(file_name: str) -> str:
    """Return ``file_name`` or, if taken, the first free ``name (N).ext``."""
    if not os.path.exists(file_name):
        return file_name

    directory, base_name = os.path.split(file_name)
    stem, extension = os.path.splitext(base_name)
    count = 1
    while True:
        candidate = os.path.join(directory, stem + FILE_NAME_SUFFIX.format(count) + extension)
        if not os.path.exists(candidate):
            return candidate
        count += 1


class DiskStorage(Storage):
    """Write archives to a local (or mounted) directory."""

    def __init__(
        self,
        settings: DiskStorageSettings,
        logger: Optional[logging.Logger] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.settings = settings
        self.log = logger or get_logger(__name__)
        self._clock = clock

    def store(self, stream: BinaryIO, start_date: datetime, end_date: datetime) -> str:
        self._check_settings()

        file_name = first_non_existing_file_name(self.parse_file_name(start_date, end_date))
        self._write_file(stream, file_name)

        if not os.path.exists(file_name):
            raise DiskStorageError(f"An error occurred while storing file {file_name}.")
        return file_name

    def _check_settings(self) -> None:
        if not self.settings.file_name or not self.settings.file_name.strip():
            raise ConfigurationError("The setting FileName is not defined.")

    def parse_file_name(self, start_date: datetime, end_date: datetime) -> str:
        """
        Evaluate the configured file name.

        Supported placeholders (case-insensitive):
            {Date:fmt}       now, adjusted by the next unused date parameters
            {Timestamp:fmt}  now, ``yyyyMMddHHmmss`` by default
            {StartDate:fmt}  window start
            {EndDate:fmt}    window end
        Unknown placeholders are removed.
        """
        now = self._clock()
        pending = list(self.settings.date_parameters)

        def resolve(placeholder: str, name: str, fmt: Optional[str]) -> str:
            key = name.lower()
            if key == "date":
                value = now
                if pending:
                    value = calculate_datetime(value, pending.pop(0))
                return format_datetime(value, fmt)
            if key == "timestamp":
                return format_datetime(now, fmt or DEFAULT_TIMESTAMP_FORMAT)
            if key == "startdate":
                return format_datetime(start_date, fmt)
            if key == "enddate":
                return format_datetime(end_date, fmt)
            self.log.debug("Unknown placeholder %s removed from file name.", placeholder)
            return ""

        return evaluate_string(self.settings.file_name or "", resolve)

    def _write_file(self, stream: BinaryIO, file_name: str) -> None:
        directory = os.path.dirname(file_name)
        if directory:
            os.makedirs(directory, exist_ok=True)

        source = getattr(stream, "name", None)
        if isinstance(source, str) and os.path.isfile(source):
            self.log.info("Moving file to %s.", file_name)
            stream.close()
            shutil.move(source, file_name)
            return

        self.log.info("Writing file %s.", file_name)
        try:
            with open(file_name, "xb") as f:
                shutil.copyfileobj(stream, f)
        except OSError as e:
            raise DiskStorageError(f"Unable to write file {file_name}: {e}") from e
