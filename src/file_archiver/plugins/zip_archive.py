from __future__ import annotations

import io
import logging
import os
import tempfile
import zipfile
from enum import Enum
from typing import BinaryIO, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_pascal

from ..config import coerce_enum
from ..errors import ArchiveError, InvalidArgumentError
from ..logger import get_logger
from .base import Archiver


class ZipCompression(str, Enum):
    STORED = "stored"
    DEFLATED = "deflated"
    BZIP2 = "bzip2"
    LZMA = "lzma"


_ZIP_METHODS = {
    ZipCompression.STORED: zipfile.ZIP_STORED,
    ZipCompression.DEFLATED: zipfile.ZIP_DEFLATED,
    ZipCompression.BZIP2: zipfile.ZIP_BZIP2,
    ZipCompression.LZMA: zipfile.ZIP_LZMA,
}


class ZipArchiveSettings(BaseModel):
    model_config = ConfigDict(alias_generator=to_pascal, populate_by_name=True)

    compression: ZipCompression = ZipCompression.DEFLATED
    compression_level: Optional[int] = Field(default=None, ge=0, le=9)
    # Build the archive in a temporary file instead of memory.
    use_file: bool = False

    @field_validator("compression", mode="before")
    @classmethod
    def _compression(cls, value):
        return coerce_enum(ZipCompression, value)


class ZipArchive(Archiver):
    """Pack the selected files into a zip, keeping their relative folders."""

    def __init__(self, settings: ZipArchiveSettings, logger: Optional[logging.Logger] = None):
        self.settings = settings
        self.log = logger or get_logger(__name__)

    def _open_stream(self) -> BinaryIO:
        if self.settings.use_file:
            return tempfile.NamedTemporaryFile(prefix="file_archiver_", suffix=".zip", delete=False)
        return io.BytesIO()

    def archive(self, files: Mapping[str, str]) -> BinaryIO:
        if files is None:
            raise InvalidArgumentError("files cannot be None.")

        stream = self._open_stream()
        try:
            with zipfile.ZipFile(
                stream,
                mode="w",
                compression=_ZIP_METHODS[self.settings.compression],
                compresslevel=self.settings.compression_level,
            ) as zf:
                for entry_name, path in files.items():
                    self.log.debug("Adding file %s.", path)
                    zf.write(path, arcname=entry_name)
        except Exception as e:
            stream.close()
            if self.settings.use_file:
                os.remove(stream.name)
            raise ArchiveError(f"Unable to create zip archive: {e}") from e

        stream.seek(0)
        self.log.info("Zip archive created with %d entries.", len(files))
        return stream
