"""Interfaces the engine expects from archive and storage plugins."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import BinaryIO, Mapping


class Archiver(ABC):
    @abstractmethod
    def archive(self, files: Mapping[str, str]) -> BinaryIO:
        """
        Pack files into a single archive stream.

        Args:
            files: Entry name (path relative to the archive root) to full path

        Returns:
            Seekable stream holding the archive
        """


class Storage(ABC):
    @abstractmethod
    def store(self, stream: BinaryIO, start_date: datetime, end_date: datetime) -> str:
        """
        Persist an archive stream produced for the ``[start_date, end_date]`` window.

        Returns:
            Location the archive was stored at
        """
