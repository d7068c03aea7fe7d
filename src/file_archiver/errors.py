"""Exception hierarchy shared by the engine and the plugins."""

from __future__ import annotations


class FileArchiverError(Exception):
    """Base class for every error raised by file_archiver."""


class ConfigurationError(FileArchiverError):
    """An archive entry (or a plugin settings block) is missing or invalid."""


class InvalidArgumentError(FileArchiverError, ValueError):
    """A value passed to a function is malformed (bad sign, negative offset...)."""


class UnsupportedOperationError(FileArchiverError, ValueError):
    """A symbolic date parameter is not part of the date language."""

    def __init__(self, scope: object, parameter: str) -> None:
        self.scope = scope
        self.parameter = parameter
        scope_name = getattr(scope, "value", scope)
        super().__init__(f"Date time {scope_name} operation '{parameter}' is not supported.")


class PluginError(ConfigurationError):
    """Plugin registration or lookup failed."""


class ArchiveError(FileArchiverError):
    """The archive plugin could not produce an archive."""


class StorageError(FileArchiverError):
    """The storage plugin could not store an archive."""


class DiskStorageError(StorageError):
    pass
