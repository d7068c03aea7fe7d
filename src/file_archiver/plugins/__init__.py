"""Archive and storage plugins shipped with file_archiver."""

from .base import Archiver, Storage
from .disk_storage import DiskStorage, DiskStorageSettings
from .registry import PluginRegistry, PluginSpec, PluginType, default_registry
from .zip_archive import ZipArchive, ZipArchiveSettings


def register_builtin_plugins(registry: PluginRegistry) -> PluginRegistry:
    registry.register_archiver("ZipArchive", ZipArchive, ZipArchiveSettings, aliases=("FileArchiver.ZipArchive", "zip"))
    registry.register_storage("DiskStorage", DiskStorage, DiskStorageSettings, aliases=("FileArchiver.DiskStorage", "disk"))
    return registry


register_builtin_plugins(default_registry)


__all__ = [
    "Archiver",
    "DiskStorage",
    "DiskStorageSettings",
    "PluginRegistry",
    "PluginSpec",
    "PluginType",
    "Storage",
    "ZipArchive",
    "ZipArchiveSettings",
    "default_registry",
    "register_builtin_plugins",
]
