"""
Static plugin registry.

Plugins are registered explicitly by name together with a factory and an
optional pydantic settings model. A factory is called as
``factory(settings, logger)`` when a settings model is registered, and as
``factory(logger)`` otherwise.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Type

from pydantic import BaseModel, ValidationError

from ..errors import ConfigurationError, PluginError
from ..logger import get_logger
from .base import Archiver, Storage

log = get_logger(__name__)


class PluginType(str, Enum):
    ARCHIVE = "archive"
    STORAGE = "storage"


@dataclass(frozen=True)
class PluginSpec:
    type: PluginType
    name: str
    factory: Callable[..., Any]
    settings_model: Optional[Type[BaseModel]] = None
    aliases: tuple[str, ...] = field(default_factory=tuple)


class PluginRegistry:
    def __init__(self) -> None:
        self._plugins: Dict[PluginType, Dict[str, PluginSpec]] = {t: {} for t in PluginType}

    def register(
        self,
        plugin_type: PluginType,
        name: str,
        factory: Callable[..., Any],
        settings_model: Optional[Type[BaseModel]] = None,
        aliases: Iterable[str] = (),
    ) -> PluginSpec:
        if not name or not name.strip():
            raise PluginError("Plugin name cannot be empty.")

        spec = PluginSpec(plugin_type, name, factory, settings_model, tuple(aliases))
        plugins = self._plugins[plugin_type]
        for key in (name, *spec.aliases):
            if key.lower() in plugins:
                raise PluginError(f"Plugin of type {plugin_type.value} with name {key} was already defined.")
        for key in (name, *spec.aliases):
            plugins[key.lower()] = spec

        log.debug("Registered %s plugin %s", plugin_type.value, name)
        return spec

    def register_archiver(self, name: str, factory: Callable[..., Archiver], settings_model: Optional[Type[BaseModel]] = None, aliases: Iterable[str] = ()) -> PluginSpec:
        return self.register(PluginType.ARCHIVE, name, factory, settings_model, aliases)

    def register_storage(self, name: str, factory: Callable[..., Storage], settings_model: Optional[Type[BaseModel]] = None, aliases: Iterable[str] = ()) -> PluginSpec:
        return self.register(PluginType.STORAGE, name, factory, settings_model, aliases)

    def spec(self, plugin_type: PluginType, name: str) -> PluginSpec:
        try:
            return self._plugins[plugin_type][name.lower()]
        except KeyError:
            raise PluginError(f"Plugin of type {plugin_type.value} with name {name} does not exist.") from None

    def names(self, plugin_type: PluginType) -> List[str]:
        return sorted({spec.name for spec in self._plugins[plugin_type].values()})

    def create(self, plugin_type: PluginType, name: str, section: Optional[Mapping[str, Any]] = None) -> Any:
        spec = self.spec(plugin_type, name)
        logger = get_logger(f"file_archiver.plugins.{spec.name}")

        if spec.settings_model is None:
            return spec.factory(logger)

        try:
            settings = spec.settings_model.model_validate(dict(section or {}))
        except ValidationError as e:
            raise ConfigurationError(f"Invalid settings for {plugin_type.value} plugin {spec.name}: {e}") from e
        return spec.factory(settings, logger)

    def get_archiver(self, name: str, section: Optional[Mapping[str, Any]] = None) -> Archiver:
        return self.create(PluginType.ARCHIVE, name, section)

    def get_storage(self, name: str, section: Optional[Mapping[str, Any]] = None) -> Storage:
        return self.create(PluginType.STORAGE, name, section)


default_registry = PluginRegistry()
