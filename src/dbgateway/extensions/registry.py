from __future__ import annotations

import importlib
import pathlib
from importlib.metadata import entry_points
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, model_validator

from dbgateway.common.errors import ConfigurationError
from dbgateway.common.logger import get_logger
from dbgateway.extensions.builtins import builtin_extensions
from dbgateway.extensions.models import Extension, ExtensionParameter

logger = get_logger("extension_registry")

ENTRY_POINT_GROUP = "dbgateway.extensions"


class ExtensionEntryConfig(BaseModel):
    """One extension declared in extensions.yaml."""
    name: str
    handler: str = Field(..., description="Dotted path to the transform, 'package.module:function'.")
    description: str = ""
    parameters: Optional[List[ExtensionParameter]] = None
    enabled: bool = True


class ExtensionFileConfig(BaseModel):
    """File-level schema for extensions.yaml."""
    version: int = Field(1, description="Schema version")
    include_builtins: bool = True
    extensions: List[ExtensionEntryConfig] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_unique(self) -> "ExtensionFileConfig":
        seen = set()
        for entry in self.extensions:
            if entry.name in seen:
                raise ValueError(f"Duplicate extension name: '{entry.name}'")
            seen.add(entry.name)
        return self


def resolve_handler(path: str) -> Callable[..., Any]:
    """Imports ``package.module:attribute`` (attribute may be dotted) and returns it.

    Raises:
        ConfigurationError: If the path is malformed, cannot be imported, or
            does not name a callable.
    """
    module_name, sep, attr_path = path.partition(":")
    if not sep or not module_name or not attr_path:
        raise ConfigurationError(f"Invalid handler '{path}', expected 'package.module:function'")
    try:
        target: Any = importlib.import_module(module_name)
        for attr in attr_path.split("."):
            target = getattr(target, attr)
    except (ImportError, AttributeError) as e:
        raise ConfigurationError(f"Cannot resolve handler '{path}': {e}") from e
    if not callable(target):
        raise ConfigurationError(f"Handler '{path}' is not callable")
    return target


def _first_line(doc: Optional[str]) -> str:
    return (doc or "").strip().splitlines()[0] if doc and doc.strip() else ""


def discover_extensions(group: str = ENTRY_POINT_GROUP) -> List[Extension]:
    """Discovers installed extensions via entry points.

    An entry point may load either an ``Extension`` or a bare callable, in which
    case the entry point name becomes the extension name. Broken plugins are
    logged and skipped.
    """
    discovered: List[Extension] = []
    for ep in entry_points(group=group):
        try:
            loaded = ep.load()
        except Exception as e:
            logger.error(f"Failed to load extension {ep.name}: {e}")
            continue
        if isinstance(loaded, Extension):
            discovered.append(loaded)
        elif callable(loaded):
            discovered.append(Extension(name=ep.name, description=_first_line(loaded.__doc__), body=loaded))
        else:
            logger.error(f"Entry point {ep.name} is neither an Extension nor callable, skipping")
    return discovered


class ExtensionRegistry:
    """
    Name -> Extension lookup, fixed at construction.

    Bodies are resolved once when the registry is built; invoking an extension
    never imports or reflects anything.
    """

    def __init__(self, extensions: Iterable[Extension]):
        by_name: Dict[str, Extension] = {}
        for extension in extensions:
            if extension.name in by_name:
                raise ConfigurationError(f"Duplicate extension name: '{extension.name}'")
            by_name[extension.name] = extension
        self._extensions: Mapping[str, Extension] = MappingProxyType(by_name)

    @classmethod
    def builtin(cls) -> "ExtensionRegistry":
        return cls(builtin_extensions().values())

    @classmethod
    def from_config(cls, path: Optional[pathlib.Path] = None, discover: bool = True) -> "ExtensionRegistry":
        """
        Builds the registry from extensions.yaml plus installed plugins.

        Built-in transforms are registered when the file is absent, or when it
        sets ``include_builtins`` (the default).

        Args:
            path: Path to the YAML file; may be None or point nowhere.
            discover: Whether to load ``dbgateway.extensions`` entry points.

        Raises:
            ConfigurationError: On invalid YAML, an unresolvable handler or a
                duplicate name.
        """
        extensions: List[Extension] = []
        if path is None or not path.exists():
            logger.info(f"No extension config found{f' at {path}' if path else ''}, using built-in extensions")
            extensions.extend(builtin_extensions().values())
        else:
            file_config = cls._load_file(path)
            if file_config.include_builtins:
                extensions.extend(builtin_extensions().values())
            for entry in file_config.extensions:
                if not entry.enabled:
                    logger.info(f"Extension '{entry.name}' is disabled, skipping")
                    continue
                body = resolve_handler(entry.handler)
                extension = Extension(name=entry.name, description=entry.description or _first_line(body.__doc__), body=body)
                if entry.parameters is not None:
                    extension = extension.model_copy(update={"parameters": entry.parameters})
                extensions.append(extension)

        if discover:
            extensions.extend(discover_extensions())

        registry = cls(extensions)
        logger.info(f"Registered {len(registry)} extension(s): {registry.names()}")
        return registry

    @staticmethod
    def _load_file(path: pathlib.Path) -> ExtensionFileConfig:
        try:
            raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Failed to parse YAML from {path}: {e}") from e
        try:
            return ExtensionFileConfig.model_validate(raw)
        except ValidationError as e:
            raise ConfigurationError(f"Extension Configuration Invalid: {e}") from e

    def resolve(self, name: str) -> Optional[Extension]:
        return self._extensions.get(name)

    def list(self) -> List[Extension]:
        return list(self._extensions.values())

    def names(self) -> List[str]:
        return list(self._extensions.keys())

    def __len__(self) -> int:
        return len(self._extensions)

    def __contains__(self, name: object) -> bool:
        return name in self._extensions
