from __future__ import annotations

import dataclasses
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from dbgateway.common.errors import ConfigurationError
from dbgateway.common.logger import get_logger
from dbgateway.datasources.config import DatasourceConfig
from dbgateway.datasources.engine_factory import make_engine

logger = get_logger("datasource_registry")


@dataclasses.dataclass(frozen=True)
class BackendHandle:
    """
    A named connection source.

    Attributes:
        name: Stable identifier of the backend.
        engine: Anything exposing ``connect()`` that returns a context-managed
            connection; normally a SQLAlchemy Engine owning the pool.
        is_default: Whether this backend answers default-datasource calls.
        config: The configuration the engine was built from, if any.
    """
    name: str
    engine: Any
    is_default: bool = False
    config: Optional[DatasourceConfig] = None


class DatasourceRegistry:
    """
    Holds the named backends of the process.

    The registry is built once at startup and never mutated afterwards, so
    lookups are plain dictionary reads that are safe from any thread.
    """

    def __init__(self, handles: Iterable[BackendHandle]):
        """
        Initializes the registry with a set of handles.

        Args:
            handles: Backend handles; names must be unique and at most one
                handle may be the default.

        Raises:
            ConfigurationError: On duplicate names or several defaults.
        """
        by_name: Dict[str, BackendHandle] = {}
        for handle in handles:
            if handle.name in by_name:
                raise ConfigurationError(f"Duplicate datasource name: '{handle.name}'")
            by_name[handle.name] = handle

        defaults = [h.name for h in by_name.values() if h.is_default]
        if len(defaults) > 1:
            raise ConfigurationError(f"At most one default datasource is allowed, found: {defaults}")

        self._handles: Mapping[str, BackendHandle] = MappingProxyType(by_name)
        self._default_name: Optional[str] = defaults[0] if defaults else None

    @classmethod
    def from_configs(
        cls,
        configs: Iterable[DatasourceConfig],
        engine_factory: Callable[[DatasourceConfig], Any] = make_engine,
    ) -> "DatasourceRegistry":
        """Builds one engine per configuration."""
        handles = []
        for config in configs:
            try:
                engine = engine_factory(config)
            except Exception as e:
                raise ConfigurationError(f"Cannot create engine for datasource '{config.id}': {e}") from e
            handles.append(BackendHandle(name=config.id, engine=engine, is_default=config.default, config=config))
            logger.info(f"Registered datasource '{config.id}'{' (default)' if config.default else ''}")
        return cls(handles)

    def get_handle(self, name: str) -> Optional[BackendHandle]:
        """Returns the handle registered under ``name``, or None."""
        return self._handles.get(name)

    def names(self) -> List[str]:
        """Returns all registered names in registration order."""
        return list(self._handles.keys())

    def list_handles(self) -> List[BackendHandle]:
        return list(self._handles.values())

    def default_name(self) -> Optional[str]:
        """Returns the default backend name, or None when none is configured."""
        return self._default_name

    def default_handle(self) -> Optional[BackendHandle]:
        if self._default_name is None:
            return None
        return self._handles[self._default_name]

    def __len__(self) -> int:
        return len(self._handles)

    def __contains__(self, name: object) -> bool:
        return name in self._handles

    def dispose(self) -> None:
        """Closes the pools of every engine; called at process shutdown."""
        for handle in self._handles.values():
            dispose = getattr(handle.engine, "dispose", None)
            if callable(dispose):
                try:
                    dispose()
                except Exception as e:
                    logger.warning(f"Failed to dispose engine for '{handle.name}': {e}")
