"""
The gateway facade: the fixed set of operations exposed to callers.

Every operation returns a JSON-ready value. Failures are reported in-band as
dictionaries carrying an ``error`` key; nothing here raises at call time.
"""
from __future__ import annotations

import pathlib
from typing import Any, Dict, List, Optional

from dbgateway.common.errors import error_payload
from dbgateway.common.logger import get_logger, trace_context
from dbgateway.datasources.config import load_configs
from dbgateway.datasources.dialect import UNKNOWN_DATABASE, DialectInspector, resolve_database_type
from dbgateway.datasources.registry import BackendHandle, DatasourceRegistry
from dbgateway.execution.executor import StatementExecutor
from dbgateway.execution.fanout import FanOutOrchestrator
from dbgateway.extensions.invoker import ExtensionInvoker
from dbgateway.extensions.registry import ExtensionRegistry
from dbgateway.security.validator import SqlSecurityValidator

logger = get_logger("gateway")

EMPTY_SQL_MESSAGE = "SQL statement is empty"


def _sql_head(sql: str, limit: int = 120) -> str:
    flat = " ".join(sql.split())
    return flat if len(flat) <= limit else flat[:limit] + "..."


class DatabaseGateway:
    """Multi-backend SQL execution plus named extension invocation."""

    def __init__(
        self,
        registry: DatasourceRegistry,
        orchestrator: FanOutOrchestrator,
        extensions: ExtensionRegistry,
        invoker: Optional[ExtensionInvoker] = None,
        inspector: Optional[DialectInspector] = None,
    ):
        self.registry = registry
        self.orchestrator = orchestrator
        self.extensions = extensions
        self.invoker = invoker or ExtensionInvoker(extensions)
        self.inspector = inspector or DialectInspector()

    def _blank(self, sql: Optional[str]) -> Optional[Dict[str, Any]]:
        if sql is None or not sql.strip():
            logger.warning("Rejected empty SQL statement")
            return error_payload(EMPTY_SQL_MESSAGE)
        return None

    def execute_sql(self, sql: str) -> Dict[str, Any]:
        """Runs ``sql`` concurrently on every registered datasource.

        Returns ``{name: result}``; a backend that fails contributes
        ``{"error": message}`` and one that misses the batch deadline is absent.
        """
        with trace_context():
            logger.info(f"Executing SQL on all datasources: {_sql_head(sql or '')}")
            return self._blank(sql) or self.orchestrator.execute_on_all(sql)

    def execute_sql_on_default(self, sql: str) -> Any:
        """Runs ``sql`` on the default datasource only."""
        with trace_context():
            logger.info(f"Executing SQL on default datasource: {_sql_head(sql or '')}")
            return self._blank(sql) or self.orchestrator.execute_on_default(sql)

    def execute_sql_with_datasource(self, datasource_name: str, sql: str) -> Dict[str, Any]:
        """Runs ``sql`` on one named datasource; the result is keyed by that name."""
        with trace_context():
            logger.info(f"Executing SQL on datasource [{datasource_name}]: {_sql_head(sql or '')}")
            return self._blank(sql) or self.orchestrator.execute_on_one(datasource_name, sql)

    def get_datasources_info(self) -> Dict[str, Any]:
        """Describes every datasource so callers can phrase dialect-correct SQL.

        Each entry is computed from a live connection at call time. A backend
        that cannot be reached is still listed, with its fields set to
        ``Unknown``.
        """
        with trace_context():
            default_name = self.registry.default_name()
            datasources: Dict[str, Any] = {}
            for handle in self.registry.list_handles():
                info = self.inspector.describe(handle)
                datasources[handle.name] = info.to_payload(is_default=handle.name == default_name)
            return {
                "default_datasource": default_name,
                "total_count": len(self.registry),
                "datasources": datasources,
            }

    def get_all_extensions(self) -> List[Dict[str, Any]]:
        return [extension.describe() for extension in self.extensions.list()]

    def execute_extension(self, extension_name: str, input: Optional[str]) -> Any:
        """Applies a named extension to ``input``; failures carry an ``error_code``."""
        with trace_context():
            logger.info(f"Executing extension [{extension_name}]")
            return self.invoker.invoke(extension_name, input).to_payload()

    def default_database_type(self) -> str:
        """Display name of the default backend's database type, from configuration only."""
        handle = self.registry.default_handle()
        if handle is None:
            return UNKNOWN_DATABASE
        return resolve_database_type(url=_handle_url(handle))

    def close(self) -> None:
        self.registry.dispose()

    def __enter__(self) -> "DatabaseGateway":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()


def _handle_url(handle: BackendHandle) -> Optional[str]:
    if handle.config is not None:
        return handle.config.sqlalchemy_url
    url = getattr(handle.engine, "url", None)
    return str(url) if url is not None else None


def build_gateway(
    settings: Any,
    datasource_config: Optional[pathlib.Path] = None,
    extension_config: Optional[pathlib.Path] = None,
) -> DatabaseGateway:
    """
    Wires a gateway from settings and the two YAML files.

    Args:
        settings: The application ``Settings``.
        datasource_config: Overrides ``settings.datasource_config_path``.
        extension_config: Overrides ``settings.extension_config_path``.

    Raises:
        FileNotFoundError: If the datasource file does not exist.
        ConfigurationError: If either file is invalid or an engine cannot be built.
    """
    ds_path = datasource_config or pathlib.Path(settings.datasource_config_path)
    ext_path = extension_config or pathlib.Path(settings.extension_config_path)

    registry = DatasourceRegistry.from_configs(load_configs(ds_path))
    validator = SqlSecurityValidator.from_settings(settings)
    orchestrator = FanOutOrchestrator.from_settings(registry, validator, settings, executor=StatementExecutor())
    extensions = ExtensionRegistry.from_config(ext_path)

    logger.info(
        f"Gateway ready: {len(registry)} datasource(s), default "
        f"[{registry.default_name() or 'none'}], {len(extensions)} extension(s)"
    )
    return DatabaseGateway(registry, orchestrator, extensions)
