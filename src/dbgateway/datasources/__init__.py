"""Datasource configuration, engine creation, registry and dialect metadata."""
from dbgateway.datasources.config import DatasourceConfig, DatasourceFileConfig, PoolConfig, load_configs
from dbgateway.datasources.dialect import DatabaseType, DialectInfo, DialectInspector, resolve_database_type
from dbgateway.datasources.engine_factory import make_engine
from dbgateway.datasources.registry import BackendHandle, DatasourceRegistry

__all__ = [
    "BackendHandle",
    "DatabaseType",
    "DatasourceConfig",
    "DatasourceFileConfig",
    "DatasourceRegistry",
    "DialectInfo",
    "DialectInspector",
    "PoolConfig",
    "load_configs",
    "make_engine",
    "resolve_database_type",
]
