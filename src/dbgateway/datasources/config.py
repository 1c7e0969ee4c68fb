from __future__ import annotations

import pathlib
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, model_validator

from dbgateway.common.errors import ConfigurationError
from dbgateway.common.logger import get_logger
from dbgateway.common.secrets import secret_resolver

logger = get_logger("datasource_config")


class PoolConfig(BaseModel):
    """Connection pool sizing handed to SQLAlchemy's QueuePool."""
    size: int = 5
    max_overflow: int = 10
    timeout_sec: float = 30
    recycle_sec: int = 1800


class DatasourceConfig(BaseModel):
    """Configuration for a single named backend."""
    id: str
    sqlalchemy_url: str
    description: Optional[str] = None
    default: bool = False
    statement_timeout_ms: Optional[int] = None
    pool: PoolConfig = Field(default_factory=PoolConfig)
    connect_args: Dict[str, Any] = Field(default_factory=dict)

    model_config = {"extra": "ignore"}


class DatasourceFileConfig(BaseModel):
    """File-level schema for datasources.yaml."""
    version: int = Field(1, description="Schema version")
    datasources: List[DatasourceConfig] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_unique(self) -> "DatasourceFileConfig":
        seen = set()
        for ds in self.datasources:
            if ds.id in seen:
                raise ValueError(f"Duplicate datasource id: '{ds.id}'")
            seen.add(ds.id)

        defaults = [ds.id for ds in self.datasources if ds.default]
        if len(defaults) > 1:
            raise ValueError(f"At most one default datasource is allowed, found: {defaults}")
        return self


def load_configs(path: pathlib.Path) -> List[DatasourceConfig]:
    """
    Load datasource configurations from a YAML file.

    Secret references such as ``${env:PG_PASSWORD}`` are resolved after the
    envelope has been validated.

    Args:
        path: Path to the YAML configuration file.

    Returns:
        The validated list of DatasourceConfig objects, in file order.

    Raises:
        FileNotFoundError: If the config file does not exist.
        ConfigurationError: If the file is not valid YAML or fails validation.
    """
    if not path.exists():
        raise FileNotFoundError(f"Datasource config not found: {path}")

    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Failed to parse YAML from {path}: {e}") from e

    try:
        file_config = DatasourceFileConfig.model_validate(raw)
    except ValidationError as e:
        raise ConfigurationError(f"Datasource Configuration Invalid: {e}") from e

    try:
        configs = secret_resolver.resolve_object(file_config.datasources)
    except ValueError as e:
        raise ConfigurationError(f"Datasource secret resolution failed: {e}") from e

    logger.info(f"Loaded {len(configs)} datasource(s) from {path}")
    return configs
