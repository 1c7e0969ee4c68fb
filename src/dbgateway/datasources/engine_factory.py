from __future__ import annotations

import pathlib
from typing import Any, Dict

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url

from dbgateway.datasources.config import DatasourceConfig


def make_engine(config: DatasourceConfig) -> Engine:
    """
    Create a SQLAlchemy engine based on the datasource configuration.

    Engines are lazy: no connection is opened until the first checkout, so a
    misconfigured backend only fails the calls that target it.

    Args:
        config: The datasource configuration.

    Returns:
        A SQLAlchemy Engine instance.
    """
    url = make_url(config.sqlalchemy_url)
    backend = url.get_backend_name()
    connect_args: Dict[str, Any] = dict(config.connect_args)
    kwargs: Dict[str, Any] = {"pool_pre_ping": True}

    if backend == "sqlite":
        # Ensure DB file directory exists for file-based URLs
        if url.database and url.database != ":memory:":
            db_path = pathlib.Path(url.database)
            if not db_path.parent.exists():
                db_path.parent.mkdir(parents=True, exist_ok=True)
        connect_args.setdefault("check_same_thread", False)
        return create_engine(url, connect_args=connect_args, **kwargs)

    kwargs.update(
        pool_size=config.pool.size,
        max_overflow=config.pool.max_overflow,
        pool_timeout=config.pool.timeout_sec,
        pool_recycle=config.pool.recycle_sec,
    )

    if backend == "postgresql" and config.statement_timeout_ms:
        # Server-side bound for statements the fan-out deadline abandons.
        timeout_ms = max(config.statement_timeout_ms, 0)
        connect_args.setdefault("options", f"-c statement_timeout={timeout_ms}")

    return create_engine(url, connect_args=connect_args, **kwargs)
