from __future__ import annotations

import time
from typing import Any

from dbgateway.common.errors import ErrorCode, ResultNormalizationError, driver_message
from dbgateway.common.logger import get_logger
from dbgateway.common.serialization import rows_to_dicts
from dbgateway.datasources.registry import BackendHandle
from dbgateway.execution.contracts import ExecutionOutcome

logger = get_logger("statement_executor")


def _sql_head(sql: str, limit: int = 200) -> str:
    flat = " ".join(sql.split())
    return flat if len(flat) <= limit else flat[:limit] + "..."


class StatementExecutor:
    """
    Runs one statement on one backend through a single connection checkout.

    The connection is scoped by ``with``, so it returns to the pool on every
    exit path. Nothing raises past ``execute``: driver failures, connection
    failures and values that cannot be normalized all become an
    ``ExecutionOutcome`` carrying the underlying message.
    """

    def execute(self, handle: BackendHandle, sql: str) -> ExecutionOutcome:
        start = time.perf_counter()

        def _elapsed_ms() -> float:
            return (time.perf_counter() - start) * 1000

        try:
            data = self._run(handle.engine, sql)
        except ResultNormalizationError as exc:
            logger.error(f"Result from datasource [{handle.name}] could not be normalized: {exc}")
            return ExecutionOutcome.failed(
                f"Result could not be converted: {exc}",
                ErrorCode.NORMALIZATION_ERROR,
                execution_time_ms=_elapsed_ms(),
            )
        except Exception as exc:
            message = driver_message(exc)
            logger.error(f"SQL execution error on datasource [{handle.name}]: {message}")
            return ExecutionOutcome.failed(
                message,
                ErrorCode.DB_EXECUTION_ERROR,
                execution_time_ms=_elapsed_ms(),
            )

        logger.debug(f"Executed on [{handle.name}] in {_elapsed_ms():.1f}ms: {_sql_head(sql)}")
        return ExecutionOutcome.ok(data, execution_time_ms=_elapsed_ms())

    def _run(self, engine: Any, sql: str) -> Any:
        with engine.connect() as conn:
            # exec_driver_sql skips SQLAlchemy's bind parsing, so ":name" inside a
            # literal stays literal. no_parameters makes it call cursor.execute(sql)
            # without an args collection; format/pyformat drivers otherwise apply
            # %-interpolation and choke on LIKE 'a%'.
            result = conn.execution_options(no_parameters=True).exec_driver_sql(sql)
            try:
                if result.returns_rows:
                    columns = list(result.keys())
                    data: Any = rows_to_dicts(columns, result.fetchall())
                else:
                    data = result.rowcount
            finally:
                result.close()
            conn.commit()
            return data
