"""
Concurrent execution of one statement across many named backends.

Every call owns a short-lived thread pool that is shut down before the call
returns. Units block on database I/O only and never share state.
"""
from __future__ import annotations

import contextvars
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Any, Dict, Iterable, List, Optional

from dbgateway.common.errors import driver_message, error_payload
from dbgateway.common.logger import get_logger
from dbgateway.datasources.registry import BackendHandle, DatasourceRegistry
from dbgateway.execution.executor import StatementExecutor
from dbgateway.security.validator import SqlSecurityValidator

logger = get_logger("fanout")

NO_DEFAULT_MESSAGE = "No default datasource configured"
NO_DATA_MESSAGE = "No data returned from SQL query"
REPORT = "report"
OMIT = "omit"


def not_found_message(name: str) -> str:
    return f"Datasource [{name}] not found"


class FanOutOrchestrator:
    """
    Validates a statement once, then runs it on each target backend in parallel.

    The whole batch shares one wall-clock deadline measured from dispatch.
    Units still running when it expires are abandoned and left out of the
    result; a failing unit becomes ``{"error": message}`` under its own name
    and never affects its siblings.
    """

    def __init__(
        self,
        registry: DatasourceRegistry,
        validator: SqlSecurityValidator,
        executor: Optional[StatementExecutor] = None,
        timeout_sec: float = 60,
        max_workers: int = 32,
        shutdown_grace_sec: float = 5,
        unresolved_policy: str = REPORT,
    ):
        if unresolved_policy not in (REPORT, OMIT):
            raise ValueError(f"Unknown unresolved datasource policy: '{unresolved_policy}'")
        self.registry = registry
        self.validator = validator
        self.executor = executor or StatementExecutor()
        self.timeout_sec = timeout_sec
        self.max_workers = max(1, max_workers)
        self.shutdown_grace_sec = max(0.0, shutdown_grace_sec)
        self.unresolved_policy = unresolved_policy

    @classmethod
    def from_settings(
        cls,
        registry: DatasourceRegistry,
        validator: SqlSecurityValidator,
        settings: Any,
        executor: Optional[StatementExecutor] = None,
    ) -> "FanOutOrchestrator":
        return cls(
            registry,
            validator,
            executor=executor,
            timeout_sec=settings.fanout_timeout_sec,
            max_workers=settings.fanout_max_workers,
            shutdown_grace_sec=settings.fanout_shutdown_grace_sec,
            unresolved_policy=settings.unresolved_datasource_policy,
        )

    def _rejection(self, sql: Optional[str]) -> Optional[Dict[str, Any]]:
        verdict = self.validator.validate(sql)
        if verdict.admitted:
            return None
        return verdict.to_payload(security_enabled=self.validator.enabled)

    def execute_on_all(self, sql: str, names: Optional[Iterable[str]] = None) -> Dict[str, Any]:
        """
        Runs ``sql`` on every named backend, or on all registered ones.

        Args:
            sql: Statement text, passed to each driver untouched.
            names: Target backend names. Defaults to the whole registry.

        Returns:
            Dict[str, Any]: ``{name: rows | update count | {"error": msg}}``, or
            the rejection envelope when the admission check refuses ``sql``.
        """
        rejection = self._rejection(sql)
        if rejection is not None:
            return rejection

        targets = self.registry.names() if names is None else list(dict.fromkeys(names))
        results: Dict[str, Any] = {}
        handles: List[BackendHandle] = []
        for name in targets:
            handle = self.registry.get_handle(name)
            if handle is None:
                logger.warning(f"Datasource [{name}] not found, {'reporting' if self.unresolved_policy == REPORT else 'skipping'}")
                if self.unresolved_policy == REPORT:
                    results[name] = error_payload(not_found_message(name))
                continue
            handles.append(handle)

        logger.info(f"Dispatching statement to {len(handles)} datasource(s)")
        results.update(self._dispatch(handles, sql))
        return results

    def execute_on_one(self, name: str, sql: str) -> Dict[str, Any]:
        """Runs ``sql`` on a single backend, synchronously; the result is keyed by ``name``."""
        rejection = self._rejection(sql)
        if rejection is not None:
            return rejection

        handle = self.registry.get_handle(name)
        if handle is None:
            logger.warning(f"Datasource [{name}] not found")
            return {name: error_payload(not_found_message(name))}
        return {name: self._run_unit(handle, sql)}

    def execute_on_default(self, sql: str) -> Any:
        """
        Runs ``sql`` on the default backend.

        The three unhappy outcomes stay distinguishable: no default configured
        is an ``error``, zero rows is a ``message``, a failing statement is the
        driver's ``error``.
        """
        rejection = self._rejection(sql)
        if rejection is not None:
            return rejection

        default_name = self.registry.default_name()
        if not default_name:
            logger.error(NO_DEFAULT_MESSAGE)
            return error_payload(NO_DEFAULT_MESSAGE)

        # Already validated above; go straight to the unit.
        handle = self.registry.get_handle(default_name)
        if handle is None:
            return error_payload(not_found_message(default_name))
        data = self._run_unit(handle, sql)
        if isinstance(data, list) and not data:
            logger.warning(f"No results returned from SQL execution on default datasource [{default_name}]")
            return {"message": NO_DATA_MESSAGE}
        return data

    def _run_unit(self, handle: BackendHandle, sql: str) -> Any:
        logger.info(f"Executing SQL on datasource [{handle.name}]")
        outcome = self.executor.execute(handle, sql)
        if outcome.success:
            logger.info(f"Query executed successfully on datasource [{handle.name}]")
        return outcome.to_response()

    def _dispatch(self, handles: List[BackendHandle], sql: str) -> Dict[str, Any]:
        if not handles:
            return {}

        collected: Dict[str, Any] = {}
        futures: Dict[Future, str] = {}
        pending: set = set()
        pool = ThreadPoolExecutor(
            max_workers=min(self.max_workers, len(handles)),
            thread_name_prefix="fanout",
        )
        start = time.monotonic()
        try:
            for handle in handles:
                # One context copy per unit; a Context cannot be entered by two threads.
                ctx = contextvars.copy_context()
                futures[pool.submit(ctx.run, self._run_unit, handle, sql)] = handle.name

            done, pending = wait(futures, timeout=self.timeout_sec)
            for future in done:
                name = futures[future]
                try:
                    collected[name] = future.result()
                except Exception as e:
                    logger.error(f"Unit for datasource [{name}] failed unexpectedly: {e}")
                    collected[name] = error_payload(driver_message(e))

            if pending:
                abandoned = sorted(futures[f] for f in pending)
                logger.warning(
                    f"Fan-out deadline of {self.timeout_sec}s expired after "
                    f"{time.monotonic() - start:.1f}s, abandoning {abandoned}"
                )
        finally:
            pool.shutdown(wait=False, cancel_futures=True)
            if pending and self.shutdown_grace_sec:
                _, stragglers = wait(pending, timeout=self.shutdown_grace_sec)
                if stragglers:
                    logger.warning(f"{len(stragglers)} abandoned unit(s) still running after shutdown grace period")
        return collected
