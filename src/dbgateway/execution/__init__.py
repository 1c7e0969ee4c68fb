"""Single-statement execution and multi-backend fan-out."""
from dbgateway.execution.contracts import ExecutionOutcome
from dbgateway.execution.executor import StatementExecutor
from dbgateway.execution.fanout import FanOutOrchestrator

__all__ = ["ExecutionOutcome", "FanOutOrchestrator", "StatementExecutor"]
