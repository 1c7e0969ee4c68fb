"""
Contract definitions for statement execution.

``ExecutionOutcome`` is the single shape every backend call is normalized into,
whatever the driver returned or raised.
"""
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from dbgateway.common.errors import ErrorCode


class ExecutionOutcome(BaseModel):
    """Standardized result of running one statement on one backend."""

    success: bool = Field(..., description="Whether the statement ran and its result was normalized.")
    data: Optional[Any] = Field(
        None, description="List of row mappings for reads, affected-row count for writes."
    )
    error: Optional[str] = Field(None, description="Driver message, verbatim, if failed.")
    error_code: Optional[ErrorCode] = Field(None, description="Failure category if failed.")
    metrics: Dict[str, float] = Field(
        default_factory=dict, description="Performance metrics (e.g., execution_time_ms)."
    )

    model_config = ConfigDict(extra="ignore")

    @classmethod
    def ok(cls, data: Any, **metrics: float) -> "ExecutionOutcome":
        return cls(success=True, data=data, metrics=metrics)

    @classmethod
    def failed(cls, error: str, error_code: ErrorCode, **metrics: float) -> "ExecutionOutcome":
        return cls(success=False, error=error, error_code=error_code, metrics=metrics)

    @property
    def is_empty(self) -> bool:
        """True for a successful read that returned no rows."""
        return self.success and isinstance(self.data, list) and not self.data

    def to_response(self) -> Any:
        """Caller-facing value: the payload, or ``{"error": message}``."""
        if self.success:
            return self.data
        return {"error": self.error}
