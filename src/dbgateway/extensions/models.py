from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from dbgateway.common.errors import ErrorCode


class ExtensionParameter(BaseModel):
    """A declared input of an extension, advertised to callers."""
    name: str
    type: str = "string"
    description: str = ""
    required: bool = True


class Extension(BaseModel):
    """A named transform.

    ``body`` is whatever the script runtime executes; for the default runtime
    it is a Python callable. It is excluded from every serialized view so the
    listing never leaks implementation.
    """
    name: str
    description: str = ""
    parameters: List[ExtensionParameter] = Field(
        default_factory=lambda: [ExtensionParameter(name="input", description="Text to transform")]
    )
    body: Any = Field(default=None, exclude=True)

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    def describe(self) -> Dict[str, Any]:
        return self.model_dump()


class ExtensionOutcome(BaseModel):
    """Result of one invocation: a value, or a typed failure."""
    success: bool
    extension_name: str
    value: Any = None
    error: Optional[str] = None
    error_code: Optional[ErrorCode] = None

    @classmethod
    def ok(cls, name: str, value: Any) -> "ExtensionOutcome":
        return cls(success=True, extension_name=name, value=value)

    @classmethod
    def failed(cls, name: str, error: str, error_code: ErrorCode) -> "ExtensionOutcome":
        return cls(success=False, extension_name=name, error=error, error_code=error_code)

    def to_payload(self) -> Any:
        if self.success:
            return self.value
        return {
            "error": self.error,
            "error_code": self.error_code.value if self.error_code else None,
            "extension": self.extension_name,
        }


Transform = Callable[[str], Any]
