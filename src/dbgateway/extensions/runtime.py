from typing import Any, Mapping, Protocol, runtime_checkable


@runtime_checkable
class ScriptRuntime(Protocol):
    """Executes an extension body with named input bindings.

    Implementations may raise; the invoker turns any exception into a typed
    failure.
    """

    def run(self, body: Any, bindings: Mapping[str, Any]) -> Any:
        ...


class CallableRuntime:
    """Runs bodies that are plain Python callables taking the input text."""

    def run(self, body: Any, bindings: Mapping[str, Any]) -> Any:
        if not callable(body):
            raise TypeError(f"Extension body is not callable: {type(body).__name__}")
        return body(bindings.get("input"))
