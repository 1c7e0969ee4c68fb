"""Named post-processing transforms (decoding, decompression, parsing)."""
from dbgateway.extensions.builtins import builtin_extensions
from dbgateway.extensions.invoker import ExtensionInvoker
from dbgateway.extensions.models import Extension, ExtensionOutcome, ExtensionParameter
from dbgateway.extensions.registry import ExtensionRegistry, discover_extensions, resolve_handler
from dbgateway.extensions.runtime import CallableRuntime, ScriptRuntime

__all__ = [
    "CallableRuntime",
    "Extension",
    "ExtensionInvoker",
    "ExtensionOutcome",
    "ExtensionParameter",
    "ExtensionRegistry",
    "ScriptRuntime",
    "builtin_extensions",
    "discover_extensions",
    "resolve_handler",
]
