from __future__ import annotations

import json
from typing import Any, Optional

from dbgateway.common.errors import ErrorCode, ResultNormalizationError
from dbgateway.common.logger import get_logger
from dbgateway.common.serialization import to_portable
from dbgateway.extensions.models import ExtensionOutcome
from dbgateway.extensions.registry import ExtensionRegistry
from dbgateway.extensions.runtime import CallableRuntime, ScriptRuntime

logger = get_logger("extension_invoker")


def _looks_like_json(text: str) -> bool:
    return text.lstrip()[:1] in ("{", "[")


class ExtensionInvoker:
    """Runs a named extension against caller text and types every failure."""

    def __init__(self, registry: ExtensionRegistry, runtime: Optional[ScriptRuntime] = None):
        self.registry = registry
        self.runtime = runtime or CallableRuntime()

    def invoke(self, name: str, input_text: Optional[str]) -> ExtensionOutcome:
        """
        Invokes extension ``name`` with ``input_text`` bound as ``input``.

        String results that look like a JSON document are parsed into
        structured data; other strings are returned unchanged. Non-string
        results are converted to portable values.

        Returns:
            ExtensionOutcome: The value, or a failure coded
            ``EXTENSION_NOT_FOUND``, ``EXTENSION_EXECUTION_FAILED`` or
            ``INVALID_EXTENSION_RESULT``.
        """
        extension = self.registry.resolve(name)
        if extension is None:
            logger.warning(f"Extension [{name}] not found")
            return ExtensionOutcome.failed(name, f"Extension [{name}] not found", ErrorCode.EXTENSION_NOT_FOUND)

        try:
            raw = self.runtime.run(extension.body, {"input": input_text})
        except Exception as e:
            logger.error(f"Extension [{name}] failed: {type(e).__name__}: {e}")
            message = str(e) or type(e).__name__
            return ExtensionOutcome.failed(
                name, f"Extension execution failed: {message}", ErrorCode.EXTENSION_EXECUTION_FAILED
            )

        if isinstance(raw, str):
            if not _looks_like_json(raw):
                return ExtensionOutcome.ok(name, raw)
            try:
                return ExtensionOutcome.ok(name, json.loads(raw))
            except json.JSONDecodeError as e:
                logger.error(f"Failed to parse result of extension [{name}] as JSON: {e}")
                return ExtensionOutcome.failed(
                    name, f"Invalid JSON result from extension: {e}", ErrorCode.INVALID_EXTENSION_RESULT
                )

        try:
            value: Any = to_portable(raw)
        except ResultNormalizationError as e:
            logger.error(f"Result of extension [{name}] could not be normalized: {e}")
            return ExtensionOutcome.failed(
                name, f"Extension result could not be converted: {e}", ErrorCode.INVALID_EXTENSION_RESULT
            )
        return ExtensionOutcome.ok(name, value)
