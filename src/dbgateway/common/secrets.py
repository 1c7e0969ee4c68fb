"""Resolution of ``${provider:key}`` secret references in configuration values."""
from __future__ import annotations

import os
import re
from typing import Any, Dict, Optional

from pydantic import BaseModel

_REF_PATTERN = re.compile(r"\$\{(?P<provider>[A-Za-z_][\w-]*):(?P<key>[^}]+)\}")


class EnvironmentSecretProvider:
    """Fetches secrets from environment variables."""

    def get_secret(self, key: str) -> Optional[str]:
        return os.environ.get(key)


class SecretResolver:
    """Replaces secret references embedded in strings.

    References may appear anywhere in a value, which lets credentials sit inside
    connection URLs: ``postgresql://app:${env:PG_PASSWORD}@db/reporting``.
    """

    def __init__(self):
        self._providers: Dict[str, Any] = {"env": EnvironmentSecretProvider()}

    def register_provider(self, provider_id: str, provider: Any) -> None:
        self._providers[provider_id] = provider

    def resolve(self, value: str) -> str:
        """Resolves every reference inside ``value``.

        Raises:
            ValueError: If a provider is unknown or a secret is not found.
        """
        def _substitute(match: re.Match) -> str:
            provider_id, key = match.group("provider"), match.group("key")
            provider = self._providers.get(provider_id)
            if provider is None:
                raise ValueError(f"Unknown secret provider ID: '{provider_id}'")
            secret = provider.get_secret(key)
            if secret is None:
                raise ValueError(f"Secret not found: {match.group(0)}")
            return secret

        return _REF_PATTERN.sub(_substitute, value)

    def resolve_object(self, obj: Any) -> Any:
        """Recursively resolves references in strings, dicts, lists and pydantic models."""
        if isinstance(obj, str):
            return self.resolve(obj) if "${" in obj else obj

        if isinstance(obj, BaseModel):
            updates = {}
            for field_name in type(obj).model_fields.keys():
                val = getattr(obj, field_name)
                resolved = self.resolve_object(val)
                if resolved is not val:
                    updates[field_name] = resolved
            return obj.model_copy(update=updates) if updates else obj

        if isinstance(obj, list):
            return [self.resolve_object(item) for item in obj]

        if isinstance(obj, dict):
            return {k: self.resolve_object(v) for k, v in obj.items()}

        return obj


secret_resolver = SecretResolver()
