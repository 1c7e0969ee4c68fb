import base64
import gzip
import zlib

import pytest

from dbgateway.common.errors import ConfigurationError, ErrorCode
from dbgateway.extensions import builtins
from dbgateway.extensions.invoker import ExtensionInvoker
from dbgateway.extensions.models import Extension
from dbgateway.extensions.registry import ExtensionRegistry, resolve_handler
from tests.helpers import shout


def _raise(text):
    raise ValueError("bad padding")


def _registry(*extensions):
    return ExtensionRegistry(extensions)


class TestBuiltins:
    def test_base64_decode(self):
        assert builtins.base64_decode("aGVsbG8=") == "hello"
        assert builtins.base64_decode("aGVsbG8") == "hello"
        assert builtins.base64_decode("aGVs\nbG8=") == "hello"

    def test_base64_decode_url_safe(self):
        encoded = base64.urlsafe_b64encode("??>".encode()).decode()
        assert encoded == "Pz8-"
        assert builtins.base64_decode(encoded) == "??>"

    def test_base64_encode(self):
        assert builtins.base64_encode("hello") == "aGVsbG8="

    def test_hex_decode(self):
        assert builtins.hex_decode("68656c6c6f") == "hello"
        assert builtins.hex_decode("0x68656C6C6F") == "hello"

    def test_url_decode(self):
        assert builtins.url_decode("a%20b+c%2Fd") == "a b c/d"

    def test_gzip_and_zlib(self):
        gz = base64.b64encode(gzip.compress(b"payload")).decode()
        zl = base64.b64encode(zlib.compress(b"payload")).decode()

        assert builtins.gzip_decompress(gz) == "payload"
        assert builtins.zlib_decompress(zl) == "payload"

    def test_timestamp_to_iso_seconds_and_millis(self):
        assert builtins.timestamp_to_iso("0") == "1970-01-01T00:00:00+00:00"
        assert builtins.timestamp_to_iso("1700000000") == "2023-11-14T22:13:20+00:00"
        assert builtins.timestamp_to_iso("1700000000000") == "2023-11-14T22:13:20+00:00"

    def test_builtin_listing(self):
        names = set(builtins.builtin_extensions())
        assert {"base64Decode", "base64Encode", "hexDecode", "urlDecode", "gzipDecompress",
                "zlibDecompress", "jsonParse", "timestampToIso"} == names


class TestInvoker:
    def test_base64_decode_through_registry(self):
        invoker = ExtensionInvoker(ExtensionRegistry.builtin())

        outcome = invoker.invoke("base64Decode", "aGVsbG8=")

        assert outcome.success is True
        assert outcome.to_payload() == "hello"

    def test_unknown_extension(self):
        invoker = ExtensionInvoker(ExtensionRegistry.builtin())

        outcome = invoker.invoke("sm4Decrypt", "x")

        assert outcome.success is False
        assert outcome.error_code == ErrorCode.EXTENSION_NOT_FOUND
        assert outcome.to_payload() == {
            "error": "Extension [sm4Decrypt] not found",
            "error_code": "EXTENSION_NOT_FOUND",
            "extension": "sm4Decrypt",
        }

    def test_transform_error_is_typed(self):
        # Validates failure typing because a throwing transform must not crash the caller.
        # Arrange
        invoker = ExtensionInvoker(_registry(Extension(name="broken", body=_raise)))

        # Act
        outcome = invoker.invoke("broken", "abc")

        # Assert
        assert outcome.success is False
        assert outcome.error_code == ErrorCode.EXTENSION_EXECUTION_FAILED
        assert "bad padding" in outcome.error

    def test_json_looking_string_is_parsed(self):
        invoker = ExtensionInvoker(_registry(Extension(name="echo", body=lambda text: text)))

        assert invoker.invoke("echo", ' {"a": [1, 2]}').to_payload() == {"a": [1, 2]}
        assert invoker.invoke("echo", "[1, 2]").to_payload() == [1, 2]
        assert invoker.invoke("echo", "plain text").to_payload() == "plain text"

    def test_unparseable_json_looking_string_is_invalid_result(self):
        invoker = ExtensionInvoker(_registry(Extension(name="echo", body=lambda text: text)))

        outcome = invoker.invoke("echo", "{not json")

        assert outcome.error_code == ErrorCode.INVALID_EXTENSION_RESULT

    def test_structured_results_are_normalized(self):
        invoker = ExtensionInvoker(_registry(Extension(name="raw", body=lambda text: {"bytes": text.encode()})))

        assert invoker.invoke("raw", "hi").to_payload() == {"bytes": "aGk="}

    def test_unnormalizable_result_is_invalid_result(self):
        invoker = ExtensionInvoker(_registry(Extension(name="obj", body=lambda text: object())))

        outcome = invoker.invoke("obj", "x")

        assert outcome.success is False
        assert outcome.error_code == ErrorCode.INVALID_EXTENSION_RESULT

    def test_custom_runtime_receives_body_and_bindings(self):
        class _Runtime:
            def run(self, body, bindings):
                return f"{body}:{bindings['input']}"

        invoker = ExtensionInvoker(_registry(Extension(name="script", body="return input")), runtime=_Runtime())

        assert invoker.invoke("script", "x").to_payload() == "return input:x"


class TestRegistry:
    def test_listing_never_exposes_bodies(self):
        listed = [ext.describe() for ext in ExtensionRegistry.builtin().list()]

        assert listed
        assert all("body" not in entry for entry in listed)
        assert listed[0]["parameters"][0]["name"] == "input"

    def test_duplicate_names_are_rejected(self):
        with pytest.raises(ConfigurationError):
            _registry(Extension(name="a", body=shout), Extension(name="a", body=shout))

    def test_resolve_handler(self):
        assert resolve_handler("tests.helpers:shout") is shout
        assert resolve_handler("dbgateway.extensions.builtins:base64_decode") is builtins.base64_decode

    @pytest.mark.parametrize("path", ["no_colon", "dbgateway.nope:fn", "dbgateway.extensions.builtins:missing", "dbgateway.extensions.builtins:_BUILTINS"])
    def test_resolve_handler_errors(self, path):
        with pytest.raises(ConfigurationError):
            resolve_handler(path)

    def test_from_config_without_file_uses_builtins(self, tmp_path):
        registry = ExtensionRegistry.from_config(tmp_path / "missing.yaml", discover=False)

        assert "base64Decode" in registry
        assert len(registry) == len(builtins.builtin_extensions())

    def test_from_config_loads_handlers(self, tmp_path):
        # Arrange
        path = tmp_path / "extensions.yaml"
        path.write_text(
            """
version: 1
include_builtins: false
extensions:
  - name: shout
    handler: "tests.helpers:shout"
  - name: described
    handler: "tests.helpers:shout"
    description: "Loud"
    parameters:
      - {name: input, type: string, description: "Anything", required: true}
  - name: muted
    handler: "tests.helpers:shout"
    enabled: false
""",
            encoding="utf-8",
        )

        # Act
        registry = ExtensionRegistry.from_config(path, discover=False)

        # Assert
        assert registry.names() == ["shout", "described"]
        assert registry.resolve("shout").description == "Upper-cases the input."
        assert registry.resolve("described").parameters[0].description == "Anything"
        assert ExtensionInvoker(registry).invoke("shout", "hey").to_payload() == "HEY"

    def test_from_config_rejects_clash_with_builtins(self, tmp_path):
        path = tmp_path / "extensions.yaml"
        path.write_text(
            "extensions:\n  - {name: base64Decode, handler: 'tests.helpers:shout'}\n",
            encoding="utf-8",
        )

        with pytest.raises(ConfigurationError):
            ExtensionRegistry.from_config(path, discover=False)

    def test_from_config_rejects_invalid_files(self, tmp_path):
        path = tmp_path / "extensions.yaml"
        path.write_text("extensions:\n  - {name: a}\n", encoding="utf-8")

        with pytest.raises(ConfigurationError):
            ExtensionRegistry.from_config(path, discover=False)

    def test_entry_point_discovery(self, monkeypatch):
        class _EntryPoint:
            def __init__(self, name, target):
                self.name = name
                self._target = target

            def load(self):
                if isinstance(self._target, Exception):
                    raise self._target
                return self._target

        eps = [
            _EntryPoint("shout", shout),
            _EntryPoint("prebuilt", Extension(name="prebuilt", body=shout)),
            _EntryPoint("broken", ImportError("missing dependency")),
        ]
        monkeypatch.setattr("dbgateway.extensions.registry.entry_points", lambda group: eps)

        registry = ExtensionRegistry.from_config(None, discover=True)

        assert "shout" in registry and "prebuilt" in registry
        assert "broken" not in registry
