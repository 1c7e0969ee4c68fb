"""
Built-in transforms for values commonly found encoded in result sets.

Each function takes the caller's text and returns the transformed value.
Errors are raised as-is; the invoker reports them.
"""
from __future__ import annotations

import base64
import binascii
import datetime as dt
import gzip
import json
import urllib.parse
import zlib
from typing import Any, Dict, List, Tuple

from dbgateway.extensions.models import Extension, ExtensionParameter, Transform

# Epoch values above this are taken as milliseconds (year 5138 in seconds).
_MILLIS_THRESHOLD = 10 ** 11


def _b64(text: str) -> bytes:
    cleaned = "".join((text or "").split())
    # Tolerate stripped padding and the URL-safe alphabet.
    cleaned += "=" * (-len(cleaned) % 4)
    if "-" in cleaned or "_" in cleaned:
        return base64.urlsafe_b64decode(cleaned)
    return base64.b64decode(cleaned, validate=True)


def _utf8(data: bytes) -> str:
    return data.decode("utf-8")


def base64_decode(text: str) -> str:
    return _utf8(_b64(text))


def base64_encode(text: str) -> str:
    return base64.b64encode((text or "").encode("utf-8")).decode("ascii")


def hex_decode(text: str) -> str:
    cleaned = (text or "").strip()
    if cleaned[:2].lower() == "0x":
        cleaned = cleaned[2:]
    return _utf8(binascii.unhexlify(cleaned))


def url_decode(text: str) -> str:
    return urllib.parse.unquote_plus(text or "")


def gzip_decompress(text: str) -> str:
    """Base64 text holding a gzip member -> decompressed UTF-8 text."""
    return _utf8(gzip.decompress(_b64(text)))


def zlib_decompress(text: str) -> str:
    """Base64 text holding a zlib stream -> decompressed UTF-8 text."""
    return _utf8(zlib.decompress(_b64(text)))


def json_parse(text: str) -> Any:
    return json.loads(text)


def timestamp_to_iso(text: str) -> str:
    """Epoch seconds or milliseconds -> ISO-8601 in UTC."""
    value = float((text or "").strip())
    if abs(value) >= _MILLIS_THRESHOLD:
        value /= 1000.0
    return dt.datetime.fromtimestamp(value, tz=dt.timezone.utc).isoformat()


_BUILTINS: List[Tuple[str, Transform, str, str]] = [
    ("base64Decode", base64_decode, "Decode Base64 (standard or URL-safe) into UTF-8 text", "Base64 text"),
    ("base64Encode", base64_encode, "Encode UTF-8 text as standard Base64", "Plain text"),
    ("hexDecode", hex_decode, "Decode a hexadecimal string (optional 0x prefix) into UTF-8 text", "Hex text"),
    ("urlDecode", url_decode, "Decode percent-encoded (URL) text", "URL-encoded text"),
    ("gzipDecompress", gzip_decompress, "Decompress Base64-wrapped gzip data into UTF-8 text", "Base64 of gzip bytes"),
    ("zlibDecompress", zlib_decompress, "Decompress Base64-wrapped zlib data into UTF-8 text", "Base64 of zlib bytes"),
    ("jsonParse", json_parse, "Parse a JSON document into structured data", "JSON text"),
    ("timestampToIso", timestamp_to_iso, "Convert an epoch timestamp (seconds or milliseconds) to ISO-8601 UTC", "Epoch number"),
]


def builtin_extensions() -> Dict[str, Extension]:
    return {
        name: Extension(
            name=name,
            description=description,
            parameters=[ExtensionParameter(name="input", description=param)],
            body=func,
        )
        for name, func, description, param in _BUILTINS
    }

