"""Canonical encoding rules for V4 signing.

Percent-encoding for paths and query components, canonical query strings,
and canonical headers. All output is byte-exact: the canonical request built
from these strings is what gets hashed and signed.
"""

import re
import urllib.parse
from collections.abc import Iterable, Mapping
from typing import Any, Union

# RFC 3986 unreserved characters that urllib.parse.quote does not already keep.
_UNRESERVED_EXTRA = "-_.~"

_WHITESPACE_RUN_RE = re.compile(r"\s+")

HeaderValue = Union[str, int, float, Iterable[Union[str, int, float]]]
HeaderInput = Union[Mapping[str, HeaderValue], Iterable[tuple[str, HeaderValue]]]
QueryInput = Union[Mapping[str, Any], Iterable[tuple[str, Any]]]


def encode_path(segment: str) -> str:
    """Percent-encode a URL path, leaving '/' separators intact.

    Characters A-Z, a-z, 0-9, '-', '_', '.', '~' and '/' are not encoded.
    Everything else is encoded byte-wise from UTF-8 with uppercase hex.

    Args:
        segment: The raw path or object name.

    Returns:
        The encoded path.
    """
    return urllib.parse.quote(segment, safe=_UNRESERVED_EXTRA + "/")


def encode_query_component(value: Any) -> str:
    """Percent-encode a single query-string key or value.

    Same as encode_path() except that '/' is encoded as %2F and spaces
    become %20 (never '+').
    """
    return urllib.parse.quote(str(value), safe=_UNRESERVED_EXTRA)


def _pairs(items: QueryInput | HeaderInput) -> list[tuple[str, Any]]:
    if isinstance(items, Mapping):
        return list(items.items())
    return list(items)


def canonical_query_string(params: QueryInput) -> str:
    """Build the canonical query string.

    Keys and values are encoded independently, then sorted by encoded key
    with ties broken by encoded value.

    Args:
        params: A mapping or an iterable of (name, value) pairs. None values
            are rendered as empty strings.

    Returns:
        The '&'-joined canonical query string (no leading '?').
    """
    encoded = [
        (encode_query_component(name), encode_query_component("" if value is None else value))
        for name, value in _pairs(params)
    ]
    encoded.sort()
    return "&".join(f"{name}={value}" for name, value in encoded)


def normalize_header_value(value: Any) -> str:
    """Trim a header value and collapse internal whitespace runs to one space."""
    return _WHITESPACE_RUN_RE.sub(" ", str(value).strip())


def merge_headers(headers: HeaderInput) -> dict[str, str]:
    """Lower-case header names and merge duplicates into comma-joined values.

    Duplicate names (case-insensitive) and list values are joined in input
    order. The returned dict is sorted by header name.
    """
    merged: dict[str, list[str]] = {}
    for name, value in _pairs(headers):
        if isinstance(value, (list, tuple)):
            values = [normalize_header_value(v) for v in value]
        else:
            values = [normalize_header_value(value)]
        merged.setdefault(name.strip().lower(), []).extend(values)
    return {name: ",".join(merged[name]) for name in sorted(merged)}


def canonicalize_headers(headers: HeaderInput) -> tuple[str, str]:
    """Render canonical headers and the signed-headers list.

    Args:
        headers: A mapping or an iterable of (name, value) pairs. Values may
            be lists, which are merged like repeated headers.

    Returns:
        A tuple of (canonical_headers, signed_headers) where canonical_headers
        is one 'name:value\\n' line per header and signed_headers is the
        sorted names joined with ';'.
    """
    merged = merge_headers(headers)
    canonical = "".join(f"{name}:{value}\n" for name, value in merged.items())
    return canonical, ";".join(merged)
