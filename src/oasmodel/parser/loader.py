"""Load OpenAPI documents from a URL, local file, or stdin.

This module handles all I/O for fetching raw OpenAPI documents and converting
them into Python dictionaries. The format is sniffed from the first
non-whitespace character: ``{`` means JSON, anything else is decoded as YAML.

The public functions are:

* :func:`load_document` -- Load and decode a document from any supported source.
* :func:`parse_content` -- Decode already-read text with the same sniffing rule.
* :func:`validate_document` -- Check the declared version and required
  top-level fields, returning the ``openapi`` version string.

URL sources go through a :class:`Fetcher`; the default :class:`HttpxFetcher`
issues a single synchronous ``httpx`` request bounded by the caller's timeout.
"""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Any, Optional, Protocol

import httpx
import yaml

from oasmodel.exceptions import (
    DocumentIOError,
    FormatError,
    SchemaValidationError,
    UnsupportedVersionError,
)
from oasmodel.models import DocumentFormat, RawDocument

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0
DEFAULT_MAX_SIZE = 10 * 1024 * 1024
SUPPORTED_VERSION_PREFIXES = ("3.0.", "3.1.")


class Fetcher(Protocol):
    """HTTP client collaborator used for URL sources."""

    def fetch(self, url: str, timeout: float) -> bytes:
        """Return the response body, raising :class:`DocumentIOError` on failure."""
        ...


class HttpxFetcher:
    """Default :class:`Fetcher` backed by :func:`httpx.get`."""

    def __init__(self, follow_redirects: bool = True) -> None:
        self._follow_redirects = follow_redirects

    def fetch(self, url: str, timeout: float) -> bytes:
        try:
            response = httpx.get(url, timeout=timeout, follow_redirects=self._follow_redirects)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise DocumentIOError(
                f"HTTP {exc.response.status_code} fetching document from {url}",
                source=url,
            ) from exc
        except httpx.TimeoutException as exc:
            raise DocumentIOError(
                f"Timed out after {timeout}s fetching document from {url}", source=url
            ) from exc
        except httpx.RequestError as exc:
            raise DocumentIOError(f"Failed to fetch document from {url}: {exc}", source=url) from exc
        return response.content


def is_url(source: str) -> bool:
    return source.startswith(("http://", "https://"))


def load_document(
    source: str,
    *,
    fetcher: Optional[Fetcher] = None,
    timeout: float = DEFAULT_TIMEOUT,
    max_size: int = DEFAULT_MAX_SIZE,
) -> RawDocument:
    """Load an OpenAPI document from URL, file path, or stdin ('-').

    Args:
        source: A URL (http/https), file path, or '-' for stdin.
        fetcher: HTTP collaborator for URL sources (defaults to :class:`HttpxFetcher`).
        timeout: Fetch timeout in seconds for URL sources.
        max_size: Maximum accepted document size in bytes.

    Returns:
        The decoded :class:`~oasmodel.models.RawDocument`.

    Raises:
        DocumentIOError: If the source cannot be read, fetched, or is too large.
        FormatError: If the content is not a JSON/YAML mapping.
    """
    if source == "-":
        content = _read_stdin()
    elif is_url(source):
        logger.debug("Fetching OpenAPI document from %s (timeout=%ss)", source, timeout)
        body = (fetcher or HttpxFetcher()).fetch(source, timeout)
        _check_size(len(body), max_size, source)
        content = _decode_bytes(body, source)
    else:
        content = _read_file(source, max_size)

    return parse_content(content, source)


def _read_stdin() -> str:
    try:
        content = sys.stdin.read()
    except (OSError, ValueError) as exc:
        raise DocumentIOError(f"Failed to read from stdin: {exc}", source="-") from exc
    if not content.strip():
        raise DocumentIOError("No input received from stdin", source="-")
    return content


def _read_file(path: str, max_size: int) -> str:
    file_path = Path(path)
    if not file_path.is_file():
        raise DocumentIOError(f"Document file not found: {path}", source=path)
    try:
        _check_size(file_path.stat().st_size, max_size, path)
        return file_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise DocumentIOError(f"Failed to read document file {path}: {exc}", source=path) from exc


def _check_size(size: int, max_size: int, source: str) -> None:
    if size > max_size:
        raise DocumentIOError(
            f"Document too large: {size} bytes (limit {max_size})", source=source
        )


def _decode_bytes(body: bytes, source: str) -> str:
    try:
        return body.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise FormatError(f"Document is not valid UTF-8: {exc}", source=source) from exc


def sniff_format(content: str) -> DocumentFormat:
    """Return JSON when the first non-whitespace character is ``{``, else YAML."""
    stripped = content.lstrip()
    return DocumentFormat.JSON if stripped.startswith("{") else DocumentFormat.YAML


def parse_content(content: str, source: str = "<string>") -> RawDocument:
    """Decode *content* as JSON or YAML according to :func:`sniff_format`.

    Raises:
        FormatError: If the content is empty, malformed, or its root is not a mapping.
    """
    if not content.strip():
        raise FormatError("Document is empty", source=source)

    fmt = sniff_format(content)
    try:
        if fmt is DocumentFormat.JSON:
            data = json.loads(content)
        else:
            data = yaml.safe_load(content)
    except json.JSONDecodeError as exc:
        raise FormatError(f"Invalid JSON: {exc}", source=source) from exc
    except yaml.YAMLError as exc:
        raise FormatError(f"Invalid YAML: {exc}", source=source) from exc

    if not isinstance(data, dict):
        kind = type(data).__name__ if data is not None else "empty document"
        raise FormatError(f"Document must be a JSON/YAML object (got {kind})", source=source)

    return RawDocument(source=source, format=fmt, content=content, data=data)


def validate_document(
    data: dict[str, Any],
    source: Optional[str] = None,
    supported_prefixes: tuple[str, ...] | list[str] = SUPPORTED_VERSION_PREFIXES,
) -> str:
    """Validate the top-level structure and return the OpenAPI version string.

    Checks, in order: the declared version is 3.0.x or 3.1.x, ``info.title``
    and ``info.version`` are present, and ``paths`` is present (it may be
    an empty mapping).

    Raises:
        UnsupportedVersionError: For Swagger 2.x, a missing ``openapi`` field,
            or any version outside *supported_prefixes*.
        SchemaValidationError: Naming the missing or invalid field.
    """
    version = _validate_version(data, source, tuple(supported_prefixes))

    info = data.get("info")
    if not isinstance(info, dict):
        raise SchemaValidationError(
            "Document is missing required field 'info'", source=source, field="info"
        )
    for key in ("title", "version"):
        value = info.get(key)
        if value is None or (isinstance(value, str) and not value.strip()):
            raise SchemaValidationError(
                f"Document is missing required field 'info.{key}'",
                source=source,
                field=f"info.{key}",
            )

    if "paths" not in data:
        raise SchemaValidationError(
            "Document is missing required field 'paths'", source=source, field="paths"
        )
    paths = data["paths"]
    if paths is not None and not isinstance(paths, dict):
        raise SchemaValidationError(
            "Field 'paths' must be a mapping", source=source, field="paths"
        )

    return version


def _validate_version(data: dict[str, Any], source: Optional[str], prefixes: tuple[str, ...]) -> str:
    if "swagger" in data:
        swagger_ver = str(data["swagger"])
        raise UnsupportedVersionError(
            f"Swagger {swagger_ver} is not supported. "
            "Only OpenAPI 3.0.x and 3.1.x are supported.",
            source=source,
            version=swagger_ver,
        )

    declared = data.get("openapi")
    if declared is None:
        raise UnsupportedVersionError(
            "Missing 'openapi' field. Is this an OpenAPI 3.x document?", source=source
        )

    version_str = str(declared)
    if not version_str.startswith(prefixes):
        raise UnsupportedVersionError(
            f"Unsupported OpenAPI version: {version_str}. "
            "Only OpenAPI 3.0.x and 3.1.x are supported.",
            source=source,
            version=version_str,
        )
    return version_str
