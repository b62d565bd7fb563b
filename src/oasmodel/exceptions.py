"""Exception hierarchy for oasmodel.

All exceptions inherit from :class:`OasModelError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`oasmodel.exit_codes`
and the ``source`` locator of the document being processed. Presenting errors
to an end user is left to the caller; the engine only raises.

Subclass hierarchy::

    OasModelError (exit 1)
    +-- ConfigError                 (exit 1)
    +-- DocumentIOError             (exit 6)
    +-- FormatError                 (exit 7)
    +-- SchemaValidationError       (exit 7)
    |   +-- UnsupportedVersionError (exit 7)
    +-- UnresolvedReferenceError    (exit 7)
    +-- ValidationException         (exit 2)
    +-- SchemaVersionError          (exit 8)
        +-- SchemaVersionNotFoundError
        +-- DuplicateVersionError
"""

from __future__ import annotations

from typing import Any, Optional

from oasmodel.exit_codes import (
    EXIT_GENERIC_FAILURE,
    EXIT_IO_ERROR,
    EXIT_SPEC_PARSE_ERROR,
    EXIT_VALIDATION_FAILURE,
    EXIT_VERSION_ERROR,
)


class OasModelError(Exception):
    """Base exception for all oasmodel errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`oasmodel.exit_codes`.

    Args:
        message: Human-readable error description.
        source: Locator (path or URL) of the document involved, if any.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(
        self,
        message: str,
        source: Optional[str] = None,
        exit_code: int | None = None,
    ):
        super().__init__(message)
        self.source = source
        if exit_code is not None:
            self.exit_code = exit_code

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-serializable description of the error."""
        return {
            "error": type(self).__name__,
            "message": str(self),
            "exit_code": self.exit_code,
            "source": self.source,
        }


class ConfigError(OasModelError):
    """Raised for configuration problems (invalid JSON, bad values)."""

    exit_code = EXIT_GENERIC_FAILURE


class DocumentIOError(OasModelError):
    """Raised when a document cannot be read or fetched.

    Covers missing files, unreadable stdin, HTTP error statuses, network
    failures and timeouts. Named to avoid shadowing the built-in ``IOError``.
    """

    exit_code = EXIT_IO_ERROR


class FormatError(OasModelError):
    """Raised when content is not valid JSON/YAML or is not a mapping."""

    exit_code = EXIT_SPEC_PARSE_ERROR


class SchemaValidationError(OasModelError):
    """Raised when a document misses required top-level structure.

    ``field`` names the missing or invalid field (e.g. ``"info.title"``).
    """

    exit_code = EXIT_SPEC_PARSE_ERROR

    def __init__(
        self,
        message: str,
        source: Optional[str] = None,
        field: Optional[str] = None,
    ):
        super().__init__(message, source=source)
        self.field = field

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "field": self.field}


class UnsupportedVersionError(SchemaValidationError):
    """Raised when the declared OpenAPI version is not 3.0.x or 3.1.x."""

    def __init__(self, message: str, source: Optional[str] = None, version: Optional[str] = None):
        super().__init__(message, source=source, field="openapi")
        self.version = version


class UnresolvedReferenceError(OasModelError):
    """Raised when a ``$ref`` does not point at an existing component.

    Args:
        ref: The offending ``$ref`` string.
        component: The component (or ``"METHOD path"`` location) containing it.
    """

    exit_code = EXIT_SPEC_PARSE_ERROR

    def __init__(self, ref: str, component: str, source: Optional[str] = None, reason: str = ""):
        message = f"Unresolved reference '{ref}' in {component}"
        if reason:
            message += f": {reason}"
        super().__init__(message, source=source)
        self.ref = ref
        self.component = component

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "ref": self.ref, "component": self.component}


class ValidationException(OasModelError):
    """Raised when a payload violates validation rules in strict or moderate mode.

    Attributes:
        field: The first offending attribute name.
        errors: Mapping of attribute name to the list of violation messages.
    """

    exit_code = EXIT_VALIDATION_FAILURE

    def __init__(self, errors: dict[str, list[str]], source: Optional[str] = None):
        self.errors = errors
        self.field = next(iter(errors), None)
        details = "; ".join(
            f"{name}: {', '.join(messages)}" for name, messages in errors.items()
        )
        super().__init__(f"Validation failed ({details})", source=source)

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "field": self.field, "errors": self.errors}


class SchemaVersionError(OasModelError):
    """Base class for schema version store failures."""

    exit_code = EXIT_VERSION_ERROR

    def __init__(self, message: str, schema_name: Optional[str] = None, version_id: Optional[str] = None):
        super().__init__(message)
        self.schema_name = schema_name
        self.version_id = version_id

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "schema_name": self.schema_name, "version_id": self.version_id}


class SchemaVersionNotFoundError(SchemaVersionError):
    """Raised when a requested schema version does not exist."""


class DuplicateVersionError(SchemaVersionError):
    """Raised when an explicit version id is already taken for the schema."""
