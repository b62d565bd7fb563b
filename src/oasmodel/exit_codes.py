"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

oasmodel itself never exits the process. Each constant is referenced by the
corresponding :class:`~oasmodel.exceptions.OasModelError` subclass so that a
command-line front end wrapping the engine can map a failure class to an exit
status without parsing messages.
"""

EXIT_SUCCESS = 0
"""The operation completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_VALIDATION_FAILURE = 2
"""A payload violated the derived validation rules."""

EXIT_IO_ERROR = 6
"""The document could not be read or fetched (missing file, timeout, HTTP error)."""

EXIT_SPEC_PARSE_ERROR = 7
"""The document could not be decoded, failed structural validation, or has dangling references."""

EXIT_VERSION_ERROR = 8
"""A schema version operation failed (unknown or duplicate version)."""
