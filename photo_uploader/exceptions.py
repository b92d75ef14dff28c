"""Error types raised by the uploader.

Per-file errors (``ReadError``, ``DuplicateError``, ``RemoteCallError``,
``PersistError``) are caught by the pipeline and turned into a job outcome.
``StoreError``, ``AuthError`` and ``ConfigError`` only happen at startup and
end the process.
"""

from __future__ import annotations


class UploaderError(Exception):
    """Base class for every uploader error."""


class ReadError(UploaderError):
    """The source file could not be opened or read."""


class DuplicateError(UploaderError):
    """The file's fingerprint is already recorded as uploaded."""


class RemoteCallError(UploaderError):
    """A call to the Photos service failed or returned a non-2xx status."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class PersistError(UploaderError):
    """Recording a finished upload in the local database failed."""


class DuplicateKeyError(PersistError):
    """Another worker recorded the same fingerprint first."""


class StoreError(UploaderError):
    """The local database could not be opened or its schema created."""


class AuthError(UploaderError):
    """OAuth credentials could not be loaded or obtained."""


class ConfigError(UploaderError):
    """A configuration value is missing or invalid."""
