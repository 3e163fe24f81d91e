"""Exception hierarchy for econt.

All exceptions inherit from :class:`EcontError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`econt.exit_codes`.
The top-level handler in :func:`econt.app.main` catches ``EcontError`` and
exits with the appropriate code.

Every failure of the remote data source is a :class:`SourceUnavailableError`,
so callers of the cache can handle "the API could not answer" with a single
``except`` clause while still distinguishing the transport cause.

Subclass hierarchy::

    EcontError (exit 1)
    +-- ConfigError                 (exit 1)
    +-- InvalidUsageError           (exit 2)
    |   +-- InvalidFilterCriteriaError
    |   +-- CacheDisabledError
    +-- SourceUnavailableError      (exit 6)
    |   +-- AuthError               (exit 3)
    |   +-- NotFoundError           (exit 4)
    |   +-- ServerError             (exit 5)
    |   +-- ApiError                (exit 5)
    |   +-- ConnectionError_        (exit 6)
    +-- ExportAbortedError          (exit 8)
    +-- CacheCorruptError           (exit 9)
"""

from __future__ import annotations

from typing import Optional

from econt.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_CACHE_CORRUPT,
    EXIT_CONNECTION_ERROR,
    EXIT_EXPORT_ABORTED,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_NOT_FOUND,
    EXIT_SERVER_ERROR,
)


class EcontError(Exception):
    """Base exception for all econt errors.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class ConfigError(EcontError):
    """Raised for configuration problems (invalid JSON, bad credential sources)."""

    exit_code = EXIT_GENERIC_FAILURE


class InvalidUsageError(EcontError):
    """Raised for invalid arguments such as an unknown cache key."""

    exit_code = EXIT_INVALID_USAGE


class InvalidFilterCriteriaError(InvalidUsageError):
    """Raised when filter criteria reference a field the records do not have.

    Args:
        field: The offending criteria key.
        dataset: Dataset name the criteria were applied to.
        allowed: Field names that would have been accepted.
    """

    def __init__(self, field: str, dataset: str, allowed: list[str]):
        self.field = field
        self.dataset = dataset
        self.allowed = allowed
        super().__init__(
            f"Unknown filter field '{field}' for {dataset}. "
            f"Available fields: {', '.join(allowed)}"
        )


class CacheDisabledError(InvalidUsageError):
    """Raised when a cache-only operation is requested while caching is disabled."""


class SourceUnavailableError(EcontError):
    """Raised when the remote data source could not produce a result."""

    exit_code = EXIT_CONNECTION_ERROR


class AuthError(SourceUnavailableError):
    """Raised when Econt rejects the credentials (HTTP 401/403)."""

    exit_code = EXIT_AUTH_FAILURE


class NotFoundError(SourceUnavailableError):
    """Raised when the API returns HTTP 404 or reports an unknown shipment."""

    exit_code = EXIT_NOT_FOUND


class ServerError(SourceUnavailableError):
    """Raised when the API returns an HTTP 5xx server error."""

    exit_code = EXIT_SERVER_ERROR


class ApiError(SourceUnavailableError):
    """Raised for 4xx responses carrying an Econt error body (validation failures)."""

    exit_code = EXIT_SERVER_ERROR


class ConnectionError_(SourceUnavailableError):
    """Raised on network-level failures (timeout, DNS resolution, connection refused).

    Named with a trailing underscore to avoid shadowing the built-in
    ``ConnectionError``.
    """

    exit_code = EXIT_CONNECTION_ERROR


class ExportAbortedError(EcontError):
    """Raised when a bulk export stops before all steps complete.

    Attributes:
        step: Name of the step that failed or was skipped.
        step_index: 1-based position of *step* in the export order.
        completed_steps: Number of steps that finished before the abort.
        cancelled: ``True`` when the export stopped because it was cancelled.
    """

    exit_code = EXIT_EXPORT_ABORTED

    def __init__(
        self,
        step: str,
        step_index: int,
        completed_steps: int,
        cancelled: bool = False,
        reason: Optional[str] = None,
    ):
        self.step = step
        self.step_index = step_index
        self.completed_steps = completed_steps
        self.cancelled = cancelled
        if cancelled:
            message = f"Export cancelled before step {step_index} ({step})"
        else:
            message = f"Export aborted at step {step_index} ({step})"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class CacheCorruptError(EcontError):
    """Raised when a stored entry cannot be decoded.

    The cache manager recovers from this by treating the entry as absent.
    """

    exit_code = EXIT_CACHE_CORRUPT

    def __init__(self, key: str, reason: str):
        self.key = key
        super().__init__(f"Cache entry '{key}' is unreadable: {reason}")
