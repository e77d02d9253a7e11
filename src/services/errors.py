"""Error taxonomy for list ownership, sharing and sync operations.

Every error carries the HTTP status the API layer answers with and a
user-facing ``detail``. Internal failures never expose their cause in
``detail``; the original exception is chained and logged instead.
"""

from typing import Any


class ListEngineError(Exception):
    """Base class for all domain errors."""

    status_code = 500
    default_detail = "Internal error"

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class NotFoundError(ListEngineError):
    status_code = 404
    default_detail = "Resource not found"


class InvalidInputError(ListEngineError):
    status_code = 422
    default_detail = "Invalid input"


class ForbiddenError(ListEngineError):
    status_code = 403
    default_detail = "You don't have permission to perform this action"


class DuplicateError(ListEngineError):
    """Unique constraint violation.

    ``existing`` is the conflicting entity when it could be resolved, so
    callers can offer to use it instead.
    """

    status_code = 409
    default_detail = "Resource already exists"

    def __init__(self, detail: str | None = None, existing: Any = None):
        super().__init__(detail)
        self.existing = existing


class VersionConflictError(ListEngineError):
    status_code = 409
    default_detail = "The resource was modified by someone else, reload and try again"


class SyncDisabledError(ListEngineError):
    status_code = 409
    default_detail = "Sync is not configured for this list"


class ExternalSourceError(ListEngineError):
    status_code = 502
    default_detail = "External sync source returned an error"


class ExternalSourceUnavailableError(ExternalSourceError):
    status_code = 503
    default_detail = "External sync source is unavailable"


class ExternalSourceTimeoutError(ExternalSourceError):
    status_code = 504
    default_detail = "External sync source timed out"


class ConflictNotFoundError(NotFoundError):
    default_detail = "Sync conflict not found"


class ConflictAlreadyResolvedError(ListEngineError):
    status_code = 409
    default_detail = "Sync conflict already resolved"


class InvalidResolutionError(InvalidInputError):
    default_detail = "Resolution must be one of: accept_local, accept_remote"


class OperationCancelledError(ListEngineError):
    status_code = 408
    default_detail = "Operation cancelled before completion"


class InternalError(ListEngineError):
    status_code = 500
    default_detail = "An internal error occurred"
