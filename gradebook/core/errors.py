from __future__ import annotations

from fastapi import HTTPException


class GradebookError(ValueError):
    """Base class for every rejection the service reports to its callers."""

    kind = 'error'
    status_code = 400

    def __init__(self, message: str = ''):
        super().__init__(message or self.default_message())
        self.message = str(self.args[0])

    def default_message(self) -> str:
        return 'Request failed'


class NotFoundError(GradebookError):
    kind = 'not_found'
    status_code = 404

    def default_message(self) -> str:
        return 'Not found'


class ForbiddenError(GradebookError):
    kind = 'forbidden'
    status_code = 403

    def default_message(self) -> str:
        return 'Forbidden'


class ConflictError(GradebookError):
    kind = 'conflict'
    status_code = 409


class UnauthorizedError(GradebookError):
    kind = 'unauthorized'
    status_code = 401

    def default_message(self) -> str:
        return 'Unauthorized'


class InputValidationError(GradebookError):
    kind = 'validation'
    status_code = 400


class CapacityError(GradebookError):
    kind = 'capacity'
    status_code = 409


class NarrativeUnavailableError(GradebookError):
    kind = 'narrative_unavailable'
    status_code = 502


class NotConfiguredError(GradebookError):
    kind = 'not_configured'
    status_code = 501


class StorageError(GradebookError):
    kind = 'storage'
    status_code = 502


def http_error(exc: GradebookError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail={'kind': exc.kind, 'message': exc.message})
