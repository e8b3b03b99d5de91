"""Error taxonomy shared by every operation.

Services raise these; ``main.py`` turns them into HTTP responses.
"""
from typing import Optional


class AppError(Exception):
    status_code = 500
    kind = "error"

    def __init__(self, message: str, reason: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.reason = reason

    def to_dict(self):
        body = {"detail": self.message, "error": self.kind}
        if self.reason:
            body["reason"] = self.reason
        return body


class NotAuthenticated(AppError):
    status_code = 401
    kind = "not_authenticated"

    def __init__(self, message: str = "You need to be signed in to do that", reason: Optional[str] = None):
        super().__init__(message, reason)


class NotAuthorized(AppError):
    status_code = 403
    kind = "not_authorized"

    def __init__(self, message: str = "You don't have permission to do that", reason: Optional[str] = None):
        super().__init__(message, reason)


class ValidationError(AppError):
    status_code = 422
    kind = "validation_error"


class ConflictOrNotFound(AppError):
    status_code = 404
    kind = "conflict_or_not_found"

    def __init__(self, message: str, reason: Optional[str] = None, conflict: bool = False):
        super().__init__(message, reason)
        if conflict:
            self.status_code = 409


class UpstreamFailure(AppError):
    status_code = 502
    kind = "upstream_failure"
