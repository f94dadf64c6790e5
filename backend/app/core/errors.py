"""Domain error taxonomy.

Every error carries a machine-readable ``code`` so the client can pick
the right UX (password prompt, "link expired" page, generic error) and a
``status_code`` used by the HTTP layer. Messages are static strings:
they never echo passwords, hashes or recipient addresses.
"""

from typing import Optional


class AppError(Exception):
    status_code = 500
    code = "internal_error"
    message = "Internal Server Error"

    def __init__(self, message: Optional[str] = None, *, code: Optional[str] = None):
        if message is not None:
            self.message = message
        if code is not None:
            self.code = code
        super().__init__(self.message)

    def to_detail(self) -> dict:
        return {"code": self.code, "detail": self.message}


class NotFoundError(AppError):
    status_code = 404
    code = "not_found"
    message = "Resource not found"


class GoneError(AppError):
    """The resource existed but has lapsed (expired or quota exhausted). Not retryable."""

    status_code = 410
    code = "share_gone"
    message = "Share link is no longer available"


class UnauthorizedError(AppError):
    status_code = 401
    code = "unauthorized"
    message = "Not authenticated"


class ForbiddenError(AppError):
    status_code = 403
    code = "forbidden"
    message = "Access denied"


class StorageUnavailableError(AppError):
    """Object store failed although metadata is valid. Callers may retry later."""

    status_code = 503
    code = "storage_unavailable"
    message = "File storage is temporarily unavailable"


class ValidationError(AppError):
    status_code = 400
    code = "validation_error"
    message = "Invalid request"


class ConflictError(AppError):
    status_code = 409
    code = "name_conflict"
    message = "An item with this name already exists in this folder"


# Share gate failures
def share_not_found() -> NotFoundError:
    return NotFoundError("Share link not found", code="share_not_found")


def share_expired() -> GoneError:
    return GoneError("Share link has expired", code="share_expired")


def download_limit_reached() -> GoneError:
    return GoneError("Download limit reached", code="download_limit_reached")


def password_required() -> UnauthorizedError:
    return UnauthorizedError("Password required", code="password_required")


def invalid_password() -> UnauthorizedError:
    return UnauthorizedError("Invalid password", code="invalid_password")
