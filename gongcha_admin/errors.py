"""
Error taxonomy for the admin API.

Every error carries the HTTP status it maps to and a stable machine code.
The application renders them as::

    {"message": "Pesan untuk pengguna", "code": "ERROR_CODE"}
"""
from __future__ import annotations

from typing import Optional


class AdminError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str, code: Optional[str] = None) -> None:
        self.message = message
        if code:
            self.code = code
        super().__init__(message)

    def to_dict(self) -> dict[str, str]:
        return {"message": self.message, "code": self.code}


class Unauthenticated(AdminError):
    """No session, or the session could not be validated."""

    status_code = 401
    code = "AUTH_REQUIRED"

    def __init__(self, message: str = "Session tidak ditemukan. Silakan login ulang.") -> None:
        super().__init__(message)


class Forbidden(AdminError):
    """Valid session, insufficient role."""

    status_code = 403
    code = "PERMISSION_DENIED"

    def __init__(self, message: str = "Akses ditolak. Anda tidak memiliki izin.") -> None:
        super().__init__(message)


class ValidationFailed(AdminError):
    status_code = 400
    code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        self.field = field
        super().__init__(message)

    def to_dict(self) -> dict[str, str]:
        body = super().to_dict()
        if self.field:
            body["field"] = self.field
        return body


class Conflict(AdminError):
    status_code = 409
    code = "ALREADY_EXISTS"


class NotFound(AdminError):
    status_code = 404
    code = "NOT_FOUND"


class UpstreamError(AdminError):
    """The document store or identity provider failed."""

    status_code = 500
    code = "UPSTREAM_ERROR"

    def __init__(self, message: str = "Layanan data sedang bermasalah. Coba lagi.") -> None:
        super().__init__(message)
