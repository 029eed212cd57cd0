"""Service-layer errors.

Routers translate these into HTTP responses; services never raise
HTTPException themselves.
"""
from fastapi import HTTPException, status


class ServiceError(Exception):
    """Base for expected failures; carries the HTTP status it maps to."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail

    def to_http(self) -> HTTPException:
        headers = None
        if self.status_code == status.HTTP_401_UNAUTHORIZED:
            headers = {"WWW-Authenticate": "Bearer"}
        return HTTPException(status_code=self.status_code, detail=self.detail, headers=headers)


class InvalidInputError(ServiceError):
    """Missing or malformed input."""

    status_code = status.HTTP_400_BAD_REQUEST


class AuthenticationError(ServiceError):
    """Missing, invalid or expired credential, or wrong password."""

    status_code = status.HTTP_401_UNAUTHORIZED


class NotFoundError(ServiceError):
    """Absent, or owned by another user. The two are never distinguished."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(ServiceError):
    """A unique field is already taken."""

    status_code = status.HTTP_409_CONFLICT


class UpstreamError(ServiceError):
    """The remote completion or speech service failed."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
