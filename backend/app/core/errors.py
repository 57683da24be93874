"""Error taxonomy shared by services and routers.

Every failure surfaced to a caller carries a stable ``error`` category next to
the human-readable ``detail``.
"""

from fastapi import HTTPException, status


class CRMError(HTTPException):
    category = "error"
    status_code_default = status.HTTP_400_BAD_REQUEST

    def __init__(self, detail: str, headers: dict | None = None):
        super().__init__(status_code=self.status_code_default, detail=detail, headers=headers)


class NotFoundError(CRMError):
    category = "not_found"
    status_code_default = status.HTTP_404_NOT_FOUND


class ForbiddenError(CRMError):
    category = "forbidden"
    status_code_default = status.HTTP_403_FORBIDDEN


class UnauthenticatedError(CRMError):
    category = "unauthenticated"
    status_code_default = status.HTTP_401_UNAUTHORIZED

    def __init__(self, detail: str = "Not authenticated"):
        super().__init__(detail, headers={"WWW-Authenticate": "Bearer"})


class ConflictError(CRMError):
    category = "conflict"
    status_code_default = status.HTTP_409_CONFLICT


class InvalidInputError(CRMError):
    category = "invalid_input"
    status_code_default = status.HTTP_400_BAD_REQUEST


class TransientStoreError(CRMError):
    """Store unavailable or timed out; the caller may retry."""

    category = "transient"
    status_code_default = status.HTTP_503_SERVICE_UNAVAILABLE
