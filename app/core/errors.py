"""
Error taxonomy for the Circles API.

Each error is an HTTPException so routes and services can raise it directly
and FastAPI renders it as {"detail": ...} with the matching status code.
"""

from fastapi import HTTPException, status
from typing import Optional


class Unauthenticated(HTTPException):
    def __init__(self, detail: str = "Unauthorized: no userId in token"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


class Forbidden(HTTPException):
    def __init__(self, detail: str = "Forbidden: user is not a member of this circle"):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


class ValidationFailed(HTTPException):
    def __init__(self, detail: str):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class NotFound(HTTPException):
    def __init__(self, detail: str = "Not found"):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class Conflict(HTTPException):
    def __init__(self, detail: str):
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


class InvitationExpired(HTTPException):
    def __init__(self, detail: str = "Invitation has expired"):
        super().__init__(status_code=status.HTTP_410_GONE, detail=detail)


class InvalidInvitationState(HTTPException):
    def __init__(self, invitation_status: Optional[str] = None):
        detail = "Invitation is no longer pending"
        if invitation_status:
            detail = f"{detail} (status: {invitation_status})"
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class InvitationLimitReached(HTTPException):
    def __init__(self, detail: str = "Invitation has already been used"):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class UpstreamError(HTTPException):
    def __init__(self, detail: str = "Upstream provider failed"):
        super().__init__(status_code=status.HTTP_502_BAD_GATEWAY, detail=detail)
