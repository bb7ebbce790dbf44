"""
Typed failures raised by the family-care services.

Authorization and state-invariant failures are HTTPException subclasses so the
service layer can raise them the same way it raises any other HTTP error and
FastAPI renders them with the right status code.
"""

from typing import Optional

from fastapi import HTTPException, status


class FamilyCareError(HTTPException):
    http_status: int = status.HTTP_400_BAD_REQUEST
    default_detail: str = "Request could not be processed"

    def __init__(self, detail: Optional[str] = None):
        super().__init__(status_code=self.http_status, detail=detail or self.default_detail)


class AccessDenied(FamilyCareError):
    http_status = status.HTTP_403_FORBIDDEN
    default_detail = "Access denied"


class NotAMember(AccessDenied):
    default_detail = "You are not an active member of this family"


class NotAuthorized(FamilyCareError):
    http_status = status.HTTP_403_FORBIDDEN
    default_detail = "Only family administrators can perform this action"


class NotFound(FamilyCareError):
    http_status = status.HTTP_404_NOT_FOUND
    default_detail = "Not found"


class MemberInactive(NotFound):
    default_detail = "Member not found or inactive"


class UserNotFound(FamilyCareError):
    http_status = status.HTTP_404_NOT_FOUND
    default_detail = "User not found. They need to create an account first."


class AlreadyMember(FamilyCareError):
    http_status = status.HTTP_409_CONFLICT
    default_detail = "User is already a member of this family"


class CannotModifySelf(FamilyCareError):
    default_detail = "You cannot change your own membership this way"


class LastAdminProtected(FamilyCareError):
    default_detail = "Cannot remove the last administrator. Add another admin first."


class DeliveryFailure(Exception):
    """Push delivery to a single endpoint failed. Never leaves the dispatcher."""

    def __init__(self, endpoint: str, status_code: Optional[int] = None, reason: str = ""):
        self.endpoint = endpoint
        self.status_code = status_code
        self.reason = reason
        super().__init__(f"Push delivery failed ({status_code}): {reason}")

    @property
    def permanent(self) -> bool:
        """Endpoint is gone and should not be used again."""
        return self.status_code in (404, 410)
