from pydantic import EmailStr, Field, field_validator
from typing import Optional, Literal

from app.core.schemas import CamelModel

InvitationStatus = Literal["PENDING", "ACCEPTED"]


class InvitationCreate(CamelModel):
    email: EmailStr
    role: Literal["owner", "member"] = "member"
    expires_in_days: Optional[float] = Field(default=None, gt=0, le=365)


class InvitationResponse(CamelModel):
    invitation_id: str
    circle_id: str
    invited_email: str
    role: str
    created_by_user_id: str
    created_at: str
    expires_at: int
    status: InvitationStatus
    max_uses: int = 1
    uses_count: int = 0
    accepted_by_user_id: Optional[str] = None
    accepted_at: Optional[str] = None


class InvitationAccept(CamelModel):
    invitation_id: str

    @field_validator("invitation_id")
    @classmethod
    def not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError('Field "invitationId" is required')
        return v


class InvitationAcceptResult(CamelModel):
    circle_id: str
    circle_name: str
    role: str
