from pydantic import field_validator
from typing import Optional, List, Literal

from app.core.schemas import CamelModel

MembershipRole = Literal["owner", "member"]


class CircleCreate(CamelModel):
    name: str
    description: Optional[str] = None
    tags: List[str] = []

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError('Field "name" is required')
        return v


class CircleResponse(CamelModel):
    circle_id: str
    name: str
    description: str = ""
    tags: List[str] = []
    created_at: str
    created_by_user_id: str


class MyCircleResponse(CamelModel):
    circle_id: str
    name: str
    description: str = ""
    tags: List[str] = []
    role: MembershipRole = "member"


class MembershipResponse(CamelModel):
    user_id: str
    circle_id: str
    role: MembershipRole = "member"
    joined_at: Optional[str] = None
    display_name: Optional[str] = None


class TagConfig(CamelModel):
    tag_key: str
    display_label: str
    category: str = ""
    description: str = ""
    tone_guidance: str = ""
    active: bool = True
