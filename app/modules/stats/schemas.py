from typing import List

from app.core.schemas import CamelModel


class CircleMemberCount(CamelModel):
    circle_id: str
    member_count: int


class StatsResponse(CamelModel):
    total_circles: int
    total_memberships: int
    total_members: int
    members_by_circle: List[CircleMemberCount]
