from supabase import Client
from fastapi import HTTPException
from typing import Dict, Set
import logging

from app.database.supabase_client import Tables
from app.modules.stats.schemas import StatsResponse, CircleMemberCount

logger = logging.getLogger(__name__)


class StatsService:
    """Dashboard counts from full scans of circles and memberships (small tables only)."""

    def __init__(self, supabase: Client):
        self.supabase = supabase

    def get_stats(self) -> StatsResponse:
        try:
            circles = self.supabase.table(Tables.CIRCLES).select("circle_id").execute().data or []
            memberships = self.supabase.table(Tables.MEMBERSHIPS).select("user_id, circle_id").execute().data or []
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

        user_ids: Set[str] = set()
        members_by_circle: Dict[str, Set[str]] = {}
        for m in memberships:
            user_id, circle_id = m.get("user_id"), m.get("circle_id")
            if user_id:
                user_ids.add(user_id)
            if circle_id:
                members_by_circle.setdefault(circle_id, set()).add(user_id)

        return StatsResponse(
            total_circles=len(circles),
            total_memberships=len(memberships),
            total_members=len(user_ids),
            members_by_circle=[
                CircleMemberCount(circle_id=c, member_count=len(users))
                for c, users in sorted(members_by_circle.items())
            ],
        )
