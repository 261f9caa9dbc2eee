from supabase import Client
from fastapi import HTTPException
from typing import List, Optional, Dict, Any
import re
import uuid
import logging

from app.core.clock import utc_now_iso
from app.core.dependencies import MembershipSet
from app.core.errors import Conflict
from app.core.identity import CallerIdentity
from app.database.supabase_client import Tables, is_unique_violation
from app.modules.circles.schemas import (
    CircleCreate, CircleResponse, MyCircleResponse, MembershipResponse
)
from app.modules.circles.tags import TagService

logger = logging.getLogger(__name__)


def generate_circle_id(name: str) -> str:
    """Readable slug plus a random suffix, e.g. devteam-3f9a2c1b."""
    slug = re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")[:32] or "circle"
    return f"{slug}-{uuid.uuid4().hex[:8]}"


class CircleService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def create_circle(self, circle_data: CircleCreate, identity: CallerIdentity) -> CircleResponse:
        """Create a circle and make the creator its owner"""
        try:
            tags = TagService(self.supabase).known_tag_keys(circle_data.tags)
            dropped = [t for t in circle_data.tags if t not in tags]
            if dropped:
                logger.info(f"Dropping unknown tags on circle create: {dropped}")

            row = {
                "circle_id": generate_circle_id(circle_data.name),
                "name": circle_data.name,
                "description": circle_data.description or "",
                "tags": tags,
                "created_at": utc_now_iso(),
                "created_by_user_id": identity.user_id,
            }
            try:
                result = self.supabase.table(Tables.CIRCLES).insert(row).execute()
            except Exception as e:
                if is_unique_violation(e):
                    raise Conflict("Circle already exists")
                raise

            if not result.data:
                raise HTTPException(status_code=500, detail="Failed to create circle")

            # Not atomic with the insert above; a failure here leaves an ownerless circle
            self.supabase.table(Tables.MEMBERSHIPS).upsert({
                "user_id": identity.user_id,
                "circle_id": row["circle_id"],
                "role": "owner",
                "joined_at": row["created_at"],
                "display_name": identity.display_name,
            }, on_conflict="user_id,circle_id").execute()

            logger.info(f"Created circle {row['circle_id']} owned by {identity.user_id}")
            return CircleResponse(**result.data[0])
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def get_circle(self, circle_id: str) -> Optional[Dict[str, Any]]:
        result = self.supabase.table(Tables.CIRCLES)\
            .select("*")\
            .eq("circle_id", circle_id)\
            .limit(1)\
            .execute()
        return result.data[0] if result.data else None

    def get_circle_name(self, circle_id: str) -> str:
        """Best-effort display name; falls back to the id."""
        try:
            circle = self.get_circle(circle_id)
        except Exception as e:
            logger.error(f"Error loading circle metadata for {circle_id}: {e}")
            return circle_id
        return (circle or {}).get("name") or circle_id

    def list_my_circles(self, memberships: MembershipSet) -> List[MyCircleResponse]:
        """Circles the caller belongs to, with the caller's role in each"""
        circle_ids = sorted(memberships.circle_ids)
        if not circle_ids:
            return []
        try:
            result = self.supabase.table(Tables.CIRCLES)\
                .select("*")\
                .in_("circle_id", circle_ids)\
                .execute()
            by_id = {c["circle_id"]: c for c in (result.data or [])}
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

        circles = []
        for circle_id in circle_ids:
            circle = by_id.get(circle_id, {})
            circles.append(MyCircleResponse(
                circle_id=circle_id,
                name=circle.get("name") or circle_id,
                description=circle.get("description") or "",
                tags=circle.get("tags") or [],
                role=memberships.role_for(circle_id) or "member",
            ))
        return circles

    def list_members(self, circle_id: str) -> List[MembershipResponse]:
        """List all membership rows for a circle"""
        try:
            result = self.supabase.table(Tables.MEMBERSHIPS)\
                .select("*")\
                .eq("circle_id", circle_id)\
                .execute()
            return [MembershipResponse(**member) for member in (result.data or [])]
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))
