from supabase import Client
from fastapi import HTTPException
from typing import Any, Dict, Optional
from urllib.parse import quote
import uuid
import logging

from app.config import settings
from app.core.clock import utc_now_iso, epoch_seconds
from app.core.dependencies import MembershipSet
from app.core.errors import (
    Forbidden, NotFound, InvitationExpired, InvalidInvitationState, InvitationLimitReached,
)
from app.core.identity import CallerIdentity
from app.database.supabase_client import Tables
from app.modules.circles.service import CircleService
from app.modules.invitations.mailer import InvitationEmailSender
from app.modules.invitations.schemas import (
    InvitationCreate, InvitationResponse, InvitationAcceptResult
)

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 24 * 3600
# Accept moves status to ACCEPTED, so an invitation can only ever be used once
INVITATION_MAX_USES = 1


def build_invite_url(invitation_id: str) -> str:
    return f"{settings.frontend_base_url.rstrip('/')}/?invite={quote(invitation_id, safe='')}"


class InvitationService:
    def __init__(self, supabase: Client, email_sender: Optional[InvitationEmailSender] = None):
        self.supabase = supabase
        self.email_sender = email_sender
        self.circles = CircleService(supabase)

    def create_invitation(
        self,
        circle_id: str,
        invitation_data: InvitationCreate,
        identity: CallerIdentity,
        memberships: MembershipSet,
    ) -> InvitationResponse:
        """Create a PENDING invitation and email the link (email is best-effort)"""
        caller_role = memberships.require_member(circle_id)
        if invitation_data.role == "owner" and caller_role != "owner":
            raise Forbidden("Forbidden: only circle owners can invite owners")

        expires_in_days = invitation_data.expires_in_days or settings.invitation_default_expiry_days
        row = {
            "invitation_id": str(uuid.uuid4()),
            "circle_id": circle_id,
            "invited_email": invitation_data.email,
            "role": invitation_data.role,
            "created_by_user_id": identity.user_id,
            "created_at": utc_now_iso(),
            "expires_at": epoch_seconds() + int(expires_in_days * SECONDS_PER_DAY),
            "status": "PENDING",
            "max_uses": INVITATION_MAX_USES,
            "uses_count": 0,
        }
        try:
            result = self.supabase.table(Tables.INVITATIONS).insert(row).execute()
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))
        invitation = InvitationResponse(**(result.data[0] if result.data else row))
        logger.info(f"Created invitation {invitation.invitation_id} for circle {circle_id}")

        if self.email_sender is not None:
            try:
                self.email_sender.send(
                    invitation.invited_email,
                    self.circles.get_circle_name(circle_id),
                    identity.display_name,
                    build_invite_url(invitation.invitation_id),
                )
            except Exception as e:
                logger.error(f"Invitation email failed for {invitation.invitation_id}: {e}")
        return invitation

    def get_invitation(self, invitation_id: str) -> Optional[Dict[str, Any]]:
        result = self.supabase.table(Tables.INVITATIONS)\
            .select("*")\
            .eq("invitation_id", invitation_id)\
            .limit(1)\
            .execute()
        return result.data[0] if result.data else None

    def accept_invitation(self, invitation_id: str, identity: CallerIdentity) -> InvitationAcceptResult:
        """
        Accept an invitation on behalf of the caller.

        Checks run in order: missing (404), expired (410), not pending (400),
        out of uses (400). The state change and the membership upsert then run
        as one conditional transaction; losing a race to a concurrent accept
        surfaces as "already used".
        """
        try:
            invitation = self.get_invitation(invitation_id)
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))
        if not invitation:
            raise NotFound("Invitation not found")

        now_epoch = epoch_seconds()
        if invitation.get("expires_at") is not None and invitation["expires_at"] <= now_epoch:
            logger.warning(f"Invitation expired: {invitation_id}")
            raise InvitationExpired()

        status = invitation.get("status") or "PENDING"
        if status == "ACCEPTED":
            logger.warning(f"Invitation already accepted: {invitation_id}")
            raise InvitationLimitReached()
        if status != "PENDING":
            raise InvalidInvitationState(status)

        if invitation.get("uses_count", 0) >= invitation.get("max_uses", 1):
            logger.warning(f"Invitation max uses reached: {invitation_id}")
            raise InvitationLimitReached()

        invited_email = (invitation.get("invited_email") or "").lower()
        if invited_email and identity.email and invited_email != identity.email.lower():
            # Logged only; the invite link is the credential
            logger.warning(
                f"Email mismatch on invitation accept {invitation_id}: "
                f"invited {invited_email}, caller {identity.email}"
            )

        try:
            result = self.supabase.rpc("accept_circle_invitation", {
                "p_invitation_id": invitation_id,
                "p_user_id": identity.user_id,
                "p_display_name": identity.display_name,
                "p_now_iso": utc_now_iso(),
                "p_now_epoch": now_epoch,
            }).execute()
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

        if not result.data:
            raise InvitationLimitReached()

        accepted = result.data[0]
        circle_id = accepted["accepted_circle_id"]
        logger.info(f"User {identity.user_id} joined circle {circle_id} via invitation {invitation_id}")
        return InvitationAcceptResult(
            circle_id=circle_id,
            circle_name=self.circles.get_circle_name(circle_id),
            role=accepted.get("accepted_role") or "member",
        )
