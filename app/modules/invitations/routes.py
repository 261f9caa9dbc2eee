from fastapi import APIRouter, Depends
from supabase import Client

from app.core.dependencies import get_current_identity, get_membership_set, MembershipSet
from app.core.identity import CallerIdentity
from app.database.supabase_client import get_supabase
from app.modules.invitations.mailer import InvitationEmailSender, get_email_sender
from app.modules.invitations.schemas import InvitationCreate, InvitationAccept
from app.modules.invitations.service import InvitationService, build_invite_url

router = APIRouter(prefix="/circles", tags=["invitations"])


def get_invitation_service(
    supabase: Client = Depends(get_supabase),
    email_sender: InvitationEmailSender = Depends(get_email_sender),
) -> InvitationService:
    return InvitationService(supabase, email_sender)


@router.post("/invitations/accept")
async def accept_invitation(
    body: InvitationAccept,
    identity: CallerIdentity = Depends(get_current_identity),
    service: InvitationService = Depends(get_invitation_service),
):
    """Accept an invitation and join its circle"""
    result = service.accept_invitation(body.invitation_id, identity)
    return {
        "message": "Invitation accepted",
        **result.model_dump(by_alias=True),
        "user": {"userId": identity.user_id, "author": identity.display_name},
    }


@router.post("/{circle_id}/invitations", status_code=201)
async def create_invitation(
    circle_id: str,
    body: InvitationCreate,
    identity: CallerIdentity = Depends(get_current_identity),
    memberships: MembershipSet = Depends(get_membership_set),
    service: InvitationService = Depends(get_invitation_service),
):
    """Invite someone by email into a circle the caller belongs to"""
    invitation = service.create_invitation(circle_id, body, identity, memberships)
    return {
        "message": "Invitation created",
        "invitationId": invitation.invitation_id,
        "inviteUrl": build_invite_url(invitation.invitation_id),
        "invitation": invitation.model_dump(by_alias=True),
    }
