from fastapi import APIRouter, Body, Depends, Query, Request
from pydantic import ValidationError
from supabase import Client
from typing import Any, Dict, Optional

from app.config import settings
from app.core.dependencies import get_current_identity, get_membership_set, MembershipSet
from app.core.errors import ValidationFailed
from app.core.identity import CallerIdentity
from app.database.supabase_client import get_supabase
from app.modules.circles.schemas import CircleCreate
from app.modules.circles.service import CircleService
from app.modules.circles.tags import TagService
from app.modules.messages.schemas import MessageCreate
from app.modules.messages.service import MessageService
from app.modules.notifications.publisher import PushEventPublisher, get_push_publisher

router = APIRouter(prefix="/circles", tags=["circles"])


def get_circle_service(supabase: Client = Depends(get_supabase)) -> CircleService:
    return CircleService(supabase)


def get_message_service(
    supabase: Client = Depends(get_supabase),
    publisher: PushEventPublisher = Depends(get_push_publisher),
) -> MessageService:
    return MessageService(supabase, publisher)


def _user_block(identity: CallerIdentity) -> Dict[str, Any]:
    return {"userId": identity.user_id, "author": identity.display_name}


def _first_validation_message(exc: ValidationError) -> str:
    error = exc.errors()[0]
    message = error.get("msg", "Invalid request body")
    field = ".".join(str(p) for p in error.get("loc", ()))
    if message.startswith("Value error, "):
        return message[len("Value error, "):]
    return f"{field}: {message}" if field else message


@router.get("")
async def list_messages(
    family_id: Optional[str] = Query(None, alias="familyId"),
    limit: Optional[int] = None,
    identity: CallerIdentity = Depends(get_current_identity),
    memberships: MembershipSet = Depends(get_membership_set),
    service: MessageService = Depends(get_message_service),
):
    """List the most recent messages of a circle (members only)"""
    if not family_id:
        raise ValidationFailed('Query parameter "familyId" is required')
    if limit is None:
        limit = settings.messages_default_limit
    if limit < 1:
        raise ValidationFailed('"limit" must be a positive integer')
    limit = min(limit, settings.messages_max_limit)

    memberships.require_member(family_id)
    items = service.list_messages(family_id, limit)
    return {
        "message": "OK",
        "familyId": family_id,
        "count": len(items),
        "items": [item.model_dump(by_alias=True) for item in items],
        "user": _user_block(identity),
    }


@router.post("", status_code=201)
async def create_message_or_circle(
    request: Request,
    payload: Dict[str, Any] = Body(...),
    identity: CallerIdentity = Depends(get_current_identity),
    supabase: Client = Depends(get_supabase),
    circle_service: CircleService = Depends(get_circle_service),
    message_service: MessageService = Depends(get_message_service),
):
    """Create a message, or a circle when the body carries action=createCircle"""
    if payload.get("action") == "createCircle":
        try:
            circle_data = CircleCreate.model_validate(payload)
        except ValidationError as e:
            raise ValidationFailed(_first_validation_message(e))
        circle = circle_service.create_circle(circle_data, identity)
        return {
            "message": "Circle created",
            "circle": {**circle.model_dump(by_alias=True), "role": "owner"},
            "user": _user_block(identity),
        }

    try:
        message_data = MessageCreate.model_validate(payload)
    except ValidationError as e:
        raise ValidationFailed(_first_validation_message(e))
    circle_id = message_data.target_circle_id
    if not circle_id:
        raise ValidationFailed('Field "familyId" is required')

    memberships = get_membership_set(request, identity, supabase)
    memberships.require_member(circle_id)

    result = message_service.create_message(
        circle_id,
        message_data,
        identity,
        circle_name=circle_service.get_circle_name(circle_id),
    )
    return {
        "message": "Message created",
        "item": result.item.model_dump(by_alias=True),
        "notification": {"queued": result.notification.queued},
        "user": _user_block(identity),
    }


@router.get("/config")
async def list_my_circles(
    identity: CallerIdentity = Depends(get_current_identity),
    memberships: MembershipSet = Depends(get_membership_set),
    service: CircleService = Depends(get_circle_service),
):
    """Circles the caller belongs to"""
    circles = service.list_my_circles(memberships)
    return {
        "circles": [c.model_dump(by_alias=True) for c in circles],
        "user": _user_block(identity),
    }


@router.get("/members")
async def list_members(
    family_id: Optional[str] = Query(None, alias="familyId"),
    memberships: MembershipSet = Depends(get_membership_set),
    service: CircleService = Depends(get_circle_service),
):
    """List all members of a circle (members only)"""
    if not family_id:
        raise ValidationFailed('Query parameter "familyId" is required')
    memberships.require_member(family_id)
    members = service.list_members(family_id)
    return {
        "circleId": family_id,
        "count": len(members),
        "members": [m.model_dump(by_alias=True) for m in members],
    }


@router.get("/tags")
async def list_tags(
    identity: CallerIdentity = Depends(get_current_identity),
    supabase: Client = Depends(get_supabase),
):
    """Active tag config for the circle-creation form"""
    tags = TagService(supabase).active_tags()
    return {"tags": [t.model_dump(by_alias=True) for t in tags]}
