from fastapi import APIRouter, Depends
from supabase import Client

from app.config import settings
from app.core.dependencies import get_current_identity
from app.core.errors import NotFound
from app.core.identity import CallerIdentity
from app.database.supabase_client import get_supabase
from app.modules.notifications.schemas import SubscribeRequest, UnsubscribeRequest, SubscriptionResponse
from app.modules.notifications.service import SubscriptionService

router = APIRouter(prefix="/notifications", tags=["notifications"])


def get_subscription_service(supabase: Client = Depends(get_supabase)) -> SubscriptionService:
    return SubscriptionService(supabase)


@router.get("/vapid-public-key")
async def vapid_public_key():
    """Application server key for pushManager.subscribe()"""
    if not settings.push_vapid_public_key:
        raise NotFound("Push notifications are not configured")
    return {"publicKey": settings.push_vapid_public_key}


@router.post("/subscribe", response_model=SubscriptionResponse, status_code=201)
async def subscribe(
    body: SubscribeRequest,
    identity: CallerIdentity = Depends(get_current_identity),
    service: SubscriptionService = Depends(get_subscription_service),
):
    """Register this device for push notifications"""
    return service.subscribe(identity.user_id, body)


@router.post("/unsubscribe")
async def unsubscribe(
    body: UnsubscribeRequest,
    identity: CallerIdentity = Depends(get_current_identity),
    service: SubscriptionService = Depends(get_subscription_service),
):
    """Remove one of the caller's push subscriptions"""
    removed = service.unsubscribe(identity.user_id, endpoint=body.endpoint, subscription_id=body.subscription_id)
    return {"message": "Unsubscribed" if removed else "Subscription not found", "removed": removed}
