from supabase import Client
from fastapi import HTTPException
from typing import List, Dict, Any
import hashlib
import logging

from app.core.clock import utc_now_iso
from app.database.supabase_client import Tables
from app.modules.notifications.schemas import SubscribeRequest, SubscriptionResponse

logger = logging.getLogger(__name__)


def subscription_id_for(endpoint: str) -> str:
    return hashlib.sha256(endpoint.encode("utf-8")).hexdigest()[:32]


class SubscriptionService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def subscribe(self, user_id: str, data: SubscribeRequest) -> SubscriptionResponse:
        """Register (or refresh) a device's push subscription"""
        try:
            row = {
                "user_id": user_id,
                "subscription_id": subscription_id_for(data.subscription.endpoint),
                "endpoint": data.subscription.endpoint,
                "p256dh": data.subscription.keys.p256dh,
                "auth": data.subscription.keys.auth,
                "user_agent": data.user_agent,
                "created_at": utc_now_iso(),
            }
            result = self.supabase.table(Tables.SUBSCRIPTIONS)\
                .upsert(row, on_conflict="user_id,subscription_id")\
                .execute()
            return SubscriptionResponse(**(result.data[0] if result.data else row))
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def unsubscribe(self, user_id: str, endpoint: str = None, subscription_id: str = None) -> bool:
        """Remove one of the caller's subscriptions. Returns False when nothing matched."""
        try:
            subscription_id = subscription_id or subscription_id_for(endpoint)
            result = self.supabase.table(Tables.SUBSCRIPTIONS)\
                .delete()\
                .eq("user_id", user_id)\
                .eq("subscription_id", subscription_id)\
                .execute()
            return bool(result.data)
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def list_for_user(self, user_id: str) -> List[Dict[str, Any]]:
        result = self.supabase.table(Tables.SUBSCRIPTIONS)\
            .select("*")\
            .eq("user_id", user_id)\
            .execute()
        return result.data or []

    def delete(self, user_id: str, subscription_id: str) -> None:
        self.supabase.table(Tables.SUBSCRIPTIONS)\
            .delete()\
            .eq("user_id", user_id)\
            .eq("subscription_id", subscription_id)\
            .execute()
