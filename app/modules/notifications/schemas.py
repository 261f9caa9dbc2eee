from pydantic import BaseModel, model_validator
from typing import Optional, Literal, Any

from app.core.schemas import CamelModel

PushEventType = Literal["NEW_QUESTION", "NEW_ANSWER"]


class PushEvent(CamelModel):
    type: PushEventType
    circle_id: str
    circle_name: Optional[str] = None
    question_id: Optional[str] = None
    answer_id: Optional[str] = None
    preview: str = ""
    actor_user_id: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def accept_legacy_preview_keys(cls, data: Any) -> Any:
        # Older producers sent questionPreview / answerPreview instead of preview
        if isinstance(data, dict) and not data.get("preview"):
            legacy = data.get("questionPreview") or data.get("answerPreview")
            if legacy:
                data = {**data, "preview": legacy}
        return data

    def to_message_body(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True)


class PushPayload(CamelModel):
    """JSON shown by the service worker's push handler."""
    title: str
    body: str
    circle_id: str
    url: str
    question_id: Optional[str] = None
    answer_id: Optional[str] = None

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True)


class PublishResult(BaseModel):
    """Outcome of handing a push event to the queue. The message write never depends on it."""
    queued: bool
    message_id: Optional[str] = None
    error: Optional[str] = None


class SubscriptionKeys(BaseModel):
    p256dh: str
    auth: str


class PushSubscriptionIn(BaseModel):
    endpoint: str
    keys: SubscriptionKeys


class SubscribeRequest(CamelModel):
    subscription: PushSubscriptionIn
    user_agent: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def accept_bare_subscription(cls, data: Any) -> Any:
        # Allow posting PushSubscription.toJSON() directly
        if isinstance(data, dict) and "subscription" not in data and "endpoint" in data:
            return {
                "subscription": {"endpoint": data.get("endpoint"), "keys": data.get("keys")},
                "userAgent": data.get("userAgent") or data.get("user_agent"),
            }
        return data


class UnsubscribeRequest(CamelModel):
    endpoint: Optional[str] = None
    subscription_id: Optional[str] = None

    @model_validator(mode="after")
    def require_endpoint_or_id(self):
        if not self.endpoint and not self.subscription_id:
            raise ValueError("Either endpoint or subscriptionId is required")
        return self


class SubscriptionResponse(CamelModel):
    subscription_id: str
    endpoint: str
    user_agent: Optional[str] = None
    created_at: str
