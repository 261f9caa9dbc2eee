from supabase import Client
from fastapi import HTTPException
from typing import List
import uuid
import logging

from app.core.clock import utc_now_iso
from app.core.errors import Conflict
from app.core.identity import CallerIdentity
from app.database.supabase_client import Tables, is_unique_violation
from app.modules.messages.schemas import MessageCreate, MessageResponse, MessageCreateResult
from app.modules.notifications.publisher import PushEventPublisher
from app.modules.notifications.schemas import PushEvent, PublishResult

logger = logging.getLogger(__name__)

PREVIEW_LENGTH = 120


def generate_message_id() -> str:
    return f"msg_{uuid.uuid4()}"


def make_preview(text: str) -> str:
    text = " ".join(text.split())
    if len(text) <= PREVIEW_LENGTH:
        return text
    return text[:PREVIEW_LENGTH - 1].rstrip() + "…"


class MessageService:
    def __init__(self, supabase: Client, publisher: PushEventPublisher):
        self.supabase = supabase
        self.publisher = publisher

    def list_messages(self, circle_id: str, limit: int) -> List[MessageResponse]:
        """Most recent messages for a circle, newest first"""
        try:
            result = self.supabase.table(Tables.MESSAGES)\
                .select("*")\
                .eq("circle_id", circle_id)\
                .order("created_at", desc=True)\
                .order("message_id", desc=True)\
                .limit(limit)\
                .execute()
            return [MessageResponse(**item) for item in (result.data or [])]
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def create_message(
        self,
        circle_id: str,
        message_data: MessageCreate,
        identity: CallerIdentity,
        circle_name: str,
    ) -> MessageCreateResult:
        """Persist the message, then enqueue its push event. Enqueue failure never unwinds the write."""
        message_type = message_data.normalized_type
        row = {
            "message_id": message_data.message_id or generate_message_id(),
            "circle_id": circle_id,
            "created_at": utc_now_iso(),
            "author": identity.display_name,
            "author_user_id": identity.user_id,
            "text": message_data.text,
            "message_type": message_type,
            "question_id": message_data.question_id if message_type == "answer" else None,
        }
        try:
            result = self.supabase.table(Tables.MESSAGES).insert(row).execute()
        except Exception as e:
            if is_unique_violation(e):
                raise Conflict(f"Message {row['message_id']} already exists")
            raise HTTPException(status_code=500, detail=str(e))

        item = MessageResponse(**(result.data[0] if result.data else row))
        logger.info(f"Created {message_type} {item.message_id} in circle {circle_id} by {identity.user_id}")
        return MessageCreateResult(item=item, notification=self._emit(item, circle_name, identity))

    def _emit(self, item: MessageResponse, circle_name: str, identity: CallerIdentity) -> PublishResult:
        if item.message_type == "question":
            event = PushEvent(
                type="NEW_QUESTION",
                circle_id=item.circle_id,
                circle_name=circle_name,
                question_id=item.message_id,
                preview=make_preview(item.text),
                actor_user_id=identity.user_id,
            )
        else:
            event = PushEvent(
                type="NEW_ANSWER",
                circle_id=item.circle_id,
                circle_name=circle_name,
                question_id=item.question_id,
                answer_id=item.message_id,
                preview=make_preview(item.text),
                actor_user_id=identity.user_id,
            )
        outcome = self.publisher.publish(event)
        if not outcome.queued:
            logger.warning(f"Message {item.message_id} saved but push event not queued: {outcome.error}")
        return outcome
