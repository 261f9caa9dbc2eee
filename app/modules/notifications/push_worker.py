"""
Notification fan-out worker.

Reads PushEvents from SQS, resolves the circle's members minus the actor,
loads each member's push subscriptions and delivers a Web Push notification
to every device. Delivery is sequential and at-least-once: a message is
deleted from the queue only after it was processed, so an exception while
parsing or routing an event leaves it for SQS redelivery / the DLQ.
"""

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import boto3
from pydantic import BaseModel
from pywebpush import webpush, WebPushException
from supabase import Client

from app.config import settings
from app.database.supabase_client import Tables
from app.modules.notifications.schemas import PushEvent, PushPayload
from app.modules.notifications.service import SubscriptionService

logger = logging.getLogger(__name__)

SUPPORTED_EVENT_TYPES = ("NEW_QUESTION", "NEW_ANSWER")
GONE_STATUS_CODES = (404, 410)


class FanoutResult(BaseModel):
    targets: int = 0
    sent: int = 0
    failed: int = 0
    pruned: int = 0


class PushSender:
    """Thin wrapper over pywebpush with the VAPID identity from settings."""

    def __init__(self, public_key: Optional[str], private_key: Optional[str], subject: str):
        self.public_key = public_key
        self.private_key = private_key
        self.subject = subject

    @property
    def configured(self) -> bool:
        return bool(self.public_key and self.private_key)

    def send(self, subscription: Dict[str, Any], payload: str) -> None:
        webpush(
            subscription_info={
                "endpoint": subscription["endpoint"],
                "keys": {"p256dh": subscription["p256dh"], "auth": subscription["auth"]},
            },
            data=payload,
            vapid_private_key=self.private_key,
            # pywebpush mutates the claims dict (adds aud/exp), so build a fresh one per call
            vapid_claims={"sub": self.subject},
        )


def build_payload(event: PushEvent) -> PushPayload:
    is_answer = event.type == "NEW_ANSWER"
    noun = "answer" if is_answer else "question"
    title = f"New {noun} in {event.circle_name}" if event.circle_name else f"New {noun} in Circles"
    default_body = "Someone answered a question." if is_answer else "Someone posted a new question."
    return PushPayload(
        title=title,
        body=event.preview or default_body,
        circle_id=event.circle_id,
        url=f"/?circleId={quote(event.circle_id, safe='')}" if event.circle_id else "/",
        question_id=event.question_id if is_answer else None,
        answer_id=event.answer_id if is_answer else None,
    )


class NotificationFanout:
    def __init__(self, supabase: Client, sender: PushSender):
        self.supabase = supabase
        self.sender = sender
        self.subscriptions = SubscriptionService(supabase)

    def target_user_ids(self, circle_id: str, actor_user_id: Optional[str]) -> List[str]:
        """Circle members excluding the actor, deduplicated, in membership order."""
        result = self.supabase.table(Tables.MEMBERSHIPS)\
            .select("user_id")\
            .eq("circle_id", circle_id)\
            .execute()
        members = result.data or []
        logger.info(f"Loaded {len(members)} members for circle {circle_id}")
        seen = set()
        targets = []
        for member in members:
            user_id = member.get("user_id")
            if not user_id or user_id == actor_user_id or user_id in seen:
                continue
            seen.add(user_id)
            targets.append(user_id)
        return targets

    def _deliver(self, user_id: str, subscription: Dict[str, Any], payload: str, result: FanoutResult) -> None:
        subscription_id = subscription.get("subscription_id")
        try:
            self.sender.send(subscription, payload)
            result.sent += 1
            logger.info(f"Push sent to subscription {subscription_id} for user {user_id}")
        except WebPushException as e:
            result.failed += 1
            status_code = getattr(e.response, "status_code", None)
            logger.error(f"Failed to send push to subscription {subscription_id} for user {user_id}: {status_code} {e}")
            if status_code in GONE_STATUS_CODES:
                try:
                    self.subscriptions.delete(user_id, subscription_id)
                    result.pruned += 1
                    logger.info(f"Removed expired subscription {subscription_id} for user {user_id}")
                except Exception as delete_err:
                    logger.error(f"Failed to remove expired subscription {subscription_id}: {delete_err}")
        except Exception as e:
            result.failed += 1
            logger.error(f"Failed to send push to subscription {subscription_id} for user {user_id}: {e}")

    def process_event(self, event: PushEvent) -> FanoutResult:
        result = FanoutResult()
        if not self.sender.configured:
            logger.warning("Skipping push send: VAPID keys not configured")
            return result

        targets = self.target_user_ids(event.circle_id, event.actor_user_id)
        result.targets = len(targets)
        if not targets:
            logger.info(f"No target users for {event.type} event in circle {event.circle_id}; nothing to send")
            return result

        payload = build_payload(event).to_json()
        for user_id in targets:
            try:
                subscriptions = self.subscriptions.list_for_user(user_id)
            except Exception as e:
                logger.error(f"Failed to load subscriptions for user {user_id}: {e}")
                continue
            for subscription in subscriptions:
                self._deliver(user_id, subscription, payload, result)
        return result

    def handle_message_body(self, body: str) -> Optional[FanoutResult]:
        """Parse and route one queue message. Parse/routing errors propagate so the queue retries."""
        parsed = json.loads(body)
        event_type = parsed.get("type") if isinstance(parsed, dict) else None
        if event_type not in SUPPORTED_EVENT_TYPES:
            logger.warning(f"Unknown push event type: {event_type}")
            return None
        event = PushEvent.model_validate(parsed)
        logger.info(f"{event.type} push event for circle {event.circle_id} by {event.actor_user_id}")
        return self.process_event(event)


def poll_once(sqs_client, queue_url: str, fanout: NotificationFanout) -> int:
    """Receive one batch and process it sequentially. Returns the number of messages deleted."""
    response = sqs_client.receive_message(
        QueueUrl=queue_url,
        MaxNumberOfMessages=settings.push_worker_batch_size,
        WaitTimeSeconds=settings.push_worker_wait_seconds,
    )
    processed = 0
    for message in response.get("Messages", []):
        try:
            fanout.handle_message_body(message["Body"])
        except Exception as e:
            # Left on the queue; visibility timeout triggers redelivery or the DLQ
            logger.error(f"Error processing queue message {message.get('MessageId')}: {e}")
            continue
        sqs_client.delete_message(QueueUrl=queue_url, ReceiptHandle=message["ReceiptHandle"])
        processed += 1
    return processed


def build_fanout() -> NotificationFanout:
    from app.database.supabase_client import SupabaseClient
    sender = PushSender(
        settings.push_vapid_public_key,
        settings.push_vapid_private_key,
        settings.push_vapid_subject,
    )
    return NotificationFanout(SupabaseClient.get_service_client(), sender)


async def push_worker_loop():
    """Background task that long-polls the push queue forever"""
    if not settings.push_queue_url:
        logger.warning("Push worker not started: push_queue_url is not configured")
        return
    sqs_client = boto3.client(
        "sqs",
        aws_access_key_id=settings.aws_access_key_id,
        aws_secret_access_key=settings.aws_secret_access_key,
        region_name=settings.aws_region,
    )
    fanout = build_fanout()
    logger.info(f"Push worker polling {settings.push_queue_url}")
    while True:
        try:
            await asyncio.to_thread(poll_once, sqs_client, settings.push_queue_url, fanout)
        except Exception as e:
            logger.error(f"Error in push worker loop: {str(e)}")
            await asyncio.sleep(5)
