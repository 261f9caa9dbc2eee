import boto3
from botocore.exceptions import BotoCoreError, ClientError
from functools import lru_cache
from typing import Optional
import logging

from app.config import settings
from app.modules.notifications.schemas import PushEvent, PublishResult

logger = logging.getLogger(__name__)


class PushEventPublisher:
    """Sends PushEvents to the SQS queue read by the fan-out worker."""

    def __init__(self, queue_url: Optional[str], sqs_client=None):
        self.queue_url = queue_url
        self._sqs_client = sqs_client

    @property
    def sqs_client(self):
        if self._sqs_client is None:
            self._sqs_client = boto3.client(
                "sqs",
                aws_access_key_id=settings.aws_access_key_id,
                aws_secret_access_key=settings.aws_secret_access_key,
                region_name=settings.aws_region,
            )
        return self._sqs_client

    def publish(self, event: PushEvent) -> PublishResult:
        """Enqueue the event. Never raises: failures come back as PublishResult(queued=False)."""
        if not self.queue_url:
            logger.warning(f"Push queue not configured; dropping {event.type} event for circle {event.circle_id}")
            return PublishResult(queued=False, error="Push queue not configured")
        try:
            response = self.sqs_client.send_message(
                QueueUrl=self.queue_url,
                MessageBody=event.to_message_body(),
            )
            return PublishResult(queued=True, message_id=response.get("MessageId"))
        except (BotoCoreError, ClientError) as e:
            logger.error(f"Failed to enqueue {event.type} event for circle {event.circle_id}: {e}")
            return PublishResult(queued=False, error=str(e))


@lru_cache(maxsize=1)
def get_push_publisher() -> PushEventPublisher:
    return PushEventPublisher(settings.push_queue_url)
