import boto3
from botocore.exceptions import BotoCoreError, ClientError
from functools import lru_cache
from typing import Optional
import logging

from app.config import settings

logger = logging.getLogger(__name__)


class InvitationEmailSender:
    """SES sender for invite links. Best-effort: send() reports failure instead of raising."""

    def __init__(self, sender_email: Optional[str], ses_client=None):
        self.sender_email = sender_email
        self._ses_client = ses_client

    @property
    def ses_client(self):
        if self._ses_client is None:
            self._ses_client = boto3.client(
                "ses",
                aws_access_key_id=settings.aws_access_key_id,
                aws_secret_access_key=settings.aws_secret_access_key,
                region_name=settings.aws_region,
            )
        return self._ses_client

    def send(self, to_email: str, circle_name: str, inviter: str, invite_url: str) -> bool:
        if not self.sender_email:
            logger.warning("SES sender email not configured; skipping invitation email")
            return False
        subject = f"{inviter} invited you to join {circle_name} on Circles"
        text = (
            f"{inviter} invited you to join the circle \"{circle_name}\".\n\n"
            f"Accept the invitation here:\n{invite_url}\n\n"
            "If you weren't expecting this, you can ignore this email."
        )
        try:
            self.ses_client.send_email(
                Source=self.sender_email,
                Destination={"ToAddresses": [to_email]},
                Message={
                    "Subject": {"Data": subject, "Charset": "UTF-8"},
                    "Body": {"Text": {"Data": text, "Charset": "UTF-8"}},
                },
            )
            return True
        except (BotoCoreError, ClientError) as e:
            logger.error(f"Failed to send invitation email to {to_email}: {e}")
            return False


@lru_cache(maxsize=1)
def get_email_sender() -> InvitationEmailSender:
    return InvitationEmailSender(settings.ses_sender_email)
