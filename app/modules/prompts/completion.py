import boto3
from botocore.exceptions import BotoCoreError, ClientError
from functools import lru_cache
import logging

from app.config import settings
from app.core.errors import UpstreamError

logger = logging.getLogger(__name__)


class CompletionClient:
    """Single-turn text completion through the Bedrock Converse API."""

    def __init__(self, model_id: str, bedrock_client=None):
        self.model_id = model_id
        self._bedrock_client = bedrock_client

    @property
    def bedrock_client(self):
        if self._bedrock_client is None:
            self._bedrock_client = boto3.client(
                "bedrock-runtime",
                aws_access_key_id=settings.aws_access_key_id,
                aws_secret_access_key=settings.aws_secret_access_key,
                region_name=settings.aws_region,
            )
        return self._bedrock_client

    def complete(self, prompt: str, temperature: float, max_tokens: int) -> str:
        try:
            response = self.bedrock_client.converse(
                modelId=self.model_id,
                messages=[{"role": "user", "content": [{"text": prompt}]}],
                inferenceConfig={"temperature": temperature, "maxTokens": max_tokens},
            )
        except (BotoCoreError, ClientError) as e:
            logger.error(f"Completion call to {self.model_id} failed: {e}")
            raise UpstreamError("Prompt generation failed")

        content = response.get("output", {}).get("message", {}).get("content", [])
        return "".join(block.get("text", "") for block in content)


@lru_cache(maxsize=1)
def get_completion_client() -> CompletionClient:
    return CompletionClient(settings.bedrock_model_id)
