from supabase import Client
from typing import List, Optional
import json
import re
import logging

from app.config import settings
from app.core.dependencies import MembershipSet
from app.core.errors import UpstreamError
from app.modules.circles.schemas import TagConfig
from app.modules.circles.service import CircleService
from app.modules.circles.tags import TagService
from app.modules.prompts.completion import CompletionClient
from app.modules.prompts.schemas import PromptResponse

logger = logging.getLogger(__name__)

SUPPORT_CATEGORY = "support"
_BULLET = re.compile(r"^\s*(?:[-*•]+|\d+[.)]|\(\d+\))\s*")
_FENCE = re.compile(r"^```[a-zA-Z]*\s*|\s*```$")


def build_instruction(count: int, circle_name: Optional[str] = None, tags: Optional[List[TagConfig]] = None) -> str:
    tags = tags or []
    support_tags = [t for t in tags if t.category == SUPPORT_CATEGORY]
    other_tags = [t for t in tags if t.category != SUPPORT_CATEGORY]

    lines = [
        f"Write {count} short, open-ended conversation prompts for a private family group chat.",
        "Each prompt should invite a personal story or memory and be answerable in a few sentences.",
    ]
    if circle_name:
        lines.append(f'The group is called "{circle_name}".')
    if tags:
        labels = ", ".join(t.display_label for t in tags)
        lines.append(f"The group describes itself with these tags: {labels}.")

    if support_tags:
        lines.append(
            "Some members may be going through a difficult time. Keep every prompt gentle, "
            "optional to answer, and free of pressure. Avoid questions about loss, illness, "
            "money or conflict unless the member raises them."
        )
        for tag in support_tags:
            if tag.tone_guidance:
                lines.append(f"- {tag.display_label}: {tag.tone_guidance}")
    elif other_tags:
        lines.append("Tailor the prompts to the interests and life stage these tags suggest.")
        for tag in other_tags:
            if tag.tone_guidance:
                lines.append(f"- {tag.display_label}: {tag.tone_guidance}")

    lines.append(
        f"Respond with only a JSON array of {count} strings and no other text."
    )
    return "\n".join(lines)


def _clean(item: str) -> str:
    item = _BULLET.sub("", item.strip())
    return item.strip().strip('"').strip()


def parse_prompts(raw: str, count: int) -> List[str]:
    """JSON array when the model complies, otherwise one prompt per line with bullets stripped."""
    text = _FENCE.sub("", (raw or "").strip())
    start, end = text.find("["), text.rfind("]")
    if start != -1 and end > start:
        try:
            parsed = json.loads(text[start:end + 1])
            if isinstance(parsed, list):
                # A well-formed array is authoritative, even when it holds nothing usable
                prompts = [_clean(str(p)) for p in parsed if isinstance(p, (str, int, float))]
                return [p for p in prompts if p][:count]
        except ValueError:
            logger.info("Completion was not a JSON array; falling back to line splitting")

    prompts = []
    for line in text.splitlines():
        cleaned = _clean(line).rstrip(",").strip('"').strip()
        if cleaned and cleaned not in ("[", "]"):
            prompts.append(cleaned)
    return prompts[:count]


class PromptService:
    def __init__(self, supabase: Client, completion: CompletionClient):
        self.supabase = supabase
        self.completion = completion

    def generate(self, memberships: MembershipSet, circle_id: Optional[str] = None, count: Optional[int] = None) -> PromptResponse:
        """Generate conversation prompts, tailored to the circle's tags when a circle is given"""
        count = max(1, min(count or settings.prompts_default_count, settings.prompts_max_count))
        circle_name = None
        tags: List[TagConfig] = []
        if circle_id:
            memberships.require_member(circle_id)
            circle = CircleService(self.supabase).get_circle(circle_id) or {}
            circle_name = circle.get("name") or circle_id
            tags = TagService(self.supabase).resolve(circle.get("tags") or [])

        instruction = build_instruction(count, circle_name, tags)
        raw = self.completion.complete(
            instruction,
            temperature=settings.prompt_temperature,
            max_tokens=settings.prompt_max_tokens,
        )
        prompts = parse_prompts(raw, count)
        if not prompts:
            logger.error(f"Completion returned no usable prompts for circle {circle_id}")
            raise UpstreamError("Prompt generation returned no prompts")
        return PromptResponse(circle_id=circle_id, count=len(prompts), prompts=prompts)
