from pydantic import Field
from typing import List, Optional

from app.core.schemas import CamelModel


class PromptRequest(CamelModel):
    circle_id: Optional[str] = None
    family_id: Optional[str] = None
    count: Optional[int] = Field(default=None, ge=1, le=8)

    @property
    def target_circle_id(self) -> Optional[str]:
        return self.circle_id or self.family_id


class PromptResponse(CamelModel):
    circle_id: Optional[str] = None
    count: int
    prompts: List[str]
