from pydantic import field_validator
from typing import Optional, Literal, Any

from app.core.schemas import CamelModel
from app.modules.notifications.schemas import PublishResult

MessageType = Literal["question", "answer"]


class MessageCreate(CamelModel):
    family_id: Optional[str] = None
    circle_id: Optional[str] = None
    text: str
    message_type: Optional[str] = None
    question_id: Optional[str] = None
    message_id: Optional[str] = None

    @field_validator("text", mode="before")
    @classmethod
    def text_not_blank(cls, v: Any) -> str:
        v = str(v).strip() if v is not None else ""
        if not v:
            raise ValueError('Field "text" is required')
        return v

    @property
    def target_circle_id(self) -> Optional[str]:
        return self.family_id or self.circle_id

    @property
    def normalized_type(self) -> MessageType:
        """Anything other than an explicit "question" is stored as an answer."""
        return "question" if (self.message_type or "").strip().lower() == "question" else "answer"


class MessageResponse(CamelModel):
    message_id: str
    circle_id: str
    created_at: str
    author: str
    author_user_id: Optional[str] = None
    text: str
    message_type: MessageType = "answer"
    question_id: Optional[str] = None


class MessageCreateResult(CamelModel):
    item: MessageResponse
    notification: PublishResult
