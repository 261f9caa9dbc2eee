from pydantic import BaseModel
from typing import Optional, Dict, Any

from app.core.schemas import CamelModel


class TokenResponse(BaseModel):
    access_token: str
    id_token: Optional[str] = None
    expires_in: int = 3600
    token_type: str = "Bearer"


class MeResponse(CamelModel):
    display_name: str
    claims: Dict[str, Any]
