from pydantic import BaseModel, Field
from typing import Any, Dict, Optional

from app.core.errors import Unauthenticated


class CallerIdentity(BaseModel):
    """Typed view over the identity provider's verified claims bag."""

    user_id: str
    name: Optional[str] = None
    email: Optional[str] = None
    username: Optional[str] = None
    claims: Dict[str, Any] = Field(default_factory=dict, repr=False)

    @classmethod
    def from_claims(cls, claims: Optional[Dict[str, Any]]) -> "CallerIdentity":
        if not claims or not claims.get("sub"):
            raise Unauthenticated("Unauthorized: no subject in token")
        return cls(
            user_id=str(claims["sub"]),
            name=claims.get("name") or None,
            email=claims.get("email") or None,
            username=claims.get("cognito:username") or claims.get("username") or None,
            claims=dict(claims),
        )

    @property
    def display_name(self) -> str:
        """Author label for messages; the client-supplied author is never used."""
        return self.name or self.email or self.username or self.user_id
