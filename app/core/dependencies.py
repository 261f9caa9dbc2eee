"""
Core dependencies for caller identity and circle membership checks
"""

from fastapi import Depends, HTTPException, Request, Security
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from functools import lru_cache
from supabase import Client
from typing import Any, Dict, List, Optional, Set
import logging

from app.config import settings
from app.core.errors import Forbidden, Unauthenticated
from app.core.identity import CallerIdentity
from app.database.supabase_client import get_supabase, Tables
from app.modules.auth.service import TokenVerifier

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def _get_request_cache(request: Request) -> Dict[str, Any]:
    """Return request-scoped cache for access data (memberships)."""
    if not hasattr(request.state, "access_cache"):
        request.state.access_cache = {}
    return request.state.access_cache


@lru_cache(maxsize=1)
def get_token_verifier() -> TokenVerifier:
    return TokenVerifier(
        jwks_url=settings.get_jwks_url(),
        issuer=settings.jwt_issuer,
        audience=settings.jwt_audience or settings.oauth_client_id or None,
        algorithms=settings.jwt_algorithms,
    )


def get_current_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(security),
    verifier: TokenVerifier = Depends(get_token_verifier),
) -> CallerIdentity:
    """Resolve the caller from the bearer token's verified claims"""
    if credentials is None or not credentials.credentials:
        raise Unauthenticated("Missing Authorization bearer token")
    claims = verifier.verify(credentials.credentials)
    return CallerIdentity.from_claims(claims)


class MembershipSet:
    """The caller's circle memberships, loaded once per request."""

    def __init__(self, user_id: str, rows: List[Dict[str, Any]]):
        self.user_id = user_id
        self.rows = rows
        self._roles = {r["circle_id"]: r.get("role") or "member" for r in rows if r.get("circle_id")}

    @property
    def circle_ids(self) -> Set[str]:
        return set(self._roles)

    def __contains__(self, circle_id: str) -> bool:
        return circle_id in self._roles

    def role_for(self, circle_id: str) -> Optional[str]:
        return self._roles.get(circle_id)

    def require_member(self, circle_id: str) -> str:
        """Capability check for every circle-scoped route. Returns the caller's role."""
        role = self._roles.get(circle_id)
        if role is None:
            logger.warning(f"Forbidden: user {self.user_id} is not a member of circle {circle_id}")
            raise Forbidden()
        return role


def load_membership_rows(user_id: str, supabase: Client) -> List[Dict[str, Any]]:
    """Single partition query: all membership rows for one user."""
    try:
        result = supabase.table(Tables.MEMBERSHIPS)\
            .select("*")\
            .eq("user_id", user_id)\
            .execute()
        return result.data or []
    except Exception as e:
        logger.error(f"Error loading memberships for user {user_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to load memberships")


def get_membership_set(
    request: Request,
    identity: CallerIdentity = Depends(get_current_identity),
    supabase: Client = Depends(get_supabase),
) -> MembershipSet:
    """Caller's memberships; cached on request.state, never across requests."""
    cache = _get_request_cache(request)
    if "memberships" not in cache:
        cache["memberships"] = MembershipSet(identity.user_id, load_membership_rows(identity.user_id, supabase))
    return cache["memberships"]
