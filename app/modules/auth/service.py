import base64
import hashlib
import logging
import secrets
import time
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

import httpx
from jose import jwt, JWTError

from app.config import settings
from app.core.errors import Unauthenticated, UpstreamError

logger = logging.getLogger(__name__)

# In-memory cache for verified claims; entries never outlive the token's own exp
_CLAIMS_CACHE: Dict[str, tuple] = {}
_CLAIMS_CACHE_TTL_SEC = 60
_CLAIMS_CACHE_MAX_SIZE = 500

_JWKS_TTL_SEC = 3600
_SIGNED_COOKIE_TTL_SEC = 300


def _base64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def generate_state() -> str:
    return secrets.token_urlsafe(16)


def generate_code_verifier() -> str:
    return secrets.token_urlsafe(32)


def code_challenge_for(verifier: str) -> str:
    """S256 PKCE challenge: base64url(sha256(verifier)) without padding."""
    return _base64url(hashlib.sha256(verifier.encode("ascii")).digest())


def sign_cookie_value(value: str, purpose: str, ttl_seconds: int = _SIGNED_COOKIE_TTL_SEC) -> str:
    claims = {"v": value, "p": purpose, "exp": int(time.time()) + ttl_seconds}
    return jwt.encode(claims, settings.cookie_secret, algorithm="HS256")


def read_signed_cookie(token: Optional[str], purpose: str) -> Optional[str]:
    """Return the signed value, or None when missing, tampered, expired or minted for another purpose."""
    if not token:
        return None
    try:
        claims = jwt.decode(token, settings.cookie_secret, algorithms=["HS256"])
    except JWTError:
        return None
    if claims.get("p") != purpose:
        return None
    return claims.get("v")


class TokenVerifier:
    """Verifies identity-provider access/id tokens against the provider's JWKS."""

    def __init__(
        self,
        jwks_url: Optional[str],
        issuer: Optional[str],
        audience: Optional[str] = None,
        algorithms: Optional[List[str]] = None,
        http_client: Optional[httpx.Client] = None,
    ):
        self.jwks_url = jwks_url
        self.issuer = issuer
        self.audience = audience
        self.algorithms = algorithms or ["RS256"]
        self.http_client = http_client or httpx.Client(timeout=5.0)
        self._jwks: Optional[Dict[str, Any]] = None
        self._jwks_fetched_at = 0.0

    def _get_jwks(self, force: bool = False) -> Dict[str, Any]:
        now = time.monotonic()
        if not force and self._jwks is not None and now - self._jwks_fetched_at < _JWKS_TTL_SEC:
            return self._jwks
        if not self.jwks_url:
            raise Unauthenticated("Token verification is not configured")
        try:
            response = self.http_client.get(self.jwks_url)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Failed to fetch JWKS from {self.jwks_url}: {e}")
            raise UpstreamError("Identity provider keys unavailable")
        self._jwks = response.json()
        self._jwks_fetched_at = now
        return self._jwks

    def _find_key(self, kid: Optional[str]) -> Dict[str, Any]:
        for force in (False, True):
            for key in self._get_jwks(force=force).get("keys", []):
                if key.get("kid") == kid:
                    return key
        raise Unauthenticated("Invalid token")

    def verify(self, token: str) -> Dict[str, Any]:
        cache_key = hashlib.sha256(token.encode()).hexdigest()
        now = time.time()
        cached = _CLAIMS_CACHE.get(cache_key)
        if cached:
            claims, expiry = cached
            if now < expiry:
                return claims
            _CLAIMS_CACHE.pop(cache_key, None)

        try:
            header = jwt.get_unverified_header(token)
            key = self._find_key(header.get("kid"))
            claims = jwt.decode(
                token,
                key,
                algorithms=self.algorithms,
                issuer=self.issuer,
                options={"verify_aud": False, "verify_at_hash": False},
            )
        except JWTError as e:
            logger.warning(f"Rejected bearer token: {e}")
            raise Unauthenticated("Invalid or expired token")

        if claims.get("token_use") and claims["token_use"] not in ("access", "id"):
            raise Unauthenticated("Wrong token type")
        # Cognito access tokens carry client_id instead of aud
        if self.audience and self.audience not in (claims.get("aud"), claims.get("client_id")):
            raise Unauthenticated("Token was not issued for this client")

        if len(_CLAIMS_CACHE) < _CLAIMS_CACHE_MAX_SIZE:
            expiry = min(now + _CLAIMS_CACHE_TTL_SEC, float(claims.get("exp", now)))
            _CLAIMS_CACHE[cache_key] = (claims, expiry)
        return claims


class OAuthClient:
    """Authorization-code + PKCE exchange against the identity provider's hosted UI."""

    def __init__(
        self,
        domain: str,
        client_id: str,
        redirect_uri: str,
        scope: str = "openid email profile",
        http_client: Optional[httpx.Client] = None,
    ):
        self.domain = domain.rstrip("/")
        self.client_id = client_id
        self.redirect_uri = redirect_uri
        self.scope = scope
        self.http_client = http_client or httpx.Client(timeout=10.0)

    @property
    def token_url(self) -> str:
        return f"{self.domain}/oauth2/token"

    def build_authorize_url(self, state: str, code_challenge: str) -> str:
        query = urlencode({
            "response_type": "code",
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "scope": self.scope,
            "state": state,
            "code_challenge": code_challenge,
            "code_challenge_method": "S256",
        })
        return f"{self.domain}/oauth2/authorize?{query}"

    def _post_form(self, form: Dict[str, str]) -> tuple:
        """POST to the token endpoint. Returns (status_code, json body or None)."""
        try:
            response = self.http_client.post(
                self.token_url,
                data=form,
                headers={"Content-Type": "application/x-www-form-urlencoded"},
            )
        except httpx.HTTPError as e:
            logger.error(f"Token endpoint request failed: {e}")
            raise UpstreamError("Identity provider unavailable")
        try:
            body = response.json()
        except ValueError:
            body = None
        return response.status_code, body

    def exchange_code(self, code: str, code_verifier: str) -> tuple:
        return self._post_form({
            "grant_type": "authorization_code",
            "client_id": self.client_id,
            "code": code,
            "redirect_uri": self.redirect_uri,
            "code_verifier": code_verifier,
        })

    def refresh(self, refresh_token: str) -> tuple:
        return self._post_form({
            "grant_type": "refresh_token",
            "client_id": self.client_id,
            "refresh_token": refresh_token,
        })
