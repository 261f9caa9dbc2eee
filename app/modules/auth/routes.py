from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse, RedirectResponse, Response
from functools import lru_cache
from typing import Optional
import logging

from app.config import settings
from app.core.dependencies import get_current_identity
from app.core.identity import CallerIdentity
from app.core.rate_limit import limiter
from app.modules.auth.schemas import TokenResponse, MeResponse
from app.modules.auth.service import (
    OAuthClient, generate_state, generate_code_verifier, code_challenge_for,
    sign_cookie_value, read_signed_cookie,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

STATE_COOKIE = "oauth_state"
VERIFIER_COOKIE = "pkce_verifier"
REFRESH_COOKIE = "refresh_token"
COOKIE_PATH = "/auth"
NO_STORE = {"Cache-Control": "no-store"}


@lru_cache(maxsize=1)
def get_oauth_client() -> OAuthClient:
    return OAuthClient(
        domain=settings.oauth_domain,
        client_id=settings.oauth_client_id,
        redirect_uri=settings.oauth_redirect_uri,
        scope=settings.oauth_scope,
    )


def _set_cookie(response: Response, key: str, value: str, max_age: int) -> None:
    response.set_cookie(
        key=key,
        value=value,
        max_age=max_age,
        path=COOKIE_PATH,
        domain=settings.cookie_domain,
        secure=True,
        httponly=True,
        samesite=settings.cookie_samesite.lower(),
    )


def _clear_cookie(response: Response, key: str) -> None:
    _set_cookie(response, key, "", max_age=0)


@router.get("/login")
@limiter.limit(settings.login_rate_limit)
async def login(request: Request, oauth: OAuthClient = Depends(get_oauth_client)):
    """Start the authorization-code + PKCE flow and redirect to the hosted UI"""
    state = generate_state()
    verifier = generate_code_verifier()
    response = RedirectResponse(
        oauth.build_authorize_url(state, code_challenge_for(verifier)),
        status_code=302,
        headers=NO_STORE,
    )
    _set_cookie(response, STATE_COOKIE, sign_cookie_value(state, STATE_COOKIE), max_age=300)
    _set_cookie(response, VERIFIER_COOKIE, sign_cookie_value(verifier, VERIFIER_COOKIE), max_age=300)
    return response


@router.get("/callback")
async def callback(
    request: Request,
    code: Optional[str] = None,
    state: Optional[str] = None,
    oauth: OAuthClient = Depends(get_oauth_client),
):
    """Validate state, exchange the code for tokens and keep only the refresh token"""
    if not code or not state:
        raise HTTPException(status_code=400, detail="Missing code or state")

    expected_state = read_signed_cookie(request.cookies.get(STATE_COOKIE), STATE_COOKIE)
    if not expected_state or expected_state != state:
        raise HTTPException(status_code=400, detail="Invalid OAuth state")

    verifier = read_signed_cookie(request.cookies.get(VERIFIER_COOKIE), VERIFIER_COOKIE)
    if not verifier:
        raise HTTPException(status_code=400, detail="Missing PKCE verifier")

    status_code, body = oauth.exchange_code(code, verifier)
    if status_code != 200 or not body:
        logger.warning(f"Authorization code exchange failed with status {status_code}")
        raise HTTPException(status_code=400, detail=f"Token exchange failed ({status_code})")

    refresh_token = body.get("refresh_token")
    if not refresh_token:
        raise HTTPException(status_code=400, detail="No refresh token returned (check app client flow)")

    response = RedirectResponse(settings.frontend_base_url or "/", status_code=302, headers=NO_STORE)
    _set_cookie(response, REFRESH_COOKIE, refresh_token, max_age=settings.refresh_cookie_max_age)
    _clear_cookie(response, STATE_COOKIE)
    _clear_cookie(response, VERIFIER_COOKIE)
    return response


@router.post("/token", response_model=TokenResponse)
async def token(request: Request, oauth: OAuthClient = Depends(get_oauth_client)):
    """Mint a fresh access token from the refresh-token cookie"""
    refresh_token = request.cookies.get(REFRESH_COOKIE)
    if not refresh_token:
        raise HTTPException(status_code=401, detail="Missing refresh token cookie")

    status_code, body = oauth.refresh(refresh_token)
    if status_code != 200 or not body:
        raise HTTPException(status_code=401, detail="Refresh failed; please sign in again")
    if not body.get("access_token"):
        raise HTTPException(status_code=401, detail="No access token returned")

    payload = TokenResponse(
        access_token=body["access_token"],
        id_token=body.get("id_token"),
        expires_in=body.get("expires_in") or 3600,
        token_type=body.get("token_type") or "Bearer",
    )
    return JSONResponse(payload.model_dump(), headers=NO_STORE)


@router.get("/me", response_model=MeResponse)
async def me(identity: CallerIdentity = Depends(get_current_identity)):
    """Display name and the claims the UI cares about"""
    claims = identity.claims
    return MeResponse(
        display_name=identity.display_name,
        claims={
            "sub": identity.user_id,
            "name": claims.get("name"),
            "email": claims.get("email"),
            "cognito:username": claims.get("cognito:username"),
            "username": claims.get("username"),
        },
    )


@router.post("/logout", status_code=204)
async def logout():
    """Clear the refresh cookie"""
    response = Response(status_code=204, headers=NO_STORE)
    _clear_cookie(response, REFRESH_COOKIE)
    return response
