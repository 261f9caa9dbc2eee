import time
from unittest.mock import MagicMock

import httpx
import pytest
from jose import jwt

from app.core.errors import Unauthenticated, UpstreamError
from app.core.identity import CallerIdentity
from app.modules.auth.service import (
    TokenVerifier, code_challenge_for, read_signed_cookie, sign_cookie_value,
)
from tests.conftest import auth


def cookie_header(**cookies):
    return {"Cookie": "; ".join(f"{k}={v}" for k, v in cookies.items())}


class TestLogin:
    def test_redirects_with_signed_state_and_verifier(self, client):
        response = client.get("/auth/login", follow_redirects=False)

        assert response.status_code == 302
        location = response.headers["location"]
        assert location.startswith("https://idp.example.com/oauth2/authorize?")
        set_cookies = response.headers.get_list("set-cookie")
        assert any(c.startswith("oauth_state=") and "Path=/auth" in c and "HttpOnly" in c for c in set_cookies)
        assert any(c.startswith("pkce_verifier=") for c in set_cookies)
        assert response.headers["cache-control"] == "no-store"


class TestCallback:
    def test_exchanges_code_and_sets_refresh_cookie(self, client, oauth_client):
        cookies = cookie_header(
            oauth_state=sign_cookie_value("state-1", "oauth_state"),
            pkce_verifier=sign_cookie_value("verifier-1", "pkce_verifier"),
        )

        response = client.get(
            "/auth/callback", params={"code": "abc", "state": "state-1"},
            headers=cookies, follow_redirects=False,
        )

        assert response.status_code == 302
        assert oauth_client.exchanges == [("abc", "verifier-1")]
        set_cookies = response.headers.get_list("set-cookie")
        assert any(c.startswith("refresh_token=refresh-123") for c in set_cookies)
        assert any(c.startswith("oauth_state=") and "Max-Age=0" in c for c in set_cookies)

    def test_state_mismatch(self, client):
        cookies = cookie_header(
            oauth_state=sign_cookie_value("state-1", "oauth_state"),
            pkce_verifier=sign_cookie_value("verifier-1", "pkce_verifier"),
        )

        response = client.get("/auth/callback", params={"code": "abc", "state": "other"}, headers=cookies)

        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid OAuth state"

    def test_unsigned_state_cookie_is_rejected(self, client):
        response = client.get(
            "/auth/callback", params={"code": "abc", "state": "state-1"},
            headers=cookie_header(oauth_state="state-1"),
        )

        assert response.status_code == 400

    def test_missing_code(self, client):
        response = client.get("/auth/callback", params={"state": "s"})

        assert response.status_code == 400
        assert response.json()["detail"] == "Missing code or state"

    def test_failed_exchange(self, client, oauth_client):
        oauth_client.exchange_response = (400, {"error": "invalid_grant"})
        cookies = cookie_header(
            oauth_state=sign_cookie_value("s", "oauth_state"),
            pkce_verifier=sign_cookie_value("v", "pkce_verifier"),
        )

        response = client.get("/auth/callback", params={"code": "abc", "state": "s"}, headers=cookies)

        assert response.status_code == 400
        assert response.json()["detail"] == "Token exchange failed (400)"


class TestToken:
    def test_refresh_mints_access_token(self, client):
        response = client.post("/auth/token", headers=cookie_header(refresh_token="refresh-123"))

        assert response.status_code == 200
        assert response.headers["cache-control"] == "no-store"
        assert response.json() == {
            "access_token": "fresh-access",
            "id_token": "fresh-id",
            "expires_in": 1800,
            "token_type": "Bearer",
        }

    def test_missing_cookie(self, client):
        response = client.post("/auth/token")

        assert response.status_code == 401

    def test_rejected_refresh(self, client, oauth_client):
        oauth_client.refresh_response = (400, {"error": "invalid_grant"})

        response = client.post("/auth/token", headers=cookie_header(refresh_token="stale"))

        assert response.status_code == 401
        assert response.json()["detail"] == "Refresh failed; please sign in again"


def test_me_returns_display_name(client):
    response = client.get("/auth/me", headers=auth("bob-token"))

    assert response.status_code == 200
    body = response.json()
    assert body["displayName"] == "bob@example.com"
    assert body["claims"]["cognito:username"] == "bob"


def test_me_requires_token(client):
    assert client.get("/auth/me").status_code == 401


def test_logout_clears_refresh_cookie(client):
    response = client.post("/auth/logout")

    assert response.status_code == 204
    assert any(c.startswith("refresh_token=") and "Max-Age=0" in c for c in response.headers.get_list("set-cookie"))


class TestSignedCookies:
    def test_round_trip(self):
        assert read_signed_cookie(sign_cookie_value("abc", "oauth_state"), "oauth_state") == "abc"

    def test_wrong_purpose(self):
        assert read_signed_cookie(sign_cookie_value("abc", "pkce_verifier"), "oauth_state") is None

    def test_expired(self):
        assert read_signed_cookie(sign_cookie_value("abc", "oauth_state", ttl_seconds=-10), "oauth_state") is None


def test_code_challenge_matches_rfc7636_example():
    verifier = "dBjftJeZ4CVP-mB92K27uhbUTRh1gGU5NAH7bSmrXSDC"

    assert code_challenge_for(verifier) == "E9Melhoa2OwvFrEMTJguCHaoeK1t8URWbuGEvFt7-cM"


class TestCallerIdentity:
    def test_display_name_precedence(self):
        assert CallerIdentity.from_claims({"sub": "u", "name": "N", "email": "e"}).display_name == "N"
        assert CallerIdentity.from_claims({"sub": "u", "email": "e"}).display_name == "e"
        assert CallerIdentity.from_claims({"sub": "u", "username": "x"}).display_name == "x"
        assert CallerIdentity.from_claims({"sub": "u"}).display_name == "u"

    def test_missing_subject(self):
        with pytest.raises(Unauthenticated):
            CallerIdentity.from_claims({"email": "e"})


class TestTokenVerifier:
    SECRET = "jwks-test-secret"
    ISSUER = "https://idp.example.com"

    def make_verifier(self, audience=None, algorithms=("HS256",)):
        # oct JWK for SECRET, base64url without padding
        jwks = {"keys": [{"kty": "oct", "kid": "k1", "alg": "HS256", "k": "andrcy10ZXN0LXNlY3JldA"}]}
        http_client = MagicMock(spec=httpx.Client)
        http_client.get.return_value = MagicMock(json=MagicMock(return_value=jwks))
        verifier = TokenVerifier(
            f"{self.ISSUER}/jwks.json", self.ISSUER,
            audience=audience, algorithms=list(algorithms), http_client=http_client,
        )
        return verifier, http_client

    def make_token(self, kid="k1", **claims):
        claims.setdefault("iss", self.ISSUER)
        claims.setdefault("exp", int(time.time()) + 300)
        return jwt.encode(claims, self.SECRET, algorithm="HS256", headers={"kid": kid})

    def test_valid_token(self):
        verifier, _ = self.make_verifier()

        claims = verifier.verify(self.make_token(sub="user-1", token_use="id", nonce="n1"))

        assert claims["sub"] == "user-1"

    def test_access_token_audience_via_client_id(self):
        verifier, _ = self.make_verifier(audience="client-1")

        claims = verifier.verify(self.make_token(sub="user-2", token_use="access", client_id="client-1"))

        assert claims["sub"] == "user-2"

    def test_wrong_audience(self):
        verifier, _ = self.make_verifier(audience="client-1")

        with pytest.raises(Unauthenticated):
            verifier.verify(self.make_token(sub="user-3", aud="someone-else"))

    def test_wrong_issuer(self):
        verifier, _ = self.make_verifier()

        with pytest.raises(Unauthenticated):
            verifier.verify(self.make_token(sub="user-4", iss="https://evil.example.com"))

    def test_unknown_kid_refetches_keys_once(self):
        verifier, http_client = self.make_verifier()

        with pytest.raises(Unauthenticated):
            verifier.verify(self.make_token(kid="rotated", sub="user-5"))
        assert http_client.get.call_count == 2

    def test_garbage_token(self):
        verifier, _ = self.make_verifier()

        with pytest.raises(Unauthenticated):
            verifier.verify("not-a-jwt")

    def test_jwks_outage_is_upstream_error(self):
        verifier, http_client = self.make_verifier()
        http_client.get.side_effect = httpx.ConnectError("down")

        with pytest.raises(UpstreamError):
            verifier.verify(self.make_token(sub="user-6"))

    def test_token_header_cannot_choose_the_algorithm(self):
        verifier, _ = self.make_verifier(algorithms=("RS256",))

        with pytest.raises(Unauthenticated):
            verifier.verify(self.make_token(sub="user-7"))

    def test_defaults_to_rs256_only(self):
        verifier = TokenVerifier("https://idp.example.com/jwks.json", self.ISSUER, http_client=MagicMock())

        assert verifier.algorithms == ["RS256"]
