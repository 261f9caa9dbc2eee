# Identity provider (OAuth2 / OIDC hosted UI)
# No application tables are required - the provider owns users and sessions.

"""
Cookies written by /auth/* (all HttpOnly, Secure, Path=/auth):
- oauth_state: signed, 5 minute lifetime, compared with ?state= on /auth/callback
- pkce_verifier: signed, 5 minute lifetime, sent with the code exchange
- refresh_token: provider refresh token, 30 day browser hint; the provider enforces
  the real lifetime. Access and id tokens are never stored server-side.
"""
