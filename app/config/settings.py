from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional, List


class Settings(BaseSettings):
    # Supabase
    supabase_url: str = ""
    supabase_key: str = ""
    supabase_service_role_key: Optional[str] = None  # Used by the push worker and seed scripts (bypasses RLS)

    # AWS (will read from uppercase env vars automatically)
    aws_access_key_id: Optional[str] = None
    aws_secret_access_key: Optional[str] = None
    aws_region: str = "us-east-1"

    # SQS queue carrying NEW_QUESTION / NEW_ANSWER push events
    push_queue_url: Optional[str] = None
    push_worker_enabled: bool = False  # run the fan-out worker inside the web process
    push_worker_batch_size: int = 10
    push_worker_wait_seconds: int = 20  # SQS long-poll

    # SES
    ses_sender_email: Optional[str] = None

    # Bedrock
    bedrock_model_id: str = "anthropic.claude-3-haiku-20240307-v1:0"
    prompt_temperature: float = 0.7
    prompt_max_tokens: int = 512

    # Web Push (VAPID)
    push_vapid_public_key: Optional[str] = None
    push_vapid_private_key: Optional[str] = None
    push_vapid_subject: str = "mailto:you@example.com"

    # OAuth / identity provider (Cognito hosted UI style)
    oauth_domain: str = ""  # e.g. https://your-domain.auth.us-east-1.amazoncognito.com
    oauth_client_id: str = ""
    oauth_redirect_uri: str = ""  # e.g. https://circles.example.com/auth/callback
    oauth_scope: str = "openid email profile"
    jwt_issuer: Optional[str] = None  # e.g. https://cognito-idp.us-east-1.amazonaws.com/<pool-id>
    jwt_audience: Optional[str] = None
    jwt_algorithms: List[str] = ["RS256"]  # never taken from the token header
    jwks_url: Optional[str] = None  # defaults to <jwt_issuer>/.well-known/jwks.json

    # Cookies
    cookie_domain: Optional[str] = None  # omit for host-only cookies
    cookie_samesite: str = "Lax"
    cookie_secret: str = "change-me"  # signs the short-lived oauth_state / pkce_verifier cookies
    refresh_cookie_max_age: int = 60 * 60 * 24 * 30

    # Circles
    frontend_base_url: str = "http://localhost:5173"
    messages_default_limit: int = 20
    messages_max_limit: int = 100
    invitation_default_expiry_days: int = 7
    prompts_default_count: int = 4
    prompts_max_count: int = 8

    # App
    app_name: str = "circles-api"
    debug: bool = False
    environment: str = "development"  # development | staging | production
    log_level: str = "INFO"
    cors_origins: str = "http://localhost:3000,http://localhost:5173,http://127.0.0.1:3000,http://127.0.0.1:5173"
    rate_limit: str = "100/minute"  # slowapi format, e.g. "100/minute"
    login_rate_limit: str = "20/minute"
    prompts_rate_limit: str = "30/minute"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def get_cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    def get_jwks_url(self) -> Optional[str]:
        if self.jwks_url:
            return self.jwks_url
        if self.jwt_issuer:
            return f"{self.jwt_issuer.rstrip('/')}/.well-known/jwks.json"
        return None

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        env_prefix="",  # No prefix needed
        extra="ignore"
    )


settings = Settings()
