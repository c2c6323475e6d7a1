"""Application configuration."""
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings."""

    # App
    APP_NAME: str = "10xCards"
    ENV: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    ALLOWED_ORIGINS: str = "http://localhost:4321"
    # Base for email redirect links; falls back to the request origin when unset.
    PUBLIC_SITE_URL: str | None = None
    PROBLEM_TYPE_BASE: str = "https://docs.app.dev/problems"

    # Feature flags
    ENV_NAME: str = "prod"  # local | integration | prod
    DISABLED_FEATURES: str = ""

    # Supabase (hosted Postgres + auth)
    SUPABASE_URL: str = "http://localhost:54321"
    SUPABASE_KEY: str = "public-anon-key"

    # Auth cookies
    AUTH_ACCESS_COOKIE_NAME: str = "sb-access-token"
    AUTH_REFRESH_COOKIE_NAME: str = "sb-refresh-token"
    AUTH_COOKIE_SAMESITE: str = "lax"
    # In production this MUST be True (requires HTTPS).
    AUTH_COOKIE_SECURE: bool = False

    # Proxy / client IP handling
    # Only trust X-Forwarded-* headers when running behind a trusted reverse proxy.
    TRUST_PROXY_HEADERS: bool = False

    # Rate limits
    RATE_LIMIT_BACKEND: str = "memory"  # memory | redis
    REDIS_URL: str = "redis://localhost:6379/0"
    AUTH_LOGIN_LIMIT_PER_MINUTE: int = 10
    AUTH_REGISTER_LIMIT_PER_MINUTE: int = 5
    AUTH_RESET_LIMIT_PER_MINUTE: int = 5
    GENERATION_LIMIT_PER_MINUTE: int = 5

    # AI provider
    AI_PROVIDER: str = "openrouter"  # openrouter | mock
    OPENROUTER_API_KEY: str | None = None
    OPENROUTER_BASE_URL: str = "https://openrouter.ai/api/v1"
    AI_DEFAULT_MODEL: str = "openai/gpt-4o-mini"
    AI_TIMEOUT_SECONDS: float = 15.0
    AI_MAX_RETRIES: int = 2
    AI_BASE_DELAY_MS: int = 300
    AI_MAX_DELAY_MS: int = 3000
    GENERATION_MOCK_FALLBACK: bool = False

    class Config:
        env_file = ".env"
        case_sensitive = True

    @property
    def cors_origins(self) -> list[str]:
        """Get CORS origins as list."""
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",") if origin.strip()]

    @property
    def disabled_features(self) -> set[str]:
        return {name.strip() for name in self.DISABLED_FEATURES.split(",") if name.strip()}

    @property
    def is_production(self) -> bool:
        return self.ENV.lower() == "production"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()


def app_settings(request) -> Settings:
    """Settings the running app was created with (``app.state.settings``)."""
    app = request.scope.get("app")
    return getattr(getattr(app, "state", None), "settings", None) or settings
