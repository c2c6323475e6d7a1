"""FastAPI application."""
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import Settings, settings
from .logging_config import configure_logging
from .middleware import RequestIdMiddleware
from .problem_details import register_problem_handlers
from .rate_limit import RateLimiters, build_rate_limiters
from .routers import auth, collections, flashcards, generations
from .services.flashcard_generator import FlashcardGenerator, build_flashcard_generator

VERSION = "1.0.0"


def check_production_settings(config: Settings) -> None:
    """Fail closed on insecure production configuration."""
    if not config.is_production:
        return
    if not config.AUTH_COOKIE_SECURE:
        raise RuntimeError("AUTH_COOKIE_SECURE must be true in production (requires HTTPS).")
    if not config.cors_origins:
        raise RuntimeError("ALLOWED_ORIGINS must be set in production (explicit frontend origin required).")
    if any(origin == "*" for origin in config.cors_origins):
        raise RuntimeError("ALLOWED_ORIGINS must be explicit in production (no wildcard when using credentials).")
    if any(
        origin.startswith("http://localhost") or origin.startswith("http://127.0.0.1") for origin in config.cors_origins
    ):
        raise RuntimeError("ALLOWED_ORIGINS contains localhost in production; set it to your real frontend origin.")
    if config.AI_PROVIDER.lower() != "mock" and not config.OPENROUTER_API_KEY:
        raise RuntimeError("OPENROUTER_API_KEY must be set in production.")


def create_app(
    config: Optional[Settings] = None,
    *,
    rate_limiters: Optional[RateLimiters] = None,
    flashcard_generator: Optional[FlashcardGenerator] = None,
) -> FastAPI:
    """Build the application.

    Rate limiters and the flashcard generator live on ``app.state`` so each
    app (and each test) gets its own.
    """
    config = config or settings
    check_production_settings(config)

    app = FastAPI(
        title=config.APP_NAME,
        version=VERSION,
        description="Backend API for 10xCards, AI-assisted flashcards",
        docs_url=None if config.is_production else "/docs",
        redoc_url=None,
    )
    app.state.settings = config
    app.state.rate_limiters = rate_limiters or build_rate_limiters(config)
    app.state.flashcard_generator = flashcard_generator or build_flashcard_generator(config)

    register_problem_handlers(app)

    # CORS
    cors_methods = ["GET", "POST", "PATCH", "DELETE", "OPTIONS"]
    # If you add new custom headers, whitelist them explicitly (required when using cookies + credentials).
    cors_headers = ["Authorization", "Content-Type", "X-Request-Id"]
    if not config.is_production:
        cors_headers = ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=cors_methods,
        allow_headers=cors_headers,
        expose_headers=["X-Request-Id"],
    )
    app.add_middleware(RequestIdMiddleware)

    app.include_router(auth.router, prefix="/api")
    app.include_router(flashcards.router, prefix="/api")
    app.include_router(collections.router, prefix="/api")
    app.include_router(generations.router, prefix="/api")

    @app.get("/api/health")
    def health_check():
        """Health check endpoint."""
        return {"status": "ok", "version": VERSION, "environment": config.ENV_NAME}

    return app


configure_logging(settings.LOG_LEVEL)
app = create_app()
