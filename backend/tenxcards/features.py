"""Feature flags per deployment environment."""
from __future__ import annotations

from fastapi import Request

from .config import Settings, app_settings, settings
from .error_catalog import system_errors

ENVIRONMENTS = ("local", "integration", "prod")
FEATURES = ("auth", "flashcards", "generations")

FEATURE_FLAGS: dict[str, dict[str, bool]] = {
    "local": {"auth": True, "flashcards": True, "generations": True},
    "integration": {"auth": True, "flashcards": True, "generations": True},
    "prod": {"auth": True, "flashcards": True, "generations": True},
}


def resolve_environment(name: str | None) -> str:
    """Unknown or empty environment names fall back to ``prod``."""
    name = (name or "").strip().lower()
    return name if name in ENVIRONMENTS else "prod"


def is_feature_enabled(feature: str, env: str | None = None, config: Settings | None = None) -> bool:
    config = config or settings
    if feature in config.disabled_features:
        return False
    flags = FEATURE_FLAGS[resolve_environment(env or config.ENV_NAME)]
    return flags.get(feature, False)


def ensure_feature_enabled(request: Request, feature: str) -> None:
    if not is_feature_enabled(feature, config=app_settings(request)):
        raise system_errors.creators.FeatureDisabled(
            f"Feature '{feature}' is disabled",
            meta={"feature": feature},
        )
