from __future__ import annotations

import pytest

from tenxcards.config import Settings
from tenxcards.features import FEATURES, is_feature_enabled, resolve_environment


@pytest.mark.parametrize(
    ("name", "expected"),
    [("local", "local"), (" Integration ", "integration"), ("", "prod"), ("staging", "prod")],
)
def test_resolve_environment(name: str, expected: str) -> None:
    assert resolve_environment(name) == expected


def test_features_are_enabled_by_default() -> None:
    config = Settings(_env_file=None, ENV_NAME="local", DISABLED_FEATURES="")

    assert all(is_feature_enabled(feature, config=config) for feature in FEATURES)


def test_disabled_features_override_the_flag_table() -> None:
    config = Settings(_env_file=None, ENV_NAME="prod", DISABLED_FEATURES="generations, auth")

    assert not is_feature_enabled("generations", config=config)
    assert not is_feature_enabled("auth", config=config)
    assert is_feature_enabled("flashcards", config=config)


def test_unknown_feature_is_disabled() -> None:
    assert not is_feature_enabled("billing", env="local", config=Settings(_env_file=None))
