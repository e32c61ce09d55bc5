import pytest
from pydantic import ValidationError

from phrasal.application.config import (
    AppConfig,
    SessionConfig,
    build_session_config,
    resolve_config,
)
from phrasal.domain.models import SessionType


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in ("PHRASAL_USER_ID", "PHRASAL_MAX_ITEMS", "PHRASAL_LLM_API_KEY"):
        monkeypatch.delenv(key, raising=False)


def test_env_overrides_defaults(monkeypatch):
    monkeypatch.setenv("PHRASAL_USER_ID", "env-user")
    monkeypatch.setenv("PHRASAL_MAX_ITEMS", "7")

    config = resolve_config()

    assert config.user_id == "env-user"
    assert config.max_items == 7


def test_cli_overrides_win_and_none_is_ignored(monkeypatch):
    monkeypatch.setenv("PHRASAL_USER_ID", "env-user")

    config = resolve_config({"user_id": "cli-user", "max_items": None})

    assert config.user_id == "cli-user"
    assert config.max_items == 20


def test_content_enabled_requires_api_key():
    assert not AppConfig(llm_api_key=None).content_enabled
    assert AppConfig(llm_api_key="sk-test").content_enabled


def test_build_session_config_applies_overrides():
    config = AppConfig(user_id="u1", target_language="fr", max_items=10)

    session_config = build_session_config(
        config, max_items=3, session_type=SessionType.NEW, include_drill=None
    )

    assert session_config.user_id == "u1"
    assert session_config.max_items == 3
    assert session_config.session_type is SessionType.NEW
    assert session_config.include_drill is True
    assert session_config.language_context.target_language == "fr"


def test_session_config_validation():
    with pytest.raises(ValidationError):
        SessionConfig(max_items=0)
    with pytest.raises(ValidationError):
        SessionConfig(proficiency="expert")
