from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from phrasal.domain.constants import (
    DEFAULT_BACKOFF_SECONDS,
    DEFAULT_DRILL_COUNT,
    DEFAULT_MAX_ITEMS,
    DEFAULT_MAX_RETRIES,
    REQUEST_TIMEOUT,
)
from phrasal.domain.models import LanguageContext, SessionType

Proficiency = Literal["beginner", "intermediate", "advanced"]

CONFIG_FILE = Path.home() / ".config/phrasal/config.toml"


def _default_database_url() -> str:
    return f"sqlite:///{Path.home() / '.local/share/phrasal/phrasal.db'}"


class AppConfig(BaseSettings):
    """
    Configuration model for phrasal.
    Supports loading from:
    1. Environment variables (PHRASAL_*)
    2. Config file (~/.config/phrasal/config.toml)
    3. Manual overrides (CLI)
    """

    model_config = SettingsConfigDict(
        env_prefix="PHRASAL_",
        toml_file=CONFIG_FILE,
        extra="ignore",
    )

    # Storage
    database_url: str = Field(default_factory=_default_database_url)
    log_dir: Path = Field(default_factory=lambda: Path.home() / ".config/phrasal/logs")

    # Learner
    user_id: str = "default"
    native_language: str = "en"
    target_language: str = "es"
    proficiency: Proficiency = "intermediate"

    # Session defaults
    max_items: int = Field(default=DEFAULT_MAX_ITEMS, ge=1)
    session_type: SessionType = SessionType.REVIEW
    include_drill: bool = True
    include_narrative: bool = True
    include_speech: bool = False
    drill_count: int = Field(default=DEFAULT_DRILL_COUNT, ge=0)

    # Content generation (OpenAI-compatible endpoint)
    llm_base_url: str = "https://api.openai.com/v1"
    llm_api_key: str | None = None
    llm_model: str = "gpt-4o-mini"
    speech_model: str = "tts-1"
    speech_voice: str = "alloy"
    request_timeout: float = REQUEST_TIMEOUT
    max_retries: int = Field(default=DEFAULT_MAX_RETRIES, ge=0)
    backoff_seconds: float = DEFAULT_BACKOFF_SECONDS

    verbose: int = 1

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        from pydantic_settings import TomlConfigSettingsSource

        # Overrides win over env, env wins over the config file
        if CONFIG_FILE.exists():
            return (
                init_settings,
                env_settings,
                TomlConfigSettingsSource(settings_cls, toml_file=CONFIG_FILE),
            )
        return (init_settings, env_settings)

    @field_validator("log_dir", mode="before")
    @classmethod
    def resolve_log_dir(cls, v: Any) -> Path:
        return Path(v).expanduser()

    @property
    def content_enabled(self) -> bool:
        return bool(self.llm_api_key)

    def session_defaults(self) -> dict[str, Any]:
        """Fields of SessionConfig that come from the app config."""
        return {
            "user_id": self.user_id,
            "max_items": self.max_items,
            "session_type": self.session_type,
            "include_drill": self.include_drill,
            "include_narrative": self.include_narrative,
            "include_speech": self.include_speech,
            "drill_count": self.drill_count,
            "native_language": self.native_language,
            "target_language": self.target_language,
            "proficiency": self.proficiency,
        }


class SessionConfig(BaseModel):
    """Settings for one study session, passed explicitly by the caller."""

    user_id: str = "default"
    max_items: int = Field(default=DEFAULT_MAX_ITEMS, ge=1)
    session_type: SessionType = SessionType.REVIEW
    include_drill: bool = True
    include_narrative: bool = True
    include_speech: bool = False
    drill_count: int = Field(default=DEFAULT_DRILL_COUNT, ge=0)
    native_language: str = "en"
    target_language: str = "es"
    proficiency: Proficiency = "intermediate"

    @property
    def language_context(self) -> LanguageContext:
        return LanguageContext(
            native_language=self.native_language,
            target_language=self.target_language,
            proficiency=self.proficiency,
        )


def resolve_config(cli_overrides: dict[str, Any] | None = None) -> AppConfig:
    """
    Multi-layered configuration resolution.
    1. Defaults in AppConfig
    2. ~/.config/phrasal/config.toml (if exists)
    3. Environment variables (PHRASAL_*)
    4. cli_overrides (passed from Typer)
    """
    overrides = {k: v for k, v in (cli_overrides or {}).items() if v is not None}
    return AppConfig(**overrides)


def build_session_config(config: AppConfig, **overrides: Any) -> SessionConfig:
    """SessionConfig from app defaults, with non-None overrides applied."""
    values = config.session_defaults()
    values.update({k: v for k, v in overrides.items() if v is not None})
    return SessionConfig(**values)
