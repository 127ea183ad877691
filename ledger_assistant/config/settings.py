"""
Configuration Management for the Ledger Assistant

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
This makes it easy to see what external dependencies exist and
ensures all required configuration is validated at startup.

Two credentials deserve attention:
- The anonymous Supabase key is used with the caller's own bearer token,
  so row-level security applies.
- The service-role key bypasses row-level security. It is optional and is
  only ever used for a single request after the access gate escalates.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class SupabaseSettings(BaseSettings):
    """Hosted record store (PostgREST + GoTrue) configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SUPABASE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    url: str = Field(
        ...,
        description="Project URL, e.g. https://xyz.supabase.co"
    )
    anon_key: str = Field(
        ...,
        description="Public/anonymous key (row-level security applies)"
    )
    service_role_key: Optional[str] = Field(
        default=None,
        description="Elevated key, used only when an admin request is escalated"
    )
    timeout_seconds: float = Field(
        default=15.0,
        gt=0,
        le=120,
        description="HTTP timeout for store calls"
    )

    @field_validator('url')
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.strip().rstrip("/")

    @field_validator('service_role_key')
    @classmethod
    def blank_key_is_missing(cls, v: Optional[str]) -> Optional[str]:
        """An empty env var means "not configured"."""
        if v is None or not v.strip():
            return None
        return v.strip()


class AssistantAISettings(BaseSettings):
    """
    Generative provider configuration.

    Any OpenAI-compatible chat-completions endpoint works
    (Groq, OpenAI, a local LM Studio...).
    """

    model_config = SettingsConfigDict(
        env_prefix="ASSISTANT_AI_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Optional on purpose: a missing key degrades to an in-band reply
    api_key: Optional[str] = Field(
        default=None,
        description="Provider API key"
    )
    base_url: str = Field(
        default="https://api.groq.com/openai/v1",
        description="OpenAI-compatible base URL"
    )
    model_name: str = Field(
        default="llama-3.3-70b-versatile",
        description="Chat model to use"
    )
    temperature: float = Field(
        default=0.2,
        ge=0.0,
        le=1.0,
        description="Model temperature (lower = more deterministic)"
    )
    timeout_seconds: float = Field(
        default=60.0,
        gt=0,
        description="HTTP timeout for provider calls"
    )
    persona_name: str = Field(
        default="Chuvinha",
        description="Name the assistant uses for itself"
    )

    @field_validator('api_key')
    @classmethod
    def blank_key_is_missing(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip():
            return None
        return v.strip()

    @field_validator('base_url')
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.strip().rstrip("/")


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Conversation limits
    history_turn_limit: int = Field(
        default=10,
        ge=0,
        le=10,
        description="How many previous turns are forwarded to the model"
    )

    # Query limits
    query_line_limit: int = Field(
        default=50,
        ge=1,
        le=50,
        description="Maximum itemized lines in a dated answer"
    )
    open_items_limit: int = Field(
        default=12,
        ge=1,
        le=50,
        description="Maximum outstanding items listed in a monthly answer"
    )

    # Import limits
    import_sample_limit: int = Field(
        default=50,
        ge=1,
        le=50,
        description="Maximum spreadsheet rows sent to (and drafts accepted from) the model"
    )
    import_batch_size: int = Field(
        default=250,
        ge=1,
        le=1000,
        description="Rows per insert batch in the expense import tool"
    )
    future_date_tolerance_days: int = Field(
        default=366,
        ge=0,
        description="Drafts dated further ahead than this get a warning"
    )


class ImportSettings(BaseSettings):
    """Defaults for the expense batch import tool."""

    model_config = SettingsConfigDict(
        env_prefix="IMPORT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    user_id: Optional[str] = Field(
        default=None,
        description="Owner of the imported expenses"
    )
    year: Optional[int] = Field(
        default=None,
        ge=2000,
        le=2100,
        description="Year assumed for DD/MM dates (defaults to the current year)"
    )


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Sub-settings are loaded lazily to allow partial configuration

    @property
    def supabase(self) -> SupabaseSettings:
        return SupabaseSettings()

    @property
    def assistant_ai(self) -> AssistantAISettings:
        return AssistantAISettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()

    @property
    def importing(self) -> ImportSettings:
        return ImportSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    try:
        supabase = settings.supabase
        results["supabase"] = True
        results["supabase_privileged"] = supabase.service_role_key is not None
    except Exception as e:
        results["supabase"] = False
        results["supabase_error"] = str(e)

    try:
        assistant_ai = settings.assistant_ai
        results["assistant_ai"] = assistant_ai.api_key is not None
    except Exception as e:
        results["assistant_ai"] = False
        results["assistant_ai_error"] = str(e)

    try:
        _ = settings.app
        results["app"] = True
    except Exception as e:
        results["app"] = False
        results["app_error"] = str(e)

    return results
