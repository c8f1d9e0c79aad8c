"""Application configuration using environment variables."""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import AliasChoices, AnyHttpUrl, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve the project root once so that `.env` is discovered regardless of CWD
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent

BOTANIST_SYSTEM_PROMPT = """
You are Greenur's plant expert botanist assistant. Your role is to help users with their plant-related questions.

You should:
- Always answer in brief, concise responses for a natural conversation
- Provide accurate, helpful information about plants, gardening, plant care, and related topics
- Answer questions about plant identification, care requirements, troubleshooting plant problems, etc.
- Be friendly, supportive, and encouraging to gardeners of all experience levels
- Use scientific names when appropriate, but explain concepts in accessible language
- If you're unsure about something, acknowledge the limits of your knowledge
- ONLY answer questions related to plants, gardening, botany, and closely related topics
- For non-plant related questions, politely explain that you're a plant specialist and can only help with plant-related topics

DO NOT:
- Provide advice on non-plant topics
- Engage in discussions about politics, controversial topics, or anything unrelated to plants
- Generate harmful content of any kind
- Provide lengthy responses - keep them short and natural for a voice conversation
""".strip()


class Settings(BaseSettings):
    """Load configuration from environment variables and `.env`."""

    model_config = SettingsConfigDict(
        env_file=str(PROJECT_ROOT / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Pre-shared key every REST request and WebSocket handshake must present
    api_secret_key: Optional[SecretStr] = Field(
        default=None,
        validation_alias=AliasChoices("API_SECRET_KEY", "api_secret_key"),
    )

    openai_api_key: Optional[SecretStr] = Field(
        default=None,
        validation_alias=AliasChoices("OPENAI_API_KEY", "openai_api_key"),
    )
    openai_base_url: AnyHttpUrl = Field(
        default_factory=lambda: AnyHttpUrl("https://api.openai.com/v1"),
        validation_alias=AliasChoices("OPENAI_BASE_URL", "openai_base_url"),
    )
    gemini_api_key: Optional[SecretStr] = Field(
        default=None,
        validation_alias=AliasChoices("GEMINI_API_KEY", "gemini_api_key"),
    )
    gemini_base_url: AnyHttpUrl = Field(
        default_factory=lambda: AnyHttpUrl(
            "https://generativelanguage.googleapis.com/v1beta"
        ),
        validation_alias=AliasChoices("GEMINI_BASE_URL", "gemini_base_url"),
    )

    default_model_id: str = Field(
        default="gpt-4o-mini",
        validation_alias=AliasChoices("DEFAULT_MODEL_ID", "default_model_id"),
    )
    default_gemini_model: str = Field(
        default="gemini-1.5-pro",
        validation_alias=AliasChoices("DEFAULT_GEMINI_MODEL", "default_gemini_model"),
    )
    system_prompt: str = Field(
        default=BOTANIST_SYSTEM_PROMPT,
        validation_alias=AliasChoices("SYSTEM_PROMPT", "system_prompt"),
    )
    llm_temperature: float = Field(
        default=0.3,
        ge=0,
        le=2,
        validation_alias=AliasChoices("LLM_TEMPERATURE", "llm_temperature"),
    )
    llm_max_tokens: int = Field(
        default=200,
        ge=1,
        validation_alias=AliasChoices("LLM_MAX_TOKENS", "llm_max_tokens"),
    )
    request_timeout: float = Field(
        default=60.0,
        ge=1,
        validation_alias=AliasChoices("LLM_TIMEOUT", "request_timeout"),
    )

    context_limit: int = Field(
        default=10,
        ge=2,
        validation_alias=AliasChoices("CONTEXT_LIMIT", "context_limit"),
    )
    audio_chunk_threshold: int = Field(
        default=10,
        ge=1,
        validation_alias=AliasChoices(
            "AUDIO_CHUNK_THRESHOLD",
            "audio_chunk_threshold",
        ),
    )
    default_voice: str = Field(
        default="en-IN-Chirp3-HD-Orus",
        validation_alias=AliasChoices("DEFAULT_VOICE", "default_voice"),
    )

    # Google Cloud credentials, either inline JSON (optionally base64) or a file path
    google_credentials_json: Optional[SecretStr] = Field(
        default=None,
        validation_alias=AliasChoices(
            "GOOGLE_CREDENTIALS_JSON",
            "google_credentials_json",
        ),
    )
    google_application_credentials: Optional[Path] = Field(
        default=None,
        validation_alias=AliasChoices(
            "GOOGLE_APPLICATION_CREDENTIALS",
            "google_application_credentials",
        ),
    )

    session_idle_ttl_seconds: int = Field(
        default=3600,
        ge=0,
        validation_alias=AliasChoices(
            "SESSION_IDLE_TTL_SECONDS",
            "session_idle_ttl_seconds",
        ),
    )
    session_eviction_interval_seconds: int = Field(
        default=300,
        ge=1,
        validation_alias=AliasChoices(
            "SESSION_EVICTION_INTERVAL_SECONDS",
            "session_eviction_interval_seconds",
        ),
    )

    host: str = Field(default="0.0.0.0", validation_alias=AliasChoices("HOST"))
    port: int = Field(default=8080, validation_alias=AliasChoices("PORT"))


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached `Settings` instance."""

    return Settings()  # pyright: ignore[reportCallIssue]


__all__ = ["BOTANIST_SYSTEM_PROMPT", "Settings", "get_settings"]
