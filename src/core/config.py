"""Application settings and CORS configuration."""

import json
import os
from functools import lru_cache

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# Env file loaded per ENVIRONMENT; tests run on defaults and process env only
ENV_FILES: dict[str, str | None] = {
    "development": ".env.dev",
    "production": ".env.prod",
    "test": None,
}


def parse_origins(raw: object) -> list[str]:
    """Normalize CORS origins given as a list, a CSV string or a JSON array."""
    if isinstance(raw, list):
        return [str(origin).strip() for origin in raw]
    if not isinstance(raw, str):
        raise ValueError("CORS_ORIGINS must be a string or a list of strings")

    raw = raw.strip()
    if not raw.startswith("["):
        return [origin.strip() for origin in raw.split(",") if origin.strip()]
    try:
        decoded = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValueError("CORS_ORIGINS JSON array could not be decoded") from e
    if not isinstance(decoded, list):
        raise ValueError("CORS_ORIGINS JSON must be an array")
    return [str(origin).strip() for origin in decoded]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=(".env"), env_file_encoding="utf-8")

    APP_NAME: str = "Corrector"
    ENVIRONMENT: str = "development"  # development | production | test

    # Browser origins; CSV or JSON array when set from the environment
    CORS_ORIGINS: list[str] | str = ["*"]
    ALLOW_CREDENTIALS: bool = False

    # OpenAI-compatible provider
    OPENAI_API_KEY: str | None = None
    OPENAI_BASE_URL: str = "https://api.openai.com/v1"
    CORRECTION_MODEL: str = "gpt-4.1-mini"
    CHAT_MODEL: str = "gpt-4o-mini"
    EMBEDDING_MODEL: str = "text-embedding-3-small"
    UPSTREAM_TIMEOUT_SECONDS: float = 60.0

    # Checked before a relay starts
    MAX_CORRECTION_CHARS: int = 20_000
    MAX_TRANSLATION_CHARS: int = 16_000
    MAX_ANNOTATIONS: int = 12
    CORRECTION_MAX_OUTPUT_TOKENS: int = 800

    # Paraphrases scoring below this percentage are flagged lowConfidence
    MIN_FIDELITY: int = 85

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def _normalize_origins(cls, v: object) -> list[str]:
        return parse_origins(v)

    @model_validator(mode="after")
    def _check_consistency(self) -> "Settings":
        origins = parse_origins(self.CORS_ORIGINS)
        self.CORS_ORIGINS = origins
        if self.ALLOW_CREDENTIALS and "*" in origins:
            raise ValueError(
                "ALLOW_CREDENTIALS=True requires explicit CORS_ORIGINS, not '*'"
            )
        if self.MAX_ANNOTATIONS < 0:
            raise ValueError("MAX_ANNOTATIONS must be zero or positive")
        if min(self.MAX_CORRECTION_CHARS, self.MAX_TRANSLATION_CHARS) <= 0:
            raise ValueError("Input length limits must be positive")
        if not 0 <= self.MIN_FIDELITY <= 100:
            raise ValueError("MIN_FIDELITY must be a percentage between 0 and 100")
        return self


@lru_cache
def get_settings() -> Settings:
    """Load settings once per process for the current ENVIRONMENT."""
    env = os.getenv("ENVIRONMENT", "development").lower()
    if env not in ENV_FILES:
        raise ValueError(f"ENVIRONMENT must be one of {sorted(ENV_FILES)}")

    # pydantic-settings accepts `_env_file` at runtime; mypy doesn't type it.
    settings = Settings(_env_file=ENV_FILES[env])  # type: ignore[call-arg]

    if env == "production" and not settings.OPENAI_API_KEY:
        raise RuntimeError("OPENAI_API_KEY must be set in production")
    return settings
