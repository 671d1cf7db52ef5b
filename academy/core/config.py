from __future__ import annotations

import os
from functools import lru_cache
from dotenv import load_dotenv, find_dotenv

_env_path = find_dotenv(".env") or ".env"
load_dotenv(_env_path, override=True)


def _split_csv(raw: str) -> list[str]:
    return [item.strip() for item in raw.split(",") if item.strip()]


class Settings:
    """Central configuration (env driven)."""

    def __init__(self) -> None:
        # Supabase
        raw_url = os.getenv("SUPABASE_URL", "")
        self.supabase_url: str = raw_url.rstrip("/")
        self.supabase_key: str = os.getenv("SUPABASE_ANON_KEY") or os.getenv("SUPABASE_KEY", "")
        self.store_query_timeout: float = float(os.getenv("STORE_QUERY_TIMEOUT", "5"))
        # AWS Bedrock (AI tutor gateway)
        self.aws_region: str = os.getenv("AWS_REGION", "us-east-1")
        self.aws_access_key_id: str | None = os.getenv("AWS_ACCESS_KEY_ID") or None
        self.aws_secret_access_key: str | None = os.getenv("AWS_SECRET_ACCESS_KEY") or None
        self.bedrock_model_id: str = os.getenv(
            "BEDROCK_MODEL_ID", "anthropic.claude-3-5-sonnet-20240620-v1:0"
        )
        self.bedrock_max_tokens: int = int(os.getenv("BEDROCK_MAX_TOKENS", "4000"))
        self.bedrock_temperature: float = float(os.getenv("BEDROCK_TEMPERATURE", "0.4"))
        self.bedrock_top_p: float = float(os.getenv("BEDROCK_TOP_P", "0.9"))
        self.bedrock_top_k: int = int(os.getenv("BEDROCK_TOP_K", "250"))
        self.bedrock_stop_sequences: list[str] = _split_csv(os.getenv("BEDROCK_STOP_SEQUENCES", ""))
        # Observer (TA) sessions
        self.session_secret: str = os.getenv("SESSION_SECRET", "change-me-in-production")
        self.session_algorithm: str = "HS256"
        self.observer_token_ttl_minutes: int = int(os.getenv("OBSERVER_TOKEN_TTL_MINUTES", "480"))
        # Progression
        self.autosave_debounce_seconds: float = float(os.getenv("AUTOSAVE_DEBOUNCE_SECONDS", "2.0"))
        self.actor_idle_seconds: float = float(os.getenv("PROGRESS_ACTOR_IDLE_SECONDS", "300"))
        # App meta
        self.app_name: str = "Code Academy Backend"
        self.debug: bool = os.getenv("DEBUG", "False").lower() == "true"
        self.allow_origins: list[str] = [
            origin.rstrip("/")
            for origin in _split_csv(
                os.getenv("ALLOW_ORIGINS", "http://localhost:5173,http://localhost:3000,http://127.0.0.1:5173")
            )
        ]


@lru_cache()
def get_settings() -> Settings:
    return Settings()
