"""Application configuration using Pydantic Settings."""

from functools import lru_cache
from pathlib import Path
from typing import Annotated

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Telegram
    telegram_bot_token: str

    # Roles
    leader_password: str = "alfonsa"
    counter1_name: str = "Usuario 1"
    counter2_name: str = "Usuario 2"

    # Supabase (remote store). Empty means local-only deployment.
    supabase_url: str = ""
    supabase_anon_key: str = ""

    # Local store
    db_path: Path = Path("data/stock_control.db")

    # Storage behaviour
    storage_retry_attempts: int = 3
    storage_retry_delay: float = 1.0  # Seconds, grows linearly per attempt
    autosave_delay: float = 1.5  # Quiet period before a correction is written
    watch_interval: float = 5.0  # Remote change polling

    # Husky dump parser tuning
    parser_max_quantity: int = 500
    parser_unit_tokens: Annotated[list[str], NoDecode] = ["CC", "ML", "LITRO", "LT", "CL"]

    # Application
    log_level: str = "INFO"

    # Monitoring (Sentry)
    sentry_dsn: str = ""
    environment: str = "production"

    @field_validator("parser_unit_tokens", mode="before")
    @classmethod
    def parse_unit_tokens(cls, v: str | list[str]) -> list[str]:
        """Parse comma-separated unit words into an upper-case list."""
        if isinstance(v, str):
            v = v.split(",")
        return [token.strip().upper() for token in v if token and token.strip()]

    @model_validator(mode="after")
    def validate_supabase_credentials(self) -> "Settings":
        """Ensure Supabase URL and key are provided together or not at all."""
        if bool(self.supabase_url) != bool(self.supabase_anon_key):
            missing = "SUPABASE_ANON_KEY" if self.supabase_url else "SUPABASE_URL"
            raise ValueError(
                f"Supabase partially configured. Missing: {missing}. "
                "Provide both Supabase settings or none."
            )
        return self

    @property
    def remote_enabled(self) -> bool:
        """Check if the remote store is configured."""
        return bool(self.supabase_url and self.supabase_anon_key)

    def counter_name(self, role: str) -> str:
        """Display name for a counter role ("user1" / "user2")."""
        return self.counter1_name if role == "user1" else self.counter2_name


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
