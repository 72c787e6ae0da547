# ─────────────────────────────────────────────────────────────────────────────
# Settings — Pydantic v2 BaseSettings
# ─────────────────────────────────────────────────────────────────────────────


from functools import lru_cache

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Server configuration sourced from environment variables.

    Uses pydantic-settings v2 (separate package from pydantic).
    """

    model_config = SettingsConfigDict(env_prefix="", env_file=".env", extra="ignore")

    # ── Discord / Midjourney credentials ─────────────────────────────────────
    server_id: str = ""
    channel_id: str = ""
    salai_token: SecretStr = SecretStr("")

    # ── Server ───────────────────────────────────────────────────────────────
    port: int = 3000
    allowed_origins: str = ""  # Comma-separated; empty = "*"

    # ── Client behaviour ─────────────────────────────────────────────────────
    discord_api_base: str = "https://discord.com/api/v9"
    poll_interval_seconds: float = 2.5
    job_timeout_seconds: float = 600.0
    skip_client_init: bool = False  # True for testing without Discord

    # ── Logging ──────────────────────────────────────────────────────────────
    log_level: str = "INFO"
    log_json: bool = True


@lru_cache
def get_settings() -> Settings:
    """Cached settings singleton."""
    return Settings()
