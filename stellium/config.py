"""Configuration settings using Pydantic."""

from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

# Docs: https://docs.pydantic.dev/2.8/concepts/pydantic_settings/


class Settings(BaseSettings):
    # App name used in logs
    app_name: str = "stellium"

    # Allows to detect type of deployment
    environment: Literal["dev", "prod"] = "dev"

    # Backend serving balances, unlocks and horoscope generation
    api_url: str = "http://localhost:8080"

    # Seconds before an API request is abandoned by httpx
    api_timeout: float = 60.0

    # Logfire token, logs stay local when empty
    logfire_token: str | None = None

    # --- Non essentials ---

    # After this many seconds a generating tab may show a "taking longer" hint
    slow_generation_seconds: float = 15.0

    # Below this total the balance is shown as running low
    low_balance_threshold: int = 10

    model_config = SettingsConfigDict(
        # `.env.prod` takes priority over `.env`
        env_file=(".env", ".env.prod"),
        env_file_encoding="utf-8",
        env_prefix="STELLIUM_",
        extra="ignore",  # Ignore extra fields from .env
    )

    @property
    def is_production(self) -> bool:
        return self.environment == "prod"


settings = Settings()
