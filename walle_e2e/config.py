"""
Configuration management using Pydantic Settings.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Per-strategy wait never exceeds this, whatever the environment says.
MAX_STRATEGY_TIMEOUT_MS = 2000


class Settings(BaseSettings):
    """Settings loaded from environment variables (prefix ``WALLE_``)."""

    model_config = SettingsConfigDict(
        env_prefix="WALLE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_env: Literal["development", "staging", "production"] = "development"

    # Target application
    base_url: str = ""

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    # Playwright
    browser: Literal["chromium", "firefox", "webkit"] = "chromium"
    playwright_headless: bool = True
    playwright_timeout: int = 30000  # milliseconds
    playwright_slow_mo: int = 0
    viewport_width: int = 1440
    viewport_height: int = 900

    # Locator resolution
    strategy_timeout_ms: int = 2000
    resolve_timeout_ms: int = 5000

    # Actions
    action_timeout_ms: int = 5000
    fallback_timeout_ms: int = 3000

    # Waiting
    wait_timeout_s: float = 10.0
    poll_intervals: list[float] = Field(default_factory=lambda: [1.0, 2.0, 3.0, 5.0])

    # Flows
    max_flow_attempts: int = 3

    # Storage
    ledger_path: Path = Path("data/used_wallet_addresses.json")
    storage_state_path: Path = Path("auth/google.json")
    screenshot_dir: Path = Path("artifacts/screenshots")
    capture_screenshots: bool = False

    # Logging
    log_level: str = "INFO"
    log_format: Literal["json", "console"] = "console"

    @field_validator("strategy_timeout_ms")
    @classmethod
    def _clamp_strategy_timeout(cls, value: int) -> int:
        return max(0, min(value, MAX_STRATEGY_TIMEOUT_MS))

    @field_validator("poll_intervals")
    @classmethod
    def _check_intervals(cls, value: list[float]) -> list[float]:
        if not value or any(v <= 0 for v in value):
            raise ValueError("poll_intervals must be a non-empty list of positive seconds")
        return value

    @property
    def is_development(self) -> bool:
        return self.app_env == "development"

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
