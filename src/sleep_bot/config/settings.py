"""Configuration management"""

import logging
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, ConfigDict, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings"""

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ==================== Bot ====================
    bot_token: str = Field(..., description="Telegram Bot Token")
    sleep_chat_id: int = Field(..., description="Chat the bot listens to for check-ins")
    admin_user_id: int | None = Field(default=None, description="The single administrator (may wipe all data)")

    # ==================== Database ====================
    database_url: str = Field(..., description="PostgreSQL connection string")

    # ==================== Runtime ====================
    timezone: str = Field(default="America/Los_Angeles", description="IANA zone used to read clock times")
    pending_grace_minutes: int = Field(default=60, ge=1, description="Age after which a pending gn is promoted")
    pending_sweep_interval: int = Field(default=60, ge=5, description="Pending sweep interval (seconds)")

    # ==================== Weekly summary ====================
    weekly_summary_enabled: bool = Field(default=True, description="Post a weekly summary to the sleep chat")
    weekly_summary_weekday: int = Field(default=6, ge=0, le=6, description="Monday=0 ... Sunday=6")
    weekly_summary_hour: int = Field(default=9, ge=0, le=23, description="Local hour of the weekly summary")

    # ==================== Logging ====================
    log_level_str: str = Field(default="INFO", alias="LOG_LEVEL", description="DEBUG, INFO, WARNING, ERROR")

    @field_validator("log_level_str")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level"""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}, got '{v}'")
        return v_upper

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        """Validate the IANA zone identifier"""
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"unknown timezone '{v}'")
        return v

    @property
    def log_level(self) -> int:
        """Logging level constant"""
        return getattr(logging, self.log_level_str)

    def is_admin(self, user_id: int) -> bool:
        """Whether the user is the configured administrator"""
        return self.admin_user_id is not None and user_id == self.admin_user_id


# Global settings instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Settings instance (singleton)"""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
