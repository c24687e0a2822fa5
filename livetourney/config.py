"""Application configuration."""
from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings

DEFAULT_STATE_HMAC_KEY = "livetourney-state"


class Settings(BaseSettings):
    """Runtime settings."""

    # App
    app_env: str = "development"
    log_level: str = "INFO"
    json_logs: bool = False

    # Redis - optional; enables the Redis repository, lock and event stream
    redis_url: Optional[str] = Field(
        default=None,
        description="Redis connection URL (in-memory state when unset)",
    )
    state_ttl_seconds: int = Field(
        default=86400 * 7,
        description="TTL of persisted tournament documents (default: 7 days)",
    )
    state_hmac_key: str = Field(
        default=DEFAULT_STATE_HMAC_KEY,
        description="Secret signing persisted tournament documents (HMAC-SHA256)",
    )

    # Locking
    lock_timeout_ms: int = Field(
        default=10000,
        description="Per-tournament lock auto-expire time in ms",
    )
    lock_acquire_timeout_ms: int = Field(
        default=5000,
        description="Max wait for a per-tournament lock in ms",
    )

    # Clock
    tick_interval_seconds: float = Field(
        default=1.0,
        description="Interval between remaining-time evaluations",
    )
    auto_advance_cooldown_seconds: float = Field(
        default=5.0,
        description="Minimum gap between two automatic transitions of one tournament",
    )
    finish_after_last_level: bool = Field(
        default=False,
        description="Finish the tournament when the last level runs out (default: hold)",
    )
    default_break_minutes: int = 10

    # Seating
    default_max_seats: int = 9

    @field_validator("default_max_seats")
    @classmethod
    def validate_default_max_seats(cls, v: int) -> int:
        """Tables seat between 2 and 10 players."""
        if not 2 <= v <= 10:
            raise ValueError("default_max_seats must be between 2 and 10")
        return v

    @field_validator("tick_interval_seconds", "auto_advance_cooldown_seconds")
    @classmethod
    def validate_positive_interval(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("intervals must be positive")
        return v

    @field_validator("default_break_minutes")
    @classmethod
    def validate_break_minutes(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("default_break_minutes must be positive")
        return v

    @model_validator(mode="after")
    def validate_production_settings(self) -> "Settings":
        """Validate settings for production environment."""
        if self.app_env == "production":
            if self.log_level.upper() == "DEBUG":
                raise ValueError(
                    "DEBUG log level is not allowed in production environment"
                )
            if self.redis_url and self.state_hmac_key == DEFAULT_STATE_HMAC_KEY:
                raise ValueError(
                    "STATE_HMAC_KEY must be set when Redis state is used in production"
                )
            # 프로덕션은 항상 JSON 로그
            object.__setattr__(self, "json_logs", True)

        return self

    model_config = {
        "env_file": ".env",
        "extra": "ignore",
    }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
