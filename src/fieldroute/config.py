"""Application configuration and settings management."""

from typing import Any, Optional

import json
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables or defaults."""

    model_config = SettingsConfigDict(
        env_prefix="FIELDROUTE_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    app_name: str = "Field Route Optimization API"
    api_prefix: str = "/api"
    frontend_allowed_origins: tuple[str, ...] = Field(
        default=(
            "http://localhost:5173",
            "http://127.0.0.1:5173",
            "http://localhost:8080",
        ),
        description="Permitted web origins for browser clients (CORS).",
    )

    # Supabase configuration
    supabase_url: Optional[str] = Field(
        default=None,
        description="Supabase project URL (e.g., https://xxx.supabase.co).",
    )
    supabase_key: Optional[str] = Field(
        default=None,
        description="Supabase service role key for backend operations.",
    )

    # Distance provider
    google_maps_api_key: Optional[str] = Field(
        default=None,
        description="API key for the Google Distance Matrix endpoint.",
    )
    distance_matrix_url: str = Field(
        default="https://maps.googleapis.com/maps/api/distancematrix/json",
        description="Distance Matrix endpoint.",
    )
    distance_batch_size: int = Field(
        default=10,
        ge=1,
        description="Origins per provider call; each call is issued against the full destination set.",
    )
    distance_max_parallel_requests: int = Field(default=4, ge=1)
    distance_timeout_seconds: float = Field(default=20.0, gt=0.0)
    distance_max_retries: int = Field(default=2, ge=0)
    distance_backoff_seconds: float = Field(default=0.5, ge=0.0)

    # Scheduling window
    lookahead_days: int = Field(default=3, ge=1)
    default_job_duration_minutes: int = Field(default=60, ge=1)
    default_day_start: str = Field(default="07:00", pattern=r"^\d{1,2}:\d{2}$")
    default_day_end: str = Field(default="17:00", pattern=r"^\d{1,2}:\d{2}$")

    # Conflict-aware placement
    placement_increment_minutes: int = Field(default=15, ge=1)
    placement_fallback_day_end: str = Field(
        default="21:00",
        pattern=r"^\d{1,2}:\d{2}$",
        description="Day end used when the contractor has no working hours for the date.",
    )

    # Tier thresholds (minutes saved must be strictly greater)
    intra_day_threshold_minutes: int = Field(default=0, ge=0)
    cross_day_threshold_minutes: int = Field(default=5, ge=0)
    slot_swap_threshold_minutes: int = Field(default=5, ge=0)
    teaser_threshold_minutes: int = Field(default=15, ge=0)

    eligible_subscription_tiers: tuple[str, ...] = Field(default=("starter", "pro"))
    teaser_subscription_tiers: tuple[str, ...] = Field(default=("starter",))

    local_search_enabled: bool = Field(
        default=True,
        description="Run a 2-opt improvement pass after nearest-neighbour construction.",
    )
    strategy_version: str = Field(default="v1")

    @field_validator(
        "frontend_allowed_origins",
        "eligible_subscription_tiers",
        "teaser_subscription_tiers",
        mode="before",
    )
    @classmethod
    def _parse_str_tuple_from_env(cls, value: Any) -> tuple[str, ...]:
        """Parse string tuple from environment variable (comma-separated or JSON array)."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(str(item) for item in value)
        if isinstance(value, str):
            try:
                parsed = json.loads(value)
                if isinstance(parsed, list):
                    return tuple(str(item) for item in parsed)
            except (json.JSONDecodeError, TypeError):
                pass
            if "," in value:
                return tuple(item.strip() for item in value.split(",") if item.strip())
            if value.strip():
                return (value.strip(),)
        return tuple()


settings = Settings()
