"""Application configuration and settings management."""

from typing import Any, Literal

import json
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables or defaults."""

    model_config = SettingsConfigDict(
        env_prefix="DISPATCH_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    app_name: str = "Smart Dispatch API"
    api_prefix: str = "/api"
    log_level: str = Field(default="INFO", description="Root log level for the service.")

    depot_name: str = Field(default="Kunshan DC", description="Display name of the default depot.")
    depot_latitude: float = Field(default=31.3256, ge=-90.0, le=90.0)
    depot_longitude: float = Field(default=120.9427, ge=-180.0, le=180.0)

    default_max_stops: int = Field(default=8, ge=1)
    default_start_time: str = Field(default="06:00", description="Departure time of every trip (HH:MM).")
    default_deadline: str = Field(default="20:00", description="Window end used for orders without a time window.")
    default_factory_deadline: str = Field(default="17:00")
    default_unloading_minutes: int = Field(default=30, ge=0)
    default_cost_mode: Literal["fixed", "mileage", "weight", "hybrid"] = "mileage"
    show_market_reference: bool = True

    road_factor: float = Field(default=1.4, gt=0.0, description="Straight-line to road distance inflation.")
    average_speed_kmh: float = Field(default=40.0, gt=0.0)
    elastic_buffer_minutes: float = Field(
        default=20.0,
        ge=0.0,
        description="Lateness tolerated while packing; the auditor still reports it.",
    )
    critical_delay_minutes: float = Field(default=30.0, ge=0.0)

    max_retries: int = Field(default=2, ge=0)
    default_overload_tolerance: float = Field(default=0.1, ge=0.0)
    overload_tolerance_step: float = Field(default=0.05, gt=0.0)
    time_buffer_step_minutes: float = Field(default=15.0, gt=0.0)

    split_fill_ratio: float = Field(default=0.98, gt=0.0, le=1.0)
    max_split_parts: int = Field(default=100, ge=1)

    cluster_max_angle_span: float = Field(default=45.0, gt=0.0, le=360.0)
    cluster_distance_thresholds: tuple[float, ...] = Field(default=(30.0, 80.0, 150.0))
    kmeans_random_state: int = 42

    two_opt_enabled: bool = Field(default=False, description="Refine nearest-neighbor sequences with 2-opt.")
    two_opt_max_iterations: int = Field(default=100, ge=1)
    two_opt_improvement_km: float = Field(default=0.1, ge=0.0)

    return_empty_threshold_km: float = Field(default=50.0, ge=0.0)
    small_vehicle_max_weight_kg: float = Field(default=4500.0, ge=0.0)
    inefficient_load_rate: float = Field(default=0.4, ge=0.0)
    inefficient_distance_km: float = Field(default=20.0, ge=0.0)

    scheme_workers: int = Field(default=3, ge=1, description="Threads used to compute schemes concurrently.")

    frontend_allowed_origins: tuple[str, ...] = Field(
        default=(
            "http://localhost:3000",
            "http://127.0.0.1:3000",
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        ),
        description="Permitted web origins for browser clients (CORS).",
    )

    @field_validator("frontend_allowed_origins", mode="before")
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

    @field_validator("cluster_distance_thresholds", mode="before")
    @classmethod
    def _parse_float_tuple_from_env(cls, value: Any) -> tuple[float, ...]:
        """Parse float tuple from environment variable (comma-separated or JSON array)."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(float(item) for item in value)
        if isinstance(value, str):
            try:
                parsed = json.loads(value)
                if isinstance(parsed, list):
                    return tuple(float(item) for item in parsed)
            except (json.JSONDecodeError, TypeError, ValueError):
                pass
            if "," in value:
                return tuple(float(item.strip()) for item in value.split(",") if item.strip())
            if value.strip():
                try:
                    return (float(value.strip()),)
                except ValueError:
                    return tuple()
        return tuple()


settings = Settings()
