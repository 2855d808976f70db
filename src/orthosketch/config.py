"""Configuration for OrthoSketch.

Settings come from ``ORTHOSKETCH_*`` environment variables or a ``.env``
file, validated by pydantic-settings.
"""

from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class SketchConfig(BaseSettings):
    """Engine and server settings."""

    model_config = SettingsConfigDict(
        env_prefix="ORTHOSKETCH_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    server_transport: Literal["sse", "stdio"] = "stdio"
    log_level: str = "INFO"
    log_format: Literal["json", "console"] = "json"

    working_precision: int = Field(
        default=1,
        ge=0,
        description="Decimal places kept on solver and dimension outputs",
    )
    distance_tolerance: float = Field(
        default=0.1,
        gt=0,
        description="Allowed deviation when re-checking distance constraints",
    )

    # Used when a sketch's extrusion block leaves them out
    default_bevel: bool = True
    default_bevel_thickness: float = Field(default=0.3, ge=0)
    default_bevel_size: float = Field(default=0.3, ge=0)
    default_bevel_segments: int = Field(default=3, ge=1)
    default_curve_segments: int = Field(default=12, ge=1)
    default_steps: int = Field(default=1, ge=1)


_config: Optional[SketchConfig] = None


def get_config() -> SketchConfig:
    """Return the process-wide configuration, loading it on first use."""
    global _config
    if _config is None:
        _config = SketchConfig()
    return _config


def reset_config() -> None:
    """Forget the loaded configuration so the next get_config() re-reads the environment."""
    global _config
    _config = None
