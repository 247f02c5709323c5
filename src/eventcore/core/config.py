"""Configuration management.

Loads from TOML config files + environment variables.
Uses pydantic-settings for validation and env var overriding.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings


# ---------------------------------------------------------------------------
# Sub-configs
# ---------------------------------------------------------------------------

class QueueConfig(BaseModel):
    max_workers: int = 8  # Threads shared by every labelled queue
    thread_name_prefix: str = "eventcore"
    drain_timeout_seconds: float = 5.0  # Default bound for Runtime.drain()


class BusConfig(BaseModel):
    history_limit: int = 1000  # 0 disables history


class LoaderConfig(BaseModel):
    per_item_latency_seconds: float = 1.0


class ObservabilityConfig(BaseModel):
    log_level: str = "INFO"
    log_format: str = "json"  # "json" or "console"
    configure_logging: bool = False  # Runtime calls setup_logging() when set


# ---------------------------------------------------------------------------
# Top-level settings
# ---------------------------------------------------------------------------

class Settings(BaseSettings):
    """Top-level settings.

    Loaded from TOML config files, overridden by environment variables.
    """

    queue: QueueConfig = Field(default_factory=QueueConfig)
    bus: BusConfig = Field(default_factory=BusConfig)
    loader: LoaderConfig = Field(default_factory=LoaderConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)

    model_config = {"env_prefix": "EVENTCORE_", "env_nested_delimiter": "__"}

    def validate_runtime(self) -> None:
        """Reject values the runtime cannot operate with."""
        from .errors import ConfigError

        if self.queue.max_workers < 1:
            raise ConfigError(
                f"queue.max_workers must be >= 1, got {self.queue.max_workers}"
            )
        if self.loader.per_item_latency_seconds < 0:
            raise ConfigError(
                "loader.per_item_latency_seconds must be >= 0, got "
                f"{self.loader.per_item_latency_seconds}"
            )
        if self.bus.history_limit < 0:
            raise ConfigError(
                f"bus.history_limit must be >= 0, got {self.bus.history_limit}"
            )


def load_settings(
    config_path: str | Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> Settings:
    """Load settings from TOML file + env vars.

    Args:
        config_path: Path to TOML config file (optional).
        overrides: Dict of overrides to apply on top.
    """
    data: dict[str, Any] = {}

    if config_path:
        path = Path(config_path)
        if path.exists():
            import tomli

            with open(path, "rb") as f:
                data = tomli.load(f)

    if overrides:
        data.update(overrides)

    return Settings(**data)
