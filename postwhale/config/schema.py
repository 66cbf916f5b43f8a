"""Configuration schema using Pydantic.

Single data model and defaults for postwhale, persisted to ~/.postwhale/config.json.
"""

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings


class BridgeConfig(BaseModel):
    """Worker process and call correlation settings."""
    command: list[str] = Field(default_factory=lambda: ["postwhale-backend"])  # argv of the worker
    cwd: str | None = None
    env: dict[str, str] = Field(default_factory=dict)  # Extra env vars for the worker
    timeout_ms: int = Field(default=30000, ge=1)  # Per-call deadline
    max_frame_bytes: int = Field(default=16 * 1024 * 1024, ge=1024)
    shutdown_timeout_ms: int = Field(default=2000, ge=0)

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000.0


class StorageConfig(BaseModel):
    """Local key/value persistence for request configs and view state."""
    dir: str = "~/.postwhale/storage"

    @property
    def path(self) -> Path:
        return Path(self.dir).expanduser()


class LoggingConfig(BaseModel):
    """Log sink settings."""
    level: str = "INFO"


class Config(BaseSettings):
    """Root configuration for postwhale."""
    bridge: BridgeConfig = Field(default_factory=BridgeConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = ConfigDict(
        env_prefix="POSTWHALE_",
        env_nested_delimiter="__"
    )
