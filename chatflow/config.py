"""
Configuration for the Chatbot Flow Builder.
"""

from enum import Enum
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class NodeKind(str, Enum):
    """Available node kinds."""

    MESSAGE = "message"


class PortRole(str, Enum):
    """Direction of a node port (handle)."""

    INPUT = "target"
    OUTPUT = "source"


class SaveStatus(str, Enum):
    """Save workflow status values."""

    IDLE = "idle"
    SAVING = "saving"
    SUCCESS = "success"
    ERROR = "error"
    BUSY = "busy"


class StorageBackend(str, Enum):
    """Flow storage backends."""

    MEMORY = "memory"
    FILE = "file"


class CanvasConfig(BaseSettings):
    """Canvas configuration."""

    model_config = SettingsConfigDict(env_prefix="CANVAS_")

    # Placement used when an add-node intent carries no position
    default_x: float = Field(default=250.0, description="Default node x position")
    default_y: float = Field(default=250.0, description="Default node y position")
    snap_grid: int = Field(default=15, ge=1, description="Grid snap size in pixels")

    # Connection rules
    allow_self_loops: bool = Field(
        default=True, description="Allow a link from a node to itself"
    )
    check_invariants: bool = Field(
        default=True, description="Verify graph invariants before every commit"
    )


class SaveConfig(BaseSettings):
    """Save workflow configuration."""

    model_config = SettingsConfigDict(env_prefix="SAVE_")

    backend: StorageBackend = Field(
        default=StorageBackend.MEMORY, description="Flow storage backend"
    )
    storage_dir: str = Field(default="./flows", description="Directory for file storage")
    simulated_latency_s: float = Field(
        default=0.0, ge=0.0, description="Artificial delay for in-memory saves"
    )
    timeout_s: float = Field(default=10.0, gt=0.0, description="Save call timeout")


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Service configuration
    service_name: str = Field(default="chatflow", description="Service name")
    host: str = Field(default="0.0.0.0", description="Host to bind")
    port: int = Field(default=8092, ge=1024, le=65535, description="Port")
    debug: bool = Field(default=False, description="Debug mode")
    log_level: str = Field(default="info", description="Log level")

    # Sub-configurations
    canvas: CanvasConfig = Field(default_factory=CanvasConfig)
    save: SaveConfig = Field(default_factory=SaveConfig)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings."""
    return Settings()
