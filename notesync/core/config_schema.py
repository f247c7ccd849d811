"""
Configuration Schemas.

Pydantic models defining the expected structure of each YAML config file.
Used by AppConfig to validate configuration at load time. If a YAML file
has missing keys, wrong types, or unknown fields, a clear ValidationError
is raised at startup instead of a cryptic KeyError deep in sync code.

Each top-level class corresponds to one file in config/settings/:
    ApplicationSchema  → application.yaml
    DatabaseSchema     → database.yaml
    RemoteSchema       → remote.yaml
    SyncSchema         → sync.yaml
    LoggingSchema      → logging.yaml
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class _StrictBase(BaseModel):
    """Base with extra='forbid' so unknown YAML keys are caught immediately."""

    model_config = ConfigDict(extra="forbid")


# =============================================================================
# application.yaml
# =============================================================================


class ApplicationSchema(_StrictBase):
    name: str
    version: str
    description: str
    environment: str
    debug: bool


# =============================================================================
# database.yaml
# =============================================================================


class DatabaseSchema(_StrictBase):
    url: str
    echo: bool = False


# =============================================================================
# remote.yaml
# =============================================================================


class RemoteRetrySchema(_StrictBase):
    max_attempts: int = Field(default=3, ge=1)
    backoff_multiplier: float = 1
    backoff_max: float = 10


class RemoteCircuitBreakerSchema(_StrictBase):
    fail_max: int = 5
    timeout_duration: int = 30


class RemoteSchema(_StrictBase):
    base_url: str
    notes_path: str = "/api/notes/"
    timeout_seconds: float = 10
    page_size: int = Field(default=20, ge=1)
    retry: RemoteRetrySchema = Field(default_factory=RemoteRetrySchema)
    circuit_breaker: RemoteCircuitBreakerSchema = Field(
        default_factory=RemoteCircuitBreakerSchema,
    )


# =============================================================================
# sync.yaml
# =============================================================================


class RetryBackoffSchema(_StrictBase):
    initial_seconds: float = 5
    max_seconds: float = 300


class SyncSchema(_StrictBase):
    periodic_interval_seconds: float = Field(default=900, gt=0)
    pull_policy: Literal["guarded", "always"] = "guarded"
    coalesce_policy: Literal["keep", "replace"] = "keep"
    retry_backoff: RetryBackoffSchema = Field(default_factory=RetryBackoffSchema)
    max_pages: int = Field(default=1000, ge=1)


# =============================================================================
# logging.yaml
# =============================================================================


class ConsoleHandlerSchema(_StrictBase):
    enabled: bool


class FileHandlerSchema(_StrictBase):
    enabled: bool
    path: str
    max_bytes: int
    backup_count: int


class HandlersSchema(_StrictBase):
    console: ConsoleHandlerSchema
    file: FileHandlerSchema


class LoggingSchema(_StrictBase):
    level: str
    format: str
    handlers: HandlersSchema
