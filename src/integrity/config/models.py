"""Pydantic models describing the integrity tool configuration."""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from integrity.util.sizes import parse_size


class RuntimeConfig(BaseModel):
    """Execution settings for build and verify batches."""

    model_config = ConfigDict(extra="allow")

    root: Path = Path(".")
    parallelism: int = Field(default=-1, ge=-1)
    chunk_size: int = Field(default=16 * 1024, ge=1)
    fail_fast: bool = False
    sort_entries: bool = True

    @field_validator("chunk_size", mode="before")
    @classmethod
    def _parse_chunk_size(cls, value: object) -> object:
        if isinstance(value, str):
            return parse_size(value)
        return value


class HashingConfig(BaseModel):
    """Which digest algorithms may be used to build new records."""

    model_config = ConfigDict(extra="allow")

    default_algorithm: str = "SHA256"
    allowed_algorithms: List[str] = Field(default_factory=lambda: ["SHA256", "SHA384", "SHA512"])
    max_globs: int = Field(default=25, ge=1)

    @field_validator("default_algorithm")
    @classmethod
    def _upper_default(cls, value: str) -> str:
        return value.strip().upper()

    @field_validator("allowed_algorithms")
    @classmethod
    def _upper_allowed(cls, value: List[str]) -> List[str]:
        return [item.strip().upper() for item in value if item.strip()]

    @model_validator(mode="after")
    def _default_is_allowed(self) -> "HashingConfig":
        """Ensure the default algorithm is part of the allow-list."""

        if self.default_algorithm not in self.allowed_algorithms:
            raise ValueError(
                f"default_algorithm {self.default_algorithm!r} is not in allowed_algorithms {self.allowed_algorithms}."
            )
        return self

    def is_allowed(self, name: str) -> bool:
        return name.strip().upper() in self.allowed_algorithms


class LoggingConfig(BaseModel):
    """Console/file logging and progress cadence."""

    model_config = ConfigDict(extra="allow")

    log_path: Optional[Path] = None
    progress_step_percent: float = Field(default=1, gt=0, le=100)


class IntegrityConfig(BaseModel):
    """Root configuration object."""

    model_config = ConfigDict(extra="allow")

    runtime: RuntimeConfig = Field(default_factory=RuntimeConfig)
    hashing: HashingConfig = Field(default_factory=HashingConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


__all__ = ["HashingConfig", "IntegrityConfig", "LoggingConfig", "RuntimeConfig"]
