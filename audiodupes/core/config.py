"""Configuration management using Pydantic and YAML."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from audiodupes.core.errors import ConfigurationError

# Extensions are a best guess at what fpcalc (via FFmpeg) can decode.
DEFAULT_FILE_PATTERN = r"\.(aiff|flac|m4a|mp3|oga|ogg|opus|wav|wma)$"

SETTINGS_DESCRIPTOR_VERSION = 1
"""Bumped whenever the set or meaning of descriptor fields changes."""


@dataclass(frozen=True)
class SettingsDescriptor:
    """Canonical, versioned description of the settings used to fingerprint files.

    Fingerprints computed under different descriptors aren't comparable, so a
    fingerprint database stores exactly one and refuses to open under another.
    Fields are kept as an ordered list so the encoding is stable.
    """

    version: int
    fields: tuple[tuple[str, Any], ...]

    def to_json(self) -> str:
        return json.dumps([[name, value] for name, value in self.fields])

    @classmethod
    def from_row(cls, version: int, data: str) -> SettingsDescriptor:
        """Rebuild a descriptor from its stored (version, JSON) form.

        Raises:
            ConfigurationError: If the stored data can't be decoded
        """
        try:
            fields = tuple((str(name), value) for name, value in json.loads(data))
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Unreadable settings descriptor {data!r}: {e}") from e
        return cls(version=int(version), fields=fields)

    def __str__(self) -> str:
        parts = []
        for name, value in self.fields:
            if isinstance(value, bool):
                parts.append(f"{name}={str(value).lower()}")
            elif isinstance(value, float):
                parts.append(f"{name}={value:.3f}")
            else:
                parts.append(f"{name}={value}")
        return ",".join(parts)


class _ConfigModel(BaseModel):
    """Base for config sections. Invalid values raise ConfigurationError."""

    def __init__(self, **data: Any) -> None:
        try:
            super().__init__(**data)
        except ValidationError as e:
            raise ConfigurationError(str(e)) from e


class FpcalcConfig(_ConfigModel):
    """Settings passed to fpcalc. Changing any of them invalidates cached fingerprints."""

    model_config = ConfigDict(frozen=True)

    length: float = Field(gt=0, default=15.0)  # max audio duration to process, seconds
    chunk: float = Field(ge=0, default=0.0)  # chunk duration, 0 for a single chunk
    algorithm: int = Field(ge=0, default=2)
    overlap: bool = False

    def descriptor(self) -> SettingsDescriptor:
        """Return the descriptor stored alongside fingerprints made with these settings."""
        return SettingsDescriptor(
            version=SETTINGS_DESCRIPTOR_VERSION,
            fields=(
                ("length", round(float(self.length), 3)),
                ("chunk", round(float(self.chunk), 3)),
                ("algorithm", int(self.algorithm)),
                ("overlap", bool(self.overlap)),
            ),
        )


class ScanConfig(_ConfigModel):
    """Duplicate scan configuration."""

    file_pattern: str = DEFAULT_FILE_PATTERN
    log_interval_sec: float = Field(ge=0, default=10.0)  # 0 disables progress logging
    lookup_threshold: float = Field(gt=0, le=1, default=0.25)
    match_threshold: float = Field(gt=0, le=1, default=0.95)
    match_min_length: bool = False  # normalize scores by the shorter fingerprint
    lookup_bits: int = Field(ge=1, le=32, default=16)
    skip_bad_files: bool = False  # abort on the first file fpcalc fails on
    skip_new_files: bool = False

    @field_validator("file_pattern")
    @classmethod
    def _check_pattern(cls, value: str) -> str:
        try:
            re.compile(value)
        except re.error as e:
            raise ValueError(f"bad file regexp: {e}") from e
        return value

    def compiled_pattern(self) -> re.Pattern[str]:
        return re.compile(self.file_pattern, re.IGNORECASE)


class LoggingConfig(_ConfigModel):
    """Logging configuration."""

    level: str = "INFO"
    file: str | None = None

    @field_validator("level")
    @classmethod
    def _check_level(cls, value: str) -> str:
        value = value.upper()
        if value not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"unknown log level {value!r}")
        return value


class AppConfig(_ConfigModel):
    """Main application configuration."""

    database: Path | None = None  # None uses a temporary database
    fpcalc: FpcalcConfig = Field(default_factory=FpcalcConfig)
    scan: ScanConfig = Field(default_factory=ScanConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def build_config(data: dict[str, Any] | None) -> AppConfig:
    """Validate raw configuration data.

    Raises:
        ConfigurationError: If any value is out of range or malformed
    """
    return AppConfig(**(data or {}))


def load_config(config_path: Path | None = None) -> AppConfig:
    """Load configuration from YAML file.

    Args:
        config_path: Path to config file. If None, the first existing default
            location is used, falling back to built-in defaults.

    Returns:
        AppConfig instance

    Raises:
        FileNotFoundError: If an explicit config file doesn't exist
        ConfigurationError: If config file is invalid
    """
    if config_path is None:
        possible_paths = [
            Path(__file__).parent.parent.parent / "config" / "config.yaml",
            Path.home() / ".config" / "audiodupes" / "config.yaml",
            Path.home() / ".audiodupes" / "config.yaml",
        ]
        for path in possible_paths:
            if path.exists():
                config_path = path
                break
        else:
            return AppConfig()

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e

    if data is not None and not isinstance(data, dict):
        raise ConfigurationError(f"Config file {config_path} must contain a mapping")
    return build_config(data)
