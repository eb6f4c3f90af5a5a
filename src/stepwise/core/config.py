# src/stepwise/core/config.py
"""
Configuration schema and loading for Stepwise.

Uses Pydantic for validation and Dynaconf for multi-source loading.
Settings are frozen (immutable) after construction. Every section has
defaults, so an empty file (or no file at all) is a valid configuration.
"""

import os
import re
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator


class LibrarySettings(BaseModel):
    """Where the node type catalog comes from."""

    model_config = {"frozen": True}

    object_info_path: Path | None = Field(
        default=None,
        description="Path to a saved object_info JSON document from the generation server",
    )


class VirtualLinkSettings(BaseModel):
    """Which indirection-node passes run before compilation."""

    model_config = {"frozen": True}

    resolve_aliases: bool = Field(
        default=True,
        description="Rewrite set/get variable nodes into direct links",
    )
    resolve_broadcasts: bool = Field(
        default=True,
        description="Rewrite broadcast ('everywhere') nodes into direct links",
    )


class PromptSettings(BaseModel):
    """Prompt submission defaults."""

    model_config = {"frozen": True}

    client_id: str | None = Field(
        default=None,
        min_length=1,
        description="Client id sent with prompt requests (random per process when unset)",
    )


class LoggingSettings(BaseModel):
    """Log output configuration."""

    model_config = {"frozen": True}

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO")
    json_output: bool = Field(default=False, description="Emit JSON log lines instead of console output")

    @field_validator("level", mode="before")
    @classmethod
    def _upper(cls, v: Any) -> Any:
        return v.upper() if isinstance(v, str) else v


class StepwiseSettings(BaseModel):
    """Top-level Stepwise configuration."""

    model_config = {"frozen": True}

    library: LibrarySettings = Field(default_factory=LibrarySettings)
    virtual_links: VirtualLinkSettings = Field(default_factory=VirtualLinkSettings)
    prompt: PromptSettings = Field(default_factory=PromptSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Z_][A-Z0-9_]*)(?::-([^}]*))?\}")


def _expand_env_var(match: re.Match[str]) -> str:
    # Unset with no default keeps the placeholder
    return os.environ.get(match.group(1), match.group(2) if match.group(2) is not None else match.group(0))


def _expand_env_vars(value: Any) -> Any:
    """Expand ${VAR} and ${VAR:-default} in string values of nested sections."""
    if isinstance(value, str):
        return _ENV_VAR_PATTERN.sub(_expand_env_var, value)
    if isinstance(value, dict):
        return {k: _expand_env_vars(v) for k, v in value.items()}
    return value


def _lower_keys(value: Any) -> Any:
    if isinstance(value, dict):
        return {str(k).lower(): _lower_keys(v) for k, v in value.items()}
    return value


def load_settings(config_path: Path) -> StepwiseSettings:
    """Load settings from YAML file with environment variable overrides.

    Uses Dynaconf for multi-source loading with precedence:
    1. Environment variables (STEPWISE_*) - highest priority
    2. Config file (stepwise.yaml)
    3. Defaults from Pydantic schema - lowest priority

    Environment variable format: STEPWISE_LOGGING__LEVEL for nested keys.

    Args:
        config_path: Path to YAML configuration file

    Returns:
        Validated StepwiseSettings instance

    Raises:
        ValidationError: If configuration fails Pydantic validation
        FileNotFoundError: If config file doesn't exist
    """
    from dynaconf import Dynaconf

    # Dynaconf silently accepts missing files
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    dynaconf_settings = Dynaconf(
        envvar_prefix="STEPWISE",
        settings_files=[str(config_path)],
        environments=False,
        load_dotenv=False,
        merge_enabled=True,
    )

    # Dynaconf returns uppercase keys; Pydantic fields are lowercase
    internal_keys = {"LOAD_DOTENV", "ENVIRONMENTS", "SETTINGS_FILES"}
    raw_config = {k.lower(): _lower_keys(v) for k, v in dynaconf_settings.as_dict().items() if k not in internal_keys}

    raw_config = _expand_env_vars(raw_config)

    return StepwiseSettings(**raw_config)
