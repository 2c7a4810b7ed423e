"""Configuration management for nerohost.

Supports loading configuration from:
1. config.toml - Engine, HTTP egress and application settings
2. .env - Local overrides
3. Environment variables (NEROHOST_ prefix) - Override both (highest priority)

Priority: Environment variables > .env > config.toml > defaults

The TOML file location can be changed with NEROHOST_CONFIG_FILE.
"""

import json
import os
import sys
import tomllib
from pathlib import Path
from typing import Any, Optional

from pydantic import Field, field_validator
from pydantic.fields import FieldInfo
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

DEFAULT_CONFIG_FILE = "config.toml"


def _flatten_toml(config: dict) -> dict:
    """
    Flatten TOML config structure to match Settings field names.

    Example:
        [http]
        timeout = 30

        Becomes: {"http_timeout": 30}
    """
    flat = {}

    # Engine section
    if "engine" in config:
        engine = config["engine"]
        if "call_timeout" in engine:
            flat["call_timeout"] = engine["call_timeout"]
        if "epoch_tick_ms" in engine:
            flat["epoch_tick_ms"] = engine["epoch_tick_ms"]

    # HTTP section
    if "http" in config:
        http = config["http"]
        for key in (
            "timeout",
            "max_response_bytes",
            "max_redirects",
            "user_agent",
            "allowed_schemes",
            "blocked_hosts",
        ):
            if key in http:
                flat[f"http_{key}"] = http[key]

    # Application section
    if "application" in config:
        app = config["application"]
        if "log_level" in app:
            flat["log_level"] = app["log_level"]
        if "enable_debug" in app:
            flat["enable_debug"] = app["enable_debug"]

    return flat


class TomlSettingsSource(PydanticBaseSettingsSource):
    """Settings source reading the sectioned config.toml file."""

    def __init__(self, settings_cls: type[BaseSettings], path: Path):
        super().__init__(settings_cls)
        self.path = path
        self.data: dict[str, Any] = {}

        if path.exists():
            try:
                with open(path, "rb") as f:
                    self.data = _flatten_toml(tomllib.load(f))
            except (OSError, tomllib.TOMLDecodeError) as e:
                # Fall back to .env and environment variables
                print(f"Warning: Failed to load {path}: {e}", file=sys.stderr)

    def get_field_value(self, field: FieldInfo, field_name: str) -> tuple[Any, str, bool]:
        return self.data.get(field_name), field_name, False

    def __call__(self) -> dict[str, Any]:
        return {
            name: value
            for name, value in self.data.items()
            if name in self.settings_cls.model_fields
        }


class Settings(BaseSettings):
    """
    Extension host settings.

    Configuration loading order (higher priority overrides lower):
    1. Default values (defined in Field defaults)
    2. config.toml
    3. .env file
    4. Environment variables
    5. Keyword arguments
    """

    model_config = SettingsConfigDict(
        env_prefix="NEROHOST_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Engine
    call_timeout: Optional[float] = Field(
        default=None,
        description="Deadline for a single guest call in seconds (None = no deadline)",
    )
    epoch_tick_ms: int = Field(
        default=10, gt=0, description="Epoch ticker interval used to enforce call_timeout"
    )

    # HTTP egress (guest outbound capability)
    http_timeout: float = Field(default=15.0, description="Outbound request timeout (seconds)")
    http_max_response_bytes: int = Field(
        default=16 * 1024 * 1024, description="Maximum response body size returned to a guest"
    )
    http_max_redirects: int = Field(
        default=10, ge=0, description="Redirect hops followed per guest request (0 = none)"
    )
    http_user_agent: str = Field(
        default="nerohost/0.1.0", description="User-Agent used when the guest sets none"
    )
    http_allowed_schemes: list[str] = Field(
        default_factory=lambda: ["http", "https"],
        description="URL schemes a guest may request",
    )
    http_blocked_hosts: list[str] = Field(
        default_factory=lambda: ["localhost", "127.0.0.1", "::1", "0.0.0.0"],
        description="Hosts a guest may never reach",
    )

    # Application Settings
    log_level: str = Field(default="INFO", description="Logging level")
    enable_debug: bool = Field(default=False, description="Enable debug mode")

    @field_validator("http_allowed_schemes", "http_blocked_hosts", mode="before")
    @classmethod
    def parse_list(cls, v: Any) -> list[str]:
        """Parse lists from JSON string or list."""
        if isinstance(v, str):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                return [v]
        return v

    @field_validator("call_timeout")
    @classmethod
    def check_call_timeout(cls, v: Optional[float]) -> Optional[float]:
        """A deadline must be positive when set."""
        if v is not None and v <= 0:
            raise ValueError("call_timeout must be positive")
        return v

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        config_path = Path(os.environ.get("NEROHOST_CONFIG_FILE", DEFAULT_CONFIG_FILE))
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            TomlSettingsSource(settings_cls, config_path),
            file_secret_settings,
        )


# Global settings instance
settings = Settings()
