"""
Rester Configuration Management

Provides centralized configuration management with validation and environment support.
"""

from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigurationError


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="WARNING", description="Logging level")
    file_path: Optional[str] = Field(default=None, description="Log file path")
    max_file_size: int = Field(
        default=10_000_000, description="Max log file size in bytes"
    )
    backup_count: int = Field(default=5, description="Number of backup log files")

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v.upper()


class ExecutionConfig(BaseModel):
    """Default retry and timeout policy for request execution."""

    timeout_seconds: float = Field(default=30.0, description="Per-attempt timeout")
    max_attempts: int = Field(default=1, description="Dispatch attempts per request")
    backoff: str = Field(default="exponential", description="fixed or exponential")
    base_delay: float = Field(default=0.5, description="Initial backoff in seconds")
    multiplier: float = Field(default=2.0, description="Exponential backoff factor")
    max_delay: float = Field(default=10.0, description="Backoff ceiling in seconds")
    jitter: float = Field(default=0.1, description="Random jitter ratio added to delays")
    retry_on_server_error: bool = Field(
        default=False, description="Treat 5xx responses as retryable failures"
    )
    follow_redirects: bool = Field(default=True, description="Follow HTTP redirects")
    verify_ssl: bool = Field(default=True, description="Verify TLS certificates")
    user_agent: str = Field(default="rester/0.1.0", description="Default User-Agent")

    @field_validator("timeout_seconds")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"Invalid timeout: {v}. Must be greater than 0")
        return v

    @field_validator("max_attempts")
    @classmethod
    def validate_attempts(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"Invalid max_attempts: {v}. Must be at least 1")
        return v

    @field_validator("backoff")
    @classmethod
    def validate_backoff(cls, v: str) -> str:
        if v.lower() not in {"fixed", "exponential"}:
            raise ValueError(f"Invalid backoff: {v}. Must be 'fixed' or 'exponential'")
        return v.lower()


class RunnerConfig(BaseModel):
    """Run coordinator configuration."""

    parallel: bool = Field(default=False, description="Run requests in parallel")
    max_workers: int = Field(default=16, description="Parallel worker cap")
    halt_on_failure: bool = Field(
        default=False, description="Skip remaining requests after the first failure"
    )

    @field_validator("max_workers")
    @classmethod
    def validate_workers(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"Invalid max_workers: {v}. Must be at least 1")
        return v


class ResterConfig(BaseSettings):
    """Main Rester configuration."""

    environment: Optional[str] = Field(
        default=None, description="Environment overlay selected by default"
    )
    debug: bool = Field(default=False, description="Enable debug mode")

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    execution: ExecutionConfig = Field(default_factory=ExecutionConfig)
    runner: RunnerConfig = Field(default_factory=RunnerConfig)

    variables: Dict[str, str] = Field(
        default_factory=dict, description="Global scope variables"
    )
    environments: Dict[str, Dict[str, str]] = Field(
        default_factory=dict, description="Named environment overlays"
    )

    model_config = SettingsConfigDict(
        env_prefix="RESTER_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    @field_validator("variables", mode="before")
    @classmethod
    def stringify_variables(cls, v: Any) -> Any:
        if isinstance(v, dict):
            return {str(key): _stringify(value) for key, value in v.items()}
        return v

    @field_validator("environments", mode="before")
    @classmethod
    def stringify_environments(cls, v: Any) -> Any:
        if isinstance(v, dict):
            return {
                str(name): (
                    {str(key): _stringify(value) for key, value in overlay.items()}
                    if isinstance(overlay, dict)
                    else overlay
                )
                for name, overlay in v.items()
            }
        return v

    def environment_variables(self, name: Optional[str] = None) -> Dict[str, str]:
        """
        Get the overlay for an environment.

        Args:
            name: Environment name (falls back to the configured default)

        Returns:
            Mapping of variables for the environment scope

        Raises:
            ConfigurationError: If the environment is not defined
        """
        selected = name or self.environment
        if selected is None:
            return {}
        if selected not in self.environments:
            raise ConfigurationError(
                f"Unknown environment: {selected}",
                {"available": sorted(self.environments)},
            )
        return dict(self.environments[selected])


def _stringify(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return ""
    return str(value)


# Global configuration instance
_config: Optional[ResterConfig] = None


def get_config() -> ResterConfig:
    """
    Get the global configuration instance.

    Returns:
        The global ResterConfig instance
    """
    global _config
    if _config is None:
        _config = load_config()
    return _config


def load_config(config_file: Optional[Path] = None) -> ResterConfig:
    """
    Load configuration from a YAML file and environment variables.

    Values in the file take precedence over environment variables.

    Args:
        config_file: Optional path to a YAML configuration file

    Returns:
        Loaded configuration instance

    Raises:
        ConfigurationError: If the file cannot be read or is invalid
    """
    data: Dict[str, Any] = {}
    if config_file is not None:
        try:
            loaded = yaml.safe_load(Path(config_file).read_text(encoding="utf-8"))
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Failed to read config file {config_file}: {e}")
        if loaded is None:
            loaded = {}
        if not isinstance(loaded, dict):
            raise ConfigurationError(
                f"Config file {config_file} must contain a mapping"
            )
        data = loaded

    try:
        return ResterConfig(**data)
    except ValueError as e:
        raise ConfigurationError(f"Invalid configuration: {e}")


def reload_config(config_file: Optional[Path] = None) -> ResterConfig:
    """
    Reload the global configuration.

    Args:
        config_file: Optional path to configuration file

    Returns:
        Reloaded configuration instance
    """
    global _config
    _config = load_config(config_file)
    return _config


def update_config(**kwargs: Any) -> None:
    """
    Update configuration values at runtime.

    Args:
        **kwargs: Configuration values to update
    """
    global _config
    if _config is None:
        _config = load_config()

    for key, value in kwargs.items():
        if hasattr(_config, key):
            setattr(_config, key, value)
        else:
            raise ValueError(f"Unknown configuration key: {key}")
