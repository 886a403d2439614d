"""Configuration management using Pydantic models."""

import logging
import os
import shutil
from pathlib import Path
from typing import Optional, Union

import yaml
from pydantic import BaseModel, Field, field_validator

from .constants import (
    DEFAULT_API_BASE_URL,
    DEFAULT_MEMORY_LATENCY_SECONDS,
    DEFAULT_NOTIFICATION_SECONDS,
    Backend,
    Section,
)

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "BANGUMOE_CONFIG"
DEFAULT_CONFIG_PATH = Path("data/config.yaml")
EXAMPLE_CONFIG_PATH = Path("config.example.yaml")


class APIConfig(BaseModel):
    """Backend connection settings."""
    backend: Backend = Backend.MEMORY
    base_url: str = DEFAULT_API_BASE_URL
    timeout: Optional[float] = Field(None, gt=0)
    latency: float = Field(DEFAULT_MEMORY_LATENCY_SECONDS, ge=0)


class AuthConfig(BaseModel):
    """Credentials used by CLI commands to log in before running."""
    username: Optional[str] = None
    password: Optional[str] = None


class UIConfig(BaseModel):
    """Presentation settings."""
    notification_seconds: float = Field(DEFAULT_NOTIFICATION_SECONDS, gt=0)
    start_section: Section = Section.HOME


class Config(BaseModel):
    """Root configuration model."""
    api: APIConfig = Field(default_factory=APIConfig)
    auth: AuthConfig = Field(default_factory=AuthConfig)
    ui: UIConfig = Field(default_factory=UIConfig)
    log_level: str = "INFO"

    @field_validator("api", "auth", "ui", mode="before")
    @classmethod
    def ensure_section(cls, v):
        """Treat an empty YAML section as defaults."""
        return v if v is not None else {}

    @field_validator("log_level")
    @classmethod
    def upper_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR"):
            raise ValueError(f"Unknown log level: {v}")
        return level


class Settings:
    """Application settings loaded from config.yaml."""

    def __init__(self, config_path: Optional[Union[str, Path]] = None):
        """Load and validate configuration."""
        self.config_path = Path(config_path) if config_path else self._get_config_path()

        if not self.config_path.exists():
            self._create_config_template()

        self._load_config()

    def _get_config_path(self) -> Path:
        """Get config file path from the environment or the default location."""
        env_path = os.environ.get(CONFIG_ENV_VAR)
        if env_path:
            return Path(env_path)
        return DEFAULT_CONFIG_PATH

    def _create_config_template(self) -> None:
        """Create config template from example."""
        if EXAMPLE_CONFIG_PATH.exists():
            self.config_path.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy(EXAMPLE_CONFIG_PATH, self.config_path)
            logger.info(f"Created config template: {self.config_path}")

    def _load_config(self) -> None:
        """Load configuration from YAML using Pydantic."""
        raw_config = {}
        if self.config_path.exists():
            try:
                with open(self.config_path, "r", encoding="utf-8") as f:
                    raw_config = yaml.safe_load(f) or {}
            except (OSError, yaml.YAMLError) as e:
                logger.error(f"Failed to read config {self.config_path}: {e}")
                raise
        else:
            logger.info(f"No config at {self.config_path}, using defaults")

        self.config = Config(**raw_config)

        self.backend = self.config.api.backend
        self.api_base_url = self.config.api.base_url
        self.api_timeout = self.config.api.timeout
        self.memory_latency = self.config.api.latency

        self.username = self.config.auth.username
        self.password = self.config.auth.password

        self.notification_seconds = self.config.ui.notification_seconds
        self.start_section = self.config.ui.start_section

        self.log_level = self.config.log_level

    @property
    def has_credentials(self) -> bool:
        return bool(self.username and self.password)


# Singleton cache for settings
_SETTINGS_SINGLETON = None


def get_settings() -> Settings:
    """Get (cached) application settings singleton."""
    global _SETTINGS_SINGLETON
    if _SETTINGS_SINGLETON is None:
        _SETTINGS_SINGLETON = Settings()
    return _SETTINGS_SINGLETON


def reload_settings(config_path: Optional[Union[str, Path]] = None) -> Settings:
    """Force reload of application settings singleton."""
    global _SETTINGS_SINGLETON
    _SETTINGS_SINGLETON = Settings(config_path)
    return _SETTINGS_SINGLETON
