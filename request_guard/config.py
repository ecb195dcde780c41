"""
Configuration Management for Request Guard

This module provides centralized configuration for the validation
middleware and the reference application. Values are read from the
environment (prefix ``REQUEST_GUARD_``) or a ``.env`` file.
"""

import logging
import logging.config
from typing import Any, Dict, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings with environment variable support.

    The validation-specific settings only tune ambient behavior (status
    code, logging, engine reuse); the error response shape is fixed.
    """

    model_config = SettingsConfigDict(
        env_prefix="REQUEST_GUARD_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Application Settings
    app_name: str = Field(default="Request Guard")
    app_version: str = Field(default="1.0.0")
    debug: bool = Field(default=False)

    # Logging Settings
    log_level: str = Field(default="INFO")
    log_format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
    log_file: Optional[str] = Field(default=None)

    # Validation Settings
    validation_status_code: int = Field(default=422)
    log_validation_failures: bool = Field(default=True)
    reuse_validator: bool = Field(default=False)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of: {valid_levels}")
        return v.upper()

    @field_validator("validation_status_code")
    @classmethod
    def validate_status_code(cls, v):
        """Validation errors must be reported with a client error status."""
        if not 400 <= v <= 499:
            raise ValueError("Validation status code must be a 4xx status")
        return v

    def get_logging_config(self) -> Dict[str, Any]:
        """Get logging configuration dictionary."""
        config = {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "default": {
                    "format": self.log_format,
                },
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                    "level": self.log_level,
                },
            },
            "loggers": {
                "request_guard": {
                    "handlers": ["console"],
                    "level": self.log_level,
                    "propagate": False,
                },
                "uvicorn": {
                    "handlers": ["console"],
                    "level": "INFO",
                    "propagate": False,
                },
            },
        }

        # Add file handler if log file is specified
        if self.log_file:
            config["handlers"]["file"] = {
                "class": "logging.FileHandler",
                "filename": self.log_file,
                "formatter": "default",
                "level": self.log_level,
            }
            for logger_config in config["loggers"].values():
                logger_config["handlers"].append("file")

        return config


# Global settings instance
settings = Settings()


def configure_logging():
    """Configure application logging using the settings."""
    logging.config.dictConfig(settings.get_logging_config())

    logger = logging.getLogger(__name__)
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"Log level set to: {settings.log_level}")


def get_settings() -> Settings:
    """Get the global settings instance."""
    return settings


def reload_settings() -> Settings:
    """Reload settings from environment variables."""
    global settings
    settings = Settings()
    return settings
