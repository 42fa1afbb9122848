"""
Configuration Module
====================

Centralized configuration management using Pydantic Settings.
Loads from environment variables with type validation and defaults.

Usage:
    from shared.config import settings

    print(settings.environment)
    print(settings.retrieval.base_url)
"""

from shared.config.settings import (
    AssessmentSettings,
    ConfigurationError,
    Environment,
    LLMSettings,
    LogLevel,
    RetrievalSettings,
    RetrySettings,
    Settings,
    get_settings,
)


# Global settings instance (singleton)
settings = get_settings()

__all__ = [
    "Settings",
    "get_settings",
    "settings",
    "Environment",
    "LogLevel",
    "LLMSettings",
    "RetrievalSettings",
    "RetrySettings",
    "AssessmentSettings",
    "ConfigurationError",
]
