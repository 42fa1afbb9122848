"""
Shared Library
==============

Common utilities, configuration and provider clients used by the
safeguard assessment service.

Modules:
    - config: Configuration management with Pydantic Settings
    - logging: Structured logging with structlog
    - http: Retrying HTTP client and provider error taxonomy
    - llm: LLM provider abstraction (Claude)
    - models: Shared API response models

Version: 0.1.0
"""

__version__ = "0.1.0"

from shared.config import settings
from shared.logging import get_logger, setup_logging

__all__ = [
    "settings",
    "get_logger",
    "setup_logging",
    "__version__",
]
