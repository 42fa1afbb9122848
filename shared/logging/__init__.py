"""
Logging Module
==============

Structured logging using structlog with JSON output for production
and colored console output for development.

Usage:
    from shared.logging import get_logger, setup_logging

    # Setup at application start
    setup_logging()

    # Get logger for a module
    logger = get_logger(__name__)

    # Log with context
    logger.info("safeguard_scored", cis_id="1.1", score=80)
    logger.error("safeguard_processing_failed", cis_id="1.1", error=str(e))
"""

from shared.logging.logger import bound_context, get_logger, setup_logging


__all__ = [
    "bound_context",
    "get_logger",
    "setup_logging",
]
