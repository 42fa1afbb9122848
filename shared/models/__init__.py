"""
Shared Models
=============

Pydantic models shared across services.
"""

from shared.models.common import ErrorResponse, HealthResponse, SuccessResponse

__all__ = [
    "ErrorResponse",
    "HealthResponse",
    "SuccessResponse",
]
