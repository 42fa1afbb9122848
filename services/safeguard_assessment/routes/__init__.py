"""
Safeguard Assessment Routes
===========================

API route handlers for the Safeguard Assessment Service.
"""

from services.safeguard_assessment.routes import runs


__all__ = ["runs"]
