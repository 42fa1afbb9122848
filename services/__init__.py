"""
Services
========

Services:
- safeguard_assessment: Evidence-based safeguard assessment runs
"""

__all__ = [
    "safeguard_assessment",
]
