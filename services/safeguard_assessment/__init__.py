"""
Safeguard Assessment Service
============================

AI-assisted evaluation of an organization's compliance posture against the
CIS Controls safeguard catalog.

Features:
- Evidence retrieval from the tenant's indexed document corpus
- Structured LLM classification of evidence against each criterion
- Deterministic safeguard scoring and assessment rollup
- Finding generation for gap and partial safeguards
- Run control (start, poll, cancel, reset)

Port: 8010
"""

__version__ = "0.1.0"
