"""
Test Suite
==========

Test organization:
- tests/unit/        - Shared library tests (no network)
- tests/services/    - Service tests, collaborators mocked

Run tests:
    pytest                          # All tests
    pytest tests/unit               # Shared library only
    pytest --cov=shared --cov=services
"""
