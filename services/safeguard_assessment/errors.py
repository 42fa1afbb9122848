"""
Assessment Errors
=================

Error taxonomy for assessment runs. Provider failures live in
`shared.http`; missing credentials raise `shared.config.ConfigurationError`.

Version: 0.1.0
"""


class AssessmentError(Exception):
    """Base error for assessment operations."""

    code = "ASSESSMENT_ERROR"

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        if code is not None:
            self.code = code


class NotFoundError(AssessmentError):
    """Assessment, safeguard or criterion does not exist."""

    code = "NOT_FOUND"


class ConflictError(AssessmentError):
    """A run is already in progress for the assessment."""

    code = "ALREADY_RUNNING"


class NoSafeguardsError(AssessmentError):
    """The assessment has no safeguards to evaluate."""

    code = "NO_SAFEGUARDS"


class SafeguardProcessingError(AssessmentError):
    """Processing one safeguard failed; the run continues without it."""

    code = "SAFEGUARD_FAILED"

    def __init__(self, cis_id: str, cause: Exception) -> None:
        super().__init__(f"Failed to process safeguard {cis_id}: {cause}")
        self.cis_id = cis_id
        self.cause = cause
