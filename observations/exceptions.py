# ============================================================================
# CLAUDE CONTEXT - OBSERVATIONS EXCEPTIONS
# ============================================================================
# STATUS: Module Errors - Observation Access Layer
# PURPOSE: Error taxonomy with fixed client-facing codes and HTTP statuses
# LAST_REVIEWED: 19 OCT 2026
# EXPORTS: ObservationError, AuthMissingError, AuthInvalidError, ValidationFailureError, UpstreamFailureError
# DEPENDENCIES: typing
# ============================================================================

"""
Observation Access Layer errors.

Each error carries the fixed client-facing code and HTTP status it maps to.
The message passed to the constructor is for server-side logs only and is
never written to a response body.
"""

from typing import Optional


class ObservationError(Exception):
    """Base class for errors mapped to a fixed client-facing response."""

    status_code = 500
    error_code = "internal_error"

    def __init__(self, message: str = "", error_code: Optional[str] = None):
        super().__init__(message or self.error_code)
        if error_code:
            self.error_code = error_code

    def to_body(self) -> dict:
        return {"error": self.error_code}


class AuthMissingError(ObservationError):
    """No bearer token where one is required."""
    status_code = 401
    error_code = "missing_bearer_token"


class AuthInvalidError(ObservationError):
    """Token present but it does not resolve to a live identity."""
    status_code = 401
    error_code = "unauthenticated"


class ValidationFailureError(ObservationError):
    """Required fields absent or of the wrong type."""
    status_code = 400
    error_code = "invalid_payload"


class UpstreamFailureError(ObservationError):
    """Store or Identity Provider call failed or returned nothing usable."""
    status_code = 500
    error_code = "failed_fetch"
