"""
Domain error taxonomy.

Every failure the core reports carries a kind (the class), a stable
``error_code`` and a human-readable message. The API layer maps kinds to
HTTP status codes; services only raise.
"""

from datetime import datetime, timezone
from uuid import uuid4


class SurveyError(Exception):
    """Base class for all errors raised by the survey core."""

    error_code = "SURVEY_ERROR"

    def __init__(self, message: str, error_code: str | None = None):
        super().__init__(message)
        self.message = message
        if error_code:
            self.error_code = error_code
        self.error_id = str(uuid4())
        self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> dict[str, str]:
        return {
            "error_code": self.error_code,
            "detail": self.message,
            "error_id": self.error_id,
            "timestamp": self.timestamp.isoformat(),
        }


class AuthenticationRequired(SurveyError):
    """Mutating call with no resolvable, active user."""

    error_code = "AUTHENTICATION_REQUIRED"


class AuthorizationDenied(SurveyError):
    """ADMIN-only operation invoked by a USER."""

    error_code = "AUTHORIZATION_DENIED"


class NotFound(SurveyError):
    """Referenced survey, question, response or user does not exist."""

    error_code = "NOT_FOUND"

    @classmethod
    def for_entity(cls, entity: str, entity_id: str) -> "NotFound":
        return cls(f"{entity} not found: {entity_id}")


class ValidationError(SurveyError):
    """Malformed input."""

    error_code = "VALIDATION_ERROR"


class BusinessRuleViolation(SurveyError):
    """A state-dependent rule was broken."""

    error_code = "BUSINESS_RULE_VIOLATION"


class ConflictError(BusinessRuleViolation):
    """
    A uniqueness race lost at the storage layer.

    Callers may treat it exactly like BusinessRuleViolation; it is kept
    distinct so it can be logged as a concurrency event.
    """

    error_code = "CONFLICT"
