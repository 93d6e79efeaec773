"""
Exception hierarchy for the telemetry core.

Every error carries a machine-readable ``kind`` so the HTTP layer can report
it without inspecting the class, and a ``retryable`` flag telling the caller
whether replaying the same request can succeed.
"""


class TelemetryError(Exception):
    """Base exception for all telemetry core errors."""

    kind = "telemetry_error"
    retryable = False

    def __init__(self, message: str, details=None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        payload = {"error": self.kind, "detail": self.message, "retryable": self.retryable}
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationError(TelemetryError):
    """Raised when an uplink is missing required fields or carries malformed values."""

    kind = "validation_error"


class SchemaError(TelemetryError):
    """Raised when a payload field cannot be mapped to a catalog kind."""

    kind = "schema_error"


class InvalidQueryError(TelemetryError):
    """Raised for a bad time range, an unresolvable variable set or a bad station id."""

    kind = "invalid_query"


class PreconditionError(TelemetryError):
    """Raised when the generator target station or catalog kinds are missing."""

    kind = "precondition_failed"


class StorageError(TelemetryError):
    """Raised when the persistence layer fails. The whole batch was rolled back."""

    kind = "storage_error"
    retryable = True
