"""Error hierarchy shared by the store, the review service and the API layer.

Every error carries an HTTP-ready ``status_code`` and a machine-readable
``error_code`` so routes can translate them without inspecting messages.
"""


class FlightTriageError(Exception):
    """Base exception for review queue errors."""

    def __init__(self, message: str, status_code: int = 500, error_code: str = "flight_triage_error"):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        super().__init__(self.message)


class NotFoundError(FlightTriageError):
    """Raised when a referenced candidate or decision does not exist."""

    def __init__(self, message: str = "Resource not found", error_code: str = "not_found"):
        super().__init__(
            message=message,
            status_code=404,
            error_code=error_code
        )


class CandidateNotFoundError(NotFoundError):
    """Raised when no candidate matches the given identifier."""

    def __init__(self, message: str = "Email not found"):
        super().__init__(message=message, error_code="candidate_not_found")


class DecisionNotFoundError(NotFoundError):
    """Raised when there is no decision to undo or delete."""

    def __init__(self, message: str = "No decisions to undo"):
        super().__init__(message=message, error_code="decision_not_found")


class InvalidInputError(FlightTriageError):
    """Raised when a request is malformed."""

    def __init__(self, message: str = "Invalid request", status_code: int = 400, error_code: str = "invalid_input"):
        super().__init__(
            message=message,
            status_code=status_code,
            error_code=error_code
        )


class AlreadyReviewedError(InvalidInputError):
    """Raised when a decision is submitted for a candidate that already has one."""

    def __init__(self, message: str = "Email has already been reviewed"):
        super().__init__(
            message=message,
            status_code=409,
            error_code="already_reviewed"
        )


class StorageFailureError(FlightTriageError):
    """Raised when the database is unavailable or a transaction was aborted."""

    def __init__(self, message: str = "Storage failure"):
        super().__init__(
            message=message,
            status_code=503,
            error_code="storage_failure"
        )
