"""
Domain errors. Each carries the HTTP status it maps to; the app-level
exception handler renders them as {"error": message, ...details}.

Retry contract for webhook callers:
- 4xx is permanent, do not retry
- 5xx is transient, retry (the retry creates a new audit row)
"""
from typing import Optional


class AppError(Exception):
    """Base class for errors that map directly to an HTTP response."""

    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": self.message, **self.details}


class SchemaValidationError(AppError):
    """Webhook envelope does not match the source schema. Nothing is persisted."""

    status_code = 400
    code = "VALIDATION_ERROR"

    def __init__(self, errors: list[dict]):
        super().__init__("Validation Error", {"details": errors})


class InvalidSignatureError(AppError):
    status_code = 401
    code = "UNAUTHORIZED"

    def __init__(self, message: str = "Invalid webhook signature"):
        super().__init__(message)


class ReferenceNotFound(AppError):
    """A webhook references a user that does not exist."""

    status_code = 400
    code = "NOT_FOUND"

    def __init__(self, message: str = "User not found"):
        super().__init__(message)


class DuplicateCheckIn(AppError):
    """The user already checked in on this calendar day."""

    status_code = 400
    code = "DUPLICATE_CHECKIN"

    def __init__(self, existing: dict):
        super().__init__("You already checked in today", {"existingCheckIn": existing})
        self.existing = existing


class TrialNotAllowed(AppError):
    status_code = 400
    code = "TRIAL_NOT_ALLOWED"


class HandlerFailure(AppError):
    """Unexpected error inside a webhook handler, already recorded on the event."""

    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str = "Internal processing error"):
        super().__init__(message)
