# Overview: Domain error taxonomy shared by services and routes.

"""
Every business-rule failure raised by a service is one of these classes.

Routes catch AppError and call to_response(); anything else is an
unexpected failure, logged and answered with a generic 500.

Services raise before commit, so run_with_retry() rolls the transaction
back and no partial state leaks.
"""

from flask import jsonify


class AppError(Exception):
    """Base class: carries a kind, an HTTP status and structured details."""
    kind = "Error"
    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        payload = {"error": self.kind, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload

    def to_response(self):
        return jsonify(self.to_dict()), self.status_code


class ValidationError(AppError):
    """Missing or malformed input (empty items, bad quantity, bad method)."""
    kind = "ValidationError"
    status_code = 400


class NotFoundError(AppError):
    kind = "NotFound"
    status_code = 404


class InsufficientStockError(AppError):
    kind = "InsufficientStock"
    status_code = 409


class ApprovalRequiredError(AppError):
    """
    A cashier tried to edit a bill without an unused APPROVED edit request.

    Signalled distinctly (reason=APPROVAL_REQUIRED) so clients can offer to
    submit an edit request.
    """
    kind = "ApprovalRequired"
    status_code = 403

    def to_dict(self) -> dict:
        payload = super().to_dict()
        payload["reason"] = "APPROVAL_REQUIRED"
        return payload


class ConflictError(AppError):
    """Duplicate pending request or an illegal state-machine transition."""
    kind = "Conflict"
    status_code = 409


class UnauthorizedError(AppError):
    kind = "Unauthorized"
    status_code = 401


class ForbiddenError(AppError):
    kind = "Forbidden"
    status_code = 403


class BusyError(AppError):
    """Storage stayed locked or deadlocked after retries; safe to retry."""
    kind = "Busy"
    status_code = 503
