"""
Domain error taxonomy. Each error carries the HTTP status and error code used
by the exception handler registered in `app.main.create_app`.
"""
from __future__ import annotations

from typing import Optional


class MindMateError(Exception):
    status_code: int = 500
    error_code: str = "INTERNAL_ERROR"
    title: str = "Internal server error"

    def __init__(self, detail: Optional[str] = None):
        super().__init__(detail or self.title)
        self.detail = detail or self.title


class AuthRequiredError(MindMateError):
    status_code = 401
    error_code = "AUTH_REQUIRED"
    title = "Authentication required"


class ValidationError(MindMateError):
    status_code = 422
    error_code = "VALIDATION_ERROR"
    title = "Invalid input"


class InsufficientDataError(MindMateError):
    status_code = 422
    error_code = "INSUFFICIENT_DATA"
    title = "Not enough data to run the analysis"


class AnalysisFailedError(MindMateError):
    status_code = 502
    error_code = "ANALYSIS_FAILED"
    title = "Mental health analysis failed"


class ConflictError(MindMateError):
    status_code = 409
    error_code = "CONFLICT"
    title = "Invalid state transition"


class NotFoundError(MindMateError):
    status_code = 404
    error_code = "NOT_FOUND"
    title = "Resource not found"


class TransientDeliveryError(MindMateError):
    """Push delivery or registration failed in a way worth retrying."""
    status_code = 503
    error_code = "DELIVERY_UNAVAILABLE"
    title = "Notification delivery unavailable"
