"""
Error taxonomy for the report card service.

Every error carries the HTTP status it maps to; the handlers registered in
main.py turn them into the ``{"success": false, "message": ...}`` envelope.
"""
from typing import Optional


class ReportError(Exception):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidRequest(ReportError):
    status_code = 400
    default_message = "Invalid request"


class Unauthorized(ReportError):
    status_code = 401
    default_message = "Not authenticated"


class AccessDenied(ReportError):
    status_code = 403
    default_message = "Access denied"


class NotFound(ReportError):
    status_code = 404
    default_message = "Not found"


class ServiceUnavailable(ReportError):
    status_code = 503
    default_message = "Database not initialized"


class UpstreamReadFailure(ReportError):
    """A non-critical read failed; callers degrade instead of failing the request."""
    status_code = 502
    default_message = "Upstream read failed"
