"""
Error taxonomy for the passport service.

Every error carries the HTTP status it maps to and a machine-readable code.
Handlers registered in main.py turn them into ``{"message", "code"}`` bodies;
the message is always a generic, client-safe string.
"""


class PassportServiceError(Exception):
    status_code = 500
    code = "internal_error"
    default_message = "Unexpected server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(PassportServiceError):
    """Malformed or missing input."""
    status_code = 400
    code = "validation_error"
    default_message = "Invalid request"


class AuthorizationError(PassportServiceError):
    """Role or ownership check failed."""
    status_code = 403
    code = "forbidden"
    default_message = "Operation not permitted for this role"


class NotFoundError(PassportServiceError):
    status_code = 404
    code = "not_found"
    default_message = "Resource not found"


class UpstreamProcessingError(PassportServiceError):
    """Spreadsheet or IFC parsing failed."""
    status_code = 500
    code = "upstream_processing_error"
    default_message = "Failed to process uploaded file"


class InvalidJobTransition(PassportServiceError):
    """An import job was asked to leave a terminal state."""
    status_code = 500
    code = "invalid_job_transition"
    default_message = "Import job is already finished"
