"""
Error taxonomy for the planning service.

Every error that can end a request carries the HTTP status it maps to and a
short message that is safe to show to callers. Provider internals go into
the exception text (for logs) and never into ``public_message``.
"""


class CaseboardError(Exception):
    status_code: int = 500
    public_message: str = "Internal error"

    def __init__(self, message: str | None = None, *, public_message: str | None = None):
        super().__init__(message or public_message or self.public_message)
        if public_message is not None:
            self.public_message = public_message


class ConfigurationError(CaseboardError):
    status_code = 500
    public_message = "AI service not configured"


class AuthError(CaseboardError):
    status_code = 401
    public_message = "Invalid or expired auth token"


class AuthorizationError(CaseboardError):
    status_code = 403
    public_message = "You do not have editor access for AI on this board."


class InputValidationError(CaseboardError):
    status_code = 400
    public_message = "Invalid request"


class BoardNotFoundError(CaseboardError):
    status_code = 404
    public_message = "Board not found"


class UpstreamRateLimitError(CaseboardError):
    status_code = 429
    public_message = "AI rate limit reached. Please try again shortly."


class UpstreamFailureError(CaseboardError):
    status_code = 500
    public_message = "AI request failed"


class BenchmarkSetupError(RuntimeError):
    """Fatal benchmark setup problem; raised before any request is issued."""
