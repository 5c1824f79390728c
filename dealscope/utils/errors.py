"""
Domain exceptions mapped to HTTP responses by the handlers.
"""


class DealScopeError(Exception):
    """Base class for errors that carry their own HTTP status."""
    status_code = 400
    error_code = "BAD_REQUEST"


class NotFoundError(DealScopeError):
    status_code = 404
    error_code = "NOT_FOUND"


class InsufficientCreditsError(DealScopeError):
    status_code = 402
    error_code = "INSUFFICIENT_CREDITS"


class WorkflowError(DealScopeError):
    """Raised when a workflow transition is not allowed yet."""
    status_code = 409
    error_code = "WORKFLOW_CONFLICT"


class ExpiredError(DealScopeError):
    status_code = 410
    error_code = "EXPIRED"
