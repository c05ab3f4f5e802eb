"""
Domain errors raised by the service and read layers.

Every error carries a machine-readable kind plus a human message, so a
client can tell these apart from the store's own transient failures
(connection loss), which are the only retryable class and propagate as-is.
"""


class FeedError(Exception):
    """Base class for all non-retryable domain failures."""
    kind = 'error'
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def as_dict(self) -> dict:
        return {'error': self.kind, 'message': self.message}


class ValidationFailed(FeedError):
    """Input rejected before any write (or before any read query)."""
    kind = 'validation_error'
    status_code = 400

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field

    def as_dict(self) -> dict:
        data = super().as_dict()
        data['field'] = self.field
        return data


class ConflictError(FeedError):
    """A named conflict with existing state (duplicate follow, parent mismatch)."""
    kind = 'conflict'
    status_code = 409

    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code

    def as_dict(self) -> dict:
        data = super().as_dict()
        data['code'] = self.code
        return data


class NotFoundError(FeedError):
    """The target no longer exists (or is not visible to the caller)."""
    kind = 'not_found'
    status_code = 404


class AuthorizationError(FeedError):
    """Caller does not own the entity it tried to mutate."""
    kind = 'forbidden'
    status_code = 403
