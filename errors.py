"""
Domain errors raised by the service modules.

The API layer maps each class onto an HTTP status; store driver errors are
never wrapped and reach the caller unchanged.
"""


class CommerceError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(CommerceError):
    """Malformed input to a create/update operation."""
    status_code = 400


class NotFoundError(CommerceError):
    """A referenced product, sale, cart, order or review does not exist."""
    status_code = 404


class PermissionDeniedError(CommerceError):
    """The acting user is not allowed to perform the operation (e.g. blocked)."""
    status_code = 403


class UpstreamError(CommerceError):
    """A collaborating service (blob host) failed or is not configured."""
    status_code = 502
