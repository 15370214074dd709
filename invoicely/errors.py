class DomainError(Exception):
    """Base class for errors raised by the billing and resource services."""

    status_code = 400

    def __init__(self, message, payload=None):
        super().__init__(message)
        self.message = message
        self.payload = payload


class ValidationError(DomainError):
    status_code = 400


class PermissionDenied(DomainError):
    status_code = 403


class NotFoundError(DomainError):
    status_code = 404


class ConflictError(DomainError):
    status_code = 409
