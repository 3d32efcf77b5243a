"""
Domain errors. Each carries the HTTP status the API answers with.
"""


class StorefrontError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationFailed(StorefrontError):
    status_code = 400


class Unauthorized(StorefrontError):
    status_code = 401


class Forbidden(StorefrontError):
    status_code = 403


class NotFound(StorefrontError):
    status_code = 404


class ServiceUnavailable(StorefrontError):
    status_code = 503


class InvalidTenantId(ServiceUnavailable):
    """A tenant id that can't name a data directory."""
