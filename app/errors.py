"""
Error taxonomy shared by services and routers.

Services raise these; main registers a handler that renders
{"detail": msg} with the class status code.
"""


class AppError(Exception):
    """Base for errors that map onto an HTTP status."""

    status_code = 500

    def __init__(self, msg: str):
        self.msg = msg
        super().__init__(msg)


class InvalidInput(AppError):
    """Missing or malformed fields."""

    status_code = 400


class Unauthorized(AppError):
    """Bad credentials, or a missing, invalid or expired token."""

    status_code = 401


class NotFound(AppError):
    status_code = 404


class Conflict(AppError):
    """Duplicate email, or a script id owned by another user."""

    status_code = 409


class StorageFault(AppError):
    """Database read/write failed. The message is generic by construction."""

    status_code = 500


class UpstreamAuthFault(AppError):
    """The identity provider exchange failed."""

    status_code = 502
