class LibraryError(Exception):
    """Base class for failures surfaced to the HTTP layer."""

    status_code = 500

    def __init__(self, message):
        super().__init__(message)
        self.message = message

    def to_dict(self):
        return {"status": "fail", "message": self.message}


class ValidationError(LibraryError):
    status_code = 400


class PermissionDeniedError(LibraryError):
    status_code = 403


class NotFoundError(LibraryError):
    status_code = 404


class ConflictError(LibraryError):
    status_code = 409


class StateError(LibraryError):
    """Invalid lifecycle transition, e.g. returning a returned transaction."""

    status_code = 409


class InfrastructureError(LibraryError):
    status_code = 503
