# leftoverlink/core/errors.py
"""
Failure taxonomy shared by the store, the services and the HTTP layer.

Every error carries a stable ``kind`` that clients can branch on and the
HTTP status it maps to; ``message`` is for humans.
"""


class ListingError(Exception):
    kind = "internal"
    status_code = 500

    def __init__(self, message: str = "Internal server error"):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"success": False, "kind": self.kind, "message": self.message}


class ValidationError(ListingError):
    kind = "validation_error"
    status_code = 400


class Unauthorized(ListingError):
    kind = "unauthorized"
    status_code = 401


class Forbidden(ListingError):
    kind = "forbidden"
    status_code = 403


class NotFound(ListingError):
    kind = "not_found"
    status_code = 404


class InvalidState(ListingError):
    kind = "invalid_state"
    status_code = 400


class Conflict(ListingError):
    kind = "conflict"
    status_code = 400


class Internal(ListingError):
    pass
