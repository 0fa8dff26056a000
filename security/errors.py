class LockoutError(Exception):
    """Base for errors surfaced to API callers as ``{success: false, message}``."""

    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationFailed(LockoutError):
    status_code = 400
    default_message = "Invalid request data"


class NotFound(LockoutError):
    status_code = 404
    default_message = "Not found"


class InvalidState(LockoutError):
    status_code = 400
    default_message = "Operation not allowed in the current account state"


class Forbidden(LockoutError):
    status_code = 403
    default_message = "Forbidden"


class AccountLocked(LockoutError):
    status_code = 423
    default_message = "Account is locked. Please request an unlock using the link sent to your email."
