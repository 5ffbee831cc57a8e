# dropserver/errors.py


class ConfigError(RuntimeError):
    """Raised at start-up when required configuration is missing."""


class DropLoggerError(Exception):
    status_code = 500
    message = "Internal error"

    def __init__(self, message=None):
        super().__init__(message or self.message)
        if message:
            self.message = message


# --- CLIENT ERRORS (4xx) ---
class AuthRejection(DropLoggerError):
    status_code = 403
    message = "Invalid Client"


class ValidationRejection(DropLoggerError):
    status_code = 400
    message = "Empty payload"


class RateLimitExceeded(DropLoggerError):
    # Soft: the client may retry once the window expires
    status_code = 429
    message = "Too many requests"


# --- SERVER ERRORS (5xx) ---
class TransientStoreError(DropLoggerError):
    status_code = 500
    message = "Internal error"


class PersistenceFailure(DropLoggerError):
    status_code = 500
    message = "Database error"
