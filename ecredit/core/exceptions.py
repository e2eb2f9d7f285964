"""
Domain errors raised by the service layer.

Routers do not catch these; ``main.py`` registers one handler per class so
every module surfaces the same status code and body for the same failure.
"""
from typing import Optional


class ECreditError(Exception):
    """Base class for all eCredit domain errors"""

    message = "Request could not be processed"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.message)
        self.message = message or self.message


class NotAuthorized(ECreditError):
    """Policy denied the operation.

    The message shown to callers is always the same, whatever rule failed.
    """

    message = "Not authorized"


class NotFound(ECreditError):
    """Row does not exist (or is not visible to the caller)"""

    message = "Not found"


class InvalidStateTransition(ECreditError):
    """Loan status change outside the allowed graph"""

    message = "Invalid status transition"


class ConstraintViolation(ECreditError):
    """A field value is outside its domain"""

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field


class ProvisioningError(ECreditError):
    """Profile bootstrap failed; safe to retry"""

    message = "Profile provisioning failed, please retry"
    retryable = True


class BootstrapRefused(ECreditError):
    """Operator admin seed refused to run"""

    message = "An administrator already exists"
