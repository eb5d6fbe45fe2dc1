# storefront/domain/errors.py
"""Error kinds raised by the cart, checkout, order and payment services.

Every error carries a stable ``kind`` and an HTTP status so the API layer can
render it without knowing the individual classes.
"""


class StorefrontError(Exception):
    kind = "InternalError"
    status_code = 500

    def __init__(self, message: str, **extra):
        super().__init__(message)
        self.message = message
        self.extra = extra

    def to_dict(self) -> dict:
        return {"success": False, "error": self.kind, "message": self.message, **self.extra}


class ValidationError(StorefrontError):
    """Malformed or missing input, always client-correctable."""

    kind = "ValidationError"
    status_code = 400


class EmptyCart(ValidationError):
    kind = "EmptyCart"


class ColorMismatch(ValidationError):
    kind = "ColorMismatch"


class SizeUnavailable(ValidationError):
    kind = "SizeUnavailable"


class InvalidStatus(ValidationError):
    kind = "InvalidStatus"


class NotFound(StorefrontError):
    kind = "NotFound"
    status_code = 404


class Conflict(StorefrontError):
    kind = "Conflict"
    status_code = 409


class InsufficientStock(StorefrontError):
    kind = "InsufficientStock"
    status_code = 409

    def __init__(self, message: str, max_available: int):
        super().__init__(message, max_available=max_available)
        self.max_available = max_available


class InvalidTransition(StorefrontError):
    kind = "InvalidTransition"
    status_code = 409


class Unauthorized(StorefrontError):
    kind = "Unauthorized"
    status_code = 401


class Forbidden(StorefrontError):
    kind = "Forbidden"
    status_code = 403


class ExternalServiceError(StorefrontError):
    """Payment gateway or other collaborator failure."""

    kind = "ExternalServiceError"
    status_code = 502


class InternalError(StorefrontError):
    kind = "InternalError"
    status_code = 500
