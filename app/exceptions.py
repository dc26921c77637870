"""
Domain exceptions.

Services raise these; the handlers registered in ``app.main`` turn them into the
standard ``{success, message, errors}`` envelope. Routes never build error
responses by hand.
"""


class AppError(Exception):
    status_code = 500
    default_message = "Unexpected error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = 400
    default_message = "Validation failed"

    def __init__(self, message: str | None = None, errors: list[dict] | None = None):
        super().__init__(message)
        self.errors = errors or []

    @classmethod
    def for_field(cls, field: str, message: str) -> "ValidationError":
        return cls(message, errors=[{"field": field, "message": message}])


class InvalidQuantity(ValidationError):
    default_message = "Quantity must be greater than zero"

    def __init__(self, quantity: float | None = None):
        message = self.default_message
        if quantity is not None:
            message = f"{message} (got {quantity})"
        super().__init__(message, errors=[{"field": "quantity", "message": message}])


class AuthenticationError(AppError):
    status_code = 401
    default_message = "Not authenticated"


class AuthorizationError(AppError):
    status_code = 403
    default_message = "Not authorized"


class NotFoundError(AppError):
    status_code = 404
    default_message = "Resource not found"

    @classmethod
    def of(cls, resource: str) -> "NotFoundError":
        return cls(f"{resource} not found")


class WorkerNotFound(NotFoundError):
    default_message = "Worker not found"


class ConflictError(AppError):
    status_code = 409
    default_message = "Operation not permitted in the current state"


class InsufficientStock(AppError):
    status_code = 400
    default_message = "Insufficient stock"

    def __init__(self, item_name: str = "", available: float | None = None, requested: float | None = None):
        message = self.default_message
        if item_name:
            message = f"Insufficient stock for {item_name}"
        if available is not None and requested is not None:
            message = f"{message}. Available: {available}, requested: {requested}"
        super().__init__(message)
        self.available = available
        self.requested = requested


class DependencyError(AppError):
    """A downstream collaborator (email, WhatsApp, PDF, storage) failed."""

    status_code = 502
    default_message = "A downstream service failed"
