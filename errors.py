"""
Error taxonomy for the marketplace API.

Each error knows the HTTP status it maps to; main.py turns any AppError
into the standard `{"success": false, "message": ..., "errors": [...]}` body.
"""

from typing import List, Optional


class AppError(Exception):
    status_code = 500
    default_message = "Server error"

    def __init__(self, message: Optional[str] = None, errors: Optional[List[dict]] = None):
        self.message = message or self.default_message
        self.errors = errors or []
        super().__init__(self.message)

    def to_dict(self) -> dict:
        body = {"success": False, "message": self.message}
        if self.errors:
            body["errors"] = self.errors
        return body


class ValidationError(AppError):
    status_code = 400
    default_message = "Validation failed"

    def __init__(self, issues=None, message: Optional[str] = None):
        errors = [i.to_dict() if hasattr(i, "to_dict") else i for i in (issues or [])]
        super().__init__(message, errors)


class EmptyCartError(ValidationError):
    default_message = "Order must contain at least one item"


class UnauthenticatedError(AppError):
    status_code = 401
    default_message = "Not authenticated"


class InvalidCredentialsError(UnauthenticatedError):
    default_message = "Invalid email or password"


class NotAuthorizedError(AppError):
    status_code = 403
    default_message = "Not authorized to access this resource"


class NotFoundError(AppError):
    status_code = 404
    default_message = "Resource not found"


class UserNotFoundError(NotFoundError):
    default_message = "User not found"


class ProductNotFoundError(NotFoundError):
    default_message = "Product not found"


class OrderNotFoundError(NotFoundError):
    default_message = "Order not found"


class ConflictError(AppError):
    status_code = 409
    default_message = "Request conflicts with current state"


class DuplicateEmailError(ConflictError):
    default_message = "Email already registered"


class ProductUnavailableError(ConflictError):
    default_message = "Product is not available"


class BelowMinimumOrderError(ConflictError):
    default_message = "Quantity is below the minimum order"


class InsufficientStockError(ConflictError):
    default_message = "Insufficient stock"


class MixedWholesalerError(ConflictError):
    default_message = "All products in an order must be from the same wholesaler"


class InvalidStatusTransitionError(ConflictError):
    default_message = "Invalid order status transition"


class InternalError(AppError):
    status_code = 500
    default_message = "Internal server error"
