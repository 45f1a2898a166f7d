"""
Domain exceptions

Services raise these; main.py maps them to HTTP responses so routers only
need to re-raise them.
"""


class MarketplaceError(Exception):
    """Base class for expected, user-facing failures"""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(MarketplaceError):
    status_code = 400


class AuthenticationError(MarketplaceError):
    status_code = 401


class ForbiddenError(MarketplaceError):
    status_code = 403


class NotFoundError(MarketplaceError):
    status_code = 404


class ConflictError(MarketplaceError):
    status_code = 409


class InsufficientStockError(ValidationError):
    """Raised when active offers cannot cover a requested quantity"""

    def __init__(self, product_id: str, needed: int, available: int):
        super().__init__(
            f"Insufficient stock for product {product_id}. Need {needed}, available {available}."
        )
        self.product_id = product_id
        self.needed = needed
        self.available = available


class UpstreamError(MarketplaceError):
    """A payment provider call failed and the request cannot continue"""
    status_code = 502
