"""
Exceptions raised by the ordering services.

Each carries the HTTP status the API layer answers with, so the routes never
have to translate service failures one by one.
"""


class OrderError(Exception):
    """Base class for every client-facing ordering failure."""
    status_code = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(OrderError):
    """Bad input: malformed date, empty basket, bad quantity, mixed suppliers…"""
    status_code = 400


class ForbiddenError(OrderError):
    """Wrong role, or an order that belongs to another restaurant."""
    status_code = 403


class NotFoundError(OrderError):
    """Unknown order, product, supplier or restaurant, or a missing PDF."""
    status_code = 404
