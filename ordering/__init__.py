from .catalog import CatalogService
from .database import Database
from .errors import OrderError, ValidationError, ForbiddenError, NotFoundError
from .pdf_renderer import OrderDocument, OrderPdfRenderer
from .service import OrderService
from .users import UserService
from .validator import OrderValidator

__all__ = [
    "CatalogService", "Database",
    "OrderError", "ValidationError", "ForbiddenError", "NotFoundError",
    "OrderDocument", "OrderPdfRenderer", "OrderService", "OrderValidator", "UserService",
]
