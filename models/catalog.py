from typing import Optional

from pydantic import Field

from .base import CamelModel


class Supplier(CamelModel):
    id: int
    name: str


class Restaurant(CamelModel):
    id: int
    name: str
    address: str
    created_at: Optional[str] = None        # ISO 8601 datetime


class User(CamelModel):
    """A back-office account.  api_token is the bearer token it authenticates with."""
    id: int
    email: str
    name: Optional[str] = None
    role: str                               # ADMIN | MANAGER | EMPLOYEE
    restaurant_id: Optional[int] = None
    api_token: Optional[str] = Field(default=None, exclude=True)   # never serialised
    created_at: Optional[str] = None


class Product(CamelModel):
    """
    A catalog product.  Names are bilingual: name_zh is the Chinese name
    (always present), name_fr the French designation (optional).
    """
    id: int
    supplier_id: int
    reference: Optional[str] = None
    category: str
    name_zh: str
    name_fr: Optional[str] = None
    specification: Optional[str] = None
    unit: Optional[str] = None              # e.g. "carton", "kg", "sac"
    price_ht: Optional[float] = None        # unit price excluding tax
    image: Optional[str] = None


class ProductUpdate(CamelModel):
    """Partial product edit.  Only fields explicitly sent are applied."""
    supplier_id: Optional[int] = None
    reference: Optional[str] = None
    category: Optional[str] = None
    name_zh: Optional[str] = None
    name_fr: Optional[str] = None
    specification: Optional[str] = None
    unit: Optional[str] = None
    price_ht: Optional[float] = None
    image: Optional[str] = None
