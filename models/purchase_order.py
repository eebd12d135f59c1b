from pydantic import Field
from typing import Any, List, Optional

from .base import CamelModel


class OrderItemIn(CamelModel):
    """One requested line: a catalog product and how many units of it."""
    product_id: int
    quantity: Any                           # checked by normalise_quantity()


class CreateOrderRequest(CamelModel):
    """
    Body of POST /orders.
    restaurant_id is only honoured for ADMIN actors; managers always order
    for their own restaurant.
    """
    delivery_date: Optional[str] = None     # YYYY-MM-DD
    items: List[OrderItemIn] = Field(default_factory=list)
    restaurant_id: Optional[int] = None


class PurchaseOrderItem(CamelModel):
    """
    A line of a stored order.  Names, unit, category and price are copied
    from the catalog when the order is created and never re-read.
    """
    id: Optional[int] = None
    purchase_order_id: Optional[int] = None
    product_id: int
    supplier_id: int
    quantity: int
    unit_price_ht: float
    line_total: float
    name_zh: str
    name_fr: Optional[str] = None
    unit: Optional[str] = None
    category: str


class PurchaseOrder(CamelModel):
    """
    A stored purchase order header plus its snapshot lines.
    number has the form PO-YYYYMMDD-NNNN; bon_file_name is the PDF name
    under <storage_root>/orders/.
    """
    id: int
    number: str
    supplier_id: int
    supplier_name: Optional[str] = None
    restaurant_id: int
    restaurant_name: Optional[str] = None
    created_by_user_id: int
    delivery_date: str                      # YYYY-MM-DD
    delivery_address: str
    total_items: int
    total_amount: float
    bon_file_name: str
    created_at: str                         # ISO 8601 datetime (UTC)
    items: List[PurchaseOrderItem] = Field(default_factory=list)
