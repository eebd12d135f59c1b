"""
Pydantic models for API requests and responses.
"""
from typing import Any, List, Optional

from pydantic import Field

from models.base import CamelModel
from models.purchase_order import PurchaseOrder, PurchaseOrderItem


class OrderSummary(CamelModel):
    id: int
    number: str
    supplier_id: int
    supplier_name: Optional[str] = None
    restaurant_id: int
    restaurant_name: Optional[str] = None
    delivery_date: str
    delivery_address: str
    total_items: int
    total_amount: float
    bon_url: str                # kept for older clients; same target as commande_url
    commande_url: str
    created_at: str

    @classmethod
    def from_order(cls, order: PurchaseOrder, download_url: str, **extra) -> "OrderSummary":
        return cls(
            id=order.id,
            number=order.number,
            supplier_id=order.supplier_id,
            supplier_name=order.supplier_name,
            restaurant_id=order.restaurant_id,
            restaurant_name=order.restaurant_name,
            delivery_date=order.delivery_date,
            delivery_address=order.delivery_address,
            total_items=order.total_items,
            total_amount=order.total_amount,
            bon_url=download_url,
            commande_url=download_url,
            created_at=order.created_at,
            **extra,
        )


class OrderDetail(OrderSummary):
    items: List[PurchaseOrderItem] = Field(default_factory=list)


class RestaurantCreate(CamelModel):
    name: str
    address: str


class UserRestaurantUpdate(CamelModel):
    """Body of PATCH /users/{id}/restaurant.  Checked by UserService."""
    restaurant_id: Any = None


class ManagerRoleUpdate(CamelModel):
    """Body of PATCH /users/{id}/manager-role.  Checked by UserService."""
    is_manager: Any = None
    restaurant_id: Any = None
