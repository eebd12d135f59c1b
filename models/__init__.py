from .actor import Actor, ROLE_ADMIN, ROLE_MANAGER, ROLE_EMPLOYEE
from .catalog import Supplier, Restaurant, User, Product, ProductUpdate
from .purchase_order import OrderItemIn, CreateOrderRequest, PurchaseOrder, PurchaseOrderItem

__all__ = [
    "Actor", "ROLE_ADMIN", "ROLE_MANAGER", "ROLE_EMPLOYEE",
    "Supplier", "Restaurant", "User", "Product", "ProductUpdate",
    "OrderItemIn", "CreateOrderRequest", "PurchaseOrder", "PurchaseOrderItem",
]
