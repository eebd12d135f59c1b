"""
Purchase-order back office: FastAPI backend.

Build the app with create_app(config); every service it uses is created
from that config, so tests and deployments can point it at their own
database and storage root.

Endpoints
---------
  GET    /api/health              → liveness probe
  POST   /orders                  → create one supplier-specific order
  GET    /orders                  → list orders (restaurant scoped)
  GET    /orders/{id}             → order header + snapshot lines
  GET    /orders/{id}/commande    → download the order PDF
  GET    /orders/{id}/bon         → same, legacy path (LEGACY_BON_ROUTE)
  DELETE /orders/{id}             → delete order, best-effort remove its PDF
  GET    /products                → catalog
  PATCH  /products/{id}           → edit a product (ADMIN)
  DELETE /products/{id}           → delete a product (ADMIN)
  GET    /suppliers               → supplier list
  GET    /restaurants             → restaurant list
  POST   /restaurants             → create a restaurant (ADMIN)
  GET    /users/unassigned        → employees without a restaurant (ADMIN)
  PATCH  /users/{id}/restaurant    → assign a user to a restaurant (ADMIN)
  PATCH  /users/{id}/manager-role  → promote / demote a manager (ADMIN)
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.responses import FileResponse, JSONResponse

from config import Config
from models.actor import Actor
from models.catalog import Product, ProductUpdate, Restaurant, Supplier, User
from models.purchase_order import CreateOrderRequest, PurchaseOrder
from ordering.catalog import CatalogService
from ordering.errors import OrderError
from ordering.service import OrderService
from ordering.users import UserService
from .auth import get_actor
from .models import (
    ManagerRoleUpdate, OrderDetail, OrderSummary, RestaurantCreate, UserRestaurantUpdate,
)

logger = logging.getLogger(__name__)

router = APIRouter()
legacy_router = APIRouter()


def get_orders(request: Request) -> OrderService:
    return request.app.state.orders


def get_catalog(request: Request) -> CatalogService:
    return request.app.state.catalog


def get_users(request: Request) -> UserService:
    return request.app.state.users


def _download_url(request: Request, order_id: int) -> str:
    base_url = request.app.state.config.public_api_base_url
    if base_url:
        return f"{base_url.rstrip('/')}/orders/{order_id}/commande"
    return str(request.url_for("download_commande", order_id=order_id))


def _summary(request: Request, order: PurchaseOrder) -> OrderSummary:
    return OrderSummary.from_order(order, _download_url(request, order.id))


# ── Health ───────────────────────────────────────────────────────────────────

@router.get("/api/health")
def health(request: Request):
    config: Config = request.app.state.config
    return {
        "status":       "ok",
        "db_path":      str(config.db_path),
        "db_ok":        get_orders(request).db.ping(),
        "storage_root": str(config.storage_root),
        "orders_dir":   str(config.orders_dir),
    }


# ── Orders ───────────────────────────────────────────────────────────────────

@router.post("/orders", response_model=OrderSummary, status_code=201)
def create_order(
    body: CreateOrderRequest,
    request: Request,
    actor: Actor = Depends(get_actor),
    orders: OrderService = Depends(get_orders),
):
    order = orders.create_order(actor, body)
    return _summary(request, order)


@router.get("/orders", response_model=list[OrderSummary])
def list_orders(
    request: Request,
    actor: Actor = Depends(get_actor),
    orders: OrderService = Depends(get_orders),
):
    return [_summary(request, order) for order in orders.list_orders(actor)]


@router.get("/orders/{order_id}", response_model=OrderDetail)
def get_order(
    order_id: int,
    request: Request,
    actor: Actor = Depends(get_actor),
    orders: OrderService = Depends(get_orders),
):
    order = orders.get_order(order_id, actor)
    return OrderDetail.from_order(order, _download_url(request, order.id), items=order.items)


@router.get("/orders/{order_id}/commande", name="download_commande")
def download_commande(
    order_id: int,
    actor: Actor = Depends(get_actor),
    orders: OrderService = Depends(get_orders),
):
    path = orders.resolve_order_file(order_id, actor)
    return FileResponse(path, media_type="application/pdf", filename=path.name)


@legacy_router.get("/orders/{order_id}/bon")
def download_bon_legacy(
    order_id: int,
    actor: Actor = Depends(get_actor),
    orders: OrderService = Depends(get_orders),
):
    return download_commande(order_id, actor, orders)


@router.delete("/orders/{order_id}")
def delete_order(
    order_id: int,
    actor: Actor = Depends(get_actor),
    orders: OrderService = Depends(get_orders),
):
    order = orders.delete_order(order_id, actor)
    return {"id": order.id, "number": order.number, "deleted": True}


# ── Catalog ──────────────────────────────────────────────────────────────────

@router.get("/products", response_model=list[Product])
def list_products(
    actor: Actor = Depends(get_actor),
    catalog: CatalogService = Depends(get_catalog),
):
    return catalog.list_products()


@router.patch("/products/{product_id}", response_model=Product)
def update_product(
    product_id: int,
    body: ProductUpdate,
    actor: Actor = Depends(get_actor),
    catalog: CatalogService = Depends(get_catalog),
):
    return catalog.update_product(actor, product_id, body)


@router.delete("/products/{product_id}")
def delete_product(
    product_id: int,
    actor: Actor = Depends(get_actor),
    catalog: CatalogService = Depends(get_catalog),
):
    return {"success": True, "id": catalog.delete_product(actor, product_id)}


@router.get("/suppliers", response_model=list[Supplier])
def list_suppliers(
    actor: Actor = Depends(get_actor),
    catalog: CatalogService = Depends(get_catalog),
):
    return catalog.list_suppliers()


@router.get("/restaurants", response_model=list[Restaurant])
def list_restaurants(
    actor: Actor = Depends(get_actor),
    catalog: CatalogService = Depends(get_catalog),
):
    return catalog.list_restaurants()


@router.post("/restaurants", response_model=Restaurant, status_code=201)
def create_restaurant(
    body: RestaurantCreate,
    actor: Actor = Depends(get_actor),
    catalog: CatalogService = Depends(get_catalog),
):
    return catalog.create_restaurant(actor, body.name, body.address)


# ── Users ────────────────────────────────────────────────────────────────────

@router.get("/users/unassigned", response_model=list[User])
def list_unassigned_users(
    actor: Actor = Depends(get_actor),
    users: UserService = Depends(get_users),
):
    return users.list_unassigned(actor)


@router.patch("/users/{user_id}/restaurant", response_model=User)
def update_user_restaurant(
    user_id: int,
    body: UserRestaurantUpdate,
    actor: Actor = Depends(get_actor),
    users: UserService = Depends(get_users),
):
    return users.assign_restaurant(actor, user_id, body.restaurant_id)


@router.patch("/users/{user_id}/manager-role", response_model=User)
def update_manager_role(
    user_id: int,
    body: ManagerRoleUpdate,
    actor: Actor = Depends(get_actor),
    users: UserService = Depends(get_users),
):
    return users.update_manager_role(actor, user_id, body.is_manager, body.restaurant_id)


# ── App factory ──────────────────────────────────────────────────────────────

def create_app(config: Optional[Config] = None) -> FastAPI:
    config = config or Config()
    orders = OrderService(config)

    app = FastAPI(title="Purchase Order Back Office", version="1.0.0")
    app.state.config = config
    app.state.orders = orders
    app.state.catalog = CatalogService(orders.db)
    app.state.users = UserService(orders.db)

    @app.exception_handler(OrderError)
    async def order_error_handler(request: Request, exc: OrderError) -> JSONResponse:
        logger.info("%s %s → %d %s", request.method, request.url.path, exc.status_code, exc.message)
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

    app.include_router(router)
    if config.legacy_bon_route:
        app.include_router(legacy_router)

    logger.info("App ready: db=%s storage=%s", config.db_path, config.storage_root)
    return app
