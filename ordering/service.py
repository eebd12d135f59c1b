"""
Purchase-order workflow.

OrderService ties together validation, pricing, persistence and PDF
generation:

  1. OrderValidator   -- actor role, target restaurant, date, quantities
  2. catalog checks   -- products exist and share one supplier
  3. price_lines      -- unit price x quantity from the current catalog
  4. Database         -- header + snapshot lines in one transaction
  5. OrderPdfRenderer -- bon de commande written to <storage_root>/orders/

Reads (get, list, download, delete) apply the same scoping: ADMIN sees
every order, MANAGER only those of their own restaurant.
"""
import logging
import threading
from pathlib import Path
from typing import Optional

from config import Config
from models.actor import Actor
from models.catalog import Product
from models.purchase_order import CreateOrderRequest, PurchaseOrder, PurchaseOrderItem
from .database import Database
from .errors import ForbiddenError, NotFoundError, ValidationError
from .pdf_renderer import OrderDocument, OrderPdfRenderer
from .pricing import price_lines
from .validator import OrderValidator, ensure_can_manage_orders, is_db_id

logger = logging.getLogger(__name__)


def order_from_row(row: dict) -> PurchaseOrder:
    items = [PurchaseOrderItem(**item) for item in row.get("items", [])]
    return PurchaseOrder(**{k: v for k, v in row.items() if k != "items"}, items=items)


class OrderService:
    """
    Creates, reads, regenerates and deletes purchase orders.

    Usage:
        service = OrderService(config)
        order = service.create_order(actor, request)
        pdf_path = service.resolve_order_file(order.id, actor)
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        db: Optional[Database] = None,
        renderer: Optional[OrderPdfRenderer] = None,
    ):
        self.config = config or Config()
        self.config.ensure_storage_dirs()

        self.db = db or Database(self.config.db_path)
        self.renderer = renderer or OrderPdfRenderer(
            logo_path=self.config.logo_path,
            company_name=self.config.company_name,
            currency_symbol=self.config.currency_symbol,
        )
        self.validator = OrderValidator()

        # One lock per order id: concurrent downloads of the same order
        # must not write the same PDF at the same time.
        self._pdf_locks: dict[int, threading.Lock] = {}
        self._pdf_locks_guard = threading.Lock()

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create_order(self, actor: Actor, request: CreateOrderRequest) -> PurchaseOrder:
        validated = self.validator.validate(actor, request)

        product_rows = self.db.get_products(validated.product_ids)
        if len(product_rows) != len(validated.product_ids):
            raise ValidationError("Some selected products do not exist")
        products = {pid: Product(**row) for pid, row in product_rows.items()}

        supplier_ids = {p.supplier_id for p in products.values()}
        if len(supplier_ids) != 1:
            raise ValidationError("Order must include products from one supplier only")
        supplier_id = supplier_ids.pop()

        if self.db.get_supplier(supplier_id) is None:
            raise NotFoundError("Supplier not found")

        restaurant = self.db.get_restaurant(validated.restaurant_id)
        if restaurant is None:
            raise NotFoundError("Restaurant not found")

        priced = price_lines(supplier_id, validated.lines, products)
        order_id = self.db.create_order(
            priced,
            restaurant_id=restaurant["id"],
            created_by_user_id=actor.id,
            delivery_date=validated.delivery_date,
            delivery_address=restaurant["address"],
        )
        order = self._load(order_id)

        try:
            self._write_pdf(order)
        except Exception:
            logger.exception("PDF generation failed for %s; rolling back order", order.number)
            self.db.delete_order(order_id)
            raise

        self.db.log_audit(
            order_id, "order_created", actor=str(actor.id),
            detail={
                "number": order.number,
                "supplier_id": supplier_id,
                "total_items": order.total_items,
                "total_amount": order.total_amount,
            },
        )
        logger.info(
            "Order %s created by user %s: %d items, total %.2f",
            order.number, actor.id, order.total_items, order.total_amount,
        )
        return order

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def list_orders(self, actor: Actor) -> list[PurchaseOrder]:
        """Headers only (no items), newest first, scoped to the actor."""
        ensure_can_manage_orders(actor)
        if actor.is_admin:
            rows = self.db.list_orders()
        else:
            rows = self.db.list_orders(restaurant_id=actor.restaurant_id or -1)
        return [order_from_row(r) for r in rows]

    def get_order(self, order_id: int, actor: Actor) -> PurchaseOrder:
        ensure_can_manage_orders(actor)
        order = self.db.get_order(order_id) if is_db_id(order_id) else None
        if order is None:
            raise NotFoundError("Order not found")
        if not actor.is_admin and order["restaurant_id"] != actor.restaurant_id:
            raise ForbiddenError("Order does not belong to your restaurant")
        return order_from_row(order)

    def resolve_order_file(self, order_id: int, actor: Actor) -> Path:
        """
        Return the path of the order's PDF after an access check.

        With regenerate_on_read enabled the file is rebuilt from the stored
        snapshot first, so layout changes reach historical orders.
        """
        order = self.get_order(order_id, actor)
        if self.config.regenerate_on_read:
            self._write_pdf(order)

        path = self.pdf_path(order)
        if not path.exists():
            raise NotFoundError("Purchase order file not found")
        return path

    def pdf_path(self, order: PurchaseOrder) -> Path:
        return self.config.orders_dir / order.bon_file_name

    # ------------------------------------------------------------------
    # Regenerate / delete
    # ------------------------------------------------------------------

    def regenerate_pdf(self, order_id: int) -> Path:
        """Rebuild one order's PDF without an actor (CLI / maintenance)."""
        order = self._load(order_id)
        return self._write_pdf(order)

    def delete_order(self, order_id: int, actor: Actor) -> PurchaseOrder:
        """
        Delete an order and its lines, then remove its PDF.

        Removing the file is best-effort: a missing or locked file never
        blocks the deletion.
        """
        order = self.get_order(order_id, actor)
        self.db.delete_order(order_id)

        path = self.pdf_path(order)
        # Waits for an in-flight regeneration; later ones see the row gone.
        with self._lock_for(order_id):
            try:
                path.unlink(missing_ok=True)
            except OSError as exc:
                logger.warning("Could not remove PDF %s: %s", path, exc)

        with self._pdf_locks_guard:
            self._pdf_locks.pop(order_id, None)

        self.db.log_audit(order_id, "order_deleted", actor=str(actor.id), detail={"number": order.number})
        logger.info("Order %s deleted by user %s", order.number, actor.id)
        return order

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _load(self, order_id: int) -> PurchaseOrder:
        row = self.db.get_order(order_id) if is_db_id(order_id) else None
        if row is None:
            raise NotFoundError("Order not found")
        return order_from_row(row)

    def _lock_for(self, order_id: int) -> threading.Lock:
        with self._pdf_locks_guard:
            return self._pdf_locks.setdefault(order_id, threading.Lock())

    def _write_pdf(self, order: PurchaseOrder) -> Path:
        with self._lock_for(order.id):
            if not self.db.order_exists(order.id):
                raise NotFoundError("Order not found")
            return self.renderer.render(OrderDocument.from_order(order), self.pdf_path(order))
