"""
Catalog management: products, suppliers and restaurants.

Editing the catalog never touches existing orders; their lines carry their
own copy of names, units and prices.
"""
import logging
import sqlite3

from models.actor import Actor
from models.catalog import Product, ProductUpdate, Restaurant, Supplier
from .database import Database
from .errors import ForbiddenError, NotFoundError, ValidationError
from .validator import is_db_id

logger = logging.getLogger(__name__)


def ensure_admin(actor: Actor) -> None:
    if not actor.is_admin:
        raise ForbiddenError("Only ADMIN can manage the catalog")


class CatalogService:
    """Read access for everyone, writes for ADMIN only."""

    def __init__(self, db: Database) -> None:
        self.db = db

    # ------------------------------------------------------------------
    # Products
    # ------------------------------------------------------------------

    def list_products(self) -> list[Product]:
        return [Product(**row) for row in self.db.list_products()]

    def update_product(self, actor: Actor, product_id: int, update: ProductUpdate) -> Product:
        ensure_admin(actor)
        if not is_db_id(product_id) or self.db.get_product(product_id) is None:
            raise NotFoundError("Product not found")

        changes = update.model_dump(exclude_unset=True)

        if "supplier_id" in changes:
            supplier_id = changes["supplier_id"]
            if not is_db_id(supplier_id):
                raise ValidationError("supplierId must be a positive integer")
            if self.db.get_supplier(supplier_id) is None:
                raise NotFoundError("Supplier not found")

        for key, label in (("category", "category"), ("name_zh", "nameZh")):
            if key in changes:
                value = (changes[key] or "").strip()
                if not value:
                    raise ValidationError(f"{label} cannot be empty")
                changes[key] = value

        self.db.update_product(product_id, changes)
        logger.info("Product %d updated by user %s: %s", product_id, actor.id, sorted(changes))
        return Product(**self.db.get_product(product_id))

    def delete_product(self, actor: Actor, product_id: int) -> int:
        ensure_admin(actor)
        if not is_db_id(product_id):
            raise NotFoundError("Product not found")
        try:
            deleted = self.db.delete_product(product_id)
        except sqlite3.IntegrityError:
            raise ValidationError(
                "Product cannot be deleted because it is linked to existing orders"
            ) from None
        if not deleted:
            raise NotFoundError("Product not found")
        logger.info("Product %d deleted by user %s", product_id, actor.id)
        return product_id

    # ------------------------------------------------------------------
    # Suppliers / restaurants
    # ------------------------------------------------------------------

    def list_suppliers(self) -> list[Supplier]:
        return [Supplier(**row) for row in self.db.list_suppliers()]

    def list_restaurants(self) -> list[Restaurant]:
        return [Restaurant(**row) for row in self.db.list_restaurants()]

    def create_restaurant(self, actor: Actor, name: str, address: str) -> Restaurant:
        ensure_admin(actor)
        name = (name or "").strip()
        address = (address or "").strip()
        if not name:
            raise ValidationError("Restaurant name is required")
        if not address:
            raise ValidationError("Restaurant address is required")
        if self.db.find_restaurant_by_name(name):
            raise ValidationError("Restaurant name already exists")

        restaurant_id = self.db.upsert_restaurant(name, address)
        logger.info("Restaurant %r created by user %s", name, actor.id)
        return Restaurant(**self.db.get_restaurant(restaurant_id))
