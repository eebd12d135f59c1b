"""
Order intake validation.

Checks, in order:
  Actor:     role must be ADMIN or MANAGER
  Target:    the order must resolve to a restaurant
  Date:      deliveryDate is YYYY-MM-DD and a real calendar date
  Items:     at least one line, every quantity a whole number in
             1..MAX_QUANTITY, every product id within SQLite range

Catalog checks (products exist, single supplier) need the database and are
done by OrderService before anything is written.
"""
import logging
import re
from dataclasses import dataclass, field
from datetime import date
from typing import Optional

from models.actor import Actor
from models.purchase_order import CreateOrderRequest
from .errors import ForbiddenError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

# Largest value an SQLite INTEGER column can hold
MAX_DB_ID = 2**63 - 1
MAX_QUANTITY = 100_000


@dataclass
class OrderLine:
    product_id: int
    quantity: int


@dataclass
class ValidatedOrder:
    """
    A request that passed every check that does not need the catalog.

    restaurant_id:  restaurant the order is placed for
    delivery_date:  parsed delivery date
    lines:          requested lines, in request order (duplicates kept)
    """
    restaurant_id: int
    delivery_date: date
    lines: list[OrderLine] = field(default_factory=list)

    @property
    def product_ids(self) -> list[int]:
        """Distinct product ids, first-seen order."""
        return list(dict.fromkeys(line.product_id for line in self.lines))


def is_db_id(value) -> bool:
    """True for an int that can name a row: positive and within SQLite range."""
    return isinstance(value, int) and not isinstance(value, bool) and 0 < value <= MAX_DB_ID


def ensure_can_manage_orders(actor: Actor) -> None:
    if not actor.can_manage_orders:
        raise ForbiddenError("Only ADMIN and MANAGER can access orders")


def parse_delivery_date(raw: Optional[str]) -> date:
    """Parse a strict YYYY-MM-DD string into a date."""
    if not raw or not _DATE_RE.match(raw):
        raise ValidationError("deliveryDate must match YYYY-MM-DD")
    try:
        return date.fromisoformat(raw)
    except ValueError:
        raise ValidationError("deliveryDate is invalid") from None


def normalise_quantity(value) -> int:
    """
    Return *value* as an int in 1..MAX_QUANTITY; integral floats such as
    2.0 are accepted.
    """
    if isinstance(value, bool):
        raise ValidationError("Item quantity must be a positive integer")
    if isinstance(value, float):
        if not value.is_integer():
            raise ValidationError("Item quantity must be a positive integer")
        value = int(value)
    if not isinstance(value, int) or not 0 < value <= MAX_QUANTITY:
        raise ValidationError("Item quantity must be a positive integer")
    return value


class OrderValidator:
    """
    Validates an order request on behalf of an actor.

    Usage:
        validated = OrderValidator().validate(actor, request)
    """

    def validate(self, actor: Actor, request: CreateOrderRequest) -> ValidatedOrder:
        ensure_can_manage_orders(actor)
        restaurant_id = self._resolve_restaurant(actor, request.restaurant_id)
        delivery_date = parse_delivery_date(request.delivery_date)

        if not request.items:
            raise ValidationError("At least one item is required")

        lines = [
            OrderLine(product_id=item.product_id, quantity=normalise_quantity(item.quantity))
            for item in request.items
        ]
        # Ids outside the SQLite range cannot match a catalog row
        if not all(is_db_id(line.product_id) for line in lines):
            raise ValidationError("Some selected products do not exist")

        logger.debug(
            "Order request valid: actor=%s restaurant=%s lines=%d",
            actor.id, restaurant_id, len(lines),
        )
        return ValidatedOrder(
            restaurant_id=restaurant_id,
            delivery_date=delivery_date,
            lines=lines,
        )

    @staticmethod
    def _resolve_restaurant(actor: Actor, requested: Optional[int]) -> int:
        # Managers always order for their own restaurant.
        if actor.is_admin and requested is not None:
            if not is_db_id(requested):
                raise NotFoundError("Restaurant not found")
            return requested
        if not actor.restaurant_id:
            raise ValidationError("User must be assigned to a restaurant")
        return actor.restaurant_id
