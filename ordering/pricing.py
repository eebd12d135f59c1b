"""
Line pricing and order numbering.

Prices come from the current catalog at submission time; a product without a
price counts as 0.  Amounts are computed with Decimal and rounded to cents.
"""
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP

from models.catalog import Product
from .validator import OrderLine

_CENT = Decimal("0.01")


def to_money(value) -> Decimal:
    if value is None:
        return Decimal("0.00")
    return Decimal(str(value)).quantize(_CENT, rounding=ROUND_HALF_UP)


@dataclass
class PricedLine:
    product: Product
    quantity: int
    unit_price: Decimal
    line_total: Decimal


@dataclass
class PricedOrder:
    supplier_id: int
    lines: list[PricedLine] = field(default_factory=list)

    @property
    def total_items(self) -> int:
        return sum(line.quantity for line in self.lines)

    @property
    def total_amount(self) -> Decimal:
        return sum((line.line_total for line in self.lines), Decimal("0.00"))


def price_lines(supplier_id: int, lines: list[OrderLine], products: dict[int, Product]) -> PricedOrder:
    """
    Price each requested line against *products* (keyed by id).

    Every product id in *lines* must be present in *products*; the caller
    checks existence first.
    """
    priced = []
    for line in lines:
        product = products[line.product_id]
        unit_price = to_money(product.price_ht)
        priced.append(PricedLine(
            product=product,
            quantity=line.quantity,
            unit_price=unit_price,
            line_total=(unit_price * line.quantity).quantize(_CENT, rounding=ROUND_HALF_UP),
        ))
    return PricedOrder(supplier_id=supplier_id, lines=priced)


def build_order_number(order_id: int, created_at: datetime) -> str:
    """PO-YYYYMMDD-NNNN, the id zero-padded to at least four digits."""
    return f"PO-{created_at:%Y%m%d}-{order_id:04d}"


def build_file_name(order_number: str) -> str:
    return f"bon-commande-{order_number}.pdf"
