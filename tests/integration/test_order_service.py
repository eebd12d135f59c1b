"""
Integration tests for the purchase-order workflow.
"""
import re
import threading

import pytest

from conftest import page_texts
from ordering.errors import ForbiddenError, NotFoundError, ValidationError
from ordering.service import OrderService


class _FailingRenderer:
    def render(self, document, path):
        raise OSError("disk full")


class _GatedRenderer:
    """Wraps a renderer; once armed, each render waits for `release`."""

    def __init__(self, inner):
        self.inner = inner
        self.armed = False
        self.entered = threading.Event()
        self.release = threading.Event()

    def render(self, document, path):
        if self.armed:
            self.entered.set()
            assert self.release.wait(timeout=10)
        return self.inner.render(document, path)


@pytest.mark.integration
class TestCreateOrder:
    """Tests for OrderService.create_order."""

    def test_create_order(self, order_service, actors, order_request):
        order = order_service.create_order(actors["manager"], order_request())

        assert re.fullmatch(r"PO-\d{8}-\d{4,}", order.number)
        assert order.number.endswith(f"-{order.id:04d}")
        assert order.bon_file_name == f"bon-commande-{order.number}.pdf"
        assert order.restaurant_id == 1
        assert order.supplier_id == 1
        assert order.delivery_address == "12 rue de la Paix, 75002 Paris"
        assert order.total_items == 5
        assert order.total_amount == pytest.approx(49.60)
        assert len(order.items) == 2
        assert order_service.pdf_path(order).exists()

    def test_total_is_sum_of_lines(self, order_service, actors, order_request):
        order = order_service.create_order(actors["manager"], order_request(items=((1, 7), (2, 11), (4, 2))))

        expected = sum(item.unit_price_ht * item.quantity for item in order.items)
        assert order.total_amount == pytest.approx(expected)
        assert sum(item.line_total for item in order.items) == pytest.approx(order.total_amount)
        assert order.total_items == 20

    def test_product_without_price_is_free(self, order_service, actors, order_request):
        order = order_service.create_order(actors["manager"], order_request(items=((4, 3),)))
        assert order.total_amount == 0
        assert order.items[0].unit_price_ht == 0

    def test_creation_is_audited(self, order_service, actors, order_request):
        order = order_service.create_order(actors["manager"], order_request())
        entries = order_service.db.get_audit_log(order.id)
        assert [e["action"] for e in entries] == ["order_created"]
        assert entries[0]["actor"] == "2"

    def test_mixed_suppliers_rejected(self, order_service, actors, order_request):
        with pytest.raises(ValidationError, match="one supplier only"):
            order_service.create_order(actors["manager"], order_request(items=((1, 1), (3, 1))))
        assert order_service.db.list_orders() == []

    def test_unknown_product_rejected(self, order_service, actors, order_request):
        with pytest.raises(ValidationError, match="Some selected products do not exist"):
            order_service.create_order(actors["manager"], order_request(items=((1, 1), (999, 1))))
        assert order_service.db.list_orders() == []

    @pytest.mark.parametrize("quantity", [0, -1])
    def test_bad_quantity_writes_nothing(self, order_service, actors, order_request, quantity):
        with pytest.raises(ValidationError):
            order_service.create_order(actors["manager"], order_request(items=((1, 2), (2, quantity))))
        assert order_service.db.list_orders() == []
        assert list(order_service.config.orders_dir.glob("*.pdf")) == []

    def test_employee_cannot_order(self, order_service, actors, order_request):
        with pytest.raises(ForbiddenError):
            order_service.create_order(actors["employee"], order_request())

    def test_admin_orders_for_any_restaurant(self, order_service, actors, order_request):
        order = order_service.create_order(actors["admin"], order_request(restaurant_id=2))
        assert order.restaurant_id == 2
        assert order.restaurant_name == "Jade Palace"

    def test_admin_unknown_restaurant(self, order_service, actors, order_request):
        with pytest.raises(NotFoundError, match="Restaurant not found"):
            order_service.create_order(actors["admin"], order_request(restaurant_id=42))

    def test_pdf_failure_rolls_back(self, test_config, seeded_catalog, actors, order_request):
        service = OrderService(test_config, db=seeded_catalog, renderer=_FailingRenderer())
        with pytest.raises(OSError, match="disk full"):
            service.create_order(actors["manager"], order_request())
        assert seeded_catalog.list_orders() == []


@pytest.mark.integration
class TestReadOrders:
    """Tests for listing, fetching and downloading orders."""

    @pytest.fixture
    def lotus_order(self, order_service, actors, order_request):
        return order_service.create_order(actors["manager"], order_request())

    def test_manager_sees_own_orders_only(self, order_service, actors, order_request, lotus_order):
        jade = order_service.create_order(actors["manager2"], order_request(items=((3, 4),)))

        assert [o.id for o in order_service.list_orders(actors["manager"])] == [lotus_order.id]
        assert [o.id for o in order_service.list_orders(actors["manager2"])] == [jade.id]
        assert {o.id for o in order_service.list_orders(actors["admin"])} == {lotus_order.id, jade.id}

    def test_manager_without_restaurant_sees_nothing(self, order_service, actors, lotus_order):
        assert order_service.list_orders(actors["orphan"]) == []

    def test_list_is_headers_only(self, order_service, actors, lotus_order):
        listed = order_service.list_orders(actors["manager"])[0]
        assert listed.items == []
        assert listed.supplier_name == "Asia Import"

    def test_cross_restaurant_access_forbidden(self, order_service, actors, lotus_order):
        with pytest.raises(ForbiddenError, match="does not belong to your restaurant"):
            order_service.get_order(lotus_order.id, actors["manager2"])
        with pytest.raises(ForbiddenError):
            order_service.resolve_order_file(lotus_order.id, actors["manager2"])

    def test_unknown_order(self, order_service, actors):
        with pytest.raises(NotFoundError, match="Order not found"):
            order_service.get_order(999, actors["admin"])

    def test_employee_cannot_list(self, order_service, actors):
        with pytest.raises(ForbiddenError):
            order_service.list_orders(actors["employee"])

    def test_resolve_regenerates_missing_file(self, order_service, actors, lotus_order):
        path = order_service.pdf_path(lotus_order)
        path.unlink()

        assert order_service.resolve_order_file(lotus_order.id, actors["manager"]) == path
        assert path.exists()

    def test_resolve_without_regeneration(self, order_service, actors, lotus_order):
        order_service.config.regenerate_on_read = False
        order_service.pdf_path(lotus_order).unlink()

        with pytest.raises(NotFoundError, match="Purchase order file not found"):
            order_service.resolve_order_file(lotus_order.id, actors["manager"])

    def test_regeneration_is_idempotent(self, order_service, lotus_order):
        first = order_service.regenerate_pdf(lotus_order.id).read_bytes()
        second = order_service.regenerate_pdf(lotus_order.id).read_bytes()
        assert first == second

    def test_catalog_edits_do_not_change_history(self, order_service, actors, lotus_order):
        order_service.db.update_product(1, {"name_fr": "Riz basmati", "price_ht": 99.0})

        order = order_service.get_order(lotus_order.id, actors["manager"])
        assert order.items[0].name_fr == "Riz jasmin"
        assert order.items[0].unit_price_ht == pytest.approx(18.5)
        assert order.total_amount == pytest.approx(49.60)

        text = page_texts(order_service.resolve_order_file(lotus_order.id, actors["manager"]))[0]
        assert "Riz jasmin" in text
        assert "Riz basmati" not in text


@pytest.mark.integration
class TestDeleteOrder:
    """Tests for OrderService.delete_order."""

    def test_delete_removes_order_and_file(self, order_service, actors, order_request):
        order = order_service.create_order(actors["manager"], order_request())
        path = order_service.pdf_path(order)

        deleted = order_service.delete_order(order.id, actors["manager"])

        assert deleted.number == order.number
        assert not path.exists()
        assert order_service.db.count_order_items(order.id) == 0
        with pytest.raises(NotFoundError):
            order_service.get_order(order.id, actors["admin"])
        assert [e["action"] for e in order_service.db.get_audit_log(order.id)] == [
            "order_created", "order_deleted",
        ]

    def test_delete_with_missing_file(self, order_service, actors, order_request):
        order = order_service.create_order(actors["manager"], order_request())
        order_service.pdf_path(order).unlink()

        order_service.delete_order(order.id, actors["manager"])
        assert order_service.list_orders(actors["manager"]) == []

    def test_delete_other_restaurant_forbidden(self, order_service, actors, order_request):
        order = order_service.create_order(actors["manager"], order_request())
        with pytest.raises(ForbiddenError):
            order_service.delete_order(order.id, actors["manager2"])
        assert order_service.get_order(order.id, actors["admin"]).id == order.id

    def test_delete_waits_for_in_flight_regeneration(self, test_config, seeded_catalog, actors, order_request):
        """A regeneration that is mid-render when the order is deleted leaves no file behind."""
        service = OrderService(test_config, db=seeded_catalog)
        gate = _GatedRenderer(service.renderer)
        service.renderer = gate
        order = service.create_order(actors["manager"], order_request())
        path = service.pdf_path(order)

        gate.armed = True
        reader = threading.Thread(target=service.regenerate_pdf, args=(order.id,))
        reader.start()
        assert gate.entered.wait(timeout=10)

        deleter = threading.Thread(target=service.delete_order, args=(order.id, actors["manager"]))
        deleter.start()
        deleter.join(timeout=0.2)
        assert deleter.is_alive()        # blocked on the order's PDF lock

        gate.release.set()
        reader.join(timeout=10)
        deleter.join(timeout=10)

        assert not path.exists()
        assert service.db.get_order(order.id) is None

    def test_stale_regeneration_after_delete(self, order_service, actors, order_request):
        order = order_service.create_order(actors["manager"], order_request())
        order_service.delete_order(order.id, actors["manager"])

        with pytest.raises(NotFoundError):
            order_service._write_pdf(order)
        assert not order_service.pdf_path(order).exists()


@pytest.mark.integration
class TestOutOfRangeIds:
    """Ids beyond SQLite's integer range are treated as unknown, never as a crash."""

    def test_huge_quantity(self, order_service, actors, order_request):
        with pytest.raises(ValidationError, match="Item quantity must be a positive integer"):
            order_service.create_order(actors["manager"], order_request(items=((1, 10**19),)))
        assert order_service.db.list_orders() == []

    def test_huge_product_id(self, order_service, actors, order_request):
        with pytest.raises(ValidationError, match="Some selected products do not exist"):
            order_service.create_order(actors["manager"], order_request(items=((10**19, 1),)))

    def test_huge_restaurant_id(self, order_service, actors, order_request):
        with pytest.raises(NotFoundError, match="Restaurant not found"):
            order_service.create_order(actors["admin"], order_request(restaurant_id=10**19))

    def test_huge_order_id(self, order_service, actors):
        with pytest.raises(NotFoundError, match="Order not found"):
            order_service.get_order(10**19, actors["admin"])
        with pytest.raises(NotFoundError):
            order_service.regenerate_pdf(10**19)
