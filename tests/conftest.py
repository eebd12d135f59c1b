"""
Pytest configuration and shared fixtures for the back-office test suite.
"""
import os
import shutil
import tempfile
from pathlib import Path
from typing import Generator

import pytest

PROJECT_ROOT = Path(__file__).parent.parent
os.chdir(PROJECT_ROOT)

ADMIN_TOKEN    = "admin-token"
MANAGER_TOKEN  = "manager-token"
MANAGER2_TOKEN = "manager2-token"
EMPLOYEE_TOKEN = "employee-token"
ORPHAN_TOKEN   = "orphan-token"


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Provide a temporary directory for test files."""
    tmp_path = tempfile.mkdtemp(prefix="backoffice_test_")
    yield Path(tmp_path)
    shutil.rmtree(tmp_path, ignore_errors=True)


@pytest.fixture
def test_config(temp_dir: Path, monkeypatch) -> "Config":
    """Provide a test configuration with isolated directories."""
    from config import Config

    # No app_settings.json overrides from the working tree
    monkeypatch.setenv("CONFIG_DIR", str(temp_dir / "config"))

    return Config(
        db_path=temp_dir / "output" / "backoffice.db",
        storage_root=temp_dir / "uploads",
        public_api_base_url=None,
        logo_path=None,
        company_name="Test Kitchen",
        regenerate_on_read=True,
        legacy_bon_route=True,
        backup_dir=temp_dir / "backups",
        backup_retention_count=7,
    )


@pytest.fixture
def test_db(test_config) -> "Database":
    """Provide a test database instance."""
    from ordering.database import Database
    return Database(test_config.db_path)


@pytest.fixture
def seeded_catalog(test_db) -> "Database":
    """
    Two suppliers, two restaurants, a bilingual product catalog and one
    account per role.

    Products 1, 2 and 4 come from supplier 1; product 3 from supplier 2.
    Product 4 has no French name and no price.
    """
    test_db.upsert_supplier("Asia Import", supplier_id=1)
    test_db.upsert_supplier("Primeurs de Rungis", supplier_id=2)

    test_db.upsert_restaurant("Le Lotus", "12 rue de la Paix, 75002 Paris", restaurant_id=1)
    test_db.upsert_restaurant("Jade Palace", "5 avenue de Choisy, 75013 Paris", restaurant_id=2)

    products = [
        (1, 1, "Riz", "大米", "Riz jasmin", "sac", 18.5),
        (2, 1, "Sauces", "酱油", "Sauce soja", "bouteille", 4.2),
        (3, 2, "Légumes", "白菜", "Chou chinois", "kg", 2.35),
        (4, 1, "Herbes", "香菜", None, "botte", None),
    ]
    for product_id, supplier_id, category, name_zh, name_fr, unit, price in products:
        test_db.upsert_product(
            {
                "supplier_id": supplier_id,
                "reference":   f"REF-{product_id:03d}",
                "category":    category,
                "name_zh":     name_zh,
                "name_fr":     name_fr,
                "unit":        unit,
                "price_ht":    price,
            },
            product_id=product_id,
        )

    test_db.upsert_user("admin@example.com", "ADMIN", ADMIN_TOKEN, name="Admin", user_id=1)
    test_db.upsert_user("chef@lotus.fr", "MANAGER", MANAGER_TOKEN, restaurant_id=1, user_id=2)
    test_db.upsert_user("commis@lotus.fr", "EMPLOYEE", EMPLOYEE_TOKEN, restaurant_id=1, user_id=3)
    test_db.upsert_user("chef@jade.fr", "MANAGER", MANAGER2_TOKEN, restaurant_id=2, user_id=4)
    test_db.upsert_user("nobody@example.com", "MANAGER", ORPHAN_TOKEN, user_id=5)
    return test_db


@pytest.fixture
def actors() -> dict:
    """Actors matching the seeded accounts."""
    from models.actor import Actor
    return {
        "admin":    Actor(id=1, role="ADMIN"),
        "manager":  Actor(id=2, role="MANAGER", restaurant_id=1),
        "employee": Actor(id=3, role="EMPLOYEE", restaurant_id=1),
        "manager2": Actor(id=4, role="MANAGER", restaurant_id=2),
        "orphan":   Actor(id=5, role="MANAGER"),
    }


@pytest.fixture
def order_service(test_config, seeded_catalog) -> "OrderService":
    """Provide an OrderService bound to the seeded test database."""
    from ordering.service import OrderService
    return OrderService(test_config, db=seeded_catalog)


@pytest.fixture
def order_request():
    """Build a CreateOrderRequest from (product_id, quantity) pairs."""
    from models.purchase_order import CreateOrderRequest, OrderItemIn

    def _build(items=((1, 2), (2, 3)), delivery_date="2025-06-15", restaurant_id=None):
        return CreateOrderRequest(
            delivery_date=delivery_date,
            items=[OrderItemIn(product_id=pid, quantity=qty) for pid, qty in items],
            restaurant_id=restaurant_id,
        )
    return _build


@pytest.fixture
def api_client(test_config, seeded_catalog):
    """Provide a FastAPI TestClient over the seeded database."""
    from fastapi.testclient import TestClient
    from api.app import create_app

    with TestClient(create_app(test_config)) as client:
        yield client


def auth(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def page_texts(pdf_path: Path) -> list[str]:
    """Text of every page, leaving out the large diagonal watermark."""
    import pdfplumber

    def _not_watermark(obj) -> bool:
        return obj.get("object_type") != "char" or obj.get("size", 0) < 40

    with pdfplumber.open(str(pdf_path)) as pdf:
        return [page.filter(_not_watermark).extract_text() or "" for page in pdf.pages]


# Configure pytest markers
def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "api: API tests")
