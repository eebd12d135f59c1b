"""
CSV import of reference data.

Loads the catalog and accounts from a directory of CSV files:

  suppliers.csv    id, name
  restaurants.csv  id, name, address
  products.csv     id, supplier_id, reference, category, name_zh, name_fr,
                   specification, unit, price_ht, image
  users.csv        id, email, name, role, restaurant_id, api_token

Rows are upserted by id, so re-importing the same files is harmless.
Missing files are skipped with a warning.
"""
import csv
import logging
from pathlib import Path
from typing import Optional

from models.actor import ALL_ROLES
from .database import Database

logger = logging.getLogger(__name__)


def _int(value: Optional[str]) -> Optional[int]:
    value = (value or "").strip()
    return int(value) if value else None


def _float(value: Optional[str]) -> Optional[float]:
    value = (value or "").strip().replace(",", ".")
    return float(value) if value else None


def _text(value: Optional[str]) -> Optional[str]:
    value = (value or "").strip()
    return value or None


def load_dicts(path: Path) -> list[dict]:
    """Load a CSV file as a list of dictionaries (empty if the file doesn't exist)."""
    if not path.exists():
        logger.warning("CSV file not found: %s", path)
        return []
    with open(path, newline="", encoding="utf-8-sig") as f:
        return list(csv.DictReader(f))


class CatalogImporter:
    """
    Imports reference data into the database.

    Usage:
        counts = CatalogImporter(db).import_directory(Path("data"))
    """

    def __init__(self, db: Database) -> None:
        self.db = db

    def import_directory(self, directory: Path) -> dict[str, int]:
        # Order matters: products reference suppliers, users reference restaurants.
        counts = {
            "suppliers":   self.import_suppliers(directory / "suppliers.csv"),
            "restaurants": self.import_restaurants(directory / "restaurants.csv"),
            "products":    self.import_products(directory / "products.csv"),
            "users":       self.import_users(directory / "users.csv"),
        }
        logger.info("Catalog import from %s: %s", directory, counts)
        return counts

    def import_suppliers(self, path: Path) -> int:
        rows = load_dicts(path)
        for row in rows:
            self.db.upsert_supplier(row["name"].strip(), supplier_id=_int(row.get("id")))
        return len(rows)

    def import_restaurants(self, path: Path) -> int:
        rows = load_dicts(path)
        for row in rows:
            self.db.upsert_restaurant(
                row["name"].strip(),
                (row.get("address") or "").strip(),
                restaurant_id=_int(row.get("id")),
            )
        return len(rows)

    def import_products(self, path: Path) -> int:
        rows = load_dicts(path)
        for row in rows:
            self.db.upsert_product(
                {
                    "supplier_id":   _int(row.get("supplier_id")) or 1,
                    "reference":     _text(row.get("reference")),
                    "category":      (row.get("category") or "").strip(),
                    "name_zh":       (row.get("name_zh") or "").strip(),
                    "name_fr":       _text(row.get("name_fr")),
                    "specification": _text(row.get("specification")),
                    "unit":          _text(row.get("unit")),
                    "price_ht":      _float(row.get("price_ht")),
                    "image":         _text(row.get("image")),
                },
                product_id=_int(row.get("id")),
            )
        return len(rows)

    def import_users(self, path: Path) -> int:
        rows = load_dicts(path)
        imported = 0
        for row in rows:
            role = (row.get("role") or "EMPLOYEE").strip().upper()
            if role not in ALL_ROLES:
                logger.warning("Skipping user %s: unknown role %r", row.get("email"), role)
                continue
            self.db.upsert_user(
                email=row["email"].strip(),
                role=role,
                api_token=_text(row.get("api_token")),
                name=_text(row.get("name")),
                restaurant_id=_int(row.get("restaurant_id")),
                user_id=_int(row.get("id")),
            )
            imported += 1
        return imported
