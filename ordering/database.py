"""
SQLite persistence layer for the back office.

One database file (output/backoffice.db) holds the reference data (suppliers,
restaurants, users, products), the purchase orders with their snapshot lines,
and an append-only audit log.

Order creation runs in a single transaction: the header is inserted with a
placeholder number, the real number (which embeds the generated id) is
assigned, and the snapshot lines are inserted before the commit.  A failure
anywhere rolls the whole order back.
"""
import json
import logging
import sqlite3
import uuid
from contextlib import contextmanager
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Iterable, Optional

from .pricing import PricedOrder, build_file_name, build_order_number

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS suppliers (
    id    INTEGER PRIMARY KEY AUTOINCREMENT,
    name  TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS restaurants (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    name        TEXT NOT NULL UNIQUE,
    address     TEXT NOT NULL,
    created_at  TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS users (
    id             INTEGER PRIMARY KEY AUTOINCREMENT,
    email          TEXT NOT NULL UNIQUE,
    name           TEXT,
    role           TEXT NOT NULL DEFAULT 'EMPLOYEE',   -- ADMIN | MANAGER | EMPLOYEE
    restaurant_id  INTEGER REFERENCES restaurants (id) ON DELETE SET NULL,
    api_token      TEXT UNIQUE,
    created_at     TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_users_restaurant ON users (restaurant_id);

CREATE TABLE IF NOT EXISTS products (
    id             INTEGER PRIMARY KEY AUTOINCREMENT,
    supplier_id    INTEGER NOT NULL,
    reference      TEXT,
    category       TEXT NOT NULL,
    name_zh        TEXT NOT NULL,
    name_fr        TEXT,
    specification  TEXT,
    unit           TEXT,
    price_ht       REAL,
    image          TEXT
);

CREATE INDEX IF NOT EXISTS idx_products_supplier ON products (supplier_id);

CREATE TABLE IF NOT EXISTS purchase_orders (
    id                  INTEGER PRIMARY KEY AUTOINCREMENT,
    number              TEXT NOT NULL UNIQUE,
    supplier_id         INTEGER NOT NULL REFERENCES suppliers (id),
    restaurant_id       INTEGER NOT NULL REFERENCES restaurants (id),
    created_by_user_id  INTEGER NOT NULL REFERENCES users (id),
    delivery_date       TEXT NOT NULL,      -- YYYY-MM-DD
    delivery_address    TEXT NOT NULL,
    total_items         INTEGER NOT NULL,
    total_amount        REAL NOT NULL,
    bon_file_name       TEXT NOT NULL,
    created_at          TEXT NOT NULL       -- ISO-8601 UTC
);

CREATE INDEX IF NOT EXISTS idx_orders_restaurant ON purchase_orders (restaurant_id, created_at DESC);
CREATE INDEX IF NOT EXISTS idx_orders_supplier   ON purchase_orders (supplier_id, created_at DESC);

CREATE TABLE IF NOT EXISTS purchase_order_items (
    id                 INTEGER PRIMARY KEY AUTOINCREMENT,
    purchase_order_id  INTEGER NOT NULL REFERENCES purchase_orders (id) ON DELETE CASCADE,
    product_id         INTEGER NOT NULL REFERENCES products (id),
    supplier_id        INTEGER NOT NULL,
    quantity           INTEGER NOT NULL,
    unit_price_ht      REAL NOT NULL,
    line_total         REAL NOT NULL,
    -- Snapshot of the catalog at order time
    name_zh            TEXT NOT NULL,
    name_fr            TEXT,
    unit               TEXT,
    category           TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_items_order   ON purchase_order_items (purchase_order_id);
CREATE INDEX IF NOT EXISTS idx_items_product ON purchase_order_items (product_id);

CREATE TABLE IF NOT EXISTS audit_log (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    order_id    INTEGER NOT NULL,
    timestamp   TEXT    NOT NULL,   -- ISO-8601 UTC
    action      TEXT    NOT NULL,   -- order_created | pdf_generated | order_deleted
    actor       TEXT    NOT NULL DEFAULT 'system',  -- user id or 'system'
    detail      TEXT                -- optional JSON blob with action-specific context
);

CREATE INDEX IF NOT EXISTS idx_audit_order     ON audit_log (order_id);
CREATE INDEX IF NOT EXISTS idx_audit_timestamp ON audit_log (timestamp DESC);
"""

_PRODUCT_COLUMNS = (
    "supplier_id", "reference", "category", "name_zh", "name_fr",
    "specification", "unit", "price_ht", "image",
)

_ORDER_SELECT = """
    SELECT o.*, s.name AS supplier_name, r.name AS restaurant_name
    FROM purchase_orders o
    JOIN suppliers   s ON s.id = o.supplier_id
    JOIN restaurants r ON r.id = o.restaurant_id
"""


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class Database:
    """Thin wrapper around an SQLite database file for back-office state."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path
        db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    # ------------------------------------------------------------------
    # Connection management
    # ------------------------------------------------------------------

    @contextmanager
    def _conn(self):
        conn = sqlite3.connect(str(self.db_path), timeout=30)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA synchronous=NORMAL")
        conn.execute("PRAGMA foreign_keys=ON")
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_schema(self) -> None:
        with self._conn() as conn:
            conn.executescript(_SCHEMA)
        logger.debug("Database schema ready: %s", self.db_path)

    def ping(self) -> bool:
        with self._conn() as conn:
            return conn.execute("SELECT 1").fetchone()[0] == 1

    # ------------------------------------------------------------------
    # Suppliers
    # ------------------------------------------------------------------

    def upsert_supplier(self, name: str, supplier_id: Optional[int] = None) -> int:
        with self._conn() as conn:
            cur = conn.execute(
                """INSERT INTO suppliers (id, name) VALUES (?, ?)
                   ON CONFLICT(id) DO UPDATE SET name = excluded.name""",
                (supplier_id, name),
            )
            return supplier_id or cur.lastrowid

    def get_supplier(self, supplier_id: int) -> Optional[dict]:
        with self._conn() as conn:
            row = conn.execute("SELECT * FROM suppliers WHERE id=?", (supplier_id,)).fetchone()
        return dict(row) if row else None

    def list_suppliers(self) -> list[dict]:
        with self._conn() as conn:
            rows = conn.execute("SELECT * FROM suppliers ORDER BY name ASC").fetchall()
        return [dict(r) for r in rows]

    # ------------------------------------------------------------------
    # Restaurants
    # ------------------------------------------------------------------

    def upsert_restaurant(self, name: str, address: str, restaurant_id: Optional[int] = None) -> int:
        with self._conn() as conn:
            cur = conn.execute(
                """INSERT INTO restaurants (id, name, address, created_at) VALUES (?, ?, ?, ?)
                   ON CONFLICT(id) DO UPDATE SET
                       name    = excluded.name,
                       address = excluded.address""",
                (restaurant_id, name, address, _now()),
            )
            return restaurant_id or cur.lastrowid

    def get_restaurant(self, restaurant_id: int) -> Optional[dict]:
        with self._conn() as conn:
            row = conn.execute("SELECT * FROM restaurants WHERE id=?", (restaurant_id,)).fetchone()
        return dict(row) if row else None

    def find_restaurant_by_name(self, name: str) -> Optional[dict]:
        with self._conn() as conn:
            row = conn.execute("SELECT * FROM restaurants WHERE name=?", (name,)).fetchone()
        return dict(row) if row else None

    def list_restaurants(self) -> list[dict]:
        with self._conn() as conn:
            rows = conn.execute("SELECT * FROM restaurants ORDER BY name ASC").fetchall()
        return [dict(r) for r in rows]

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def upsert_user(
        self,
        email: str,
        role: str,
        api_token: Optional[str],
        name: Optional[str] = None,
        restaurant_id: Optional[int] = None,
        user_id: Optional[int] = None,
    ) -> int:
        with self._conn() as conn:
            cur = conn.execute(
                """INSERT INTO users (id, email, name, role, restaurant_id, api_token, created_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?)
                   ON CONFLICT(id) DO UPDATE SET
                       email         = excluded.email,
                       name          = excluded.name,
                       role          = excluded.role,
                       restaurant_id = excluded.restaurant_id,
                       api_token     = excluded.api_token""",
                (user_id, email, name, role, restaurant_id, api_token, _now()),
            )
            return user_id or cur.lastrowid

    def get_user(self, user_id: int) -> Optional[dict]:
        with self._conn() as conn:
            row = conn.execute("SELECT * FROM users WHERE id=?", (user_id,)).fetchone()
        return dict(row) if row else None

    def get_user_by_token(self, api_token: str) -> Optional[dict]:
        with self._conn() as conn:
            row = conn.execute("SELECT * FROM users WHERE api_token=?", (api_token,)).fetchone()
        return dict(row) if row else None

    def list_unassigned_users(self, role: str = "EMPLOYEE") -> list[dict]:
        """Users of *role* with no restaurant, oldest account first."""
        with self._conn() as conn:
            rows = conn.execute(
                """SELECT * FROM users
                   WHERE restaurant_id IS NULL AND role = ?
                   ORDER BY created_at ASC, id ASC""",
                (role,),
            ).fetchall()
        return [dict(r) for r in rows]

    def update_user(self, user_id: int, changes: dict) -> bool:
        """Set role and/or restaurant_id.  Unknown keys are ignored."""
        changes = {k: v for k, v in changes.items() if k in ("role", "restaurant_id", "name")}
        if not changes:
            return self.get_user(user_id) is not None
        assignments = ", ".join(f"{col}=?" for col in changes)
        with self._conn() as conn:
            conn.execute(
                f"UPDATE users SET {assignments} WHERE id=?",
                [*changes.values(), user_id],
            )
            return conn.execute("SELECT changes()").fetchone()[0] > 0

    # ------------------------------------------------------------------
    # Products
    # ------------------------------------------------------------------

    def upsert_product(self, fields: dict, product_id: Optional[int] = None) -> int:
        values = [fields.get(col) for col in _PRODUCT_COLUMNS]
        updates = ", ".join(f"{col} = excluded.{col}" for col in _PRODUCT_COLUMNS)
        with self._conn() as conn:
            cur = conn.execute(
                f"""INSERT INTO products (id, {", ".join(_PRODUCT_COLUMNS)})
                    VALUES (?, {", ".join("?" for _ in _PRODUCT_COLUMNS)})
                    ON CONFLICT(id) DO UPDATE SET {updates}""",
                [product_id, *values],
            )
            return product_id or cur.lastrowid

    def get_product(self, product_id: int) -> Optional[dict]:
        with self._conn() as conn:
            row = conn.execute("SELECT * FROM products WHERE id=?", (product_id,)).fetchone()
        return dict(row) if row else None

    def get_products(self, product_ids: Iterable[int]) -> dict[int, dict]:
        """Return {id: product row} for the ids that exist."""
        ids = list(product_ids)
        if not ids:
            return {}
        placeholders = ", ".join("?" for _ in ids)
        with self._conn() as conn:
            rows = conn.execute(
                f"SELECT * FROM products WHERE id IN ({placeholders})", ids
            ).fetchall()
        return {r["id"]: dict(r) for r in rows}

    def list_products(self) -> list[dict]:
        with self._conn() as conn:
            rows = conn.execute("SELECT * FROM products ORDER BY id ASC").fetchall()
        return [dict(r) for r in rows]

    def update_product(self, product_id: int, changes: dict) -> bool:
        """Apply a partial update.  Unknown keys are ignored."""
        changes = {k: v for k, v in changes.items() if k in _PRODUCT_COLUMNS}
        if not changes:
            return self.get_product(product_id) is not None
        assignments = ", ".join(f"{col}=?" for col in changes)
        with self._conn() as conn:
            conn.execute(
                f"UPDATE products SET {assignments} WHERE id=?",
                [*changes.values(), product_id],
            )
            return conn.execute("SELECT changes()").fetchone()[0] > 0

    def delete_product(self, product_id: int) -> bool:
        """
        Delete a product.  Raises sqlite3.IntegrityError when order lines
        still reference it.
        """
        with self._conn() as conn:
            conn.execute("DELETE FROM products WHERE id=?", (product_id,))
            return conn.execute("SELECT changes()").fetchone()[0] > 0

    # ------------------------------------------------------------------
    # Purchase orders
    # ------------------------------------------------------------------

    def create_order(
        self,
        priced: PricedOrder,
        restaurant_id: int,
        created_by_user_id: int,
        delivery_date: date,
        delivery_address: str,
        created_at: Optional[datetime] = None,
    ) -> int:
        """
        Insert an order header and its snapshot lines atomically.

        Returns the new order id.  The number and PDF file name are derived
        from the generated id before the transaction commits.
        """
        created_at = created_at or datetime.now(timezone.utc)

        with self._conn() as conn:
            cur = conn.execute(
                """
                INSERT INTO purchase_orders (
                    number, supplier_id, restaurant_id, created_by_user_id,
                    delivery_date, delivery_address,
                    total_items, total_amount, bon_file_name, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, 'pending.pdf', ?)
                """,
                (
                    f"PO-TMP-{uuid.uuid4().hex}",
                    priced.supplier_id,
                    restaurant_id,
                    created_by_user_id,
                    delivery_date.isoformat(),
                    delivery_address,
                    priced.total_items,
                    float(priced.total_amount),
                    created_at.isoformat(),
                ),
            )
            order_id = cur.lastrowid
            number = build_order_number(order_id, created_at)

            conn.execute(
                "UPDATE purchase_orders SET number=?, bon_file_name=? WHERE id=?",
                (number, build_file_name(number), order_id),
            )
            conn.executemany(
                """
                INSERT INTO purchase_order_items (
                    purchase_order_id, product_id, supplier_id, quantity,
                    unit_price_ht, line_total,
                    name_zh, name_fr, unit, category
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    (
                        order_id,
                        line.product.id,
                        priced.supplier_id,
                        line.quantity,
                        float(line.unit_price),
                        float(line.line_total),
                        line.product.name_zh,
                        line.product.name_fr,
                        line.product.unit,
                        line.product.category,
                    )
                    for line in priced.lines
                ],
            )

        logger.info("DB created order %s (id=%d, %d lines)", number, order_id, len(priced.lines))
        return order_id

    def get_order(self, order_id: int) -> Optional[dict]:
        """Return the order header (with supplier/restaurant names) and its items, or None."""
        with self._conn() as conn:
            row = conn.execute(f"{_ORDER_SELECT} WHERE o.id=?", (order_id,)).fetchone()
            if row is None:
                return None
            items = conn.execute(
                "SELECT * FROM purchase_order_items WHERE purchase_order_id=? ORDER BY id ASC",
                (order_id,),
            ).fetchall()
        order = dict(row)
        order["items"] = [dict(i) for i in items]
        return order

    def list_orders(self, restaurant_id: Optional[int] = None) -> list[dict]:
        """
        Return order headers newest-first.

        Args:
            restaurant_id:  Restrict to one restaurant, or None for all.
        """
        where = "WHERE o.restaurant_id = ?" if restaurant_id is not None else ""
        params = [restaurant_id] if restaurant_id is not None else []
        with self._conn() as conn:
            rows = conn.execute(
                f"{_ORDER_SELECT} {where} ORDER BY o.created_at DESC, o.id DESC",
                params,
            ).fetchall()
        return [dict(r) for r in rows]

    def delete_order(self, order_id: int) -> bool:
        """Delete an order header; its items go with it (ON DELETE CASCADE)."""
        with self._conn() as conn:
            conn.execute("DELETE FROM purchase_orders WHERE id = ?", (order_id,))
            return conn.execute("SELECT changes()").fetchone()[0] > 0

    def order_exists(self, order_id: int) -> bool:
        with self._conn() as conn:
            return conn.execute(
                "SELECT 1 FROM purchase_orders WHERE id=?", (order_id,)
            ).fetchone() is not None

    def count_order_items(self, order_id: int) -> int:
        with self._conn() as conn:
            return conn.execute(
                "SELECT COUNT(*) FROM purchase_order_items WHERE purchase_order_id=?",
                (order_id,),
            ).fetchone()[0]

    # ------------------------------------------------------------------
    # Audit log
    # ------------------------------------------------------------------

    def log_audit(
        self,
        order_id: int,
        action: str,
        actor: str = "system",
        detail: Optional[dict] = None,
    ) -> None:
        """Append one entry to the audit log."""
        with self._conn() as conn:
            conn.execute(
                """INSERT INTO audit_log (order_id, timestamp, action, actor, detail)
                   VALUES (?, ?, ?, ?, ?)""",
                (
                    order_id,
                    _now(),
                    action,
                    actor,
                    json.dumps(detail) if detail is not None else None,
                ),
            )

    def get_audit_log(self, order_id: int) -> list[dict]:
        """Return all audit entries for one order, oldest first."""
        with self._conn() as conn:
            rows = conn.execute(
                """SELECT id, timestamp, action, actor, detail
                   FROM audit_log WHERE order_id = ?
                   ORDER BY timestamp ASC, id ASC""",
                (order_id,),
            ).fetchall()
        return [dict(r) for r in rows]
