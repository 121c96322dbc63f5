from __future__ import annotations

import logging
import random

from pos.db import q, x, ensure_schema
from pos.models import Ticket
from pos.services import ticket as engine
from pos.services.customers import create_customer, get_customer
from pos.services.products import create_product
from pos.services.sales import complete_checkout

logger = logging.getLogger(__name__)

DEFAULT_CATEGORIES = ["Beverages", "Snacks", "Groceries", "Cleaning"]

# (barcode, name, category, purchase, sale, wholesale, wholesale_min, stock, min_stock)
DEMO_PRODUCTS = [
    ("7501000000011", "Cola 600ml", "Beverages", 9.5, 15.0, 13.0, 12, 48, 10),
    ("7501000000028", "Mineral Water 1L", "Beverages", 6.0, 10.0, 8.0, 10, 60, 12),
    ("7501000000035", "Potato Chips 45g", "Snacks", 8.0, 13.0, None, None, 30, 8),
    ("7501000000042", "Chocolate Bar", "Snacks", 7.0, 12.0, 10.0, 20, 40, 10),
    ("7501000000059", "Rice 1kg", "Groceries", 18.0, 26.0, 23.0, 10, 25, 5),
    ("7501000000066", "Black Beans 1kg", "Groceries", 22.0, 32.0, None, None, 4, 5),
    ("7501000000073", "Cooking Oil 1L", "Groceries", 28.0, 39.0, 35.0, 6, 15, 5),
    ("7501000000080", "Dish Soap 750ml", "Cleaning", 17.0, 25.0, None, None, 3, 4),
]

DEMO_CUSTOMERS = [
    ("Maria Lopez", "555-0101", 1500.0),
    ("Corner Cafe", "555-0102", 5000.0),
    ("Jose Ramirez", "555-0103", 800.0),
]


def upsert_reference_data(conn) -> None:
    ensure_schema(conn)
    for name in DEFAULT_CATEGORIES:
        x(conn, "INSERT OR IGNORE INTO categories(name, created_at) VALUES (?, datetime('now'))", (name,))


def wipe_all(conn) -> None:
    # Keep schema, delete data (order matters for FKs).
    for t in ["credit_payments", "inventory_movements", "sale_items", "sales", "customers", "products", "categories"]:
        conn.execute(f"DELETE FROM {t};")
    conn.commit()
    logger.warning("All POS data wiped")


def load_demo_data(conn, *, seed: int = 7) -> None:
    rng = random.Random(seed)
    upsert_reference_data(conn)

    categories = {str(r["name"]): int(r["id"]) for r in q(conn, "SELECT id, name FROM categories")}

    products = []
    for barcode, name, cat, purchase, sale, wholesale, wmin, stock, min_stock in DEMO_PRODUCTS:
        if q(conn, "SELECT 1 FROM products WHERE barcode=?", (barcode,)):
            continue
        products.append(
            create_product(
                conn,
                barcode=barcode,
                name=name,
                category_id=categories[cat],
                purchase_price=purchase,
                sale_price=sale,
                wholesale_price=wholesale,
                wholesale_min_qty=wmin,
                stock=stock,
                min_stock=min_stock,
            )
        )

    customers = [
        create_customer(conn, name=name, phone=phone, credit_limit=limit)
        for name, phone, limit in DEMO_CUSTOMERS
    ]

    # A handful of completed tickets so Reports has something to show.
    sellable = [p for p in products if p.stock >= 5]
    for i in range(6):
        if not sellable:
            break
        ticket = Ticket()
        for p in rng.sample(sellable, k=min(3, len(sellable))):
            engine.add_line(ticket, p, rng.randint(1, 3))
        total = engine.compute_totals(ticket).total

        method = rng.choice(["cash", "cash", "card", "credit"])
        if method == "credit" and customers:
            engine.attach_customer(ticket, get_customer(conn, rng.choice(customers).id))
        received = float(int(total) + 10) if method == "cash" else 0.0
        complete_checkout(conn, ticket, method, received)

    logger.info("Demo data loaded (%d products, %d customers)", len(products), len(customers))
