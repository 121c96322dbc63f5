from __future__ import annotations

import logging
import sqlite3
from typing import Any, Optional

from pos.db import q, x
from pos.errors import NotFound, RemoteWriteFailure, ValidationError
from pos.models import Category, Product
from pos.utils import iso_now

logger = logging.getLogger(__name__)

SEARCH_LIMIT = 20

_PRODUCT_SELECT = """
    SELECT p.*, c.name AS category_name
    FROM products p
    LEFT JOIN categories c ON c.id = p.category_id
"""

_EDITABLE_FIELDS = (
    "barcode",
    "name",
    "description",
    "category_id",
    "purchase_price",
    "sale_price",
    "wholesale_price",
    "wholesale_min_qty",
    "stock",
    "min_stock",
    "is_active",
)


def _clean_text(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    s = str(v).strip()
    return s if s else None


def _non_negative_float(v: Any, what: str) -> float:
    try:
        f = float(v)
    except (TypeError, ValueError):
        raise ValidationError(f"{what} must be a number.")
    if f < 0:
        raise ValidationError(f"{what} must be >= 0.")
    return f


def _whole_number(v: Any, what: str, *, minimum: int = 0) -> int:
    if isinstance(v, bool):
        raise ValidationError(f"{what} must be a whole number.")
    try:
        n = int(v)
    except (TypeError, ValueError):
        raise ValidationError(f"{what} must be a whole number.")
    if n != v and str(n) != str(v).strip():
        raise ValidationError(f"{what} must be a whole number.")
    if n < minimum:
        raise ValidationError(f"{what} must be >= {minimum}.")
    return n


def _normalize_product_fields(fields: dict[str, Any]) -> dict[str, Any]:
    """Validate and coerce a product payload; unknown keys are rejected."""
    unknown = set(fields) - set(_EDITABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Unknown product field(s): {', '.join(sorted(unknown))}.")

    out: dict[str, Any] = {}
    for key, v in fields.items():
        if key in {"barcode", "description"}:
            out[key] = _clean_text(v)
        elif key == "name":
            name = _clean_text(v)
            if not name:
                raise ValidationError("Product name is required.")
            out[key] = name
        elif key in {"purchase_price", "sale_price"}:
            out[key] = _non_negative_float(v, key.replace("_", " ").capitalize())
        elif key == "wholesale_price":
            out[key] = None if v in (None, "", 0, 0.0) else _non_negative_float(v, "Wholesale price")
        elif key == "wholesale_min_qty":
            out[key] = None if v in (None, "", 0) else _whole_number(v, "Wholesale minimum quantity", minimum=1)
        elif key == "min_stock":
            out[key] = None if v in (None, "", 0) else _whole_number(v, "Minimum stock")
        elif key == "category_id":
            out[key] = None if v in (None, "", 0) else _whole_number(v, "Category", minimum=1)
        elif key == "stock":
            out[key] = _whole_number(v, "Stock")
        elif key == "is_active":
            out[key] = 1 if v else 0

    if "sale_price" in out and out["sale_price"] <= 0:
        raise ValidationError("Sale price must be > 0.")
    return out


def find_product_by_barcode(conn, code: str) -> Optional[Product]:
    code = _clean_text(code)
    if not code:
        return None
    rows = q(conn, _PRODUCT_SELECT + " WHERE p.barcode=? AND p.is_active=1", (code,))
    return Product.from_row(rows[0]) if rows else None


def search_products(conn, query: str, limit: int = SEARCH_LIMIT) -> list[Product]:
    """Case-insensitive substring match on name or barcode (active products only)."""
    needle = f"%{str(query or '').strip().lower()}%"
    rows = q(
        conn,
        _PRODUCT_SELECT
        + """
        WHERE p.is_active=1
          AND (LOWER(p.name) LIKE ? OR LOWER(COALESCE(p.barcode, '')) LIKE ?)
        ORDER BY p.name
        LIMIT ?
        """,
        (needle, needle, int(limit)),
    )
    return [Product.from_row(r) for r in rows]


def list_products(conn, *, category_id: Optional[int] = None, include_inactive: bool = False) -> list[Product]:
    where = ["1=1"]
    params: list[Any] = []
    if not include_inactive:
        where.append("p.is_active=1")
    if category_id is not None:
        where.append("p.category_id=?")
        params.append(int(category_id))
    rows = q(conn, _PRODUCT_SELECT + f" WHERE {' AND '.join(where)} ORDER BY p.name", params)
    return [Product.from_row(r) for r in rows]


def get_product(conn, product_id: int) -> Product:
    rows = q(conn, _PRODUCT_SELECT + " WHERE p.id=?", (int(product_id),))
    if not rows:
        raise NotFound("Product not found.")
    return Product.from_row(rows[0])


def low_stock_products(conn) -> list[Product]:
    return [p for p in list_products(conn) if p.is_low_stock]


def create_product(conn, **fields: Any) -> Product:
    if "name" not in fields or "sale_price" not in fields:
        raise ValidationError("Product name and sale price are required.")
    data = _normalize_product_fields(fields)
    data.setdefault("is_active", 1)
    data.setdefault("stock", 0)

    now = iso_now()
    cols = list(data) + ["created_at", "updated_at"]
    vals = list(data.values()) + [now, now]
    try:
        product_id = x(
            conn,
            f"INSERT INTO products ({', '.join(cols)}) VALUES ({', '.join('?' for _ in cols)})",
            vals,
        )
    except sqlite3.IntegrityError as e:
        conn.rollback()
        raise ValidationError(f"Could not save product: {e}") from e
    except sqlite3.Error as e:
        conn.rollback()
        logger.exception("Product insert failed")
        raise RemoteWriteFailure("Could not create the product.") from e

    logger.info("Created product %s (%s)", product_id, data.get("name"))
    return get_product(conn, product_id)


def update_product(conn, product_id: int, **updates: Any) -> Product:
    get_product(conn, product_id)
    data = _normalize_product_fields(updates)
    if not data:
        return get_product(conn, product_id)

    assignments = ", ".join(f"{k}=?" for k in data) + ", updated_at=?"
    try:
        x(conn, f"UPDATE products SET {assignments} WHERE id=?", list(data.values()) + [iso_now(), int(product_id)])
    except sqlite3.IntegrityError as e:
        conn.rollback()
        raise ValidationError(f"Could not save product: {e}") from e
    except sqlite3.Error as e:
        conn.rollback()
        logger.exception("Product update failed")
        raise RemoteWriteFailure("Could not update the product.") from e

    return get_product(conn, product_id)


def deactivate_product(conn, product_id: int) -> None:
    """Soft delete: the product stays referenced by past sales."""
    update_product(conn, product_id, is_active=False)
    logger.info("Deactivated product %s", product_id)


def list_categories(conn) -> list[Category]:
    return [Category.from_row(r) for r in q(conn, "SELECT * FROM categories ORDER BY name")]


def create_category(conn, name: str, description: Optional[str] = None) -> Category:
    name = _clean_text(name)
    if not name:
        raise ValidationError("Category name is required.")
    try:
        cat_id = x(
            conn,
            "INSERT INTO categories (name, description, created_at) VALUES (?, ?, ?)",
            (name, _clean_text(description), iso_now()),
        )
    except sqlite3.IntegrityError as e:
        conn.rollback()
        raise ValidationError(f"Category '{name}' already exists.") from e
    return Category(id=cat_id, name=name, description=_clean_text(description))
