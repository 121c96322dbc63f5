from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass, replace
from typing import Optional

from pos.db import q, transaction, x
from pos.errors import InsufficientStock, NotFound, RemoteWriteFailure, ValidationError
from pos.models import MOVEMENT_TYPES, InventoryMovement, Product
from pos.utils import iso_now, money

logger = logging.getLogger(__name__)

MANUAL_MOVEMENT_TYPES = ("entry", "exit", "adjustment")


@dataclass(frozen=True)
class InventoryStats:
    total_products: int
    total_units: int
    stock_value: float
    low_stock_count: int


def _normalize_movement_type(movement_type: str, allowed=MOVEMENT_TYPES) -> str:
    mt = str(movement_type or "").strip().lower()
    if mt in allowed:
        return mt
    raise ValidationError(f"Invalid movement type. Use one of: {', '.join(allowed)}.")


def _current_stock(conn, product_id: int) -> tuple[str, int]:
    rows = q(conn, "SELECT name, stock FROM products WHERE id=?", (int(product_id),))
    if not rows:
        raise NotFound("Product not found.")
    return str(rows[0]["name"]), int(rows[0]["stock"])


def record_inventory_movement(conn, movement: InventoryMovement, *, commit: bool = True) -> int:
    """Append a movement record. Stock itself is updated by the caller."""
    mt = _normalize_movement_type(movement.movement_type)
    try:
        return x(
            conn,
            """
            INSERT INTO inventory_movements (
                product_id, movement_type, quantity, previous_stock, new_stock,
                notes, reference_id, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                int(movement.product_id),
                mt,
                int(movement.quantity),
                int(movement.previous_stock),
                int(movement.new_stock),
                movement.notes,
                movement.reference_id,
                movement.created_at or iso_now(),
            ),
            commit=commit,
        )
    except sqlite3.Error as e:
        if commit:
            conn.rollback()
        logger.exception("Movement insert failed for product %s", movement.product_id)
        raise RemoteWriteFailure("Could not record the inventory movement.") from e


def _apply_in_transaction(
    conn,
    *,
    product_id: int,
    movement_type: str,
    quantity: int,
    notes: Optional[str],
    reference_id: Optional[int] = None,
) -> InventoryMovement:
    """Update stock and append the movement. Caller owns the transaction."""
    name, previous = _current_stock(conn, product_id)

    if movement_type == "entry":
        new_stock = previous + quantity
    elif movement_type == "adjustment":
        # Stocktake: quantity is the counted on-hand figure.
        new_stock = quantity
    else:
        if quantity > previous:
            raise InsufficientStock(name, available=previous, requested=quantity)
        new_stock = previous - quantity

    x(
        conn,
        "UPDATE products SET stock=?, updated_at=? WHERE id=?",
        (int(new_stock), iso_now(), int(product_id)),
        commit=False,
    )
    movement = InventoryMovement(
        product_id=int(product_id),
        product_name=name,
        movement_type=movement_type,
        quantity=int(quantity),
        previous_stock=int(previous),
        new_stock=int(new_stock),
        notes=notes,
        reference_id=reference_id,
        created_at=iso_now(),
    )
    movement_id = record_inventory_movement(conn, movement, commit=False)
    return replace(movement, id=movement_id)


def apply_stock_movement(
    conn,
    product_id: int,
    movement_type: str,
    quantity: int,
    notes: Optional[str] = None,
) -> InventoryMovement:
    """
    Manual inventory flow: entry adds units, exit removes them (never below
    zero), adjustment sets the counted stock.
    """
    mt = _normalize_movement_type(movement_type, MANUAL_MOVEMENT_TYPES)
    try:
        qty = int(quantity)
    except (TypeError, ValueError):
        raise ValidationError("Quantity must be a whole number.")
    if mt == "adjustment":
        if qty < 0:
            raise ValidationError("Counted stock cannot be negative.")
    elif qty <= 0:
        raise ValidationError("Quantity must be > 0.")

    notes = (str(notes).strip() or None) if notes is not None else None

    try:
        with transaction(conn):
            movement = _apply_in_transaction(conn, product_id=product_id, movement_type=mt, quantity=qty, notes=notes)
    except sqlite3.Error as e:
        logger.exception("Stock movement failed for product %s", product_id)
        raise RemoteWriteFailure("Could not record the inventory movement.") from e

    logger.info(
        "Stock %s of %d for product %s: %d -> %d",
        mt, qty, product_id, movement.previous_stock, movement.new_stock,
    )
    return movement


def apply_sale_movements(conn, movements, sale_id: int) -> list[InventoryMovement]:
    """Decrement stock for sold lines inside an open checkout transaction."""
    out = []
    for m in movements:
        out.append(
            _apply_in_transaction(
                conn,
                product_id=m.product_id,
                movement_type="sale",
                quantity=int(m.quantity),
                notes=None,
                reference_id=int(sale_id),
            )
        )
    return out


def list_movements(conn, *, product_id: Optional[int] = None, limit: int = 25) -> list[InventoryMovement]:
    where = "WHERE m.product_id=?" if product_id is not None else ""
    params = ((int(product_id),) if product_id is not None else ()) + (int(limit),)
    rows = q(
        conn,
        f"""
        SELECT m.*, p.name AS product_name
        FROM inventory_movements m
        JOIN products p ON p.id = m.product_id
        {where}
        ORDER BY m.id DESC
        LIMIT ?
        """,
        params,
    )
    return [InventoryMovement.from_row(r) for r in rows]


def inventory_stats(products: list[Product]) -> InventoryStats:
    return InventoryStats(
        total_products=len(products),
        total_units=sum(int(p.stock) for p in products),
        stock_value=money(sum(p.stock * p.purchase_price for p in products)),
        low_stock_count=sum(1 for p in products if p.is_low_stock),
    )
