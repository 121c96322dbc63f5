from __future__ import annotations

import logging
import sqlite3
from dataclasses import replace
from datetime import date, datetime, timezone
from typing import Iterable, Optional, Union

from pos.db import q, transaction, x
from pos.errors import NotFound, RemoteWriteFailure
from pos.models import Sale, SaleItem, Ticket
from pos.services import ticket as engine
from pos.services.customers import charge_customer_balance
from pos.services.inventory import apply_sale_movements
from pos.utils import day_bounds, iso_now

logger = logging.getLogger(__name__)

_SALE_SELECT = """
    SELECT s.*, c.name AS customer_name
    FROM sales s
    LEFT JOIN customers c ON c.id = s.customer_id
"""


def _next_ticket_number(conn) -> int:
    r = q(conn, "SELECT COALESCE(MAX(ticket_number), 0) + 1 AS n FROM sales")
    return int(r[0]["n"])


def _insert_sale(conn, sale: Sale, items: Iterable[SaleItem]) -> Sale:
    """Header then items, without committing. Caller owns the transaction."""
    ticket_number = _next_ticket_number(conn)
    created_at = sale.created_at or iso_now()

    sale_id = x(
        conn,
        """
        INSERT INTO sales (
            ticket_number, customer_id, subtotal, discount, tax, total,
            payment_received, change_given, payment_method, is_credit, status, created_at
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            ticket_number,
            sale.customer_id,
            float(sale.subtotal),
            float(sale.discount),
            float(sale.tax),
            float(sale.total),
            float(sale.payment_received),
            float(sale.change_given),
            str(sale.payment_method),
            1 if sale.is_credit else 0,
            str(sale.status),
            created_at,
        ),
        commit=False,
    )

    saved_items = []
    for it in items:
        x(
            conn,
            """
            INSERT INTO sale_items (sale_id, product_id, quantity, unit_price, discount, subtotal)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (int(sale_id), int(it.product_id), int(it.quantity), float(it.unit_price), float(it.discount), float(it.subtotal)),
            commit=False,
        )
        saved_items.append(replace(it, sale_id=int(sale_id)))

    return replace(sale, id=int(sale_id), ticket_number=ticket_number, created_at=created_at, items=tuple(saved_items))


def create_sale(conn, sale: Sale, items: Iterable[SaleItem]) -> Sale:
    """Write a sale header and its items as one unit."""
    try:
        with transaction(conn):
            saved = _insert_sale(conn, sale, items)
    except sqlite3.Error as e:
        logger.exception("Sale write failed")
        raise RemoteWriteFailure("Could not save the sale.") from e
    logger.info("Sale #%s saved: total %.2f (%s)", saved.ticket_number, saved.total, saved.payment_method)
    return saved


def complete_checkout(
    conn,
    ticket: Ticket,
    payment_method: str,
    amount_received: float,
    *,
    stock_on_checkout: bool = False,
) -> Sale:
    """
    Persist a checkout: sale header, items, credit balance, and (when enabled)
    stock movements, all in one transaction.

    The ticket is cleared only after a successful commit. On failure it is left
    untouched so the cashier can retry.
    """
    draft = engine.checkout(
        ticket,
        ticket.customer,
        payment_method,
        amount_received,
        record_stock=stock_on_checkout,
    )

    balance = None
    try:
        with transaction(conn):
            saved = _insert_sale(conn, draft.sale, draft.items)
            if draft.balance_delta is not None:
                # Another session may have moved the balance since the customer was attached.
                balance = charge_customer_balance(conn, draft.balance_delta.customer_id, draft.sale.total)
            if draft.movements:
                apply_sale_movements(conn, draft.movements, saved.id)
    except sqlite3.Error as e:
        logger.exception("Checkout failed; ticket kept for retry")
        raise RemoteWriteFailure("Could not complete the sale. The ticket was kept; try again.") from e

    if balance is not None:
        logger.info(
            "Credit sale #%s: customer %s balance %.2f -> %.2f",
            saved.ticket_number,
            balance.customer_id,
            balance.previous_balance,
            balance.new_balance,
        )
    logger.info("Checkout #%s complete: total %.2f, change %.2f", saved.ticket_number, saved.total, saved.change_given)

    engine.clear(ticket)
    return saved


def _as_iso(v: Union[str, date, datetime], *, end: bool = False) -> str:
    if isinstance(v, datetime):
        return v.replace(microsecond=0).isoformat()
    if isinstance(v, date):
        # Plain dates cover the whole day.
        return day_bounds(v)[1 if end else 0]
    return str(v)


def sales_by_date_range(conn, start: Union[str, date, datetime], end: Union[str, date, datetime]) -> list[Sale]:
    rows = q(
        conn,
        _SALE_SELECT + " WHERE s.created_at >= ? AND s.created_at <= ? ORDER BY s.created_at DESC, s.id DESC",
        (_as_iso(start), _as_iso(end, end=True)),
    )
    return [Sale.from_row(r) for r in rows]


def sales_today(conn, today: Optional[date] = None) -> list[Sale]:
    start, end = day_bounds(today or datetime.now(timezone.utc).date())
    return sales_by_date_range(conn, start, end)


def get_sale_details(conn, sale_id: int) -> Sale:
    rows = q(conn, _SALE_SELECT + " WHERE s.id=?", (int(sale_id),))
    if not rows:
        raise NotFound("Sale not found.")
    items = q(
        conn,
        """
        SELECT si.*, p.name AS product_name, p.barcode
        FROM sale_items si
        JOIN products p ON p.id = si.product_id
        WHERE si.sale_id=?
        ORDER BY si.id
        """,
        (int(sale_id),),
    )
    return Sale.from_row(rows[0], items=tuple(SaleItem.from_row(r) for r in items))
