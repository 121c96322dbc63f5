from __future__ import annotations

import logging
import sqlite3
from typing import Any, Optional

from pos.db import q, transaction, x
from pos.errors import NotFound, RemoteWriteFailure, ValidationError
from pos.models import DEFAULT_CREDIT_LIMIT, CreditPayment, Customer, CustomerBalanceDelta
from pos.utils import iso_now, money

logger = logging.getLogger(__name__)

SEARCH_LIMIT = 20

_EDITABLE_FIELDS = ("name", "phone", "email", "address", "credit_limit", "is_active")


def _clean_text(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    s = str(v).strip()
    return s if s else None


def _normalize_customer_fields(fields: dict[str, Any]) -> dict[str, Any]:
    unknown = set(fields) - set(_EDITABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Unknown customer field(s): {', '.join(sorted(unknown))}.")

    out: dict[str, Any] = {}
    for key, v in fields.items():
        if key == "name":
            name = _clean_text(v)
            if not name:
                raise ValidationError("Customer name is required.")
            out[key] = name
        elif key == "credit_limit":
            try:
                limit = float(v or 0)
            except (TypeError, ValueError):
                raise ValidationError("Credit limit must be a number.")
            if limit < 0:
                raise ValidationError("Credit limit must be >= 0.")
            out[key] = money(limit)
        elif key == "is_active":
            out[key] = 1 if v else 0
        else:
            out[key] = _clean_text(v)
    return out


def search_customers(conn, query: str, limit: int = SEARCH_LIMIT) -> list[Customer]:
    needle = f"%{str(query or '').strip().lower()}%"
    rows = q(
        conn,
        """
        SELECT * FROM customers
        WHERE is_active=1
          AND (LOWER(name) LIKE ? OR LOWER(COALESCE(phone, '')) LIKE ?)
        ORDER BY name
        LIMIT ?
        """,
        (needle, needle, int(limit)),
    )
    return [Customer.from_row(r) for r in rows]


def list_customers(conn, *, include_inactive: bool = False) -> list[Customer]:
    where = "" if include_inactive else "WHERE is_active=1"
    return [Customer.from_row(r) for r in q(conn, f"SELECT * FROM customers {where} ORDER BY name")]


def get_customer(conn, customer_id: int) -> Customer:
    rows = q(conn, "SELECT * FROM customers WHERE id=?", (int(customer_id),))
    if not rows:
        raise NotFound("Customer not found.")
    return Customer.from_row(rows[0])


def create_customer(conn, **fields: Any) -> Customer:
    if "name" not in fields:
        raise ValidationError("Customer name is required.")
    fields.setdefault("credit_limit", DEFAULT_CREDIT_LIMIT)
    data = _normalize_customer_fields(fields)
    data.setdefault("is_active", 1)

    now = iso_now()
    # New accounts always start with nothing owed.
    cols = list(data) + ["current_balance", "created_at", "updated_at"]
    vals = list(data.values()) + [0.0, now, now]
    try:
        customer_id = x(
            conn,
            f"INSERT INTO customers ({', '.join(cols)}) VALUES ({', '.join('?' for _ in cols)})",
            vals,
        )
    except sqlite3.Error as e:
        conn.rollback()
        logger.exception("Customer insert failed")
        raise RemoteWriteFailure("Could not create the customer.") from e

    logger.info("Created customer %s (%s)", customer_id, data["name"])
    return get_customer(conn, customer_id)


def update_customer(conn, customer_id: int, **updates: Any) -> Customer:
    get_customer(conn, customer_id)
    data = _normalize_customer_fields(updates)
    if data:
        assignments = ", ".join(f"{k}=?" for k in data) + ", updated_at=?"
        try:
            x(conn, f"UPDATE customers SET {assignments} WHERE id=?", list(data.values()) + [iso_now(), int(customer_id)])
        except sqlite3.Error as e:
            conn.rollback()
            logger.exception("Customer update failed")
            raise RemoteWriteFailure("Could not update the customer.") from e
    return get_customer(conn, customer_id)


def deactivate_customer(conn, customer_id: int) -> None:
    customer = get_customer(conn, customer_id)
    if customer.current_balance > 0:
        raise ValidationError("Cannot delete a customer with an outstanding balance.")
    update_customer(conn, customer_id, is_active=False)
    logger.info("Deactivated customer %s", customer_id)


def update_customer_balance(conn, customer_id: int, new_balance: float, *, commit: bool = True) -> None:
    """Overwrite the balance owed. Only checkout and payments call this."""
    try:
        x(
            conn,
            "UPDATE customers SET current_balance=?, updated_at=? WHERE id=?",
            (money(new_balance), iso_now(), int(customer_id)),
            commit=commit,
        )
    except sqlite3.Error as e:
        if commit:
            conn.rollback()
        logger.exception("Balance update failed for customer %s", customer_id)
        raise RemoteWriteFailure("Could not update the customer balance.") from e


def charge_customer_balance(conn, customer_id: int, amount: float) -> CustomerBalanceDelta:
    """
    Add a credit sale to the balance owed, reading the stored balance inside
    the caller's open transaction. Nothing is committed here.
    """
    rows = q(conn, "SELECT current_balance FROM customers WHERE id=?", (int(customer_id),))
    if not rows:
        raise NotFound("Customer not found.")
    previous = money(rows[0]["current_balance"] or 0.0)
    delta = CustomerBalanceDelta(
        customer_id=int(customer_id),
        previous_balance=previous,
        new_balance=money(previous + float(amount)),
    )
    update_customer_balance(conn, delta.customer_id, delta.new_balance, commit=False)
    return delta


def record_payment(conn, customer_id: int, amount: float, notes: Optional[str] = None) -> CreditPayment:
    """Apply a payment against the balance owed; the balance never goes below zero."""
    try:
        amt = money(amount)
    except (TypeError, ValueError):
        raise ValidationError("Payment amount must be a number.")
    if amt <= 0:
        raise ValidationError("Payment amount must be > 0.")

    try:
        with transaction(conn):
            # Read inside the transaction so a concurrent sale is not overwritten.
            customer = get_customer(conn, customer_id)
            previous = money(customer.current_balance)
            new_balance = money(max(0.0, previous - amt))
            update_customer_balance(conn, customer.id, new_balance, commit=False)
            payment_id = x(
                conn,
                """
                INSERT INTO credit_payments (customer_id, amount, previous_balance, new_balance, notes, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (customer.id, amt, previous, new_balance, _clean_text(notes), iso_now()),
                commit=False,
            )
    except sqlite3.Error as e:
        logger.exception("Payment failed for customer %s", customer_id)
        raise RemoteWriteFailure("Could not record the payment.") from e

    logger.info("Payment of %.2f from customer %s: balance %.2f -> %.2f", amt, customer.id, previous, new_balance)
    return CreditPayment(
        id=payment_id,
        customer_id=customer.id,
        amount=amt,
        previous_balance=previous,
        new_balance=new_balance,
        notes=_clean_text(notes),
    )


def list_payments(conn, customer_id: Optional[int] = None, limit: int = 50) -> list[CreditPayment]:
    if customer_id is None:
        rows = q(conn, "SELECT * FROM credit_payments ORDER BY id DESC LIMIT ?", (int(limit),))
    else:
        rows = q(
            conn,
            "SELECT * FROM credit_payments WHERE customer_id=? ORDER BY id DESC LIMIT ?",
            (int(customer_id), int(limit)),
        )
    return [CreditPayment.from_row(r) for r in rows]
