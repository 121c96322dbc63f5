from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from pos.errors import (
    CheckoutRejected,
    CustomerRequired,
    InsufficientStock,
    LineNotFound,
    ValidationError,
)
from pos.models import (
    PAYMENT_METHODS,
    Customer,
    CustomerBalanceDelta,
    InventoryMovement,
    Product,
    Sale,
    SaleItem,
    Ticket,
    TicketLine,
)
from pos.utils import money

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Totals:
    subtotal: float
    total: float


@dataclass(frozen=True)
class CheckoutDraft:
    """Everything a checkout must persist, computed without touching storage."""

    sale: Sale
    items: tuple[SaleItem, ...]
    movements: tuple[InventoryMovement, ...] = ()
    balance_delta: Optional[CustomerBalanceDelta] = None


def normalize_payment_method(payment_method: Optional[str]) -> str:
    if not payment_method:
        return "cash"
    pm = str(payment_method).strip().lower()
    if pm in PAYMENT_METHODS:
        return pm
    raise ValidationError("Invalid payment method. Use 'cash', 'card' or 'credit'.")


def _positive_int(quantity, what: str = "Quantity") -> int:
    if isinstance(quantity, (bool, float)):
        raise ValidationError(f"{what} must be a whole number.")
    try:
        qty = int(quantity)
    except (TypeError, ValueError):
        raise ValidationError(f"{what} must be a whole number.")
    if qty != quantity:
        raise ValidationError(f"{what} must be a whole number.")
    if qty < 1:
        raise ValidationError(f"{what} must be at least 1.")
    return qty


def resolve_unit_price(product: Product, quantity: int) -> float:
    """
    Wholesale tier applies when the product defines both tier fields and the
    quantity of this single add reaches the minimum.
    """
    if product.wholesale_price and product.wholesale_min_qty and int(quantity) >= int(product.wholesale_min_qty):
        return float(product.wholesale_price)
    return float(product.sale_price)


def add_line(ticket: Ticket, product: Product, quantity: int = 1) -> TicketLine:
    qty = _positive_int(quantity)

    existing = ticket.line_for_product(product.id)
    in_ticket = existing.quantity if existing else 0

    if in_ticket + qty > int(product.stock):
        logger.warning(
            "Rejected add of %s x%d: %d in ticket, %d in stock", product.name, qty, in_ticket, product.stock
        )
        raise InsufficientStock(product.name, available=int(product.stock), requested=in_ticket + qty)

    if existing is not None:
        # Merged lines keep the price captured on first insert.
        existing.quantity = in_ticket + qty
        return existing

    line = TicketLine(product=product, quantity=qty, unit_price=resolve_unit_price(product, qty))
    ticket.lines.append(line)
    return line


def update_quantity(ticket: Ticket, line_id: str, new_quantity: int) -> TicketLine:
    """Set a line's quantity. Stock is not re-checked on manual edits."""
    qty = _positive_int(new_quantity)
    line = ticket.get_line(line_id)
    if line is None:
        raise LineNotFound(line_id)
    line.quantity = qty
    return line


def remove_line(ticket: Ticket, line_id: str) -> None:
    ticket.lines = [l for l in ticket.lines if l.id != line_id]


def attach_customer(ticket: Ticket, customer: Optional[Customer]) -> None:
    ticket.customer = customer


def clear(ticket: Ticket) -> None:
    ticket.lines = []
    ticket.customer = None


def compute_totals(ticket: Ticket) -> Totals:
    subtotal = money(sum(l.subtotal for l in ticket.lines))
    # Tax and discount are stored on the sale but not applied to the total.
    return Totals(subtotal=subtotal, total=subtotal)


def compute_change(total: float, payment_method: str, amount_received: float) -> float:
    if normalize_payment_method(payment_method) != "cash":
        return 0.0
    return money(max(0.0, float(amount_received or 0) - float(total)))


def can_checkout(ticket: Ticket, payment_method: str, amount_received: float) -> bool:
    if ticket.is_empty:
        return False
    if normalize_payment_method(payment_method) == "cash":
        return money(amount_received or 0) >= compute_totals(ticket).total
    return True


def needs_customer(ticket: Ticket, payment_method: str) -> bool:
    return normalize_payment_method(payment_method) == "credit" and ticket.customer is None


def checkout(
    ticket: Ticket,
    customer: Optional[Customer],
    payment_method: str,
    amount_received: float,
    *,
    record_stock: bool = False,
) -> CheckoutDraft:
    """
    Build the sale, its items, and the side effects a checkout implies.

    The ticket itself is not modified; callers clear it once the draft has been
    persisted so a failed write can be retried.
    """
    pm = normalize_payment_method(payment_method)
    received = money(amount_received or 0)

    if not can_checkout(ticket, pm, received):
        if ticket.is_empty:
            raise CheckoutRejected("The ticket is empty.")
        raise CheckoutRejected("Amount received does not cover the total.")

    is_credit = pm == "credit"
    if is_credit and customer is None:
        raise CustomerRequired()

    totals = compute_totals(ticket)
    change = compute_change(totals.total, pm, received)

    items = tuple(
        SaleItem(
            product_id=l.product.id,
            product_name=l.product.name,
            quantity=int(l.quantity),
            unit_price=float(l.unit_price),
            discount=float(l.discount),
            subtotal=l.subtotal,
        )
        for l in ticket.lines
    )

    sale = Sale(
        customer_id=customer.id if customer is not None else None,
        customer_name=customer.name if customer is not None else None,
        subtotal=totals.subtotal,
        discount=0.0,
        tax=0.0,
        total=totals.total,
        payment_received=received,
        change_given=change,
        payment_method=pm,
        is_credit=is_credit,
        status="completed",
        items=items,
    )

    balance_delta = None
    if is_credit and customer is not None:
        # Additive; the credit limit is advisory only.
        balance_delta = CustomerBalanceDelta(
            customer_id=customer.id,
            previous_balance=money(customer.current_balance),
            new_balance=money(customer.current_balance + totals.total),
        )

    movements: tuple[InventoryMovement, ...] = ()
    if record_stock:
        movements = tuple(
            InventoryMovement(
                product_id=l.product.id,
                product_name=l.product.name,
                movement_type="sale",
                quantity=int(l.quantity),
                previous_stock=int(l.product.stock),
                new_stock=int(l.product.stock) - int(l.quantity),
            )
            for l in ticket.lines
        )

    return CheckoutDraft(sale=sale, items=items, movements=movements, balance_delta=balance_delta)
