from datetime import datetime, timedelta, timezone

import pytest

from pos.db import q
from pos.errors import CustomerRequired, InsufficientStock, NotFound, RemoteWriteFailure
from pos.models import Product, Sale, SaleItem, Ticket
from pos.services import ticket as engine
from pos.services.customers import get_customer, update_customer_balance
from pos.services.inventory import list_movements
from pos.services.products import get_product
from pos.services.sales import (
    complete_checkout,
    create_sale,
    get_sale_details,
    sales_by_date_range,
    sales_today,
)


def _count(conn, table):
    return int(q(conn, f"SELECT COUNT(*) AS n FROM {table}")[0]["n"])


def test_end_to_end_cash_ticket(conn, make_product):
    p = make_product(name="Coffee", sale_price=15.0, stock=3)
    ticket = Ticket()

    line = engine.add_line(ticket, p, 2)
    engine.update_quantity(ticket, line.id, 3)
    assert engine.compute_totals(ticket).subtotal == 45.0

    with pytest.raises(InsufficientStock):
        engine.add_line(ticket, p, 1)
    assert line.quantity == 3

    sale = complete_checkout(conn, ticket, "cash", 50.0)

    assert sale.change_given == 5.0
    assert sale.total == 45.0
    assert ticket.is_empty
    assert ticket.customer is None

    saved = get_sale_details(conn, sale.id)
    assert saved.ticket_number == 1
    assert saved.payment_method == "cash"
    assert [(i.product_name, i.quantity, i.unit_price, i.subtotal) for i in saved.items] == [("Coffee", 3, 15.0, 45.0)]


def test_ticket_numbers_increase(conn, make_product):
    p = make_product(stock=10)
    numbers = []
    for _ in range(3):
        ticket = Ticket()
        engine.add_line(ticket, p, 1)
        numbers.append(complete_checkout(conn, ticket, "card", 0.0).ticket_number)
    assert numbers == [1, 2, 3]


def test_checkout_leaves_stock_alone_by_default(conn, make_product):
    p = make_product(stock=10)
    ticket = Ticket()
    engine.add_line(ticket, p, 4)

    complete_checkout(conn, ticket, "card", 0.0)

    assert get_product(conn, p.id).stock == 10
    assert _count(conn, "inventory_movements") == 0


def test_checkout_can_decrement_stock(conn, make_product):
    p = make_product(stock=10)
    ticket = Ticket()
    engine.add_line(ticket, p, 4)

    sale = complete_checkout(conn, ticket, "card", 0.0, stock_on_checkout=True)

    assert get_product(conn, p.id).stock == 6
    (mv,) = list_movements(conn, product_id=p.id)
    assert mv.movement_type == "sale"
    assert (mv.previous_stock, mv.new_stock) == (10, 6)
    assert mv.reference_id == sale.id


def test_stock_decrement_uses_current_stock_and_rolls_back(conn, make_product):
    p = make_product(stock=5)
    ticket = Ticket()
    engine.add_line(ticket, p, 4)
    # Another register sold most of it in the meantime.
    conn.execute("UPDATE products SET stock=2 WHERE id=?", (p.id,))
    conn.commit()

    with pytest.raises(InsufficientStock):
        complete_checkout(conn, ticket, "cash", 100.0, stock_on_checkout=True)

    assert _count(conn, "sales") == 0
    assert _count(conn, "sale_items") == 0
    assert get_product(conn, p.id).stock == 2
    assert len(ticket) == 1


def test_credit_checkout_updates_balance(conn, make_product, make_customer):
    p = make_product(sale_price=400.0, stock=10)
    customer = make_customer(credit_limit=500.0)
    ticket = Ticket()
    engine.add_line(ticket, p, 2)
    engine.attach_customer(ticket, customer)

    sale = complete_checkout(conn, ticket, "credit", 0.0)

    assert sale.is_credit is True
    assert sale.customer_id == customer.id
    # The limit is advisory; the balance may exceed it.
    assert get_customer(conn, customer.id).current_balance == 800.0
    assert ticket.customer is None


def test_credit_checkout_adds_to_stored_balance(conn, make_product, make_customer):
    p = make_product(sale_price=30.0, stock=10)
    customer = make_customer()
    update_customer_balance(conn, customer.id, 100.0)
    ticket = Ticket()
    engine.add_line(ticket, p, 1)
    engine.attach_customer(ticket, get_customer(conn, customer.id))

    # A sale from another register lands after the customer was attached.
    update_customer_balance(conn, customer.id, 150.0)
    complete_checkout(conn, ticket, "credit", 0.0)

    assert get_customer(conn, customer.id).current_balance == 180.0


def test_credit_checkout_without_customer_writes_nothing(conn, make_product):
    ticket = Ticket()
    engine.add_line(ticket, make_product(), 1)

    with pytest.raises(CustomerRequired):
        complete_checkout(conn, ticket, "credit", 0.0)

    assert _count(conn, "sales") == 0
    assert len(ticket) == 1


def test_failed_write_keeps_ticket_and_commits_nothing(conn, make_product):
    real = make_product(stock=10)
    ghost = Product(id=999, name="Ghost", sale_price=3.0, stock=10)
    ticket = Ticket()
    engine.add_line(ticket, real, 1)
    engine.add_line(ticket, ghost, 1)

    with pytest.raises(RemoteWriteFailure):
        complete_checkout(conn, ticket, "card", 0.0)

    # Header and items are one unit: no orphaned sale header.
    assert _count(conn, "sales") == 0
    assert _count(conn, "sale_items") == 0
    assert len(ticket) == 2

    engine.remove_line(ticket, ticket.lines[1].id)
    sale = complete_checkout(conn, ticket, "card", 0.0)
    assert sale.ticket_number == 1


def test_create_sale_writes_header_and_items(conn, make_product):
    p = make_product()
    sale = Sale(
        subtotal=20.0,
        total=20.0,
        payment_received=20.0,
        change_given=0.0,
        payment_method="cash",
        is_credit=False,
    )
    items = [SaleItem(product_id=p.id, quantity=2, unit_price=10.0, subtotal=20.0)]

    saved = create_sale(conn, sale, items)

    assert saved.id is not None
    assert saved.created_at is not None
    assert saved.items[0].sale_id == saved.id
    assert _count(conn, "sale_items") == 1


def test_sales_queries(conn, make_product):
    p = make_product(stock=10)
    for method in ("cash", "card"):
        ticket = Ticket()
        engine.add_line(ticket, p, 1)
        complete_checkout(conn, ticket, method, 10.0)

    today = sales_today(conn)
    assert [s.ticket_number for s in today] == [2, 1]
    assert all(s.customer_name is None for s in today)

    today_utc = datetime.now(timezone.utc).date()
    yesterday = today_utc - timedelta(days=1)
    assert sales_today(conn, yesterday) == []
    assert len(sales_by_date_range(conn, yesterday, today_utc + timedelta(days=1))) == 2


def test_get_sale_details_missing(conn):
    with pytest.raises(NotFound):
        get_sale_details(conn, 42)
