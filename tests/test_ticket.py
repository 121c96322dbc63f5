import itertools

import pytest

from pos.errors import CheckoutRejected, CustomerRequired, InsufficientStock, LineNotFound, ValidationError
from pos.models import Customer, Product, Ticket
from pos.services import ticket as engine


def _product(**overrides) -> Product:
    fields = dict(id=1, name="Soda", sale_price=10.0, stock=10)
    fields.update(overrides)
    return Product(**fields)


def _snapshot(ticket):
    return [(l.id, l.product.id, l.quantity, l.unit_price, l.subtotal) for l in ticket.lines]


@pytest.mark.parametrize("qty", [1, 3, 7, 10])
def test_add_line_within_stock(qty):
    ticket = Ticket()
    p = _product(sale_price=12.5, stock=10)

    line = engine.add_line(ticket, p, qty)

    assert len(ticket) == 1
    assert line.quantity == qty
    assert line.unit_price == 12.5
    assert line.subtotal == round(qty * 12.5, 2)


def test_add_line_default_quantity_is_one():
    ticket = Ticket()
    line = engine.add_line(ticket, _product())
    assert line.quantity == 1


def test_add_line_past_stock_leaves_ticket_unchanged():
    ticket = Ticket()
    p = _product(stock=5)
    engine.add_line(ticket, p, 3)
    before = _snapshot(ticket)

    with pytest.raises(InsufficientStock) as exc:
        engine.add_line(ticket, p, 3)

    assert exc.value.available == 5
    assert exc.value.requested == 6
    assert _snapshot(ticket) == before


def test_add_line_to_empty_ticket_over_stock():
    ticket = Ticket()
    with pytest.raises(InsufficientStock):
        engine.add_line(ticket, _product(stock=2), 3)
    assert ticket.is_empty


@pytest.mark.parametrize("bad", [0, -1, 1.5, 2.0, "2", None, True])
def test_add_line_rejects_non_positive_or_fractional_quantity(bad):
    ticket = Ticket()
    with pytest.raises(ValidationError):
        engine.add_line(ticket, _product(), bad)
    assert ticket.is_empty


def test_wholesale_price_applies_at_threshold():
    p = _product(sale_price=10.0, wholesale_price=8.0, wholesale_min_qty=10, stock=50)

    at_threshold = Ticket()
    assert engine.add_line(at_threshold, p, 10).unit_price == 8.0

    below = Ticket()
    assert engine.add_line(below, p, 5).unit_price == 10.0


def test_wholesale_needs_both_tier_fields():
    only_price = _product(wholesale_price=8.0, wholesale_min_qty=None, stock=50)
    only_qty = _product(wholesale_price=None, wholesale_min_qty=2, stock=50)

    assert engine.add_line(Ticket(), only_price, 20).unit_price == 10.0
    assert engine.add_line(Ticket(), only_qty, 20).unit_price == 10.0


def test_merge_keeps_first_unit_price():
    p = _product(sale_price=10.0, wholesale_price=8.0, wholesale_min_qty=10, stock=50)
    ticket = Ticket()

    first = engine.add_line(ticket, p, 5)
    merged = engine.add_line(ticket, p, 10)

    assert merged is first
    assert len(ticket) == 1
    assert merged.quantity == 15
    # The tier is tested against the incoming add only, and only on first insert.
    assert merged.unit_price == 10.0
    assert merged.subtotal == 150.0


def test_merge_after_wholesale_insert_keeps_wholesale():
    p = _product(sale_price=10.0, wholesale_price=8.0, wholesale_min_qty=10, stock=50)
    ticket = Ticket()
    engine.add_line(ticket, p, 10)
    line = engine.add_line(ticket, p, 1)
    assert line.unit_price == 8.0
    assert line.subtotal == 88.0


def test_lines_keep_insertion_order():
    ticket = Ticket()
    for i in range(1, 5):
        engine.add_line(ticket, _product(id=i, name=f"P{i}"), 1)
    assert [l.product.id for l in ticket.lines] == [1, 2, 3, 4]


def test_update_quantity_recomputes_subtotal_without_stock_check():
    ticket = Ticket()
    line = engine.add_line(ticket, _product(sale_price=4.25, stock=2), 1)

    engine.update_quantity(ticket, line.id, 6)

    assert line.quantity == 6
    assert line.subtotal == 25.5


@pytest.mark.parametrize("bad", [0, -3, 2.0])
def test_update_quantity_below_one_is_rejected(bad):
    ticket = Ticket()
    line = engine.add_line(ticket, _product(), 2)
    with pytest.raises(ValidationError):
        engine.update_quantity(ticket, line.id, bad)
    assert line.quantity == 2


def test_update_quantity_unknown_line():
    with pytest.raises(LineNotFound):
        engine.update_quantity(Ticket(), "missing", 2)


def test_remove_line():
    ticket = Ticket()
    a = engine.add_line(ticket, _product(id=1), 1)
    b = engine.add_line(ticket, _product(id=2, name="Chips"), 1)

    engine.remove_line(ticket, a.id)
    assert [l.id for l in ticket.lines] == [b.id]

    engine.remove_line(ticket, "missing")
    assert len(ticket) == 1


def test_compute_totals_total_equals_subtotal():
    ticket = Ticket()
    engine.add_line(ticket, _product(id=1, sale_price=19.99), 3)
    engine.add_line(ticket, _product(id=2, sale_price=0.1), 3)

    totals = engine.compute_totals(ticket)

    assert totals.subtotal == 60.27
    assert totals.total == totals.subtotal


def test_compute_totals_order_independent():
    prices = [(1, 19.99, 3), (2, 0.1, 3), (3, 7.25, 1), (4, 3.33, 7)]
    expected = None
    for perm in itertools.permutations(prices):
        ticket = Ticket()
        for pid, price, qty in perm:
            engine.add_line(ticket, _product(id=pid, sale_price=price), qty)
        totals = engine.compute_totals(ticket)
        if expected is None:
            expected = totals
        assert totals == expected


def test_compute_totals_empty_ticket():
    totals = engine.compute_totals(Ticket())
    assert totals.subtotal == 0.0
    assert totals.total == 0.0


def test_compute_change():
    assert engine.compute_change(50.0, "cash", 60.0) == 10.0
    assert engine.compute_change(50.0, "cash", 40.0) == 0.0
    assert engine.compute_change(50.0, "card", 60.0) == 0.0
    assert engine.compute_change(50.0, "credit", 60.0) == 0.0


def test_compute_change_rejects_unknown_method():
    with pytest.raises(ValidationError):
        engine.compute_change(10.0, "bitcoin", 20.0)


def test_can_checkout_rules():
    ticket = Ticket()
    assert engine.can_checkout(ticket, "cash", 100.0) is False
    assert engine.can_checkout(ticket, "card", 0.0) is False

    engine.add_line(ticket, _product(sale_price=25.0), 2)
    assert engine.can_checkout(ticket, "cash", 40.0) is False
    assert engine.can_checkout(ticket, "cash", 50.0) is True
    assert engine.can_checkout(ticket, "card", 0.0) is True
    assert engine.can_checkout(ticket, "credit", 0.0) is True


def test_needs_customer_only_for_credit_without_customer():
    ticket = Ticket()
    engine.add_line(ticket, _product(), 1)
    assert engine.needs_customer(ticket, "credit") is True
    assert engine.needs_customer(ticket, "cash") is False

    engine.attach_customer(ticket, Customer(id=1, name="Ana"))
    assert engine.needs_customer(ticket, "credit") is False


def test_checkout_cash_draft():
    ticket = Ticket()
    engine.add_line(ticket, _product(id=1, sale_price=15.0), 2)
    engine.add_line(ticket, _product(id=2, name="Chips", sale_price=12.5), 1)

    draft = engine.checkout(ticket, None, "cash", 50.0)

    assert draft.sale.subtotal == 42.5
    assert draft.sale.total == 42.5
    assert draft.sale.change_given == 7.5
    assert draft.sale.payment_received == 50.0
    assert draft.sale.payment_method == "cash"
    assert draft.sale.is_credit is False
    assert draft.sale.status == "completed"
    assert draft.sale.customer_id is None
    assert [(i.product_id, i.quantity, i.unit_price, i.subtotal) for i in draft.items] == [
        (1, 2, 15.0, 30.0),
        (2, 1, 12.5, 12.5),
    ]
    assert draft.balance_delta is None
    assert draft.movements == ()
    # The draft does not consume the ticket.
    assert len(ticket) == 2


def test_checkout_rejects_insufficient_cash_and_empty_ticket():
    with pytest.raises(CheckoutRejected):
        engine.checkout(Ticket(), None, "card", 0.0)

    ticket = Ticket()
    engine.add_line(ticket, _product(sale_price=50.0), 1)
    with pytest.raises(CheckoutRejected):
        engine.checkout(ticket, None, "cash", 40.0)


def test_credit_checkout_without_customer_never_builds_a_sale():
    ticket = Ticket()
    engine.add_line(ticket, _product(), 1)

    with pytest.raises(CustomerRequired):
        engine.checkout(ticket, None, "credit", 0.0)
    assert len(ticket) == 1


def test_credit_checkout_adds_to_balance_even_past_limit():
    ticket = Ticket()
    engine.add_line(ticket, _product(sale_price=300.0), 2)
    customer = Customer(id=7, name="Ana", credit_limit=500.0, current_balance=400.0)

    draft = engine.checkout(ticket, customer, "credit", 0.0)

    assert draft.sale.is_credit is True
    assert draft.sale.customer_id == 7
    assert draft.sale.change_given == 0.0
    assert draft.balance_delta.previous_balance == 400.0
    assert draft.balance_delta.new_balance == 1000.0
    assert draft.balance_delta.amount == 600.0


def test_checkout_with_stock_recording_builds_sale_movements():
    ticket = Ticket()
    engine.add_line(ticket, _product(id=3, stock=8), 5)

    draft = engine.checkout(ticket, None, "card", 0.0, record_stock=True)

    (mv,) = draft.movements
    assert mv.movement_type == "sale"
    assert mv.product_id == 3
    assert mv.quantity == 5
    assert (mv.previous_stock, mv.new_stock) == (8, 3)


def test_round_trip_total_matches_final_lines():
    ticket = Ticket()
    a = engine.add_line(ticket, _product(id=1, sale_price=19.99, stock=20), 2)
    engine.add_line(ticket, _product(id=2, sale_price=0.35, stock=20), 3)
    c = engine.add_line(ticket, _product(id=3, sale_price=4.1, stock=20), 1)
    engine.update_quantity(ticket, a.id, 5)
    engine.remove_line(ticket, c.id)
    engine.add_line(ticket, _product(id=2, sale_price=0.35, stock=20), 4)

    expected = round(sum(l.subtotal for l in ticket.lines), 2)
    draft = engine.checkout(ticket, None, "cash", 200.0)

    assert draft.sale.total == expected == 102.4
    assert draft.sale.change_given == 97.6


def test_clear_detaches_customer():
    ticket = Ticket()
    engine.add_line(ticket, _product(), 1)
    engine.attach_customer(ticket, Customer(id=1, name="Ana"))

    engine.clear(ticket)

    assert ticket.is_empty
    assert ticket.customer is None
