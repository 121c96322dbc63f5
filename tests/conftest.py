"""
Pytest fixtures for the POS tests.

Every test gets a fresh in-memory sqlite database with the full schema.
"""

import pytest

from pos.db import _connect, ensure_schema
from pos.models import Customer, Product
from pos.services.customers import create_customer
from pos.services.products import create_product


@pytest.fixture
def conn():
    c = _connect(":memory:")
    ensure_schema(c)
    yield c
    c.close()


@pytest.fixture
def make_product(conn):
    """Create a product row; keyword overrides go straight to create_product."""
    counter = {"n": 0}

    def _make(**overrides) -> Product:
        counter["n"] += 1
        fields = dict(
            name=f"Product {counter['n']}",
            barcode=f"750{counter['n']:010d}",
            purchase_price=5.0,
            sale_price=10.0,
            stock=10,
        )
        fields.update(overrides)
        return create_product(conn, **fields)

    return _make


@pytest.fixture
def make_customer(conn):
    def _make(**overrides) -> Customer:
        fields = dict(name="Ana Torres", phone="555-0100", credit_limit=1000.0)
        fields.update(overrides)
        return create_customer(conn, **fields)

    return _make

