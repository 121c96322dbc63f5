from pathlib import Path

import pytest
import streamlit as st
from streamlit.testing.v1 import AppTest

from pos.db import _connect, ensure_schema
from pos.services.products import create_product

SALES_PAGE = Path(__file__).resolve().parents[1] / "pages" / "1_🛒_Sales.py"


@pytest.fixture
def sales_page(tmp_path, monkeypatch):
    monkeypatch.setenv("POS_DATA_DIR", str(tmp_path))
    st.cache_resource.clear()

    conn = _connect(tmp_path / "pos.db")
    ensure_schema(conn)
    create_product(conn, name="Cola", barcode="111", sale_price=15.0, stock=20)
    create_product(conn, name="Chips", barcode="222", sale_price=12.0, stock=20)
    conn.close()

    at = AppTest.from_file(str(SALES_PAGE), default_timeout=30)
    at.run()
    yield at
    st.cache_resource.clear()


def _scan(at, code):
    at.text_input(key="barcode").input(code).run()


def _qty_keys(at):
    return {f"qty_{line.id}" for line in at.session_state["ticket"].lines}


def _has_key(at, key):
    return key in at.session_state


def test_scanned_lines_get_quantity_widgets(sales_page):
    _scan(sales_page, "111")
    _scan(sales_page, "222")

    keys = _qty_keys(sales_page)
    assert len(keys) == 2
    assert all(_has_key(sales_page, k) for k in keys)


def test_removing_a_line_drops_its_quantity_key(sales_page):
    _scan(sales_page, "111")
    _scan(sales_page, "222")
    first = sales_page.session_state["ticket"].lines[0]

    sales_page.button(key=f"rm_{first.id}").click().run()

    assert [l.product.name for l in sales_page.session_state["ticket"].lines] == ["Chips"]
    assert not _has_key(sales_page, f"qty_{first.id}")


def test_clearing_the_ticket_drops_all_quantity_keys(sales_page):
    _scan(sales_page, "111")
    _scan(sales_page, "222")
    keys = _qty_keys(sales_page)

    clear = next(b for b in sales_page.button if b.label == "Clear ticket")
    clear.click().run()

    assert sales_page.session_state["ticket"].is_empty
    assert not any(_has_key(sales_page, k) for k in keys)
