from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Iterable, Optional

import pandas as pd

from pos.db import q
from pos.models import Sale
from pos.services.sales import sales_today
from pos.utils import day_bounds, money, safe_div

SALE_COLUMNS = [
    "ticket_number",
    "created_at",
    "customer_name",
    "payment_method",
    "is_credit",
    "subtotal",
    "total",
    "payment_received",
    "change_given",
    "status",
]


@dataclass(frozen=True)
class SalesSummary:
    total_sales: float
    cash_sales: float
    card_sales: float
    credit_sales: float
    transactions: int
    average_ticket: float


def sales_frame(sales: Iterable[Sale]) -> pd.DataFrame:
    rows = [{c: getattr(s, c) for c in SALE_COLUMNS} for s in sales]
    return pd.DataFrame(rows, columns=SALE_COLUMNS)


def summarize_sales(sales: Iterable[Sale]) -> SalesSummary:
    """
    Daily cut figures. Credit sales are counted by the is_credit flag, the
    other buckets by payment method.
    """
    df = sales_frame(sales)
    if df.empty:
        return SalesSummary(0.0, 0.0, 0.0, 0.0, 0, 0.0)

    df["total"] = pd.to_numeric(df["total"], errors="coerce").fillna(0)
    total = float(df["total"].sum())
    by_method = df.groupby("payment_method")["total"].sum()
    credit = float(df.loc[df["is_credit"].astype(bool), "total"].sum())

    return SalesSummary(
        total_sales=money(total),
        cash_sales=money(by_method.get("cash", 0.0)),
        card_sales=money(by_method.get("card", 0.0)),
        credit_sales=money(credit),
        transactions=int(len(df)),
        average_ticket=money(safe_div(total, len(df))),
    )


def daily_summary(conn, day: Optional[date] = None) -> SalesSummary:
    return summarize_sales(sales_today(conn, day))


def top_products(conn, start: date, end: date, limit: int = 10) -> pd.DataFrame:
    start_ts = day_bounds(start)[0]
    end_ts = day_bounds(end)[1]
    rows = q(
        conn,
        """
        SELECT p.name AS product,
               SUM(si.quantity) AS units,
               ROUND(SUM(si.subtotal), 2) AS revenue
        FROM sale_items si
        JOIN sales s ON s.id = si.sale_id
        JOIN products p ON p.id = si.product_id
        WHERE s.created_at >= ? AND s.created_at <= ?
        GROUP BY p.id, p.name
        ORDER BY revenue DESC, units DESC
        LIMIT ?
        """,
        (start_ts, end_ts, int(limit)),
    )
    return pd.DataFrame([dict(r) for r in rows], columns=["product", "units", "revenue"])
