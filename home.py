from __future__ import annotations

import streamlit as st

from pos.config import get_settings
from pos.db import get_conn, ensure_schema
from pos.services.business import get_business_config
from pos.services.demo_data import upsert_reference_data
from pos.services.reports import daily_summary

st.set_page_config(page_title="Point of Sale", page_icon="🧾", layout="wide")

settings = get_settings()
conn = get_conn(settings.db_path)
ensure_schema(conn)
upsert_reference_data(conn)

business = get_business_config(conn)

st.title(f"🧾 {business.name}")
st.caption("Sales ticketing with wholesale pricing, customer credit accounts, inventory movements and daily reports.")

with st.sidebar:
    st.subheader("Environment")
    st.write(f"**Data directory:** `{settings.data_dir}`")
    st.write(f"**Database:** `{settings.db_path.name}`")
    st.write(f"**Currency:** {settings.currency}")
    st.write(f"**Stock on checkout:** {'on' if settings.stock_on_checkout else 'off'}")

summary = daily_summary(conn)
c1, c2, c3 = st.columns(3)
c1.metric("Sales today", f"${summary.total_sales:,.2f}")
c2.metric("Tickets today", f"{summary.transactions}")
c3.metric("Average ticket", f"${summary.average_ticket:,.2f}")

st.info(
    "Use the left sidebar navigation. Start with **🧪 Data Management** to load demo data, then open **Sales** to ring up a ticket.",
    icon="ℹ️",
)
