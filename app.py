from __future__ import annotations

import streamlit as st

st.set_page_config(page_title="Point of Sale", page_icon="🧾", layout="wide")

pages = [
    st.Page("home.py", title="Home", icon="🏠"),
    st.Page("pages/1_🛒_Sales.py", title="Sales", icon="🛒"),
    st.Page("pages/2_🏷️_Products.py", title="Products", icon="🏷️"),
    st.Page("pages/3_📦_Inventory.py", title="Inventory", icon="📦"),
    st.Page("pages/4_💳_Credits.py", title="Credits", icon="💳"),
    st.Page("pages/5_📊_Reports.py", title="Reports", icon="📊"),
    st.Page("pages/6_⚙️_Settings.py", title="Settings", icon="⚙️"),
    st.Page("pages/7_🧪_Data_Management.py", title="Data Management", icon="🧪"),
]

st.navigation(pages).run()
