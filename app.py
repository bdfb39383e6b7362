from __future__ import annotations

import streamlit as st

from admin_core.config import configure_logging, get_settings

st.set_page_config(page_title="Grocery Admin", page_icon="🛒", layout="wide")
configure_logging(get_settings().log_level)

pages = [
    st.Page("home.py", title="Home", icon="🏠"),
    st.Page("pages/1_📦_Inventory.py", title="Inventory", icon="📦"),
    st.Page("pages/2_🏷️_Store_Products.py", title="Store Products", icon="🏷️"),
    st.Page("pages/3_🧾_Orders.py", title="Orders", icon="🧾"),
    st.Page("pages/4_🧪_Data_Management.py", title="Data Management", icon="🧪"),
]

st.navigation(pages).run()
