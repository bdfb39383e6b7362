from __future__ import annotations

import streamlit as st

from admin_core.config import configure_logging, get_settings
from admin_core.db import get_conn, ensure_schema
from admin_core.services.demo_data import upsert_reference_data

st.set_page_config(page_title="Grocery Admin", page_icon="🛒", layout="wide")

st.title("🛒 Grocery Admin")
st.caption("Multi-store inventory (batch ledger with shared stock) and order fulfillment.")

settings = get_settings()
configure_logging(settings.log_level)
conn = get_conn(settings.db_path)
ensure_schema(conn)
upsert_reference_data(conn)

with st.sidebar:
    st.subheader("Environment")
    st.write(f"**Data directory:** `{settings.data_dir}`")
    st.write(f"**Database:** `{settings.db_path.name}`")

st.info(
    "Use the left sidebar navigation. Start with **🧪 Data Management** to load demo data, then open **Inventory**, **Store Products** and **Orders**.",
    icon="ℹ️",
)
