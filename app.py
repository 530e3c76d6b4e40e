import altair as alt
import pandas as pd
import streamlit as st
from contextlib import contextmanager
from typing import Dict, List, Optional

from catalog.board import (
    compute_capability_board,
    compute_coverage_matrix,
    coverage_frame,
    coverage_heatmap,
    products_for_capability,
)
from catalog.editor import SECTION_AI_PLATFORM, SECTION_INFRASTRUCTURE, section_choice_for
from catalog.errors import CatalogError
from catalog.models import category_label
from catalog.persistence import frame_to_csv_bytes
from catalog.quality import compute_quality_report
from catalog.session import CatalogSession
from catalog.settings import settings_from_env

alt.data_transformers.disable_max_rows()

SECTION_LABELS = {SECTION_INFRASTRUCTURE: "Data Layer", SECTION_AI_PLATFORM: "AI Layer"}


# ---------- UI / layout helpers ----------
def inject_base_styles():
    if st.session_state.get("_base_css_injected"):
        return
    st.markdown(
        """
        <style>
        .app-top-bar {padding: 6px 0 4px;border-bottom: 1px solid #e5e7eb;margin-bottom: 10px;}
        .app-top-bar .breadcrumb {color: #6b7280;font-size: 0.9rem;margin-bottom: 2px;}
        .app-top-bar .page-title {font-size: 1.4rem;font-weight: 700;color: #111827;}
        .card {border: 1px solid #e5e7eb;border-radius: 12px;padding: 16px;background: #ffffff;
               box-shadow: 0 1px 2px rgba(0,0,0,0.04); margin-bottom: 12px;}
        .card-header {display: flex;justify-content: space-between;align-items: center;margin-bottom: 8px;}
        .card-title {font-weight: 600;font-size: 1.0rem;color: #111827;}
        .card-actions {font-size: 0.9rem;color: #2563eb;}
        .chip-row {display: flex;flex-wrap: wrap;gap: 6px;margin-top: 6px;}
        .chip {background: #f3f4f6;border: 1px solid #e5e7eb;border-radius: 14px;padding: 4px 10px;font-size: 0.85rem;color: #374151;}
        .cap-label {border: 2px solid #6d28d9;border-radius: 8px;padding: 8px;text-align: center;font-weight: 600;
                    background: #5b21b6;color: #ede9fe;margin-bottom: 8px;}
        .cap-product {font-size: 0.85rem;font-style: italic;color: #6d28d9;}
        </style>
        """,
        unsafe_allow_html=True,
    )
    st.session_state["_base_css_injected"] = True


@contextmanager
def card(title: str, actions: Optional[str] = None):
    container = st.container()
    container.markdown(
        f"""
        <div class="card">
          <div class="card-header">
            <div class="card-title">{title}</div>
            <div class="card-actions">{actions or ""}</div>
          </div>
        """,
        unsafe_allow_html=True,
    )
    body = container.container()
    with body:
        yield body
    container.markdown("</div>", unsafe_allow_html=True)


def format_selection_summary(vendor_name: Optional[str], kpis: Dict[str, int], fallback_name: str) -> str:
    chips = [
        f"Vendor: {vendor_name}" if vendor_name else "Vendor: none",
        f"Assigned: {kpis.get('assigned', 0)}/{kpis.get('capabilities', 0)}",
        f"Fallback: {fallback_name}",
    ]
    return "".join([f"<span class='chip'>{txt}</span>" for txt in chips])


def render_page_header(title: str, breadcrumb: str, summary_html: str = ""):
    inject_base_styles()
    top = st.container()
    c1, c2 = top.columns([8, 2])
    with c1:
        st.markdown(
            f"<div class='app-top-bar'><div class='breadcrumb'>{breadcrumb}</div><div class='page-title'>{title}</div></div>",
            unsafe_allow_html=True,
        )
    with c2:
        if st.button("Refresh"):
            st.rerun()
    if summary_html:
        st.markdown(f"<div class='chip-row'>{summary_html}</div>", unsafe_allow_html=True)


def run_edit(action, success: str) -> bool:
    """Run an editor action, reporting validation errors inline."""
    try:
        action()
    except CatalogError as exc:
        st.error(str(exc))
        return False
    st.session_state["_flash"] = success
    st.rerun()
    return True


# ---------- Session ----------
def get_session() -> CatalogSession:
    if "catalog_session" not in st.session_state:
        st.session_state["catalog_session"] = CatalogSession.from_settings(settings_from_env())
    return st.session_state["catalog_session"]


st.set_page_config(page_title="AI Platform Capability Catalog", layout="wide")
inject_base_styles()
st.title("AI Platform Capability Catalog")
st.caption("Pick a vendor to see which product fulfills each capability; unmatched capabilities fall back to the base services.")

session = get_session()
flash = st.session_state.pop("_flash", None)
if flash:
    st.success(flash)

vendors = session.store.get_vendors()
vendor_names = {v.id: v.name for v in vendors}

# ----- Sidebar: navigation + vendor selection -----
with st.sidebar:
    st.markdown("### Navigate")
    current_page = st.radio("Navigate", ["Capability Board", "Manage Data", "Coverage", "Data Quality"], index=0)

    st.markdown("---")
    st.markdown("### Vendor")
    vendor_options = [""] + [v.id for v in vendors]
    current_vendor = session.selected_vendor_id if session.selected_vendor_id in vendor_names else ""
    chosen_vendor = st.selectbox(
        "Select vendor",
        options=vendor_options,
        index=vendor_options.index(current_vendor),
        format_func=lambda vid: vendor_names.get(vid, "-- No vendor selected --"),
    )
    if (chosen_vendor or None) != session.selected_vendor_id:
        session.select_vendor(chosen_vendor or None)

    st.markdown("---")
    st.markdown("### Storage")
    if st.button("Save to local storage"):
        session.persist()
        st.success(f"Saved to {session.settings.storage_path.name}")
    if st.button("Reload from CSV files"):
        session.reload(from_csv=True)
        st.session_state["_flash"] = "Catalog reloaded from CSV files."
        st.rerun()


# ----- Page renderers -----
def render_capability_box(item: Dict, snapshot) -> None:
    with st.container(border=True):
        st.markdown(f"**{item['name']}**")
        st.markdown(f"<div class='cap-product'>{item['display_text']}</div>", unsafe_allow_html=True)
        with st.expander("Choose product", expanded=False):
            options = products_for_capability(snapshot, item["id"])
            if not options:
                st.caption("No products offer this capability.")
                return
            ids = [o["id"] for o in options]
            labels = {o["id"]: f"{o['name']} ({o['vendor_name'] or 'no vendor'})" for o in options}
            current = next((o["id"] for o in options if o["selected"]), ids[0])
            picked = st.selectbox(
                "Product",
                options=ids,
                index=ids.index(current),
                format_func=lambda pid: labels[pid],
                key=f"pick_{item['id']}",
            )
            if st.button("Select", key=f"select_{item['id']}"):
                run_edit(lambda: session.editor.select_product(item["id"], picked), f"Selected product for {item['name']}.")
            if st.button("Clear", key=f"clear_{item['id']}"):
                run_edit(lambda: session.editor.clear_product(item["id"]), f"Cleared product for {item['name']}.")


def render_capability_row(items: List[Dict], snapshot, per_row: int = 4) -> None:
    for start in range(0, len(items), per_row):
        cols = st.columns(per_row)
        for col, item in zip(cols, items[start : start + per_row]):
            with col:
                if item["is_label"]:
                    st.markdown(f"<div class='cap-label'>{item['name']}</div>", unsafe_allow_html=True)
                else:
                    render_capability_box(item, snapshot)


def render_board_page():
    snapshot = session.store.snapshot()
    payload = compute_capability_board(snapshot, selected_vendor_id=session.selected_vendor_id)
    vendor = payload["selected_vendor"]
    render_page_header(
        "Capability Board",
        "Home / Capability Board",
        format_selection_summary(vendor["name"] if vendor else None, payload["kpis"], session.settings.fallback_product_name),
    )

    cols = st.columns(3)
    cols[0].metric("Capabilities", payload["kpis"]["capabilities"])
    cols[1].metric("Assigned", payload["kpis"]["assigned"])
    cols[2].metric("Unassigned", payload["kpis"]["unassigned"])

    left, right = st.columns(2)
    with left:
        with card("Data Layer"):
            if not payload["data_layer"]:
                st.info("No Data Layer capabilities.")
            render_capability_row(payload["data_layer"], snapshot, per_row=2)
    with right:
        with card("AI Layer"):
            if not payload["ai_layer"]:
                st.info("No AI Layer capabilities.")
            for section in payload["ai_layer"]:
                if section["label"]:
                    st.markdown(f"<div class='cap-label'>{section['label']}</div>", unsafe_allow_html=True)
                else:
                    render_capability_row(section["capabilities"], snapshot, per_row=3)
    if payload["other"]:
        with card("Other capabilities"):
            render_capability_row(payload["other"], snapshot)


def render_vendor_editor():
    vendors_df = pd.DataFrame([{"id": v.id, "name": v.name} for v in session.store.get_vendors()])
    st.dataframe(vendors_df, hide_index=True, use_container_width=True)
    with st.form("add_vendor", clear_on_submit=True):
        name = st.text_input("Vendor name")
        if st.form_submit_button("Add vendor"):
            run_edit(lambda: session.editor.add_vendor(name), f"Added vendor {name.strip()}.")

    current_vendors = session.store.get_vendors()
    if not current_vendors:
        return
    st.markdown("**Edit or delete**")
    names = {v.id: v.name for v in current_vendors}
    vid = st.selectbox("Vendor", options=list(names), format_func=lambda x: names[x], key="edit_vendor_id")
    new_name = st.text_input("New name", value=names[vid], key=f"vendor_name_{vid}")
    confirm = st.checkbox("Also remove associated products", key="vendor_confirm")
    c1, c2 = st.columns(2)
    if c1.button("Save vendor"):
        run_edit(lambda: session.editor.edit_vendor(vid, new_name), "Vendor updated.")
    if c2.button("Delete vendor"):
        run_edit(lambda: session.editor.delete_vendor(vid, confirm=confirm), f"Deleted vendor {names[vid]}.")


def render_product_editor():
    snapshot = session.store.snapshot()
    vendor_lookup = {v.id: v.name for v in snapshot.vendors}
    cap_lookup = {c.id: c.name for c in snapshot.capabilities if not c.is_label}
    products_df = pd.DataFrame(
        [
            {
                "id": p.id,
                "name": p.name,
                "vendor": vendor_lookup.get(p.vendor_id or "", "(unmatched)"),
                "capabilities": ", ".join(cap_lookup.get(cid, cid) for cid in p.capability_ids),
            }
            for p in snapshot.products
        ]
    )
    st.dataframe(products_df, hide_index=True, use_container_width=True)
    if not vendor_lookup:
        st.info("Add a vendor before adding products.")
        return

    with st.form("add_product", clear_on_submit=True):
        name = st.text_input("Product name")
        vendor_id = st.selectbox("Vendor", options=list(vendor_lookup), format_func=lambda x: vendor_lookup[x])
        cap_ids = st.multiselect("Capabilities", options=list(cap_lookup), format_func=lambda x: cap_lookup[x])
        if st.form_submit_button("Add product"):
            run_edit(lambda: session.editor.add_product(name, vendor_id, cap_ids), f"Added product {name.strip()}.")

    if not snapshot.products:
        return
    st.markdown("**Edit or delete**")
    products = {p.id: p for p in snapshot.products}
    pid = st.selectbox("Product", options=list(products), format_func=lambda x: products[x].name, key="edit_product_id")
    product = products[pid]
    vendor_ids = list(vendor_lookup)
    new_name = st.text_input("New name", value=product.name, key=f"product_name_{pid}")
    new_vendor = st.selectbox(
        "New vendor",
        options=vendor_ids,
        index=vendor_ids.index(product.vendor_id) if product.vendor_id in vendor_lookup else 0,
        format_func=lambda x: vendor_lookup[x],
        key=f"product_vendor_{pid}",
    )
    new_caps = st.multiselect(
        "New capabilities",
        options=list(cap_lookup),
        default=[cid for cid in product.capability_ids if cid in cap_lookup],
        format_func=lambda x: cap_lookup[x],
        key=f"product_caps_{pid}",
    )
    c1, c2 = st.columns(2)
    if c1.button("Save product"):
        run_edit(lambda: session.editor.edit_product(pid, new_name, new_vendor, new_caps), "Product updated.")
    if c2.button("Delete product"):
        run_edit(lambda: session.editor.delete_product(pid), f"Deleted product {product.name}.")


def render_capability_editor():
    capabilities = session.store.get_capabilities()
    caps_df = pd.DataFrame(
        [
            {
                "id": c.id,
                "name": c.name,
                "category": category_label(c.category),
                "section": c.section,
                "order": c.order,
                "label": c.is_label,
            }
            for c in capabilities
        ]
    )
    st.dataframe(caps_df, hide_index=True, use_container_width=True)
    sections = list(SECTION_LABELS)
    with st.form("add_capability", clear_on_submit=True):
        name = st.text_input("Capability name")
        section = st.selectbox("Section", options=sections, format_func=lambda x: SECTION_LABELS[x])
        if st.form_submit_button("Add capability"):
            run_edit(lambda: session.editor.add_capability(name, section), f"Added capability {name.strip()}.")

    editable = [c for c in capabilities if not c.is_label]
    if not editable:
        return
    st.markdown("**Edit or delete**")
    caps = {c.id: c for c in editable}
    cid = st.selectbox("Capability", options=list(caps), format_func=lambda x: caps[x].name, key="edit_capability_id")
    cap = caps[cid]
    current_section = section_choice_for(cap) or SECTION_INFRASTRUCTURE
    new_name = st.text_input("New name", value=cap.name, key=f"cap_name_{cid}")
    new_section = st.selectbox(
        "New section",
        options=sections,
        index=sections.index(current_section),
        format_func=lambda x: SECTION_LABELS[x],
        key=f"cap_section_{cid}",
    )
    confirm = st.checkbox("Also remove it from any products", key="cap_confirm")
    c1, c2 = st.columns(2)
    if c1.button("Save capability"):
        run_edit(lambda: session.editor.edit_capability(cid, new_name, new_section), "Capability updated.")
    if c2.button("Delete capability"):
        run_edit(lambda: session.editor.delete_capability(cid, confirm=confirm), f"Deleted capability {cap.name}.")


def render_manage_page():
    render_page_header("Manage Data", "Home / Manage Data")
    tab_vendors, tab_products, tab_caps, tab_files = st.tabs(["Vendors", "Products", "Capabilities", "Import / Export"])
    with tab_vendors:
        render_vendor_editor()
    with tab_products:
        render_product_editor()
    with tab_caps:
        render_capability_editor()
    with tab_files:
        with card("Export CSV"):
            frames = session.export_frames()
            cols = st.columns(len(frames))
            for col, (entity, df) in zip(cols, frames.items()):
                col.download_button(
                    f"{entity}.csv",
                    data=frame_to_csv_bytes(df),
                    file_name=f"{entity}.csv",
                    mime="text/csv",
                )
        with card("Import CSV"):
            up_vendors = st.file_uploader("vendors.csv", type="csv", key="up_vendors")
            up_products = st.file_uploader("products.csv", type="csv", key="up_products")
            up_caps = st.file_uploader("capabilities.csv", type="csv", key="up_capabilities")
            if st.button("Replace catalog with uploaded files", disabled=not (up_vendors and up_products and up_caps)):
                try:
                    session.import_csv(up_vendors, up_products, up_caps)
                except (CatalogError, ValueError) as exc:
                    st.error(f"Import failed: {exc}")
                else:
                    st.session_state["_flash"] = "Catalog replaced from uploaded CSV files."
                    st.rerun()


def render_coverage_page():
    render_page_header("Coverage", "Home / Coverage")
    snapshot = session.store.snapshot()
    payload = compute_coverage_matrix(snapshot)
    if not payload["table"]:
        st.info("Add vendors and capabilities to see coverage.")
        return
    with card("Coverage by vendor"):
        summary = pd.DataFrame(payload["summary"])
        st.dataframe(
            summary[["vendor", "covered", "capabilities", "coverage_pct"]],
            hide_index=True,
            use_container_width=True,
            column_config={"coverage_pct": st.column_config.ProgressColumn("Coverage", min_value=0.0, max_value=1.0)},
        )
    with card("Vendor x capability"):
        st.altair_chart(coverage_heatmap(coverage_frame(snapshot)), use_container_width=True)


def render_quality_page():
    render_page_header("Data Quality", "Home / Data Quality")
    report = compute_quality_report(session.store.snapshot(), session.settings, session.fallback())
    with card("Data Quality"):
        st.markdown("**Row counts**")
        st.write(report["row_counts"])
        st.markdown("**Fallback**")
        if report["fallback"]:
            st.write(report["fallback"])
        else:
            st.warning(
                f"{session.settings.fallback_product_name} ({session.settings.fallback_vendor_name}) not found; "
                "fallback will not apply."
            )
        st.markdown("**Issues**")
        if report["issues"]:
            st.dataframe(pd.DataFrame(report["issues"]), hide_index=True, use_container_width=True)
        else:
            st.success("No data quality issues found.")


if current_page == "Capability Board":
    render_board_page()
elif current_page == "Manage Data":
    render_manage_page()
elif current_page == "Coverage":
    render_coverage_page()
else:
    render_quality_page()
