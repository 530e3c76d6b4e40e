from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

import altair as alt
import pandas as pd

from catalog.charts import to_vega_spec
from catalog.models import Capability, CapabilityCategory, CatalogCollections, Product, category_label


AI_SECTION_ORDER = [
    "AI Layer - Top",
    "AI Layer - UI",
    "AI Layer - Governance",
    "AI Layer - Operations",
    "AI Layer - Standards",
    "AI Layer - Models",
    "AI Layer - Deployment",
    "AI Layer - Custom",
]

NO_PRODUCT = "No Product Assigned"
PRODUCT_NOT_FOUND = "No Product Assigned (Product not found)"


def product_name_lookup(products: Iterable[Product]) -> Dict[str, str]:
    return {p.id: p.name for p in products}


def assignment_display_text(product_id: Optional[str], names: Dict[str, str]) -> str:
    if not product_id:
        return NO_PRODUCT
    name = names.get(product_id)
    return f"Product: {name}" if name is not None else PRODUCT_NOT_FOUND


def _order_key(capability: Capability):
    return (capability.order is None, capability.order or 0)


def _capability_item(capability: Capability, names: Dict[str, str]) -> Dict[str, Any]:
    product_id = None if capability.is_label else capability.current_product_id
    return {
        "id": capability.id,
        "name": capability.name,
        "section": capability.section,
        "order": capability.order,
        "is_label": capability.is_label,
        "border_color_class": capability.border_color_class,
        "product_id": product_id,
        "product_name": names.get(product_id) if product_id else None,
        "display_text": None if capability.is_label else assignment_display_text(product_id, names),
    }


def compute_capability_board(
    collections: CatalogCollections,
    *,
    selected_vendor_id: Optional[str] = None,
) -> Dict[str, Any]:
    """Group capabilities for display, reading each capability's resolved (cached) product."""
    names = product_name_lookup(collections.products)
    vendor = next((v for v in collections.vendors if v.id == selected_vendor_id), None)

    data_caps = [c for c in collections.capabilities if c.category == CapabilityCategory.DATA_LAYER]
    ai_caps = [c for c in collections.capabilities if c.category == CapabilityCategory.AI_LAYER]
    other_caps = [
        c for c in collections.capabilities if not isinstance(c.category, CapabilityCategory)
    ]

    ai_by_section: Dict[str, List[Capability]] = {}
    for cap in ai_caps:
        ai_by_section.setdefault(cap.section, []).append(cap)
    extra_sections = sorted(s for s in ai_by_section if s not in AI_SECTION_ORDER)

    ai_sections: List[Dict[str, Any]] = []
    for section in AI_SECTION_ORDER + extra_sections:
        section_caps = ai_by_section.get(section)
        if not section_caps:
            continue
        if section_caps[0].is_label:
            ai_sections.append({"section": section, "label": section_caps[0].name, "capabilities": []})
        else:
            ai_sections.append(
                {
                    "section": section,
                    "label": None,
                    "capabilities": [_capability_item(c, names) for c in sorted(section_caps, key=_order_key)],
                }
            )

    interactive = [c for c in collections.capabilities if not c.is_label]
    assigned = sum(1 for c in interactive if c.current_product_id)
    return {
        "selected_vendor": {"id": vendor.id, "name": vendor.name} if vendor else None,
        "kpis": {
            "capabilities": len(interactive),
            "assigned": assigned,
            "unassigned": len(interactive) - assigned,
        },
        "data_layer": [_capability_item(c, names) for c in sorted(data_caps, key=_order_key)],
        "ai_layer": ai_sections,
        "other": [
            {**_capability_item(c, names), "category": category_label(c.category)}
            for c in sorted(other_caps, key=_order_key)
        ],
    }


def products_for_capability(collections: CatalogCollections, capability_id: str) -> List[Dict[str, Any]]:
    vendor_names = {v.id: v.name for v in collections.vendors}
    capability = next((c for c in collections.capabilities if c.id == capability_id), None)
    current = capability.current_product_id if capability else None
    return [
        {
            "id": p.id,
            "name": p.name,
            "vendor_id": p.vendor_id,
            "vendor_name": vendor_names.get(p.vendor_id) if p.vendor_id else None,
            "selected": p.id == current,
        }
        for p in collections.products
        if p.covers(capability_id)
    ]


def coverage_frame(collections: CatalogCollections) -> pd.DataFrame:
    """One row per vendor x non-label capability with the vendor's first covering product."""
    rows = []
    capabilities = [c for c in collections.capabilities if not c.is_label]
    for vendor in collections.vendors:
        vendor_products = [p for p in collections.products if p.vendor_id == vendor.id]
        for cap in capabilities:
            match = next((p for p in vendor_products if p.covers(cap.id)), None)
            rows.append(
                {
                    "vendor_id": vendor.id,
                    "vendor": vendor.name,
                    "capability_id": cap.id,
                    "capability": cap.name,
                    "product": match.name if match else None,
                    "covered": match is not None,
                }
            )
    return pd.DataFrame(rows, columns=["vendor_id", "vendor", "capability_id", "capability", "product", "covered"])


def coverage_heatmap(df: pd.DataFrame) -> alt.Chart:
    return (
        alt.Chart(df.assign(status=df["covered"].map({True: "Covered", False: "Gap"})))
        .mark_rect()
        .encode(
            x=alt.X("capability:N", title="Capability", sort=None),
            y=alt.Y("vendor:N", title="Vendor", sort=None),
            color=alt.Color("status:N", title="Coverage", scale=alt.Scale(domain=["Covered", "Gap"], range=["#7c3aed", "#e5e7eb"])),
            tooltip=["vendor", "capability", "product"],
        )
    )


def compute_coverage_matrix(collections: CatalogCollections) -> Dict[str, Any]:
    df = coverage_frame(collections)
    payload: Dict[str, Any] = {"summary": [], "table": [], "charts": {}}
    if df.empty:
        return payload

    summary = (
        df.groupby(["vendor_id", "vendor"], sort=False)["covered"]
        .agg(["sum", "count"])
        .reset_index()
        .rename(columns={"sum": "covered", "count": "capabilities"})
    )
    summary["coverage_pct"] = summary["covered"] / summary["capabilities"]
    payload["summary"] = summary.to_dict(orient="records")
    payload["table"] = df.to_dict(orient="records")

    payload["charts"] = {"coverage_heatmap": to_vega_spec(coverage_heatmap(df))}
    return payload
