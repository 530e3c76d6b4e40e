"""Vendor -> capability product resolution.

For a selected vendor, every non-label capability is assigned the first product
(collection order) of that vendor covering it; failing that, the fallback vendor's
fallback product when it covers the capability; otherwise nothing.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence

from catalog.models import Capability, Product, Vendor
from catalog.settings import DEFAULT_FALLBACK_PRODUCT_NAME, DEFAULT_FALLBACK_VENDOR_NAME


logger = logging.getLogger(__name__)

Assignments = Dict[str, Optional[str]]


@dataclass(frozen=True)
class FallbackTarget:
    vendor_id: str
    product_id: str


def normalize_name(value: Optional[str]) -> str:
    return " ".join((value or "").split()).casefold()


def locate_fallback(
    vendors: Iterable[Vendor],
    products: Iterable[Product],
    *,
    vendor_name: str = DEFAULT_FALLBACK_VENDOR_NAME,
    product_name: str = DEFAULT_FALLBACK_PRODUCT_NAME,
) -> Optional[FallbackTarget]:
    """Find the fallback product by its configured name and its vendor's configured name.

    Returns ``None`` when no product/vendor pair matches; that is a normal outcome.
    """
    wanted_vendor = normalize_name(vendor_name)
    wanted_product = normalize_name(product_name)
    vendor_ids = {v.id for v in vendors if normalize_name(v.name) == wanted_vendor}
    for product in products:
        if normalize_name(product.name) != wanted_product:
            continue
        if product.vendor_id in vendor_ids:
            return FallbackTarget(vendor_id=product.vendor_id, product_id=product.id)
        logger.debug("Product %r is named like the fallback but vendor %r does not match", product.id, product.vendor_id)
    return None


def resolve_assignments(
    selected_vendor_id: Optional[str],
    products: Sequence[Product],
    capabilities: Sequence[Capability],
    *,
    fallback: Optional[FallbackTarget] = None,
) -> Assignments:
    """Compute ``capability_id -> product_id | None`` for every non-label capability.

    Pure: nothing is read from or written to the capabilities' cached assignment, and
    label capabilities are absent from the result.
    """
    vendor_products: List[Product] = (
        [p for p in products if p.vendor_id == selected_vendor_id] if selected_vendor_id else []
    )
    fallback_product = None
    if fallback is not None:
        fallback_product = next((p for p in products if p.id == fallback.product_id), None)

    assignments: Assignments = {}
    for capability in capabilities:
        if capability.is_label:
            continue
        match = next((p for p in vendor_products if p.covers(capability.id)), None)
        if match is not None:
            assignments[capability.id] = match.id
        elif fallback_product is not None and fallback_product.covers(capability.id):
            assignments[capability.id] = fallback_product.id
        else:
            assignments[capability.id] = None
    return assignments


def resolve_for_vendor(
    selected_vendor_id: Optional[str],
    vendors: Sequence[Vendor],
    products: Sequence[Product],
    capabilities: Sequence[Capability],
    *,
    vendor_name: str = DEFAULT_FALLBACK_VENDOR_NAME,
    product_name: str = DEFAULT_FALLBACK_PRODUCT_NAME,
) -> Assignments:
    """Locate the fallback and resolve in one call."""
    fallback = locate_fallback(vendors, products, vendor_name=vendor_name, product_name=product_name)
    return resolve_assignments(selected_vendor_id, products, capabilities, fallback=fallback)
