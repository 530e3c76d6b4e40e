from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional

from catalog.models import CatalogCollections
from catalog.resolution import FallbackTarget, locate_fallback
from catalog.settings import Settings


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DataQualityIssue:
    kind: str
    entity: str
    entity_id: Optional[str]
    message: str


def audit_collections(
    collections: CatalogCollections,
    settings: Optional[Settings] = None,
    *,
    log: bool = True,
) -> List[DataQualityIssue]:
    """Report non-fatal integrity problems; none of them stops resolution."""
    settings = settings or Settings()
    issues: List[DataQualityIssue] = []
    vendor_ids = {v.id for v in collections.vendors}
    product_ids = {p.id for p in collections.products}
    capability_ids = {c.id for c in collections.capabilities}
    label_ids = {c.id for c in collections.capabilities if c.is_label}

    for product in collections.products:
        if product.vendor_id is None:
            issues.append(
                DataQualityIssue("missing_vendor", "product", product.id, f"Product '{product.name}' has no vendor.")
            )
        elif product.vendor_id not in vendor_ids:
            issues.append(
                DataQualityIssue(
                    "orphaned_vendor",
                    "product",
                    product.id,
                    f"Product '{product.name}' references unknown vendor '{product.vendor_id}'.",
                )
            )
        for cid in product.capability_ids:
            if cid not in capability_ids:
                issues.append(
                    DataQualityIssue(
                        "unknown_capability",
                        "product",
                        product.id,
                        f"Product '{product.name}' references unknown capability '{cid}'.",
                    )
                )
            elif cid in label_ids:
                issues.append(
                    DataQualityIssue(
                        "label_capability",
                        "product",
                        product.id,
                        f"Product '{product.name}' lists label capability '{cid}'.",
                    )
                )

    for capability in collections.capabilities:
        pid = capability.current_product_id
        if pid is not None and pid not in product_ids:
            issues.append(
                DataQualityIssue(
                    "dangling_assignment",
                    "capability",
                    capability.id,
                    f"Capability '{capability.name}' is assigned unknown product '{pid}'.",
                )
            )

    fallback = locate_fallback(
        collections.vendors,
        collections.products,
        vendor_name=settings.fallback_vendor_name,
        product_name=settings.fallback_product_name,
    )
    if fallback is None and not collections.is_empty():
        issues.append(
            DataQualityIssue(
                "no_fallback",
                "settings",
                None,
                f"No product '{settings.fallback_product_name}' of vendor '{settings.fallback_vendor_name}'; "
                "capabilities without a vendor match stay unassigned.",
            )
        )

    if log:
        for issue in issues:
            logger.warning("Data quality (%s): %s", issue.kind, issue.message)
    return issues


def compute_quality_report(
    collections: CatalogCollections,
    settings: Optional[Settings] = None,
    fallback: Optional[FallbackTarget] = None,
) -> Dict[str, Any]:
    issues = audit_collections(collections, settings, log=False)
    counts: Dict[str, int] = {}
    for issue in issues:
        counts[issue.kind] = counts.get(issue.kind, 0) + 1
    return {
        "row_counts": {
            "vendors": len(collections.vendors),
            "products": len(collections.products),
            "capabilities": len(collections.capabilities),
            "labels": sum(1 for c in collections.capabilities if c.is_label),
        },
        "fallback": asdict(fallback) if fallback else None,
        "issue_counts": counts,
        "issues": [asdict(i) for i in issues],
    }
