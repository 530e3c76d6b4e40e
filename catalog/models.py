from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union


class CapabilityCategory(str, Enum):
    DATA_LAYER = "Data Layer"
    AI_LAYER = "AI Layer"


CategoryValue = Union[CapabilityCategory, str]

CATEGORY_ALIASES = {
    "data layer": CapabilityCategory.DATA_LAYER,
    "datalayer": CapabilityCategory.DATA_LAYER,
    "infrastructure": CapabilityCategory.DATA_LAYER,
    "ai layer": CapabilityCategory.AI_LAYER,
    "ailayer": CapabilityCategory.AI_LAYER,
    "aiplatform": CapabilityCategory.AI_LAYER,
}

UNCATEGORIZED = "Uncategorized"


def parse_category(value: object) -> CategoryValue:
    """Map known spellings onto the enum; anything else stays a legacy string."""
    if isinstance(value, CapabilityCategory):
        return value
    if value is None:
        return UNCATEGORIZED
    s = str(value).strip()
    if not s:
        return UNCATEGORIZED
    return CATEGORY_ALIASES.get(s.lower(), s)


def category_label(value: CategoryValue) -> str:
    return value.value if isinstance(value, CapabilityCategory) else str(value)


@dataclass(frozen=True)
class Vendor:
    id: str
    name: str


@dataclass(frozen=True)
class Product:
    id: str
    name: str
    vendor_id: Optional[str] = None
    capability_ids: Tuple[str, ...] = field(default_factory=tuple)

    def covers(self, capability_id: str) -> bool:
        return capability_id in self.capability_ids


@dataclass(frozen=True)
class Capability:
    id: str
    name: str
    category: CategoryValue = UNCATEGORIZED
    section: str = UNCATEGORIZED
    order: Optional[int] = None
    is_label: bool = False
    border_color_class: Optional[str] = None
    # Cache of the last resolution pass; never authoritative.
    current_product_id: Optional[str] = None


@dataclass(frozen=True)
class CatalogCollections:
    vendors: List[Vendor] = field(default_factory=list)
    products: List[Product] = field(default_factory=list)
    capabilities: List[Capability] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.vendors or self.products or self.capabilities)


def as_bool(value: object) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in {"true", "1", "yes", "y"}


def as_int(value: object) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(float(value))  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None


def _as_opt_str(value: object) -> Optional[str]:
    if value is None:
        return None
    s = str(value).strip()
    return s or None


def _as_id_tuple(values: Optional[Iterable[object]]) -> Tuple[str, ...]:
    if not values:
        return ()
    out: List[str] = []
    for v in values:
        s = _as_opt_str(v)
        if s and s not in out:
            out.append(s)
    return tuple(out)


# ---------------- Records (local storage document / API payloads) ----------------
def vendor_to_record(vendor: Vendor) -> Dict[str, Any]:
    return asdict(vendor)


def product_to_record(product: Product) -> Dict[str, Any]:
    return {
        "id": product.id,
        "name": product.name,
        "vendorId": product.vendor_id,
        "capabilityIds": list(product.capability_ids),
    }


def capability_to_record(capability: Capability) -> Dict[str, Any]:
    return {
        "id": capability.id,
        "name": capability.name,
        "category": category_label(capability.category),
        "section": capability.section,
        "order": capability.order,
        "isLabel": capability.is_label,
        "borderColorClass": capability.border_color_class,
        "currentProductId": capability.current_product_id,
    }


def vendor_from_record(raw: Dict[str, Any]) -> Vendor:
    return Vendor(id=str(raw["id"]).strip(), name=str(raw.get("name") or "").strip())


def product_from_record(raw: Dict[str, Any]) -> Product:
    return Product(
        id=str(raw["id"]).strip(),
        name=str(raw.get("name") or "").strip(),
        vendor_id=_as_opt_str(raw.get("vendorId", raw.get("vendor_id"))),
        capability_ids=_as_id_tuple(raw.get("capabilityIds", raw.get("capability_ids"))),
    )


def capability_from_record(raw: Dict[str, Any]) -> Capability:
    return Capability(
        id=str(raw["id"]).strip(),
        name=str(raw.get("name") or "").strip(),
        category=parse_category(raw.get("category")),
        section=_as_opt_str(raw.get("section")) or UNCATEGORIZED,
        order=as_int(raw.get("order")),
        is_label=as_bool(raw.get("isLabel", raw.get("is_label"))),
        border_color_class=_as_opt_str(raw.get("borderColorClass", raw.get("border_color_class"))),
        current_product_id=_as_opt_str(raw.get("currentProductId", raw.get("current_product_id"))),
    )


def collections_to_document(collections: CatalogCollections) -> Dict[str, List[Dict[str, Any]]]:
    return {
        "vendors": [vendor_to_record(v) for v in collections.vendors],
        "products": [product_to_record(p) for p in collections.products],
        "capabilities": [capability_to_record(c) for c in collections.capabilities],
    }


def collections_from_document(doc: Dict[str, Any]) -> CatalogCollections:
    return CatalogCollections(
        vendors=[vendor_from_record(r) for r in (doc.get("vendors") or [])],
        products=[product_from_record(r) for r in (doc.get("products") or [])],
        capabilities=[capability_from_record(r) for r in (doc.get("capabilities") or [])],
    )
