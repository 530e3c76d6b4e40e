from __future__ import annotations

import logging
from dataclasses import replace
from typing import Callable, Iterable, List, Optional, Sequence

from catalog.errors import CascadeConfirmationRequired, DuplicateNameError, NotFoundError, ValidationError
from catalog.models import Capability, CapabilityCategory, Product, Vendor
from catalog.resolution import normalize_name
from catalog.store import CatalogStore


logger = logging.getLogger(__name__)

SECTION_INFRASTRUCTURE = "infrastructure"
SECTION_AI_PLATFORM = "aiPlatform"
SECTION_CHOICES = (SECTION_INFRASTRUCTURE, SECTION_AI_PLATFORM)

DATA_LAYER_SECTION = "Data Layer"
AI_LAYER_SECTION_PREFIX = "AI Layer"
AI_LAYER_CUSTOM_SECTION = "AI Layer - Custom"

BORDER_DATA_LAYER = "border-purple-600"
BORDER_AI_LAYER = "border-purple-700"


def section_choice_for(capability: Capability) -> Optional[str]:
    """Map a capability back onto the editor's section choice."""
    if capability.category == CapabilityCategory.DATA_LAYER:
        return SECTION_INFRASTRUCTURE
    if capability.category == CapabilityCategory.AI_LAYER:
        return SECTION_AI_PLATFORM
    return None


def _clean_name(entity: str, name: Optional[str]) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise ValidationError(f"Please enter a {entity} name.")
    return cleaned


def _ensure_unique_name(entity: str, name: str, items: Iterable, exclude_id: Optional[str] = None) -> None:
    wanted = normalize_name(name)
    for item in items:
        if item.id != exclude_id and normalize_name(item.name) == wanted:
            raise DuplicateNameError(entity, name)


def _require(entity: str, items: Sequence, entity_id: Optional[str]):
    found = next((i for i in items if i.id == entity_id), None)
    if found is None:
        raise NotFoundError(entity, entity_id)
    return found


class CatalogEditor:
    """Add / edit / delete operations over a ``CatalogStore``.

    Validation failures raise ``CatalogError`` subclasses to the caller. Every successful
    mutation calls ``on_change`` so the owner can run a fresh resolution pass.
    """

    def __init__(self, store: CatalogStore, on_change: Optional[Callable[[], None]] = None):
        self.store = store
        self.on_change = on_change

    def _changed(self) -> None:
        if self.on_change is not None:
            self.on_change()

    # ---------------- Vendors ----------------
    def add_vendor(self, name: str) -> Vendor:
        name = _clean_name("vendor", name)
        with self.store.locked():
            vendors = self.store.get_vendors()
            _ensure_unique_name("vendor", name, vendors)
            vendor = Vendor(id=self.store.generate_id("vendor"), name=name)
            self.store.replace_vendors(vendors + [vendor])
        logger.info("Added vendor %r (%s)", vendor.name, vendor.id)
        self._changed()
        return vendor

    def edit_vendor(self, vendor_id: str, name: str) -> Vendor:
        name = _clean_name("vendor", name)
        with self.store.locked():
            vendors = self.store.get_vendors()
            current = _require("vendor", vendors, vendor_id)
            _ensure_unique_name("vendor", name, vendors, exclude_id=vendor_id)
            updated = replace(current, name=name)
            self.store.replace_vendors([updated if v.id == vendor_id else v for v in vendors])
        self._changed()
        return updated

    def delete_vendor(self, vendor_id: str, *, confirm: bool = False) -> int:
        """Delete a vendor and its products; returns the number of products removed."""
        with self.store.locked():
            vendors = self.store.get_vendors()
            _require("vendor", vendors, vendor_id)
            affected = sum(1 for p in self.store.get_products() if p.vendor_id == vendor_id)
            if affected and not confirm:
                raise CascadeConfirmationRequired("vendor", vendor_id, affected)
            self.store.replace_vendors([v for v in vendors if v.id != vendor_id])
        logger.info("Deleted vendor %s with %d product(s)", vendor_id, affected)
        self._changed()
        return affected

    # ---------------- Products ----------------
    def _validate_product(self, vendor_id: Optional[str], capability_ids: Iterable[str]) -> List[str]:
        if not vendor_id or self.store.find_vendor(vendor_id) is None:
            raise ValidationError("Please select an existing vendor for the product.")
        capabilities = {c.id: c for c in self.store.get_capabilities()}
        cleaned: List[str] = []
        for cid in capability_ids:
            capability = capabilities.get(cid)
            if capability is None:
                raise NotFoundError("capability", cid)
            if capability.is_label:
                raise ValidationError(f"'{capability.name}' is a label and cannot be offered by a product.")
            if cid not in cleaned:
                cleaned.append(cid)
        if not cleaned:
            raise ValidationError("Please select at least one capability for the product.")
        return cleaned

    def add_product(self, name: str, vendor_id: str, capability_ids: Iterable[str]) -> Product:
        name = _clean_name("product", name)
        with self.store.locked():
            cleaned = self._validate_product(vendor_id, capability_ids)
            products = self.store.get_products()
            _ensure_unique_name("product", name, products)
            product = Product(
                id=self.store.generate_id("product"),
                name=name,
                vendor_id=vendor_id,
                capability_ids=tuple(cleaned),
            )
            self.store.replace_products(products + [product])
        logger.info("Added product %r (%s) for vendor %s", product.name, product.id, vendor_id)
        self._changed()
        return product

    def edit_product(self, product_id: str, name: str, vendor_id: str, capability_ids: Iterable[str]) -> Product:
        name = _clean_name("product", name)
        with self.store.locked():
            products = self.store.get_products()
            current = _require("product", products, product_id)
            cleaned = self._validate_product(vendor_id, capability_ids)
            _ensure_unique_name("product", name, products, exclude_id=product_id)
            updated = replace(current, name=name, vendor_id=vendor_id, capability_ids=tuple(cleaned))
            self.store.replace_products([updated if p.id == product_id else p for p in products])
        self._changed()
        return updated

    def delete_product(self, product_id: str) -> None:
        with self.store.locked():
            products = self.store.get_products()
            _require("product", products, product_id)
            self.store.replace_products([p for p in products if p.id != product_id])
        logger.info("Deleted product %s", product_id)
        self._changed()

    # ---------------- Capabilities ----------------
    def add_capability(self, name: str, section_choice: str) -> Capability:
        name = _clean_name("capability", name)
        if section_choice not in SECTION_CHOICES:
            raise ValidationError("Please select a section for the capability.")
        with self.store.locked():
            capabilities = self.store.get_capabilities()
            _ensure_unique_name("capability", name, capabilities)
            if section_choice == SECTION_INFRASTRUCTURE:
                category, section, border = CapabilityCategory.DATA_LAYER, DATA_LAYER_SECTION, BORDER_DATA_LAYER
            else:
                category, section, border = CapabilityCategory.AI_LAYER, AI_LAYER_CUSTOM_SECTION, BORDER_AI_LAYER
            capability = Capability(
                id=self.store.generate_id("cap"),
                name=name,
                category=category,
                section=section,
                order=len(capabilities) + 1,
                border_color_class=border,
            )
            self.store.replace_capabilities(capabilities + [capability])
        logger.info("Added capability %r (%s) to %s", capability.name, capability.id, section)
        self._changed()
        return capability

    def edit_capability(self, capability_id: str, name: str, section_choice: str) -> Capability:
        name = _clean_name("capability", name)
        if section_choice not in SECTION_CHOICES:
            raise ValidationError("Please select a section for the capability.")
        with self.store.locked():
            capabilities = self.store.get_capabilities()
            current = _require("capability", capabilities, capability_id)
            _ensure_unique_name("capability", name, capabilities, exclude_id=capability_id)
            if section_choice == SECTION_INFRASTRUCTURE:
                category, section = CapabilityCategory.DATA_LAYER, DATA_LAYER_SECTION
            else:
                category = CapabilityCategory.AI_LAYER
                section = (
                    current.section if current.section.startswith(AI_LAYER_SECTION_PREFIX) else AI_LAYER_CUSTOM_SECTION
                )
            updated = replace(current, name=name, category=category, section=section)
            self.store.replace_capabilities([updated if c.id == capability_id else c for c in capabilities])
        self._changed()
        return updated

    def delete_capability(self, capability_id: str, *, confirm: bool = False) -> int:
        """Delete a capability and strip it from every product; returns the number of products touched."""
        with self.store.locked():
            capabilities = self.store.get_capabilities()
            _require("capability", capabilities, capability_id)
            affected = sum(1 for p in self.store.get_products() if p.covers(capability_id))
            if affected and not confirm:
                raise CascadeConfirmationRequired("capability", capability_id, affected)
            self.store.replace_capabilities([c for c in capabilities if c.id != capability_id])
        logger.info("Deleted capability %s (removed from %d product(s))", capability_id, affected)
        self._changed()
        return affected

    # ---------------- Manual selection ----------------
    def select_product(self, capability_id: str, product_id: str) -> Capability:
        """Pin ``product_id`` on one capability until the next resolution pass."""
        with self.store.locked():
            capabilities = self.store.get_capabilities()
            current = _require("capability", capabilities, capability_id)
            product = self.store.find_product(product_id)
            if product is None:
                raise NotFoundError("product", product_id)
            if current.is_label:
                raise ValidationError(f"'{current.name}' is a label and cannot be assigned a product.")
            if not product.covers(capability_id):
                raise ValidationError(f"Product '{product.name}' does not offer '{current.name}'.")
            updated = replace(current, current_product_id=product_id)
            self.store.replace_capabilities([updated if c.id == capability_id else c for c in capabilities])
        return updated

    def clear_product(self, capability_id: str) -> Capability:
        with self.store.locked():
            capabilities = self.store.get_capabilities()
            current = _require("capability", capabilities, capability_id)
            updated = replace(current, current_product_id=None)
            self.store.replace_capabilities([updated if c.id == capability_id else c for c in capabilities])
        return updated
