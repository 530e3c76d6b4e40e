"""
Catalog editor tests
====================
Validation, duplicate names, confirmed cascades, section mapping and manual selection.
"""

import pytest

from catalog.editor import (
    AI_LAYER_CUSTOM_SECTION,
    BORDER_AI_LAYER,
    BORDER_DATA_LAYER,
    CatalogEditor,
    SECTION_AI_PLATFORM,
    SECTION_INFRASTRUCTURE,
    section_choice_for,
)
from catalog.errors import (
    CascadeConfirmationRequired,
    CatalogError,
    DuplicateNameError,
    NotFoundError,
    ValidationError,
)
from catalog.models import Capability, CapabilityCategory


@pytest.fixture
def calls():
    return []


@pytest.fixture
def editor(store, calls):
    return CatalogEditor(store, on_change=lambda: calls.append(True))


# ============================================================
# TEST: VENDORS
# ============================================================

class TestVendors:

    def test_add_vendor(self, editor, store, calls):
        vendor = editor.add_vendor("  Globex ")
        assert vendor.name == "Globex"
        assert store.find_vendor(vendor.id) == vendor
        assert calls == [True]

    def test_empty_name_rejected(self, editor, calls):
        with pytest.raises(ValidationError):
            editor.add_vendor("   ")
        assert calls == []

    def test_duplicate_name_ignores_case(self, editor):
        with pytest.raises(DuplicateNameError):
            editor.add_vendor("acme")

    def test_edit_vendor_may_keep_its_own_name(self, editor):
        assert editor.edit_vendor("v1", "ACME").name == "ACME"

    def test_edit_vendor_to_other_name_rejected(self, editor):
        with pytest.raises(DuplicateNameError):
            editor.edit_vendor("v1", "Cloud Native")

    def test_edit_unknown_vendor(self, editor):
        with pytest.raises(NotFoundError):
            editor.edit_vendor("nope", "Name")

    def test_delete_vendor_with_products_needs_confirmation(self, editor, store, calls):
        with pytest.raises(CascadeConfirmationRequired) as info:
            editor.delete_vendor("v1")
        assert info.value.affected == 1
        assert store.find_vendor("v1") is not None
        assert calls == []

    def test_confirmed_vendor_delete_cascades(self, editor, store):
        assert editor.delete_vendor("v1", confirm=True) == 1
        assert store.find_vendor("v1") is None
        assert store.find_product("p1") is None

    def test_delete_vendor_without_products(self, editor, store):
        vendor = editor.add_vendor("Initech")
        assert editor.delete_vendor(vendor.id) == 0
        assert store.find_vendor(vendor.id) is None


# ============================================================
# TEST: PRODUCTS
# ============================================================

class TestProducts:

    def test_add_product(self, editor, store):
        product = editor.add_product("Acme Vault", "v1", ["c2", "c2"])
        assert product.capability_ids == ("c2",)
        assert store.find_product(product.id).vendor_id == "v1"

    def test_product_needs_existing_vendor(self, editor):
        with pytest.raises(ValidationError):
            editor.add_product("Thing", "nope", ["c1"])
        with pytest.raises(ValidationError):
            editor.add_product("Thing", "", ["c1"])

    def test_product_needs_a_capability(self, editor):
        with pytest.raises(ValidationError):
            editor.add_product("Thing", "v1", [])

    def test_product_capability_must_exist(self, editor):
        with pytest.raises(NotFoundError):
            editor.add_product("Thing", "v1", ["c404"])

    def test_product_cannot_cover_label(self, editor, store):
        store.replace_capabilities(store.get_capabilities() + [Capability("lbl", "Section", is_label=True)])
        with pytest.raises(ValidationError):
            editor.add_product("Thing", "v1", ["lbl"])

    def test_duplicate_product_name(self, editor):
        with pytest.raises(DuplicateNameError):
            editor.add_product("acme  ingest", "v1", ["c1"])

    def test_edit_product(self, editor, store):
        updated = editor.edit_product("p1", "Acme Ingest 2", "v1", ["c1", "c2"])
        assert store.find_product("p1") == updated
        assert updated.capability_ids == ("c1", "c2")

    def test_delete_product(self, editor, store, calls):
        editor.delete_product("p1")
        assert store.find_product("p1") is None
        assert calls == [True]

    def test_delete_unknown_product(self, editor):
        with pytest.raises(NotFoundError):
            editor.delete_product("nope")


# ============================================================
# TEST: CAPABILITIES
# ============================================================

class TestCapabilities:

    def test_add_infrastructure_capability(self, editor):
        cap = editor.add_capability("Streaming", SECTION_INFRASTRUCTURE)
        assert cap.category == CapabilityCategory.DATA_LAYER
        assert cap.section == "Data Layer"
        assert cap.border_color_class == BORDER_DATA_LAYER
        assert cap.order == 3
        assert section_choice_for(cap) == SECTION_INFRASTRUCTURE

    def test_add_ai_platform_capability(self, editor):
        cap = editor.add_capability("Guardrails", SECTION_AI_PLATFORM)
        assert cap.category == CapabilityCategory.AI_LAYER
        assert cap.section == AI_LAYER_CUSTOM_SECTION
        assert cap.border_color_class == BORDER_AI_LAYER
        assert section_choice_for(cap) == SECTION_AI_PLATFORM

    def test_unknown_section_rejected(self, editor):
        with pytest.raises(ValidationError):
            editor.add_capability("Thing", "elsewhere")

    def test_edit_keeps_existing_ai_section(self, editor, store):
        store.replace_capabilities(
            store.get_capabilities()
            + [Capability("c7", "Serving", category=CapabilityCategory.AI_LAYER, section="AI Layer - Deployment")]
        )
        updated = editor.edit_capability("c7", "Model Serving", SECTION_AI_PLATFORM)
        assert updated.section == "AI Layer - Deployment"

    def test_edit_moves_capability_between_layers(self, editor):
        updated = editor.edit_capability("c1", "Ingestion", SECTION_AI_PLATFORM)
        assert updated.category == CapabilityCategory.AI_LAYER
        assert updated.section == AI_LAYER_CUSTOM_SECTION

    def test_delete_capability_needs_confirmation(self, editor, store):
        with pytest.raises(CascadeConfirmationRequired) as info:
            editor.delete_capability("c1")
        assert info.value.affected == 2
        assert store.find_capability("c1") is not None

    def test_confirmed_capability_delete_strips_products(self, editor, store):
        assert editor.delete_capability("c1", confirm=True) == 2
        assert store.find_product("p9").capability_ids == ("c2",)
        assert store.find_product("p1").capability_ids == ()

    def test_errors_are_catalog_errors(self, editor):
        with pytest.raises(CatalogError):
            editor.delete_capability("nope")


# ============================================================
# TEST: MANUAL SELECTION
# ============================================================

class TestManualSelection:

    def test_select_product(self, editor, store, calls):
        cap = editor.select_product("c1", "p1")
        assert cap.current_product_id == "p1"
        assert store.find_capability("c1").current_product_id == "p1"
        assert calls == []

    def test_select_non_covering_product_rejected(self, editor):
        with pytest.raises(ValidationError):
            editor.select_product("c2", "p1")

    def test_select_unknown_product(self, editor):
        with pytest.raises(NotFoundError):
            editor.select_product("c1", "nope")

    def test_clear_product(self, editor, store):
        editor.select_product("c1", "p1")
        assert editor.clear_product("c1").current_product_id is None
        assert store.find_capability("c1").current_product_id is None
