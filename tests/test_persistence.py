"""
Persistence tests
=================
CSV parsing with header aliases, CSV export, and local storage precedence.
"""

import json

import pandas as pd

from catalog import persistence
from catalog.models import CapabilityCategory, CatalogCollections, Vendor
from catalog.persistence import (
    capability_id_from_name,
    clear_storage,
    collections_to_frames,
    export_csv,
    load_from_storage,
    load_initial_collections,
    make_id_factory,
    persist,
    read_collections_csv,
)


def read_dir(path):
    return read_collections_csv(path / "vendors.csv", path / "products.csv", path / "capabilities.csv")


# ============================================================
# TEST: CSV IMPORT
# ============================================================

class TestCsvImport:

    def test_reads_all_entities(self, csv_dir):
        collections = read_dir(csv_dir)
        assert [v.id for v in collections.vendors] == ["v1", "v9"]
        assert [p.id for p in collections.products] == ["p1", "p9"]
        assert [c.id for c in collections.capabilities] == ["c1", "c2", "lbl"]

    def test_vendor_and_capability_matching_ignores_case(self, csv_dir):
        products = {p.id: p for p in read_dir(csv_dir).products}
        assert products["p1"].vendor_id == "v1"
        assert products["p1"].capability_ids == ("c1",)
        assert products["p9"].capability_ids == ("c1", "c2")

    def test_capability_fields(self, csv_dir):
        caps = {c.id: c for c in read_dir(csv_dir).capabilities}
        assert caps["c1"].category == CapabilityCategory.DATA_LAYER
        assert caps["c2"].order == 2
        assert caps["lbl"].is_label is True
        assert caps["lbl"].section == "AI Layer - Top"
        assert caps["c1"].current_product_id is None

    def test_unknown_references_are_dropped(self, csv_dir):
        (csv_dir / "products.csv").write_text(
            'id,name,vendorId,capabilityIds\np1,Stray,v404,"c1,c404"\n', encoding="utf-8"
        )
        product = read_dir(csv_dir).products[0]
        assert product.vendor_id is None
        assert product.capability_ids == ("c1",)

    def test_missing_ids_are_generated(self, csv_dir):
        (csv_dir / "vendors.csv").write_text("name\nAcme\nCloud Native\n", encoding="utf-8")
        (csv_dir / "capabilities.csv").write_text("Capability,Category\nData Lake,Data Layer\n", encoding="utf-8")
        collections = read_dir(csv_dir)
        assert [v.id for v in collections.vendors] == ["vendor_1", "vendor_2"]
        assert collections.capabilities[0].id == "cap_data_lake"

    def test_duplicate_ids_keep_first(self, csv_dir):
        (csv_dir / "vendors.csv").write_text("id,name\nv1,Acme\nv1,Other\n", encoding="utf-8")
        vendors = read_dir(csv_dir).vendors
        assert vendors == [Vendor("v1", "Acme")]

    def test_rows_without_names_are_skipped(self, csv_dir):
        (csv_dir / "vendors.csv").write_text("id,name\nv1,Acme\nv2,\n", encoding="utf-8")
        assert [v.id for v in read_dir(csv_dir).vendors] == ["v1"]

    def test_capability_id_from_name(self):
        assert capability_id_from_name(" Vector Search ") == "cap_vector_search"

    def test_id_factory_skips_taken(self):
        new_id = make_id_factory({"product_1"})
        assert new_id("product") == "product_2"
        assert new_id("product") == "product_3"


# ============================================================
# TEST: CSV EXPORT
# ============================================================

class TestCsvExport:

    def test_frames_use_original_headers(self, collections):
        frames = collections_to_frames(collections)
        assert list(frames["products"].columns) == ["id", "name", "vendorId", "capabilityIds"]
        assert frames["products"].loc[1, "capabilityIds"] == "c1,c2"
        assert frames["capabilities"].loc[0, "isLabel"] == "false"

    def test_export_then_import_keeps_entities(self, collections, tmp_path):
        written = export_csv(collections, tmp_path / "out")
        assert set(written) == {"vendors", "products", "capabilities"}
        loaded = read_dir(tmp_path / "out")
        assert loaded.vendors == collections.vendors
        assert loaded.products == collections.products
        assert loaded.capabilities == collections.capabilities

    def test_empty_export_has_headers(self, tmp_path):
        export_csv(CatalogCollections(), tmp_path)
        df = pd.read_csv(tmp_path / "vendors.csv")
        assert list(df.columns) == ["id", "name"]
        assert df.empty


# ============================================================
# TEST: LOCAL STORAGE
# ============================================================

class TestLocalStorage:

    def test_persist_and_load(self, collections, settings):
        persist(collections, settings)
        raw = json.loads(settings.storage_path.read_text(encoding="utf-8"))
        assert settings.storage_key in raw
        assert load_from_storage(settings) == collections

    def test_persist_keeps_other_keys(self, collections, settings):
        settings.storage_path.write_text(json.dumps({"other": 1}), encoding="utf-8")
        persist(collections, settings)
        raw = json.loads(settings.storage_path.read_text(encoding="utf-8"))
        assert raw["other"] == 1

    def test_corrupt_storage_reads_as_empty(self, settings):
        settings.storage_path.write_text("{not json", encoding="utf-8")
        assert load_from_storage(settings) is None

    def test_storage_takes_precedence_over_csv(self, csv_dir, settings):
        stored = CatalogCollections(vendors=[Vendor("only", "Stored")])
        persist(stored, settings)
        assert load_initial_collections(settings) == stored

    def test_csv_load_is_saved_to_storage(self, csv_dir, settings):
        loaded = load_initial_collections(settings)
        assert [v.id for v in loaded.vendors] == ["v1", "v9"]
        assert load_from_storage(settings) == loaded

    def test_missing_csv_gives_empty_collections(self, settings):
        assert load_initial_collections(settings).is_empty()
        assert not settings.storage_path.exists()

    def test_clear_storage(self, collections, settings):
        persist(collections, settings)
        assert clear_storage(settings) is True
        assert load_from_storage(settings) is None
        assert clear_storage(settings) is False

    def test_duplicate_ids_in_storage_keep_first(self, settings):
        document = {
            "vendors": [{"id": "v1", "name": "Acme"}, {"id": "v1", "name": "Acme Again"}],
            "products": [
                {"id": "p1", "name": "One", "vendorId": "v1", "capabilityIds": []},
                {"id": "p1", "name": "Two", "vendorId": "v1", "capabilityIds": []},
            ],
            "capabilities": [{"id": "c1", "name": "Ingestion"}, {"id": "c1", "name": "Copy"}],
        }
        settings.storage_path.write_text(json.dumps({settings.storage_key: document}), encoding="utf-8")
        loaded = load_from_storage(settings)
        assert loaded.vendors == [Vendor("v1", "Acme")]
        assert [p.name for p in loaded.products] == ["One"]
        assert [c.name for c in loaded.capabilities] == ["Ingestion"]

    def test_failed_save_after_csv_load_still_returns_data(self, csv_dir, settings, monkeypatch):
        def read_only(collections, settings):
            raise PermissionError("read-only file system")

        monkeypatch.setattr(persistence, "persist", read_only)
        loaded = load_initial_collections(settings)
        assert [v.id for v in loaded.vendors] == ["v1", "v9"]
        assert not settings.storage_path.exists()
