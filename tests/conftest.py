import sys
from pathlib import Path

import pytest

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from catalog.models import Capability, CapabilityCategory, CatalogCollections, Product, Vendor
from catalog.settings import normalize_settings
from catalog.store import CatalogStore
from catalog.session import CatalogSession


def scenario_collections() -> CatalogCollections:
    """Acme (v1) plus the Cloud Native fallback vendor (v9) over two capabilities."""
    return CatalogCollections(
        vendors=[Vendor("v1", "Acme"), Vendor("v9", "Cloud Native")],
        products=[
            Product("p1", "Acme Ingest", vendor_id="v1", capability_ids=("c1",)),
            Product("p9", "Cloud Native Base Services", vendor_id="v9", capability_ids=("c1", "c2")),
        ],
        capabilities=[
            Capability("c1", "Ingestion", category=CapabilityCategory.DATA_LAYER, section="Data Layer", order=1),
            Capability("c2", "Storage", category=CapabilityCategory.DATA_LAYER, section="Data Layer", order=2),
        ],
    )


@pytest.fixture
def collections():
    return scenario_collections()


@pytest.fixture
def store(collections):
    return CatalogStore(collections)


@pytest.fixture
def settings(tmp_path):
    return normalize_settings({"data_dir": tmp_path})


@pytest.fixture
def session(store, settings):
    s = CatalogSession(store, settings)
    s.resolve(None)
    return s


@pytest.fixture
def csv_dir(tmp_path):
    """Write a small catalog in the original CSV header style."""
    (tmp_path / "vendors.csv").write_text("id,name\nv1,Acme\nv9,Cloud Native\n", encoding="utf-8")
    (tmp_path / "capabilities.csv").write_text(
        "id,name,category,section,order,isLabel\n"
        "c1,Ingestion,Data Layer,Data Layer,1,false\n"
        "c2,Storage,Data Layer,Data Layer,2,false\n"
        "lbl,AI Platform,AI Layer,AI Layer - Top,3,true\n",
        encoding="utf-8",
    )
    (tmp_path / "products.csv").write_text(
        "id,name,Vendor,Capability\n"
        'p1,Acme Ingest,V1,"C1"\n'
        'p9,Cloud Native Base Services,v9,"c1, c2"\n',
        encoding="utf-8",
    )
    return tmp_path
