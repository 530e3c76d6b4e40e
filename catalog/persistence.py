from __future__ import annotations

import json
import logging
import os
import re
from pathlib import Path
from typing import IO, Callable, Dict, Iterable, List, Optional, Set, Union

import pandas as pd

from catalog.models import (
    Capability,
    CatalogCollections,
    Product,
    UNCATEGORIZED,
    Vendor,
    category_label,
    collections_from_document,
    collections_to_document,
    parse_category,
    as_bool,
    as_int,
)
from catalog.settings import Settings


logger = logging.getLogger(__name__)

CsvSource = Union[str, Path, IO]
IdFactory = Callable[[str], str]

VENDOR_COLUMNS = {
    "id": "id",
    "vendor_id": "id",
    "name": "name",
    "vendor": "name",
    "vendor name": "name",
}

CAPABILITY_COLUMNS = {
    "id": "id",
    "capability_id": "id",
    "name": "name",
    "capability": "name",
    "capability name": "name",
    "category": "category",
    "section": "section",
    "order": "order",
    "islabel": "is_label",
    "is_label": "is_label",
    "is label": "is_label",
    "bordercolorclass": "border_color_class",
    "border_color_class": "border_color_class",
}

PRODUCT_COLUMNS = {
    "id": "id",
    "product_id": "id",
    "name": "name",
    "product": "name",
    "product name": "name",
    "vendorid": "vendor_id",
    "vendor_id": "vendor_id",
    "vendor": "vendor_id",
    "capabilityids": "capability_ids",
    "capability_ids": "capability_ids",
    "capability": "capability_ids",
    "capabilities": "capability_ids",
}

EXPORT_COLUMNS = {
    "vendors": ["id", "name"],
    "products": ["id", "name", "vendorId", "capabilityIds"],
    "capabilities": ["id", "name", "category", "section", "order", "isLabel", "borderColorClass"],
}


def make_id_factory(taken: Optional[Iterable[str]] = None) -> IdFactory:
    """Sequential ``<prefix>_<n>`` ids that skip anything in ``taken``."""
    used: Set[str] = set(taken or [])
    counter = [0]

    def _next(prefix: str = "id") -> str:
        while True:
            counter[0] += 1
            candidate = f"{prefix}_{counter[0]}"
            if candidate not in used:
                used.add(candidate)
                return candidate

    return _next


def capability_id_from_name(name: str) -> str:
    return "cap_" + re.sub(r"\s", "_", name.strip().lower())


# ---------------- CSV -> entities ----------------
def read_csv_frame(source: CsvSource, rename_map: Dict[str, str]) -> pd.DataFrame:
    df = pd.read_csv(source, dtype=str, encoding="utf-8-sig", skip_blank_lines=True)
    df.columns = [str(c).strip().lower() for c in df.columns]
    df = df.rename(columns=rename_map)
    df = df.loc[:, ~df.columns.duplicated()]
    return df.fillna("")


def _cell(row: pd.Series, col: str) -> str:
    if col not in row.index:
        return ""
    return str(row[col]).strip()


def parse_vendors_frame(df: pd.DataFrame, new_id: Optional[IdFactory] = None) -> List[Vendor]:
    new_id = new_id or make_id_factory(df.get("id", pd.Series(dtype=str)).tolist())
    vendors: List[Vendor] = []
    for _, row in df.iterrows():
        name = _cell(row, "name")
        if not name:
            logger.warning("Skipping vendor row without a name: %s", row.to_dict())
            continue
        vendors.append(Vendor(id=_cell(row, "id") or new_id("vendor"), name=name))
    return vendors


def parse_capabilities_frame(df: pd.DataFrame) -> List[Capability]:
    capabilities: List[Capability] = []
    for _, row in df.iterrows():
        name = _cell(row, "name")
        if not name:
            logger.warning("Skipping capability row without a name: %s", row.to_dict())
            continue
        capabilities.append(
            Capability(
                id=_cell(row, "id") or capability_id_from_name(name),
                name=name,
                category=parse_category(_cell(row, "category")),
                section=_cell(row, "section") or UNCATEGORIZED,
                order=as_int(_cell(row, "order")),
                is_label=as_bool(_cell(row, "is_label")),
                border_color_class=_cell(row, "border_color_class") or None,
            )
        )
    return capabilities


def parse_products_frame(
    df: pd.DataFrame,
    vendors: List[Vendor],
    capabilities: List[Capability],
    new_id: Optional[IdFactory] = None,
) -> List[Product]:
    new_id = new_id or make_id_factory(df.get("id", pd.Series(dtype=str)).tolist())
    vendor_lookup = {v.id.strip().lower(): v.id for v in vendors}
    capability_lookup = {c.id.lower(): c.id for c in capabilities}
    products: List[Product] = []
    for _, row in df.iterrows():
        name = _cell(row, "name")
        if not name:
            logger.warning("Skipping product row without a name: %s", row.to_dict())
            continue
        raw_vendor = _cell(row, "vendor_id")
        vendor_id = vendor_lookup.get(raw_vendor.lower())
        if raw_vendor and vendor_id is None:
            logger.warning("Product %r references unknown vendor %r; vendor left empty", name, raw_vendor)

        capability_ids: List[str] = []
        raw_caps = _cell(row, "capability_ids")
        for token in [t.strip() for t in raw_caps.split(",")] if raw_caps else []:
            if not token:
                continue
            cid = capability_lookup.get(token.lower())
            if cid is None:
                logger.warning("No matching capability for id %r in product %r", token, name)
                continue
            if cid not in capability_ids:
                capability_ids.append(cid)

        products.append(
            Product(
                id=_cell(row, "id") or new_id("product"),
                name=name,
                vendor_id=vendor_id,
                capability_ids=tuple(capability_ids),
            )
        )
    return products


def drop_duplicate_ids(entity: str, items: List) -> List:
    seen: Set[str] = set()
    kept = []
    for item in items:
        if item.id in seen:
            logger.warning("Skipping duplicate %s id %r", entity, item.id)
            continue
        seen.add(item.id)
        kept.append(item)
    return kept


def read_collections_csv(
    vendors_source: CsvSource,
    products_source: CsvSource,
    capabilities_source: CsvSource,
) -> CatalogCollections:
    vendors_df = read_csv_frame(vendors_source, VENDOR_COLUMNS)
    products_df = read_csv_frame(products_source, PRODUCT_COLUMNS)
    capabilities_df = read_csv_frame(capabilities_source, CAPABILITY_COLUMNS)

    taken = set()
    for df in (vendors_df, products_df, capabilities_df):
        if "id" in df.columns:
            taken.update(x for x in df["id"].tolist() if x)
    new_id = make_id_factory(taken)

    vendors = drop_duplicate_ids("vendor", parse_vendors_frame(vendors_df, new_id))
    capabilities = drop_duplicate_ids("capability", parse_capabilities_frame(capabilities_df))
    products = drop_duplicate_ids("product", parse_products_frame(products_df, vendors, capabilities, new_id))
    logger.info(
        "Parsed %d vendor(s), %d product(s), %d capability(ies) from CSV",
        len(vendors),
        len(products),
        len(capabilities),
    )
    return CatalogCollections(vendors=vendors, products=products, capabilities=capabilities)


# ---------------- Entities -> CSV ----------------
def collections_to_frames(collections: CatalogCollections) -> Dict[str, pd.DataFrame]:
    vendors = pd.DataFrame(
        [{"id": v.id, "name": v.name} for v in collections.vendors],
        columns=EXPORT_COLUMNS["vendors"],
    )
    products = pd.DataFrame(
        [
            {
                "id": p.id,
                "name": p.name,
                "vendorId": p.vendor_id or "",
                "capabilityIds": ",".join(p.capability_ids),
            }
            for p in collections.products
        ],
        columns=EXPORT_COLUMNS["products"],
    )
    capabilities = pd.DataFrame(
        [
            {
                "id": c.id,
                "name": c.name,
                "category": category_label(c.category),
                "section": c.section,
                "order": "" if c.order is None else c.order,
                "isLabel": "true" if c.is_label else "false",
                "borderColorClass": c.border_color_class or "",
            }
            for c in collections.capabilities
        ],
        columns=EXPORT_COLUMNS["capabilities"],
    )
    return {"vendors": vendors, "products": products, "capabilities": capabilities}


def frame_to_csv_bytes(df: pd.DataFrame) -> bytes:
    return df.to_csv(index=False).encode("utf-8")


def export_csv(collections: CatalogCollections, directory: Path) -> Dict[str, Path]:
    directory.mkdir(parents=True, exist_ok=True)
    written: Dict[str, Path] = {}
    for entity, df in collections_to_frames(collections).items():
        path = directory / f"{entity}.csv"
        df.to_csv(path, index=False)
        written[entity] = path
    logger.info("Exported catalog CSV files to %s", directory)
    return written


# ---------------- Local storage ----------------
def _read_storage_file(path: Path) -> Dict[str, object]:
    if not path.exists():
        return {}
    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"Local storage file {path} does not hold a JSON object")
    return data


def load_from_storage(settings: Settings) -> Optional[CatalogCollections]:
    try:
        stored = _read_storage_file(settings.storage_path).get(settings.storage_key)
        if not stored:
            return None
        collections = collections_from_document(stored)  # type: ignore[arg-type]
    except (OSError, ValueError, KeyError, TypeError):
        logger.exception("Error loading data from local storage %s", settings.storage_path)
        return None
    collections = CatalogCollections(
        vendors=drop_duplicate_ids("vendor", collections.vendors),
        products=drop_duplicate_ids("product", collections.products),
        capabilities=drop_duplicate_ids("capability", collections.capabilities),
    )
    logger.info("Data loaded from local storage %s", settings.storage_path)
    return collections


def persist(collections: CatalogCollections, settings: Settings) -> Path:
    path = settings.storage_path
    try:
        data = _read_storage_file(path)
    except ValueError:
        logger.warning("Overwriting unreadable local storage file %s", path)
        data = {}
    data[settings.storage_key] = collections_to_document(collections)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
    os.replace(tmp, path)
    logger.info("Data saved to local storage %s", path)
    return path


def clear_storage(settings: Settings) -> bool:
    path = settings.storage_path
    try:
        data = _read_storage_file(path)
    except ValueError:
        path.unlink()
        return True
    if settings.storage_key not in data:
        return False
    del data[settings.storage_key]
    if data:
        path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
    else:
        path.unlink()
    logger.info("Cleared local storage key %r in %s", settings.storage_key, path)
    return True


def load_initial_collections(settings: Settings) -> CatalogCollections:
    """Local storage first; otherwise the CSV files in ``settings.data_dir`` (then saved to local storage)."""
    stored = load_from_storage(settings)
    if stored is not None:
        return stored

    logger.info("Local storage empty or failed. Loading from CSV files in %s", settings.data_dir)
    paths = [settings.vendors_csv, settings.products_csv, settings.capabilities_csv]
    missing = [p.name for p in paths if not p.exists()]
    if missing:
        logger.error("Failed to load initial data; missing CSV file(s) %s in %s", missing, settings.data_dir)
        return CatalogCollections()
    try:
        collections = read_collections_csv(*paths)
    except (OSError, ValueError, pd.errors.ParserError):
        logger.exception("Error loading or parsing CSV data")
        return CatalogCollections()
    try:
        persist(collections, settings)
    except OSError:
        logger.exception("Error saving data to local storage %s", settings.storage_path)
    return collections
