from __future__ import annotations

from dataclasses import asdict
import logging
import math
from typing import Optional

import numpy as np
import pandas as pd
from fastapi import FastAPI, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.responses import Response
from fastapi.encoders import jsonable_encoder

from api.schemas import (
    CapabilityIn,
    CapabilityModel,
    ProductIn,
    ProductModel,
    ResolveResponse,
    SelectionIn,
    SettingsResponse,
    VendorIn,
    VendorModel,
)
from catalog.board import compute_capability_board, compute_coverage_matrix, products_for_capability
from catalog.errors import CatalogError, NotFoundError
from catalog.models import Capability, Product, Vendor, category_label
from catalog.persistence import frame_to_csv_bytes
from catalog.quality import compute_quality_report
from catalog.session import get_default_session


app = FastAPI(title="Capability Catalog API", version="0.1.0")
logger = logging.getLogger(__name__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000", "http://localhost:8501"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _vendor_model(vendor: Vendor) -> VendorModel:
    return VendorModel(id=vendor.id, name=vendor.name)


def _product_model(product: Product) -> ProductModel:
    return ProductModel(
        id=product.id,
        name=product.name,
        vendor_id=product.vendor_id,
        capability_ids=list(product.capability_ids),
    )


def _capability_model(capability: Capability) -> CapabilityModel:
    return CapabilityModel(
        id=capability.id,
        name=capability.name,
        category=category_label(capability.category),
        section=capability.section,
        order=capability.order,
        is_label=capability.is_label,
        border_color_class=capability.border_color_class,
        current_product_id=capability.current_product_id,
    )


def _json(data: object, status_code: int = 200) -> JSONResponse:
    """Return JSON with safe encoding for pandas/numpy objects."""

    def _safe_float(value: object) -> float | None:
        try:
            out = float(value)  # type: ignore[arg-type]
        except Exception:
            return None
        if math.isnan(out) or math.isinf(out):
            return None
        return out

    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(
            data,
            custom_encoder={
                type(pd.NA): lambda _: None,
                np.integer: int,
                float: _safe_float,
                np.floating: _safe_float,
                np.bool_: bool,
                np.ndarray: lambda arr: arr.tolist(),
            },
        ),
    )


def _failure(exc: Exception, what: str) -> JSONResponse:
    if isinstance(exc, CatalogError):
        logger.info("%s rejected: %s", what, exc)
        return JSONResponse(status_code=exc.status_code, content={"error": str(exc), "type": type(exc).__name__})
    logger.exception("%s failed", what)
    return JSONResponse(status_code=500, content={"error": str(exc), "type": type(exc).__name__})


def _resolve_payload(vendor_id: Optional[str]) -> ResolveResponse:
    session = get_default_session()
    assignments = session.select_vendor(vendor_id)
    fallback = session.fallback()
    return ResolveResponse(
        vendor_id=vendor_id or None,
        fallback=asdict(fallback) if fallback else None,
        assignments=assignments,
    )


# ---------------- Meta / reads ----------------
@app.get("/meta/settings")
def meta_settings():
    try:
        s = get_default_session().settings
        return _json(
            SettingsResponse(
                fallback_vendor_name=s.fallback_vendor_name,
                fallback_product_name=s.fallback_product_name,
                data_dir=str(s.data_dir),
                storage_path=str(s.storage_path),
            ).model_dump()
        )
    except Exception as exc:
        return _failure(exc, "meta_settings")


@app.get("/vendors")
def list_vendors():
    try:
        vendors = get_default_session().store.get_vendors()
        return _json({"vendors": [_vendor_model(v).model_dump() for v in vendors]})
    except Exception as exc:
        return _failure(exc, "list_vendors")


@app.get("/products")
def list_products(vendor_id: Optional[str] = Query(default=None)):
    try:
        products = get_default_session().store.get_products()
        if vendor_id:
            products = [p for p in products if p.vendor_id == vendor_id]
        return _json({"products": [_product_model(p).model_dump() for p in products]})
    except Exception as exc:
        return _failure(exc, "list_products")


@app.get("/capabilities")
def list_capabilities():
    try:
        capabilities = get_default_session().store.get_capabilities()
        return _json({"capabilities": [_capability_model(c).model_dump() for c in capabilities]})
    except Exception as exc:
        return _failure(exc, "list_capabilities")


@app.get("/resolve")
def resolve(vendor_id: Optional[str] = Query(default=None)):
    try:
        return _json(_resolve_payload(vendor_id).model_dump())
    except Exception as exc:
        return _failure(exc, "resolve")


@app.get("/board")
def board(vendor_id: Optional[str] = Query(default=None)):
    try:
        session = get_default_session()
        with session.store.locked():
            session.select_vendor(vendor_id)
            snapshot = session.store.snapshot()
        return _json(compute_capability_board(snapshot, selected_vendor_id=vendor_id))
    except Exception as exc:
        return _failure(exc, "board")


@app.get("/capabilities/{capability_id}/products")
def capability_products(capability_id: str):
    try:
        session = get_default_session()
        if session.store.find_capability(capability_id) is None:
            raise NotFoundError("capability", capability_id)
        return _json({"products": products_for_capability(session.store.snapshot(), capability_id)})
    except Exception as exc:
        return _failure(exc, "capability_products")


@app.get("/coverage")
def coverage():
    try:
        return _json(compute_coverage_matrix(get_default_session().store.snapshot()))
    except Exception as exc:
        return _failure(exc, "coverage")


@app.get("/quality")
def quality():
    try:
        session = get_default_session()
        return _json(compute_quality_report(session.store.snapshot(), session.settings, session.fallback()))
    except Exception as exc:
        return _failure(exc, "quality")


# ---------------- Vendors ----------------
@app.post("/vendors")
def create_vendor(body: VendorIn):
    try:
        vendor = get_default_session().editor.add_vendor(body.name)
        return _json(_vendor_model(vendor).model_dump(), status_code=201)
    except Exception as exc:
        return _failure(exc, "create_vendor")


@app.put("/vendors/{vendor_id}")
def update_vendor(vendor_id: str, body: VendorIn):
    try:
        vendor = get_default_session().editor.edit_vendor(vendor_id, body.name)
        return _json(_vendor_model(vendor).model_dump())
    except Exception as exc:
        return _failure(exc, "update_vendor")


@app.delete("/vendors/{vendor_id}")
def delete_vendor(vendor_id: str, confirm: bool = Query(default=False)):
    try:
        removed = get_default_session().editor.delete_vendor(vendor_id, confirm=confirm)
        return _json({"deleted": vendor_id, "products_removed": removed})
    except Exception as exc:
        return _failure(exc, "delete_vendor")


# ---------------- Products ----------------
@app.post("/products")
def create_product(body: ProductIn):
    try:
        product = get_default_session().editor.add_product(body.name, body.vendor_id, body.capability_ids)
        return _json(_product_model(product).model_dump(), status_code=201)
    except Exception as exc:
        return _failure(exc, "create_product")


@app.put("/products/{product_id}")
def update_product(product_id: str, body: ProductIn):
    try:
        product = get_default_session().editor.edit_product(
            product_id, body.name, body.vendor_id, body.capability_ids
        )
        return _json(_product_model(product).model_dump())
    except Exception as exc:
        return _failure(exc, "update_product")


@app.delete("/products/{product_id}")
def delete_product(product_id: str):
    try:
        get_default_session().editor.delete_product(product_id)
        return _json({"deleted": product_id})
    except Exception as exc:
        return _failure(exc, "delete_product")


# ---------------- Capabilities ----------------
@app.post("/capabilities")
def create_capability(body: CapabilityIn):
    try:
        capability = get_default_session().editor.add_capability(body.name, body.section)
        return _json(_capability_model(capability).model_dump(), status_code=201)
    except Exception as exc:
        return _failure(exc, "create_capability")


@app.put("/capabilities/{capability_id}")
def update_capability(capability_id: str, body: CapabilityIn):
    try:
        capability = get_default_session().editor.edit_capability(capability_id, body.name, body.section)
        return _json(_capability_model(capability).model_dump())
    except Exception as exc:
        return _failure(exc, "update_capability")


@app.delete("/capabilities/{capability_id}")
def delete_capability(capability_id: str, confirm: bool = Query(default=False)):
    try:
        touched = get_default_session().editor.delete_capability(capability_id, confirm=confirm)
        return _json({"deleted": capability_id, "products_updated": touched})
    except Exception as exc:
        return _failure(exc, "delete_capability")


@app.put("/capabilities/{capability_id}/selection")
def select_capability_product(capability_id: str, body: SelectionIn):
    try:
        capability = get_default_session().editor.select_product(capability_id, body.product_id)
        return _json(_capability_model(capability).model_dump())
    except Exception as exc:
        return _failure(exc, "select_capability_product")


@app.delete("/capabilities/{capability_id}/selection")
def clear_capability_product(capability_id: str):
    try:
        capability = get_default_session().editor.clear_product(capability_id)
        return _json(_capability_model(capability).model_dump())
    except Exception as exc:
        return _failure(exc, "clear_capability_product")


# ---------------- Persistence ----------------
@app.post("/persist")
def persist_catalog():
    try:
        session = get_default_session()
        session.persist()
        return _json({"saved": str(session.settings.storage_path)})
    except Exception as exc:
        return _failure(exc, "persist")


@app.post("/reload")
def reload_catalog(from_csv: bool = Query(default=False)):
    try:
        session = get_default_session()
        assignments = session.reload(from_csv=from_csv)
        snapshot = session.store.snapshot()
        return _json(
            {
                "vendors": len(snapshot.vendors),
                "products": len(snapshot.products),
                "capabilities": len(snapshot.capabilities),
                "assignments": assignments,
            }
        )
    except Exception as exc:
        return _failure(exc, "reload")


@app.get("/export/{entity}")
def export_entity(entity: str):
    try:
        frames = get_default_session().export_frames()
        if entity not in frames:
            raise NotFoundError("export", entity)
        filename = f"{entity}.csv"
        return Response(
            content=frame_to_csv_bytes(frames[entity]),
            media_type="text/csv",
            headers={"Content-Disposition": f"attachment; filename={filename}"},
        )
    except Exception as exc:
        return _failure(exc, "export_entity")
