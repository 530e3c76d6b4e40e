from __future__ import annotations

from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field


class VendorIn(BaseModel):
    name: str


class VendorModel(BaseModel):
    id: str
    name: str


class ProductIn(BaseModel):
    name: str
    vendor_id: str
    capability_ids: List[str] = Field(default_factory=list)


class ProductModel(BaseModel):
    id: str
    name: str
    vendor_id: Optional[str] = None
    capability_ids: List[str] = Field(default_factory=list)


class CapabilityIn(BaseModel):
    name: str
    section: Literal["infrastructure", "aiPlatform"] = "infrastructure"


class CapabilityModel(BaseModel):
    id: str
    name: str
    category: str
    section: str
    order: Optional[int] = None
    is_label: bool = False
    border_color_class: Optional[str] = None
    current_product_id: Optional[str] = None


class SelectionIn(BaseModel):
    product_id: str


class FallbackModel(BaseModel):
    vendor_id: str
    product_id: str


class ResolveResponse(BaseModel):
    vendor_id: Optional[str] = None
    fallback: Optional[FallbackModel] = None
    assignments: Dict[str, Optional[str]] = Field(default_factory=dict)


class SettingsResponse(BaseModel):
    fallback_vendor_name: str
    fallback_product_name: str
    data_dir: str
    storage_path: str
