from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional


DATA_DIR = Path(__file__).resolve().parents[1] / "data"
STORAGE_PATH = DATA_DIR / "local_storage.json"
STORAGE_KEY = "aiPlatformData"

DEFAULT_FALLBACK_VENDOR_NAME = "Cloud Native"
DEFAULT_FALLBACK_PRODUCT_NAME = "Cloud Native Base Services"

VENDORS_CSV = "vendors.csv"
PRODUCTS_CSV = "products.csv"
CAPABILITIES_CSV = "capabilities.csv"

ENV_PREFIX = "CATALOG_"


@dataclass(frozen=True)
class Settings:
    fallback_vendor_name: str = DEFAULT_FALLBACK_VENDOR_NAME
    fallback_product_name: str = DEFAULT_FALLBACK_PRODUCT_NAME
    data_dir: Path = field(default=DATA_DIR)
    storage_path: Path = field(default=STORAGE_PATH)
    storage_key: str = STORAGE_KEY
    log_level: str = "INFO"

    @property
    def vendors_csv(self) -> Path:
        return self.data_dir / VENDORS_CSV

    @property
    def products_csv(self) -> Path:
        return self.data_dir / PRODUCTS_CSV

    @property
    def capabilities_csv(self) -> Path:
        return self.data_dir / CAPABILITIES_CSV


def _as_path(value: object, default: Path) -> Path:
    if value is None:
        return default
    s = str(value).strip()
    return Path(s).expanduser() if s else default


def _as_name(value: object, default: str) -> str:
    if value is None:
        return default
    s = str(value).strip()
    return s or default


def normalize_settings(raw: Optional[Mapping[str, object]] = None) -> Settings:
    raw = raw or {}
    data_dir = _as_path(raw.get("data_dir"), DATA_DIR)
    # A custom data dir keeps its local storage next to its CSV files.
    default_storage = data_dir / STORAGE_PATH.name
    log_level = _as_name(raw.get("log_level"), "INFO").upper()
    return Settings(
        fallback_vendor_name=_as_name(raw.get("fallback_vendor_name"), DEFAULT_FALLBACK_VENDOR_NAME),
        fallback_product_name=_as_name(raw.get("fallback_product_name"), DEFAULT_FALLBACK_PRODUCT_NAME),
        data_dir=data_dir,
        storage_path=_as_path(raw.get("storage_path"), default_storage),
        storage_key=_as_name(raw.get("storage_key"), STORAGE_KEY),
        log_level=log_level,
    )


def settings_from_env(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Build settings from ``CATALOG_*`` environment variables.

    ``CATALOG_FALLBACK_VENDOR`` / ``CATALOG_FALLBACK_PRODUCT`` override the fallback names,
    ``CATALOG_DATA_DIR`` / ``CATALOG_STORAGE_PATH`` the file locations, ``CATALOG_LOG_LEVEL`` the log level.
    """
    env = os.environ if environ is None else environ
    return normalize_settings(
        {
            "fallback_vendor_name": env.get(f"{ENV_PREFIX}FALLBACK_VENDOR"),
            "fallback_product_name": env.get(f"{ENV_PREFIX}FALLBACK_PRODUCT"),
            "data_dir": env.get(f"{ENV_PREFIX}DATA_DIR"),
            "storage_path": env.get(f"{ENV_PREFIX}STORAGE_PATH"),
            "storage_key": env.get(f"{ENV_PREFIX}STORAGE_KEY"),
            "log_level": env.get(f"{ENV_PREFIX}LOG_LEVEL"),
        }
    )
