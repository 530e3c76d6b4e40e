from __future__ import annotations

import logging
import threading
from functools import lru_cache
from typing import Dict, Optional, Tuple

import pandas as pd

from catalog.editor import CatalogEditor
from catalog.models import CatalogCollections
from catalog.persistence import (
    CsvSource,
    clear_storage,
    collections_to_frames,
    load_initial_collections,
    persist,
    read_collections_csv,
)
from catalog.quality import audit_collections
from catalog.resolution import Assignments, FallbackTarget, locate_fallback, resolve_assignments
from catalog.settings import Settings, settings_from_env
from catalog.store import CatalogStore


logger = logging.getLogger(__name__)


class CatalogSession:
    """One store, its settings and the currently selected vendor.

    ``resolve`` is the entry point for every resolution pass; the bound editor calls it
    again after each mutation with the current vendor selection.
    """

    def __init__(self, store: Optional[CatalogStore] = None, settings: Optional[Settings] = None):
        self.store = store or CatalogStore()
        self.settings = settings or Settings()
        self.selected_vendor_id: Optional[str] = None
        self._fallback: Optional[Tuple[int, Optional[FallbackTarget]]] = None
        self.editor = CatalogEditor(self.store, on_change=self._on_change)

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "CatalogSession":
        settings = settings or Settings()
        session = cls(CatalogStore(load_initial_collections(settings)), settings)
        audit_collections(session.store.snapshot(), settings)
        session.resolve(None)
        return session

    # ---------------- Resolution ----------------
    def fallback(self) -> Optional[FallbackTarget]:
        """The fallback pair, located once per store revision."""
        with self.store.locked():
            revision = self.store.revision
            if self._fallback is None or self._fallback[0] != revision:
                target = locate_fallback(
                    self.store.get_vendors(),
                    self.store.get_products(),
                    vendor_name=self.settings.fallback_vendor_name,
                    product_name=self.settings.fallback_product_name,
                )
                if target is None:
                    logger.warning(
                        "%s product not found for vendor %s. Fallback logic will not apply.",
                        self.settings.fallback_product_name,
                        self.settings.fallback_vendor_name,
                    )
                self._fallback = (revision, target)
            return self._fallback[1]

    def resolve(self, selected_vendor_id: Optional[str]) -> Assignments:
        selected = selected_vendor_id or None
        with self.store.locked():
            fallback = self.fallback()
            snapshot = self.store.snapshot()
            assignments = resolve_assignments(selected, snapshot.products, snapshot.capabilities, fallback=fallback)
            self.store.apply_assignments(assignments)
        logger.debug(
            "Resolved %d capability(ies) for vendor %s; %d unassigned",
            len(assignments),
            selected,
            sum(1 for v in assignments.values() if v is None),
        )
        return assignments

    def select_vendor(self, vendor_id: Optional[str]) -> Assignments:
        self.selected_vendor_id = vendor_id or None
        return self.resolve(self.selected_vendor_id)

    def _on_change(self) -> Assignments:
        if self.selected_vendor_id and self.store.find_vendor(self.selected_vendor_id) is None:
            self.selected_vendor_id = None
        return self.resolve(self.selected_vendor_id)

    # ---------------- Persistence ----------------
    def persist(self) -> None:
        persist(self.store.snapshot(), self.settings)

    def replace_collections(self, collections: CatalogCollections) -> Assignments:
        self.store.replace_all(collections.vendors, collections.products, collections.capabilities)
        audit_collections(self.store.snapshot(), self.settings)
        return self._on_change()

    def reload(self, *, from_csv: bool = False) -> Assignments:
        """Reload from local storage (or CSV); ``from_csv`` discards the stored copy first."""
        if from_csv:
            clear_storage(self.settings)
        return self.replace_collections(load_initial_collections(self.settings))

    def import_csv(self, vendors: CsvSource, products: CsvSource, capabilities: CsvSource) -> Assignments:
        return self.replace_collections(read_collections_csv(vendors, products, capabilities))

    def export_frames(self) -> Dict[str, pd.DataFrame]:
        return collections_to_frames(self.store.snapshot())


_default_lock = threading.Lock()


@lru_cache(maxsize=1)
def _build_default_session() -> CatalogSession:
    settings = settings_from_env()
    logging.basicConfig(level=settings.log_level)
    return CatalogSession.from_settings(settings)


def get_default_session() -> CatalogSession:
    """The process-wide session; built once even when the first requests arrive together."""
    with _default_lock:
        return _build_default_session()
