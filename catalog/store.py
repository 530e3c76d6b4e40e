from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import replace
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Set

from catalog.errors import DuplicateIdError
from catalog.models import Capability, CatalogCollections, Product, Vendor


logger = logging.getLogger(__name__)


def _check_unique_ids(entity: str, items: Sequence) -> None:
    seen: Set[str] = set()
    for item in items:
        if item.id in seen:
            raise DuplicateIdError(entity, item.id)
        seen.add(item.id)


class CatalogStore:
    """Sole owner of the vendor, product and capability collections.

    Reads return copies in collection order. Every replacement re-applies the cascade
    rules so the three collections never disagree:

    - vendors removed by a replacement take their products with them
    - capabilities removed by a replacement are stripped from every product
    - a cached ``current_product_id`` survives only while it names an existing,
      covering product on a non-label capability

    All mutations and snapshots share one re-entrant lock; hold ``locked()`` to run
    several steps (snapshot -> resolve -> apply) without interleaving.
    """

    def __init__(self, collections: Optional[CatalogCollections] = None):
        self._lock = threading.RLock()
        self._vendors: List[Vendor] = []
        self._products: List[Product] = []
        self._capabilities: List[Capability] = []
        self._id_counter = 0
        self._issued_ids: Set[str] = set()
        self.revision = 0
        if collections is not None:
            self.replace_all(collections.vendors, collections.products, collections.capabilities)

    @contextmanager
    def locked(self) -> Iterator["CatalogStore"]:
        with self._lock:
            yield self

    # ---------------- Reads ----------------
    def get_vendors(self) -> List[Vendor]:
        with self._lock:
            return list(self._vendors)

    def get_products(self) -> List[Product]:
        with self._lock:
            return list(self._products)

    def get_capabilities(self) -> List[Capability]:
        with self._lock:
            return list(self._capabilities)

    def snapshot(self) -> CatalogCollections:
        with self._lock:
            return CatalogCollections(
                vendors=list(self._vendors),
                products=list(self._products),
                capabilities=list(self._capabilities),
            )

    def find_vendor(self, vendor_id: Optional[str]) -> Optional[Vendor]:
        with self._lock:
            return next((v for v in self._vendors if v.id == vendor_id), None)

    def find_product(self, product_id: Optional[str]) -> Optional[Product]:
        with self._lock:
            return next((p for p in self._products if p.id == product_id), None)

    def find_capability(self, capability_id: Optional[str]) -> Optional[Capability]:
        with self._lock:
            return next((c for c in self._capabilities if c.id == capability_id), None)

    # ---------------- Replacement ----------------
    def replace_vendors(self, vendors: Iterable[Vendor]) -> None:
        vendors = list(vendors)
        _check_unique_ids("vendor", vendors)
        with self._lock:
            removed = {v.id for v in self._vendors} - {v.id for v in vendors}
            self._vendors = vendors
            if removed:
                kept = [p for p in self._products if p.vendor_id not in removed]
                dropped = len(self._products) - len(kept)
                if dropped:
                    logger.info("Removed %d product(s) of deleted vendor(s) %s", dropped, sorted(removed))
                self._products = kept
                self._validate_assignments()
            self._bump()

    def replace_products(self, products: Iterable[Product]) -> None:
        products = list(products)
        _check_unique_ids("product", products)
        with self._lock:
            self._products = products
            self._validate_assignments()
            self._bump()

    def replace_capabilities(self, capabilities: Iterable[Capability]) -> None:
        capabilities = list(capabilities)
        _check_unique_ids("capability", capabilities)
        with self._lock:
            removed = {c.id for c in self._capabilities} - {c.id for c in capabilities}
            self._capabilities = capabilities
            if removed:
                self._products = [
                    replace(p, capability_ids=tuple(cid for cid in p.capability_ids if cid not in removed))
                    if any(cid in removed for cid in p.capability_ids)
                    else p
                    for p in self._products
                ]
            self._validate_assignments()
            self._bump()

    def replace_all(
        self,
        vendors: Iterable[Vendor],
        products: Iterable[Product],
        capabilities: Iterable[Capability],
    ) -> None:
        """Swap all three collections at once (fresh load or import); no cascade is applied."""
        vendors, products, capabilities = list(vendors), list(products), list(capabilities)
        _check_unique_ids("vendor", vendors)
        _check_unique_ids("product", products)
        _check_unique_ids("capability", capabilities)
        with self._lock:
            self._vendors = vendors
            self._products = products
            self._capabilities = capabilities
            self._validate_assignments()
            self._bump()

    def apply_assignments(self, assignments: Mapping[str, Optional[str]]) -> None:
        """Write a resolution result into the ``current_product_id`` cache.

        Capabilities missing from ``assignments`` are cleared.
        """
        with self._lock:
            updated: List[Capability] = []
            for cap in self._capabilities:
                product_id = None if cap.is_label else assignments.get(cap.id)
                updated.append(cap if cap.current_product_id == product_id else replace(cap, current_product_id=product_id))
            self._capabilities = updated
            self._validate_assignments()

    # ---------------- Ids ----------------
    def generate_id(self, prefix: str = "id") -> str:
        with self._lock:
            used = self._used_ids()
            while True:
                self._id_counter += 1
                candidate = f"{prefix}_{self._id_counter}"
                if candidate not in used and candidate not in self._issued_ids:
                    self._issued_ids.add(candidate)
                    return candidate

    def _used_ids(self) -> Set[str]:
        ids = {v.id for v in self._vendors}
        ids.update(p.id for p in self._products)
        ids.update(c.id for c in self._capabilities)
        return ids

    # ---------------- Invariants ----------------
    def _validate_assignments(self) -> None:
        products: Dict[str, Product] = {p.id: p for p in self._products}
        updated: List[Capability] = []
        for cap in self._capabilities:
            pid = cap.current_product_id
            if pid is None:
                updated.append(cap)
                continue
            product = products.get(pid)
            if cap.is_label:
                updated.append(replace(cap, current_product_id=None))
            elif product is None:
                logger.warning("Capability %r referenced missing product %r; assignment cleared", cap.id, pid)
                updated.append(replace(cap, current_product_id=None))
            elif not product.covers(cap.id):
                updated.append(replace(cap, current_product_id=None))
            else:
                updated.append(cap)
        self._capabilities = updated

    def _bump(self) -> None:
        self.revision += 1
