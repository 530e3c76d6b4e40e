"""Caller-facing errors raised by the catalog store and editor.

Data-integrity problems are not errors: they are logged and reported by
``catalog.quality`` and degrade to "no assignment".
"""

from __future__ import annotations

from typing import Optional


class CatalogError(Exception):
    """Base class for input-validation errors surfaced to the editor's caller."""

    status_code = 400


class ValidationError(CatalogError):
    pass


class DuplicateNameError(ValidationError):
    status_code = 409

    def __init__(self, entity: str, name: str):
        super().__init__(f"A {entity} named '{name}' already exists.")
        self.entity = entity
        self.name = name


class DuplicateIdError(ValidationError):
    status_code = 409

    def __init__(self, entity: str, entity_id: str):
        super().__init__(f"Duplicate {entity} id '{entity_id}'.")
        self.entity = entity
        self.entity_id = entity_id


class NotFoundError(CatalogError):
    status_code = 404

    def __init__(self, entity: str, entity_id: Optional[str]):
        super().__init__(f"No {entity} with id '{entity_id}'.")
        self.entity = entity
        self.entity_id = entity_id


class CascadeConfirmationRequired(CatalogError):
    status_code = 409

    def __init__(self, entity: str, entity_id: str, affected: int):
        super().__init__(
            f"Deleting {entity} '{entity_id}' affects {affected} product(s); confirm the cascade to proceed."
        )
        self.entity = entity
        self.entity_id = entity_id
        self.affected = affected
