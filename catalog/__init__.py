"""Core (UI-agnostic) capability catalog logic.

This package contains:
- entity models and settings normalization
- the catalog store (collections + cascade invariants)
- vendor -> capability product resolution
- persistence (local storage JSON, CSV -> pandas)
- board / coverage compute functions (JSON-serializable payloads)
- chart helpers (Altair -> Vega-Lite spec dict)
"""
