"""Core (UI-agnostic) academic operations logic.

This package contains:
- identifier / numeric normalization shared by every join
- semester ordering
- data loading (sheet exports -> pandas) and section row merge
- filter normalization and the section / classroom filter engines
- page compute functions (JSON-serializable payloads)
- chart helpers (Altair -> Vega-Lite spec dict)
"""
