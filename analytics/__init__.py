"""Core (UI-agnostic) store performance logic.

This package contains:
- workbook import (XLSX -> raw rows -> StoreRecord list)
- query normalization
- aggregation functions (JSON-serializable payloads)
- chart helpers (Altair -> Vega-Lite spec dict)
"""
