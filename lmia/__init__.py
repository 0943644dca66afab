"""Core (UI-agnostic) LMIA map logic.

This package contains:
- spreadsheet loading (XLSX/CSV -> employer records)
- gazetteer lookups (province, city -> coordinate)
- the viewport pipeline (strategy selection, clustering, truncation)
- statistics payloads (chart helpers: Altair -> Vega-Lite spec dict)
"""
