# SMB Ledger - Accounting Dashboard & Reporting engine for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
SMB Ledger
----------

A Python-based accounting dashboard for small businesses. It records
income and expense transactions, petty-cash movements, budgets and
balance-sheet items for a single organization, and derives standard
financial reports from that data.

Main capabilities:
- period resolution (current/last month, quarter, year, custom range),
- a pure aggregation engine (profit & loss, cash flow, budget variance,
  balance-sheet verification, analytics and growth metrics),
- a bulk import pipeline for CSV files and pasted spreadsheet data,
  with all-or-nothing, row-addressed validation,
- report formatting and export to PDF (reportlab) and Excel (openpyxl),
- an owner-scoped record store backed by SQLite, with a local buffer
  for unauthenticated use and a one-time migration into the store.

SMB Ledger separates computation (engine), configuration (TOML),
persistence (db) and presentation (CLI / exports).


Version: 0.2.0

Usage:
    python -m smb_ledger.cli --help
"""

__all__ = ["engine", "periods", "io", "validation", "views"]

__version__ = "0.2.0"
