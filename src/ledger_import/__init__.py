"""
Spreadsheet → Draft Records → Review → Ledger / Receipt Store

A deterministic, testable pipeline that turns legacy and header-labeled
spreadsheet exports into validated, deduplicated ledger entries and fiscal
receipts, with an operator review step before anything is committed.
"""

__version__ = "0.1.0"
