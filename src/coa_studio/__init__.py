# COA Studio - Chart of Accounts configuration & rule resolution toolkit
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
COA Studio
----------

A Python toolkit to configure a multi-segment chart of accounts and to
resolve the rules attached to it. It is designed for public-sector and
fund-accounting organizations whose account codes are made of several
segments (fund, object, department, project, ...).

Main capabilities:
- segment and segment code definitions with validation and natural
  (numeric-aware) code ordering,
- reporting hierarchy sets (per-segment trees of summary/detail codes),
  including a system set derived from default parent codes,
- segment criteria (All, SpecificCode, CodeRange, HierarchyNode),
- account access control per user or role (Read-Only / Editable /
  No Access),
- combination rules deciding which cross-segment code combinations are
  valid account codes, and enumeration of the valid combinations,
- account code display strings and journal line validation,
- a fiscal calendar (Monthly or 4-4-5) with period close rules per
  subledger (General Ledger, Accounts Payable, Accounts Receivable),
- CSV/TOML loaders and a command-line interface.


Version: 0.1.0

Usage:
    python -m coa_studio.cli --help
"""

__all__ = [
    "access_control",
    "combination_rules",
    "criteria",
    "hierarchies",
    "io",
    "periods",
    "segments",
    "views",
]

__version__ = "0.1.0"
