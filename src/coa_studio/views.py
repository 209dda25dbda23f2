# COA Studio - Chart of Accounts configuration & rule resolution toolkit
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
View utilities for COA Studio.

This module turns the configuration objects (segments, codes, hierarchy
trees, rules, fiscal periods) and the results of rule resolution into
pandas DataFrames ready for display (``to_string``) or CSV export (``to_csv``).

Views only read their inputs; they never mutate stores or trees.

Hierarchy trees are flattened depth-first with a ``level`` column (0 for
roots) and a ``display_order`` renumbered 10, 20, 30, ... so that an
exported tree can be re-read in the same order.
"""

from typing import Optional

import pandas as pd

from .access_control import AccessControlRule, AccessDecision
from .combination_rules import CombinationDecision, CombinationRule
from .criteria import SegmentCriterion, describe_criterion
from .hierarchies import HierarchyNode
from .journal import LineIssue
from .periods import (
    FiscalYear,
    Subledger,
    overall_fiscal_year_status,
    overall_period_status,
)
from .segments import Segment, SegmentCode

SEGMENT_COLUMNS = [
    "order",
    "id",
    "display_name",
    "segment_type",
    "data_type",
    "max_length",
    "separator",
    "mandatory",
    "active",
    "core",
]
CODE_COLUMNS = [
    "code",
    "description",
    "type",
    "active",
    "valid_from",
    "valid_to",
    "transaction_coding",
    "default_parent",
]
TREE_COLUMNS = ["display_order", "level", "node_id", "code", "name", "type"]


def _frame(rows: list[dict[str, object]], columns: list[str]) -> pd.DataFrame:
    if not rows:
        return pd.DataFrame(columns=columns)
    return pd.DataFrame(rows, columns=columns)


def segments_to_dataframe(segments: list[Segment]) -> pd.DataFrame:
    """One row per segment, in configured order (``order`` starts at 1)."""
    rows: list[dict[str, object]] = []
    for idx, s in enumerate(segments, start=1):
        rows.append(
            {
                "order": idx,
                "id": s.id,
                "display_name": s.display_name,
                "segment_type": s.segment_type or s.display_name,
                "data_type": s.data_type,
                "max_length": s.max_length,
                "separator": s.separator,
                "mandatory": s.is_mandatory_for_coding,
                "active": s.is_active,
                "core": s.is_core,
            }
        )
    return _frame(rows, SEGMENT_COLUMNS)


def codes_to_dataframe(codes: list[SegmentCode]) -> pd.DataFrame:
    """One row per code, in the order given."""
    rows: list[dict[str, object]] = []
    for c in codes:
        rows.append(
            {
                "code": c.code,
                "description": c.description,
                "type": "summary" if c.summary_indicator else "detail",
                "active": c.is_active,
                "valid_from": c.valid_from.isoformat(),
                "valid_to": c.valid_to.isoformat() if c.valid_to else "",
                "transaction_coding": c.available_for_transaction_coding,
                "default_parent": c.default_parent_code or "",
            }
        )
    return _frame(rows, CODE_COLUMNS)


def tree_to_dataframe(tree: list[HierarchyNode], indent: str = "  ") -> pd.DataFrame:
    """Flatten a hierarchy tree, depth-first.

    The ``name`` column is the code description indented by ``level``,
    which gives a readable outline with ``to_string(index=False)``.
    """
    rows: list[dict[str, object]] = []

    def _walk(nodes: list[HierarchyNode], level: int) -> None:
        for node in nodes:
            sc = node.segment_code
            rows.append(
                {
                    "level": level,
                    "node_id": node.id,
                    "code": sc.code,
                    "name": f"{indent * level}{sc.description}",
                    "type": "summary" if sc.summary_indicator else "detail",
                }
            )
            _walk(node.children, level + 1)

    _walk(tree, 0)
    for idx, row in enumerate(rows):
        row["display_order"] = (idx + 1) * 10
    return _frame(rows, TREE_COLUMNS)


def _describe_criteria(
    criteria: list[SegmentCriterion], names: Optional[dict[str, str]]
) -> str:
    names = names or {}
    return " AND ".join(
        describe_criterion(c, names.get(c.segment_id)) for c in criteria
    )


def access_rules_to_dataframe(
    rules: list[AccessControlRule], segment_names: Optional[dict[str, str]] = None
) -> pd.DataFrame:
    """One row per restriction; rules without restrictions get a single row."""
    columns = [
        "rule_id",
        "name",
        "status",
        "applies_to",
        "default",
        "restriction_id",
        "access_type",
        "criteria",
    ]
    rows: list[dict[str, object]] = []
    for rule in rules:
        base = {
            "rule_id": rule.id,
            "name": rule.name,
            "status": rule.status,
            "applies_to": f"{rule.applies_to_type.value}: {rule.applies_to_id}",
            "default": rule.default_behavior_for_rule.value,
        }
        if not rule.restrictions:
            rows.append(
                {**base, "restriction_id": "", "access_type": "", "criteria": ""}
            )
            continue
        for res in rule.restrictions:
            rows.append(
                {
                    **base,
                    "restriction_id": res.id,
                    "access_type": res.access_type.value,
                    "criteria": _describe_criteria(res.segment_criteria, segment_names),
                }
            )
    return _frame(rows, columns)


def combination_rules_to_dataframe(
    rules: list[CombinationRule], segment_names: Optional[dict[str, str]] = None
) -> pd.DataFrame:
    """One row per definition entry; rules without entries get a single row."""
    columns = ["rule_id", "name", "status", "entry_id", "behavior", "conditions"]
    rows: list[dict[str, object]] = []
    for rule in rules:
        base = {"rule_id": rule.id, "name": rule.name, "status": rule.status}
        if not rule.definition_entries:
            rows.append({**base, "entry_id": "", "behavior": "", "conditions": ""})
            continue
        for entry in rule.definition_entries:
            rows.append(
                {
                    **base,
                    "entry_id": entry.id,
                    "behavior": entry.behavior.value,
                    "conditions": _describe_criteria(entry.criteria, segment_names),
                }
            )
    return _frame(rows, columns)


def access_decision_to_dataframe(decision: AccessDecision) -> pd.DataFrame:
    """Per-rule outcomes, with the deciding rule flagged."""
    columns = ["rule_id", "access_type", "restriction_id", "deciding"]
    rows = [
        {
            "rule_id": r.rule_id,
            "access_type": r.access_type.value,
            "restriction_id": r.restriction_id or "(rule default)",
            "deciding": r.rule_id == decision.rule_id,
        }
        for r in decision.rule_results
    ]
    return _frame(rows, columns)


def combination_decision_to_dataframe(decision: CombinationDecision) -> pd.DataFrame:
    """Matching definition entries, Exclude entries first."""
    columns = ["entry_id", "behavior"]
    rows: list[dict[str, object]] = [
        {"entry_id": e, "behavior": "Exclude"} for e in decision.excluded_by
    ]
    rows += [{"entry_id": e, "behavior": "Include"} for e in decision.included_by]
    return _frame(rows, columns)


def issues_to_dataframe(issues: list[LineIssue]) -> pd.DataFrame:
    rows = [{"line": i.line_id or "(entry)", "message": i.message} for i in issues]
    return _frame(rows, ["line", "message"])


PERIOD_COLUMNS = [
    "fiscal_year",
    "period_id",
    "name",
    "start",
    "end",
    "GL",
    "AP",
    "AR",
    "overall",
]


def periods_to_dataframe(years: list[FiscalYear]) -> pd.DataFrame:
    """One row per period; subledgers a period does not track are left blank."""
    rows: list[dict[str, object]] = []
    for fy in years:
        for p in fy.periods:
            row: dict[str, object] = {
                "fiscal_year": fy.id,
                "period_id": p.id,
                "name": p.name,
                "start": p.start_date.isoformat() if p.start_date else "",
                "end": p.end_date.isoformat() if p.end_date else "",
                "overall": overall_period_status(p).value,
            }
            for subledger in Subledger:
                status = p.status_of(subledger)
                row[subledger.short_name] = status.value if status else ""
            rows.append(row)
    return _frame(rows, PERIOD_COLUMNS)


def fiscal_years_to_dataframe(years: list[FiscalYear]) -> pd.DataFrame:
    rows = [
        {
            "fiscal_year": fy.id,
            "start": fy.start_date.isoformat(),
            "end": fy.end_date.isoformat(),
            "periods": len(fy.regular_periods),
            "status": overall_fiscal_year_status(fy).value,
        }
        for fy in years
    ]
    return _frame(rows, ["fiscal_year", "start", "end", "periods", "status"])
