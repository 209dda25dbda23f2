# COA Studio - Chart of Accounts configuration & rule resolution toolkit
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Combination rules for COA Studio.

A combination rule decides which cross-segment code combinations are valid
account codes. Each rule holds *definition entries*; an entry is a
conjunction of segment conditions with a behavior, 'Include' or 'Exclude'.

Resolution of a candidate account code
--------------------------------------
Every entry of every Active rule is evaluated against the candidate
(one code per segment):

- if at least one Exclude entry matches → not allowed,
- else if at least one Include entry matches → allowed,
- else → the configured default for unmatched combinations
  ('Allowed' or 'Not Allowed', default 'Not Allowed').

Exclude always wins over Include, whatever the position of the entries in
their lists.

The module also enumerates the valid combinations of a set of segments
(``valid_combinations``), returned as a pandas DataFrame ready for display
or CSV export.
"""

import itertools
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Optional

import pandas as pd

from .criteria import (
    Account,
    EvaluationContext,
    SegmentCriterion,
    criteria_match,
    validate_criteria_group,
)
from .exceptions import InvalidRuleError, UnknownIdError
from .segments import Segment, SegmentCodeStore

logger = logging.getLogger(__name__)

RULE_STATUSES = ("Active", "Inactive")


class Behavior(str, Enum):
    INCLUDE = "Include"
    EXCLUDE = "Exclude"


class UnmatchedBehavior(str, Enum):
    ALLOWED = "Allowed"
    NOT_ALLOWED = "Not Allowed"

    @property
    def allowed(self) -> bool:
        return self is UnmatchedBehavior.ALLOWED


@dataclass
class SegmentCondition:
    """One segment condition of a definition entry."""

    id: str
    segment_id: str
    criterion: SegmentCriterion


@dataclass
class DefinitionEntry:
    """A scenario of a combination rule: conditions (AND) and a behavior."""

    id: str
    behavior: Behavior
    segment_conditions: list[SegmentCondition] = field(default_factory=list)
    description: str = ""

    def __post_init__(self) -> None:
        self.behavior = Behavior(self.behavior)

    @property
    def criteria(self) -> list[SegmentCriterion]:
        """The conditions' criteria, bound to the condition's segment."""
        out = []
        for cond in self.segment_conditions:
            crit = cond.criterion
            if crit.segment_id != cond.segment_id:
                crit = SegmentCriterion(
                    id=crit.id or cond.id,
                    segment_id=cond.segment_id,
                    criterion_type=crit.criterion_type,
                    code_value=crit.code_value,
                    range_start_value=crit.range_start_value,
                    range_end_value=crit.range_end_value,
                    hierarchy_node_id=crit.hierarchy_node_id,
                    include_children=crit.include_children,
                    hierarchy_set_id=crit.hierarchy_set_id,
                )
            out.append(crit)
        return out


@dataclass
class CombinationRule:
    id: str
    name: str
    definition_entries: list[DefinitionEntry] = field(default_factory=list)
    status: str = "Active"
    description: str = ""
    last_modified_date: Optional[datetime] = None
    last_modified_by: str = ""

    @property
    def is_active(self) -> bool:
        return self.status == "Active"


@dataclass(frozen=True)
class CombinationDecision:
    """Validity of a candidate account code.

    Attributes:
        allowed: Final verdict.
        reason: 'excluded', 'included' or 'unmatched_default'.
        included_by: Ids of the matching Include entries.
        excluded_by: Ids of the matching Exclude entries.
    """

    allowed: bool
    reason: str
    included_by: tuple[str, ...] = ()
    excluded_by: tuple[str, ...] = ()


def evaluate_combination(
    rules: list[CombinationRule],
    account: Account,
    context: EvaluationContext,
    default_unmatched: UnmatchedBehavior = UnmatchedBehavior.NOT_ALLOWED,
) -> CombinationDecision:
    """Decide whether ``account`` is a valid code combination.

    Args:
        rules: Configured rules; inactive rules are ignored.
        account: Mapping {segment_id: code}, one value per segment.
        context: Evaluation context (hierarchies for node criteria).
        default_unmatched: Verdict when no entry matches at all.

    Returns:
        A CombinationDecision.
    """
    included: list[str] = []
    excluded: list[str] = []
    for rule in rules:
        if not rule.is_active:
            continue
        for entry in rule.definition_entries:
            if not criteria_match(entry.criteria, account, context):
                continue
            if entry.behavior is Behavior.EXCLUDE:
                excluded.append(entry.id)
            else:
                included.append(entry.id)

    if excluded:
        return CombinationDecision(
            allowed=False,
            reason="excluded",
            included_by=tuple(included),
            excluded_by=tuple(excluded),
        )
    if included:
        return CombinationDecision(
            allowed=True, reason="included", included_by=tuple(included)
        )
    return CombinationDecision(
        allowed=UnmatchedBehavior(default_unmatched).allowed,
        reason="unmatched_default",
    )


def valid_combinations(
    segments: list[Segment],
    code_store: SegmentCodeStore,
    rules: list[CombinationRule],
    context: EvaluationContext,
    default_unmatched: UnmatchedBehavior = UnmatchedBehavior.NOT_ALLOWED,
    on_date: Optional[date] = None,
) -> pd.DataFrame:
    """Enumerate the allowed combinations of codable codes.

    For each segment, the candidate codes are the codable ones (active,
    detail, available for transaction coding), further restricted to codes
    effective on ``on_date`` when given. The cartesian product is evaluated
    with ``evaluate_combination`` and only allowed combinations are kept.

    Returns:
        DataFrame with one column per segment id (in the given order) and
        a 'reason' column ('included' or 'unmatched_default').
    """
    columns = [s.id for s in segments] + ["reason"]

    pools: list[list[str]] = []
    for segment in segments:
        codes = [c for c in code_store.codes_for(segment.id) if c.is_codable]
        if on_date is not None:
            codes = [c for c in codes if c.is_effective(on_date)]
        pools.append([c.code for c in codes])

    if not segments or any(not pool for pool in pools):
        return pd.DataFrame(columns=columns)

    rows: list[dict[str, str]] = []
    for combo in itertools.product(*pools):
        account = dict(zip(columns, combo))
        decision = evaluate_combination(rules, account, context, default_unmatched)
        if decision.allowed:
            rows.append({**account, "reason": decision.reason})

    logger.info(
        "Evaluated %d combinations, %d allowed.",
        _product_size(pools),
        len(rows),
    )
    if not rows:
        return pd.DataFrame(columns=columns)
    return pd.DataFrame(rows, columns=columns)


def _product_size(pools: list[list[str]]) -> int:
    size = 1
    for pool in pools:
        size *= len(pool)
    return size


def validate_combination_rule(rule: CombinationRule) -> list[str]:
    """Return the list of problems of a rule (empty when valid)."""
    errors: list[str] = []
    if not rule.name or not rule.name.strip():
        errors.append("Rule Name is required.")
    if rule.status not in RULE_STATUSES:
        errors.append(f"Invalid rule status {rule.status!r}.")

    seen: set[str] = set()
    for idx, entry in enumerate(rule.definition_entries, start=1):
        label = entry.description or entry.id or f"#{idx}"
        if entry.id in seen:
            errors.append(f"Definition entry id {entry.id!r} is used twice.")
        seen.add(entry.id)
        for msg in validate_criteria_group(entry.criteria):
            errors.append(f"Definition entry {label}: {msg}")
    return errors


class CombinationRuleStore:
    """In-memory list of combination rules."""

    def __init__(self, rules: Optional[list[CombinationRule]] = None):
        self._rules: list[CombinationRule] = list(rules or [])

    @property
    def rules(self) -> list[CombinationRule]:
        return list(self._rules)

    def get(self, rule_id: str) -> Optional[CombinationRule]:
        return next((r for r in self._rules if r.id == rule_id), None)

    def _check(self, rule: CombinationRule) -> None:
        errors = validate_combination_rule(rule)
        if errors:
            raise InvalidRuleError("; ".join(errors), rule_id=rule.id)

    def add(self, rule: CombinationRule) -> CombinationRule:
        if self.get(rule.id) is not None:
            raise InvalidRuleError(f"Rule id {rule.id!r} already exists.", rule.id)
        self._check(rule)
        self._rules.append(rule)
        return rule

    def update(self, rule: CombinationRule) -> CombinationRule:
        if self.get(rule.id) is None:
            raise UnknownIdError("combination rule", rule.id)
        self._check(rule)
        self._rules = [rule if r.id == rule.id else r for r in self._rules]
        return rule

    def delete(self, rule_id: str) -> None:
        if self.get(rule_id) is None:
            raise UnknownIdError("combination rule", rule_id)
        self._rules = [r for r in self._rules if r.id != rule_id]

    def evaluate(
        self,
        account: Account,
        context: EvaluationContext,
        default_unmatched: UnmatchedBehavior = UnmatchedBehavior.NOT_ALLOWED,
    ) -> CombinationDecision:
        return evaluate_combination(self._rules, account, context, default_unmatched)
