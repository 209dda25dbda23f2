# COA Studio - Chart of Accounts configuration & rule resolution toolkit
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Segment criteria for COA Studio.

A *segment criterion* tests the value of one segment of an account code.
Criteria are the building blocks of both access-control restrictions and
combination-rule definition entries. Four kinds exist:

- ``All``           → any value matches,
- ``SpecificCode``  → the value equals ``code_value``,
- ``CodeRange``     → ``range_start_value`` <= value <= ``range_end_value``
                      under the natural (numeric-aware) code ordering,
                      inclusive at both ends,
- ``HierarchyNode`` → the value is the code of ``hierarchy_node_id``, or,
                      when ``include_children`` is set, the code of any of
                      its descendants.

Combination rules historically spell the kinds ``CODE``, ``RANGE`` and
``HIERARCHY_NODE``; ``CriterionType.parse`` accepts both spellings.

An *account* is represented as a mapping ``{segment_id: code}``. Matching is
pure: it never mutates the account, the criterion or the hierarchies.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .exceptions import (
    HierarchyNodeNotFoundError,
    InvalidCriterionError,
    UnknownIdError,
)
from .hierarchies import HierarchyStore, descendant_codes
from .segments import SegmentCodeStore, SegmentStore, compare_codes

Account = Mapping[str, Optional[str]]


class CriterionType(str, Enum):
    ALL = "All"
    SPECIFIC_CODE = "SpecificCode"
    CODE_RANGE = "CodeRange"
    HIERARCHY_NODE = "HierarchyNode"

    @classmethod
    def parse(cls, value: str) -> "CriterionType":
        """Parse a criterion type from either naming scheme.

        Accepted values: All, SpecificCode / CODE, CodeRange / RANGE,
        HierarchyNode / HIERARCHY_NODE (case-insensitive).
        """
        if isinstance(value, cls):
            return value
        key = str(value).strip().replace("_", "").replace(" ", "").lower()
        aliases = {
            "all": cls.ALL,
            "specificcode": cls.SPECIFIC_CODE,
            "code": cls.SPECIFIC_CODE,
            "coderange": cls.CODE_RANGE,
            "range": cls.CODE_RANGE,
            "hierarchynode": cls.HIERARCHY_NODE,
        }
        if key not in aliases:
            raise InvalidCriterionError(f"Unknown criterion type: {value!r}")
        return aliases[key]


@dataclass
class SegmentCriterion:
    """Condition on the value of one segment.

    Attributes:
        id: Identifier of the criterion within its restriction / entry.
        segment_id: Segment whose value is tested.
        criterion_type: Kind of test (see ``CriterionType``).
        code_value: Expected code for ``SpecificCode``.
        range_start_value: Lower bound (inclusive) for ``CodeRange``.
        range_end_value: Upper bound (inclusive) for ``CodeRange``.
        hierarchy_node_id: Node id for ``HierarchyNode``.
        include_children: For ``HierarchyNode``, also match descendants.
        hierarchy_set_id: For ``HierarchyNode``, restrict the node lookup to
            one hierarchy set. When empty, every active set is searched.
    """

    id: str
    segment_id: str
    criterion_type: CriterionType = CriterionType.ALL
    code_value: Optional[str] = None
    range_start_value: Optional[str] = None
    range_end_value: Optional[str] = None
    hierarchy_node_id: Optional[str] = None
    include_children: bool = False
    hierarchy_set_id: Optional[str] = None

    def __post_init__(self) -> None:
        self.criterion_type = CriterionType.parse(self.criterion_type)


@dataclass
class EvaluationContext:
    """Everything criteria need besides the account itself."""

    hierarchies: HierarchyStore


def validate_criterion(criterion: SegmentCriterion) -> list[str]:
    """Return the list of problems of a criterion (empty when valid)."""
    errors: list[str] = []
    if not criterion.segment_id:
        errors.append("Please select a segment for all conditions.")
        return errors

    ctype = criterion.criterion_type
    seg = criterion.segment_id
    if ctype is CriterionType.SPECIFIC_CODE and not criterion.code_value:
        errors.append(f"Code Value is required for segment: {seg}.")
    elif ctype is CriterionType.CODE_RANGE:
        start = criterion.range_start_value
        end = criterion.range_end_value
        if not start or not end:
            errors.append(f"Start and End Code Values are required for segment: {seg}.")
        elif compare_codes(start, end) > 0:
            errors.append(
                f"Range start {start!r} is after range end {end!r} for segment: {seg}."
            )
    elif ctype is CriterionType.HIERARCHY_NODE and not criterion.hierarchy_node_id:
        errors.append(f"Hierarchy Node ID is required for segment: {seg}.")
    return errors


def criterion_matches(
    criterion: SegmentCriterion, account: Account, context: EvaluationContext
) -> bool:
    """Return True if the account's value for the criterion segment matches.

    A missing (None or empty) value only matches ``All``.

    Raises:
        HierarchyNodeNotFoundError: for a ``HierarchyNode`` criterion whose
            node does not exist in a tree for the criterion's segment.
    """
    ctype = criterion.criterion_type
    if ctype is CriterionType.ALL:
        return True

    value = account.get(criterion.segment_id)
    if value is None or value == "":
        return False

    if ctype is CriterionType.SPECIFIC_CODE:
        return value == criterion.code_value

    if ctype is CriterionType.CODE_RANGE:
        if criterion.range_start_value is None or criterion.range_end_value is None:
            return False
        return (
            compare_codes(criterion.range_start_value, value) <= 0
            and compare_codes(value, criterion.range_end_value) <= 0
        )

    if ctype is CriterionType.HIERARCHY_NODE:
        node = context.hierarchies.find_node(
            criterion.hierarchy_node_id or "",
            criterion.segment_id,
            criterion.hierarchy_set_id,
        )
        return value in descendant_codes(node, criterion.include_children)

    return False


def criteria_match(
    criteria: list[SegmentCriterion], account: Account, context: EvaluationContext
) -> bool:
    """AND of every criterion. An empty list never matches."""
    if not criteria:
        return False
    return all(criterion_matches(c, account, context) for c in criteria)


def validate_criteria_group(criteria: list[SegmentCriterion]) -> list[str]:
    """Validate a conjunction of criteria (restriction or definition entry).

    The group must hold at least one criterion, every criterion must be
    valid, and each segment may appear only once.
    """
    if not criteria:
        return ["Please define at least one segment condition."]

    errors: list[str] = []
    seen: set[str] = set()
    for c in criteria:
        errors.extend(validate_criterion(c))
        if c.segment_id:
            if c.segment_id in seen:
                errors.append(
                    f"Segment {c.segment_id!r} is used by more than one condition."
                )
            seen.add(c.segment_id)
    return errors


def check_criterion_references(
    criterion: SegmentCriterion,
    segments: SegmentStore,
    codes: SegmentCodeStore,
    hierarchies: HierarchyStore,
) -> list[str]:
    """Report references of a criterion that do not resolve.

    Unknown segments and unknown hierarchy nodes would make evaluation fail
    or never match; unknown codes are legal (codes may be created later) but
    are reported too.
    """
    seg = criterion.segment_id
    if segments.get(seg) is None:
        return [f"Unknown segment {seg!r}."]

    problems: list[str] = []
    ctype = criterion.criterion_type
    if ctype is CriterionType.SPECIFIC_CODE and criterion.code_value:
        if codes.get_code(seg, criterion.code_value) is None:
            problems.append(f"Code {criterion.code_value!r} does not exist in {seg!r}.")
    elif ctype is CriterionType.CODE_RANGE:
        for bound in (criterion.range_start_value, criterion.range_end_value):
            if bound and codes.get_code(seg, bound) is None:
                problems.append(f"Range bound {bound!r} does not exist in {seg!r}.")
    elif ctype is CriterionType.HIERARCHY_NODE and criterion.hierarchy_node_id:
        try:
            hierarchies.find_node(
                criterion.hierarchy_node_id, seg, criterion.hierarchy_set_id
            )
        except (HierarchyNodeNotFoundError, UnknownIdError) as exc:
            problems.append(str(exc))
    return problems


def describe_criterion(
    criterion: SegmentCriterion, segment_name: Optional[str] = None
) -> str:
    """Human-readable summary, e.g. 'Object: Range = 6000 to 6999'."""
    name = segment_name or criterion.segment_id
    ctype = criterion.criterion_type
    if ctype is CriterionType.ALL:
        return f"{name}: All Codes"
    if ctype is CriterionType.SPECIFIC_CODE:
        return f"{name}: Code = {criterion.code_value}"
    if ctype is CriterionType.CODE_RANGE:
        return (
            f"{name}: Range = {criterion.range_start_value} to "
            f"{criterion.range_end_value}"
        )
    suffix = " (and children)" if criterion.include_children else ""
    return f"{name}: Node = {criterion.hierarchy_node_id}{suffix}"
