# COA Studio - Chart of Accounts configuration & rule resolution toolkit
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Bundled sample chart of accounts.

A small municipal chart of accounts (funds, objects, departments, projects)
with two reporting hierarchy sets, a few access-control rules and one
combination rule. It is used when the configuration does not point to
data files, and as a ready-made fixture for demos and tests.

``build_workspace()`` returns every store with the system default hierarchy
set already rebuilt from the codes' default parents.
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from .access_control import (
    AccessControlRestriction,
    AccessControlRule,
    AccessControlStore,
)
from .combination_rules import (
    CombinationRule,
    CombinationRuleStore,
    DefinitionEntry,
    SegmentCondition,
)
from .criteria import EvaluationContext, SegmentCriterion
from .hierarchies import HierarchyNode, HierarchySet, HierarchyStore, SegmentHierarchy
from .segments import (
    CustomFieldDefinition,
    Segment,
    SegmentCode,
    SegmentCodeStore,
    SegmentStore,
)

_START = date(2023, 1, 1)


def _code(
    code_id: str,
    code: str,
    description: str,
    parent: str = "",
    summary: bool = False,
    valid_from: date = _START,
    valid_to: Optional[date] = None,
) -> SegmentCode:
    return SegmentCode(
        id=code_id,
        code=code,
        description=description,
        summary_indicator=summary,
        valid_from=valid_from,
        valid_to=valid_to,
        available_for_transaction_coding=not summary,
        default_parent_code=parent or None,
    )


def sample_segments() -> list[Segment]:
    return [
        Segment(
            id="fund",
            display_name="Fund",
            segment_type="Fund",
            max_length=10,
            default_code="101",
            is_custom=False,
            is_mandatory_for_coding=True,
            is_core=True,
        ),
        Segment(
            id="object",
            display_name="Object",
            segment_type="Object",
            max_length=10,
            default_code="4100",
            is_custom=False,
            is_mandatory_for_coding=True,
            is_core=True,
        ),
        Segment(
            id="department",
            display_name="Department",
            segment_type="Department",
            max_length=15,
            default_code="FINACC",
            is_custom=False,
            is_mandatory_for_coding=True,
            is_core=True,
        ),
        Segment(
            id="project",
            display_name="Project",
            segment_type="Project",
            max_length=20,
            special_chars_allowed="_",
            is_custom=False,
            custom_fields=[
                CustomFieldDefinition("proj-status-field", "Project Status", "Text"),
                CustomFieldDefinition(
                    "proj-start-date-field", "Project Start Date", "Date", required=True
                ),
            ],
        ),
    ]


def sample_segment_codes() -> dict[str, list[SegmentCode]]:
    fund = [
        _code("fb-f-100", "100", "General Fund (Summary)", summary=True),
        _code(
            "fb-f-200",
            "200",
            "Enterprise Funds (Summary)",
            summary=True,
            valid_from=date(2023, 7, 1),
            valid_to=date(2024, 12, 31),
        ),
        _code("fb-f-300", "300", "Capital Outlay Fund (Summary)", summary=True),
        _code("fb-f-400", "400", "Fiduciary Funds (Summary)", summary=True),
        _code("fb-f-101", "101", "Governmental Operating Fund", "100"),
        _code("fb-f-101A", "101A", "Operating Sub-Fund A", "101"),
        _code("fb-f-101B", "101B", "Operating Sub-Fund B", "101"),
        _code("fb-f-103", "103", "Special Revenue Fund - Grants", "100"),
        _code("fb-f-105", "105", "Debt Service Fund - Bonds", "100"),
        _code("fb-f-106", "106", "Internal Service Fund - IT", "100"),
        _code("fb-f-102", "102", "Enterprise Parking Fund", "200"),
        _code("fb-f-210", "210", "Enterprise Water Fund", "200", summary=True),
        _code("fb-f-210A", "210A", "Water Fund - Operations", "210"),
        _code("fb-f-220", "220", "Enterprise Sewer Fund", "200"),
        _code("fb-f-230", "230", "Enterprise Airport Fund", "200"),
        _code("fb-f-104", "104", "Capital Projects Fund - Infrastructure", "300"),
        _code("fb-f-301", "301", "Building Project Z (Detail)", "300"),
        _code("fb-f-310", "310", "Equipment Purchase X", "300"),
        _code("fb-f-320", "320", "Infrastructure Upgrade Y", "300"),
        _code("fb-f-107", "107", "Trust Fund - Pension", "400", summary=True),
        _code("fb-f-108", "108", "Agency Fund - Payroll Deductions", "400"),
        _code("fb-f-109", "109", "Permanent Fund - Library Endowment", "400"),
        _code("fb-f-401", "401", "Pension Reserve (Detail)", "107"),
    ]
    department = [
        _code("fb-d-GOV", "GOV", "General Government (Summary)", summary=True),
        _code("fb-d-PS", "PS", "Public Safety (Summary)", summary=True),
        _code("fb-d-FIN", "FIN", "Finance Department", "GOV", summary=True),
        _code("fb-d-FIN-ACC", "FINACC", "Accounting Division", "FIN"),
        _code("fb-d-FIN-BUD", "FINBUD", "Budgeting Division", "FIN", summary=True),
        _code("fb-d-FIN-BUD-ANL", "FINBUDANL", "Budget Analysis Team", "FINBUD"),
        _code("fb-d-HR", "HR", "Human Resources Dept", "GOV", summary=True),
        _code("fb-d-HR-REC", "HRREC", "Recruitment Section", "HR"),
        _code("fb-d-HR-BEN", "HRBEN", "Benefits Administration", "HR"),
        _code("fb-d-IT", "IT", "IT Department", "GOV", summary=True),
        _code("fb-d-IT-INFRA", "ITINFRA", "IT Infrastructure", "IT"),
        _code("fb-d-IT-SUPPORT", "ITSUPPORT", "IT Support Services", "IT"),
        _code("fb-d-PD", "PD", "Police Department", "PS", summary=True),
        _code("fb-d-PD-PATROL", "PDPATROL", "Patrol Division", "PD"),
        _code("fb-d-FD", "FD", "Fire Department", "PS", summary=True),
        _code("fb-d-FD-OPS", "FDOPS", "Fire Operations", "FD"),
        _code("fb-d-PW", "PW", "Public Works", "GOV", summary=True),
        _code("fb-d-PW-ROADS", "PWROADS", "Roads Maintenance", "PW"),
    ]
    obj = [
        _code("fb-o-REV", "REV", "Revenues (Summary)", summary=True),
        _code("fb-o-EXP", "EXP", "Expenditures (Summary)", summary=True),
        _code("fb-o-4000", "4000", "Taxes (Summary)", "REV", summary=True),
        _code("fb-o-4100", "4100", "Property Taxes", "4000"),
        _code("fb-o-4200", "4200", "Sales Taxes", "4000"),
        _code("fb-o-5000", "5000", "Personnel Services (Summary)", "EXP", summary=True),
        _code("fb-o-5100", "5100", "Full-time Salaries (Detail)", "5000"),
        _code("fb-o-5200", "5200", "Part-time Salaries (Detail)", "5000"),
        _code("fb-o-5300", "5300", "Overtime Pay (Detail)", "5000"),
        _code("fb-o-5400", "5400", "Benefits (Summary)", "EXP", summary=True),
        _code("fb-o-5410", "5410", "Health Insurance", "5400"),
        _code("fb-o-6000", "6000", "Operating Expenses (Summary)", "EXP", summary=True),
        _code("fb-o-6100", "6100", "Office Supplies (Summary)", "6000", summary=True),
        _code("fb-o-6110", "6110", "Stationery (Detail)", "6100"),
        _code("fb-o-6120", "6120", "Computer Supplies (Detail)", "6100"),
        _code("fb-o-6200", "6200", "Utilities (Detail)", "6000"),
        _code("fb-o-6300", "6300", "Travel Expenses (Detail)", "6000"),
    ]
    project = [
        SegmentCode(
            id="proj-001",
            code="P001",
            description="City Hall Renovation",
            valid_from=_START,
            allowed_submodules=["General Ledger", "Accounts Payable"],
            custom_field_values={
                "proj-status-field": "In Progress",
                "proj-start-date-field": date(2023, 3, 15),
            },
        ),
        SegmentCode(
            id="proj-002",
            code="P002",
            description="New Park Development",
            valid_from=date(2024, 1, 1),
            allowed_submodules=["General Ledger", "Accounts Payable"],
            custom_field_values={
                "proj-status-field": "Planning",
                "proj-start-date-field": date(2024, 6, 1),
            },
        ),
    ]
    return {"fund": fund, "object": obj, "department": department, "project": project}


def _node(node_id: str, code: SegmentCode, *children: HierarchyNode) -> HierarchyNode:
    return HierarchyNode(id=node_id, segment_code=code, children=list(children))


def sample_hierarchy_sets(
    codes: dict[str, list[SegmentCode]],
) -> list[HierarchySet]:
    """Reporting hierarchy sets. The system default set is not included."""
    by_code = {
        (segment_id, sc.code): sc for segment_id, items in codes.items() for sc in items
    }

    def c(segment_id: str, code: str) -> SegmentCode:
        return by_code[(segment_id, code)]

    gasb = HierarchySet(
        id="hset-gasb-1",
        name="GASB General Purpose Reporting Structure",
        status="Active",
        description=(
            "Standard reporting structure for city-wide GASB financial statements."
        ),
        segment_hierarchies=[
            SegmentHierarchy(
                id="sh-gasb-fund",
                segment_id="fund",
                description="Fund hierarchy rollup for GASB reports.",
                tree_nodes=[
                    _node(
                        "gasb-fund-root-gov",
                        c("fund", "100"),
                        _node("gasb-fund-child-101", c("fund", "101")),
                        _node("gasb-fund-child-103", c("fund", "103")),
                    ),
                    _node(
                        "gasb-fund-root-ent",
                        c("fund", "200"),
                        _node("gasb-fund-child-102", c("fund", "102")),
                    ),
                ],
            ),
            SegmentHierarchy(
                id="sh-gasb-dept",
                segment_id="department",
                description="Functional department rollup for statement of activities.",
                tree_nodes=[
                    _node(
                        "gasb-dept-root-govops",
                        c("department", "GOV"),
                        _node(
                            "gasb-dept-child-finance",
                            c("department", "FIN"),
                            _node(
                                "gasb-dept-grandchild-fin-acc",
                                c("department", "FINACC"),
                            ),
                        ),
                        _node("gasb-dept-child-hr", c("department", "HR")),
                    )
                ],
            ),
            SegmentHierarchy(
                id="sh-gasb-object",
                segment_id="object",
                description="Object code rollup for natural expense classification.",
                tree_nodes=[
                    _node(
                        "gasb-obj-root-personnel",
                        c("object", "EXP"),
                        _node("gasb-obj-child-pers", c("object", "5000")),
                    )
                ],
            ),
        ],
        last_modified_date=datetime(2024, 2, 15),
        last_modified_by="SysAdmin",
    )
    budget = HierarchySet(
        id="hset-budget-1",
        name="FY2025 Budget Preparation Hierarchy",
        status="Active",
        description="Hierarchy set used for preparing the Fiscal Year 2025 budget.",
        segment_hierarchies=[
            SegmentHierarchy(
                id="sh-budget-dept",
                segment_id="department",
                description="Departmental rollup for budget allocation and control.",
            ),
            SegmentHierarchy(
                id="sh-budget-object",
                segment_id="object",
                description="Object code hierarchy for detailed budget line items.",
            ),
        ],
        last_modified_date=datetime(2024, 3, 1),
        last_modified_by="BudgetDirector",
    )
    return [gasb, budget]


def sample_access_rules() -> list[AccessControlRule]:
    return [
        AccessControlRule(
            id="aac-rule-1",
            name="Finance Read-Only Access to Sensitive Funds",
            applies_to_type="Role",
            applies_to_id="FINANCE_USER_ROLE",
            applies_to_name="Finance Standard User",
            default_behavior_for_rule="No Access",
            restrictions=[
                AccessControlRestriction(
                    id="res-1-1",
                    segment_criteria=[
                        SegmentCriterion(
                            "sc-1-1-1",
                            "fund",
                            "SpecificCode",
                            code_value="FND-SENSITIVE-A",
                        )
                    ],
                    access_type="Read-Only",
                    description="Read-only access to Sensitive Fund A",
                ),
                AccessControlRestriction(
                    id="res-1-2",
                    segment_criteria=[
                        SegmentCriterion(
                            "sc-1-2-1",
                            "fund",
                            "SpecificCode",
                            code_value="FND-SENSITIVE-B",
                        )
                    ],
                    access_type="Read-Only",
                    description="Read-only access to Sensitive Fund B",
                ),
            ],
            description=(
                "Restricts finance users to read-only on specific sensitive funds."
            ),
        ),
        AccessControlRule(
            id="aac-rule-2",
            name="AP Clerk Access to Operational Objects",
            applies_to_type="User",
            applies_to_id="ap_clerk_01",
            applies_to_name="John Doe (AP Clerk)",
            default_behavior_for_rule="No Access",
            restrictions=[
                AccessControlRestriction(
                    id="res-2-1",
                    segment_criteria=[
                        SegmentCriterion(
                            "sc-2-1-1",
                            "object",
                            "CodeRange",
                            range_start_value="6000",
                            range_end_value="6999",
                        )
                    ],
                    access_type="Editable",
                    description="Editable access to operational expense objects",
                )
            ],
        ),
        AccessControlRule(
            id="aac-rule-3",
            name="Department Head Full Access (Default)",
            applies_to_type="Role",
            applies_to_id="DEPT_HEAD_ROLE",
            applies_to_name="Department Head",
            default_behavior_for_rule="Full Access",
        ),
    ]


def sample_combination_rules() -> list[CombinationRule]:
    return [
        CombinationRule(
            id="cr-gov-funds",
            name="Governmental funds",
            description=(
                "Governmental funds may be coded with any object and department, "
                "except overtime on grant funds."
            ),
            definition_entries=[
                DefinitionEntry(
                    id="cr-gov-funds-inc",
                    behavior="Include",
                    description="General fund and its children",
                    segment_conditions=[
                        SegmentCondition(
                            "cond-1",
                            "fund",
                            SegmentCriterion(
                                "crit-1",
                                "fund",
                                "HIERARCHY_NODE",
                                hierarchy_node_id="gasb-fund-root-gov",
                                include_children=True,
                                hierarchy_set_id="hset-gasb-1",
                            ),
                        ),
                    ],
                ),
                DefinitionEntry(
                    id="cr-gov-funds-exc",
                    behavior="Exclude",
                    description="No overtime on grant funds",
                    segment_conditions=[
                        SegmentCondition(
                            "cond-2",
                            "fund",
                            SegmentCriterion("crit-2", "fund", "CODE", "103"),
                        ),
                        SegmentCondition(
                            "cond-3",
                            "object",
                            SegmentCriterion("crit-3", "object", "CODE", "5300"),
                        ),
                    ],
                ),
            ],
        )
    ]


@dataclass
class Workspace:
    """Every store of a chart of accounts configuration."""

    segments: SegmentStore
    codes: SegmentCodeStore
    hierarchies: HierarchyStore
    access_rules: AccessControlStore
    combination_rules: CombinationRuleStore

    @property
    def context(self) -> EvaluationContext:
        return EvaluationContext(hierarchies=self.hierarchies)


def build_workspace() -> Workspace:
    """Return fresh stores loaded with the sample chart of accounts."""
    segments = SegmentStore(sample_segments())
    raw_codes = sample_segment_codes()
    codes = SegmentCodeStore(segments, raw_codes)
    hierarchies = HierarchyStore(sample_hierarchy_sets(raw_codes))
    hierarchies.rebuild_system_default(segments.segments, codes)
    return Workspace(
        segments=segments,
        codes=codes,
        hierarchies=hierarchies,
        access_rules=AccessControlStore(sample_access_rules()),
        combination_rules=CombinationRuleStore(sample_combination_rules()),
    )
