from datetime import date

import pytest

from coa_studio.access_control import AccessIdentity
from coa_studio.journal import LineIssue
from coa_studio.periods import FiscalCalendarConfig, generate_fiscal_years
from coa_studio.sample_data import build_workspace
from coa_studio.views import (
    CODE_COLUMNS,
    access_decision_to_dataframe,
    access_rules_to_dataframe,
    codes_to_dataframe,
    combination_decision_to_dataframe,
    combination_rules_to_dataframe,
    fiscal_years_to_dataframe,
    issues_to_dataframe,
    periods_to_dataframe,
    segments_to_dataframe,
    tree_to_dataframe,
)


@pytest.fixture(scope="module")
def ws():
    return build_workspace()


def test_segments_view_keeps_configured_order(ws) -> None:
    df = segments_to_dataframe(ws.segments.segments)

    assert df["id"].tolist() == ["fund", "object", "department", "project"]
    assert df["order"].tolist() == [1, 2, 3, 4]
    assert df.loc[df["id"] == "project", "mandatory"].item() is False


def test_codes_view_marks_summary_codes(ws) -> None:
    df = codes_to_dataframe(ws.codes.codes_for("fund")[:2])

    assert df["type"].tolist() == ["summary", "summary"]
    assert df["valid_to"].tolist() == ["", "2024-12-31"]
    assert codes_to_dataframe([]).columns.tolist() == CODE_COLUMNS


def test_tree_view_is_depth_first_with_levels(ws) -> None:
    tree = ws.hierarchies.require("hset-gasb-1").hierarchy_for("department")

    df = tree_to_dataframe(tree.tree_nodes)

    assert df["code"].tolist() == ["GOV", "FIN", "FINACC", "HR"]
    assert df["level"].tolist() == [0, 1, 2, 1]
    assert df["display_order"].tolist() == [10, 20, 30, 40]
    assert df["name"].iloc[2] == "    Accounting Division"


def test_rules_views_describe_criteria(ws) -> None:
    names = {"object": "Object", "fund": "Fund"}

    access = access_rules_to_dataframe(ws.access_rules.rules, names)
    assert access["rule_id"].tolist() == [
        "aac-rule-1",
        "aac-rule-1",
        "aac-rule-2",
        "aac-rule-3",
    ]
    clerk = access[access["rule_id"] == "aac-rule-2"].iloc[0]
    assert clerk["criteria"] == "Object: Range = 6000 to 6999"
    assert clerk["applies_to"] == "User: ap_clerk_01"

    combination = combination_rules_to_dataframe(ws.combination_rules.rules, names)
    assert combination["behavior"].tolist() == ["Include", "Exclude"]
    assert combination["conditions"].iloc[1] == (
        "Fund: Code = 103 AND Object: Code = 5300"
    )


def test_decision_views(ws) -> None:
    identity = AccessIdentity.of("ap_clerk_01", ["DEPT_HEAD_ROLE"])
    decision = ws.access_rules.resolve(
        identity, {"fund": "101", "object": "5100"}, ws.context
    )
    df = access_decision_to_dataframe(decision)
    assert df["restriction_id"].tolist() == ["(rule default)", "(rule default)"]
    assert df["deciding"].tolist() == [True, False]

    account = {"fund": "103", "object": "5300"}
    combo = ws.combination_rules.evaluate(account, ws.context)
    df = combination_decision_to_dataframe(combo)
    assert df.values.tolist() == [
        ["cr-gov-funds-exc", "Exclude"],
        ["cr-gov-funds-inc", "Include"],
    ]


def test_issues_view_labels_entry_level_issues() -> None:
    df = issues_to_dataframe([LineIssue("1", "Bad"), LineIssue(None, "Unbalanced")])
    assert df["line"].tolist() == ["1", "(entry)"]


def test_period_views() -> None:
    config = FiscalCalendarConfig(years=1)
    years = generate_fiscal_years(config, today=date(2025, 3, 15))

    df = periods_to_dataframe(years)
    assert len(df) == 13
    march = df[df["period_id"] == "FY2025-P3"].iloc[0]
    assert (march["start"], march["end"]) == ("2025-03-01", "2025-03-31")
    assert march[["GL", "AP", "AR", "overall"]].tolist() == ["Open"] * 4
    adj = df.iloc[-1]
    assert adj[["start", "AP", "GL", "overall"]].tolist() == [
        "",
        "",
        "Future",
        "Future",
    ]

    summary = fiscal_years_to_dataframe(years)
    assert summary.values.tolist() == [
        ["FY2025", "2025-01-01", "2025-12-31", 12, "Open"]
    ]
