from datetime import date

import pytest

from coa_studio.combination_rules import (
    CombinationRule,
    CombinationRuleStore,
    DefinitionEntry,
    SegmentCondition,
    UnmatchedBehavior,
    evaluate_combination,
    valid_combinations,
    validate_combination_rule,
)
from coa_studio.criteria import SegmentCriterion
from coa_studio.exceptions import InvalidRuleError
from coa_studio.sample_data import build_workspace, sample_combination_rules


@pytest.fixture(scope="module")
def ws():
    return build_workspace()


def cond(segment_id: str, crit_type: str, *args, **kwargs) -> SegmentCondition:
    crit = SegmentCriterion(
        f"crit-{segment_id}", segment_id, crit_type, *args, **kwargs
    )
    return SegmentCondition(f"cond-{segment_id}", segment_id, crit)


def test_include_entry_allows_children_of_node(ws) -> None:
    decision = ws.combination_rules.evaluate(
        {"fund": "101", "object": "5100", "department": "FINACC"}, ws.context
    )
    assert decision.allowed
    assert decision.reason == "included"
    assert decision.included_by == ("cr-gov-funds-inc",)


def test_exclude_overrides_include(ws) -> None:
    decision = ws.combination_rules.evaluate(
        {"fund": "103", "object": "5300", "department": "FINACC"}, ws.context
    )
    assert not decision.allowed
    assert decision.reason == "excluded"
    assert decision.included_by == ("cr-gov-funds-inc",)
    assert decision.excluded_by == ("cr-gov-funds-exc",)


def test_exclude_wins_whatever_the_entry_order(ws) -> None:
    rule = sample_combination_rules()[0]
    rule.definition_entries.reverse()
    account = {"fund": "103", "object": "5300"}

    decision = evaluate_combination([rule], account, ws.context)

    assert decision.reason == "excluded"


def test_unmatched_combination_uses_default(ws) -> None:
    account = {"fund": "102", "object": "5100", "department": "FINACC"}

    refused = ws.combination_rules.evaluate(account, ws.context)
    accepted = ws.combination_rules.evaluate(
        account, ws.context, default_unmatched=UnmatchedBehavior.ALLOWED
    )

    assert (refused.allowed, refused.reason) == (False, "unmatched_default")
    assert (accepted.allowed, accepted.reason) == (True, "unmatched_default")


def test_inactive_rules_are_skipped(ws) -> None:
    rule = sample_combination_rules()[0]
    rule.status = "Inactive"
    decision = evaluate_combination([rule], {"fund": "101"}, ws.context)
    assert decision.reason == "unmatched_default"


def test_exclude_entry_must_match_every_condition(ws) -> None:
    # 103 alone is included; only 103 with 5300 is excluded.
    decision = ws.combination_rules.evaluate(
        {"fund": "103", "object": "5200"}, ws.context
    )
    assert decision.allowed


def test_condition_segment_overrides_criterion_segment() -> None:
    crit = SegmentCriterion("c", "", "CODE", "101")
    entry = DefinitionEntry(
        "e", "Include", [SegmentCondition("cond", "fund", crit)], "Fund 101"
    )
    assert [c.segment_id for c in entry.criteria] == ["fund"]


def test_valid_combinations_lists_allowed_codable_pairs(ws) -> None:
    segments = [ws.segments.require("fund"), ws.segments.require("object")]

    df = valid_combinations(
        segments,
        ws.codes,
        ws.combination_rules.rules,
        ws.context,
        on_date=date(2024, 6, 1),
    )

    assert list(df.columns) == ["fund", "object", "reason"]
    # Summary code 100 is not codable, so only 101 and 103 survive.
    assert set(df["fund"]) == {"101", "103"}
    assert ("103", "5300") not in set(zip(df["fund"], df["object"]))
    assert ("101", "5300") in set(zip(df["fund"], df["object"]))
    assert len(df) == 19
    assert set(df["reason"]) == {"included"}


def test_valid_combinations_empty_pool_returns_empty_frame(ws) -> None:
    segments = [ws.segments.require("project")]

    # P001 and P002 are both valid from 2023 or later.
    df = valid_combinations(
        segments,
        ws.codes,
        ws.combination_rules.rules,
        ws.context,
        default_unmatched=UnmatchedBehavior.ALLOWED,
        on_date=date(2022, 1, 1),
    )
    assert df.empty
    assert list(df.columns) == ["project", "reason"]


def test_validate_combination_rule_and_store() -> None:
    bad = CombinationRule(
        id="bad",
        name="",
        definition_entries=[
            DefinitionEntry("e1", "Include", [cond("fund", "CodeRange", None, "200")]),
            DefinitionEntry("e1", "Exclude", []),
        ],
    )
    errors = validate_combination_rule(bad)
    assert "Rule Name is required." in errors
    assert "Definition entry id 'e1' is used twice." in errors
    assert any("Start and End Code Values are required" in e for e in errors)
    assert any("at least one segment condition" in e for e in errors)

    store = CombinationRuleStore()
    with pytest.raises(InvalidRuleError) as excinfo:
        store.add(bad)
    assert excinfo.value.rule_id == "bad"

    good = sample_combination_rules()[0]
    store.add(good)
    assert store.get("cr-gov-funds") is good
