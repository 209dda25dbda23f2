import pytest

from coa_studio.access_control import (
    AccessControlRestriction,
    AccessControlRule,
    AccessControlStore,
    AccessIdentity,
    AccessType,
    DefaultBehavior,
    resolve_access,
    validate_access_rule,
)
from coa_studio.criteria import SegmentCriterion
from coa_studio.exceptions import InvalidRuleError, UnknownIdError
from coa_studio.sample_data import build_workspace, sample_access_rules


@pytest.fixture
def ws():
    return build_workspace()


def account(**values):
    base = {"fund": "101", "object": "5100", "department": "FINACC", "project": None}
    base.update(values)
    return base


def test_default_behavior_maps_to_access_type() -> None:
    assert DefaultBehavior.FULL_ACCESS.to_access_type() is AccessType.EDITABLE
    assert DefaultBehavior.NO_ACCESS.to_access_type() is AccessType.NO_ACCESS
    assert AccessType.NO_ACCESS.rank < AccessType.READ_ONLY.rank
    assert AccessType.READ_ONLY.rank < AccessType.EDITABLE.rank


def test_user_rule_restriction_grants_edit(ws) -> None:
    clerk = AccessIdentity.of("ap_clerk_01")
    decision = ws.access_rules.resolve(clerk, account(object="6110"), ws.context)

    assert decision.access_type is AccessType.EDITABLE
    assert decision.reason == "restriction"
    assert decision.rule_id == "aac-rule-2"
    assert decision.restriction_id == "res-2-1"
    assert decision.can_edit


def test_user_rule_falls_back_to_rule_default(ws) -> None:
    clerk = AccessIdentity.of("ap_clerk_01")
    decision = ws.access_rules.resolve(clerk, account(object="5100"), ws.context)

    assert decision.access_type is AccessType.NO_ACCESS
    assert decision.reason == "rule_default"
    assert decision.restriction_id is None
    assert not decision.can_read


def test_role_rule_read_only_on_sensitive_fund(ws) -> None:
    finance = AccessIdentity.of("jane", ["FINANCE_USER_ROLE"])

    sensitive = ws.access_rules.resolve(
        finance, account(fund="FND-SENSITIVE-B"), ws.context
    )
    other = ws.access_rules.resolve(finance, account(), ws.context)

    assert sensitive.access_type is AccessType.READ_ONLY
    assert sensitive.restriction_id == "res-1-2"
    assert sensitive.can_read and not sensitive.can_edit
    assert other.access_type is AccessType.NO_ACCESS


def test_full_access_default_without_restrictions(ws) -> None:
    head = AccessIdentity.of("bob", ["DEPT_HEAD_ROLE"])
    decision = ws.access_rules.resolve(head, account(), ws.context)
    assert decision.access_type is AccessType.EDITABLE
    assert decision.reason == "rule_default"
    assert decision.rule_id == "aac-rule-3"


def test_no_applicable_rule_uses_configured_default(ws) -> None:
    nobody = AccessIdentity.of("visitor")

    assert ws.access_rules.resolve(nobody, account(), ws.context).reason == "no_rule"
    decision = ws.access_rules.resolve(
        nobody, account(), ws.context, default_without_rule=AccessType.READ_ONLY
    )
    assert decision.access_type is AccessType.READ_ONLY
    assert decision.rule_results == ()


def test_most_restrictive_rule_wins(ws) -> None:
    """A clerk who is also a department head is still blocked outside 6000s."""
    identity = AccessIdentity.of("ap_clerk_01", ["DEPT_HEAD_ROLE"])

    blocked = ws.access_rules.resolve(identity, account(object="5100"), ws.context)
    assert blocked.access_type is AccessType.NO_ACCESS
    assert blocked.rule_id == "aac-rule-2"
    assert [r.rule_id for r in blocked.rule_results] == ["aac-rule-2", "aac-rule-3"]

    # Both rules grant Editable: the earliest one decides.
    allowed = ws.access_rules.resolve(identity, account(object="6110"), ws.context)
    assert allowed.access_type is AccessType.EDITABLE
    assert allowed.rule_id == "aac-rule-2"
    assert allowed.reason == "restriction"


def test_first_matching_restriction_wins_within_a_rule(ws) -> None:
    rule = AccessControlRule(
        id="r",
        name="Overlap",
        applies_to_type="User",
        applies_to_id="u",
        default_behavior_for_rule="No Access",
        restrictions=[
            AccessControlRestriction(
                "first",
                [SegmentCriterion("a", "fund", "CodeRange", None, "100", "199")],
                "Read-Only",
            ),
            AccessControlRestriction(
                "second",
                [SegmentCriterion("b", "fund", "SpecificCode", "101")],
                "Editable",
            ),
        ],
    )
    decision = resolve_access(
        [rule], AccessIdentity.of("u"), account(), ws.context
    )
    assert decision.restriction_id == "first"
    assert decision.access_type is AccessType.READ_ONLY


def test_inactive_rules_are_ignored(ws) -> None:
    rules = sample_access_rules()
    rules[1].status = "Inactive"
    clerk = AccessIdentity.of("ap_clerk_01")

    decision = resolve_access(rules, clerk, account(object="5100"), ws.context)

    assert decision.reason == "no_rule"
    assert decision.access_type is AccessType.EDITABLE


def test_validate_access_rule_reports_problems() -> None:
    rule = AccessControlRule(
        id="bad",
        name=" ",
        applies_to_type="Role",
        applies_to_id="",
        default_behavior_for_rule="Full Access",
        restrictions=[AccessControlRestriction("x", [], "Editable")],
    )
    errors = validate_access_rule(rule)
    assert "Rule Name is required." in errors
    assert "Applies To (user or role id) is required." in errors
    assert "Restriction x: Please define at least one segment condition." in errors


def test_store_add_update_delete(ws) -> None:
    store = AccessControlStore()
    rule = sample_access_rules()[2]
    store.add(rule)

    with pytest.raises(InvalidRuleError):
        store.add(rule)

    rule.default_behavior_for_rule = DefaultBehavior.NO_ACCESS
    store.update(rule)
    head = AccessIdentity.of("bob", ["DEPT_HEAD_ROLE"])
    assert store.resolve(head, account(), ws.context).access_type is (
        AccessType.NO_ACCESS
    )
    assert [r.id for r in store.rules_for(head)] == ["aac-rule-3"]

    store.delete("aac-rule-3")
    with pytest.raises(UnknownIdError):
        store.delete("aac-rule-3")


def test_unknown_enum_values_are_rejected() -> None:
    with pytest.raises(ValueError):
        AccessControlRestriction("x", [], "Superuser")
