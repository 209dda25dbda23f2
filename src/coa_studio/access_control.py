# COA Studio - Chart of Accounts configuration & rule resolution toolkit
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Account access control for COA Studio.

An access-control rule applies to one user or one role and lists
*restrictions*. A restriction is a conjunction of segment criteria paired
with an access type (Read-Only, Editable or No Access).

Resolution of the access an identity has to an account code
-------------------------------------------------------------

1) Select the rules that are Active and apply to the identity:
   - 'User' rules whose ``applies_to_id`` equals the user id,
   - 'Role' rules whose ``applies_to_id`` is one of the identity's roles.

2) Resolve each rule on its own:
   - restrictions are evaluated in list order,
   - the first restriction whose criteria all match gives the rule result,
   - if none match, the rule default applies:
       'Full Access' → Editable,
       'No Access'   → No Access.

3) Combine the per-rule results: the most restrictive one wins
   (No Access < Read-Only < Editable). Ties keep the earliest rule.

4) If no rule applies, the configured default is returned
   (``[access] default_without_rule``, Editable unless configured).
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from .criteria import (
    Account,
    EvaluationContext,
    SegmentCriterion,
    criteria_match,
    validate_criteria_group,
)
from .exceptions import InvalidRuleError, UnknownIdError

logger = logging.getLogger(__name__)


class AccessType(str, Enum):
    READ_ONLY = "Read-Only"
    EDITABLE = "Editable"
    NO_ACCESS = "No Access"

    @property
    def rank(self) -> int:
        """Permissiveness rank: lower is more restrictive."""
        return _ACCESS_RANK[self]


_ACCESS_RANK = {
    AccessType.NO_ACCESS: 0,
    AccessType.READ_ONLY: 1,
    AccessType.EDITABLE: 2,
}


class DefaultBehavior(str, Enum):
    FULL_ACCESS = "Full Access"
    NO_ACCESS = "No Access"

    def to_access_type(self) -> AccessType:
        if self is DefaultBehavior.FULL_ACCESS:
            return AccessType.EDITABLE
        return AccessType.NO_ACCESS


class AppliesToType(str, Enum):
    USER = "User"
    ROLE = "Role"


RULE_STATUSES = ("Active", "Inactive")


@dataclass
class AccessControlRestriction:
    """A conjunction of segment criteria and the access it grants."""

    id: str
    segment_criteria: list[SegmentCriterion]
    access_type: AccessType
    description: str = ""

    def __post_init__(self) -> None:
        self.access_type = AccessType(self.access_type)


@dataclass
class AccessControlRule:
    """Access restrictions scoped to a user or a role."""

    id: str
    name: str
    applies_to_type: AppliesToType
    applies_to_id: str
    default_behavior_for_rule: DefaultBehavior
    restrictions: list[AccessControlRestriction] = field(default_factory=list)
    status: str = "Active"
    applies_to_name: str = ""
    description: str = ""
    last_modified_date: Optional[datetime] = None
    last_modified_by: str = ""

    def __post_init__(self) -> None:
        self.applies_to_type = AppliesToType(self.applies_to_type)
        self.default_behavior_for_rule = DefaultBehavior(self.default_behavior_for_rule)

    @property
    def is_active(self) -> bool:
        return self.status == "Active"


@dataclass(frozen=True)
class AccessIdentity:
    """The requester: a user id and the roles it holds."""

    user_id: str
    roles: frozenset[str] = frozenset()

    @staticmethod
    def of(user_id: str, roles: Iterable[str] = ()) -> "AccessIdentity":
        return AccessIdentity(user_id=user_id, roles=frozenset(roles))


@dataclass(frozen=True)
class RuleResult:
    """Outcome of a single rule for an account."""

    rule_id: str
    access_type: AccessType
    restriction_id: Optional[str]

    @property
    def from_default(self) -> bool:
        return self.restriction_id is None


@dataclass(frozen=True)
class AccessDecision:
    """Final access of an identity to an account.

    Attributes:
        access_type: Resolved access.
        reason: 'restriction' (a restriction matched in the deciding rule),
            'rule_default' (the deciding rule fell back to its default) or
            'no_rule' (no rule applies; configured default).
        rule_id: Deciding rule, if any.
        restriction_id: Deciding restriction, if any.
        rule_results: Per-rule outcomes, in rule order.
    """

    access_type: AccessType
    reason: str
    rule_id: Optional[str] = None
    restriction_id: Optional[str] = None
    rule_results: tuple[RuleResult, ...] = ()

    @property
    def can_read(self) -> bool:
        return self.access_type is not AccessType.NO_ACCESS

    @property
    def can_edit(self) -> bool:
        return self.access_type is AccessType.EDITABLE


def rule_applies_to(rule: AccessControlRule, identity: AccessIdentity) -> bool:
    """True if the rule is active and targets the identity (user or role)."""
    if not rule.is_active:
        return False
    if rule.applies_to_type is AppliesToType.USER:
        return rule.applies_to_id == identity.user_id
    return rule.applies_to_id in identity.roles


def resolve_rule(
    rule: AccessControlRule, account: Account, context: EvaluationContext
) -> RuleResult:
    """Resolve a single rule: first matching restriction, else rule default."""
    for restriction in rule.restrictions:
        if criteria_match(restriction.segment_criteria, account, context):
            return RuleResult(
                rule_id=rule.id,
                access_type=restriction.access_type,
                restriction_id=restriction.id,
            )
    return RuleResult(
        rule_id=rule.id,
        access_type=rule.default_behavior_for_rule.to_access_type(),
        restriction_id=None,
    )


def resolve_access(
    rules: list[AccessControlRule],
    identity: AccessIdentity,
    account: Account,
    context: EvaluationContext,
    default_without_rule: AccessType = AccessType.EDITABLE,
) -> AccessDecision:
    """Resolve the access ``identity`` has to ``account``.

    Args:
        rules: Every configured rule (inactive / foreign rules are skipped).
        identity: Requesting user and roles.
        account: Mapping {segment_id: code}.
        context: Evaluation context (hierarchies for node criteria).
        default_without_rule: Access returned when no rule applies.

    Returns:
        An AccessDecision. See the module docstring for the precedence.
    """
    results = [
        resolve_rule(rule, account, context)
        for rule in rules
        if rule_applies_to(rule, identity)
    ]

    if not results:
        return AccessDecision(
            access_type=AccessType(default_without_rule), reason="no_rule"
        )

    deciding = results[0]
    for res in results[1:]:
        if res.access_type.rank < deciding.access_type.rank:
            deciding = res

    return AccessDecision(
        access_type=deciding.access_type,
        reason="rule_default" if deciding.from_default else "restriction",
        rule_id=deciding.rule_id,
        restriction_id=deciding.restriction_id,
        rule_results=tuple(results),
    )


def validate_access_rule(rule: AccessControlRule) -> list[str]:
    """Return the list of problems of a rule (empty when valid)."""
    errors: list[str] = []
    if not rule.name or not rule.name.strip():
        errors.append("Rule Name is required.")
    if not rule.applies_to_id or not rule.applies_to_id.strip():
        errors.append("Applies To (user or role id) is required.")
    if rule.status not in RULE_STATUSES:
        errors.append(f"Invalid rule status {rule.status!r}.")

    seen: set[str] = set()
    for idx, restriction in enumerate(rule.restrictions, start=1):
        label = restriction.description or restriction.id or f"#{idx}"
        if restriction.id in seen:
            errors.append(f"Restriction id {restriction.id!r} is used twice.")
        seen.add(restriction.id)
        for msg in validate_criteria_group(restriction.segment_criteria):
            errors.append(f"Restriction {label}: {msg}")
    return errors


class AccessControlStore:
    """In-memory list of access-control rules."""

    def __init__(self, rules: Optional[list[AccessControlRule]] = None):
        self._rules: list[AccessControlRule] = list(rules or [])

    @property
    def rules(self) -> list[AccessControlRule]:
        return list(self._rules)

    def get(self, rule_id: str) -> Optional[AccessControlRule]:
        return next((r for r in self._rules if r.id == rule_id), None)

    def _check(self, rule: AccessControlRule) -> None:
        errors = validate_access_rule(rule)
        if errors:
            raise InvalidRuleError("; ".join(errors), rule_id=rule.id)

    def add(self, rule: AccessControlRule) -> AccessControlRule:
        if self.get(rule.id) is not None:
            raise InvalidRuleError(f"Rule id {rule.id!r} already exists.", rule.id)
        self._check(rule)
        self._rules.append(rule)
        return rule

    def update(self, rule: AccessControlRule) -> AccessControlRule:
        if self.get(rule.id) is None:
            raise UnknownIdError("access control rule", rule.id)
        self._check(rule)
        self._rules = [rule if r.id == rule.id else r for r in self._rules]
        return rule

    def delete(self, rule_id: str) -> None:
        if self.get(rule_id) is None:
            raise UnknownIdError("access control rule", rule_id)
        self._rules = [r for r in self._rules if r.id != rule_id]

    def rules_for(self, identity: AccessIdentity) -> list[AccessControlRule]:
        """Rules that are active and apply to the identity, in store order."""
        return [r for r in self._rules if rule_applies_to(r, identity)]

    def resolve(
        self,
        identity: AccessIdentity,
        account: Account,
        context: EvaluationContext,
        default_without_rule: AccessType = AccessType.EDITABLE,
    ) -> AccessDecision:
        decision = resolve_access(
            self._rules, identity, account, context, default_without_rule
        )
        logger.debug(
            "Access for %s on %s: %s (%s)",
            identity.user_id,
            dict(account),
            decision.access_type.value,
            decision.reason,
        )
        return decision
