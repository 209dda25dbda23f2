# COA Studio - Chart of Accounts configuration & rule resolution toolkit
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Journal entry line checks.

This module validates the lines of a journal entry against the chart of
accounts configuration before they are accepted:

- each line carries exactly one positive amount (debit or credit),
- every mandatory active segment is coded,
- each code exists in its segment, is effective on the entry date and is
  codable (detail code, available for transaction coding),
- the combination of codes is allowed by the combination rules,
- when an identity is provided, it has Editable access to the account,
- the entry balances (total debits == total credits).

Problems are collected as ``LineIssue`` records instead of being raised, so
that a caller can report every problem of an entry at once.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Optional

from .access_control import AccessControlStore, AccessIdentity, AccessType
from .combination_rules import CombinationRuleStore, UnmatchedBehavior
from .criteria import EvaluationContext
from .segments import SegmentCodeStore, SegmentStore


@dataclass
class JournalLine:
    """One line of a journal entry."""

    id: str
    account: Mapping[str, Optional[str]] = field(default_factory=dict)
    description: str = ""
    debit: Optional[Decimal] = None
    credit: Optional[Decimal] = None


@dataclass(frozen=True)
class LineIssue:
    """A problem found on a line (``line_id`` is None for entry-level issues)."""

    line_id: Optional[str]
    message: str


def _amount(value: Optional[Decimal]) -> Decimal:
    return Decimal(str(value)) if value is not None else Decimal("0")


def validate_journal_lines(
    lines: list[JournalLine],
    entry_date: date,
    segments: SegmentStore,
    codes: SegmentCodeStore,
    combination_rules: CombinationRuleStore,
    context: EvaluationContext,
    default_unmatched: UnmatchedBehavior = UnmatchedBehavior.NOT_ALLOWED,
    access_rules: Optional[AccessControlStore] = None,
    identity: Optional[AccessIdentity] = None,
    default_without_rule: AccessType = AccessType.EDITABLE,
) -> list[LineIssue]:
    """Validate journal entry lines. Returns an empty list when all is fine."""
    issues: list[LineIssue] = []
    if not lines:
        return [LineIssue(None, "A journal entry needs at least one line.")]

    active_segments = segments.active_segments()
    total_debit = Decimal("0")
    total_credit = Decimal("0")

    for line in lines:
        debit = _amount(line.debit)
        credit = _amount(line.credit)
        if debit < 0 or credit < 0:
            issues.append(LineIssue(line.id, "Amounts cannot be negative."))
        elif (debit > 0) == (credit > 0):
            issues.append(
                LineIssue(line.id, "Enter either a debit or a credit amount, not both.")
            )
        total_debit += debit
        total_credit += credit

        coding_ok = True
        for segment in active_segments:
            value = line.account.get(segment.id)
            if not value:
                if segment.is_mandatory_for_coding:
                    issues.append(
                        LineIssue(
                            line.id, f"Segment {segment.display_name} is mandatory."
                        )
                    )
                    coding_ok = False
                continue

            sc = codes.get_code(segment.id, value)
            if sc is None:
                issues.append(
                    LineIssue(
                        line.id,
                        f"Unknown code {value} for segment {segment.display_name}.",
                    )
                )
                coding_ok = False
            elif not sc.is_effective(entry_date):
                issues.append(
                    LineIssue(
                        line.id,
                        f"Code {value} of segment {segment.display_name} is not "
                        f"active on {entry_date.isoformat()}.",
                    )
                )
                coding_ok = False
            elif not sc.is_codable:
                issues.append(
                    LineIssue(
                        line.id,
                        f"Code {value} of segment {segment.display_name} is not "
                        "available for transaction coding.",
                    )
                )
                coding_ok = False

        if not coding_ok:
            continue

        decision = combination_rules.evaluate(line.account, context, default_unmatched)
        if not decision.allowed:
            issues.append(
                LineIssue(line.id, "This account code combination is not allowed.")
            )

        if access_rules is not None and identity is not None:
            access = access_rules.resolve(
                identity, line.account, context, default_without_rule
            )
            if not access.can_edit:
                issues.append(
                    LineIssue(
                        line.id,
                        f"User {identity.user_id} has {access.access_type.value} "
                        "access to this account code.",
                    )
                )

    if total_debit != total_credit:
        issues.append(
            LineIssue(
                None,
                f"Entry is not balanced: debits {total_debit:.2f} != "
                f"credits {total_credit:.2f}.",
            )
        )
    return issues
