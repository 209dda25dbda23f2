# COA Studio - Chart of Accounts configuration & rule resolution toolkit
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Error types for COA Studio.

All configuration and rule errors derive from ``CoaStudioError``, a
``ValueError``.

    CoaStudioError (ValueError)
    +-- SegmentValidationError
    +-- HierarchyError
    |   +-- HierarchyNodeNotFoundError
    +-- InvalidCriterionError
    +-- InvalidRuleError
    +-- AccountCodeError
    +-- FiscalPeriodError

Lookups of unknown ids raise ``UnknownIdError`` (a ``KeyError``).
"""

from typing import Optional


class CoaStudioError(ValueError):
    """Base class for COA Studio errors."""


class SegmentValidationError(CoaStudioError):
    """Raised when a segment or segment code fails validation.

    Attributes:
        errors: Individual validation messages.
    """

    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))


class HierarchyError(CoaStudioError):
    """Raised when a hierarchy tree operation would break a tree invariant."""


class HierarchyNodeNotFoundError(HierarchyError):
    """Raised when a hierarchy criterion references an unknown node."""

    def __init__(self, node_id: str, segment_id: str):
        self.node_id = node_id
        self.segment_id = segment_id
        super().__init__(
            f"Hierarchy node {node_id!r} not found in any tree for segment "
            f"{segment_id!r}."
        )


class InvalidCriterionError(CoaStudioError):
    """Raised when a segment criterion is incomplete or inconsistent."""


class InvalidRuleError(CoaStudioError):
    """Raised when an access-control or combination rule is invalid."""

    def __init__(self, message: str, rule_id: Optional[str] = None):
        self.rule_id = rule_id
        super().__init__(message)


class AccountCodeError(CoaStudioError):
    """Raised when an account code string cannot be parsed."""


class FiscalPeriodError(CoaStudioError):
    """Raised when a fiscal calendar is invalid or a period action is refused."""

    def __init__(self, message: str, period_id: Optional[str] = None):
        self.period_id = period_id
        super().__init__(message)


class UnknownIdError(KeyError):
    """Raised when an object is looked up by an id that does not exist."""

    def __init__(self, kind: str, object_id: str):
        self.kind = kind
        self.object_id = object_id
        super().__init__(f"Unknown {kind} id: {object_id!r}")

    def __str__(self) -> str:
        return str(self.args[0])
