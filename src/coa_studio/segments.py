# COA Studio - Chart of Accounts configuration & rule resolution toolkit
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Segments and segment codes for COA Studio.

A *segment* is one axis of a multi-part account code (Fund, Object,
Department, ...). Each segment owns an ordered list of *segment codes*.
A code is either a summary code (non-codable parent used for rollups) or a
detail code (leaf, usable on transactions). The optional
``default_parent_code`` of a code forms an implicit hierarchy, used to build
the system default tree (see ``hierarchies.build_default_tree``).

Responsibilities:
- Segment / SegmentCode dataclasses.
- Natural (numeric-aware) ordering of codes, used by range criteria.
- Validation of segment definitions and segment codes.
- In-memory stores with add / update / delete / toggle operations.
"""

import logging
import re
from dataclasses import dataclass, field, replace
from datetime import date
from typing import Any, Optional

from .exceptions import SegmentValidationError, UnknownIdError

logger = logging.getLogger(__name__)

DATA_TYPES = ("Alphanumeric", "Numeric", "Text")
SEPARATORS = ("-", "|", ",", ".")
CUSTOM_FIELD_TYPES = ("Text", "Number", "Date", "Boolean", "Dropdown")


@dataclass
class CustomFieldDefinition:
    """Extra attribute that codes of a segment may carry."""

    id: str
    label: str
    type: str = "Text"
    required: bool = False
    dropdown_options: list[str] = field(default_factory=list)


@dataclass
class Segment:
    """Definition of one account code segment.

    Attributes:
        id: Stable identifier (e.g. 'fund').
        display_name: Human-readable name (e.g. 'Fund').
        segment_type: Free classification, defaults to the display name.
        data_type: 'Alphanumeric', 'Numeric' or 'Text'.
        max_length: Maximum length of a code in this segment.
        special_chars_allowed: Non-alphanumeric characters allowed in codes.
        default_code: Optional code proposed by default when coding.
        separator: Character placed after this segment in a display string.
        is_custom: True for user-defined segments.
        is_mandatory_for_coding: Journal lines must provide a value.
        is_active: Inactive segments are ignored when building account codes.
        is_core: Core segments cannot be deactivated.
        custom_fields: Extra attributes available on codes of this segment.
    """

    id: str
    display_name: str
    segment_type: str = ""
    data_type: str = "Alphanumeric"
    max_length: int = 10
    special_chars_allowed: str = ""
    default_code: Optional[str] = None
    separator: str = "-"
    is_custom: bool = True
    is_mandatory_for_coding: bool = False
    is_active: bool = True
    is_core: bool = False
    custom_fields: list[CustomFieldDefinition] = field(default_factory=list)


@dataclass
class SegmentCode:
    """A valid value within a segment."""

    id: str
    code: str
    description: str
    summary_indicator: bool = False
    is_active: bool = True
    valid_from: date = date(2000, 1, 1)
    valid_to: Optional[date] = None
    available_for_transaction_coding: bool = True
    available_for_budgeting: bool = True
    allowed_submodules: list[str] = field(default_factory=list)
    external1: Optional[str] = None
    external2: Optional[str] = None
    external3: Optional[str] = None
    external4: Optional[str] = None
    external5: Optional[str] = None
    custom_field_values: dict[str, Any] = field(default_factory=dict)
    default_parent_code: Optional[str] = None

    def is_effective(self, on_date: date) -> bool:
        """Return True if the code is active and valid on the given date."""
        if not self.is_active:
            return False
        if on_date < self.valid_from:
            return False
        if self.valid_to is not None and on_date > self.valid_to:
            return False
        return True

    @property
    def is_codable(self) -> bool:
        """True if the code can be used on a transaction line."""
        return (
            self.is_active
            and not self.summary_indicator
            and self.available_for_transaction_coding
        )


# ---------------------------------------------------------------------------
# Natural ordering
# ---------------------------------------------------------------------------

_DIGITS_RE = re.compile(r"([0-9]+)")


def natural_sort_key(code: str) -> tuple:
    """Return a sort key implementing numeric-aware ordering of codes.

    Digit runs compare as integers and text runs compare case-insensitively,
    so that '9' < '10' < '100' and '101' < '101A' < '101B'. The raw string
    is appended as a final tie-breaker to keep the ordering total.

    Examples:
        sorted(['10', '9', '100']) with this key -> ['9', '10', '100']
    """
    s = str(code).strip()
    parts = []
    # The capturing split puts digit runs at odd indices.
    for idx, chunk in enumerate(_DIGITS_RE.split(s)):
        if not chunk:
            continue
        if idx % 2:
            parts.append((0, int(chunk), ""))
        else:
            parts.append((1, 0, chunk.lower()))
    return (tuple(parts), s)


def compare_codes(a: str, b: str) -> int:
    """Three-way comparison of two codes under natural ordering.

    Returns:
        -1 if a < b, 0 if a == b, 1 if a > b.
    """
    ka = natural_sort_key(a)
    kb = natural_sort_key(b)
    if ka < kb:
        return -1
    if ka > kb:
        return 1
    return 0


def sort_codes(codes: list[SegmentCode]) -> list[SegmentCode]:
    """Return the codes ordered by natural sort order of their ``code``."""
    return sorted(codes, key=lambda c: natural_sort_key(c.code))


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def _chars_allowed(value: str, special_chars_allowed: str) -> bool:
    """Return True if every char is ASCII alphanumeric or explicitly allowed."""
    for ch in value:
        if ch.isascii() and ch.isalnum():
            continue
        if ch in special_chars_allowed:
            continue
        return False
    return True


def validate_segment(
    segment: Segment, other_segments: Optional[list[Segment]] = None
) -> list[str]:
    """Validate a segment definition against the other configured segments.

    Rules:
        - display name is required, max_length must be positive,
        - data type and separator must be known values,
        - the separator cannot be one of the segment's own special chars,
        - the default code may only use alphanumeric chars or allowed
          special chars, and cannot contain the separator,
        - a special char cannot be the separator of another segment,
        - the separator cannot be a special char of another segment.

    Args:
        segment: Segment to validate.
        other_segments: Every other configured segment (the segment itself is
            ignored if present).

    Returns:
        List of error messages. An empty list means the segment is valid.
    """
    errors: list[str] = []
    others = [s for s in (other_segments or []) if s.id != segment.id]

    if not segment.display_name or not segment.display_name.strip():
        errors.append("Display Name is required.")
    if segment.data_type not in DATA_TYPES:
        errors.append(
            f"Invalid data type {segment.data_type!r}. "
            f"Expected one of: {', '.join(DATA_TYPES)}."
        )
    if not isinstance(segment.max_length, int) or segment.max_length <= 0:
        errors.append("Max Length must be a positive number.")
    if segment.separator not in SEPARATORS:
        errors.append(
            f"Invalid separator {segment.separator!r}. "
            f"Expected one of: {' '.join(SEPARATORS)}."
        )

    special = segment.special_chars_allowed or ""
    if segment.separator and segment.separator in special:
        errors.append(
            f"The separator character {segment.separator!r} cannot also be listed "
            "in 'Special Characters Allowed' for this segment."
        )

    if segment.default_code:
        if not _chars_allowed(segment.default_code, special):
            errors.append(
                "Default Code contains characters not permitted. Only alphanumeric "
                "characters or those specified in 'Special Characters Allowed' "
                f"({special or 'none'}) are allowed."
            )
        if segment.separator and segment.separator in segment.default_code:
            errors.append(
                "Default Code cannot contain the segment's separator character "
                f"({segment.separator!r})."
            )

    other_separators = {s.separator for s in others if s.separator}
    other_special = {ch for s in others for ch in (s.special_chars_allowed or "")}

    for ch in special:
        if ch in other_separators:
            errors.append(
                f"The character {ch!r} is used as a separator in another segment "
                "and cannot be an allowed special character."
            )
    if segment.separator and segment.separator in other_special:
        errors.append(
            f"The separator {segment.separator!r} is listed as an allowed special "
            "character in another segment."
        )

    return errors


def validate_segment_code(
    code: SegmentCode,
    segment: Segment,
    existing_codes: Optional[list[SegmentCode]] = None,
) -> list[str]:
    """Validate a segment code against its segment and sibling codes.

    Args:
        code: Code to validate.
        segment: Segment the code belongs to.
        existing_codes: Codes already stored for the segment. The code being
            validated (same ``id``) is ignored, which allows updates.

    Returns:
        List of error messages. An empty list means the code is valid.
    """
    errors: list[str] = []
    siblings = [c for c in (existing_codes or []) if c.id != code.id]

    value = (code.code or "").strip()
    if not value:
        errors.append("Segment Code is required.")
    if not code.description or not code.description.strip():
        errors.append("Description is required.")
    if code.valid_to is not None and code.valid_to < code.valid_from:
        errors.append("Valid To date must be after or the same as Valid From date.")

    if value:
        if len(value) > segment.max_length:
            errors.append(
                f"Code {value!r} exceeds the maximum length of "
                f"{segment.max_length} for segment {segment.display_name!r}."
            )
        if segment.data_type == "Numeric" and not value.isdigit():
            errors.append(
                f"Code {value!r} must be numeric for segment "
                f"{segment.display_name!r}."
            )
        elif not _chars_allowed(value, segment.special_chars_allowed or ""):
            errors.append(
                f"Code {value!r} contains characters not permitted for segment "
                f"{segment.display_name!r}."
            )
        if any(c.code == value for c in siblings):
            errors.append(
                f"Code {value!r} already exists in segment {segment.display_name!r}."
            )

    parent = (code.default_parent_code or "").strip()
    if parent:
        if parent == value:
            errors.append("A code cannot be its own default parent.")
        elif not any(c.code == parent for c in siblings):
            errors.append(f"Default parent code {parent!r} does not exist.")

    return errors


# ---------------------------------------------------------------------------
# Stores
# ---------------------------------------------------------------------------


class SegmentStore:
    """Ordered, in-memory collection of segments."""

    def __init__(self, segments: Optional[list[Segment]] = None):
        self._segments: list[Segment] = list(segments or [])

    @property
    def segments(self) -> list[Segment]:
        return list(self._segments)

    def get(self, segment_id: str) -> Optional[Segment]:
        return next((s for s in self._segments if s.id == segment_id), None)

    def require(self, segment_id: str) -> Segment:
        segment = self.get(segment_id)
        if segment is None:
            raise UnknownIdError("segment", segment_id)
        return segment

    def active_segments(self) -> list[Segment]:
        """Active segments, in configured order."""
        return [s for s in self._segments if s.is_active]

    def add(self, segment: Segment) -> Segment:
        if self.get(segment.id) is not None:
            raise SegmentValidationError([f"Segment id {segment.id!r} already exists."])
        errors = validate_segment(segment, self._segments)
        if errors:
            raise SegmentValidationError(errors)
        self._segments.append(segment)
        return segment

    def update(self, segment: Segment) -> Segment:
        self.require(segment.id)
        errors = validate_segment(segment, self._segments)
        if errors:
            raise SegmentValidationError(errors)
        self._segments = [
            segment if s.id == segment.id else s for s in self._segments
        ]
        return segment

    def toggle_status(self, segment_id: str) -> Segment:
        """Flip ``is_active``. Core segments are left unchanged."""
        segment = self.require(segment_id)
        if segment.is_core:
            logger.warning("Core segment %r cannot be deactivated.", segment_id)
            return segment
        toggled = replace(segment, is_active=not segment.is_active)
        self._segments = [toggled if s.id == segment_id else s for s in self._segments]
        return toggled

    def set_order(self, segment_ids: list[str]) -> None:
        """Reorder segments. ``segment_ids`` must list every segment once."""
        if sorted(segment_ids) != sorted(s.id for s in self._segments):
            raise SegmentValidationError(
                ["Segment order must list every configured segment exactly once."]
            )
        by_id = {s.id: s for s in self._segments}
        self._segments = [by_id[sid] for sid in segment_ids]


class SegmentCodeStore:
    """In-memory segment codes, one ordered list per segment.

    The stored order is meaningful: range-based tree editing
    (``hierarchies.add_range_to_parent``) slices codes in this order.
    """

    def __init__(
        self,
        segments: SegmentStore,
        codes: Optional[dict[str, list[SegmentCode]]] = None,
    ):
        self._segments = segments
        self._codes: dict[str, list[SegmentCode]] = {
            sid: list(items) for sid, items in (codes or {}).items()
        }

    def segment_ids(self) -> list[str]:
        return list(self._codes)

    def codes_for(self, segment_id: str) -> list[SegmentCode]:
        """Codes of a segment, in stored order."""
        return list(self._codes.get(segment_id, []))

    def get_code(self, segment_id: str, code: str) -> Optional[SegmentCode]:
        items = self._codes.get(segment_id, [])
        return next((c for c in items if c.code == code), None)

    def summary_codes(self, segment_id: str) -> list[SegmentCode]:
        return [c for c in self.codes_for(segment_id) if c.summary_indicator]

    def detail_codes(self, segment_id: str) -> list[SegmentCode]:
        return [c for c in self.codes_for(segment_id) if not c.summary_indicator]

    def add(self, segment_id: str, code: SegmentCode) -> SegmentCode:
        segment = self._segments.require(segment_id)
        existing = self._codes.get(segment_id, [])
        if any(c.id == code.id for c in existing):
            raise SegmentValidationError([f"Code id {code.id!r} already exists."])
        errors = validate_segment_code(code, segment, existing)
        if errors:
            raise SegmentValidationError(errors)
        self._codes.setdefault(segment_id, []).append(code)
        return code

    def update(self, segment_id: str, code: SegmentCode) -> SegmentCode:
        segment = self._segments.require(segment_id)
        existing = self._codes.get(segment_id, [])
        if not any(c.id == code.id for c in existing):
            raise UnknownIdError("segment code", code.id)
        errors = validate_segment_code(code, segment, existing)
        if errors:
            raise SegmentValidationError(errors)
        self._codes[segment_id] = [code if c.id == code.id else c for c in existing]
        return code

    def delete(self, segment_id: str, code_id: str) -> None:
        existing = self._codes.get(segment_id, [])
        if not any(c.id == code_id for c in existing):
            raise UnknownIdError("segment code", code_id)
        self._codes[segment_id] = [c for c in existing if c.id != code_id]

    def toggle_status(self, segment_id: str, code_id: str) -> SegmentCode:
        existing = self._codes.get(segment_id, [])
        target = next((c for c in existing if c.id == code_id), None)
        if target is None:
            raise UnknownIdError("segment code", code_id)
        toggled = replace(target, is_active=not target.is_active)
        self._codes[segment_id] = [toggled if c.id == code_id else c for c in existing]
        return toggled
