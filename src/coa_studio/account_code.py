# COA Studio - Chart of Accounts configuration & rule resolution toolkit
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Account code strings.

An account code is shown as the concatenation of one code per active
segment, each followed by that segment's separator (except the last one):

    101-5100-FINACC

Segments without a value are shown as a placeholder made of underscores
(8 by default).
"""

from collections.abc import Mapping
from typing import Optional

from .exceptions import AccountCodeError
from .segments import Segment

DEFAULT_PLACEHOLDER_LENGTH = 8


def format_account_code(
    selections: Mapping[str, Optional[str]],
    segments: list[Segment],
    placeholder_length: int = DEFAULT_PLACEHOLDER_LENGTH,
) -> str:
    """Build the display string of an account code.

    Args:
        selections: Mapping {segment_id: code}. Missing or empty values are
            rendered as placeholders.
        segments: Segments to render, in display order (usually the active
            segments).
        placeholder_length: Number of underscores of a placeholder.

    Returns:
        The display string, e.g. '101-5100-________'.
    """
    parts: list[str] = []
    last = len(segments) - 1
    for idx, segment in enumerate(segments):
        value = selections.get(segment.id) or "_" * placeholder_length
        sep = segment.separator if idx < last else ""
        parts.append(f"{value}{sep}")
    return "".join(parts)


def parse_account_code(text: str, segments: list[Segment]) -> dict[str, Optional[str]]:
    """Split a display string back into {segment_id: code}.

    The string is consumed left to right, cutting at the separator of each
    segment in turn. Placeholder parts (only underscores) become None, and
    so do trailing segments left out of the string ('101-6110' with three
    segments leaves the third one empty).

    Raises:
        AccountCodeError: if the string is empty or has more parts than
            segments.
    """
    if not segments:
        raise AccountCodeError("No segments configured.")
    if not text.strip():
        raise AccountCodeError("Account code is empty.")

    remaining: Optional[str] = text.strip()
    out: dict[str, Optional[str]] = {}
    last = len(segments) - 1
    for idx, segment in enumerate(segments):
        if remaining is None:
            out[segment.id] = None
            continue
        if idx < last:
            head, sep, tail = remaining.partition(segment.separator)
            value = head
            remaining = tail if sep else None
        else:
            value = remaining
            if any(s.separator in value for s in segments[:-1] if s.separator):
                raise AccountCodeError(
                    f"Account code {text!r} has more parts than configured segments."
                )
        value = value.strip()
        out[segment.id] = None if not value or set(value) == {"_"} else value
    return out
