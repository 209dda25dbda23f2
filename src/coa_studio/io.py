# COA Studio - Chart of Accounts configuration & rule resolution toolkit
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
I/O module for COA Studio.

This module reads a chart of accounts configuration from files and turns it
into the in-memory stores used by the rest of the application.

Expected input formats
----------------------

1) Segments (CSV, column names are case-insensitive)
   -------------------------------------------------
       id, display_name, segment_type, data_type, max_length,
       special_chars_allowed, default_code, separator, is_custom,
       is_mandatory_for_coding, is_active, is_core

   Only ``id`` and ``display_name`` are required. Rows are kept in file
   order, which is the display order of the segments.

2) Segment codes (CSV)
   -------------------
       segment_id, id, code, description, summary_indicator, is_active,
       valid_from, valid_to, available_for_transaction_coding,
       available_for_budgeting, default_parent_code, external1..external5

   ``segment_id``, ``code`` and ``description`` are required. ``id``
   defaults to '<segment_id>-<code>'. Dates use the YYYY-MM-DD format.

3) Hierarchy sets (TOML)
   ---------------------
       [[hierarchy_sets]]
       id = "hset-gasb-1"
       name = "GASB General Purpose Reporting Structure"

       [[hierarchy_sets.segment_hierarchies]]
       id = "sh-gasb-fund"
       segment_id = "fund"

       [[hierarchy_sets.segment_hierarchies.nodes]]
       id = "gasb-fund-root-gov"
       code = "100"
       parent = ""            # id of the parent node, empty for roots

4) Combination rules (TOML)
   ------------------------
       [[rules]]
       id = "cr-1"
       name = "Governmental funds"

       [[rules.entries]]
       id = "cr-1-inc"
       behavior = "Include"

       [[rules.entries.conditions]]
       segment_id = "fund"
       criterion_type = "RANGE"
       range_start_value = "100"
       range_end_value = "199"

5) Access-control rules (TOML)
   ---------------------------
       [[rules]]
       id = "aac-rule-2"
       name = "AP Clerk Access to Operational Objects"
       applies_to_type = "User"
       applies_to_id = "ap_clerk_01"
       default_behavior = "No Access"

       [[rules.restrictions]]
       id = "res-2-1"
       access_type = "Editable"

       [[rules.restrictions.criteria]]
       segment_id = "object"
       criterion_type = "CodeRange"
       range_start_value = "6000"
       range_end_value = "6999"

6) Journal lines (CSV)
   -------------------
       line_id, account, debit, credit, description

   ``account`` is an account code display string, e.g. '101-6110-FINACC'.

Criterion keys (conditions and criteria tables) are: ``segment_id``,
``criterion_type``, ``code_value``, ``range_start_value``,
``range_end_value``, ``hierarchy_node_id``, ``include_children`` and
``hierarchy_set_id``.

If a file does not match the expected structure, a clear ValueError is
raised.
"""

import logging
import os
from collections.abc import Mapping
from datetime import date
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Optional, Union

import pandas as pd

try:
    import tomllib  # Python 3.11+
except ModuleNotFoundError:  # pragma: no cover - fallback for older Python
    import tomli as tomllib  # type: ignore[import]

from .access_control import (
    AccessControlRestriction,
    AccessControlRule,
    AccessControlStore,
)
from .account_code import parse_account_code
from .combination_rules import (
    CombinationRule,
    CombinationRuleStore,
    DefinitionEntry,
    SegmentCondition,
)
from .config import AppConfig
from .criteria import SegmentCriterion
from .exceptions import HierarchyError, SegmentValidationError
from .hierarchies import HierarchyNode, HierarchySet, HierarchyStore, SegmentHierarchy
from .journal import JournalLine
from .sample_data import (
    Workspace,
    sample_access_rules,
    sample_combination_rules,
    sample_hierarchy_sets,
    sample_segment_codes,
    sample_segments,
)
from .segments import (
    Segment,
    SegmentCode,
    SegmentCodeStore,
    SegmentStore,
    validate_segment_code,
)

logger = logging.getLogger(__name__)

PathLike = Union[str, "os.PathLike[str]"]

_TRUE_VALUES = {"true", "1", "yes", "y", "x"}
_FALSE_VALUES = {"false", "0", "no", "n", ""}

_CRITERION_KEYS = (
    "criterion_type",
    "code_value",
    "range_start_value",
    "range_end_value",
    "hierarchy_node_id",
    "include_children",
    "hierarchy_set_id",
)


# ---------------------------------------------------------------------------
# CSV helpers
# ---------------------------------------------------------------------------


def _read_csv(path: PathLike, required: set[str], label: str) -> pd.DataFrame:
    """Read a CSV as strings, with lowercase/stripped column names."""
    df = pd.read_csv(path, dtype=str, keep_default_na=False)
    df.columns = [str(c).lower().strip() for c in df.columns]
    missing = required - set(df.columns)
    if missing:
        raise ValueError(
            f"Missing required column(s) in {label} file: "
            f"{', '.join(sorted(missing))}."
        )
    return df


def _to_bool(value: Any, default: bool, column: str) -> bool:
    text = str(value).strip().lower()
    if text == "":
        return default
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    raise ValueError(f"Invalid boolean value {value!r} in column '{column}'.")


def _to_date(value: Any, column: str) -> Optional[date]:
    text = str(value).strip()
    if not text:
        return None
    try:
        return date.fromisoformat(text)
    except ValueError as exc:
        raise ValueError(
            f"Invalid date {value!r} in column '{column}', expected YYYY-MM-DD."
        ) from exc


def _opt(value: Any) -> Optional[str]:
    text = str(value).strip()
    return text or None


# ---------------------------------------------------------------------------
# Segments and codes
# ---------------------------------------------------------------------------


def read_segments(path: PathLike) -> list[Segment]:
    """
    Read segment definitions from a CSV file.

    Returns:
        Segments in file order. Values are not validated here; see
        ``segments.validate_segment``.

    Raises:
        ValueError: if required columns are missing or values cannot be parsed.
    """
    df = _read_csv(path, {"id", "display_name"}, "segments")
    cols = set(df.columns)

    out: list[Segment] = []
    for _, row in df.iterrows():
        seg_id = str(row["id"]).strip()
        if not seg_id:
            raise ValueError("Empty segment id in segments file.")
        raw_len = str(row["max_length"]).strip() if "max_length" in cols else ""
        try:
            max_length = int(raw_len) if raw_len else 10
        except ValueError as exc:
            raise ValueError(
                f"Invalid max_length {raw_len!r} for segment {seg_id!r}."
            ) from exc

        def _b(col: str, default: bool) -> bool:
            return _to_bool(row[col], default, col) if col in cols else default

        def _s(col: str, default: str = "") -> str:
            return str(row[col]).strip() if col in cols else default

        display_name = str(row["display_name"]).strip()
        out.append(
            Segment(
                id=seg_id,
                display_name=display_name,
                segment_type=_s("segment_type") or display_name,
                data_type=_s("data_type") or "Alphanumeric",
                max_length=max_length,
                special_chars_allowed=(
                    str(row["special_chars_allowed"])
                    if "special_chars_allowed" in cols
                    else ""
                ),
                default_code=_s("default_code") or None,
                separator=_s("separator") or "-",
                is_custom=_b("is_custom", True),
                is_mandatory_for_coding=_b("is_mandatory_for_coding", False),
                is_active=_b("is_active", True),
                is_core=_b("is_core", False),
            )
        )
    return out


def read_segment_codes(path: PathLike) -> dict[str, list[SegmentCode]]:
    """
    Read segment codes from a CSV file.

    Returns:
        Mapping {segment_id: [SegmentCode, ...]} preserving file order.

    Raises:
        ValueError: if required columns are missing or values cannot be parsed.
    """
    df = _read_csv(path, {"segment_id", "code", "description"}, "segment codes")
    cols = set(df.columns)

    out: dict[str, list[SegmentCode]] = {}
    for _, row in df.iterrows():
        segment_id = str(row["segment_id"]).strip()
        code = str(row["code"]).strip()
        if not segment_id or not code:
            raise ValueError("Empty segment_id or code in segment codes file.")

        def _b(col: str, default: bool) -> bool:
            return _to_bool(row[col], default, col) if col in cols else default

        def _o(col: str) -> Optional[str]:
            return _opt(row[col]) if col in cols else None

        def _d(col: str) -> Optional[date]:
            return _to_date(row[col], col) if col in cols else None

        summary = _b("summary_indicator", False)
        out.setdefault(segment_id, []).append(
            SegmentCode(
                id=_o("id") or f"{segment_id}-{code}",
                code=code,
                description=str(row["description"]).strip(),
                summary_indicator=summary,
                is_active=_b("is_active", True),
                valid_from=_d("valid_from") or date(2000, 1, 1),
                valid_to=_d("valid_to"),
                available_for_transaction_coding=_b(
                    "available_for_transaction_coding", not summary
                ),
                available_for_budgeting=_b("available_for_budgeting", True),
                external1=_o("external1"),
                external2=_o("external2"),
                external3=_o("external3"),
                external4=_o("external4"),
                external5=_o("external5"),
                default_parent_code=_o("default_parent_code"),
            )
        )
    return out


# ---------------------------------------------------------------------------
# TOML helpers
# ---------------------------------------------------------------------------


def _load_toml(path: Path) -> dict[str, Any]:
    """
    Load a TOML file and return its content as a dictionary.

    Raises:
        FileNotFoundError: if the file does not exist.
        ValueError: if the TOML content cannot be parsed.
    """
    if not path.is_file():
        raise FileNotFoundError(f"File not found: {path}")

    try:
        return tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as exc:
        raise ValueError(f"Failed to parse TOML file: {path}") from exc


def _tables(data: Mapping[str, Any], key: str, where: str) -> list[Mapping[str, Any]]:
    """Return ``data[key]`` as a list of tables (missing key → empty list)."""
    raw = data.get(key) or []
    if not isinstance(raw, list) or not all(isinstance(t, Mapping) for t in raw):
        raise ValueError(f"Expected an array of tables for '{key}' in {where}.")
    return raw


def _required(table: Mapping[str, Any], key: str, where: str) -> str:
    value = table.get(key)
    if value is None or str(value).strip() == "":
        raise ValueError(f"Missing '{key}' in {where}.")
    return str(value).strip()


def _criterion(
    table: Mapping[str, Any], default_id: str, where: str
) -> SegmentCriterion:
    segment_id = _required(table, "segment_id", where)
    kwargs: dict[str, Any] = {k: table[k] for k in _CRITERION_KEYS if k in table}
    for key in ("code_value", "range_start_value", "range_end_value"):
        if key in kwargs:
            kwargs[key] = str(kwargs[key])
    kwargs.setdefault("criterion_type", "All")
    return SegmentCriterion(
        id=str(table.get("id") or default_id), segment_id=segment_id, **kwargs
    )


# ---------------------------------------------------------------------------
# Hierarchies
# ---------------------------------------------------------------------------


def read_hierarchy_sets(
    path: PathLike, codes: Mapping[str, list[SegmentCode]]
) -> list[HierarchySet]:
    """
    Read hierarchy sets from a TOML file.

    Nodes are listed flat, each with the id of its parent node; they are
    re-assembled into trees in file order. Node codes must exist in
    ``codes`` for the hierarchy's segment.

    Raises:
        ValueError: on malformed tables.
        HierarchyError: on unknown codes or parent nodes.
    """
    file_path = Path(path)
    data = _load_toml(file_path)

    out: list[HierarchySet] = []
    for hs_table in _tables(data, "hierarchy_sets", str(file_path)):
        set_id = _required(hs_table, "id", "hierarchy set")
        where = f"hierarchy set {set_id!r}"
        hierarchies: list[SegmentHierarchy] = []
        for sh_table in _tables(hs_table, "segment_hierarchies", where):
            segment_id = _required(sh_table, "segment_id", where)
            by_code = {c.code: c for c in codes.get(segment_id, [])}
            nodes: dict[str, HierarchyNode] = {}
            roots: list[HierarchyNode] = []
            for node_table in _tables(sh_table, "nodes", where):
                code = _required(node_table, "code", f"{where} ({segment_id})")
                if code not in by_code:
                    raise HierarchyError(
                        f"Code {code!r} of {where} does not exist in segment "
                        f"{segment_id!r}."
                    )
                node_id = str(node_table.get("id") or f"{set_id}-{segment_id}-{code}")
                node = HierarchyNode(id=node_id, segment_code=by_code[code])
                parent_id = str(node_table.get("parent") or "").strip()
                if parent_id:
                    parent = nodes.get(parent_id)
                    if parent is None:
                        raise HierarchyError(
                            f"Parent node {parent_id!r} of node {node_id!r} must be "
                            f"listed before it ({where})."
                        )
                    parent.children.append(node)
                else:
                    roots.append(node)
                nodes[node_id] = node
            hierarchies.append(
                SegmentHierarchy(
                    id=str(sh_table.get("id") or f"{set_id}-{segment_id}"),
                    segment_id=segment_id,
                    description=str(sh_table.get("description", "")),
                    tree_nodes=roots,
                )
            )
        out.append(
            HierarchySet(
                id=set_id,
                name=str(hs_table.get("name", "")),
                status=str(hs_table.get("status", "Active")),
                description=str(hs_table.get("description", "")),
                segment_hierarchies=hierarchies,
                last_modified_by=str(hs_table.get("last_modified_by", "")),
            )
        )
    return out


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------


def read_combination_rules(path: PathLike) -> list[CombinationRule]:
    """Read combination rules from a TOML file (see module docstring)."""
    file_path = Path(path)
    data = _load_toml(file_path)

    rules: list[CombinationRule] = []
    for rule_table in _tables(data, "rules", str(file_path)):
        rule_id = _required(rule_table, "id", "combination rule")
        where = f"combination rule {rule_id!r}"
        entries: list[DefinitionEntry] = []
        for e_idx, entry_table in enumerate(_tables(rule_table, "entries", where), 1):
            entry_id = str(entry_table.get("id") or f"{rule_id}-entry-{e_idx}")
            conditions: list[SegmentCondition] = []
            for c_idx, cond_table in enumerate(
                _tables(entry_table, "conditions", where), 1
            ):
                cond_id = f"{entry_id}-cond-{c_idx}"
                crit = _criterion(cond_table, cond_id, where)
                conditions.append(
                    SegmentCondition(
                        id=cond_id, segment_id=crit.segment_id, criterion=crit
                    )
                )
            entries.append(
                DefinitionEntry(
                    id=entry_id,
                    behavior=_required(entry_table, "behavior", where),
                    segment_conditions=conditions,
                    description=str(entry_table.get("description", "")),
                )
            )
        rules.append(
            CombinationRule(
                id=rule_id,
                name=str(rule_table.get("name", "")),
                definition_entries=entries,
                status=str(rule_table.get("status", "Active")),
                description=str(rule_table.get("description", "")),
                last_modified_by=str(rule_table.get("last_modified_by", "")),
            )
        )
    return rules


def read_access_rules(path: PathLike) -> list[AccessControlRule]:
    """Read access-control rules from a TOML file (see module docstring)."""
    file_path = Path(path)
    data = _load_toml(file_path)

    rules: list[AccessControlRule] = []
    for rule_table in _tables(data, "rules", str(file_path)):
        rule_id = _required(rule_table, "id", "access control rule")
        where = f"access control rule {rule_id!r}"
        restrictions: list[AccessControlRestriction] = []
        res_tables = _tables(rule_table, "restrictions", where)
        for r_idx, res_table in enumerate(res_tables, 1):
            res_id = str(res_table.get("id") or f"{rule_id}-res-{r_idx}")
            criteria = [
                _criterion(crit_table, f"{res_id}-crit-{c_idx}", where)
                for c_idx, crit_table in enumerate(
                    _tables(res_table, "criteria", where), 1
                )
            ]
            restrictions.append(
                AccessControlRestriction(
                    id=res_id,
                    segment_criteria=criteria,
                    access_type=_required(res_table, "access_type", where),
                    description=str(res_table.get("description", "")),
                )
            )
        rules.append(
            AccessControlRule(
                id=rule_id,
                name=str(rule_table.get("name", "")),
                applies_to_type=_required(rule_table, "applies_to_type", where),
                applies_to_id=str(rule_table.get("applies_to_id", "")),
                applies_to_name=str(rule_table.get("applies_to_name", "")),
                default_behavior_for_rule=str(
                    rule_table.get("default_behavior", "No Access")
                ),
                restrictions=restrictions,
                status=str(rule_table.get("status", "Active")),
                description=str(rule_table.get("description", "")),
                last_modified_by=str(rule_table.get("last_modified_by", "")),
            )
        )
    return rules


# ---------------------------------------------------------------------------
# Journal lines
# ---------------------------------------------------------------------------


def _to_amount(value: Any, column: str, line_id: str) -> Optional[Decimal]:
    text = str(value).strip()
    if not text:
        return None
    try:
        return Decimal(text)
    except InvalidOperation as exc:
        raise ValueError(
            f"Invalid amount {value!r} in column '{column}' for line {line_id!r}."
        ) from exc


def read_journal_lines(path: PathLike, segments: list[Segment]) -> list[JournalLine]:
    """
    Read journal entry lines from a CSV file.

    Expected columns (case-insensitive): ``account``, ``debit``, ``credit``
    and optionally ``line_id`` and ``description``. The ``account`` column
    holds the display string of the account code (e.g. '101-6110-FINACC'),
    split with the separators of ``segments``.

    Raises:
        ValueError: if required columns are missing, or an amount or an
            account code cannot be parsed.
    """
    df = _read_csv(path, {"account", "debit", "credit"}, "journal lines")
    cols = set(df.columns)

    lines: list[JournalLine] = []
    for idx, row in df.iterrows():
        line_id = str(row["line_id"]).strip() if "line_id" in cols else ""
        line_id = line_id or str(int(idx) + 1)
        description = str(row["description"]).strip() if "description" in cols else ""
        lines.append(
            JournalLine(
                id=line_id,
                account=parse_account_code(str(row["account"]), segments),
                description=description,
                debit=_to_amount(row["debit"], "debit", line_id),
                credit=_to_amount(row["credit"], "credit", line_id),
            )
        )
    return lines


# ---------------------------------------------------------------------------
# Workspace
# ---------------------------------------------------------------------------


def _check_codes(
    segments: SegmentStore, codes: Mapping[str, list[SegmentCode]]
) -> None:
    """Validate every loaded code against its segment and its siblings."""
    errors: list[str] = []
    for segment_id, items in codes.items():
        segment = segments.get(segment_id)
        if segment is None:
            errors.append(f"Codes reference unknown segment {segment_id!r}.")
            continue
        for code in items:
            for msg in validate_segment_code(code, segment, items):
                errors.append(f"{segment_id}/{code.code}: {msg}")
    if errors:
        raise SegmentValidationError(errors)


def load_workspace(config: AppConfig) -> Workspace:
    """
    Build every store from the files named in the configuration.

    When neither segments nor segment codes are configured, the bundled
    sample chart is used, together with the sample hierarchy sets and rules
    for every file that is not configured either. Once a chart of its own is
    configured, a missing file means an empty store instead. Segments, codes
    and rules are validated while loading; the first invalid item aborts the
    load with a ValueError subclass. The system default hierarchy set is
    rebuilt from the codes' default parents.
    """
    paths = config.paths
    use_sample = paths.segments is None and paths.segment_codes is None
    if use_sample:
        logger.info("No chart of accounts configured, using the sample data.")

    segments = SegmentStore()
    if paths.segments:
        segment_list = read_segments(paths.segments)
    else:
        segment_list = sample_segments() if use_sample else []
    for segment in segment_list:
        segments.add(segment)

    if paths.segment_codes:
        raw_codes = read_segment_codes(paths.segment_codes)
    else:
        raw_codes = sample_segment_codes() if use_sample else {}
    _check_codes(segments, raw_codes)
    codes = SegmentCodeStore(segments, raw_codes)

    hierarchies = HierarchyStore()
    if paths.hierarchies:
        hierarchy_sets = read_hierarchy_sets(paths.hierarchies, raw_codes)
    else:
        hierarchy_sets = sample_hierarchy_sets(raw_codes) if use_sample else []
    for hset in hierarchy_sets:
        hierarchies.add(hset)
    hierarchies.rebuild_system_default(segments.segments, codes)

    access_rules = AccessControlStore()
    if paths.access_rules:
        access_list = read_access_rules(paths.access_rules)
    else:
        access_list = sample_access_rules() if use_sample else []
    for access_rule in access_list:
        access_rules.add(access_rule)

    combination_rules = CombinationRuleStore()
    if paths.combination_rules:
        combination_list = read_combination_rules(paths.combination_rules)
    else:
        combination_list = sample_combination_rules() if use_sample else []
    for combination_rule in combination_list:
        combination_rules.add(combination_rule)

    logger.info(
        "Loaded %d segments, %d codes, %d hierarchy sets, %d access rules, "
        "%d combination rules.",
        len(segments.segments),
        sum(len(v) for v in raw_codes.values()),
        len(hierarchies.hierarchy_sets),
        len(access_rules.rules),
        len(combination_rules.rules),
    )
    return Workspace(
        segments=segments,
        codes=codes,
        hierarchies=hierarchies,
        access_rules=access_rules,
        combination_rules=combination_rules,
    )
