# COA Studio - Chart of Accounts configuration & rule resolution toolkit
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Command-Line Interface (CLI) for COA Studio.

This module wires together the main building blocks of COA Studio:

- configuration (data file paths, rule defaults, display options),
- loaders for segments, codes, hierarchies and rules,
- criteria matching, access control and combination rules,
- view helpers (tabular rendering).

The CLI is intentionally thin: it does not implement any rule logic
itself. It loads a workspace (every store) and calls the library.


High-level pipeline
-------------------

1) Load the TOML configuration (coa_studio_config.toml by default, or the
   file given with --config). Without any configuration file, the bundled
   sample chart of accounts is used.

2) Load the workspace: segments, codes, hierarchy sets, access-control
   rules and combination rules. Every item is validated while loading; the
   system default hierarchy set is rebuilt from default parent codes.

3) Run the requested command and render its result as a console table
   and/or a CSV file, depending on the display mode.


Commands
--------
    segments                      List segments in display order.
    codes SEGMENT                 List the codes of a segment.
    tree --segment SEG [--set ID] Show the tree of a segment in a hierarchy set.
    rules {access,combination}    List rules with their criteria.
    check-combination ACCOUNT     Is this code combination a valid account?
    check-access ACCOUNT --user U [--role R ...]
                                  Access of a user (and roles) to an account.
    valid-combinations            Enumerate allowed combinations.
    validate                      Check rule references against the codes.
    check-journal CSV             Validate journal entry lines.
    periods [--apply ACTION ...]  Fiscal calendar and period close statuses.

ACCOUNT is either a display string using the segment separators
('101-6110-FINACC') or comma-separated pairs ('fund=101,object=6110').

A period ACTION is 'PERIOD_ID:ACTION' for the whole period or
'PERIOD_ID:SUBLEDGER:ACTION' for one subledger (GL, AP or AR), e.g.
'FY2025-P1:Close' or 'FY2025-P2:AP:Hard Close'. Actions apply in order to
the freshly generated calendar.


Examples
--------
    python -m coa_studio.cli check-access 101-6110-FINACC --user ap_clerk_01
    python -m coa_studio.cli --display-mode both valid-combinations \\
        --segments fund,object
    python -m coa_studio.cli --config coa_studio_config.toml validate
    python -m coa_studio.cli periods --today 2025-03-15 --apply FY2025-P3:Close
"""

import argparse
import logging
from datetime import date, datetime
from pathlib import Path
from typing import Optional

import pandas as pd

from . import __version__
from .access_control import AccessIdentity
from .account_code import format_account_code, parse_account_code
from .combination_rules import valid_combinations
from .config import AppConfig, load_app_config
from .criteria import Account, check_criterion_references
from .hierarchies import SYSTEM_DEFAULT_SET_ID
from .io import load_workspace, read_journal_lines
from .journal import validate_journal_lines
from .periods import (
    PeriodAction,
    Subledger,
    find_fiscal_year,
    generate_fiscal_years,
    perform_period_action,
    perform_subledger_action,
)
from .sample_data import Workspace
from .segments import Segment, sort_codes
from .views import (
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

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser for the CLI."""
    ap = argparse.ArgumentParser(
        prog="python -m coa_studio.cli",
        description=(
            "COA Studio - Chart of Accounts configuration & rule resolution "
            "toolkit. Loads segments, codes, hierarchies and rules, and "
            "resolves account access and code combination validity."
        ),
    )

    # Generic options
    ap.add_argument(
        "--version",
        action="store_true",
        help="Show the installed version of coa_studio and exit.",
    )
    ap.add_argument(
        "--config",
        dest="config_path",
        help=(
            "Path to the TOML configuration file. If omitted, "
            "'coa_studio_config.toml' in the current directory is used when it "
            "exists, otherwise the bundled sample data."
        ),
    )
    ap.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Print debug logging (rule resolution details, skipped codes).",
    )

    # Display options
    ap.add_argument(
        "--display-mode",
        dest="display_mode",
        choices=["table", "csv", "both"],
        help=(
            "Override the display.mode setting from the configuration file. "
            "'table' prints results to stdout, "
            "'csv' writes CSV files only, "
            "'both' does both."
        ),
    )
    ap.add_argument(
        "--output",
        dest="output_dir",
        help=(
            "Output directory where CSV files will be written when display "
            "mode includes 'csv'. If omitted, 'data/output' is used."
        ),
    )

    subparsers = ap.add_subparsers(dest="command", metavar="command")

    subparsers.add_parser("segments", help="List segments in display order.")

    codes = subparsers.add_parser("codes", help="List the codes of a segment.")
    codes.add_argument("segment_id", help="Segment id (e.g. 'fund').")
    codes.add_argument(
        "--date",
        dest="on_date",
        help="Only list codes effective on this date (YYYY-MM-DD).",
    )
    codes.add_argument(
        "--sorted",
        action="store_true",
        help="Sort codes in natural order instead of stored order.",
    )

    tree = subparsers.add_parser(
        "tree", help="Show the tree of a segment in a hierarchy set."
    )
    tree.add_argument("--segment", dest="segment_id", required=True)
    tree.add_argument(
        "--set",
        dest="set_id",
        default=SYSTEM_DEFAULT_SET_ID,
        help=f"Hierarchy set id (default: {SYSTEM_DEFAULT_SET_ID}).",
    )

    rules = subparsers.add_parser("rules", help="List rules with their criteria.")
    rules.add_argument("kind", choices=["access", "combination"])

    check_comb = subparsers.add_parser(
        "check-combination",
        help="Check whether a code combination is a valid account code.",
    )
    check_comb.add_argument("account", help="Account code (see module help).")

    check_access = subparsers.add_parser(
        "check-access", help="Resolve the access of a user to an account code."
    )
    check_access.add_argument("account", help="Account code (see module help).")
    check_access.add_argument("--user", dest="user_id", required=True)
    check_access.add_argument(
        "--role",
        dest="roles",
        action="append",
        default=[],
        help="Role held by the user. Can be repeated.",
    )

    valid = subparsers.add_parser(
        "valid-combinations", help="Enumerate the allowed code combinations."
    )
    valid.add_argument(
        "--segments",
        dest="segment_ids",
        help=(
            "Comma-separated segment ids to combine. Defaults to the active "
            "segments that are mandatory for coding."
        ),
    )
    valid.add_argument(
        "--date",
        dest="on_date",
        help="Only use codes effective on this date (YYYY-MM-DD).",
    )

    subparsers.add_parser(
        "validate", help="Check rule references against segments, codes and trees."
    )

    journal = subparsers.add_parser(
        "check-journal", help="Validate the lines of a journal entry CSV file."
    )
    journal.add_argument("csv_path", help="CSV with account, debit, credit columns.")
    journal.add_argument(
        "--date",
        dest="on_date",
        help="Entry date (YYYY-MM-DD). Defaults to today.",
    )
    journal.add_argument("--user", dest="user_id")
    journal.add_argument("--role", dest="roles", action="append", default=[])

    periods = subparsers.add_parser(
        "periods", help="Show the fiscal calendar and period close statuses."
    )
    periods.add_argument(
        "--today",
        dest="today",
        help="Reference date for initial statuses (YYYY-MM-DD). Defaults to today.",
    )
    periods.add_argument(
        "--fiscal-year",
        dest="fiscal_year_id",
        help="Only show this fiscal year (e.g. FY2025).",
    )
    periods.add_argument(
        "--apply",
        dest="actions",
        action="append",
        default=[],
        help="Period action to apply (see module help). Can be repeated.",
    )

    return ap


def _parse_optional_date(value: Optional[str]) -> Optional[date]:
    """
    Parse an optional CLI date argument (YYYY-MM-DD).

    Raises
    ------
    SystemExit
        If the date format is invalid.
    """
    if value is None:
        return None

    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        msg = f"Invalid date format: {value!r}. Expected YYYY-MM-DD."
        raise SystemExit(msg) from exc


def _parse_account_arg(text: str, segments: list[Segment]) -> dict[str, Optional[str]]:
    """Parse 'fund=101,object=6110' pairs or a display string."""
    if "=" not in text:
        return parse_account_code(text, segments)

    out: dict[str, Optional[str]] = {}
    for part in text.split(","):
        key, sep, value = part.partition("=")
        if not sep or not key.strip():
            raise ValueError(
                f"Invalid account pair {part!r}. Expected 'segment_id=code'."
            )
        out[key.strip()] = value.strip() or None
    return out


def _render(
    df: pd.DataFrame,
    title: str,
    file_stem: str,
    display_mode: str,
    output_dir: Path,
) -> None:
    """Print a table and/or write it as a timestamped CSV file."""
    if display_mode in {"table", "both"}:
        print()
        print(f"=== {title} ===")
        if df.empty:
            print("(no rows)")
        else:
            print(df.to_string(index=False))

    if display_mode in {"csv", "both"}:
        output_dir.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now().strftime("%Y-%m-%d-%H-%M-%S")
        path = output_dir / f"{file_stem}_{timestamp}.csv"
        df.to_csv(path, index=False)
        print(f"Wrote {path} ({len(df)} rows)")


class _Session:
    """What every command handler needs."""

    def __init__(
        self, config: AppConfig, workspace: Workspace, args: argparse.Namespace
    ):
        self.config = config
        self.workspace = workspace
        self.display_mode = args.display_mode or config.display_mode
        self.output_dir = (
            Path(args.output_dir) if args.output_dir else Path("data/output")
        )

    def render(self, df: pd.DataFrame, title: str, file_stem: str) -> None:
        _render(df, title, file_stem, self.display_mode, self.output_dir)

    def display(self, account: Account) -> str:
        return format_account_code(
            account,
            self.workspace.segments.active_segments(),
            self.config.placeholder_length,
        )

    def segment_names(self) -> dict[str, str]:
        return {s.id: s.display_name for s in self.workspace.segments.segments}


def _handle_segments(args: argparse.Namespace, session: _Session) -> None:
    df = segments_to_dataframe(session.workspace.segments.segments)
    session.render(df, "Segments", "segments")


def _handle_codes(args: argparse.Namespace, session: _Session) -> None:
    segment = session.workspace.segments.require(args.segment_id)
    codes = session.workspace.codes.codes_for(segment.id)
    on_date = _parse_optional_date(args.on_date)
    if on_date is not None:
        codes = [c for c in codes if c.is_effective(on_date)]
    if args.sorted:
        codes = sort_codes(codes)
    session.render(
        codes_to_dataframe(codes),
        f"{segment.display_name} codes",
        f"codes_{segment.id}",
    )


def _handle_tree(args: argparse.Namespace, session: _Session) -> None:
    hset = session.workspace.hierarchies.require(args.set_id)
    hierarchy = hset.hierarchy_for(args.segment_id)
    if hierarchy is None:
        raise ValueError(
            f"Hierarchy set {hset.id!r} has no tree for segment {args.segment_id!r}."
        )
    session.render(
        tree_to_dataframe(hierarchy.tree_nodes),
        f"{hset.name} / {args.segment_id}",
        f"tree_{hset.id}_{args.segment_id}",
    )


def _handle_rules(args: argparse.Namespace, session: _Session) -> None:
    names = session.segment_names()
    if args.kind == "access":
        df = access_rules_to_dataframe(session.workspace.access_rules.rules, names)
        session.render(df, "Access control rules", "access_rules")
    else:
        df = combination_rules_to_dataframe(
            session.workspace.combination_rules.rules, names
        )
        session.render(df, "Combination rules", "combination_rules")


def _handle_check_combination(args: argparse.Namespace, session: _Session) -> None:
    ws = session.workspace
    account = _parse_account_arg(args.account, ws.segments.active_segments())
    decision = ws.combination_rules.evaluate(
        account, ws.context, session.config.default_unmatched
    )
    verdict = "ALLOWED" if decision.allowed else "NOT ALLOWED"
    print(f"Account {session.display(account)}: {verdict} ({decision.reason})")
    if decision.included_by or decision.excluded_by:
        session.render(
            combination_decision_to_dataframe(decision),
            "Matching definition entries",
            "combination_check",
        )


def _handle_check_access(args: argparse.Namespace, session: _Session) -> None:
    ws = session.workspace
    account = _parse_account_arg(args.account, ws.segments.active_segments())
    identity = AccessIdentity.of(args.user_id, args.roles)
    decision = ws.access_rules.resolve(
        identity, account, ws.context, session.config.default_without_rule
    )

    if decision.reason == "no_rule":
        detail = "no rule applies, configured default"
    elif decision.reason == "rule_default":
        detail = f"default of rule {decision.rule_id}"
    else:
        detail = f"restriction {decision.restriction_id} of rule {decision.rule_id}"
    print(
        f"Access of {identity.user_id} to {session.display(account)}: "
        f"{decision.access_type.value} ({detail})"
    )
    if decision.rule_results:
        session.render(
            access_decision_to_dataframe(decision), "Applicable rules", "access_check"
        )


def _handle_valid_combinations(args: argparse.Namespace, session: _Session) -> None:
    ws = session.workspace
    if args.segment_ids:
        segments = [ws.segments.require(s.strip()) for s in args.segment_ids.split(",")]
    else:
        segments = [
            s for s in ws.segments.active_segments() if s.is_mandatory_for_coding
        ]

    df = valid_combinations(
        segments,
        ws.codes,
        ws.combination_rules.rules,
        ws.context,
        session.config.default_unmatched,
        _parse_optional_date(args.on_date),
    )
    session.render(df, "Valid combinations", "valid_combinations")


def _handle_validate(args: argparse.Namespace, session: _Session) -> None:
    ws = session.workspace
    problems: list[dict[str, str]] = []

    def _check(kind: str, rule_id: str, criteria) -> None:
        for crit in criteria:
            for msg in check_criterion_references(
                crit, ws.segments, ws.codes, ws.hierarchies
            ):
                problems.append({"kind": kind, "rule_id": rule_id, "problem": msg})

    for rule in ws.access_rules.rules:
        for res in rule.restrictions:
            _check("access", rule.id, res.segment_criteria)
    for rule in ws.combination_rules.rules:
        for entry in rule.definition_entries:
            _check("combination", rule.id, entry.criteria)

    print(
        f"Loaded {len(ws.segments.segments)} segments, "
        f"{len(ws.hierarchies.hierarchy_sets)} hierarchy sets, "
        f"{len(ws.access_rules.rules)} access rules, "
        f"{len(ws.combination_rules.rules)} combination rules."
    )
    if not problems:
        print("All rule references resolve.")
        return
    session.render(
        pd.DataFrame(problems, columns=["kind", "rule_id", "problem"]),
        "Unresolved references",
        "validation",
    )


def _handle_check_journal(args: argparse.Namespace, session: _Session) -> None:
    ws = session.workspace
    csv_path = Path(args.csv_path)
    if not csv_path.is_file():
        raise FileNotFoundError(f"Journal CSV file not found: {csv_path}")

    lines = read_journal_lines(csv_path, ws.segments.active_segments())
    entry_date = _parse_optional_date(args.on_date) or date.today()
    identity = AccessIdentity.of(args.user_id, args.roles) if args.user_id else None
    issues = validate_journal_lines(
        lines,
        entry_date,
        ws.segments,
        ws.codes,
        ws.combination_rules,
        ws.context,
        session.config.default_unmatched,
        access_rules=ws.access_rules if identity is not None else None,
        identity=identity,
        default_without_rule=session.config.default_without_rule,
    )
    if not issues:
        print(f"All {len(lines)} lines are valid on {entry_date.isoformat()}.")
        return
    session.render(issues_to_dataframe(issues), "Journal issues", "journal_issues")


def _parse_period_action(text: str) -> tuple[str, Optional[Subledger], PeriodAction]:
    parts = [p.strip() for p in text.split(":")]
    if len(parts) == 2:
        return parts[0], None, PeriodAction.parse(parts[1])
    if len(parts) == 3:
        return parts[0], Subledger.parse(parts[1]), PeriodAction.parse(parts[2])
    raise ValueError(
        f"Invalid period action {text!r}. Expected 'PERIOD_ID:ACTION' or "
        "'PERIOD_ID:SUBLEDGER:ACTION'."
    )


def _handle_periods(args: argparse.Namespace, session: _Session) -> None:
    years = generate_fiscal_years(
        session.config.fiscal_calendar, _parse_optional_date(args.today)
    )

    for text in args.actions:
        period_id, subledger, action = _parse_period_action(text)
        fy_id = period_id.split("-")[0]
        fiscal_year = find_fiscal_year(years, fy_id)
        period = fiscal_year.require_period(period_id)
        if subledger is None:
            results = perform_period_action(fiscal_year, period, action)
        else:
            results = [
                perform_subledger_action(fiscal_year, period, subledger, action)
            ]
        for result in results:
            print(f"{period.name}: {result.message}")

    if args.fiscal_year_id:
        years = [find_fiscal_year(years, args.fiscal_year_id)]
    session.render(fiscal_years_to_dataframe(years), "Fiscal years", "fiscal_years")
    session.render(periods_to_dataframe(years), "Fiscal periods", "fiscal_periods")


_HANDLERS = {
    "segments": _handle_segments,
    "codes": _handle_codes,
    "tree": _handle_tree,
    "rules": _handle_rules,
    "check-combination": _handle_check_combination,
    "check-access": _handle_check_access,
    "valid-combinations": _handle_valid_combinations,
    "validate": _handle_validate,
    "check-journal": _handle_check_journal,
    "periods": _handle_periods,
}


def main(argv: Optional[list[str]] = None) -> None:
    """Entry point for the COA Studio CLI.

    Parses command-line arguments, loads the configuration and the
    workspace, then dispatches to the requested command. Configuration and
    rule errors are reported through ``parser.error`` (exit status 2).
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    # --version: short-circuit and exit early.
    if args.version:
        print(f"coa_studio version {__version__}")
        return

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.command is None:
        parser.print_help()
        return

    try:
        config = load_app_config(args.config_path)
        workspace = load_workspace(config)
    except FileNotFoundError as exc:
        parser.error(str(exc))
    except (ValueError, KeyError) as exc:
        parser.error(f"Invalid configuration: {exc}")

    session = _Session(config, workspace, args)
    try:
        _HANDLERS[args.command](args, session)
    except FileNotFoundError as exc:
        parser.error(str(exc))
    except (ValueError, KeyError) as exc:
        logger.debug("Command %s failed", args.command, exc_info=True)
        parser.error(str(exc))


if __name__ == "__main__":
    main()
