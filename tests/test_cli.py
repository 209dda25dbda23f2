from pathlib import Path

import pandas as pd
import pytest

from coa_studio import __version__
from coa_studio.cli import main


@pytest.fixture(autouse=True)
def _isolated_cwd(tmp_path: Path, monkeypatch) -> None:
    """Run every command away from any local coa_studio_config.toml."""
    monkeypatch.chdir(tmp_path)


def test_version(capsys) -> None:
    main(["--version"])
    assert capsys.readouterr().out.strip() == f"coa_studio version {__version__}"


def test_no_command_prints_help(capsys) -> None:
    main([])
    assert "usage:" in capsys.readouterr().out


def test_segments_table(capsys) -> None:
    main(["segments"])
    out = capsys.readouterr().out
    assert "=== Segments ===" in out
    assert "department" in out


def test_check_combination_excluded(capsys) -> None:
    main(["check-combination", "103-5300-FINACC"])
    out = capsys.readouterr().out
    assert "Account 103-5300-FINACC-________: NOT ALLOWED (excluded)" in out
    assert "cr-gov-funds-exc" in out


def test_check_combination_unmatched(capsys) -> None:
    main(["check-combination", "fund=102,object=5100"])
    out = capsys.readouterr().out
    assert "NOT ALLOWED (unmatched_default)" in out
    assert "Matching definition entries" not in out


def test_check_access_with_pairs(capsys) -> None:
    main(
        [
            "check-access",
            "fund=101,object=6110,department=FINACC",
            "--user",
            "ap_clerk_01",
        ]
    )
    out = capsys.readouterr().out
    assert (
        "Access of ap_clerk_01 to 101-6110-FINACC-________: Editable "
        "(restriction res-2-1 of rule aac-rule-2)"
    ) in out


def test_check_access_role_default(capsys) -> None:
    main(["check-access", "101-5100", "--user", "bob", "--role", "DEPT_HEAD_ROLE"])
    out = capsys.readouterr().out
    assert "Editable (default of rule aac-rule-3)" in out


def test_validate_reports_unknown_codes(capsys) -> None:
    main(["validate"])
    out = capsys.readouterr().out
    assert "Loaded 4 segments" in out
    assert "Code 'FND-SENSITIVE-A' does not exist in 'fund'." in out


def test_valid_combinations_csv_export(tmp_path: Path, capsys) -> None:
    out_dir = tmp_path / "exports"
    main(
        [
            "--display-mode",
            "csv",
            "--output",
            str(out_dir),
            "valid-combinations",
            "--segments",
            "fund,object",
            "--date",
            "2024-06-01",
        ]
    )
    out = capsys.readouterr().out
    files = list(out_dir.glob("valid_combinations_*.csv"))

    assert len(files) == 1
    assert "(19 rows)" in out
    df = pd.read_csv(files[0], dtype=str)
    assert df.columns.tolist() == ["fund", "object", "reason"]


def test_check_journal(tmp_path: Path, capsys) -> None:
    journal = tmp_path / "entry.csv"
    journal.write_text(
        "line_id,account,debit,credit\n"
        "L1,101-6110-FINACC,50,\n"
        "L2,101-5100-FINACC,,50\n",
        encoding="utf-8",
    )

    main(["check-journal", str(journal), "--date", "2024-06-01"])
    assert "All 2 lines are valid on 2024-06-01." in capsys.readouterr().out

    main(
        [
            "check-journal",
            str(journal),
            "--date",
            "2024-06-01",
            "--user",
            "ap_clerk_01",
        ]
    )
    out = capsys.readouterr().out
    assert "Journal issues" in out
    assert "User ap_clerk_01 has No Access access" in out


def test_tree_of_system_set(capsys) -> None:
    main(["tree", "--segment", "department"])
    out = capsys.readouterr().out
    assert "Default Code Structures (System) / department" in out
    assert "FINBUDANL" in out


def test_periods_with_actions(capsys) -> None:
    main(
        [
            "periods",
            "--today",
            "2025-03-15",
            "--fiscal-year",
            "FY2025",
            "--apply",
            "FY2025-P3:Close",
            "--apply",
            "FY2025-P4:AP:Open",
        ]
    )
    out = capsys.readouterr().out
    assert (
        "MAR-FY2025: General Ledger set to Closed. "
        "Also, AP and AR automatically set to Closed."
    ) in out
    assert "APR-FY2025: Accounts Payable set to Open." in out
    assert "=== Fiscal years ===" in out
    assert "=== Fiscal periods ===" in out
    assert "FY2026" not in out


@pytest.mark.parametrize(
    "argv",
    [
        ["codes", "region"],
        ["tree", "--segment", "fund", "--set", "hset-budget-1"],
        ["check-combination", "fund=101,object"],
        ["check-journal", "missing.csv"],
        ["--config", "missing.toml", "segments"],
        ["periods", "--today", "2025-03-15", "--apply", "FY2025-ADJ:Open"],
        ["periods", "--apply", "FY2025-P1"],
        ["periods", "--apply", "FY2030-P1:Close"],
    ],
)
def test_errors_exit_with_usage_status(argv) -> None:
    with pytest.raises(SystemExit) as excinfo:
        main(argv)
    assert excinfo.value.code == 2


def test_invalid_date_exits() -> None:
    with pytest.raises(SystemExit) as excinfo:
        main(["codes", "fund", "--date", "2024/06/01"])
    assert "Expected YYYY-MM-DD" in str(excinfo.value.code)
