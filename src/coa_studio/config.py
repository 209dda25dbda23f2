# COA Studio - Chart of Accounts configuration & rule resolution toolkit
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Configuration helpers for COA Studio.

This module is responsible for:
- loading the application configuration from a TOML file,
- resolving the data file paths relative to that file,
- exposing typed dataclasses used by the rest of the application.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

try:
    import tomllib  # Python 3.11+
except ModuleNotFoundError:  # pragma: no cover - fallback for older Python
    import tomli as tomllib  # type: ignore[import]

from .access_control import AccessType
from .account_code import DEFAULT_PLACEHOLDER_LENGTH
from .combination_rules import UnmatchedBehavior
from .periods import FiscalCalendarConfig, PeriodFrequency, parse_month

DEFAULT_CONFIG_FILE = "coa_studio_config.toml"
DISPLAY_MODES = ("table", "csv", "both")


@dataclass(frozen=True)
class PathsConfig:
    """
    Data files of a chart of accounts configuration.

    When neither segments nor segment_codes is set, the bundled sample data
    fills every piece left to None. Otherwise a None path means "empty".
    """

    segments: Optional[Path] = None
    segment_codes: Optional[Path] = None
    hierarchies: Optional[Path] = None
    combination_rules: Optional[Path] = None
    access_rules: Optional[Path] = None


@dataclass(frozen=True)
class AppConfig:
    """
    Application-wide configuration for COA Studio.

    This aggregates:
    - the data file paths,
    - the verdict for combinations no rule matches,
    - the access granted when no access-control rule applies,
    - the fiscal calendar,
    - display options for the CLI.
    """

    paths: PathsConfig
    default_unmatched: UnmatchedBehavior = UnmatchedBehavior.NOT_ALLOWED
    default_without_rule: AccessType = AccessType.EDITABLE
    fiscal_calendar: FiscalCalendarConfig = FiscalCalendarConfig()
    display_mode: str = "table"
    placeholder_length: int = DEFAULT_PLACEHOLDER_LENGTH


def _load_toml(path: Path) -> dict[str, Any]:
    """
    Load a TOML file and return its content as a dictionary.

    Raises:
        FileNotFoundError: if the file does not exist.
        ValueError: if the TOML content cannot be parsed or is not a table.
    """
    if not path.is_file():
        raise FileNotFoundError(f"Config file not found: {path}")

    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except Exception as exc:  # noqa: BLE001
        raise ValueError(f"Failed to parse TOML config file: {path}") from exc

    if not isinstance(data, dict):
        raise ValueError(f"Invalid TOML root type in {path}, expected a table.")

    return data


def _section(raw: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    section = raw.get(name) or {}
    if not isinstance(section, Mapping):
        raise ValueError(f"Config section [{name}] must be a table.")
    return section


def _parse_paths(paths_section: Mapping[str, Any], base_dir: Path) -> PathsConfig:
    """Resolve the [paths] entries relative to ``base_dir``."""

    def _resolve_optional(key: str) -> Optional[Path]:
        rel = paths_section.get(key)
        if not rel:
            return None
        return (base_dir / str(rel)).resolve()

    return PathsConfig(
        segments=_resolve_optional("segments"),
        segment_codes=_resolve_optional("segment_codes"),
        hierarchies=_resolve_optional("hierarchies"),
        combination_rules=_resolve_optional("combination_rules"),
        access_rules=_resolve_optional("access_rules"),
    )


def _parse_fiscal_calendar(section: Mapping[str, Any]) -> FiscalCalendarConfig:
    """
    Extract and validate the [fiscal_calendar] table.

    Raises:
        ValueError: if a value has the wrong type or is out of range.
    """
    default = FiscalCalendarConfig()
    try:
        start_month = parse_month(section.get("start_month", default.start_month))
        start_year = int(section.get("start_year", default.start_year))
        years = int(section.get("years", default.years))
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid [fiscal_calendar] configuration: {exc}") from exc

    raw_frequency = section.get("frequency", default.frequency.value)
    try:
        frequency = PeriodFrequency(str(raw_frequency))
    except ValueError as exc:
        raise ValueError(
            "Invalid value for 'fiscal_calendar.frequency' in the configuration. "
            "Expected 'Monthly' or '4-4-5'."
        ) from exc

    if not 1900 <= start_year <= 2100:
        raise ValueError("'fiscal_calendar.start_year' must be between 1900 and 2100.")
    if years < 1:
        raise ValueError("'fiscal_calendar.years' must be positive.")

    return FiscalCalendarConfig(
        start_month=start_month,
        start_year=start_year,
        frequency=frequency,
        years=years,
    )


def load_app_config(config_path: Optional[str] = None) -> AppConfig:
    """
    Load the COA Studio configuration from a TOML file.

    Expected sections in the TOML file (all optional)
    -------------------------------------------------
    [paths]
        segments, segment_codes (CSV), hierarchies, combination_rules,
        access_rules (TOML). Without segments and segment_codes, the
        bundled sample data fills the missing entries; with either of them,
        missing entries load as empty.

    [combination]
        default_unmatched: "Allowed" or "Not Allowed" (default).

    [access]
        default_without_rule: "Editable" (default), "Read-Only" or
        "No Access".

    [fiscal_calendar]
        start_month: month name or number (January), start_year (2025),
        frequency: "Monthly" (default) or "4-4-5", years: fiscal years to
        generate (3).

    [display]
        mode: "table" (default), "csv" or "both".
        placeholder_length: underscores shown for an empty segment (8).

    Notes
    -----
    - All file paths are resolved relative to the directory of the TOML file.
    - When ``config_path`` is None and ``coa_studio_config.toml`` does not
      exist in the current directory, the default configuration (sample
      data only) is returned.

    Parameters
    ----------
    config_path : str, optional
        Path to the TOML configuration file.

    Returns
    -------
    AppConfig
        Parsed and validated application configuration.

    Raises
    ------
    FileNotFoundError
        If an explicit ``config_path`` does not exist.
    ValueError
        If a value is invalid.
    """
    if config_path is None:
        config_file = Path(DEFAULT_CONFIG_FILE).resolve()
        if not config_file.is_file():
            return AppConfig(paths=PathsConfig())
    else:
        config_file = Path(config_path).resolve()

    raw = _load_toml(config_file)
    base_dir = config_file.parent

    # 1) Paths
    paths = _parse_paths(_section(raw, "paths"), base_dir)

    # 2) Combination rules
    combination_section = _section(raw, "combination")
    raw_unmatched = combination_section.get("default_unmatched", "Not Allowed")
    try:
        default_unmatched = UnmatchedBehavior(str(raw_unmatched))
    except ValueError as exc:
        raise ValueError(
            "Invalid value for 'combination.default_unmatched' in the configuration. "
            "Expected 'Allowed' or 'Not Allowed'."
        ) from exc

    # 3) Access control
    access_section = _section(raw, "access")
    raw_access = access_section.get("default_without_rule", "Editable")
    try:
        default_without_rule = AccessType(str(raw_access))
    except ValueError as exc:
        raise ValueError(
            "Invalid value for 'access.default_without_rule' in the configuration. "
            "Expected 'Editable', 'Read-Only' or 'No Access'."
        ) from exc

    # 4) Fiscal calendar
    fiscal_calendar = _parse_fiscal_calendar(_section(raw, "fiscal_calendar"))

    # 5) Display options
    display_section = _section(raw, "display")
    display_mode = str(display_section.get("mode", "table"))
    if display_mode not in DISPLAY_MODES:
        raise ValueError(
            f"Invalid display mode {display_mode!r}. "
            f"Expected one of: {', '.join(DISPLAY_MODES)}."
        )
    try:
        placeholder_length = int(
            display_section.get("placeholder_length", DEFAULT_PLACEHOLDER_LENGTH)
        )
    except (TypeError, ValueError) as exc:
        raise ValueError(
            "Invalid value for 'display.placeholder_length' in the configuration. "
            "Expected an integer."
        ) from exc
    if placeholder_length <= 0:
        raise ValueError("'display.placeholder_length' must be positive.")

    return AppConfig(
        paths=paths,
        default_unmatched=default_unmatched,
        default_without_rule=default_without_rule,
        fiscal_calendar=fiscal_calendar,
        display_mode=display_mode,
        placeholder_length=placeholder_length,
    )
