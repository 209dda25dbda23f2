# COA Studio - Chart of Accounts configuration & rule resolution toolkit
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Fiscal calendar and period close management for COA Studio.

A fiscal calendar is configured with a start month, a start year and a
period frequency. It generates consecutive fiscal years, each made of
regular periods followed by one adjustment period (ADJ):

- 'Monthly': 12 monthly periods, ids FY2025-P1 .. FY2025-P12, names
  JAN-FY2025 .. DEC-FY2025.
- '4-4-5': 4 quarterly periods of three calendar months, ids FY2025-Q1 ..
  FY2025-Q4, names Q1-FY2025 .. Q4-FY2025.

A fiscal year is labelled after the calendar year in which it ends.

Every regular period tracks one status per subledger (General Ledger,
Accounts Payable, Accounts Receivable). The ADJ period only tracks the
General Ledger. Initial statuses derive from today's date: Closed for past
periods, Open for the current one, Future for later ones. ADJ starts Future.

Rules enforced when changing a status
-------------------------------------
- Hard Closed is terminal: no action applies to it.
- The ADJ period can only be opened once every regular period's General
  Ledger is Closed or Hard Closed.
- A regular period's General Ledger cannot be reopened once the ADJ period
  has left Future.
- Closing (or hard closing) a regular General Ledger closes AP and AR,
  unless they are Hard Closed. Opening it opens AP and AR when they were
  in the same status the General Ledger had (Future or Closed).
"""

import logging
from calendar import monthrange
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Optional

from .exceptions import FiscalPeriodError

logger = logging.getLogger(__name__)

MONTH_NAMES = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)


class PeriodStatus(str, Enum):
    OPEN = "Open"
    CLOSED = "Closed"
    FUTURE = "Future"
    HARD_CLOSED = "Hard Closed"


class PeriodAction(str, Enum):
    OPEN = "Open"
    CLOSE = "Close"
    HARD_CLOSE = "Hard Close"
    REOPEN = "Reopen"

    @classmethod
    def parse(cls, value: str) -> "PeriodAction":
        """Parse an action name, e.g. 'Hard Close', 'hard-close' or 'HARD_CLOSE'."""
        if isinstance(value, cls):
            return value
        key = str(value).strip().replace("-", " ").replace("_", " ").lower()
        for action in cls:
            if action.value.lower() == key:
                return action
        raise FiscalPeriodError(f"Unknown period action: {value!r}")


class Subledger(str, Enum):
    GENERAL_LEDGER = "General Ledger"
    ACCOUNTS_PAYABLE = "Accounts Payable"
    ACCOUNTS_RECEIVABLE = "Accounts Receivable"

    @property
    def short_name(self) -> str:
        return _SHORT_NAMES[self]

    @classmethod
    def parse(cls, value: str) -> "Subledger":
        """Parse a subledger from its name or its short name (GL, AP, AR)."""
        if isinstance(value, cls):
            return value
        key = str(value).strip().lower()
        for subledger in cls:
            if key in (subledger.value.lower(), subledger.short_name.lower()):
                return subledger
        raise FiscalPeriodError(f"Unknown subledger: {value!r}")


_SHORT_NAMES = {
    Subledger.GENERAL_LEDGER: "GL",
    Subledger.ACCOUNTS_PAYABLE: "AP",
    Subledger.ACCOUNTS_RECEIVABLE: "AR",
}


class PeriodFrequency(str, Enum):
    MONTHLY = "Monthly"
    FOUR_FOUR_FIVE = "4-4-5"


_TARGET_STATUS = {
    PeriodAction.OPEN: PeriodStatus.OPEN,
    PeriodAction.CLOSE: PeriodStatus.CLOSED,
    PeriodAction.HARD_CLOSE: PeriodStatus.HARD_CLOSED,
    PeriodAction.REOPEN: PeriodStatus.OPEN,
}
_CLOSED_STATUSES = (PeriodStatus.CLOSED, PeriodStatus.HARD_CLOSED)


@dataclass(frozen=True)
class FiscalCalendarConfig:
    """How fiscal years are laid out (``[fiscal_calendar]`` in the config)."""

    start_month: int = 1
    start_year: int = 2025
    frequency: PeriodFrequency = PeriodFrequency.MONTHLY
    years: int = 3


@dataclass
class FiscalPeriod:
    """A regular period (with dates) or the adjustment period (without)."""

    id: str
    name: str
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    is_adjustment: bool = False
    subledger_statuses: dict[Subledger, PeriodStatus] = field(default_factory=dict)

    def status_of(self, subledger: Subledger) -> Optional[PeriodStatus]:
        return self.subledger_statuses.get(subledger)


@dataclass
class FiscalYear:
    """A fiscal year with its periods, the ADJ period last."""

    id: str
    name: str
    start_date: date
    end_date: date
    periods: list[FiscalPeriod] = field(default_factory=list)

    @property
    def regular_periods(self) -> list[FiscalPeriod]:
        return [p for p in self.periods if not p.is_adjustment]

    @property
    def adjustment_period(self) -> Optional[FiscalPeriod]:
        for p in self.periods:
            if p.is_adjustment:
                return p
        return None

    def require_period(self, period_id: str) -> FiscalPeriod:
        for p in self.periods:
            if p.id == period_id:
                return p
        raise FiscalPeriodError(
            f"Period {period_id!r} not found in {self.name}.", period_id
        )


@dataclass(frozen=True)
class ActionResult:
    """Outcome of a status change.

    Attributes:
        period_id: Period that changed.
        subledger: Subledger the action targeted.
        new_status: Its status after the action.
        cascaded: Other subledgers whose status followed the General Ledger.
    """

    period_id: str
    subledger: Subledger
    new_status: PeriodStatus
    cascaded: tuple[Subledger, ...] = ()

    @property
    def message(self) -> str:
        text = f"{self.subledger.value} set to {self.new_status.value}."
        if self.cascaded:
            names = " and ".join(s.short_name for s in self.cascaded)
            target = "Open" if self.new_status is PeriodStatus.OPEN else "Closed"
            text += f" Also, {names} automatically set to {target}."
        return text


# ---------------------------------------------------------------------------
# Calendar generation
# ---------------------------------------------------------------------------


def _today() -> date:
    """Return today's date as a date object (isolated for easier testing)."""
    return datetime.today().date()


def parse_month(value: object) -> int:
    """Accept a month number (1-12) or an English month name."""
    if isinstance(value, int) and not isinstance(value, bool):
        month = value
    else:
        text = str(value).strip()
        if text.isdigit():
            month = int(text)
        else:
            names = [m.lower() for m in MONTH_NAMES]
            if text.lower() not in names:
                raise ValueError(f"Invalid start month: {value!r}.")
            month = names.index(text.lower()) + 1
    if not 1 <= month <= 12:
        raise ValueError(f"Invalid start month: {value!r}.")
    return month


def validate_calendar_config(config: FiscalCalendarConfig) -> list[str]:
    errors: list[str] = []
    if not 1 <= config.start_month <= 12:
        errors.append("Start month is required.")
    if config.start_year < 1900:
        errors.append("Year must be 1900 or later.")
    if config.start_year > 2100:
        errors.append("Year must be 2100 or earlier.")
    if config.years < 1:
        errors.append("At least one fiscal year must be generated.")
    return errors


def _add_months(year: int, month: int, count: int) -> tuple[int, int]:
    index = year * 12 + (month - 1) + count
    return index // 12, index % 12 + 1


def _month_end(year: int, month: int) -> date:
    return date(year, month, monthrange(year, month)[1])


def initial_status(
    start: Optional[date], end: Optional[date], today: date
) -> PeriodStatus:
    """Status of a freshly generated period, relative to ``today``."""
    if start is None or end is None:
        return PeriodStatus.FUTURE
    if today > end:
        return PeriodStatus.CLOSED
    if today < start:
        return PeriodStatus.FUTURE
    return PeriodStatus.OPEN


def _regular_period(
    period_id: str, name: str, start: date, end: date, today: date
) -> FiscalPeriod:
    status = initial_status(start, end, today)
    return FiscalPeriod(
        id=period_id,
        name=name,
        start_date=start,
        end_date=end,
        subledger_statuses={s: status for s in Subledger},
    )


def generate_fiscal_years(
    config: FiscalCalendarConfig, today: Optional[date] = None
) -> list[FiscalYear]:
    """
    Generate the fiscal years described by ``config``.

    Parameters
    ----------
    config : FiscalCalendarConfig
        Start month and year, period frequency and number of years.
    today : date, optional
        Reference date for initial statuses. Defaults to today.

    Returns
    -------
    list[FiscalYear]
        ``config.years`` consecutive fiscal years, each ending with its
        ADJ period.

    Raises
    ------
    FiscalPeriodError
        If the configuration is invalid.
    """
    errors = validate_calendar_config(config)
    if errors:
        raise FiscalPeriodError(" ".join(errors))
    today = today or _today()

    years: list[FiscalYear] = []
    for offset in range(config.years):
        fy_year = config.start_year + offset
        fy_start = date(fy_year, config.start_month, 1)
        end_year, end_month = _add_months(fy_year, config.start_month, 11)
        fy_end = _month_end(end_year, end_month)
        label = f"FY{fy_end.year}"

        periods: list[FiscalPeriod] = []
        if config.frequency is PeriodFrequency.MONTHLY:
            for m in range(12):
                year, month = _add_months(fy_year, config.start_month, m)
                abbr = MONTH_NAMES[month - 1][:3].upper()
                periods.append(
                    _regular_period(
                        f"{label}-P{m + 1}",
                        f"{abbr}-{label}",
                        date(year, month, 1),
                        _month_end(year, month),
                        today,
                    )
                )
        else:
            for q in range(4):
                year, month = _add_months(fy_year, config.start_month, q * 3)
                last_year, last_month = _add_months(year, month, 2)
                periods.append(
                    _regular_period(
                        f"{label}-Q{q + 1}",
                        f"Q{q + 1}-{label}",
                        date(year, month, 1),
                        _month_end(last_year, last_month),
                        today,
                    )
                )

        periods.append(
            FiscalPeriod(
                id=f"{label}-ADJ",
                name=f"ADJ-{label}",
                is_adjustment=True,
                subledger_statuses={Subledger.GENERAL_LEDGER: PeriodStatus.FUTURE},
            )
        )
        years.append(
            FiscalYear(
                id=label,
                name=label,
                start_date=fy_start,
                end_date=fy_end,
                periods=periods,
            )
        )

    logger.debug(
        "Generated %d fiscal years from %s %d (%s).",
        len(years),
        MONTH_NAMES[config.start_month - 1],
        config.start_year,
        config.frequency.value,
    )
    return years


def find_fiscal_year(years: list[FiscalYear], fiscal_year_id: str) -> FiscalYear:
    for fy in years:
        if fy.id == fiscal_year_id:
            return fy
    raise FiscalPeriodError(f"Fiscal year {fiscal_year_id!r} not found.")


# ---------------------------------------------------------------------------
# Status roll-ups
# ---------------------------------------------------------------------------


def overall_period_status(period: FiscalPeriod) -> PeriodStatus:
    """Roll the subledger statuses of a period up into one status.

    The ADJ period reports its General Ledger status. For a regular period:
    all Hard Closed gives Hard Closed, all closed gives Closed, any Open
    gives Open, and a mix of Future with closed subledgers gives Future.
    """
    if period.is_adjustment:
        return period.status_of(Subledger.GENERAL_LEDGER) or PeriodStatus.FUTURE

    statuses = list(period.subledger_statuses.values())
    if not statuses:
        return PeriodStatus.FUTURE
    if all(s is PeriodStatus.HARD_CLOSED for s in statuses):
        return PeriodStatus.HARD_CLOSED
    if all(s in _CLOSED_STATUSES for s in statuses):
        return PeriodStatus.CLOSED
    if any(s is PeriodStatus.OPEN for s in statuses):
        return PeriodStatus.OPEN
    if any(s is PeriodStatus.FUTURE for s in statuses):
        return PeriodStatus.FUTURE
    return PeriodStatus.OPEN


def overall_fiscal_year_status(fiscal_year: FiscalYear) -> PeriodStatus:
    """Roll the period statuses of a fiscal year (ADJ included) up."""
    statuses = [overall_period_status(p) for p in fiscal_year.periods]
    if all(s is PeriodStatus.HARD_CLOSED for s in statuses):
        return PeriodStatus.HARD_CLOSED
    if all(s in _CLOSED_STATUSES for s in statuses):
        return PeriodStatus.CLOSED
    if any(s is PeriodStatus.OPEN for s in statuses):
        return PeriodStatus.OPEN
    if any(s is PeriodStatus.FUTURE for s in statuses):
        return PeriodStatus.FUTURE
    return PeriodStatus.OPEN


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------


def _all_regular_gl_closed(fiscal_year: FiscalYear) -> bool:
    return all(
        p.status_of(Subledger.GENERAL_LEDGER) in _CLOSED_STATUSES
        for p in fiscal_year.regular_periods
    )


def _actions_for_status(status: Optional[PeriodStatus]) -> list[PeriodAction]:
    if status is PeriodStatus.OPEN:
        return [PeriodAction.CLOSE, PeriodAction.HARD_CLOSE]
    if status is PeriodStatus.CLOSED:
        return [PeriodAction.REOPEN, PeriodAction.HARD_CLOSE]
    if status is PeriodStatus.FUTURE:
        return [PeriodAction.OPEN]
    return []


def available_actions(
    period: FiscalPeriod, fiscal_year: FiscalYear, subledger: Subledger
) -> list[PeriodAction]:
    """Actions offered for one subledger of a period.

    Hard Closed offers nothing. The ADJ period only offers General Ledger
    actions, and only offers Open once every regular General Ledger is
    closed.
    """
    status = period.status_of(subledger)
    if period.is_adjustment:
        if subledger is not Subledger.GENERAL_LEDGER:
            return []
        if status is PeriodStatus.FUTURE and not _all_regular_gl_closed(fiscal_year):
            return []
    return _actions_for_status(status)


def available_period_actions(
    period: FiscalPeriod, fiscal_year: FiscalYear
) -> list[PeriodAction]:
    """Actions offered for a period as a whole (based on its overall status)."""
    if period.is_adjustment:
        return available_actions(period, fiscal_year, Subledger.GENERAL_LEDGER)
    return _actions_for_status(overall_period_status(period))


def _check_close_rules(
    fiscal_year: FiscalYear,
    period: FiscalPeriod,
    subledger: Subledger,
    action: PeriodAction,
) -> None:
    current = period.status_of(subledger)
    if current is PeriodStatus.HARD_CLOSED:
        raise FiscalPeriodError(
            f"{subledger.value} for period {period.name!r} is Hard Closed and "
            "cannot be modified.",
            period.id,
        )
    if subledger is not Subledger.GENERAL_LEDGER:
        return

    if period.is_adjustment:
        if action is PeriodAction.OPEN and not _all_regular_gl_closed(fiscal_year):
            raise FiscalPeriodError(
                f"Cannot open General Ledger for ADJ period {period.name!r} until "
                "all regular periods' General Ledger in this fiscal year are "
                "'Closed' or 'Hard Closed'.",
                period.id,
            )
        return

    if current is PeriodStatus.CLOSED and action in (
        PeriodAction.OPEN,
        PeriodAction.REOPEN,
    ):
        adj = fiscal_year.adjustment_period
        adj_status = adj.status_of(Subledger.GENERAL_LEDGER) if adj else None
        if adj_status is not None and adj_status is not PeriodStatus.FUTURE:
            raise FiscalPeriodError(
                f"Cannot reopen General Ledger for regular period {period.name!r} "
                f"because the Adjustment Period for {fiscal_year.name} has "
                f"already been processed (status: {adj_status.value}).",
                period.id,
            )


def _apply_action(
    period: FiscalPeriod, subledger: Subledger, action: PeriodAction
) -> ActionResult:
    original = period.status_of(subledger)
    new_status = _TARGET_STATUS[action]
    statuses = dict(period.subledger_statuses)
    statuses[subledger] = new_status
    cascaded: list[Subledger] = []

    if subledger is Subledger.GENERAL_LEDGER and not period.is_adjustment:
        for other in (Subledger.ACCOUNTS_PAYABLE, Subledger.ACCOUNTS_RECEIVABLE):
            current = statuses.get(other)
            if new_status in _CLOSED_STATUSES:
                if current is not PeriodStatus.HARD_CLOSED:
                    statuses[other] = PeriodStatus.CLOSED
                    cascaded.append(other)
            elif original in (PeriodStatus.FUTURE, PeriodStatus.CLOSED):
                if current is original:
                    statuses[other] = PeriodStatus.OPEN
                    cascaded.append(other)

    period.subledger_statuses = statuses
    result = ActionResult(period.id, subledger, new_status, tuple(cascaded))
    logger.info("Period %s: %s", period.id, result.message)
    return result


def perform_subledger_action(
    fiscal_year: FiscalYear,
    period: FiscalPeriod,
    subledger: Subledger,
    action: PeriodAction,
) -> ActionResult:
    """
    Apply ``action`` to one subledger of ``period`` (in place).

    Raises
    ------
    FiscalPeriodError
        If a period close rule forbids the action, or the action is not
        offered for the current status. Statuses are left unchanged.
    """
    action = PeriodAction.parse(action)
    _check_close_rules(fiscal_year, period, subledger, action)
    if action not in available_actions(period, fiscal_year, subledger):
        current = period.status_of(subledger)
        raise FiscalPeriodError(
            f"Action {action.value!r} is not available for {subledger.value} of "
            f"period {period.name!r} (status: "
            f"{current.value if current else 'not tracked'}).",
            period.id,
        )
    return _apply_action(period, subledger, action)


def perform_period_action(
    fiscal_year: FiscalYear, period: FiscalPeriod, action: PeriodAction
) -> list[ActionResult]:
    """
    Apply ``action`` to a period as a whole (in place).

    Open, Close and Reopen act on the General Ledger and cascade to AP and
    AR. Hard Close hard closes every subledger that is not already Hard
    Closed. On the ADJ period every action targets its General Ledger.

    Raises
    ------
    FiscalPeriodError
        If the period is Hard Closed, a period close rule forbids the
        action, or it is not offered for the overall status. Statuses are
        left unchanged.
    """
    action = PeriodAction.parse(action)
    if period.is_adjustment:
        return [
            perform_subledger_action(
                fiscal_year, period, Subledger.GENERAL_LEDGER, action
            )
        ]

    overall = overall_period_status(period)
    if overall is PeriodStatus.HARD_CLOSED:
        raise FiscalPeriodError(
            f"Period {period.name!r} is Hard Closed and cannot be modified.",
            period.id,
        )
    if action not in available_period_actions(period, fiscal_year):
        raise FiscalPeriodError(
            f"Action {action.value!r} is not available for period "
            f"{period.name!r} (status: {overall.value}).",
            period.id,
        )

    if action is not PeriodAction.HARD_CLOSE:
        _check_close_rules(fiscal_year, period, Subledger.GENERAL_LEDGER, action)
        return [_apply_action(period, Subledger.GENERAL_LEDGER, action)]

    # Hard closing the GL first closes AP and AR, which are then hard closed.
    return [
        _apply_action(period, subledger, action)
        for subledger in Subledger
        if period.status_of(subledger) is not PeriodStatus.HARD_CLOSED
    ]
