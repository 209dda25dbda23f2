from datetime import date

import pytest

from coa_studio.exceptions import FiscalPeriodError
from coa_studio.periods import (
    FiscalCalendarConfig,
    FiscalPeriod,
    PeriodAction,
    PeriodFrequency,
    PeriodStatus,
    Subledger,
    available_actions,
    available_period_actions,
    find_fiscal_year,
    generate_fiscal_years,
    overall_fiscal_year_status,
    overall_period_status,
    parse_month,
    perform_period_action,
    perform_subledger_action,
)

GL = Subledger.GENERAL_LEDGER
AP = Subledger.ACCOUNTS_PAYABLE
AR = Subledger.ACCOUNTS_RECEIVABLE

OPEN = PeriodStatus.OPEN
CLOSED = PeriodStatus.CLOSED
FUTURE = PeriodStatus.FUTURE
HARD_CLOSED = PeriodStatus.HARD_CLOSED


def fy2025(today: date):
    years = generate_fiscal_years(FiscalCalendarConfig(), today=today)
    return find_fiscal_year(years, "FY2025")


def statuses(period: FiscalPeriod) -> tuple:
    return tuple(period.status_of(s) for s in Subledger)


# ---------------------------------------------------------------------------
# Calendar generation
# ---------------------------------------------------------------------------


def test_monthly_calendar_with_adjustment_period() -> None:
    years = generate_fiscal_years(FiscalCalendarConfig(), today=date(2025, 3, 15))

    assert [fy.id for fy in years] == ["FY2025", "FY2026", "FY2027"]
    fy = years[0]
    assert (fy.start_date, fy.end_date) == (date(2025, 1, 1), date(2025, 12, 31))
    assert len(fy.periods) == 13

    first = fy.periods[0]
    assert (first.id, first.name) == ("FY2025-P1", "JAN-FY2025")
    assert (first.start_date, first.end_date) == (date(2025, 1, 1), date(2025, 1, 31))
    assert fy.periods[1].end_date == date(2025, 2, 28)

    assert statuses(fy.periods[1]) == (CLOSED, CLOSED, CLOSED)
    assert statuses(fy.periods[2]) == (OPEN, OPEN, OPEN)
    assert statuses(fy.periods[3]) == (FUTURE, FUTURE, FUTURE)

    adj = fy.periods[-1]
    assert (adj.id, adj.name, adj.is_adjustment) == ("FY2025-ADJ", "ADJ-FY2025", True)
    assert adj.start_date is None and adj.end_date is None
    assert adj.subledger_statuses == {GL: FUTURE}


def test_fiscal_year_is_labelled_by_its_end_year() -> None:
    config = FiscalCalendarConfig(start_month=7, start_year=2024, years=1)
    (fy,) = generate_fiscal_years(config, today=date(2024, 1, 1))

    assert fy.id == "FY2025"
    assert fy.end_date == date(2025, 6, 30)
    assert fy.periods[0].name == "JUL-FY2025"
    assert fy.periods[6].name == "JAN-FY2025"
    assert fy.periods[6].start_date == date(2025, 1, 1)


def test_four_four_five_calendar_has_quarterly_periods() -> None:
    config = FiscalCalendarConfig(
        start_month=10,
        start_year=2024,
        frequency=PeriodFrequency.FOUR_FOUR_FIVE,
        years=1,
    )
    (fy,) = generate_fiscal_years(config, today=date(2025, 2, 1))

    assert [p.id for p in fy.periods] == [
        "FY2025-Q1",
        "FY2025-Q2",
        "FY2025-Q3",
        "FY2025-Q4",
        "FY2025-ADJ",
    ]
    q1, q2 = fy.periods[0], fy.periods[1]
    assert (q1.start_date, q1.end_date) == (date(2024, 10, 1), date(2024, 12, 31))
    assert (q2.start_date, q2.end_date) == (date(2025, 1, 1), date(2025, 3, 31))
    assert q2.name == "Q2-FY2025"
    assert overall_period_status(q1) is CLOSED
    assert overall_period_status(q2) is OPEN


def test_invalid_calendar_configuration() -> None:
    with pytest.raises(FiscalPeriodError, match="1900 or later"):
        generate_fiscal_years(FiscalCalendarConfig(start_year=1800))
    with pytest.raises(FiscalPeriodError, match="At least one"):
        generate_fiscal_years(FiscalCalendarConfig(years=0))


@pytest.mark.parametrize(
    "raw, expected", [("July", 7), ("january", 1), ("12", 12), (3, 3)]
)
def test_parse_month(raw, expected) -> None:
    assert parse_month(raw) == expected


@pytest.mark.parametrize("raw", ["Juli", 0, 13, "13"])
def test_parse_month_rejects_unknown_months(raw) -> None:
    with pytest.raises(ValueError):
        parse_month(raw)


def test_action_and_subledger_names_are_parsed_leniently() -> None:
    assert PeriodAction.parse("hard-close") is PeriodAction.HARD_CLOSE
    assert PeriodAction.parse("Reopen") is PeriodAction.REOPEN
    assert Subledger.parse("ap") is AP
    assert Subledger.parse("General Ledger") is GL
    with pytest.raises(FiscalPeriodError):
        PeriodAction.parse("Archive")
    with pytest.raises(FiscalPeriodError):
        Subledger.parse("FA")


# ---------------------------------------------------------------------------
# Roll-ups
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "values, expected",
    [
        ((HARD_CLOSED, HARD_CLOSED, HARD_CLOSED), HARD_CLOSED),
        ((HARD_CLOSED, CLOSED, CLOSED), CLOSED),
        ((CLOSED, OPEN, CLOSED), OPEN),
        ((CLOSED, FUTURE, CLOSED), FUTURE),
        ((FUTURE, FUTURE, FUTURE), FUTURE),
    ],
)
def test_overall_period_status(values, expected) -> None:
    period = FiscalPeriod("p", "P", subledger_statuses=dict(zip(Subledger, values)))
    assert overall_period_status(period) is expected


def test_overall_fiscal_year_status() -> None:
    years = generate_fiscal_years(FiscalCalendarConfig(), today=date(2025, 3, 15))
    assert overall_fiscal_year_status(years[0]) is OPEN
    assert overall_fiscal_year_status(years[1]) is FUTURE

    # Every regular period is closed, the ADJ period is still Future.
    closed_year = fy2025(date(2026, 1, 10))
    assert overall_fiscal_year_status(closed_year) is FUTURE
    adj = closed_year.adjustment_period
    perform_period_action(closed_year, adj, PeriodAction.OPEN)
    perform_period_action(closed_year, adj, PeriodAction.CLOSE)
    assert overall_fiscal_year_status(closed_year) is CLOSED


# ---------------------------------------------------------------------------
# Actions and cascade
# ---------------------------------------------------------------------------


def test_available_actions_per_status() -> None:
    fy = fy2025(date(2025, 3, 15))
    feb, mar, apr = fy.periods[1], fy.periods[2], fy.periods[3]

    assert available_actions(feb, fy, AP) == [
        PeriodAction.REOPEN,
        PeriodAction.HARD_CLOSE,
    ]
    assert available_actions(mar, fy, GL) == [
        PeriodAction.CLOSE,
        PeriodAction.HARD_CLOSE,
    ]
    assert available_actions(apr, fy, AR) == [PeriodAction.OPEN]
    assert available_period_actions(apr, fy) == [PeriodAction.OPEN]


def test_closing_the_general_ledger_closes_ap_and_ar() -> None:
    fy = fy2025(date(2025, 3, 15))
    mar = fy.require_period("FY2025-P3")

    (result,) = perform_period_action(fy, mar, PeriodAction.CLOSE)

    assert result.new_status is CLOSED
    assert result.cascaded == (AP, AR)
    assert result.message == (
        "General Ledger set to Closed. Also, AP and AR automatically set to Closed."
    )
    assert statuses(mar) == (CLOSED, CLOSED, CLOSED)


def test_opening_the_general_ledger_opens_matching_subledgers() -> None:
    fy = fy2025(date(2025, 3, 15))
    apr = fy.require_period("FY2025-P4")

    result = perform_subledger_action(fy, apr, GL, PeriodAction.OPEN)

    assert result.cascaded == (AP, AR)
    assert statuses(apr) == (OPEN, OPEN, OPEN)


def test_cascade_leaves_hard_closed_subledgers_alone() -> None:
    fy = fy2025(date(2025, 3, 15))
    feb = fy.require_period("FY2025-P2")
    perform_subledger_action(fy, feb, AP, PeriodAction.HARD_CLOSE)

    reopened = perform_subledger_action(fy, feb, GL, PeriodAction.REOPEN)
    assert reopened.cascaded == (AR,)
    assert statuses(feb) == (OPEN, HARD_CLOSED, OPEN)

    closed = perform_subledger_action(fy, feb, GL, PeriodAction.CLOSE)
    assert closed.cascaded == (AR,)
    assert statuses(feb) == (CLOSED, HARD_CLOSED, CLOSED)


def test_subledger_actions_do_not_cascade_to_the_general_ledger() -> None:
    fy = fy2025(date(2025, 3, 15))
    apr = fy.require_period("FY2025-P4")

    result = perform_subledger_action(fy, apr, AP, "Open")

    assert result.cascaded == ()
    assert statuses(apr) == (FUTURE, OPEN, FUTURE)
    assert overall_period_status(apr) is OPEN


def test_action_not_offered_for_status_is_refused() -> None:
    fy = fy2025(date(2025, 3, 15))
    apr = fy.require_period("FY2025-P4")

    with pytest.raises(FiscalPeriodError, match="not available") as excinfo:
        perform_subledger_action(fy, apr, AP, PeriodAction.CLOSE)
    assert excinfo.value.period_id == "FY2025-P4"
    assert statuses(apr) == (FUTURE, FUTURE, FUTURE)


# ---------------------------------------------------------------------------
# Adjustment period
# ---------------------------------------------------------------------------


def test_adjustment_period_opens_only_after_every_regular_gl_is_closed() -> None:
    fy = fy2025(date(2025, 3, 15))
    adj = fy.adjustment_period

    assert available_actions(adj, fy, GL) == []
    assert available_actions(adj, fy, AP) == []
    with pytest.raises(FiscalPeriodError, match="until all regular periods"):
        perform_period_action(fy, adj, PeriodAction.OPEN)
    assert adj.status_of(GL) is FUTURE

    closed_year = fy2025(date(2026, 1, 10))
    adj = closed_year.adjustment_period
    assert available_period_actions(adj, closed_year) == [PeriodAction.OPEN]
    (result,) = perform_period_action(closed_year, adj, PeriodAction.OPEN)
    assert result.new_status is OPEN
    assert result.cascaded == ()


def test_regular_gl_cannot_reopen_once_adjustment_period_processed() -> None:
    fy = fy2025(date(2026, 1, 10))
    dec = fy.require_period("FY2025-P12")

    # Reopening is allowed while the ADJ period is still Future.
    perform_period_action(fy, dec, PeriodAction.REOPEN)
    perform_period_action(fy, dec, PeriodAction.CLOSE)

    perform_period_action(fy, fy.adjustment_period, PeriodAction.OPEN)
    with pytest.raises(FiscalPeriodError, match="already been processed"):
        perform_period_action(fy, dec, PeriodAction.REOPEN)
    with pytest.raises(FiscalPeriodError, match="already been processed"):
        perform_subledger_action(fy, dec, GL, PeriodAction.REOPEN)
    assert statuses(dec) == (CLOSED, CLOSED, CLOSED)


# ---------------------------------------------------------------------------
# Hard close
# ---------------------------------------------------------------------------


def test_period_hard_close_covers_every_subledger() -> None:
    fy = fy2025(date(2026, 1, 10))
    jan = fy.require_period("FY2025-P1")

    results = perform_period_action(fy, jan, PeriodAction.HARD_CLOSE)

    assert [r.subledger for r in results] == [GL, AP, AR]
    assert statuses(jan) == (HARD_CLOSED, HARD_CLOSED, HARD_CLOSED)
    assert overall_period_status(jan) is HARD_CLOSED


def test_hard_closed_is_terminal() -> None:
    fy = fy2025(date(2026, 1, 10))
    jan = fy.require_period("FY2025-P1")
    perform_period_action(fy, jan, PeriodAction.HARD_CLOSE)

    assert available_period_actions(jan, fy) == []
    for subledger in Subledger:
        assert available_actions(jan, fy, subledger) == []
        with pytest.raises(FiscalPeriodError, match="Hard Closed"):
            perform_subledger_action(fy, jan, subledger, PeriodAction.REOPEN)
    for action in PeriodAction:
        with pytest.raises(FiscalPeriodError, match="Hard Closed"):
            perform_period_action(fy, jan, action)


def test_hard_closed_adjustment_period_is_terminal() -> None:
    fy = fy2025(date(2026, 1, 10))
    adj = fy.adjustment_period
    perform_period_action(fy, adj, PeriodAction.OPEN)
    perform_period_action(fy, adj, PeriodAction.HARD_CLOSE)

    assert available_period_actions(adj, fy) == []
    with pytest.raises(FiscalPeriodError, match="Hard Closed"):
        perform_period_action(fy, adj, PeriodAction.REOPEN)


def test_unknown_period_and_fiscal_year() -> None:
    fy = fy2025(date(2025, 3, 15))
    with pytest.raises(FiscalPeriodError):
        fy.require_period("FY2025-P13")
    with pytest.raises(FiscalPeriodError):
        find_fiscal_year([fy], "FY2030")
