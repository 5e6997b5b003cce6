import datetime as dt

import pytest

from fplan_core.domain.models import (
    CategoryAssumption,
    Distribution,
    IncomeExpenseAssumption,
    OneTimeEvent,
    PlanInputs,
    RecurringEvent,
)
from fplan_core.services import aggregation
from fplan_core.services.projection import project_net_worth
from fplan_core.services.scenario import make_one_off, make_recurring, make_scenario, run_scenario


def _three_month_result():
    salary = make_recurring(name="Salary", type="income", amount=1000, start_date=dt.date(2025, 1, 1))
    return run_scenario(make_scenario("", [salary]), 0.0, dt.date(2025, 1, 1), dt.date(2025, 3, 1))


def test_yearly_scenario_takes_last_balance_and_summed_cashflow():
    yearly = aggregation.aggregate_scenario(_three_month_result(), "yearly")
    assert yearly.balance == {"2025": 3000.0}
    assert yearly.cashflow["2025"].amount == 3000.0
    assert len(yearly.cashflow["2025"].events) == 3


def test_quarterly_scenario_spanning_years():
    scenario = make_scenario(
        "",
        [
            make_recurring(name="Salary", type="income", amount=100, start_date=dt.date(2024, 11, 1)),
            make_one_off(name="Fee", type="expense", amount=50, date=dt.date(2025, 2, 1)),
        ],
    )
    result = run_scenario(scenario, 0.0, dt.date(2024, 11, 1), dt.date(2025, 4, 1))
    quarterly = aggregation.aggregate_scenario(result, "quarterly")
    assert list(quarterly.balance) == ["2024-Q4", "2025-Q1", "2025-Q2"]
    assert quarterly.balance["2025-Q1"] == 450.0
    assert quarterly.cashflow["2025-Q1"].amount == 250.0
    assert [e.name for e in quarterly.cashflow["2025-Q1"].events] == ["Salary", "Salary", "Fee", "Salary"]


def test_monthly_scenario_is_unchanged():
    result = _three_month_result()
    assert aggregation.aggregate_scenario(result, "monthly") is result


def _projection():
    inputs = PlanInputs(
        start_date=dt.date(2025, 1, 1),
        time_horizon_years=2,
        category_assumptions=[CategoryAssumption("cash", "Cash", 1000.0, 0.0)],
        income_expense=IncomeExpenseAssumption(Distribution(1200.0), Distribution(0.0)),
        one_time_events=[OneTimeEvent("bonus", dt.date(2025, 5, 1), 500.0, "Bonus")],
    )
    return project_net_worth(inputs)


def test_yearly_projection_points():
    points = aggregation.aggregate_projection(_projection().points, "yearly")
    assert [p.period for p in points] == ["2025", "2026"]

    first = points[0]
    assert first.date == dt.date(2025, 12, 31)
    assert first.period_start == dt.date(2025, 1, 1)
    assert first.net_worth == pytest.approx(1000.0 + 1200.0 + 500.0)
    assert first.summary.total_change == pytest.approx(1700.0)
    assert first.summary.total_cash_flow == pytest.approx(1200.0)
    assert first.summary.total_event_impact == pytest.approx(500.0)
    assert first.summary.event_count == 1
    assert first.events[0].date == dt.date(2025, 5, 1)


def test_monthly_projection_is_relabelled():
    projected = _projection()
    points = aggregation.aggregate_projection(projected.points, "monthly")
    assert len(points) == 24
    assert points[4].summary.event_count == 1
    assert points[4].period_end == dt.date(2025, 5, 31)


def test_event_markers_grouped_by_quarter():
    projected = _projection()
    quarters = aggregation.aggregate_projection(projected.points, "quarterly")
    markers = [
        aggregation.EventMarker.from_event(OneTimeEvent("a", dt.date(2025, 2, 3), 10.0, "A")),
        aggregation.EventMarker.from_event(OneTimeEvent("b", dt.date(2025, 3, 9), -5.0, "B")),
        aggregation.EventMarker.from_event(RecurringEvent("c", dt.date(2025, 7, 1), 1.0, "monthly", "C")),
    ]
    groups = aggregation.group_event_markers(markers, quarters, "quarterly")

    assert [g.period for g in groups] == ["2025-Q1", "2025-Q3"]
    assert [m.id for m in groups[0].events] == ["a", "b"]
    assert groups[0].display_date == dt.date(2025, 3, 31)
    assert groups[0].net_worth_at_period == pytest.approx(quarters[0].net_worth)
    assert groups[1].events[0].type == "recurring"


def test_period_labels():
    day = dt.date(2025, 8, 1)
    assert aggregation.format_period_label(day, "monthly") == "Aug 2025"
    assert aggregation.format_period_label(day, "quarterly") == "Q3 2025"
    assert aggregation.format_period_label(day, "yearly") == "2025"
