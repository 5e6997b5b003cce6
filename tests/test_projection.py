import dataclasses
import datetime as dt

import numpy as np
import pytest

from fplan_core.domain.errors import InvalidAssumptionError
from fplan_core.domain.models import (
    CategoryAssumption,
    Distribution,
    IncomeExpenseAssumption,
    MonteCarloConfig,
    OneTimeEvent,
    PlannedSale,
    PlanInputs,
    RecurringEvent,
    ReinvestmentAllocation,
)
from fplan_core.services import projection


def _plan(
    years=1.0,
    value=1000.0,
    annual_return=0.0,
    variance=0.0,
    income=12000.0,
    expenses=6000.0,
    reinvestment_rate=0.0,
    allocation=1.0,
    **events,
) -> PlanInputs:
    return PlanInputs(
        start_date=dt.date(2025, 1, 1),
        time_horizon_years=years,
        category_assumptions=[
            CategoryAssumption("stocks", "Stocks", value, annual_return, variance),
        ],
        income_expense=IncomeExpenseAssumption(
            annual_income=Distribution(income, variance * 10000),
            annual_expenses=Distribution(expenses, variance * 5000),
            reinvestment_rate=reinvestment_rate,
            reinvestment_allocation=[ReinvestmentAllocation("stocks", allocation)],
        ),
        **events,
    )


def test_monthly_rate_compounds_to_annual():
    assert (1 + projection.monthly_rate(0.12)) ** 12 == pytest.approx(1.12)
    assert projection.monthly_rate(-2.0) == pytest.approx(-1.0)


def test_expected_mode_arithmetic_without_returns():
    result = projection.project_net_worth(_plan())
    assert len(result.points) == 12
    assert result.points[0].period == "2025-01"
    assert result.points[-1].period == "2025-12"
    assert result.points[0].change.total == pytest.approx(500.0)
    assert result.points[-1].net_worth == pytest.approx(1000.0 + 12 * 500.0)
    assert result.points[-1].cash_balance == pytest.approx(6000.0)
    assert result.snapshot() == {}


def test_reinvestment_moves_surplus_into_categories():
    full = projection.project_net_worth(_plan(reinvestment_rate=0.5))
    last = full.points[-1]
    assert last.portfolio_value_by_category["stocks"] == pytest.approx(1000.0 + 12 * 250.0)
    assert last.cash_balance == pytest.approx(12 * 250.0)
    assert last.net_worth == pytest.approx(7000.0)

    # only the allocated share of the reinvested amount leaves cash
    partial = projection.project_net_worth(_plan(reinvestment_rate=0.5, allocation=0.5))
    assert partial.points[-1].cash_balance == pytest.approx(12 * 375.0)
    assert partial.points[-1].net_worth == pytest.approx(7000.0)


def test_deficits_are_not_reinvested():
    result = projection.project_net_worth(_plan(income=0.0, expenses=1200.0, reinvestment_rate=1.0))
    last = result.points[-1]
    assert last.total_portfolio_value == pytest.approx(1000.0)
    assert last.cash_balance == pytest.approx(-1200.0)


def test_growth_compounds_monthly():
    result = projection.project_net_worth(_plan(annual_return=0.10, income=0.0, expenses=0.0))
    assert result.points[-1].total_portfolio_value == pytest.approx(1100.0)
    assert sum(p.change.portfolio_growth for p in result.points) == pytest.approx(100.0)


def test_events_and_disabled_events():
    inputs = _plan(
        one_time_events=[
            OneTimeEvent("car", dt.date(2025, 3, 20), -2000.0, "Car"),
            OneTimeEvent("gift", dt.date(2025, 4, 1), 5000.0, "Gift", enabled=False),
            OneTimeEvent("topup", dt.date(2025, 5, 1), 300.0, "Top up", affects_category="stocks"),
        ],
        recurring_events=[
            RecurringEvent("gym", dt.date(2025, 2, 1), -50.0, "quarterly", "Gym", end_date=dt.date(2025, 8, 31)),
        ],
    )
    result = projection.project_net_worth(inputs)
    by_period = {p.period: p for p in result.points}

    assert [e.description for e in by_period["2025-03"].events] == ["Car"]
    assert by_period["2025-03"].change.event_impact == pytest.approx(-2000.0)
    assert by_period["2025-04"].events == []
    assert by_period["2025-05"].portfolio_value_by_category["stocks"] == pytest.approx(1300.0)
    gym_months = [p.period for p in result.points if any(e.description == "Gym" for e in p.events)]
    assert gym_months == ["2025-02", "2025-05", "2025-08"]
    assert result.points[-1].net_worth == pytest.approx(7000.0 - 2000.0 + 300.0 - 150.0)


def test_planned_sale_moves_value_to_cash():
    inputs = _plan(
        income=0.0,
        expenses=0.0,
        planned_sales=[PlannedSale("half", dt.date(2025, 2, 1), "stocks", 0.5, "Sell half")],
    )
    result = projection.project_net_worth(inputs)
    feb = result.points[1]
    assert feb.portfolio_value_by_category["stocks"] == pytest.approx(500.0)
    assert feb.cash_balance == pytest.approx(500.0)
    assert feb.net_worth == pytest.approx(1000.0)
    assert feb.events[0].type == "sale"
    assert feb.events[0].amount == pytest.approx(500.0)


def test_modes_are_ordered():
    results = projection.project_all_scenarios(_plan(years=3, annual_return=0.06, variance=0.04))
    finals = {mode: r.points[-1].net_worth for mode, r in results.items()}
    assert finals["conservative"] < finals["expected"] < finals["optimistic"]


def test_monte_carlo_is_reproducible_and_banded():
    inputs = _plan(years=2, annual_return=0.07, variance=0.15)
    config = MonteCarloConfig(trials=300, seed=7)
    first = projection.project_net_worth(inputs, "monte-carlo", config=config)
    second = projection.project_net_worth(inputs, "monte-carlo", config=config)

    assert first.trials == 300
    assert first.to_timeseries() == second.to_timeseries()
    for point in first.points:
        bands = point.distribution.percentiles
        assert bands["p10"] <= bands["p50"] <= bands["p90"]
    assert first.points[-1].distribution.spread() > 0
    assert set(first.snapshot()) == {"p10", "p50", "p90"}
    assert len(first.snapshot()["p50"]) == 24


def test_monte_carlo_without_variance_matches_expected():
    inputs = _plan(annual_return=0.05)
    expected = projection.project_net_worth(inputs)
    sampled = projection.project_net_worth(inputs, "monte-carlo", config=MonteCarloConfig(trials=20, seed=1))
    np.testing.assert_allclose(
        [p.net_worth for p in sampled.points],
        [p.net_worth for p in expected.points],
    )


def test_empty_horizon_and_unknown_mode():
    empty = projection.project_net_worth(_plan(years=0))
    assert empty.points == []
    assert empty.trials == 0
    with pytest.raises(ValueError):
        projection.project_net_worth(_plan(), "pessimistic")


def test_plan_validation():
    with pytest.raises(InvalidAssumptionError):
        CategoryAssumption("x", "X", -1.0, 0.05)
    with pytest.raises(InvalidAssumptionError):
        IncomeExpenseAssumption(Distribution(1.0), Distribution(1.0), reinvestment_rate=1.5)
    with pytest.raises(InvalidAssumptionError):
        PlanInputs(
            start_date=dt.date(2025, 1, 1),
            time_horizon_years=1,
            category_assumptions=[],
            income_expense=IncomeExpenseAssumption(
                Distribution(1.0),
                Distribution(1.0),
                reinvestment_allocation=[ReinvestmentAllocation("bonds", 1.0)],
            ),
        )
    with pytest.raises(InvalidAssumptionError):
        MonteCarloConfig(trials=0)
    with pytest.raises(InvalidAssumptionError):
        MonteCarloConfig(percentiles=(10, 150))


def test_sale_proceeds_join_reinvested_surplus():
    inputs = PlanInputs(
        start_date=dt.date(2025, 1, 1),
        time_horizon_years=1,
        category_assumptions=[
            CategoryAssumption("stocks", "Stocks", 1000.0, 0.0),
            CategoryAssumption("bonds", "Bonds", 0.0, 0.0),
        ],
        income_expense=IncomeExpenseAssumption(
            annual_income=Distribution(0.0),
            annual_expenses=Distribution(0.0),
            reinvestment_rate=1.0,
            reinvestment_allocation=[ReinvestmentAllocation("bonds", 1.0)],
        ),
        planned_sales=[PlannedSale("half", dt.date(2025, 2, 1), "stocks", 0.5, "Sell half")],
    )
    feb = projection.project_net_worth(inputs).points[1]
    assert feb.portfolio_value_by_category["stocks"] == pytest.approx(500.0)
    assert feb.portfolio_value_by_category["bonds"] == pytest.approx(500.0)
    assert feb.cash_balance == pytest.approx(0.0)
    assert feb.net_worth == pytest.approx(1000.0)


def test_partial_final_month_is_projected():
    result = projection.project_net_worth(_plan(years=1.04))
    assert len(result.points) == 13
    assert result.points[-1].period == "2026-01"


def test_expected_projection_is_repeatable():
    inputs = _plan(
        annual_return=0.06,
        reinvestment_rate=0.3,
        one_time_events=[OneTimeEvent("car", dt.date(2025, 3, 1), -2000.0, "Car")],
    )
    assert projection.project_net_worth(inputs) == projection.project_net_worth(inputs)


def test_disabled_event_removes_exactly_its_contribution():
    car = OneTimeEvent("car", dt.date(2025, 3, 20), -2000.0, "Car")
    gym = RecurringEvent("gym", dt.date(2025, 2, 1), -50.0, "quarterly", "Gym")
    with_car = projection.project_net_worth(_plan(one_time_events=[car], recurring_events=[gym]))
    without_car = projection.project_net_worth(
        _plan(one_time_events=[dataclasses.replace(car, enabled=False)], recurring_events=[gym])
    )

    for on, off in zip(with_car.points, without_car.points):
        contribution = -2000.0 if on.date >= dt.date(2025, 3, 1) else 0.0
        assert on.net_worth - off.net_worth == pytest.approx(contribution)
        assert [e.amount for e in on.events if e.description == "Gym"] == [
            e.amount for e in off.events if e.description == "Gym"
        ]
        assert all(e.description != "Car" for e in off.events)
