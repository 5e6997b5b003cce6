from __future__ import annotations

import dataclasses
import datetime as dt
import logging
import math
from typing import Dict, List, Optional, Tuple

import numpy as np

from fplan_core.domain import periods
from fplan_core.domain.models import (
    FREQUENCY_STEP,
    MonteCarloConfig,
    MonthlyChange,
    NetWorthDistribution,
    PlanInputs,
    ProjectionEvent,
    ProjectionPoint,
    ProjectionResult,
    RecurringEvent,
    enabled,
)

logger = logging.getLogger(__name__)

EXPECTED = "expected"
CONSERVATIVE = "conservative"
OPTIMISTIC = "optimistic"
MONTE_CARLO = "monte-carlo"
DETERMINISTIC_MODES = (CONSERVATIVE, EXPECTED, OPTIMISTIC)
MODES = DETERMINISTIC_MODES + (MONTE_CARLO,)

# direction in which a deterministic mode moves each assumption by its variance
_MODE_SHIFT = {CONSERVATIVE: -1.0, EXPECTED: 0.0, OPTIMISTIC: 1.0}


@dataclasses.dataclass
class _Draws:
    returns: np.ndarray  # (trials, months, categories) monthly rates
    income: np.ndarray  # (trials,) monthly income
    expenses: np.ndarray  # (trials,) monthly expenses


def monthly_rate(annual_return):
    """Geometric monthly equivalent of an annual return; losses floor at -100%."""
    annual = np.maximum(np.asarray(annual_return, dtype=float), -1.0)
    return np.power(1.0 + annual, 1.0 / 12.0) - 1.0


def _deterministic_draws(inputs: PlanInputs, mode: str, months: int) -> _Draws:
    shift = _MODE_SHIFT[mode]
    annual = np.array(
        [c.expected_annual_return + shift * c.variance for c in inputs.category_assumptions],
        dtype=float,
    )
    rates = monthly_rate(annual)
    returns = np.broadcast_to(rates, (1, months, len(rates))).copy()

    ie = inputs.income_expense
    income = ie.annual_income.mean + shift * ie.annual_income.variance
    expenses = ie.annual_expenses.mean - shift * ie.annual_expenses.variance
    return _Draws(returns=returns, income=np.array([income / 12.0]), expenses=np.array([expenses / 12.0]))


def _sampled_draws(inputs: PlanInputs, months: int, config: MonteCarloConfig) -> _Draws:
    """
    Normal monthly returns per category, centred on the geometric monthly rate
    with the annual variance scaled by sqrt(12). Income and expenses are drawn
    once per trial.
    """
    rng = np.random.default_rng(config.seed)
    cats = inputs.category_assumptions
    mu = monthly_rate([c.expected_annual_return for c in cats])
    sigma = np.array([c.variance for c in cats], dtype=float) / np.sqrt(12)

    returns = rng.normal(mu, sigma, size=(config.trials, months, len(cats)))
    returns = np.maximum(returns, -1.0)

    ie = inputs.income_expense
    income = np.maximum(rng.normal(ie.annual_income.mean, ie.annual_income.variance, size=config.trials), 0.0)
    expenses = np.maximum(rng.normal(ie.annual_expenses.mean, ie.annual_expenses.variance, size=config.trials), 0.0)
    return _Draws(returns=returns, income=income / 12.0, expenses=expenses / 12.0)


def recurring_due(event: RecurringEvent, month: dt.date) -> bool:
    """Whether a recurring event has an occurrence in the calendar month of ``month``."""
    offset = periods.months_between(event.start_date, month)
    if offset < 0:
        return False
    if event.end_date is not None and periods.months_between(month, event.end_date) < 0:
        return False
    return offset % FREQUENCY_STEP[event.frequency] == 0


def horizon_months(inputs: PlanInputs) -> List[dt.date]:
    count = math.ceil(inputs.time_horizon_years * 12)
    first = periods.month_start(inputs.start_date)
    return [periods.add_months(first, i) for i in range(max(count, 0))]


def _simulate(
    inputs: PlanInputs,
    months: List[dt.date],
    draws: _Draws,
    percentiles: Optional[Tuple[int, ...]] = None,
) -> List[ProjectionPoint]:
    cats = inputs.category_assumptions
    ids = [c.category_id for c in cats]
    index = {cid: i for i, cid in enumerate(ids)}
    trials = draws.income.shape[0]

    values = np.tile(np.array([c.current_value for c in cats], dtype=float), (trials, 1))
    cash = np.zeros(trials)

    ie = inputs.income_expense
    allocation = np.zeros(len(cats))
    for a in ie.reinvestment_allocation:
        allocation[index[a.category_id]] += a.percentage

    one_time = enabled(inputs.one_time_events)
    recurring = enabled(inputs.recurring_events)

    points: List[ProjectionPoint] = []
    previous_net_worth = values.sum(axis=1) + cash

    for m, month in enumerate(months):
        events: List[ProjectionEvent] = []

        # 1. portfolio growth
        before = values.sum(axis=1)
        values = values * (1.0 + draws.returns[:, m, :])
        growth = values.sum(axis=1) - before

        # 2. baseline income minus expenses
        base_flow = draws.income - draws.expenses

        # 3-4. scheduled events
        event_cash = 0.0
        event_impact = 0.0
        for event in one_time:
            if not periods.same_month(event.date, month):
                continue
            event_impact += event.amount
            if event.affects_category in index:
                values[:, index[event.affects_category]] += event.amount
            else:
                event_cash += event.amount
            events.append(ProjectionEvent(type="one-time", description=event.description, amount=event.amount))

        for event in recurring:
            if not recurring_due(event, month):
                continue
            event_impact += event.amount
            event_cash += event.amount
            events.append(ProjectionEvent(type="recurring", description=event.description, amount=event.amount))

        # 5. planned sales move category value into cash
        sale_cash = np.zeros(trials)
        for sale in inputs.planned_sales:
            if not periods.same_month(sale.date, month):
                continue
            proceeds = np.zeros(trials)
            if sale.category_id in index:
                j = index[sale.category_id]
                proceeds = values[:, j] * sale.percentage_of_category
                values[:, j] -= proceeds
            sale_cash += proceeds
            events.append(ProjectionEvent(type="sale", description=sale.description, amount=float(proceeds.mean())))

        # 6. reinvest part of a surplus (sale proceeds included), keep the rest as cash
        flow = base_flow + event_cash + sale_cash
        reinvest = np.maximum(flow, 0.0) * ie.reinvestment_rate
        invested = reinvest[:, None] * allocation[None, :]
        values = values + invested
        cash = cash + flow - invested.sum(axis=1)

        # 7. totals
        portfolio = values.sum(axis=1)
        net_worth = portfolio + cash

        distribution: Optional[NetWorthDistribution] = None
        if percentiles is not None:
            distribution = NetWorthDistribution(
                mean=float(net_worth.mean()),
                std=float(net_worth.std()),
                percentiles={f"p{p}": float(np.percentile(net_worth, p)) for p in percentiles},
            )

        points.append(
            ProjectionPoint(
                date=month,
                period=periods.period_key(month),
                net_worth=float(net_worth.mean()),
                cash_balance=float(cash.mean()),
                portfolio_value_by_category={cid: float(values[:, i].mean()) for cid, i in index.items()},
                total_portfolio_value=float(portfolio.mean()),
                events=events,
                change=MonthlyChange(
                    total=float((net_worth - previous_net_worth).mean()),
                    portfolio_growth=float(growth.mean()),
                    cash_flow=float(base_flow.mean()),
                    event_impact=float(event_impact),
                ),
                distribution=distribution,
            )
        )
        previous_net_worth = net_worth

    return points


def project_net_worth(
    inputs: PlanInputs,
    mode: str = EXPECTED,
    *,
    config: Optional[MonteCarloConfig] = None,
) -> ProjectionResult:
    """
    Month-by-month net worth projection.

    Deterministic modes ("expected", "conservative", "optimistic") run a single
    path with every assumption at its mean, shifted by its variance against or
    in favour of the plan. "monte-carlo" runs ``config.trials`` independent
    sampled paths as one numpy batch; points then hold across-trial means and a
    per-month distribution summary.
    """
    if mode not in MODES:
        raise ValueError(f"Unknown projection mode {mode!r}; expected one of {MODES}")

    months = horizon_months(inputs)
    if not months:
        return ProjectionResult(mode=mode, points=[], trials=0)

    if mode == MONTE_CARLO:
        config = config or MonteCarloConfig()
        draws = _sampled_draws(inputs, len(months), config)
        points = _simulate(inputs, months, draws, percentiles=config.percentiles)
        trials = config.trials
    else:
        draws = _deterministic_draws(inputs, mode, len(months))
        points = _simulate(inputs, months, draws)
        trials = 1

    logger.debug(
        "Projected %d months in %s mode (%d trials), final net worth %.2f",
        len(points),
        mode,
        trials,
        points[-1].net_worth,
    )
    return ProjectionResult(mode=mode, points=points, trials=trials)


def project_all_scenarios(inputs: PlanInputs) -> Dict[str, ProjectionResult]:
    return {mode: project_net_worth(inputs, mode) for mode in DETERMINISTIC_MODES}
