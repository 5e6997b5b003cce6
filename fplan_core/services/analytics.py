from __future__ import annotations

import dataclasses
import datetime as dt
from typing import Dict, List, Mapping, Optional, Sequence, Union

import numpy as np

from fplan_core.domain import periods
from fplan_core.domain.models import (
    CategoryAssumption,
    OneTimeEvent,
    ProjectionPoint,
    ProjectionResult,
    RecurringEvent,
    ScenarioResult,
)
from fplan_core.services.aggregation import aggregate_projection
from fplan_core.services.projection import recurring_due

TOP_EVENTS = 5


def _ratio(numerator: float, denominator: float) -> Optional[float]:
    """Percentage of numerator over denominator, None when undefined."""
    if denominator == 0:
        return None
    return numerator / denominator * 100.0


def _mean(values: Sequence[float]) -> float:
    return float(np.mean(values)) if len(values) else 0.0


# -------------------------------
# Scenario balance stats
# -------------------------------


@dataclasses.dataclass
class BalanceStats:
    net_change: float
    net_change_percent: Optional[float]
    lowest_balance: float
    lowest_period: Optional[str]  # None when nothing dipped below the initial balance
    is_lowest_below_initial: bool
    average_change: float
    period_count: int


def balance_stats(series: Mapping[str, float], initial_balance: float) -> BalanceStats:
    """Headline stats of a period-keyed balance series against its starting value."""
    final = list(series.values())[-1] if series else initial_balance
    net_change = final - initial_balance

    lowest_balance, lowest_period = initial_balance, None
    for key, value in series.items():
        if value < lowest_balance:
            lowest_balance, lowest_period = value, key

    count = len(series)
    return BalanceStats(
        net_change=net_change,
        net_change_percent=_ratio(net_change, initial_balance),
        lowest_balance=lowest_balance,
        lowest_period=lowest_period,
        is_lowest_below_initial=lowest_balance < initial_balance,
        average_change=net_change / count if count else 0.0,
        period_count=count,
    )


def scenario_stats(result: ScenarioResult, initial_balance: float) -> BalanceStats:
    return balance_stats(result.balance, initial_balance)


# -------------------------------
# Projection analytics
# -------------------------------


@dataclasses.dataclass
class YearlyMetric:
    year: int
    start_date: dt.date
    end_date: dt.date
    starting_net_worth: float
    ending_net_worth: float
    annual_increase: float
    annual_return: Optional[float]  # percentage
    portfolio_growth: float
    cash_flow: float
    event_impact: float


@dataclasses.dataclass
class YearRecord:
    year: int
    increase: float
    annual_return: Optional[float]


@dataclasses.dataclass
class GrowthSummary:
    average_annual_increase: float = 0.0
    max_annual_increase: float = 0.0
    min_annual_increase: float = 0.0
    average_annual_return: Optional[float] = None
    max_annual_return: Optional[float] = None
    min_annual_return: Optional[float] = None
    best_year: Optional[YearRecord] = None
    worst_year: Optional[YearRecord] = None


@dataclasses.dataclass
class PortfolioGrowthMetrics:
    starting_net_worth: float = 0.0
    ending_net_worth: float = 0.0
    total_growth: float = 0.0
    total_growth_percent: Optional[float] = None
    cagr: Optional[float] = None  # percentage
    yearly_metrics: List[YearlyMetric] = dataclasses.field(default_factory=list)
    summary: GrowthSummary = dataclasses.field(default_factory=GrowthSummary)


@dataclasses.dataclass
class RankedEvent:
    event: Union[OneTimeEvent, RecurringEvent]
    impact: float
    date: dt.date
    type: str  # "one-time" or "recurring"
    tags: List[str]
    event_type: Optional[str]  # metadata["type"]


@dataclasses.dataclass
class EventGrouping:
    count: int = 0
    total_impact: float = 0.0
    average_impact: float = 0.0
    events: List[RankedEvent] = dataclasses.field(default_factory=list)

    def add(self, ranked: RankedEvent) -> None:
        self.count += 1
        self.total_impact += ranked.impact
        self.average_impact = self.total_impact / self.count
        self.events.append(ranked)


@dataclasses.dataclass
class EventAnalytics:
    top_positive: List[RankedEvent]
    top_negative: List[RankedEvent]
    total_event_impact: float
    event_count: int
    by_type: Dict[str, EventGrouping]
    by_tag: Dict[str, EventGrouping]
    largest_single_event: Optional[RankedEvent]


@dataclasses.dataclass
class YearlyCashFlow:
    year: int
    income: float
    expenses: float
    net_cash_flow: float
    savings_rate: Optional[float]


@dataclasses.dataclass
class CashFlowMetrics:
    total_income: float
    total_expenses: float
    net_cash_flow: float
    savings_rate: Optional[float]
    yearly_breakdown: List[YearlyCashFlow]
    average_annual_income: float
    average_annual_expenses: float


@dataclasses.dataclass
class CategoryMetric:
    category_id: str
    category_name: str
    starting_value: float
    ending_value: float
    total_growth: float
    total_growth_percent: Optional[float]
    annual_return: Optional[float]
    allocation_start: Optional[float]
    allocation_end: Optional[float]


@dataclasses.dataclass
class CategoryBreakdown:
    categories: List[CategoryMetric]
    top_performer: Optional[CategoryMetric]
    most_growth: Optional[CategoryMetric]


@dataclasses.dataclass
class ProjectionAnalytics:
    balance: BalanceStats
    portfolio_growth: PortfolioGrowthMetrics
    events: EventAnalytics
    cash_flow: CashFlowMetrics
    categories: CategoryBreakdown


def _annualised(start: float, end: float, years: float) -> Optional[float]:
    if start <= 0 or end <= 0 or years <= 0:
        return None
    return (float(np.power(end / start, 1.0 / years)) - 1.0) * 100.0


def yearly_metrics(points: Sequence[ProjectionPoint]) -> List[YearlyMetric]:
    metrics: List[YearlyMetric] = []
    previous: Optional[float] = None
    for year in aggregate_projection(points, periods.YEARLY):
        starting = previous if previous is not None else points[0].net_worth
        increase = year.net_worth - starting
        metrics.append(
            YearlyMetric(
                year=year.date.year,
                start_date=year.period_start,
                end_date=year.period_end,
                starting_net_worth=starting,
                ending_net_worth=year.net_worth,
                annual_increase=increase,
                annual_return=_ratio(increase, starting),
                portfolio_growth=year.summary.total_portfolio_growth,
                cash_flow=year.summary.total_cash_flow,
                event_impact=year.summary.total_event_impact,
            )
        )
        previous = year.net_worth
    return metrics


def portfolio_growth_metrics(projection: ProjectionResult) -> PortfolioGrowthMetrics:
    points = projection.points
    if not points:
        return PortfolioGrowthMetrics()

    start, end = points[0].net_worth, points[-1].net_worth
    years = yearly_metrics(points)
    increases = [y.annual_increase for y in years]
    returns = [y.annual_return for y in years if y.annual_return is not None]
    ranked = [y for y in years if y.annual_return is not None]

    summary = GrowthSummary(
        average_annual_increase=_mean(increases),
        max_annual_increase=max(increases),
        min_annual_increase=min(increases),
    )
    if ranked:
        best = max(ranked, key=lambda y: y.annual_return)
        worst = min(ranked, key=lambda y: y.annual_return)
        summary.average_annual_return = _mean(returns)
        summary.max_annual_return = max(returns)
        summary.min_annual_return = min(returns)
        summary.best_year = YearRecord(best.year, best.annual_increase, best.annual_return)
        summary.worst_year = YearRecord(worst.year, worst.annual_increase, worst.annual_return)

    return PortfolioGrowthMetrics(
        starting_net_worth=start,
        ending_net_worth=end,
        total_growth=end - start,
        total_growth_percent=_ratio(end - start, start),
        cagr=_annualised(start, end, len(points) / 12.0),
        yearly_metrics=years,
        summary=summary,
    )


def count_occurrences(event: RecurringEvent, months: Sequence[dt.date]) -> int:
    return sum(1 for month in months if recurring_due(event, month))


def event_analytics(
    one_time_events: Sequence[OneTimeEvent],
    recurring_events: Sequence[RecurringEvent],
    projection: ProjectionResult,
) -> EventAnalytics:
    months = [p.date for p in projection.points]
    ranked: List[RankedEvent] = []

    for event in one_time_events:
        if not event.enabled:
            continue
        ranked.append(
            RankedEvent(event, event.amount, event.date, "one-time", list(event.tags), event.metadata.get("type"))
        )
    for event in recurring_events:
        if not event.enabled:
            continue
        impact = event.amount * count_occurrences(event, months)
        ranked.append(
            RankedEvent(event, impact, event.start_date, "recurring", list(event.tags), event.metadata.get("type"))
        )

    by_type: Dict[str, EventGrouping] = {}
    by_tag: Dict[str, EventGrouping] = {}
    for item in ranked:
        by_type.setdefault(item.event_type or "other", EventGrouping()).add(item)
        for tag in item.tags or ["untagged"]:
            by_tag.setdefault(tag, EventGrouping()).add(item)

    positive = sorted((e for e in ranked if e.impact > 0), key=lambda e: e.impact, reverse=True)
    negative = sorted((e for e in ranked if e.impact < 0), key=lambda e: e.impact)
    return EventAnalytics(
        top_positive=positive[:TOP_EVENTS],
        top_negative=negative[:TOP_EVENTS],
        total_event_impact=sum(e.impact for e in ranked),
        event_count=len(ranked),
        by_type=by_type,
        by_tag=by_tag,
        largest_single_event=max(ranked, key=lambda e: abs(e.impact), default=None),
    )


def cash_flow_metrics(projection: ProjectionResult) -> CashFlowMetrics:
    """Yearly split of the baseline income-minus-expense flow into surplus and shortfall."""
    breakdown: List[YearlyCashFlow] = []
    for year in aggregate_projection(projection.points, periods.YEARLY):
        flow = year.summary.total_cash_flow
        income = max(flow, 0.0)
        expenses = max(-flow, 0.0)
        breakdown.append(
            YearlyCashFlow(
                year=year.date.year,
                income=income,
                expenses=expenses,
                net_cash_flow=flow,
                savings_rate=_ratio(flow, income),
            )
        )

    total_income = sum(y.income for y in breakdown)
    total_expenses = sum(y.expenses for y in breakdown)
    years = len(breakdown) or 1
    return CashFlowMetrics(
        total_income=total_income,
        total_expenses=total_expenses,
        net_cash_flow=total_income - total_expenses,
        savings_rate=_ratio(total_income - total_expenses, total_income),
        yearly_breakdown=breakdown,
        average_annual_income=total_income / years,
        average_annual_expenses=total_expenses / years,
    )


def category_breakdown(
    projection: ProjectionResult,
    category_assumptions: Sequence[CategoryAssumption],
) -> CategoryBreakdown:
    points = projection.points
    if not points or not category_assumptions:
        return CategoryBreakdown(categories=[], top_performer=None, most_growth=None)

    end_values = points[-1].portfolio_value_by_category
    total_start = sum(c.current_value for c in category_assumptions)
    total_end = sum(end_values.values())
    years = len(points) / 12.0

    categories: List[CategoryMetric] = []
    for cat in category_assumptions:
        start = cat.current_value
        end = end_values.get(cat.category_id, 0.0)
        categories.append(
            CategoryMetric(
                category_id=cat.category_id,
                category_name=cat.category_name,
                starting_value=start,
                ending_value=end,
                total_growth=end - start,
                total_growth_percent=_ratio(end - start, start),
                annual_return=_annualised(start, end, years),
                allocation_start=_ratio(start, total_start) if total_start > 0 else None,
                allocation_end=_ratio(end, total_end) if total_end > 0 else None,
            )
        )

    with_return = [c for c in categories if c.annual_return is not None]
    return CategoryBreakdown(
        categories=categories,
        top_performer=max(with_return, key=lambda c: c.annual_return, default=None),
        most_growth=max(categories, key=lambda c: c.total_growth),
    )


def generate_projection_analytics(
    projection: ProjectionResult,
    one_time_events: Sequence[OneTimeEvent],
    recurring_events: Sequence[RecurringEvent],
    category_assumptions: Sequence[CategoryAssumption],
) -> ProjectionAnalytics:
    series = {p.period: p.net_worth for p in projection.points}
    return ProjectionAnalytics(
        balance=balance_stats(series, sum(c.current_value for c in category_assumptions)),
        portfolio_growth=portfolio_growth_metrics(projection),
        events=event_analytics(one_time_events, recurring_events, projection),
        cash_flow=cash_flow_metrics(projection),
        categories=category_breakdown(projection, category_assumptions),
    )
