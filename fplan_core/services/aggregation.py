from __future__ import annotations

import dataclasses
import datetime as dt
from typing import Dict, List, Optional, Sequence, Union

import pandas as pd

from fplan_core.domain import periods
from fplan_core.domain.models import (
    CashflowEntry,
    NetWorthDistribution,
    OneTimeEvent,
    ProjectionPoint,
    RecurringEvent,
    ScenarioResult,
)


@dataclasses.dataclass
class PeriodSummary:
    total_change: float
    total_portfolio_growth: float
    total_cash_flow: float
    total_event_impact: float
    event_count: int


@dataclasses.dataclass
class AggregatedEvent:
    date: dt.date  # month the event landed in
    type: str
    description: str
    amount: Optional[float] = None


@dataclasses.dataclass
class AggregatedPoint:
    period: str
    date: dt.date  # end of period
    period_start: dt.date
    period_end: dt.date
    net_worth: float
    cash_balance: float
    portfolio_value_by_category: Dict[str, float]
    total_portfolio_value: float
    events: List[AggregatedEvent]
    summary: PeriodSummary
    distribution: Optional[NetWorthDistribution] = None


@dataclasses.dataclass
class EventMarker:
    id: str
    date: dt.date
    description: str
    amount: float
    type: str  # "one-time" or "recurring"
    enabled: bool = True
    emoji: Optional[str] = None

    @classmethod
    def from_event(cls, event: Union[OneTimeEvent, RecurringEvent]) -> "EventMarker":
        if isinstance(event, OneTimeEvent):
            return cls(event.id, event.date, event.description, event.amount, "one-time", event.enabled, event.emoji)
        return cls(event.id, event.start_date, event.description, event.amount, "recurring", event.enabled, event.emoji)


@dataclasses.dataclass
class EventMarkerGroup:
    period: str
    period_start: dt.date
    period_end: dt.date
    display_date: dt.date
    events: List[EventMarker]
    net_worth_at_period: float


def aggregate_scenario(result: ScenarioResult, scale: str) -> ScenarioResult:
    """
    Resamples a monthly scenario result:
    - balance is the last contained month (a point-in-time value);
    - cash flow is the sum of contained months;
    - fired events are concatenated in month order.
    """
    if scale == periods.MONTHLY or not result.balance:
        return result

    months = list(result.balance.keys())
    keys = [periods.period_key(periods.parse_month_key(k), scale) for k in months]
    frame = pd.DataFrame(
        {
            "period": keys,
            "balance": [result.balance[k] for k in months],
            "cashflow": [result.cashflow[k].amount for k in months],
        }
    )
    grouped = frame.groupby("period", sort=True).agg(balance=("balance", "last"), cashflow=("cashflow", "sum"))

    events: Dict[str, list] = {}
    for month, key in zip(months, keys):
        events.setdefault(key, []).extend(result.cashflow[month].events)

    balance = {key: float(row["balance"]) for key, row in grouped.iterrows()}
    cashflow = {
        key: CashflowEntry(amount=float(row["cashflow"]), events=events[key]) for key, row in grouped.iterrows()
    }
    return ScenarioResult(balance=balance, cashflow=cashflow, fired=result.fired)


def _single(point: ProjectionPoint) -> AggregatedPoint:
    start, end = periods.period_bounds(point.date, periods.MONTHLY)
    return AggregatedPoint(
        period=point.period,
        date=point.date,
        period_start=start,
        period_end=end,
        net_worth=point.net_worth,
        cash_balance=point.cash_balance,
        portfolio_value_by_category=point.portfolio_value_by_category,
        total_portfolio_value=point.total_portfolio_value,
        events=[AggregatedEvent(point.date, e.type, e.description, e.amount) for e in point.events],
        summary=PeriodSummary(
            total_change=point.change.total,
            total_portfolio_growth=point.change.portfolio_growth,
            total_cash_flow=point.change.cash_flow,
            total_event_impact=point.change.event_impact,
            event_count=len(point.events),
        ),
        distribution=point.distribution,
    )


def aggregate_projection(points: Sequence[ProjectionPoint], scale: str) -> List[AggregatedPoint]:
    """
    Groups monthly projection points into quarters or years. Each aggregated
    point is the end-of-period snapshot; flows are summed over the period.
    """
    if scale == periods.MONTHLY:
        return [_single(p) for p in points]

    groups: Dict[str, List[ProjectionPoint]] = {}
    for point in points:
        groups.setdefault(periods.period_key(point.date, scale), []).append(point)

    aggregated: List[AggregatedPoint] = []
    for key, members in groups.items():
        last = members[-1]
        start, end = periods.period_bounds(last.date, scale)
        events = [
            AggregatedEvent(p.date, e.type, e.description, e.amount) for p in members for e in p.events
        ]
        aggregated.append(
            AggregatedPoint(
                period=key,
                date=end,
                period_start=start,
                period_end=end,
                net_worth=last.net_worth,
                cash_balance=last.cash_balance,
                portfolio_value_by_category=last.portfolio_value_by_category,
                total_portfolio_value=last.total_portfolio_value,
                events=events,
                summary=PeriodSummary(
                    total_change=sum(p.change.total for p in members),
                    total_portfolio_growth=sum(p.change.portfolio_growth for p in members),
                    total_cash_flow=sum(p.change.cash_flow for p in members),
                    total_event_impact=sum(p.change.event_impact for p in members),
                    event_count=len(events),
                ),
                distribution=last.distribution,
            )
        )
    return sorted(aggregated, key=lambda a: a.date)


def group_event_markers(
    markers: Sequence[EventMarker],
    aggregated: Sequence[AggregatedPoint],
    scale: str,
) -> List[EventMarkerGroup]:
    """Buckets chart markers by period and pins each bucket to its aggregated point."""
    groups: Dict[str, EventMarkerGroup] = {}
    for marker in markers:
        key = periods.period_key(marker.date, scale)
        if key not in groups:
            start, end = periods.period_bounds(marker.date, scale)
            point = next((p for p in aggregated if start <= p.date <= end), None)
            groups[key] = EventMarkerGroup(
                period=key,
                period_start=start,
                period_end=end,
                display_date=point.date if point else end,
                events=[],
                net_worth_at_period=point.net_worth if point else 0.0,
            )
        groups[key].events.append(marker)
    return sorted(groups.values(), key=lambda g: g.display_date)


def format_period_label(date: dt.date, scale: str) -> str:
    if scale == periods.QUARTERLY:
        return f"Q{periods.quarter_of(date)} {date.year}"
    if scale == periods.YEARLY:
        return str(date.year)
    return date.strftime("%b %Y")
