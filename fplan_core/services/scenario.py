from __future__ import annotations

import dataclasses
import datetime as dt
import logging
from typing import Dict, Iterable, List, Optional

from fplan_core.domain import periods
from fplan_core.domain.errors import InvalidEventError
from fplan_core.domain.models import (
    FREQUENCIES,
    FREQUENCY_STEP,
    INCOME,
    ONCE,
    CashflowEntry,
    Condition,
    DateInRange,
    DateIs,
    EventHappened,
    FiredEventInfo,
    IncomeIsAbove,
    NetWorthIsAbove,
    Scenario,
    ScenarioEvent,
    ScenarioResult,
)

logger = logging.getLogger(__name__)


@dataclasses.dataclass
class _MonthContext:
    month: dt.date
    key: str
    balance: float
    fired: Dict[str, FiredEventInfo]
    fired_this_month: List[ScenarioEvent]


def make_scenario(name: str, events: Iterable[ScenarioEvent] = ()) -> Scenario:
    return Scenario(name=name, events=tuple(events))


def make_one_off(
    *,
    name: str,
    type: str,
    amount: float,
    date: dt.date,
    unlocked_by: Iterable[Condition] = (),
) -> ScenarioEvent:
    """A single event pinned to the calendar month of ``date``."""
    return ScenarioEvent(
        name=name,
        type=type,
        amount=amount,
        recurrence=ONCE,
        unlocked_by=tuple(unlocked_by) + (DateIs(date),),
    )


def make_recurring(
    *,
    name: str,
    type: str,
    amount: float,
    start_date: dt.date,
    end_date: Optional[dt.date] = None,
    frequency: str = "monthly",
    unlocked_by: Iterable[Condition] = (),
) -> ScenarioEvent:
    """
    A repeating event active from ``start_date`` through ``end_date`` (inclusive,
    by month; open-ended when None). Quarterly and yearly events repeat on the
    start month.
    """
    if frequency not in FREQUENCIES:
        raise InvalidEventError(f"Event {name!r}: frequency must be one of {FREQUENCIES}, got {frequency!r}")
    return ScenarioEvent(
        name=name,
        type=type,
        amount=amount,
        recurrence=frequency,
        unlocked_by=tuple(unlocked_by) + (DateInRange(start_date, end_date),),
    )


def make_event(
    *,
    name: str,
    type: str,
    amount: float,
    unlocked_by: Iterable[Condition],
) -> ScenarioEvent:
    """A one-time event that fires the first month all of its conditions hold."""
    return ScenarioEvent(name=name, type=type, amount=amount, recurrence=ONCE, unlocked_by=tuple(unlocked_by))


def _evaluate_condition(condition: Condition, ctx: _MonthContext) -> bool:
    if isinstance(condition, DateIs):
        return periods.same_month(ctx.month, condition.date)
    if isinstance(condition, DateInRange):
        if periods.months_between(condition.start, ctx.month) < 0:
            return False
        return condition.end is None or periods.months_between(ctx.month, condition.end) >= 0
    if isinstance(condition, NetWorthIsAbove):
        return ctx.balance > condition.amount
    if isinstance(condition, EventHappened):
        return condition.event_name in ctx.fired
    if isinstance(condition, IncomeIsAbove):
        for event in ctx.fired_this_month:
            if event.name == condition.event_name and event.type == INCOME:
                return event.amount >= condition.amount
        return False
    return False


def _is_scheduled(event: ScenarioEvent, ctx: _MonthContext) -> bool:
    if event.recurrence == ONCE:
        return event.name not in ctx.fired
    if event.recurrence == "monthly":
        return True
    window = event.date_range()
    if window is None:
        return False
    return periods.months_between(window.start, ctx.month) % FREQUENCY_STEP[event.recurrence] == 0


def _should_fire(event: ScenarioEvent, ctx: _MonthContext) -> bool:
    if not _is_scheduled(event, ctx):
        return False
    return all(_evaluate_condition(c, ctx) for c in event.unlocked_by)


def _fire(event: ScenarioEvent, ctx: _MonthContext, entry: CashflowEntry, opening: float) -> None:
    entry.amount += event.signed_amount
    entry.events.append(event)
    ctx.balance = opening + entry.amount
    ctx.fired_this_month.append(event)

    info = ctx.fired.get(event.name)
    if info is None:
        ctx.fired[event.name] = FiredEventInfo(first_fired=ctx.key, last_fired=ctx.key)
    else:
        info.last_fired = ctx.key
        info.count += 1


def run_scenario(
    scenario: Scenario,
    initial_balance: float,
    start_date: dt.date,
    end_date: dt.date,
) -> ScenarioResult:
    """
    Walks the months of [start_date, end_date] and accumulates a running balance.

    Each month resolves in two phases:
    - events gated only by dates fire first;
    - events with balance conditions are then checked in declaration order,
      each seeing the balance, fired names and same-month income after
      everything that already fired.
    """
    time_gated = [e for e in scenario.events if not e.has_balance_conditions]
    state_gated = [e for e in scenario.events if e.has_balance_conditions]

    balance: Dict[str, float] = {}
    cashflow: Dict[str, CashflowEntry] = {}
    fired: Dict[str, FiredEventInfo] = {}
    running = float(initial_balance)

    for month in periods.month_range(start_date, end_date):
        key = periods.period_key(month)
        entry = CashflowEntry()
        ctx = _MonthContext(month=month, key=key, balance=running, fired=fired, fired_this_month=[])

        for event in time_gated:
            if _should_fire(event, ctx):
                _fire(event, ctx, entry, running)
        for event in state_gated:
            if _should_fire(event, ctx):
                _fire(event, ctx, entry, running)

        running = running + entry.amount
        cashflow[key] = entry
        balance[key] = running

    logger.debug(
        "Scenario %r: %d months, %d distinct events fired, final balance %.2f",
        scenario.name,
        len(balance),
        len(fired),
        running,
    )
    return ScenarioResult(balance=balance, cashflow=cashflow, fired=fired)
