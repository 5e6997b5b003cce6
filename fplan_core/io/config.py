from __future__ import annotations

import dataclasses
import datetime as dt
import json
from pathlib import Path
from typing import Any, Dict, List, Optional

from fplan_core.domain.errors import InvalidEventError
from fplan_core.domain.models import (
    CategoryAssumption,
    Condition,
    DateInRange,
    DateIs,
    Distribution,
    EventHappened,
    IncomeExpenseAssumption,
    IncomeIsAbove,
    MonteCarloConfig,
    NetWorthIsAbove,
    OneTimeEvent,
    PlannedSale,
    PlanInputs,
    RecurringEvent,
    ReinvestmentAllocation,
    Scenario,
    ScenarioEvent,
)
from fplan_core.services import scenario as scenario_service


@dataclasses.dataclass(frozen=True)
class ScenarioRun:
    """A scenario file: the events plus the caller-owned balance and window."""

    scenario: Scenario
    initial_balance: float = 0.0
    currency: str = "USD"
    start_date: Optional[dt.date] = None
    end_date: Optional[dt.date] = None


def load_scenario(path: str | Path) -> ScenarioRun:
    data = _read_json(path)
    events = [parse_scenario_event(item) for item in data.get("events", []) or []]
    return ScenarioRun(
        scenario=scenario_service.make_scenario(str(data.get("name", "")), events),
        initial_balance=float(data.get("initial_balance", 0.0)),
        currency=str(data.get("currency", "USD")),
        start_date=_optional_date(data.get("start_date")),
        end_date=_optional_date(data.get("end_date")),
    )


def load_plan_inputs(path: str | Path) -> PlanInputs:
    return parse_plan_inputs(_read_json(path))


def load_monte_carlo_config(path: str | Path) -> MonteCarloConfig:
    data = _read_json(path)
    return MonteCarloConfig(
        trials=int(data.get("trials", 1000)),
        seed=data.get("seed"),
        percentiles=tuple(int(p) for p in data.get("percentiles", (10, 50, 90))),
    )


def parse_condition(data: Dict[str, Any]) -> Condition:
    kind = data.get("type")
    if kind == DateIs.kind:
        return DateIs(_date(data["date"]))
    if kind == DateInRange.kind:
        return DateInRange(_date(data["start"]), _optional_date(data.get("end")))
    if kind == NetWorthIsAbove.kind:
        return NetWorthIsAbove(float(data["amount"]))
    if kind == EventHappened.kind:
        return EventHappened(str(data["event_name"]))
    if kind == IncomeIsAbove.kind:
        return IncomeIsAbove(str(data["event_name"]), float(data["amount"]))
    raise InvalidEventError(f"Unknown condition type: {kind!r}")


def parse_scenario_event(data: Dict[str, Any]) -> ScenarioEvent:
    """
    Scenario events in a file use the builder shape:
    - "once" with a "date" -> one-off on that month;
    - "once" without a date -> fires when its conditions first hold;
    - "monthly"/"quarterly"/"yearly" with "start_date" and optional "end_date".
    """
    conditions = [parse_condition(c) for c in data.get("unlocked_by", []) or []]
    common = dict(
        name=str(data["name"]),
        type=str(data["type"]),
        amount=float(data["amount"]),
        unlocked_by=conditions,
    )
    recurrence = data.get("recurrence", "once")
    if recurrence == "once":
        if data.get("date"):
            return scenario_service.make_one_off(date=_date(data["date"]), **common)
        return scenario_service.make_event(**common)
    return scenario_service.make_recurring(
        start_date=_date(data["start_date"]),
        end_date=_optional_date(data.get("end_date")),
        frequency=recurrence,
        **common,
    )


def parse_plan_inputs(data: Dict[str, Any]) -> PlanInputs:
    ie = data.get("income_expense", {}) or {}
    income_expense = IncomeExpenseAssumption(
        annual_income=_distribution(ie.get("annual_income")),
        annual_expenses=_distribution(ie.get("annual_expenses")),
        reinvestment_rate=float(ie.get("reinvestment_rate", 0.0)),
        reinvestment_allocation=[
            ReinvestmentAllocation(str(a["category_id"]), float(a["percentage"]))
            for a in ie.get("reinvestment_allocation", []) or []
        ],
    )
    categories = [
        CategoryAssumption(
            category_id=str(c["category_id"]),
            category_name=str(c.get("category_name", c["category_id"])),
            current_value=float(c.get("current_value", 0.0)),
            expected_annual_return=float(c.get("expected_annual_return", 0.0)),
            variance=float(c.get("variance", 0.0)),
        )
        for c in data.get("category_assumptions", []) or []
    ]
    return PlanInputs(
        start_date=_date(data["start_date"]),
        time_horizon_years=float(data.get("time_horizon_years", 10)),
        category_assumptions=categories,
        income_expense=income_expense,
        one_time_events=[_one_time(e) for e in data.get("one_time_events", []) or []],
        recurring_events=[_recurring(e) for e in data.get("recurring_events", []) or []],
        planned_sales=[
            PlannedSale(
                id=str(s["id"]),
                date=_date(s["date"]),
                category_id=str(s["category_id"]),
                percentage_of_category=float(s["percentage_of_category"]),
                description=str(s.get("description", "")),
            )
            for s in data.get("planned_sales", []) or []
        ],
    )


def _one_time(data: Dict[str, Any]) -> OneTimeEvent:
    return OneTimeEvent(
        id=str(data["id"]),
        date=_date(data["date"]),
        amount=float(data["amount"]),
        description=str(data.get("description", "")),
        emoji=data.get("emoji"),
        enabled=bool(data.get("enabled", True)),
        affects_category=data.get("affects_category"),
        tags=_strings(data.get("tags")),
        metadata=data.get("metadata", {}) or {},
        linked_event_ids=_strings(data.get("linked_event_ids")),
    )


def _recurring(data: Dict[str, Any]) -> RecurringEvent:
    return RecurringEvent(
        id=str(data["id"]),
        start_date=_date(data["start_date"]),
        end_date=_optional_date(data.get("end_date")),
        amount=float(data["amount"]),
        frequency=str(data.get("frequency", "monthly")),
        description=str(data.get("description", "")),
        emoji=data.get("emoji"),
        enabled=bool(data.get("enabled", True)),
        tags=_strings(data.get("tags")),
        metadata=data.get("metadata", {}) or {},
        linked_event_ids=_strings(data.get("linked_event_ids")),
    )


def _distribution(data: Optional[Dict[str, Any]]) -> Distribution:
    data = data or {}
    return Distribution(mean=float(data.get("mean", 0.0)), variance=float(data.get("variance", 0.0)))


def _strings(values: Optional[List[Any]]) -> tuple:
    return tuple(str(v) for v in values or ())


def _date(value: Any) -> dt.date:
    if isinstance(value, dt.date):
        return value
    return dt.date.fromisoformat(str(value))


def _optional_date(value: Any) -> Optional[dt.date]:
    return _date(value) if value else None


def _read_json(path: str | Path) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)
