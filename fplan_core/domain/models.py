from __future__ import annotations

import dataclasses
import datetime as dt
from typing import Any, ClassVar, Dict, List, Optional, Sequence, Tuple, Union

from fplan_core.domain.errors import InvalidAssumptionError, InvalidEventError


INCOME = "income"
EXPENSE = "expense"
EVENT_TYPES = (INCOME, EXPENSE)

ONCE = "once"
FREQUENCIES = ("monthly", "quarterly", "yearly")
RECURRENCES = (ONCE,) + FREQUENCIES
FREQUENCY_STEP = {"monthly": 1, "quarterly": 3, "yearly": 12}

CASHFLOW_TAG = "cashflow"
BALANCE_TAG = "balance"


# -------------------------------
# Scenario conditions
# -------------------------------


@dataclasses.dataclass(frozen=True)
class DateIs:
    date: dt.date

    tag: ClassVar[str] = CASHFLOW_TAG
    kind: ClassVar[str] = "date-is"


@dataclasses.dataclass(frozen=True)
class DateInRange:
    start: dt.date
    end: Optional[dt.date] = None  # open-ended when None

    tag: ClassVar[str] = CASHFLOW_TAG
    kind: ClassVar[str] = "date-in-range"

    def __post_init__(self) -> None:
        if self.end is not None and self.end < self.start:
            raise InvalidEventError(f"Date range ends before it starts: {self.start} > {self.end}")


@dataclasses.dataclass(frozen=True)
class NetWorthIsAbove:
    amount: float

    tag: ClassVar[str] = BALANCE_TAG
    kind: ClassVar[str] = "networth-is-above"


@dataclasses.dataclass(frozen=True)
class EventHappened:
    event_name: str

    tag: ClassVar[str] = BALANCE_TAG
    kind: ClassVar[str] = "event-happened"


@dataclasses.dataclass(frozen=True)
class IncomeIsAbove:
    event_name: str
    amount: float

    tag: ClassVar[str] = BALANCE_TAG
    kind: ClassVar[str] = "income-is-above"


Condition = Union[DateIs, DateInRange, NetWorthIsAbove, EventHappened, IncomeIsAbove]
CONDITION_TYPES = (DateIs, DateInRange, NetWorthIsAbove, EventHappened, IncomeIsAbove)


# -------------------------------
# Scenario events and results
# -------------------------------


@dataclasses.dataclass(frozen=True)
class ScenarioEvent:
    name: str
    type: str  # "income" or "expense"
    amount: float  # unsigned magnitude, sign comes from type
    recurrence: str = ONCE
    unlocked_by: Tuple[Condition, ...] = ()
    metadata: Dict[str, str] = dataclasses.field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.type not in EVENT_TYPES:
            raise InvalidEventError(f"Event {self.name!r}: type must be one of {EVENT_TYPES}, got {self.type!r}")
        if self.recurrence not in RECURRENCES:
            raise InvalidEventError(f"Event {self.name!r}: unknown recurrence {self.recurrence!r}")
        if not self.amount > 0:
            raise InvalidEventError(f"Event {self.name!r}: amount must be positive, got {self.amount}")
        conditions = tuple(self.unlocked_by)
        for condition in conditions:
            if not isinstance(condition, CONDITION_TYPES):
                raise InvalidEventError(f"Event {self.name!r}: unsupported condition {condition!r}")
        object.__setattr__(self, "unlocked_by", conditions)

    @property
    def signed_amount(self) -> float:
        return self.amount if self.type == INCOME else -self.amount

    @property
    def has_balance_conditions(self) -> bool:
        return any(c.tag == BALANCE_TAG for c in self.unlocked_by)

    def date_range(self) -> Optional[DateInRange]:
        for condition in self.unlocked_by:
            if isinstance(condition, DateInRange):
                return condition
        return None


@dataclasses.dataclass(frozen=True)
class Scenario:
    name: str
    events: Tuple[ScenarioEvent, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "events", tuple(self.events))


@dataclasses.dataclass
class CashflowEntry:
    amount: float = 0.0
    events: List[ScenarioEvent] = dataclasses.field(default_factory=list)


@dataclasses.dataclass
class FiredEventInfo:
    first_fired: str
    last_fired: str
    count: int = 1


@dataclasses.dataclass
class ScenarioResult:
    balance: Dict[str, float]
    cashflow: Dict[str, CashflowEntry]
    fired: Dict[str, FiredEventInfo] = dataclasses.field(default_factory=dict)

    @property
    def periods(self) -> List[str]:
        return list(self.balance.keys())

    def final_balance(self, default: float = 0.0) -> float:
        if not self.balance:
            return default
        return self.balance[self.periods[-1]]


# -------------------------------
# Plan inputs
# -------------------------------


@dataclasses.dataclass(frozen=True)
class CategoryAssumption:
    category_id: str
    category_name: str
    current_value: float
    expected_annual_return: float  # decimal, 0.07 = 7%
    variance: float = 0.0  # annual spread of the return, 0.03 = +/-3%

    def __post_init__(self) -> None:
        if self.current_value < 0:
            raise InvalidAssumptionError(f"Category {self.category_id!r}: current value cannot be negative")
        if self.variance < 0:
            raise InvalidAssumptionError(f"Category {self.category_id!r}: variance cannot be negative")


@dataclasses.dataclass(frozen=True)
class Distribution:
    mean: float
    variance: float = 0.0

    def __post_init__(self) -> None:
        if self.variance < 0:
            raise InvalidAssumptionError("Variance cannot be negative")


@dataclasses.dataclass(frozen=True)
class ReinvestmentAllocation:
    category_id: str
    percentage: float  # share of the reinvested amount, 0..1


@dataclasses.dataclass(frozen=True)
class IncomeExpenseAssumption:
    annual_income: Distribution
    annual_expenses: Distribution
    reinvestment_rate: float = 0.0  # share of a surplus to invest, 0..1
    reinvestment_allocation: Tuple[ReinvestmentAllocation, ...] = ()

    def __post_init__(self) -> None:
        if not 0.0 <= self.reinvestment_rate <= 1.0:
            raise InvalidAssumptionError(f"Reinvestment rate must be within [0, 1], got {self.reinvestment_rate}")
        object.__setattr__(self, "reinvestment_allocation", tuple(self.reinvestment_allocation))


@dataclasses.dataclass(frozen=True)
class OneTimeEvent:
    id: str
    date: dt.date
    amount: float  # positive = income/gain, negative = expense
    description: str
    emoji: Optional[str] = None
    enabled: bool = True
    affects_category: Optional[str] = None
    tags: Tuple[str, ...] = ()
    metadata: Dict[str, Any] = dataclasses.field(default_factory=dict)
    linked_event_ids: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "tags", tuple(self.tags))
        object.__setattr__(self, "linked_event_ids", tuple(self.linked_event_ids))


@dataclasses.dataclass(frozen=True)
class RecurringEvent:
    id: str
    start_date: dt.date
    amount: float  # per occurrence, signed
    frequency: str
    description: str
    end_date: Optional[dt.date] = None
    emoji: Optional[str] = None
    enabled: bool = True
    tags: Tuple[str, ...] = ()
    metadata: Dict[str, Any] = dataclasses.field(default_factory=dict)
    linked_event_ids: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.frequency not in FREQUENCIES:
            raise InvalidEventError(f"Recurring event {self.id!r}: unknown frequency {self.frequency!r}")
        if self.end_date is not None and self.end_date < self.start_date:
            raise InvalidEventError(f"Recurring event {self.id!r}: end date precedes start date")
        object.__setattr__(self, "tags", tuple(self.tags))
        object.__setattr__(self, "linked_event_ids", tuple(self.linked_event_ids))


PlanEvent = Union[OneTimeEvent, RecurringEvent]


@dataclasses.dataclass(frozen=True)
class PlannedSale:
    id: str
    date: dt.date
    category_id: str
    percentage_of_category: float  # 0..1
    description: str = ""

    def __post_init__(self) -> None:
        if not 0.0 <= self.percentage_of_category <= 1.0:
            raise InvalidEventError(f"Planned sale {self.id!r}: percentage must be within [0, 1]")


@dataclasses.dataclass(frozen=True)
class PlanInputs:
    start_date: dt.date
    time_horizon_years: float
    category_assumptions: Tuple[CategoryAssumption, ...]
    income_expense: IncomeExpenseAssumption
    one_time_events: Tuple[OneTimeEvent, ...] = ()
    recurring_events: Tuple[RecurringEvent, ...] = ()
    planned_sales: Tuple[PlannedSale, ...] = ()

    def __post_init__(self) -> None:
        for name in ("category_assumptions", "one_time_events", "recurring_events", "planned_sales"):
            object.__setattr__(self, name, tuple(getattr(self, name)))

        ids = [c.category_id for c in self.category_assumptions]
        if len(set(ids)) != len(ids):
            raise InvalidAssumptionError(f"Duplicate category ids: {ids}")
        for allocation in self.income_expense.reinvestment_allocation:
            if allocation.category_id not in ids:
                raise InvalidAssumptionError(
                    f"Reinvestment allocation targets unknown category {allocation.category_id!r}"
                )

    @property
    def category_ids(self) -> List[str]:
        return [c.category_id for c in self.category_assumptions]


# -------------------------------
# Projection output
# -------------------------------


@dataclasses.dataclass(frozen=True)
class MonteCarloConfig:
    trials: int = 1000
    seed: Optional[int] = None
    percentiles: Tuple[int, ...] = (10, 50, 90)

    def __post_init__(self) -> None:
        if self.trials < 1:
            raise InvalidAssumptionError("Monte Carlo needs at least one trial")
        if any(not 0 <= p <= 100 for p in self.percentiles):
            raise InvalidAssumptionError(f"Percentiles must be within [0, 100], got {self.percentiles}")


@dataclasses.dataclass
class ProjectionEvent:
    type: str  # "one-time", "recurring" or "sale"
    description: str
    amount: Optional[float] = None


@dataclasses.dataclass
class MonthlyChange:
    total: float
    portfolio_growth: float
    cash_flow: float
    event_impact: float


@dataclasses.dataclass
class NetWorthDistribution:
    mean: float
    std: float
    percentiles: Dict[str, float]  # keys like "p10","p50","p90"

    def spread(self, low: str = "p10", high: str = "p90") -> float:
        return self.percentiles[high] - self.percentiles[low]


@dataclasses.dataclass
class ProjectionPoint:
    date: dt.date
    period: str
    net_worth: float
    cash_balance: float
    portfolio_value_by_category: Dict[str, float]
    total_portfolio_value: float
    events: List[ProjectionEvent]
    change: MonthlyChange
    distribution: Optional[NetWorthDistribution] = None


@dataclasses.dataclass
class ProjectionResult:
    mode: str
    points: List[ProjectionPoint]
    trials: int = 1

    def to_timeseries(self) -> List[Tuple[str, float]]:
        return [(p.period, p.net_worth) for p in self.points]

    def snapshot(self) -> Dict[str, List[float]]:
        """Per-percentile net worth series, for band charts. Empty for deterministic runs."""
        series: Dict[str, List[float]] = {}
        for point in self.points:
            if point.distribution is None:
                return {}
            for key, value in point.distribution.percentiles.items():
                series.setdefault(key, []).append(value)
        return series


@dataclasses.dataclass
class ProjectionComparison:
    baseline: ProjectionResult
    alternative: ProjectionResult
    delta: Dict[str, float]  # period key -> alternative minus baseline net worth


def enabled(events: Sequence[PlanEvent]) -> List[PlanEvent]:
    return [e for e in events if e.enabled]
