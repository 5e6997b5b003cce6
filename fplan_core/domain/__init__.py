from fplan_core.domain.errors import InvalidAssumptionError, InvalidEventError  # noqa: F401
from fplan_core.domain.models import (  # noqa: F401
    CashflowEntry,
    CategoryAssumption,
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
    ProjectionComparison,
    ProjectionPoint,
    ProjectionResult,
    RecurringEvent,
    ReinvestmentAllocation,
    Scenario,
    ScenarioEvent,
    ScenarioResult,
)

__all__ = [
    "CashflowEntry",
    "CategoryAssumption",
    "DateInRange",
    "DateIs",
    "Distribution",
    "EventHappened",
    "IncomeExpenseAssumption",
    "IncomeIsAbove",
    "InvalidAssumptionError",
    "InvalidEventError",
    "MonteCarloConfig",
    "NetWorthIsAbove",
    "OneTimeEvent",
    "PlannedSale",
    "PlanInputs",
    "ProjectionComparison",
    "ProjectionPoint",
    "ProjectionResult",
    "RecurringEvent",
    "ReinvestmentAllocation",
    "Scenario",
    "ScenarioEvent",
    "ScenarioResult",
]
