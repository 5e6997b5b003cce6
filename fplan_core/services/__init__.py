from fplan_core.services.aggregation import aggregate_projection, aggregate_scenario  # noqa: F401
from fplan_core.services.analytics import generate_projection_analytics, scenario_stats  # noqa: F401
from fplan_core.services.pipeline import compare_projections  # noqa: F401
from fplan_core.services.projection import project_all_scenarios, project_net_worth  # noqa: F401
from fplan_core.services.scenario import (  # noqa: F401
    make_event,
    make_one_off,
    make_recurring,
    make_scenario,
    run_scenario,
)

__all__ = [
    "run_scenario",
    "make_scenario",
    "make_one_off",
    "make_recurring",
    "make_event",
    "project_net_worth",
    "project_all_scenarios",
    "aggregate_scenario",
    "aggregate_projection",
    "scenario_stats",
    "generate_projection_analytics",
    "compare_projections",
]
