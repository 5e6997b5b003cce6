from fplan_core.io.config import (  # noqa: F401
    ScenarioRun,
    load_monte_carlo_config,
    load_plan_inputs,
    load_scenario,
)

__all__ = ["ScenarioRun", "load_scenario", "load_plan_inputs", "load_monte_carlo_config"]
