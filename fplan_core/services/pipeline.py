from __future__ import annotations

from typing import Optional

from fplan_core.domain.models import MonteCarloConfig, PlanInputs, ProjectionComparison
from fplan_core.services import projection


def compare_projections(
    baseline: PlanInputs,
    alternative: PlanInputs,
    mode: str = projection.EXPECTED,
    config: Optional[MonteCarloConfig] = None,
) -> ProjectionComparison:
    """
    Projects two plans under the same mode and reports, for every month both
    cover, how far the alternative's net worth sits above the baseline.
    """
    baseline_result = projection.project_net_worth(baseline, mode, config=config)
    alternative_result = projection.project_net_worth(alternative, mode, config=config)

    alternative_by_period = {p.period: p.net_worth for p in alternative_result.points}
    delta = {
        p.period: alternative_by_period[p.period] - p.net_worth
        for p in baseline_result.points
        if p.period in alternative_by_period
    }

    return ProjectionComparison(
        baseline=baseline_result,
        alternative=alternative_result,
        delta=delta,
    )
