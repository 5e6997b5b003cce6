from __future__ import annotations

import dataclasses
import json
import logging
from datetime import date
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from fplan_core.domain.models import MonteCarloConfig, ProjectionComparison, ProjectionResult, ScenarioResult
from fplan_core.domain import periods
from fplan_core.io import config as config_io
from fplan_core.services import aggregation, analytics, pipeline, projection
from fplan_core.services import scenario as scenario_service

app = typer.Typer(help="Financial planning CLI for scenario and net-worth projections.")
logger = logging.getLogger("fplan_core")


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging")):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        handlers=[RichHandler(show_path=False)],
    )


def _save_json(path: Path, payload):
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2)


def _fail(console: Console, exc: Exception):
    console.print(f"[red]Error:[/red] {exc}")
    raise typer.Exit(code=1)


def _parse_date(raw: Optional[str]) -> Optional[date]:
    if not raw:
        return None
    try:
        return date.fromisoformat(raw)
    except ValueError:
        raise typer.BadParameter(f"Expected an ISO date (YYYY-MM-DD), got {raw!r}")


def _check_scale(scale: str) -> str:
    if scale not in periods.GRANULARITIES:
        raise typer.BadParameter(f"Scale must be one of {periods.GRANULARITIES}")
    return scale


def _scenario_to_json(result: ScenarioResult, run: config_io.ScenarioRun, stats: analytics.BalanceStats) -> dict:
    return {
        "name": run.scenario.name,
        "currency": run.currency,
        "initial_balance": run.initial_balance,
        "balance": result.balance,
        "cashflow": {
            key: {"amount": entry.amount, "events": [e.name for e in entry.events]}
            for key, entry in result.cashflow.items()
        },
        "stats": dataclasses.asdict(stats),
    }


def _point_to_json(point) -> dict:
    return {
        "period": point.period,
        "date": point.date.isoformat(),
        "net_worth": point.net_worth,
        "cash_balance": point.cash_balance,
        "total_portfolio_value": point.total_portfolio_value,
        "portfolio_value_by_category": point.portfolio_value_by_category,
        "events": [dataclasses.asdict(e) for e in point.events],
        "distribution": dataclasses.asdict(point.distribution) if point.distribution else None,
    }


def _projection_to_json(result: ProjectionResult, scale: str) -> dict:
    aggregated = aggregation.aggregate_projection(result.points, scale)
    return {
        "mode": result.mode,
        "trials": result.trials,
        "points": [_point_to_json(p) for p in result.points],
        "aggregated": [
            {
                "period": a.period,
                "net_worth": a.net_worth,
                "summary": dataclasses.asdict(a.summary),
                "distribution": dataclasses.asdict(a.distribution) if a.distribution else None,
            }
            for a in aggregated
        ],
        "percentiles": result.snapshot(),
    }


def _comparison_to_json(result: ProjectionComparison) -> dict:
    return {
        "mode": result.baseline.mode,
        "baseline": result.baseline.to_timeseries(),
        "alternative": result.alternative.to_timeseries(),
        "delta": result.delta,
    }


def _money(value: Optional[float]) -> str:
    return "-" if value is None else f"{value:,.2f}"


def _percent(value: Optional[float]) -> str:
    return "n/a" if value is None else f"{value:+.2f}%"


@app.command()
def scenario(
    file: Path = typer.Option(..., "--file", help="Scenario JSON with events and initial balance"),
    start: Optional[str] = typer.Option(None, help="First month (YYYY-MM-DD), overrides the file"),
    end: Optional[str] = typer.Option(None, help="Last month (YYYY-MM-DD), overrides the file"),
    scale: str = typer.Option("monthly", help="Table scale: monthly|quarterly|yearly"),
    out: Optional[Path] = typer.Option(None, help="Output path for scenario JSON"),
):
    """Run a scenario of conditional income/expense events."""
    console = Console()
    scale = _check_scale(scale)
    try:
        run = config_io.load_scenario(file)
    except (OSError, ValueError, KeyError) as exc:
        _fail(console, exc)

    start_date = _parse_date(start) or run.start_date
    end_date = _parse_date(end) or run.end_date
    if start_date is None or end_date is None:
        raise typer.BadParameter("Scenario window missing: set start_date/end_date in the file or pass --start/--end")

    result = scenario_service.run_scenario(run.scenario, run.initial_balance, start_date, end_date)
    stats = analytics.scenario_stats(result, run.initial_balance)
    logger.info("Scenario %r evaluated over %d months", run.scenario.name, stats.period_count)

    shown = aggregation.aggregate_scenario(result, scale)
    table = Table(title=f"{run.scenario.name or 'Scenario'} ({run.currency})")
    table.add_column("Period")
    table.add_column("Cash flow", justify="right")
    table.add_column("Balance", justify="right")
    table.add_column("Events")
    for key, value in shown.balance.items():
        entry = shown.cashflow[key]
        table.add_row(key, _money(entry.amount), _money(value), ", ".join(e.name for e in entry.events))
    console.print(table)

    colour = "green" if stats.net_change >= 0 else "red"
    console.print(f"Net change: [{colour}]{_money(stats.net_change)}[/{colour}] ({_percent(stats.net_change_percent)})")
    console.print(f"Lowest balance: {_money(stats.lowest_balance)} ({stats.lowest_period or 'initial'})")
    if stats.is_lowest_below_initial:
        console.print("[yellow]Balance dips below the starting balance.[/yellow]")
    console.print(f"Average monthly change: {_money(stats.average_change)}")

    if out:
        _save_json(out, _scenario_to_json(result, run, stats))
        typer.echo(f"Scenario written to {out}")


@app.command()
def project(
    plan: Path = typer.Option(..., help="Plan inputs JSON"),
    mode: str = typer.Option(projection.EXPECTED, help="expected|conservative|optimistic|monte-carlo"),
    trials: int = typer.Option(1000, help="Monte Carlo trials"),
    seed: Optional[int] = typer.Option(None, help="Random seed"),
    scale: str = typer.Option("yearly", help="Table scale: monthly|quarterly|yearly"),
    out: Optional[Path] = typer.Option(None, help="Output path for projection JSON"),
):
    """Project net worth over the plan horizon."""
    console = Console()
    scale = _check_scale(scale)
    try:
        inputs = config_io.load_plan_inputs(plan)
        mc_config = MonteCarloConfig(trials=trials, seed=seed)
    except (OSError, ValueError, KeyError) as exc:
        _fail(console, exc)
    if mode not in projection.MODES:
        raise typer.BadParameter(f"Mode must be one of {projection.MODES}")

    if mode == projection.MONTE_CARLO:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            transient=True,
            console=console,
        ) as progress:
            progress.add_task(f"Running {trials} trials...", total=None)
            result = projection.project_net_worth(inputs, mode, config=mc_config)
    else:
        result = projection.project_net_worth(inputs, mode)

    insights = analytics.generate_projection_analytics(
        result, inputs.one_time_events, inputs.recurring_events, inputs.category_assumptions
    )

    table = Table(title=f"Net worth projection ({mode})")
    table.add_column("Period")
    table.add_column("Net worth", justify="right")
    table.add_column("Cash", justify="right")
    table.add_column("Change", justify="right")
    banded = mode == projection.MONTE_CARLO
    if banded:
        table.add_column("P10", justify="right")
        table.add_column("P90", justify="right")
    for point in aggregation.aggregate_projection(result.points, scale):
        row = [point.period, _money(point.net_worth), _money(point.cash_balance), _money(point.summary.total_change)]
        if banded and point.distribution:
            row += [
                _money(point.distribution.percentiles.get("p10")),
                _money(point.distribution.percentiles.get("p90")),
            ]
        table.add_row(*row)
    console.print(table)

    growth = insights.portfolio_growth
    console.print(
        f"Start {_money(growth.starting_net_worth)} -> end {_money(growth.ending_net_worth)} "
        f"({_percent(growth.total_growth_percent)}, CAGR {_percent(growth.cagr)})"
    )
    if insights.balance.is_lowest_below_initial:
        console.print(
            f"[yellow]Net worth dips to {_money(insights.balance.lowest_balance)} "
            f"in {insights.balance.lowest_period}.[/yellow]"
        )

    if out:
        _save_json(out, _projection_to_json(result, scale))
        typer.echo(f"Projection written to {out}")


@app.command()
def compare(
    baseline: Path = typer.Option(..., help="Baseline plan inputs JSON"),
    alternative: Path = typer.Option(..., help="Alternative plan inputs JSON"),
    mode: str = typer.Option(projection.EXPECTED, help="expected|conservative|optimistic|monte-carlo"),
    trials: int = typer.Option(1000, help="Monte Carlo trials"),
    seed: Optional[int] = typer.Option(None, help="Random seed"),
    out: Optional[Path] = typer.Option(None, help="Output path for comparison JSON"),
):
    """Project two plans side by side and report the net worth gap."""
    console = Console()
    try:
        base_inputs = config_io.load_plan_inputs(baseline)
        alt_inputs = config_io.load_plan_inputs(alternative)
        result = pipeline.compare_projections(
            base_inputs, alt_inputs, mode, MonteCarloConfig(trials=trials, seed=seed)
        )
    except (OSError, ValueError, KeyError) as exc:
        _fail(console, exc)

    if result.delta:
        last = list(result.delta)[-1]
        gap = result.delta[last]
        colour = "green" if gap >= 0 else "red"
        console.print(f"Gap at {last}: [{colour}]{_money(gap)}[/{colour}]")
    else:
        console.print("[yellow]The plans share no projected months.[/yellow]")

    if out:
        _save_json(out, _comparison_to_json(result))
        typer.echo(f"Comparison written to {out}")


if __name__ == "__main__":
    app()
