import json
from pathlib import Path

from typer.testing import CliRunner

from fplan_core.cli import app


runner = CliRunner()
DATA = Path(__file__).parent / "data"


def test_cli_scenario_writes_balances(tmp_path: Path):
    out_path = tmp_path / "scenario.json"
    result = runner.invoke(
        app,
        ["scenario", "--file", str(DATA / "scenario.json"), "--scale", "quarterly", "--out", str(out_path)],
    )
    assert result.exit_code == 0, result.stdout
    assert "Net change" in result.stdout

    payload = json.loads(out_path.read_text())
    assert payload["balance"]["2025-03"] == 1200.0
    assert payload["balance"]["2025-12"] == 8500.0
    assert payload["cashflow"]["2025-03"]["events"] == ["Salary", "Holiday"]
    assert payload["stats"]["net_change"] == 8500.0
    assert payload["stats"]["net_change_percent"] is None


def test_cli_scenario_window_override(tmp_path: Path):
    out_path = tmp_path / "short.json"
    result = runner.invoke(
        app,
        [
            "scenario",
            "--file",
            str(DATA / "scenario.json"),
            "--start",
            "2025-01-01",
            "--end",
            "2025-02-01",
            "--out",
            str(out_path),
        ],
    )
    assert result.exit_code == 0, result.stdout
    assert json.loads(out_path.read_text())["balance"] == {"2025-01": 1000.0, "2025-02": 1700.0}


def test_cli_project_and_compare(tmp_path: Path):
    plan_path = DATA / "plan.json"
    projection_path = tmp_path / "projection.json"
    result_project = runner.invoke(
        app,
        [
            "project",
            "--plan",
            str(plan_path),
            "--mode",
            "monte-carlo",
            "--trials",
            "50",
            "--seed",
            "11",
            "--out",
            str(projection_path),
        ],
    )
    assert result_project.exit_code == 0, result_project.stdout
    payload = json.loads(projection_path.read_text())
    assert payload["trials"] == 50
    assert len(payload["points"]) == 24
    assert [a["period"] for a in payload["aggregated"]] == ["2025", "2026"]
    assert set(payload["percentiles"]) == {"p10", "p50", "p90"}

    alternative = json.loads(plan_path.read_text())
    alternative["income_expense"]["annual_expenses"]["mean"] = 42000
    alternative_path = tmp_path / "alternative.json"
    alternative_path.write_text(json.dumps(alternative))

    comparison_path = tmp_path / "comparison.json"
    result_compare = runner.invoke(
        app,
        [
            "compare",
            "--baseline",
            str(plan_path),
            "--alternative",
            str(alternative_path),
            "--out",
            str(comparison_path),
        ],
    )
    assert result_compare.exit_code == 0, result_compare.stdout
    delta = json.loads(comparison_path.read_text())["delta"]
    assert len(delta) == 24
    assert delta["2025-01"] > 0
    assert delta["2026-12"] > delta["2025-01"]


def test_cli_reports_bad_input(tmp_path: Path):
    missing = runner.invoke(app, ["scenario", "--file", str(tmp_path / "nope.json")])
    assert missing.exit_code == 1
    assert "Error" in missing.stdout

    bad_mode = runner.invoke(app, ["project", "--plan", str(DATA / "plan.json"), "--mode", "lucky"])
    assert bad_mode.exit_code != 0
