"""
Tests for the tripletcast command-line interface.
"""

import json
from datetime import date, timedelta

import pytest

from tripletcast import cli, ledger
from tripletcast.observations import Observation


@pytest.fixture
def workdir(tmp_path, monkeypatch):
    """Run each command from an empty temporary directory."""
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def observations_file(workdir):
    """70 daily draws."""
    path = workdir / "observations.jsonl"
    start = date(2024, 1, 1)
    for i in range(70):
        value = f"{(i * 37 + 11) % 20 * 7:03d}"
        ledger.append_observation(Observation(start + timedelta(days=i), value), path)
    return path


@pytest.fixture
def config_file(workdir):
    path = workdir / "engine_config.json"
    path.write_text(json.dumps({
        "config_version": "1.0.0",
        "defaults": {"min_train": 30, "top_n": 5},
        "overrides": {"monthly": {"mix": 0.7}},
    }))
    return path


class TestBacktestCommand:
    """Tests for the backtest subcommand."""

    def test_backtest_prints_metrics(self, observations_file, config_file, capsys):
        code = cli.main([
            "--config", str(config_file),
            "backtest", "--observations", str(observations_file), "--mode", "weekly",
        ])
        out = capsys.readouterr().out

        assert code == 0
        assert "Tests:       40" in out
        assert "MRR:" in out

    def test_backtest_writes_outputs(self, observations_file, config_file, workdir):
        output = workdir / "result.json"
        steps_out = workdir / "steps.jsonl"
        code = cli.main([
            "--config", str(config_file),
            "backtest", "--observations", str(observations_file), "--mode", "monthly",
            "--output", str(output), "--steps-out", str(steps_out),
        ])

        assert code == 0
        result = json.loads(output.read_text())
        assert result["mode"] == "monthly"
        assert result["config"]["mix"] == 0.7
        assert result["summary"]["total_tests"] == 40
        assert len(ledger.read_records(steps_out)) == 40

    def test_steps_out_rerun_not_stacked(self, observations_file, config_file, workdir):
        """Re-running with the same --steps-out path overwrites the export."""
        steps_out = workdir / "steps.jsonl"
        argv = [
            "--config", str(config_file),
            "backtest", "--observations", str(observations_file), "--steps-out", str(steps_out),
        ]
        assert cli.main(argv) == 0
        assert cli.main(argv) == 0
        assert len(ledger.read_records(steps_out)) == 40

    def test_backtest_insufficient_data(self, observations_file, workdir, capsys):
        path = workdir / "big_warmup.json"
        path.write_text(json.dumps({"config_version": "1.0.0", "defaults": {"min_train": 70}}))
        code = cli.main([
            "--config", str(path),
            "backtest", "--observations", str(observations_file),
        ])
        assert code == 0
        assert "Insufficient data" in capsys.readouterr().out

    def test_backtest_missing_observations(self, config_file, workdir, capsys):
        code = cli.main([
            "--config", str(config_file),
            "backtest", "--observations", str(workdir / "none.jsonl"),
        ])
        assert code == 1
        assert "not found" in capsys.readouterr().err


class TestPredictCommand:
    """Tests for the predict subcommand."""

    def test_predict_json(self, observations_file, config_file, workdir):
        output = workdir / "predictions.json"
        code = cli.main([
            "--config", str(config_file),
            "predict", "--observations", str(observations_file),
            "--days", "7", "--start", "2024-06-30", "--output", str(output),
        ])

        assert code == 0
        result = json.loads(output.read_text())
        preds = result["predictions"]
        assert len(preds) == 7
        assert preds[0]["date"] == "2024-07-01"
        assert preds[0]["source_key"] == "weekday:1"
        assert len(preds[0]["candidates"]) == 5
        assert result["strategy"] == "approximate"

        tables = result["tables"]
        assert list(tables)[0] == "overall"
        assert set(tables) == {"overall"} | {f"weekday:{w}" for w in range(7)}
        assert tables["overall"]["total"] == 70
        assert sum(r["count"] for r in tables["overall"]["triplets"]) == 70
        assert len(tables["weekday:1"]["positional"]) == 10

    def test_predict_bad_start(self, observations_file, config_file, capsys):
        code = cli.main([
            "--config", str(config_file),
            "predict", "--observations", str(observations_file), "--start", "June 1",
        ])
        assert code == 1
        assert "invalid --start" in capsys.readouterr().err


class TestOtherCommands:
    """Tests for rank and validate-config."""

    def test_rank(self, observations_file, config_file, capsys):
        code = cli.main([
            "--config", str(config_file),
            "rank", "--observations", str(observations_file), "--strategy", "exact",
        ])
        out = capsys.readouterr().out
        assert code == 0
        assert "Observations: 70" in out

    def test_validate_config(self, config_file, capsys):
        code = cli.main(["--config", str(config_file), "validate-config"])
        out = capsys.readouterr().out
        assert code == 0
        assert "Config valid" in out
        assert "monthly: mix=0.7" in out

    def test_validate_missing_config(self, workdir):
        assert cli.main(["--config", str(workdir / "none.json"), "validate-config"]) == 1

    def test_validate_invalid_config(self, workdir):
        path = workdir / "bad.json"
        path.write_text(json.dumps({"config_version": "1.0.0", "defaults": {"mix": 2}}))
        assert cli.main(["--config", str(path), "validate-config"]) == 1

    def test_no_command(self, capsys):
        assert cli.main([]) == 0
        assert "usage" in capsys.readouterr().out
