"""
Tests for the dswap command-line interface and the simulation runner.
"""

import json

import pytest
from click.testing import CliRunner

from dswap.cli import cli
from dswap.cli.simulate import Simulator, format_units, to_units
from dswap.config import DswapConfig
from dswap.constants import TOKEN_UNIT
from dswap.exceptions import InvalidInputError, ReserveFloorError

U = TOKEN_UNIT

QUIET_CONFIG = '[logging]\nlevel = "ERROR"\n'

SCRIPT = {
    "deployer": "dev",
    "accounts": {"alice": "10", "bob": "5"},
    "steps": [
        {"op": "sell", "account": "dev", "amount": "1000", "expect": "ReserveFloorError"},
        {"op": "buy", "account": "alice", "amount": "1", "slippage": 1},
        {"op": "stake", "account": "dev", "amount": "100"},
        {"op": "fund_native", "account": "bob", "amount": "1"},
        {"op": "advance", "seconds": 3600},
        {"op": "claim", "account": "dev"},
    ],
}


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text(QUIET_CONFIG)
    return str(path)


def _write_script(tmp_path, script):
    path = tmp_path / "script.json"
    path.write_text(json.dumps(script))
    return str(path)


class TestUnits:

    def test_to_units(self):
        assert to_units("1") == U
        assert to_units(2) == 2 * U
        assert to_units("0.5") == U // 2
        assert to_units("0.000000000000000001") == 1

    def test_to_units_rejects(self):
        with pytest.raises(InvalidInputError):
            to_units("abc")
        with pytest.raises(InvalidInputError, match="decimals"):
            to_units("0.0000000000000000001")

    def test_format_units(self):
        assert format_units(U) == "1"
        assert format_units(U // 4) == "0.25"
        assert format_units(1) == "0.000000000000000001"
        assert format_units(-3 * U // 2) == "-1.5"


class TestSimulator:

    def test_run(self):
        report = Simulator(DswapConfig(), deployer="dev").run(SCRIPT)
        assert [s.ok for s in report.steps] == [False, True, True, True, True, True]
        assert report.steps[0].error == "ReserveFloorError"
        assert report.final_state["accounts"]["dev"]["native"] == "1"
        assert report.final_state["accounts"]["alice"]["native"] == "9"

    def test_unexpected_failure_stops(self):
        script = {"steps": [{"op": "sell", "account": "deployer", "amount": "10"}]}
        with pytest.raises(ReserveFloorError):
            Simulator(DswapConfig()).run(script)

    def test_expected_failure_that_succeeds(self):
        script = {
            "accounts": {"alice": "1"},
            "steps": [{"op": "buy", "account": "alice", "amount": "1", "expect": "SlippageExceededError"}],
        }
        with pytest.raises(InvalidInputError, match="expected"):
            Simulator(DswapConfig()).run(script)

    def test_unknown_op(self):
        with pytest.raises(InvalidInputError, match="unknown op"):
            Simulator(DswapConfig()).run({"steps": [{"op": "mint"}]})

    def test_missing_field(self):
        with pytest.raises(InvalidInputError, match="missing field"):
            Simulator(DswapConfig()).run({"steps": [{"op": "buy", "account": "alice"}]})


class TestCli:

    def test_quote_buy(self, config_file):
        result = CliRunner().invoke(cli, ["--config", config_file, "quote", "buy", "1"])
        assert result.exit_code == 0, result.output
        net = U - U * 30 // 10_000
        expected = (net * 900_000 * U) // (100 * U + net)
        assert f"Receive (est.):  {format_units(expected)} DSWP" in result.output
        assert "Price impact:" in result.output

    def test_quote_sell_at_floor_warns(self, config_file):
        result = CliRunner().invoke(cli, ["--config", config_file, "quote", "sell", "1000"])
        assert result.exit_code == 0, result.output
        assert "reserve floor" in result.output

    def test_quote_sell_after_buy(self, config_file):
        result = CliRunner().invoke(
            cli, ["--config", config_file, "quote", "sell", "100", "--after-buy", "5"]
        )
        assert result.exit_code == 0, result.output
        assert "reserve floor" not in result.output

    def test_quote_bad_amount(self, config_file):
        result = CliRunner().invoke(cli, ["--config", config_file, "quote", "buy", "0"])
        assert result.exit_code != 0
        assert "positive" in result.output

    def test_show_config(self, config_file):
        result = CliRunner().invoke(cli, ["--config", config_file, "config"])
        assert result.exit_code == 0, result.output
        assert json.loads(result.output)["amm"]["fee_bps"] == 30

    def test_simulate_json(self, config_file, tmp_path):
        script = _write_script(tmp_path, SCRIPT)
        result = CliRunner().invoke(cli, ["--config", config_file, "simulate", script, "--json"])
        assert result.exit_code == 0, result.output
        report = json.loads(result.output)
        assert len(report["steps"]) == 6
        assert report["final_state"]["accounts"]["dev"]["staked"] == "100"

    def test_simulate_text(self, config_file, tmp_path):
        script = _write_script(tmp_path, SCRIPT)
        result = CliRunner().invoke(cli, ["--config", config_file, "simulate", script])
        assert result.exit_code == 0, result.output
        assert "dev claimed 1 native" in result.output

    def test_simulate_failure(self, config_file, tmp_path):
        script = _write_script(tmp_path, {"steps": [{"op": "claim", "account": "nobody"}]})
        result = CliRunner().invoke(cli, ["--config", config_file, "simulate", script])
        assert result.exit_code == 1
        assert "InvalidInputError" in result.output

    def test_bad_config(self, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text("[amm]\nfee_bps = 20000\n")
        result = CliRunner().invoke(cli, ["--config", str(path), "config"])
        assert result.exit_code != 0
        assert "fee_bps" in result.output
