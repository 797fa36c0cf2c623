"""Tests for wheel ledger CLI commands."""

import json

import pytest
from click.testing import CliRunner

from src.wheel_ledger.cli import cli


@pytest.fixture
def runner() -> CliRunner:
    """Create a CLI test runner."""
    return CliRunner()


@pytest.fixture
def base_args(tmp_path) -> list[str]:
    """Global options pointing at a temporary database and an empty config file."""
    config_file = tmp_path / "config.yaml"
    config_file.write_text("")
    return ["--db", str(tmp_path / "ledger.db"), "--config-file", str(config_file)]


@pytest.fixture
def invoke(runner: CliRunner, base_args: list[str]):
    def _invoke(*args: str):
        return runner.invoke(cli, [*base_args, *args])

    return _invoke


@pytest.fixture
def assigned(invoke):
    """Cycle 1: AAPL put sold at 50 for 2.00 and assigned."""
    assert invoke("start", "AAPL", "--date", "2025-01-02").exit_code == 0
    assert invoke(
        "record", "1", "SELL_PUT", "--date", "2025-01-02",
        "--contracts", "1", "--strike", "50", "--premium", "2",
    ).exit_code == 0
    assert invoke("record", "1", "PUT_ASSIGNED", "--date", "2025-01-17").exit_code == 0


class TestCycleCommands:
    """Tests for 'start', 'cycles' and 'close'."""

    def test_start(self, invoke) -> None:
        result = invoke("start", "aapl", "--date", "2025-01-02")

        assert result.exit_code == 0
        assert "Started cycle 1 for AAPL on 2025-01-02" in result.output

    def test_start_json(self, runner: CliRunner, base_args) -> None:
        result = runner.invoke(cli, [*base_args, "--json", "start", "MSFT", "--date", "2025-01-02"])

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["ticker"] == "MSFT"
        assert data["status"] == "Open"

    def test_cycles_and_close(self, invoke, assigned) -> None:
        close = invoke("close", "1", "--date", "2025-03-01")
        listing = invoke("cycles", "--status", "closed")

        assert close.exit_code == 0
        assert "Closed cycle 1 (AAPL)" in close.output
        assert "AAPL" in listing.output
        assert "2025-03-01" in listing.output

    def test_close_missing_cycle(self, invoke) -> None:
        result = invoke("close", "9", "--date", "2025-03-01")

        assert result.exit_code == 1
        assert "Error: Cycle not found: 9" in result.output

    def test_no_cycles(self, invoke) -> None:
        result = invoke("cycles")

        assert result.exit_code == 0
        assert "No cycles found." in result.output


class TestEventCommands:
    """Tests for 'record', 'events' and 'roll'."""

    def test_record(self, invoke) -> None:
        invoke("start", "AAPL", "--date", "2025-01-02")

        result = invoke(
            "record", "1", "sell_put", "--date", "2025-01-02",
            "--contracts", "1", "--strike", "50", "--premium", "2.00", "--fees", "0.65",
        )

        assert result.exit_code == 0
        assert "Recorded: #1" in result.output
        assert "SELL_PUT" in result.output
        assert "strike $50.00" in result.output

    def test_record_rejects_negative_strike(self, invoke) -> None:
        invoke("start", "AAPL", "--date", "2025-01-02")

        result = invoke(
            "record", "1", "SELL_PUT", "--date", "2025-01-02",
            "--contracts", "1", "--strike=-50", "--premium", "2",
        )

        assert result.exit_code == 1
        assert "Error:" in result.output
        assert "strike" in result.output

    def test_record_shows_diagnostics(self, invoke) -> None:
        invoke("start", "AAPL", "--date", "2025-01-02")

        result = invoke("record", "1", "CALL_ASSIGNED", "--date", "2025-01-17")

        assert result.exit_code == 0
        assert "Warning:" in result.output
        assert "UNMATCHED_EVENT" in result.output

    def test_events(self, invoke, assigned) -> None:
        result = invoke("events", "1")

        assert result.exit_code == 0
        assert "SELL_PUT" in result.output
        assert "PUT_ASSIGNED" in result.output

    def test_roll(self, invoke, assigned) -> None:
        invoke(
            "record", "1", "SELL_CALL", "--date", "2025-01-21",
            "--contracts", "1", "--strike", "55", "--premium", "1",
        )

        result = invoke(
            "roll", "1", "--date", "2025-02-14",
            "--close-premium", "0.40", "--strike", "57", "--premium", "1.20",
        )

        assert result.exit_code == 0
        assert "BUY_TO_CLOSE" in result.output
        assert "strike $57.00" in result.output

    def test_roll_without_call(self, invoke, assigned) -> None:
        result = invoke(
            "roll", "1", "--date", "2025-02-14",
            "--close-premium", "0.40", "--strike", "57", "--premium", "1.20",
        )

        assert result.exit_code == 1
        assert "No open call to roll" in result.output


class TestLedgerCommands:
    """Tests for 'lots', 'metrics' and 'phase'."""

    def test_lots(self, invoke, assigned) -> None:
        result = invoke("lots", "1")

        assert result.exit_code == 0
        assert "OPEN_UNCOVERED" in result.output
        assert "$48.00" in result.output

    def test_lots_export_csv(self, invoke, assigned) -> None:
        result = invoke("lots", "1", "--export", "csv")

        assert result.exit_code == 0
        assert result.output.splitlines()[0].startswith("lot_number,acquisition_method")

    def test_lots_json(self, runner: CliRunner, base_args, assigned) -> None:
        result = runner.invoke(cli, [*base_args, "--json", "lots", "1"])

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["lots"][0]["cost_basis"] == "48.0000"
        assert data["errors"] == []

    def test_lots_missing_cycle(self, invoke) -> None:
        result = invoke("lots", "5")

        assert result.exit_code == 1
        assert "Cycle not found" in result.output

    def test_metrics_with_price(self, invoke, assigned) -> None:
        result = invoke("metrics", "1", "--price", "52")

        assert result.exit_code == 0
        assert "AAPL Cycle 1 Metrics" in result.output
        assert "$200.00" in result.output

    def test_metrics_without_price(self, invoke, assigned) -> None:
        result = invoke("metrics", "1")

        assert result.exit_code == 0
        assert "Unrealized P&L:     N/A" in result.output
        assert "Warning: No current price" in result.output

    def test_phase(self, invoke, assigned) -> None:
        result = invoke("phase", "aapl")

        assert result.exit_code == 0
        assert "Current Phase: 2 (Shares Acquired)" in result.output
        assert "phase1: $200.00" in result.output


class TestAnalysisCommands:
    """Tests for 'detect' and 'taxlots'."""

    def test_detect(self, invoke, tmp_path) -> None:
        snapshot = tmp_path / "positions.json"
        snapshot.write_text(
            json.dumps(
                [
                    {"symbol": "AAPL", "instrument_type": "EQUITY", "quantity": 100},
                    {"symbol": "AAPL  250221C00200000", "instrument_type": "OPTION", "quantity": -1},
                ]
            )
        )

        result = invoke("detect", str(snapshot))

        assert result.exit_code == 0
        assert "covered_call" in result.output
        assert "high" in result.output

    def test_detect_bad_snapshot(self, invoke, tmp_path) -> None:
        snapshot = tmp_path / "positions.json"
        snapshot.write_text(json.dumps([{"instrument_type": "EQUITY"}]))

        result = invoke("detect", str(snapshot))

        assert result.exit_code == 1
        assert "Invalid position snapshot" in result.output

    def test_taxlots(self, invoke) -> None:
        result = invoke("taxlots", "250", "10", "--price", "12")

        assert result.exit_code == 0
        assert "$600.00" in result.output
        assert "  R" in result.output

    def test_taxlots_export_json(self, invoke) -> None:
        result = invoke("taxlots", "250", "10", "--export", "json")

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert [lot["shares"] for lot in data] == [100, 100, 50]
