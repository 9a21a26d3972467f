"""
Tests for the analytics CLI.
"""

import json
from unittest.mock import Mock, patch

import pytest

from modules.analytics.cli import main, parse_arguments, run_command
from modules.analytics.records import EntityType
from modules.database.queries import EntityNotFoundError


class TestParseArguments:
    """Test argument parsing."""

    def test_trend(self):
        args = parse_arguments(["trend", "tank", "fuel-1", "--hours", "48"])

        assert args.command == "trend"
        assert args.entity_type == "tank"
        assert args.entity_id == "fuel-1"
        assert args.hours == 48

    def test_invalid_entity_type(self):
        with pytest.raises(SystemExit):
            parse_arguments(["trend", "pump", "p-1"])

    def test_aggregate_defaults(self):
        args = parse_arguments(["aggregate"])

        assert args.granularity == "daily"
        assert args.days == 30
        assert args.tank_ids == []
        assert args.generator_ids == []

    def test_repeated_selection(self):
        args = parse_arguments(["summary", "--tank", "t1", "--tank", "t2", "--generator", "g1"])

        assert args.days == 7
        assert args.tank_ids == ["t1", "t2"]
        assert args.generator_ids == ["g1"]

    def test_invalid_granularity(self):
        with pytest.raises(SystemExit):
            parse_arguments(["aggregate", "--granularity", "hourly"])

    def test_command_required(self):
        with pytest.raises(SystemExit):
            parse_arguments([])


class TestRunCommand:
    """Test command dispatch."""

    @pytest.fixture
    def service(self):
        return Mock()

    def test_trend(self, service):
        run_command(service, parse_arguments(["trend", "generator", "gen-1", "--hours", "12"]))
        service.get_entity_trend.assert_called_once_with("generator", "gen-1", 12)

    def test_predict(self, service):
        run_command(service, parse_arguments(["predict", "tank", "fuel-1"]))
        service.get_entity_prediction.assert_called_once_with("tank", "fuel-1")

    def test_bulk(self, service):
        run_command(service, parse_arguments(["bulk", "--hours", "6", "--generator", "gen-1"]))
        service.get_bulk_analytics.assert_called_once_with([], ["gen-1"], 6)

    def test_aggregate(self, service):
        run_command(service, parse_arguments(["aggregate", "--granularity", "monthly", "--days", "90"]))
        service.get_aggregated_kpis.assert_called_once_with("monthly", 90, [], [])

    def test_summary_and_kpis(self, service):
        service.get_fleet_summary.return_value = {"summary": {}}

        assert run_command(service, parse_arguments(["summary"])) == {"summary": {}}
        run_command(service, parse_arguments(["kpis", "--days", "3", "--tank", "t1"]))

        service.get_fleet_summary.assert_called_once_with(7, [], [])
        service.get_consumption_kpis.assert_called_once_with(3, ["t1"], [])


class TestMain:
    """Test the CLI entry point."""

    @patch('modules.analytics.cli.create_tables')
    @patch('modules.analytics.cli.setup_logging')
    @patch('modules.analytics.cli.build_service')
    def test_prints_json(self, mock_build_service, mock_setup_logging, mock_create_tables, capsys):
        mock_build_service.return_value.get_entity_prediction.return_value = {"entityId": "gen-1"}

        assert main(["predict", "generator", "gen-1"]) == 0

        assert json.loads(capsys.readouterr().out) == {"entityId": "gen-1"}
        mock_setup_logging.assert_called_once_with(log_level="WARNING")
        mock_create_tables.assert_called_once()

    @patch('modules.analytics.cli.create_tables')
    @patch('modules.analytics.cli.setup_logging')
    @patch('modules.analytics.cli.build_service')
    def test_unknown_entity(self, mock_build_service, mock_setup_logging, mock_create_tables, capsys):
        mock_build_service.return_value.get_entity_trend.side_effect = EntityNotFoundError(EntityType.TANK, "x")

        assert main(["trend", "tank", "x"]) == 1
        assert "tank 'x' not found" in capsys.readouterr().err
