"""
Test suite for the offline CLI commands.
"""

import importlib
import json

import pytest
from click.testing import CliRunner

cli_main = importlib.import_module("vehicle_report_pipeline.cli.main")


@pytest.fixture
def runner(monkeypatch) -> CliRunner:
    """Provide a CLI runner with logging setup disabled."""
    monkeypatch.setattr(cli_main, "setup_logger", lambda **kwargs: None)
    return CliRunner()


class TestPlanCommand:
    """Test suite for the plan command."""

    def test_plan_prints_chunks(self, runner, tmp_path):
        # Arrange
        items = [
            {"id": "a", "path": "a.jpg", "category": "engine", "storage": 60},
            {"id": "b", "path": "b.jpg", "category": "exterior", "storage": 50},
            {"id": "c", "path": "c.jpg", "category": "exterior", "storage": 40},
        ]
        path = tmp_path / "items.json"
        path.write_text(json.dumps(items))

        # Act
        result = runner.invoke(cli_main.cli, ["plan", str(path), "--max-chunk-bytes", "100"])

        # Assert
        assert result.exit_code == 0, result.output
        assert "3 items in 2 chunks" in result.output
        assert "Chunk 0: 2 items, 90 bytes [exterior]" in result.output
        assert "Chunk 1: 1 items, 60 bytes [engine]" in result.output

    def test_plan_rejects_bad_budget(self, runner, tmp_path):
        path = tmp_path / "items.json"
        path.write_text("[]")

        result = runner.invoke(cli_main.cli, ["plan", str(path), "--max-chunk-bytes", "-1"])

        assert result.exit_code == 1
        assert "Error planning chunks" in result.output
