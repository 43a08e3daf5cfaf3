"""
Integration tests for the CLI.

Usage commands run against a real SQLite file in a temp directory; the
model gateway is always scripted.
"""

import os
import tempfile
from unittest.mock import Mock, patch

import yaml
from typer.testing import CliRunner

from case_critique.cli.main import app
from case_critique.sdk.openai_client import ConnectionCheck
from case_critique.service import build_analyzer as real_build_analyzer

from conftest import FakeGateway, comprehensive_response, single_response


class TestCLI:
    """Test CLI commands end to end."""

    def setup_method(self):
        """Set up test environment."""
        self.runner = CliRunner()
        self.temp_dir = tempfile.mkdtemp()
        self.db_path = os.path.join(self.temp_dir, "usage.db")
        self.config_path = os.path.join(self.temp_dir, "config.yaml")
        with open(self.config_path, 'w', encoding='utf-8') as f:
            yaml.dump({"storage": {"db_path": self.db_path}}, f)

    def teardown_method(self):
        """Clean up test environment."""
        import shutil
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _invoke(self, *args):
        return self.runner.invoke(app, ["--config", self.config_path, *args])

    def _scripted_analyzer(self, *responses):
        """Replacement for build_analyzer wiring in a FakeGateway."""
        gateway = FakeGateway(*responses)
        return lambda config: real_build_analyzer(config, gateway=gateway)

    def test_init_creates_database(self):
        result = self._invoke("init")

        assert result.exit_code == 0
        assert "Database initialized" in result.stdout
        assert os.path.exists(self.db_path)

    def test_simulate_usage_clear(self):
        """Counters persist between invocations until cleared."""
        result = self._invoke("simulate", "alice", "--requests", "3")
        assert result.exit_code == 0
        assert "Simulated 3 requests for alice" in result.stdout

        result = self._invoke("usage", "alice")
        assert result.exit_code == 0
        assert "Requests this minute" in result.stdout
        assert "12" in result.stdout

        result = self._invoke("clear", "alice")
        assert result.exit_code == 0
        assert "Cleared usage data for alice" in result.stdout

        result = self._invoke("usage", "alice")
        assert "15" in result.stdout

    def test_sample_good(self):
        result = self._invoke("sample", "good")

        assert result.exit_code == 0
        assert "Chief Complaint" in result.stdout

    def test_sample_unknown(self):
        result = self._invoke("sample", "excellent")

        assert result.exit_code == 1
        assert "Unknown sample" in result.stdout

    def test_analyze_comprehensive(self):
        with patch('case_critique.cli.main.build_analyzer',
                   side_effect=self._scripted_analyzer(comprehensive_response())):
            result = self._invoke("analyze", "--sample", "good")

        assert result.exit_code == 0
        assert "Case Critique" in result.stdout
        assert "10/12" in result.stdout
        assert "Excellent" in result.stdout

    def test_analyze_single_criterion_from_file(self):
        case_file = os.path.join(self.temp_dir, "case.txt")
        with open(case_file, 'w', encoding='utf-8') as f:
            f.write("Patient presents with two days of productive cough and fever. " * 5)

        with patch('case_critique.cli.main.build_analyzer',
                   side_effect=self._scripted_analyzer(single_response(score=2))):
            result = self._invoke("analyze", case_file, "--criterion", "historyPhysical")

        assert result.exit_code == 0
        assert "2/3" in result.stdout
        assert "Vitals documented" in result.stdout

    def test_analyze_over_quota(self):
        """An exhausted identity is refused with the rate-limit status."""
        self._invoke("simulate", "alice", "--requests", "15")

        with patch('case_critique.cli.main.build_analyzer',
                   side_effect=self._scripted_analyzer()):
            result = self._invoke("analyze", "--sample", "good", "--identity", "alice")

        assert result.exit_code == 1
        assert "RateLimitError" in result.stdout
        assert "HTTP 429" in result.stdout

    def test_analyze_unknown_criterion(self):
        with patch('case_critique.cli.main.build_analyzer',
                   side_effect=self._scripted_analyzer()):
            result = self._invoke("analyze", "--sample", "poor", "--criterion", "bedsideManner")

        assert result.exit_code == 1
        assert "InvalidCaseNoteError" in result.stdout
        assert "HTTP 400" in result.stdout

    def test_analyze_without_input(self):
        result = self._invoke("analyze")

        assert result.exit_code == 1
        assert "Provide a case note file" in result.stdout

    @patch('case_critique.cli.main.build_gateway')
    def test_check_success(self, mock_build_gateway):
        gateway = Mock()
        gateway.check_connection.return_value = ConnectionCheck(
            success=True,
            message="Successfully connected to gpt-4o-mini",
            response="Hello!"
        )
        mock_build_gateway.return_value = gateway

        result = self._invoke("check")

        assert result.exit_code == 0
        assert "Successfully connected to gpt-4o-mini" in result.stdout

    @patch('case_critique.cli.main.build_gateway')
    def test_check_failure(self, mock_build_gateway):
        gateway = Mock()
        gateway.check_connection.return_value = ConnectionCheck(
            success=False,
            message="Failed to connect to model endpoint",
            error="Could not reach model endpoint"
        )
        mock_build_gateway.return_value = gateway

        result = self._invoke("check")

        assert result.exit_code == 1
        assert "Failed to connect" in result.stdout
