"""Tests for CLI commands"""

from unittest.mock import Mock, patch

import pytest
from typer.testing import CliRunner

from cli.client.base import PulseAPIError
from cli.main import app
from cli.utils.config_manager import ConfigManager


@pytest.fixture
def runner():
    """CLI test runner"""
    return CliRunner()


def make_client(mock_client_class) -> Mock:
    mock_client = Mock()
    mock_client.__enter__ = Mock(return_value=mock_client)
    mock_client.__exit__ = Mock(return_value=None)
    mock_client_class.return_value = mock_client
    return mock_client


class TestMainCommands:
    """Test main CLI commands"""

    def test_version(self, runner):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert "Pulse Engine CLI v1.0.0" in result.stdout

    @patch("cli.main.PulseClient")
    def test_status_success(self, mock_client_class, runner):
        """Test status command with successful connection"""
        mock_client = make_client(mock_client_class)
        mock_client.health_check.return_value = {
            "version": "1.0.0",
            "environment": "development",
            "engine": {
                "running": True,
                "loops": {
                    "jobs": {
                        "interval_s": 30.0,
                        "runs": 3,
                        "failures": 0,
                        "skipped": 0,
                        "last_error": None,
                        "next_run_at": None,
                    }
                },
            },
        }

        result = runner.invoke(app, ["status"])
        assert result.exit_code == 0
        assert "Connected Successfully" in result.stdout
        assert "jobs" in result.stdout

    @patch("cli.main.PulseClient")
    def test_status_failure(self, mock_client_class, runner):
        """Test status command with connection failure"""
        mock_client = make_client(mock_client_class)
        mock_client.health_check.side_effect = PulseAPIError("Connection failed")

        result = runner.invoke(app, ["status"])
        assert result.exit_code == 1
        assert "Connection Failed" in result.stdout


class TestJobsCommands:
    """Test jobs commands"""

    @patch("cli.commands.jobs.PulseClient")
    def test_schedule_in_minutes(self, mock_client_class, runner):
        mock_client = make_client(mock_client_class)
        mock_client.schedule_job.return_value = {
            "job_id": "job-123",
            "run_at": "2025-03-03T10:00:00Z",
            "recurrence": "daily",
        }

        result = runner.invoke(
            app,
            ["jobs", "schedule", "reminder", "--in", "5", "--every", "daily",
             "--payload", '{"title": "Stand-up"}'],
        )

        assert result.exit_code == 0
        assert "Job scheduled: job-123" in result.stdout
        kwargs = mock_client.schedule_job.call_args.kwargs
        assert kwargs["type"] == "reminder"
        assert kwargs["payload"] == {"title": "Stand-up"}
        assert kwargs["recurrence"] == "daily"

    def test_schedule_requires_one_time_option(self, runner):
        result = runner.invoke(app, ["jobs", "schedule", "ping"])
        assert result.exit_code == 1
        assert "exactly one of --at or --in" in result.stdout

    def test_schedule_rejects_bad_recurrence(self, runner):
        result = runner.invoke(app, ["jobs", "schedule", "ping", "--in", "1", "--every", "monthly"])
        assert result.exit_code == 1
        assert "Recurrence must be one of" in result.stdout

    def test_schedule_rejects_bad_payload(self, runner):
        result = runner.invoke(app, ["jobs", "schedule", "ping", "--in", "1", "--payload", "{"])
        assert result.exit_code == 1
        assert "not valid JSON" in result.stdout

    @patch("cli.commands.jobs.PulseClient")
    def test_schedule_api_error(self, mock_client_class, runner):
        mock_client = make_client(mock_client_class)
        mock_client.schedule_job.side_effect = PulseAPIError("Unknown job type: teleport")

        result = runner.invoke(
            app, ["jobs", "schedule", "teleport", "--at", "2025-03-03T10:00:00Z"]
        )
        assert result.exit_code == 1
        assert "Failed to schedule job" in result.stdout

    @patch("cli.commands.jobs.PulseClient")
    def test_list_empty(self, mock_client_class, runner):
        mock_client = make_client(mock_client_class)
        mock_client.list_jobs.return_value = {"jobs": [], "total": 0}

        result = runner.invoke(app, ["jobs", "list"])
        assert result.exit_code == 0
        assert "No scheduled jobs" in result.stdout

    @patch("cli.commands.jobs.PulseClient")
    def test_list_with_status_filter(self, mock_client_class, runner):
        mock_client = make_client(mock_client_class)
        mock_client.list_jobs.return_value = {
            "jobs": [
                {
                    "id": "job-1",
                    "type": "ping",
                    "status": "pending",
                    "run_at": "2025-03-03T10:00:00Z",
                    "recurrence": None,
                    "attempts": 0,
                    "last_error": None,
                }
            ],
            "total": 1,
        }

        result = runner.invoke(app, ["jobs", "list", "--status", "pending"])
        assert result.exit_code == 0
        assert "job-1" in result.stdout
        mock_client.list_jobs.assert_called_once_with(status=["pending"])

    @patch("cli.commands.jobs.PulseClient")
    def test_cancel(self, mock_client_class, runner):
        mock_client = make_client(mock_client_class)
        mock_client.cancel_job.return_value = {"success": True, "job_id": "job-1"}

        result = runner.invoke(app, ["jobs", "cancel", "job-1"])
        assert result.exit_code == 0
        assert "Job cancelled: job-1" in result.stdout
        mock_client.cancel_job.assert_called_once_with("job-1")


class TestNotificationsCommands:
    """Test notification commands"""

    @patch("cli.commands.notifications.PulseClient")
    def test_pull_empty(self, mock_client_class, runner):
        mock_client = make_client(mock_client_class)
        mock_client.pull_notifications.return_value = {"notifications": [], "count": 0}

        result = runner.invoke(app, ["notifications", "pull", "--limit", "5"])
        assert result.exit_code == 0
        assert "No new notifications" in result.stdout
        mock_client.pull_notifications.assert_called_once_with(limit=5)

    @patch("cli.commands.notifications.PulseClient")
    def test_pull_with_notifications(self, mock_client_class, runner):
        mock_client = make_client(mock_client_class)
        mock_client.pull_notifications.return_value = {
            "notifications": [
                {
                    "id": "n1",
                    "subject_id": "alice",
                    "source": "email",
                    "source_event_id": "m1",
                    "priority": "urgent",
                    "title": "[URGENT] Down",
                    "body": "",
                    "actions": [],
                    "timestamp": "2025-03-03T09:00:00+00:00",
                }
            ],
            "count": 1,
        }

        result = runner.invoke(app, ["notifications", "pull"])
        assert result.exit_code == 0
        assert "email" in result.stdout

    @patch("cli.commands.notifications.PulseClient")
    def test_pull_api_error(self, mock_client_class, runner):
        mock_client = make_client(mock_client_class)
        mock_client.pull_notifications.side_effect = PulseAPIError("boom")

        result = runner.invoke(app, ["notifications", "pull"])
        assert result.exit_code == 1
        assert "Failed to pull notifications" in result.stdout


class TestConfigCommands:
    """Test configuration commands"""

    @patch("cli.commands.config.config")
    def test_set_config(self, mock_config, runner):
        """Test setting configuration"""
        result = runner.invoke(app, ["config", "set", "api.base_url", "http://localhost:8000"])
        assert result.exit_code == 0
        mock_config.set.assert_called_once_with("api.base_url", "http://localhost:8000")

    def test_set_config_invalid_url(self, runner):
        """Test setting invalid URL"""
        result = runner.invoke(app, ["config", "set", "api.base_url", "invalid-url"])
        assert result.exit_code == 1
        assert "must start with http" in result.stdout

    @patch("cli.commands.config.config")
    def test_get_config(self, mock_config, runner):
        mock_config.get.return_value = "http://localhost:8000"

        result = runner.invoke(app, ["config", "get", "api.base_url"])
        assert result.exit_code == 0
        assert "http://localhost:8000" in result.stdout

    @patch("cli.commands.config.config")
    def test_dev_mode(self, mock_config, runner):
        result = runner.invoke(app, ["config", "dev-mode", "alice"])
        assert result.exit_code == 0
        mock_config.set.assert_called_once_with("api.headers.X-User-ID", "alice")


class TestConfigManager:
    """Test the YAML config store"""

    def test_defaults_without_file(self, tmp_path):
        manager = ConfigManager(tmp_path / "pulse")

        assert manager.get("display.notifications_limit") == 50
        assert manager.get("missing.key", "fallback") == "fallback"
        assert not (tmp_path / "pulse").exists()

    def test_set_persists_and_merges(self, tmp_path):
        manager = ConfigManager(tmp_path / "pulse")

        manager.set("api.headers.X-User-ID", "alice")

        reloaded = ConfigManager(tmp_path / "pulse")
        assert reloaded.get("api.headers.X-User-ID") == "alice"
        assert reloaded.get("api.timeout") == 30


def test_invalid_command(runner):
    """Test invalid command handling"""
    result = runner.invoke(app, ["invalid-command"])
    assert result.exit_code != 0
