"""
Tests for the jmlctl command line interface.
"""

import json
from datetime import datetime, timedelta, timezone

import pytest
from click.testing import CliRunner

from jml_workflow.cli.jmlctl import cli
from jml_workflow.engine import StateManager
from jml_workflow.models import SaasApp, User

TENANT = "default"


@pytest.fixture
def workspace(tmp_path):
    """State file seeded with one user plus a config pointing at tmp_path."""
    state = StateManager(tmp_path / "state.json")
    state.add_user(User(id="u-1", first_name="Ada", last_name="Lovelace", email="ada@acme.example",
                        department="Engineering", job_title="Engineer", manager="grace"))
    state.add_app(SaasApp(id="github", name="GitHub"))
    state.add_app(SaasApp(id="slack", name="Slack"))

    config_file = tmp_path / "config.json"
    config_file.write_text(json.dumps({
        "state_file": str(tmp_path / "state.json"),
        "audit_dir": str(tmp_path / "audit"),
        "evidence_dir": str(tmp_path / "evidence"),
    }))
    return tmp_path


def write_json(path, data):
    path.write_text(json.dumps(data))
    return str(path)


@pytest.fixture
def runner():
    return CliRunner()


def invoke(runner, workspace, *args):
    return runner.invoke(cli, ["--config", str(workspace / "config.json"), *args], obj={})


class TestJmlctl:
    """Test cases for jmlctl commands."""

    def test_joiner_command(self, runner, workspace):
        """Test running a joiner from a metadata file."""
        metadata = write_json(workspace / "joiner.json", {
            "department": "Engineering",
            "job_title": "Engineer",
            "manager": "grace",
            "apps_to_provision": ["github", "slack"],
            "start_date": "2024-03-01T00:00:00Z",
        })

        result = invoke(runner, workspace, "joiner", "u-1", metadata)

        assert result.exit_code == 0, result.output
        assert "Event completed successfully" in result.output

        state = StateManager(workspace / "state.json")
        assert [r.app_id for r in state.get_user_app_access_list("u-1", TENANT)] == ["github", "slack"]

    def test_unknown_user_exits_nonzero(self, runner, workspace):
        """Test that a failed event exits with status 1."""
        metadata = write_json(workspace / "joiner.json", {
            "department": "Engineering",
            "job_title": "Engineer",
            "manager": "grace",
            "start_date": "2024-03-01T00:00:00Z",
        })

        result = invoke(runner, workspace, "joiner", "ghost", metadata)

        assert result.exit_code == 1
        assert "User not found: ghost" in result.output

    def test_invalid_metadata(self, runner, workspace):
        """Test that malformed metadata is rejected before processing."""
        metadata = write_json(workspace / "mover.json", {"new_department": "Sales"})

        result = invoke(runner, workspace, "mover", "u-1", metadata)

        assert result.exit_code != 0
        assert "Invalid mover metadata" in result.output

    def test_future_leaver_is_pending(self, runner, workspace):
        """Test that a leaver with a future last day is reported as pending."""
        metadata = write_json(workspace / "leaver.json", {
            "department": "Engineering",
            "last_working_day": (datetime.now(timezone.utc) + timedelta(days=7)).isoformat(),
        })

        result = invoke(runner, workspace, "leaver", "u-1", metadata)

        assert result.exit_code == 0, result.output
        assert "Event pending" in result.output
        assert StateManager(workspace / "state.json").get_user("u-1").is_active is True

    def test_show_user_and_audit_trail(self, runner, workspace):
        """Test the show-user and audit-trail commands after a joiner."""
        metadata = write_json(workspace / "joiner.json", {
            "department": "Engineering",
            "job_title": "Engineer",
            "manager": "grace",
            "apps_to_provision": ["github"],
            "start_date": "2024-03-01T00:00:00Z",
        })
        invoke(runner, workspace, "joiner", "u-1", metadata)

        shown = invoke(runner, workspace, "show-user", "u-1")
        assert shown.exit_code == 0, shown.output
        assert "Ada Lovelace" in shown.output
        assert "GitHub" in shown.output

        trail = invoke(runner, workspace, "audit-trail", "u-1")
        assert trail.exit_code == 0, trail.output
        assert "provision_access" in trail.output

    def test_show_missing_user(self, runner, workspace):
        """Test show-user for an unknown user."""
        result = invoke(runner, workspace, "show-user", "ghost")
        assert result.exit_code == 1

    def test_templates(self, runner, workspace):
        """Test listing the packaged role templates."""
        result = invoke(runner, workspace, "templates")

        assert result.exit_code == 0, result.output
        assert "eng-l1" in result.output

    def test_detect_and_process(self, runner, workspace):
        """Test detecting and processing candidate events."""
        result = invoke(runner, workspace, "detect", "--process")

        assert result.exit_code == 0, result.output
        assert "u-1" in result.output
        assert "Processed 1 joiners, 0 leavers" in result.output
