"""Tests for the tasktree command line."""

import json

import pytest
from typer.testing import CliRunner

from tasktree import __version__
from tasktree.interfaces.cli import app

runner = CliRunner()


@pytest.fixture(autouse=True)
def home(tmp_path, monkeypatch):
    """Point every command at an isolated data directory."""
    monkeypatch.setenv("TASKTREE_HOME", str(tmp_path))
    monkeypatch.delenv("TASKTREE_PROJECT", raising=False)
    return tmp_path


@pytest.fixture
def project():
    """An initialized project holding Epic (#1, size m, high) with API (#2, 2 pts)."""
    invoke("project", "init", "acme")
    invoke("task", "add", "Epic", "--size", "m", "--priority", "high", "-p", "acme")
    invoke("task", "add", "API", "--parent", "1", "--points", "2", "-p", "acme")
    return "acme"


def invoke(*args):
    return runner.invoke(app, list(args))


# =============================================================================
# Global options and projects
# =============================================================================


class TestGlobal:
    """Top-level options."""

    def test_version(self):
        result = invoke("--version")
        assert result.exit_code == 0
        assert __version__ in result.output


class TestProjectCommands:
    """project init / list / stats / check."""

    def test_init_and_list(self):
        assert invoke("project", "init", "acme").exit_code == 0
        result = invoke("project", "list")
        assert "acme" in result.output

    def test_init_twice(self):
        invoke("project", "init", "acme")
        result = invoke("project", "init", "acme")
        assert result.exit_code == 1
        assert "already exists" in result.output

    def test_list_empty(self):
        assert "No projects found" in invoke("project", "list").output

    def test_stats(self, project):
        invoke("task", "status", "2", "completed", "-p", project)
        result = invoke("project", "stats", "-p", project)
        assert result.exit_code == 0
        assert "Story points:   2/2" in result.output
        assert "Progress:       100.0%" in result.output

    def test_check(self, project):
        result = invoke("project", "check", "-p", project)
        assert result.exit_code == 0
        assert "consistent" in result.output

    def test_project_from_env(self, project, monkeypatch):
        monkeypatch.setenv("TASKTREE_PROJECT", project)
        assert invoke("project", "stats").exit_code == 0

    def test_missing_project(self):
        result = invoke("task", "list")
        assert result.exit_code == 1
        assert "No project specified" in result.output


# =============================================================================
# Tasks
# =============================================================================


class TestTaskCommands:
    """task add / list / show / status / move / reparent / delete."""

    def test_list_shows_hierarchy(self, project):
        result = invoke("task", "list", "-p", project)
        assert result.exit_code == 0
        assert "#1 Epic (high, size m, 0%)" in result.output
        assert "  [ ] #2 API (high, 2 pts)" in result.output

    def test_leaf_filter(self, project):
        result = invoke("task", "list", "-f", "leaf", "-p", project)
        assert "#2 API" in result.output
        assert "#1 Epic" not in result.output

    def test_unknown_filter(self, project):
        assert invoke("task", "list", "-f", "done", "-p", project).exit_code == 1

    def test_priority_violation_exits_1(self, project):
        result = invoke("task", "add", "Low", "--parent", "1", "--priority", "low", "-p", project)
        assert result.exit_code == 1
        assert "cannot have lower priority" in result.output

    def test_points_over_ceiling(self, project):
        result = invoke("task", "add", "Big", "--parent", "1", "--points", "8", "-p", project)
        assert result.exit_code == 1
        assert "maximum allowed is 5" in result.output

    def test_status_rolls_up(self, project):
        assert invoke("task", "status", "2", "completed", "-p", project).exit_code == 0
        result = invoke("task", "show", "1", "-p", project)
        assert "status: completed" in result.output

    def test_status_on_parent_rejected(self, project):
        result = invoke("task", "status", "1", "completed", "-p", project)
        assert result.exit_code == 1

    def test_points_history(self, project):
        result = invoke("task", "points", "2", "3", "-p", project)
        assert "3 story points (initial 2, 1 change(s))" in result.output

    def test_move_outside_parent_context(self, project):
        invoke("task", "add", "Other", "-p", project)
        result = invoke("task", "move", "2", "3", "-p", project)
        assert result.exit_code == 1
        assert "Subtasks cannot be moved outside their parent task context" in result.output

    def test_move_warns_about_priority(self, project):
        invoke("task", "add", "Later", "--priority", "low", "-p", project)
        result = invoke("task", "move", "3", "1", "-p", project)
        assert result.exit_code == 0
        assert "--confirm" in result.output

    def test_move_with_confirm(self, project):
        invoke("task", "add", "Later", "--priority", "low", "-p", project)
        result = invoke("task", "move", "3", "1", "--confirm", "-p", project)
        assert result.exit_code == 0
        assert "Priority changed from low to high" in result.output

    def test_reparent_to_top_level(self, project):
        result = invoke("task", "reparent", "2", "-p", project)
        assert result.exit_code == 0
        assert "the top level" in result.output

    def test_delete_parent_needs_confirmation(self, project):
        result = runner.invoke(app, ["task", "delete", "1", "-p", project], input="n\n")
        assert result.exit_code == 1
        result = invoke("task", "delete", "1", "-y", "-p", project)
        assert "Deleted 2 task(s)" in result.output


# =============================================================================
# Breakdown
# =============================================================================


class TestBreakdownCommands:
    """breakdown validate / commit."""

    def write(self, home, payload):
        path = home / "plan.json"
        path.write_text(json.dumps(payload), encoding="utf-8")
        return str(path)

    def test_validate_accepts(self, project, home):
        plan = self.write(home, {"tasks": [{"title": "Tests", "story_points": 3}]})
        result = invoke("breakdown", "validate", plan, "--parent", "1", "-p", project)
        assert result.exit_code == 0
        assert "1 subtask(s) accepted" in result.output

    def test_validate_rejects_with_all_violations(self, project, home):
        plan = self.write(
            home,
            [
                {"title": "Huge", "story_points": 8},
                {"title": "Lazy", "priority": "low", "story_points": 2},
            ],
        )
        result = invoke("breakdown", "validate", plan, "--parent", "1", "-p", project)
        assert result.exit_code == 1
        assert "AI response violates story point constraints" in result.output
        assert "Subtask 'Huge' has 8 story points, but maximum allowed is 5" in result.output
        assert "Subtask 'Lazy' cannot have lower priority" in result.output

    def test_commit_adds_subtasks(self, project, home):
        plan = self.write(home, {"subtasks": [{"title": "Tests", "story_points": 3}]})
        result = invoke("breakdown", "commit", plan, "--parent", "1", "-p", project)
        assert result.exit_code == 0
        assert "Added 1 subtask(s) under task #1" in result.output
        listing = invoke("task", "list", "-p", project)
        assert "#3 Tests" in listing.output

    def test_not_a_list(self, project, home):
        plan = self.write(home, {"title": "single"})
        result = invoke("breakdown", "validate", plan, "--parent", "1", "-p", project)
        assert result.exit_code == 1
        assert "must contain a list" in result.output
