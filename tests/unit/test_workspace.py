"""Unit tests for vibe-assistant workspace functionality.

This module tests plan persistence, reconciliation on regeneration,
task operations and status reporting against a real project directory.
"""

import json
from unittest.mock import patch

import pytest

from vibe_assistant.config import VibeConfig
from vibe_assistant.errors import (
    DanglingDependencyError,
    PhaseNotCompleteError,
    StateNotFoundError,
    StorageError,
    UnknownTaskError,
)
from vibe_assistant.models import NextTask, PhaseComplete
from vibe_assistant.workspace import Workspace


@pytest.fixture
def workspace(tmp_path):
    return Workspace(tmp_path)


@pytest.fixture
def written(workspace, raw_plan):
    workspace.compile_and_write(raw_plan)
    return workspace


class TestWorkspaceInitialization:
    """Test cases for workspace creation."""

    def test_workspace_creation(self, tmp_path):
        workspace = Workspace(tmp_path)

        assert workspace.root == tmp_path.resolve()
        assert workspace.plan_path == tmp_path.resolve() / "docs" / "prd" / "plan.json"
        assert workspace.state_path == tmp_path.resolve() / "docs" / "progress" / "state.json"
        assert not workspace.is_initialized()

    def test_workspace_with_custom_dirs(self, tmp_path):
        workspace = Workspace(tmp_path, VibeConfig(output_dir="plans", progress_dir="plans/progress"))

        assert workspace.plan_path == tmp_path.resolve() / "plans" / "plan.json"
        assert workspace.state_path == tmp_path.resolve() / "plans" / "progress" / "state.json"

    def test_uninitialized_workspace(self, workspace):
        assert workspace.load_plan() is None
        assert workspace.load_state() is None
        with pytest.raises(StateNotFoundError):
            workspace.require_plan()
        with pytest.raises(StateNotFoundError):
            workspace.next_task()


class TestPlanPersistence:
    """Test cases for writing and regenerating plans."""

    def test_first_write_initializes(self, workspace, raw_plan):
        plan, state, reconciled = workspace.compile_and_write(raw_plan)

        assert reconciled is False
        assert workspace.is_initialized()
        assert workspace.load_plan() == plan
        assert workspace.load_state() == state
        data = json.loads(workspace.plan_path.read_text(encoding="utf-8"))
        assert data["totalTasks"] == 4

    def test_project_name_override(self, workspace, raw_plan):
        plan, _, _ = workspace.compile_and_write(raw_plan, project_name="Renamed")

        assert plan.project_name == "Renamed"

    def test_regeneration_reconciles(self, written, raw_plan):
        written.start_task("phase1-task1")
        written.complete_task("phase1-task1", note="done")
        written.add_checkpoint("Skeleton in place")
        raw_plan["phases"][0]["tasks"].pop()  # drop phase1-task3
        raw_plan["phases"][1]["tasks"].append(
            {"id": "phase2-task2", "title": "Add auth", "description": "", "dependencies": []}
        )

        plan, state, reconciled = written.compile_and_write(raw_plan)

        assert reconciled is True
        assert state.status_of("phase1-task1") == "completed"
        assert state.tasks["phase1-task1"].notes == "done"
        assert state.status_of("phase2-task2") == "pending"
        assert "phase1-task3" not in state.tasks
        assert len(state.checkpoints) == 1
        assert written.load_state() == state

    def test_compile_error_writes_nothing(self, workspace, make_plan):
        raw = make_plan({1: [("phase1-task1", ["phase1-task9"])]})

        with pytest.raises(DanglingDependencyError):
            workspace.compile_and_write(raw)

        assert not workspace.plan_path.exists()
        assert not workspace.state_path.exists()

    def test_state_write_failure_restores_plan(self, written, raw_plan):
        before = written.plan_path.read_bytes()
        raw_plan["phases"][1]["tasks"].append(
            {"id": "phase2-task2", "title": "Add auth", "description": "", "dependencies": []}
        )

        with patch.object(written.store, "save", side_effect=StorageError("disk full")):
            with pytest.raises(StorageError):
                written.compile_and_write(raw_plan)

        assert written.plan_path.read_bytes() == before
        assert written.load_state().tasks.keys() == {
            "phase1-task1", "phase1-task2", "phase1-task3", "phase2-task1"
        }

    def test_first_write_failure_removes_plan(self, workspace, raw_plan):
        with patch.object(workspace.store, "save", side_effect=StorageError("disk full")):
            with pytest.raises(StorageError):
                workspace.compile_and_write(raw_plan)

        assert not workspace.plan_path.exists()

    def test_corrupt_plan_file(self, written):
        written.plan_path.write_text("{broken", encoding="utf-8")

        with pytest.raises(StorageError):
            written.load_plan()

    def test_undecodable_plan_file(self, written):
        written.plan_path.write_bytes(b'\xff\xfe{"bad"')

        with pytest.raises(StorageError):
            written.load_plan()

    def test_write_plan_uses_store_planned_state(self, written, raw_plan):
        written.complete_task("phase1-task1")

        with patch.object(written.store, "planned_state", wraps=written.store.planned_state) as planned, \
                patch.object(written.store, "log_written", wraps=written.store.log_written) as logged:
            _, state, reconciled = written.compile_and_write(raw_plan)

        planned.assert_called_once()
        stored, updated = logged.call_args.args
        assert stored.status_of("phase1-task1") == "completed"
        assert updated == state
        assert reconciled is True


class TestTaskOperations:
    """Test cases for task execution through the workspace."""

    def test_next_start_complete(self, written):
        result = written.next_task()
        assert isinstance(result, NextTask)
        assert result.task_id == "phase1-task1"

        written.start_task("phase1-task1")
        state = written.complete_task("phase1-task1")

        assert state.status_of("phase1-task1") == "completed"
        assert written.next_task().task_id == "phase1-task2"

    def test_unknown_task(self, written):
        with pytest.raises(UnknownTaskError):
            written.start_task("phase5-task1")

    def test_checkpoint_defaults_to_current_phase(self, written):
        state = written.add_checkpoint("  Started work  ")

        assert state.checkpoints[-1].task == "phase1"
        assert state.checkpoints[-1].summary == "Started work"

    def test_checkpoint_requires_summary(self, written):
        with pytest.raises(ValueError):
            written.add_checkpoint("   ")

    def test_advance_phase(self, written):
        with pytest.raises(PhaseNotCompleteError):
            written.advance_phase()

        for task_id in ("phase1-task1", "phase1-task2", "phase1-task3"):
            written.complete_task(task_id)
        assert isinstance(written.next_task(), PhaseComplete)

        state = written.advance_phase()

        assert state.current_phase == 2
        assert written.next_task().task_id == "phase2-task1"

    def test_completed_task_ids(self, written):
        written.complete_task("phase1-task1")

        assert written.completed_task_ids() == ["phase1-task1"]


class TestStatus:
    def test_status_report(self, written):
        written.start_task("phase1-task1")
        written.add_checkpoint("one")
        written.add_checkpoint("two")
        written.add_checkpoint("three")
        written.add_checkpoint("four")

        status = written.status()

        assert status["project_name"] == "Todo API"
        assert status["phase_count"] == 2
        assert status["phase_name"] == "Foundation"
        assert status["summary"]["in_progress"] == 1
        assert [task["status"] for task in status["phase_tasks"]] == ["in_progress", "pending", "pending"]
        assert status["phase_tasks"][1]["unmet_dependencies"] == ["phase1-task1"]
        assert [c["summary"] for c in status["recent_checkpoints"]] == ["two", "three", "four"]
