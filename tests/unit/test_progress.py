"""Unit tests for progress state transitions."""

import pytest

from vibe_assistant.compiler import compile_plan
from vibe_assistant.errors import IllegalTransitionError, PhaseNotCompleteError, UnknownTaskError
from vibe_assistant.progress import (
    advance_phase,
    append_checkpoint,
    initialize_state,
    reconcile,
    summarize,
    transition,
)


class TestInitializeState:
    def test_every_task_pending(self, plan):
        state = initialize_state(plan)

        assert state.current_phase == 1
        assert list(state.tasks) == plan.task_ids()
        assert all(record.status == "pending" for record in state.tasks.values())
        assert state.checkpoints == []


class TestTransition:
    """Test cases for forward-only status changes."""

    @pytest.mark.parametrize("old,new", [
        ("pending", "in_progress"),
        ("in_progress", "completed"),
        ("pending", "completed"),
    ])
    def test_legal_transitions(self, state, old, new):
        state.tasks["phase1-task1"].status = old

        updated = transition(state, "phase1-task1", new)

        assert updated.status_of("phase1-task1") == new

    @pytest.mark.parametrize("old,new", [
        ("completed", "pending"),
        ("completed", "in_progress"),
        ("in_progress", "pending"),
        ("pending", "pending"),
        ("completed", "completed"),
        ("pending", "blocked"),
    ])
    def test_illegal_transitions(self, state, old, new):
        state.tasks["phase1-task1"].status = old

        with pytest.raises(IllegalTransitionError) as exc_info:
            transition(state, "phase1-task1", new)

        assert exc_info.value.old_status == old
        assert state.status_of("phase1-task1") == old

    def test_unknown_task(self, state):
        with pytest.raises(UnknownTaskError):
            transition(state, "phase7-task1", "completed")

    def test_completion_sets_timestamp_and_note(self, state):
        updated = transition(state, "phase1-task1", "completed", note="Scaffolded with uv")

        record = updated.tasks["phase1-task1"]
        assert record.completed_at is not None
        assert record.notes == "Scaffolded with uv"
        assert updated.last_updated == record.completed_at

    def test_start_does_not_set_completed_at(self, state):
        updated = transition(state, "phase1-task1", "in_progress")

        assert updated.tasks["phase1-task1"].completed_at is None

    def test_input_state_untouched(self, state):
        transition(state, "phase1-task1", "completed", note="done")

        assert state.tasks["phase1-task1"].status == "pending"
        assert state.tasks["phase1-task1"].notes is None


class TestCheckpoints:
    def test_append_checkpoint(self, state):
        updated = append_checkpoint(state, 1, "phase1-task1", "Project skeleton in place")

        assert len(updated.checkpoints) == 1
        assert updated.checkpoints[0].summary == "Project skeleton in place"
        assert state.checkpoints == []

    def test_checkpoints_append_in_order(self, state):
        state = append_checkpoint(state, 1, "phase1-task1", "first")
        state = append_checkpoint(state, 1, "phase1-task2", "second")

        assert [checkpoint.summary for checkpoint in state.checkpoints] == ["first", "second"]


class TestReconcile:
    """Test cases for carrying progress onto a regenerated plan."""

    def test_preserves_drops_and_adds(self, state, make_plan):
        state = transition(state, "phase1-task1", "completed", note="done")
        state = transition(state, "phase1-task2", "in_progress")
        state = append_checkpoint(state, 1, "phase1-task1", "kept")
        state.current_phase = 2
        new_plan = compile_plan(make_plan({
            1: [("phase1-task1", []), ("phase1-task2", ["phase1-task1"])],
            2: [("phase2-task1", []), ("phase2-task2", [])],
        }))

        reconciled = reconcile(state, new_plan)

        assert reconciled.tasks["phase1-task1"].status == "completed"
        assert reconciled.tasks["phase1-task1"].notes == "done"
        assert reconciled.tasks["phase1-task1"].completed_at == state.tasks["phase1-task1"].completed_at
        assert reconciled.tasks["phase1-task2"].status == "in_progress"
        assert reconciled.tasks["phase2-task2"].status == "pending"
        assert "phase1-task3" not in reconciled.tasks
        assert reconciled.current_phase == 2
        assert [checkpoint.summary for checkpoint in reconciled.checkpoints] == ["kept"]

    def test_key_order_follows_new_plan(self, state, make_plan):
        new_plan = compile_plan(make_plan({1: [("phase1-task2", []), ("phase1-task1", [])]}))

        reconciled = reconcile(state, new_plan)

        assert list(reconciled.tasks) == ["phase1-task2", "phase1-task1"]


class TestAdvancePhase:
    def test_refuses_incomplete_phase(self, plan, state):
        state = transition(state, "phase1-task1", "completed")

        with pytest.raises(PhaseNotCompleteError) as exc_info:
            advance_phase(state, plan)

        assert exc_info.value.incomplete == ["phase1-task2", "phase1-task3"]

    def test_advances_when_complete(self, plan, state):
        for task_id in plan.phase(1).task_ids():
            state = transition(state, task_id, "completed")

        advanced = advance_phase(state, plan)

        assert advanced.current_phase == 2
        assert state.current_phase == 1

    def test_advance_past_final_phase_once(self, plan, state):
        for task_id in plan.task_ids():
            state = transition(state, task_id, "completed")
        state.current_phase = 2

        finished = advance_phase(state, plan)
        assert finished.current_phase == 3

        with pytest.raises(PhaseNotCompleteError):
            advance_phase(finished, plan)


class TestSummarize:
    def test_counts(self, state):
        state = transition(state, "phase1-task1", "completed")
        state = transition(state, "phase1-task2", "in_progress")

        summary = summarize(state)

        assert summary["total"] == 4
        assert summary["completed"] == 1
        assert summary["in_progress"] == 1
        assert summary["pending"] == 2
        assert summary["percent_complete"] == 25
