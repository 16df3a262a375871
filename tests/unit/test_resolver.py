"""Unit tests for dependency resolution."""

from vibe_assistant.compiler import compile_plan
from vibe_assistant.models import Blocked, NextTask, PhaseComplete, ProgressRecord
from vibe_assistant.progress import initialize_state
from vibe_assistant.resolver import (
    blocked_tasks,
    is_eligible,
    is_phase_complete,
    next_task,
    unmet_dependencies,
)


def _set(state, **statuses):
    for task_id, status in statuses.items():
        state.tasks[task_id.replace("_", "-")] = ProgressRecord(status)
    return state


class TestNextTask:
    """Test cases for next task selection."""

    def test_first_task_of_fresh_plan(self, plan, state):
        result = next_task(plan, state)

        assert isinstance(result, NextTask)
        assert result.task_id == "phase1-task1"
        assert result.phase == 1

    def test_declaration_order_among_eligible(self, plan, state):
        _set(state, phase1_task1="completed")

        result = next_task(plan, state)

        assert result.task_id == "phase1-task2"

    def test_in_progress_task_is_not_offered(self, plan, state):
        _set(state, phase1_task1="completed", phase1_task2="in_progress")

        result = next_task(plan, state)

        assert result.task_id == "phase1-task3"

    def test_phase_complete(self, plan, state):
        _set(state, phase1_task1="completed", phase1_task2="completed", phase1_task3="completed")

        result = next_task(plan, state)

        assert isinstance(result, PhaseComplete)
        assert result.phase == 1
        assert result.plan_complete is False

    def test_last_phase_complete_marks_plan_complete(self, plan, state):
        for task_id in plan.task_ids():
            state.tasks[task_id] = ProgressRecord("completed")
        state.current_phase = 2

        result = next_task(plan, state)

        assert result == PhaseComplete(phase=2, plan_complete=True)

    def test_past_final_phase(self, plan, state):
        state.current_phase = 3

        result = next_task(plan, state)

        assert result == PhaseComplete(phase=3, plan_complete=True)

    def test_blocked_with_task_in_progress(self, plan, state):
        _set(state, phase1_task1="in_progress")

        result = next_task(plan, state)

        assert isinstance(result, Blocked)
        assert result.in_progress == ("phase1-task1",)
        assert [item.task_id for item in result.blocked] == ["phase1-task2", "phase1-task3"]
        assert result.blocked[0].unmet_dependencies == ("phase1-task1",)

    def test_blocked_with_nothing_in_progress(self, make_plan):
        plan = compile_plan(make_plan({
            1: [("phase1-task1", ["phase2-task1"])],
            2: [("phase2-task1", [])],
        }))
        state = initialize_state(plan)

        result = next_task(plan, state)

        assert isinstance(result, Blocked)
        assert result.in_progress == ()
        assert result.blocked[0].task_id == "phase1-task1"
        assert result.blocked[0].unmet_dependencies == ("phase2-task1",)

    def test_does_not_mutate_inputs(self, plan, state):
        before = state.to_dict()

        first = next_task(plan, state)
        second = next_task(plan, state)

        assert first == second
        assert state.to_dict() == before


class TestDependencyQueries:
    """Test cases for the eligibility helpers."""

    def test_cross_phase_dependency_unblocks(self, plan, state):
        task = plan.task("phase2-task1")
        assert unmet_dependencies(task, state) == ("phase1-task2",)

        _set(state, phase1_task2="completed")

        assert unmet_dependencies(task, state) == ()
        assert is_eligible(task, state)

    def test_missing_record_counts_as_unmet(self, plan, state):
        del state.tasks["phase1-task1"]

        assert unmet_dependencies(plan.task("phase1-task2"), state) == ("phase1-task1",)

    def test_non_pending_task_is_not_eligible(self, plan, state):
        _set(state, phase1_task1="in_progress")

        assert not is_eligible(plan.task("phase1-task1"), state)

    def test_is_phase_complete(self, plan, state):
        assert not is_phase_complete(plan, state)
        _set(state, phase2_task1="completed")
        assert is_phase_complete(plan, state, phase=2)
        assert not is_phase_complete(plan, state, phase=5)

    def test_blocked_tasks_skips_non_pending(self, plan, state):
        _set(state, phase1_task2="in_progress")

        blocked = blocked_tasks(plan, state)

        assert [item.task_id for item in blocked] == ["phase1-task3"]
