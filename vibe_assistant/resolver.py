"""Dependency resolution over a plan and a progress snapshot.

Every function here is pure: it reads an immutable :class:`PlanModel` and a
:class:`ProgressState` snapshot and never mutates either, so repeated or
concurrent calls with the same inputs return identical results.
"""

from __future__ import annotations

from typing import List, Optional, Tuple

from .models import (
    STATUS_COMPLETED,
    STATUS_IN_PROGRESS,
    STATUS_PENDING,
    Blocked,
    BlockedTask,
    NextTask,
    PhaseComplete,
    PlanModel,
    ProgressState,
    ResolverResult,
    Task,
)


def unmet_dependencies(task: Task, state: ProgressState) -> Tuple[str, ...]:
    """Dependencies of ``task`` whose records are not ``completed``.

    Looked up against the whole state, so cross-phase dependencies count.
    A dependency with no record at all is unmet.
    """
    return tuple(dep for dep in task.dependencies if state.status_of(dep) != STATUS_COMPLETED)


def is_eligible(task: Task, state: ProgressState) -> bool:
    return state.status_of(task.id) == STATUS_PENDING and not unmet_dependencies(task, state)


def is_phase_complete(plan: PlanModel, state: ProgressState, phase: Optional[int] = None) -> bool:
    number = state.current_phase if phase is None else phase
    plan_phase = plan.phase(number)
    if plan_phase is None:
        return False
    return all(state.status_of(task.id) == STATUS_COMPLETED for task in plan_phase.tasks)


def blocked_tasks(plan: PlanModel, state: ProgressState, phase: Optional[int] = None) -> List[BlockedTask]:
    """Pending tasks in ``phase`` that are waiting on unmet dependencies."""
    number = state.current_phase if phase is None else phase
    plan_phase = plan.phase(number)
    if plan_phase is None:
        return []
    blocked = []
    for task in plan_phase.tasks:
        if state.status_of(task.id) != STATUS_PENDING:
            continue
        unmet = unmet_dependencies(task, state)
        if unmet:
            blocked.append(BlockedTask(task_id=task.id, unmet_dependencies=unmet))
    return blocked


def next_task(plan: PlanModel, state: ProgressState) -> ResolverResult:
    """Answer "what should the agent work on now?" for the current phase.

    Returns the first eligible task in declaration order, ``PhaseComplete``
    when every task of the current phase is completed, or ``Blocked`` with
    the in-progress ids and each pending task's unmet dependencies.
    """
    number = state.current_phase
    plan_phase = plan.phase(number)
    if plan_phase is None:
        # Advanced past the final phase
        return PhaseComplete(phase=number, plan_complete=number > len(plan.phases))

    for task in plan_phase.tasks:
        if is_eligible(task, state):
            return NextTask(
                task_id=task.id,
                title=task.title,
                description=task.description,
                dependencies=task.dependencies,
                phase=number,
            )

    if is_phase_complete(plan, state, number):
        return PhaseComplete(phase=number, plan_complete=number >= len(plan.phases))

    in_progress = tuple(
        task.id for task in plan_phase.tasks if state.status_of(task.id) == STATUS_IN_PROGRESS
    )
    return Blocked(
        in_progress=in_progress,
        blocked=tuple(blocked_tasks(plan, state, number)),
        phase=number,
    )
