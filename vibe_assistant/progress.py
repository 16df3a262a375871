"""Progress state transitions.

Each operation takes a :class:`ProgressState` and returns a new one; the
input is never modified, so a failed operation leaves the caller's state
exactly as it was. Persistence lives in :mod:`vibe_assistant.store`.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from .errors import IllegalTransitionError, PhaseNotCompleteError, UnknownTaskError
from .models import (
    STATUS_COMPLETED,
    STATUS_IN_PROGRESS,
    STATUS_PENDING,
    TASK_STATUSES,
    Checkpoint,
    PlanModel,
    ProgressRecord,
    ProgressState,
    utc_now,
)

# Forward-only lifecycle; skipping in_progress is allowed.
LEGAL_TRANSITIONS = {
    (STATUS_PENDING, STATUS_IN_PROGRESS),
    (STATUS_IN_PROGRESS, STATUS_COMPLETED),
    (STATUS_PENDING, STATUS_COMPLETED),
}


def initialize_state(plan: PlanModel) -> ProgressState:
    """Fresh state: every task pending, working on phase 1."""
    return ProgressState(
        current_phase=1,
        tasks={task_id: ProgressRecord() for task_id in plan.task_ids()},
        checkpoints=[],
        last_updated=utc_now(),
    )


def transition(
    state: ProgressState,
    task_id: str,
    new_status: str,
    note: Optional[str] = None,
) -> ProgressState:
    """Move ``task_id`` to ``new_status``.

    Raises:
        UnknownTaskError: ``task_id`` has no record in ``state``.
        IllegalTransitionError: the move is not a legal forward move.
    """
    record = state.tasks.get(task_id)
    if record is None:
        raise UnknownTaskError(task_id)
    if new_status not in TASK_STATUSES or (record.status, new_status) not in LEGAL_TRANSITIONS:
        raise IllegalTransitionError(task_id, record.status, new_status)

    updated = state.copy()
    now = utc_now()
    new_record = updated.tasks[task_id]
    new_record.status = new_status
    if new_status == STATUS_COMPLETED:
        new_record.completed_at = now
    if note is not None:
        new_record.notes = note
    updated.last_updated = now
    return updated


def append_checkpoint(state: ProgressState, phase: int, task: str, summary: str) -> ProgressState:
    updated = state.copy()
    now = utc_now()
    updated.checkpoints.append(Checkpoint(phase=phase, task=task, summary=summary, created_at=now))
    updated.last_updated = now
    return updated


def reconcile(old_state: ProgressState, new_plan: PlanModel) -> ProgressState:
    """Carry progress forward onto a regenerated plan.

    Retained task ids keep their status, completion time and notes; new ids
    start pending; ids the new plan dropped disappear. The current phase
    and checkpoint history are kept unchanged.
    """
    tasks: Dict[str, ProgressRecord] = {}
    for task_id in new_plan.task_ids():
        existing = old_state.tasks.get(task_id)
        tasks[task_id] = existing.copy() if existing is not None else ProgressRecord()
    return ProgressState(
        current_phase=old_state.current_phase,
        tasks=tasks,
        checkpoints=list(old_state.checkpoints),
        last_updated=utc_now(),
    )


def advance_phase(state: ProgressState, plan: PlanModel) -> ProgressState:
    """Move to the next phase once every task in the current one is completed."""
    phase = plan.phase(state.current_phase)
    incomplete = []
    if phase is not None:
        incomplete = [
            task.id for task in phase.tasks if state.status_of(task.id) != STATUS_COMPLETED
        ]
    if incomplete:
        raise PhaseNotCompleteError(state.current_phase, incomplete)
    if state.current_phase > len(plan.phases):
        raise PhaseNotCompleteError(state.current_phase, [])

    updated = state.copy()
    updated.current_phase = state.current_phase + 1
    updated.last_updated = utc_now()
    return updated


def summarize(state: ProgressState) -> Dict[str, Any]:
    """Status counts for reporting."""
    completed = len(state.ids_with_status(STATUS_COMPLETED))
    in_progress = len(state.ids_with_status(STATUS_IN_PROGRESS))
    pending = len(state.ids_with_status(STATUS_PENDING))
    total = len(state.tasks)
    return {
        "current_phase": state.current_phase,
        "total": total,
        "completed": completed,
        "in_progress": in_progress,
        "pending": pending,
        "percent_complete": round(completed / total * 100) if total else 0,
        "last_updated": state.last_updated,
    }
