"""Workspace management for vibe-assistant projects.

A workspace is a project directory holding the compiled plan
(``docs/prd/plan.json`` by default) and the progress state
(``docs/progress/state.json``). This module ties the compiler, resolver and
progress store to those files.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

from . import resolver
from .compiler import compile_plan
from .config import VibeConfig, project_paths
from .errors import StateNotFoundError, StorageError
from .models import (
    STATUS_COMPLETED,
    STATUS_IN_PROGRESS,
    PlanModel,
    ProgressState,
    ResolverResult,
)
from .progress import summarize
from .store import ProgressStore, write_json_atomic
from .vibe_logging import (
    log_error_with_context,
    log_operation,
    log_performance,
    log_plan_compiled,
    observability_hooks,
)

logger = logging.getLogger("vibe_assistant.workspace")


class Workspace:
    """Plan and progress files for one project directory."""

    def __init__(self, root: Path | str, config: Optional[VibeConfig] = None):
        self.config = config or VibeConfig()
        self.paths = project_paths(root, self.config)
        self.root = self.paths.root
        self.store = ProgressStore(self.paths.state)
        logger.debug(f"Workspace opened at {self.root}")

    @property
    def plan_path(self) -> Path:
        return self.paths.plan

    @property
    def state_path(self) -> Path:
        return self.paths.state

    def is_initialized(self) -> bool:
        return self.plan_path.exists() and self.state_path.exists()

    # ------------------------------------------------------------------
    # Plan persistence
    # ------------------------------------------------------------------

    def load_plan(self) -> Optional[PlanModel]:
        """Load and recompile the stored plan, or ``None`` if none exists."""
        if not self.plan_path.exists():
            return None
        try:
            data = json.loads(self.plan_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            log_error_with_context(e, {"operation": "load_plan", "path": str(self.plan_path)})
            raise StorageError(f"Plan at {self.plan_path} is unreadable: {e}") from e
        return compile_plan(data)

    def require_plan(self) -> PlanModel:
        plan = self.load_plan()
        if plan is None:
            raise StateNotFoundError(f"No plan at {self.plan_path}. Parse a plan first.")
        return plan

    def load_state(self) -> Optional[ProgressState]:
        return self.store.load()

    def require_state(self) -> ProgressState:
        return self.store.require()

    @log_performance("write_plan")
    def write_plan(self, plan: PlanModel) -> Tuple[ProgressState, bool]:
        """Persist ``plan`` and its progress state.

        The first write creates a fresh state; later writes reconcile the
        existing state against the new plan. Returns ``(state, reconciled)``.
        If the state cannot be written, the previous plan file is restored
        so plan and state never disagree.
        """
        with log_operation("write_plan", root=str(self.root), task_count=plan.total_tasks):
            existing, new_state = self.store.planned_state(plan)

            previous_plan = self.plan_path.read_bytes() if self.plan_path.exists() else None
            write_json_atomic(self.plan_path, plan.to_dict())
            try:
                self.store.save(new_state)
            except StorageError as e:
                self._restore_plan(previous_plan)
                log_error_with_context(e, {"operation": "write_plan", "root": str(self.root)})
                raise

        self.store.log_written(existing, new_state)
        logger.info(f"Wrote plan '{plan.project_name}' with {plan.total_tasks} tasks to {self.plan_path}")
        return new_state, existing is not None

    def compile_and_write(
        self,
        raw_plan: Mapping[str, Any],
        project_name: Optional[str] = None,
    ) -> Tuple[PlanModel, ProgressState, bool]:
        """Compile ``raw_plan`` and write it. Compile errors propagate untouched."""
        if project_name:
            raw_plan = {**raw_plan, "projectName": project_name}
        try:
            plan = compile_plan(raw_plan)
        except Exception as e:
            log_error_with_context(e, {"operation": "compile_plan", "root": str(self.root)})
            raise
        log_plan_compiled(plan.project_name, len(plan.phases), plan.total_tasks, source="workspace")
        state, reconciled = self.write_plan(plan)
        return plan, state, reconciled

    def _restore_plan(self, previous: Optional[bytes]) -> None:
        try:
            if previous is None:
                self.plan_path.unlink(missing_ok=True)
            else:
                tmp = self.plan_path.with_name(f".{self.plan_path.name}.restore")
                tmp.write_bytes(previous)
                os.replace(tmp, self.plan_path)
        except OSError as e:
            log_error_with_context(e, {"operation": "restore_plan", "path": str(self.plan_path)})

    # ------------------------------------------------------------------
    # Task execution
    # ------------------------------------------------------------------

    def next_task(self) -> ResolverResult:
        return resolver.next_task(self.require_plan(), self.require_state())

    def start_task(self, task_id: str, note: Optional[str] = None) -> ProgressState:
        return self._transition(task_id, STATUS_IN_PROGRESS, note)

    def complete_task(self, task_id: str, note: Optional[str] = None) -> ProgressState:
        return self._transition(task_id, STATUS_COMPLETED, note)

    def _transition(self, task_id: str, status: str, note: Optional[str]) -> ProgressState:
        try:
            state = self.store.transition(task_id, status, note)
        except Exception as e:
            log_error_with_context(e, {
                "operation": "transition_task",
                "task_id": task_id,
                "status": status,
            })
            raise
        logger.info(f"Task '{task_id}' is now {status}")
        return state

    def add_checkpoint(self, summary: str, task_id: Optional[str] = None) -> ProgressState:
        if not summary or not summary.strip():
            raise ValueError("Checkpoint summary cannot be empty")
        state = self.require_state()
        task = task_id or f"phase{state.current_phase}"
        return self.store.append_checkpoint(state.current_phase, task, summary.strip())

    def advance_phase(self) -> ProgressState:
        plan = self.require_plan()
        try:
            state = self.store.advance_phase(plan)
        except Exception as e:
            log_error_with_context(e, {"operation": "advance_phase", "root": str(self.root)})
            raise
        observability_hooks.log_workflow_event(
            "phase_entered",
            phase=state.current_phase,
            plan_complete=state.current_phase > len(plan.phases),
        )
        return state

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def status(self, recent_checkpoints: int = 3) -> Dict[str, Any]:
        """Overall counts, current phase task statuses and recent checkpoints."""
        plan = self.require_plan()
        state = self.require_state()
        phase = plan.phase(state.current_phase)
        phase_tasks: List[Dict[str, Any]] = []
        if phase is not None:
            for task in phase.tasks:
                phase_tasks.append({
                    "task_id": task.id,
                    "title": task.title,
                    "status": state.status_of(task.id),
                    "unmet_dependencies": list(resolver.unmet_dependencies(task, state)),
                })
        return {
            "project_name": plan.project_name,
            "phase_count": len(plan.phases),
            "phase_name": phase.name if phase else None,
            "summary": summarize(state),
            "phase_tasks": phase_tasks,
            "recent_checkpoints": [
                checkpoint.to_dict() for checkpoint in state.checkpoints[-recent_checkpoints:]
            ] if recent_checkpoints > 0 else [],
        }

    def completed_task_ids(self) -> List[str]:
        return self.require_state().ids_with_status(STATUS_COMPLETED)
