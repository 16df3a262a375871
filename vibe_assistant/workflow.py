"""Workflow management for vibe-assistant.

This module is the tool surface over a :class:`Workspace`. Every method
returns a JSON-serialisable dict with guidance for the calling agent
(``next_suggested_step``, ``workflow_tip``, ``message``). Core errors are
reported as ``{"error": ..., "suggestion": ...}`` payloads here and only
here; the layers underneath raise.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from .adapter import parse_plan_text
from .config import VibeConfig
from .errors import (
    CompileError,
    GenerationError,
    IllegalTransitionError,
    PhaseNotCompleteError,
    StateNotFoundError,
    StorageError,
    UnknownTaskError,
)
from .generation import PlanGenerator
from .models import Blocked, NextTask, PhaseComplete
from .vibe_logging import log_performance
from .workspace import Workspace

logger = logging.getLogger("vibe_assistant.workflow")


@dataclass(frozen=True, slots=True)
class WorkflowStep:
    step_number: int
    tool_name: str
    description: str
    purpose: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "step": self.step_number,
            "tool": self.tool_name,
            "description": self.description,
            "purpose": self.purpose,
        }


WORKFLOW_STEPS = [
    WorkflowStep(
        1, "parse_plan",
        "Compile a phased task plan and write plan.json and state.json",
        "Turn generated plan content into validated, dependency-ordered tasks",
    ),
    WorkflowStep(
        2, "get_next_task",
        "Find the first task in the current phase whose dependencies are completed",
        "Always know what to work on, or why nothing is workable",
    ),
    WorkflowStep(
        3, "start_task",
        "Mark the chosen task in_progress",
        "Record what the current session is working on",
    ),
    WorkflowStep(
        4, "complete_task",
        "Mark the task completed with an optional note",
        "Unlock tasks that depend on it",
    ),
    WorkflowStep(
        5, "add_checkpoint",
        "Append a summary of meaningful progress to the audit trail",
        "Give the next session context on what was done",
    ),
    WorkflowStep(
        6, "advance_phase",
        "Move to the next phase once every task in the current phase is completed",
        "Work through the plan one milestone at a time",
    ),
]


def _error(e: Exception, suggestion: str, next_step: str, **extra: Any) -> Dict[str, Any]:
    payload = {
        "error": str(e),
        "error_type": type(e).__name__,
        "suggestion": suggestion,
        "next_suggested_step": next_step,
        "message": f"Error: {e}",
    }
    payload.update(extra)
    return payload


def _not_initialized(e: Exception) -> Dict[str, Any]:
    return _error(
        e,
        "No plan has been written for this project yet. Call parse_plan first.",
        "parse_plan",
        initialized=False,
    )


class WorkflowManager:
    """Manage plan compilation and progress tracking for a project root."""

    def __init__(
        self,
        root: Path | str,
        config: Optional[VibeConfig] = None,
        plan_generator: Optional[PlanGenerator] = None,
    ):
        self.workspace = Workspace(root, config)
        self.plan_generator = plan_generator

    # ------------------------------------------------------------------
    # Plan creation
    # ------------------------------------------------------------------

    @log_performance("parse_plan")
    def parse_plan(
        self,
        plan_json: Optional[str] = None,
        plan_path: Optional[str] = None,
        project_name: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Compile plan JSON (inline or from a file) and write it to the workspace."""
        if bool(plan_json) == bool(plan_path):
            return {
                "error": "Provide exactly one of plan_json or plan_path",
                "suggestion": "Pass the generated plan JSON inline, or a path to a file containing it",
                "next_suggested_step": "parse_plan",
            }

        try:
            if plan_path:
                text = self._project_file(plan_path).read_text(encoding="utf-8")
            else:
                text = plan_json
            raw_plan = parse_plan_text(text, project_name=project_name)
            plan, state, reconciled = self.workspace.compile_and_write(raw_plan)
        except CompileError as e:
            return _error(
                e,
                "Fix the listed task ids in the plan and call parse_plan again",
                "parse_plan",
                task_ids=e.task_ids,
            )
        except (OSError, UnicodeDecodeError, StorageError) as e:
            return _error(e, "Check that the plan file exists and the project is writable", "parse_plan")

        return self._plan_written(plan, state, reconciled)

    @log_performance("generate_plan")
    def generate_plan(
        self,
        prd_content: Optional[str] = None,
        prd_path: Optional[str] = None,
        project_name: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Generate a plan from PRD text (inline or from a file) with the configured generator, then write it."""
        if self.plan_generator is None:
            return {
                "error": "No text generator configured",
                "suggestion": "Generate the plan JSON yourself and pass it to parse_plan",
                "next_suggested_step": "parse_plan",
            }
        if bool(prd_content) == bool(prd_path):
            return {
                "error": "Provide exactly one of prd_content or prd_path",
                "suggestion": "Pass the PRD text inline, or a path to the PRD file",
                "next_suggested_step": "generate_plan",
            }
        try:
            if prd_path:
                prd_content = self._project_file(prd_path).read_text(encoding="utf-8")
            plan, _ = self.plan_generator.generate(prd_content, project_name=project_name)
            state, reconciled = self.workspace.write_plan(plan)
        except CompileError as e:
            return _error(e, "Regenerate the plan or fix it and call parse_plan", "generate_plan", task_ids=e.task_ids)
        except GenerationError as e:
            return _error(
                e,
                "Check the API keys and research provider, or generate the plan JSON yourself and call parse_plan",
                "parse_plan",
            )
        except (OSError, UnicodeDecodeError, StorageError) as e:
            return _error(e, "Check that the PRD file exists and the project is writable", "generate_plan")

        return self._plan_written(plan, state, reconciled)

    def _project_file(self, path: str) -> Path:
        """``path``, with relative paths taken from the project root."""
        resolved = Path(path).expanduser()
        if not resolved.is_absolute():
            resolved = self.workspace.root / resolved
        return resolved

    def _plan_written(self, plan, state, reconciled: bool) -> Dict[str, Any]:
        verb = "Reconciled" if reconciled else "Initialized"
        preserved = sum(1 for record in state.tasks.values() if record.status != "pending")
        return {
            "project_name": plan.project_name,
            "plan_path": str(self.workspace.plan_path),
            "state_path": str(self.workspace.state_path),
            "phase_count": len(plan.phases),
            "total_tasks": plan.total_tasks,
            "current_phase": state.current_phase,
            "reconciled": reconciled,
            "preserved_progress": preserved,
            "next_suggested_step": "get_next_task",
            "workflow_tip": "Next: call get_next_task to find the first workable task",
            "message": (
                f"{verb} plan '{plan.project_name}' with {len(plan.phases)} phases "
                f"and {plan.total_tasks} tasks."
            ),
        }

    # ------------------------------------------------------------------
    # Task execution
    # ------------------------------------------------------------------

    def get_next_task(self) -> Dict[str, Any]:
        try:
            result = self.workspace.next_task()
        except StateNotFoundError as e:
            return _not_initialized(e)
        except (CompileError, StorageError) as e:
            return _error(e, "The stored plan or state is damaged; call parse_plan to rewrite it", "parse_plan")

        payload: Dict[str, Any] = {"result": result.to_dict()}
        if isinstance(result, NextTask):
            payload.update(
                next_suggested_step="start_task",
                workflow_tip=f"Next: call start_task with task_id '{result.task_id}'",
                message=f"Next task: {result.task_id} - {result.title}",
            )
        elif isinstance(result, PhaseComplete):
            if result.plan_complete:
                payload.update(
                    next_suggested_step="get_status",
                    workflow_tip="All phases are complete",
                    message=f"Phase {result.phase} is complete and no phases remain.",
                )
            else:
                payload.update(
                    next_suggested_step="advance_phase",
                    workflow_tip=f"Check phase {result.phase} exit criteria, then call advance_phase",
                    message=f"Phase {result.phase} is complete! Advance to phase {result.phase + 1}.",
                )
        elif isinstance(result, Blocked):
            if result.in_progress:
                tip = "Finish the in-progress task(s) first: " + ", ".join(result.in_progress)
                next_step = "complete_task"
            else:
                tip = "Pending tasks wait on dependencies outside this phase that are not completed"
                next_step = "get_status"
            payload.update(
                next_suggested_step=next_step,
                workflow_tip=tip,
                message=f"No task in phase {result.phase} is workable right now.",
            )
        return payload

    def start_task(self, task_id: str, note: Optional[str] = None) -> Dict[str, Any]:
        return self._transition(task_id, "in_progress", note)

    def complete_task(self, task_id: str, note: Optional[str] = None) -> Dict[str, Any]:
        return self._transition(task_id, "completed", note)

    def _transition(self, task_id: str, status: str, note: Optional[str]) -> Dict[str, Any]:
        try:
            if status == "completed":
                state = self.workspace.complete_task(task_id, note)
            else:
                state = self.workspace.start_task(task_id, note)
        except StateNotFoundError as e:
            return _not_initialized(e)
        except UnknownTaskError as e:
            return _error(e, f"Check the task id; '{task_id}' is not in the plan", "get_status")
        except IllegalTransitionError as e:
            return _error(
                e,
                "Task status only moves forward: pending -> in_progress -> completed",
                "get_next_task",
                current_status=e.old_status,
            )
        except StorageError as e:
            return _error(e, "The state was not changed; retry once storage is available", "get_status")

        record = state.tasks[task_id]
        return {
            "task_id": task_id,
            "task": record.to_dict(),
            "current_phase": state.current_phase,
            "next_suggested_step": "get_next_task" if status == "completed" else "complete_task",
            "workflow_tip": (
                "Check for newly unlocked tasks" if status == "completed"
                else f"Call complete_task for '{task_id}' when the work is done"
            ),
            "message": f"Task {task_id} marked {status}.",
        }

    def add_checkpoint(self, summary: str, task_id: Optional[str] = None) -> Dict[str, Any]:
        try:
            state = self.workspace.add_checkpoint(summary, task_id=task_id)
        except StateNotFoundError as e:
            return _not_initialized(e)
        except (ValueError, StorageError) as e:
            return _error(e, "Provide a non-empty summary of the work done", "add_checkpoint")

        return {
            "checkpoint": state.checkpoints[-1].to_dict(),
            "checkpoint_count": len(state.checkpoints),
            "next_suggested_step": "get_next_task",
            "message": "Checkpoint saved.",
        }

    def advance_phase(self) -> Dict[str, Any]:
        try:
            state = self.workspace.advance_phase()
        except StateNotFoundError as e:
            return _not_initialized(e)
        except PhaseNotCompleteError as e:
            return _error(
                e,
                "Complete the remaining tasks before advancing",
                "get_next_task",
                incomplete_tasks=e.incomplete,
            )
        except StorageError as e:
            return _error(e, "The state was not changed; retry once storage is available", "get_status")

        return {
            "current_phase": state.current_phase,
            "next_suggested_step": "get_next_task",
            "workflow_tip": f"Now working phase {state.current_phase}",
            "message": f"Advanced to phase {state.current_phase}.",
        }

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def get_status(self) -> Dict[str, Any]:
        try:
            status = self.workspace.status()
        except StateNotFoundError as e:
            return _not_initialized(e)
        except (CompileError, StorageError) as e:
            return _error(e, "The stored plan or state is damaged; call parse_plan to rewrite it", "parse_plan")

        summary = status["summary"]
        status.update(
            initialized=True,
            next_suggested_step="get_next_task",
            message=(
                f"Phase {summary['current_phase']}: {summary['percent_complete']}% complete "
                f"({summary['completed']}/{summary['total']} tasks)"
            ),
        )
        return status

    def check_if_implemented(self, issue_description: str) -> Dict[str, Any]:
        """Context for deciding whether an issue is a bug or not built yet."""
        try:
            plan = self.workspace.require_plan()
            state = self.workspace.require_state()
        except StateNotFoundError as e:
            return _not_initialized(e)
        except (CompileError, StorageError) as e:
            return _error(e, "The stored plan or state is damaged; call parse_plan to rewrite it", "parse_plan")

        terms = {word for word in issue_description.lower().split() if len(word) > 3}
        related: List[Dict[str, Any]] = []
        for task in plan.tasks():
            text = f"{task.title} {task.description}".lower()
            if terms and any(term in text for term in terms):
                related.append({
                    "task_id": task.id,
                    "title": task.title,
                    "phase": task.phase_number,
                    "status": state.status_of(task.id),
                })

        return {
            "issue": issue_description,
            "current_phase": state.current_phase,
            "completed_tasks": state.ids_with_status("completed"),
            "related_tasks": related,
            "guidance": [
                "If a related task is completed, the issue is likely a bug",
                "If related tasks are pending or in progress, it is not implemented yet",
                "If no task relates, it may be out of scope for the current plan",
            ],
        }

    def get_workflow_guide(self) -> Dict[str, Any]:
        return workflow_guide()


def workflow_guide() -> Dict[str, Any]:
    return {
        "workflow_overview": "Plan, then work tasks one phase at a time",
        "steps": [step.to_dict() for step in WORKFLOW_STEPS],
        "tips": [
            "Task ids follow phase{N}-task{M} and never change between regenerations",
            "Re-running parse_plan with an updated plan keeps completed work",
            "generate_plan can write the plan from a PRD instead of parse_plan when ANTHROPIC_API_KEY is set",
            "Blocked tasks are computed from dependencies, never stored",
            "Add a checkpoint after meaningful progress",
        ],
    }
