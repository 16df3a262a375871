"""Data models for vibe-assistant plan and progress tracking.

This module contains the core data structures used throughout the system:
the immutable plan model (phases and tasks), the mutable progress state
persisted between agent sessions, and the results returned by the
dependency resolver.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

TASK_ID_PATTERN = re.compile(r"^phase(?P<phase>[1-9]\d*)-task(?P<task>[1-9]\d*)$")

STATUS_PENDING = "pending"
STATUS_IN_PROGRESS = "in_progress"
STATUS_COMPLETED = "completed"
TASK_STATUSES = (STATUS_PENDING, STATUS_IN_PROGRESS, STATUS_COMPLETED)


def utc_now() -> str:
    """Current time as an ISO-8601 UTC string."""
    return datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")


def parse_task_id(task_id: str) -> Optional[Tuple[int, int]]:
    """Return ``(phase, task)`` numbers for a canonical id, else ``None``."""
    match = TASK_ID_PATTERN.match(task_id) if isinstance(task_id, str) else None
    if not match:
        return None
    return int(match.group("phase")), int(match.group("task"))


# ---------------------------------------------------------------------------
# Plan model
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Task:
    """A single unit of implementation work."""

    id: str
    title: str
    description: str
    phase_number: int
    dependencies: Tuple[str, ...] = ()
    parallelizable: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "dependencies": list(self.dependencies),
            "parallelizable": self.parallelizable,
        }


@dataclass(frozen=True, slots=True)
class Phase:
    """An ordered milestone grouping of tasks."""

    number: int
    name: str
    description: str
    tasks: Tuple[Task, ...]
    entry_criteria: Tuple[str, ...] = ()
    exit_criteria: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "number": self.number,
            "name": self.name,
            "description": self.description,
            "entryCriteria": list(self.entry_criteria),
            "exitCriteria": list(self.exit_criteria),
            "tasks": [task.to_dict() for task in self.tasks],
        }

    def task_ids(self) -> List[str]:
        return [task.id for task in self.tasks]


@dataclass(frozen=True, slots=True)
class PlanModel:
    """A compiled, validated implementation plan.

    Instances are produced by :func:`vibe_assistant.compiler.compile_plan`
    and are never mutated; regeneration produces a new plan.
    """

    project_name: str
    summary: str
    goals: Tuple[str, ...]
    phases: Tuple[Phase, ...]
    description: str = ""

    @property
    def total_tasks(self) -> int:
        return sum(len(phase.tasks) for phase in self.phases)

    def tasks(self) -> Iterator[Task]:
        """Iterate every task in declaration order."""
        for phase in self.phases:
            yield from phase.tasks

    def task_ids(self) -> List[str]:
        return [task.id for task in self.tasks()]

    def task(self, task_id: str) -> Optional[Task]:
        for candidate in self.tasks():
            if candidate.id == task_id:
                return candidate
        return None

    def phase(self, number: int) -> Optional[Phase]:
        for candidate in self.phases:
            if candidate.number == number:
                return candidate
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the compiler input shape plus ``totalTasks``."""
        return {
            "projectName": self.project_name,
            "description": self.description,
            "summary": self.summary,
            "goals": list(self.goals),
            "phases": [phase.to_dict() for phase in self.phases],
            "totalTasks": self.total_tasks,
        }


# ---------------------------------------------------------------------------
# Progress state
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class ProgressRecord:
    """Run-time status of one task."""

    status: str = STATUS_PENDING
    completed_at: Optional[str] = None
    notes: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"status": self.status}
        if self.completed_at is not None:
            data["completedAt"] = self.completed_at
        if self.notes is not None:
            data["notes"] = self.notes
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProgressRecord":
        if not isinstance(data, dict):
            raise ValueError(f"Task progress record must be a JSON object, got {data!r}")
        status = data.get("status", STATUS_PENDING)
        if status not in TASK_STATUSES:
            raise ValueError(f"Invalid task status: {status!r}")
        return cls(
            status=status,
            completed_at=data.get("completedAt"),
            notes=data.get("notes"),
        )

    def copy(self) -> "ProgressRecord":
        return ProgressRecord(self.status, self.completed_at, self.notes)


@dataclass(frozen=True, slots=True)
class Checkpoint:
    """An audit-trail entry written when meaningful progress is made."""

    phase: int
    task: str
    summary: str
    created_at: str = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "phase": self.phase,
            "task": self.task,
            "summary": self.summary,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Checkpoint":
        if not isinstance(data, dict):
            raise ValueError(f"Checkpoint must be a JSON object, got {data!r}")
        return cls(
            phase=int(data["phase"]),
            task=data.get("task", ""),
            summary=data.get("summary", ""),
            created_at=data.get("createdAt") or utc_now(),
        )


@dataclass(slots=True)
class ProgressState:
    """Persisted progress across agent sessions.

    ``tasks`` preserves insertion order, which follows plan declaration order
    when the state was created or reconciled from a plan.
    """

    current_phase: int = 1
    tasks: Dict[str, ProgressRecord] = field(default_factory=dict)
    checkpoints: List[Checkpoint] = field(default_factory=list)
    last_updated: str = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "currentPhase": self.current_phase,
            "tasks": {task_id: record.to_dict() for task_id, record in self.tasks.items()},
            "checkpoints": [checkpoint.to_dict() for checkpoint in self.checkpoints],
            "lastUpdated": self.last_updated,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProgressState":
        """Create from the persisted JSON representation."""
        if not isinstance(data, dict):
            raise ValueError("Progress state must be a JSON object")
        tasks = data.get("tasks", {})
        if not isinstance(tasks, dict):
            raise ValueError("Progress state 'tasks' must be an object keyed by task id")
        return cls(
            current_phase=int(data.get("currentPhase", 1)),
            tasks={task_id: ProgressRecord.from_dict(record) for task_id, record in tasks.items()},
            checkpoints=[Checkpoint.from_dict(entry) for entry in data.get("checkpoints", [])],
            last_updated=data.get("lastUpdated") or utc_now(),
        )

    def copy(self) -> "ProgressState":
        return ProgressState(
            current_phase=self.current_phase,
            tasks={task_id: record.copy() for task_id, record in self.tasks.items()},
            checkpoints=list(self.checkpoints),
            last_updated=self.last_updated,
        )

    def status_of(self, task_id: str) -> Optional[str]:
        record = self.tasks.get(task_id)
        return record.status if record else None

    def ids_with_status(self, status: str) -> List[str]:
        return [task_id for task_id, record in self.tasks.items() if record.status == status]


# ---------------------------------------------------------------------------
# Resolver results
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class NextTask:
    """The first eligible task in the current phase."""

    task_id: str
    title: str
    description: str
    dependencies: Tuple[str, ...] = ()
    phase: int = 1

    kind = "next"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "taskId": self.task_id,
            "title": self.title,
            "description": self.description,
            "dependencies": list(self.dependencies),
            "phase": self.phase,
        }


@dataclass(frozen=True, slots=True)
class PhaseComplete:
    """Every task in ``phase`` is completed.

    ``plan_complete`` is set when there is no later phase to advance to.
    """

    phase: int
    plan_complete: bool = False

    kind = "phaseComplete"

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "phase": self.phase, "planComplete": self.plan_complete}


@dataclass(frozen=True, slots=True)
class BlockedTask:
    task_id: str
    unmet_dependencies: Tuple[str, ...]

    def to_dict(self) -> Dict[str, Any]:
        return {"taskId": self.task_id, "unmetDependencies": list(self.unmet_dependencies)}


@dataclass(frozen=True, slots=True)
class Blocked:
    """No task is eligible; pending work waits on unmet dependencies."""

    in_progress: Tuple[str, ...]
    blocked: Tuple[BlockedTask, ...]
    phase: int = 1

    kind = "blocked"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "phase": self.phase,
            "inProgress": list(self.in_progress),
            "blocked": [item.to_dict() for item in self.blocked],
        }


ResolverResult = Union[NextTask, PhaseComplete, Blocked]
