"""Error types raised by plan compilation and progress tracking."""

from __future__ import annotations

from typing import Iterable, List, Optional, Sequence


class VibeAssistantError(Exception):
    """Base class for all vibe-assistant errors."""


# ---------------------------------------------------------------------------
# Plan compilation
# ---------------------------------------------------------------------------


class CompileError(VibeAssistantError, ValueError):
    """A raw plan could not be turned into a valid plan model.

    ``task_ids`` lists the ids needed to locate the problem; it may be empty
    for structural problems that are not tied to a task.
    """

    def __init__(self, message: str, task_ids: Optional[Iterable[str]] = None):
        super().__init__(message)
        self.task_ids: List[str] = list(task_ids or [])


class PlanStructureError(CompileError):
    """The raw plan is missing required fields or has the wrong shape."""


class PlanParseError(CompileError):
    """Generator output could not be decoded into a raw plan."""


class MalformedTaskIdError(CompileError):
    def __init__(self, task_ids: Sequence[str]):
        super().__init__(
            "Malformed task id(s): "
            + ", ".join(repr(task_id) for task_id in task_ids)
            + " (expected 'phase{N}-task{M}')",
            task_ids,
        )


class DuplicateTaskIdError(CompileError):
    def __init__(self, task_ids: Sequence[str]):
        super().__init__(f"Duplicate task id(s): {', '.join(task_ids)}", task_ids)


class PhaseNumberingError(CompileError):
    def __init__(self, numbers: Sequence[int]):
        super().__init__(
            "Phase numbers must run 1..n without gaps or duplicates, got: "
            + ", ".join(str(number) for number in numbers)
        )
        self.phase_numbers: List[int] = list(numbers)


class DanglingDependencyError(CompileError):
    def __init__(self, missing: Sequence[tuple]):
        """``missing`` holds ``(task_id, dependency_id)`` pairs."""
        details = ", ".join(f"{task_id} -> {dep}" for task_id, dep in missing)
        super().__init__(
            f"Unknown dependency reference(s): {details}",
            [task_id for task_id, _ in missing],
        )
        self.missing = list(missing)


class SelfDependencyError(CompileError):
    def __init__(self, task_ids: Sequence[str]):
        super().__init__(f"Task(s) depend on themselves: {', '.join(task_ids)}", task_ids)


class DependencyCycleError(CompileError):
    def __init__(self, cycle: Sequence[str]):
        path = " -> ".join(list(cycle) + [cycle[0]]) if cycle else ""
        super().__init__(f"Dependency cycle detected: {path}", cycle)
        self.cycle: List[str] = list(cycle)


# ---------------------------------------------------------------------------
# Progress tracking
# ---------------------------------------------------------------------------


class UnknownTaskError(VibeAssistantError, ValueError):
    def __init__(self, task_id: str):
        super().__init__(f"Task '{task_id}' is not part of the current progress state.")
        self.task_id = task_id


class IllegalTransitionError(VibeAssistantError, ValueError):
    def __init__(self, task_id: str, old_status: str, new_status: str):
        super().__init__(
            f"Illegal status change for '{task_id}': {old_status} -> {new_status}"
        )
        self.task_id = task_id
        self.old_status = old_status
        self.new_status = new_status


class PhaseNotCompleteError(VibeAssistantError, ValueError):
    def __init__(self, phase: int, incomplete: Sequence[str]):
        if incomplete:
            message = (
                f"Cannot advance past phase {phase}: incomplete tasks remain -> "
                + ", ".join(incomplete)
            )
        else:
            message = f"Cannot advance past phase {phase}: the plan has no further phases"
        super().__init__(message)
        self.phase = phase
        self.incomplete: List[str] = list(incomplete)


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------


class StateNotFoundError(VibeAssistantError, FileNotFoundError):
    """No progress state has been written yet. Expected before the first plan."""


class StorageError(VibeAssistantError, RuntimeError):
    """Reading or writing persisted state failed; prior state is untouched."""


# ---------------------------------------------------------------------------
# Generation
# ---------------------------------------------------------------------------


class GenerationError(VibeAssistantError, RuntimeError):
    """The text-generation service failed or returned no text."""
