"""Persistence for the progress state.

The state file is only ever replaced whole: new content goes to a temporary
file in the same directory, is flushed to disk, and is then moved over the
target with :func:`os.replace`. A crash or error at any point leaves the
previously persisted state readable.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Optional, Tuple

from . import progress
from .errors import StateNotFoundError, StorageError
from .models import PlanModel, ProgressState
from .vibe_logging import (
    log_checkpoint,
    log_error_with_context,
    log_performance,
    log_phase_advanced,
    log_state_written,
    log_task_transition,
)

logger = logging.getLogger("vibe_assistant.store")


def write_json_atomic(path: Path, payload: Any) -> None:
    """Write ``payload`` as JSON to ``path`` without ever leaving a partial file."""
    path = Path(path)
    tmp_name = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        content = json.dumps(payload, indent=2) + "\n"
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(content)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, path)
        tmp_name = None
    except (OSError, TypeError, ValueError) as e:
        raise StorageError(f"Could not write {path}: {e}") from e
    finally:
        if tmp_name is not None:
            try:
                os.unlink(tmp_name)
            except OSError:
                logger.warning(f"Could not remove temporary file {tmp_name}")


class ProgressStore:
    """Load and atomically save a project's progress state."""

    def __init__(self, path: Path | str):
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> Optional[ProgressState]:
        """Return the persisted state, or ``None`` if none has been written.

        Raises:
            StorageError: the file exists but cannot be read or decoded.
        """
        if not self.path.exists():
            return None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            return ProgressState.from_dict(data)
        except (OSError, ValueError, KeyError, TypeError) as e:
            log_error_with_context(e, {"operation": "load_state", "path": str(self.path)})
            raise StorageError(f"Progress state at {self.path} is unreadable: {e}") from e

    def require(self) -> ProgressState:
        """Like :meth:`load` but raise :class:`StateNotFoundError` when absent."""
        state = self.load()
        if state is None:
            raise StateNotFoundError(
                f"No progress state at {self.path}. Compile and write a plan first."
            )
        return state

    def save(self, state: ProgressState) -> ProgressState:
        write_json_atomic(self.path, state.to_dict())
        logger.debug(f"Saved progress state to {self.path}")
        return state

    # ------------------------------------------------------------------
    # Load -> apply -> save
    # ------------------------------------------------------------------

    def planned_state(self, plan: PlanModel) -> Tuple[Optional[ProgressState], ProgressState]:
        """Return ``(stored, updated)`` for writing ``plan``.

        ``stored`` is the persisted state or ``None``; ``updated`` is a fresh
        state when nothing is stored, otherwise ``stored`` reconciled with
        ``plan``. Nothing is saved.
        """
        stored = self.load()
        if stored is None:
            return None, progress.initialize_state(plan)
        return stored, progress.reconcile(stored, plan)

    def log_written(self, stored: Optional[ProgressState], updated: ProgressState) -> None:
        if stored is None:
            log_state_written("initialized", len(updated.tasks), updated.current_phase, path=str(self.path))
            return
        log_state_written(
            "reconciled",
            len(updated.tasks),
            updated.current_phase,
            path=str(self.path),
            dropped_tasks=[task_id for task_id in stored.tasks if task_id not in updated.tasks],
            added_tasks=[task_id for task_id in updated.tasks if task_id not in stored.tasks],
        )

    @log_performance("initialize_state")
    def initialize(self, plan: PlanModel) -> ProgressState:
        state = self.save(progress.initialize_state(plan))
        self.log_written(None, state)
        return state

    @log_performance("transition_task")
    def transition(self, task_id: str, new_status: str, note: Optional[str] = None) -> ProgressState:
        state = self.require()
        old_status = state.status_of(task_id)
        updated = self.save(progress.transition(state, task_id, new_status, note))
        log_task_transition(task_id, old_status, new_status, has_note=note is not None)
        return updated

    def append_checkpoint(self, phase: int, task: str, summary: str) -> ProgressState:
        updated = self.save(progress.append_checkpoint(self.require(), phase, task, summary))
        log_checkpoint(phase, task, checkpoint_count=len(updated.checkpoints))
        return updated

    @log_performance("reconcile_state")
    def reconcile(self, plan: PlanModel) -> ProgressState:
        """Reconcile the stored state with ``plan``, initializing if none exists."""
        stored, updated = self.planned_state(plan)
        self.save(updated)
        self.log_written(stored, updated)
        return updated

    def advance_phase(self, plan: PlanModel) -> ProgressState:
        state = self.require()
        updated = self.save(progress.advance_phase(state, plan))
        log_phase_advanced(state.current_phase, updated.current_phase)
        return updated
