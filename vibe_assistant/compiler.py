"""Plan compilation.

Turns the structured intermediate form produced by a document generator
into a validated, immutable :class:`PlanModel`. Validation is fail-fast in
a fixed order so callers always see the most fundamental problem first:

1. task id well-formedness
2. task id uniqueness
3. contiguous phase numbering
4. dependency resolvability
5. self-dependency
6. acyclicity

Compilation has no side effects; persistence belongs to the workspace.
"""

from __future__ import annotations

from collections import Counter, defaultdict, deque
from typing import Any, Dict, Iterable, List, Mapping, Sequence, Tuple

from .errors import (
    DanglingDependencyError,
    DependencyCycleError,
    DuplicateTaskIdError,
    MalformedTaskIdError,
    PhaseNumberingError,
    PlanStructureError,
    SelfDependencyError,
)
from .models import Phase, PlanModel, Task, parse_task_id


def compile_plan(raw: Mapping[str, Any]) -> PlanModel:
    """Validate ``raw`` and build a :class:`PlanModel`.

    Raises a :class:`~vibe_assistant.errors.CompileError` subclass naming the
    offending task ids on the first category of problem found.
    """
    raw_phases = _require_phases(raw)

    # (phase number, raw task) pairs in declaration order
    entries: List[Tuple[int, Mapping[str, Any]]] = []
    for raw_phase in raw_phases:
        number = raw_phase["number"]
        for raw_task in raw_phase["tasks"]:
            entries.append((number, raw_task))

    task_ids = [raw_task["id"] for _, raw_task in entries]

    malformed = [task_id for task_id in task_ids if parse_task_id(task_id) is None]
    if malformed:
        raise MalformedTaskIdError(malformed)

    duplicates = [task_id for task_id, count in Counter(task_ids).items() if count > 1]
    if duplicates:
        raise DuplicateTaskIdError(duplicates)

    numbers = [raw_phase["number"] for raw_phase in raw_phases]
    if sorted(numbers) != list(range(1, len(numbers) + 1)):
        raise PhaseNumberingError(numbers)

    dependencies: Dict[str, Tuple[str, ...]] = {
        raw_task["id"]: _dedupe(raw_task.get("dependencies") or [])
        for _, raw_task in entries
    }

    known = set(task_ids)
    missing = [
        (task_id, dep)
        for task_id in task_ids
        for dep in dependencies[task_id]
        if dep not in known
    ]
    if missing:
        raise DanglingDependencyError(missing)

    self_referencing = [task_id for task_id in task_ids if task_id in dependencies[task_id]]
    if self_referencing:
        raise SelfDependencyError(self_referencing)

    order = _kahn_order(task_ids, dependencies)
    if len(order) != len(task_ids):
        remaining = [task_id for task_id in task_ids if task_id not in set(order)]
        raise DependencyCycleError(_find_cycle(remaining, dependencies))

    phases = []
    for raw_phase in sorted(raw_phases, key=lambda item: item["number"]):
        number = raw_phase["number"]
        tasks = tuple(
            Task(
                id=raw_task["id"],
                title=str(raw_task.get("title", "")),
                description=str(raw_task.get("description", "")),
                phase_number=number,
                dependencies=dependencies[raw_task["id"]],
                parallelizable=bool(raw_task.get("parallelizable", False)),
            )
            for raw_task in raw_phase["tasks"]
        )
        phases.append(
            Phase(
                number=number,
                name=str(raw_phase.get("name", f"Phase {number}")),
                description=str(raw_phase.get("description", "")),
                tasks=tasks,
                entry_criteria=tuple(_string_list(raw_phase, "entryCriteria")),
                exit_criteria=tuple(_string_list(raw_phase, "exitCriteria")),
            )
        )

    return PlanModel(
        project_name=str(raw.get("projectName", "")),
        summary=str(raw.get("summary", "")),
        goals=tuple(_string_list(raw, "goals")),
        phases=tuple(phases),
        description=str(raw.get("description", "")),
    )


def topological_order(plan: PlanModel) -> List[str]:
    """Return every task id so that dependencies precede dependents.

    Ties are broken by declaration order.
    """
    task_ids = plan.task_ids()
    order = _kahn_order(task_ids, {task.id: task.dependencies for task in plan.tasks()})
    if len(order) != len(task_ids):
        remaining = [task_id for task_id in task_ids if task_id not in set(order)]
        raise DependencyCycleError(
            _find_cycle(remaining, {task.id: task.dependencies for task in plan.tasks()})
        )
    return order


# ---------------------------------------------------------------------------
# Private helpers
# ---------------------------------------------------------------------------


def _require_phases(raw: Mapping[str, Any]) -> Sequence[Mapping[str, Any]]:
    if not isinstance(raw, Mapping):
        raise PlanStructureError("Plan must be an object")
    phases = raw.get("phases")
    if not isinstance(phases, list) or not phases:
        raise PlanStructureError("Plan must contain a non-empty 'phases' list")

    for index, raw_phase in enumerate(phases):
        if not isinstance(raw_phase, Mapping):
            raise PlanStructureError(f"Phase at index {index} must be an object")
        number = raw_phase.get("number")
        if isinstance(number, bool) or not isinstance(number, int):
            raise PlanStructureError(f"Phase at index {index} has a non-integer number: {number!r}")
        tasks = raw_phase.get("tasks")
        if not isinstance(tasks, list) or not tasks:
            raise PlanStructureError(f"Phase {number} must contain a non-empty 'tasks' list")
        for raw_task in tasks:
            if not isinstance(raw_task, Mapping) or "id" not in raw_task:
                raise PlanStructureError(f"Phase {number} contains a task without an 'id'")
            deps = raw_task.get("dependencies")
            if deps is not None and not isinstance(deps, list):
                raise PlanStructureError(
                    f"Task {raw_task['id']!r} has non-list dependencies: {deps!r}",
                    [str(raw_task["id"])],
                )
            if deps and any(not isinstance(dep, str) for dep in deps):
                raise PlanStructureError(
                    f"Task {raw_task['id']!r} has non-string dependency entries: {deps!r}",
                    [str(raw_task["id"])],
                )
    return phases


def _string_list(data: Mapping[str, Any], key: str) -> List[str]:
    value = data.get(key) or []
    if isinstance(value, str):
        return [value]
    return [str(item) for item in value]


def _dedupe(values: Iterable[str]) -> Tuple[str, ...]:
    seen = set()
    ordered = []
    for value in values:
        if value not in seen:
            seen.add(value)
            ordered.append(value)
    return tuple(ordered)


def _kahn_order(task_ids: Sequence[str], dependencies: Mapping[str, Sequence[str]]) -> List[str]:
    indegree = {task_id: 0 for task_id in task_ids}
    dependents: Dict[str, List[str]] = defaultdict(list)
    for task_id in task_ids:
        for dep in dependencies.get(task_id, ()):
            if dep in indegree:
                indegree[task_id] += 1
                dependents[dep].append(task_id)

    queue = deque(task_id for task_id in task_ids if indegree[task_id] == 0)
    ordered: List[str] = []
    while queue:
        current = queue.popleft()
        ordered.append(current)
        for nxt in dependents[current]:
            indegree[nxt] -= 1
            if indegree[nxt] == 0:
                queue.append(nxt)
    return ordered


def _find_cycle(remaining: Sequence[str], dependencies: Mapping[str, Sequence[str]]) -> List[str]:
    """Walk dependency edges among tasks Kahn could not order until one repeats."""
    pending = set(remaining)
    current = remaining[0]
    path: List[str] = []
    position: Dict[str, int] = {}
    while current not in position:
        position[current] = len(path)
        path.append(current)
        # every unordered task has at least one unordered dependency
        current = next(dep for dep in dependencies[current] if dep in pending)
    return path[position[current]:]
