"""Adapters from loosely structured generator output to the compiler's input.

Language models wrap JSON in markdown fences, emit dependency lists as prose
("depends on phase1-task1 and phase1-task2"), or use snake_case keys. All of
that cleanup happens here so that :mod:`vibe_assistant.compiler` only ever
sees the structured intermediate form. Anything that cannot be interpreted
raises :class:`~vibe_assistant.errors.PlanParseError`.
"""

from __future__ import annotations

import json
import re
from typing import Any, Dict, List, Mapping, Optional

from .errors import PlanParseError

_FENCE_PATTERN = re.compile(r"^```[a-zA-Z0-9_-]*\s*\n?(?P<body>.*?)\n?```\s*$", re.DOTALL)
_TASK_REFERENCE_PATTERN = re.compile(r"\bphase\d+-task\d+\b", re.IGNORECASE)
_NO_DEPENDENCY_WORDS = {"", "none", "n/a", "na", "-", "no dependencies"}

_KEY_ALIASES = {
    "project_name": "projectName",
    "entry_criteria": "entryCriteria",
    "exit_criteria": "exitCriteria",
    "depends_on": "dependencies",
    "dependsOn": "dependencies",
}


def strip_code_fences(text: str) -> str:
    """Remove a surrounding markdown code fence, if present."""
    stripped = text.strip()
    match = _FENCE_PATTERN.match(stripped)
    if match:
        return match.group("body").strip()
    return stripped


def parse_dependency_list(value: Any) -> List[str]:
    """Normalise a dependency field into a list of task ids.

    Accepts a list of ids, a comma separated string, or free text that
    mentions ids. Ids are lowercased; unrecognisable list entries are kept
    verbatim so the compiler can report them as dangling.
    """
    if value is None:
        return []
    if isinstance(value, str):
        if value.strip().lower() in _NO_DEPENDENCY_WORDS:
            return []
        found = [ref.lower() for ref in _TASK_REFERENCE_PATTERN.findall(value)]
        if not found:
            raise PlanParseError(f"Could not find task ids in dependency text: {value!r}")
        return found
    if isinstance(value, (list, tuple)):
        deps: List[str] = []
        for item in value:
            if not isinstance(item, str):
                raise PlanParseError(f"Dependency entries must be strings, got {item!r}")
            item = item.strip()
            if item.lower() in _NO_DEPENDENCY_WORDS:
                continue
            references = _TASK_REFERENCE_PATTERN.findall(item)
            if len(references) == 1 and references[0].lower() == item.lower():
                deps.append(item.lower())
            elif references:
                deps.extend(ref.lower() for ref in references)
            else:
                deps.append(item)
        return deps
    raise PlanParseError(f"Unsupported dependency value: {value!r}")


def normalize_plan(data: Mapping[str, Any], project_name: Optional[str] = None) -> Dict[str, Any]:
    """Rename aliased keys and normalise dependency lists."""
    if not isinstance(data, Mapping):
        raise PlanParseError("Generated plan must be a JSON object")

    plan = {_KEY_ALIASES.get(key, key): value for key, value in data.items()}
    if project_name:
        plan["projectName"] = project_name

    phases = plan.get("phases")
    if not isinstance(phases, list):
        raise PlanParseError("Generated plan has no 'phases' list")

    normalized_phases = []
    for raw_phase in phases:
        if not isinstance(raw_phase, Mapping):
            raise PlanParseError(f"Phase entries must be objects, got {raw_phase!r}")
        phase = {_KEY_ALIASES.get(key, key): value for key, value in raw_phase.items()}
        tasks = []
        for raw_task in phase.get("tasks") or []:
            if not isinstance(raw_task, Mapping):
                raise PlanParseError(f"Task entries must be objects, got {raw_task!r}")
            task = {_KEY_ALIASES.get(key, key): value for key, value in raw_task.items()}
            task["dependencies"] = parse_dependency_list(task.get("dependencies"))
            tasks.append(task)
        phase["tasks"] = tasks
        normalized_phases.append(phase)
    plan["phases"] = normalized_phases
    return plan


def parse_plan_text(text: str, project_name: Optional[str] = None) -> Dict[str, Any]:
    """Decode generator text into the compiler's input structure."""
    if not text or not text.strip():
        raise PlanParseError("Generated plan text is empty")
    body = strip_code_fences(text)
    try:
        data = json.loads(body)
    except json.JSONDecodeError as e:
        raise PlanParseError(f"Generated plan is not valid JSON: {e}") from e
    return normalize_plan(data, project_name=project_name)
