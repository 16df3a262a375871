"""Shared fixtures for vibe-assistant tests."""

import copy

import pytest

from vibe_assistant.compiler import compile_plan
from vibe_assistant.progress import initialize_state

SAMPLE_PLAN = {
    "projectName": "Todo API",
    "description": "A small todo service",
    "summary": "CRUD API for todo items",
    "goals": ["Ship a working API", "Keep it tested"],
    "phases": [
        {
            "number": 1,
            "name": "Foundation",
            "description": "Project skeleton and storage",
            "entryCriteria": ["Repository exists"],
            "exitCriteria": ["Storage layer tested"],
            "tasks": [
                {
                    "id": "phase1-task1",
                    "title": "Set up project",
                    "description": "Create package layout and tooling",
                    "dependencies": [],
                    "parallelizable": False,
                },
                {
                    "id": "phase1-task2",
                    "title": "Add storage layer",
                    "description": "Persist todo items in sqlite",
                    "dependencies": ["phase1-task1"],
                },
                {
                    "id": "phase1-task3",
                    "title": "Write README",
                    "description": "Document setup steps",
                    "dependencies": ["phase1-task1"],
                    "parallelizable": True,
                },
            ],
        },
        {
            "number": 2,
            "name": "API",
            "description": "HTTP endpoints",
            "tasks": [
                {
                    "id": "phase2-task1",
                    "title": "Add endpoints",
                    "description": "Create, list and delete todo items",
                    "dependencies": ["phase1-task2"],
                },
            ],
        },
    ],
}


@pytest.fixture
def raw_plan():
    """A fresh deep copy of the sample plan input."""
    return copy.deepcopy(SAMPLE_PLAN)


@pytest.fixture
def plan(raw_plan):
    return compile_plan(raw_plan)


@pytest.fixture
def state(plan):
    return initialize_state(plan)


@pytest.fixture
def make_plan():
    """Build a raw plan from ``{phase_number: [(task_id, deps), ...]}``."""

    def _make(phases, project_name="Test Project"):
        return {
            "projectName": project_name,
            "summary": "",
            "goals": [],
            "phases": [
                {
                    "number": number,
                    "name": f"Phase {number}",
                    "tasks": [
                        {"id": task_id, "title": task_id, "description": "", "dependencies": list(deps)}
                        for task_id, deps in tasks
                    ],
                }
                for number, tasks in phases.items()
            ],
        }

    return _make
