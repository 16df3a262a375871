"""MCP server exposing phased plan and progress tracking tools."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, List, Optional

from mcp.server.fastmcp import FastMCP

from vibe_assistant import (
    PROJECT_ROOT_ENV,
    VibeConfig,
    WorkflowManager,
    build_plan_generator,
    load_config,
    setup_logging,
    validate_config,
    workflow_guide,
)

mcp = FastMCP("vibe-assistant")

SERVER_ROOT = Path(__file__).resolve().parent


def _candidate_bases() -> List[Path]:
    cwd = Path.cwd().resolve()
    bases: List[Path] = [cwd]
    bases.extend(cwd.parents)
    if SERVER_ROOT not in bases:
        bases.append(SERVER_ROOT)
    for parent in SERVER_ROOT.parents:
        if parent not in bases:
            bases.append(parent)
    return bases


def _locate_project_root(config: VibeConfig) -> Optional[Path]:
    marker = Path(config.progress_dir.lstrip("/")) / "state.json"
    for base in _candidate_bases():
        if (base / marker).exists():
            return base
    return None


def _resolve_root(root: Optional[str], config: VibeConfig) -> Path:
    if root:
        resolved = Path(root).expanduser().resolve()
        if not resolved.exists():
            raise ValueError(f"Provided root '{root}' does not exist.")
        return resolved

    env_root = os.getenv(PROJECT_ROOT_ENV)
    if env_root:
        env_path = Path(env_root).expanduser().resolve()
        if not env_path.exists():
            raise ValueError(
                f"Environment variable {PROJECT_ROOT_ENV} points to '{env_root}', which does not exist."
            )
        return env_path

    detected_root = _locate_project_root(config)
    if detected_root:
        return detected_root

    raise ValueError(
        "Unable to determine project root automatically. Provide the 'root' argument when calling the tool "
        f"or set the {PROJECT_ROOT_ENV} environment variable."
    )


def _manager(root: Optional[str]) -> WorkflowManager:
    config = load_config()
    return WorkflowManager(_resolve_root(root, config), config)


def _manager_optional(root: Optional[str]) -> Optional[WorkflowManager]:
    try:
        return _manager(root)
    except ValueError:
        return None


@mcp.tool()
def parse_plan(
    plan_json: Optional[str] = None,
    plan_path: Optional[str] = None,
    project_name: Optional[str] = None,
    root: Optional[str] = None,
) -> Dict[str, Any]:
    """STEP 1: Compile a phased task plan and write plan.json and state.json.
    Pass the plan JSON inline (plan_json) or as a file (plan_path). Re-running with an
    updated plan keeps the status of every task id that survives."""

    return _manager(root).parse_plan(plan_json=plan_json, plan_path=plan_path, project_name=project_name)


@mcp.tool()
def generate_plan(
    prd_content: Optional[str] = None,
    prd_path: Optional[str] = None,
    project_name: Optional[str] = None,
    root: Optional[str] = None,
) -> Dict[str, Any]:
    """STEP 1 (alternative): Generate a phased plan from a PRD with Claude, then write it like
    parse_plan. Needs ANTHROPIC_API_KEY; research uses Perplexity when configured."""

    config = load_config()
    project_root = _resolve_root(root, config)
    errors, warnings = validate_config(config, require_generator=True)
    if errors:
        return {
            "error": "Configuration error: " + "; ".join(errors),
            "error_type": "ConfigurationError",
            "suggestion": "Set ANTHROPIC_API_KEY, or generate the plan JSON yourself and call parse_plan",
            "next_suggested_step": "parse_plan",
        }

    manager = WorkflowManager(project_root, config, plan_generator=build_plan_generator(config))
    result = manager.generate_plan(prd_content=prd_content, prd_path=prd_path, project_name=project_name)
    if warnings:
        result["warnings"] = warnings
    return result


@mcp.tool()
def get_next_task(root: Optional[str] = None) -> Dict[str, Any]:
    """STEP 2: Return the next workable task in the current phase, or report that the
    phase is complete or blocked."""

    return _manager(root).get_next_task()


@mcp.tool()
def start_task(task_id: str, note: Optional[str] = None, root: Optional[str] = None) -> Dict[str, Any]:
    """STEP 3: Mark a pending task in_progress."""

    return _manager(root).start_task(task_id, note=note)


@mcp.tool()
def complete_task(task_id: str, note: Optional[str] = None, root: Optional[str] = None) -> Dict[str, Any]:
    """STEP 4: Mark a task completed, unlocking tasks that depend on it."""

    return _manager(root).complete_task(task_id, note=note)


@mcp.tool()
def add_checkpoint(summary: str, task_id: Optional[str] = None, root: Optional[str] = None) -> Dict[str, Any]:
    """STEP 5: Record a summary of meaningful progress in the checkpoint log."""

    return _manager(root).add_checkpoint(summary, task_id=task_id)


@mcp.tool()
def advance_phase(root: Optional[str] = None) -> Dict[str, Any]:
    """STEP 6: Move to the next phase. Refused until every task in the current phase
    is completed."""

    return _manager(root).advance_phase()


@mcp.tool()
def get_status(root: Optional[str] = None) -> Dict[str, Any]:
    """Return progress counts, current phase task statuses and recent checkpoints."""

    return _manager(root).get_status()


@mcp.tool()
def check_if_implemented(issue_description: str, root: Optional[str] = None) -> Dict[str, Any]:
    """Help decide whether an issue is a bug in built work or a feature not built yet."""

    return _manager(root).check_if_implemented(issue_description)


@mcp.tool()
def get_workflow_guide() -> Dict[str, Any]:
    """Return the recommended tool order and usage tips."""

    return workflow_guide()


@mcp.resource("vibe-assistant://progress")
def resource_progress() -> str:
    """Resource view of the current project's progress."""

    manager = _manager_optional(None)
    if not manager:
        return f"No project root detected. Launch tools with a 'root' argument or set {PROJECT_ROOT_ENV}."

    status = manager.get_status()
    if "error" in status:
        return status["error"]

    summary = status["summary"]
    lines = [
        f"vibe-assistant: {status['project_name']}",
        "",
        f"Phase {summary['current_phase']} of {status['phase_count']}"
        + (f": {status['phase_name']}" if status.get("phase_name") else ""),
        f"{summary['completed']}/{summary['total']} tasks complete ({summary['percent_complete']}%)",
    ]
    for task in status["phase_tasks"]:
        line = f"- [{task['status']}] {task['task_id']}: {task['title']}"
        if task["unmet_dependencies"] and task["status"] == "pending":
            line += f" (waiting on {', '.join(task['unmet_dependencies'])})"
        lines.append(line)
    if status["recent_checkpoints"]:
        lines.append("")
        lines.append("Recent checkpoints:")
        for checkpoint in status["recent_checkpoints"]:
            lines.append(f"- {checkpoint['createdAt']} {checkpoint['task']}: {checkpoint['summary']}")
    return "\n".join(lines)


if __name__ == "__main__":
    setup_logging(load_config().log_level.upper())
    mcp.run(transport="stdio")
