"""vibe-assistant library exports."""

from .compiler import compile_plan, topological_order
from .config import (
    PROJECT_ROOT_ENV,
    ProjectPaths,
    VibeConfig,
    load_config,
    project_paths,
    validate_config,
)
from .errors import (
    CompileError,
    DanglingDependencyError,
    DependencyCycleError,
    DuplicateTaskIdError,
    GenerationError,
    IllegalTransitionError,
    MalformedTaskIdError,
    PhaseNotCompleteError,
    PhaseNumberingError,
    PlanParseError,
    PlanStructureError,
    SelfDependencyError,
    StateNotFoundError,
    StorageError,
    UnknownTaskError,
    VibeAssistantError,
)
from .generation import PlanGenerator, ResearchProvider, TextGenerator
from .llm import AnthropicGenerator, ClaudeResearch, PerplexityResearch, build_plan_generator
from .models import (
    Blocked,
    BlockedTask,
    Checkpoint,
    NextTask,
    Phase,
    PhaseComplete,
    PlanModel,
    ProgressRecord,
    ProgressState,
    Task,
)
from .resolver import next_task
from .store import ProgressStore
from .vibe_logging import setup_logging
from .workflow import WorkflowManager, workflow_guide
from .workspace import Workspace

__all__ = [
    "compile_plan",
    "topological_order",
    "PROJECT_ROOT_ENV",
    "ProjectPaths",
    "VibeConfig",
    "load_config",
    "project_paths",
    "validate_config",
    "CompileError",
    "DanglingDependencyError",
    "DependencyCycleError",
    "DuplicateTaskIdError",
    "GenerationError",
    "IllegalTransitionError",
    "MalformedTaskIdError",
    "PhaseNotCompleteError",
    "PhaseNumberingError",
    "PlanParseError",
    "PlanStructureError",
    "SelfDependencyError",
    "StateNotFoundError",
    "StorageError",
    "UnknownTaskError",
    "VibeAssistantError",
    "PlanGenerator",
    "ResearchProvider",
    "TextGenerator",
    "AnthropicGenerator",
    "ClaudeResearch",
    "PerplexityResearch",
    "build_plan_generator",
    "Blocked",
    "BlockedTask",
    "Checkpoint",
    "NextTask",
    "Phase",
    "PhaseComplete",
    "PlanModel",
    "ProgressRecord",
    "ProgressState",
    "Task",
    "next_task",
    "ProgressStore",
    "setup_logging",
    "WorkflowManager",
    "workflow_guide",
    "Workspace",
]
