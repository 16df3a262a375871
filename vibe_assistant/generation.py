"""Plan generation through injected text-generation collaborators.

The generator and the optional research provider are passed in explicitly;
nothing here constructs or caches an API client. Research is the only step
allowed to fail softly: if it raises, the plan is generated without it.
"""

from __future__ import annotations

import logging
from typing import Optional, Protocol, Tuple

from .adapter import parse_plan_text
from .compiler import compile_plan
from .models import PlanModel
from .vibe_logging import log_error_with_context, log_operation, log_plan_compiled

logger = logging.getLogger("vibe_assistant.generation")

PARSE_SYSTEM_PROMPT = """You are an expert at analyzing Product Requirements Documents (PRDs) and extracting structured tasks for AI coding agents.

Your job is to:
1. Extract a clear project summary and goals
2. Break the requirements into logical implementation phases
3. Create specific, actionable tasks within each phase
4. Identify task dependencies and parallelization opportunities

Output requirements:
- Each phase has clear entry and exit criteria
- Task ids follow the format phase{N}-task{M} (e.g. phase1-task1, phase1-task2)
- Dependencies reference other task ids
- Mark tasks as parallelizable when they do not depend on each other

Respond with JSON only, matching this schema:
{
  "projectName": "string",
  "description": "string",
  "summary": "string",
  "goals": ["string"],
  "phases": [
    {
      "number": 1,
      "name": "Phase Name",
      "description": "What this phase accomplishes",
      "entryCriteria": ["string"],
      "exitCriteria": ["string"],
      "tasks": [
        {
          "id": "phase1-task1",
          "title": "Task Title",
          "description": "What to implement",
          "dependencies": [],
          "parallelizable": true
        }
      ]
    }
  ]
}"""

RESEARCH_QUERY_TEMPLATE = (
    "List current best practices, recommended package versions, deprecated technologies to avoid, "
    "and a sensible phase breakdown for implementing the following project:\n\n{prd}"
)

DEFAULT_MAX_TOKENS = 8192


class TextGenerator(Protocol):
    """Anything that turns a prompt into document text."""

    def generate(self, system_prompt: str, user_prompt: str, max_tokens: int = DEFAULT_MAX_TOKENS) -> str:
        ...


class ResearchProvider(Protocol):
    def research(self, query: str) -> str:
        ...


class PlanGenerator:
    """Generate and compile a plan from PRD text."""

    def __init__(
        self,
        generator: TextGenerator,
        research: Optional[ResearchProvider] = None,
        max_tokens: int = DEFAULT_MAX_TOKENS,
    ):
        self.generator = generator
        self.research = research
        self.max_tokens = max_tokens

    def gather_research(self, prd_content: str) -> Optional[str]:
        """Best-practice notes for the PRD, or ``None`` if unavailable."""
        if self.research is None:
            return None
        try:
            return self.research.research(RESEARCH_QUERY_TEMPLATE.format(prd=prd_content))
        except Exception as e:
            logger.warning(f"Research failed, continuing without it: {e}")
            return None

    def build_prompt(
        self,
        prd_content: str,
        project_name: Optional[str] = None,
        research: Optional[str] = None,
    ) -> str:
        prompt = ""
        if project_name:
            prompt += f"Project Name: {project_name}\n\n"
        prompt += f"PRD Content:\n{prd_content}"
        if research:
            prompt += f"\n\n---\n\n# Research Results (FOLLOW THESE GUIDELINES)\n\n{research}"
        return prompt

    def generate(self, prd_content: str, project_name: Optional[str] = None) -> Tuple[PlanModel, str]:
        """Return the compiled plan and the raw generator text.

        Generator, parse and compile errors propagate to the caller.
        """
        research = self.gather_research(prd_content)
        prompt = self.build_prompt(prd_content, project_name=project_name, research=research)

        with log_operation("generate_plan", has_research=research is not None, prd_length=len(prd_content)):
            try:
                text = self.generator.generate(PARSE_SYSTEM_PROMPT, prompt, self.max_tokens)
                plan = compile_plan(parse_plan_text(text, project_name=project_name))
            except Exception as e:
                log_error_with_context(e, {"operation": "generate_plan", "project_name": project_name})
                raise

        log_plan_compiled(plan.project_name, len(plan.phases), plan.total_tasks, source="generator")
        return plan, text
