"""User configuration and project layout."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import List, Optional, Tuple

logger = logging.getLogger("vibe_assistant.config")

CONFIG_DIR_ENV = "VIBE_ASSISTANT_CONFIG_DIR"
PROJECT_ROOT_ENV = "VIBE_ASSISTANT_PROJECT_ROOT"
OUTPUT_DIR_ENV = "VIBE_ASSISTANT_OUTPUT_DIR"
LOG_LEVEL_ENV = "VIBE_ASSISTANT_LOG_LEVEL"

RESEARCH_PROVIDERS = ("perplexity", "claude")


def default_config_path() -> Path:
    base = os.getenv(CONFIG_DIR_ENV)
    directory = Path(base).expanduser() if base else Path.home() / ".vibe-assistant"
    return directory / "config.json"


@dataclass(slots=True)
class VibeConfig:
    output_dir: str = "docs/prd"
    progress_dir: str = "docs/progress"
    anthropic_api_key: Optional[str] = None
    perplexity_api_key: Optional[str] = None
    research_provider: str = "perplexity"
    log_level: str = "INFO"


# camelCase keys accepted in the config file for compatibility
_FILE_KEYS = {
    "outputDir": "output_dir",
    "progressDir": "progress_dir",
    "anthropicApiKey": "anthropic_api_key",
    "perplexityApiKey": "perplexity_api_key",
    "researchProvider": "research_provider",
    "logLevel": "log_level",
}


def load_config(path: Optional[Path] = None) -> VibeConfig:
    """Defaults, overlaid by the config file, overlaid by the environment."""
    config = VibeConfig()
    config_path = Path(path) if path else default_config_path()

    if config_path.exists():
        try:
            file_data = json.loads(config_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable config file {config_path}: {e}")
            file_data = {}
        if not isinstance(file_data, dict):
            logger.warning(f"Ignoring config file {config_path}: expected a JSON object")
            file_data = {}
        known = {item.name for item in fields(config)}
        for key, value in file_data.items():
            name = _FILE_KEYS.get(key, key)
            if name in known:
                setattr(config, name, value)

    config.anthropic_api_key = os.getenv("ANTHROPIC_API_KEY") or config.anthropic_api_key
    config.perplexity_api_key = os.getenv("PERPLEXITY_API_KEY") or config.perplexity_api_key
    config.output_dir = os.getenv(OUTPUT_DIR_ENV) or config.output_dir
    config.log_level = os.getenv(LOG_LEVEL_ENV) or config.log_level
    return config


def validate_config(config: VibeConfig, require_generator: bool = False) -> Tuple[List[str], List[str]]:
    """Return ``(errors, warnings)`` for ``config``.

    An Anthropic key is only an error when plan text must be generated;
    compiling a supplied plan needs no keys.
    """
    errors: List[str] = []
    warnings: List[str] = []

    if require_generator and not config.anthropic_api_key:
        errors.append("Anthropic API key is required. Set ANTHROPIC_API_KEY or add it to the config file.")
    if config.research_provider not in RESEARCH_PROVIDERS:
        errors.append(f"Unknown research provider: {config.research_provider!r}")
    if config.research_provider == "perplexity" and not config.perplexity_api_key:
        warnings.append("Perplexity API key not set. Research will use Claude instead.")

    return errors, warnings


@dataclass(frozen=True, slots=True)
class ProjectPaths:
    root: Path
    output_dir: Path
    plan: Path
    progress_dir: Path
    state: Path


def project_paths(root: Path | str, config: Optional[VibeConfig] = None) -> ProjectPaths:
    config = config or VibeConfig()
    base = Path(root).resolve()
    # absolute output dirs are treated as project-relative
    output_dir = base / config.output_dir.lstrip("/")
    progress_dir = base / config.progress_dir.lstrip("/")
    return ProjectPaths(
        root=base,
        output_dir=output_dir,
        plan=output_dir / "plan.json",
        progress_dir=progress_dir,
        state=progress_dir / "state.json",
    )
