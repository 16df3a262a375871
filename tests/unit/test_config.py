"""Unit tests for configuration loading and project layout."""

import json
from unittest.mock import patch

import pytest

from vibe_assistant.config import (
    VibeConfig,
    default_config_path,
    load_config,
    project_paths,
    validate_config,
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for name in (
        "ANTHROPIC_API_KEY",
        "PERPLEXITY_API_KEY",
        "VIBE_ASSISTANT_OUTPUT_DIR",
        "VIBE_ASSISTANT_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("VIBE_ASSISTANT_CONFIG_DIR", str(tmp_path / "config"))


class TestLoadConfig:
    """Test cases for layered configuration."""

    def test_defaults_without_file(self):
        config = load_config()

        assert config == VibeConfig()
        assert config.output_dir == "docs/prd"
        assert config.progress_dir == "docs/progress"

    def test_default_path_honours_env(self, tmp_path):
        assert default_config_path() == tmp_path / "config" / "config.json"

    def test_file_overrides_defaults(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"outputDir": "plans", "research_provider": "claude", "unknown": 1}))

        config = load_config(path)

        assert config.output_dir == "plans"
        assert config.research_provider == "claude"

    def test_invalid_file_is_ignored(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("{broken")

        assert load_config(path) == VibeConfig()

    def test_non_object_file_is_ignored(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("[]")

        with patch("vibe_assistant.config.logger") as mock_logger:
            config = load_config(path)

        assert config == VibeConfig()
        assert "expected a JSON object" in mock_logger.warning.call_args.args[0]

    def test_environment_overrides_file(self, tmp_path, monkeypatch):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"anthropicApiKey": "file-key", "outputDir": "plans"}))
        monkeypatch.setenv("ANTHROPIC_API_KEY", "env-key")
        monkeypatch.setenv("VIBE_ASSISTANT_OUTPUT_DIR", "env-plans")
        monkeypatch.setenv("VIBE_ASSISTANT_LOG_LEVEL", "DEBUG")

        config = load_config(path)

        assert config.anthropic_api_key == "env-key"
        assert config.output_dir == "env-plans"
        assert config.log_level == "DEBUG"


class TestValidateConfig:
    def test_no_keys_is_valid_for_compiling(self):
        errors, warnings = validate_config(VibeConfig())

        assert errors == []
        assert any("Perplexity" in warning for warning in warnings)

    def test_generator_requires_anthropic_key(self):
        errors, _ = validate_config(VibeConfig(), require_generator=True)

        assert any("Anthropic" in error for error in errors)

    def test_unknown_research_provider(self):
        errors, _ = validate_config(VibeConfig(research_provider="bing"))

        assert errors == ["Unknown research provider: 'bing'"]

    def test_claude_research_needs_no_perplexity_key(self):
        _, warnings = validate_config(VibeConfig(research_provider="claude"))

        assert warnings == []


class TestProjectPaths:
    def test_default_layout(self, tmp_path):
        paths = project_paths(tmp_path)

        assert paths.root == tmp_path.resolve()
        assert paths.plan == tmp_path.resolve() / "docs" / "prd" / "plan.json"
        assert paths.state == tmp_path.resolve() / "docs" / "progress" / "state.json"

    def test_custom_dirs_are_project_relative(self, tmp_path):
        paths = project_paths(tmp_path, VibeConfig(output_dir="/plans", progress_dir=".vibe"))

        assert paths.output_dir == tmp_path.resolve() / "plans"
        assert paths.state == tmp_path.resolve() / ".vibe" / "state.json"
