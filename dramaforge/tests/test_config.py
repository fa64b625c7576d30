"""
Unit tests for configuration loading.
"""

import pytest
from pydantic import ValidationError

from dramaforge.agents import OpenAICompatibleClient, build_agent_suite, create_llm_client
from dramaforge.agents.base import JSON_ONLY_INSTRUCTION
from dramaforge.config import (
    DeepSeekConfig,
    LLMConfiguration,
    LLMProvider,
    WorkflowSettings,
    create_default_config_from_env,
    create_workflow_settings_from_env,
)
from dramaforge.core.errors import MissingCredentialsError
from dramaforge.models import AgentRole, AutoAdvancePreference

ENV_KEYS = [
    "OPENAI_API_KEY",
    "OPENROUTER_API_KEY",
    "DEEPSEEK_API_KEY",
    "NVIDIA_API_KEY",
    "ANTHROPIC_API_KEY",
    "GEMINI_API_KEY",
    "DRAMAFORGE_PROVIDER",
    "DRAMAFORGE_MODEL",
    "DRAMAFORGE_TIMEOUT_SECONDS",
    "DRAMAFORGE_MAX_FIX_ATTEMPTS",
    "DRAMAFORGE_MAX_TOTAL_CHARS",
    "DRAMAFORGE_CONTEXT_CHARS",
    "DRAMAFORGE_ALIGNER_CONTEXT_CHARS",
    "DRAMAFORGE_AUTO_ADVANCE",
    "DRAMAFORGE_DATA_DIR",
]


@pytest.fixture
def clean_env(monkeypatch):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    return monkeypatch


class TestLLMConfiguration:
    """Tests for provider configuration from the environment."""

    def test_no_keys_means_no_providers(self, clean_env):
        """Test an empty environment enables nothing and reports every role."""
        config = create_default_config_from_env()
        assert config.get_enabled_providers() == []
        errors = config.validate_agent_models()
        assert len(errors) == len(AgentRole)
        assert "writer: Provider deepseek is not configured" in errors

    def test_deepseek_key_satisfies_defaults(self, clean_env):
        """Test the default role assignment only needs a DeepSeek key."""
        clean_env.setenv("DEEPSEEK_API_KEY", "sk-test")
        config = create_default_config_from_env()
        assert config.get_enabled_providers() == [LLMProvider.DEEPSEEK]
        assert config.validate_agent_models() == []

    def test_provider_override_retargets_every_role(self, clean_env):
        """Test DRAMAFORGE_PROVIDER points all roles at one provider, keeping temperatures."""
        clean_env.setenv("OPENAI_API_KEY", "sk-test")
        clean_env.setenv("DRAMAFORGE_PROVIDER", "openai")
        clean_env.setenv("DRAMAFORGE_TIMEOUT_SECONDS", "60")
        config = create_default_config_from_env()

        writer = config.agent_models.for_role(AgentRole.WRITER)
        aligner = config.agent_models.for_role(AgentRole.ALIGNER)
        assert writer.provider == LLMProvider.OPENAI
        assert writer.model == "gpt-4o"
        assert aligner.temperature == 0.2
        assert config.timeout_seconds == 60
        assert config.validate_agent_models() == []

    def test_missing_credentials(self):
        """Test asking for an unconfigured provider raises MissingCredentialsError."""
        with pytest.raises(MissingCredentialsError):
            create_llm_client(LLMProvider.CLAUDE, LLMConfiguration(), "claude-3-5-sonnet-20241022")

    def test_build_agent_suite(self, clean_env):
        """Test every role gets a client without touching the network."""
        clean_env.setenv("DEEPSEEK_API_KEY", "sk-test")
        suite = build_agent_suite(create_default_config_from_env(), WorkflowSettings(intent_window=6))

        assert isinstance(suite.writer.llm_client, OpenAICompatibleClient)
        assert suite.intent_analyzer.window == 6
        assert suite.aligner.temperature == 0.2
        assert suite.director.name == "director"

    def test_json_mode_follows_the_catalogue(self, clean_env):
        """Test models without native JSON mode get the instruction in the system prompt instead."""
        clean_env.setenv("DEEPSEEK_API_KEY", "sk-test")
        config = create_default_config_from_env()
        messages = [{"role": "system", "content": "Be brief."}, {"role": "user", "content": "Hi"}]

        chat = create_llm_client(LLMProvider.DEEPSEEK, config, "deepseek-chat")
        kwargs = chat._kwargs(messages, True, 0.2, None)
        assert kwargs["response_format"] == {"type": "json_object"}
        assert kwargs["messages"] == messages

        reasoner = create_llm_client(LLMProvider.DEEPSEEK, config, "deepseek-reasoner")
        assert reasoner.supports_json_mode is False
        kwargs = reasoner._kwargs(messages, True, 0.2, None)
        assert "response_format" not in kwargs
        assert kwargs["messages"][0]["content"] == f"Be brief.\n\n{JSON_ONLY_INSTRUCTION}"
        assert kwargs["messages"][1:] == messages[1:]

    def test_uncatalogued_model_keeps_json_mode(self, clean_env):
        """Test a model missing from the catalogue is assumed to support JSON mode."""
        clean_env.setenv("OPENAI_API_KEY", "sk-test")
        client = create_llm_client(LLMProvider.OPENAI, create_default_config_from_env(), "gpt-5-preview")
        assert client.supports_json_mode is True

    def test_openrouter_sends_app_name(self, clean_env):
        """Test the OpenRouter client identifies the app through the X-Title header."""
        clean_env.setenv("OPENROUTER_API_KEY", "sk-test")
        config = create_default_config_from_env()
        client = create_llm_client(LLMProvider.OPENROUTER, config, "deepseek/deepseek-chat")
        assert client.default_headers == {"X-Title": "DramaForge"}
        assert config.openrouter.model_label("anthropic/claude-3.5-sonnet") == "Claude 3.5 Sonnet (via OpenRouter)"

        deepseek = LLMConfiguration(deepseek=DeepSeekConfig(api_key="sk-test"))
        assert create_llm_client(LLMProvider.DEEPSEEK, deepseek, "deepseek-chat").default_headers == {}


class TestWorkflowSettings:
    """Tests for workflow settings."""

    def test_defaults(self, clean_env):
        """Test the default knobs."""
        settings = create_workflow_settings_from_env()
        assert settings.max_fix_attempts == 5
        assert settings.min_extracted_length == 10
        assert settings.auto_advance == AutoAdvancePreference.DISABLED

    def test_env_overrides(self, clean_env):
        """Test DRAMAFORGE_* variables override settings."""
        clean_env.setenv("DRAMAFORGE_MAX_FIX_ATTEMPTS", "3")
        clean_env.setenv("DRAMAFORGE_AUTO_ADVANCE", "confirm")
        clean_env.setenv("DRAMAFORGE_DATA_DIR", "/tmp/df")
        settings = create_workflow_settings_from_env()
        assert settings.max_fix_attempts == 3
        assert settings.auto_advance == AutoAdvancePreference.CONFIRM
        assert settings.data_dir == "/tmp/df"

    def test_invalid_value(self, clean_env):
        """Test a zero retry bound is rejected."""
        clean_env.setenv("DRAMAFORGE_MAX_FIX_ATTEMPTS", "0")
        with pytest.raises(ValidationError):
            create_workflow_settings_from_env()
