"""
DramaForge Configuration Module
LLM provider configuration and workflow settings.
"""

from .llm_providers import (
    CLAUDE_MODELS,
    DEEPSEEK_MODELS,
    GEMINI_MODELS,
    NVIDIA_MODELS,
    OPENAI_COMPATIBLE_PROVIDERS,
    OPENAI_MODELS,
    OPENROUTER_MODELS,
    AgentModelConfig,
    ClaudeConfig,
    DeepSeekConfig,
    GeminiConfig,
    LLMConfiguration,
    LLMProvider,
    NvidiaConfig,
    OpenAIConfig,
    OpenRouterConfig,
    ProviderConfig,
    RoleModel,
    create_default_config_from_env,
)
from .workflow import (
    MAX_FIX_ATTEMPTS,
    WorkflowSettings,
    create_workflow_settings_from_env,
)

__all__ = [
    "LLMProvider",
    "OPENAI_COMPATIBLE_PROVIDERS",
    "OPENAI_MODELS",
    "OPENROUTER_MODELS",
    "DEEPSEEK_MODELS",
    "NVIDIA_MODELS",
    "CLAUDE_MODELS",
    "GEMINI_MODELS",
    "ProviderConfig",
    "OpenAIConfig",
    "OpenRouterConfig",
    "DeepSeekConfig",
    "NvidiaConfig",
    "ClaudeConfig",
    "GeminiConfig",
    "RoleModel",
    "AgentModelConfig",
    "LLMConfiguration",
    "create_default_config_from_env",
    "MAX_FIX_ATTEMPTS",
    "WorkflowSettings",
    "create_workflow_settings_from_env",
]
