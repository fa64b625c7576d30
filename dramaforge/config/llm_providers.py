"""
LLM Provider Configuration - Bring Your Own Key
Supports OpenAI, OpenRouter, DeepSeek, NVIDIA NIM, Anthropic Claude and Google Gemini.

Every agent role is bound to one provider/model pair through AgentModelConfig,
so a project can run the Writer on a large model while the Summarizer and
IntentAnalyzer use something cheap.
"""

import os
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, SecretStr

from ..models.schemas import AgentRole


class LLMProvider(str, Enum):
    """Supported LLM providers."""
    OPENAI = "openai"
    OPENROUTER = "openrouter"
    DEEPSEEK = "deepseek"
    NVIDIA = "nvidia"
    CLAUDE = "claude"
    GEMINI = "gemini"


# Providers reached through the OpenAI chat-completions wire format
OPENAI_COMPATIBLE_PROVIDERS = {
    LLMProvider.OPENAI,
    LLMProvider.OPENROUTER,
    LLMProvider.DEEPSEEK,
    LLMProvider.NVIDIA,
}


# ============================================================================
# Model Definitions by Provider
# ============================================================================

OPENAI_MODELS: Dict[str, Dict[str, Any]] = {
    "gpt-4o": {
        "name": "GPT-4o",
        "supports_json_mode": True,
    },
    "gpt-4o-mini": {
        "name": "GPT-4o Mini",
        "supports_json_mode": True,
    },
}

DEEPSEEK_MODELS: Dict[str, Dict[str, Any]] = {
    "deepseek-chat": {
        "name": "DeepSeek V3",
        "supports_json_mode": True,
    },
    "deepseek-reasoner": {
        "name": "DeepSeek R1",
        "supports_json_mode": False,
    },
}

NVIDIA_MODELS: Dict[str, Dict[str, Any]] = {
    "meta/llama-3.1-405b-instruct": {
        "name": "Llama 3.1 405B (NIM)",
        "supports_json_mode": False,
    },
    "deepseek-ai/deepseek-r1": {
        "name": "DeepSeek R1 (NIM)",
        "supports_json_mode": False,
    },
}

OPENROUTER_MODELS: Dict[str, Dict[str, Any]] = {
    "anthropic/claude-3.5-sonnet": {
        "name": "Claude 3.5 Sonnet (via OpenRouter)",
        "supports_json_mode": False,
    },
    "deepseek/deepseek-chat": {
        "name": "DeepSeek V3 (via OpenRouter)",
        "supports_json_mode": True,
    },
}

CLAUDE_MODELS: Dict[str, Dict[str, Any]] = {
    "claude-3-5-sonnet-20241022": {
        "name": "Claude 3.5 Sonnet",
        "supports_json_mode": False,
    },
    "claude-3-5-haiku-20241022": {
        "name": "Claude 3.5 Haiku",
        "supports_json_mode": False,
    },
}

GEMINI_MODELS: Dict[str, Dict[str, Any]] = {
    "gemini-1.5-pro": {
        "name": "Gemini 1.5 Pro",
        "supports_json_mode": True,
    },
    "gemini-1.5-flash": {
        "name": "Gemini 1.5 Flash",
        "supports_json_mode": True,
    },
}


# ============================================================================
# Provider Configuration Models
# ============================================================================

class ProviderConfig(BaseModel):
    """Base configuration for an LLM provider."""
    provider: LLMProvider
    api_key: SecretStr
    base_url: Optional[str] = None
    default_model: str
    enabled: bool = True

    @property
    def available_models(self) -> Dict[str, Dict[str, Any]]:
        return {}

    def model_label(self, model: str) -> str:
        return self.available_models.get(model, {}).get("name", model)

    def supports_json_mode(self, model: str) -> bool:
        """Whether the model takes a native JSON response format. Uncatalogued models are assumed to."""
        return self.available_models.get(model, {}).get("supports_json_mode", True)


class OpenAIConfig(ProviderConfig):
    """OpenAI-specific configuration."""
    provider: LLMProvider = LLMProvider.OPENAI
    base_url: str = "https://api.openai.com/v1"
    default_model: str = "gpt-4o"

    @property
    def available_models(self) -> Dict[str, Dict[str, Any]]:
        return OPENAI_MODELS


class OpenRouterConfig(ProviderConfig):
    """OpenRouter-specific configuration."""
    provider: LLMProvider = LLMProvider.OPENROUTER
    base_url: str = "https://openrouter.ai/api/v1"
    default_model: str = "deepseek/deepseek-chat"
    app_name: Optional[str] = "DramaForge"

    @property
    def available_models(self) -> Dict[str, Dict[str, Any]]:
        return OPENROUTER_MODELS


class DeepSeekConfig(ProviderConfig):
    """DeepSeek-specific configuration (OpenAI-compatible API)."""
    provider: LLMProvider = LLMProvider.DEEPSEEK
    base_url: str = "https://api.deepseek.com"
    default_model: str = "deepseek-chat"

    @property
    def available_models(self) -> Dict[str, Dict[str, Any]]:
        return DEEPSEEK_MODELS


class NvidiaConfig(ProviderConfig):
    """NVIDIA NIM configuration (OpenAI-compatible API)."""
    provider: LLMProvider = LLMProvider.NVIDIA
    base_url: str = "https://integrate.api.nvidia.com/v1"
    default_model: str = "meta/llama-3.1-405b-instruct"

    @property
    def available_models(self) -> Dict[str, Dict[str, Any]]:
        return NVIDIA_MODELS


class ClaudeConfig(ProviderConfig):
    """Anthropic Claude-specific configuration."""
    provider: LLMProvider = LLMProvider.CLAUDE
    default_model: str = "claude-3-5-sonnet-20241022"
    max_tokens: int = 8192

    @property
    def available_models(self) -> Dict[str, Dict[str, Any]]:
        return CLAUDE_MODELS


class GeminiConfig(ProviderConfig):
    """Google Gemini-specific configuration."""
    provider: LLMProvider = LLMProvider.GEMINI
    default_model: str = "gemini-1.5-pro"

    @property
    def available_models(self) -> Dict[str, Dict[str, Any]]:
        return GEMINI_MODELS


# ============================================================================
# Agent Model Assignment
# ============================================================================

class RoleModel(BaseModel):
    """Provider, model and sampling temperature for a single agent role."""
    provider: LLMProvider = LLMProvider.DEEPSEEK
    model: str = "deepseek-chat"
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)


DEFAULT_ROLE_TEMPERATURES: Dict[AgentRole, float] = {
    AgentRole.WRITER: 0.7,
    AgentRole.ALIGNER: 0.2,
    AgentRole.DIRECTOR: 0.4,
    AgentRole.VISUALIZER: 0.6,
    AgentRole.MOTION: 0.6,
    AgentRole.AUTO_FIXER: 0.4,
    AgentRole.SUMMARIZER: 0.3,
    AgentRole.INTENT_ANALYZER: 0.1,
    AgentRole.CONTENT_EXTRACTOR: 0.2,
    AgentRole.BACKGROUND_CHECKER: 0.2,
}


def _default_roles() -> Dict[AgentRole, RoleModel]:
    return {role: RoleModel(temperature=temp) for role, temp in DEFAULT_ROLE_TEMPERATURES.items()}


class AgentModelConfig(BaseModel):
    """Configuration for which model each agent role uses."""
    roles: Dict[AgentRole, RoleModel] = Field(default_factory=_default_roles)

    def for_role(self, role: AgentRole) -> RoleModel:
        return self.roles.get(role) or RoleModel(temperature=DEFAULT_ROLE_TEMPERATURES.get(role, 0.7))

    def retarget(self, provider: LLMProvider, model: str) -> None:
        """Point every role at one provider/model, keeping per-role temperatures."""
        for role in AgentRole:
            current = self.for_role(role)
            self.roles[role] = RoleModel(provider=provider, model=model, temperature=current.temperature)


# ============================================================================
# Master Configuration
# ============================================================================

class LLMConfiguration(BaseModel):
    """Master LLM configuration with all providers."""

    openai: Optional[OpenAIConfig] = None
    openrouter: Optional[OpenRouterConfig] = None
    deepseek: Optional[DeepSeekConfig] = None
    nvidia: Optional[NvidiaConfig] = None
    claude: Optional[ClaudeConfig] = None
    gemini: Optional[GeminiConfig] = None

    agent_models: AgentModelConfig = Field(default_factory=AgentModelConfig)

    timeout_seconds: int = Field(default=120, ge=10, le=600)

    def get_provider_config(self, provider: LLMProvider) -> Optional[ProviderConfig]:
        """Get configuration for a specific provider."""
        provider_map = {
            LLMProvider.OPENAI: self.openai,
            LLMProvider.OPENROUTER: self.openrouter,
            LLMProvider.DEEPSEEK: self.deepseek,
            LLMProvider.NVIDIA: self.nvidia,
            LLMProvider.CLAUDE: self.claude,
            LLMProvider.GEMINI: self.gemini,
        }
        return provider_map.get(provider)

    def get_enabled_providers(self) -> List[LLMProvider]:
        """Get list of enabled providers."""
        return [
            provider for provider in LLMProvider
            if (cfg := self.get_provider_config(provider)) is not None and cfg.enabled
        ]

    def validate_agent_models(self) -> List[str]:
        """Validate that every agent role points at a configured, enabled provider."""
        errors = []
        for role in AgentRole:
            assignment = self.agent_models.for_role(role)
            provider_config = self.get_provider_config(assignment.provider)
            if not provider_config:
                errors.append(f"{role.value}: Provider {assignment.provider.value} is not configured")
            elif not provider_config.enabled:
                errors.append(f"{role.value}: Provider {assignment.provider.value} is disabled")
        return errors


# ============================================================================
# Helper Functions
# ============================================================================

def create_default_config_from_env() -> LLMConfiguration:
    """Create configuration from environment variables."""
    config = LLMConfiguration()

    if os.getenv("OPENAI_API_KEY"):
        config.openai = OpenAIConfig(api_key=SecretStr(os.getenv("OPENAI_API_KEY")))

    if os.getenv("OPENROUTER_API_KEY"):
        config.openrouter = OpenRouterConfig(api_key=SecretStr(os.getenv("OPENROUTER_API_KEY")))

    if os.getenv("DEEPSEEK_API_KEY"):
        config.deepseek = DeepSeekConfig(api_key=SecretStr(os.getenv("DEEPSEEK_API_KEY")))

    if os.getenv("NVIDIA_API_KEY"):
        config.nvidia = NvidiaConfig(api_key=SecretStr(os.getenv("NVIDIA_API_KEY")))

    if os.getenv("ANTHROPIC_API_KEY"):
        config.claude = ClaudeConfig(api_key=SecretStr(os.getenv("ANTHROPIC_API_KEY")))

    if os.getenv("GEMINI_API_KEY"):
        config.gemini = GeminiConfig(api_key=SecretStr(os.getenv("GEMINI_API_KEY")))

    provider_name = os.getenv("DRAMAFORGE_PROVIDER")
    if provider_name:
        provider = LLMProvider(provider_name.lower())
        provider_config = config.get_provider_config(provider)
        model = os.getenv("DRAMAFORGE_MODEL") or (
            provider_config.default_model if provider_config else "deepseek-chat"
        )
        config.agent_models.retarget(provider, model)
    elif os.getenv("DRAMAFORGE_MODEL"):
        config.agent_models.retarget(LLMProvider.DEEPSEEK, os.getenv("DRAMAFORGE_MODEL"))

    timeout = os.getenv("DRAMAFORGE_TIMEOUT_SECONDS")
    if timeout:
        config.timeout_seconds = int(timeout)

    return config
