"""
DramaForge Agents Module
Completion-provider clients and the agent roles built on them.
"""

from .base import (
    BaseAgent,
    ClaudeClient,
    GeminiClient,
    LLMClient,
    OpenAICompatibleClient,
    create_llm_client,
)
from .narrative_agents import (
    GENERIC_TASK_LABEL,
    AlignerAgent,
    AutoFixerAgent,
    BackgroundCheckerAgent,
    ContentExtractorAgent,
    IntentAnalyzerAgent,
    SummarizerAgent,
    WriterAgent,
    is_aligner_pass,
)
from .production_agents import (
    MOTION_GENERATION_FAILED,
    MOTION_PARSE_FAILED,
    VISUAL_GENERATION_FAILED,
    VISUAL_PARSE_FAILED,
    DirectorAgent,
    MotionAgent,
    VisualizerAgent,
)
from .suite import AgentSuite, build_agent_suite

__all__ = [
    "LLMClient",
    "OpenAICompatibleClient",
    "ClaudeClient",
    "GeminiClient",
    "BaseAgent",
    "create_llm_client",
    "GENERIC_TASK_LABEL",
    "WriterAgent",
    "AlignerAgent",
    "AutoFixerAgent",
    "SummarizerAgent",
    "IntentAnalyzerAgent",
    "ContentExtractorAgent",
    "BackgroundCheckerAgent",
    "is_aligner_pass",
    "DirectorAgent",
    "VisualizerAgent",
    "MotionAgent",
    "VISUAL_GENERATION_FAILED",
    "VISUAL_PARSE_FAILED",
    "MOTION_GENERATION_FAILED",
    "MOTION_PARSE_FAILED",
    "AgentSuite",
    "build_agent_suite",
]
