"""
Agent suite - one instance of every role, wired to its configured model.
"""

from dataclasses import dataclass
from typing import Optional

from ..config import LLMConfiguration, WorkflowSettings
from ..models import AgentRole
from .base import EventCallback, create_llm_client
from .narrative_agents import (
    AlignerAgent,
    AutoFixerAgent,
    BackgroundCheckerAgent,
    ContentExtractorAgent,
    IntentAnalyzerAgent,
    SummarizerAgent,
    WriterAgent,
)
from .production_agents import DirectorAgent, MotionAgent, VisualizerAgent


@dataclass
class AgentSuite:
    writer: WriterAgent
    aligner: AlignerAgent
    auto_fixer: AutoFixerAgent
    summarizer: SummarizerAgent
    intent_analyzer: IntentAnalyzerAgent
    content_extractor: ContentExtractorAgent
    background_checker: BackgroundCheckerAgent
    director: DirectorAgent
    visualizer: VisualizerAgent
    motion: MotionAgent


def build_agent_suite(
    config: LLMConfiguration,
    settings: Optional[WorkflowSettings] = None,
    event_callback: Optional[EventCallback] = None,
) -> AgentSuite:
    """
    Create every agent from the configuration.

    Raises MissingCredentialsError when a role points at a provider with no key.
    """
    settings = settings or WorkflowSettings()

    def client_and_temp(role: AgentRole):
        assignment = config.agent_models.for_role(role)
        return create_llm_client(assignment.provider, config, assignment.model), assignment.temperature

    def make(role: AgentRole, cls, **kwargs):
        client, temperature = client_and_temp(role)
        return cls(client, temperature=temperature, event_callback=event_callback, **kwargs)

    return AgentSuite(
        writer=make(
            AgentRole.WRITER,
            WriterAgent,
            context_chars=settings.default_context_chars,
            max_total_chars=settings.max_total_chars,
            reserved_for_output=settings.reserved_for_output,
        ),
        aligner=make(AgentRole.ALIGNER, AlignerAgent, context_chars=settings.aligner_context_chars),
        auto_fixer=make(AgentRole.AUTO_FIXER, AutoFixerAgent, context_chars=settings.default_context_chars),
        summarizer=make(AgentRole.SUMMARIZER, SummarizerAgent),
        intent_analyzer=make(AgentRole.INTENT_ANALYZER, IntentAnalyzerAgent, window=settings.intent_window),
        content_extractor=make(AgentRole.CONTENT_EXTRACTOR, ContentExtractorAgent, window=settings.extraction_window),
        background_checker=make(
            AgentRole.BACKGROUND_CHECKER,
            BackgroundCheckerAgent,
            doc_limit=settings.background_doc_limit,
        ),
        director=make(AgentRole.DIRECTOR, DirectorAgent),
        visualizer=make(AgentRole.VISUALIZER, VisualizerAgent),
        motion=make(AgentRole.MOTION, MotionAgent),
    )
