"""
Pytest configuration and fixtures for DramaForge tests.

This module provides:
- Network blocking fixture to prevent accidental API calls in CI
- A scripted fake LLM client and an agent suite wired to it
- In-memory stores and a ready ProjectWorkflow
"""

import socket
from typing import Dict, List, Optional, Union
from unittest.mock import patch

import pytest

from dramaforge.agents import (
    AgentSuite,
    AlignerAgent,
    AutoFixerAgent,
    BackgroundCheckerAgent,
    ContentExtractorAgent,
    DirectorAgent,
    IntentAnalyzerAgent,
    LLMClient,
    MotionAgent,
    SummarizerAgent,
    VisualizerAgent,
    WriterAgent,
)
from dramaforge.config import WorkflowSettings
from dramaforge.core.workflow import ProjectWorkflow
from dramaforge.models import AgentRole
from dramaforge.services import InMemoryDocumentStore, InMemoryProjectStore, InMemorySessionStore


class NetworkBlockedError(Exception):
    """Raised when a test attempts to make a network connection."""
    pass


def _block_socket_connect(*args, **kwargs):
    """Block all socket connections to prevent accidental API calls."""
    raise NetworkBlockedError(
        "Network access is blocked in unit tests. "
        "If you need to test network functionality, use mocks."
    )


@pytest.fixture(autouse=True)
def block_network():
    """
    Automatically block all network connections in tests.

    Every provider call in the suite goes through FakeLLMClient; a real
    connection attempt means a test wired something up wrong.
    """
    with patch.object(socket.socket, 'connect', _block_socket_connect):
        with patch.object(socket, 'create_connection', _block_socket_connect):
            yield


# ============================================================================
# Fake LLM
# ============================================================================

Scripted = Union[str, BaseException]


class FakeLLMClient(LLMClient):
    """
    LLM client that replays scripted replies in order.

    `responses` feed complete(); `streams` feed stream(), each entry being a
    list of chunks or an exception to raise before the first chunk.
    """

    def __init__(self, responses: Optional[List[Scripted]] = None, streams: Optional[List] = None):
        self.responses: List[Scripted] = list(responses or [])
        self.streams: List = list(streams or [])
        self.calls: List[Dict] = []

    def queue(self, *responses: Scripted) -> "FakeLLMClient":
        self.responses.extend(responses)
        return self

    def queue_stream(self, *streams) -> "FakeLLMClient":
        self.streams.extend(streams)
        return self

    async def complete(self, messages, json_mode=False, temperature=0.7, max_tokens=None) -> str:
        self.calls.append({"messages": messages, "json_mode": json_mode})
        if not self.responses:
            raise AssertionError("FakeLLMClient has no scripted response left")
        item = self.responses.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item

    async def stream(self, messages, json_mode=False, temperature=0.7, max_tokens=None):
        self.calls.append({"messages": messages, "json_mode": json_mode, "stream": True})
        if not self.streams:
            raise AssertionError("FakeLLMClient has no scripted stream left")
        item = self.streams.pop(0)
        if isinstance(item, BaseException):
            raise item
        for chunk in item:
            yield chunk


@pytest.fixture
def fake_llm():
    return FakeLLMClient()


@pytest.fixture
def clients() -> Dict[AgentRole, FakeLLMClient]:
    """One fake client per agent role, so tests script each role separately."""
    return {role: FakeLLMClient() for role in AgentRole}


@pytest.fixture
def suite(clients) -> AgentSuite:
    return AgentSuite(
        writer=WriterAgent(clients[AgentRole.WRITER]),
        aligner=AlignerAgent(clients[AgentRole.ALIGNER]),
        auto_fixer=AutoFixerAgent(clients[AgentRole.AUTO_FIXER]),
        summarizer=SummarizerAgent(clients[AgentRole.SUMMARIZER]),
        intent_analyzer=IntentAnalyzerAgent(clients[AgentRole.INTENT_ANALYZER]),
        content_extractor=ContentExtractorAgent(clients[AgentRole.CONTENT_EXTRACTOR]),
        background_checker=BackgroundCheckerAgent(clients[AgentRole.BACKGROUND_CHECKER]),
        director=DirectorAgent(clients[AgentRole.DIRECTOR]),
        visualizer=VisualizerAgent(clients[AgentRole.VISUALIZER]),
        motion=MotionAgent(clients[AgentRole.MOTION]),
    )


# ============================================================================
# Stores and Workflow
# ============================================================================

@pytest.fixture
def documents():
    return InMemoryDocumentStore()


@pytest.fixture
def projects():
    return InMemoryProjectStore()


@pytest.fixture
def sessions():
    return InMemorySessionStore()


@pytest.fixture
def settings():
    return WorkflowSettings()


@pytest.fixture
def workflow(suite, documents, projects, sessions, settings) -> ProjectWorkflow:
    return ProjectWorkflow(suite, documents, projects, sessions, settings)
