"""
DramaForge Data Models Module
Pydantic schemas for the stage engine.
"""

from .schemas import (
    STAGE_ORDER,
    ActivityLog,
    ActivityStatus,
    AgentEvent,
    AgentResponse,
    AgentRole,
    AlignerResult,
    AutoAdvancePreference,
    AutoFixAction,
    BackgroundCheckResult,
    BackgroundIssue,
    Document,
    DocumentType,
    EpisodeProgress,
    EpisodeStatus,
    ErrorKind,
    IntentAnalysis,
    Message,
    MessageRole,
    Project,
    RecoveryPath,
    ResponseType,
    SaveOutcome,
    SaveRequest,
    SaveStatus,
    Scene,
    Session,
    Shot,
    Stage,
    new_id,
    utcnow,
)

__all__ = [
    "STAGE_ORDER",
    "ActivityLog",
    "ActivityStatus",
    "AgentEvent",
    "AgentResponse",
    "AgentRole",
    "AlignerResult",
    "AutoAdvancePreference",
    "AutoFixAction",
    "BackgroundCheckResult",
    "BackgroundIssue",
    "Document",
    "DocumentType",
    "EpisodeProgress",
    "EpisodeStatus",
    "ErrorKind",
    "IntentAnalysis",
    "Message",
    "MessageRole",
    "Project",
    "RecoveryPath",
    "ResponseType",
    "SaveOutcome",
    "SaveRequest",
    "SaveStatus",
    "Scene",
    "Session",
    "Shot",
    "Stage",
    "new_id",
    "utcnow",
]
