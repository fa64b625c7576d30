"""
Pydantic data models for DramaForge.

Covers the creative workflow (stages, documents, projects), the production
hierarchy (episodes, scenes, shots), the conversation record (messages,
sessions) and the canonical shapes every agent output is normalized into.
"""

import re
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return uuid.uuid4().hex


# ============================================================================
# Enums
# ============================================================================

class Stage(str, Enum):
    """Creative stages, in workflow order."""
    WORLD = "world"
    CHARACTERS = "characters"
    OUTLINE = "outline"
    PRODUCTION = "production"

    @property
    def order(self) -> int:
        return STAGE_ORDER.index(self)


STAGE_ORDER: List[Stage] = [Stage.WORLD, Stage.CHARACTERS, Stage.OUTLINE, Stage.PRODUCTION]


class AgentRole(str, Enum):
    """Named agent roles of the dispatch layer."""
    WRITER = "writer"
    ALIGNER = "aligner"
    DIRECTOR = "director"
    VISUALIZER = "visualizer"
    MOTION = "motion"
    AUTO_FIXER = "auto_fixer"
    SUMMARIZER = "summarizer"
    INTENT_ANALYZER = "intent_analyzer"
    CONTENT_EXTRACTOR = "content_extractor"
    BACKGROUND_CHECKER = "background_checker"


class DocumentType(str, Enum):
    MARKDOWN = "markdown"
    JSON = "json"


class EpisodeStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    SCRIPT_COMPLETED = "script_completed"
    STORYBOARD_COMPLETED = "storyboard_completed"

    @property
    def is_completed(self) -> bool:
        return self in (EpisodeStatus.SCRIPT_COMPLETED, EpisodeStatus.STORYBOARD_COMPLETED)


class AutoAdvancePreference(str, Enum):
    """What happens after an episode script is saved successfully."""
    DISABLED = "disabled"
    CONFIRM = "confirm"
    IMMEDIATE = "immediate"


class ErrorKind(str, Enum):
    """User-facing error taxonomy."""
    UNAUTHORIZED = "unauthorized"
    RATE_LIMITED = "rate_limited"
    TIMEOUT = "timeout"
    NETWORK_ERROR = "network_error"
    MALFORMED_OUTPUT = "malformed_output"
    VALIDATION_EXHAUSTED = "validation_exhausted"
    GENERIC = "generic"


# ============================================================================
# Workflow Models
# ============================================================================

class Project(BaseModel):
    """A narrative project owning documents and sessions."""
    id: str = Field(default_factory=new_id)
    name: str
    description: str = ""
    is_background_locked: bool = False
    current_stage: Stage = Stage.WORLD
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Document(BaseModel):
    """A text or JSON document identified by its path within a project."""
    id: str = Field(default_factory=new_id)
    project_id: str
    path: str
    content: str = ""
    type: DocumentType = DocumentType.MARKDOWN
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


# ============================================================================
# Production Models
# ============================================================================

_NUMBER_RE = re.compile(r"\d+(?:\.\d+)?")


class Shot(BaseModel):
    """A single camera shot. Visual and motion prompts are filled in later."""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    shot_type: str = Field(default="", alias="shotType")
    angle: str = ""
    movement: str = ""
    visual: str = ""
    audio: str = ""
    duration: float = 0
    is_keyframe: Optional[bool] = Field(default=None, alias="isKeyframe")
    keyframe_reason: Optional[str] = Field(default=None, alias="keyframeReason")
    visual_prompt: Optional[str] = Field(default=None, alias="visualPrompt")
    visual_prompt_start: Optional[str] = Field(default=None, alias="visualPromptStart")
    visual_prompt_end: Optional[str] = Field(default=None, alias="visualPromptEnd")
    negative_prompt: Optional[str] = Field(default=None, alias="negativePrompt")
    motion_prompt: Optional[str] = Field(default=None, alias="motionPrompt")

    @field_validator("shot_type", "angle", "movement", "visual", "audio", mode="before")
    @classmethod
    def text_or_empty(cls, v: Any) -> str:
        """Director output may leave a field null or give it a number."""
        return "" if v is None else str(v)

    @field_validator("duration", mode="before")
    @classmethod
    def seconds(cls, v: Any) -> float:
        """Accept "4", "about 4s" or "4.5 sec"; anything without a number is 0."""
        if isinstance(v, bool) or v is None:
            return 0
        if isinstance(v, (int, float)):
            return v
        match = _NUMBER_RE.search(str(v))
        return float(match.group()) if match else 0


class Scene(BaseModel):
    """A scene of an episode: location, summary and ordered shots."""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: Optional[str] = None
    location: str = ""
    summary: str = ""
    shots: List[Shot] = Field(default_factory=list)

    @field_validator("location", "summary", mode="before")
    @classmethod
    def text_or_empty(cls, v: Any) -> str:
        return "" if v is None else str(v)

    @field_validator("shots", mode="before")
    @classmethod
    def shot_list(cls, v: Any) -> List[Any]:
        return [s for s in v if isinstance(s, (dict, Shot))] if isinstance(v, list) else []


class EpisodeProgress(BaseModel):
    """Derived view of one episode; recomputed on demand, never stored."""
    episode_id: str
    path: str
    number: int
    title: str = ""
    status: EpisodeStatus = EpisodeStatus.NOT_STARTED
    script_length: int = 0
    scene_count: int = 0
    is_locked: bool = False
    can_advance: bool = False


# ============================================================================
# Conversation Models
# ============================================================================

class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class ActivityStatus(str, Enum):
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"


class ActivityLog(BaseModel):
    """Agent activity attached to a message for display."""
    agent: AgentRole
    status: ActivityStatus
    task: str
    logs: List[str] = Field(default_factory=list)
    feedback: Optional[str] = None


class AutoFixAction(BaseModel):
    """Manual one-shot repair offered once the validation loop gives up."""
    type: Literal["auto_fix"] = "auto_fix"
    target_file: str
    original_content: str
    feedback: str


class Message(BaseModel):
    """One entry of a session. Messages are append-only."""
    id: str = Field(default_factory=new_id)
    role: MessageRole
    content: str
    timestamp: datetime = Field(default_factory=utcnow)
    activity_log: Optional[ActivityLog] = None
    action: Optional[AutoFixAction] = None


class Session(BaseModel):
    """An ordered conversation owned by a project."""
    id: str = Field(default_factory=new_id)
    project_id: str
    title: str = "New Chat"
    messages: List[Message] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


# ============================================================================
# Agent Output Models
# ============================================================================

class SaveRequest(BaseModel):
    """Canonical save request, whatever field names the model used."""
    target_file: str
    content: str
    summary: Optional[str] = None


class ResponseType(str, Enum):
    CHAT = "chat"
    SAVE = "save"
    QUESTION = "question"
    CONFIRM = "confirm"


class RecoveryPath(str, Enum):
    """Which recovery strategy produced an AgentResponse."""
    STRUCTURED = "structured"
    FIELD_EXTRACTION = "field_extraction"
    RAW_TEXT = "raw_text"


class AgentResponse(BaseModel):
    """Final structured response of a Writer turn."""
    type: ResponseType = ResponseType.CHAT
    message: str = ""
    save_request: Optional[SaveRequest] = None
    stage_complete: bool = False
    suggested_next_stage: Optional[str] = None
    recovery: RecoveryPath = RecoveryPath.STRUCTURED


class IntentAnalysis(BaseModel):
    has_save_intent: bool = False
    target_file: Optional[str] = None
    reason: Optional[str] = None


class AlignerResult(BaseModel):
    passed: bool
    feedback: str = ""
    error_kind: Optional[ErrorKind] = None


class BackgroundIssue(BaseModel):
    type: Literal["world", "character", "outline", "consistency"] = "consistency"
    severity: Literal["error", "warning"] = "warning"
    description: str
    suggestion: Optional[str] = None


class BackgroundCheckResult(BaseModel):
    passed: bool
    summary: str = ""
    issues: List[BackgroundIssue] = Field(default_factory=list)


class SaveStatus(str, Enum):
    SAVED = "saved"
    UNCHANGED = "unchanged"
    EXTRACTION_FAILED = "extraction_failed"
    NO_OP_FIX = "no_op_fix"
    FIX_FAILED = "fix_failed"
    EXHAUSTED = "exhausted"
    PROVIDER_ERROR = "provider_error"
    READ_ONLY = "read_only"


class SaveOutcome(BaseModel):
    """Result of one pass through the validate-and-save loop."""
    saved: bool
    status: SaveStatus
    target_file: str
    content: str = ""
    attempts: int = 0
    logs: List[str] = Field(default_factory=list)
    feedback: str = ""
    action: Optional[AutoFixAction] = None
    error_kind: Optional[ErrorKind] = None


class AgentEvent(BaseModel):
    """Event emitted by agents for activity display and audit logging."""
    project_id: Optional[str] = None
    agent_name: str
    action: str
    input_summary: str = ""
    output_summary: str = ""
    duration_ms: int = 0
    success: bool = True
    timestamp: datetime = Field(default_factory=utcnow)
