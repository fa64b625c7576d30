"""
Workflow Settings - budgets, thresholds and retry bounds for the stage engine.

All numeric knobs of the validate-and-save loop, the context assembler and
the episode tracker live here as named constants, with a pydantic
WorkflowSettings model that can be overridden from DRAMAFORGE_* variables.
"""

import os
from typing import Any, Dict

from pydantic import BaseModel, Field

from ..models.schemas import AutoAdvancePreference


# ============================================================================
# Context Budget
# ============================================================================

MAX_TOTAL_CHARS = 30000
RESERVED_FOR_OUTPUT = 8000
DEFAULT_CONTEXT_CHARS = 20000
ALIGNER_CONTEXT_CHARS = 10000

CURRENT_FILE_RATIO = 0.4
OUTLINE_RATIO = 0.2
CHARACTERS_RATIO = 0.2
WORLD_RATIO = 0.2

TRUNCATION_HEAD_RATIO = 0.2
TRUNCATION_TAIL_RATIO = 0.8
TRUNCATION_MARKER = "\n\n... [Content Truncated] ...\n\n"


# ============================================================================
# Validate-and-Save Loop
# ============================================================================

# One bound for every call site, including the chat-driven save path
MAX_FIX_ATTEMPTS = 5
MIN_EXTRACTED_LENGTH = 10


# ============================================================================
# Episodes and Stages
# ============================================================================

EPISODE_IN_PROGRESS_THRESHOLD = 20
EPISODE_MIN_SCRIPT_LENGTH = 200
STAGE_UNLOCK_MIN_LENGTH = 50

BACKGROUND_DOC_LIMIT = 10000
INTENT_WINDOW = 4
EXTRACTION_WINDOW = 20
SESSION_TITLE_LENGTH = 20


class WorkflowSettings(BaseModel):
    """Runtime settings for the stage engine."""

    max_fix_attempts: int = Field(default=MAX_FIX_ATTEMPTS, ge=1, le=20)
    min_extracted_length: int = Field(default=MIN_EXTRACTED_LENGTH, ge=0)

    max_total_chars: int = Field(default=MAX_TOTAL_CHARS, gt=0)
    reserved_for_output: int = Field(default=RESERVED_FOR_OUTPUT, ge=0)
    default_context_chars: int = Field(default=DEFAULT_CONTEXT_CHARS, gt=0)
    aligner_context_chars: int = Field(default=ALIGNER_CONTEXT_CHARS, gt=0)

    episode_in_progress_threshold: int = Field(default=EPISODE_IN_PROGRESS_THRESHOLD, ge=0)
    episode_min_script_length: int = Field(default=EPISODE_MIN_SCRIPT_LENGTH, ge=0)

    background_doc_limit: int = Field(default=BACKGROUND_DOC_LIMIT, gt=0)
    intent_window: int = Field(default=INTENT_WINDOW, gt=0)
    extraction_window: int = Field(default=EXTRACTION_WINDOW, gt=0)

    auto_advance: AutoAdvancePreference = AutoAdvancePreference.DISABLED
    data_dir: str = "./dramaforge-data"


_ENV_FIELDS = {
    "DRAMAFORGE_MAX_FIX_ATTEMPTS": "max_fix_attempts",
    "DRAMAFORGE_MAX_TOTAL_CHARS": "max_total_chars",
    "DRAMAFORGE_CONTEXT_CHARS": "default_context_chars",
    "DRAMAFORGE_ALIGNER_CONTEXT_CHARS": "aligner_context_chars",
    "DRAMAFORGE_AUTO_ADVANCE": "auto_advance",
    "DRAMAFORGE_DATA_DIR": "data_dir",
}


def create_workflow_settings_from_env() -> WorkflowSettings:
    """Create workflow settings, applying any DRAMAFORGE_* overrides."""
    overrides: Dict[str, Any] = {}
    for env_name, field_name in _ENV_FIELDS.items():
        value = os.getenv(env_name)
        if value:
            overrides[field_name] = value
    return WorkflowSettings.model_validate(overrides)
