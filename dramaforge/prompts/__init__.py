"""
DramaForge Prompts Module
System prompts for every agent role.
"""

from .aligner import ALIGNER_SYSTEM_PROMPT, FAIL_MARKER, PASS_MARKER
from .analysis import (
    CONTENT_EXTRACTOR_SYSTEM_PROMPT,
    INTENT_ANALYZER_SYSTEM_PROMPT,
    SUMMARIZER_SYSTEM_PROMPT,
)
from .auto_fixer import AUTO_FIXER_SYSTEM_PROMPT, FIXED_CONTENT_CLOSE, FIXED_CONTENT_OPEN
from .background import BACKGROUND_CHECKER_SYSTEM_PROMPT
from .director import DIRECTOR_SYSTEM_PROMPT
from .visual import MOTION_SYSTEM_PROMPT, VISUALIZER_SYSTEM_PROMPT
from .writer import WRITER_SYSTEM_PROMPT

__all__ = [
    "ALIGNER_SYSTEM_PROMPT",
    "PASS_MARKER",
    "FAIL_MARKER",
    "AUTO_FIXER_SYSTEM_PROMPT",
    "FIXED_CONTENT_OPEN",
    "FIXED_CONTENT_CLOSE",
    "BACKGROUND_CHECKER_SYSTEM_PROMPT",
    "CONTENT_EXTRACTOR_SYSTEM_PROMPT",
    "DIRECTOR_SYSTEM_PROMPT",
    "INTENT_ANALYZER_SYSTEM_PROMPT",
    "MOTION_SYSTEM_PROMPT",
    "SUMMARIZER_SYSTEM_PROMPT",
    "VISUALIZER_SYSTEM_PROMPT",
    "WRITER_SYSTEM_PROMPT",
]
