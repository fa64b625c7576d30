"""
Context Assembly for DramaForge

Builds the bounded context string every agent prompt carries, and the
history window sent with conversational requests.

Key concepts:
- ContextBudget: character allowance split across the planning documents
- ProjectContext: world/characters/outline plus the currently open file
- truncate_content: head+tail truncation around an elision marker
- build_history_window: newest-first message packing under a char budget
"""

import math
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from ..config.workflow import (
    CHARACTERS_RATIO,
    CURRENT_FILE_RATIO,
    DEFAULT_CONTEXT_CHARS,
    MAX_TOTAL_CHARS,
    OUTLINE_RATIO,
    RESERVED_FOR_OUTPUT,
    TRUNCATION_HEAD_RATIO,
    TRUNCATION_MARKER,
    TRUNCATION_TAIL_RATIO,
    WORLD_RATIO,
)
from ..models.schemas import ActivityStatus, Message, MessageRole

WORLD_FILE = "world.md"
CHARACTERS_FILE = "characters.md"
OUTLINE_FILE = "outline.md"


@dataclass
class ProjectContext:
    """The long-lived planning documents plus whatever the user has open."""
    world: str = ""
    characters: str = ""
    outline: str = ""
    current_file_name: Optional[str] = None
    current_file_content: Optional[str] = None


@dataclass
class ContextBudget:
    """Share of max_chars given to each section, in priority order."""
    current_file_ratio: float = CURRENT_FILE_RATIO
    outline_ratio: float = OUTLINE_RATIO
    characters_ratio: float = CHARACTERS_RATIO
    world_ratio: float = WORLD_RATIO


def estimate_tokens(text: str) -> int:
    """Rough token estimate used for logging; about two characters per token."""
    return math.ceil(len(text or "") / 2)


def truncate_content(content: str, max_chars: int) -> str:
    """
    Fit content into max_chars, keeping its beginning and its end.

    The marker is paid for out of the allowance, and the rest is split 20/80
    between head and tail, so the result never exceeds max_chars.
    """
    if not content:
        return ""
    if max_chars <= 0:
        return ""
    if len(content) <= max_chars:
        return content

    room = max_chars - len(TRUNCATION_MARKER)
    if room <= 0:
        return content[len(content) - max_chars:]

    head = int(room * TRUNCATION_HEAD_RATIO)
    tail = int(room * TRUNCATION_TAIL_RATIO)
    tail_part = content[len(content) - tail:] if tail > 0 else ""
    return content[:head] + TRUNCATION_MARKER + tail_part


class ContextAssembler:
    """
    Produces one context string from a ProjectContext under a char budget.

    Sections are added in priority order: the open file, then outline,
    characters and world. Each gets a fixed share of max_chars; an
    underused share is not handed on to later sections.
    """

    def __init__(self, budget: Optional[ContextBudget] = None):
        self.budget = budget or ContextBudget()

    def _is_open_file(self, ctx: ProjectContext, path: str, content: str) -> bool:
        if ctx.current_file_name and ctx.current_file_name == path:
            return True
        return bool(ctx.current_file_content) and content == ctx.current_file_content

    def assemble(self, ctx: ProjectContext, max_chars: int = DEFAULT_CONTEXT_CHARS) -> str:
        sections: List[str] = []
        remaining = max_chars

        if ctx.current_file_name and ctx.current_file_content:
            allotted = int(max_chars * self.budget.current_file_ratio)
            body = truncate_content(ctx.current_file_content, allotted)
            if body:
                sections.append(f"=== CURRENT FILE: {ctx.current_file_name} ===\n{body}")
                remaining -= len(body)

        planned = [
            (OUTLINE_FILE, "OUTLINE", ctx.outline, self.budget.outline_ratio),
            (CHARACTERS_FILE, "CHARACTERS", ctx.characters, self.budget.characters_ratio),
            (WORLD_FILE, "WORLD", ctx.world, self.budget.world_ratio),
        ]
        for path, title, content, ratio in planned:
            if not content or remaining <= 0:
                continue
            if self._is_open_file(ctx, path, content):
                continue
            allotted = min(int(max_chars * ratio), remaining)
            body = truncate_content(content, allotted)
            if body:
                sections.append(f"=== {title} ===\n{body}")
                remaining -= len(body)

        return "\n\n".join(sections)


def assemble_context(ctx: ProjectContext, max_chars: int = DEFAULT_CONTEXT_CHARS) -> str:
    """Assemble with the default budget split."""
    return ContextAssembler().assemble(ctx, max_chars)


# ============================================================================
# History Window
# ============================================================================

def render_activity_message(message: Message) -> str:
    """Render an activity-log message as a line the model can read as a prior turn."""
    log = message.activity_log
    mark = "OK" if log.status == ActivityStatus.SUCCESS else "FAILED"
    line = f"[System notice] {mark}: {log.task}"
    if log.feedback:
        line += f"\nDetails: {log.feedback}"
    return line


def build_history_window(
    history: Sequence[Message],
    system_prompt: str,
    user_input: str,
    max_total_chars: int = MAX_TOTAL_CHARS,
    reserved_for_output: int = RESERVED_FOR_OUTPUT,
) -> List[Dict[str, str]]:
    """
    Select the most recent messages that fit the remaining character budget.

    Walks newest to oldest and stops at the first message that would not
    fit; the included suffix is returned in chronological order.
    """
    available = max_total_chars - reserved_for_output - len(system_prompt) - len(user_input)
    selected: List[Dict[str, str]] = []
    used = 0

    for message in reversed(history):
        if message.activity_log is not None:
            entry = {"role": MessageRole.ASSISTANT.value, "content": render_activity_message(message)}
        else:
            entry = {"role": message.role.value, "content": message.content}

        size = len(entry["content"])
        if used + size > available:
            break
        selected.append(entry)
        used += size

    selected.reverse()
    return selected
