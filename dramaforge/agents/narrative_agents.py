"""
Narrative Agent Implementations for DramaForge
The conversational and gatekeeping roles: Writer, Aligner, AutoFixer,
Summarizer, IntentAnalyzer, ContentExtractor and BackgroundChecker.
"""

import json
import re
from typing import AsyncIterator, List, Optional, Sequence

from ..config.workflow import (
    ALIGNER_CONTEXT_CHARS,
    BACKGROUND_DOC_LIMIT,
    DEFAULT_CONTEXT_CHARS,
    EXTRACTION_WINDOW,
    INTENT_WINDOW,
    MAX_TOTAL_CHARS,
    RESERVED_FOR_OUTPUT,
)
from ..core.context import (
    ProjectContext,
    assemble_context,
    build_history_window,
    estimate_tokens,
    truncate_content,
)
from ..core.errors import ProviderError
from ..core.log import get_logger
from ..core.recovery import parse_agent_response, parse_json_value
from ..core.schema_validator import BACKGROUND_CHECK_SHAPE, INTENT_SHAPE, validate
from ..core.state_machine import stage_label_for_file
from ..models import (
    AgentResponse,
    AgentRole,
    AlignerResult,
    BackgroundCheckResult,
    BackgroundIssue,
    IntentAnalysis,
    Message,
    MessageRole,
    Stage,
)
from ..prompts import (
    ALIGNER_SYSTEM_PROMPT,
    AUTO_FIXER_SYSTEM_PROMPT,
    BACKGROUND_CHECKER_SYSTEM_PROMPT,
    CONTENT_EXTRACTOR_SYSTEM_PROMPT,
    FIXED_CONTENT_CLOSE,
    FIXED_CONTENT_OPEN,
    INTENT_ANALYZER_SYSTEM_PROMPT,
    PASS_MARKER,
    SUMMARIZER_SYSTEM_PROMPT,
    WRITER_SYSTEM_PROMPT,
)
from .base import BaseAgent, ChatMessages, EventCallback, LLMClient

logger = get_logger(__name__)

GENERIC_TASK_LABEL = "Content generation complete"

FIXED_CONTENT_RE = re.compile(
    re.escape(FIXED_CONTENT_OPEN) + r"([\s\S]*?)" + re.escape(FIXED_CONTENT_CLOSE)
)
_OUTER_FENCE_RE = re.compile(r"^```[\w-]*\n([\s\S]*?)\n?```$")


def _conversation(messages: Sequence[Message]) -> List[Message]:
    return [m for m in messages if m.role in (MessageRole.USER, MessageRole.ASSISTANT) and m.activity_log is None]


def _strip_outer_fence(text: str) -> str:
    stripped = text.strip()
    match = _OUTER_FENCE_RE.match(stripped)
    return match.group(1).strip() if match else stripped


class WriterAgent(BaseAgent):
    """
    Writer Agent - conversational drafting.
    Streams a JSON-mode reply; the workflow renders it live and parses it once complete.
    """

    role = AgentRole.WRITER

    def __init__(
        self,
        llm_client: LLMClient,
        temperature: float = 0.7,
        event_callback: Optional[EventCallback] = None,
        context_chars: int = DEFAULT_CONTEXT_CHARS,
        max_total_chars: int = MAX_TOTAL_CHARS,
        reserved_for_output: int = RESERVED_FOR_OUTPUT,
    ):
        super().__init__(llm_client, WRITER_SYSTEM_PROMPT, temperature, event_callback)
        self.context_chars = context_chars
        self.max_total_chars = max_total_chars
        self.reserved_for_output = reserved_for_output

    def build_system_prompt(self, ctx: ProjectContext, stage_context: str = "") -> str:
        sections = [self.system_prompt]
        context = assemble_context(ctx, self.context_chars)
        if context:
            sections.append(f"## Project Context\n\n{context}")
        if stage_context:
            sections.append(stage_context)
        sections.append(
            f"[Current file] {ctx.current_file_name or 'none'} "
            f"[Stage] {stage_label_for_file(ctx.current_file_name)}"
        )
        return "\n\n".join(sections)

    def build_messages(
        self,
        history: Sequence[Message],
        user_input: str,
        ctx: ProjectContext,
        stage_context: str = "",
    ) -> ChatMessages:
        system_prompt = self.build_system_prompt(ctx, stage_context)
        window = build_history_window(
            history,
            system_prompt,
            user_input,
            max_total_chars=self.max_total_chars,
            reserved_for_output=self.reserved_for_output,
        )
        messages = [
            {"role": "system", "content": system_prompt},
            *window,
            {"role": "user", "content": user_input},
        ]
        prompt_tokens = estimate_tokens("".join(m["content"] for m in messages))
        logger.info(f"[writer.build_messages] {len(window)}/{len(history)} history messages, ~{prompt_tokens} tokens")
        return messages

    async def stream_reply(
        self,
        history: Sequence[Message],
        user_input: str,
        ctx: ProjectContext,
        stage_context: str = "",
    ) -> AsyncIterator[str]:
        messages = self.build_messages(history, user_input, ctx, stage_context)
        async for chunk in self._stream(messages, json_mode=True, action="chat"):
            yield chunk

    async def reply(
        self,
        history: Sequence[Message],
        user_input: str,
        ctx: ProjectContext,
        stage_context: str = "",
    ) -> AgentResponse:
        """Non-streaming convenience: collect the stream and parse it."""
        chunks = [chunk async for chunk in self.stream_reply(history, user_input, ctx, stage_context)]
        return parse_agent_response("".join(chunks))


def is_aligner_pass(report: str) -> bool:
    """The canonical PASS line wins; otherwise PASS must appear without FAIL."""
    upper = (report or "").upper()
    if PASS_MARKER in upper:
        return True
    return "PASS" in upper and "FAIL" not in upper


class AlignerAgent(BaseAgent):
    """
    Aligner Agent - consistency gate.
    Reports PASS/FAIL as text; the verdict is read with a substring check.
    """

    role = AgentRole.ALIGNER

    def __init__(
        self,
        llm_client: LLMClient,
        temperature: float = 0.2,
        event_callback: Optional[EventCallback] = None,
        context_chars: int = ALIGNER_CONTEXT_CHARS,
    ):
        super().__init__(llm_client, ALIGNER_SYSTEM_PROMPT, temperature, event_callback)
        self.context_chars = context_chars

    def build_prompt(self, content: str, target_file: str, ctx: ProjectContext, previous_episodes: str = "") -> str:
        # the candidate replaces the stored version of target_file, so keep the old one out
        reference = ProjectContext(
            world=ctx.world,
            characters=ctx.characters,
            outline=ctx.outline,
            current_file_name=target_file,
        )
        parts = [f"[Checking file: {target_file}]", content]
        if previous_episodes:
            parts.append(f"[Previous episodes]\n{truncate_content(previous_episodes, self.context_chars)}")
        context = assemble_context(reference, self.context_chars)
        if context:
            parts.append(f"[Reference documents]\n{context}")
        return "\n\n".join(parts)

    async def check(
        self,
        content: str,
        target_file: str,
        ctx: ProjectContext,
        previous_episodes: str = "",
    ) -> AlignerResult:
        prompt = self.build_prompt(content, target_file, ctx, previous_episodes)
        try:
            report = await self._complete(self._messages(prompt), action="check")
        except ProviderError as e:
            return AlignerResult(passed=False, feedback=e.user_message, error_kind=e.kind)

        passed = is_aligner_pass(report)
        logger.info(f"[aligner.check] {target_file}: {'PASS' if passed else 'FAIL'}")
        return AlignerResult(passed=passed, feedback=report.strip())


class AutoFixerAgent(BaseAgent):
    """
    AutoFixer Agent - repair phase.
    Revises rejected content; the result is read from <fixed_content> tags.
    """

    role = AgentRole.AUTO_FIXER

    def __init__(
        self,
        llm_client: LLMClient,
        temperature: float = 0.4,
        event_callback: Optional[EventCallback] = None,
        context_chars: int = DEFAULT_CONTEXT_CHARS,
    ):
        super().__init__(llm_client, AUTO_FIXER_SYSTEM_PROMPT, temperature, event_callback)
        self.context_chars = context_chars

    async def fix(self, content: str, feedback: str, target_file: str, ctx: ProjectContext) -> str:
        """Return the revised content. Raises ProviderError if the call fails."""
        reference = ProjectContext(
            world=ctx.world,
            characters=ctx.characters,
            outline=ctx.outline,
            current_file_name=target_file,
        )
        prompt = "\n\n".join([
            f"[File] {target_file}",
            f"[Original content]\n{content}",
            f"[Consistency feedback]\n{feedback}",
            f"[Reference documents]\n{assemble_context(reference, self.context_chars)}",
        ])
        raw = await self._complete(self._messages(prompt), action="fix")

        match = FIXED_CONTENT_RE.search(raw)
        if match:
            return match.group(1).strip()
        logger.warning(f"[auto_fixer.fix] no {FIXED_CONTENT_OPEN} block in output for {target_file}; using raw text")
        return raw.strip()


class SummarizerAgent(BaseAgent):
    """Summarizer Agent - short task label for a finished turn. Never fails."""

    role = AgentRole.SUMMARIZER

    def __init__(self, llm_client: LLMClient, temperature: float = 0.3, event_callback: Optional[EventCallback] = None):
        super().__init__(llm_client, SUMMARIZER_SYSTEM_PROMPT, temperature, event_callback)

    async def summarize(self, messages: Sequence[Message]) -> str:
        recent = _conversation(messages)[-6:]
        if not recent:
            return GENERIC_TASK_LABEL
        transcript = "\n".join(f"{m.role.value}: {m.content[:1000]}" for m in recent)
        try:
            label = await self._complete(self._messages(transcript), action="summarize")
        except ProviderError as e:
            logger.warning(f"[summarizer.summarize] falling back to generic label: {e}")
            return GENERIC_TASK_LABEL
        label = label.strip().strip('"').strip()
        return label or GENERIC_TASK_LABEL


class IntentAnalyzerAgent(BaseAgent):
    """IntentAnalyzer Agent - does the user want something saved, and where."""

    role = AgentRole.INTENT_ANALYZER

    def __init__(
        self,
        llm_client: LLMClient,
        temperature: float = 0.1,
        event_callback: Optional[EventCallback] = None,
        window: int = INTENT_WINDOW,
    ):
        super().__init__(llm_client, INTENT_ANALYZER_SYSTEM_PROMPT, temperature, event_callback)
        self.window = window

    @staticmethod
    def render(message: Message) -> str:
        log = message.activity_log
        if message.role == MessageRole.SYSTEM and log is not None:
            return f"System Log: [{log.status.value}] {log.task} (Logs: {'; '.join(log.logs)})"
        return f"{message.role.value}: {message.content}"

    async def analyze(
        self,
        messages: Sequence[Message],
        current_stage: Stage,
        current_file: Optional[str] = None,
    ) -> IntentAnalysis:
        recent = list(messages)[-self.window:]
        prompt = "\n\n".join([
            f"[Current stage] {current_stage.value}",
            f"[Open file] {current_file or 'none'}",
            "[Recent conversation]",
            "\n".join(self.render(m) for m in recent),
        ])
        try:
            raw = await self._complete(self._messages(prompt), json_mode=True, action="analyze")
            data = parse_json_value(raw)
        except (ProviderError, json.JSONDecodeError) as e:
            logger.warning(f"[intent_analyzer.analyze] treating as no save intent: {e}")
            return IntentAnalysis(has_save_intent=False)

        result = validate(data, INTENT_SHAPE)
        if not result.valid:
            logger.warning(f"[intent_analyzer.analyze] unexpected shape: {result.errors}")
            return IntentAnalysis(has_save_intent=False)

        return IntentAnalysis(
            has_save_intent=data["hasSaveIntent"],
            target_file=data.get("targetFile") or None,
            reason=data.get("reason"),
        )


class ContentExtractorAgent(BaseAgent):
    """ContentExtractor Agent - the document body the conversation converged on."""

    role = AgentRole.CONTENT_EXTRACTOR

    def __init__(
        self,
        llm_client: LLMClient,
        temperature: float = 0.2,
        event_callback: Optional[EventCallback] = None,
        window: int = EXTRACTION_WINDOW,
    ):
        super().__init__(llm_client, CONTENT_EXTRACTOR_SYSTEM_PROMPT, temperature, event_callback)
        self.window = window

    async def extract(self, messages: Sequence[Message], target_file: str) -> str:
        recent = _conversation(messages)[-self.window:]
        transcript = "\n\n".join(f"{m.role.value}: {m.content}" for m in recent)
        prompt = f"[Target file] {target_file}\n\n[Conversation]\n{transcript}"
        try:
            raw = await self._complete(self._messages(prompt), action="extract")
        except ProviderError as e:
            logger.warning(f"[content_extractor.extract] extraction failed: {e}")
            return ""
        return _strip_outer_fence(raw)


class BackgroundCheckerAgent(BaseAgent):
    """
    BackgroundChecker Agent - unified check of world, characters and outline.
    Any failure yields pass=False with no issues rather than an exception.
    """

    role = AgentRole.BACKGROUND_CHECKER

    def __init__(
        self,
        llm_client: LLMClient,
        temperature: float = 0.2,
        event_callback: Optional[EventCallback] = None,
        doc_limit: int = BACKGROUND_DOC_LIMIT,
    ):
        super().__init__(llm_client, BACKGROUND_CHECKER_SYSTEM_PROMPT, temperature, event_callback)
        self.doc_limit = doc_limit

    @staticmethod
    def _issue(raw: dict) -> BackgroundIssue:
        issue_type = raw.get("type")
        severity = raw.get("severity")
        return BackgroundIssue(
            type=issue_type if issue_type in ("world", "character", "outline", "consistency") else "consistency",
            severity=severity if severity in ("error", "warning") else "warning",
            description=raw.get("description", ""),
            suggestion=raw.get("suggestion"),
        )

    async def check(self, world: str, characters: str, outline: str) -> BackgroundCheckResult:
        prompt = "\n\n".join([
            f"=== WORLD (world.md) ===\n{(world or '')[:self.doc_limit]}",
            f"=== CHARACTERS (characters.md) ===\n{(characters or '')[:self.doc_limit]}",
            f"=== OUTLINE (outline.md) ===\n{(outline or '')[:self.doc_limit]}",
        ])
        try:
            raw = await self._complete(self._messages(prompt), json_mode=True, action="check_background")
            data = parse_json_value(raw)
        except (ProviderError, json.JSONDecodeError) as e:
            logger.error(f"[background_checker.check] {e}")
            return BackgroundCheckResult(passed=False, summary=f"Background check failed due to a system error: {e}")

        result = validate(data, BACKGROUND_CHECK_SHAPE)
        if not result.valid:
            logger.error(f"[background_checker.check] unexpected shape: {result.errors}")
            return BackgroundCheckResult(
                passed=False,
                summary="Background check failed due to a system error: unexpected response shape",
            )

        return BackgroundCheckResult(
            passed=data["pass"],
            summary=data["summary"],
            issues=[self._issue(issue) for issue in data["issues"]],
        )
