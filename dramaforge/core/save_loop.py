"""
Validate-and-Save Loop

Every save goes Extract -> Diff -> Validate -> (PassSave | FailFix) -> ...
with at most max_attempts Aligner calls and max_attempts - 1 AutoFixer
calls. The document store is written exactly once, and only on a pass;
every other path returns an outcome without side effects.
"""

from typing import Optional, Sequence

from ..config.workflow import MAX_FIX_ATTEMPTS, MIN_EXTRACTED_LENGTH
from ..models.schemas import AutoFixAction, ErrorKind, Message, SaveOutcome, SaveStatus
from ..services.document_store import DocumentStore
from .context import ProjectContext
from .errors import ProviderError
from .log import get_logger

logger = get_logger(__name__)

DEFAULT_FIX_FEEDBACK = "Fix consistency issues with the world, characters and outline."


def _first_line(text: str, limit: int = 160) -> str:
    line = (text or "").strip().splitlines()[0] if (text or "").strip() else ""
    return line[:limit]


class ValidateAndSaveLoop:
    """Bounded Aligner/AutoFixer loop in front of the document store."""

    def __init__(
        self,
        aligner,
        auto_fixer,
        documents: DocumentStore,
        content_extractor=None,
        max_attempts: int = MAX_FIX_ATTEMPTS,
        min_extracted_length: int = MIN_EXTRACTED_LENGTH,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.aligner = aligner
        self.auto_fixer = auto_fixer
        self.documents = documents
        self.content_extractor = content_extractor
        self.max_attempts = max_attempts
        self.min_extracted_length = min_extracted_length

    async def save_from_conversation(
        self,
        project_id: str,
        messages: Sequence[Message],
        target_file: str,
        ctx: ProjectContext,
        previous_episodes: str = "",
    ) -> SaveOutcome:
        """Extract the agreed document body from the conversation, then run the loop."""
        if self.content_extractor is None:
            raise ValueError("save_from_conversation needs a content extractor")

        candidate = await self.content_extractor.extract(messages, target_file)
        if len(candidate.strip()) < self.min_extracted_length:
            logger.warning(f"[save_loop] extracted content for {target_file} is too short ({len(candidate.strip())} chars)")
            return SaveOutcome(
                saved=False,
                status=SaveStatus.EXTRACTION_FAILED,
                target_file=target_file,
                content=candidate,
                logs=["Could not extract a complete document from the conversation"],
            )
        return await self.run(project_id, target_file, candidate, ctx, previous_episodes)

    async def run(
        self,
        project_id: str,
        target_file: str,
        candidate: str,
        ctx: ProjectContext,
        previous_episodes: str = "",
    ) -> SaveOutcome:
        existing = await self.documents.get(project_id, target_file)
        if existing is not None and existing.content.strip() == candidate.strip():
            logger.info(f"[save_loop] {target_file} unchanged; skipping validation")
            return SaveOutcome(
                saved=False,
                status=SaveStatus.UNCHANGED,
                target_file=target_file,
                content=candidate,
                logs=["Content is identical to the saved version"],
            )

        logs = []
        feedback = ""
        attempts = 0

        while attempts < self.max_attempts:
            attempts += 1
            logs.append(f"Attempt {attempts}/{self.max_attempts}: consistency check of {target_file}")
            result = await self.aligner.check(candidate, target_file, ctx, previous_episodes)
            feedback = result.feedback

            if result.error_kind is not None:
                logs.append(f"Consistency check could not run: {feedback}")
                return self._failure(SaveStatus.PROVIDER_ERROR, target_file, candidate, attempts, logs, feedback,
                                     result.error_kind, with_action=False)

            if result.passed:
                if existing is not None:
                    await self.documents.update(existing.id, {"content": candidate})
                else:
                    await self.documents.create(project_id, target_file, candidate)
                logs.append(f"Check passed; saved {target_file}")
                logger.info(f"[save_loop] saved {target_file} after {attempts} attempt(s)")
                return SaveOutcome(
                    saved=True,
                    status=SaveStatus.SAVED,
                    target_file=target_file,
                    content=candidate,
                    attempts=attempts,
                    logs=logs,
                    feedback=feedback,
                )

            logs.append(f"Check failed: {_first_line(feedback)}")
            if attempts >= self.max_attempts:
                break

            try:
                fixed = await self.auto_fixer.fix(candidate, feedback or DEFAULT_FIX_FEEDBACK, target_file, ctx)
            except ProviderError as e:
                logs.append(f"AutoFixer failed: {e.user_message}")
                return self._failure(SaveStatus.FIX_FAILED, target_file, candidate, attempts, logs, feedback, e.kind)

            if not fixed.strip():
                logs.append("AutoFixer returned nothing")
                return self._failure(SaveStatus.FIX_FAILED, target_file, candidate, attempts, logs, feedback)

            if fixed.strip() == candidate.strip():
                logs.append("AutoFixer made no changes; stopping")
                return self._failure(SaveStatus.NO_OP_FIX, target_file, candidate, attempts, logs, feedback)

            logs.append("AutoFixer revised the content")
            candidate = fixed

        logger.warning(f"[save_loop] {target_file} still failing after {attempts} attempts")
        return self._failure(SaveStatus.EXHAUSTED, target_file, candidate, attempts, logs, feedback,
                             ErrorKind.VALIDATION_EXHAUSTED)

    @staticmethod
    def _failure(
        status: SaveStatus,
        target_file: str,
        candidate: str,
        attempts: int,
        logs: list,
        feedback: str,
        error_kind: Optional[ErrorKind] = None,
        with_action: bool = True,
    ) -> SaveOutcome:
        action = None
        if with_action:
            action = AutoFixAction(target_file=target_file, original_content=candidate, feedback=feedback)
        return SaveOutcome(
            saved=False,
            status=status,
            target_file=target_file,
            content=candidate,
            attempts=attempts,
            logs=logs,
            feedback=feedback,
            action=action,
            error_kind=error_kind,
        )
