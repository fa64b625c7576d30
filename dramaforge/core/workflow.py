"""
Project Workflow - the conductor of a DramaForge project.

Wires the agent suite, the stores, the validate-and-save loop, one
StageStateMachine per project and the episode tracker into the chat turn:

    user input -> Writer (streamed, partial display) -> final parse
    -> IntentAnalyzer -> ContentExtractor -> validate-and-save loop
    -> stage transition and/or episode refresh

Every call names its project explicitly, and chat calls name their session;
there is no ambient "current session".
"""

import json
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

from pydantic import ValidationError

from ..agents.suite import AgentSuite
from ..config.workflow import SESSION_TITLE_LENGTH, WorkflowSettings
from ..models.schemas import (
    ActivityLog,
    ActivityStatus,
    AgentResponse,
    AgentRole,
    AutoFixAction,
    BackgroundCheckResult,
    Document,
    EpisodeProgress,
    ErrorKind,
    Message,
    MessageRole,
    Project,
    SaveOutcome,
    SaveStatus,
    Scene,
    Session,
    Shot,
    Stage,
    utcnow,
)
from ..services.context_loader import BACKGROUND_FILES, ContextLoader, resolve_file_path
from ..services.document_store import DocumentStore
from ..services.project_store import ProjectStore
from ..services.session_store import SessionStore
from .context import CHARACTERS_FILE, OUTLINE_FILE, WORLD_FILE, truncate_content
from .episodes import (
    EPISODES_DIR,
    AdvanceDecision,
    AdvanceKind,
    build_progress,
    decide_advance,
    episode_id_for,
    episode_number,
    episode_path,
    next_episode_number,
    scenes_path,
)
from .errors import ProjectNotFoundError, ProviderError, ReadOnlyDocumentError, TurnInProgressError
from .log import get_logger
from .recovery import parse_agent_response
from .save_loop import DEFAULT_FIX_FEEDBACK, ValidateAndSaveLoop
from .state_machine import StageStateMachine, derive_stage, get_target_file
from .streaming import PartialMessageExtractor

logger = get_logger(__name__)

DEFAULT_SESSION_TITLE = "New Chat"

SEED_DOCUMENTS = {
    WORLD_FILE: "# World\n\n",
    OUTLINE_FILE: "# Outline\n\n",
    CHARACTERS_FILE: "# Characters\n\n",
}

STAGE_GREETINGS = {
    Stage.CHARACTERS: "The world is set. Let's build the cast: who is the protagonist, and what do they want?",
    Stage.OUTLINE: "The cast is ready. Next, the outline: how many episodes, and what is the hook of the first one?",
    Stage.PRODUCTION: "The outline is locked in. Time to write Episode 1. Shall I draft the opening scene?",
}

PartialCallback = Callable[[str], None]


@dataclass
class SaveEffects:
    """What a successful save changed beyond the document itself."""
    stage_change: Optional[Tuple[Stage, Stage]] = None
    episodes: Optional[List[EpisodeProgress]] = None
    advance: Optional[AdvanceDecision] = None
    opened_file: Optional[str] = None


@dataclass
class SaveResult:
    outcome: SaveOutcome
    effects: SaveEffects = field(default_factory=SaveEffects)


@dataclass
class TurnResult:
    session: Session
    response: Optional[AgentResponse] = None
    save: Optional[SaveResult] = None
    error_kind: Optional[ErrorKind] = None
    error_message: Optional[str] = None


def _scenes_path(episode_id: str) -> str:
    number = episode_number(episode_id)
    if number is None:
        raise ValueError(f"Not an episode id: {episode_id}")
    return scenes_path(episode_id_for(number))


def _activity(agent: AgentRole, status: ActivityStatus, task: str, logs=None, feedback=None) -> ActivityLog:
    return ActivityLog(agent=agent, status=status, task=task, logs=list(logs or []), feedback=feedback)


class ProjectWorkflow:
    """Entry point for every operation on a project."""

    def __init__(
        self,
        agents: AgentSuite,
        documents: DocumentStore,
        projects: ProjectStore,
        sessions: SessionStore,
        settings: Optional[WorkflowSettings] = None,
    ):
        self.agents = agents
        self.documents = documents
        self.projects = projects
        self.sessions = sessions
        self.settings = settings or WorkflowSettings()
        self.loader = ContextLoader(documents)
        self.save_loop = ValidateAndSaveLoop(
            agents.aligner,
            agents.auto_fixer,
            documents,
            content_extractor=agents.content_extractor,
            max_attempts=self.settings.max_fix_attempts,
            min_extracted_length=self.settings.min_extracted_length,
        )
        self._machines: Dict[str, StageStateMachine] = {}
        self._in_flight: Set[str] = set()

    # ========================================================================
    # Projects
    # ========================================================================

    async def get_project(self, project_id: str) -> Project:
        project = await self.projects.get(project_id)
        if project is None:
            raise ProjectNotFoundError(f"Project {project_id} not found")
        return project

    async def create_project(self, name: str, description: str = "") -> Project:
        project = await self.projects.create(name, description)
        for path, content in SEED_DOCUMENTS.items():
            await self.documents.create(project.id, path, content)
        await self.documents.create(project.id, episode_path(1), "# Episode 1\n\n")
        logger.info(f"[create_project] {project.id} '{name}'")
        return project

    async def fork_project(self, project_id: str) -> Project:
        """Copy the planning documents into a new, unlocked project."""
        source = await self.get_project(project_id)
        background = await self.loader.load_background(project_id)

        fork = await self.projects.create(f"{source.name} (Fork)", source.description)
        for path in BACKGROUND_FILES:
            await self.documents.create(fork.id, path, background[path] or SEED_DOCUMENTS[path])
        await self.documents.create(fork.id, episode_path(1), "# Episode 1\n\n")

        fork = await self.projects.update(fork.id, {"current_stage": derive_stage(background)})
        logger.info(f"[fork_project] {project_id} -> {fork.id} at stage {fork.current_stage.value}")
        return fork

    async def state_machine(self, project_id: str) -> StageStateMachine:
        """The project's stage machine; subscribe to it for stage events."""
        machine = self._machines.get(project_id)
        if machine is None:
            project = await self.get_project(project_id)
            unlocked = await self.loader.populated_stages(project_id)
            if project.is_background_locked:
                unlocked.append(Stage.PRODUCTION)
            machine = StageStateMachine(project.current_stage, extra_unlocked=unlocked)
            self._machines[project_id] = machine
        return machine

    async def enter_stage(self, project_id: str, stage: Stage) -> bool:
        """
        Switch the project to an unlocked stage, e.g. production right after
        the background lock. Raises ValueError for a locked stage.
        """
        machine = await self.state_machine(project_id)
        if not machine.enter(stage):
            return False
        await self.projects.update(project_id, {"current_stage": stage})
        return True

    async def lock_background(self, project_id: str) -> BackgroundCheckResult:
        """
        Unified check of world, characters and outline.

        On pass the project is locked for good, those three documents become
        read-only and production is unlocked. The stage itself does not move.
        """
        project = await self.get_project(project_id)
        if project.is_background_locked:
            return BackgroundCheckResult(passed=True, summary="Background is already locked.")

        background = await self.loader.load_background(project_id)
        result = await self.agents.background_checker.check(
            background[WORLD_FILE], background[CHARACTERS_FILE], background[OUTLINE_FILE]
        )
        if not result.passed:
            logger.info(f"[lock_background] {project_id} failed with {len(result.issues)} issue(s)")
            return result

        await self.projects.update(project_id, {"is_background_locked": True})
        machine = await self.state_machine(project_id)
        machine.unlock(Stage.PRODUCTION)
        logger.info(f"[lock_background] {project_id} locked; production unlocked")
        return result

    # ========================================================================
    # Sessions
    # ========================================================================

    async def new_session(self, project_id: str) -> Session:
        await self.get_project(project_id)
        session = Session(project_id=project_id, title=DEFAULT_SESSION_TITLE)
        await self.sessions.save(session)
        return session

    async def list_sessions(self, project_id: str) -> List[Session]:
        return await self.sessions.list_by_project(project_id)

    async def load_latest_session(self, project_id: str) -> Optional[Session]:
        sessions = await self.sessions.list_by_project(project_id)
        return sessions[0] if sessions else None

    async def delete_session(self, session_id: str) -> bool:
        return await self.sessions.delete(session_id)

    async def clear_history(self, session_id: str) -> Session:
        session = await self.sessions.get(session_id)
        if session is None:
            raise ValueError(f"Session {session_id} not found")
        session.messages = []
        session.title = DEFAULT_SESSION_TITLE
        session.updated_at = utcnow()
        await self.sessions.save(session)
        return session

    @staticmethod
    def _append(session: Session, message: Message) -> None:
        session.messages.append(message)
        if session.title == DEFAULT_SESSION_TITLE and message.role == MessageRole.USER:
            session.title = message.content[:SESSION_TITLE_LENGTH]
        session.updated_at = utcnow()

    # ========================================================================
    # Chat Turn
    # ========================================================================

    async def send_message(
        self,
        project_id: str,
        session_id: str,
        text: str,
        current_file: Optional[str] = None,
        on_partial: Optional[PartialCallback] = None,
    ) -> TurnResult:
        """
        Run one user turn end to end.

        Only one turn per session may be in flight. The session is persisted
        when the turn ends, whether or not it succeeded.
        """
        if session_id in self._in_flight:
            raise TurnInProgressError(f"Session {session_id} already has a turn in progress")
        self._in_flight.add(session_id)
        try:
            session = await self.sessions.get(session_id)
            if session is None or session.project_id != project_id:
                raise ValueError(f"Session {session_id} not found in project {project_id}")
            try:
                return await self._run_turn(project_id, session, text, resolve_file_path(current_file), on_partial)
            finally:
                await self.sessions.save(session)
        finally:
            self._in_flight.discard(session_id)

    async def _run_turn(
        self,
        project_id: str,
        session: Session,
        text: str,
        current_file: Optional[str],
        on_partial: Optional[PartialCallback],
    ) -> TurnResult:
        machine = await self.state_machine(project_id)
        history = list(session.messages)
        self._append(session, Message(role=MessageRole.USER, content=text))
        result = TurnResult(session=session)

        try:
            response = await self._writer_turn(project_id, history, text, current_file, machine, on_partial)
        except ProviderError as e:
            self._append(session, Message(role=MessageRole.SYSTEM, content=f"Error: {e.user_message}"))
            result.error_kind = e.kind
            result.error_message = e.user_message
            return result

        result.response = response
        self._append(session, Message(role=MessageRole.ASSISTANT, content=response.message))

        target, candidate = await self._save_target(response, session, machine, current_file)
        if target is None:
            label = await self.agents.summarizer.summarize(session.messages)
            self._append(session, Message(
                role=MessageRole.SYSTEM,
                content=label,
                activity_log=_activity(AgentRole.WRITER, ActivityStatus.SUCCESS, label),
            ))
            return result

        if candidate is not None:
            save = await self._guarded_save(project_id, target, lambda ctx, prev: self.save_loop.run(
                project_id, target, candidate, ctx, prev))
        else:
            save = await self._guarded_save(project_id, target, lambda ctx, prev: self.save_loop.save_from_conversation(
                project_id, session.messages, target, ctx, prev))
        result.save = save
        self._record_save(session, save)
        return result

    async def _writer_turn(
        self,
        project_id: str,
        history: List[Message],
        text: str,
        current_file: Optional[str],
        machine: StageStateMachine,
        on_partial: Optional[PartialCallback],
    ) -> AgentResponse:
        ctx = await self.loader.load_project_context(project_id, current_file)
        extractor = PartialMessageExtractor()
        chunks: List[str] = []
        async for chunk in self.agents.writer.stream_reply(history, text, ctx, machine.get_system_context()):
            chunks.append(chunk)
            display = extractor.feed(chunk)
            if on_partial is not None:
                on_partial(display)
        return parse_agent_response("".join(chunks))

    async def _save_target(
        self,
        response: AgentResponse,
        session: Session,
        machine: StageStateMachine,
        current_file: Optional[str],
    ) -> Tuple[Optional[str], Optional[str]]:
        """(target file, explicit content) of the save this turn asks for, if any."""
        if response.save_request is not None:
            requested = response.save_request.target_file
            target = resolve_file_path(requested) or requested
            return target, response.save_request.content

        intent = await self.agents.intent_analyzer.analyze(session.messages, machine.current_stage, current_file)
        if not intent.has_save_intent:
            return None, None
        target = (
            resolve_file_path(intent.target_file)
            or current_file
            or await self._default_target(session.project_id, machine.current_stage)
        )
        return target, None

    async def _default_target(self, project_id: str, stage: Stage) -> str:
        """The stage's document, or the episode being written once that is read-only or absent."""
        project = await self.get_project(project_id)
        target = get_target_file(stage)
        if target and not (project.is_background_locked and target in BACKGROUND_FILES):
            return target

        episodes = await self.episode_progress(project_id)
        for episode in episodes:
            if not episode.is_locked and not episode.status.is_completed:
                return episode.path
        return episodes[-1].path if episodes else episode_path(1)

    def _record_save(self, session: Session, save: SaveResult) -> None:
        outcome = save.outcome
        if outcome.saved:
            self._append(session, Message(
                role=MessageRole.SYSTEM,
                content=f"Saved {outcome.target_file}",
                activity_log=_activity(AgentRole.ALIGNER, ActivityStatus.SUCCESS,
                                       f"Saved {outcome.target_file}", outcome.logs, outcome.feedback),
            ))
            change = save.effects.stage_change
            if change is not None and change[0] in STAGE_GREETINGS:
                self._append(session, Message(role=MessageRole.ASSISTANT, content=STAGE_GREETINGS[change[0]]))
            return

        if outcome.status == SaveStatus.UNCHANGED:
            self._append(session, Message(
                role=MessageRole.SYSTEM,
                content=f"No changes to save in {outcome.target_file}",
                activity_log=_activity(AgentRole.ALIGNER, ActivityStatus.SUCCESS,
                                       f"{outcome.target_file} unchanged", outcome.logs),
            ))
            return

        self._append(session, Message(
            role=MessageRole.SYSTEM,
            content=f"Could not save {outcome.target_file}",
            activity_log=_activity(AgentRole.ALIGNER, ActivityStatus.FAILED,
                                   f"Save {outcome.target_file}", outcome.logs, outcome.feedback or None),
            action=outcome.action,
        ))

    # ========================================================================
    # Saving
    # ========================================================================

    async def _ensure_writable(self, project_id: str, path: str) -> None:
        project = await self.get_project(project_id)
        if project.is_background_locked and path in BACKGROUND_FILES:
            raise ReadOnlyDocumentError(f"{path} is read-only after the background lock")

    async def _guarded_save(self, project_id: str, target: str, run) -> SaveResult:
        try:
            await self._ensure_writable(project_id, target)
        except ReadOnlyDocumentError as e:
            return SaveResult(SaveOutcome(saved=False, status=SaveStatus.READ_ONLY, target_file=target, logs=[str(e)]))

        ctx = await self.loader.load_project_context(project_id, target)
        previous = await self.loader.load_previous_episodes(project_id, target)
        outcome = await run(ctx, previous)
        effects = await self._after_save(project_id, target) if outcome.saved else SaveEffects()
        return SaveResult(outcome, effects)

    async def _after_save(self, project_id: str, target: str) -> SaveEffects:
        effects = SaveEffects()
        machine = await self.state_machine(project_id)
        previous_stage = machine.current_stage
        if machine.on_content_saved(target):
            await self.projects.update(project_id, {"current_stage": machine.current_stage})
            effects.stage_change = (machine.current_stage, previous_stage)

        if target.startswith(EPISODES_DIR):
            effects.episodes = await self.episode_progress(project_id)
            effects.advance = decide_advance(self.settings.auto_advance, effects.episodes, target)
            if effects.advance.kind == AdvanceKind.MOVE:
                effects.opened_file = await self.confirm_advance(project_id, effects.advance)
        return effects

    async def save_document(self, project_id: str, path: str, content: str) -> SaveResult:
        """Validated save of editor content; may advance the stage."""
        await self._ensure_writable(project_id, path)
        return await self._guarded_save(project_id, path, lambda ctx, prev: self.save_loop.run(
            project_id, path, content, ctx, prev))

    async def save_draft(self, project_id: str, path: str, content: str) -> Document:
        """Unvalidated draft persistence. Never moves the stage."""
        await self._ensure_writable(project_id, path)
        return await self.documents.put(project_id, path, content)

    async def apply_auto_fix(self, project_id: str, action: AutoFixAction, session_id: Optional[str] = None) -> SaveResult:
        """
        Manual one-shot repair offered after the loop gave up.

        One AutoFixer call, one Aligner call; the document is written only if
        the repaired text passes.
        """
        target = action.target_file
        try:
            await self._ensure_writable(project_id, target)
        except ReadOnlyDocumentError as e:
            return SaveResult(SaveOutcome(saved=False, status=SaveStatus.READ_ONLY, target_file=target, logs=[str(e)]))

        ctx = await self.loader.load_project_context(project_id, target)
        try:
            fixed = await self.agents.auto_fixer.fix(
                action.original_content, action.feedback or DEFAULT_FIX_FEEDBACK, target, ctx
            )
        except ProviderError as e:
            save = SaveResult(SaveOutcome(
                saved=False,
                status=SaveStatus.FIX_FAILED,
                target_file=target,
                content=action.original_content,
                logs=[f"AutoFixer failed: {e.user_message}"],
                feedback=action.feedback,
                action=action,
                error_kind=e.kind,
            ))
        else:
            single_pass = ValidateAndSaveLoop(self.agents.aligner, self.agents.auto_fixer, self.documents, max_attempts=1)
            save = await self._guarded_save(project_id, target, lambda c, prev: single_pass.run(
                project_id, target, fixed, c, prev))

        if session_id:
            session = await self.sessions.get(session_id)
            if session is not None:
                self._record_save(session, save)
                await self.sessions.save(session)
        return save

    # ========================================================================
    # Episodes
    # ========================================================================

    async def episode_progress(self, project_id: str) -> List[EpisodeProgress]:
        docs = await self.documents.list(project_id)
        return build_progress(
            docs,
            self.settings.episode_in_progress_threshold,
            self.settings.episode_min_script_length,
        )

    async def create_episode(self, project_id: str) -> str:
        docs = await self.documents.list(project_id, EPISODES_DIR)
        number = next_episode_number(docs)
        path = episode_path(number)
        await self.documents.create(project_id, path, f"# Episode {number}\n\n")
        return path

    async def confirm_advance(self, project_id: str, decision: AdvanceDecision) -> Optional[str]:
        """Move to the episode a decision points at, creating it if needed."""
        if decision.next_path is None:
            return None
        if decision.create_next and await self.documents.get(project_id, decision.next_path) is None:
            number = episode_number(decision.next_path)
            await self.documents.create(project_id, decision.next_path, f"# Episode {number}\n\n")
        return decision.next_path

    # ========================================================================
    # Storyboard
    # ========================================================================

    async def run_director(self, project_id: str, episode_id: str) -> List[Dict[str, Any]]:
        """Break an episode script into scenes and store them as its scene collection."""
        script = await self.loader.load_script_content(project_id, episode_id)
        if not script.strip():
            raise ValueError(f"Episode {episode_id} has no script to break down")

        scenes = await self.agents.director.breakdown(script)
        await self.documents.put(
            project_id,
            _scenes_path(episode_id),
            json.dumps(scenes, ensure_ascii=False, indent=2),
        )
        logger.info(f"[run_director] {episode_id}: {len(scenes)} scene(s)")
        return scenes

    async def load_scenes(self, project_id: str, episode_id: str) -> List[Scene]:
        raw = await self.documents.read_text(project_id, _scenes_path(episode_id))
        if not raw:
            return []
        scenes = []
        for item in json.loads(raw):
            try:
                scenes.append(Scene.model_validate(item))
            except ValidationError as e:
                logger.warning(f"[load_scenes] skipping malformed scene in {episode_id}: {e.error_count()} error(s)")
        return scenes

    async def regenerate_shot_prompts(
        self,
        project_id: str,
        episode_id: str,
        include_motion: bool = True,
    ) -> List[Dict[str, Any]]:
        """
        Fill visual (and motion) prompts for every shot of an episode.

        Shots are processed one after another, never concurrently.
        """
        path = _scenes_path(episode_id)
        raw = await self.documents.read_text(project_id, path)
        if not raw:
            raise ValueError(f"Episode {episode_id} has no scenes; run the director first")
        scenes = json.loads(raw)

        background = await self.loader.load_background(project_id)
        style_notes = truncate_content(f"{background[WORLD_FILE]}\n\n{background[CHARACTERS_FILE]}".strip(), 2000)

        for scene in scenes:
            if not isinstance(scene, dict):
                continue
            for shot_data in scene.get("shots") or []:
                if not isinstance(shot_data, dict):
                    continue
                try:
                    shot = Shot.model_validate(shot_data)
                except ValidationError as e:
                    logger.warning(f"[regenerate_shot_prompts] skipping malformed shot: {e.error_count()} error(s)")
                    continue
                visual = await self.agents.visualizer.generate(shot, scene.get("summary", ""), style_notes)
                shot_data.update(visual)
                if include_motion:
                    motion = await self.agents.motion.generate(
                        visual.get("visualPrompt", ""), shot.movement, shot.duration
                    )
                    shot_data.update(motion)

        await self.documents.put(project_id, path, json.dumps(scenes, ensure_ascii=False, indent=2))
        return scenes
