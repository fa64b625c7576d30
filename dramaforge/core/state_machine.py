"""
Stage State Machine - world -> characters -> outline -> production.

The stage only moves forward, one edge at a time, when the current stage's
target document has been saved after passing validation. Subscribers are
registered per machine and receive typed events; on() hands back an
unsubscribe callable.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Set

from ..config.workflow import STAGE_UNLOCK_MIN_LENGTH
from ..models.schemas import STAGE_ORDER, Stage
from .context import CHARACTERS_FILE, OUTLINE_FILE, WORLD_FILE
from .log import get_logger

logger = get_logger(__name__)

EPISODES_PREFIX = "episodes/"


@dataclass(frozen=True)
class StageDefinition:
    label: str
    target_file: Optional[str]
    next_stage: Optional[Stage]
    prev_stage: Optional[Stage]
    description: str


STAGE_CONFIG: Dict[Stage, StageDefinition] = {
    Stage.WORLD: StageDefinition(
        label="World Building",
        target_file=WORLD_FILE,
        next_stage=Stage.CHARACTERS,
        prev_stage=None,
        description="Define the setting, rules, history and tone of the story world.",
    ),
    Stage.CHARACTERS: StageDefinition(
        label="Characters",
        target_file=CHARACTERS_FILE,
        next_stage=Stage.OUTLINE,
        prev_stage=Stage.WORLD,
        description="Create the cast: goals, flaws, relationships and arcs consistent with the world.",
    ),
    Stage.OUTLINE: StageDefinition(
        label="Outline",
        target_file=OUTLINE_FILE,
        next_stage=Stage.PRODUCTION,
        prev_stage=Stage.CHARACTERS,
        description="Plan the episodes: premise, beats and cliffhangers for each one.",
    ),
    Stage.PRODUCTION: StageDefinition(
        label="Production",
        target_file=None,
        next_stage=None,
        prev_stage=Stage.OUTLINE,
        description="Write episode scripts, then break them into scenes and shots.",
    ),
}

FILE_TO_STAGE: Dict[str, Stage] = {
    definition.target_file: stage
    for stage, definition in STAGE_CONFIG.items()
    if definition.target_file
}


def get_stage_from_file(path: str) -> Optional[Stage]:
    """Stage whose target is path. Episode scripts belong to production."""
    if path in FILE_TO_STAGE:
        return FILE_TO_STAGE[path]
    if path.startswith(EPISODES_PREFIX):
        return Stage.PRODUCTION
    return None


def get_target_file(stage: Stage) -> Optional[str]:
    return STAGE_CONFIG[stage].target_file


def stage_label_for_file(path: Optional[str]) -> str:
    if not path:
        return "Chat"
    stage = get_stage_from_file(path)
    if stage is None:
        return "Chat"
    if stage == Stage.PRODUCTION:
        return "Scripting"
    return STAGE_CONFIG[stage].label


def derive_stage(contents: Mapping[str, str]) -> Stage:
    """
    Stage to resume at, given the planning documents' contents.

    Starts at world and moves past every stage whose document already holds
    a meaningful amount of text.
    """
    stage = Stage.WORLD
    while True:
        definition = STAGE_CONFIG[stage]
        if definition.next_stage is None or not definition.target_file:
            return stage
        if len((contents.get(definition.target_file) or "").strip()) <= STAGE_UNLOCK_MIN_LENGTH:
            return stage
        stage = definition.next_stage


# ============================================================================
# Events
# ============================================================================

class StageEvent(str, Enum):
    STAGE_CHANGE = "stage_change"
    CONTENT_SAVED = "content_saved"
    STAGE_UNLOCKED = "stage_unlocked"


Listener = Callable[..., None]


class StageStateMachine:
    """
    Linear stage progression with an observer interface.

    Events and their arguments:
    - stage_change(new_stage, old_stage)
    - content_saved(target_file, stage)
    - stage_unlocked(stage)
    """

    def __init__(self, initial_stage: Stage = Stage.WORLD, extra_unlocked: Iterable[Stage] = ()):
        self._current = initial_stage
        self._forced: Set[Stage] = set(extra_unlocked)
        self._listeners: Dict[StageEvent, List[Listener]] = {event: [] for event in StageEvent}

    @property
    def current_stage(self) -> Stage:
        return self._current

    @property
    def config(self) -> StageDefinition:
        return STAGE_CONFIG[self._current]

    @property
    def unlocked_stages(self) -> List[Stage]:
        return [s for s in STAGE_ORDER if s.order <= self._current.order or s in self._forced]

    def is_unlocked(self, stage: Stage) -> bool:
        return stage in self.unlocked_stages

    def can_go_next(self) -> bool:
        return self.config.next_stage is not None

    def can_go_back(self) -> bool:
        return self.config.prev_stage is not None

    # ------------------------------------------------------------------
    # Observer
    # ------------------------------------------------------------------

    def on(self, event: StageEvent, listener: Listener) -> Callable[[], None]:
        """Subscribe to an event; call the returned function to unsubscribe."""
        self._listeners[event].append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners[event]:
                self._listeners[event].remove(listener)

        return unsubscribe

    def _emit(self, event: StageEvent, *args) -> None:
        for listener in list(self._listeners[event]):
            try:
                listener(*args)
            except Exception:
                logger.exception(f"[StageStateMachine._emit] listener for {event.value} raised")

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def on_content_saved(self, target_file: str) -> bool:
        """
        Record a validated save of target_file.

        Advances one stage only when target_file belongs to the current
        stage. Returns True if a transition happened.
        """
        stage = get_stage_from_file(target_file)
        self._emit(StageEvent.CONTENT_SAVED, target_file, stage)

        if stage is None or stage != self._current:
            return False

        next_stage = STAGE_CONFIG[stage].next_stage
        if next_stage is None:
            return False

        old = self._current
        self._current = next_stage
        logger.info(f"[StageStateMachine] {old.value} -> {next_stage.value} after saving {target_file}")
        self._emit(StageEvent.STAGE_CHANGE, next_stage, old)
        self._emit(StageEvent.STAGE_UNLOCKED, next_stage)
        return True

    def enter(self, stage: Stage) -> bool:
        """
        Move to an unlocked stage chosen by the user, in either direction.

        Stages passed on the way stay unlocked. Raises ValueError for a
        locked stage; returns True if the stage changed.
        """
        if not self.is_unlocked(stage):
            raise ValueError(f"Stage {stage.value} is locked")
        if stage == self._current:
            return False

        old = self._current
        self._forced.update(self.unlocked_stages)
        self._current = stage
        logger.info(f"[StageStateMachine] {old.value} -> {stage.value} on request")
        self._emit(StageEvent.STAGE_CHANGE, stage, old)
        return True

    def unlock(self, stage: Stage) -> None:
        """Make a stage reachable without moving the current stage."""
        if self.is_unlocked(stage):
            return
        self._forced.add(stage)
        self._emit(StageEvent.STAGE_UNLOCKED, stage)

    def get_system_context(self) -> str:
        """Stage summary injected into prompts."""
        definition = self.config
        lines = [f"[Current stage] {definition.label}"]
        if definition.target_file:
            lines.append(f"[Target file] {definition.target_file}")
        lines.append(f"[Goal] {definition.description}")
        if definition.next_stage:
            lines.append(f"[Next stage] {STAGE_CONFIG[definition.next_stage].label}")
        return "\n".join(lines)
