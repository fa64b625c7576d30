"""
Episode Progress Tracker

Status is a pure function of the script length and of whether a scene
breakdown exists; the lock of episode i depends only on episode i-1.
Nothing here is stored, everything is recomputed on demand.
"""

import json
import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Sequence

from ..config.workflow import EPISODE_IN_PROGRESS_THRESHOLD, EPISODE_MIN_SCRIPT_LENGTH
from ..models.schemas import AutoAdvancePreference, Document, EpisodeProgress, EpisodeStatus

EPISODES_DIR = "episodes/"
SCENES_DIR = "scenes/"

EPISODE_NUMBER_RE = re.compile(r"EP-(\d+)", re.IGNORECASE)
TITLE_RE = re.compile(r"^#\s+(.+)$", re.MULTILINE)


def episode_id_for(number: int) -> str:
    return f"EP-{number:02d}"


def episode_path(number: int) -> str:
    return f"{EPISODES_DIR}{episode_id_for(number)}.md"


def scenes_path(episode_id: str) -> str:
    return f"{SCENES_DIR}{episode_id}.json"


def episode_number(path: str) -> Optional[int]:
    match = EPISODE_NUMBER_RE.search(path)
    return int(match.group(1)) if match else None


def episode_title(script: str) -> str:
    match = TITLE_RE.search(script or "")
    return match.group(1).strip() if match else ""


def derive_status(
    script: str,
    has_storyboard: bool,
    in_progress_threshold: int = EPISODE_IN_PROGRESS_THRESHOLD,
    completion_threshold: int = EPISODE_MIN_SCRIPT_LENGTH,
) -> EpisodeStatus:
    """Status from trimmed script length, upgraded when scenes exist."""
    if has_storyboard:
        return EpisodeStatus.STORYBOARD_COMPLETED
    length = len((script or "").strip())
    if length > completion_threshold:
        return EpisodeStatus.SCRIPT_COMPLETED
    if length > in_progress_threshold:
        return EpisodeStatus.IN_PROGRESS
    return EpisodeStatus.NOT_STARTED


def count_scenes(scenes_json: Optional[str]) -> int:
    if not scenes_json:
        return 0
    try:
        data = json.loads(scenes_json)
    except json.JSONDecodeError:
        return 0
    return len(data) if isinstance(data, list) else 0


def apply_locks(episodes: List[EpisodeProgress]) -> List[EpisodeProgress]:
    """
    Set is_locked/can_advance on episodes sorted by number.

    The first listed episode is always unlocked. Only episodes that exist are
    reported; a missing episode is absent, not locked.
    """
    for i, episode in enumerate(episodes):
        if i == 0:
            episode.is_locked = False
        else:
            episode.is_locked = not episodes[i - 1].status.is_completed
        episode.can_advance = episode.status.is_completed
    return episodes


def build_progress(
    documents: Sequence[Document],
    in_progress_threshold: int = EPISODE_IN_PROGRESS_THRESHOLD,
    completion_threshold: int = EPISODE_MIN_SCRIPT_LENGTH,
) -> List[EpisodeProgress]:
    """Derive the progress snapshot from a project's documents."""
    scenes: Dict[str, str] = {}
    scripts: Dict[int, Document] = {}

    for doc in documents:
        number = episode_number(doc.path)
        if number is None:
            continue
        if doc.path.startswith(SCENES_DIR):
            scenes[episode_id_for(number)] = doc.content
        elif doc.path.startswith(EPISODES_DIR):
            scripts[number] = doc

    progress = []
    for number in sorted(scripts):
        doc = scripts[number]
        episode_id = episode_id_for(number)
        scene_json = scenes.get(episode_id)
        scene_count = count_scenes(scene_json)
        progress.append(EpisodeProgress(
            episode_id=episode_id,
            path=doc.path,
            number=number,
            title=episode_title(doc.content),
            status=derive_status(doc.content, scene_count > 0, in_progress_threshold, completion_threshold),
            script_length=len(doc.content.strip()),
            scene_count=scene_count,
        ))
    return apply_locks(progress)


# ============================================================================
# Auto-Advance Policy
# ============================================================================

class AdvanceKind(str, Enum):
    NONE = "none"
    PROMPT = "prompt"
    MOVE = "move"


@dataclass
class AdvanceDecision:
    kind: AdvanceKind
    next_episode_id: Optional[str] = None
    next_path: Optional[str] = None
    create_next: bool = False


def decide_advance(
    preference: AutoAdvancePreference,
    episodes: Sequence[EpisodeProgress],
    saved_path: str,
) -> AdvanceDecision:
    """What to do after saving saved_path, given the refreshed snapshot."""
    if preference == AutoAdvancePreference.DISABLED:
        return AdvanceDecision(AdvanceKind.NONE)

    number = episode_number(saved_path)
    current = next((e for e in episodes if e.number == number), None)
    if current is None or not current.status.is_completed:
        return AdvanceDecision(AdvanceKind.NONE)

    later = [e for e in episodes if e.number > current.number]
    if later:
        target = min(later, key=lambda e: e.number)
        next_id, next_path, create = target.episode_id, target.path, False
    else:
        next_id, next_path, create = episode_id_for(current.number + 1), episode_path(current.number + 1), True

    kind = AdvanceKind.PROMPT if preference == AutoAdvancePreference.CONFIRM else AdvanceKind.MOVE
    return AdvanceDecision(kind, next_episode_id=next_id, next_path=next_path, create_next=create)


def next_episode_number(documents: Sequence[Document]) -> int:
    numbers = [
        n for n in (episode_number(d.path) for d in documents if d.path.startswith(EPISODES_DIR))
        if n is not None
    ]
    return max(numbers, default=0) + 1
