"""
Context Loader - reads the documents an agent call needs from the store.
"""

from typing import Dict, List, Optional

from ..config.workflow import STAGE_UNLOCK_MIN_LENGTH
from ..core.context import CHARACTERS_FILE, OUTLINE_FILE, WORLD_FILE, ProjectContext
from ..core.episodes import EPISODES_DIR, episode_number, episode_path
from ..models.schemas import Stage
from .document_store import DocumentStore

BACKGROUND_FILES = (WORLD_FILE, CHARACTERS_FILE, OUTLINE_FILE)

_VIEW_TO_FILE = {
    "world": WORLD_FILE,
    "characters": CHARACTERS_FILE,
    "outline": OUTLINE_FILE,
}


def resolve_file_path(view: Optional[str]) -> Optional[str]:
    """
    Map a UI view name onto a document path.

    'world', 'characters' and 'outline' name the planning documents; an
    episode id such as 'EP-03' names that episode's script. Paths pass
    through unchanged.
    """
    if not view:
        return None
    if view in _VIEW_TO_FILE:
        return _VIEW_TO_FILE[view]
    if "/" in view or view.endswith(".md") or view.endswith(".json"):
        return view
    number = episode_number(view)
    if number is not None:
        return episode_path(number)
    return None


class ContextLoader:
    def __init__(self, documents: DocumentStore):
        self.documents = documents

    async def load_background(self, project_id: str) -> Dict[str, str]:
        return {path: await self.documents.read_text(project_id, path) for path in BACKGROUND_FILES}

    async def load_project_context(self, project_id: str, current_file: Optional[str] = None) -> ProjectContext:
        background = await self.load_background(project_id)
        ctx = ProjectContext(
            world=background[WORLD_FILE],
            characters=background[CHARACTERS_FILE],
            outline=background[OUTLINE_FILE],
        )
        if current_file:
            ctx.current_file_name = current_file
            ctx.current_file_content = background.get(current_file)
            if ctx.current_file_content is None:
                ctx.current_file_content = await self.documents.read_text(project_id, current_file)
        return ctx

    async def load_script_content(self, project_id: str, episode_id: str) -> str:
        number = episode_number(episode_id)
        if number is None:
            return ""
        return await self.documents.read_text(project_id, episode_path(number))

    async def load_previous_episodes(self, project_id: str, target_path: str) -> str:
        """Scripts of every episode numbered below target_path's, in order."""
        target = episode_number(target_path)
        if target is None or not target_path.startswith(EPISODES_DIR):
            return ""
        docs = await self.documents.list(project_id, EPISODES_DIR)
        earlier = sorted(
            (d for d in docs if (episode_number(d.path) or 0) < target and d.content.strip()),
            key=lambda d: episode_number(d.path),
        )
        return "\n\n".join(f"### {d.path}\n{d.content.strip()}" for d in earlier)

    async def is_file_populated(self, project_id: str, path: str, min_length: int = STAGE_UNLOCK_MIN_LENGTH) -> bool:
        return len((await self.documents.read_text(project_id, path)).strip()) > min_length

    async def populated_stages(self, project_id: str) -> List[Stage]:
        """
        Stages reachable from the documents alone.

        World is always open; each later stage opens once the previous
        stage's document holds real content.
        """
        stages = [Stage.WORLD]
        gates = (
            (WORLD_FILE, Stage.CHARACTERS),
            (CHARACTERS_FILE, Stage.OUTLINE),
            (OUTLINE_FILE, Stage.PRODUCTION),
        )
        for path, stage in gates:
            if not await self.is_file_populated(project_id, path):
                break
            stages.append(stage)
        return stages
