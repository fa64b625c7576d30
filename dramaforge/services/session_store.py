"""
Session Store - append-only conversation persistence keyed by project.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional

from ..models.schemas import Session


class SessionStore(ABC):

    @abstractmethod
    async def save(self, session: Session) -> None:
        ...

    @abstractmethod
    async def get(self, session_id: str) -> Optional[Session]:
        ...

    @abstractmethod
    async def list_by_project(self, project_id: str) -> List[Session]:
        """Sessions of a project, most recently updated first."""

    @abstractmethod
    async def delete(self, session_id: str) -> bool:
        ...


class InMemorySessionStore(SessionStore):

    def __init__(self):
        self._sessions: Dict[str, Session] = {}

    async def save(self, session: Session) -> None:
        self._sessions[session.id] = session.model_copy(deep=True)

    async def get(self, session_id: str) -> Optional[Session]:
        session = self._sessions.get(session_id)
        return session.model_copy(deep=True) if session else None

    async def list_by_project(self, project_id: str) -> List[Session]:
        sessions = [s.model_copy(deep=True) for s in self._sessions.values() if s.project_id == project_id]
        return sorted(sessions, key=lambda s: s.updated_at, reverse=True)

    async def delete(self, session_id: str) -> bool:
        return self._sessions.pop(session_id, None) is not None


class FileSessionStore(SessionStore):
    """One JSON file per session under <root>/sessions/<project_id>/."""

    def __init__(self, root: str):
        self.root = Path(root) / "sessions"

    def _find(self, session_id: str) -> Optional[Path]:
        if not self.root.is_dir():
            return None
        return next(self.root.glob(f"*/{session_id}.json"), None)

    async def save(self, session: Session) -> None:
        folder = self.root / session.project_id
        folder.mkdir(parents=True, exist_ok=True)
        (folder / f"{session.id}.json").write_text(session.model_dump_json(indent=2), encoding="utf-8")

    async def get(self, session_id: str) -> Optional[Session]:
        file = self._find(session_id)
        if file is None:
            return None
        return Session.model_validate_json(file.read_text(encoding="utf-8"))

    async def list_by_project(self, project_id: str) -> List[Session]:
        folder = self.root / project_id
        if not folder.is_dir():
            return []
        sessions = [Session.model_validate_json(f.read_text(encoding="utf-8")) for f in folder.glob("*.json")]
        return sorted(sessions, key=lambda s: s.updated_at, reverse=True)

    async def delete(self, session_id: str) -> bool:
        file = self._find(session_id)
        if file is None:
            return False
        file.unlink()
        return True
