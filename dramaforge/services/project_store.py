"""
Project Store - project metadata persistence (name, lock flag, stage).
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..models.schemas import Project, utcnow

_PATCHABLE = {"name", "description", "is_background_locked", "current_stage"}


class ProjectStore(ABC):

    @abstractmethod
    async def create(self, name: str, description: str = "") -> Project:
        ...

    @abstractmethod
    async def get(self, project_id: str) -> Optional[Project]:
        ...

    @abstractmethod
    async def update(self, project_id: str, patch: Dict[str, Any]) -> Project:
        ...

    @abstractmethod
    async def list(self) -> List[Project]:
        """All projects, most recently updated first."""

    @abstractmethod
    async def delete(self, project_id: str) -> bool:
        ...


def _apply_patch(project: Project, patch: Dict[str, Any]) -> Project:
    changes = {k: v for k, v in patch.items() if k in _PATCHABLE}
    changes["updated_at"] = utcnow()
    # validate so that e.g. a stage given as a plain string becomes a Stage
    return Project.model_validate({**project.model_dump(), **changes})


class InMemoryProjectStore(ProjectStore):

    def __init__(self):
        self._projects: Dict[str, Project] = {}

    async def create(self, name: str, description: str = "") -> Project:
        project = Project(name=name, description=description)
        self._projects[project.id] = project
        return project.model_copy()

    async def get(self, project_id: str) -> Optional[Project]:
        project = self._projects.get(project_id)
        return project.model_copy() if project else None

    async def update(self, project_id: str, patch: Dict[str, Any]) -> Project:
        project = self._projects.get(project_id)
        if project is None:
            raise ValueError(f"Project {project_id} not found")
        updated = _apply_patch(project, patch)
        self._projects[project_id] = updated
        return updated.model_copy()

    async def list(self) -> List[Project]:
        return sorted((p.model_copy() for p in self._projects.values()), key=lambda p: p.updated_at, reverse=True)

    async def delete(self, project_id: str) -> bool:
        return self._projects.pop(project_id, None) is not None


class FileProjectStore(ProjectStore):
    """One JSON file per project under <root>/projects/."""

    def __init__(self, root: str):
        self.root = Path(root) / "projects"

    def _file(self, project_id: str) -> Path:
        return self.root / f"{project_id}.json"

    def _write(self, project: Project) -> None:
        self.root.mkdir(parents=True, exist_ok=True)
        self._file(project.id).write_text(project.model_dump_json(indent=2), encoding="utf-8")

    async def create(self, name: str, description: str = "") -> Project:
        project = Project(name=name, description=description)
        self._write(project)
        return project

    async def get(self, project_id: str) -> Optional[Project]:
        file = self._file(project_id)
        if not file.is_file():
            return None
        return Project.model_validate_json(file.read_text(encoding="utf-8"))

    async def update(self, project_id: str, patch: Dict[str, Any]) -> Project:
        project = await self.get(project_id)
        if project is None:
            raise ValueError(f"Project {project_id} not found")
        updated = _apply_patch(project, patch)
        self._write(updated)
        return updated

    async def list(self) -> List[Project]:
        if not self.root.is_dir():
            return []
        projects = [
            Project.model_validate_json(f.read_text(encoding="utf-8"))
            for f in self.root.glob("*.json")
        ]
        return sorted(projects, key=lambda p: p.updated_at, reverse=True)

    async def delete(self, project_id: str) -> bool:
        file = self._file(project_id)
        if not file.is_file():
            return False
        file.unlink()
        return True
