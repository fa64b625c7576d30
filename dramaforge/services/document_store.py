"""
Document Store - persistence contract for project documents.

The engine only relies on get/create/update/list; writes are never assumed
to be transactional across documents. Two implementations ship: an
in-memory store for tests and embedding, and a file store that keeps every
document as a real file under <root>/documents/<project_id>/<path>.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..core.log import get_logger
from ..models.schemas import Document, DocumentType, utcnow

logger = get_logger(__name__)


def infer_document_type(path: str) -> DocumentType:
    return DocumentType.JSON if path.endswith(".json") else DocumentType.MARKDOWN


class DocumentStore(ABC):
    """Async document persistence keyed by project and path."""

    @abstractmethod
    async def get(self, project_id: str, path: str) -> Optional[Document]:
        ...

    @abstractmethod
    async def create(
        self,
        project_id: str,
        path: str,
        content: str,
        doc_type: Optional[DocumentType] = None,
    ) -> Document:
        """Create a document; an existing document at path is updated instead."""

    @abstractmethod
    async def update(self, document_id: str, patch: Dict[str, Any]) -> Document:
        ...

    @abstractmethod
    async def list(self, project_id: str, prefix: Optional[str] = None) -> List[Document]:
        ...

    @abstractmethod
    async def delete(self, project_id: str, path: str) -> bool:
        ...

    async def read_text(self, project_id: str, path: str) -> str:
        """Content of path, or an empty string when it does not exist."""
        doc = await self.get(project_id, path)
        return doc.content if doc else ""

    async def put(self, project_id: str, path: str, content: str) -> Document:
        """Update path if it exists, else create it. Exactly one write."""
        existing = await self.get(project_id, path)
        if existing:
            return await self.update(existing.id, {"content": content})
        return await self.create(project_id, path, content)


_PATCHABLE = {"content", "type"}


class InMemoryDocumentStore(DocumentStore):
    """Dictionary-backed store."""

    def __init__(self):
        self._docs: Dict[str, Document] = {}

    def _find(self, project_id: str, path: str) -> Optional[Document]:
        for doc in self._docs.values():
            if doc.project_id == project_id and doc.path == path:
                return doc
        return None

    async def get(self, project_id: str, path: str) -> Optional[Document]:
        doc = self._find(project_id, path)
        return doc.model_copy() if doc else None

    async def create(self, project_id, path, content, doc_type=None) -> Document:
        existing = self._find(project_id, path)
        if existing:
            return await self.update(existing.id, {"content": content})
        doc = Document(
            project_id=project_id,
            path=path,
            content=content,
            type=doc_type or infer_document_type(path),
        )
        self._docs[doc.id] = doc
        return doc.model_copy()

    async def update(self, document_id: str, patch: Dict[str, Any]) -> Document:
        doc = self._docs.get(document_id)
        if doc is None:
            raise ValueError(f"Document {document_id} not found")
        changes = {k: v for k, v in patch.items() if k in _PATCHABLE}
        changes["updated_at"] = utcnow()
        updated = doc.model_copy(update=changes)
        self._docs[document_id] = updated
        return updated.model_copy()

    async def list(self, project_id: str, prefix: Optional[str] = None) -> List[Document]:
        docs = [
            d.model_copy() for d in self._docs.values()
            if d.project_id == project_id and (prefix is None or d.path.startswith(prefix))
        ]
        return sorted(docs, key=lambda d: d.path)

    async def delete(self, project_id: str, path: str) -> bool:
        doc = self._find(project_id, path)
        if doc is None:
            return False
        del self._docs[doc.id]
        return True


class FileDocumentStore(DocumentStore):
    """Stores documents as plain files; the document id is '<project_id>:<path>'."""

    def __init__(self, root: str):
        self.root = Path(root) / "documents"

    def _project_dir(self, project_id: str) -> Path:
        return self.root / project_id

    def _file(self, project_id: str, path: str) -> Path:
        base = self._project_dir(project_id).resolve()
        target = (base / path).resolve()
        if base != target and base not in target.parents:
            raise ValueError(f"Path {path!r} escapes project {project_id}")
        return target

    def _load(self, project_id: str, path: str, file: Path) -> Document:
        stat = file.stat()
        return Document(
            id=f"{project_id}:{path}",
            project_id=project_id,
            path=path,
            content=file.read_text(encoding="utf-8"),
            type=infer_document_type(path),
            created_at=datetime.fromtimestamp(stat.st_ctime, tz=timezone.utc),
            updated_at=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
        )

    async def get(self, project_id: str, path: str) -> Optional[Document]:
        file = self._file(project_id, path)
        if not file.is_file():
            return None
        return self._load(project_id, path, file)

    async def create(self, project_id, path, content, doc_type=None) -> Document:
        file = self._file(project_id, path)
        file.parent.mkdir(parents=True, exist_ok=True)
        file.write_text(content, encoding="utf-8")
        logger.debug(f"[FileDocumentStore.create] wrote {project_id}/{path} ({len(content)} chars)")
        return self._load(project_id, path, file)

    async def update(self, document_id: str, patch: Dict[str, Any]) -> Document:
        project_id, sep, path = document_id.partition(":")
        if not sep:
            raise ValueError(f"Malformed document id {document_id!r}")
        file = self._file(project_id, path)
        if not file.is_file():
            raise ValueError(f"Document {document_id} not found")
        if "content" in patch:
            file.write_text(patch["content"], encoding="utf-8")
        return self._load(project_id, path, file)

    async def list(self, project_id: str, prefix: Optional[str] = None) -> List[Document]:
        base = self._project_dir(project_id)
        if not base.is_dir():
            return []
        docs = []
        for file in sorted(base.rglob("*")):
            if not file.is_file():
                continue
            path = file.relative_to(base).as_posix()
            if prefix is None or path.startswith(prefix):
                docs.append(self._load(project_id, path, file))
        return docs

    async def delete(self, project_id: str, path: str) -> bool:
        file = self._file(project_id, path)
        if not file.is_file():
            return False
        file.unlink()
        return True
