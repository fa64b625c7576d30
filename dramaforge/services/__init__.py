"""
DramaForge Services
Persistence contracts and their in-memory and file-backed implementations.
"""

from .context_loader import BACKGROUND_FILES, ContextLoader, resolve_file_path
from .document_store import DocumentStore, FileDocumentStore, InMemoryDocumentStore
from .project_store import FileProjectStore, InMemoryProjectStore, ProjectStore
from .session_store import FileSessionStore, InMemorySessionStore, SessionStore

__all__ = [
    "BACKGROUND_FILES",
    "ContextLoader",
    "resolve_file_path",
    "DocumentStore",
    "FileDocumentStore",
    "InMemoryDocumentStore",
    "ProjectStore",
    "FileProjectStore",
    "InMemoryProjectStore",
    "SessionStore",
    "FileSessionStore",
    "InMemorySessionStore",
]
