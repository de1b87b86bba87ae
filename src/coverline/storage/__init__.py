"""Persistence: async SQLAlchemy models, repositories and blob storage."""

from coverline.storage.blob import LocalFileStorage, Storage
from coverline.storage.database import Base, create_engine, create_session_factory, get_session, init_db
from coverline.storage.repositories import ChunkRepository, DocumentRepository, PolicyRepository

__all__ = [
    "Base",
    "ChunkRepository",
    "DocumentRepository",
    "LocalFileStorage",
    "PolicyRepository",
    "Storage",
    "create_engine",
    "create_session_factory",
    "get_session",
    "init_db",
]
