"""Persistence contracts for documents, their files and their chunks.

Every read takes an owner id and must only return rows owned by it.
"""

import uuid
from abc import ABC, abstractmethod

from shared.models.document import (
    Document,
    DocumentChunk,
    DocumentFilter,
    DocumentStatus,
    FileObject,
    RetrievedChunk,
)


class DocumentRepositoryInterface(ABC):
    @abstractmethod
    async def create(self, doc: Document) -> None:
        pass

    @abstractmethod
    async def update_status(self, doc_id: uuid.UUID, status: DocumentStatus, failure_reason: str | None = None) -> None:
        """Set the status (and failure reason) of a document and bump updated_at."""
        pass

    @abstractmethod
    async def get(self, doc_id: uuid.UUID, owner_id: int) -> Document | None:
        """Return the document, or None if it does not exist or belongs to another owner."""
        pass

    @abstractmethod
    async def list(self, owner_id: int, filter: DocumentFilter | None = None) -> list[Document]:
        """Return the owner's documents matching filter, newest first."""
        pass


class FileObjectRepositoryInterface(ABC):
    @abstractmethod
    async def create(self, file: FileObject) -> None:
        pass

    @abstractmethod
    async def find_by_document(self, doc_id: uuid.UUID) -> FileObject | None:
        pass


class ChunkRepositoryInterface(ABC):
    @abstractmethod
    async def insert_batch(self, owner_id: int, chunks: list[DocumentChunk]) -> None:
        """Persist all chunks of one document, replacing any chunks stored for it before."""
        pass

    @abstractmethod
    async def search_similar(self, owner_id: int, embedding: list[float], filter: DocumentFilter, limit: int | None = None) -> list[RetrievedChunk]:
        """Nearest-neighbour search over the owner's chunks.

        Args:
            owner_id (int): Only chunks of this owner's documents are considered.
            embedding (list[float]): The query vector.
            filter (DocumentFilter): Optional document id and status restrictions.
            limit (int | None): Optional upper bound on the number of hits.

        Returns:
            list[RetrievedChunk]: Hits sorted by score descending, ties broken by chunk id.
        """
        pass
