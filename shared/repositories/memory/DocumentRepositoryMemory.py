"""In-process document, file and chunk stores for development and tests.

State is held in dicts guarded by a re-entrant lock, so one instance can be
shared between tasks and threads.
"""

import threading
import uuid

from shared.helper.HelperVector import cosine_similarity, rank_key
from shared.models.document import (
    Document,
    DocumentChunk,
    DocumentFilter,
    DocumentStatus,
    FileObject,
    RetrievedChunk,
    utc_now,
)
from shared.repositories.DocumentRepositoryInterface import (
    ChunkRepositoryInterface,
    DocumentRepositoryInterface,
    FileObjectRepositoryInterface,
)


def _matches(doc: Document, owner_id: int, filter: DocumentFilter | None) -> bool:
    if doc.owner_id != owner_id:
        return False
    if filter is None:
        return True
    if filter.document_ids and doc.id not in filter.document_ids:
        return False
    if filter.statuses and doc.status not in filter.statuses:
        return False
    return True


class DocumentRepositoryMemory(DocumentRepositoryInterface):
    def __init__(self):
        self._lock = threading.RLock()
        self._docs: dict[uuid.UUID, Document] = {}

    async def create(self, doc: Document) -> None:
        with self._lock:
            self._docs[doc.id] = doc.model_copy(deep=True)

    async def update_status(self, doc_id: uuid.UUID, status: DocumentStatus, failure_reason: str | None = None) -> None:
        with self._lock:
            doc = self._docs.get(doc_id)
            if doc is None:
                raise KeyError(f"document {doc_id} not found")
            doc.status = status
            doc.failure_reason = failure_reason
            doc.updated_at = utc_now()

    async def get(self, doc_id: uuid.UUID, owner_id: int) -> Document | None:
        with self._lock:
            doc = self._docs.get(doc_id)
            if doc is None or doc.owner_id != owner_id:
                return None
            return doc.model_copy(deep=True)

    async def list(self, owner_id: int, filter: DocumentFilter | None = None) -> list[Document]:
        with self._lock:
            docs = [d.model_copy(deep=True) for d in self._docs.values() if _matches(d, owner_id, filter)]
        docs.sort(key=lambda d: (d.created_at, str(d.id)), reverse=True)
        return docs


class FileObjectRepositoryMemory(FileObjectRepositoryInterface):
    def __init__(self):
        self._lock = threading.RLock()
        self._files: dict[uuid.UUID, FileObject] = {}

    async def create(self, file: FileObject) -> None:
        with self._lock:
            self._files[file.document_id] = file.model_copy(deep=True)

    async def find_by_document(self, doc_id: uuid.UUID) -> FileObject | None:
        with self._lock:
            file = self._files.get(doc_id)
            return file.model_copy(deep=True) if file is not None else None


class ChunkRepositoryMemory(ChunkRepositoryInterface):
    """Brute-force cosine search over all stored chunks.

    Owner and status scoping is resolved through the document repository, the
    same way a SQL implementation would join chunks to documents.
    """

    def __init__(self, documents: DocumentRepositoryInterface):
        self._lock = threading.RLock()
        self._chunks: dict[uuid.UUID, list[DocumentChunk]] = {}
        self._documents = documents

    async def insert_batch(self, owner_id: int, chunks: list[DocumentChunk]) -> None:
        by_document: dict[uuid.UUID, list[DocumentChunk]] = {}
        for chunk in chunks:
            by_document.setdefault(chunk.document_id, []).append(chunk.model_copy(deep=True))
        with self._lock:
            self._chunks.update(by_document)

    async def search_similar(self, owner_id: int, embedding: list[float], filter: DocumentFilter, limit: int | None = None) -> list[RetrievedChunk]:
        allowed = {doc.id: doc for doc in await self._documents.list(owner_id, filter)}
        hits: list[RetrievedChunk] = []
        with self._lock:
            for doc_id, chunks in self._chunks.items():
                doc = allowed.get(doc_id)
                if doc is None:
                    continue
                for chunk in chunks:
                    score = cosine_similarity(embedding, chunk.embedding)
                    hits.append(RetrievedChunk(chunk=chunk.model_copy(deep=True), document=doc, score=score))
        hits.sort(key=lambda h: rank_key(h.score, h.chunk.id))
        if limit is not None and limit > 0:
            hits = hits[:limit]
        return hits
