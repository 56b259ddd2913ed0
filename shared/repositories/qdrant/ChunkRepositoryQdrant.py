import uuid
from datetime import datetime

from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.rag.models.VectorPoint import POINT_KIND_CHUNK, ChunkPoint
from shared.helper.HelperVector import rank_key
from shared.models.document import DocumentChunk, DocumentFilter, RetrievedChunk
from shared.repositories.DocumentRepositoryInterface import ChunkRepositoryInterface, DocumentRepositoryInterface


def match_filter(key: str, value) -> dict:
    return {"key": key, "match": {"value": value}}


def match_any_filter(key: str, values: list) -> dict:
    return {"key": key, "match": {"any": values}}


class ChunkRepositoryQdrant(ChunkRepositoryInterface):
    """Stores chunk vectors as points in the RAG backend.

    Document status lives in the document repository, so status and document
    id restrictions are resolved there first and passed to the vector search
    as a document_id match.
    """

    DEFAULT_SEARCH_LIMIT = 100

    def __init__(self, rag_client: RAGClientInterface, documents: DocumentRepositoryInterface):
        self.rag_client = rag_client
        self._documents = documents
        self.logging = rag_client.logging

    async def insert_batch(self, owner_id: int, chunks: list[DocumentChunk]) -> None:
        if not chunks:
            return
        points = []
        for chunk in chunks:
            if not chunk.embedding:
                raise ValueError(f"Chunk {chunk.chunk_index} of document {chunk.document_id} has no embedding.")
            payload = ChunkPoint(
                owner_id=owner_id,
                chunk_id=str(chunk.id),
                document_id=str(chunk.document_id),
                chunk_index=chunk.chunk_index,
                content=chunk.content,
                token_count=chunk.token_count,
                created_at=chunk.created_at.isoformat(),
            )
            points.append({"id": str(chunk.id), "vector": chunk.embedding, "payload": payload.model_dump()})
        for document_id in sorted({str(chunk.document_id) for chunk in chunks}):
            await self.rag_client.do_delete_points_by_filter(
                {
                    "must": [
                        match_filter("kind", POINT_KIND_CHUNK),
                        match_filter("owner_id", owner_id),
                        match_filter("document_id", document_id),
                    ]
                }
            )
        await self.rag_client.do_upsert_points(points)
        self.logging.debug("Upserted %d chunk points for document %s", len(points), chunks[0].document_id)

    async def search_similar(self, owner_id: int, embedding: list[float], filter: DocumentFilter, limit: int | None = None) -> list[RetrievedChunk]:
        allowed = {doc.id: doc for doc in await self._documents.list(owner_id, filter)}
        if not allowed:
            return []
        filters = [
            match_filter("kind", POINT_KIND_CHUNK),
            match_filter("owner_id", owner_id),
            match_any_filter("document_id", [str(doc_id) for doc_id in allowed]),
        ]
        hits = await self.rag_client.do_search(embedding, filters, limit or self.DEFAULT_SEARCH_LIMIT)
        results: list[RetrievedChunk] = []
        for hit in hits:
            payload = ChunkPoint(**hit["payload"])
            doc = allowed.get(uuid.UUID(payload.document_id))
            if doc is None or payload.owner_id != owner_id:
                continue
            chunk = DocumentChunk(
                id=uuid.UUID(payload.chunk_id),
                document_id=doc.id,
                chunk_index=payload.chunk_index,
                content=payload.content,
                token_count=payload.token_count,
                created_at=datetime.fromisoformat(payload.created_at),
            )
            results.append(RetrievedChunk(chunk=chunk, document=doc, score=hit["score"]))
        results.sort(key=lambda h: rank_key(h.score, h.chunk.id))
        return results
