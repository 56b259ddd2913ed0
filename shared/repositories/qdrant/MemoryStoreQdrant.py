import uuid
from datetime import datetime

from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.rag.models.VectorPoint import POINT_KIND_MEMORY, MemoryPoint, make_point_id
from shared.helper.HelperVector import rank_key
from shared.models.conversation import MemoryRecord, MemorySource, RetrievedMemory
from shared.repositories.ConversationRepositoryInterface import MemoryStoreInterface
from shared.repositories.qdrant.ChunkRepositoryQdrant import match_filter


class MemoryStoreQdrant(MemoryStoreInterface):
    """Long-term memories as points in the RAG backend.

    The point id is a UUID5 of (owner_id, session_id, source, content), so an
    upsert of the same key overwrites the existing point.
    """

    def __init__(self, rag_client: RAGClientInterface):
        self.rag_client = rag_client
        self.logging = rag_client.logging

    def _base_filters(self, owner_id: int, session_id: uuid.UUID | None) -> list[dict]:
        filters = [match_filter("kind", POINT_KIND_MEMORY), match_filter("owner_id", owner_id)]
        if session_id is not None:
            filters.append(match_filter("session_id", str(session_id)))
        return filters

    @staticmethod
    def _to_record(point_id, payload: dict) -> MemoryRecord:
        point = MemoryPoint(**payload)
        return MemoryRecord(
            id=str(point_id),
            session_id=uuid.UUID(point.session_id),
            owner_id=point.owner_id,
            source=MemorySource(point.source),
            content=point.content,
            importance=point.importance,
            created_at=datetime.fromisoformat(point.created_at),
        )

    async def upsert(self, mem: MemoryRecord) -> None:
        if not mem.embedding:
            raise ValueError("Memory records stored in the vector backend need an embedding.")
        payload = MemoryPoint(
            owner_id=mem.owner_id,
            session_id=str(mem.session_id),
            source=mem.source.value,
            content=mem.content,
            importance=mem.importance,
            created_at=mem.created_at.isoformat(),
            created_ts=mem.created_at.timestamp(),
        )
        point_id = make_point_id(*mem.dedup_key())
        await self.rag_client.do_upsert_points([{"id": point_id, "vector": mem.embedding, "payload": payload.model_dump()}])

    async def search(self, owner_id: int, session_id: uuid.UUID, embedding: list[float], k: int) -> list[RetrievedMemory]:
        if k <= 0 or not embedding:
            return []
        hits = await self.rag_client.do_search(embedding, self._base_filters(owner_id, session_id), k)
        results = [RetrievedMemory(memory=self._to_record(hit["id"], hit["payload"]), score=hit["score"]) for hit in hits]
        results.sort(key=lambda h: rank_key(h.score, h.memory.id))
        return results[:k]

    async def prune(self, owner_id: int, session_id: uuid.UUID | None, limit: int) -> None:
        if limit <= 0:
            return
        scroll = await self.rag_client.do_scroll_all(
            filters=self._base_filters(owner_id, session_id),
            with_payload=["importance", "created_ts"],
            with_vector=False,
        )
        points = list(scroll.result)
        if len(points) <= limit:
            return
        points.sort(
            key=lambda p: ((p.get("payload") or {}).get("importance", 0), (p.get("payload") or {}).get("created_ts", 0.0), str(p["id"])),
            reverse=True,
        )
        doomed = [str(p["id"]) for p in points[limit:]]
        if doomed:
            await self.rag_client.do_delete_points(doomed)
            self.logging.debug("Pruned %d memory points for owner %d", len(doomed), owner_id)
