"""Tests for the vector-backed chunk repository and memory store against a fake Qdrant."""

import json
import uuid
from datetime import timedelta

import httpx
import pytest
import pytest_asyncio

from shared.clients.rag.models.VectorPoint import PAYLOAD_INDEXES
from shared.clients.rag.qdrant.RAGClientQdrant import RAGClientQdrant
from shared.helper.HelperVector import cosine_similarity
from shared.models.conversation import MemoryRecord, MemorySource
from shared.models.document import Document, DocumentChunk, DocumentFilter, DocumentStatus, utc_now
from shared.repositories.RepositoryManager import RepositoryManager
from shared.repositories.memory.ConversationRepositoryMemory import MemoryStoreMemory
from shared.repositories.memory.DocumentRepositoryMemory import DocumentRepositoryMemory
from shared.repositories.qdrant.ChunkRepositoryQdrant import ChunkRepositoryQdrant
from shared.repositories.qdrant.MemoryStoreQdrant import MemoryStoreQdrant

QDRANT_URL = "http://qdrant.test"
COLLECTION_PATH = "/collections/uploadask"


class FakeQdrant:
    """Minimal in-process Qdrant REST API covering the calls the repositories make."""

    def __init__(self, exists: bool = True):
        self.exists = exists
        self.points: dict[str, dict] = {}
        self.requests: list[tuple[str, str, dict]] = []

    @staticmethod
    def _matches(payload: dict, must: list[dict]) -> bool:
        for cond in must:
            value = payload.get(cond["key"])
            match = cond["match"]
            if "value" in match and value != match["value"]:
                return False
            if "any" in match and value not in match["any"]:
                return False
        return True

    def _select(self, body: dict) -> list[dict]:
        must = (body.get("filter") or {}).get("must", [])
        return [p for _, p in sorted(self.points.items()) if self._matches(p["payload"], must)]

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        body = json.loads(request.content) if request.content else {}
        self.requests.append((request.method, path, body))

        if path == f"{COLLECTION_PATH}/exists":
            return httpx.Response(200, json={"result": {"exists": self.exists}})
        if path == COLLECTION_PATH and request.method == "PUT":
            self.exists = True
            return httpx.Response(200, json={"result": True})
        if path == f"{COLLECTION_PATH}/index":
            return httpx.Response(200, json={"result": {"status": "completed"}})
        if path == f"{COLLECTION_PATH}/points" and request.method == "PUT":
            for point in body["points"]:
                self.points[str(point["id"])] = point
            return httpx.Response(200, json={"result": {"status": "completed"}})
        if path == f"{COLLECTION_PATH}/points/search":
            hits = [
                {"id": p["id"], "score": cosine_similarity(body["vector"], p["vector"]), "payload": p["payload"]}
                for p in self._select(body)
            ]
            hits.sort(key=lambda h: -h["score"])
            return httpx.Response(200, json={"result": hits[: body["limit"]]})
        if path == f"{COLLECTION_PATH}/points/count":
            return httpx.Response(200, json={"result": {"count": len(self._select(body))}})
        if path == f"{COLLECTION_PATH}/points/scroll":
            selected = self._select(body)
            start = int(body.get("offset") or 0)
            page = selected[start: start + body["limit"]]
            keys = body.get("with_payload")
            points = [
                {"id": p["id"], "payload": {k: v for k, v in p["payload"].items() if keys is True or k in keys}}
                for p in page
            ]
            next_offset = str(start + body["limit"]) if start + body["limit"] < len(selected) else None
            return httpx.Response(200, json={"result": {"points": points, "next_page_offset": next_offset}})
        if path == f"{COLLECTION_PATH}/points/delete":
            doomed = [str(p["id"]) for p in self._select(body)] if "filter" in body else body.get("points", [])
            for point_id in doomed:
                self.points.pop(str(point_id), None)
            return httpx.Response(200, json={"result": {"status": "completed"}})
        return httpx.Response(404, json={"status": {"error": f"unexpected {request.method} {path}"}})

    def searches(self) -> list[dict]:
        return [body for _, path, body in self.requests if path.endswith("/points/search")]


@pytest.fixture
def fake_qdrant() -> FakeQdrant:
    return FakeQdrant()


@pytest.fixture
def qdrant_env(monkeypatch):
    monkeypatch.setenv("RAG_QDRANT_BASE_URL", QDRANT_URL)
    monkeypatch.setenv("RAG_QDRANT_COLLECTION", "uploadask")


@pytest_asyncio.fixture
async def rag_client(helper_config, qdrant_env, fake_qdrant):
    client = RAGClientQdrant(helper_config)
    await client.boot(transport=httpx.MockTransport(fake_qdrant.handler))
    yield client
    await client.close()


async def _document(documents: DocumentRepositoryMemory, owner_id: int, status: DocumentStatus) -> Document:
    doc = Document(owner_id=owner_id, title="doc")
    await documents.create(doc)
    await documents.update_status(doc.id, status)
    return doc


def _chunk(doc: Document, index: int, embedding: list[float]) -> DocumentChunk:
    return DocumentChunk(document_id=doc.id, chunk_index=index, content=f"chunk {index}", token_count=2, embedding=embedding)


def _memory(session_id: uuid.UUID, owner_id: int, content: str, importance: int = 0, age_minutes: int = 0) -> MemoryRecord:
    return MemoryRecord(
        session_id=session_id,
        owner_id=owner_id,
        source=MemorySource.QA_TURN if importance == 0 else MemorySource.SUMMARY,
        content=content,
        embedding=[1.0, 0.0, float(len(content))],
        importance=importance,
        created_at=utc_now() - timedelta(minutes=age_minutes),
    )


class TestChunkRepositoryQdrant:
    """Tests for chunk vectors stored as points."""

    @pytest.mark.asyncio
    async def test_search_only_processed_owned_chunks(self, rag_client, fake_qdrant, owner_id, other_owner_id):
        """Only chunks of the owner's processed documents are returned, best first."""
        documents = DocumentRepositoryMemory()
        repo = ChunkRepositoryQdrant(rag_client, documents)
        ready = await _document(documents, owner_id, DocumentStatus.PROCESSED)
        pending = await _document(documents, owner_id, DocumentStatus.PROCESSING)
        foreign = await _document(documents, other_owner_id, DocumentStatus.PROCESSED)
        await repo.insert_batch(owner_id, [_chunk(ready, 0, [1.0, 0.0]), _chunk(ready, 1, [0.6, 0.8])])
        await repo.insert_batch(owner_id, [_chunk(pending, 0, [1.0, 0.0])])
        await repo.insert_batch(other_owner_id, [_chunk(foreign, 0, [1.0, 0.0])])

        hits = await repo.search_similar(owner_id, [1.0, 0.0], DocumentFilter(statuses=[DocumentStatus.PROCESSED]), limit=5)

        assert [(h.chunk.document_id, h.chunk.chunk_index) for h in hits] == [(ready.id, 0), (ready.id, 1)]
        assert hits[0].score == pytest.approx(1.0)
        assert hits[0].document.id == ready.id
        must = fake_qdrant.searches()[-1]["filter"]["must"]
        assert {"key": "owner_id", "match": {"value": owner_id}} in must
        assert {"key": "document_id", "match": {"any": [str(ready.id)]}} in must

    @pytest.mark.asyncio
    async def test_no_allowed_documents_skips_search(self, rag_client, fake_qdrant, owner_id):
        """Without matching documents the backend is not queried."""
        repo = ChunkRepositoryQdrant(rag_client, DocumentRepositoryMemory())
        assert await repo.search_similar(owner_id, [1.0], DocumentFilter()) == []
        assert fake_qdrant.searches() == []

    @pytest.mark.asyncio
    async def test_insert_replaces_previous_chunks(self, rag_client, fake_qdrant, owner_id):
        """Re-inserting a document's chunks drops the earlier points of that document only."""
        documents = DocumentRepositoryMemory()
        repo = ChunkRepositoryQdrant(rag_client, documents)
        doc = await _document(documents, owner_id, DocumentStatus.PROCESSED)
        kept = await _document(documents, owner_id, DocumentStatus.PROCESSED)
        await repo.insert_batch(owner_id, [_chunk(kept, 0, [0.0, 1.0])])
        await repo.insert_batch(owner_id, [_chunk(doc, 0, [1.0, 0.0]), _chunk(doc, 1, [0.6, 0.8])])
        await repo.insert_batch(owner_id, [_chunk(doc, 0, [1.0, 0.0]), _chunk(doc, 1, [0.6, 0.8])])

        hits = await repo.search_similar(owner_id, [1.0, 0.0], DocumentFilter(document_ids=[doc.id]), limit=10)
        assert [h.chunk.chunk_index for h in hits] == [0, 1]
        assert len(fake_qdrant.points) == 3
        deletes = [body for _, path, body in fake_qdrant.requests if path.endswith("/points/delete")]
        assert {"key": "document_id", "match": {"value": str(doc.id)}} in deletes[-1]["filter"]["must"]

    @pytest.mark.asyncio
    async def test_insert_requires_embedding(self, rag_client, owner_id):
        """Chunks without a vector cannot be stored."""
        documents = DocumentRepositoryMemory()
        doc = await _document(documents, owner_id, DocumentStatus.PROCESSING)
        with pytest.raises(ValueError):
            await ChunkRepositoryQdrant(rag_client, documents).insert_batch(owner_id, [_chunk(doc, 0, [])])


class TestMemoryStoreQdrant:
    """Tests for long-term memories stored as points."""

    @pytest.mark.asyncio
    async def test_upsert_deduplicates(self, rag_client, fake_qdrant, owner_id):
        """The same owner, session, source and content map to one point."""
        store = MemoryStoreQdrant(rag_client)
        session_id = uuid.uuid4()
        await store.upsert(_memory(session_id, owner_id, "fact"))
        await store.upsert(_memory(session_id, owner_id, "fact"))
        await store.upsert(_memory(session_id, owner_id, "other fact"))
        assert len(fake_qdrant.points) == 2

        hits = await store.search(owner_id, session_id, [1.0, 0.0, 4.0], k=5)
        assert [h.memory.content for h in hits] == ["fact", "other fact"]
        assert isinstance(hits[0].memory.id, str)
        assert hits[0].memory.session_id == session_id

    @pytest.mark.asyncio
    async def test_search_is_session_scoped(self, rag_client, owner_id, other_owner_id):
        """Memories of other sessions and other owners are invisible."""
        store = MemoryStoreQdrant(rag_client)
        session_id = uuid.uuid4()
        await store.upsert(_memory(uuid.uuid4(), owner_id, "elsewhere"))
        await store.upsert(_memory(session_id, other_owner_id, "foreign"))
        assert await store.search(owner_id, session_id, [1.0, 0.0, 1.0], k=3) == []
        assert await store.search(owner_id, session_id, [1.0, 0.0, 1.0], k=0) == []

    @pytest.mark.asyncio
    async def test_upsert_requires_embedding(self, rag_client, owner_id):
        """Vector-backed memories need an embedding."""
        mem = _memory(uuid.uuid4(), owner_id, "fact")
        mem.embedding = None
        with pytest.raises(ValueError):
            await MemoryStoreQdrant(rag_client).upsert(mem)

    @pytest.mark.asyncio
    async def test_prune_keeps_important_and_recent(self, rag_client, fake_qdrant, owner_id):
        """Pruning keeps summaries first, then the newest turns, within the scope."""
        store = MemoryStoreQdrant(rag_client)
        session_id = uuid.uuid4()
        other_session = uuid.uuid4()
        await store.upsert(_memory(session_id, owner_id, "summary", importance=1, age_minutes=30))
        await store.upsert(_memory(session_id, owner_id, "old turn", age_minutes=20))
        await store.upsert(_memory(session_id, owner_id, "new turn", age_minutes=1))
        await store.upsert(_memory(other_session, owner_id, "other session", age_minutes=2))

        await store.prune(owner_id, session_id, limit=2)
        kept = sorted(p["payload"]["content"] for p in fake_qdrant.points.values())
        assert kept == ["new turn", "other session", "summary"]

        await store.prune(owner_id, None, limit=2)
        kept = sorted(p["payload"]["content"] for p in fake_qdrant.points.values())
        assert kept == ["new turn", "summary"]

    @pytest.mark.asyncio
    async def test_matches_in_memory_store(self, rag_client, owner_id):
        """Both memory stores rank the same records identically."""
        session_id = uuid.uuid4()
        records = [_memory(session_id, owner_id, text) for text in ("a", "bbb", "cc")]
        qdrant_store, memory_store = MemoryStoreQdrant(rag_client), MemoryStoreMemory()
        for record in records:
            await qdrant_store.upsert(record)
            await memory_store.upsert(record.model_copy())

        query = [1.0, 0.0, 2.0]
        from_qdrant = await qdrant_store.search(owner_id, session_id, query, k=3)
        from_memory = await memory_store.search(owner_id, session_id, query, k=3)
        assert [h.memory.content for h in from_qdrant] == [h.memory.content for h in from_memory]


class TestRepositoryManager:
    """Tests for vector store engine selection."""

    def test_memory_is_default(self, helper_config, monkeypatch):
        """Without configuration everything stays in process."""
        monkeypatch.delenv("VECTOR_STORE_ENGINE", raising=False)
        manager = RepositoryManager(helper_config)
        assert manager.rag_client is None
        assert isinstance(manager.get_repositories().memories, MemoryStoreMemory)

    def test_unknown_engine(self, helper_config, monkeypatch):
        """Unsupported engines are rejected."""
        monkeypatch.setenv("VECTOR_STORE_ENGINE", "cassandra")
        with pytest.raises(ValueError):
            RepositoryManager(helper_config)

    @pytest.mark.asyncio
    async def test_qdrant_creates_collection(self, helper_config, qdrant_env, monkeypatch):
        """Booting the qdrant engine creates a missing collection with the embedding size."""
        monkeypatch.setenv("VECTOR_STORE_ENGINE", "qdrant")
        fake = FakeQdrant(exists=False)
        manager = RepositoryManager(helper_config)
        repos = manager.get_repositories()
        assert isinstance(repos.chunks, ChunkRepositoryQdrant)
        assert isinstance(repos.memories, MemoryStoreQdrant)

        await manager.boot(vector_size=32, transport=httpx.MockTransport(fake.handler))
        await manager.close()

        creates = [body for method, path, body in fake.requests if method == "PUT" and path == COLLECTION_PATH]
        assert creates == [{"vectors": {"size": 32, "distance": "Cosine"}}]
        indexes = {body["field_name"]: body["field_schema"] for _, path, body in fake.requests if path.endswith("/index")}
        assert indexes == PAYLOAD_INDEXES
