"""Tests for the in-process reference repositories."""

import uuid
from datetime import datetime, timedelta, timezone

import pytest

from shared.models.conversation import ConversationMessage, MemoryRecord, MemorySource, MessageRole, QASession, QueryLog
from shared.models.document import Document, DocumentChunk, DocumentFilter, DocumentStatus
from shared.repositories.RepositoryManager import build_memory_repositories

BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _message(owner_id: int, session_id: uuid.UUID, content: str, tokens: int, role: MessageRole = MessageRole.USER) -> ConversationMessage:
    return ConversationMessage(session_id=session_id, owner_id=owner_id, role=role, content=content, token_count=tokens)


def _memory(owner_id: int, session_id: uuid.UUID, content: str, importance: int = 0, minutes: int = 0, embedding: list[float] | None = None) -> MemoryRecord:
    return MemoryRecord(
        session_id=session_id,
        owner_id=owner_id,
        source=MemorySource.QA_TURN,
        content=content,
        embedding=embedding if embedding is not None else [1.0, 0.5],
        importance=importance,
        created_at=BASE_TIME + timedelta(minutes=minutes),
    )


class TestMessageLogMemory:
    """Tests for windowed transcript recall."""

    @pytest.mark.asyncio
    async def test_list_recent_respects_token_budget(self):
        """Scanning stops before the budget is exceeded; output is chronological."""
        log = build_memory_repositories().messages
        session_id = uuid.uuid4()
        for i in range(4):
            await log.append(_message(1, session_id, f"m{i}", 3))

        recent = await log.list_recent(1, session_id, max_tokens=7, max_messages=50)
        assert [m.content for m in recent] == ["m2", "m3"]
        assert sum(m.token_count for m in recent) <= 7

    @pytest.mark.asyncio
    async def test_list_recent_respects_message_cap(self):
        """At most max_messages are returned, the newest ones."""
        log = build_memory_repositories().messages
        session_id = uuid.uuid4()
        for i in range(5):
            await log.append(_message(1, session_id, f"m{i}", 1))

        recent = await log.list_recent(1, session_id, max_tokens=0, max_messages=2)
        assert [m.content for m in recent] == ["m3", "m4"]

    @pytest.mark.asyncio
    async def test_list_recent_is_owner_scoped(self):
        """Messages of other owners are never returned."""
        log = build_memory_repositories().messages
        session_id = uuid.uuid4()
        await log.append(_message(1, session_id, "mine", 1))
        await log.append(_message(2, session_id, "theirs", 1))

        recent = await log.list_recent(1, session_id, max_tokens=100, max_messages=10)
        assert [m.content for m in recent] == ["mine"]

    @pytest.mark.asyncio
    async def test_append_assigns_increasing_ids(self):
        """Stored messages get increasing ids."""
        log = build_memory_repositories().messages
        session_id = uuid.uuid4()
        await log.append(_message(1, session_id, "a", 1))
        await log.append(_message(1, session_id, "b", 1))
        recent = await log.list_recent(1, session_id, 0, 0)
        assert recent[0].id < recent[1].id


class TestMemoryStoreMemory:
    """Tests for deduplicated upsert, search and pruning."""

    @pytest.mark.asyncio
    async def test_upsert_deduplicates_on_key(self):
        """Same (owner, session, source, content) keeps one record with the latest embedding."""
        store = build_memory_repositories().memories
        session_id = uuid.uuid4()
        await store.upsert(_memory(1, session_id, "fact", embedding=[1.0, 0.0]))
        await store.upsert(_memory(1, session_id, "fact", importance=2, embedding=[0.0, 1.0]))

        hits = await store.search(1, session_id, [0.0, 1.0], k=5)
        assert len(hits) == 1
        assert hits[0].memory.embedding == [0.0, 1.0]
        assert hits[0].memory.importance == 2
        assert hits[0].score == pytest.approx(1.0)

    @pytest.mark.asyncio
    async def test_search_caps_and_orders(self):
        """At most k hits, scores non-increasing."""
        store = build_memory_repositories().memories
        session_id = uuid.uuid4()
        for i, vec in enumerate([[1.0, 0.0], [0.7, 0.7], [0.0, 1.0], [0.9, 0.1]]):
            await store.upsert(_memory(1, session_id, f"m{i}", embedding=vec))

        hits = await store.search(1, session_id, [1.0, 0.0], k=3)
        assert len(hits) == 3
        scores = [h.score for h in hits]
        assert scores == sorted(scores, reverse=True)
        assert hits[0].memory.content == "m0"

    @pytest.mark.asyncio
    async def test_search_edge_cases(self):
        """k <= 0, missing query embedding and stored records without embedding yield nothing."""
        store = build_memory_repositories().memories
        session_id = uuid.uuid4()
        record = _memory(1, session_id, "no vector")
        record.embedding = None
        await store.upsert(record)

        assert await store.search(1, session_id, [1.0, 0.0], k=0) == []
        assert await store.search(1, session_id, [], k=3) == []
        assert await store.search(1, session_id, [1.0, 0.0], k=3) == []

    @pytest.mark.asyncio
    async def test_search_is_owner_and_session_scoped(self):
        """Only the requested owner's session is searched."""
        store = build_memory_repositories().memories
        session_id = uuid.uuid4()
        await store.upsert(_memory(1, session_id, "mine"))
        await store.upsert(_memory(2, session_id, "other owner"))
        await store.upsert(_memory(1, uuid.uuid4(), "other session"))

        hits = await store.search(1, session_id, [1.0, 0.5], k=10)
        assert [h.memory.content for h in hits] == ["mine"]

    @pytest.mark.asyncio
    async def test_prune_keeps_importance_then_recency(self):
        """Survivors are the top records by (importance desc, created_at desc)."""
        store = build_memory_repositories().memories
        session_id = uuid.uuid4()
        specs = [("old-0", 0, 0), ("old-1", 1, 1), ("mid-0", 0, 2), ("new-1", 1, 3), ("new-0", 0, 4)]
        for content, importance, minutes in specs:
            await store.upsert(_memory(1, session_id, content, importance=importance, minutes=minutes))

        await store.prune(1, session_id, limit=3)
        hits = await store.search(1, session_id, [1.0, 0.5], k=10)
        assert sorted(h.memory.content for h in hits) == ["new-0", "new-1", "old-1"]

    @pytest.mark.asyncio
    async def test_prune_without_session_covers_all_sessions(self):
        """A None session keeps the limit best records across all of the owner's sessions."""
        store = build_memory_repositories().memories
        older, newer = uuid.uuid4(), uuid.uuid4()
        for i in range(3):
            await store.upsert(_memory(1, older, f"old{i}", minutes=i))
            await store.upsert(_memory(1, newer, f"new{i}", minutes=10 + i))
        other = uuid.uuid4()
        for i in range(3):
            await store.upsert(_memory(2, other, f"x{i}", minutes=i))

        await store.prune(1, None, limit=2)

        assert await store.search(1, older, [1.0, 0.5], k=10) == []
        survivors = await store.search(1, newer, [1.0, 0.5], k=10)
        assert sorted(h.memory.content for h in survivors) == ["new1", "new2"]
        assert len(await store.search(2, other, [1.0, 0.5], k=10)) == 3

    @pytest.mark.asyncio
    async def test_prune_non_positive_limit_is_noop(self):
        """limit <= 0 leaves everything in place."""
        store = build_memory_repositories().memories
        session_id = uuid.uuid4()
        for i in range(3):
            await store.upsert(_memory(1, session_id, f"m{i}"))
        await store.prune(1, session_id, limit=0)
        assert len(await store.search(1, session_id, [1.0, 0.5], k=10)) == 3


class TestDocumentRepositories:
    """Tests for documents, chunks, sessions and query logs."""

    @pytest.mark.asyncio
    async def test_get_is_owner_scoped(self):
        """A foreign owner cannot read a document."""
        repos = build_memory_repositories()
        doc = Document(owner_id=1, title="t")
        await repos.documents.create(doc)
        assert (await repos.documents.get(doc.id, 1)).id == doc.id
        assert await repos.documents.get(doc.id, 2) is None

    @pytest.mark.asyncio
    async def test_update_status_sets_reason(self):
        """Status updates record the failure reason."""
        repos = build_memory_repositories()
        doc = Document(owner_id=1, title="t")
        await repos.documents.create(doc)
        await repos.documents.update_status(doc.id, DocumentStatus.FAILED, "embedding failed")
        stored = await repos.documents.get(doc.id, 1)
        assert stored.status == DocumentStatus.FAILED
        assert stored.failure_reason == "embedding failed"

    @pytest.mark.asyncio
    async def test_chunk_search_only_processed_owned_documents(self):
        """Chunk search honours owner, status and document filters."""
        repos = build_memory_repositories()
        processed = Document(owner_id=1, title="ok", status=DocumentStatus.PROCESSED)
        pending = Document(owner_id=1, title="pending", status=DocumentStatus.PENDING)
        foreign = Document(owner_id=2, title="foreign", status=DocumentStatus.PROCESSED)
        for doc in (processed, pending, foreign):
            await repos.documents.create(doc)
            await repos.chunks.insert_batch(
                doc.owner_id,
                [DocumentChunk(document_id=doc.id, chunk_index=0, content=doc.title, token_count=1, embedding=[1.0, 0.0])],
            )

        filter = DocumentFilter(statuses=[DocumentStatus.PROCESSED])
        hits = await repos.chunks.search_similar(1, [1.0, 0.0], filter)
        assert [h.chunk.content for h in hits] == ["ok"]
        assert hits[0].document.id == processed.id

        narrowed = DocumentFilter(document_ids=[pending.id], statuses=[DocumentStatus.PROCESSED])
        assert await repos.chunks.search_similar(1, [1.0, 0.0], narrowed) == []

    @pytest.mark.asyncio
    async def test_chunk_search_limit_and_tie_break(self):
        """Equal scores are ordered by chunk id and the limit is applied."""
        repos = build_memory_repositories()
        doc = Document(owner_id=1, title="t", status=DocumentStatus.PROCESSED)
        await repos.documents.create(doc)
        chunks = [DocumentChunk(document_id=doc.id, chunk_index=i, content=f"c{i}", token_count=1, embedding=[1.0, 1.0]) for i in range(4)]
        await repos.chunks.insert_batch(1, chunks)

        hits = await repos.chunks.search_similar(1, [1.0, 1.0], DocumentFilter(), limit=3)
        assert len(hits) == 3
        assert [str(h.chunk.id) for h in hits] == sorted(str(c.id) for c in chunks)[:3]

    @pytest.mark.asyncio
    async def test_query_logs_require_session_owner(self):
        """Logs of a foreign session are not listed."""
        repos = build_memory_repositories()
        session = QASession(owner_id=1)
        await repos.sessions.create(session)
        await repos.query_logs.append(QueryLog(session_id=session.id, query_text="q", response_text="a", latency_ms=1))

        assert len(await repos.query_logs.list_by_session(session.id, 1)) == 1
        assert await repos.query_logs.list_by_session(session.id, 2) == []
        assert await repos.sessions.find(session.id, 2) is None
        assert [s.id for s in await repos.sessions.list(1)] == [session.id]
