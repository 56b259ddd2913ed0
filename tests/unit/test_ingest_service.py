"""Tests for upload validation and the document processing pipeline."""

import uuid

import pytest

from shared.clients.queue.QueueClientInterface import JOB_PROCESS_DOCUMENT
from shared.models.document import Document, DocumentFilter, DocumentStatus
from shared.models.errors import EMBEDDING_ERROR, INVALID_INPUT, NOT_FOUND, STORAGE_ERROR, UNAUTHORIZED, AppError
from shared.models.search import UploadRequest
from shared.repositories.memory.DocumentRepositoryMemory import ChunkRepositoryMemory

TEXT = "Solar panels convert sunlight into electricity.\n\nInverters turn DC into AC."


class CountingChunkRepository(ChunkRepositoryMemory):
    def __init__(self, documents, fail: bool = False):
        super().__init__(documents)
        self.insert_calls = 0
        self.fail = fail

    async def insert_batch(self, owner_id, chunks):
        self.insert_calls += 1
        if self.fail:
            raise RuntimeError("disk full")
        await super().insert_batch(owner_id, chunks)


@pytest.fixture
def counting_chunks(repositories) -> CountingChunkRepository:
    repositories.chunks = CountingChunkRepository(repositories.documents)
    return repositories.chunks


class TestUpload:
    """Tests for IngestService.upload."""

    @pytest.mark.asyncio
    async def test_upload_stores_blob_and_enqueues(self, make_app, config, queue_client, storage_client, repositories, owner_id):
        """A valid upload creates a pending document, a blob, file metadata and a job."""
        app = make_app(config)
        response = await app.ingest.upload(owner_id, UploadRequest(filename="my notes.txt", content=TEXT.encode()))
        doc = response.document

        assert doc.status == DocumentStatus.PENDING
        assert doc.title == "my notes.txt"
        file = await repositories.files.find_by_document(doc.id)
        assert file.storage_key == f"uploads/{owner_id}/{doc.id}/my_notes.txt"
        assert file.size_bytes == len(TEXT.encode())
        assert file.mime_type == "text/plain"
        assert await storage_client.do_get(file.storage_key) == TEXT.encode()
        assert queue_client.jobs == [(JOB_PROCESS_DOCUMENT, {"document_id": str(doc.id), "user_id": owner_id})]

    @pytest.mark.asyncio
    async def test_upload_defaults(self, make_app, config, repositories, owner_id):
        """Missing filename and title default to document.txt."""
        app = make_app(config)
        doc = (await app.ingest.upload(owner_id, UploadRequest(content=b"hello"))).document
        assert doc.title == "document.txt"
        file = await repositories.files.find_by_document(doc.id)
        assert file.storage_key.endswith("/document.txt")

    @pytest.mark.asyncio
    async def test_upload_validation(self, make_app, config, owner_id):
        """Missing owner, empty content and oversize files are rejected."""
        app = make_app(config)
        with pytest.raises(AppError) as exc_info:
            await app.ingest.upload(0, UploadRequest(content=b"x"))
        assert exc_info.value.code == UNAUTHORIZED

        with pytest.raises(AppError) as exc_info:
            await app.ingest.upload(owner_id, UploadRequest(content=b""))
        assert exc_info.value.code == INVALID_INPUT

        with pytest.raises(AppError) as exc_info:
            await app.ingest.upload(owner_id, UploadRequest(content=b"x" * (config.max_file_bytes + 1)))
        assert exc_info.value.code == INVALID_INPUT

    @pytest.mark.asyncio
    async def test_enqueue_failure_keeps_document_pending(self, make_app, config, queue_client, repositories, owner_id):
        """A queue outage is logged; the upload still succeeds."""
        queue_client.error = RuntimeError("queue down")
        app = make_app(config)
        doc = (await app.ingest.upload(owner_id, UploadRequest(content=b"hello"))).document
        assert (await repositories.documents.get(doc.id, owner_id)).status == DocumentStatus.PENDING


class TestProcessDocument:
    """Tests for IngestService.process_document."""

    @pytest.mark.asyncio
    async def test_process_marks_processed(self, make_app, config, repositories, counting_chunks, owner_id):
        """Chunks are embedded and stored and the document becomes processed."""
        app = make_app(config)
        doc = (await app.ingest.upload(owner_id, UploadRequest(filename="a.txt", content=TEXT.encode()))).document
        await app.ingest.process_document(doc.id, owner_id)

        stored = await repositories.documents.get(doc.id, owner_id)
        assert stored.status == DocumentStatus.PROCESSED
        assert stored.failure_reason is None
        hits = await repositories.chunks.search_similar(owner_id, [1.0] * 32, DocumentFilter())
        assert len(hits) >= 1
        assert all(len(h.chunk.embedding) == 32 for h in hits)
        assert sorted(h.chunk.chunk_index for h in hits) == list(range(len(hits)))

    @pytest.mark.asyncio
    async def test_process_is_idempotent(self, make_app, config, counting_chunks, owner_id):
        """Processing a processed document writes nothing."""
        app = make_app(config)
        doc = (await app.ingest.upload(owner_id, UploadRequest(content=TEXT.encode()))).document
        await app.ingest.process_document(doc.id, owner_id)
        await app.ingest.process_document(doc.id, owner_id)
        assert counting_chunks.insert_calls == 1

    @pytest.mark.asyncio
    async def test_foreign_document_not_found(self, make_app, config, owner_id, other_owner_id):
        """Another owner cannot process the document."""
        app = make_app(config)
        doc = (await app.ingest.upload(owner_id, UploadRequest(content=b"hello"))).document
        with pytest.raises(AppError) as exc_info:
            await app.ingest.process_document(doc.id, other_owner_id)
        assert exc_info.value.code == NOT_FOUND

    @pytest.mark.asyncio
    async def test_blank_content_fails(self, make_app, config, repositories, owner_id):
        """Whitespace-only text fails with "no content to process"."""
        app = make_app(config)
        doc = (await app.ingest.upload(owner_id, UploadRequest(content=b"  \n\n  "))).document
        with pytest.raises(AppError) as exc_info:
            await app.ingest.process_document(doc.id, owner_id)
        assert exc_info.value.code == INVALID_INPUT
        stored = await repositories.documents.get(doc.id, owner_id)
        assert stored.status == DocumentStatus.FAILED
        assert stored.failure_reason == "no content to process"

    @pytest.mark.asyncio
    async def test_embedding_failure_fails_document(self, make_app, config, repositories, embed_client, owner_id):
        """Embedding errors mark the document failed without retry."""
        app = make_app(config)
        doc = (await app.ingest.upload(owner_id, UploadRequest(content=TEXT.encode()))).document
        embed_client.fail = True
        with pytest.raises(AppError) as exc_info:
            await app.ingest.process_document(doc.id, owner_id)
        assert exc_info.value.code == EMBEDDING_ERROR
        assert len(embed_client.calls) == 1
        stored = await repositories.documents.get(doc.id, owner_id)
        assert stored.status == DocumentStatus.FAILED
        assert stored.failure_reason == "embedding failed"

    @pytest.mark.asyncio
    async def test_missing_blob_fails_document(self, make_app, config, repositories, storage_client, owner_id):
        """A vanished blob fails with "failed to read storage"."""
        app = make_app(config)
        doc = (await app.ingest.upload(owner_id, UploadRequest(content=TEXT.encode()))).document
        file = await repositories.files.find_by_document(doc.id)
        await storage_client.do_delete(file.storage_key)
        with pytest.raises(AppError) as exc_info:
            await app.ingest.process_document(doc.id, owner_id)
        assert exc_info.value.code == STORAGE_ERROR
        assert (await repositories.documents.get(doc.id, owner_id)).failure_reason == "failed to read storage"

    @pytest.mark.asyncio
    async def test_missing_file_record_fails_document(self, make_app, config, repositories, owner_id):
        """A document without file metadata ends up failed, not stuck in processing."""
        app = make_app(config)
        doc = Document(owner_id=owner_id, title="orphan")
        await repositories.documents.create(doc)
        with pytest.raises(AppError) as exc_info:
            await app.ingest.process_document(doc.id, owner_id)
        assert exc_info.value.code == NOT_FOUND
        stored = await repositories.documents.get(doc.id, owner_id)
        assert stored.status == DocumentStatus.FAILED
        assert stored.failure_reason == "file not found"

    @pytest.mark.asyncio
    async def test_file_lookup_error_fails_document(self, make_app, config, repositories, owner_id, monkeypatch):
        """Errors reading file metadata fail the document."""
        app = make_app(config)
        doc = (await app.ingest.upload(owner_id, UploadRequest(content=TEXT.encode()))).document

        async def broken_lookup(doc_id):
            raise RuntimeError("connection reset")

        monkeypatch.setattr(repositories.files, "find_by_document", broken_lookup)
        with pytest.raises(AppError) as exc_info:
            await app.ingest.process_document(doc.id, owner_id)
        assert exc_info.value.code == STORAGE_ERROR
        stored = await repositories.documents.get(doc.id, owner_id)
        assert stored.status == DocumentStatus.FAILED
        assert stored.failure_reason == "failed to load file metadata"

    @pytest.mark.asyncio
    async def test_finalize_failure_then_reprocess(self, make_app, config, repositories, counting_chunks, owner_id, monkeypatch):
        """A failed final status write fails the document; processing again keeps chunk indexes dense."""
        app = make_app(config)
        doc = (await app.ingest.upload(owner_id, UploadRequest(content=TEXT.encode()))).document
        update_status = repositories.documents.update_status
        calls = {"processed": 0}

        async def flaky_update(doc_id, status, failure_reason=None):
            if status == DocumentStatus.PROCESSED:
                calls["processed"] += 1
                if calls["processed"] == 1:
                    raise RuntimeError("write conflict")
            await update_status(doc_id, status, failure_reason)

        monkeypatch.setattr(repositories.documents, "update_status", flaky_update)
        with pytest.raises(AppError) as exc_info:
            await app.ingest.process_document(doc.id, owner_id)
        assert exc_info.value.code == STORAGE_ERROR
        stored = await repositories.documents.get(doc.id, owner_id)
        assert stored.status == DocumentStatus.FAILED
        assert stored.failure_reason == "finalizing document failed"

        await app.ingest.process_document(doc.id, owner_id)

        assert (await repositories.documents.get(doc.id, owner_id)).status == DocumentStatus.PROCESSED
        assert counting_chunks.insert_calls == 2
        hits = await repositories.chunks.search_similar(owner_id, [1.0] * 32, DocumentFilter())
        assert sorted(h.chunk.chunk_index for h in hits) == list(range(len(hits)))

    @pytest.mark.asyncio
    async def test_persist_failure_fails_document(self, make_app, config, repositories, owner_id):
        """Chunk persistence errors fail the document."""
        repositories.chunks = CountingChunkRepository(repositories.documents, fail=True)
        app = make_app(config)
        doc = (await app.ingest.upload(owner_id, UploadRequest(content=TEXT.encode()))).document
        with pytest.raises(AppError) as exc_info:
            await app.ingest.process_document(doc.id, owner_id)
        assert exc_info.value.code == STORAGE_ERROR
        assert (await repositories.documents.get(doc.id, owner_id)).failure_reason == "persisting chunks failed"


class TestReadApis:
    """Tests for document listing."""

    @pytest.mark.asyncio
    async def test_list_and_get(self, make_app, config, owner_id, other_owner_id):
        """Owners only see their own documents."""
        app = make_app(config)
        doc = (await app.ingest.upload(owner_id, UploadRequest(content=b"hello"))).document
        assert [d.id for d in await app.ingest.list_documents(owner_id)] == [doc.id]
        assert await app.ingest.list_documents(other_owner_id) == []
        assert (await app.ingest.get_document(owner_id, doc.id)).id == doc.id
        with pytest.raises(AppError) as exc_info:
            await app.ingest.get_document(other_owner_id, doc.id)
        assert exc_info.value.code == NOT_FOUND
        with pytest.raises(AppError):
            await app.ingest.get_document(owner_id, uuid.uuid4())
