"""Document ingestion: upload validation, blob hand-off and the processing pipeline.

Status machine per document:
  pending -> processing -> processed
  pending -> processing -> failed (with a short reason)
"""

import uuid

from services.upload_ask.Chunker import SimpleChunker
from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.clients.queue.QueueClientInterface import JOB_PROCESS_DOCUMENT, QueueClientInterface
from shared.clients.storage.StorageClientInterface import StorageClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.helper.HelperText import detect_mime_type, sanitize_filename
from shared.models.config import UploadAskConfig
from shared.models.document import (
    Document,
    DocumentChunk,
    DocumentFilter,
    DocumentSource,
    DocumentStatus,
    FileObject,
    utc_now,
)
from shared.models.errors import (
    EMBEDDING_ERROR,
    INVALID_INPUT,
    NOT_FOUND,
    STORAGE_ERROR,
    UNAUTHORIZED,
    AppError,
)
from shared.models.search import UploadRequest, UploadResponse
from shared.repositories.DocumentRepositoryInterface import (
    ChunkRepositoryInterface,
    DocumentRepositoryInterface,
    FileObjectRepositoryInterface,
)

DEFAULT_FILENAME = "document.txt"

REASON_STORAGE = "failed to read storage"
REASON_NO_CONTENT = "no content to process"
REASON_EMBEDDING = "embedding failed"
REASON_PERSIST = "persisting chunks failed"
REASON_FILE_METADATA = "failed to load file metadata"
REASON_FILE_MISSING = "file not found"
REASON_FINALIZE = "finalizing document failed"


class IngestService:
    def __init__(
        self,
        helper_config: HelperConfig,
        config: UploadAskConfig,
        documents: DocumentRepositoryInterface,
        files: FileObjectRepositoryInterface,
        chunks: ChunkRepositoryInterface,
        storage_client: StorageClientInterface,
        embed_client: EmbedClientInterface,
        chunker: SimpleChunker,
        queue_client: QueueClientInterface | None = None,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._config = config
        self._documents = documents
        self._files = files
        self._chunks = chunks
        self._storage = storage_client
        self._embed_client = embed_client
        self._chunker = chunker
        self._queue = queue_client

    ##########################################
    ################ UPLOAD ##################
    ##########################################

    async def upload(self, owner_id: int, request: UploadRequest) -> UploadResponse:
        """Validate and store an upload, then enqueue its processing.

        Args:
            owner_id (int): Authenticated user; 0 means no user.
            request (UploadRequest): The submitted file.

        Returns:
            UploadResponse: The created document, still in "pending".

        Raises:
            AppError: unauthorized, invalid_input or storage_error.
        """
        if not owner_id:
            raise AppError(UNAUTHORIZED, "missing user")
        if not request.content:
            raise AppError(INVALID_INPUT, "file content cannot be empty")
        if self._config.max_file_bytes > 0 and len(request.content) > self._config.max_file_bytes:
            raise AppError(INVALID_INPUT, "file exceeds maximum allowed size")

        filename = request.filename.strip() or DEFAULT_FILENAME
        title = request.title.strip() or filename
        now = utc_now()
        doc = Document(owner_id=owner_id, title=title, source=DocumentSource.UPLOAD, created_at=now, updated_at=now)
        try:
            await self._documents.create(doc)
        except Exception as e:
            raise AppError(STORAGE_ERROR, "failed to persist document", e)

        mime_type = request.mime_type or detect_mime_type(filename, request.content)
        storage_key = f"uploads/{owner_id}/{doc.id}/{sanitize_filename(filename)}"
        try:
            stored = await self._storage.do_put(storage_key, request.content, mime_type)
        except Exception as e:
            raise AppError(STORAGE_ERROR, "failed to store file", e)

        file = FileObject(
            document_id=doc.id,
            storage_key=stored.key,
            size_bytes=stored.size,
            mime_type=stored.mime_type,
            etag=stored.etag,
            created_at=now,
        )
        try:
            await self._files.create(file)
        except Exception as e:
            raise AppError(STORAGE_ERROR, "failed to persist file metadata", e)

        self.logging.info("Stored upload '%s' as document %s (%d bytes)", filename, doc.id, stored.size)
        if self._queue is not None:
            try:
                await self._queue.do_enqueue(JOB_PROCESS_DOCUMENT, {"document_id": str(doc.id), "user_id": owner_id})
            except Exception as e:
                self.logging.warning("Enqueue of %s failed for document %s: %s", JOB_PROCESS_DOCUMENT, doc.id, e)

        return UploadResponse(document=doc)

    ##########################################
    ############### PIPELINE #################
    ##########################################

    async def process_document(self, doc_id: uuid.UUID, owner_id: int) -> None:
        """Chunk, embed and persist a stored document.

        Returns immediately if the document is already processed. Any failure
        after the "processing" transition marks the document failed with a
        reason and re-raises; nothing is retried here.

        Raises:
            AppError: not_found, storage_error, invalid_input or embedding_error.
        """
        self.logging.info("Processing document %s for user %d", doc_id, owner_id)
        try:
            doc = await self._documents.get(doc_id, owner_id)
        except Exception as e:
            raise AppError(STORAGE_ERROR, "failed to load document", e)
        if doc is None:
            raise AppError(NOT_FOUND, "document not found")
        if doc.status == DocumentStatus.PROCESSED:
            self.logging.debug("Document %s already processed, skipping", doc_id)
            return

        try:
            await self._documents.update_status(doc_id, DocumentStatus.PROCESSING)
        except Exception as e:
            raise AppError(STORAGE_ERROR, "failed to update status", e)

        try:
            file = await self._files.find_by_document(doc_id)
        except Exception as e:
            await self._fail(doc_id, REASON_FILE_METADATA)
            raise AppError(STORAGE_ERROR, "failed to load file metadata", e)
        if file is None:
            await self._fail(doc_id, REASON_FILE_MISSING)
            raise AppError(NOT_FOUND, "file not found for document")

        try:
            raw = await self._storage.do_get(file.storage_key)
        except Exception as e:
            await self._fail(doc_id, REASON_STORAGE)
            raise AppError(STORAGE_ERROR, "failed to fetch stored file", e)

        candidates = self._chunker.chunk(raw.decode("utf-8", errors="replace"))
        if not candidates:
            await self._fail(doc_id, REASON_NO_CONTENT)
            raise AppError(INVALID_INPUT, REASON_NO_CONTENT)

        try:
            embeddings = await self._embed_client.do_embed([c.content for c in candidates])
        except Exception as e:
            await self._fail(doc_id, REASON_EMBEDDING)
            raise AppError(EMBEDDING_ERROR, "failed to embed chunks", e)

        now = utc_now()
        chunks = [
            DocumentChunk(
                document_id=doc_id,
                chunk_index=c.index,
                content=c.content,
                token_count=c.token_count,
                embedding=list(embedding),
                created_at=now,
            )
            for c, embedding in zip(candidates, embeddings)
        ]
        try:
            await self._chunks.insert_batch(owner_id, chunks)
        except Exception as e:
            await self._fail(doc_id, REASON_PERSIST)
            raise AppError(STORAGE_ERROR, "failed to persist chunks", e)

        try:
            await self._documents.update_status(doc_id, DocumentStatus.PROCESSED)
        except Exception as e:
            await self._fail(doc_id, REASON_FINALIZE)
            raise AppError(STORAGE_ERROR, "failed to finalize document", e)
        self.logging.info("Document %s processed into %d chunks", doc_id, len(chunks), color="green")

    async def _fail(self, doc_id: uuid.UUID, reason: str) -> None:
        self.logging.error("Document %s failed: %s", doc_id, reason)
        try:
            await self._documents.update_status(doc_id, DocumentStatus.FAILED, reason)
        except Exception as e:
            self.logging.warning("Could not mark document %s as failed: %s", doc_id, e)

    ##########################################
    ################# READ ###################
    ##########################################

    async def list_documents(self, owner_id: int, filter: DocumentFilter | None = None) -> list[Document]:
        if not owner_id:
            raise AppError(UNAUTHORIZED, "missing user")
        try:
            return await self._documents.list(owner_id, filter)
        except Exception as e:
            raise AppError(STORAGE_ERROR, "failed to list documents", e)

    async def get_document(self, owner_id: int, doc_id: uuid.UUID) -> Document:
        try:
            doc = await self._documents.get(doc_id, owner_id)
        except Exception as e:
            raise AppError(STORAGE_ERROR, "failed to fetch document", e)
        if doc is None:
            raise AppError(NOT_FOUND, "document not found")
        return doc
