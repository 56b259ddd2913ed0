"""Pydantic models for uploaded documents and their chunks.

Hierarchy:
  Document        : user scoped file submission and its pipeline status.
  FileObject      : blob metadata recorded after the upload was stored.
  DocumentChunk   : embedded slice of a document, created once during processing.
  RetrievedChunk  : transient search hit (chunk + owning document + score).
"""

import uuid
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class DocumentStatus(str, Enum):
    """Pipeline progress of a document. Transitions are monotone:
    pending -> processing -> processed | failed.
    """

    PENDING = "pending"
    PROCESSING = "processing"
    PROCESSED = "processed"
    FAILED = "failed"


class DocumentSource(str, Enum):
    UPLOAD = "upload"
    URL = "url"


class Document(BaseModel):
    """A user scoped file submission.

    The owner_id field is mandatory and enforced on every repository read.
    """

    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    owner_id: int
    title: str
    source: DocumentSource = DocumentSource.UPLOAD
    status: DocumentStatus = DocumentStatus.PENDING
    failure_reason: str | None = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class StoredObject(BaseModel):
    """Metadata returned by an object storage backend after a put."""

    key: str
    size: int
    mime_type: str
    etag: str


class FileObject(BaseModel):
    """Uploaded blob metadata, one per document."""

    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    document_id: uuid.UUID
    storage_key: str
    size_bytes: int
    mime_type: str
    etag: str
    created_at: datetime = Field(default_factory=utc_now)


class ChunkCandidate(BaseModel):
    """Chunker output before embedding. index is 0-based and dense."""

    index: int
    content: str
    token_count: int


class DocumentChunk(BaseModel):
    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    document_id: uuid.UUID
    chunk_index: int
    content: str
    token_count: int
    embedding: list[float] = []
    created_at: datetime = Field(default_factory=utc_now)


class DocumentFilter(BaseModel):
    """Restricts a lookup to a set of documents and/or statuses. Empty lists mean no restriction."""

    document_ids: list[uuid.UUID] = []
    statuses: list[DocumentStatus] = []


class RetrievedChunk(BaseModel):
    """A chunk search hit. Higher score means more relevant."""

    chunk: DocumentChunk
    document: Document | None = None
    score: float


class ChunkSource(BaseModel):
    """Citation returned to the caller for each retrieved chunk."""

    document_id: uuid.UUID
    chunk_index: int
    score: float
    preview: str
