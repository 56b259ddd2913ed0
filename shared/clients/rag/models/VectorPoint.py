"""Payload models stored alongside each vector in the RAG backend.

Chunks and memories share one collection and are told apart by ``kind``.
owner_id is mandatory on both and enforced as a filter on every search,
scroll and delete.
"""

import uuid

from pydantic import BaseModel

POINT_KIND_CHUNK = "chunk"
POINT_KIND_MEMORY = "memory"

# payload fields used in filters, with their Qdrant index type
PAYLOAD_INDEXES = {
    "kind": "keyword",
    "owner_id": "integer",
    "document_id": "keyword",
    "session_id": "keyword",
}


def make_point_id(*parts: object) -> str:
    """Build a deterministic UUID5 point id from the given key parts.

    The same key always maps to the same point id, so upserting it again
    overwrites instead of duplicating.
    """
    key = ":".join(str(p) for p in parts)
    return str(uuid.uuid5(uuid.NAMESPACE_OID, key))


class ChunkPoint(BaseModel):
    """Metadata of an embedded document chunk.

    Attributes:
        kind:         Always "chunk".
        owner_id:     Owner of the document, enforced as a filter on every query.
        chunk_id:     Id of the DocumentChunk.
        document_id:  Id of the owning Document.
        chunk_index:  Zero-based position of this chunk within the document.
        content:      Raw text content of this chunk.
        token_count:  Token count as measured by the chunker.
        created_at:   ISO-8601 creation timestamp.
    """

    kind: str = POINT_KIND_CHUNK
    owner_id: int
    chunk_id: str
    document_id: str
    chunk_index: int
    content: str
    token_count: int
    created_at: str


class MemoryPoint(BaseModel):
    """Metadata of a long-term memory record.

    The point id is derived from (owner_id, session_id, source, content), which
    makes the upsert key of a memory identical to its storage key.
    """

    kind: str = POINT_KIND_MEMORY
    owner_id: int
    session_id: str
    source: str
    content: str
    importance: int = 0
    created_at: str
    created_ts: float
