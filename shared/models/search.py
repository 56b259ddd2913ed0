"""Pydantic models for upload and ask requests and responses."""

import uuid

from pydantic import BaseModel

from shared.models.conversation import RetrievedMemory
from shared.models.document import ChunkSource, Document


class UploadRequest(BaseModel):
    """A file submission. Empty filename and title are defaulted by the ingest service."""

    filename: str = ""
    title: str = ""
    mime_type: str = ""
    content: bytes


class UploadResponse(BaseModel):
    document: Document


class AskRequest(BaseModel):
    """Incoming question. Optional fields override the configured defaults for this turn."""

    query: str
    session_id: uuid.UUID | None = None
    document_ids: list[uuid.UUID] = []
    top_k: int = 0
    top_k_mems: int | None = None
    max_history_tokens: int | None = None
    include_history: bool | None = None
    timeout_seconds: float | None = None


class AskResponse(BaseModel):
    """Response payload returned to the frontend after a turn."""

    session_id: uuid.UUID
    answer: str
    sources: list[ChunkSource]
    memories: list[RetrievedMemory] = []
    used_history_tokens: int
    latency_ms: int
