"""Pydantic models for sessions, transcripts and long-term memories."""

import uuid
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from shared.models.document import ChunkSource, utc_now


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class MemorySource(str, Enum):
    QA_TURN = "qa_turn"
    SUMMARY = "summary"
    MANUAL = "manual"


class QASession(BaseModel):
    """Groups the turns of one user. Created lazily on the first question."""

    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    owner_id: int
    created_at: datetime = Field(default_factory=utc_now)


class ConversationMessage(BaseModel):
    """One entry of the append-only session transcript."""

    id: int = 0
    session_id: uuid.UUID
    owner_id: int
    role: MessageRole
    content: str
    token_count: int = 0
    created_at: datetime = Field(default_factory=utc_now)


class MemoryRecord(BaseModel):
    """A durable, embeddable note retained beyond the raw transcript.

    At most one record exists per (owner_id, session_id, source, content);
    upserts on that key replace embedding, importance and created_at.
    """

    id: int | str = 0
    session_id: uuid.UUID
    owner_id: int
    source: MemorySource
    content: str
    embedding: list[float] | None = None
    importance: int = 0
    created_at: datetime = Field(default_factory=utc_now)

    def dedup_key(self) -> tuple[int, uuid.UUID, str, str]:
        return (self.owner_id, self.session_id, self.source.value, self.content)


class RetrievedMemory(BaseModel):
    memory: MemoryRecord
    score: float


class QueryLog(BaseModel):
    """Write-once audit record of one question/answer exchange."""

    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    session_id: uuid.UUID
    query_text: str
    response_text: str
    latency_ms: int
    sources: list[ChunkSource] = []
    created_at: datetime = Field(default_factory=utc_now)


class LLMMessage(BaseModel):
    """Simplified chat message in OpenAI format."""

    role: str
    content: str
