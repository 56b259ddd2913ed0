"""Persistence contracts for sessions, query logs, transcripts and memories.

Every read takes an owner id and must only return rows owned by it.
"""

import uuid
from abc import ABC, abstractmethod

from shared.models.conversation import ConversationMessage, MemoryRecord, QASession, QueryLog, RetrievedMemory


class SessionRepositoryInterface(ABC):
    @abstractmethod
    async def create(self, session: QASession) -> None:
        pass

    @abstractmethod
    async def find(self, session_id: uuid.UUID, owner_id: int) -> QASession | None:
        """Return the session, or None if it does not exist or belongs to another owner."""
        pass

    @abstractmethod
    async def list(self, owner_id: int) -> list[QASession]:
        """Return the owner's sessions, newest first."""
        pass


class QueryLogRepositoryInterface(ABC):
    @abstractmethod
    async def append(self, log: QueryLog) -> None:
        pass

    @abstractmethod
    async def list_by_session(self, session_id: uuid.UUID, owner_id: int) -> list[QueryLog]:
        """Return the session's logs in insertion order."""
        pass


class MessageLogInterface(ABC):
    @abstractmethod
    async def append(self, msg: ConversationMessage) -> None:
        """Append one message to the session transcript."""
        pass

    @abstractmethod
    async def list_recent(self, owner_id: int, session_id: uuid.UUID, max_tokens: int, max_messages: int) -> list[ConversationMessage]:
        """Return the most recent messages within the budgets, oldest first.

        Messages are scanned newest-first; scanning stops as soon as the next
        message would push the token sum above max_tokens, or max_messages
        have been collected. A budget <= 0 is unbounded.
        """
        pass


class MemoryStoreInterface(ABC):
    @abstractmethod
    async def upsert(self, mem: MemoryRecord) -> None:
        """Insert a memory, or replace embedding, importance and created_at of the
        record with the same (owner_id, session_id, source, content)."""
        pass

    @abstractmethod
    async def search(self, owner_id: int, session_id: uuid.UUID, embedding: list[float], k: int) -> list[RetrievedMemory]:
        """Return at most k memories of the session, best first. Records without an embedding are skipped."""
        pass

    @abstractmethod
    async def prune(self, owner_id: int, session_id: uuid.UUID | None, limit: int) -> None:
        """Keep only the limit best records in scope, ranked by importance
        then recency (both descending). The scope is one session, or every
        session of the owner when session_id is None. limit <= 0 is a no-op."""
        pass
