"""In-process session, query log, transcript and memory stores."""

import itertools
import threading
import uuid

from shared.helper.HelperVector import cosine_similarity, rank_key
from shared.models.conversation import ConversationMessage, MemoryRecord, QASession, QueryLog, RetrievedMemory
from shared.repositories.ConversationRepositoryInterface import (
    MemoryStoreInterface,
    MessageLogInterface,
    QueryLogRepositoryInterface,
    SessionRepositoryInterface,
)


class SessionRepositoryMemory(SessionRepositoryInterface):
    def __init__(self):
        self._lock = threading.RLock()
        self._sessions: dict[uuid.UUID, QASession] = {}

    async def create(self, session: QASession) -> None:
        with self._lock:
            self._sessions[session.id] = session.model_copy()

    async def find(self, session_id: uuid.UUID, owner_id: int) -> QASession | None:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None or session.owner_id != owner_id:
                return None
            return session.model_copy()

    async def list(self, owner_id: int) -> list[QASession]:
        with self._lock:
            sessions = [s.model_copy() for s in self._sessions.values() if s.owner_id == owner_id]
        sessions.sort(key=lambda s: (s.created_at, str(s.id)), reverse=True)
        return sessions


class QueryLogRepositoryMemory(QueryLogRepositoryInterface):
    """Query logs carry no owner, so ownership is checked on the session."""

    def __init__(self, sessions: SessionRepositoryInterface):
        self._lock = threading.RLock()
        self._logs: dict[uuid.UUID, list[QueryLog]] = {}
        self._sessions = sessions

    async def append(self, log: QueryLog) -> None:
        with self._lock:
            self._logs.setdefault(log.session_id, []).append(log.model_copy(deep=True))

    async def list_by_session(self, session_id: uuid.UUID, owner_id: int) -> list[QueryLog]:
        if await self._sessions.find(session_id, owner_id) is None:
            return []
        with self._lock:
            return [log.model_copy(deep=True) for log in self._logs.get(session_id, [])]


class MessageLogMemory(MessageLogInterface):
    def __init__(self):
        self._lock = threading.RLock()
        self._messages: dict[uuid.UUID, list[ConversationMessage]] = {}
        self._ids = itertools.count(1)

    async def append(self, msg: ConversationMessage) -> None:
        with self._lock:
            stored = msg.model_copy()
            stored.id = next(self._ids)
            self._messages.setdefault(msg.session_id, []).append(stored)

    async def list_recent(self, owner_id: int, session_id: uuid.UUID, max_tokens: int, max_messages: int) -> list[ConversationMessage]:
        with self._lock:
            transcript = list(self._messages.get(session_id, []))
        result: list[ConversationMessage] = []
        total = 0
        for msg in reversed(transcript):
            if msg.owner_id != owner_id:
                continue
            if max_messages > 0 and len(result) >= max_messages:
                break
            if max_tokens > 0 and total + msg.token_count > max_tokens:
                break
            total += msg.token_count
            result.append(msg.model_copy())
        result.reverse()
        return result


class MemoryStoreMemory(MemoryStoreInterface):
    def __init__(self):
        self._lock = threading.RLock()
        self._records: dict[tuple, MemoryRecord] = {}
        self._ids = itertools.count(1)

    async def upsert(self, mem: MemoryRecord) -> None:
        key = mem.dedup_key()
        with self._lock:
            existing = self._records.get(key)
            if existing is not None:
                existing.embedding = list(mem.embedding) if mem.embedding is not None else None
                existing.importance = mem.importance
                existing.created_at = mem.created_at
                return
            stored = mem.model_copy(deep=True)
            stored.id = next(self._ids)
            self._records[key] = stored

    async def search(self, owner_id: int, session_id: uuid.UUID, embedding: list[float], k: int) -> list[RetrievedMemory]:
        if k <= 0 or not embedding:
            return []
        with self._lock:
            candidates = [
                r.model_copy(deep=True)
                for r in self._records.values()
                if r.owner_id == owner_id and r.session_id == session_id and r.embedding
            ]
        hits = [RetrievedMemory(memory=r, score=cosine_similarity(embedding, r.embedding)) for r in candidates]
        hits.sort(key=lambda h: rank_key(h.score, h.memory.id))
        return hits[:k]

    async def prune(self, owner_id: int, session_id: uuid.UUID | None, limit: int) -> None:
        if limit <= 0:
            return
        with self._lock:
            in_scope = [
                (key, record)
                for key, record in self._records.items()
                if record.owner_id == owner_id and (session_id is None or record.session_id == session_id)
            ]
            if len(in_scope) <= limit:
                return
            in_scope.sort(key=lambda e: (e[1].importance, e[1].created_at, e[1].id), reverse=True)
            for key, _ in in_scope[limit:]:
                del self._records[key]
