"""The per-question turn.

  resolve-session -> load-history -> embed-query -> retrieve
    -> build-prompt -> answer -> persist-side-effects -> respond

Steps up to retrieval raise AppError and are bounded by the request timeout.
The answer step never fails: LLM errors degrade to a heuristic answer. Side
effects after the answer are best-effort, each with its own time box.
"""

import asyncio
import time
import uuid
from dataclasses import dataclass, field

from services.upload_ask.HistoryService import HistoryService, build_semantic_query
from services.upload_ask.MemoryService import MemoryService
from services.upload_ask.RetrievalService import RetrievalService, embed_text, resolve_top_k
from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.helper.HelperAsync import run_best_effort, with_deadline
from shared.helper.HelperConfig import HelperConfig
from shared.helper.HelperText import snippet
from shared.models.config import UploadAskConfig
from shared.models.conversation import (
    ConversationMessage,
    LLMMessage,
    MessageRole,
    QASession,
    QueryLog,
    RetrievedMemory,
)
from shared.models.document import ChunkSource, RetrievedChunk
from shared.models.errors import INVALID_INPUT, NOT_FOUND, STORAGE_ERROR, UNAUTHORIZED, AppError
from shared.models.search import AskRequest, AskResponse
from shared.repositories.ConversationRepositoryInterface import QueryLogRepositoryInterface, SessionRepositoryInterface

SYSTEM_INSTRUCTION = (
    "You are a helpful assistant that answers questions using the provided context. "
    "Cite document and chunk numbers when using document content."
)
NO_CONTEXT_ANSWER = "No relevant context available to answer this question."


@dataclass
class TurnContext:
    """Everything gathered before the prompt is built."""

    session_id: uuid.UUID
    history: list[ConversationMessage] = field(default_factory=list)
    used_history_tokens: int = 0
    chunks: list[RetrievedChunk] = field(default_factory=list)
    memories: list[RetrievedMemory] = field(default_factory=list)


def build_context_block(chunks: list[RetrievedChunk], memories: list[RetrievedMemory]) -> str:
    parts = [f"Doc {rc.chunk.document_id} chunk {rc.chunk.chunk_index}:\n{rc.chunk.content}\n\n" for rc in chunks]
    if memories:
        parts.append("Memories:\n")
        parts.extend(f"- [{rm.memory.source.value}] {rm.memory.content}\n" for rm in memories)
        parts.append("\n")
    return "".join(parts)


def build_prompt(query: str, chunks: list[RetrievedChunk], memories: list[RetrievedMemory], history: list[ConversationMessage], include_history: bool) -> list[LLMMessage]:
    messages = [LLMMessage(role=MessageRole.SYSTEM.value, content=SYSTEM_INSTRUCTION)]
    context = build_context_block(chunks, memories)
    if context:
        messages.append(LLMMessage(role=MessageRole.SYSTEM.value, content="Context:\n" + context))
    if include_history:
        messages.extend(LLMMessage(role=msg.role.value, content=msg.content) for msg in history)
    messages.append(LLMMessage(role=MessageRole.USER.value, content=query))
    return messages


def fallback_answer(query: str, chunks: list[RetrievedChunk], memories: list[RetrievedMemory]) -> str:
    if not chunks and not memories:
        return NO_CONTEXT_ANSWER
    return f"{query}\n\nBased on {len(chunks) + len(memories)} context items."


class AskService:
    def __init__(
        self,
        helper_config: HelperConfig,
        config: UploadAskConfig,
        sessions: SessionRepositoryInterface,
        query_logs: QueryLogRepositoryInterface,
        history: HistoryService,
        memory: MemoryService,
        retrieval: RetrievalService,
        embed_client: EmbedClientInterface,
        llm_client: LLMClientInterface,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._config = config
        self._sessions = sessions
        self._query_logs = query_logs
        self._history = history
        self._memory = memory
        self._retrieval = retrieval
        self._embed_client = embed_client
        self._llm_client = llm_client

    ##########################################
    ################## ASK ###################
    ##########################################

    async def ask(self, owner_id: int, request: AskRequest) -> AskResponse:
        """Answer one question within a session.

        Args:
            owner_id (int): Authenticated user; 0 means no user.
            request (AskRequest): The question and per-request overrides.

        Returns:
            AskResponse: Session id, answer, ranked sources and memories, used history tokens and latency.

        Raises:
            AppError: unauthorized, invalid_input, not_found, embedding_error,
                storage_error or timeout. Nothing after retrieval raises.
        """
        if not owner_id:
            raise AppError(UNAUTHORIZED, "missing user")
        query = request.query.strip()
        if not query:
            raise AppError(INVALID_INPUT, "query cannot be empty")

        memory_cfg = self._config.memory
        top_k = resolve_top_k(request.top_k, self._config.max_retrieved)
        top_k_mems = request.top_k_mems if request.top_k_mems is not None else memory_cfg.top_k_mems
        max_history_tokens = request.max_history_tokens if request.max_history_tokens is not None else memory_cfg.max_history_tokens
        include_history = request.include_history if request.include_history is not None else memory_cfg.enabled

        started = time.perf_counter()
        turn = await with_deadline(
            self._prepare(owner_id, query, request, top_k, top_k_mems, max_history_tokens, include_history),
            request.timeout_seconds,
            "ask",
        )

        messages = build_prompt(query, turn.chunks, turn.memories, turn.history, include_history)
        answer = await self._answer(query, turn, messages, request.timeout_seconds)
        latency_ms = int((time.perf_counter() - started) * 1000)
        sources = [
            ChunkSource(
                document_id=rc.chunk.document_id,
                chunk_index=rc.chunk.chunk_index,
                score=rc.score,
                preview=snippet(rc.chunk.content, self._config.max_preview_chars),
            )
            for rc in turn.chunks
        ]

        await self._persist_side_effects(owner_id, turn, query, answer, latency_ms, sources)

        return AskResponse(
            session_id=turn.session_id,
            answer=answer,
            sources=sources,
            memories=turn.memories,
            used_history_tokens=turn.used_history_tokens,
            latency_ms=latency_ms,
        )

    async def _prepare(self, owner_id: int, query: str, request: AskRequest, top_k: int, top_k_mems: int, max_history_tokens: int, include_history: bool) -> TurnContext:
        session_id = await self.ensure_session(owner_id, request.session_id)
        turn = TurnContext(session_id=session_id)
        turn.history, turn.used_history_tokens = await self._history.load(owner_id, session_id, max_history_tokens, include_history)

        embedding = await embed_text(self._embed_client, build_semantic_query(query, turn.history))
        turn.chunks = await self._retrieval.search_chunks(owner_id, embedding, request.document_ids, top_k)
        turn.memories = await self._memory.search(owner_id, session_id, embedding, top_k_mems)
        return turn

    async def _answer(self, query: str, turn: TurnContext, messages: list[LLMMessage], timeout: float | None) -> str:
        try:
            if timeout is not None and timeout > 0:
                answer = await asyncio.wait_for(self._llm_client.do_chat(messages), timeout=timeout)
            else:
                answer = await self._llm_client.do_chat(messages)
        except Exception as e:
            self.logging.warning("LLM chat failed, falling back to heuristic answer: %s", e)
            return fallback_answer(query, turn.chunks, turn.memories)
        if not (answer or "").strip():
            self.logging.warning("LLM returned an empty answer, falling back to heuristic answer")
            return fallback_answer(query, turn.chunks, turn.memories)
        return answer

    async def _persist_side_effects(self, owner_id: int, turn: TurnContext, query: str, answer: str, latency_ms: int, sources: list[ChunkSource]) -> None:
        timeout = self._config.best_effort_timeout
        log = QueryLog(session_id=turn.session_id, query_text=query, response_text=answer, latency_ms=latency_ms, sources=sources)
        await run_best_effort(self._query_logs.append(log), timeout, "query log append", self.logging)
        await run_best_effort(self._history.append_turn(owner_id, turn.session_id, query, answer), timeout, "history append", self.logging)
        await run_best_effort(self._memory.persist_turn(owner_id, turn.session_id, query, answer), timeout, "turn memory", self.logging)
        await run_best_effort(
            self._memory.maybe_trigger_summary(owner_id, turn.session_id, len(turn.history) + 2),
            timeout,
            "summary trigger",
            self.logging,
        )

    ##########################################
    ############### SESSIONS #################
    ##########################################

    async def ensure_session(self, owner_id: int, requested: uuid.UUID | None) -> uuid.UUID:
        """Return the requested session if the owner has it, else create a new one.

        Raises:
            AppError: not_found if the requested session is missing or foreign.
        """
        if requested is not None:
            session = await self._find_session(owner_id, requested)
            return session.id
        session = QASession(owner_id=owner_id)
        try:
            await self._sessions.create(session)
        except Exception as e:
            self.logging.warning("Failed to persist new session %s: %s", session.id, e)
        return session.id

    async def _find_session(self, owner_id: int, session_id: uuid.UUID) -> QASession:
        try:
            session = await self._sessions.find(session_id, owner_id)
        except Exception as e:
            raise AppError(STORAGE_ERROR, "failed to load session", e)
        if session is None or session.owner_id != owner_id:
            raise AppError(NOT_FOUND, "session not found")
        return session

    async def list_sessions(self, owner_id: int) -> list[QASession]:
        if not owner_id:
            raise AppError(UNAUTHORIZED, "missing user")
        try:
            return await self._sessions.list(owner_id)
        except Exception as e:
            raise AppError(STORAGE_ERROR, "failed to list sessions", e)

    async def list_session_logs(self, owner_id: int, session_id: uuid.UUID) -> list[QueryLog]:
        await self._find_session(owner_id, session_id)
        try:
            return await self._query_logs.list_by_session(session_id, owner_id)
        except Exception as e:
            raise AppError(STORAGE_ERROR, "failed to list session logs", e)
