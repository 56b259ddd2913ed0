"""Long-term memory: turn memories, periodic summaries and pruning.

Memory is advisory. Every operation here logs and swallows its own failures
so a broken memory backend never fails the turn that touches it.
"""

import uuid

from services.upload_ask.RetrievalService import embed_text
from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.clients.queue.QueueClientInterface import JOB_SUMMARIZE_SESSION, QueueClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import MemoryConfig
from shared.models.conversation import LLMMessage, MemoryRecord, MemorySource, MessageRole, RetrievedMemory
from shared.repositories.ConversationRepositoryInterface import MemoryStoreInterface, MessageLogInterface

TURN_IMPORTANCE = 0
SUMMARY_IMPORTANCE = 1
SUMMARY_MAX_MESSAGES = 200
SUMMARY_DEFAULT_MAX_TOKENS = 800
SUMMARY_INSTRUCTION = (
    "Summarize the conversation into a concise factual note (<=120 words) suitable for long-term recall. "
    "Omit greetings or fluff; keep actionable facts, questions, and answers."
)


def format_turn_memory(query: str, answer: str) -> str:
    return f"[Q]\n{query}\n[Answer]\n{answer}"


class MemoryService:
    def __init__(
        self,
        helper_config: HelperConfig,
        config: MemoryConfig,
        memories: MemoryStoreInterface | None,
        embed_client: EmbedClientInterface,
        llm_client: LLMClientInterface | None = None,
        messages: MessageLogInterface | None = None,
        queue_client: QueueClientInterface | None = None,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._config = config
        self._memories = memories
        self._embed_client = embed_client
        self._llm_client = llm_client
        self._messages = messages
        self._queue = queue_client

    @property
    def enabled(self) -> bool:
        return self._config.enabled and self._memories is not None

    ##########################################
    ################ RECALL ##################
    ##########################################

    async def search(self, owner_id: int, session_id: uuid.UUID, embedding: list[float], k: int) -> list[RetrievedMemory]:
        """Top-k memories of the session, or [] if disabled, k <= 0, no embedding or on error."""
        if not self.enabled or k <= 0 or not embedding:
            return []
        try:
            return (await self._memories.search(owner_id, session_id, embedding, k))[:k]
        except Exception as e:
            self.logging.warning("Memory search failed for session %s: %s", session_id, e)
            return []

    ##########################################
    ################ PERSIST #################
    ##########################################

    async def persist_turn(self, owner_id: int, session_id: uuid.UUID, query: str, answer: str) -> None:
        """Store the Q/A pair as a qa_turn memory, then prune the session."""
        if not self.enabled or not answer.strip():
            return
        content = format_turn_memory(query, answer)
        try:
            embedding = await embed_text(self._embed_client, content)
        except Exception as e:
            self.logging.warning("Failed to embed qa turn memory: %s", e)
            return
        await self._upsert(
            MemoryRecord(
                session_id=session_id,
                owner_id=owner_id,
                source=MemorySource.QA_TURN,
                content=content,
                embedding=embedding,
                importance=TURN_IMPORTANCE,
            )
        )
        await self.prune(owner_id, session_id)

    async def prune(self, owner_id: int, session_id: uuid.UUID | None) -> None:
        if not self.enabled or self._config.prune_limit <= 0:
            return
        try:
            await self._memories.prune(owner_id, session_id, self._config.prune_limit)
        except Exception as e:
            self.logging.warning("Memory prune failed for owner %d: %s", owner_id, e)

    async def _upsert(self, record: MemoryRecord) -> None:
        try:
            await self._memories.upsert(record)
        except Exception as e:
            self.logging.warning("Failed to upsert %s memory: %s", record.source.value, e)

    ##########################################
    ############### SUMMARIES ################
    ##########################################

    async def maybe_trigger_summary(self, owner_id: int, session_id: uuid.UUID, turns: int) -> bool:
        """Enqueue a summarize_session job when turns is a multiple of the configured interval.

        Returns:
            bool: True if a job was enqueued.
        """
        every = self._config.summary_every_n_turns
        if not self._config.enabled or every <= 0 or self._queue is None:
            return False
        if turns % every != 0:
            return False
        try:
            await self._queue.do_enqueue(JOB_SUMMARIZE_SESSION, {"session_id": str(session_id), "user_id": owner_id})
        except Exception as e:
            self.logging.warning("Summary enqueue failed for session %s: %s", session_id, e)
            return False
        self.logging.debug("Summary job enqueued after %d turns for session %s", turns, session_id)
        return True

    async def summarize_session(self, owner_id: int, session_id: uuid.UUID) -> MemoryRecord | None:
        """Condense recent history into a summary memory.

        Returns:
            MemoryRecord | None: The stored summary, or None if nothing was stored.
        """
        if not self.enabled or self._llm_client is None or self._messages is None:
            return None
        max_tokens = self._config.max_history_tokens if self._config.max_history_tokens > 0 else SUMMARY_DEFAULT_MAX_TOKENS
        try:
            history = await self._messages.list_recent(owner_id, session_id, max_tokens, SUMMARY_MAX_MESSAGES)
        except Exception as e:
            self.logging.warning("Failed to load history for summary of session %s: %s", session_id, e)
            return None
        if not history:
            return None

        transcript = "".join(f"{msg.role.value}: {msg.content.strip()}\n" for msg in history)
        prompt = [
            LLMMessage(role=MessageRole.SYSTEM.value, content=SUMMARY_INSTRUCTION),
            LLMMessage(role=MessageRole.USER.value, content=transcript),
        ]
        try:
            summary = (await self._llm_client.do_chat(prompt) or "").strip()
        except Exception as e:
            self.logging.warning("Summary LLM call failed for session %s: %s", session_id, e)
            return None
        if not summary:
            return None
        try:
            embedding = await embed_text(self._embed_client, summary)
        except Exception as e:
            self.logging.warning("Summary embedding failed for session %s: %s", session_id, e)
            return None

        record = MemoryRecord(
            session_id=session_id,
            owner_id=owner_id,
            source=MemorySource.SUMMARY,
            content=summary,
            embedding=embedding,
            importance=SUMMARY_IMPORTANCE,
        )
        await self._upsert(record)
        await self.prune(owner_id, session_id)
        self.logging.info("Stored summary memory for session %s", session_id)
        return record
