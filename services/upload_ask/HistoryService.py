"""Bounded recall of prior turns and turn persistence."""

import uuid

from shared.helper.HelperConfig import HelperConfig
from shared.helper.HelperText import estimate_tokens
from shared.models.conversation import ConversationMessage, MessageRole
from shared.repositories.ConversationRepositoryInterface import MessageLogInterface

HISTORY_MAX_MESSAGES = 50
DIGEST_MAX_ENTRIES = 3
DIGEST_MAX_CHARS = 500
DIGEST_SEPARATOR = " | "


def sum_tokens(messages: list[ConversationMessage]) -> int:
    return sum(m.token_count for m in messages if m.token_count > 0)


def summarize_history(history: list[ConversationMessage], max_entries: int = DIGEST_MAX_ENTRIES, max_chars: int = DIGEST_MAX_CHARS) -> str:
    """Digest of the newest history lines, newest first.

    Each entry is "role: content". Collection stops at max_entries or when the
    next line would push the digest past max_chars.
    """
    if not history or max_entries <= 0:
        return ""
    lines: list[str] = []
    length = 0
    for msg in reversed(history):
        if len(lines) >= max_entries:
            break
        line = f"{msg.role.value}: {msg.content}"
        if max_chars > 0 and length + len(line) > max_chars:
            break
        lines.append(line)
        length += len(line) + (len(DIGEST_SEPARATOR) if len(lines) > 1 else 0)
    return DIGEST_SEPARATOR.join(lines)


def build_semantic_query(query: str, history: list[ConversationMessage]) -> str:
    """The text embedded for retrieval: the question, widened with recent history."""
    digest = summarize_history(history)
    if not digest:
        return query
    return f"{query}\n\nRecent history: {digest}"


class HistoryService:
    def __init__(self, helper_config: HelperConfig, messages: MessageLogInterface | None):
        self.logging = helper_config.get_logger()
        self._messages = messages

    async def load(self, owner_id: int, session_id: uuid.UUID, max_tokens: int, include: bool) -> tuple[list[ConversationMessage], int]:
        """Load the recent transcript within max_tokens.

        Returns:
            tuple[list[ConversationMessage], int]: Messages oldest first, and their token sum.
            Failures are logged and yield an empty history.
        """
        if self._messages is None or not include:
            return [], 0
        try:
            history = await self._messages.list_recent(owner_id, session_id, max_tokens, HISTORY_MAX_MESSAGES)
        except Exception as e:
            self.logging.warning("Failed to list recent messages for session %s: %s", session_id, e)
            return [], 0
        return history, sum_tokens(history)

    async def append_turn(self, owner_id: int, session_id: uuid.UUID, query: str, answer: str) -> None:
        """Append the user and assistant messages. Each failure is logged on its own."""
        if self._messages is None:
            return
        for role, content in ((MessageRole.USER, query), (MessageRole.ASSISTANT, answer)):
            msg = ConversationMessage(
                session_id=session_id,
                owner_id=owner_id,
                role=role,
                content=content,
                token_count=estimate_tokens(content),
            )
            try:
                await self._messages.append(msg)
            except Exception as e:
                self.logging.warning("Failed to append %s message to session %s: %s", role.value, session_id, e)
