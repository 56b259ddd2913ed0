"""Token-bounded text splitting for the ingest pipeline.

Text is split on line breaks first, then greedily packed word by word until
the next word would reach the token budget. Overlong "words" (base64 blobs,
minified data) are hard-sliced at a character budget of MaxTokens * 5.
"""

import logging
import re
from abc import ABC, abstractmethod

import tiktoken

from shared.models.document import ChunkCandidate

RUNES_PER_TOKEN_GUARD = 5
DEFAULT_MAX_TOKENS = 800
_LINE_BREAKS = re.compile(r"[\r\n]+")


class TokenizerInterface(ABC):
    @abstractmethod
    def count(self, text: str) -> int:
        pass

    @abstractmethod
    def tail(self, text: str, limit: int) -> str:
        """Return the last limit tokens of text followed by a space."""
        pass


class WordTokenizer(TokenizerInterface):
    """Counts whitespace-delimited words."""

    def count(self, text: str) -> int:
        return len(text.split()) if text else 0

    def tail(self, text: str, limit: int) -> str:
        if limit <= 0 or not text:
            return ""
        words = text.split()
        if len(words) <= limit:
            return text + " "
        return " ".join(words[-limit:]) + " "


class TiktokenTokenizer(TokenizerInterface):
    """BPE token counts as seen by OpenAI-style models."""

    def __init__(self, encoding_name: str = "cl100k_base"):
        self._encoding = tiktoken.get_encoding(encoding_name)

    def count(self, text: str) -> int:
        return len(self._encoding.encode(text)) if text else 0

    def tail(self, text: str, limit: int) -> str:
        if limit <= 0 or not text:
            return ""
        ids = self._encoding.encode(text)
        if len(ids) <= limit:
            return text + " "
        return self._encoding.decode(ids[-limit:]) + " "


def build_tokenizer(name: str, logger: logging.Logger | None = None) -> TokenizerInterface:
    """Resolve a tokenizer by name ("tiktoken" or "words").

    If the tiktoken encoding cannot be loaded (e.g. no network to fetch the
    BPE file) the word tokenizer is used instead.
    """
    if (name or "").lower() == "tiktoken":
        try:
            return TiktokenTokenizer()
        except Exception as e:
            if logger is not None:
                logger.warning("tiktoken encoding unavailable, falling back to word counting: %s", e)
    return WordTokenizer()


def split_long_word(word: str, max_runes: int) -> list[str]:
    if max_runes <= 0 or len(word) <= max_runes:
        return [word]
    return [word[i:i + max_runes] for i in range(0, len(word), max_runes)]


class SimpleChunker:
    """Splits text into ChunkCandidates of at most max_tokens tokens.

    Args:
        max_tokens (int): Token budget per chunk. Values <= 0 use the default of 800.
        overlap (int): Trailing tokens of the previous chunk seeded into the next one.
        tokenizer (TokenizerInterface | None): Token counter. Defaults to word counting.
    """

    def __init__(self, max_tokens: int = DEFAULT_MAX_TOKENS, overlap: int = 0, tokenizer: TokenizerInterface | None = None):
        self.max_tokens = max_tokens if max_tokens > 0 else DEFAULT_MAX_TOKENS
        self.overlap = max(overlap, 0)
        self.tokenizer = tokenizer or WordTokenizer()

    def chunk(self, text: str) -> list[ChunkCandidate]:
        text = (text or "").strip()
        if not text:
            return []
        max_runes = self.max_tokens * RUNES_PER_TOKEN_GUARD
        out: list[ChunkCandidate] = []
        current: list[str] = []
        current_runes = 0

        def flush() -> None:
            nonlocal current, current_runes
            content = "".join(current).strip()
            current = []
            current_runes = 0
            if not content:
                return
            out.append(ChunkCandidate(index=len(out), content=content, token_count=self.tokenizer.count(content)))

        for part in (p for p in _LINE_BREAKS.split(text) if p):
            for word in part.split():
                word_runes = len(word)

                if word_runes > max_runes:
                    pieces = split_long_word(word, max_runes)
                    for i, piece in enumerate(pieces):
                        if current_runes + len(piece) > max_runes:
                            flush()
                        current.append(piece + " ")
                        current_runes += len(piece) + 1
                        if i < len(pieces) - 1:
                            flush()
                    continue

                if current_runes + word_runes > max_runes or self.tokenizer.count("".join(current) + word) >= self.max_tokens:
                    flush()
                    if self.overlap > 0 and out:
                        seed = self.tokenizer.tail(out[-1].content, self.overlap)
                        current.append(seed)
                        current_runes = len(seed)
                current.append(word + " ")
                current_runes += word_runes + 1
            current.append("\n")
            current_runes += 1

        if current:
            flush()
        return out
