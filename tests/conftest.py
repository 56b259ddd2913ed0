"""Pytest fixtures and stub collaborators for upload-and-ask tests."""

import logging
from typing import Any, Callable

import pytest

from services.upload_ask.UploadAskApp import UploadAskApp
from shared.clients.embed.deterministic.EmbedClientDeterministic import EmbedClientDeterministic
from shared.clients.queue.QueueClientInterface import QueueClientInterface
from shared.clients.storage.memory.StorageClientMemory import StorageClientMemory
from shared.helper.HelperConfig import HelperConfig
from shared.logging.logging_setup import ColorLogger
from shared.models.config import MemoryConfig, UploadAskConfig
from shared.models.conversation import LLMMessage
from shared.repositories.RepositoryManager import Repositories, build_memory_repositories


class StubLLM:
    """Chat backend double. Replies with reply (or reply(n) if callable), or raises error."""

    def __init__(self, reply: str | Callable[[int], str] = "Stub answer.", error: Exception | None = None):
        self.reply = reply
        self.error = error
        self.calls: list[list[LLMMessage]] = []

    def get_client_type(self) -> str:
        return "llm"

    async def boot(self) -> None:
        pass

    async def close(self) -> None:
        pass

    async def do_chat(self, messages: list[LLMMessage]) -> str:
        self.calls.append(list(messages))
        if self.error is not None:
            raise self.error
        return self.reply(len(self.calls)) if callable(self.reply) else self.reply


class RecordingQueue(QueueClientInterface):
    """Records enqueued jobs without running them."""

    def __init__(self, helper_config: HelperConfig, error: Exception | None = None):
        super().__init__(helper_config=helper_config)
        self.jobs: list[tuple[str, dict[str, Any]]] = []
        self.error = error

    def _get_engine_name(self) -> str:
        return "Recording"

    async def do_enqueue(self, name: str, payload: dict[str, Any]) -> None:
        if self.error is not None:
            raise self.error
        self.jobs.append((name, dict(payload)))

    def names(self) -> list[str]:
        return [name for name, _ in self.jobs]

    async def run_all(self) -> None:
        """Hand every recorded job to the registered handler, then forget them."""
        jobs, self.jobs = self.jobs, []
        for name, payload in jobs:
            await self._handler(name, payload)


class CountingEmbedder(EmbedClientDeterministic):
    """Deterministic embedder that counts calls and can be told to fail."""

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self.calls: list[list[str]] = []
        self.fail = False

    async def _do_embed_batch(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        if self.fail:
            raise RuntimeError("embedding backend down")
        return await super()._do_embed_batch(texts)


@pytest.fixture
def logger() -> ColorLogger:
    return ColorLogger(logging.getLogger("uploadask.tests"))


@pytest.fixture
def helper_config(logger: ColorLogger, monkeypatch: pytest.MonkeyPatch) -> HelperConfig:
    """Configuration helper with a small deterministic embedding dimension."""
    monkeypatch.setenv("EMBED_DETERMINISTIC_DIM", "32")
    return HelperConfig(logger=logger)


@pytest.fixture
def config() -> UploadAskConfig:
    return UploadAskConfig(
        vector_dim=32,
        max_file_bytes=1024 * 1024,
        max_retrieved=4,
        max_preview_chars=40,
        chunk_max_tokens=50,
        best_effort_timeout=2.0,
        memory=MemoryConfig(enabled=False),
    )


@pytest.fixture
def memory_config() -> UploadAskConfig:
    return UploadAskConfig(
        vector_dim=32,
        max_retrieved=4,
        chunk_max_tokens=50,
        best_effort_timeout=2.0,
        memory=MemoryConfig(enabled=True, top_k_mems=3, max_history_tokens=800, summary_every_n_turns=0, prune_limit=200),
    )


@pytest.fixture
def embed_client(helper_config: HelperConfig) -> CountingEmbedder:
    return CountingEmbedder(helper_config)


@pytest.fixture
def repositories() -> Repositories:
    return build_memory_repositories()


@pytest.fixture
def storage_client(helper_config: HelperConfig) -> StorageClientMemory:
    return StorageClientMemory(helper_config)


@pytest.fixture
def queue_client(helper_config: HelperConfig) -> RecordingQueue:
    return RecordingQueue(helper_config)


@pytest.fixture
def make_app(helper_config, repositories, storage_client, embed_client, queue_client) -> Callable[..., UploadAskApp]:
    """Factory building the wired service container with in-memory collaborators."""

    def _make(config: UploadAskConfig, llm_client: StubLLM | None = None, queue: QueueClientInterface | None = queue_client) -> UploadAskApp:
        return UploadAskApp(
            helper_config=helper_config,
            config=config,
            repositories=repositories,
            storage_client=storage_client,
            embed_client=embed_client,
            llm_client=llm_client or StubLLM(),
            queue_client=queue,
        )

    return _make


@pytest.fixture
def owner_id() -> int:
    return 7


@pytest.fixture
def other_owner_id() -> int:
    return 99
