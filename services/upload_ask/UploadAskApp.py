"""Start-up wiring of clients, repositories and services.

Collaborators are chosen once from the environment through the client and
repository managers; the services only see their interfaces.
"""

from services.upload_ask.AskService import AskService
from services.upload_ask.Chunker import SimpleChunker, build_tokenizer
from services.upload_ask.HistoryService import HistoryService
from services.upload_ask.IngestService import IngestService
from services.upload_ask.JobRunner import JobRunner
from services.upload_ask.MemoryService import MemoryService
from services.upload_ask.RetrievalService import RetrievalService
from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.clients.embed.EmbedClientManager import EmbedClientManager
from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.clients.llm.LLMClientManager import LLMClientManager
from shared.clients.queue.QueueClientInterface import QueueClientInterface
from shared.clients.queue.QueueClientManager import QueueClientManager
from shared.clients.storage.StorageClientInterface import StorageClientInterface
from shared.clients.storage.StorageClientManager import StorageClientManager
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import UploadAskConfig
from shared.repositories.RepositoryManager import RepositoryManager, Repositories


class UploadAskApp:
    def __init__(
        self,
        helper_config: HelperConfig,
        config: UploadAskConfig,
        repositories: Repositories,
        storage_client: StorageClientInterface,
        embed_client: EmbedClientInterface,
        llm_client: LLMClientInterface,
        queue_client: QueueClientInterface | None,
        repository_manager: RepositoryManager | None = None,
    ) -> None:
        self.logging = helper_config.get_logger()
        self.config = config
        self.repositories = repositories
        self.storage_client = storage_client
        self.embed_client = embed_client
        self.llm_client = llm_client
        self.queue_client = queue_client
        self._repository_manager = repository_manager

        tokenizer = build_tokenizer(config.tokenizer, self.logging)
        self.chunker = SimpleChunker(config.chunk_max_tokens, config.chunk_overlap, tokenizer)
        self.ingest = IngestService(
            helper_config,
            config,
            repositories.documents,
            repositories.files,
            repositories.chunks,
            storage_client,
            embed_client,
            self.chunker,
            queue_client,
        )
        self.history = HistoryService(helper_config, repositories.messages)
        self.memory = MemoryService(
            helper_config,
            config.memory,
            repositories.memories,
            embed_client,
            llm_client,
            repositories.messages,
            queue_client,
        )
        self.retrieval = RetrievalService(repositories.chunks)
        self.ask = AskService(
            helper_config,
            config,
            repositories.sessions,
            repositories.query_logs,
            self.history,
            self.memory,
            self.retrieval,
            embed_client,
            llm_client,
        )
        self.jobs = JobRunner(helper_config, self.ingest, self.memory)
        if queue_client is not None:
            queue_client.set_handler(self.jobs)

    @classmethod
    def from_env(cls, helper_config: HelperConfig) -> "UploadAskApp":
        """Build the application from environment configuration."""
        repository_manager = RepositoryManager(helper_config)
        return cls(
            helper_config=helper_config,
            config=UploadAskConfig.from_helper_config(helper_config),
            repositories=repository_manager.get_repositories(),
            storage_client=StorageClientManager(helper_config).get_client(),
            embed_client=EmbedClientManager(helper_config).get_client(),
            llm_client=LLMClientManager(helper_config).get_client(),
            queue_client=QueueClientManager(helper_config).get_client(),
            repository_manager=repository_manager,
        )

    async def boot(self) -> None:
        """Boot all clients. The embedding backend must be healthy; it also sizes the vector collection."""
        await self.embed_client.boot()
        await self.embed_client.do_healthcheck()
        await self.llm_client.boot()
        await self.storage_client.boot()
        if self.queue_client is not None:
            await self.queue_client.boot()
        if self._repository_manager is not None:
            vector_size, distance = await self.embed_client.do_fetch_embedding_vector_size()
            await self._repository_manager.boot(vector_size=vector_size, distance=distance)
        self.logging.info("Upload-and-ask services booted", color="green")

    async def close(self) -> None:
        if self.queue_client is not None:
            await self.queue_client.close()
        for client in (self.embed_client, self.llm_client, self.storage_client):
            try:
                await client.close()
            except Exception as e:
                self.logging.warning("Error closing %s client: %s", client.get_client_type(), e)
        if self._repository_manager is not None:
            await self._repository_manager.close()
