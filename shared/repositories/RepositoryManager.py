from dataclasses import dataclass

import httpx

from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.rag.RAGClientManager import RAGClientManager
from shared.clients.rag.models.VectorPoint import PAYLOAD_INDEXES
from shared.helper.HelperConfig import HelperConfig
from shared.repositories.ConversationRepositoryInterface import (
    MemoryStoreInterface,
    MessageLogInterface,
    QueryLogRepositoryInterface,
    SessionRepositoryInterface,
)
from shared.repositories.DocumentRepositoryInterface import (
    ChunkRepositoryInterface,
    DocumentRepositoryInterface,
    FileObjectRepositoryInterface,
)
from shared.repositories.memory.ConversationRepositoryMemory import (
    MemoryStoreMemory,
    MessageLogMemory,
    QueryLogRepositoryMemory,
    SessionRepositoryMemory,
)
from shared.repositories.memory.DocumentRepositoryMemory import (
    ChunkRepositoryMemory,
    DocumentRepositoryMemory,
    FileObjectRepositoryMemory,
)
from shared.repositories.qdrant.ChunkRepositoryQdrant import ChunkRepositoryQdrant
from shared.repositories.qdrant.MemoryStoreQdrant import MemoryStoreQdrant


@dataclass
class Repositories:
    documents: DocumentRepositoryInterface
    files: FileObjectRepositoryInterface
    chunks: ChunkRepositoryInterface
    sessions: SessionRepositoryInterface
    query_logs: QueryLogRepositoryInterface
    messages: MessageLogInterface
    memories: MemoryStoreInterface


def build_memory_repositories() -> Repositories:
    """All repositories backed by the in-process reference stores."""
    documents = DocumentRepositoryMemory()
    sessions = SessionRepositoryMemory()
    return Repositories(
        documents=documents,
        files=FileObjectRepositoryMemory(),
        chunks=ChunkRepositoryMemory(documents),
        sessions=sessions,
        query_logs=QueryLogRepositoryMemory(sessions),
        messages=MessageLogMemory(),
        memories=MemoryStoreMemory(),
    )


class RepositoryManager:
    """
    Wires the repositories selected by VECTOR_STORE_ENGINE.

    "memory" (default) keeps everything in process. "qdrant" moves chunk
    vectors and long-term memories to the RAG backend selected by RAG_ENGINE;
    relational rows stay in the in-process stores.
    """

    SUPPORTED_ENGINES = ("memory", "qdrant")

    def __init__(self, helper_config: HelperConfig):
        self.helper_config = helper_config
        self.logging = helper_config.get_logger()
        self.engine = helper_config.get_string_val("VECTOR_STORE_ENGINE", default="memory").lower()
        if self.engine not in self.SUPPORTED_ENGINES:
            raise ValueError(f"Unsupported vector store engine specified: '{self.engine}'.")
        self.rag_client: RAGClientInterface | None = None
        self.repositories = self._initialize_repositories()

    def _initialize_repositories(self) -> Repositories:
        repos = build_memory_repositories()
        if self.engine == "qdrant":
            self.rag_client = RAGClientManager(self.helper_config).get_client()
            repos.chunks = ChunkRepositoryQdrant(self.rag_client, repos.documents)
            repos.memories = MemoryStoreQdrant(self.rag_client)
        self.logging.debug("Instantiated repositories for vector store engine: %s", self.engine)
        return repos

    async def boot(self, vector_size: int, distance: str = "Cosine", transport: httpx.AsyncBaseTransport | None = None) -> None:
        """Open backend connections and make sure the vector collection exists."""
        if self.rag_client is None:
            return
        await self.rag_client.boot(transport=transport)
        if not await self.rag_client.do_existence_check():
            self.logging.info("Creating %s collection with vector size %d", self.rag_client.get_engine_name(), vector_size)
            await self.rag_client.do_create_collection(vector_size=vector_size, distance=distance)
            for field_name, field_schema in PAYLOAD_INDEXES.items():
                await self.rag_client.do_create_payload_index(field_name, field_schema)

    async def close(self) -> None:
        if self.rag_client is not None:
            await self.rag_client.close()

    def get_repositories(self) -> Repositories:
        return self.repositories
