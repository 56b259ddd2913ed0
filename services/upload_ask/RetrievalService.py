"""Query embedding and chunk retrieval.

One embedding is computed per turn and reused for chunk and memory search.
Ranking is the repository's job; here results are only scoped and capped.
"""

import uuid

from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.models.document import DocumentFilter, DocumentStatus, RetrievedChunk
from shared.models.errors import EMBEDDING_ERROR, STORAGE_ERROR, AppError
from shared.repositories.DocumentRepositoryInterface import ChunkRepositoryInterface

DEFAULT_TOP_K = 8


async def embed_text(embed_client: EmbedClientInterface, text: str) -> list[float]:
    """Embed a single text.

    Raises:
        AppError: embedding_error if the backend fails or returns nothing.
    """
    try:
        embeddings = await embed_client.do_embed([text])
    except Exception as e:
        raise AppError(EMBEDDING_ERROR, "failed to embed query", e)
    if not embeddings or not embeddings[0]:
        raise AppError(EMBEDDING_ERROR, "no embedding returned")
    return embeddings[0]


def resolve_top_k(requested: int, configured: int) -> int:
    if requested > 0:
        return requested
    return configured if configured > 0 else DEFAULT_TOP_K


class RetrievalService:
    def __init__(self, chunks: ChunkRepositoryInterface):
        self._chunks = chunks

    async def search_chunks(self, owner_id: int, embedding: list[float], document_ids: list[uuid.UUID], top_k: int) -> list[RetrievedChunk]:
        """Top-k chunks of the owner's processed documents, best first.

        Raises:
            AppError: storage_error if the search fails.
        """
        filter = DocumentFilter(document_ids=list(document_ids), statuses=[DocumentStatus.PROCESSED])
        try:
            results = await self._chunks.search_similar(owner_id, embedding, filter, limit=top_k)
        except Exception as e:
            raise AppError(STORAGE_ERROR, "search failed", e)
        return results[:top_k] if top_k > 0 else results
