"""Offline embedder that hashes text into a pseudo-random vector.

Identical texts always map to identical vectors. No network calls are made,
which makes it suitable for local development and tests.
"""

from typing import Tuple

import httpx

from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig

_FNV_OFFSET = 0xCBF29CE484222325
_FNV_PRIME = 0x100000001B3
_MASK64 = 0xFFFFFFFFFFFFFFFF


def _fnv1a_64(data: bytes) -> int:
    h = _FNV_OFFSET
    for byte in data:
        h ^= byte
        h = (h * _FNV_PRIME) & _MASK64
    return h


class EmbedClientDeterministic(EmbedClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        dim = int(self.get_config_val("DIM", default=1536, val_type="number"))
        self.dim = dim if dim > 0 else 32

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Deterministic"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [EnvConfig(env_key="DIM", val_type="number", default=1536)]

    ################ AUTH / ENDPOINTS ##################
    def _get_auth_header(self) -> dict:
        return {}

    def _get_base_url(self) -> str:
        return ""

    def _get_endpoint_healthcheck(self) -> str:
        return ""

    def get_endpoint_embedding(self) -> str:
        return ""

    def get_endpoint_model_details(self) -> str:
        return ""

    def get_embed_payload(self, texts: list[str]) -> dict:
        return {"input": texts}

    def extract_vector_size_from_model_info(self, model_info: dict) -> int:
        return self.dim

    def extract_embeddings_from_response(self, response_data: dict) -> list[list[float]]:
        return [self.embed_one(text) for text in response_data.get("input", [])]

    ##########################################
    ############### REQUESTS #################
    ##########################################

    def embed_one(self, text: str) -> list[float]:
        seed = _fnv1a_64(text.encode("utf-8"))
        vector: list[float] = []
        for _ in range(self.dim):
            seed = (seed * 1099511628211 + 1469598103934665603) & _MASK64
            vector.append((seed % 997) / 997.0)
        return vector

    async def do_healthcheck(self) -> httpx.Response:
        return httpx.Response(200)

    async def do_fetch_embedding_vector_size(self) -> Tuple[int, str]:
        return self.dim, self.embed_distance

    async def _do_embed_batch(self, texts: list[str]) -> list[list[float]]:
        return self.extract_embeddings_from_response(self.get_embed_payload(texts))
