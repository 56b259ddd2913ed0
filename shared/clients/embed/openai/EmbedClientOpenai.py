"""OpenAI-compatible embeddings (POST /embeddings).

The API has no model-details endpoint, so the vector size comes from
EMBED_OPENAI_DIM. Requests are additionally split so that no single request
exceeds EMBED_OPENAI_MAX_BATCH_TOKENS estimated tokens.
"""

from typing import Iterator, Tuple

from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig

DEFAULT_BASE_URL = "https://api.openai.com/v1"


def estimate_request_tokens(text: str) -> int:
    """Upper-biased token estimate: one token per two characters, never below the word count."""
    if not text:
        return 0
    return max((len(text) + 1) // 2, len(text.split()))


class EmbedClientOpenai(EmbedClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("BASE_URL", default=DEFAULT_BASE_URL, val_type="string")
        self._api_key = self.get_config_val("API_KEY", default=None, val_type="string")
        self.dim = int(self.get_config_val("DIM", default=1536, val_type="number"))
        self.max_batch_tokens = int(self.get_config_val("MAX_BATCH_TOKENS", default=200000, val_type="number"))

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Openai"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default=DEFAULT_BASE_URL),
            EnvConfig(env_key="API_KEY", val_type="string", default=None),
            EnvConfig(env_key="DIM", val_type="number", default=1536),
            EnvConfig(env_key="MAX_BATCH_TOKENS", val_type="number", default=200000),
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        return {"Authorization": f"Bearer {self._api_key}"}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return "/models"

    def get_endpoint_embedding(self) -> str:
        return "/embeddings"

    def get_endpoint_model_details(self) -> str:
        return f"/models/{self.embed_model}"

    ################ PAYLOAD BUILDER ##################
    def get_embed_payload(self, texts: list[str]) -> dict:
        return {"model": self.embed_model, "input": texts}

    ##########################################
    ################# OTHER ##################
    ##########################################

    def extract_vector_size_from_model_info(self, model_info: dict) -> int:
        return self.dim

    def extract_embeddings_from_response(self, response_data: dict) -> list[list[float]]:
        """Extract vectors from {"data": [{"embedding": [...], "index": 0}, ...]}, ordered by index.

        Raises:
            ValueError: If the response carries no data.
        """
        data = response_data.get("data")
        if not data:
            raise ValueError(
                "OpenAI response does not contain embeddings. "
                f"Response keys: {list(response_data.keys())}"
            )
        return [item.get("embedding") or [] for item in sorted(data, key=lambda item: item.get("index", 0))]

    def iter_batches(self, texts: list[str]) -> Iterator[list[str]]:
        """
        Split by count like the base class, and also by estimated request tokens.

        Raises:
            ValueError: If one text alone exceeds the token budget.
        """
        for count_batch in super().iter_batches(texts):
            batch: list[str] = []
            batch_tokens = 0
            for text in count_batch:
                tokens = estimate_request_tokens(text)
                if tokens > self.max_batch_tokens:
                    raise ValueError(f"Text too large for an embedding request: estimated tokens={tokens}")
                if batch and batch_tokens + tokens > self.max_batch_tokens:
                    yield batch
                    batch, batch_tokens = [], 0
                batch.append(text)
                batch_tokens += tokens
            if batch:
                yield batch

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_fetch_embedding_vector_size(self) -> Tuple[int, str]:
        return self.dim, self.embed_distance
