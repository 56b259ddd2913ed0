from abc import abstractmethod

from typing import Iterator, Tuple
from shared.clients.ClientInterface import ClientInterface

from shared.helper.HelperConfig import HelperConfig


class EmbedClientInterface(ClientInterface):
    """Text to vector conversion.

    do_embed() returns exactly one vector per input text, in input order, and
    raises instead of returning a partial or empty result. Large inputs are
    split into requests of at most EMBED_BATCH_SIZE texts.
    """

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)

        # model and embedding config
        self.embed_distance = helper_config.get_string_val(f"{self.get_client_type().upper()}_DISTANCE", default="Cosine")
        self.embed_model = helper_config.get_string_val(f"{self.get_client_type().upper()}_MODEL", default="nomic-embed-text")
        self.embed_batch_size = int(helper_config.get_number_val(f"{self.get_client_type().upper()}_BATCH_SIZE", default=64))

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        return "embed"

    ################ ENDPOINTS ##################
    @abstractmethod
    def get_endpoint_embedding(self) -> str:
        """
        Returns the endpoint path for embedding requests (e.g. "/api/embed").
        """
        pass

    @abstractmethod
    def get_endpoint_model_details(self) -> str:
        """
        Returns the endpoint path for model details requests (e.g. "/api/show").
        """
        pass

    ################ PAYLOAD BUILDER ##################
    @abstractmethod
    def get_embed_payload(self, texts: list[str]) -> dict:
        """Build the backend-specific request body for an embedding request.

        Args:
            texts (list[str]): The texts to embed.

        Returns:
            dict: JSON-serialisable request body (e.g. {"model": "...", "input": [...]}).
        """
        pass

    ##########################################
    ################# OTHER ##################
    ##########################################

    @abstractmethod
    def extract_vector_size_from_model_info(self, model_info: dict) -> int:
        """
        Extracts the embedding vector size from the model information response.

        Raises:
            ValueError: If the vector size cannot be determined.
        """
        pass

    @abstractmethod
    def extract_embeddings_from_response(self, response_data: dict) -> list[list[float]]:
        """Extract embedding vectors from a raw embedding API response.

        Args:
            response_data (dict): The parsed JSON response body.

        Returns:
            list[list[float]]: Embedding vectors in the same order as the input texts.

        Raises:
            ValueError: If the response format is invalid or embeddings are empty.
        """
        pass

    def validate_embeddings(self, texts: list[str], vectors: list[list[float]]) -> list[list[float]]:
        """Ensure one non-empty vector was returned per input text.

        Raises:
            ValueError: On a count mismatch or an empty vector.
        """
        if len(vectors) != len(texts):
            raise ValueError(
                "Embedding backend returned %d vectors for %d texts." % (len(vectors), len(texts))
            )
        for i, vector in enumerate(vectors):
            if not vector:
                raise ValueError("Embedding backend returned an empty vector at position %d." % i)
        return vectors

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_fetch_embedding_vector_size(self) -> Tuple[int, str]:
        """
        Fetch the output vector dimension and distance metric of the configured embedding model.

        Returns:
            Tuple[int, str]: The number of dimensions produced by the embedding model and the distance metric.
        """
        model_info = await self.do_json("POST", self.get_endpoint_model_details(), {"name": self.embed_model})
        vector_size = self.extract_vector_size_from_model_info(model_info=model_info)
        return vector_size, self.embed_distance

    async def do_embed(self, texts: list[str] | str) -> list[list[float]]:
        """Embed one or more texts, batching requests by embed_batch_size.

        Args:
            texts (list[str] | str): One or more texts to embed.

        Returns:
            list[list[float]]: Embedding vectors in the same order as the inputs.

        Raises:
            ValueError: If texts is empty or the backend returns a partial/empty result.
            Exception: If an HTTP request fails.
        """
        texts = [texts] if isinstance(texts, str) else list(texts)
        if not texts:
            raise ValueError("No texts given to embed.")
        vectors: list[list[float]] = []
        for batch in self.iter_batches(texts):
            vectors.extend(await self._do_embed_batch(batch))
        return self.validate_embeddings(texts, vectors)

    def iter_batches(self, texts: list[str]) -> Iterator[list[str]]:
        """Split texts into request batches of at most embed_batch_size texts, preserving order."""
        batch_size = self.embed_batch_size if self.embed_batch_size > 0 else len(texts)
        for batch_start in range(0, len(texts), batch_size):
            yield texts[batch_start: batch_start + batch_size]

    async def _do_embed_batch(self, texts: list[str]) -> list[list[float]]:
        body = self.get_embed_payload(texts)
        response = await self.do_request(method="POST", endpoint=self.get_endpoint_embedding(), json=body)
        if response.status_code != 200:
            self.logging.error(
                "Embedding request failed: status %d, body: %s",
                response.status_code,
                response.text[:200],
            )
            raise Exception("Embedding request failed with status %d." % response.status_code)
        return self.validate_embeddings(texts, self.extract_embeddings_from_response(response.json()))
