from abc import abstractmethod
from typing import Any
import math

from shared.clients.rag.models.Scroll import ScrollResult
from shared.clients.ClientInterface import ClientInterface

from shared.helper.HelperConfig import HelperConfig


class RAGClientInterface(ClientInterface):
    """Vector database backend.

    Used by the vector-backed chunk repository and memory store. Every filter
    passed in must include owner_id to enforce access isolation.
    """

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        return "rag"

    ################ ENDPOINTS ##################
    @abstractmethod
    def _get_endpoint_scroll(self) -> str:
        """Returns the endpoint path for scroll requests."""
        pass

    @abstractmethod
    def _get_endpoint_search(self) -> str:
        """Returns the endpoint path for nearest-neighbour search requests."""
        pass

    @abstractmethod
    def _get_endpoint_points(self) -> str:
        """Returns the endpoint path for points upsert requests."""
        pass

    @abstractmethod
    def _get_endpoint_delete_points(self) -> str:
        """Returns the endpoint path for deleting points by filter or by id."""
        pass

    @abstractmethod
    def _get_endpoint_check_collection_existence(self) -> str:
        pass

    @abstractmethod
    def _get_endpoint_create_collection(self) -> str:
        pass

    @abstractmethod
    def _get_endpoint_count(self) -> str:
        pass

    @abstractmethod
    def _get_endpoint_payload_index(self) -> str:
        """Returns the endpoint path for creating a payload (filter) index."""
        pass

    ################ PAYLOAD BUILDER ##################
    @abstractmethod
    def get_scroll_payload(self, filters: list[dict], with_payload: bool | list | dict, with_vector: bool | list, limit: int | None = None, offset: str | None = None) -> dict:
        """
        Returns the payload for scroll requests to the RAG backend.

        Args:
            filters (list[dict]): Conditions that must all match.
            with_payload (bool | list | dict): Whether to include the payload, or which payload fields to include.
            with_vector (bool | list): Whether to include the vector.
            limit (int | None): The maximum number of results to return.
            offset (str | None): Pagination cursor returned by the previous scroll page.
        """
        pass

    @abstractmethod
    def get_search_payload(self, vector: list[float], filters: list[dict], limit: int) -> dict:
        """
        Returns the payload for a nearest-neighbour search.

        Args:
            vector (list[float]): The query vector.
            filters (list[dict]): Conditions that must all match.
            limit (int): Maximum number of hits.
        """
        pass

    @abstractmethod
    def extract_next_page_offset(self, raw_response: dict) -> str | None:
        """
        Extracts the pagination cursor for the next scroll page, or None on the last page.
        """
        pass

    @abstractmethod
    def get_payload_index_payload(self, field_name: str, field_schema: str) -> dict:
        pass

    @abstractmethod
    def get_count_payload(self, filters: list[dict]) -> dict:
        pass

    @abstractmethod
    def get_delete_payload(self, filter: dict) -> dict:
        pass

    @abstractmethod
    def get_delete_ids_payload(self, point_ids: list[str]) -> dict:
        pass

    @abstractmethod
    def extract_scroll_content(self, raw_response: dict) -> dict:
        """
        Extracts the relevant content from a raw scroll response.

        Returns:
            dict: A dict with keys "result", "status", "time".
        """
        pass

    @abstractmethod
    def extract_search_hits(self, raw_response: dict) -> list[dict]:
        """
        Extracts search hits from a raw search response.

        Returns:
            list[dict]: Hits as {"id", "score", "payload"}, best first.
        """
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_existence_check(self) -> bool:
        """True if the collection exists in the backend."""
        body = await self.do_json("GET", self._get_endpoint_check_collection_existence())
        return bool((body.get("result") or {}).get("exists"))

    async def do_create_collection(self, vector_size: int, distance: str = "Cosine") -> None:
        """Create the collection.

        Args:
            vector_size (int): Dimension of the embeddings stored in it.
            distance (str): Similarity metric, e.g. "Cosine".
        """
        await self.do_json("PUT", self._get_endpoint_create_collection(), {"vectors": {"size": vector_size, "distance": distance}})

    async def do_create_payload_index(self, field_name: str, field_schema: str) -> None:
        """Index a payload field so filters on it stay fast.

        Args:
            field_name (str): Payload key, e.g. "owner_id".
            field_schema (str): Index type, e.g. "keyword" or "integer".
        """
        await self.do_json("PUT", self._get_endpoint_payload_index(), self.get_payload_index_payload(field_name, field_schema))

    async def do_upsert_points(self, points: list[dict[str, Any]]) -> None:
        """Insert points, replacing any existing point with the same id."""
        await self.do_json("PUT", self._get_endpoint_points(), {"points": points})

    async def do_delete_points_by_filter(self, filter: dict) -> None:
        """Delete all points matching filter. The filter must include owner_id."""
        await self.do_json("POST", self._get_endpoint_delete_points(), self.get_delete_payload(filter))

    async def do_delete_points(self, point_ids: list[str]) -> None:
        """Delete the points with the given ids. No-op for an empty list."""
        if point_ids:
            await self.do_json("POST", self._get_endpoint_delete_points(), self.get_delete_ids_payload(point_ids))

    async def do_search(self, vector: list[float], filters: list[dict], limit: int) -> list[dict]:
        """Nearest-neighbour search, best first (higher score = more similar).

        Args:
            vector (list[float]): The query vector.
            filters (list[dict]): Conditions that must all match. Must include owner_id.
            limit (int): Maximum number of hits.

        Returns:
            list[dict]: Hits as {"id", "score", "payload"}.
        """
        body = await self.do_json("POST", self._get_endpoint_search(), self.get_search_payload(vector, filters, limit))
        return self.extract_search_hits(body)

    async def do_scroll(self, filters: list[dict], with_payload: bool | list | dict, with_vector: bool | list, limit: int | None = None, offset: str | None = None) -> ScrollResult:
        """Fetch one scroll page. Use do_scroll_all() to walk every page."""
        body = await self.do_json("POST", self._get_endpoint_scroll(), self.get_scroll_payload(filters, with_payload, with_vector, limit, offset))
        content = self.extract_scroll_content(raw_response=body)
        return ScrollResult(
            result=content.get("result", []),
            status=content.get("status", "ok"),
            time=content.get("time", 0),
            next_page_offset=self.extract_next_page_offset(body),
        )

    async def do_count(self, filters: list[dict]) -> int:
        body = await self.do_json("POST", self._get_endpoint_count(), self.get_count_payload(filters))
        return (body.get("result") or {}).get("count", 0)

    async def do_scroll_all(self, filters: list[dict], with_payload: bool | list | dict, with_vector: bool | list, page_size: int = 1000) -> ScrollResult:
        """Collect every point matching filters across all scroll pages.

        Returns:
            ScrollResult: All matching points; next_page_offset is always None.
        """
        points: list[dict] = []
        offset: str | None = None
        total = await self.do_count(filters)
        total_pages = max(math.ceil(total / page_size), 1)
        page = 1
        while True:
            result = await self.do_scroll(filters=filters, with_payload=with_payload, with_vector=with_vector, limit=page_size, offset=offset)
            points.extend(result.result)
            self.logging.debug("Fetched %s page %d of %d, %d of %d points", self.get_engine_name(), page, total_pages, len(points), total)
            offset = result.next_page_offset
            if not offset:
                break
            page += 1
        return ScrollResult(result=points, status="ok", time=0)
