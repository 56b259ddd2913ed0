from shared.helper.HelperConfig import HelperConfig
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.models.config import EnvConfig


class RAGClientQdrant(RAGClientInterface):
    """Qdrant REST backend. Chunks and memories share RAG_QDRANT_COLLECTION."""

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("BASE_URL", default=None, val_type="string")
        self._api_key = self.get_config_val("API_KEY", default="", val_type="string")
        self.collection = self.get_config_val("COLLECTION", default="uploadask", val_type="string")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Qdrant"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default=None),
            EnvConfig(env_key="API_KEY", val_type="string", default=""),
            EnvConfig(env_key="COLLECTION", val_type="string", default="uploadask"),
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        return {"api-key": self._api_key} if self._api_key else {}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _collection_path(self, suffix: str = "") -> str:
        return f"/collections/{self.collection}{suffix}"

    def _get_endpoint_healthcheck(self) -> str:
        return "/healthz"

    def _get_endpoint_check_collection_existence(self) -> str:
        return self._collection_path("/exists")

    def _get_endpoint_create_collection(self) -> str:
        return self._collection_path()

    def _get_endpoint_payload_index(self) -> str:
        return self._collection_path("/index?wait=true")

    # writes wait for the operation so a following search sees them
    def _get_endpoint_points(self) -> str:
        return self._collection_path("/points?wait=true")

    def _get_endpoint_delete_points(self) -> str:
        return self._collection_path("/points/delete?wait=true")

    def _get_endpoint_search(self) -> str:
        return self._collection_path("/points/search")

    def _get_endpoint_scroll(self) -> str:
        return self._collection_path("/points/scroll")

    def _get_endpoint_count(self) -> str:
        return self._collection_path("/points/count")

    ##########################################
    ########### PAYLOAD BUILDER ##############
    ##########################################

    def get_payload_index_payload(self, field_name: str, field_schema: str) -> dict:
        return {"field_name": field_name, "field_schema": field_schema}

    def get_search_payload(self, vector: list[float], filters: list[dict], limit: int) -> dict:
        return {
            "vector": vector,
            "filter": {"must": filters},
            "limit": limit,
            "with_payload": True,
            "with_vector": False,
        }

    def get_scroll_payload(self, filters: list[dict], with_payload: bool | list | dict, with_vector: bool | list, limit: int | None = None, offset: str | None = None) -> dict:
        payload = {
            "filter": {"must": filters},
            "limit": limit,
            "with_payload": with_payload,
            "with_vector": with_vector,
        }
        if offset is not None:
            payload["offset"] = offset
        return payload

    def get_count_payload(self, filters: list[dict]) -> dict:
        return {"filter": {"must": filters}, "exact": True}

    def get_delete_payload(self, filter: dict) -> dict:
        return {"filter": filter}

    def get_delete_ids_payload(self, point_ids: list[str]) -> dict:
        return {"points": point_ids}

    ##########################################
    ########### RESPONSE PARSER ##############
    ##########################################

    def extract_search_hits(self, raw_response: dict) -> list[dict]:
        return [
            {"id": hit.get("id"), "score": float(hit.get("score", 0.0)), "payload": hit.get("payload") or {}}
            for hit in raw_response.get("result") or []
        ]

    def extract_scroll_content(self, raw_response: dict) -> dict:
        return {
            "result": (raw_response.get("result") or {}).get("points", []),
            "status": raw_response.get("status", "ok"),
            "time": raw_response.get("time", 0),
        }

    def extract_next_page_offset(self, raw_response: dict) -> str | None:
        return (raw_response.get("result") or {}).get("next_page_offset")
