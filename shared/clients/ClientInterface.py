from abc import ABC, abstractmethod

import httpx
from httpx._types import QueryParamTypes, RequestContent, RequestData, RequestFiles
from typing import Any
from shared.models.config import EnvConfig

from shared.helper.HelperConfig import HelperConfig


class ClientRequestError(Exception):
    """A backend answered with a non-2xx status."""

    def __init__(self, method: str, url: str, status_code: int, body: str = ""):
        super().__init__(f"{method} {url} failed with status {status_code}")
        self.method = method
        self.url = url
        self.status_code = status_code
        self.body = body


class ClientInterface(ABC):
    """Base class of every HTTP-backed collaborator (embedding, chat, vector search).

    Configuration keys are namespaced as <TYPE>_<ENGINE>_<KEY>, e.g.
    "EMBED_OLLAMA_BASE_URL", and validated when the client is constructed.
    The request timeout is read from <TYPE>_TIMEOUT (seconds, default 30).
    """

    def __init__(self, helper_config: HelperConfig):
        self.logging = helper_config.get_logger()
        self._helper_config = helper_config
        self.timeout = helper_config.get_number_val(f"{self.get_client_type().upper()}_TIMEOUT", default=30.0)

        self._client: httpx.AsyncClient | None = None
        self.validate_full_configuration()

    ##########################################
    ############### CHECKER ##################
    ##########################################

    def validate_full_configuration(self) -> None:
        """
        Resolve every declared configuration key once.

        Raises:
            ValueError: If a required key is missing or a value has the wrong type.
        """
        for config in self._get_required_config():
            self.get_config_val(raw_key=config.env_key, default=config.default, val_type=config.val_type)

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def get_client_type(self) -> str:
        """Lowercase client type, e.g. "embed"."""
        return self._get_client_type().lower()

    @abstractmethod
    def _get_client_type(self) -> str:
        pass

    def get_engine_name(self) -> str:
        """Lowercase engine name, e.g. "ollama"."""
        return self._get_engine_name().lower()

    @abstractmethod
    def _get_engine_name(self) -> str:
        pass

    ################ CONFIG ##################
    @abstractmethod
    def _get_required_config(self) -> list[EnvConfig]:
        """
        Declares the engine-specific configuration keys.

        Returns:
            list[EnvConfig]: Raw keys (without prefix), their types and defaults. A None default marks the key as required.
        """
        pass

    def _get_config_key_name(self, raw_key: str) -> str:
        """Full key for raw_key, e.g. "BASE_URL" -> "RAG_QDRANT_BASE_URL"."""
        return f"{self.get_client_type().upper()}_{self.get_engine_name().upper()}_{raw_key.upper()}"

    def get_config_val(self, raw_key: str, default: Any = None, val_type: str = "string") -> Any:
        """
        Read an engine-scoped configuration value.

        Args:
            raw_key (str): Key without the <TYPE>_<ENGINE>_ prefix.
            default (Any): Value used if the key is unset. None makes the key required.
            val_type (str): "string", "number", "bool" or "list".

        Raises:
            ValueError: If val_type is unsupported or the key is required but missing.
        """
        getters = {
            "string": self._helper_config.get_string_val,
            "number": self._helper_config.get_number_val,
            "bool": self._helper_config.get_bool_val,
            "list": self._helper_config.get_list_val,
        }
        if val_type not in getters:
            raise ValueError(f"Unsupported config value type '{val_type}' for key '{raw_key}' of {self.get_client_type()} client '{self.get_engine_name()}'.")
        return getters[val_type](self._get_config_key_name(raw_key), default=default)

    ################ AUTH ##################
    @abstractmethod
    def _get_auth_header(self) -> dict:
        """
        Returns the authentication header for the backend server, or {} if none is configured.
        """
        pass

    ################ ENDPOINTS ##################
    @abstractmethod
    def _get_base_url(self) -> str:
        """
        Returns the base URL of the backend server (e.g. "http://localhost:11434").
        """
        pass

    @abstractmethod
    def _get_endpoint_healthcheck(self) -> str:
        pass

    def _build_url(self, endpoint: str) -> str:
        endpoint = endpoint.strip()
        path = "/" + endpoint.lstrip("/") if endpoint else ""
        return f"{self._get_base_url().rstrip('/')}{path}"

    def _build_headers(self, additional_headers: dict | None) -> dict:
        # httpx sets Content-Type for json/data/files; raw content callers pass it explicitly
        headers = dict(self._get_auth_header())
        headers.update(additional_headers or {})
        return headers

    ##########################################
    ############### LIFECYCLE ################
    ##########################################

    async def boot(self, transport: httpx.AsyncBaseTransport | None = None) -> None:
        """Open the HTTP client.

        Args:
            transport (httpx.AsyncBaseTransport | None): Transport override, e.g. httpx.MockTransport in tests.
        """
        self._client = httpx.AsyncClient(timeout=self.timeout, transport=transport)

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_healthcheck(self) -> httpx.Response:
        """
        Probe the backend.

        Raises:
            ClientRequestError: If the backend does not answer with 2xx.
        """
        return await self.do_request(method="GET", endpoint=self._get_endpoint_healthcheck(), raise_on_error=True)

    async def do_json(self, method: str, endpoint: str, body: dict | None = None) -> dict:
        """Send an optional JSON body and return the decoded JSON response.

        Raises:
            ClientRequestError: On a non-2xx status.
        """
        response = await self.do_request(method=method, endpoint=endpoint, json=body, raise_on_error=True)
        return response.json()

    async def do_request(
        self,
        method: str = "GET",
        content: RequestContent | None = None,
        data: RequestData | None = None,
        files: RequestFiles | None = None,
        json: dict | None = None,
        params: QueryParamTypes | None = None,
        endpoint: str = "",
        additional_headers: dict | None = None,
        raise_on_error: bool = False,
    ) -> httpx.Response:
        """Send an HTTP request to the backend.

        At most one of content, data, files and json is sent, in that order of precedence.

        Args:
            method: HTTP method.
            content: Raw body; the caller sets Content-Type.
            data: Form-encoded body.
            files: Multipart files.
            json: JSON-serialisable body.
            params: URL query parameters.
            endpoint: Path appended to the base URL.
            additional_headers: Headers merged over the auth header.
            raise_on_error: Raise ClientRequestError on a non-2xx status.

        Raises:
            RuntimeError: If boot() has not been called.
            ClientRequestError: If raise_on_error is set and the status is not 2xx.
        """
        if self._client is None:
            raise RuntimeError(f"HTTP client of {self.get_client_type()} engine '{self.get_engine_name()}' not initialised. Call boot() first.")

        url = self._build_url(endpoint)
        body: dict = {}
        for name, value in (("content", content), ("data", data), ("files", files), ("json", json)):
            if value is not None:
                body[name] = value
                break

        response = await self._client.request(
            method,
            url=url,
            headers=self._build_headers(additional_headers),
            params=params,
            timeout=self.timeout,
            **body,
        )

        if raise_on_error and not response.is_success:
            self.logging.error("Request %s %s failed with status %d: %s", method, url, response.status_code, response.text[:200])
            raise ClientRequestError(method, url, response.status_code, response.text)
        return response
