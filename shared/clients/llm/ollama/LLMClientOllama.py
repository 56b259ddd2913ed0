from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig


class LLMClientOllama(LLMClientInterface):
    """Non-streaming chat against Ollama's POST /api/chat.

    Optional keys: LLM_OLLAMA_API_KEY (sent as bearer token, for proxied
    instances), LLM_OLLAMA_NUM_CTX (context window, 0 keeps the model default)
    and LLM_OLLAMA_KEEP_ALIVE.
    """

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("BASE_URL", val_type="string")
        self._api_key = self.get_config_val("API_KEY", default="", val_type="string")
        self._num_ctx = int(self.get_config_val("NUM_CTX", default=0, val_type="number"))
        self._keep_alive = self.get_config_val("KEEP_ALIVE", default="5m", val_type="string")

    ##########################################
    ################ GETTER ##################
    ##########################################

    def _get_engine_name(self) -> str:
        return "Ollama"

    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default=None),
            EnvConfig(env_key="API_KEY", val_type="string", default=""),
            EnvConfig(env_key="NUM_CTX", val_type="number", default=0),
            EnvConfig(env_key="KEEP_ALIVE", val_type="string", default="5m"),
        ]

    def _get_auth_header(self) -> dict:
        return {"Authorization": f"Bearer {self._api_key}"} if self._api_key else {}

    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return "/api/version"

    def _get_endpoint_chat(self) -> str:
        return "/api/chat"

    ##########################################
    ############ PAYLOAD BUILDER #############
    ##########################################

    def get_chat_payload(self, messages: list[dict]) -> dict:
        options: dict = {"temperature": self.temperature}
        if self._num_ctx > 0:
            options["num_ctx"] = self._num_ctx
        return {
            "model": self.chat_model,
            "messages": [{"role": m["role"], "content": m["content"]} for m in messages],
            "stream": False,
            "keep_alive": self._keep_alive,
            "options": options,
        }

    def extract_chat_response(self, response_data: dict) -> str:
        """Reply text of a /api/chat response, stripped.

        Raises:
            ValueError: If Ollama reported an error or sent no message.
        """
        if "error" in response_data:
            raise ValueError(f"Ollama chat failed: {response_data['error']}")
        message = response_data.get("message")
        if not isinstance(message, dict) or "content" not in message:
            raise ValueError(f"Ollama chat response without message (keys: {sorted(response_data)})")
        return (message["content"] or "").strip()
