from pydantic import BaseModel

from shared.helper.HelperConfig import HelperConfig


class EnvConfig(BaseModel):
    """
    Represents a single configuration parameter required by a client.

    Attributes:
        env_key (str): The raw key of the environment variable, without the client prefix (e.g. "BASE_URL").
        val_type (str): The expected type of the value. Supported types are "string", "number", "bool" and "list".
        default (str | int | float | bool | list | None): Value used if the variable is not set. If None, the variable is required and an error will be raised if it is not set.
    """

    env_key: str
    val_type: str
    default: str | int | float | bool | list | None = None


class MemoryConfig(BaseModel):
    """Conversational history and long-term memory settings.

    Attributes:
        enabled: Turns memory search/persistence on and is the default for history inclusion.
        top_k_mems: Default number of memories retrieved per turn.
        max_history_tokens: Token budget for recalled history.
        summary_every_n_turns: Enqueue a summarization job every N turns. 0 disables.
        prune_limit: Records kept per session after each memory write. 0 disables.
    """

    enabled: bool = False
    top_k_mems: int = 3
    max_history_tokens: int = 800
    summary_every_n_turns: int = 0
    prune_limit: int = 200


class UploadAskConfig(BaseModel):
    """Upload and ask limits."""

    vector_dim: int = 1536
    max_file_bytes: int = 20 * 1024 * 1024
    max_retrieved: int = 8
    max_preview_chars: int = 240
    chunk_max_tokens: int = 800
    chunk_overlap: int = 0
    tokenizer: str = "words"
    best_effort_timeout: float = 10.0
    memory: MemoryConfig = MemoryConfig()

    @classmethod
    def from_helper_config(cls, helper_config: HelperConfig) -> "UploadAskConfig":
        """Build the configuration from UPLOADASK_* environment variables.

        Args:
            helper_config (HelperConfig): The central configuration helper.

        Returns:
            UploadAskConfig: The resolved configuration, defaults applied for unset keys.
        """
        d = cls()
        m = d.memory
        max_file_mb = helper_config.get_number_val("UPLOADASK_MAX_FILE_MB", default=d.max_file_bytes // (1024 * 1024))
        return cls(
            vector_dim=int(helper_config.get_number_val("UPLOADASK_VECTOR_DIM", default=d.vector_dim)),
            max_file_bytes=int(max_file_mb * 1024 * 1024),
            max_retrieved=int(helper_config.get_number_val("UPLOADASK_MAX_RETRIEVED", default=d.max_retrieved)),
            max_preview_chars=int(helper_config.get_number_val("UPLOADASK_MAX_PREVIEW_CHARS", default=d.max_preview_chars)),
            chunk_max_tokens=int(helper_config.get_number_val("UPLOADASK_CHUNK_MAX_TOKENS", default=d.chunk_max_tokens)),
            chunk_overlap=int(helper_config.get_number_val("UPLOADASK_CHUNK_OVERLAP", default=d.chunk_overlap)),
            tokenizer=helper_config.get_string_val("UPLOADASK_TOKENIZER", default=d.tokenizer).lower(),
            best_effort_timeout=float(helper_config.get_number_val("UPLOADASK_BEST_EFFORT_TIMEOUT", default=d.best_effort_timeout)),
            memory=MemoryConfig(
                enabled=helper_config.get_bool_val("UPLOADASK_MEMORY_ENABLED", default=m.enabled),
                top_k_mems=int(helper_config.get_number_val("UPLOADASK_MEMORY_TOPK_MEMS", default=m.top_k_mems)),
                max_history_tokens=int(helper_config.get_number_val("UPLOADASK_MEMORY_MAX_HISTORY_TOKENS", default=m.max_history_tokens)),
                summary_every_n_turns=int(helper_config.get_number_val("UPLOADASK_MEMORY_SUMMARY_EVERY_N_TURNS", default=m.summary_every_n_turns)),
                prune_limit=int(helper_config.get_number_val("UPLOADASK_MEMORY_PRUNE_LIMIT", default=m.prune_limit)),
            ),
        )
