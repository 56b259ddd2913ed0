from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable

from shared.helper.HelperConfig import HelperConfig

JOB_PROCESS_DOCUMENT = "process_document"
JOB_SUMMARIZE_SESSION = "summarize_session"

JobHandler = Callable[[str, dict[str, Any]], Awaitable[None]]


class QueueClientInterface(ABC):
    """Fire-and-forget job dispatcher.

    do_enqueue() hands a job to the backend and returns; callers assume no
    delivery guarantee and treat enqueue errors as non-fatal.
    """

    def __init__(self, helper_config: HelperConfig):
        self.logging = helper_config.get_logger()
        self._helper_config = helper_config
        self._handler: JobHandler | None = None

    def get_client_type(self) -> str:
        return "queue"

    def get_engine_name(self) -> str:
        return self._get_engine_name().lower()

    @abstractmethod
    def _get_engine_name(self) -> str:
        pass

    def set_handler(self, handler: JobHandler | None) -> None:
        """Register the coroutine that executes delivered jobs."""
        self._handler = handler

    async def boot(self) -> None:
        pass

    async def close(self) -> None:
        pass

    @abstractmethod
    async def do_enqueue(self, name: str, payload: dict[str, Any]) -> None:
        """Submit a job.

        Args:
            name (str): Job name, e.g. "process_document".
            payload (dict[str, Any]): JSON-serialisable job arguments.
        """
        pass
