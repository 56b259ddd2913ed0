import uuid
from typing import Any

from services.upload_ask.IngestService import IngestService
from services.upload_ask.MemoryService import MemoryService
from shared.clients.queue.QueueClientInterface import JOB_PROCESS_DOCUMENT, JOB_SUMMARIZE_SESSION
from shared.helper.HelperConfig import HelperConfig


class JobRunner:
    """Executes queued jobs against the services. Registered as the queue handler."""

    def __init__(self, helper_config: HelperConfig, ingest: IngestService, memory: MemoryService) -> None:
        self.logging = helper_config.get_logger()
        self._ingest = ingest
        self._memory = memory

    async def __call__(self, name: str, payload: dict[str, Any]) -> None:
        await self.handle(name, payload)

    async def handle(self, name: str, payload: dict[str, Any]) -> None:
        """
        Dispatch a job by name.

        Raises:
            ValueError: On an unknown job name or a malformed payload.
            AppError: Propagated from the service.
        """
        try:
            owner_id = int(payload["user_id"])
        except (KeyError, TypeError, ValueError) as e:
            raise ValueError(f"Job '{name}' has an invalid user_id: {e}")

        if name == JOB_PROCESS_DOCUMENT:
            await self._ingest.process_document(self._uuid(payload, "document_id"), owner_id)
        elif name == JOB_SUMMARIZE_SESSION:
            await self._memory.summarize_session(owner_id, self._uuid(payload, "session_id"))
        else:
            raise ValueError(f"Unknown job: '{name}'")

    @staticmethod
    def _uuid(payload: dict[str, Any], key: str) -> uuid.UUID:
        try:
            return uuid.UUID(str(payload[key]))
        except (KeyError, ValueError) as e:
            raise ValueError(f"Job payload has an invalid {key}: {e}")
