import asyncio
from typing import Any

from shared.clients.queue.QueueClientInterface import QueueClientInterface
from shared.helper.HelperConfig import HelperConfig


class QueueClientImmediate(QueueClientInterface):
    """Runs each job in-process as a background asyncio task.

    Jobs enqueued without a registered handler are dropped with a warning.
    Handler errors are logged, never raised to the enqueuer.
    """

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._tasks: set[asyncio.Task] = set()

    def _get_engine_name(self) -> str:
        return "Immediate"

    async def do_enqueue(self, name: str, payload: dict[str, Any]) -> None:
        if self._handler is None:
            self.logging.warning("No job handler registered; dropping job '%s'.", name)
            return
        task = asyncio.create_task(self._run(name, dict(payload)))
        # keep a reference until done, the loop only holds weak ones
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self, name: str, payload: dict[str, Any]) -> None:
        try:
            await self._handler(name, payload)
        except Exception as e:
            self.logging.error("Job '%s' failed: %s", name, e)

    async def drain(self) -> None:
        """Wait until all jobs enqueued so far (and jobs they enqueue) have finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def close(self) -> None:
        await self.drain()
